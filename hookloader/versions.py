"""Semver-style version resolution.

Requests carrying a version suffix (`pkg@1`, `pkg@1.2`, `pkg@1.2.3`,
`pkg@^1.2.3`) are rewritten onto versions already recorded for the package,
so compatible requests share one concrete version:

    pkg          - latest recorded version of pkg
    pkg@1        - major 1, any minor
    pkg@1.2      - minor 1.2, any patch
    pkg@1.2.3    - exact version
    pkg@^1.2.3   - pkg@1, >= 1.2.3
    pkg@^1.2     - pkg@1, >= 1.2.0
    pkg@^1       - pkg@1
    pkg@^0.5.3   - pkg@0.5, >= 0.5.3
    pkg@^0.0.1   - pkg@0.0.1

The policy is greedy and request-order dependent: the first resolution of a
bucket is recorded and later compatible requests converge onto it. Recording
an exact version prunes the broader placeholders it supersedes.
"""

from __future__ import annotations

import functools
import logging
import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .loader import Loader

logger = logging.getLogger(__name__)

# x, x.y, x.y.z, x.y.z-prerelease.1
SEMVER_RE = re.compile(r"^(\d+)(?:\.(\d+)(?:\.(\d+)(?:-([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?)?)?$")


def _split_version(version: str) -> list[str]:
    parts = version.split(".")
    # "1.2.3-beta.1" -> ["1", "2", "3", "beta", "1"]
    if len(parts) > 2 and "-" in parts[2]:
        patch, _, prerelease = parts[2].partition("-")
        parts[2:3] = [patch, prerelease]
    return parts


def _segment_key(segment: str) -> tuple[int, int | str]:
    # Numeric segments order before textual ones
    if segment.isdigit():
        return (0, int(segment))
    return (1, segment)


def semver_compare(v1: str, v2: str) -> int:
    """Compare two versions segment by segment.

    A missing segment compares greater than a present one, so a bucket
    placeholder such as "1.2" sorts after every "1.2.x" and a release sorts
    after its prereleases.
    """
    v1_parts = _split_version(v1)
    v2_parts = _split_version(v2)
    for i in range(max(len(v1_parts), len(v2_parts))):
        if i >= len(v1_parts) or not v1_parts[i]:
            return 1
        if i >= len(v2_parts) or not v2_parts[i]:
            return -1
        if v1_parts[i] != v2_parts[i]:
            return 1 if _segment_key(v1_parts[i]) > _segment_key(v2_parts[i]) else -1
    return 0


_version_sort_key = functools.cmp_to_key(semver_compare)


class VersionTable:
    """Package name -> ordered list of known versions (oldest first)."""

    def __init__(self, seed: dict[str, list[str]] | None = None):
        self._versions: dict[str, list[str]] = {}
        for package, versions in (seed or {}).items():
            self._versions[package] = sorted(dict.fromkeys(versions), key=_version_sort_key)

    def packages(self) -> list[str]:
        return list(self._versions)

    def get(self, package: str) -> list[str]:
        return list(self._versions.get(package, []))

    def latest(self, package: str) -> str | None:
        versions = self._versions.get(package)
        return versions[-1] if versions else None

    def record(self, package: str, version: str) -> None:
        """Record a requested version and prune placeholders it supersedes."""
        versions = self._versions.setdefault(package, [])
        if version in versions:
            return

        versions.append(version)
        versions.sort(key=_version_sort_key)

        match = SEMVER_RE.match(version)
        if match is None:
            return
        major, minor, patch = match.group(1), match.group(2), match.group(3)
        # x.y.z removes x.y; x.y (or x.y.z) removes x
        if patch is not None and f"{major}.{minor}" in versions:
            versions.remove(f"{major}.{minor}")
        if minor is not None and major in versions:
            versions.remove(major)

        logger.debug(f"[versions:record] {package}@{version} (known: {versions})")

    def snapshot(self) -> dict[str, str | list[str]]:
        """Version report: a single string where only one version is known."""
        return {
            package: versions[0] if len(versions) == 1 else list(versions)
            for package, versions in self._versions.items()
        }

    def __contains__(self, package: object) -> bool:
        return package in self._versions

    def __repr__(self) -> str:
        return f"VersionTable({self.snapshot()})"


def translate_range(version: str) -> tuple[str, str | None, bool] | None:
    """Reduce a version request to (bucket, minimum, exact).

    Returns None when the request is not a semver form.
    """
    caret = version.startswith("^")
    bare = version[1:] if caret else version

    match = SEMVER_RE.match(bare)
    if match is None:
        return None

    major, minor, patch, prerelease = match.groups()
    suffix = f"-{prerelease}" if prerelease else ""

    if not caret:
        return bare, None, patch is not None

    if int(major) > 0:
        # ^1 -> 1; ^1.2 -> 1, >= 1.2.0; ^1.2.3 -> 1, >= 1.2.3
        minimum = None if minor is None else f"{major}.{minor}.{patch or 0}{suffix}"
        return major, minimum, False

    if minor is not None and int(minor) > 0:
        # ^0.5 -> 0.5, >= 0.5.0; ^0.5.3 -> 0.5, >= 0.5.3
        return f"0.{minor}", f"0.{minor}.{patch or 0}{suffix}", False

    # ^0 -> 0; ^0.0 -> 0.0; ^0.0.1 -> exactly 0.0.1
    return bare, None, patch is not None


class VersionResolver:
    """Rewrites versioned requests onto recorded versions."""

    def __init__(self, table: VersionTable | None = None):
        self.table = table if table is not None else VersionTable()

    def install(self, loader: Loader) -> None:
        loader.use("normalize", self.normalize, name="versions")

    async def normalize(self, next_, name: str, parent_name: str | None = None, parent_address: str | None = None):
        normalized = await next_(name, parent_name, parent_address)
        return self.resolve(normalized)

    def resolve(self, normalized: str) -> str:
        # Skip a leading "@" so scoped names like "@scope/pkg@1" resolve on the version "@"
        index = normalized.find("@", 1)
        if index == -1:
            return self._resolve_unversioned(normalized)

        package = normalized[:index]
        version, slash, sub_path = normalized[index + 1 :].partition("/")
        rest = f"{slash}{sub_path}"

        translated = translate_range(version)
        if translated is None:
            return normalized
        bucket, minimum, exact = translated

        # An exact version has nothing to match against; it is simply recorded
        if not exact or minimum is not None:
            for candidate in reversed(self.table.get(package)):
                if not candidate.startswith(bucket):
                    continue
                if candidate[len(bucket) : len(bucket) + 1] not in ("", ".", "-"):
                    continue
                if minimum is not None and semver_compare(candidate, minimum) < 0:
                    continue
                logger.debug(f"[versions:match] {package}@{version} -> {candidate}")
                return f"{package}@{candidate}{rest}"

        self.table.record(package, bucket)
        return f"{package}@{bucket}{rest}"

    def _resolve_unversioned(self, normalized: str) -> str:
        best: str | None = None
        for package in self.table.packages():
            if not normalized.startswith(package):
                continue
            if normalized[len(package) : len(package) + 1] not in ("", "/"):
                continue
            if best is None or len(package) > len(best):
                best = package

        if best is None:
            return normalized

        latest = self.table.latest(best)
        if latest is None:
            return normalized
        return f"{best}@{latest}{normalized[len(best):]}"
