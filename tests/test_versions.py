"""Tests for semver version resolution."""

import pytest
from hookloader.versions import VersionResolver
from hookloader.versions import VersionTable
from hookloader.versions import semver_compare
from hookloader.versions import translate_range


class TestSemverCompare:
    """Test segment ordering."""

    def test_numeric_segments(self):
        """Test numeric comparison rather than string comparison."""
        assert semver_compare("1.10.0", "1.9.0") == 1
        assert semver_compare("1.2.3", "1.2.3") == 0
        assert semver_compare("0.9", "1.0") == -1

    def test_missing_segment_is_greater(self):
        """Test that bucket placeholders sort after concrete versions."""
        assert semver_compare("1.2", "1.2.3") == 1
        assert semver_compare("1.2.3", "1") == -1

    def test_prerelease_sorts_before_release(self):
        """Test that a prerelease is lower than its release."""
        assert semver_compare("1.0.0-beta", "1.0.0") == -1
        assert semver_compare("1.0.0-alpha", "1.0.0-beta") == -1


class TestTranslateRange:
    """Test bucket and minimum computation for requests."""

    @pytest.mark.parametrize(
        "request_version,expected",
        [
            ("1", ("1", None, False)),
            ("1.2", ("1.2", None, False)),
            ("1.2.3", ("1.2.3", None, True)),
            ("^1", ("1", None, False)),
            ("^1.2", ("1", "1.2.0", False)),
            ("^1.2.3", ("1", "1.2.3", False)),
            ("^0.5", ("0.5", "0.5.0", False)),
            ("^0.5.3", ("0.5", "0.5.3", False)),
            ("^0.0.1", ("0.0.1", None, True)),
            ("^1.2.3-beta.1", ("1", "1.2.3-beta.1", False)),
            ("latest", None),
        ],
    )
    def test_translation(self, request_version, expected):
        assert translate_range(request_version) == expected


class TestVersionTable:
    """Test recording and pruning."""

    def test_seed_is_sorted_and_deduplicated(self):
        """Test seed normalization."""
        table = VersionTable({"pkg": ["2.0.0", "1.0.0", "2.0.0"]})
        assert table.get("pkg") == ["1.0.0", "2.0.0"]
        assert table.latest("pkg") == "2.0.0"

    def test_exact_version_prunes_placeholders(self):
        """Test that x.y.z removes x.y and x."""
        table = VersionTable()
        table.record("pkg", "1")
        table.record("pkg", "1.2")
        table.record("pkg", "1.2.3")
        assert table.get("pkg") == ["1.2.3"]

    def test_snapshot_reports_single_versions_as_strings(self):
        """Test the single-version / version-set report."""
        table = VersionTable({"one": ["1.0.0"], "many": ["1.0.0", "2.0.0"]})
        assert table.snapshot() == {"one": "1.0.0", "many": ["1.0.0", "2.0.0"]}


class TestVersionResolver:
    """Test greedy convergence onto recorded versions."""

    def test_convergence(self):
        """Test that pkg@1, pkg@1.2.3, pkg@1 converge on 1.2.3."""
        resolver = VersionResolver()

        assert resolver.resolve("pkg@1") == "pkg@1"
        assert resolver.resolve("pkg@1.2.3") == "pkg@1.2.3"
        assert resolver.resolve("pkg@1") == "pkg@1.2.3"
        assert resolver.table.get("pkg") == ["1.2.3"]

    def test_caret_major(self):
        """Test ^1.2.3 matches only >= 1.2.3 within major 1."""
        resolver = VersionResolver(VersionTable({"pkg": ["1.1.0", "1.3.0", "2.0.0"]}))
        assert resolver.resolve("pkg@^1.2.3") == "pkg@1.3.0"

        resolver = VersionResolver(VersionTable({"pkg": ["1.1.0", "2.0.0"]}))
        assert resolver.resolve("pkg@^1.2.3") == "pkg@1"

    def test_caret_minor(self):
        """Test ^0.5.3 matches only within 0.5.x at or above 0.5.3."""
        resolver = VersionResolver(VersionTable({"pkg": ["0.5.1", "0.5.4", "0.6.0"]}))
        assert resolver.resolve("pkg@^0.5.3") == "pkg@0.5.4"

    def test_caret_patch_is_exact(self):
        """Test ^0.0.1 only resolves to exactly 0.0.1."""
        resolver = VersionResolver(VersionTable({"pkg": ["0.0.1", "0.0.2"]}))
        assert resolver.resolve("pkg@^0.0.1") == "pkg@0.0.1"

    def test_bucket_requires_segment_boundary(self):
        """Test that bucket 1 does not match 10.x."""
        resolver = VersionResolver(VersionTable({"pkg": ["10.0.0"]}))
        assert resolver.resolve("pkg@1") == "pkg@1"

    def test_prerelease_satisfies_range(self):
        """Test that recorded prereleases may satisfy a bucket."""
        resolver = VersionResolver(VersionTable({"pkg": ["2.0.0-rc.1"]}))
        assert resolver.resolve("pkg@2") == "pkg@2.0.0-rc.1"

    def test_sub_path_and_scoped_names(self):
        """Test that sub-paths are kept and scoped package names parse."""
        resolver = VersionResolver(VersionTable({"@scope/pkg": ["1.4.0"]}))
        assert resolver.resolve("@scope/pkg@1/lib/util") == "@scope/pkg@1.4.0/lib/util"

    def test_non_semver_passes_through(self):
        """Test that tags like latest are not rewritten."""
        resolver = VersionResolver()
        assert resolver.resolve("pkg@latest") == "pkg@latest"
        assert "pkg" not in resolver.table

    def test_unversioned_uses_latest_of_longest_package(self):
        """Test unversioned names against the recorded packages."""
        resolver = VersionResolver(VersionTable({"pkg": ["1.0.0", "2.0.0"], "pkg/sub": ["0.1.0"]}))
        assert resolver.resolve("pkg") == "pkg@2.0.0"
        assert resolver.resolve("pkg/other") == "pkg@2.0.0/other"
        assert resolver.resolve("pkg/sub/file") == "pkg/sub@0.1.0/file"
        assert resolver.resolve("pkgx") == "pkgx"

    @pytest.mark.asyncio
    async def test_loader_resolves_versions(self, make_loader, fetcher):
        """Test version resolution through the loader pipeline."""
        fetcher.add("pkg@1.2.3/util.py", "module.exports = 'util'")
        loader = make_loader(versions={"pkg": "1.2.3"})

        assert await loader.normalize("pkg@1/util") == "pkg@1.2.3/util"
        assert await loader.import_module("pkg/util") == "util"
        assert loader.versions.snapshot() == {"pkg": "1.2.3"}
