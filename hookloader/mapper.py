"""Identifier mapper.

Map rules rewrite name prefixes, always on whole `/` segments:

    map = {"jquery": "lib/jquery-2"}
    jquery        -> lib/jquery-2
    jquery/plugin -> lib/jquery-2/plugin
    jquery-ui     -> jquery-ui

Contextual rules only apply inside a parent prefix:

    map = {"bootstrap": {"jquery": "lib/jquery-1"}}

The most specific contextual rule is applied first, then the most specific
global rule is applied to the (possibly rewritten) name.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .config import MapTable

if TYPE_CHECKING:
    from .loader import Loader

logger = logging.getLogger(__name__)


def prefix_match_length(name: str, prefix: str) -> int:
    """Number of leading `/` segments of `name` equal to `prefix`, else 0.

    prefix_match_length("jquery/some/thing", "jquery") -> 1
    prefix_match_length("jquery-ui", "jquery") -> 0
    """
    prefix_parts = prefix.split("/")
    name_parts = name.split("/")
    if len(prefix_parts) > len(name_parts):
        return 0
    if name_parts[: len(prefix_parts)] != prefix_parts:
        return 0
    return len(prefix_parts)


def apply_rules(rules: dict[str, str], name: str) -> str | None:
    """Rewrite `name` with the longest matching rule, or None if none match."""
    best_prefix: str | None = None
    best_length = 0
    for prefix in rules:
        length = prefix_match_length(name, prefix)
        if length > best_length:
            best_prefix, best_length = prefix, length

    if best_prefix is None:
        return None

    sub_path = "/".join(name.split("/")[best_length:])
    target = rules[best_prefix]
    return f"{target}/{sub_path}" if sub_path else target


class IdentifierMapper:
    """Applies contextual and global map rules after normalization."""

    def __init__(self, table: MapTable | None = None):
        self.table = table or MapTable()

    def install(self, loader: Loader) -> None:
        loader.use("normalize", self.normalize, name="map")

    def apply(self, name: str, parent_name: str | None = None) -> str:
        mapped = name

        if parent_name:
            parents = sorted(
                (
                    (prefix_match_length(parent_name, parent_prefix), parent_prefix)
                    for parent_prefix in self.table.contextual_rules
                ),
                reverse=True,
            )
            for length, parent_prefix in parents:
                if length == 0:
                    break
                rewritten = apply_rules(self.table.contextual_rules[parent_prefix], mapped)
                if rewritten is not None:
                    logger.debug(f"[map:contextual] {name} -> {rewritten} (in {parent_prefix})")
                    mapped = rewritten
                    break

        rewritten = apply_rules(self.table.global_rules, mapped)
        if rewritten is not None:
            logger.debug(f"[map:global] {mapped} -> {rewritten}")
            mapped = rewritten

        return mapped

    async def normalize(self, next_, name: str, parent_name: str | None = None, parent_address: str | None = None):
        normalized = await next_(name, parent_name, parent_address)
        return self.apply(normalized, parent_name)
