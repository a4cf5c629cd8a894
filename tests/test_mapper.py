"""Tests for identifier mapping."""

import pytest
from hookloader.config import MapTable
from hookloader.mapper import IdentifierMapper
from hookloader.mapper import apply_rules
from hookloader.mapper import prefix_match_length


def test_prefix_match_is_segment_based():
    """Test that prefixes only match whole path segments."""
    assert prefix_match_length("jquery/some/thing", "jquery") == 1
    assert prefix_match_length("a/b/c", "a/b") == 2
    assert prefix_match_length("jquery-ui", "jquery") == 0
    assert prefix_match_length("a", "a/b") == 0


def test_longest_rule_wins():
    """Test that the most specific rule is applied."""
    rules = {"lib": "vendor", "lib/special": "special-lib"}
    assert apply_rules(rules, "lib/x") == "vendor/x"
    assert apply_rules(rules, "lib/special/y") == "special-lib/y"
    assert apply_rules(rules, "lib") == "vendor"
    assert apply_rules(rules, "other") is None


class TestIdentifierMapper:
    """Test contextual and global map precedence."""

    @pytest.fixture
    def mapper(self):
        table = MapTable.from_config({"lib": "libA", "app": {"lib": "libB"}, "app/legacy": {"lib": "libC"}})
        return IdentifierMapper(table)

    def test_contextual_rule_beats_global(self, mapper):
        """Test that a parent-specific rule applies inside its parent."""
        assert mapper.apply("lib/x", "app/main") == "libB/x"
        assert mapper.apply("lib/x", "other/main") == "libA/x"
        assert mapper.apply("lib/x") == "libA/x"

    def test_most_specific_parent_wins(self, mapper):
        """Test that the deepest matching parent prefix is used."""
        assert mapper.apply("lib/x", "app/legacy/main") == "libC/x"

    def test_global_rule_applies_after_contextual(self):
        """Test that a contextual result is still subject to global rules."""
        table = MapTable.from_config({"shim": "vendor/shim", "app": {"jquery": "shim/jquery"}})
        mapper = IdentifierMapper(table)
        assert mapper.apply("jquery", "app/main") == "vendor/shim/jquery"

    @pytest.mark.asyncio
    async def test_loader_applies_map_after_relative_resolution(self, make_loader):
        """Test the map through the full normalize chain."""
        loader = make_loader(map={"lib": "libA", "app": {"lib": "libB"}})

        assert await loader.normalize("lib/x", "app/main") == "libB/x"
        assert await loader.normalize("lib/x", "other/main") == "libA/x"
        assert await loader.normalize("../../lib/x", "app/sub/main") == "libB/x"
