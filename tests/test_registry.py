"""
Tests for the rule registry and rule discovery.
"""

import pytest

from treecop.errors import DuplicateRuleIdError
from treecop.registry import Registry, default_registry
from treecop.types import RuleMeta


class DummyRule:
    def __init__(self, rule_id, langs=("ruby",)):
        self.meta = RuleMeta(id=rule_id, category="test", node_kinds=("call",), langs=langs)

    def visit(self, node, ctx):
        pass


class TestRegistry:
    """Test cases for rule registration and selection."""

    def setup_method(self):
        """Set up test fixtures."""
        self.registry = Registry()

    def test_register_and_lookup(self):
        """Test that registered rules can be retrieved by id in order."""
        first = DummyRule("layout.one")
        second = DummyRule("rspec.two")
        self.registry.register_rule(first)
        self.registry.register_rule(second)

        assert self.registry.get_rule("layout.one") is first
        assert self.registry.get_rule("missing") is None
        assert self.registry.get_rule_ids() == ["layout.one", "rspec.two"]
        assert self.registry.get_all_rules() == [first, second]
        assert len(self.registry) == 2
        assert "rspec.two" in self.registry

    def test_duplicate_id_rejected(self):
        """Test that a second rule with a taken id raises."""
        self.registry.register_rule(DummyRule("layout.one"))
        with pytest.raises(DuplicateRuleIdError) as exc_info:
            self.registry.register_rule(DummyRule("layout.one"))
        assert exc_info.value.rule_id == "layout.one"
        assert len(self.registry) == 1

    def test_enabled_and_disabled_patterns(self):
        """Test fnmatch selection of enabled rules."""
        for rule_id in ("layout.one", "layout.two", "rspec.three"):
            self.registry.register_rule(DummyRule(rule_id))

        ids = [r.meta.id for r in self.registry.get_enabled_rules(["*"])]
        assert ids == ["layout.one", "layout.two", "rspec.three"]

        ids = [r.meta.id for r in self.registry.get_enabled_rules(["layout.*"], ["layout.two"])]
        assert ids == ["layout.one"]

        assert self.registry.get_enabled_rules([]) == []

    def test_rules_for_language(self):
        """Test filtering by supported language."""
        self.registry.register_rule(DummyRule("layout.one"))
        self.registry.register_rule(DummyRule("other.two", langs=("python",)))
        assert [r.meta.id for r in self.registry.get_rules_for_language("ruby")] == ["layout.one"]

    def test_clear(self):
        """Test that clear empties the registry."""
        self.registry.register_rule(DummyRule("layout.one"))
        self.registry.clear()
        assert len(self.registry) == 0
        assert self.registry.get_rule("layout.one") is None

    def test_missing_package_is_skipped(self):
        """Test that discovery of an unknown package registers nothing."""
        assert self.registry.discover_rules(["no_such_rule_package"]) == 0


class TestRuleDiscovery:
    """Test cases for discovering the shipped rules."""

    def test_discover_shipped_rules(self):
        """Test that every shipped rule is found exactly once."""
        pytest.importorskip("tree_sitter")
        registry = Registry()
        assert registry.discover_rules(["cops"]) == 5
        assert registry.get_rule_ids() == [
            "layout.multiline_chain_line_breaks",
            "layout.wrap_multiline_arguments",
            "rspec.nested_context_improper_start",
            "rspec.nested_let_redefinition",
            "rspec.nested_subject_redefinition",
        ]

    def test_discovery_twice_conflicts(self):
        """Test that rediscovering into the same registry reports duplicates."""
        pytest.importorskip("tree_sitter")
        registry = Registry()
        registry.discover_rules(["cops"])
        with pytest.raises(DuplicateRuleIdError):
            registry.discover_rules(["cops"])

    def test_default_registries_are_independent(self):
        """Test that each default registry is a fresh instance."""
        pytest.importorskip("tree_sitter")
        first = default_registry()
        second = default_registry()
        assert first is not second
        assert first.get_rule_ids() == second.get_rule_ids()
        assert first.get_rule(first.get_rule_ids()[0]) is not second.get_rule(second.get_rule_ids()[0])
