"""
Tests for the node pattern compiler and matcher.
"""

import pytest

from treecop import pattern
from treecop.errors import PatternSyntaxError
from treecop.pattern import PatternNodeKind
from treecop.ruby_adapter import RUBY_NODE_KINDS


def _call(document):
    return document.root.children[0]


class TestPatternCompile:
    """Test cases for pattern compilation."""

    @pytest.mark.parametrize("description", [
        "(call",
        "call)",
        "(call identifier}",
        "{call identifier",
        "",
        "   ",
        "call identifier",
        "...",
        "(call ... ...)",
        "(:foo)",
        "{}",
        "$",
        "!$identifier",
        "{$identifier call}",
        "(call @)",
    ])
    def test_malformed_patterns_raise(self, description):
        """Test that malformed descriptions raise PatternSyntaxError."""
        with pytest.raises(PatternSyntaxError):
            pattern.compile(description)

    def test_unknown_kind_rejected_with_vocabulary(self):
        """Test that kinds are validated when a vocabulary is given."""
        with pytest.raises(PatternSyntaxError) as exc_info:
            pattern.compile("(call (nonsense_kind))", kinds=RUBY_NODE_KINDS)
        assert "nonsense_kind" in str(exc_info.value)
        assert exc_info.value.pattern == "(call (nonsense_kind))"

    def test_unknown_kind_allowed_without_vocabulary(self):
        """Test that any kind compiles when no vocabulary is given."""
        compiled = pattern.compile("(nonsense_kind)")
        assert compiled.description == "(nonsense_kind)"

    def test_unknown_predicate_rejected(self):
        """Test that predicates must be injected."""
        with pytest.raises(PatternSyntaxError):
            pattern.compile("(call #missing?)")

    def test_capture_count(self):
        """Test that captures are counted at compile time."""
        compiled = pattern.compile("(call $_ $name=identifier $...)")
        assert compiled.capture_count == 3

    def test_compiler_builds_tree(self):
        """Test the compiled tree shape for a node pattern with a rest marker."""
        root = pattern.PatternCompiler().compile("(call identifier ... argument_list)")
        assert root.kind == PatternNodeKind.NODE
        assert root.value == "call"
        assert [p.value for p in root.prefix] == ["identifier"]
        assert [p.value for p in root.suffix] == ["argument_list"]
        assert root.rest is not None


class TestPatternMatch:
    """Test cases for matching compiled patterns against trees."""

    def test_exact_children(self, call_document):
        """Test that a node pattern requires exactly the listed named children."""
        call = _call(call_document)
        assert pattern.compile("(call identifier identifier argument_list)").matches(call)
        assert not pattern.compile("(call identifier identifier)").matches(call)
        assert not pattern.compile("(program identifier identifier argument_list)").matches(call)

    def test_bare_kind_and_wildcards(self, call_document):
        """Test bare kinds, _ and (_ ...)."""
        call = _call(call_document)
        assert pattern.compile("call").matches(call)
        assert pattern.compile("_").matches(call)
        assert pattern.compile("(_ ...)").matches(call)
        assert not pattern.compile("identifier").matches(call)

    def test_rest_in_middle(self, call_document):
        """Test that ... matches a run between a prefix and a suffix."""
        call = _call(call_document)
        assert pattern.compile("(call identifier ... argument_list)").matches(call)
        assert pattern.compile("(call ... argument_list)").matches(call)
        assert pattern.compile("(call identifier identifier argument_list ...)").matches(call)
        assert not pattern.compile("(call ... identifier)").matches(call)

    def test_positional_and_named_captures(self, call_document):
        """Test that captures are returned in order and by name."""
        call = _call(call_document)
        match = pattern.compile("(call $identifier $method=identifier (argument_list $integer))").match(call)
        assert match is not None
        assert len(match) == 3
        assert match[0].text == "a"
        assert match[1].text == "b"
        assert match["method"] is match[1]
        assert match[2].text == "1"
        assert match.get("missing") is None

    def test_rest_capture(self, call_document):
        """Test that $... captures the run as a tuple."""
        call = _call(call_document)
        match = pattern.compile("(call identifier $...)").match(call)
        assert [node.kind for node in match[0]] == ["identifier", "argument_list"]

    def test_alternation_first_success(self, let_document):
        """Test alternation in declared order."""
        call = _call(let_document)
        compiled = pattern.compile("(call identifier (argument_list ${string simple_symbol} ...))")
        match = compiled.match(call)
        assert match[0].kind == "simple_symbol"

    def test_failed_branch_leaves_no_captures(self, let_document):
        """Test that captures of a failed alternation branch are discarded."""
        call = _call(let_document)
        compiled = pattern.compile(
            "{(call $identifier (argument_list $string ...)) (call $identifier (argument_list $simple_symbol ...))}"
        )
        match = compiled.match(call)
        assert len(match) == 2
        assert match[0].text == "let"
        assert match[1].kind == "simple_symbol"

    def test_literals(self, let_document):
        """Test symbol, string and integer literals against node values."""
        call = _call(let_document)
        assert pattern.compile('(call :let (argument_list :foo "x"))').matches(call)
        assert not pattern.compile('(call :let (argument_list :bar "x"))').matches(call)
        assert not pattern.compile('(call "subject" ...)').matches(call)

    def test_integer_literal(self, call_document):
        """Test integer literals."""
        call = _call(call_document)
        assert pattern.compile("(call _ _ (argument_list 1))").matches(call)
        assert not pattern.compile("(call _ _ (argument_list 2))").matches(call)

    def test_negation(self, call_document):
        """Test negated sub-patterns."""
        call = _call(call_document)
        assert pattern.compile("(call !constant ...)").matches(call)
        assert not pattern.compile("(call !identifier ...)").matches(call)

    def test_predicates(self, call_document):
        """Test injected predicates."""
        call = _call(call_document)
        predicates = {"short?": lambda node: len(node.text) == 1}
        assert pattern.compile("(call #short? ...)", predicates=predicates).matches(call)
        assert not pattern.compile("(call _ _ #short?)", predicates=predicates).matches(call)

    def test_match_none(self):
        """Test that matching None yields None."""
        assert pattern.compile("_").match(None) is None

    def test_compiled_pattern_is_reusable(self, call_document, let_document):
        """Test that one compiled pattern serves several trees."""
        compiled = pattern.compile("(call $_ ...)")
        assert compiled.match(_call(call_document))[0].text == "a"
        assert compiled.match(_call(let_document))[0].text == "let"
        assert compiled.match(_call(call_document))[0].text == "a"
