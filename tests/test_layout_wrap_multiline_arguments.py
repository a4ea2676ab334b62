"""
Tests for layout.wrap_multiline_arguments rule.
"""

import pytest

from treecop.commissioner import Commissioner
from treecop.config import EngineConfig
from treecop.corrector import correct
from treecop.ruby_adapter import RubyAdapter

from cops.layout_wrap_multiline_arguments import RuleLayoutWrapMultilineArguments


class TestWrapMultilineArgumentsRule:
    """Test cases for the wrap multiline arguments rule."""

    def setup_method(self):
        """Set up test fixtures."""
        self.rule = RuleLayoutWrapMultilineArguments()
        self.adapter = RubyAdapter()

    def _commissioner(self, options):
        config = EngineConfig(rule_configs={self.rule.meta.id: options}) if options else None
        return Commissioner([self.rule], config)

    def _run_rule(self, code: str, **options):
        """Helper to run the rule on code and return offenses."""
        document = self.adapter.parse(code, "test.rb")
        if document is None:
            pytest.skip("Tree-sitter parser not available")
        return self._commissioner(options).run(document)

    def _correct(self, code: str, **options) -> str:
        """Helper to run the rule with corrections and return the new text."""
        if not self.adapter.available:
            pytest.skip("Tree-sitter parser not available")
        return correct(code, self._commissioner(options), self.adapter, "test.rb").text

    def test_rule_metadata(self):
        """Test the rule's identity and defaults."""
        assert self.rule.meta.id == "layout.wrap_multiline_arguments"
        assert self.rule.meta.autocorrect
        assert self.rule.meta.options == {"IndentationWidth": 2, "AllowedMethods": []}

    def test_unparenthesized_arguments_trigger(self):
        """Test that a command call with arguments spanning lines is flagged."""
        code = "method_name arg1,\n            arg2\n"
        offenses = self._run_rule(code)

        assert len(offenses) == 1
        offense = offenses[0]
        assert offense.rule == "layout.wrap_multiline_arguments"
        assert offense.message == ("Method call with multiline arguments must use parentheses "
                                   "and break line before the first argument.")
        assert code[offense.start_byte:offense.end_byte] == "method_name arg1,\n            arg2"

    def test_unparenthesized_arguments_corrected(self):
        """Test that the fix adds parentheses and breaks before the first argument."""
        code = "method_name arg1,\n            arg2\n"
        assert self._correct(code) == "method_name(\n  arg1,\n            arg2)\n"

    def test_hash_argument(self):
        """Test a trailing multiline hash argument."""
        code = "method_1 arg1, { a: 1,\n                 b: 2 }\n"
        assert self._correct(code) == "method_1(\n  arg1, { a: 1,\n                 b: 2 })\n"

    def test_array_argument(self):
        """Test a multiline array argument."""
        code = "method_1 [1,\n          2]\n"
        assert self._correct(code) == "method_1(\n  [1,\n          2])\n"

    def test_line_continuation(self):
        """Test that a backslash continuation is replaced by the parenthesis."""
        code = "method_name \\\n  arg1,\n  arg2\n"
        assert self._correct(code) == "method_name(\n  arg1,\n  arg2)\n"

    def test_parenthesized_first_argument_on_call_line(self):
        """Test that parenthesized calls only get the line break."""
        code = "method_name(arg1,\n  arg2)\n"
        offenses = self._run_rule(code)
        assert len(offenses) == 1
        assert self._correct(code) == "method_name(\n  arg1,\n  arg2)\n"

    def test_receiver_call_with_nested_matcher(self):
        """Test a call on a receiver whose argument is itself a multiline call."""
        code = "expect(x).to contain_exactly(\n  1,\n  2\n)\n"
        offenses = self._run_rule(code)
        assert len(offenses) == 1
        assert code[offenses[0].start_byte:offenses[0].end_byte] == code.rstrip("\n")
        assert self._correct(code) == "expect(x).to(\n  contain_exactly(\n  1,\n  2\n))\n"

    def test_configured_indentation_width(self):
        """Test the IndentationWidth option."""
        code = "method_name arg1,\n  arg2\n"
        assert self._correct(code, IndentationWidth=4) == "method_name(\n    arg1,\n  arg2)\n"

    def test_nested_indentation(self):
        """Test that the indent is relative to the call's column."""
        code = "def foo\n  method_name arg1,\n    arg2\nend\n"
        assert self._correct(code) == "def foo\n  method_name(\n    arg1,\n    arg2)\nend\n"

    def test_single_line_arguments_ok(self):
        """Test that single-line argument lists are not flagged."""
        assert self._run_rule("method_name arg1, arg2\n") == []
        assert self._run_rule("method_name(arg1, arg2)\n") == []

    def test_already_wrapped_ok(self):
        """Test that arguments starting on their own line are not flagged."""
        assert self._run_rule("method_name(\n  arg1,\n  arg2\n)\n") == []

    def test_no_arguments_ok(self):
        """Test calls without arguments."""
        assert self._run_rule("object.method_name\n") == []

    def test_block_does_not_count(self):
        """Test that a multiline block is not a multiline argument list."""
        code = "spec.files = IO.popen(%w[git ls-files -z], chdir: __dir__) do |ls|\n  ls.readlines\nend\n"
        assert self._run_rule(code) == []

    def test_allowed_methods(self):
        """Test that AllowedMethods are skipped."""
        code = "method_name arg1,\n            arg2\n"
        assert self._run_rule(code, AllowedMethods=["method_name"]) == []

    def test_heredoc_argument_skipped(self):
        """Test that calls with heredoc arguments are left alone."""
        code = "method_name <<~TEXT, arg2\n  body\nTEXT\n"
        assert self._run_rule(code) == []

    def test_correction_is_idempotent(self):
        """Test that corrected code produces no further offenses."""
        fixed = self._correct("method_name arg1,\n            arg2\n")
        assert self._run_rule(fixed) == []
        assert self._correct(fixed) == fixed

    def test_nested_wrap_indents_from_new_column(self):
        """Test that a call wrapped inside a wrapped call indents from where it lands."""
        code = "foo bar a,\n  b\n"
        fixed = self._correct(code)
        assert fixed == "foo(\n  bar(\n    a,\n  b))\n"
        assert self._run_rule(fixed) == []
