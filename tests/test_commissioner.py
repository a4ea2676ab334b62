"""
Tests for rule dispatch.
"""

import pytest

from treecop.commissioner import Commissioner
from treecop.config import EngineConfig
from treecop.errors import DuplicateRuleIdError
from treecop.types import Edit, RuleMeta


class RecordingRule:
    """Records every node it is visited for."""

    def __init__(self, rule_id, kinds, log, autocorrect=False):
        self.meta = RuleMeta(id=rule_id, category="test", message="found {kind}",
                             node_kinds=tuple(kinds), autocorrect=autocorrect,
                             options={"Flag": "default"})
        self.log = log

    def visit(self, node, ctx):
        self.log.append((self.meta.id, node.kind, node.start_byte))
        ctx.report(node, kind=node.kind, edits=[Edit(node.start_byte, node.start_byte, "")])


class ExplodingRule:
    """Fails on every node it sees."""

    meta = RuleMeta(id="test.exploding", category="test", message="never", node_kinds=("identifier",))

    def __init__(self):
        self.calls = 0

    def visit(self, node, ctx):
        self.calls += 1
        raise RuntimeError("boom")


class CountingRule:
    """Counts identifiers in ctx.state and reports the total when finished."""

    meta = RuleMeta(id="test.counting", category="test", message="{count} identifiers",
                    node_kinds=("identifier",))

    def visit(self, node, ctx):
        ctx.state["count"] = ctx.state.get("count", 0) + 1

    def finish(self, ctx):
        ctx.report(ctx.document.root, count=ctx.state.get("count", 0))


class OptionRule:
    """Reports the value of its option."""

    meta = RuleMeta(id="test.option", category="test", node_kinds=("program",),
                    options={"Flag": "default"})

    def visit(self, node, ctx):
        ctx.report(node, message=str(ctx.option("Flag")))


class TestCommissionerDispatch:
    """Test cases for node-to-rule dispatch."""

    def test_pre_order_and_registration_order(self, call_document):
        """Test that nodes come in pre-order and rules in registration order per node."""
        log = []
        first = RecordingRule("test.first", ["identifier", "call"], log)
        second = RecordingRule("test.second", ["identifier"], log)
        Commissioner([first, second]).run(call_document)
        assert log == [
            ("test.first", "call", 0),
            ("test.first", "identifier", 0),
            ("test.second", "identifier", 0),
            ("test.first", "identifier", 2),
            ("test.second", "identifier", 2),
            ("test.first", "identifier", 7),
            ("test.second", "identifier", 7),
        ]

    def test_rules_only_see_their_kinds(self, call_document):
        """Test that a rule is never visited for kinds it did not ask for."""
        log = []
        Commissioner([RecordingRule("test.ints", ["integer"], log)]).run(call_document)
        assert log == [("test.ints", "integer", 4)]

    def test_anonymous_tokens_are_dispatched(self, call_document):
        """Test that anonymous tokens reach rules that listen for them."""
        log = []
        Commissioner([RecordingRule("test.dots", ["."], log)]).run(call_document)
        assert log == [("test.dots", ".", 1)]

    def test_offenses_in_emission_order(self, call_document):
        """Test that offenses carry the rule id and formatted message."""
        log = []
        offenses = Commissioner([RecordingRule("test.first", ["call", "integer"], log)]).run(call_document)
        assert [o.message for o in offenses] == ["found call", "found integer"]
        assert all(o.rule == "test.first" for o in offenses)
        assert offenses[0].file == "test.rb"

    def test_edits_dropped_without_autocorrect(self, call_document):
        """Test that only autocorrecting rules carry edits."""
        log = []
        plain = RecordingRule("test.plain", ["integer"], log)
        fixing = RecordingRule("test.fixing", ["integer"], log, autocorrect=True)
        offenses = Commissioner([plain, fixing]).run(call_document)
        assert offenses[0].edits == ()
        assert offenses[1].edits == (Edit(4, 4, ""),)

    def test_register_after_construction(self, call_document):
        """Test that registering a rule later rebuilds the dispatch table."""
        log = []
        commissioner = Commissioner([RecordingRule("test.first", ["integer"], log)])
        commissioner.run(call_document)
        commissioner.register(RecordingRule("test.second", ["integer"], log))
        commissioner.run(call_document)
        assert log[-1][0] == "test.second"
        assert len(commissioner.rules) == 2

    def test_duplicate_rule_id_rejected(self):
        """Test that two rules sharing an id cannot be registered."""
        log = []
        with pytest.raises(DuplicateRuleIdError):
            Commissioner([RecordingRule("test.same", ["call"], log),
                          RecordingRule("test.same", ["integer"], log)])


class TestCommissionerFailures:
    """Test cases for rule failure isolation."""

    def test_failures_recorded_and_run_continues(self, call_document):
        """Test that a raising rule is recorded while other rules still run."""
        log = []
        exploding = ExplodingRule()
        commissioner = Commissioner([exploding, RecordingRule("test.ok", ["identifier"], log)])
        investigation = commissioner.investigate(call_document)

        assert exploding.calls == 3
        assert len(investigation.failures) == 3
        assert len(investigation.offenses) == 3
        failure = investigation.failures[1]
        assert failure.rule == "test.exploding"
        assert (failure.line, failure.column) == (1, 2)
        assert "RuntimeError: boom" in failure.error
        assert "test.exploding" in failure.describe()


class TestCommissionerState:
    """Test cases for per-run rule state and finish hooks."""

    def test_finish_hook_reports(self, call_document):
        """Test that finish sees the state accumulated during traversal."""
        offenses = Commissioner([CountingRule()]).run(call_document)
        assert [o.message for o in offenses] == ["3 identifiers"]

    def test_state_is_fresh_per_document(self, call_document, let_document):
        """Test that ctx.state does not leak between documents."""
        commissioner = Commissioner([CountingRule()])
        assert commissioner.run(call_document)[0].message == "3 identifiers"
        assert commissioner.run(let_document)[0].message == "1 identifiers"
        assert commissioner.run(call_document)[0].message == "3 identifiers"


class TestCommissionerConfig:
    """Test cases for configured options and severities."""

    def test_default_option(self, call_document):
        """Test that rules see their declared defaults without configuration."""
        offenses = Commissioner([OptionRule()]).run(call_document)
        assert offenses[0].message == "default"
        assert offenses[0].severity == "warn"

    def test_configured_option_and_severity(self, call_document):
        """Test that configuration overrides options and severity."""
        config = EngineConfig(rule_configs={"test.option": {"Flag": "custom"}},
                              rule_severities={"test.option": "error"})
        offenses = Commissioner([OptionRule()], config).run(call_document)
        assert offenses[0].message == "custom"
        assert offenses[0].severity == "error"

    def test_invalid_severity_ignored(self, call_document):
        """Test that an unknown configured severity falls back to the default."""
        config = EngineConfig(rule_severities={"test.option": "fatal"})
        offenses = Commissioner([OptionRule()], config).run(call_document)
        assert offenses[0].severity == "warn"


class TestInvestigation:
    """Test cases for offense ordering helpers."""

    def test_ordered_by_rule_then_location(self, call_document):
        """Test grouping by registration order and sorting by location."""
        log = []
        late = RecordingRule("test.late", ["call"], log)
        early = RecordingRule("test.early", ["integer", "program"], log)
        investigation = Commissioner([early, late]).investigate(call_document)

        assert [o.rule for o in investigation.ordered_offenses()] == [
            "test.early", "test.early", "test.late",
        ]
        assert [(o.rule, o.start_byte) for o in investigation.sorted_by_location()] == [
            ("test.late", 0), ("test.early", 0), ("test.early", 4),
        ]
        subset = [o for o in investigation.offenses if o.rule == "test.early"]
        assert [o.start_byte for o in investigation.sorted_by_location(subset)] == [0, 4]
        assert investigation.rule_order == {"test.early": 0, "test.late": 1}
