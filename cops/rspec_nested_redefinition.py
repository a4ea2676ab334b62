"""
Rules: rspec.nested_let_redefinition, rspec.nested_subject_redefinition

Do not redefine a ``let``/``subject`` that an enclosing example group
already defines. Redefinitions hide scenarios that deserve a context of
their own.

    # bad
    describe '#authorized?' do
      let(:user) { create(:user, :admin) }

      context 'when user is not admin' do
        let(:user) { create(:user, :analyst) }
      end
    end

Definitions are collected while descending through example groups. Each
group gets its own copy of what its ancestors defined, so sibling groups
never see each other's definitions.
"""

from typing import Dict, Mapping, Optional, Tuple

from treecop import pattern
from treecop.nodes import Node
from treecop.ruby_adapter import RUBY_NODE_KINDS
from treecop.types import RuleContext, RuleMeta

from .helpers import block_of, body_statements, enclosing_block_call, is_call, is_example_group

Definitions = Mapping[str, Tuple[int, ...]]  # name -> sorted definition lines

LET_PATTERN = pattern.compile(
    """
    {
      (call $identifier (argument_list ${simple_symbol string} ...) {block do_block})
      (call $identifier (argument_list ${simple_symbol string} ... block_argument))
    }
    """,
    kinds=RUBY_NODE_KINDS,
)

NAMED_SUBJECT_PATTERN = pattern.compile(
    "(call $identifier (argument_list $simple_symbol) {block do_block})",
    kinds=RUBY_NODE_KINDS,
)

ANONYMOUS_SUBJECT_PATTERN = pattern.compile(
    "(call $identifier {block do_block})",
    kinds=RUBY_NODE_KINDS,
)


class RuleRSpecNestedRedefinition:
    """Base for rules flagging definitions repeated in nested example groups.

    Subclasses provide ``meta`` (with a ``Methods`` option) and
    ``definition_name``.
    """

    meta: RuleMeta

    def definition_name(self, node: Node, methods) -> Optional[str]:
        raise NotImplementedError

    def visit(self, node: Node, ctx: RuleContext) -> None:
        if not is_example_group(node):
            return
        # Groups that are direct statements of another group are scanned from there
        if is_example_group(enclosing_block_call(node)):
            return
        methods = frozenset(ctx.option("Methods") or ())
        self._scan(node, {}, methods, ctx)

    def _scan(self, group: Node, inherited: Definitions, methods, ctx: RuleContext) -> None:
        definitions: Dict[str, Tuple[int, ...]] = dict(inherited)
        for statement in body_statements(block_of(group)):
            if not is_call(statement):
                continue
            if is_example_group(statement):
                self._scan(statement, definitions, methods, ctx)
                continue

            name = self.definition_name(statement, methods)
            if name is None:
                continue
            line = statement.first_line
            previous = definitions.get(name)
            if previous:
                ctx.report(statement, name=name, definitions=", ".join(map(str, previous)))
                definitions[name] = tuple(sorted(set(previous) | {line}))
            else:
                definitions[name] = (line,)


class RuleRSpecNestedLetRedefinition(RuleRSpecNestedRedefinition):
    """Flag ``let`` definitions that shadow one from an enclosing group."""

    meta = RuleMeta(
        id="rspec.nested_let_redefinition",
        category="rspec",
        description="Do not redefine a let from an ancestor example group.",
        message="Let `:{name}` is already defined in ancestor(s) block(s) at: {definitions}.",
        node_kinds=("call",),
        options={"Methods": ["let", "let!"]},
    )

    def definition_name(self, node: Node, methods) -> Optional[str]:
        match = LET_PATTERN.match(node)
        if match is None or match[0].value not in methods:
            return None
        return match[1].value


class RuleRSpecNestedSubjectRedefinition(RuleRSpecNestedRedefinition):
    """Flag ``subject`` definitions that shadow one from an enclosing group."""

    meta = RuleMeta(
        id="rspec.nested_subject_redefinition",
        category="rspec",
        description="Do not redefine a subject from an ancestor example group.",
        message="Subject `:{name}` is already defined in ancestor(s) block(s) at: {definitions}.",
        node_kinds=("call",),
        options={"Methods": ["subject", "subject!"]},
    )

    def definition_name(self, node: Node, methods) -> Optional[str]:
        match = NAMED_SUBJECT_PATTERN.match(node)
        if match is not None:
            return match[1].value if match[0].value in methods else None
        match = ANONYMOUS_SUBJECT_PATTERN.match(node)
        if match is not None and match[0].value in methods:
            return "anonymous"
        return None


RULES = [RuleRSpecNestedLetRedefinition, RuleRSpecNestedSubjectRedefinition]
