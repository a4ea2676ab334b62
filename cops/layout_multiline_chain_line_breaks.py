"""
Rule: layout.multiline_chain_line_breaks

Enforces that method calls in a multiline chain are each on their own line.
Once a chain spans more than one line, every call after the root must start
its own line; mixed layouts such as ``object.one\\n  .two`` are flagged and
corrected by breaking the line before the offending ``.``.

    # bad
    object.method_one
      .method_two

    # good
    object
      .method_one
      .method_two

    # good - the arguments cause the break
    object.method_one(
      arg1
    )
"""

from typing import List, Optional, Tuple

from treecop.nodes import Node, NodeRange
from treecop.types import Edit, RuleContext, RuleMeta

from .helpers import (argument_list, argument_nodes, has_block, is_call, method_name,
                      method_node, operator_token, receiver, send_last_line)

OPERATOR_METHODS = ["[]", "[]=", "+", "-", "*", "/", "%", "**", "<<", ">>"]


class RuleLayoutMultilineChainLineBreaks:
    """Break multiline call chains so that each call starts its own line."""

    meta = RuleMeta(
        id="layout.multiline_chain_line_breaks",
        category="layout",
        description="Method calls in a multiline chain must each be on their own line.",
        message="Method calls in a multiline chain must each be on their own line.",
        node_kinds=("call",),
        autocorrect=True,
        options={"IndentationWidth": 2, "OperatorMethods": OPERATOR_METHODS},
    )

    def visit(self, node: Node, ctx: RuleContext) -> None:
        if receiver(node) is None or self._part_of_larger_chain(node):
            return

        links, root = self._spine(node)
        if root.last_line == send_last_line(node):
            return

        indent = ctx.document.line_indentation(root.first_line) + ctx.option("IndentationWidth", 2)
        operator_methods = set(ctx.option("OperatorMethods") or ())

        for link in links:
            if receiver(link).last_line != self._call_start_line(link):
                continue
            if method_name(link) in operator_methods or self._arguments_cause_break(link):
                continue
            ctx.report(self._offense_range(link), edits=self._break_before_operator(link, indent))

    def _part_of_larger_chain(self, node: Node) -> bool:
        # A receiver carrying a block closes the chain it belongs to
        parent = node.parent
        return (is_call(parent) and node.field_name == "receiver"
                and not has_block(node))

    def _spine(self, node: Node) -> Tuple[List[Node], Node]:
        """Calls from the outer end of the chain inwards, and the chain root."""
        links = []
        current = node
        while True:
            recv = receiver(current)
            if recv is None:
                return links, current
            links.append(current)
            if not is_call(recv) or has_block(recv):
                return links, recv
            current = recv

    def _call_start_line(self, node: Node) -> int:
        start = operator_token(node) or method_node(node) or node
        return start.first_line

    def _arguments_cause_break(self, node: Node) -> bool:
        if not argument_nodes(node):
            return False
        return argument_list(node).last_line > self._call_start_line(node)

    def _offense_range(self, node: Node) -> NodeRange:
        operator = operator_token(node)
        method = method_node(node)
        start = (operator or method).start_byte
        end = (method or operator).end_byte
        return start, end

    def _break_before_operator(self, node: Node, indent: int) -> Tuple[Edit, ...]:
        operator: Optional[Node] = operator_token(node)
        if operator is None:
            return ()
        return (Edit(operator.start_byte, operator.start_byte, "\n" + " " * indent),)


RULES = [RuleLayoutMultilineChainLineBreaks]
