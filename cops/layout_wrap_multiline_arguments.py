"""
Rule: layout.wrap_multiline_arguments

Checks calls whose argument list spans several lines but starts on the
same line as the method name. Such calls must use parentheses and break the
line before the first argument.

    # bad
    method_name arg1,
                arg2

    # good
    method_name(
      arg1,
      arg2
    )
"""

from typing import List

from treecop.nodes import Node
from treecop.types import Edit, RuleContext, RuleMeta

from .helpers import (argument_list, argument_nodes, has_heredoc_argument, is_parenthesized,
                      is_setter, method_name, method_node, operator_token, send_range)


class RuleLayoutWrapMultilineArguments:
    """Wrap multiline arguments in parentheses, starting on a new line."""

    meta = RuleMeta(
        id="layout.wrap_multiline_arguments",
        category="layout",
        description="Multiline argument lists must be parenthesized and start on their own line.",
        message=("Method call with multiline arguments must use parentheses "
                 "and break line before the first argument."),
        node_kinds=("call",),
        autocorrect=True,
        options={"IndentationWidth": 2, "AllowedMethods": []},
    )

    def visit(self, node: Node, ctx: RuleContext) -> None:
        arguments = argument_nodes(node)
        if not arguments:
            return

        call_line = self._call_line(node)
        if argument_list(node).last_line == call_line:
            return
        if is_setter(node) or method_name(node) in set(ctx.option("AllowedMethods") or ()):
            return
        # Moving a heredoc opener would detach it from its body
        if has_heredoc_argument(node):
            return

        parenthesized = is_parenthesized(node)
        if parenthesized and arguments[0].first_line > call_line:
            return

        indent = self._column(node, ctx) + ctx.option("IndentationWidth", 2)
        ctx.report(send_range(node), edits=self._wrap(node, arguments, parenthesized, indent))
        # The first argument moves to ``indent``; calls later on its line move with it
        first = arguments[0]
        ctx.state.setdefault("moved", []).append((first.first_line, first.start_byte,
                                                  indent - first.column))

    def _column(self, node: Node, ctx: RuleContext) -> int:
        """Column of ``node`` once enclosing wraps from this pass are applied."""
        column = node.column
        for line, start, shift in reversed(ctx.state.get("moved", ())):
            if node.first_line == line and node.start_byte >= start:
                return column + shift
        return column

    def _call_line(self, node: Node) -> int:
        start = method_node(node) or operator_token(node) or node
        return start.first_line

    def _wrap(self, node: Node, arguments: List[Node], parenthesized: bool,
              indent: int) -> List[Edit]:
        first, last = arguments[0], arguments[-1]
        edits = []
        if not parenthesized:
            method = method_node(node)
            if method is not None:
                edits.append(Edit(method.end_byte, first.start_byte, "("))
            else:
                edits.append(Edit(first.start_byte, first.start_byte, "("))
        edits.append(Edit(first.start_byte, first.start_byte, "\n" + " " * indent))
        if not parenthesized:
            edits.append(Edit(last.end_byte, last.end_byte, ")"))
        return edits


RULES = [RuleLayoutWrapMultilineArguments]
