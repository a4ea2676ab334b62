"""
Rule: rspec.nested_context_improper_start

Checks for nested ``context`` blocks whose description starts with "when",
"with" or "without". A nested context refines its parent's condition, so it
should read as "and ...", "but ..." or "however ...".
"""

from typing import Optional

from treecop.nodes import Node
from treecop.types import RuleContext, RuleMeta

from .helpers import (argument_nodes, first_word, has_block, is_call, is_rspec_receiver,
                      method_name, nearest_block_call, send_range)


class RuleRSpecNestedContextImproperStart:
    """Nested contexts should continue the parent's sentence."""

    meta = RuleMeta(
        id="rspec.nested_context_improper_start",
        category="rspec",
        description="Nested contexts should start with 'and', 'but' or 'however'.",
        message=("Nested `context` should start with `and`, `but`, or `however`, "
                 "not `when`, `with`, or `without`."),
        node_kinds=("call",),
        options={"Prefixes": ["when", "with", "without"]},
    )

    def visit(self, node: Node, ctx: RuleContext) -> None:
        description = self._description(node)
        if description is None:
            return
        if self._description(nearest_block_call(node)) is None:
            return

        prefixes = {prefix.lower() for prefix in ctx.option("Prefixes") or ()}
        if first_word(self._leading_text(description)) in prefixes:
            ctx.report(send_range(node))

    def _description(self, node: Optional[Node]) -> Optional[Node]:
        """The string argument of a ``context '...' do`` call, if ``node`` is one."""
        if not is_call(node) or method_name(node) != "context":
            return None
        if not is_rspec_receiver(node) or not has_block(node):
            return None
        arguments = argument_nodes(node)
        if not arguments or arguments[0].kind != "string":
            return None
        return arguments[0]

    def _leading_text(self, string: Node) -> str:
        # Text before any interpolation
        children = string.named_children
        if children and children[0].kind == "string_content":
            return children[0].text
        return ""


RULES = [RuleRSpecNestedContextImproperStart]
