"""
treecop Rules Package

This package contains the rules ("cops") shipped with treecop.
Rules are discovered by ``treecop.registry.default_registry``.

To add a new rule:
1. Create a Python file in this directory (e.g., layout_my_rule.py)
2. Define your rule class implementing the Rule protocol
3. Create a RULES list containing your rule class or instance

Example rule structure:

```python
from treecop.types import RuleContext, RuleMeta

class RuleStyleMyRule:
    meta = RuleMeta(
        id="style.my_rule",
        category="style",
        description="Detects my specific issue",
        message="Found an issue.",
        node_kinds=("call",),
    )

    def visit(self, node, ctx: RuleContext) -> None:
        if node.spans_multiple_lines():
            ctx.report(node)

RULES = [RuleStyleMyRule]
```
"""
