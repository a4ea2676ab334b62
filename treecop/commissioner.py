"""
Rule dispatch over a syntax tree.

The commissioner resolves which rules listen to which node kinds once,
then walks each document in a single pre-order traversal and invokes the
interested rules in registration order. It holds no per-document state, so
one commissioner can serve many files, including from several threads.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from .config import EngineConfig, get_rule_severity
from .nodes import Node, SourceDocument
from .registry import Registry
from .types import Offense, Rule, RuleContext, RuleFailure

logger = logging.getLogger(__name__)


@dataclass
class Investigation:
    """Result of running the rules over one document."""
    document: SourceDocument
    offenses: List[Offense] = field(default_factory=list)
    failures: List[RuleFailure] = field(default_factory=list)
    # rule id -> registration rank, used to order edits
    rule_order: Dict[str, int] = field(default_factory=dict)

    def ordered_offenses(self) -> List[Offense]:
        """Offenses grouped by rule registration order, then emission order."""
        rank = self.rule_order
        return sorted(self.offenses, key=lambda offense: rank.get(offense.rule, len(rank)))

    def sorted_by_location(self, offenses: Optional[List[Offense]] = None) -> List[Offense]:
        """Offenses by position; ties keep rule registration order."""
        rank = self.rule_order
        return sorted(self.offenses if offenses is None else offenses,
                      key=lambda o: (o.start_byte, o.end_byte, rank.get(o.rule, len(rank))))


class Commissioner:
    """Dispatches tree nodes to rules."""

    def __init__(self, rules: Iterable[Rule] = (), config: Optional[EngineConfig] = None):
        self._registry = rules if isinstance(rules, Registry) else Registry(rules)
        self.config = config
        self._dispatch: Optional[Dict[str, Tuple[Rule, ...]]] = None

    @property
    def rules(self) -> List[Rule]:
        return self._registry.get_all_rules()

    def register(self, rule: Rule) -> None:
        """Add a rule; raises DuplicateRuleIdError when its id is taken."""
        self._registry.register_rule(rule)
        self._dispatch = None

    def _dispatch_table(self) -> Dict[str, Tuple[Rule, ...]]:
        if self._dispatch is None:
            table: Dict[str, List[Rule]] = {}
            for rule in self._registry.get_all_rules():
                for kind in rule.meta.node_kinds:
                    table.setdefault(kind, []).append(rule)
            self._dispatch = {kind: tuple(rules) for kind, rules in table.items()}
        return self._dispatch

    def _make_context(self, document: SourceDocument, rule: Rule,
                      offenses: List[Offense]) -> RuleContext:
        options = None
        severity = None
        if self.config is not None:
            options = self.config.options_for(rule.meta.id)
            severity = get_rule_severity(rule.meta.id, self.config, rule.meta.severity)
        return RuleContext(document, rule.meta, options=options, severity=severity,
                           sink=offenses.append)

    def run(self, document: SourceDocument) -> List[Offense]:
        """Run every rule over the document and return offenses in emission order."""
        return self.investigate(document).offenses

    def investigate(self, document: SourceDocument) -> Investigation:
        """Run every rule over the document, collecting offenses and rule failures."""
        dispatch = self._dispatch_table()
        rules = self._registry.get_all_rules()
        result = Investigation(document, rule_order={r.meta.id: i for i, r in enumerate(rules)})
        contexts = {rule.meta.id: self._make_context(document, rule, result.offenses)
                    for rule in rules}

        visited = 0
        stack = [document.root]
        while stack:
            node = stack.pop()
            visited += 1
            for rule in dispatch.get(node.kind, ()):
                try:
                    rule.visit(node, contexts[rule.meta.id])
                except Exception as e:
                    result.failures.append(self._failure(rule, node, document, e))
            stack.extend(reversed(node.children))

        for rule in rules:
            finish = getattr(rule, "finish", None)
            if finish is None:
                continue
            try:
                finish(contexts[rule.meta.id])
            except Exception as e:
                result.failures.append(self._failure(rule, document.root, document, e))

        logger.debug("Visited %d nodes of %s: %d offense(s), %d failure(s)",
                     visited, document.path, len(result.offenses), len(result.failures))
        return result

    def _failure(self, rule: Rule, node: Node, document: SourceDocument,
                 error: Exception) -> RuleFailure:
        line, column = document.position(node.start_byte)
        failure = RuleFailure(
            rule=rule.meta.id,
            file=document.path,
            start_byte=node.start_byte,
            line=line,
            column=column,
            error=f"{type(error).__name__}: {error}",
        )
        logger.warning("Rule '%s' failed on %s:%d:%d: %s", rule.meta.id, document.path,
                       line, column, error, exc_info=logger.isEnabledFor(logging.DEBUG))
        return failure
