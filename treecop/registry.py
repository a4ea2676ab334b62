"""
Registry for rules.

Rules are registered once at startup, either directly or by discovering
``RULES`` lists in the modules of a package. Registration order is kept and
later decides dispatch order and the order of same-offset edits.
"""

import fnmatch
import importlib
import logging
import pkgutil
from typing import Dict, Iterable, List, Optional

from .errors import DuplicateRuleIdError
from .types import Rule

logger = logging.getLogger(__name__)

DEFAULT_RULE_PACKAGES = ["cops"]


class Registry:
    """Ordered collection of rules keyed by id."""

    def __init__(self, rules: Iterable[Rule] = ()):
        self._rules: List[Rule] = []
        self._rule_index: Dict[str, Rule] = {}  # id -> rule
        for rule in rules:
            self.register_rule(rule)

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self):
        return iter(list(self._rules))

    def __contains__(self, rule_id: str) -> bool:
        return rule_id in self._rule_index

    def register_rule(self, rule: Rule) -> None:
        """Register a rule.

        Raises:
            DuplicateRuleIdError: If a rule with the same id is registered.
        """
        rule_id = rule.meta.id
        if rule_id in self._rule_index:
            raise DuplicateRuleIdError(rule_id)
        self._rules.append(rule)
        self._rule_index[rule_id] = rule

    def get_rule(self, rule_id: str) -> Optional[Rule]:
        """Get rule by id."""
        return self._rule_index.get(rule_id)

    def get_all_rules(self) -> List[Rule]:
        """Get all registered rules in registration order."""
        return self._rules.copy()

    def get_rule_ids(self) -> List[str]:
        """Get all registered rule IDs."""
        return list(self._rule_index.keys())

    def get_enabled_rules(self, enabled_patterns: List[str],
                          disabled_patterns: Optional[List[str]] = None) -> List[Rule]:
        """Get rules whose id matches an enabled pattern and no disabled one."""
        if not enabled_patterns:
            return []
        disabled_patterns = disabled_patterns or []

        enabled_rules = []
        for rule in self._rules:
            rule_id = rule.meta.id
            if not any(fnmatch.fnmatch(rule_id, pattern) for pattern in enabled_patterns):
                continue
            if any(fnmatch.fnmatch(rule_id, pattern) for pattern in disabled_patterns):
                continue
            enabled_rules.append(rule)
        return enabled_rules

    def get_rules_for_language(self, language: str) -> List[Rule]:
        """Get all rules that support a specific language."""
        return [rule for rule in self._rules if language in rule.meta.langs]

    def discover_rules(self, entry_packages: List[str]) -> int:
        """
        Auto-discover and register rules from packages.

        Args:
            entry_packages: List of package names to discover from

        Returns:
            Number of rules discovered and registered

        Raises:
            DuplicateRuleIdError: If a discovered rule clashes with a registered one.
        """
        initial_count = len(self._rules)
        for package_name in entry_packages:
            self._discover_from_package(package_name)
        return len(self._rules) - initial_count

    def _discover_from_package(self, package_name: str) -> None:
        """Discover rules from a specific package."""
        try:
            package = importlib.import_module(package_name)
        except ImportError as e:
            logger.warning("Could not import rule package %s: %s", package_name, e)
            return

        modules = [package]
        if hasattr(package, "__path__"):
            for _, modname, _ in sorted(pkgutil.walk_packages(package.__path__, package.__name__ + "."),
                                        key=lambda item: item[1]):
                try:
                    modules.append(importlib.import_module(modname))
                except ImportError as e:
                    logger.warning("Failed to import %s: %s", modname, e)

        for module in modules:
            self._extract_rules_from_module(module)

    def _extract_rules_from_module(self, module) -> None:
        """Register the entries of a module's RULES list."""
        rules = getattr(module, "RULES", None)
        if not isinstance(rules, list):
            return
        for rule in rules:
            # If it's a class, instantiate it
            instance = rule() if isinstance(rule, type) else rule
            if instance.meta.id in self._rule_index and self._rule_index[instance.meta.id] is instance:
                continue
            self.register_rule(instance)
            logger.debug("Registered rule %s from %s", instance.meta.id, module.__name__)

    def clear(self) -> None:
        """Clear all registered rules (mainly for testing)."""
        self._rules.clear()
        self._rule_index.clear()


def default_registry() -> Registry:
    """Build a fresh registry holding the shipped rules."""
    registry = Registry()
    registry.discover_rules(DEFAULT_RULE_PACKAGES)
    return registry
