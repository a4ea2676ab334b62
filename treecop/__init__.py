"""
treecop engine package.

This package provides a tree-sitter based analysis and autocorrection
engine for Ruby: an immutable node model, a node pattern language, rule
dispatch and a conflict-checking edit compositor.
"""

__version__ = "0.1.0"

from .errors import (
    TreecopError, PatternSyntaxError, DuplicateRuleIdError,
    CorrectionError, InvalidEditError, ConflictingEditsError
)

from .nodes import Node, SourceDocument, LineIndex, NodeRange

from .pattern import CompiledPattern, MatchResult, PatternCompiler

from .types import (
    Edit, Offense, RuleMeta, Rule, RuleContext, RuleFailure,
    LanguageAdapter, Severity
)

from .registry import Registry, default_registry

from .commissioner import Commissioner, Investigation

from .corrector import Corrector, CorrectionResult, apply_edits, correct, correct_offenses, unified_diff

from .config import (
    EngineConfig, load_config, get_default_config, save_config, find_config_file, get_rule_severity
)

__all__ = [
    # Errors
    "TreecopError", "PatternSyntaxError", "DuplicateRuleIdError",
    "CorrectionError", "InvalidEditError", "ConflictingEditsError",

    # Tree
    "Node", "SourceDocument", "LineIndex", "NodeRange",

    # Patterns
    "CompiledPattern", "MatchResult", "PatternCompiler",

    # Types
    "Edit", "Offense", "RuleMeta", "Rule", "RuleContext", "RuleFailure",
    "LanguageAdapter", "Severity",

    # Dispatch
    "Registry", "default_registry", "Commissioner", "Investigation",

    # Correction
    "Corrector", "CorrectionResult", "apply_edits", "correct", "correct_offenses", "unified_diff",

    # Config
    "EngineConfig", "load_config", "get_default_config", "save_config",
    "find_config_file", "get_rule_severity",
]
