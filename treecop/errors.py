"""
Exception hierarchy for the treecop engine.

Startup errors (bad patterns, duplicate rule ids) are fatal. Correction
errors are fatal only for the fix pass of the file they were raised for.
"""

from typing import Optional, Tuple


class TreecopError(Exception):
    """Base exception for all treecop errors."""
    pass


class PatternSyntaxError(TreecopError):
    """Raised when a node pattern description is malformed."""

    def __init__(self, message: str, pattern: str = "", position: Optional[int] = None):
        self.pattern = pattern
        self.position = position
        if pattern and position is not None:
            message = f"{message} at offset {position} in {pattern!r}"
        elif pattern:
            message = f"{message} in {pattern!r}"
        super().__init__(message)


class DuplicateRuleIdError(TreecopError):
    """Raised when two registered rules share an id."""

    def __init__(self, rule_id: str):
        self.rule_id = rule_id
        super().__init__(f"Rule id '{rule_id}' is already registered")


class CorrectionError(TreecopError):
    """Base class for errors raised while applying edits."""
    pass


class InvalidEditError(CorrectionError):
    """Raised when an edit range is inverted or outside the source."""

    def __init__(self, edit, source_length: int):
        self.edit = edit
        self.source_length = source_length
        super().__init__(
            f"Edit [{edit.start_byte}, {edit.end_byte}) is not within "
            f"source of {source_length} bytes"
        )


class ConflictingEditsError(CorrectionError):
    """Raised when two edits for the same source overlap."""

    def __init__(self, first, second, rules: Tuple[Optional[str], Optional[str]] = (None, None)):
        self.first = first
        self.second = second
        self.rules = rules
        owners = ""
        if any(rules):
            owners = f" (from {rules[0] or '?'} and {rules[1] or '?'})"
        super().__init__(
            f"Edits [{first.start_byte}, {first.end_byte}) and "
            f"[{second.start_byte}, {second.end_byte}) overlap{owners}"
        )
