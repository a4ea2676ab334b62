"""
Suppression comments for treecop rules.

A comment of the form ``# treecop: ignore[rule.id, layout.*]`` suppresses
offenses from matching rules that start on the same line.
"""

import fnmatch
import re
from typing import Dict, List, Set, Tuple

from .nodes import LineIndex

_IGNORE_RE = re.compile(r"#\s*treecop:\s*ignore\s*\[\s*([^\]]+)\s*\]", re.IGNORECASE)
_MALFORMED_RE = re.compile(r"#\s*treecop:\s*ignore\b(\s*\[[^\]]*\]?)?", re.IGNORECASE)


class SuppressionParser:
    """Parser for treecop suppression comments."""

    def __init__(self, text: str):
        self.text = text
        self.lines = text.split("\n")
        self._line_index = LineIndex(text.encode("utf-8"))
        self._parse_suppressions()

    def _parse_suppressions(self):
        """Parse all suppression comments in the text."""
        self.line_suppressions: Dict[int, Set[str]] = {}  # line_number -> {rule_patterns}

        for line_num, line in enumerate(self.lines, 1):
            patterns = self._extract_suppression_patterns(line)
            if patterns:
                self.line_suppressions[line_num] = patterns

    def _extract_suppression_patterns(self, line: str) -> Set[str]:
        """Extract suppression patterns from a line."""
        patterns = set()
        for match in _IGNORE_RE.finditer(line):
            for pattern in match.group(1).split(","):
                pattern = pattern.strip()
                if pattern:
                    patterns.add(pattern)
        return patterns

    def is_suppressed(self, rule_id: str, start_byte: int) -> bool:
        """Check if an offense starting at ``start_byte`` should be suppressed."""
        line_num = self._line_index.line_of(start_byte)
        for pattern in self.line_suppressions.get(line_num, ()):
            if rule_id == pattern or fnmatch.fnmatch(rule_id, pattern):
                return True
        return False

    def get_suppression_stats(self) -> Dict[str, int]:
        """Get statistics about suppressions in the file."""
        all_patterns = set()
        for patterns in self.line_suppressions.values():
            all_patterns.update(patterns)

        return {
            "suppressed_lines": len(self.line_suppressions),
            "unique_patterns": len(all_patterns),
            "total_suppressions": sum(len(patterns) for patterns in self.line_suppressions.values()),
        }


def filter_suppressed_offenses(offenses: List, text: str) -> List:
    """Drop offenses silenced by a suppression comment on their first line."""
    if not offenses or "treecop" not in text:
        return offenses

    parser = SuppressionParser(text)
    return [offense for offense in offenses
            if not parser.is_suppressed(offense.rule, offense.start_byte)]


def validate_suppression_patterns(text: str) -> List[Tuple[int, str]]:
    """
    Validate suppression comments in text and return any errors.

    Returns:
        List of (line_number, error_message) tuples
    """
    errors = []

    for line_num, line in enumerate(text.split("\n"), 1):
        for match in _MALFORMED_RE.finditer(line):
            bracket = match.group(1)
            if not bracket:
                errors.append((line_num, "Missing suppression pattern list"))
            elif not bracket.rstrip().endswith("]"):
                errors.append((line_num, "Unclosed suppression bracket"))
            elif re.fullmatch(r"\s*\[[\s,]*\]", bracket):
                errors.append((line_num, "Empty suppression pattern"))

    return errors
