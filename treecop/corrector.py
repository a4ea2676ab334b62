"""
Edit composition for safe source rewriting.

All edits for one file are collected against the original text and applied
in a single pass. Overlapping edits are an error rather than being silently
dropped; insertions at the same offset are concatenated in the order they
were added.
"""

import difflib
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

from .errors import ConflictingEditsError, InvalidEditError, TreecopError
from .nodes import Node, NodeRange
from .suppressions import filter_suppressed_offenses
from .types import Edit, Offense, RuleFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Pending:
    edit: Edit
    seq: int
    owner: Optional[str] = None


def _span(target) -> NodeRange:
    if isinstance(target, Node):
        return target.source_range
    return target


class Corrector:
    """Accumulates edits against one source snapshot."""

    def __init__(self, source: str):
        self.source = source
        self._data = source.encode("utf-8")
        self._pending: List[_Pending] = []

    def __len__(self) -> int:
        return len(self._pending)

    @property
    def edits(self) -> List[Edit]:
        return [pending.edit for pending in self._pending]

    def add(self, edit: Edit, owner: Optional[str] = None) -> "Corrector":
        self._pending.append(_Pending(edit, len(self._pending), owner))
        return self

    def extend(self, edits: Iterable[Edit], owner: Optional[str] = None) -> "Corrector":
        for edit in edits:
            self.add(edit, owner)
        return self

    def insert_before(self, target, text: str) -> "Corrector":
        start, _ = _span(target)
        return self.add(Edit(start, start, text))

    def insert_after(self, target, text: str) -> "Corrector":
        _, end = _span(target)
        return self.add(Edit(end, end, text))

    def replace(self, target, text: str) -> "Corrector":
        start, end = _span(target)
        return self.add(Edit(start, end, text))

    def remove(self, target) -> "Corrector":
        return self.replace(target, "")

    def _ordered(self) -> List[_Pending]:
        size = len(self._data)
        seen = set()
        unique = []
        for pending in self._pending:
            edit = pending.edit
            if edit.start_byte < 0 or edit.end_byte < edit.start_byte or edit.end_byte > size:
                raise InvalidEditError(edit, size)
            if not edit.is_insertion:
                key = (edit.start_byte, edit.end_byte, edit.replacement)
                if key in seen:
                    continue
                seen.add(key)
            unique.append(pending)
        # Insertions sort before a replacement starting at the same offset
        return sorted(unique, key=lambda p: (p.edit.start_byte, not p.edit.is_insertion, p.seq))

    def check(self) -> List[Edit]:
        """Validate the accumulated edits and return them in application order.

        Raises:
            InvalidEditError: An edit lies outside the source or is inverted.
            ConflictingEditsError: Two edits overlap.
        """
        ordered = self._ordered()
        covering: Optional[_Pending] = None
        for pending in ordered:
            edit = pending.edit
            if covering is not None and edit.start_byte < covering.edit.end_byte:
                raise ConflictingEditsError(covering.edit, edit, (covering.owner, pending.owner))
            if not edit.is_insertion:
                covering = pending
        return [pending.edit for pending in ordered]

    def apply(self) -> str:
        """Return the corrected text. The original source is left untouched."""
        ordered = self.check()
        data = self._data
        chunks: List[bytes] = []
        pos = 0
        for edit in ordered:
            chunks.append(data[pos:edit.start_byte])
            chunks.append(edit.replacement.encode("utf-8"))
            pos = edit.end_byte
        chunks.append(data[pos:])
        return b"".join(chunks).decode("utf-8")


def apply_edits(text: str, edits: Iterable[Edit]) -> str:
    """Apply edits given in original-text byte coordinates."""
    return Corrector(text).extend(edits).apply()


@dataclass
class CorrectionResult:
    """Outcome of correcting one file."""
    original: str
    text: str
    offenses: List[Offense] = field(default_factory=list)
    failures: List[RuleFailure] = field(default_factory=list)
    # Offenses whose edits were applied
    applied: List[Offense] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return self.text != self.original


def correct_offenses(text: str, offenses: Sequence[Offense],
                     rule_order: Optional[Dict[str, int]] = None) -> CorrectionResult:
    """Compose and apply the edits carried by offenses.

    Edits are added grouped by rule registration order (``rule_order``), then
    in emission order, which fixes the order of same-offset insertions.

    Raises:
        ConflictingEditsError: If edits of different offenses overlap.
    """
    rank = rule_order or {}
    ordered = sorted(offenses, key=lambda offense: rank.get(offense.rule, len(rank)))
    corrector = Corrector(text)
    applied = []
    for offense in ordered:
        if offense.edits:
            corrector.extend(offense.edits, owner=offense.rule)
            applied.append(offense)
    if not applied:
        return CorrectionResult(text, text, list(offenses))
    new_text = corrector.apply()
    logger.debug("Applied %d edit(s) from %d offense(s)", len(corrector), len(applied))
    return CorrectionResult(text, new_text, list(offenses), applied=applied)


def correct(text: str, commissioner, adapter, path: str = "<source>") -> CorrectionResult:
    """Lint ``text`` and apply every correction in one pass.

    Suppressed offenses are neither reported nor corrected.

    Raises:
        TreecopError: If the adapter has no parser available.
        ConflictingEditsError: If edits of different offenses overlap.
    """
    document = adapter.parse(text, path)
    if document is None:
        raise TreecopError(f"No {adapter.language_id} parser available for {path}")
    investigation = commissioner.investigate(document)
    offenses = filter_suppressed_offenses(investigation.ordered_offenses(), text)
    result = correct_offenses(text, offenses, investigation.rule_order)
    result.failures = list(investigation.failures)
    return result


def unified_diff(path: str, before: str, after: str) -> str:
    """Render a unified diff between two versions of a file."""
    diff = difflib.unified_diff(
        before.splitlines(keepends=True),
        after.splitlines(keepends=True),
        fromfile=f"a/{path}",
        tofile=f"b/{path}",
    )
    return "".join(diff)
