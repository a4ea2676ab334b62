"""
Core types for the treecop engine.

This module provides shared dataclasses and protocols used across the
engine, the language adapter and the rules.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from typing import (Any, Callable, Dict, Iterable, List, Literal, Mapping, Optional,
                    Protocol, Tuple, Union)

from .nodes import Node, NodeRange, SourceDocument

# Type aliases for clarity
Severity = Literal["info", "warn", "error"]
SEVERITIES: Tuple[str, ...] = ("info", "warn", "error")


@dataclass(frozen=True)
class Edit:
    """One text operation in original-source byte coordinates.

    An empty range (``start_byte == end_byte``) is a pure insertion.
    """
    start_byte: int
    end_byte: int
    replacement: str

    @property
    def is_insertion(self) -> bool:
        return self.start_byte == self.end_byte


@dataclass(frozen=True)
class Offense:
    """A violation reported by a rule."""
    rule: str
    message: str
    file: str
    start_byte: int
    end_byte: int
    severity: Severity = "warn"
    edits: Tuple[Edit, ...] = ()
    meta: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        if not self.message:
            raise ValueError(f"Offense from {self.rule} needs a message")
        if self.start_byte < 0 or self.end_byte <= self.start_byte:
            raise ValueError(
                f"Offense from {self.rule} needs a non-empty range, "
                f"got [{self.start_byte}, {self.end_byte})"
            )
        if not isinstance(self.edits, tuple):
            object.__setattr__(self, "edits", tuple(self.edits))

    @property
    def correctable(self) -> bool:
        return bool(self.edits)

    def with_edits(self, edits: Iterable[Edit]) -> "Offense":
        """Return a copy carrying the given edits."""
        return replace(self, edits=tuple(edits))


@dataclass(frozen=True)
class RuleFailure:
    """An exception raised by a rule callback, recorded instead of aborting the run."""
    rule: str
    file: str
    start_byte: int
    line: int
    column: int
    error: str

    def describe(self) -> str:
        return f"{self.file}:{self.line}:{self.column}: rule '{self.rule}' failed: {self.error}"


@dataclass(frozen=True)
class RuleMeta:
    """Metadata about a rule.

    Attributes:
        id: Unique rule identifier (e.g., "layout.multiline_chain_line_breaks")
        category: Rule category for grouping
        description: Human-readable description
        message: Default offense message; may hold ``str.format`` fields
        node_kinds: Node kinds the rule is visited for
        severity: Default severity of reported offenses
        autocorrect: Whether offenses carry edits
        options: Default values of the rule's configuration keys
        langs: Supported languages
    """
    id: str
    category: str
    description: str = ""
    message: str = ""
    node_kinds: Tuple[str, ...] = ()
    severity: Severity = "warn"
    autocorrect: bool = False
    options: Mapping[str, Any] = field(default_factory=dict)
    langs: Tuple[str, ...] = ("ruby",)

    def __post_init__(self):
        if self.severity not in SEVERITIES:
            raise ValueError(f"Unknown severity '{self.severity}' for rule {self.id}")
        if not isinstance(self.node_kinds, tuple):
            object.__setattr__(self, "node_kinds", tuple(self.node_kinds))


Target = Union[Node, NodeRange]


class RuleContext:
    """Per-document, per-rule context handed to rule callbacks.

    Offenses reported through ``report`` are collected by the commissioner.
    ``state`` is scratch space that lives for exactly one traversal.
    """

    def __init__(self, document: SourceDocument, meta: RuleMeta,
                 options: Optional[Mapping[str, Any]] = None,
                 severity: Optional[str] = None,
                 sink: Optional[Callable[[Offense], None]] = None):
        self.document = document
        self.meta = meta
        self.options: Dict[str, Any] = dict(meta.options)
        if options:
            self.options.update(options)
        self.severity = severity or meta.severity
        self.state: Dict[str, Any] = {}
        self._sink = sink
        self.offenses: List[Offense] = []

    @property
    def file_path(self) -> str:
        return self.document.path

    @property
    def text(self) -> str:
        return self.document.text

    def option(self, key: str, default: Any = None) -> Any:
        return self.options.get(key, default)

    def report(self, target: Target, message: Optional[str] = None,
               edits: Iterable[Edit] = (), severity: Optional[str] = None,
               meta: Optional[Dict[str, Any]] = None, **fmt: Any) -> Offense:
        """Record an offense on a node or a (start_byte, end_byte) range.

        Without ``message`` the rule's default message is used, formatted
        with ``fmt``.
        """
        if isinstance(target, Node):
            start, end = target.source_range
        else:
            start, end = target
        text = message if message is not None else self.meta.message
        if fmt:
            text = text.format(**fmt)
        offense = Offense(
            rule=self.meta.id,
            message=text,
            file=self.document.path,
            start_byte=start,
            end_byte=end,
            severity=severity or self.severity,
            edits=tuple(edits) if self.meta.autocorrect else (),
            meta=meta,
        )
        self.offenses.append(offense)
        if self._sink is not None:
            self._sink(offense)
        return offense


class Rule(Protocol):
    """Protocol for all rules in the engine.

    A rule is visited for every node whose kind appears in
    ``meta.node_kinds``. Rule objects are shared across files and threads,
    so they keep no per-file state on ``self``; use ``ctx.state`` or values
    threaded through recursion instead.

    Rules must never mutate the tree they are given. Nodes expose no
    mutation API, but private attributes are reachable from Python; writing
    to them is undefined behaviour and breaks other rules' results.
    """
    meta: RuleMeta

    def visit(self, node: Node, ctx: RuleContext) -> None:
        """Inspect one node; report offenses via ``ctx.report``."""
        ...


class LanguageAdapter(ABC):
    """Abstract base class for language adapters."""

    @property
    @abstractmethod
    def language_id(self) -> str:
        """Return the language identifier (e.g., 'ruby')."""
        pass

    @property
    @abstractmethod
    def file_extensions(self) -> Tuple[str, ...]:
        """Return supported file extensions (e.g., ('.rb',))."""
        pass

    @property
    @abstractmethod
    def node_kinds(self) -> frozenset:
        """Node kinds this adapter can produce, for pattern validation."""
        pass

    @abstractmethod
    def parse(self, text: str, path: str = "<source>") -> Optional[SourceDocument]:
        """Parse text into a SourceDocument, or None when no parser is available."""
        pass

    @abstractmethod
    def list_files(self, paths: List[str]) -> List[str]:
        """List all files matching this adapter's extensions in the given paths."""
        pass
