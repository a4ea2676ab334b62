"""
Immutable syntax tree model for the treecop engine.

Nodes are built once by a language adapter (or by hand in tests) and are
attached to a SourceDocument, which owns the tree, the source text and a
line index. Parent and document references are lookup relations only; no
node exposes a mutation operation once attached.
"""

from bisect import bisect_right
from typing import Callable, Dict, Iterator, List, Optional, Tuple

NodeRange = Tuple[int, int]  # (start_byte, end_byte) 0-based, end exclusive
Predicate = Callable[["Node"], bool]

# Leaf kinds whose value is their own source text
_TEXT_VALUE_KINDS = frozenset({
    "identifier", "constant", "integer", "float", "instance_variable",
    "class_variable", "global_variable", "self", "nil", "true", "false",
    "operator", "hash_key_symbol",
})


class LineIndex:
    """Byte offset to line/column lookup, built once per document."""

    def __init__(self, data: bytes):
        starts = [0]
        pos = data.find(b"\n")
        while pos != -1:
            starts.append(pos + 1)
            pos = data.find(b"\n", pos + 1)
        self._starts = starts
        self._size = len(data)

    @property
    def line_count(self) -> int:
        return len(self._starts)

    def line_of(self, offset: int) -> int:
        """Return the 1-based line containing a byte offset."""
        offset = max(0, min(offset, self._size))
        return bisect_right(self._starts, offset)

    def column_of(self, offset: int) -> int:
        """Return the 0-based byte column of an offset."""
        offset = max(0, min(offset, self._size))
        return offset - self._starts[self.line_of(offset) - 1]

    def position(self, offset: int) -> Tuple[int, int]:
        """Return (line, column), 1-based line and 0-based column."""
        line = self.line_of(offset)
        return line, max(0, min(offset, self._size)) - self._starts[line - 1]

    def line_start(self, line: int) -> int:
        return self._starts[line - 1]

    def line_end(self, line: int) -> int:
        """Return the offset of the newline ending a line (or end of data)."""
        if line < len(self._starts):
            return self._starts[line] - 1
        return self._size


class Node:
    """A syntax tree node.

    Children are owned exclusively; ``parent`` and ``document`` are set once
    when the tree is attached to a SourceDocument.
    """

    __slots__ = (
        "_kind", "_children", "_start", "_end", "_named", "_field_name",
        "_parent", "_document", "_index", "_fields",
    )

    def __init__(self, kind: str, start_byte: int, end_byte: int,
                 children: Tuple["Node", ...] = (), named: bool = True,
                 field_name: Optional[str] = None):
        if start_byte < 0 or end_byte < start_byte:
            raise ValueError(f"Invalid node range [{start_byte}, {end_byte}) for {kind}")
        self._kind = kind
        self._children = tuple(children)
        self._start = start_byte
        self._end = end_byte
        self._named = named
        self._field_name = field_name
        self._parent = None
        self._document = None
        self._index = 0
        fields: Dict[str, "Node"] = {}
        for index, child in enumerate(self._children):
            if child._parent is not None:
                raise ValueError(f"{child!r} already belongs to {child._parent!r}")
            child._parent = self
            child._index = index
            if child._field_name and child._field_name not in fields:
                fields[child._field_name] = child
        self._fields = fields

    def __repr__(self) -> str:
        return f"<Node {self._kind} [{self._start}, {self._end})>"

    # --- structure ---

    @property
    def kind(self) -> str:
        return self._kind

    @property
    def children(self) -> Tuple["Node", ...]:
        return self._children

    @property
    def named_children(self) -> Tuple["Node", ...]:
        return tuple(child for child in self._children if child._named)

    @property
    def named(self) -> bool:
        return self._named

    @property
    def field_name(self) -> Optional[str]:
        """Role of this node in its parent (e.g. "receiver"), if any."""
        return self._field_name

    @property
    def parent(self) -> Optional["Node"]:
        return self._parent

    @property
    def document(self) -> Optional["SourceDocument"]:
        return self._document

    def field(self, name: str) -> Optional["Node"]:
        """Return the first child playing the given role."""
        return self._fields.get(name)

    def is_kind(self, *kinds: str) -> bool:
        return self._kind in kinds

    @property
    def is_root(self) -> bool:
        return self._parent is None

    # --- source ---

    @property
    def start_byte(self) -> int:
        return self._start

    @property
    def end_byte(self) -> int:
        return self._end

    @property
    def source_range(self) -> NodeRange:
        return (self._start, self._end)

    @property
    def text(self) -> str:
        if self._document is None:
            return ""
        return self._document.slice(self._start, self._end)

    @property
    def value(self) -> Optional[str]:
        """Literal value of a leaf-like node.

        Identifiers and constants yield their name, symbols their name
        without the colon, strings their content when free of interpolation.
        """
        kind = self._kind
        if kind in _TEXT_VALUE_KINDS or (not self._children and not self._named):
            return self.text
        if kind == "simple_symbol":
            return self.text[1:]
        if kind in ("string", "delimited_symbol"):
            parts = []
            for child in self.named_children:
                if child._kind != "string_content":
                    return None
                parts.append(child.text)
            return "".join(parts)
        if not self._children:
            return self.text
        return None

    # --- lines ---

    @property
    def first_line(self) -> int:
        return self._document.line_index.line_of(self._start)

    @property
    def last_line(self) -> int:
        # A node ending right after a newline still ends on the previous line
        end = self._end - 1 if self._end > self._start else self._end
        return self._document.line_index.line_of(end)

    @property
    def column(self) -> int:
        return self._document.line_index.column_of(self._start)

    def spans_multiple_lines(self) -> bool:
        return self.first_line != self.last_line

    def is_same_line_as(self, other: "Node") -> bool:
        return self.first_line == other.first_line

    def ends_on_line_of(self, other: "Node") -> bool:
        """True when this node ends on the line where ``other`` starts."""
        return self.last_line == other.first_line

    # --- navigation ---

    def ancestors(self) -> Iterator["Node"]:
        """Yield ancestors, innermost first, ending at the root."""
        current = self._parent
        while current is not None:
            yield current
            current = current._parent

    def each_ancestor(self, *kinds: str) -> Iterator["Node"]:
        for ancestor in self.ancestors():
            if not kinds or ancestor._kind in kinds:
                yield ancestor

    def each_node(self, predicate: Optional[Predicate] = None) -> Iterator["Node"]:
        """Yield this node and its descendants in pre-order, source order."""
        stack = [self]
        while stack:
            current = stack.pop()
            if predicate is None or predicate(current):
                yield current
            stack.extend(reversed(current._children))

    def each_descendant(self, predicate: Optional[Predicate] = None) -> Iterator["Node"]:
        """Yield descendants (excluding self) in pre-order, source order."""
        nodes = self.each_node(predicate)
        if predicate is None or predicate(self):
            next(nodes)
        yield from nodes

    def each_child(self, *kinds: str) -> Iterator["Node"]:
        for child in self._children:
            if child._named and (not kinds or child._kind in kinds):
                yield child

    def siblings(self) -> Tuple["Node", ...]:
        """Named siblings, excluding this node."""
        if self._parent is None:
            return ()
        return tuple(n for n in self._parent.named_children if n is not self)

    @property
    def next_sibling(self) -> Optional["Node"]:
        if self._parent is None:
            return None
        following = self._parent._children[self._index + 1:]
        return next((n for n in following if n._named), None)

    @property
    def previous_sibling(self) -> Optional["Node"]:
        if self._parent is None:
            return None
        preceding = self._parent._children[:self._index]
        return next((n for n in reversed(preceding) if n._named), None)


class SourceDocument:
    """Source text plus the syntax tree parsed from it.

    Attaching a tree checks the parent/child invariant and binds every node
    to this document. Offsets are UTF-8 byte offsets.
    """

    def __init__(self, text: str, root: Node, path: str = "<source>"):
        if root._parent is not None:
            raise ValueError("Document root must not have a parent")
        if root._document is not None:
            raise ValueError("Tree is already attached to a document")
        self.path = path
        self.text = text
        self.data = text.encode("utf-8")
        self.line_index = LineIndex(self.data)
        self.root = root
        # (line, column) of parse errors reported by the adapter
        self.syntax_errors: List[Tuple[int, int]] = []
        if root._end > len(self.data):
            raise ValueError(f"Root range ends at {root._end}, beyond {len(self.data)} bytes")
        for node in root.each_node():
            node._document = self

    def __repr__(self) -> str:
        return f"<SourceDocument {self.path}>"

    def slice(self, start_byte: int, end_byte: int) -> str:
        return self.data[start_byte:end_byte].decode("utf-8", errors="replace")

    def line_of(self, offset: int) -> int:
        return self.line_index.line_of(offset)

    def position(self, offset: int) -> Tuple[int, int]:
        return self.line_index.position(offset)

    def line_text(self, line: int) -> str:
        index = self.line_index
        return self.slice(index.line_start(line), index.line_end(line))

    def line_indentation(self, line: int) -> int:
        """Number of leading spaces/tabs on a 1-based line."""
        text = self.line_text(line)
        return len(text) - len(text.lstrip(" \t"))

    def nodes(self, *kinds: str) -> List[Node]:
        return [node for node in self.root.each_node() if not kinds or node.kind in kinds]
