"""
Declarative node patterns.

A pattern description is compiled once into a tree of ``PatternNode`` and
matched against syntax tree nodes. Compilation is pure, so compiled
patterns can be shared between rules and threads.

Syntax::

    (kind p1 p2 ...)   node of exactly ``kind`` whose named children match
                       the sequence p1 p2 ...; ``(_ ...)`` accepts any kind
    kind               node of exactly ``kind``, children not inspected
    _                  any single node
    ...                zero or more children (at most one per sequence)
    $...               same, captured as a tuple of nodes
    {a b c}            alternation, first matching branch wins
    $p                 positional capture of whatever ``p`` matches
    $name=p            named capture (also counted positionally)
    :sym "str" 42      literal compared with ``Node.value``
    #pred              injected predicate called with the node
    !p                 negation

Sequence matching is linear in the number of children: the fixed prefix
before ``...`` is matched from the front and the fixed suffix after it
from the back, without backtracking.
"""

import enum
import logging
import re
from dataclasses import dataclass, field
from typing import (Any, Callable, Collection, Dict, List, Mapping, Optional,
                    Sequence, Tuple, Union)

from .errors import PatternSyntaxError
from .nodes import Node

logger = logging.getLogger(__name__)

NodePredicate = Callable[[Node], bool]


class PatternNodeKind(enum.Enum):
    """Kinds of nodes in a compiled pattern tree."""
    NODE = "node"                 # (kind children...)
    KIND = "kind"                 # bare kind name
    ANY = "any"                   # _
    REST = "rest"                 # ... inside a sequence
    ALTERNATION = "alternation"   # {a b}
    CAPTURE = "capture"           # $p / $name=p
    LITERAL = "literal"           # :sym "str" 42
    PREDICATE = "predicate"       # #name
    NEGATION = "negation"         # !p


@dataclass
class PatternNode:
    """A node in a compiled pattern tree."""
    kind: PatternNodeKind
    value: Any = None
    name: Optional[str] = None
    children: List["PatternNode"] = field(default_factory=list)
    source: str = ""
    # For NODE: children split around the rest marker
    prefix: List["PatternNode"] = field(default_factory=list)
    rest: Optional["PatternNode"] = None
    suffix: List["PatternNode"] = field(default_factory=list)
    captures: int = 0


_TOKEN_RE = re.compile(r"""
      (?P<ws>\s+)
    | (?P<open>[({])
    | (?P<close>[)}])
    | (?P<rest>\.\.\.)
    | (?P<string>"(?:[^"\\]|\\.)*")
    | (?P<symbol>:[^\s(){}"]+)
    | (?P<int>-?\d+)
    | (?P<capture>\$(?:(?P<cname>[A-Za-z_]\w*)=)?)
    | (?P<negate>!)
    | (?P<predicate>\#[A-Za-z_]\w*[?!]?)
    | (?P<word>[A-Za-z_]\w*[?!]?)
""", re.VERBOSE)

_CLOSERS = {"(": ")", "{": "}"}

Token = Tuple[str, str, int, Optional[str]]  # (type, text, offset, capture name)


def _tokenize(text: str) -> List[Token]:
    tokens: List[Token] = []
    pos = 0
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if match is None:
            raise PatternSyntaxError(f"Unexpected character {text[pos]!r}", text, pos)
        kind = match.lastgroup
        if kind != "ws":
            tokens.append((kind, match.group(0), pos, match.group("cname")))
        pos = match.end()
    return tokens


class PatternCompiler:
    """Compiles pattern descriptions into ``PatternNode`` trees."""

    def __init__(self, kinds: Optional[Collection[str]] = None,
                 predicates: Optional[Mapping[str, NodePredicate]] = None):
        self._kinds = frozenset(kinds) if kinds is not None else None
        self._predicates = dict(predicates or {})

    def compile(self, text: str) -> PatternNode:
        self._text = text
        self._tokens = _tokenize(text)
        self._pos = 0
        if not self._tokens:
            raise PatternSyntaxError("Empty pattern", text)
        root = self._compile_expr(in_sequence=False)
        if self._pos < len(self._tokens):
            _, tok_text, offset, _ = self._tokens[self._pos]
            raise PatternSyntaxError(f"Unexpected {tok_text!r} after pattern", text, offset)
        return root

    def _error(self, message: str, offset: Optional[int] = None) -> PatternSyntaxError:
        return PatternSyntaxError(message, self._text, offset)

    def _next(self) -> Token:
        if self._pos >= len(self._tokens):
            raise self._error("Unexpected end of pattern", len(self._text))
        token = self._tokens[self._pos]
        self._pos += 1
        return token

    def _peek(self) -> Optional[Token]:
        if self._pos < len(self._tokens):
            return self._tokens[self._pos]
        return None

    def _compile_expr(self, in_sequence: bool) -> PatternNode:
        tok_type, tok_text, offset, cname = self._next()

        if tok_type == "open":
            if tok_text == "(":
                return self._compile_node(offset)
            return self._compile_alternation(offset)

        if tok_type == "close":
            raise self._error(f"Unbalanced {tok_text!r}", offset)

        if tok_type == "rest":
            if not in_sequence:
                raise self._error("'...' is only allowed among node children", offset)
            return PatternNode(PatternNodeKind.REST, source=tok_text)

        if tok_type == "capture":
            following = self._peek()
            if following is None:
                raise self._error("Capture without a pattern", offset)
            inner = self._compile_expr(in_sequence)
            if inner.kind == PatternNodeKind.REST:
                return PatternNode(PatternNodeKind.REST, name=cname, value=True,
                                   source=tok_text + inner.source, captures=1)
            return PatternNode(PatternNodeKind.CAPTURE, name=cname, children=[inner],
                               source=tok_text + inner.source, captures=inner.captures + 1)

        if tok_type == "negate":
            inner = self._compile_expr(in_sequence=False)
            if inner.captures:
                raise self._error("Captures are not allowed inside a negation", offset)
            return PatternNode(PatternNodeKind.NEGATION, children=[inner], source="!" + inner.source)

        if tok_type == "string":
            literal = re.sub(r"\\(.)", r"\1", tok_text[1:-1])
            return PatternNode(PatternNodeKind.LITERAL, value=literal, source=tok_text)

        if tok_type == "symbol":
            return PatternNode(PatternNodeKind.LITERAL, value=tok_text[1:], source=tok_text)

        if tok_type == "int":
            return PatternNode(PatternNodeKind.LITERAL, value=tok_text, source=tok_text)

        if tok_type == "predicate":
            name = tok_text[1:]
            if name not in self._predicates:
                raise self._error(f"Unknown predicate '#{name}'", offset)
            return PatternNode(PatternNodeKind.PREDICATE, name=name,
                               value=self._predicates[name], source=tok_text)

        # word
        if tok_text == "_":
            return PatternNode(PatternNodeKind.ANY, source=tok_text)
        self._check_kind(tok_text, offset)
        return PatternNode(PatternNodeKind.KIND, value=tok_text, source=tok_text)

    def _check_kind(self, name: str, offset: int) -> None:
        if self._kinds is not None and name not in self._kinds:
            raise self._error(f"Unknown node kind '{name}'", offset)

    def _compile_node(self, open_offset: int) -> PatternNode:
        head = self._peek()
        if head is None:
            raise self._error("Unbalanced '('", open_offset)
        if head[0] != "word":
            raise self._error("Expected a node kind after '('", head[2])
        self._pos += 1
        kind_name = head[1]
        if kind_name != "_":
            self._check_kind(kind_name, head[2])

        children = self._compile_until(")", open_offset)
        node = PatternNode(PatternNodeKind.NODE, value=None if kind_name == "_" else kind_name,
                           children=children, source=self._text[open_offset:self._last_offset + 1])
        for child in children:
            if child.kind == PatternNodeKind.REST:
                if node.rest is not None:
                    raise self._error("At most one '...' is allowed per node", open_offset)
                node.rest = child
            elif node.rest is None:
                node.prefix.append(child)
            else:
                node.suffix.append(child)
        node.captures = sum(child.captures for child in children)
        return node

    def _compile_alternation(self, open_offset: int) -> PatternNode:
        branches = self._compile_until("}", open_offset)
        if not branches:
            raise self._error("Empty alternation", open_offset)
        counts = {branch.captures for branch in branches}
        if len(counts) > 1:
            raise self._error("Alternation branches capture different numbers of values",
                              open_offset)
        return PatternNode(PatternNodeKind.ALTERNATION, children=branches,
                           source=self._text[open_offset:self._last_offset + 1],
                           captures=counts.pop())

    def _compile_until(self, closer: str, open_offset: int) -> List[PatternNode]:
        items = []
        while True:
            token = self._peek()
            if token is None:
                raise self._error(f"Missing {closer!r}", open_offset)
            if token[0] == "close":
                if token[1] != closer:
                    raise self._error(f"Mismatched {token[1]!r}, expected {closer!r}", token[2])
                self._pos += 1
                self._last_offset = token[2]
                return items
            items.append(self._compile_expr(in_sequence=(closer == ")")))


@dataclass(frozen=True)
class MatchResult:
    """Captures recorded by a successful match."""
    captures: Tuple[Any, ...] = ()
    named: Mapping[str, Any] = field(default_factory=dict)

    def __getitem__(self, key: Union[int, str]) -> Any:
        if isinstance(key, str):
            return self.named[key]
        return self.captures[key]

    def __len__(self) -> int:
        return len(self.captures)

    def __iter__(self):
        return iter(self.captures)

    def get(self, name: str, default: Any = None) -> Any:
        return self.named.get(name, default)


class CompiledPattern:
    """A compiled, reusable node pattern."""

    def __init__(self, description: str, root: PatternNode):
        self.description = description
        self._root = root

    def __repr__(self) -> str:
        return f"CompiledPattern({self.description!r})"

    @property
    def capture_count(self) -> int:
        return self._root.captures

    def match(self, node: Optional[Node]) -> Optional[MatchResult]:
        """Match a node; return its captures, or None when it does not match."""
        if node is None:
            return None
        captures: List[Any] = []
        named: Dict[str, Any] = {}
        if not _match(self._root, node, captures, named):
            return None
        return MatchResult(tuple(captures), named)

    def matches(self, node: Optional[Node]) -> bool:
        return self.match(node) is not None


def _match(pat: PatternNode, node: Node, captures: List[Any], named: Dict[str, Any]) -> bool:
    """Recursive matching dispatch."""
    kind = pat.kind

    if kind == PatternNodeKind.ANY:
        return True

    if kind == PatternNodeKind.KIND:
        return node.kind == pat.value

    if kind == PatternNodeKind.LITERAL:
        return node.value == pat.value

    if kind == PatternNodeKind.PREDICATE:
        return bool(pat.value(node))

    if kind == PatternNodeKind.CAPTURE:
        mark = len(captures)
        captures.append(None)
        if not _match(pat.children[0], node, captures, named):
            del captures[mark:]
            return False
        captures[mark] = node
        if pat.name:
            named[pat.name] = node
        return True

    if kind == PatternNodeKind.ALTERNATION:
        for branch in pat.children:
            mark = len(captures)
            saved = dict(named)
            if _match(branch, node, captures, named):
                return True
            del captures[mark:]
            named.clear()
            named.update(saved)
        return False

    if kind == PatternNodeKind.NEGATION:
        return not _match(pat.children[0], node, [], {})

    if kind == PatternNodeKind.NODE:
        if pat.value is not None and node.kind != pat.value:
            return False
        return _match_children(pat, node.named_children, captures, named)

    raise PatternSyntaxError(f"Cannot match pattern element {pat.source!r} against a node")


def _match_children(pat: PatternNode, children: Sequence[Node],
                    captures: List[Any], named: Dict[str, Any]) -> bool:
    """Match a child sequence: fixed prefix, optional rest run, fixed suffix."""
    fixed = len(pat.prefix) + len(pat.suffix)
    if pat.rest is None:
        if len(children) != fixed:
            return False
    elif len(children) < fixed:
        return False

    mark = len(captures)
    saved = dict(named)
    for sub, child in zip(pat.prefix, children):
        if not _match(sub, child, captures, named):
            break
    else:
        if pat.rest is not None and pat.rest.value:
            run = tuple(children[len(pat.prefix):len(children) - len(pat.suffix)])
            captures.append(run)
            if pat.rest.name:
                named[pat.rest.name] = run
        tail = children[len(children) - len(pat.suffix):] if pat.suffix else ()
        if all(_match(sub, child, captures, named) for sub, child in zip(pat.suffix, tail)):
            return True
    del captures[mark:]
    named.clear()
    named.update(saved)
    return False


def compile(description: str, kinds: Optional[Collection[str]] = None,
            predicates: Optional[Mapping[str, NodePredicate]] = None) -> CompiledPattern:
    """Compile a pattern description.

    Args:
        description: Pattern text, see module docstring.
        kinds: Known node kinds; unknown kind names are rejected when given.
        predicates: Named predicates available as ``#name``.

    Raises:
        PatternSyntaxError: If the description is malformed.
    """
    root = PatternCompiler(kinds, predicates).compile(description)
    logger.debug("Compiled pattern %r with %d capture(s)", description, root.captures)
    return CompiledPattern(description, root)
