"""
Shared node queries for the Ruby cops.

These wrap the shapes tree-sitter-ruby produces for method calls and
blocks so that rules read in terms of receivers, method names, arguments
and block bodies rather than raw child positions.
"""

from typing import List, Optional, Tuple

from treecop.nodes import Node, NodeRange

BLOCK_KINDS = ("block", "do_block")
BODY_KINDS = ("block_body", "body_statement")

# Children that never count as arguments or as part of a call's own span
_TRIVIA_KINDS = ("comment", "heredoc_body")

EXAMPLE_GROUP_METHODS = frozenset({
    "describe", "context", "feature", "example_group",
    "xdescribe", "xcontext", "xfeature",
    "fdescribe", "fcontext", "ffeature",
    "shared_examples", "shared_examples_for", "shared_context",
})


def is_call(node: Optional[Node]) -> bool:
    return node is not None and node.kind == "call"


def receiver(node: Node) -> Optional[Node]:
    return node.field("receiver")


def method_node(node: Node) -> Optional[Node]:
    return node.field("method")


def method_name(node: Node) -> Optional[str]:
    method = node.field("method")
    return method.value if method is not None else None


def operator_token(node: Node) -> Optional[Node]:
    """The ``.``, ``&.`` or ``::`` token between receiver and method."""
    return node.field("operator")


def block_of(node: Node) -> Optional[Node]:
    block = node.field("block")
    if block is not None and block.kind in BLOCK_KINDS:
        return block
    return None


def has_block(node: Node) -> bool:
    return block_of(node) is not None


def argument_list(node: Node) -> Optional[Node]:
    arguments = node.field("arguments")
    if arguments is not None and arguments.kind == "argument_list":
        return arguments
    return None


def argument_nodes(node: Node) -> List[Node]:
    """Arguments of a call, without comments and heredoc bodies."""
    arguments = argument_list(node)
    if arguments is None:
        return []
    return [child for child in arguments.named_children if child.kind not in _TRIVIA_KINDS]


def has_heredoc_argument(node: Node) -> bool:
    arguments = argument_list(node)
    if arguments is None:
        return False
    return any(n.kind in ("heredoc_beginning", "heredoc_body") for n in arguments.each_node())


def is_parenthesized(node: Node) -> bool:
    arguments = argument_list(node)
    if arguments is None or not arguments.children:
        return False
    return arguments.children[0].kind == "("


def send_end(node: Node) -> int:
    """End of a call excluding its block (and trailing heredoc bodies)."""
    end = node.start_byte
    for child in node.children:
        if child.field_name == "block" or child.kind in _TRIVIA_KINDS:
            continue
        end = max(end, child.end_byte)
    return end


def send_range(node: Node) -> NodeRange:
    return (node.start_byte, send_end(node))


def send_last_line(node: Node) -> int:
    end = send_end(node)
    return node.document.line_of(max(node.start_byte, end - 1))


def body_statements(block: Optional[Node]) -> Tuple[Node, ...]:
    """Statements inside a ``block``/``do_block``, whether or not wrapped in a body node."""
    if block is None:
        return ()
    statements = []
    for child in block.named_children:
        if child.kind == "block_parameters" or child.kind == "comment":
            continue
        if child.kind in BODY_KINDS:
            statements.extend(n for n in child.named_children if n.kind != "comment")
        else:
            statements.append(child)
    return tuple(statements)


def enclosing_block_call(node: Node) -> Optional[Node]:
    """The call owning the block that ``node`` is a direct statement of."""
    parent = node.parent
    if parent is not None and parent.kind in BODY_KINDS:
        parent = parent.parent
    if parent is None or parent.kind not in BLOCK_KINDS:
        return None
    owner = parent.parent
    return owner if is_call(owner) else None


def nearest_block_call(node: Node) -> Optional[Node]:
    """The call owning the innermost block around ``node``, at any depth."""
    for ancestor in node.each_ancestor(*BLOCK_KINDS):
        owner = ancestor.parent
        if is_call(owner):
            return owner
    return None


def is_setter(node: Node) -> bool:
    """A call on the left-hand side of an assignment (``obj.attr = value``)."""
    parent = node.parent
    return (parent is not None and parent.kind in ("assignment", "operator_assignment")
            and node.field_name == "left")


def is_rspec_receiver(node: Node) -> bool:
    recv = receiver(node)
    return recv is None or (recv.kind == "constant" and recv.value == "RSpec")


def is_example_group(node: Optional[Node]) -> bool:
    """``describe``/``context``/shared group calls that carry a block."""
    return (is_call(node)
            and method_name(node) in EXAMPLE_GROUP_METHODS
            and is_rspec_receiver(node)
            and has_block(node))


def first_word(text: str) -> str:
    """First whitespace-separated word, lowercased, trailing punctuation stripped."""
    words = text.split()
    if not words:
        return ""
    return words[0].rstrip(".,;:!?").lower()
