"""
Ruby language adapter for tree-sitter.

Parses Ruby source with tree-sitter-ruby and converts the concrete tree
into the engine's immutable Node model, keeping field roles and anonymous
tokens (operators, delimiters, keywords).
"""

import logging
import os
from typing import List, Optional, Tuple

import tree_sitter

from .nodes import Node, SourceDocument
from .types import LanguageAdapter

logger = logging.getLogger(__name__)

# Named node kinds produced by tree-sitter-ruby, used to validate patterns
RUBY_NODE_KINDS = frozenset({
    "alias", "alternative_pattern", "argument_list", "array", "array_pattern",
    "as_pattern", "assignment", "bare_string", "bare_symbol", "begin",
    "begin_block", "binary", "block", "block_argument", "block_body",
    "block_parameter", "block_parameters", "body_statement", "break", "call",
    "case", "case_match", "chained_string", "character", "class",
    "class_variable", "comment", "complex", "conditional", "constant",
    "delimited_symbol", "destructured_left_assignment", "destructured_parameter",
    "do", "do_block", "element_reference", "else", "elsif", "empty_statement",
    "encoding", "end_block", "ensure", "escape_sequence", "exception_variable",
    "exceptions", "expression_reference_pattern", "false", "file", "find_pattern",
    "float", "for", "forward_argument", "forward_parameter", "global_variable",
    "hash", "hash_key_symbol", "hash_pattern", "hash_splat_argument",
    "hash_splat_nil", "hash_splat_parameter", "heredoc_beginning", "heredoc_body",
    "heredoc_content", "heredoc_end", "identifier", "if", "if_guard",
    "if_modifier", "in", "in_clause", "instance_variable", "integer",
    "interpolation", "keyword_parameter", "keyword_pattern", "lambda",
    "lambda_parameters", "left_assignment_list", "line", "match_pattern",
    "method", "method_parameters", "module", "next", "nil", "operator",
    "operator_assignment", "optional_parameter", "pair", "parenthesized_pattern",
    "parenthesized_statements", "pattern", "program", "range", "rational",
    "redo", "regex", "rescue", "rescue_modifier", "rest_assignment", "retry",
    "return", "right_assignment_list", "scope_resolution", "self", "setter",
    "simple_symbol", "singleton_class", "singleton_method", "splat_argument",
    "splat_parameter", "string", "string_array", "string_content", "subshell",
    "super", "superclass", "symbol_array", "test_pattern", "then", "true",
    "unary", "undef", "uninterpreted", "unless", "unless_guard",
    "unless_modifier", "until", "until_modifier", "variable_reference_pattern",
    "when", "while", "while_modifier", "yield", "ERROR",
})

_SKIP_DIRS = {".git", ".bundle", "node_modules", "vendor", "tmp", "coverage"}


class RubyAdapter(LanguageAdapter):
    """Tree-sitter adapter for the Ruby language."""

    def __init__(self):
        self._language = None
        self._unavailable = False

    @property
    def language_id(self) -> str:
        """Return the language identifier."""
        return "ruby"

    @property
    def file_extensions(self) -> Tuple[str, ...]:
        """Return supported file extensions."""
        return (".rb", ".rake", ".gemspec", ".ru")

    @property
    def node_kinds(self) -> frozenset:
        return RUBY_NODE_KINDS

    def _get_language(self):
        """Load the tree-sitter-ruby grammar once."""
        if self._language is None and not self._unavailable:
            try:
                from tree_sitter_ruby import language
                self._language = tree_sitter.Language(language())
                logger.debug("Ruby parser initialized")
            except ImportError as e:
                logger.warning("tree-sitter-ruby not available: %s", e)
                self._unavailable = True
        return self._language

    @property
    def available(self) -> bool:
        return self._get_language() is not None

    def parse(self, text: str, path: str = "<source>") -> Optional[SourceDocument]:
        """Parse text into a SourceDocument, or None when no parser is available."""
        language = self._get_language()
        if language is None:
            return None

        # Parsers are cheap and not shareable across threads
        parser = tree_sitter.Parser()
        parser.language = language
        tree = parser.parse(text.encode("utf-8"))

        root = self._convert(tree.root_node)
        document = SourceDocument(text, root, path)
        if tree.root_node.has_error:
            document.syntax_errors = self._error_positions(tree.root_node)
        return document

    def _convert(self, ts_node, field_name: Optional[str] = None) -> Node:
        """Convert a tree-sitter node and its subtree, keeping field names."""
        children = []
        cursor = ts_node.walk()
        if cursor.goto_first_child():
            while True:
                children.append(self._convert(cursor.node, cursor.field_name))
                if not cursor.goto_next_sibling():
                    break
        return Node(ts_node.type, ts_node.start_byte, ts_node.end_byte, tuple(children),
                    named=ts_node.is_named, field_name=field_name)

    def _error_positions(self, ts_root) -> List[Tuple[int, int]]:
        """Return (line, column) of ERROR and MISSING nodes."""
        positions = []
        stack = [ts_root]
        while stack:
            node = stack.pop()
            if node.is_error or node.is_missing:
                row, column = node.start_point
                positions.append((row + 1, column))
                continue
            if node.has_error:
                stack.extend(reversed(node.children))
        return positions

    def list_files(self, paths: List[str]) -> List[str]:
        """List all Ruby files in the given paths."""
        ruby_files = []

        for path in paths:
            if os.path.isfile(path):
                if path.endswith(self.file_extensions) or os.path.basename(path) in ("Gemfile", "Rakefile"):
                    ruby_files.append(path)
            elif os.path.isdir(path):
                for root, dirs, files in os.walk(path):
                    # Skip common ignore directories
                    dirs[:] = sorted(d for d in dirs if d not in _SKIP_DIRS and not d.startswith("."))

                    for file in sorted(files):
                        if file.endswith(self.file_extensions) or file in ("Gemfile", "Rakefile"):
                            ruby_files.append(os.path.join(root, file))
            else:
                logger.warning("Path '%s' does not exist", path)

        return ruby_files


# Default adapter instance
default_ruby_adapter = RubyAdapter()
