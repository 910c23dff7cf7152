"""
Handler source extraction backed by tree-sitter's JavaScript grammar.

A real parser is used here because handler bodies contain nested braces,
braces inside strings and template literals, and nested callbacks that a
bracket counter cannot delimit reliably.

routelens/src/routelens/extractor.py
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Tuple

import tree_sitter_javascript as tsjs
from tree_sitter import Language, Node, Parser, Tree

from routelens.config import DEFAULT_EXTENSIONS
from routelens.models import ExtractedFunction, SourceLocation

__all__ = [
    "JS_LANGUAGE",
    "ParsedFragment",
    "extract_function",
    "find_handler",
    "is_async_node",
    "iter_nodes",
    "node_text",
    "parse_fragment",
    "parse_source",
    "search_directory",
]

logger = logging.getLogger(__name__)

JS_LANGUAGE = Language(tsjs.language())

FUNCTION_DECLARATIONS = {"function_declaration", "generator_function_declaration"}
# "function" is the older grammar's name for function_expression
FUNCTION_VALUES = {
    "arrow_function",
    "function_expression",
    "function",
    "generator_function",
}
BINDING_STATEMENTS = {"lexical_declaration", "variable_declaration"}
EXPORT_OBJECTS = {"exports", "module.exports"}


def parse_source(source: bytes) -> Tree:
    """Parse JavaScript source into a syntax tree.

    Parsers are not shared between calls, so this is safe to use from worker
    threads.
    """
    return Parser(JS_LANGUAGE).parse(source)


def node_text(source: bytes, node: Node) -> str:
    return source[node.start_byte : node.end_byte].decode("utf-8", errors="replace")


def iter_nodes(root: Node) -> Iterator[Node]:
    """Pre-order walk over every node below ``root``, in source order."""
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def is_async_node(node: Node) -> bool:
    """True when the function construct carries its own ``async`` keyword."""
    return any(child.type == "async" for child in node.children)


def _top_level_statements(root: Node) -> Iterator[Node]:
    for statement in root.named_children:
        if statement.type == "export_statement":
            declaration = statement.child_by_field_name("declaration")
            if declaration is not None:
                yield declaration
            continue
        yield statement


def _name_of(source: bytes, node: Node) -> Optional[str]:
    name = node.child_by_field_name("name")
    return node_text(source, name) if name is not None else None


def _assignment_target_matches(source: bytes, left: Node, handler_name: str) -> bool:
    if left.type == "identifier":
        return node_text(source, left) == handler_name
    if left.type == "member_expression":
        obj = left.child_by_field_name("object")
        prop = left.child_by_field_name("property")
        return (
            obj is not None
            and prop is not None
            and node_text(source, obj) in EXPORT_OBJECTS
            and node_text(source, prop) == handler_name
        )
    return False


def _find_declaration(source: bytes, root: Node, handler_name: str) -> Optional[Node]:
    for statement in _top_level_statements(root):
        if statement.type in FUNCTION_DECLARATIONS and _name_of(source, statement) == handler_name:
            return statement
    return None


def _find_binding(source: bytes, root: Node, handler_name: str) -> Optional[Node]:
    for statement in _top_level_statements(root):
        if statement.type in BINDING_STATEMENTS:
            for declarator in statement.named_children:
                if declarator.type != "variable_declarator":
                    continue
                value = declarator.child_by_field_name("value")
                if (
                    value is not None
                    and value.type in FUNCTION_VALUES
                    and _name_of(source, declarator) == handler_name
                ):
                    return value

        elif statement.type == "expression_statement" and statement.named_children:
            expression = statement.named_children[0]
            if expression.type != "assignment_expression":
                continue
            left = expression.child_by_field_name("left")
            right = expression.child_by_field_name("right")
            if (
                left is not None
                and right is not None
                and right.type in FUNCTION_VALUES
                and _assignment_target_matches(source, left, handler_name)
            ):
                return right
    return None


def find_handler(source: bytes, tree: Tree, handler_name: str) -> Optional[Node]:
    """Locate the function construct for ``handler_name`` among top-level statements.

    Named declarations are searched first and the first one wins. Only when
    none exists are bindings and assignments of function values considered.
    """
    return _find_declaration(source, tree.root_node, handler_name) or _find_binding(
        source, tree.root_node, handler_name
    )


def _build_extracted(
    source: bytes, node: Node, handler_name: str, file_path: Optional[Path]
) -> ExtractedFunction:
    return ExtractedFunction(
        name=handler_name,
        source_text=node_text(source, node),
        location=SourceLocation(
            start_line=node.start_point[0] + 1,
            end_line=node.end_point[0] + 1,
        ),
        is_async=is_async_node(node),
        file_path=file_path,
    )


def _extract_quiet(file_path: Path, handler_name: str) -> Tuple[Optional[ExtractedFunction], str]:
    """Extraction without logging; the second item explains a miss."""
    try:
        source = file_path.read_bytes()
    except OSError as e:
        return None, f"could not read {file_path}: {e}"

    tree = parse_source(source)
    if tree.root_node.has_error:
        return None, f"syntax errors in {file_path}"

    node = find_handler(source, tree, handler_name)
    if node is None:
        return None, f"handler '{handler_name}' not found in {file_path}"

    return _build_extracted(source, node, handler_name, file_path), ""


def extract_function(file_path: Path, handler_name: str) -> Optional[ExtractedFunction]:
    """Return the exact source span of ``handler_name`` in ``file_path``.

    A missing file, a file with syntax errors, or a file without the handler
    all return None with a warning.
    """
    file_path = Path(file_path)
    if not file_path.is_file():
        logger.warning(f"Controller file not found: {file_path} (handler '{handler_name}')")
        return None

    extracted, reason = _extract_quiet(file_path, handler_name)
    if extracted is None:
        logger.warning(f"Extraction skipped: {reason}")
        return None

    logger.debug(
        f"Extracted {handler_name} from {file_path.name} "
        f"lines {extracted.location.start_line}-{extracted.location.end_line}"
    )
    return extracted


def search_directory(
    directory: Path, handler_name: str, extensions: Iterable[str] = DEFAULT_EXTENSIONS
) -> Optional[ExtractedFunction]:
    """Try every source file in ``directory`` (sorted) until one defines the handler."""
    directory = Path(directory)
    if not directory.is_dir():
        logger.warning(f"Controllers directory not found: {directory}")
        return None

    suffixes = {ext.lower() for ext in extensions}
    candidates: List[Path] = sorted(
        p for p in directory.iterdir() if p.is_file() and p.suffix.lower() in suffixes
    )
    for candidate in candidates:
        extracted, _reason = _extract_quiet(candidate, handler_name)
        if extracted is not None:
            logger.info(f"Found handler '{handler_name}' in {candidate.name} by search")
            return extracted

    logger.warning(f"Handler '{handler_name}' not found in any file under {directory}")
    return None


@dataclass(frozen=True)
class ParsedFragment:
    """A standalone function text parsed on its own.

    ``offset`` is the number of bytes prepended to ``text`` to make it
    parse; node byte positions must be shifted back by it.
    """

    source: bytes
    tree: Tree
    offset: int

    @property
    def function_node(self) -> Optional[Node]:
        for node in iter_nodes(self.tree.root_node):
            if node.is_named and (node.type in FUNCTION_DECLARATIONS or node.type in FUNCTION_VALUES):
                return node
        return None

    def text_of(self, node: Node) -> str:
        return node_text(self.source, node)


def parse_fragment(text: str) -> Optional[ParsedFragment]:
    """Parse one function's text, or None if it does not parse.

    An anonymous ``function (...) {}`` is not a valid statement on its own,
    so a failed parse is retried with the text wrapped in parentheses.
    """
    raw = text.encode("utf-8")
    tree = parse_source(raw)
    if not tree.root_node.has_error:
        return ParsedFragment(source=raw, tree=tree, offset=0)

    wrapped = b"(" + raw + b")"
    tree = parse_source(wrapped)
    if not tree.root_node.has_error:
        return ParsedFragment(source=wrapped, tree=tree, offset=1)
    return None
