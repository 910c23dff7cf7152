"""
Normalization and summarization of extracted handler source.

routelens/src/routelens/refiner.py
"""

import logging
from typing import List, Optional, Tuple, Union

from tree_sitter import Node

from routelens.extractor import ParsedFragment, is_async_node, iter_nodes, parse_fragment
from routelens.models import ExtractedFunction, RefinedLogic

__all__ = ["REQUEST_INPUTS", "refine_function_logic", "strip_comments", "summarize"]

logger = logging.getLogger(__name__)

REQUEST_INPUTS = ("params", "body", "query", "headers", "cookies")

_STRING_NODES = {"string", "template_string"}


def _normalize_newlines(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def _string_newlines(raw: bytes, fragment: ParsedFragment) -> List[bool]:
    """For each newline in ``raw``, whether it sits inside a string literal."""
    spans = [
        (node.start_byte - fragment.offset, node.end_byte - fragment.offset)
        for node in iter_nodes(fragment.tree.root_node)
        if node.type in _STRING_NODES
    ]
    flags = []
    position = raw.find(b"\n")
    while position >= 0:
        flags.append(any(start < position < end for start, end in spans))
        position = raw.find(b"\n", position + 1)
    return flags


def strip_comments(text: str, fragment: ParsedFragment) -> str:
    """Remove the parser's comment nodes and tidy the surrounding whitespace.

    A comment spanning lines is replaced by the newlines it spanned so line
    positions stay aligned with ``text``; an inline comment becomes a single
    space so neighbouring tokens stay apart. Lines that held nothing but a
    comment are dropped. Whitespace inside string and template literals is
    left untouched.
    """
    raw = text.encode("utf-8")
    spans: List[Tuple[int, int]] = [
        (node.start_byte - fragment.offset, node.end_byte - fragment.offset)
        for node in iter_nodes(fragment.tree.root_node)
        if node.type == "comment"
    ]

    pieces = []
    cursor = 0
    for start, end in sorted(spans):
        if start < cursor:
            continue
        pieces.append(raw[cursor:start])
        newlines = raw[start:end].count(b"\n")
        pieces.append(b"\n" * newlines if newlines else b" ")
        cursor = end
    pieces.append(raw[cursor:])
    stripped = b"".join(pieces).decode("utf-8")

    # comment removal keeps every newline, so these line up with stripped's lines
    in_string = _string_newlines(raw, fragment)
    original_lines = text.split("\n")
    kept = []
    blank_run = 0
    for index, line in enumerate(stripped.split("\n")):
        opens_in_string = index > 0 and index - 1 < len(in_string) and in_string[index - 1]
        ends_in_string = index < len(in_string) and in_string[index]
        if opens_in_string or ends_in_string:
            kept.append(line if ends_in_string else line.rstrip())
            blank_run = 0
            continue

        line = line.rstrip()
        if not line and index < len(original_lines) and original_lines[index].strip():
            continue
        if not line:
            blank_run += 1
            if blank_run > 1:
                continue
        else:
            blank_run = 0
        kept.append(line)

    return "\n".join(kept).strip("\n")


def _param_names(fragment: ParsedFragment, function: Node) -> List[str]:
    single = function.child_by_field_name("parameter")
    if single is not None:
        return [fragment.text_of(single)]

    params = function.child_by_field_name("parameters")
    if params is None:
        return []

    names = []
    for param in params.named_children:
        if param.type == "comment":
            continue
        if param.type == "assignment_pattern":
            left = param.child_by_field_name("left")
            names.append(fragment.text_of(left) if left is not None else fragment.text_of(param))
        else:
            names.append(fragment.text_of(param))
    return names


def _root_identifier(fragment: ParsedFragment, node: Node) -> Optional[str]:
    """Leftmost identifier of a member/call chain such as ``res.status(1).json``."""
    current = node
    while current is not None:
        if current.type == "identifier":
            return fragment.text_of(current)
        if current.type == "member_expression":
            current = current.child_by_field_name("object")
        elif current.type == "call_expression":
            current = current.child_by_field_name("function")
        else:
            return None
    return None


def _ordered_unique(items: List[Tuple[int, str]]) -> List[str]:
    seen = []
    for _pos, item in sorted(items):
        if item not in seen:
            seen.append(item)
    return seen


def summarize(name: str, is_async: bool, fragment: ParsedFragment) -> str:
    """One or two sentences describing the handler's inputs and outputs."""
    function = fragment.function_node
    if function is None:
        return ""

    params = _param_names(fragment, function)
    req_name = params[0] if len(params) > 0 else None
    res_name = params[1] if len(params) > 1 else None
    next_name = params[2] if len(params) > 2 else "next"

    inputs: List[Tuple[int, str]] = []
    data_calls: List[Tuple[int, str]] = []
    responses: List[Tuple[int, str]] = []
    delegates = False
    has_try = False

    for node in iter_nodes(function):
        if node.type == "member_expression":
            obj = node.child_by_field_name("object")
            prop = node.child_by_field_name("property")
            if obj is None or prop is None:
                continue
            prop_name = fragment.text_of(prop)
            if (
                req_name
                and obj.type == "identifier"
                and fragment.text_of(obj) == req_name
                and prop_name in REQUEST_INPUTS
            ):
                inputs.append((node.start_byte, f"{req_name}.{prop_name}"))
            if res_name and _root_identifier(fragment, obj) == res_name:
                responses.append((prop.start_byte, f"{res_name}.{prop_name}"))

        elif node.type == "await_expression" and node.named_children:
            call = node.named_children[0]
            if call.type != "call_expression":
                continue
            callee = call.child_by_field_name("function")
            if callee is None or callee.type != "member_expression":
                continue
            obj = callee.child_by_field_name("object")
            if obj is not None and obj.type == "identifier" and fragment.text_of(obj)[:1].isupper():
                data_calls.append((callee.start_byte, fragment.text_of(callee)))

        elif node.type == "call_expression":
            callee = node.child_by_field_name("function")
            if callee is not None and callee.type == "identifier" and fragment.text_of(callee) == next_name:
                delegates = True

        elif node.type == "try_statement":
            has_try = True

    kind = "Async handler" if is_async or is_async_node(function) else "Handler"
    first = f"{kind} {name}({', '.join(params)})"
    clauses = []
    if inputs:
        clauses.append(f"reads {', '.join(_ordered_unique(inputs))}")
    if data_calls:
        clauses.append(f"awaits {', '.join(_ordered_unique(data_calls))}")
    if responses:
        clauses.append(f"responds via {', '.join(_ordered_unique(responses))}")
    if clauses:
        first += " " + "; ".join(clauses)
    sentences = [first + "."]

    extras = []
    if has_try:
        extras.append("uses try/catch")
    if delegates:
        extras.append(f"delegates to {next_name}()")
    if extras:
        sentence = " and ".join(extras)
        sentences.append(sentence[0].upper() + sentence[1:] + ".")

    return " ".join(sentences)


def refine_function_logic(extracted: Union[ExtractedFunction, str]) -> RefinedLogic:
    """Reduce extracted handler source to normalized code plus a short summary.

    Deterministic and side-effect free. Input that is not an extracted
    function, or text that does not parse, comes back unchanged with an empty
    summary.
    """
    if isinstance(extracted, ExtractedFunction):
        text, name, is_async = extracted.source_text, extracted.name, extracted.is_async
    elif isinstance(extracted, str):
        text, name, is_async = extracted, "anonymous", False
    else:
        logger.warning(f"Cannot refine object of type {type(extracted).__name__}")
        return RefinedLogic(cleaned_code=str(extracted) if extracted is not None else "", summary="")

    if not isinstance(text, str) or not text.strip():
        return RefinedLogic(cleaned_code=text if isinstance(text, str) else "", summary="")

    try:
        normalized = _normalize_newlines(text)
        fragment = parse_fragment(normalized)
        if fragment is None:
            logger.warning(f"Refiner could not parse {name}; passing source through")
            return RefinedLogic(cleaned_code=text, summary="")

        cleaned = strip_comments(normalized, fragment)
        return RefinedLogic(cleaned_code=cleaned, summary=summarize(name, is_async, fragment))
    except Exception as e:
        logger.warning(f"Refiner failed on {name}: {e}; passing source through")
        return RefinedLogic(cleaned_code=text, summary="")
