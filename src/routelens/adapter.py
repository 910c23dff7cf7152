"""
Recovery of structured review results from free-form model text.

Models wrap their JSON in markdown fences, surround it with prose, or emit
almost-JSON. ``clean_response`` recovers what it can with a bounded set of
ordered repair rules and otherwise returns an error record that keeps the
evidence.

routelens/src/routelens/adapter.py
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

__all__ = [
    "EVIDENCE_LIMIT",
    "Insight",
    "InsightError",
    "REPAIR_RULES",
    "clean_response",
    "extract_candidate",
    "parse_greedy",
]

logger = logging.getLogger(__name__)

EVIDENCE_LIMIT = 400

NO_RESPONSE = "No response from model"
INVALID_JSON = "Invalid JSON (even after auto-repair)"
NOT_AN_OBJECT = "Model JSON is not an object"

DEFAULT_SUMMARY = "No summary provided."
DEFAULT_NOTES = "No notes provided."

_FENCED_JSON = re.compile(r"```[ \t]*json\b(.*?)```", re.IGNORECASE | re.DOTALL)
_LEADING_TAG = re.compile(r"^\s*json\b", re.IGNORECASE)


@dataclass(frozen=True)
class Insight:
    """Normalized review result; every key always present."""

    summary: str = DEFAULT_SUMMARY
    issues: List[Any] = field(default_factory=list)
    suggestions: List[Any] = field(default_factory=list)
    before_after: Optional[Any] = None
    notes: str = DEFAULT_NOTES

    def to_dict(self) -> Dict[str, Any]:
        return {
            "summary": self.summary,
            "issues": list(self.issues),
            "suggestions": list(self.suggestions),
            "before_after": self.before_after,
            "notes": self.notes,
        }


@dataclass(frozen=True)
class InsightError:
    """Unrecoverable response, with truncated evidence for diagnosis."""

    error: str
    extracted: str = ""
    raw: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"error": self.error, "extracted": self.extracted, "raw": self.raw}


def _sub(pattern: str, replacement: str) -> Callable[[str], str]:
    compiled = re.compile(pattern)
    return lambda text: compiled.sub(replacement, text)


def _normalize_quotes(text: str) -> str:
    return (
        text.replace("“", '"')
        .replace("”", '"')
        .replace("„", '"')
        .replace("‘", "'")
        .replace("’", "'")
    )


def _quote_keys(text: str) -> str:
    text = re.sub(r"([{,]\s*)'([^'\\\n]*)'\s*:", r'\1"\2":', text)
    return re.sub(r"([{,]\s*)([A-Za-z_$][\w$]*)\s*:", r'\1"\2":', text)


# Order matters: quotes are normalized before keys are quoted.
REPAIR_RULES: List[Tuple[str, Callable[[str], str]]] = [
    ("trailing commas", _sub(r",\s*([\]}])", r"\1")),
    ("missing commas between objects", _sub(r"}\s*{", "},{")),
    ("missing commas between arrays", _sub(r"]\s*\[", "],[")),
    ("smart quotes", _normalize_quotes),
    ("unquoted keys", _quote_keys),
]


def extract_candidate(raw: str) -> str:
    """Narrow ``raw`` down to the text most likely to be the JSON object."""
    fenced = _FENCED_JSON.search(raw)
    if fenced:
        extracted = fenced.group(1)
    else:
        start, end = raw.find("{"), raw.rfind("}")
        extracted = raw[start : end + 1] if start >= 0 and end > start else raw

    extracted = _LEADING_TAG.sub("", extracted.replace("```", ""), count=1).strip()

    start = extracted.find("{")
    if start > 0:
        extracted = extracted[start:]
    end = extracted.rfind("}")
    if end >= 0:
        extracted = extracted[: end + 1]
    return extracted


def parse_greedy(raw: Optional[str]) -> Optional[Any]:
    """Strict parse of the first-``{``-to-last-``}`` span, or None."""
    if not isinstance(raw, str) or not raw:
        return None
    start, end = raw.find("{"), raw.rfind("}")
    text = raw[start : end + 1] if start >= 0 and end > start else raw
    try:
        return json.loads(text)
    except ValueError:
        return None


def _as_list(value: Any) -> List[Any]:
    if value is None or value == "":
        return []
    if isinstance(value, list):
        return value
    return [value]


def _normalize(parsed: Dict[str, Any]) -> Insight:
    summary = parsed.get("summary")
    notes = parsed.get("notes")
    return Insight(
        summary=summary if isinstance(summary, str) and summary.strip() else DEFAULT_SUMMARY,
        issues=_as_list(parsed.get("issues")),
        suggestions=_as_list(parsed.get("suggestions")),
        before_after=parsed.get("before_after") or None,
        notes=notes if isinstance(notes, str) and notes.strip() else DEFAULT_NOTES,
    )


def _repair(extracted: str) -> Tuple[Optional[Any], bool]:
    text = extracted
    for name, rule in REPAIR_RULES:
        text = rule(text)
        try:
            parsed = json.loads(text)
        except ValueError:
            continue
        logger.info(f"Recovered model JSON after repair step: {name}")
        return parsed, True
    return None, False


def clean_response(raw: Optional[str]) -> Union[Insight, InsightError]:
    """Turn raw model text into an Insight, or an InsightError carrying the evidence."""
    if not isinstance(raw, str) or not raw.strip():
        return InsightError(error=NO_RESPONSE)

    extracted = extract_candidate(raw)

    try:
        parsed = json.loads(extracted)
    except ValueError as e:
        logger.warning(f"Could not parse model JSON: {e}; attempting repair")
        parsed, ok = _repair(extracted)
        if not ok:
            return InsightError(
                error=INVALID_JSON,
                extracted=extracted[:EVIDENCE_LIMIT],
                raw=raw[:EVIDENCE_LIMIT],
            )

    if not isinstance(parsed, dict):
        return InsightError(
            error=NOT_AN_OBJECT,
            extracted=extracted[:EVIDENCE_LIMIT],
            raw=raw[:EVIDENCE_LIMIT],
        )
    return _normalize(parsed)
