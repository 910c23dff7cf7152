"""
Redaction of secrets and personal data from handler source.

Rules run in a fixed order. Every pattern is confined to a single line and
every replacement is newline-free, so the redacted text has exactly the line
count of its input and line references in a review stay valid.

routelens/src/routelens/sanitizer.py
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List

from routelens.models import SanitizedCode

__all__ = [
    "NOTE_CLEAN",
    "NOTE_EMPTY",
    "NOTE_NOT_TEXT",
    "REDACTION_RULES",
    "RedactionRule",
    "format_note",
    "sanitize_code",
]

logger = logging.getLogger(__name__)

NOTE_CLEAN = "No sensitive literals detected."
NOTE_EMPTY = "No sanitization applied: empty input."
NOTE_NOT_TEXT = "No sanitization applied: input is not text."


@dataclass(frozen=True)
class RedactionRule:
    name: str
    pattern: "re.Pattern[str]"
    replacement: str


REDACTION_RULES: List[RedactionRule] = [
    RedactionRule(
        name="private key",
        pattern=re.compile(r"-----BEGIN [A-Z ]*PRIVATE KEY-----[^\n'\"`]*"),
        replacement="[REDACTED_PRIVATE_KEY]",
    ),
    RedactionRule(
        name="connection string",
        pattern=re.compile(r"\b([A-Za-z][A-Za-z0-9+.-]*://)[^\s:/@'\"`]+:[^\s@'\"`]+@"),
        replacement=r"\1[REDACTED]@",
    ),
    RedactionRule(
        name="bearer token",
        pattern=re.compile(r"\b(Bearer\s+)[A-Za-z0-9\-._~+/]{16,}=*", re.IGNORECASE),
        replacement=r"\1[REDACTED_TOKEN]",
    ),
    RedactionRule(
        name="jwt",
        pattern=re.compile(r"\beyJ[A-Za-z0-9_-]+\.eyJ[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+"),
        replacement="[REDACTED_JWT]",
    ),
    RedactionRule(
        name="api key",
        pattern=re.compile(
            r"\b(?:sk-[A-Za-z0-9_-]{16,}"
            r"|[sp]k_(?:live|test)_[A-Za-z0-9]{16,}"
            r"|pk_[A-Za-z0-9]{16,}"
            r"|AKIA[0-9A-Z]{16}"
            r"|AIza[0-9A-Za-z_-]{35})"
        ),
        replacement="[REDACTED_API_KEY]",
    ),
    RedactionRule(
        name="password",
        pattern=re.compile(
            r"\b((?:password|passwd|pwd|secret|api[_-]?key|private[_-]?key|access[_-]?token)"
            r"\w*[\"']?\s*[:=]\s*)([\"'`])(?!\[REDACTED)[^\"'`\n]+\2",
            re.IGNORECASE,
        ),
        replacement=r"\1\2[REDACTED]\2",
    ),
    RedactionRule(
        name="email",
        pattern=re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"),
        replacement="[REDACTED_EMAIL]",
    ),
]


def format_note(redactions: Dict[str, int]) -> str:
    """``Redacted: connection string (1), email (2)`` or the neutral note."""
    if not redactions:
        return NOTE_CLEAN
    return "Redacted: " + ", ".join(f"{name} ({count})" for name, count in redactions.items())


def sanitize_code(code: Any) -> SanitizedCode:
    """Redact sensitive literals from ``code``. Never raises."""
    if not isinstance(code, str):
        return SanitizedCode(safe_code=code, note=NOTE_NOT_TEXT)
    if not code.strip():
        return SanitizedCode(safe_code=code, note=NOTE_EMPTY)

    text = code
    line_count = text.count("\n")
    redactions: Dict[str, int] = {}

    for rule in REDACTION_RULES:
        try:
            updated, count = rule.pattern.subn(rule.replacement, text)
        except re.error as e:
            logger.warning(f"Redaction rule '{rule.name}' failed and was skipped: {e}")
            continue

        if updated.count("\n") != line_count:
            logger.warning(f"Redaction rule '{rule.name}' changed the line count; skipped")
            continue

        if count:
            redactions[rule.name] = count
            text = updated

    if redactions:
        logger.debug(f"Sanitizer redactions: {redactions}")
    return SanitizedCode(safe_code=text, note=format_note(redactions), redactions=redactions)
