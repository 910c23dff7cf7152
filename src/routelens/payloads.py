"""
Analysis request payloads: assembly and the on-disk request store.

routelens/src/routelens/payloads.py
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from routelens import __version__
from routelens.exceptions import PayloadError
from routelens.filesystem import (
    TEMP_PREFIX,
    iso_timestamp,
    publish_json,
    safe_name,
    safe_timestamp,
)
from routelens.models import (
    AnalysisPayload,
    Endpoint,
    ExtractedFunction,
    RefinedLogic,
    SanitizedCode,
)

__all__ = [
    "ANALYZER",
    "build_payload",
    "list_payload_files",
    "load_payload",
    "payload_from_file",
    "payload_stem",
    "save_payload",
]

logger = logging.getLogger(__name__)

ANALYZER = f"routelens/{__version__}"
SESSION_MARKER = "last_session"


def build_payload(
    endpoint: Endpoint,
    extracted: ExtractedFunction,
    refined: RefinedLogic,
    sanitized: SanitizedCode,
    metadata: Optional[Dict[str, Any]] = None,
    timestamp: Optional[str] = None,
) -> AnalysisPayload:
    """Assemble the review request for one endpoint. No I/O."""
    merged: Dict[str, Any] = {
        "summary": refined.summary,
        "sanitizeNote": sanitized.note,
        "sourceFile": str(extracted.file_path.name) if extracted.file_path else endpoint.controller,
        "startLine": extracted.location.start_line,
        "endLine": extracted.location.end_line,
        "analyzer": ANALYZER,
    }
    if metadata:
        merged.update(metadata)

    safe_code = sanitized.safe_code if isinstance(sanitized.safe_code, str) else refined.cleaned_code

    return AnalysisPayload(
        endpoint=endpoint,
        name=extracted.name,
        cleaned_code=refined.cleaned_code,
        sanitized_code=safe_code,
        is_async=extracted.is_async,
        lines=extracted.line_count,
        metadata=merged,
        timestamp=timestamp or iso_timestamp(),
    )


def payload_stem(payload: AnalysisPayload) -> str:
    """``{handler}_{safe timestamp}``"""
    return f"{safe_name(payload.endpoint.handler or payload.name)}_{safe_timestamp(payload.timestamp)}"


def save_payload(payload: AnalysisPayload, directory: Path) -> Path:
    """Publish ``payload`` into ``directory`` atomically and return its path.

    Raises:
        OSError: If the directory cannot be created or written.
    """
    path = publish_json(Path(directory), payload_stem(payload), payload.to_dict())
    logger.info(f"Saved payload for {payload.endpoint.identifier} to {path.name}")
    return path


def load_payload(path: Path) -> Dict[str, Any]:
    """Read one request artifact.

    Raises:
        PayloadError: If the file cannot be read or does not hold a JSON object.
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, UnicodeDecodeError) as e:
        raise PayloadError(f"Could not read payload {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise PayloadError(f"Payload {path} is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise PayloadError(f"Payload {path} is not a JSON object")
    return data


def payload_from_file(path: Path) -> AnalysisPayload:
    """Load and validate a request artifact for review.

    Raises:
        PayloadError: If the artifact is unreadable or carries no code.
    """
    data = load_payload(path)
    function = data.get("function")
    if not isinstance(function, dict):
        raise PayloadError(f"Payload {Path(path).name} has no function section")
    if not (function.get("sanitizedCode") or function.get("cleanedCode")):
        raise PayloadError(f"Payload {Path(path).name} has no cleaned or sanitized code")
    return AnalysisPayload.from_dict(data)


def list_payload_files(directory: Path) -> List[Path]:
    """Request artifacts in ``directory``, sorted by name.

    Temporary files from in-flight writes and session bookkeeping files are
    not artifacts and are skipped.
    """
    directory = Path(directory)
    if not directory.is_dir():
        logger.debug(f"Request directory {directory} does not exist")
        return []

    return sorted(
        entry
        for entry in directory.glob("*.json")
        if entry.is_file()
        and not entry.name.startswith(TEMP_PREFIX)
        and SESSION_MARKER not in entry.name
    )
