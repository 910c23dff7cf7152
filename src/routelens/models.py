"""
Data records passed between the pipeline stages.

Each record is produced by exactly one stage and never mutated afterwards.
``to_dict`` gives the JSON form written into artifacts.

routelens/src/routelens/models.py
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

__all__ = [
    "Endpoint",
    "SourceLocation",
    "ExtractedFunction",
    "RefinedLogic",
    "SanitizedCode",
    "AnalysisPayload",
]

IDENTIFIER_ARROW = "→"


@dataclass(frozen=True)
class Endpoint:
    """One discovered route binding."""

    method: str
    path: str
    handler: str
    controller: str
    route_file: str = ""

    @property
    def identifier(self) -> str:
        """Selection identifier, e.g. ``GET /users/:id → getUser``."""
        return f"{self.method} {self.path} {IDENTIFIER_ARROW} {self.handler}"

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.method, self.path, self.handler)

    def to_dict(self) -> Dict[str, str]:
        return {
            "method": self.method,
            "path": self.path,
            "handler": self.handler,
            "controller": self.controller,
            "routeFile": self.route_file,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Endpoint":
        return cls(
            method=str(data.get("method", "")),
            path=str(data.get("path", "")),
            handler=str(data.get("handler", "")),
            controller=str(data.get("controller", "")),
            route_file=str(data.get("routeFile", "")),
        )


@dataclass(frozen=True)
class SourceLocation:
    """1-based inclusive line span."""

    start_line: int
    end_line: int

    def to_dict(self) -> Dict[str, int]:
        return {"startLine": self.start_line, "endLine": self.end_line}


@dataclass(frozen=True)
class ExtractedFunction:
    """Exact source span of one located handler."""

    name: str
    source_text: str
    location: SourceLocation
    is_async: bool = False
    file_path: Optional[Path] = None

    @property
    def line_count(self) -> int:
        return self.location.end_line - self.location.start_line + 1


@dataclass(frozen=True)
class RefinedLogic:
    cleaned_code: str
    summary: str


@dataclass(frozen=True)
class SanitizedCode:
    safe_code: str
    note: str
    redactions: Dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class AnalysisPayload:
    """The request document persisted for model review."""

    endpoint: Endpoint
    name: str
    cleaned_code: str
    sanitized_code: str
    is_async: bool
    lines: int
    metadata: Dict[str, Any]
    timestamp: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "endpoint": self.endpoint.to_dict(),
            "function": {
                "name": self.name,
                "cleanedCode": self.cleaned_code,
                "sanitizedCode": self.sanitized_code,
                "async": self.is_async,
                "lines": self.lines,
            },
            "metadata": dict(self.metadata),
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnalysisPayload":
        function = data.get("function") or {}
        return cls(
            endpoint=Endpoint.from_dict(data.get("endpoint") or {}),
            name=str(function.get("name", "")),
            cleaned_code=str(function.get("cleanedCode") or ""),
            sanitized_code=str(function.get("sanitizedCode") or ""),
            is_async=bool(function.get("async", False)),
            lines=int(function.get("lines") or 0),
            metadata=dict(data.get("metadata") or {}),
            timestamp=str(data.get("timestamp", "")),
        )
