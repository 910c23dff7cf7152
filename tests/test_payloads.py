"""Tests for payload assembly and the request/insight stores."""

import json
from pathlib import Path

import pytest

from routelens.adapter import Insight, InsightError
from routelens.exceptions import PayloadError
from routelens.insights import insight_filename, save_insight
from routelens.models import (
    AnalysisPayload,
    Endpoint,
    ExtractedFunction,
    RefinedLogic,
    SanitizedCode,
    SourceLocation,
)
from routelens.payloads import (
    ANALYZER,
    build_payload,
    list_payload_files,
    load_payload,
    payload_from_file,
    save_payload,
)

TIMESTAMP = "2024-05-01T12:30:45.123Z"


@pytest.fixture
def payload() -> AnalysisPayload:
    endpoint = Endpoint("GET", "/users/:id", "getUser", "user.controller.js", "user.routes.js")
    extracted = ExtractedFunction(
        name="getUser",
        source_text="async function getUser(req, res) {\n  res.json({});\n}",
        location=SourceLocation(10, 12),
        is_async=True,
        file_path=Path("/app/src/controllers/user.controller.js"),
    )
    refined = RefinedLogic(cleaned_code=extracted.source_text, summary="Async handler getUser(req, res).")
    sanitized = SanitizedCode(safe_code=extracted.source_text, note="No sensitive literals detected.")
    return build_payload(endpoint, extracted, refined, sanitized, timestamp=TIMESTAMP)


class TestBuildPayload:
    def test_shape(self, payload: AnalysisPayload):
        data = payload.to_dict()

        assert data["endpoint"] == {
            "method": "GET",
            "path": "/users/:id",
            "handler": "getUser",
            "controller": "user.controller.js",
            "routeFile": "user.routes.js",
        }
        assert data["function"]["name"] == "getUser"
        assert data["function"]["async"] is True
        assert data["function"]["lines"] == 3
        assert data["timestamp"] == TIMESTAMP

    def test_default_metadata(self, payload: AnalysisPayload):
        assert payload.metadata == {
            "summary": "Async handler getUser(req, res).",
            "sanitizeNote": "No sensitive literals detected.",
            "sourceFile": "user.controller.js",
            "startLine": 10,
            "endLine": 12,
            "analyzer": ANALYZER,
        }

    def test_caller_metadata_merged(self, payload: AnalysisPayload):
        endpoint = payload.endpoint
        extracted = ExtractedFunction("getUser", "function getUser() {}", SourceLocation(1, 1))
        refined = RefinedLogic("function getUser() {}", "")
        sanitized = SanitizedCode("function getUser() {}", "n")

        merged = build_payload(
            endpoint, extracted, refined, sanitized, metadata={"team": "core", "summary": "x"}
        )

        assert merged.metadata["team"] == "core"
        assert merged.metadata["summary"] == "x"

    def test_round_trip_through_dict(self, payload: AnalysisPayload):
        assert AnalysisPayload.from_dict(payload.to_dict()) == payload


class TestRequestStore:
    def test_save_payload_name(self, payload: AnalysisPayload, temp_dir: Path):
        path = save_payload(payload, temp_dir / "analysis_reports")

        assert path.name == "getUser_2024-05-01T12-30-45-123Z.json"
        assert load_payload(path)["function"]["name"] == "getUser"

    def test_same_handler_twice_does_not_collide(self, payload: AnalysisPayload, temp_dir: Path):
        first = save_payload(payload, temp_dir)
        second = save_payload(payload, temp_dir)

        assert first != second
        assert len(list_payload_files(temp_dir)) == 2

    def test_list_skips_temp_and_session_files(self, payload: AnalysisPayload, temp_dir: Path):
        save_payload(payload, temp_dir)
        (temp_dir / ".routelens-abc.tmp").write_text("{")
        (temp_dir / ".routelens-partial.json").write_text("{")
        (temp_dir / "last_session.json").write_text("{}")
        (temp_dir / "notes.txt").write_text("")

        assert [p.name for p in list_payload_files(temp_dir)] == [
            "getUser_2024-05-01T12-30-45-123Z.json"
        ]

    def test_list_missing_directory(self, temp_dir: Path):
        assert list_payload_files(temp_dir / "missing") == []

    def test_invalid_json_raises_payload_error(self, temp_dir: Path):
        path = temp_dir / "bad.json"
        path.write_text("{not json")

        with pytest.raises(PayloadError):
            load_payload(path)

    def test_payload_without_code_rejected(self, temp_dir: Path):
        path = temp_dir / "empty.json"
        path.write_text(json.dumps({"endpoint": {}, "function": {"name": "x"}}))

        with pytest.raises(PayloadError, match="no cleaned or sanitized code"):
            payload_from_file(path)


class TestInsightStore:
    def test_insight_filename(self):
        assert insight_filename("getUser", TIMESTAMP) == "getUser_AI_Insights_2024-05-01T12-30-45-123Z"

    def test_save_insight(self, temp_dir: Path):
        path = save_insight(Insight(summary="ok"), "getUser", temp_dir, timestamp=TIMESTAMP)

        assert path.name == "getUser_AI_Insights_2024-05-01T12-30-45-123Z.json"
        assert json.loads(path.read_text())["summary"] == "ok"

    def test_insights_are_append_only(self, temp_dir: Path):
        first = save_insight(Insight(), "getUser", temp_dir, timestamp=TIMESTAMP)
        second = save_insight(
            InsightError(error="Invalid JSON (even after auto-repair)"), "getUser", temp_dir, timestamp=TIMESTAMP
        )

        assert first != second
        assert json.loads(first.read_text())["summary"] == "No summary provided."
        assert json.loads(second.read_text())["error"].startswith("Invalid JSON")
