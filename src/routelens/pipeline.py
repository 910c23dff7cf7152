"""
Run orchestration.

A run has two phases joined only through the request directory:

``prepare``: select a route file and endpoints, then extract, refine,
sanitize, build and save one request payload per endpoint.

``review``: sweep request payloads, ask the model about each one, and save
the recovered insight.

routelens/src/routelens/pipeline.py
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple

from routelens.adapter import clean_response
from routelens.config import PipelineConfig
from routelens.exceptions import ModelNotConfiguredError, PayloadError, SelectionError
from routelens.extractor import extract_function, search_directory
from routelens.filesystem import reset_directory
from routelens.insights import save_insight
from routelens.llm_client import ModelClient
from routelens.models import AnalysisPayload, Endpoint, ExtractedFunction
from routelens.payloads import build_payload, list_payload_files, payload_from_file, save_payload
from routelens.refiner import refine_function_logic
from routelens.retry import RETRYABLE_ERRORS
from routelens.sanitizer import sanitize_code
from routelens.scanner import list_route_files, scan_routes_file
from routelens.selection import Selector, StaticSelector

__all__ = ["Pipeline", "RunReport"]

logger = logging.getLogger(__name__)


@dataclass
class RunReport:
    """Outcome counts and artifacts of one run or phase."""

    processed: int = 0
    skipped: int = 0
    failed: int = 0
    payload_paths: List[Path] = field(default_factory=list)
    insight_paths: List[Path] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def warn(self, message: str) -> None:
        logger.warning(message)
        self.warnings.append(message)


class Pipeline:
    """Drives the prepare and review phases for one project."""

    def __init__(
        self,
        config: PipelineConfig,
        client: Optional[ModelClient] = None,
        selector: Optional[Selector] = None,
    ):
        self.config = config
        self.client = client
        self.selector = selector
        self._publish_lock = threading.Lock()

    def _selector(self) -> Selector:
        return self.selector or StaticSelector()

    def route_files(self) -> List[str]:
        return list_route_files(self.config.routes_dir, self.config.extensions)

    def scan(self, route_file: str) -> List[Endpoint]:
        return scan_routes_file(self.config.routes_dir / route_file, self.config.router_names)

    def resolve_route_file(self, route_file: Optional[str] = None) -> str:
        """Route file chosen by argument or by the selector; must exist in the routes directory."""
        candidates = self.route_files()
        if route_file is None:
            route_file = self._selector().choose_route_file(candidates)
        if route_file not in candidates:
            raise SelectionError(
                f"Unknown route file '{route_file}' in {self.config.routes_dir}"
            )
        return route_file

    def select_endpoints(
        self, endpoints: Sequence[Endpoint], endpoint_ids: Optional[Iterable[str]] = None
    ) -> List[Endpoint]:
        if endpoint_ids is not None:
            chosen = StaticSelector(endpoint_ids=endpoint_ids).choose_endpoints(endpoints)
        else:
            chosen = self._selector().choose_endpoints(endpoints)
        if not chosen:
            raise SelectionError("No endpoints selected")
        return chosen

    def extract(self, endpoint: Endpoint) -> Optional[ExtractedFunction]:
        controller_path = self.config.controllers_dir / endpoint.controller
        if controller_path.is_file() or not self.config.controller_fallback_search:
            return extract_function(controller_path, endpoint.handler)

        logger.info(
            f"{endpoint.controller} not found; searching {self.config.controllers_dir} "
            f"for '{endpoint.handler}'"
        )
        return search_directory(
            self.config.controllers_dir, endpoint.handler, self.config.extensions
        )

    def prepare(
        self,
        route_file: Optional[str] = None,
        endpoint_ids: Optional[Iterable[str]] = None,
    ) -> RunReport:
        """Phase 1: write one request payload per selected endpoint.

        Raises:
            SelectionError: Unknown route file or empty endpoint selection.
            OSError: A payload could not be written.
        """
        report = RunReport()
        route_file = self.resolve_route_file(route_file)

        endpoints = self.scan(route_file)
        if not endpoints:
            report.warn(f"No endpoints found in {route_file}")
            return report

        seen = set()
        for endpoint in self.select_endpoints(endpoints, endpoint_ids):
            if endpoint.key in seen:
                continue
            seen.add(endpoint.key)

            extracted = self.extract(endpoint)
            if extracted is None:
                report.skipped += 1
                report.warn(
                    f"Skipped {endpoint.identifier}: handler '{endpoint.handler}' "
                    f"not found in {endpoint.controller}"
                )
                continue

            refined = refine_function_logic(extracted)
            sanitized = sanitize_code(refined.cleaned_code)
            payload = build_payload(
                endpoint, extracted, refined, sanitized, metadata=self.config.extra_metadata
            )
            report.payload_paths.append(save_payload(payload, self.config.requests_dir))
            report.processed += 1

        return report

    def _require_client(self) -> ModelClient:
        if self.client is None:
            raise ModelNotConfiguredError("No model client available for review")
        self.client.ensure_configured()
        return self.client

    def _load(self, paths: Sequence[Path], report: RunReport) -> List[Tuple[Path, AnalysisPayload]]:
        loaded = []
        for path in paths:
            try:
                loaded.append((path, payload_from_file(path)))
            except PayloadError as e:
                report.skipped += 1
                report.warn(f"Skipped payload {Path(path).name}: {e}")
        return loaded

    def _review_one(
        self, client: ModelClient, path: Path, payload: AnalysisPayload
    ) -> Tuple[Optional[Path], Optional[str]]:
        handler = payload.endpoint.handler or payload.name or "unknown"
        logger.info(f"Analyzing endpoint: {handler} ({path.name})")
        try:
            result = client.analyze(payload)
        except RETRYABLE_ERRORS as e:
            return None, f"Model call failed for {handler} ({path.name}): {e}"

        insight = clean_response(result.raw)
        with self._publish_lock:
            insight_path = save_insight(insight, handler, self.config.insights_dir)
        return insight_path, None

    def review(self, paths: Optional[Iterable[Path]] = None) -> RunReport:
        """Phase 2: ask the model about each payload and save the insights.

        Without ``paths`` every artifact in the request directory is swept.
        Model failures after retries count as failed and the sweep goes on.

        Raises:
            ModelNotConfiguredError: Before any request is made.
            OSError: An insight could not be written.
        """
        report = RunReport()
        client = self._require_client()

        paths = list(paths) if paths is not None else list_payload_files(self.config.requests_dir)
        if not paths:
            report.warn(f"No payloads found in {self.config.requests_dir}")
            return report

        loaded = self._load(paths, report)

        if self.config.max_workers > 1 and len(loaded) > 1:
            with ThreadPoolExecutor(max_workers=self.config.max_workers) as pool:
                futures = [pool.submit(self._review_one, client, p, pl) for p, pl in loaded]
                outcomes = [future.result() for future in futures]
        else:
            outcomes = [self._review_one(client, p, pl) for p, pl in loaded]

        for insight_path, error in outcomes:
            if insight_path is not None:
                report.processed += 1
                report.insight_paths.append(insight_path)
            else:
                report.failed += 1
                report.warn(error)

        return report

    def run(
        self,
        route_file: Optional[str] = None,
        endpoint_ids: Optional[Iterable[str]] = None,
    ) -> RunReport:
        """Both phases. Only this run's payloads are reviewed."""
        self._require_client()

        cleared = self.config.clear_requests_before_run
        if cleared:
            reset_directory(self.config.requests_dir)

        prepared = self.prepare(route_file, endpoint_ids)
        if not prepared.payload_paths:
            logger.info("No payloads prepared; nothing to review")
            return prepared

        reviewed = self.review(None if cleared else prepared.payload_paths)
        # processed counts endpoints that got a payload
        return RunReport(
            processed=prepared.processed,
            skipped=prepared.skipped + reviewed.skipped,
            failed=reviewed.failed,
            payload_paths=prepared.payload_paths,
            insight_paths=reviewed.insight_paths,
            warnings=prepared.warnings + reviewed.warnings,
        )
