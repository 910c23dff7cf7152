"""
Client for the review model.

Talks to any OpenAI-compatible ``/chat/completions`` endpoint; the default is
Gemini's compatibility API. All settings come from an immutable ModelConfig
passed at construction. Switching models produces a new client instead of
changing shared state.

routelens/src/routelens/llm_client.py
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import requests

from routelens.adapter import parse_greedy
from routelens.config import ModelConfig
from routelens.exceptions import ModelNotConfiguredError, ModelResponseError
from routelens.models import AnalysisPayload
from routelens.prompts import build_review_prompt
from routelens.retry import RetryConfig, call_with_retry

__all__ = ["ModelClient", "ModelResult"]

logger = logging.getLogger(__name__)


def _join_text_parts(parts: List[Any]) -> Optional[str]:
    """Concatenate the text items of a multi-part message content, or None if there are none."""
    texts = []
    for part in parts:
        if isinstance(part, str):
            texts.append(part)
        elif isinstance(part, dict) and isinstance(part.get("text"), str):
            texts.append(part["text"])
    return "".join(texts) if texts else None


@dataclass(frozen=True)
class ModelResult:
    """Raw model text plus a best-effort parse (None when not parsable)."""

    raw: str
    parsed: Optional[Any] = None


class ModelClient:
    """Sends review prompts to the configured model under a bounded retry policy."""

    def __init__(
        self,
        config: ModelConfig,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
        retry_config: Optional[RetryConfig] = None,
    ):
        self.config = config
        self.session = session or requests.Session()
        # Note: timeout is set per-request rather than on session
        self._sleep = sleep
        self._retry_config = retry_config or RetryConfig(attempts=config.retries)

    @property
    def model(self) -> str:
        return self.config.model

    def with_model(self, model_id: str) -> "ModelClient":
        """New client targeting ``model_id``; this client is left untouched."""
        return ModelClient(
            self.config.with_model(model_id),
            session=self.session,
            sleep=self._sleep,
            retry_config=self._retry_config,
        )

    def ensure_configured(self) -> None:
        """Raise ModelNotConfiguredError if the client cannot make a request."""
        missing = self.config.missing_fields()
        if missing:
            raise ModelNotConfiguredError(
                f"Model client is not configured (missing: {', '.join(missing)}). "
                "Set ROUTELENS_API_KEY or GEMINI_API_KEY, or configure [tool.routelens.model]."
            )

    def _request_body(self, prompt: str) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "model": self.config.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
            "top_p": self.config.top_p,
        }
        if self.config.top_k is not None:
            body["top_k"] = self.config.top_k
        return body

    def complete(self, prompt: str) -> str:
        """One chat-completion attempt; returns the message text.

        Raises:
            requests.RequestException: Transport failure, timeout or HTTP error status.
            ModelResponseError: The response carried no message text.
        """
        url = f"{self.config.api_url.rstrip('/')}/chat/completions"
        headers = {"Authorization": f"Bearer {self.config.api_key}"}

        logger.debug(f"Model request to {url} (model={self.config.model})")
        response = self.session.post(
            url,
            json=self._request_body(prompt),
            headers=headers,
            timeout=self.config.timeout_seconds,
        )
        logger.debug(f"HTTP response status: {response.status_code}")
        response.raise_for_status()

        try:
            data = response.json()
        except ValueError as e:
            raise ModelResponseError(f"Model response is not JSON: {e}") from e

        choices = data.get("choices") if isinstance(data, dict) else None
        if not choices or not isinstance(choices, list):
            raise ModelResponseError("Invalid model response format: no choices")
        if not isinstance(choices[0], dict):
            raise ModelResponseError("Invalid model response format: choice is not an object")

        message = choices[0].get("message") or {}
        content = message.get("content") if isinstance(message, dict) else None
        if isinstance(content, list):
            content = _join_text_parts(content)
        if content is None or content == "":
            raise ModelResponseError("Model response content is empty")
        if not isinstance(content, str):
            raise ModelResponseError(
                f"Model response content has unexpected type {type(content).__name__}"
            )
        return content

    def analyze(self, payload: AnalysisPayload) -> ModelResult:
        """Review one payload.

        Configuration problems raise before any network attempt. Transport
        errors are retried; once attempts run out the last error propagates.
        A successful response is returned even when its text is not JSON.
        """
        self.ensure_configured()
        prompt = build_review_prompt(payload)

        raw = call_with_retry(
            lambda: self.complete(prompt),
            config=self._retry_config,
            sleep=self._sleep,
            description=f"Model call for {payload.endpoint.handler or payload.name}",
        )
        return ModelResult(raw=raw, parsed=parse_greedy(raw))
