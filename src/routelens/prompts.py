"""
Review prompt for a single endpoint handler.

routelens/src/routelens/prompts.py
"""

import json

from routelens.models import AnalysisPayload

__all__ = ["INSIGHT_KEYS", "build_review_prompt"]

INSIGHT_KEYS = ("summary", "issues", "suggestions", "before_after", "notes")

REVIEW_INSTRUCTIONS = """You are an expert Node.js/Express backend engineer focused on performance and scalability.
Analyze the following Express API endpoint and provide:
  1) A short summary of what it does (1-2 lines).
  2) Performance issues and why they are problems (bulleted).
  3) Concrete optimizations (code-level suggestions) with explanation.
  4) Estimated difficulty (low/medium/high) and estimated impact (low/medium/high).
  5) If safe, provide a concise "before -> after" pseudo-code snippet illustrating the change.

CONSTRAINTS:
 - Reply in JSON with keys: summary, issues (array), suggestions (array), before_after (string|null), notes.
 - Do not include secrets or PII; assume code is sanitized.
 - Keep each suggestion short and actionable."""


def build_review_prompt(payload: AnalysisPayload) -> str:
    """Deterministic prompt text for ``payload``; same payload, same prompt."""
    endpoint = payload.endpoint
    code = payload.sanitized_code or payload.cleaned_code or "// no code provided"

    return "\n".join(
        [
            REVIEW_INSTRUCTIONS,
            "",
            "ENDPOINT METADATA:",
            f"Method: {endpoint.method or 'UNKNOWN'}, "
            f"Path: {endpoint.path or 'UNKNOWN'}, "
            f"Handler: {endpoint.handler or 'UNKNOWN'}",
            f"Function name: {payload.name or 'unknown'}, "
            f"async: {str(payload.is_async).lower()}, lines: {payload.lines}",
            f"Extra metadata: {json.dumps(payload.metadata, sort_keys=True, ensure_ascii=False)}",
            "",
            "SANITIZED CODE (analyze this):",
            "```js",
            code,
            "```",
            "",
            "Return ONLY a valid JSON object with exactly these keys: "
            + ", ".join(INSIGHT_KEYS)
            + ". Don't add commentary outside JSON.",
        ]
    )
