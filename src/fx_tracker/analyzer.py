"""Appreciation analyzer backed by the Gemini generative language API.

The model is asked for a JSON verdict constrained by a response schema:
    {isAppreciating, subject, body, analysis}
Anything short of a valid verdict raises ``AnalysisUnavailable``.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional, Protocol, Sequence

import httpx
from pydantic import ValidationError

from fx_tracker.config import DEFAULT_CONFIG, Config
from fx_tracker.errors import AnalysisUnavailable
from fx_tracker.retry import request_with_retry
from fx_tracker.schemas import AppreciationVerdict, RateSample

logger = logging.getLogger(__name__)


class AppreciationAnalyzer(Protocol):
    async def analyze(
        self,
        current_rate: float,
        previous_rate: float,
        recent_history: Sequence[RateSample],
    ) -> AppreciationVerdict:
        ...


RESPONSE_SCHEMA: dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "isAppreciating": {
            "type": "BOOLEAN",
            "description": "Whether the SGD is appreciating significantly.",
        },
        "subject": {"type": "STRING", "description": "Email subject line."},
        "body": {"type": "STRING", "description": "Email body content."},
        "analysis": {"type": "STRING", "description": "Analysis of the current trend."},
    },
    "required": ["isAppreciating", "subject", "body", "analysis"],
}


def build_prompt(
    current_rate: float,
    previous_rate: float,
    recent_history: Sequence[RateSample],
) -> str:
    trend = json.dumps([s.model_dump() for s in recent_history])
    return (
        "Analyze the SGD to EUR exchange rate.\n"
        f"Current Rate: 1 SGD = {current_rate} EUR\n"
        f"Previous Rate: 1 SGD = {previous_rate} EUR\n"
        f"Recent Trend: {trend}\n\n"
        "Is SGD appreciating significantly? If so, generate a professional "
        "email subject and body to notify a user. If not, explain why.\n"
        "Format your response as JSON."
    )


def parse_verdict(data: Any) -> AppreciationVerdict:
    """Extract the verdict from a generateContent response body."""
    try:
        parts = data["candidates"][0]["content"]["parts"]
        text = "".join(p.get("text", "") for p in parts)
    except (KeyError, IndexError, TypeError, AttributeError) as exc:
        raise AnalysisUnavailable("Response carried no candidate text") from exc

    if not text.strip():
        raise AnalysisUnavailable("Response text was empty")

    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise AnalysisUnavailable(f"Response was not JSON: {exc}") from exc

    try:
        return AppreciationVerdict.model_validate(payload)
    except ValidationError as exc:
        raise AnalysisUnavailable(f"Verdict failed schema validation: {exc}") from exc


class GeminiAnalyzer:
    """Calls ``models/<model>:generateContent`` with a JSON response schema."""

    def __init__(
        self,
        api_key: str,
        config: Config = DEFAULT_CONFIG,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        if not api_key:
            raise ValueError("Gemini API key is required")
        self._api_key = api_key
        self._cfg = config.analyzer
        self._retry = config.retry
        self._client = client or httpx.AsyncClient(timeout=self._cfg.timeout_seconds)
        logger.info("GeminiAnalyzer initialized (model=%s)", self._cfg.model)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.aclose()

    def _request_body(self, prompt: str) -> dict[str, Any]:
        return {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": RESPONSE_SCHEMA,
            },
        }

    async def analyze(
        self,
        current_rate: float,
        previous_rate: float,
        recent_history: Sequence[RateSample],
    ) -> AppreciationVerdict:
        prompt = build_prompt(current_rate, previous_rate, recent_history)
        url = f"{self._cfg.base_url.rstrip('/')}/models/{self._cfg.model}:generateContent"
        try:
            resp = await request_with_retry(
                self._client, "POST", url,
                headers={"x-goog-api-key": self._api_key},
                json=self._request_body(prompt),
                config=self._retry,
            )
            data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("Gemini analysis request failed: %s", exc)
            raise AnalysisUnavailable(str(exc)) from exc

        verdict = parse_verdict(data)
        logger.debug(
            "Verdict: appreciating=%s subject=%r", verdict.is_appreciating, verdict.subject,
        )
        return verdict
