"""
Transports to the external text scorer. Each one takes a prompt and returns
the model's raw text; parsing happens in scoring_parser.
"""

from typing import Optional

import httpx

from examsuite.config import ScorerSettings
from examsuite.services.llm import LlmChat
from examsuite.services.scoring_parser import coerce_raw_output, ScoreParseError

# Deterministic sampling for repeatable scores
SAMPLING_PARAMETERS = {
    "temperature": 0,
    "top_p": 1,
    "top_k": 1,
    "max_new_tokens": 200,
}


class ScoringTransportError(Exception):
    """The scorer could not be reached or answered with an error status."""


class HttpTextScorer:
    """Generic text-generation endpoint (`{"inputs": prompt, "parameters": {...}}`)."""

    name = "http"

    def __init__(self, api_url: str, api_key: str, timeout: float = 15.0,
                 client: Optional[httpx.AsyncClient] = None):
        self.api_url = api_url
        self.api_key = api_key
        self.timeout = timeout
        self._client = client

    async def complete(self, prompt: str) -> str:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        body = {"inputs": prompt, "parameters": SAMPLING_PARAMETERS}
        try:
            if self._client is not None:
                response = await self._client.post(self.api_url, json=body, headers=headers, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(self.api_url, json=body, headers=headers)
        except httpx.TimeoutException as e:
            raise ScoringTransportError(f"Scorer timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise ScoringTransportError(f"Scorer unreachable: {e}") from e

        if response.status_code == 401:
            raise ScoringTransportError("Scorer rejected credentials (401)")
        if response.status_code == 429:
            raise ScoringTransportError("Scorer rate limit exceeded (429)")
        if not 200 <= response.status_code < 300:
            raise ScoringTransportError(f"Scorer returned HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError:
            payload = response.text
        return coerce_raw_output(payload)


class GeminiTextScorer:
    """Google Gemini through the generativeai SDK."""

    name = "gemini"

    def __init__(self, api_key: str, model: str = "gemini-2.5-flash"):
        self._chat = (
            LlmChat(api_key=api_key, system_message="You are a precise, consistent exam evaluator.")
            .with_model(model)
            .with_params(temperature=0, top_p=1, top_k=1, max_output_tokens=200)
        )

    async def complete(self, prompt: str) -> str:
        try:
            text = await self._chat.send_message(prompt)
        except Exception as e:
            # The SDK raises a wide family of google.api_core errors
            raise ScoringTransportError(f"Gemini request failed: {e}") from e
        if not text:
            raise ScoreParseError("Empty response from Gemini")
        return text


def build_transport(settings: ScorerSettings):
    """Pick the configured transport, or None when no scorer is configured."""
    if settings.provider == "http":
        return HttpTextScorer(settings.api_url, settings.api_key, timeout=settings.timeout_seconds)
    if settings.provider == "gemini":
        return GeminiTextScorer(settings.gemini_api_key, model=settings.model)
    return None
