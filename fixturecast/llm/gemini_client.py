"""
Google Gemini API client for structured match predictions.

Requests JSON output (responseMimeType application/json) and optionally a
response schema so the prediction parser gets a single JSON object back.
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional

import httpx

from fixturecast.config import get_settings

logger = logging.getLogger(__name__)

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"
DEFAULT_MODEL = "gemini-2.5-flash"


@dataclass
class GeminiResult:
    """Result from a Gemini API call."""

    status: str  # COMPLETED, ERROR, TIMEOUT
    text: str
    tokens_in: int
    tokens_out: int
    exec_ms: int
    model_version: str
    raw_output: dict
    error: Optional[str] = None
    finish_reason: Optional[str] = None  # STOP, MAX_TOKENS, SAFETY, RECITATION, OTHER
    status_code: Optional[int] = None
    retry_after: Optional[str] = None  # Raw Retry-After header on 429/503


class GeminiError(Exception):
    """Error from Gemini API."""

    pass


class GeminiClient:
    """Async client for Google Gemini API."""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        settings = get_settings()
        self.api_key = (settings.GEMINI_API_KEY or "").strip()
        self.model = settings.GEMINI_MODEL or DEFAULT_MODEL
        self.timeout = settings.GEMINI_TIMEOUT_SECONDS
        self.max_tokens = settings.GEMINI_MAX_TOKENS
        self.temperature = settings.GEMINI_TEMPERATURE
        self.top_p = settings.GEMINI_TOP_P

        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                headers={"Content-Type": "application/json"},
                transport=self._transport,
            )
        return self._client

    async def close(self):
        """Close HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def generate(
        self,
        prompt: str,
        response_schema: Optional[dict] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> GeminiResult:
        """
        Generate a JSON response using Gemini API.

        Args:
            prompt: The prompt to send to the model.
            response_schema: OpenAPI-style schema the output must follow.
            max_tokens: Override default max tokens.
            temperature: Override default temperature.

        Returns:
            GeminiResult with generated text and metadata. Transport and HTTP
            failures are reported through status/error, not raised.
        """
        if not self.api_key:
            raise GeminiError("GEMINI_API_KEY not configured")

        client = await self._get_client()
        url = f"{GEMINI_BASE_URL}/{self.model}:generateContent?key={self.api_key}"

        generation_config = {
            "maxOutputTokens": max_tokens or self.max_tokens,
            "temperature": temperature if temperature is not None else self.temperature,
            "topP": self.top_p,
            "responseMimeType": "application/json",
        }
        if response_schema:
            generation_config["responseSchema"] = response_schema

        payload = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": generation_config,
        }

        start_time = time.time()

        try:
            response = await client.post(url, json=payload)
        except httpx.TimeoutException:
            elapsed_ms = int((time.time() - start_time) * 1000)
            logger.error(f"Gemini API timeout after {elapsed_ms}ms")
            return self._failed("TIMEOUT", "Request timed out", elapsed_ms)
        except httpx.RequestError as e:
            elapsed_ms = int((time.time() - start_time) * 1000)
            logger.error(f"Gemini API request error: {e}")
            return self._failed("ERROR", f"{type(e).__name__}: {e}", elapsed_ms)

        elapsed_ms = int((time.time() - start_time) * 1000)

        if response.status_code != 200:
            error_text = response.text[:500]
            logger.error(f"Gemini API error {response.status_code}: {error_text}")
            return self._failed(
                "ERROR",
                f"HTTP {response.status_code}: {error_text}",
                elapsed_ms,
                status_code=response.status_code,
                retry_after=response.headers.get("Retry-After"),
            )

        try:
            data = response.json()
        except ValueError:
            return self._failed("ERROR", "Gemini returned a non-JSON envelope", elapsed_ms, status_code=200)

        text, finish_reason = self._extract_text_and_reason(data)
        usage = data.get("usageMetadata", {})

        if finish_reason and finish_reason != "STOP":
            logger.warning(
                f"Gemini finishReason={finish_reason} (tokens_out={usage.get('candidatesTokenCount', 0)}, "
                f"max_tokens={max_tokens or self.max_tokens}, text_len={len(text)})"
            )

        return GeminiResult(
            status="COMPLETED",
            text=text,
            tokens_in=usage.get("promptTokenCount", 0),
            tokens_out=usage.get("candidatesTokenCount", 0),
            exec_ms=elapsed_ms,
            model_version=data.get("modelVersion", self.model),
            raw_output=data,
            finish_reason=finish_reason,
            status_code=200,
        )

    def _failed(
        self,
        status: str,
        error: str,
        elapsed_ms: int,
        status_code: Optional[int] = None,
        retry_after: Optional[str] = None,
    ) -> GeminiResult:
        return GeminiResult(
            status=status,
            text="",
            tokens_in=0,
            tokens_out=0,
            exec_ms=elapsed_ms,
            model_version=self.model,
            raw_output={},
            error=error,
            status_code=status_code,
            retry_after=retry_after,
        )

    def _extract_text_and_reason(self, response: dict) -> tuple[str, Optional[str]]:
        """Extract text and finishReason from Gemini response."""
        candidates = response.get("candidates", [])
        if not candidates:
            return "", None

        candidate = candidates[0]
        finish_reason = candidate.get("finishReason")

        content = candidate.get("content", {})
        parts = content.get("parts", [])

        if not parts:
            return "", finish_reason

        return "".join(part.get("text", "") for part in parts), finish_reason
