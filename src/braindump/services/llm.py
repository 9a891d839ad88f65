"""Gemini client and call throttle for braindump analysis."""

import asyncio
import json
import time
from typing import Any, Awaitable, Callable, Optional

import httpx

from braindump.utils.logging import get_logger

logger = get_logger(__name__)

GEMINI_API_URL = "https://generativelanguage.googleapis.com/v1beta/models"


class LLMError(Exception):
    """Expected model-call failure; callers fall back to heuristics."""

    def __init__(self, message: str, reason: str = "error"):
        super().__init__(message)
        self.reason = reason


class RateLimiter:
    """Cooperative throttle enforcing a minimum spacing between calls.

    The next free slot is reserved under a lock, and the wait for that slot
    happens after the lock is released.
    """

    def __init__(
        self,
        min_interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """Initialize throttle.

        Args:
            min_interval: Minimum seconds between two calls
            clock: Monotonic clock (injectable for tests)
            sleep: Async sleep function (injectable for tests)
        """
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._next_slot: Optional[float] = None
        self._lock = asyncio.Lock()

    async def wait(self) -> float:
        """Suspend until the caller may issue a call.

        Returns:
            Seconds waited
        """
        async with self._lock:
            now = self._clock()
            slot = now if self._next_slot is None else max(now, self._next_slot)
            self._next_slot = slot + self.min_interval
        delay = slot - now
        if delay > 0:
            logger.info(f"Rate limiting: waiting {delay:.2f}s before model call")
            await self._sleep(delay)
        return delay


def strip_code_fences(text: str) -> str:
    """Remove a surrounding markdown code fence (``` or ```json) if present."""
    text = text.strip()
    if text.startswith("```"):
        text = text[3:]
        if text.lower().startswith("json"):
            text = text[4:]
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()


def extract_text(payload: Any) -> str:
    """Pull candidates[0].content.parts[0].text out of a generateContent response.

    Raises:
        LLMError: If the envelope does not have the expected shape
    """
    try:
        text = payload["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError) as e:
        raise LLMError("No content generated from Gemini", reason="empty") from e
    if not isinstance(text, str) or not text.strip():
        raise LLMError("No content generated from Gemini", reason="empty")
    return text


class GeminiClient:
    """Async client for Gemini generateContent returning parsed JSON."""

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-1.5-flash-latest",
        temperature: float = 0.4,
        max_output_tokens: int = 2048,
        timeout: float = 10.0,
        rate_limiter: Optional[RateLimiter] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize Gemini client.

        Args:
            api_key: Gemini API key
            model: Model name (e.g., gemini-1.5-flash-latest)
            temperature: Sampling temperature
            max_output_tokens: Upper bound on generated tokens
            timeout: Hard client-side deadline for one call, in seconds
            rate_limiter: Shared throttle (default: 2 second spacing)
            transport: Optional httpx transport (used by tests)
        """
        self.api_key = api_key
        self.model = model
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self.timeout = timeout
        self.rate_limiter = rate_limiter or RateLimiter(2.0)
        self.http_client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def generate_json(self, prompt: str) -> Any:
        """Send one prompt and parse the reply as JSON.

        Args:
            prompt: Full prompt text

        Returns:
            Parsed JSON value

        Raises:
            LLMError: On non-2xx, timeout, transport error, missing text, or bad JSON
        """
        await self.rate_limiter.wait()

        try:
            response = await asyncio.wait_for(self._post(prompt), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise LLMError(f"Gemini call timed out after {self.timeout}s", reason="timeout") from e
        except httpx.TimeoutException as e:
            raise LLMError(f"Gemini call timed out: {e}", reason="timeout") from e
        except httpx.HTTPError as e:
            raise LLMError(f"Gemini transport error: {e}", reason="transport") from e

        if response.status_code == 429:
            raise LLMError("Gemini rate limited (HTTP 429)", reason="rate_limited")
        if not response.is_success:
            raise LLMError(f"Gemini HTTP {response.status_code}", reason="http_error")

        try:
            payload = response.json()
        except ValueError as e:
            raise LLMError(f"Gemini returned a non-JSON envelope: {e}", reason="invalid_json") from e

        text = strip_code_fences(extract_text(payload))
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            logger.error(f"Gemini returned invalid JSON: {e}")
            logger.debug(f"Raw Gemini text: {text}")
            raise LLMError(f"Invalid JSON: {e}", reason="invalid_json") from e

    async def _post(self, prompt: str) -> httpx.Response:
        return await self.http_client.post(
            f"{GEMINI_API_URL}/{self.model}:generateContent",
            params={"key": self.api_key},
            json={
                "contents": [{"parts": [{"text": prompt}]}],
                "generationConfig": {
                    "temperature": self.temperature,
                    "maxOutputTokens": self.max_output_tokens,
                },
            },
        )

    async def close(self) -> None:
        """Close HTTP client.

        Should be called during graceful shutdown.
        """
        await self.http_client.aclose()
        logger.info("Closed GeminiClient HTTP client")
