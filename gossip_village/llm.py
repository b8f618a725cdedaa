"""LLM client - HTTP connection to the model that plays the oracle.

The oracle injects an LLM callable matching the protocol:

    async def __call__(self, stage: str, prompt: str) -> str: ...

`stage` identifies which oracle call is running ("village", "simulation",
"interrogation"). The implementation may use it for logging or routing;
the simplest implementation ignores it.

Two implementations are provided:

    HttpLLM   - real HTTP client, supports OpenAI-compatible chat backends
                 (DeepSeek, Moonshot, Ollama, ...) and KoboldCpp. Selected by
                 provider_format.
    EchoLLM   - returns the prompt back unchanged. Useful for smoke-testing
                 the wiring without a running model.

with_retry() wraps any oracle call with exponential backoff.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Literal, Protocol, TypeVar

import httpx

logger = logging.getLogger(__name__)

T = TypeVar("T")

SYSTEM_PROMPT = "You are a creative storyteller and game engine. You respond strictly in JSON."


# ---------------------------------------------------------------------------
# Protocol - every LLM implementation must match this signature
# ---------------------------------------------------------------------------

class LLM(Protocol):
    async def __call__(self, stage: str, prompt: str) -> str: ...


# ---------------------------------------------------------------------------
# HttpLLM - connects to a real backend
# ---------------------------------------------------------------------------

ProviderFormat = Literal["openai", "koboldcpp"]


class HttpLLM:
    """Async HTTP client for the oracle backend.

    Supported formats:
      "openai"     - POST /chat/completions  {"model": ..., "messages": [...],
                                              "response_format": {"type": "json_object"}}
                     Response: {"choices": [{"message": {"content": "..."}}]}
      "koboldcpp"  - POST /api/v1/generate   {"prompt": ...}
                     Response: {"results": [{"text": "..."}]}

    Args:
        provider_url:    Base URL of the backend, e.g. "https://api.deepseek.com".
        api_key:         Bearer token, or empty string if not required.
        provider_format: Wire format to use. Defaults to "openai".
        model:           Model identifier, used only by the openai format.
        timeout:         HTTP timeout in seconds. Defaults to 30.
        temperature:     Sampling temperature for the openai format.
    """

    def __init__(
        self,
        provider_url: str,
        api_key: str = "",
        provider_format: ProviderFormat = "openai",
        model: str = "",
        timeout: float = 30.0,
        temperature: float = 0.7,
    ) -> None:
        self._base_url = provider_url.rstrip("/")
        self._api_key = api_key
        self._format = provider_format
        self._model = model
        self._timeout = timeout
        self._temperature = temperature

    @classmethod
    def from_config(cls, connection: dict) -> HttpLLM:
        return cls(
            provider_url=connection["provider_url"],
            api_key=connection.get("api_key", ""),
            provider_format=connection.get("provider_format", "openai"),
            model=connection.get("model", ""),
            timeout=float(connection.get("timeout", 30.0)),
        )

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _build_request(self, prompt: str) -> tuple[str, dict]:
        """Return (url, body) for the configured format."""
        if self._format == "koboldcpp":
            return f"{self._base_url}/api/v1/generate", {"prompt": prompt}

        body: dict = {
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "response_format": {"type": "json_object"},
            "temperature": self._temperature,
        }
        if self._model:
            body["model"] = self._model
        return f"{self._base_url}/chat/completions", body

    def _parse_response(self, data: Any) -> str:
        """Extract the completion text from the response body."""
        if not isinstance(data, dict):
            raise LLMError("Unexpected response format from LLM backend")
        if self._format == "koboldcpp":
            results = data.get("results")
            if not isinstance(results, list) or not results or not isinstance(results[0], dict) \
                    or not isinstance(results[0].get("text"), str):
                raise LLMError("Unexpected response format from KoboldCpp backend")
            return results[0]["text"]

        choices = data.get("choices")
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            raise LLMError("Unexpected response format from OpenAI-compatible backend")
        message = choices[0].get("message")
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str) or not content:
            raise LLMError("OpenAI-compatible backend returned empty content")
        return content

    async def __call__(self, stage: str, prompt: str) -> str:
        url, body = self._build_request(prompt)
        logger.debug("llm call stage=%s url=%s prompt_len=%d", stage, url, len(prompt))

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(url, json=body, headers=self._headers())
                resp.raise_for_status()
        except httpx.ConnectError as e:
            raise LLMError(f"Cannot connect to LLM backend at {self._base_url}") from e
        except httpx.HTTPStatusError as e:
            raise LLMError(
                f"LLM backend returned HTTP {e.response.status_code}"
            ) from e
        except httpx.TimeoutException as e:
            raise LLMError(f"LLM backend timed out after {self._timeout}s") from e
        except httpx.HTTPError as e:
            raise LLMError(f"LLM request failed: {e!r}") from e

        try:
            data = resp.json()
        except ValueError as e:
            raise LLMError("LLM backend returned a non-JSON body") from e
        text = self._parse_response(data)
        logger.debug("llm response stage=%s len=%d", stage, len(text))
        return text


# ---------------------------------------------------------------------------
# EchoLLM - returns the prompt unchanged; useful for wiring smoke tests
# ---------------------------------------------------------------------------

class EchoLLM:
    """Returns the prompt text as-is. No network calls.

    The output won't be valid JSON, so every oracle call made through it
    fails validation. Tests use AsyncMock stubs when they need controlled
    responses.
    """

    async def __call__(self, stage: str, prompt: str) -> str:
        logger.debug("EchoLLM stage=%s prompt_len=%d", stage, len(prompt))
        return prompt


# ---------------------------------------------------------------------------
# Retry
# ---------------------------------------------------------------------------

async def with_retry(
    fn: Callable[[], Awaitable[T]],
    *,
    retries: int = 3,
    delay: float = 1.0,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
) -> T:
    """Run fn, retrying up to `retries` attempts with exponential backoff.

    Waits delay, 2*delay, 4*delay, ... between attempts and re-raises the
    last error once attempts are exhausted.
    """
    attempts = max(1, retries)
    for attempt in range(attempts):
        try:
            return await fn()
        except retry_on as e:
            if attempt == attempts - 1:
                raise
            logger.warning("attempt %d/%d failed: %s", attempt + 1, attempts, e)
            await asyncio.sleep(delay * (2 ** attempt))
    raise AssertionError("unreachable")


# ---------------------------------------------------------------------------
# LLMError - raised by HttpLLM for all connection and protocol failures
# ---------------------------------------------------------------------------

class LLMError(RuntimeError):
    """Raised when the LLM backend cannot be reached or returns an error."""
