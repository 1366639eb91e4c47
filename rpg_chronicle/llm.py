"""Generation client — HTTP connection to a chat/text-completion backend.

Extractors call a generator matching the protocol:

    async def generate(self, prompt: GeneratorPrompt, settings: GeneratorSettings) -> str: ...
    def abort(self) -> None: ...

Failures come in two flavours. ``GeneratorAbortError`` means the caller's
cancel signal fired (or ``abort()`` was called); it is expected, never
retried and never logged as a failure. ``GeneratorError`` is everything
else and carries the underlying cause.

Three implementations are provided:

    HttpGenerator        — real HTTP client, supports OpenAI-compatible chat
                           completions and KoboldCpp. Selected by provider_format.
    EchoGenerator        — returns the last prompt message unchanged. Useful
                           for smoke-testing extraction wiring without a model.
    RateLimitedGenerator — wraps another generator, waits for a RateLimiter
                           slot before each call and records it on success.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Literal, Protocol

import httpx
from pydantic import BaseModel, ConfigDict

from .rate_limiter import RateLimiter, SlotWaitCancelled

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Prompt / settings
# ---------------------------------------------------------------------------

class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class GeneratorPrompt(BaseModel):
    messages: list[ChatMessage]
    name: str | None = None  # which extractor is asking; used for logging


class GeneratorSettings(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    max_tokens: int
    temperature: float = 0.5
    cancel: asyncio.Event | None = None


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class GeneratorAbortError(Exception):
    """Generation (or the wait before it) was cancelled by the caller."""


class GeneratorError(RuntimeError):
    """Raised when the backend cannot be reached or returns an error."""

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause


# ---------------------------------------------------------------------------
# Protocol: every generator implementation must match this signature
# ---------------------------------------------------------------------------

class Generator(Protocol):
    async def generate(self, prompt: GeneratorPrompt, settings: GeneratorSettings) -> str: ...

    def abort(self) -> None: ...


async def _race(request: asyncio.Future, signals: list[asyncio.Event]) -> Any:
    """Await ``request`` unless one of ``signals`` fires first."""
    if any(s.is_set() for s in signals):
        request.cancel()
        raise GeneratorAbortError()
    waiters = [asyncio.ensure_future(s.wait()) for s in signals]
    try:
        done, _ = await asyncio.wait({request, *waiters}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        request.cancel()
        raise
    finally:
        for waiter in waiters:
            waiter.cancel()
    if request not in done:
        request.cancel()
        raise GeneratorAbortError()
    return request.result()


# ---------------------------------------------------------------------------
# HttpGenerator: connects to a real backend
# ---------------------------------------------------------------------------

ProviderFormat = Literal["openai", "koboldcpp"]


class HttpGenerator:
    """Async HTTP client for generation backends.

    Supported formats:
      "openai"     — POST /v1/chat/completions  {"model", "messages", "max_tokens", "temperature"}
                     Response: {"choices": [{"message": {"content": "..."}}]}
      "koboldcpp"  — POST /api/v1/generate      {"prompt", "max_length", "temperature"}
                     Response: {"results": [{"text": "..."}]}

    Args:
        provider_url:    Base URL of the backend, e.g. "http://localhost:5001".
        api_key:         Bearer token, or empty string if not required.
        provider_format: Wire format to use. Defaults to "openai".
        model:           Model identifier, used only by the openai format.
        timeout:         HTTP timeout in seconds. Defaults to 120.
    """

    def __init__(
        self,
        provider_url: str,
        api_key: str = "",
        provider_format: ProviderFormat = "openai",
        model: str = "",
        timeout: float = 120.0,
    ) -> None:
        self._base_url = provider_url.rstrip("/")
        self._api_key = api_key
        self._format = provider_format
        self._model = model
        self._timeout = timeout
        self._abort_signal = asyncio.Event()

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _build_request(
        self, prompt: GeneratorPrompt, settings: GeneratorSettings
    ) -> tuple[str, dict]:
        """Return (url, body) for the configured format."""
        if self._format == "koboldcpp":
            text = "\n\n".join(
                f"{m.role.capitalize()}: {m.content}" for m in prompt.messages
            )
            body = {
                "prompt": f"{text}\n\nAssistant:",
                "max_length": settings.max_tokens,
                "temperature": settings.temperature,
            }
            return f"{self._base_url}/api/v1/generate", body

        body = {
            "messages": [m.model_dump() for m in prompt.messages],
            "max_tokens": settings.max_tokens,
            "temperature": settings.temperature,
        }
        if self._model:
            body["model"] = self._model
        return f"{self._base_url}/v1/chat/completions", body

    def _parse_response(self, data: dict) -> str:
        """Extract the completion text from the response body."""
        if self._format == "koboldcpp":
            try:
                return data["results"][0]["text"]
            except (KeyError, IndexError, TypeError) as e:
                raise GeneratorError("Unexpected response format from KoboldCpp backend", e) from e

        try:
            return data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise GeneratorError("Unexpected response format from OpenAI-compatible backend", e) from e

    async def _post(self, url: str, body: dict) -> dict:
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(url, json=body, headers=self._headers())
                resp.raise_for_status()
        except httpx.ConnectError as e:
            raise GeneratorError(f"Cannot connect to backend at {self._base_url}", e) from e
        except httpx.HTTPStatusError as e:
            raise GeneratorError(f"Backend returned HTTP {e.response.status_code}", e) from e
        except httpx.TimeoutException as e:
            raise GeneratorError(f"Backend timed out after {self._timeout}s", e) from e
        except httpx.HTTPError as e:
            raise GeneratorError(f"Request to backend failed: {e!r}", e) from e
        try:
            data = resp.json()
        except ValueError as e:
            raise GeneratorError("Backend returned invalid JSON", e) from e
        if not isinstance(data, dict):
            raise GeneratorError(f"Unexpected response format from backend: {type(data).__name__}")
        return data

    async def generate(self, prompt: GeneratorPrompt, settings: GeneratorSettings) -> str:
        url, body = self._build_request(prompt, settings)
        logger.debug("generate name=%s url=%s messages=%d", prompt.name, url, len(prompt.messages))

        signals = [self._abort_signal]
        if settings.cancel is not None:
            signals.append(settings.cancel)
        request = asyncio.ensure_future(self._post(url, body))
        try:
            data = await _race(request, signals)
        except GeneratorAbortError:
            logger.debug("generate name=%s aborted", prompt.name)
            raise

        text = self._parse_response(data)
        logger.debug("generate name=%s response_len=%d", prompt.name, len(text))
        return text

    def abort(self) -> None:
        """Abort every call currently in flight. Later calls are unaffected."""
        self._abort_signal.set()
        self._abort_signal = asyncio.Event()


# ---------------------------------------------------------------------------
# EchoGenerator: returns the last message; useful for wiring smoke tests
# ---------------------------------------------------------------------------

class EchoGenerator:
    """Returns the content of the last prompt message. No network calls."""

    async def generate(self, prompt: GeneratorPrompt, settings: GeneratorSettings) -> str:
        if settings.cancel is not None and settings.cancel.is_set():
            raise GeneratorAbortError()
        logger.debug("EchoGenerator name=%s", prompt.name)
        return prompt.messages[-1].content if prompt.messages else ""

    def abort(self) -> None:
        pass


# ---------------------------------------------------------------------------
# RateLimitedGenerator: serializes calls through a RateLimiter
# ---------------------------------------------------------------------------

class RateLimitedGenerator:
    def __init__(self, inner: Generator, limiter: RateLimiter) -> None:
        self.inner = inner
        self.limiter = limiter

    async def generate(self, prompt: GeneratorPrompt, settings: GeneratorSettings) -> str:
        try:
            await self.limiter.wait_for_slot(settings.cancel)
        except SlotWaitCancelled:
            raise GeneratorAbortError() from None
        text = await self.inner.generate(prompt, settings)
        self.limiter.record_request()
        return text

    def abort(self) -> None:
        self.inner.abort()
