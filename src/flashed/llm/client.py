"""
Async wrappers around OpenAI-compatible APIs and Google Gemini.

Both clients expose the same two calls: a single-shot `complete` that returns
the full text, and `stream`, an async iterator of text chunks in arrival order.
"""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Optional, Protocol, Tuple

import openai
from openai import AsyncOpenAI

from .settings import LLMSettings
from .usage import log_usage

logger = logging.getLogger(__name__)


class CompletionError(RuntimeError):
    """
    Raised when the completion service fails.

    Attributes:
        rate_limited: The service rejected the call for rate-limit reasons.
        retryable: Repeating the identical call may succeed.
    """

    def __init__(self, message: str, *, rate_limited: bool = False, retryable: bool = True) -> None:
        super().__init__(message)
        self.message = message
        self.rate_limited = rate_limited
        self.retryable = retryable


@dataclass(frozen=True)
class CompletionRequest:
    """
    One prompt for the completion service.

    Attributes:
        text: Prompt text.
        image_data_url: Optional inline image as a `data:<mime>;base64,<payload>` URL.
        temperature: Overrides the provider default when set.
    """
    text: str
    image_data_url: Optional[str] = None
    temperature: Optional[float] = None


class CompletionClient(Protocol):
    """Anything that can answer a CompletionRequest, whole or streamed."""

    async def complete(self, request: CompletionRequest) -> str:
        ...

    def stream(self, request: CompletionRequest) -> AsyncIterator[str]:
        ...


def build_completion_client(settings: LLMSettings) -> CompletionClient:
    """Dispatch to the Gemini SDK or the OpenAI-compatible client based on settings."""
    if settings.is_google:
        return GeminiClient(settings)
    return OpenAICompatibleClient(settings)


def parse_data_url(data_url: str) -> Tuple[str, str]:
    """
    Split a data URL into (mime_type, base64_payload).

    Falls back to image/png when the header carries no mime type.
    """
    header, sep, payload = data_url.partition(",")
    if not sep:
        raise ValueError("Invalid data URL: missing ',' separator")
    mime = header[5:] if header.startswith("data:") else header
    mime = mime.split(";", 1)[0] or "image/png"
    return mime, payload


class OpenAICompatibleClient:
    """Chat Completions client for OpenAI and OpenRouter."""

    def __init__(self, settings: LLMSettings, client: Optional[AsyncOpenAI] = None) -> None:
        self.settings = settings
        # Retries are applied by the scheduler, not the SDK.
        self._client = client or AsyncOpenAI(
            api_key=settings.api_key,
            base_url=settings.base_url,
            timeout=settings.timeout,
            max_retries=0,
        )

    async def complete(self, request: CompletionRequest) -> str:
        try:
            response = await self._client.chat.completions.create(**self._request_kwargs(request))
        except openai.APIError as exc:
            raise _translate_openai_error(exc) from exc
        log_usage(self.settings.model, getattr(response, "usage", None))
        message = response.choices[0].message if response.choices else None
        text = _coerce_message_content(getattr(message, "content", None))
        if not text:
            choice = response.choices[0] if response.choices else None
            logger.warning(
                "LLM response for model %s contained no usable text (finish_reason=%s).",
                self.settings.model,
                getattr(choice, "finish_reason", None),
            )
        return text

    async def stream(self, request: CompletionRequest) -> AsyncIterator[str]:
        kwargs = self._request_kwargs(request)
        kwargs["stream"] = True
        kwargs["stream_options"] = {"include_usage": True}
        try:
            response = await self._client.chat.completions.create(**kwargs)
            usage = None
            async for chunk in response:
                if getattr(chunk, "usage", None):
                    usage = chunk.usage
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta
                content = getattr(delta, "content", None)
                if content:
                    yield content
        except openai.APIError as exc:
            raise _translate_openai_error(exc) from exc
        log_usage(self.settings.model, usage, label="LLM stream usage")

    def _request_kwargs(self, request: CompletionRequest) -> dict:
        if request.image_data_url:
            content: Any = [
                {"type": "text", "text": request.text},
                {"type": "image_url", "image_url": {"url": request.image_data_url}},
            ]
        else:
            content = request.text
        return {
            "model": self.settings.model,
            "messages": [{"role": "user", "content": content}],
            "temperature": request.temperature if request.temperature is not None else self.settings.temperature,
            "max_tokens": self.settings.max_tokens,
        }


class GeminiClient:
    """Client for the Google Gemini SDK (async surface)."""

    def __init__(self, settings: LLMSettings, client: Any = None) -> None:
        self.settings = settings
        self._client = client

    def _sdk(self) -> Any:
        if self._client is None:
            from google import genai
            from google.genai import types

            self._client = genai.Client(
                api_key=self.settings.api_key,
                http_options=types.HttpOptions(timeout=int(self.settings.timeout * 1000)),
            )
        return self._client

    async def complete(self, request: CompletionRequest) -> str:
        from google.genai import errors

        try:
            response = await self._sdk().aio.models.generate_content(
                model=self.settings.model,
                contents=self._contents(request),
                config=self._config(request),
            )
        except errors.APIError as exc:
            raise _translate_gemini_error(exc) from exc
        log_usage(self.settings.model, getattr(response, "usage_metadata", None))
        return (getattr(response, "text", None) or "").strip()

    async def stream(self, request: CompletionRequest) -> AsyncIterator[str]:
        from google.genai import errors

        usage = None
        try:
            response = await self._sdk().aio.models.generate_content_stream(
                model=self.settings.model,
                contents=self._contents(request),
                config=self._config(request),
            )
            async for chunk in response:
                if getattr(chunk, "usage_metadata", None):
                    usage = chunk.usage_metadata
                text = getattr(chunk, "text", None)
                if text:
                    yield text
        except errors.APIError as exc:
            raise _translate_gemini_error(exc) from exc
        log_usage(self.settings.model, usage, label="LLM stream usage")

    def _config(self, request: CompletionRequest) -> Any:
        from google.genai import types

        return types.GenerateContentConfig(
            temperature=request.temperature if request.temperature is not None else self.settings.temperature,
            max_output_tokens=self.settings.max_tokens,
        )

    def _contents(self, request: CompletionRequest) -> list:
        from google.genai import types

        parts: list = [request.text]
        if request.image_data_url:
            mime_type, payload = parse_data_url(request.image_data_url)
            parts.append(types.Part.from_bytes(data=base64.b64decode(payload), mime_type=mime_type))
        return parts


def _translate_openai_error(exc: openai.APIError) -> CompletionError:
    if isinstance(exc, openai.RateLimitError):
        return CompletionError(f"Rate limit hit: {exc.message}", rate_limited=True)
    if isinstance(exc, openai.APITimeoutError):
        return CompletionError("Request timed out")
    if isinstance(exc, openai.APIConnectionError):
        return CompletionError(f"Connection error: {exc.message}")
    if isinstance(exc, openai.APIStatusError):
        return CompletionError(
            f"Completion service error {exc.status_code}: {exc.message}",
            retryable=exc.status_code >= 500,
        )
    return CompletionError(str(exc.message or exc), retryable=False)


def _translate_gemini_error(exc: Any) -> CompletionError:
    code = getattr(exc, "code", None) or 0
    message = getattr(exc, "message", None) or str(exc)
    if code == 429:
        return CompletionError(f"Rate limit hit: {message}", rate_limited=True)
    return CompletionError(f"Gemini error {code}: {message}", retryable=code >= 500)


def _coerce_message_content(content: Any) -> str:
    """
    Normalize the various content payloads returned by OpenAI-compatible endpoints.

    Handles plain strings, structured content-part lists, and objects that expose a
    `.text` attribute.
    """
    if not content:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, (list, tuple)):
        parts: list[str] = []
        for item in content:
            if not item:
                continue
            if isinstance(item, str):
                parts.append(item)
                continue
            text_value = getattr(item, "text", None)
            if not text_value and isinstance(item, dict):
                text_value = item.get("text")
            if text_value:
                parts.append(str(text_value))
        return "\n".join(parts).strip()
    text_attr = getattr(content, "text", None)
    if text_attr:
        return str(text_attr)
    return str(content)
