"""Completion service boundary and its OpenRouter implementation."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
import logging
from typing import Any, Protocol

import openai
from openai import AsyncOpenAI

from .config import OPENROUTER_BASE_URL
from .exceptions import (
    CompletionAuthError,
    CompletionConnectionError,
    CompletionError,
    EmptyResponseError,
    MissingAPIKeyError,
    ModelNotFoundError,
)
from .history import Entry

LOGGER = logging.getLogger(__name__)


class CompletionClient(Protocol):
    """Produce one assistant reply for a conversation snapshot.

    Implementations must let task cancellation propagate promptly and raise
    :class:`CompletionError` subclasses for service failures.
    """

    async def complete(self, messages: Sequence[Entry], model: str) -> str: ...


class OpenRouterClient:
    """Chat-completions client for the OpenRouter API."""

    def __init__(
        self,
        api_key: str,
        base_url: str = OPENROUTER_BASE_URL,
        max_tokens: int = 1024,
        temperature: float = 0.7,
        client: Any | None = None,
    ) -> None:
        self.base_url = base_url
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.has_api_key = bool(api_key) or client is not None

        if client is not None:
            self._client = client
        elif api_key:
            # A single attempt per turn; the coordinator owns timeouts.
            self._client = AsyncOpenAI(api_key=api_key, base_url=base_url, max_retries=0)
        else:
            self._client = None

    async def complete(self, messages: Sequence[Entry], model: str) -> str:
        """Send ``messages`` and return the first choice's text."""
        if self._client is None:
            raise MissingAPIKeyError(
                "No OpenRouter API key configured. Run /config to set one."
            )

        LOGGER.info(
            "completion.request.start",
            extra={
                "event": "completion.request.start",
                "model": model,
                "message_count": len(messages),
            },
        )
        try:
            response = await self._client.chat.completions.create(
                model=model,
                messages=[entry.as_message() for entry in messages],
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
        except asyncio.CancelledError:
            LOGGER.info(
                "completion.request.cancelled",
                extra={"event": "completion.request.cancelled", "model": model},
            )
            raise
        except Exception as exc:  # noqa: BLE001 - external API can fail in many ways.
            mapped = self._map_exception(exc, model)
            LOGGER.warning(
                "completion.request.failed",
                extra={
                    "event": "completion.request.failed",
                    "error_type": mapped.__class__.__name__,
                },
            )
            raise mapped from exc

        choices = getattr(response, "choices", None) or []
        if not choices:
            raise EmptyResponseError("No response received from API")

        message = getattr(choices[0], "message", None)
        content = getattr(message, "content", None)
        LOGGER.info(
            "completion.request.complete",
            extra={"event": "completion.request.complete", "model": model},
        )
        return content if isinstance(content, str) else ""

    def _map_exception(self, exc: Exception, model: str) -> CompletionError:
        if isinstance(exc, CompletionError):
            return exc
        if isinstance(exc, openai.APIConnectionError):
            # APITimeoutError is a subclass of APIConnectionError.
            return CompletionConnectionError(
                f"Unable to connect to {self.base_url}: {exc}"
            )
        if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
            return CompletionAuthError(
                "The API key was rejected. Run /config to update it."
            )
        if isinstance(exc, openai.NotFoundError):
            return ModelNotFoundError(f"Model {model!r} was not found.")
        if isinstance(exc, openai.APIStatusError):
            return CompletionError(f"API error {exc.status_code}: {exc.message}")
        return CompletionError(str(exc) or exc.__class__.__name__)
