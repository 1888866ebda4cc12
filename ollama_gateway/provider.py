"""
Upstream chat-completion providers.

The gateway talks to the backend only through UpstreamProvider. OpenAIProvider
is the implementation for OpenAI-compatible services (OpenRouter by default).
"""

import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

import httpx
import openai
from openai import AsyncOpenAI

from .config import Settings
from .errors import StreamAborted, UpstreamUnavailable


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StreamEvent:
    """One incremental unit from the backend stream."""
    text: str = ""
    finish_reason: Optional[str] = None


@dataclass
class Completion:
    """Result from a non-streaming chat completion."""
    content: str
    finish_reason: Optional[str] = None


class UpstreamProvider(ABC):
    """
    Abstract interface for the chat-completion backend.

    Implementations should:
    1. Handle their own client lifecycle in initialize/shutdown
    2. Raise UpstreamUnavailable for failures before any output exists
    3. Release the upstream response on every exit from chat_stream
    """

    provider_name: str

    async def initialize(self) -> None:
        """Called on application startup."""

    async def shutdown(self) -> None:
        """Called on application shutdown."""

    @abstractmethod
    async def list_models(self) -> list[str]:
        """Return every upstream model identifier, in upstream order."""

    @abstractmethod
    async def chat(self, messages: list[dict], model: str) -> Completion:
        """Perform a single, non-streaming chat completion."""

    @abstractmethod
    def chat_stream(self, messages: list[dict], model: str):
        """
        Open a streaming chat completion.

        Returns an async context manager yielding an async iterator of
        StreamEvent. The iterator ends at the backend's end-of-stream signal
        and raises StreamAborted on any other backend failure.
        """


class OpenAIProvider(UpstreamProvider):
    """Provider for OpenAI-compatible chat completion APIs."""

    def __init__(self, settings: Settings):
        self.provider_name = "openai"
        self._settings = settings
        self._client: Optional[AsyncOpenAI] = None

    async def initialize(self) -> None:
        """Initialize the OpenAI client."""
        if not self._settings.openai_api_key:
            logger.error("OPENAI_API_KEY not set!")

        http_client = httpx.AsyncClient(
            timeout=self._settings.upstream_timeout,
            headers={
                "HTTP-Referer": self._settings.http_referer,
                "X-Title": self._settings.x_title,
            },
        )
        self._client = AsyncOpenAI(
            api_key=self._settings.openai_api_key,
            base_url=self._settings.openai_base_url,
            http_client=http_client,
        )
        logger.info("OpenAI client initialized: %s", self._settings.openai_base_url)

    async def shutdown(self) -> None:
        """Clean up resources."""
        if self._client:
            await self._client.close()
            self._client = None

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            raise UpstreamUnavailable("OpenAI client not initialized")
        return self._client

    async def list_models(self) -> list[str]:
        try:
            page = await self.client.models.list()
        except (openai.OpenAIError, httpx.HTTPError) as e:
            logger.error("Error getting models: %s", e)
            raise UpstreamUnavailable(str(e)) from e
        return [model.id for model in page.data]

    async def chat(self, messages: list[dict], model: str) -> Completion:
        try:
            completion = await self.client.chat.completions.create(
                model=model,
                messages=messages,
                stream=False,
            )
        except (openai.OpenAIError, httpx.HTTPError) as e:
            logger.error("Chat error: %s", e)
            raise UpstreamUnavailable(str(e)) from e

        if not completion.choices:
            return Completion(content="")
        choice = completion.choices[0]
        return Completion(
            content=choice.message.content or "",
            finish_reason=choice.finish_reason,
        )

    @asynccontextmanager
    async def chat_stream(self, messages: list[dict], model: str):
        try:
            stream = await self.client.chat.completions.create(
                model=model,
                messages=messages,
                stream=True,
            )
        except (openai.OpenAIError, httpx.HTTPError) as e:
            logger.error("Failed to create stream: %s", e)
            raise UpstreamUnavailable(str(e)) from e

        try:
            yield self._events(stream)
        finally:
            await stream.close()

    async def _events(self, stream) -> AsyncIterator[StreamEvent]:
        try:
            async for chunk in stream:
                # Usage-only chunks carry no choices
                if not chunk.choices:
                    continue
                choice = chunk.choices[0]
                text = choice.delta.content if choice.delta else None
                yield StreamEvent(text=text or "", finish_reason=choice.finish_reason)
        except (openai.OpenAIError, httpx.HTTPError) as e:
            raise StreamAborted(str(e)) from e
