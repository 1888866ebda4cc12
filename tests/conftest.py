"""Shared fakes for the gateway tests."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from httpx import ASGITransport, AsyncClient

from ollama_gateway.config import Settings
from ollama_gateway.errors import StreamAborted
from ollama_gateway.provider import Completion, StreamEvent, UpstreamProvider
from ollama_gateway.server import create_app


class FakeProvider(UpstreamProvider):
    """In-memory upstream that replays a fixed chunk sequence."""

    def __init__(
        self,
        models: Optional[list[str]] = None,
        chunks: Optional[list[StreamEvent]] = None,
        fail_after: Optional[int] = None,
        list_error: Optional[Exception] = None,
        open_error: Optional[Exception] = None,
        completion: Optional[Completion] = None,
    ):
        self.provider_name = "fake"
        self.models = list(models or [])
        self.chunks = list(chunks or [])
        self.fail_after = fail_after
        self.list_error = list_error
        self.open_error = open_error
        self.completion = completion or Completion(content="Hello there", finish_reason="stop")
        self.list_calls = 0
        self.requests: list[tuple[str, list[dict]]] = []
        self.streams_opened = 0
        self.streams_closed = 0

    async def list_models(self) -> list[str]:
        self.list_calls += 1
        if self.list_error is not None:
            raise self.list_error
        return list(self.models)

    async def chat(self, messages: list[dict], model: str) -> Completion:
        self.requests.append((model, messages))
        return self.completion

    @asynccontextmanager
    async def chat_stream(self, messages: list[dict], model: str):
        if self.open_error is not None:
            raise self.open_error
        self.requests.append((model, messages))
        self.streams_opened += 1
        try:
            yield self._events()
        finally:
            self.streams_closed += 1

    async def _events(self):
        for index, event in enumerate(self.chunks):
            if index == self.fail_after:
                raise StreamAborted("upstream connection reset")
            yield event
        if self.fail_after is not None and self.fail_after >= len(self.chunks):
            raise StreamAborted("upstream connection reset")


async def replay(*events, error: Optional[Exception] = None):
    """Async iterator over events, optionally raising at the end."""
    for event in events:
        yield event
    if error is not None:
        raise error


def fixed_clock() -> str:
    return "2024-01-01T00:00:00+00:00"


@asynccontextmanager
async def gateway_client(provider: FakeProvider, model_filter: frozenset[str] = frozenset()):
    """Run the app lifespan around an httpx client bound to it."""
    settings = Settings(pull_step_delay=0, version="0.1.0")
    app = create_app(lambda: provider, settings=settings, model_filter=model_filter)
    async with app.router.lifespan_context(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client
