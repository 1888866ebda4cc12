"""Tests for ollama_gateway.provider — the OpenAI-compatible upstream."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from ollama_gateway.config import Settings
from ollama_gateway.errors import StreamAborted, UpstreamUnavailable
from ollama_gateway.provider import OpenAIProvider, StreamEvent


def chunk(content=None, finish_reason=None):
    delta = SimpleNamespace(content=content)
    return SimpleNamespace(choices=[SimpleNamespace(delta=delta, finish_reason=finish_reason)])


class FakeStream:
    def __init__(self, chunks, error=None):
        self._chunks = chunks
        self._error = error
        self.closed = False

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for item in self._chunks:
            yield item
        if self._error is not None:
            raise self._error

    async def close(self):
        self.closed = True


def provider_with(create=None, list_models=None) -> OpenAIProvider:
    provider = OpenAIProvider(Settings(openai_api_key="sk-test"))
    client = MagicMock()
    client.chat.completions.create = create or AsyncMock()
    client.models.list = list_models or AsyncMock()
    provider._client = client
    return provider


@pytest.mark.asyncio
async def test_initialize_sets_openrouter_headers():
    settings = Settings(openai_api_key="sk-test", x_title="Test Proxy")
    provider = OpenAIProvider(settings)
    await provider.initialize()
    try:
        assert str(provider.client.base_url).startswith(settings.openai_base_url.rstrip("/"))
    finally:
        await provider.shutdown()
    assert provider._client is None


@pytest.mark.asyncio
async def test_list_models():
    page = SimpleNamespace(data=[SimpleNamespace(id="a/one"), SimpleNamespace(id="b/two")])
    provider = provider_with(list_models=AsyncMock(return_value=page))
    assert await provider.list_models() == ["a/one", "b/two"]


@pytest.mark.asyncio
async def test_list_models_failure():
    provider = provider_with(list_models=AsyncMock(side_effect=httpx.ConnectError("refused")))
    with pytest.raises(UpstreamUnavailable, match="refused"):
        await provider.list_models()


@pytest.mark.asyncio
async def test_chat():
    message = SimpleNamespace(content="pong")
    completion = SimpleNamespace(choices=[SimpleNamespace(message=message, finish_reason="stop")])
    create = AsyncMock(return_value=completion)
    provider = provider_with(create=create)

    result = await provider.chat([{"role": "user", "content": "ping"}], "openai/gpt-4o")

    assert result.content == "pong"
    assert result.finish_reason == "stop"
    create.assert_awaited_once_with(
        model="openai/gpt-4o",
        messages=[{"role": "user", "content": "ping"}],
        stream=False,
    )


@pytest.mark.asyncio
async def test_chat_stream_events_and_close():
    stream = FakeStream([
        chunk("Hel"),
        SimpleNamespace(choices=[]),
        chunk(None, "stop"),
    ])
    provider = provider_with(create=AsyncMock(return_value=stream))

    async with provider.chat_stream([], "m") as events:
        received = [event async for event in events]

    assert received == [StreamEvent("Hel", None), StreamEvent("", "stop")]
    assert stream.closed


@pytest.mark.asyncio
async def test_chat_stream_mid_stream_error():
    stream = FakeStream([chunk("a")], error=httpx.ReadError("reset"))
    provider = provider_with(create=AsyncMock(return_value=stream))

    with pytest.raises(StreamAborted, match="reset"):
        async with provider.chat_stream([], "m") as events:
            async for _ in events:
                pass
    assert stream.closed


@pytest.mark.asyncio
async def test_chat_stream_open_failure():
    provider = provider_with(create=AsyncMock(side_effect=httpx.ConnectError("refused")))
    with pytest.raises(UpstreamUnavailable):
        async with provider.chat_stream([], "m"):
            pass
