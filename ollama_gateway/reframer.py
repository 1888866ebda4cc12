"""
Stream reframing: backend completion chunks to Ollama NDJSON events.

StreamReframer consumes StreamEvents and produces ReframedEvents:

  STREAMING -> DRAINING -> DONE      backend reached end-of-stream
  STREAMING -> ABORTED               backend error or client write failure

Every non-empty text delta becomes one DeltaEvent, in backend order. Finish
reasons are remembered, never emitted on their own. After end-of-stream
exactly one TerminalEvent follows. A backend error produces one ErrorEvent
and no TerminalEvent, so clients must also treat a connection closed without
`done: true` as a failure.
"""
import json
import logging
from contextlib import aclosing
from dataclasses import dataclass, field
from enum import Enum
from typing import AsyncIterator, Callable, Optional, Protocol, Union

from .models import utc_timestamp
from .provider import StreamEvent

logger = logging.getLogger(__name__)

DEFAULT_FINISH_REASON = "stop"

USAGE_COUNTERS = (
    "total_duration",
    "load_duration",
    "prompt_eval_count",
    "prompt_eval_duration",
    "eval_count",
    "eval_duration",
)


class ReframeState(str, Enum):
    STREAMING = "streaming"
    DRAINING = "draining"
    DONE = "done"
    ABORTED = "aborted"


class Shape(str, Enum):
    """Which Ollama endpoint the frames are rendered for."""
    GENERATE = "generate"
    CHAT = "chat"


def zero_usage() -> dict[str, int]:
    return {name: 0 for name in USAGE_COUNTERS}


@dataclass(frozen=True)
class DeltaEvent:
    model: str
    created_at: str
    text: str
    terminal = False


@dataclass(frozen=True)
class TerminalEvent:
    model: str
    created_at: str
    finish_reason: str
    usage: dict[str, int] = field(default_factory=zero_usage)
    terminal = True


@dataclass(frozen=True)
class ErrorEvent:
    message: str
    terminal = False


ReframedEvent = Union[DeltaEvent, TerminalEvent, ErrorEvent]


class EventWriter(Protocol):
    """Sink accepting one reframed event at a time."""

    async def write(self, event: ReframedEvent) -> None:
        ...


class StreamReframer:
    """Reframes one backend stream for one request."""

    def __init__(self, model: str, clock: Callable[[], str] = utc_timestamp):
        self.model = model
        self.state = ReframeState.STREAMING
        self.last_finish_reason: Optional[str] = None
        self.error: Optional[Exception] = None
        self._clock = clock

    async def reframe(self, events: AsyncIterator[StreamEvent]) -> AsyncIterator[ReframedEvent]:
        """
        Yield reframed events for a backend event stream.

        Closing the generator early (client went away) leaves the reframer
        ABORTED.
        """
        iterator = events.__aiter__()
        try:
            while True:
                try:
                    event = await iterator.__anext__()
                except StopAsyncIteration:
                    break
                except Exception as e:
                    logger.error("Backend stream error: %s", e)
                    self.error = e
                    yield ErrorEvent(f"Stream error: {e}")
                    self.state = ReframeState.ABORTED
                    return

                if event.finish_reason:
                    self.last_finish_reason = event.finish_reason
                if event.text:
                    yield DeltaEvent(model=self.model, created_at=self._clock(), text=event.text)

            self.state = ReframeState.DRAINING
            yield TerminalEvent(
                model=self.model,
                created_at=self._clock(),
                finish_reason=self.last_finish_reason or DEFAULT_FINISH_REASON,
            )
            self.state = ReframeState.DONE
        finally:
            if self.state is not ReframeState.DONE:
                self.state = ReframeState.ABORTED

    async def run(self, events: AsyncIterator[StreamEvent], writer: EventWriter) -> ReframeState:
        """
        Write every reframed event to writer until DONE or ABORTED.

        A failing write stops the stream at once; nothing is retried.
        """
        async with aclosing(self.reframe(events)) as frames:
            async for frame in frames:
                try:
                    await writer.write(frame)
                except Exception as e:
                    logger.warning("Client write failed, aborting stream: %s", e)
                    break
        return self.state


class NDJSONEncoder:
    """Renders reframed events as newline-terminated JSON objects."""

    def __init__(self, shape: Shape):
        self.shape = shape

    def payload(self, event: ReframedEvent) -> dict:
        if isinstance(event, ErrorEvent):
            return {"error": event.message}

        if isinstance(event, TerminalEvent):
            text = ""
        else:
            text = event.text

        data = {"model": event.model, "created_at": event.created_at}
        if self.shape is Shape.CHAT:
            data["message"] = {"role": "assistant", "content": text}
        else:
            data["response"] = text
        data["done"] = event.terminal

        if isinstance(event, TerminalEvent):
            data["done_reason"] = event.finish_reason
            if self.shape is Shape.CHAT:
                data["finish_reason"] = event.finish_reason
            else:
                data["context"] = []
            data.update(event.usage)
        return data

    def encode(self, event: ReframedEvent) -> bytes:
        return (json.dumps(self.payload(event), ensure_ascii=False) + "\n").encode("utf-8")

    async def iter_lines(self, frames: AsyncIterator[ReframedEvent]) -> AsyncIterator[bytes]:
        async with aclosing(frames):
            async for frame in frames:
                yield self.encode(frame)
