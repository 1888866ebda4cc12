"""
Gateway facade used by the HTTP dispatcher.

Wires the catalog, metadata synthesis, request translation and stream
reframing around one upstream provider.
"""
import logging
from contextlib import AsyncExitStack, aclosing
from typing import AsyncIterator, Callable, Optional, Union

from .catalog import ModelCatalog
from .errors import NotFound
from .metadata import ModelDescriptor, describe, display_name
from .models import ChatRequest, GenerateRequest, utc_timestamp
from .provider import Completion, StreamEvent, UpstreamProvider
from .reframer import EventWriter, ReframedEvent, ReframeState, StreamReframer
from .translator import translate_request

logger = logging.getLogger(__name__)


class PreparedStream:
    """
    An opened upstream stream waiting to be reframed.

    Owns the upstream response: it is released when frames() or run()
    finishes, whichever way it finishes, or by aclose() if neither is used.
    """

    def __init__(
        self,
        model: str,
        reframer: StreamReframer,
        events: AsyncIterator[StreamEvent],
        stack: AsyncExitStack,
    ):
        self.model = model
        self.reframer = reframer
        self._events = events
        self._stack = stack

    async def frames(self) -> AsyncIterator[ReframedEvent]:
        async with self._stack:
            async with aclosing(self.reframer.reframe(self._events)) as frames:
                async for frame in frames:
                    yield frame
        if self.reframer.state is ReframeState.ABORTED:
            logger.warning("Stream for %s aborted", self.model)

    async def run(self, writer: EventWriter) -> ReframeState:
        async with self._stack:
            return await self.reframer.run(self._events, writer)

    async def aclose(self) -> None:
        await self._stack.aclose()


class Gateway:
    """Model lookup and chat translation on top of an upstream provider."""

    def __init__(
        self,
        provider: UpstreamProvider,
        catalog: Optional[ModelCatalog] = None,
        clock: Callable[[], str] = utc_timestamp,
    ):
        self.provider = provider
        self.catalog = catalog or ModelCatalog(provider)
        self._clock = clock

    async def resolve_alias(self, alias: str) -> str:
        identifier = await self.catalog.resolve(alias)
        logger.info("Requested model %s, using %s", alias, identifier)
        return identifier

    async def list_descriptors(self) -> list[ModelDescriptor]:
        """Refresh the catalog and describe every model in it."""
        identifiers = await self.catalog.fetch()
        return [describe(identifier) for identifier in identifiers]

    async def describe_model(self, alias: str) -> ModelDescriptor:
        """
        Describe the model an alias refers to.

        Unlike resolve_alias, an alias that matches no catalog entry is an
        error here.

        Raises:
            NotFound: no catalog entry matches the alias.
            UpstreamUnavailable: the catalog could not be loaded.
        """
        identifier = await self.catalog.resolve(alias)
        for candidate in self.catalog.snapshot:
            if candidate == identifier or display_name(candidate) == alias:
                return describe(candidate)
        raise NotFound(f"model not found: {alias}")

    async def complete(self, alias: str, messages: list[dict]) -> tuple[str, Completion]:
        """Run a non-streaming completion; returns (identifier, completion)."""
        model = await self.resolve_alias(alias)
        return model, await self.provider.chat(messages, model)

    async def prepare_stream(self, alias: str, messages: list[dict]) -> PreparedStream:
        """
        Resolve the alias and open the upstream stream.

        Failures here happen before any output, so they surface as ordinary
        errors rather than in-band error events.
        """
        model = await self.resolve_alias(alias)
        stack = AsyncExitStack()
        events = await stack.enter_async_context(self.provider.chat_stream(messages, model))
        return PreparedStream(model, StreamReframer(model, clock=self._clock), events, stack)

    async def translate_and_stream(
        self,
        request: Union[GenerateRequest, ChatRequest],
        writer: EventWriter,
    ) -> ReframeState:
        """Translate, stream and reframe one request into writer."""
        alias, messages = translate_request(request)
        prepared = await self.prepare_stream(alias, messages)
        return await prepared.run(writer)
