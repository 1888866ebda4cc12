"""
Ollama Gateway - Ollama-compatible API in front of an OpenAI-compatible backend.

Clients that speak the Ollama HTTP API (tags, show, generate, chat, ...) are
served by translating their requests into chat completions and reframing the
completion stream back into Ollama's NDJSON events.
"""

from .catalog import ModelCatalog
from .errors import GatewayError, InvalidRequest, NotFound, StreamAborted, UpstreamUnavailable
from .gateway import Gateway, PreparedStream
from .metadata import ModelDescriptor, describe
from .provider import Completion, OpenAIProvider, StreamEvent, UpstreamProvider
from .reframer import (
    DeltaEvent,
    ErrorEvent,
    EventWriter,
    NDJSONEncoder,
    ReframedEvent,
    ReframeState,
    Shape,
    StreamReframer,
    TerminalEvent,
)
from .server import create_app

__all__ = [
    # Catalog and metadata
    "ModelCatalog",
    "ModelDescriptor",
    "describe",
    # Errors
    "GatewayError",
    "InvalidRequest",
    "NotFound",
    "StreamAborted",
    "UpstreamUnavailable",
    # Provider interface
    "UpstreamProvider",
    "OpenAIProvider",
    "StreamEvent",
    "Completion",
    # Reframing
    "StreamReframer",
    "ReframeState",
    "ReframedEvent",
    "DeltaEvent",
    "TerminalEvent",
    "ErrorEvent",
    "EventWriter",
    "NDJSONEncoder",
    "Shape",
    # Facade and app factory
    "Gateway",
    "PreparedStream",
    "create_app",
]
