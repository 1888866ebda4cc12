"""
FastAPI application factory for the Ollama-compatible gateway.

Exposes the Ollama HTTP API surface:
  GET    /              - liveness text
  GET    /api/tags      - list models
  POST   /api/show      - model details
  POST   /api/generate  - prompt completion (NDJSON stream by default)
  POST   /api/chat      - chat completion (NDJSON stream by default)
  POST   /api/pull      - simulated model download
  POST   /api/copy      - accepted, no-op
  DELETE /api/delete    - accepted, no-op
  GET    /api/version, /api/ps

Every route also answers HEAD with an empty 200.
"""

import asyncio
import hashlib
import json
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, Response, StreamingResponse

from .config import Settings, get_settings, load_model_filter
from .errors import GatewayError, InvalidRequest, NotFound, UpstreamUnavailable
from .gateway import Gateway, PreparedStream
from .metadata import show_payload, tag_entry
from .models import (
    ChatRequest,
    CopyRequest,
    DeleteRequest,
    GenerateRequest,
    PullRequest,
    ShowRequest,
    utc_timestamp,
)
from .provider import UpstreamProvider
from .reframer import DEFAULT_FINISH_REASON, NDJSONEncoder, Shape, zero_usage
from .translator import require_model, translate_chat, translate_generate


logger = logging.getLogger(__name__)

NDJSON_MEDIA_TYPE = "application/x-ndjson"
STREAM_HEADERS = {"Cache-Control": "no-cache", "Connection": "keep-alive"}

CORS_METHODS = ["GET", "POST", "PUT", "DELETE", "OPTIONS", "HEAD"]
CORS_HEADERS = [
    "Origin",
    "Content-Type",
    "Content-Length",
    "Accept-Encoding",
    "X-CSRF-Token",
    "Authorization",
]

# Simulated layer sizes for /api/pull, roughly a 4GB 7B model
PULL_LAYER_SIZES = [1073741824, 2147483648, 536870912, 268435456, 134217728]
PULL_STEPS_PER_LAYER = 20


class NDJSONStreamResponse(StreamingResponse):
    """
    Reframed upstream stream sent as NDJSON.

    Starlette leaves the body iterator suspended when the client goes away
    mid-body, so the response closes it and the upstream stream itself on
    every exit from __call__.
    """

    media_type = NDJSON_MEDIA_TYPE

    def __init__(self, prepared: PreparedStream, shape: Shape):
        encoder = NDJSONEncoder(shape)
        super().__init__(encoder.iter_lines(prepared.frames()), headers=STREAM_HEADERS)
        self.prepared = prepared

    async def __call__(self, scope, receive, send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            await self.body_iterator.aclose()
            await self.prepared.aclose()


def pull_layers(model: str) -> list[tuple[str, int]]:
    """Deterministic fake layer digests for a model."""
    layers = []
    for index, size in enumerate(PULL_LAYER_SIZES):
        digest = hashlib.sha256(f"{model}:{index}".encode("utf-8")).hexdigest()
        layers.append((f"sha256:{digest}", size))
    return layers


async def pull_progress(model: str, delay: float) -> AsyncIterator[dict]:
    """Yield Ollama pull progress statuses for a simulated download."""
    yield {"status": "pulling manifest"}
    await asyncio.sleep(delay)

    for digest, total in pull_layers(model):
        chunk = total // PULL_STEPS_PER_LAYER
        for step in range(1, PULL_STEPS_PER_LAYER + 1):
            yield {
                "status": "downloading",
                "digest": digest,
                "total": total,
                "completed": total if step == PULL_STEPS_PER_LAYER else step * chunk,
            }
            await asyncio.sleep(delay)

    for status in ("verifying sha256 digest", "writing manifest", "removing any unused layers"):
        yield {"status": status}
        await asyncio.sleep(delay)

    yield {"status": "success"}


def create_app(
    provider_factory: Callable[[], UpstreamProvider],
    settings: Optional[Settings] = None,
    model_filter: Optional[frozenset[str]] = None,
    title: str = "Ollama Gateway",
    description: str = "Ollama-compatible API backed by an OpenAI-compatible service",
) -> FastAPI:
    """
    Create the gateway FastAPI application.

    Args:
        provider_factory: Callable that creates the UpstreamProvider.
                          Called during app startup.
        settings: Settings to use; defaults to get_settings()
        model_filter: Display names to show in /api/tags. None loads the
                      filter file named in settings; an empty set shows all.
        title: OpenAPI title
        description: OpenAPI description
    """
    settings = settings or get_settings()

    # Set during startup
    gateway: Optional[Gateway] = None
    allowed: frozenset[str] = model_filter or frozenset()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        nonlocal gateway, allowed

        logger.info("Ollama gateway starting up")
        if model_filter is None:
            allowed = load_model_filter(settings.models_filter_path)

        provider = provider_factory()
        logger.info("Provider: %s", provider.provider_name)
        await provider.initialize()
        gateway = Gateway(provider)

        yield

        logger.info("Ollama gateway shutting down")
        await provider.shutdown()
        gateway = None

    app = FastAPI(
        title=title,
        description=description,
        version=settings.version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=CORS_METHODS,
        allow_headers=CORS_HEADERS,
    )

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError):
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc)})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.debug("Rejected request body: %s", exc.errors())
        return JSONResponse(status_code=400, content={"error": "Invalid JSON payload"})

    def get_gateway() -> Gateway:
        if gateway is None:
            raise HTTPException(status_code=503, detail="Gateway not initialized")
        return gateway

    # =========================================================================
    # Status
    # =========================================================================

    @app.get("/")
    async def root():
        return PlainTextResponse("Ollama is running")

    @app.get("/api/version")
    async def version():
        return {"version": settings.version}

    @app.get("/api/ps")
    async def running_models():
        return {"models": []}

    # =========================================================================
    # Models
    # =========================================================================

    @app.get("/api/tags")
    async def tags():
        """List upstream models, refreshing the catalog."""
        descriptors = await get_gateway().list_descriptors()
        modified_at = utc_timestamp()
        models = [
            tag_entry(descriptor, modified_at)
            for descriptor in descriptors
            if not allowed or descriptor.name in allowed
        ]
        return {"models": models}

    @app.post("/api/show")
    async def show(body: ShowRequest):
        alias = require_model(body.model or body.name)
        descriptor = await get_gateway().describe_model(alias)
        return show_payload(alias, descriptor)

    @app.post("/api/pull")
    async def pull(body: PullRequest):
        alias = require_model(body.model)
        try:
            await get_gateway().resolve_alias(alias)
        except UpstreamUnavailable as e:
            raise NotFound(f"Model not found: {e}") from e

        if body.stream is False:
            return {"status": "success"}

        async def lines():
            async for status in pull_progress(alias, settings.pull_step_delay):
                yield (json.dumps(status) + "\n").encode("utf-8")

        return StreamingResponse(lines(), media_type=NDJSON_MEDIA_TYPE, headers=STREAM_HEADERS)

    @app.post("/api/copy")
    async def copy(body: CopyRequest):
        if not body.source or not body.destination:
            raise InvalidRequest("Source and destination are required")
        return Response(status_code=200)

    @app.delete("/api/delete")
    async def delete(body: DeleteRequest):
        require_model(body.model)
        return Response(status_code=200)

    # =========================================================================
    # Completions
    # =========================================================================

    @app.post("/api/generate")
    async def generate(body: GenerateRequest):
        """Prompt completion; streams NDJSON unless stream is false."""
        alias, messages = translate_generate(body)
        gw = get_gateway()

        if body.stream is False:
            model, completion = await gw.complete(alias, messages)
            return {
                "model": model,
                "created_at": utc_timestamp(),
                "response": completion.content,
                "done": True,
                "done_reason": completion.finish_reason or DEFAULT_FINISH_REASON,
                "context": [],
                **zero_usage(),
            }

        prepared = await gw.prepare_stream(alias, messages)
        return NDJSONStreamResponse(prepared, Shape.GENERATE)

    @app.post("/api/chat")
    async def chat(body: ChatRequest):
        """Chat completion; streams NDJSON unless stream is false."""
        if not body.messages:
            # Clients send an empty chat to load a model
            return {
                "model": body.model or "",
                "created_at": utc_timestamp(),
                "message": {"role": "assistant", "content": ""},
                "done": True,
                "done_reason": "load",
            }

        alias, messages = translate_chat(body)
        gw = get_gateway()

        if body.stream is False:
            model, completion = await gw.complete(alias, messages)
            return {
                "model": model,
                "created_at": utc_timestamp(),
                "message": {"role": "assistant", "content": completion.content},
                "done": True,
                "done_reason": completion.finish_reason or DEFAULT_FINISH_REASON,
                **zero_usage(),
            }

        prepared = await gw.prepare_stream(alias, messages)
        return NDJSONStreamResponse(prepared, Shape.CHAT)

    async def head_ok():
        return Response(status_code=200)

    for path in (
        "/",
        "/api/tags",
        "/api/show",
        "/api/generate",
        "/api/chat",
        "/api/pull",
        "/api/copy",
        "/api/delete",
        "/api/version",
        "/api/ps",
    ):
        app.add_api_route(path, head_ok, methods=["HEAD"], include_in_schema=False)

    return app
