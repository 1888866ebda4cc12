"""
Command-line entry point.

    ollama-gateway [OPENAI_API_KEY]

The API key comes from the OPENAI_API_KEY environment variable, or the first
argument when the variable is unset.
"""
import logging
import sys
from pathlib import Path
from typing import Optional

import uvicorn

from .config import Settings, get_settings, load_model_filter
from .provider import OpenAIProvider
from .server import create_app


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger("ollama_gateway")


def setup_logging(settings: Settings) -> None:
    """Send all log records to stdout, and also to LOG_PATH when set."""
    formatter = logging.Formatter(LOG_FORMAT)
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if settings.log_path:
        log_file = Path(settings.log_path)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    root = logging.getLogger()
    root.setLevel(settings.log_level.upper())
    root.handlers.clear()
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)

    if settings.log_path:
        logger.info("Logging to file: %s", settings.log_path)


def main(argv: Optional[list[str]] = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    settings = get_settings()
    setup_logging(settings)

    if not settings.openai_api_key:
        if not argv:
            logger.error("OPENAI_API_KEY environment variable or command-line argument not set.")
            return 1
        settings = settings.model_copy(update={"openai_api_key": argv[0]})

    model_filter = load_model_filter(settings.models_filter_path)

    app = create_app(
        provider_factory=lambda: OpenAIProvider(settings),
        settings=settings,
        model_filter=model_filter,
    )

    logger.info("Upstream: %s", settings.openai_base_url)
    logger.info("Listening on http://%s:%d", settings.host, settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())
    return 0


if __name__ == "__main__":
    sys.exit(main())
