"""
Gateway configuration.
"""
import logging
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Gateway settings, read from same-named environment variables
    (OPENAI_API_KEY, PORT, LOG_LEVEL, ...).
    """

    model_config = SettingsConfigDict(case_sensitive=False)

    host: str = "0.0.0.0"
    port: int = 11434

    openai_api_key: str = ""
    openai_base_url: str = "https://openrouter.ai/api/v1/"
    upstream_timeout: float = 120.0
    # Attribution headers OpenRouter expects on every request
    http_referer: str = "http://localhost:11434"
    x_title: str = "Ollama Proxy"

    # One display name per line; a missing file disables filtering
    models_filter_path: str = "models-filter"

    log_level: str = "info"
    log_path: str = ""

    version: str = "0.1.0"
    pull_step_delay: float = 0.5


@lru_cache()
def get_settings() -> Settings:
    return Settings()


def load_model_filter(path: str) -> frozenset[str]:
    """
    Read the /api/tags allow-list: stripped, non-blank lines of the file.

    A missing file yields an empty set (no filtering); other I/O errors
    propagate.
    """
    try:
        with open(path) as f:
            names = frozenset(line.strip() for line in f if line.strip())
    except FileNotFoundError:
        logger.info("%s file not found. Skipping model filtering.", path)
        return frozenset()

    logger.info("Loaded %d models from filter:", len(names))
    for name in sorted(names):
        logger.info(" - %s", name)
    return names
