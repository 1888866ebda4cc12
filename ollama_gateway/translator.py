"""
Request translation from Ollama request shapes to chat-completion messages.
"""
from typing import Optional, Union

from .errors import InvalidRequest
from .models import ChatRequest, GenerateRequest


def require_model(model: Optional[str]) -> str:
    """Return the requested model alias or raise InvalidRequest."""
    if not model or not model.strip():
        raise InvalidRequest("Model name is required")
    return model


def prompt_messages(prompt: str, system: str = "") -> list[dict]:
    """Single-prompt shape: optional system message, then one user message."""
    messages = []
    if system:
        messages.append({"role": "system", "content": system})
    messages.append({"role": "user", "content": prompt})
    return messages


def translate_generate(request: GenerateRequest) -> tuple[str, list[dict]]:
    """Validate a generate request and return (alias, messages)."""
    alias = require_model(request.model)
    return alias, prompt_messages(request.prompt, request.system)


def translate_chat(request: ChatRequest) -> tuple[str, list[dict]]:
    """
    Validate a chat request and return (alias, messages).

    The message list is passed through unchanged and unvalidated.
    """
    alias = require_model(request.model)
    return alias, request.messages


def translate_request(request: Union[GenerateRequest, ChatRequest]) -> tuple[str, list[dict]]:
    if isinstance(request, ChatRequest):
        return translate_chat(request)
    return translate_generate(request)
