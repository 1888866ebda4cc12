"""
Pydantic models for the Ollama-style request bodies.

Required fields such as `model` are checked by the request translator,
not here.
"""
from datetime import datetime, timezone
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field


class GenerateRequest(BaseModel):
    """Request body for POST /api/generate."""
    model_config = ConfigDict(extra="allow")
    
    model: Optional[str] = None
    prompt: str = ""
    system: str = ""
    stream: Optional[bool] = None
    format: Any = None
    options: Optional[dict[str, Any]] = None
    template: str = ""
    raw: bool = False
    context: Optional[list[int]] = None


class ChatRequest(BaseModel):
    """Request body for POST /api/chat."""
    model_config = ConfigDict(extra="allow")
    
    model: Optional[str] = None
    # Passed upstream as-is; roles are not checked
    messages: list[dict[str, Any]] = Field(default_factory=list)
    stream: Optional[bool] = None
    format: Any = None
    options: Optional[dict[str, Any]] = None
    tools: Optional[list[Any]] = None


class ShowRequest(BaseModel):
    """Request body for POST /api/show."""
    model: Optional[str] = None
    name: Optional[str] = None  # older clients send the model here


class PullRequest(BaseModel):
    """Request body for POST /api/pull."""
    model: Optional[str] = None
    stream: Optional[bool] = None


class CopyRequest(BaseModel):
    """Request body for POST /api/copy."""
    source: Optional[str] = None
    destination: Optional[str] = None


class DeleteRequest(BaseModel):
    """Request body for DELETE /api/delete."""
    model: Optional[str] = None


def utc_timestamp(now: Optional[datetime] = None) -> str:
    """RFC 3339 timestamp used for created_at and modified_at fields."""
    now = now or datetime.now(timezone.utc)
    return now.isoformat(timespec="seconds")
