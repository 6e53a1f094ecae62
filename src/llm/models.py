# src/llm/models.py — v1
"""Vision call types: the prompt messages, the screenshot images sent with
them, and the normalized provider response."""

from __future__ import annotations

import base64
from typing import Any, Literal

from pydantic import BaseModel


class Message(BaseModel):
    """Single prompt message."""

    role: Literal["user", "assistant", "system"]
    content: str


class ImageInput(BaseModel):
    """Downloaded screenshot ready to be attached to a vision call."""

    data: bytes
    media_type: str
    source_id: str | None = None
    source_url: str | None = None

    @property
    def size_bytes(self) -> int:
        return len(self.data)

    def as_base64(self) -> str:
        """Payload encoded the way provider image blocks expect it."""
        return base64.b64encode(self.data).decode("ascii")


class LLMResponse(BaseModel):
    """Normalized response from any vision provider."""

    content: str
    input_tokens: int = 0
    output_tokens: int = 0
    model: str
    provider: str
    latency_ms: int = 0
    stop_reason: str | None = None
    raw_response: Any = None

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    @property
    def was_truncated(self) -> bool:
        """Whether the provider stopped because it ran out of output tokens."""
        return self.stop_reason in ("max_tokens", "MAX_TOKENS")
