# src/llm/base_client.py — v1
"""Abstract vision client interface.

Adapters translate a prompt plus images into one provider call and return a
normalized LLMResponse. They do not retry; RetryExecutor does.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from screenlens.llm.models import ImageInput, LLMResponse, Message


class BaseLLMClient(ABC):
    """Unified interface for vision-capable providers."""

    @abstractmethod
    async def complete_with_vision(
        self,
        messages: list[Message],
        images: list[ImageInput],
        system: str | None = None,
        max_tokens: int = 8192,
    ) -> LLMResponse:
        """Vision-enabled completion (images + text)."""

    @property
    @abstractmethod
    def supports_vision(self) -> bool:
        """Whether this provider/model supports image inputs."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier (anthropic, google)."""

    @property
    def max_images_per_request(self) -> int:
        """Largest number of images one request may carry."""
        return 10
