# src/llm/base_client.py — v1
"""Abstract chat-completion client used by the inspection backend."""

from __future__ import annotations

from abc import ABC, abstractmethod

from copilens.llm.models import LLMResponse, Message


class BaseLLMClient(ABC):
    """Unified interface over the supported providers."""

    @abstractmethod
    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.2,
    ) -> LLMResponse:
        """Single chat completion over `messages`."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier (anthropic, ollama)."""

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Model the client talks to."""
