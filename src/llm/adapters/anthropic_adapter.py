# src/llm/adapters/anthropic_adapter.py — v1
"""Anthropic Messages API adapter.

The SDK is imported on the first request so that the package works
without it when another provider is configured.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from copilens.llm.base_client import BaseLLMClient
from copilens.llm.models import LLMResponse, Message

logger = logging.getLogger(__name__)


class AnthropicAdapter(BaseLLMClient):
    """Claude models through ``anthropic.AsyncAnthropic``."""

    def __init__(
        self,
        model: str = "claude-sonnet-4-20250514",
        api_key: str | None = None,
        client: Any = None,
    ) -> None:
        self._model = model
        self._api_key = api_key
        self._client = client

    @property
    def provider_name(self) -> str:
        return "anthropic"

    @property
    def model_name(self) -> str:
        return self._model

    def _sdk_client(self) -> Any:
        if self._client is None:
            try:
                import anthropic
            except ImportError as e:
                raise ImportError(
                    "anthropic package required: pip install 'copilens[llm]'"
                ) from e
            self._client = anthropic.AsyncAnthropic(api_key=self._api_key or None)
        return self._client

    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.2,
    ) -> LLMResponse:
        # system turns travel in the dedicated parameter
        system_parts = [m.content for m in messages if m.role == "system"]
        if system:
            system_parts.insert(0, system)
        params: dict[str, Any] = {
            "model": self._model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [
                {"role": m.role, "content": m.content} for m in messages if m.role != "system"
            ],
        }
        if system_parts:
            params["system"] = "\n\n".join(system_parts)

        started = time.monotonic()
        response = await self._sdk_client().messages.create(**params)
        elapsed_ms = int((time.monotonic() - started) * 1000)

        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        return LLMResponse(
            content=text,
            model=getattr(response, "model", self._model),
            provider=self.provider_name,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            latency_ms=elapsed_ms,
            stop_reason=getattr(response, "stop_reason", None),
            raw_response=response,
        )
