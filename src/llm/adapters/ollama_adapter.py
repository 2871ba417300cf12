# src/llm/adapters/ollama_adapter.py — v1
"""Local models served by Ollama."""

from __future__ import annotations

import time
from typing import Any

from copilens.llm.base_client import BaseLLMClient
from copilens.llm.models import LLMResponse, Message


class OllamaAdapter(BaseLLMClient):
    """Chat completions through ``ollama.AsyncClient``."""

    def __init__(
        self,
        model: str = "qwen2.5-coder",
        host: str = "http://localhost:11434",
        client: Any = None,
    ) -> None:
        self._model = model
        self._host = host
        self._client = client

    @property
    def provider_name(self) -> str:
        return "ollama"

    @property
    def model_name(self) -> str:
        return self._model

    def _sdk_client(self) -> Any:
        if self._client is None:
            import ollama

            self._client = ollama.AsyncClient(host=self._host)
        return self._client

    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.2,
    ) -> LLMResponse:
        chat: list[dict[str, str]] = []
        if system:
            chat.append({"role": "system", "content": system})
        chat.extend({"role": m.role, "content": m.content} for m in messages)

        started = time.monotonic()
        resp = await self._sdk_client().chat(
            model=self._model,
            messages=chat,
            options={"num_predict": max_tokens, "temperature": temperature},
        )
        elapsed_ms = int((time.monotonic() - started) * 1000)

        return LLMResponse(
            content=resp["message"]["content"],
            model=self._model,
            provider=self.provider_name,
            input_tokens=resp.get("prompt_eval_count", 0) or 0,
            output_tokens=resp.get("eval_count", 0) or 0,
            latency_ms=elapsed_ms,
            stop_reason=resp.get("done_reason"),
            raw_response=resp,
        )
