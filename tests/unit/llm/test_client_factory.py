# tests/unit/llm/test_client_factory.py — v1
"""Tests for llm/client_factory.py and the provider adapters."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from copilens.llm import client_factory
from copilens.llm.adapters.anthropic_adapter import AnthropicAdapter
from copilens.llm.adapters.ollama_adapter import OllamaAdapter
from copilens.llm.client_factory import (
    UnsupportedProviderError,
    available_providers,
    create_from_settings,
    create_llm_client,
    register_provider,
)
from copilens.llm.models import Message


class TestFactory:
    def test_available_providers(self):
        assert {"anthropic", "ollama"} <= set(available_providers())

    def test_unknown_provider(self):
        with pytest.raises(UnsupportedProviderError, match="openai"):
            create_llm_client("openai", "gpt-4o")

    def test_anthropic_key_from_settings(self, settings):
        settings = settings.model_copy(update={"anthropic_api_key": "sk-test"})
        client = create_llm_client("anthropic", "claude-sonnet-4-20250514", settings=settings)
        assert isinstance(client, AnthropicAdapter)
        assert client._api_key == "sk-test"
        assert client.model_name == "claude-sonnet-4-20250514"

    def test_explicit_kwargs_win(self, settings):
        client = create_llm_client("ollama", "llama3", settings=settings, host="http://gpu:11434")
        assert isinstance(client, OllamaAdapter)
        assert client._host == "http://gpu:11434"

    def test_from_settings(self, settings):
        settings = settings.model_copy(update={"llm_provider": "ollama", "llm_model": "qwen2.5-coder"})
        client = create_from_settings(settings)
        assert client.provider_name == "ollama"
        assert client._host == settings.ollama_base_url

    def test_register_provider(self, monkeypatch):
        monkeypatch.setattr(client_factory, "_ADAPTERS", dict(client_factory._ADAPTERS))
        register_provider("local", "copilens.llm.adapters.ollama_adapter:OllamaAdapter")
        assert isinstance(create_llm_client("local", "m"), OllamaAdapter)


class TestAnthropicAdapter:
    @pytest.mark.asyncio
    async def test_complete(self):
        sdk = MagicMock()
        sdk.messages.create = AsyncMock(
            return_value=SimpleNamespace(
                content=[
                    SimpleNamespace(type="text", text="[]"),
                    SimpleNamespace(type="tool_use", text="ignored"),
                    SimpleNamespace(type="text", text="\n//end"),
                ],
                model="claude-sonnet-4-20250514",
                usage=SimpleNamespace(input_tokens=10, output_tokens=3),
                stop_reason="end_turn",
            )
        )
        adapter = AnthropicAdapter(client=sdk)
        response = await adapter.complete(
            [Message(role="system", content="extra"), Message(role="user", content="code")],
            system="base",
            max_tokens=100,
        )

        assert response.content == "[]\n//end"
        assert response.total_tokens == 13
        assert response.stop_reason == "end_turn"
        params = sdk.messages.create.await_args.kwargs
        assert params["system"] == "base\n\nextra"
        assert params["messages"] == [{"role": "user", "content": "code"}]
        assert params["max_tokens"] == 100


class TestOllamaAdapter:
    @pytest.mark.asyncio
    async def test_complete(self):
        sdk = MagicMock()
        sdk.chat = AsyncMock(
            return_value={
                "message": {"role": "assistant", "content": "[]"},
                "prompt_eval_count": 20,
                "eval_count": 2,
                "done_reason": "stop",
            }
        )
        adapter = OllamaAdapter(model="llama3", client=sdk)
        response = await adapter.complete([Message(role="user", content="code")], system="sys")

        assert response.content == "[]"
        assert response.provider == "ollama"
        assert (response.input_tokens, response.output_tokens) == (20, 2)
        chat = sdk.chat.await_args.kwargs
        assert chat["messages"][0] == {"role": "system", "content": "sys"}
        assert chat["options"]["num_predict"] == 4096
