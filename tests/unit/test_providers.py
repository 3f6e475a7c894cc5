"""Tests for the Anthropic and OpenAI streaming backends (clients mocked)."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from goshi.config import LLMConfig
from goshi.llm import LLMError, ModelStream
from goshi.llm.providers import AnthropicBackend, OpenAIBackend, create_backend


class _AsyncIter:
    def __init__(self, items):
        self._items = list(items)

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self._items:
            raise StopAsyncIteration
        return self._items.pop(0)


class _FakeMessageStream:
    def __init__(self, texts):
        self.text_stream = _AsyncIter(texts)
        self.exited = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        self.exited = True
        return False


def _openai_chunk(content):
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=content))])


async def _collect(stream):
    return [chunk async for chunk in stream]


class TestAnthropicBackend:
    @pytest.mark.asyncio
    async def test_streams_text(self):
        message_stream = _FakeMessageStream(["Hel", "lo"])
        client = MagicMock()
        client.messages.stream.return_value = message_stream
        backend = AnthropicBackend(model="claude-test", client=client)

        stream = await backend.open_stream("be brief", [{"role": "user", "content": "hi"}])

        assert isinstance(stream, ModelStream)
        assert await _collect(stream) == ["Hel", "lo"]
        await stream.aclose()
        assert message_stream.exited

        kwargs = client.messages.stream.call_args.kwargs
        assert kwargs["model"] == "claude-test"
        assert kwargs["system"] == "be brief"
        assert kwargs["messages"] == [{"role": "user", "content": "hi"}]

    def test_requires_key(self, monkeypatch):
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        monkeypatch.delenv("ANTHROPIC_AUTH_TOKEN", raising=False)
        with pytest.raises(LLMError):
            AnthropicBackend()


class TestOpenAIBackend:
    @pytest.mark.asyncio
    async def test_streams_deltas_and_closes(self):
        raw = _AsyncIter([_openai_chunk("a"), _openai_chunk(None), _openai_chunk("b")])
        raw.close = AsyncMock()
        client = MagicMock()
        client.chat.completions.create = AsyncMock(return_value=raw)
        backend = OpenAIBackend(model="gpt-4o", client=client)

        stream = await backend.open_stream("sys", [{"role": "user", "content": "hi"}])
        assert await _collect(stream) == ["a", "b"]
        await stream.aclose()
        await stream.aclose()

        raw.close.assert_awaited_once()
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["messages"][0] == {"role": "system", "content": "sys"}
        assert kwargs["stream"] is True
        assert kwargs["max_tokens"] == 4096

    @pytest.mark.asyncio
    async def test_reasoning_models_use_completion_tokens(self):
        raw = _AsyncIter([])
        raw.close = AsyncMock()
        client = MagicMock()
        client.chat.completions.create = AsyncMock(return_value=raw)
        backend = OpenAIBackend(model="gpt-5.1", max_tokens=100, client=client)

        await backend.open_stream("", [])

        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["max_completion_tokens"] == 100
        assert "max_tokens" not in kwargs
        assert kwargs["messages"] == []


class TestCreateBackend:
    def test_unknown_provider(self):
        with pytest.raises(LLMError):
            create_backend(LLMConfig(provider="gemini"))

    def test_openai_from_config(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        backend = create_backend(LLMConfig(provider="openai", model="gpt-4o"))
        assert isinstance(backend, OpenAIBackend)
        assert backend.model == "gpt-4o"
