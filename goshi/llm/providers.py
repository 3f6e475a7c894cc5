"""
Streaming model backends.

Supports:
- Anthropic (Claude) - including custom endpoints via ANTHROPIC_BASE_URL
- OpenAI (GPT-4o, GPT-5.x, o-series)
"""

from __future__ import annotations

import os
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any

import anthropic
import openai
from dotenv import load_dotenv

from ..config import LLMConfig
from .backend import IteratorStream, LLMError, ModelBackend, ModelStream

# Auto-load .env from project root
_project_root = Path(__file__).parent.parent.parent
_env_file = _project_root / ".env"
if _env_file.exists():
    load_dotenv(_env_file)


class AnthropicBackend:
    """Anthropic Messages API streaming backend."""

    name = "anthropic"

    def __init__(
        self,
        model: str = "claude-sonnet-4-20250514",
        api_key: str | None = None,
        base_url: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.0,
        client: Any = None,
    ):
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        if client is not None:
            self.client = client
            return

        # Support both ANTHROPIC_API_KEY and ANTHROPIC_AUTH_TOKEN
        api_key = api_key or os.environ.get("ANTHROPIC_API_KEY") or os.environ.get("ANTHROPIC_AUTH_TOKEN")
        if not api_key:
            raise LLMError(
                "Anthropic API key required. Set ANTHROPIC_API_KEY or ANTHROPIC_AUTH_TOKEN environment variable."
            )
        client_kwargs: dict[str, Any] = {"api_key": api_key}
        base_url = base_url or os.environ.get("ANTHROPIC_BASE_URL")
        if base_url:
            client_kwargs["base_url"] = base_url
        self.client = anthropic.AsyncAnthropic(**client_kwargs)

    async def open_stream(self, system_prompt: str, messages: list[dict[str, str]]) -> ModelStream:
        request_params: dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "messages": messages,
        }
        if system_prompt:
            request_params["system"] = system_prompt

        async def chunks() -> AsyncIterator[str]:
            try:
                async with self.client.messages.stream(**request_params) as stream:
                    async for text in stream.text_stream:
                        yield text
            except anthropic.APIError as e:
                raise LLMError(f"Anthropic API error: {e}") from e

        return IteratorStream(chunks())


class OpenAIBackend:
    """OpenAI chat completions streaming backend."""

    name = "openai"

    def __init__(
        self,
        model: str = "gpt-4o",
        api_key: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.0,
        client: Any = None,
    ):
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        if client is not None:
            self.client = client
            return

        api_key = api_key or os.environ.get("OPENAI_API_KEY")
        if not api_key:
            raise LLMError("OpenAI API key required. Set OPENAI_API_KEY environment variable.")
        self.client = openai.AsyncOpenAI(api_key=api_key)

    async def open_stream(self, system_prompt: str, messages: list[dict[str, str]]) -> ModelStream:
        # OpenAI uses system message in messages array
        full_messages: list[dict[str, str]] = []
        if system_prompt:
            full_messages.append({"role": "system", "content": system_prompt})
        full_messages.extend(messages)

        request_params: dict[str, Any] = {
            "model": self.model,
            "messages": full_messages,
            "temperature": self.temperature,
            "stream": True,
        }
        # GPT-5+ and reasoning models use max_completion_tokens instead of max_tokens
        if self.model.startswith(("gpt-5", "o1", "o3")):
            request_params["max_completion_tokens"] = self.max_tokens
        else:
            request_params["max_tokens"] = self.max_tokens

        try:
            stream = await self.client.chat.completions.create(**request_params)
        except openai.OpenAIError as e:
            raise LLMError(f"OpenAI API error: {e}") from e

        async def chunks() -> AsyncIterator[str]:
            try:
                async for chunk in stream:
                    if chunk.choices and chunk.choices[0].delta.content:
                        yield chunk.choices[0].delta.content
            except openai.OpenAIError as e:
                raise LLMError(f"OpenAI API error: {e}") from e

        return IteratorStream(chunks(), on_close=stream.close)


def create_backend(config: LLMConfig) -> ModelBackend:
    """Build the backend named by ``config.provider``."""
    if config.provider == "anthropic":
        return AnthropicBackend(
            model=config.model, max_tokens=config.max_tokens, temperature=config.temperature
        )
    if config.provider == "openai":
        return OpenAIBackend(
            model=config.model, max_tokens=config.max_tokens, temperature=config.temperature
        )
    raise LLMError(f"Unknown provider: {config.provider}")


__all__ = ["AnthropicBackend", "OpenAIBackend", "create_backend"]
