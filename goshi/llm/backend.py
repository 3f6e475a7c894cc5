"""Model backend contract consumed by the session and the interaction loop."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Protocol, runtime_checkable


class LLMError(Exception):
    """Model backend call failed."""
    pass


@runtime_checkable
class ModelStream(Protocol):
    """
    An open model response.

    Iterating yields text chunks until end-of-stream; a failure surfaces as
    an exception from iteration. ``aclose`` releases the underlying handle
    and must be safe to call more than once.
    """

    def __aiter__(self) -> AsyncIterator[str]:
        ...

    async def aclose(self) -> None:
        ...


class ModelBackend(Protocol):
    """Opens streams for a system prompt plus ordered role/content history."""

    name: str
    model: str

    async def open_stream(self, system_prompt: str, messages: list[dict[str, str]]) -> ModelStream:
        ...


class IteratorStream:
    """
    ModelStream over any async iterator of chunks.

    Closing forwards to the iterator's ``aclose`` (if any) and to an optional
    release callback, exactly once.
    """

    def __init__(self, chunks: AsyncIterator[str], on_close=None):
        self._chunks = chunks
        self._on_close = on_close
        self.closed = False

    def __aiter__(self) -> AsyncIterator[str]:
        return self

    async def __anext__(self) -> str:
        if self.closed:
            raise StopAsyncIteration
        return await self._chunks.__anext__()

    async def aclose(self) -> None:
        if self.closed:
            return
        self.closed = True
        aclose = getattr(self._chunks, "aclose", None)
        try:
            if aclose is not None:
                await aclose()
        finally:
            if self._on_close is not None:
                result = self._on_close()
                if hasattr(result, "__await__"):
                    await result


__all__ = ["IteratorStream", "LLMError", "ModelBackend", "ModelStream"]
