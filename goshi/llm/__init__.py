"""Model backend contract, stream adapters and response parsing."""

from .backend import IteratorStream, LLMError, ModelBackend, ModelStream
from .response_parser import (
    ActionCall,
    ResponseType,
    StructuredParser,
    StructuredResponse,
    parse_response,
)

__all__ = [
    "ActionCall",
    "IteratorStream",
    "LLMError",
    "ModelBackend",
    "ModelStream",
    "ResponseType",
    "StructuredParser",
    "StructuredResponse",
    "parse_response",
]
