"""Text extraction module for screenpager.

Provides a provider-agnostic interface for recovering text from
captured frames, and a dispatcher that selects the provider by mode.

Public API:
    ExtractionProvider -- Abstract base class
    CloudExtractionProvider -- Base class with bounded retry
    ExtractionDispatcher -- Mode-based provider routing
    TesseractProvider -- Local OCR implementation
    OpenAIVisionProvider -- OpenAI / OpenRouter implementation
    AnthropicVisionProvider -- Claude implementation
"""

from screenpager.extraction.base import (
    CloudExtractionProvider,
    ExtractionError,
    ExtractionProvider,
    ProviderNotConfigured,
)
from screenpager.extraction.dispatcher import (
    ExtractionDispatcher,
    ExtractionMode,
    create_provider,
)

__all__ = [
    "AnthropicVisionProvider",
    "CloudExtractionProvider",
    "ExtractionDispatcher",
    "ExtractionError",
    "ExtractionMode",
    "ExtractionProvider",
    "OpenAIVisionProvider",
    "ProviderNotConfigured",
    "TesseractProvider",
    "create_provider",
]


def __getattr__(name: str) -> type:
    """Lazy import for concrete implementations that require external deps."""
    if name == "TesseractProvider":
        from screenpager.extraction.tesseract import TesseractProvider
        return TesseractProvider
    if name == "OpenAIVisionProvider":
        from screenpager.extraction.openai import OpenAIVisionProvider
        return OpenAIVisionProvider
    if name == "AnthropicVisionProvider":
        from screenpager.extraction.anthropic import AnthropicVisionProvider
        return AnthropicVisionProvider
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
