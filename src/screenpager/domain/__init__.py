"""Domain models for screenpager.

This package contains all core data structures, enumerations, and value
objects used throughout the system. All models use Pydantic v2 for
validation and serialization.
"""

from screenpager.domain.models import (
    BandSimilarity,
    CaptureSession,
    ChangeDirection,
    ChangeResult,
    DirectionResult,
    ExtractionResult,
    Frame,
    Page,
    PageStatus,
    RecordingState,
    Region,
    Screenshot,
    ScrollDirection,
    TextBlock,
)

__all__ = [
    "BandSimilarity",
    "CaptureSession",
    "ChangeDirection",
    "ChangeResult",
    "DirectionResult",
    "ExtractionResult",
    "Frame",
    "Page",
    "PageStatus",
    "RecordingState",
    "Region",
    "Screenshot",
    "ScrollDirection",
    "TextBlock",
]
