"""Core domain models for the screenpager system.

These models represent the data flowing through the capture pipeline:
raw frames from the frame source, the derived change and direction
results, the screenshots accepted into pages, and the results returned
by text-extraction providers.
"""

from __future__ import annotations

import enum
from datetime import datetime

import numpy as np
from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class ChangeDirection(str, enum.Enum):
    """Kind of change between two consecutive frames."""

    NONE = "none"  # Noise or a minor change
    VERTICAL = "vertical"  # Content scrolled within the same screen
    HORIZONTAL = "horizontal"  # Lateral navigation to a new screen
    MAJOR = "major"  # A completely different screen


class ScrollDirection(str, enum.Enum):
    UP = "up"
    DOWN = "down"


class PageStatus(str, enum.Enum):
    ACTIVE = "active"
    COMPLETE = "complete"


class RecordingState(str, enum.Enum):
    IDLE = "idle"
    RECORDING = "recording"
    PAUSED = "paused"


# ---------------------------------------------------------------------------
# Capture Models
# ---------------------------------------------------------------------------


class Region(BaseModel):
    """Axis-aligned capture rectangle in screen-pixel coordinates.

    Coordinates are in pixels, origin at top-left.
    """

    model_config = ConfigDict(frozen=True)

    x: int = Field(ge=0, description="Left edge x-coordinate in pixels")
    y: int = Field(ge=0, description="Top edge y-coordinate in pixels")
    width: int = Field(gt=0, description="Width of the region in pixels")
    height: int = Field(gt=0, description="Height of the region in pixels")

    @classmethod
    def parse(cls, value: str) -> Region:
        """Build a region from an ``"x,y,width,height"`` string."""
        parts = [p.strip() for p in value.split(",")]
        if len(parts) != 4:
            raise ValueError(f"Expected 'x,y,width,height', got {value!r}")
        x, y, width, height = (int(p) for p in parts)
        return cls(x=x, y=y, width=width, height=height)


class Frame(BaseModel):
    """A single image captured from the frame source.

    Contains the raw image data as a numpy array along with metadata
    about when and where it was captured. The image is never modified
    after capture.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    image: np.ndarray = Field(description="Raw image data as BGR numpy array (OpenCV format)")
    timestamp: datetime = Field(default_factory=datetime.now, description="When the frame was captured")
    frame_number: int = Field(default=0, ge=0, description="Sequential frame counter")
    source: str = Field(default="screen", description="Identifier for the frame source")
    region: Region | None = Field(
        default=None, description="Region the frame was cropped to, None for a full display"
    )

    @property
    def width(self) -> int:
        return int(self.image.shape[1])

    @property
    def height(self) -> int:
        return int(self.image.shape[0])


# ---------------------------------------------------------------------------
# Detection Results
# ---------------------------------------------------------------------------


class ChangeResult(BaseModel):
    """Whether two frames differ enough to act on."""

    model_config = ConfigDict(frozen=True)

    changed: bool
    ratio: float = Field(ge=0.0, le=1.0, description="Fraction of pixels that differ")


class BandSimilarity(BaseModel):
    """Similarity percentages (0-100) of the three horizontal bands."""

    model_config = ConfigDict(frozen=True)

    top: float = Field(ge=0.0, le=100.0)
    middle: float = Field(ge=0.0, le=100.0)
    bottom: float = Field(ge=0.0, le=100.0)

    @property
    def overall(self) -> float:
        return (self.top + self.middle + self.bottom) / 3


class DirectionResult(BaseModel):
    """Classification of the change between two frames."""

    model_config = ConfigDict(frozen=True)

    direction: ChangeDirection
    confidence: float = Field(ge=0.0, le=1.0)
    scroll_direction: ScrollDirection | None = None
    similarity: BandSimilarity | None = Field(
        default=None, description="Band similarities the decision was based on"
    )

    @property
    def is_boundary(self) -> bool:
        """Whether this change starts a new page."""
        return self.direction in (ChangeDirection.HORIZONTAL, ChangeDirection.MAJOR)


# ---------------------------------------------------------------------------
# Extraction Models
# ---------------------------------------------------------------------------


class TextBlock(BaseModel):
    """A piece of recognised text with its bounding box."""

    model_config = ConfigDict(frozen=True)

    text: str
    bbox: tuple[int, int, int, int] = Field(
        default=(0, 0, 0, 0), description="(x0, y0, x1, y1) in image pixels"
    )
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)


class ExtractionResult(BaseModel):
    """Text recovered from a frame by an extraction provider."""

    model_config = ConfigDict(frozen=True)

    text: str = ""
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    elapsed_ms: float = Field(default=0.0, ge=0.0)
    blocks: list[TextBlock] = Field(default_factory=list)

    @classmethod
    def empty(cls, elapsed_ms: float = 0.0) -> ExtractionResult:
        """The degraded result returned when extraction is unavailable."""
        return cls(text="", confidence=0.0, elapsed_ms=max(0.0, elapsed_ms))


# ---------------------------------------------------------------------------
# Page Models
# ---------------------------------------------------------------------------


class Screenshot(BaseModel):
    """An accepted frame, the unit of page membership."""

    model_config = ConfigDict(frozen=True)

    id: str
    timestamp: datetime = Field(default_factory=datetime.now)
    image_data: str = Field(description="PNG image as a base64 data URL")
    extracted_text: str | None = None
    is_scroll_up: bool = False


class Page(BaseModel):
    """A contiguous run of screenshots showing the same logical screen.

    Screenshots are only ever appended. The segmenter updates
    ``status``, ``end_time`` and ``combined_text``.
    """

    id: str
    index: int = Field(ge=1, description="1-based position within the session")
    start_time: datetime = Field(default_factory=datetime.now)
    end_time: datetime | None = None
    screenshots: list[Screenshot] = Field(default_factory=list)
    combined_text: str = ""
    status: PageStatus = PageStatus.ACTIVE

    @property
    def is_active(self) -> bool:
        return self.status is PageStatus.ACTIVE


# ---------------------------------------------------------------------------
# Session Models
# ---------------------------------------------------------------------------


class CaptureSession(BaseModel):
    """Mutable state of one recording session.

    Owned and mutated only by the capture scheduler. A new instance is
    created for every ``start()`` and dropped on ``stop()``.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    session_id: str
    region: Region | None = None
    is_full_display: bool = False
    is_recording: bool = True
    is_paused: bool = False
    last_frame: Frame | None = None
    capture_count: int = Field(default=0, ge=0)
    is_first_capture: bool = True
    started_at: datetime = Field(default_factory=datetime.now)

    @property
    def state(self) -> RecordingState:
        if not self.is_recording:
            return RecordingState.IDLE
        return RecordingState.PAUSED if self.is_paused else RecordingState.RECORDING
