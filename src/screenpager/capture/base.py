"""Abstract base class for frame sources.

All capture implementations must conform to this interface, enabling
the scheduler to swap between live screen capture and file-based replay
without changing the rest of the pipeline.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from screenpager.domain.models import Frame, Region

logger = logging.getLogger(__name__)


class FrameSource(ABC):
    """Abstract interface for acquiring frames of a screen region.

    Implementations handle device initialization, frame acquisition,
    cropping to the requested region, and cleanup.

    Example usage::

        async with ScreenCapture() as source:
            frame = await source.capture_frame(Region(x=0, y=0, width=400, height=800))
    """

    def __init__(self) -> None:
        self._frame_counter: int = 0
        self._is_open: bool = False

    @property
    def is_open(self) -> bool:
        """Whether the source is currently open and ready."""
        return self._is_open

    async def open(self) -> None:
        """Acquire any resources needed for capturing.

        The default implementation only marks the source as open.
        """
        self._is_open = True

    async def close(self) -> None:
        """Release resources. Safe to call multiple times."""
        self._is_open = False

    @abstractmethod
    async def capture_frame(self, region: Region | None = None) -> Frame:
        """Capture a single frame.

        Args:
            region: Rectangle to capture. None captures the whole display.

        Returns:
            A Frame with BGR image data and metadata.

        Raises:
            CaptureFailed: If the frame cannot be acquired.
        """
        ...

    def _next_frame_number(self) -> int:
        self._frame_counter += 1
        return self._frame_counter

    async def __aenter__(self) -> FrameSource:
        """Async context manager entry -- opens the source."""
        await self.open()
        return self

    async def __aexit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        """Async context manager exit -- closes the source."""
        await self.close()


class CaptureFailed(Exception):
    """Raised when a frame cannot be acquired from the source."""
