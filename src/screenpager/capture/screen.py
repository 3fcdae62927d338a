"""Live screen capture implementation using mss.

Grabs either a full monitor or a rectangular region of the desktop.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

import cv2
import numpy as np

from screenpager.capture.base import CaptureFailed, FrameSource
from screenpager.domain.models import Frame, Region

logger = logging.getLogger(__name__)


class ScreenCapture(FrameSource):
    """Captures the desktop with mss.

    mss grabs are blocking, so they run in a thread pool executor to
    avoid stalling the event loop. A fresh mss handle is created per grab
    because mss handles are bound to the thread that created them.
    """

    def __init__(self, monitor: int = 1) -> None:
        super().__init__()
        self._monitor = monitor

    async def open(self) -> None:
        """Check that the requested monitor exists."""
        loop = asyncio.get_running_loop()
        count = await loop.run_in_executor(None, self._monitor_count)
        if self._monitor >= count:
            raise CaptureFailed(
                f"Monitor {self._monitor} not available ({count - 1} monitors found)"
            )
        self._is_open = True
        logger.info("Opened screen capture on monitor %d", self._monitor)

    async def capture_frame(self, region: Region | None = None) -> Frame:
        """Capture the configured monitor, or a region of it."""
        loop = asyncio.get_running_loop()
        try:
            image = await loop.run_in_executor(None, self._grab_sync, region)
        except CaptureFailed:
            raise
        except Exception as e:
            raise CaptureFailed(f"Screen grab failed: {e}") from e
        return Frame(
            image=image,
            timestamp=datetime.now(),
            frame_number=self._next_frame_number(),
            source=f"screen:{self._monitor}",
            region=region,
        )

    @staticmethod
    def _monitor_count() -> int:
        import mss

        with mss.mss() as sct:
            return len(sct.monitors)

    def _grab_sync(self, region: Region | None) -> np.ndarray:
        """Synchronous grab (runs in thread pool)."""
        import mss

        with mss.mss() as sct:
            if self._monitor >= len(sct.monitors):
                raise CaptureFailed(f"Monitor {self._monitor} not available")
            if region is None:
                bbox = sct.monitors[self._monitor]
            else:
                bbox = {
                    "left": region.x,
                    "top": region.y,
                    "width": region.width,
                    "height": region.height,
                }
            shot = sct.grab(bbox)
        # mss returns BGRA pixels
        return cv2.cvtColor(np.asarray(shot), cv2.COLOR_BGRA2BGR)
