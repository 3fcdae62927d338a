"""File-based frame source for replaying recorded screenshots."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Iterable

import cv2
import numpy as np

from screenpager.capture.base import CaptureFailed, FrameSource
from screenpager.domain.models import Frame, Region
from screenpager.utils.imaging import crop

logger = logging.getLogger(__name__)

IMAGE_SUFFIXES = (".png", ".jpg", ".jpeg", ".bmp", ".webp")


class ImageSequenceCapture(FrameSource):
    """Serves frames from image files in order, one per capture.

    Each capture returns the next image, cropped to the requested region.
    Once the sequence is exhausted, captures raise CaptureFailed unless
    ``repeat_last`` is set, in which case the final image is served again.
    """

    def __init__(self, paths: Iterable[Path | str], repeat_last: bool = False) -> None:
        super().__init__()
        self._paths = [Path(p) for p in paths]
        self._position = 0
        self._repeat_last = repeat_last

    @classmethod
    def from_directory(cls, directory: Path | str, repeat_last: bool = False) -> ImageSequenceCapture:
        """Build a source from every image in a directory, sorted by name."""
        root = Path(directory)
        if not root.is_dir():
            raise CaptureFailed(f"Not a directory: {root}")
        paths = sorted(p for p in root.iterdir() if p.suffix.lower() in IMAGE_SUFFIXES)
        logger.info("Loaded %d images from %s", len(paths), root)
        return cls(paths, repeat_last=repeat_last)

    @property
    def remaining(self) -> int:
        return max(0, len(self._paths) - self._position)

    @property
    def exhausted(self) -> bool:
        return self.remaining == 0

    async def capture_frame(self, region: Region | None = None) -> Frame:
        if self.exhausted:
            if not (self._repeat_last and self._paths):
                raise CaptureFailed("Image sequence exhausted")
            path = self._paths[-1]
        else:
            path = self._paths[self._position]
            self._position += 1

        image = self._read(path)
        if region is not None:
            try:
                image = crop(image, region.x, region.y, region.width, region.height)
            except ValueError as e:
                raise CaptureFailed(str(e)) from e
        return Frame(
            image=image,
            timestamp=datetime.now(),
            frame_number=self._next_frame_number(),
            source=f"file:{path.name}",
            region=region,
        )

    @staticmethod
    def _read(path: Path) -> np.ndarray:
        image = cv2.imread(str(path), cv2.IMREAD_COLOR)
        if image is None:
            raise CaptureFailed(f"Failed to read image {path}")
        return image
