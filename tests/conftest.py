"""Shared test fixtures for the screenpager test suite.

Provides synthetic frames, an in-memory frame source, a mock extraction
provider and a dispatcher wired to it.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable
from unittest.mock import AsyncMock, MagicMock

import numpy as np
import pytest

from screenpager.capture.base import CaptureFailed, FrameSource
from screenpager.config.settings import Settings
from screenpager.domain.models import ExtractionResult, Frame, Region
from screenpager.extraction.dispatcher import ExtractionDispatcher

# Frames are 90 rows high so each band is exactly 30 rows
FRAME_HEIGHT = 90
FRAME_WIDTH = 120


def banded_image(top: int = 0, middle: int = 0, bottom: int = 0) -> np.ndarray:
    """A BGR image whose three horizontal bands are flat fills."""
    image = np.zeros((FRAME_HEIGHT, FRAME_WIDTH, 3), dtype=np.uint8)
    band = FRAME_HEIGHT // 3
    image[:band] = top
    image[band : band * 2] = middle
    image[band * 2 :] = bottom
    return image


class FakeFrameSource(FrameSource):
    """Serves queued images in order and keeps serving the last one.

    Raises CaptureFailed when the queue is empty.
    """

    def __init__(self, images: list[np.ndarray] | None = None) -> None:
        super().__init__()
        self._images = list(images or [])
        self.calls = 0
        self.regions: list[Region | None] = []

    def push(self, *images: np.ndarray) -> None:
        self._images.extend(images)

    async def capture_frame(self, region: Region | None = None) -> Frame:
        self.calls += 1
        self.regions.append(region)
        if not self._images:
            raise CaptureFailed("no frames queued")
        image = self._images.pop(0) if len(self._images) > 1 else self._images[0]
        return Frame(image=image, frame_number=self._next_frame_number(), source="fake")


# ---------------------------------------------------------------------------
# Frame / Image Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def make_image() -> Callable[..., np.ndarray]:
    """Factory for banded images: ``make_image(top, middle, bottom)``."""
    return banded_image


@pytest.fixture
def sample_image() -> np.ndarray:
    """A black 90x120 image."""
    return banded_image()


@pytest.fixture
def sample_frame(sample_image: np.ndarray) -> Frame:
    return Frame(
        image=sample_image,
        timestamp=datetime(2025, 1, 1, 12, 0, 0),
        frame_number=1,
        source="test",
    )


@pytest.fixture
def sample_region() -> Region:
    return Region(x=0, y=0, width=400, height=800)


@pytest.fixture
def fake_source() -> FakeFrameSource:
    """An empty in-memory frame source; queue frames with ``push``."""
    return FakeFrameSource()


# ---------------------------------------------------------------------------
# Extraction Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def mock_provider() -> MagicMock:
    """A configured provider whose extract() returns fixed text."""
    provider = MagicMock()
    provider.name = "mock"
    provider.is_configured.return_value = True
    provider.initialize = AsyncMock()
    provider.extract = AsyncMock(
        return_value=ExtractionResult(text="hello world", confidence=0.95, elapsed_ms=5.0)
    )
    provider.extract_region = AsyncMock(
        return_value=ExtractionResult(text="region", confidence=0.9, elapsed_ms=5.0)
    )
    provider.close = AsyncMock()
    return provider


@pytest.fixture
def dispatcher(settings: Settings, mock_provider: MagicMock) -> ExtractionDispatcher:
    """A dispatcher that always hands out ``mock_provider``."""
    return ExtractionDispatcher(
        settings, mode="local", provider_factory=lambda mode, cfg: mock_provider
    )
