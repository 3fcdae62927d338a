"""Directional change classification.

Splits two frames into three equal-height horizontal bands and compares
them band by band. A stable middle band with diverging top and bottom
bands is the signature of vertical scrolling: content moves through the
viewport while the centre stays visually similar. Very low overall
similarity means a different screen; mid-range similarity without a
stable middle band means lateral navigation.
"""

from __future__ import annotations

import logging

import numpy as np

from screenpager.domain.models import (
    BandSimilarity,
    ChangeDirection,
    DirectionResult,
    Frame,
    ScrollDirection,
)
from screenpager.utils.imaging import ensure_bgr

logger = logging.getLogger(__name__)

# Decision thresholds, in percent similarity
MAJOR_BELOW = 40.0
HORIZONTAL_BELOW = 50.0
STABLE_MIDDLE_ABOVE = 70.0
MINOR_ABOVE = 85.0
# Every band at or above this is an unchanged frame, never a scroll
IDENTICAL_ABOVE = 100.0


def _as_image(frame: Frame | np.ndarray) -> np.ndarray:
    return frame.image if isinstance(frame, Frame) else frame


def split_bands(image: np.ndarray) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Return the top, middle and bottom thirds of an image.

    Rows left over when the height is not divisible by three are ignored.
    """
    band_height = image.shape[0] // 3
    if band_height == 0:
        raise ValueError(f"Image too short to split into bands: {image.shape[0]}px")
    return (
        image[:band_height],
        image[band_height : band_height * 2],
        image[band_height * 2 : band_height * 3],
    )


def band_similarity(
    a: np.ndarray, b: np.ndarray, sample_rate: int = 4, tolerance: int = 10
) -> float:
    """Percentage (0-100) of sampled bytes that are nearly equal.

    Every ``sample_rate``-th byte of the raw pixel data is compared; a
    sample is similar when the absolute difference is below
    ``tolerance``. Bands of different shapes have no similarity.
    """
    if a.shape != b.shape:
        return 0.0
    samples_a = a.reshape(-1)[::sample_rate].astype(np.int16)
    samples_b = b.reshape(-1)[::sample_rate].astype(np.int16)
    if samples_a.size == 0:
        return 0.0
    similar = np.count_nonzero(np.abs(samples_a - samples_b) < tolerance)
    return similar / samples_a.size * 100.0


def decide_direction(similarity: BandSimilarity) -> DirectionResult:
    """Map band similarities to a direction. First matching rule wins."""
    overall = similarity.overall

    if overall < MAJOR_BELOW:
        return DirectionResult(
            direction=ChangeDirection.MAJOR, confidence=0.9, similarity=similarity
        )

    if overall < HORIZONTAL_BELOW:
        return DirectionResult(
            direction=ChangeDirection.HORIZONTAL, confidence=0.8, similarity=similarity
        )

    identical = min(similarity.top, similarity.middle, similarity.bottom) >= IDENTICAL_ABOVE
    if similarity.middle > STABLE_MIDDLE_ABOVE and not identical:
        # Top band changed less than the bottom band when scrolling down
        scroll = (
            ScrollDirection.DOWN if similarity.top > similarity.bottom else ScrollDirection.UP
        )
        return DirectionResult(
            direction=ChangeDirection.VERTICAL,
            confidence=0.85,
            scroll_direction=scroll,
            similarity=similarity,
        )

    if overall > MINOR_ABOVE:
        return DirectionResult(
            direction=ChangeDirection.NONE, confidence=0.95, similarity=similarity
        )

    # Ambiguous
    return DirectionResult(
        direction=ChangeDirection.NONE, confidence=0.5, similarity=similarity
    )


class DirectionClassifier:
    """Classifies the change between two frames as scroll, new screen or noise."""

    def __init__(self, sample_rate: int = 4, tolerance: int = 10) -> None:
        self._sample_rate = sample_rate
        self._tolerance = tolerance

    def band_similarities(
        self, prev: Frame | np.ndarray, curr: Frame | np.ndarray
    ) -> BandSimilarity:
        """Compute the top/middle/bottom similarity of two frames."""
        prev_bands = split_bands(ensure_bgr(_as_image(prev)))
        curr_bands = split_bands(ensure_bgr(_as_image(curr)))
        top, middle, bottom = (
            band_similarity(p, c, self._sample_rate, self._tolerance)
            for p, c in zip(prev_bands, curr_bands)
        )
        return BandSimilarity(top=top, middle=middle, bottom=bottom)

    def classify(self, prev: Frame | np.ndarray, curr: Frame | np.ndarray) -> DirectionResult:
        """Classify the change from ``prev`` to ``curr``.

        Never raises: a failure while extracting bands yields direction
        ``none`` with zero confidence so that no page boundary is created.
        """
        try:
            similarity = self.band_similarities(prev, curr)
        except Exception as e:
            logger.warning("Direction classification failed: %s", e)
            return DirectionResult(direction=ChangeDirection.NONE, confidence=0.0)

        result = decide_direction(similarity)
        logger.debug(
            "Band similarities top=%.1f middle=%.1f bottom=%.1f -> %s",
            similarity.top, similarity.middle, similarity.bottom,
            result.direction.value,
        )
        return result


def detect_scroll_direction(
    prev: Frame | np.ndarray,
    curr: Frame | np.ndarray,
    classifier: DirectionClassifier | None = None,
) -> ScrollDirection:
    """Return the scroll direction between two frames, defaulting to down."""
    result = (classifier or DirectionClassifier()).classify(prev, curr)
    if result.direction is ChangeDirection.VERTICAL and result.scroll_direction is not None:
        return result.scroll_direction
    return ScrollDirection.DOWN
