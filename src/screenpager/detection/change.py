"""Frame change detection.

Provides cheap local checks to avoid paying for text extraction when
the captured region hasn't changed, plus a perceptual hash for callers
that compare the same frame many times.
"""

from __future__ import annotations

import logging

import cv2
import numpy as np

from screenpager.domain.models import ChangeResult, Frame
from screenpager.utils.imaging import ensure_bgr

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.05
COMPARE_SIZE = 100
PIXEL_TOLERANCE = 50.0


def _as_image(frame: Frame | np.ndarray) -> np.ndarray:
    return frame.image if isinstance(frame, Frame) else frame


class ChangeDetector:
    """Decides whether two frames differ enough to act on.

    Both frames are squashed to ``compare_size`` x ``compare_size``
    (aspect ratio is not preserved) and compared pixel by pixel. A pixel
    counts as different when the Euclidean distance between its BGR
    triples exceeds ``pixel_tolerance``.
    """

    def __init__(
        self,
        threshold: float = DEFAULT_THRESHOLD,
        compare_size: int = COMPARE_SIZE,
        pixel_tolerance: float = PIXEL_TOLERANCE,
    ) -> None:
        self._threshold = threshold
        self._compare_size = compare_size
        self._pixel_tolerance = pixel_tolerance

    @property
    def threshold(self) -> float:
        return self._threshold

    def compare(
        self,
        prev: Frame | np.ndarray | None,
        curr: Frame | np.ndarray,
        threshold: float | None = None,
    ) -> ChangeResult:
        """Compare two frames.

        Args:
            prev: Previous accepted frame, or None on the first capture.
            curr: Newly captured frame.
            threshold: Fraction of pixels (0.0-1.0) that must differ.
                Defaults to the detector's threshold.

        Returns:
            ChangeResult with the changed flag and the differing ratio.
            Absent previous frames, mismatched dimensions and processing
            errors all report a change.
        """
        if threshold is None:
            threshold = self._threshold
        if prev is None:
            return ChangeResult(changed=True, ratio=1.0)

        try:
            prev_img = ensure_bgr(_as_image(prev))
            curr_img = ensure_bgr(_as_image(curr))
            if prev_img.shape[:2] != curr_img.shape[:2]:
                logger.debug(
                    "Frame size changed %s -> %s", prev_img.shape[:2], curr_img.shape[:2]
                )
                return ChangeResult(changed=True, ratio=1.0)

            ratio = self._difference_ratio(prev_img, curr_img)
        except Exception as e:
            logger.warning("Change detection failed, assuming changed: %s", e)
            return ChangeResult(changed=True, ratio=1.0)

        logger.debug("Image difference: %.2f%%", ratio * 100)
        return ChangeResult(changed=ratio > threshold, ratio=ratio)

    def detect(
        self,
        prev: Frame | np.ndarray | None,
        curr: Frame | np.ndarray,
        threshold: float | None = None,
    ) -> bool:
        """Return True if ``curr`` differs from ``prev`` by more than ``threshold``."""
        return self.compare(prev, curr, threshold).changed

    def _difference_ratio(self, prev: np.ndarray, curr: np.ndarray) -> float:
        size = (self._compare_size, self._compare_size)
        a = cv2.resize(prev, size, interpolation=cv2.INTER_AREA).astype(np.int32)
        b = cv2.resize(curr, size, interpolation=cv2.INTER_AREA).astype(np.int32)
        delta = b - a
        distance = np.sqrt(np.sum(delta * delta, axis=2))
        different = np.count_nonzero(distance > self._pixel_tolerance)
        return different / distance.size


def has_frame_changed(
    prev: Frame | np.ndarray | None,
    curr: Frame | np.ndarray,
    threshold: float = DEFAULT_THRESHOLD,
) -> bool:
    """Check if enough pixels changed between two frames.

    Args:
        prev: Previous frame, or None for the first capture.
        curr: Current frame.
        threshold: Fraction of pixels that must differ (0.0-1.0).

    Returns:
        True if the frame changed enough to warrant processing.
    """
    return ChangeDetector(threshold=threshold).detect(prev, curr)


# ---------------------------------------------------------------------------
# Perceptual hashing
# ---------------------------------------------------------------------------


def perceptual_hash(image: Frame | np.ndarray, hash_size: int = 8) -> int:
    """Compute an average hash of an image.

    Steps:
    1) convert to grayscale
    2) resize to hash_size x hash_size
    3) set one bit per pixel brighter than the mean
    4) pack bits row-major into an int
    """
    gray = cv2.cvtColor(ensure_bgr(_as_image(image)), cv2.COLOR_BGR2GRAY)
    small = cv2.resize(gray, (hash_size, hash_size), interpolation=cv2.INTER_AREA)
    bits = (small > small.mean()).flatten()

    h = 0
    for bit in bits:
        h = (h << 1) | int(bit)
    return h


def hamming_distance(a: int, b: int) -> int:
    """Number of differing bits between two hashes."""
    return (a ^ b).bit_count()


def hash_similarity(a: int, b: int, hash_size: int = 8) -> float:
    """Similarity of two hashes of the same size, from 0.0 to 1.0."""
    nbits = hash_size * hash_size
    return 1.0 - hamming_distance(a, b) / nbits
