"""Frame comparison for screenpager.

Public API:
    ChangeDetector -- Pixel-level change ratio between two frames
    DirectionClassifier -- Banded scroll / new-screen / noise classification
"""

from screenpager.detection.change import (
    ChangeDetector,
    hamming_distance,
    has_frame_changed,
    perceptual_hash,
)
from screenpager.detection.direction import DirectionClassifier, detect_scroll_direction

__all__ = [
    "ChangeDetector",
    "DirectionClassifier",
    "detect_scroll_direction",
    "hamming_distance",
    "has_frame_changed",
    "perceptual_hash",
]
