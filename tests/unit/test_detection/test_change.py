"""Tests for pixel-level change detection and perceptual hashing."""

from __future__ import annotations

import numpy as np
import pytest

from screenpager.detection.change import (
    ChangeDetector,
    hamming_distance,
    has_frame_changed,
    hash_similarity,
    perceptual_hash,
)
from screenpager.domain.models import Frame


class TestChangeDetector:
    """Test the ratio-of-differing-pixels comparison."""

    def test_identical_frames_do_not_change(self, make_image) -> None:
        image = make_image(10, 120, 250)
        result = ChangeDetector().compare(image, image.copy())
        assert result.changed is False
        assert result.ratio == 0.0

    @pytest.mark.parametrize("threshold", [0.001, 0.05, 0.5, 1.0])
    def test_identical_frames_never_change_for_any_threshold(self, make_image, threshold) -> None:
        image = make_image(30, 60, 90)
        assert ChangeDetector().detect(image, image.copy(), threshold=threshold) is False

    def test_missing_previous_frame_always_changes(self, sample_frame: Frame) -> None:
        result = ChangeDetector().compare(None, sample_frame)
        assert result.changed is True
        assert result.ratio == 1.0

    def test_dimension_mismatch_changes(self) -> None:
        prev = np.zeros((90, 120, 3), dtype=np.uint8)
        curr = np.zeros((60, 120, 3), dtype=np.uint8)
        assert ChangeDetector().compare(prev, curr).changed is True

    def test_entirely_different_frame(self, make_image) -> None:
        result = ChangeDetector().compare(make_image(0, 0, 0), make_image(200, 200, 200))
        assert result.changed is True
        assert result.ratio == pytest.approx(1.0)

    def test_one_band_changed(self, make_image) -> None:
        result = ChangeDetector().compare(make_image(0, 0, 0), make_image(0, 0, 200))
        assert result.changed is True
        assert 0.3 < result.ratio < 0.37

    def test_small_patch_below_threshold(self, make_image) -> None:
        prev = make_image(0, 0, 0)
        curr = prev.copy()
        curr[40:43, 50:53] = 255
        result = ChangeDetector().compare(prev, curr)
        assert result.changed is False
        assert result.ratio < 0.05

    def test_threshold_override(self, make_image) -> None:
        detector = ChangeDetector()
        prev, curr = make_image(0, 0, 0), make_image(0, 0, 200)
        assert detector.detect(prev, curr) is True
        assert detector.detect(prev, curr, threshold=0.5) is False

    def test_small_color_shift_is_within_tolerance(self, make_image) -> None:
        result = ChangeDetector().compare(make_image(100, 100, 100), make_image(120, 120, 120))
        assert result.changed is False

    def test_accepts_frames_and_grayscale(self, sample_frame: Frame) -> None:
        gray = np.zeros(sample_frame.image.shape[:2], dtype=np.uint8)
        assert ChangeDetector().compare(sample_frame, gray).changed is False

    def test_processing_failure_assumes_changed(self) -> None:
        prev = np.zeros((90, 120, 3), dtype=np.uint8)
        curr = np.zeros((90, 120, 5), dtype=np.uint8)
        result = ChangeDetector().compare(prev, curr)
        assert result.changed is True
        assert result.ratio == 1.0

    def test_has_frame_changed(self, make_image) -> None:
        assert has_frame_changed(None, make_image()) is True
        assert has_frame_changed(make_image(), make_image()) is False
        assert has_frame_changed(make_image(), make_image(200, 200, 200)) is True


class TestPerceptualHash:
    """Test the average hash and its comparators."""

    @pytest.fixture
    def split_image(self) -> np.ndarray:
        image = np.zeros((64, 120, 3), dtype=np.uint8)
        image[:, 60:] = 255
        return image

    def test_same_image_same_hash(self, split_image: np.ndarray) -> None:
        assert perceptual_hash(split_image) == perceptual_hash(split_image.copy())

    def test_inverted_image_flips_every_bit(self, split_image: np.ndarray) -> None:
        a = perceptual_hash(split_image)
        b = perceptual_hash(255 - split_image)
        assert hamming_distance(a, b) == 64
        assert hash_similarity(a, b) == 0.0

    def test_hash_width(self, split_image: np.ndarray) -> None:
        assert perceptual_hash(split_image, hash_size=4) < 2**16

    def test_hamming_distance(self) -> None:
        assert hamming_distance(0b1011, 0b0001) == 2
        assert hamming_distance(5, 5) == 0

    def test_hash_similarity_identical(self) -> None:
        assert hash_similarity(0xFF, 0xFF) == 1.0
