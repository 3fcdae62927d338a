"""Tests for banded direction classification."""

from __future__ import annotations

import numpy as np
import pytest

from screenpager.detection.direction import (
    DirectionClassifier,
    band_similarity,
    decide_direction,
    detect_scroll_direction,
    split_bands,
)
from screenpager.domain.models import BandSimilarity, ChangeDirection, ScrollDirection


def _sim(top: float, middle: float, bottom: float) -> BandSimilarity:
    return BandSimilarity(top=top, middle=middle, bottom=bottom)


class TestDecideDirection:
    """Test the decision table, first matching rule wins."""

    def test_major_when_overall_below_40(self) -> None:
        result = decide_direction(_sim(10, 10, 10))
        assert result.direction is ChangeDirection.MAJOR
        assert result.confidence == 0.9
        assert result.is_boundary

    def test_horizontal_when_overall_below_50(self) -> None:
        result = decide_direction(_sim(100, 30, 0))
        assert result.direction is ChangeDirection.HORIZONTAL
        assert result.confidence == 0.8
        assert result.is_boundary

    def test_overall_exactly_40_is_horizontal(self) -> None:
        assert decide_direction(_sim(40, 40, 40)).direction is ChangeDirection.HORIZONTAL

    def test_vertical_down_when_top_more_similar(self) -> None:
        result = decide_direction(_sim(90, 80, 40))
        assert result.direction is ChangeDirection.VERTICAL
        assert result.scroll_direction is ScrollDirection.DOWN
        assert result.confidence == 0.85
        assert not result.is_boundary

    def test_vertical_up_when_bottom_more_similar(self) -> None:
        result = decide_direction(_sim(40, 80, 90))
        assert result.direction is ChangeDirection.VERTICAL
        assert result.scroll_direction is ScrollDirection.UP

    def test_vertical_takes_precedence_over_minor(self) -> None:
        assert decide_direction(_sim(100, 95, 80)).direction is ChangeDirection.VERTICAL

    def test_equal_outer_bands_below_100_are_vertical_up(self) -> None:
        result = decide_direction(_sim(60, 90, 60))
        assert result.direction is ChangeDirection.VERTICAL
        assert result.scroll_direction is ScrollDirection.UP

    def test_stable_outer_bands_with_changed_middle_are_vertical(self) -> None:
        result = decide_direction(_sim(100, 99.5, 100))
        assert result.direction is ChangeDirection.VERTICAL
        assert result.scroll_direction is ScrollDirection.UP

    def test_identical_bands_are_not_a_scroll(self) -> None:
        result = decide_direction(_sim(100, 100, 100))
        assert result.direction is ChangeDirection.NONE
        assert result.confidence == 0.95

    def test_minor_change(self) -> None:
        result = decide_direction(_sim(100, 60, 100))
        assert result.direction is ChangeDirection.NONE
        assert result.confidence == 0.95

    def test_ambiguous(self) -> None:
        result = decide_direction(_sim(60, 60, 60))
        assert result.direction is ChangeDirection.NONE
        assert result.confidence == 0.5

    def test_overall_exactly_50_is_not_horizontal(self) -> None:
        result = decide_direction(_sim(50, 50, 50))
        assert result.direction is ChangeDirection.NONE
        assert result.confidence == 0.5

    def test_similarity_is_attached(self) -> None:
        similarity = _sim(100, 30, 0)
        assert decide_direction(similarity).similarity == similarity


class TestBandHelpers:

    def test_split_bands_drops_remainder_rows(self) -> None:
        image = np.zeros((91, 10, 3), dtype=np.uint8)
        top, middle, bottom = split_bands(image)
        assert top.shape[0] == middle.shape[0] == bottom.shape[0] == 30

    def test_split_bands_rejects_short_images(self) -> None:
        with pytest.raises(ValueError):
            split_bands(np.zeros((2, 10, 3), dtype=np.uint8))

    def test_band_similarity_identical(self) -> None:
        band = np.full((30, 40, 3), 77, dtype=np.uint8)
        assert band_similarity(band, band.copy()) == 100.0

    def test_band_similarity_shape_mismatch(self) -> None:
        a = np.zeros((30, 40, 3), dtype=np.uint8)
        b = np.zeros((30, 41, 3), dtype=np.uint8)
        assert band_similarity(a, b) == 0.0

    def test_band_similarity_tolerance_is_exclusive(self) -> None:
        a = np.full((30, 40, 3), 100, dtype=np.uint8)
        assert band_similarity(a, np.full_like(a, 109)) == 100.0
        assert band_similarity(a, np.full_like(a, 110)) == 0.0

    def test_band_similarity_partial(self) -> None:
        a = np.zeros((30, 40, 3), dtype=np.uint8)
        b = a.copy()
        b[:15] = 200
        assert band_similarity(a, b) == pytest.approx(50.0)


class TestDirectionClassifier:
    """Test classification of synthetic frame pairs."""

    def test_scroll_down(self, make_image) -> None:
        result = DirectionClassifier().classify(make_image(0, 0, 0), make_image(0, 0, 200))
        assert result.direction is ChangeDirection.VERTICAL
        assert result.scroll_direction is ScrollDirection.DOWN

    def test_scroll_up(self, make_image) -> None:
        result = DirectionClassifier().classify(make_image(0, 0, 0), make_image(200, 0, 0))
        assert result.direction is ChangeDirection.VERTICAL
        assert result.scroll_direction is ScrollDirection.UP

    def test_new_screen(self, make_image) -> None:
        result = DirectionClassifier().classify(make_image(0, 0, 0), make_image(200, 200, 200))
        assert result.direction is ChangeDirection.MAJOR

    def test_horizontal(self, make_image) -> None:
        curr = make_image(0, 0, 200)
        curr[30:51] = 200
        result = DirectionClassifier().classify(make_image(0, 0, 0), curr)
        assert result.direction is ChangeDirection.HORIZONTAL
        assert result.similarity.middle == pytest.approx(30.0)

    def test_bucket_is_symmetric(self, make_image) -> None:
        prev = make_image(0, 0, 0)
        curr = make_image(0, 0, 200)
        curr[30:51] = 200
        classifier = DirectionClassifier()
        assert classifier.classify(prev, curr).direction is classifier.classify(curr, prev).direction

    def test_identical_frames(self, make_image) -> None:
        image = make_image(20, 40, 60)
        result = DirectionClassifier().classify(image, image.copy())
        assert result.direction is ChangeDirection.NONE
        assert result.confidence == 0.95

    def test_middle_only_change_is_ambiguous(self, make_image) -> None:
        result = DirectionClassifier().classify(make_image(0, 0, 0), make_image(0, 200, 0))
        assert result.direction is ChangeDirection.NONE
        assert result.confidence == 0.5

    def test_different_dimensions_are_major(self) -> None:
        prev = np.zeros((90, 120, 3), dtype=np.uint8)
        curr = np.zeros((60, 120, 3), dtype=np.uint8)
        assert DirectionClassifier().classify(prev, curr).direction is ChangeDirection.MAJOR

    def test_failure_yields_none_with_zero_confidence(self) -> None:
        tiny = np.zeros((1, 120, 3), dtype=np.uint8)
        result = DirectionClassifier().classify(tiny, tiny)
        assert result.direction is ChangeDirection.NONE
        assert result.confidence == 0.0
        assert result.similarity is None

    def test_detect_scroll_direction(self, make_image) -> None:
        base = make_image(0, 0, 0)
        assert detect_scroll_direction(base, make_image(200, 0, 0)) is ScrollDirection.UP
        assert detect_scroll_direction(base, make_image(0, 0, 200)) is ScrollDirection.DOWN
        # Not a scroll at all
        assert detect_scroll_direction(base, make_image(200, 200, 200)) is ScrollDirection.DOWN
