"""Tests for image helpers and logging setup."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator

import numpy as np
import pytest

from screenpager.config.settings import LoggingConfig
from screenpager.utils.imaging import (
    crop,
    data_url_to_numpy,
    ensure_bgr,
    numpy_to_data_url,
    numpy_to_pil,
    prepare_for_ocr,
    strip_data_url,
)
from screenpager.utils.logging import component_logger_name, setup_logging


class TestImaging:

    def test_data_url_preserves_pixels(self) -> None:
        image = np.zeros((20, 30, 3), dtype=np.uint8)
        image[5:10, 5:10] = (255, 0, 0)
        url = numpy_to_data_url(image)
        assert url.startswith("data:image/png;base64,")
        np.testing.assert_array_equal(data_url_to_numpy(url), image)

    def test_strip_data_url(self) -> None:
        assert strip_data_url("data:image/png;base64,QUJD") == "QUJD"
        assert strip_data_url("QUJD") == "QUJD"

    def test_invalid_image_data(self) -> None:
        with pytest.raises(ValueError):
            data_url_to_numpy("data:image/png;base64,bm90IGEgcG5n")

    def test_ensure_bgr(self) -> None:
        assert ensure_bgr(np.zeros((4, 5), dtype=np.uint8)).shape == (4, 5, 3)
        assert ensure_bgr(np.zeros((4, 5, 4), dtype=np.uint8)).shape == (4, 5, 3)
        with pytest.raises(ValueError):
            ensure_bgr(np.zeros((4, 5, 2), dtype=np.uint8))

    def test_numpy_to_pil_swaps_channels(self) -> None:
        image = np.zeros((2, 2, 3), dtype=np.uint8)
        image[:, :, 0] = 255  # blue in BGR
        assert numpy_to_pil(image).getpixel((0, 0)) == (0, 0, 255)

    def test_crop_is_clamped(self) -> None:
        image = np.zeros((50, 60, 3), dtype=np.uint8)
        assert crop(image, 40, 30, 100, 100).shape == (20, 20, 3)
        with pytest.raises(ValueError):
            crop(image, 70, 0, 10, 10)

    def test_prepare_for_ocr(self) -> None:
        out = prepare_for_ocr(np.zeros((100, 3000, 3), dtype=np.uint8))
        assert out.ndim == 2
        assert out.shape == (66, 2000)


class TestSetupLogging:

    @pytest.fixture(autouse=True)
    def restore_logger(self) -> Iterator[None]:
        logger = logging.getLogger("screenpager")
        level, handlers = logger.level, list(logger.handlers)
        yield
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
        logger.setLevel(level)
        for handler in handlers:
            logger.addHandler(handler)

    def test_repeated_setup_replaces_handlers(self) -> None:
        setup_logging(LoggingConfig(level="DEBUG"))
        setup_logging(LoggingConfig(level="DEBUG"))
        logger = logging.getLogger("screenpager")
        assert len(logger.handlers) == 1
        assert logger.level == logging.DEBUG

    def test_file_handler(self, tmp_path: Path) -> None:
        log_file = tmp_path / "screenpager.log"
        setup_logging(LoggingConfig(level="INFO", file=str(log_file)))
        logging.getLogger("screenpager.test").info("hello from the test")
        for handler in logging.getLogger("screenpager").handlers:
            handler.flush()
        assert "hello from the test" in log_file.read_text()

    def test_component_levels(self) -> None:
        scheduler_logger = logging.getLogger("screenpager.scheduler")
        openai_logger = logging.getLogger("openai")
        saved = scheduler_logger.level, openai_logger.level
        config = LoggingConfig(level="INFO", components={"scheduler": "debug"}, quiet=["openai"])
        try:
            setup_logging(config)
            assert scheduler_logger.level == logging.DEBUG
            assert openai_logger.level == logging.WARNING
        finally:
            scheduler_logger.setLevel(saved[0])
            openai_logger.setLevel(saved[1])

    def test_unknown_level_is_rejected(self) -> None:
        with pytest.raises(ValueError):
            setup_logging(LoggingConfig(level="LOUD"))

    def test_component_logger_name(self) -> None:
        assert component_logger_name("extraction.openai") == "screenpager.extraction.openai"
        assert component_logger_name("screenpager.pages") == "screenpager.pages"
