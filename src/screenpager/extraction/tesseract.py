"""Local OCR provider backed by the Tesseract engine via pytesseract."""

from __future__ import annotations

import asyncio
import logging
import shutil
import time

import numpy as np
import pytesseract

from screenpager.domain.models import ExtractionResult, TextBlock
from screenpager.extraction.base import ExtractionProvider, ProviderNotConfigured
from screenpager.utils.imaging import numpy_to_pil, prepare_for_ocr

logger = logging.getLogger(__name__)


class TesseractProvider(ExtractionProvider):
    """Runs Tesseract locally. No network, so no retries.

    Recognition is blocking and runs in a thread pool executor. Engine
    failures degrade to an empty result.
    """

    name = "tesseract"

    def __init__(
        self,
        tesseract_cmd: str | None = None,
        lang: str = "eng",
        psm: int = 1,
    ) -> None:
        super().__init__()
        self._tesseract_cmd = tesseract_cmd
        self._lang = lang
        self._psm = psm
        self._version: str | None = None

    def is_configured(self) -> bool:
        cmd = self._tesseract_cmd or pytesseract.pytesseract.tesseract_cmd
        return shutil.which(cmd) is not None

    async def _setup(self) -> None:
        if self._tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = self._tesseract_cmd
        loop = asyncio.get_running_loop()
        version = await loop.run_in_executor(None, pytesseract.get_tesseract_version)
        self._version = str(version)
        logger.info("Initialized Tesseract %s (lang=%s, psm=%d)", self._version, self._lang, self._psm)

    async def extract(self, image: np.ndarray) -> ExtractionResult:
        start = time.monotonic()
        try:
            await self.initialize()
            loop = asyncio.get_running_loop()
            data = await loop.run_in_executor(None, self._recognize_sync, image)
        except ProviderNotConfigured:
            raise
        except Exception as e:
            logger.error("Tesseract OCR failed: %s", e)
            return ExtractionResult.empty((time.monotonic() - start) * 1000.0)

        result = self._parse_data(data, (time.monotonic() - start) * 1000.0)
        logger.debug(
            "Tesseract read %d words in %.0f ms", len(result.blocks), result.elapsed_ms
        )
        return result

    def _recognize_sync(self, image: np.ndarray) -> dict:
        """Synchronous recognition (runs in thread pool)."""
        prepared = numpy_to_pil(prepare_for_ocr(image))
        return pytesseract.image_to_data(
            prepared,
            lang=self._lang,
            config=f"--psm {self._psm}",
            output_type=pytesseract.Output.DICT,
        )

    @staticmethod
    def _parse_data(data: dict, elapsed_ms: float) -> ExtractionResult:
        """Group Tesseract word boxes into lines of text."""
        lines: dict[tuple[int, int, int], list[str]] = {}
        blocks: list[TextBlock] = []

        for i, word in enumerate(data.get("text", [])):
            word = (word or "").strip()
            try:
                conf = float(data["conf"][i])
            except (KeyError, IndexError, TypeError, ValueError):
                conf = -1.0
            if not word or conf < 0:
                continue
            key = (int(data["block_num"][i]), int(data["par_num"][i]), int(data["line_num"][i]))
            lines.setdefault(key, []).append(word)
            left, top = int(data["left"][i]), int(data["top"][i])
            blocks.append(
                TextBlock(
                    text=word,
                    bbox=(left, top, left + int(data["width"][i]), top + int(data["height"][i])),
                    confidence=min(1.0, conf / 100.0),
                )
            )

        text = "\n".join(" ".join(words) for _, words in sorted(lines.items()))
        confidence = sum(b.confidence for b in blocks) / len(blocks) if blocks else 0.0
        return ExtractionResult(
            text=text, confidence=confidence, elapsed_ms=elapsed_ms, blocks=blocks
        )
