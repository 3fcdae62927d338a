"""Routes frames to the text-extraction provider selected by mode.

The mode is read at call time. When it changes, the current provider is
closed and the provider for the new mode is created and initialized
lazily on its first use.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import time
from typing import Callable

import numpy as np

from screenpager.config.settings import Settings
from screenpager.domain.models import ExtractionResult, Region
from screenpager.extraction.base import ExtractionProvider, ProviderNotConfigured

logger = logging.getLogger(__name__)


class ExtractionMode(str, enum.Enum):
    LOCAL = "local"  # Tesseract
    CLOUD = "cloud"  # OpenAI-compatible vision API
    ANTHROPIC = "anthropic"  # Claude vision API


def create_provider(mode: ExtractionMode, settings: Settings) -> ExtractionProvider:
    """Build the provider for a mode from settings."""
    cfg = settings.extraction
    if mode is ExtractionMode.LOCAL:
        from screenpager.extraction.tesseract import TesseractProvider

        return TesseractProvider(
            tesseract_cmd=cfg.tesseract_cmd, lang=cfg.tesseract_lang, psm=cfg.tesseract_psm
        )

    retry = {
        "max_tokens": cfg.max_tokens,
        "max_attempts": cfg.max_attempts,
        "backoff_base": cfg.backoff_base,
        "timeout": cfg.timeout,
    }
    if mode is ExtractionMode.CLOUD:
        from screenpager.extraction.openai import OpenAIVisionProvider

        return OpenAIVisionProvider(
            api_key=settings.openai_api_key.get_secret_value(),
            model=cfg.model,
            base_url=cfg.base_url,
            **retry,
        )
    if mode is ExtractionMode.ANTHROPIC:
        from screenpager.extraction.anthropic import AnthropicVisionProvider

        return AnthropicVisionProvider(
            api_key=settings.anthropic_api_key.get_secret_value(),
            model=cfg.anthropic_model,
            **retry,
        )
    raise ValueError(f"Unsupported extraction mode: {mode!r}")


ProviderFactory = Callable[[ExtractionMode, Settings], ExtractionProvider]


class ExtractionDispatcher:
    """Single ``extract(image)`` entry point over interchangeable providers.

    ``extract`` never raises: an unconfigured provider or a provider
    failure is logged and reported as an empty result, so extraction
    problems cannot abort the capture pipeline.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        mode: ExtractionMode | str | None = None,
        provider_factory: ProviderFactory = create_provider,
    ) -> None:
        self._settings = settings or Settings()
        self._mode = ExtractionMode(mode or self._settings.extraction.mode)
        self._factory = provider_factory
        self._provider: ExtractionProvider | None = None
        self._active_mode: ExtractionMode | None = None
        self._lock = asyncio.Lock()

    @property
    def mode(self) -> ExtractionMode:
        return self._mode

    @mode.setter
    def mode(self, value: ExtractionMode | str) -> None:
        self._mode = ExtractionMode(value)

    async def get_provider(self) -> ExtractionProvider:
        """Return the provider for the current mode, switching if needed."""
        async with self._lock:
            mode = self._mode
            if self._provider is not None and self._active_mode is mode:
                return self._provider

            if self._provider is not None:
                logger.info(
                    "Switching extraction mode %s -> %s", self._active_mode.value, mode.value
                )
                await self._close_provider()

            self._provider = self._factory(mode, self._settings)
            self._active_mode = mode
            logger.info("Using extraction provider: %s", self._provider.name)
            return self._provider

    async def extract(self, image: np.ndarray) -> ExtractionResult:
        """Extract text from an image with the current provider."""
        start = time.monotonic()
        try:
            provider = await self.get_provider()
            result = await provider.extract(image)
        except ProviderNotConfigured as e:
            logger.warning("Extraction skipped: %s", e)
            return ExtractionResult.empty(_elapsed_ms(start))
        except Exception:
            logger.exception("Extraction failed in mode %s", self._mode.value)
            return ExtractionResult.empty(_elapsed_ms(start))

        logger.info(
            "Extracted %d characters in %.0f ms (confidence %.2f)",
            len(result.text), result.elapsed_ms, result.confidence,
        )
        return result

    async def extract_region(self, image: np.ndarray, region: Region) -> ExtractionResult:
        """Best-effort extraction limited to a region of the image."""
        start = time.monotonic()
        try:
            provider = await self.get_provider()
            return await provider.extract_region(image, region)
        except ProviderNotConfigured as e:
            logger.warning("Extraction skipped: %s", e)
        except Exception:
            logger.exception("Region extraction failed in mode %s", self._mode.value)
        return ExtractionResult.empty(_elapsed_ms(start))

    async def warm_up(self) -> bool:
        """Initialize the current provider ahead of the first extraction.

        Returns:
            True if the provider is ready.
        """
        try:
            provider = await self.get_provider()
            await provider.initialize()
        except ProviderNotConfigured as e:
            logger.warning("Extraction provider unavailable: %s", e)
            return False
        except Exception:
            logger.exception("Failed to initialize extraction provider")
            return False
        return True

    async def provider_info(self) -> dict[str, str | bool]:
        provider = await self.get_provider()
        return {
            "name": provider.name,
            "mode": self._mode.value,
            "configured": provider.is_configured(),
        }

    async def close(self) -> None:
        async with self._lock:
            await self._close_provider()

    async def _close_provider(self) -> None:
        provider, self._provider = self._provider, None
        self._active_mode = None
        if provider is not None:
            try:
                await provider.close()
            except Exception as e:
                logger.debug("Error closing provider %s: %s", provider.name, e)


def _elapsed_ms(start: float) -> float:
    return (time.monotonic() - start) * 1000.0
