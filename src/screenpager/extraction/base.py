"""Abstract base classes for text-extraction providers.

All provider implementations must conform to this interface, enabling
the dispatcher to swap between a local OCR engine and cloud vision
models without changing the rest of the pipeline.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Awaitable, Callable

import numpy as np

from screenpager.domain.models import ExtractionResult, Region, TextBlock
from screenpager.utils.imaging import numpy_to_base64_png

logger = logging.getLogger(__name__)


EXTRACTION_PROMPT = """Please extract ALL text from this screenshot.

Rules:
1. Extract every single word you can see
2. Preserve the layout and structure
3. Include button labels, status text, notifications, everything
4. Maintain reading order (top to bottom, left to right)
5. Use line breaks to separate sections
6. Don't summarize or paraphrase - get the exact text

Return ONLY the extracted text, nothing else."""


class ExtractionProvider(ABC):
    """Abstract interface for text-extraction providers."""

    name: str = "provider"

    def __init__(self) -> None:
        self._initialized = False
        self._init_lock = asyncio.Lock()

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @abstractmethod
    def is_configured(self) -> bool:
        """Whether the provider has what it needs (credentials, binaries)."""
        ...

    async def initialize(self) -> None:
        """Prepare the provider for use.

        Idempotent: concurrent and repeated calls set the provider up once.

        Raises:
            ProviderNotConfigured: If ``is_configured()`` is False.
        """
        if self._initialized:
            return
        async with self._init_lock:
            if self._initialized:
                return
            if not self.is_configured():
                raise ProviderNotConfigured(
                    f"{self.name} provider is not configured", provider=self.name
                )
            await self._setup()
            self._initialized = True

    async def _setup(self) -> None:
        """Provider-specific initialization, run once under the init lock."""

    @abstractmethod
    async def extract(self, image: np.ndarray) -> ExtractionResult:
        """Extract text from a BGR image.

        Raises:
            ProviderNotConfigured: If the provider cannot be used.
        """
        ...

    async def extract_region(self, image: np.ndarray, region: Region) -> ExtractionResult:
        """Extract text from a sub-rectangle of an image.

        Providers that cannot localise extraction process the whole image.
        Callers needing a true crop must crop before calling.
        """
        logger.warning(
            "%s does not support region extraction, processing full image", self.name
        )
        return await self.extract(image)

    async def close(self) -> None:
        """Release provider resources. The provider can be re-initialized."""
        self._initialized = False


class CloudExtractionProvider(ExtractionProvider):
    """Base class for network providers with bounded retry.

    Each call makes at most ``max_attempts`` requests. Transient network
    errors are retried after ``backoff_base * 2**(attempt-1)`` seconds
    (1s, 2s, ... by default). Authentication errors and any other failure
    end the call. A call that does not succeed returns an empty result
    instead of raising.
    """

    # Subclasses extend these with their SDK's exception classes
    retriable_errors: tuple[type[BaseException], ...] = (
        TimeoutError,
        ConnectionError,
    )
    fatal_errors: tuple[type[BaseException], ...] = ()

    def __init__(
        self,
        api_key: str,
        model: str,
        max_tokens: int = 4000,
        max_attempts: int = 2,
        backoff_base: float = 1.0,
        timeout: float = 60.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        super().__init__()
        self._api_key = api_key
        self._model = model
        self._max_tokens = max_tokens
        self._max_attempts = max(1, max_attempts)
        self._backoff_base = backoff_base
        self._timeout = timeout
        self._sleep = sleep
        self._client = None

    @property
    def model(self) -> str:
        return self._model

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    def is_configured(self) -> bool:
        return bool(self._api_key)

    @abstractmethod
    async def _request(self, b64_image: str) -> str:
        """Send one extraction request and return the response text."""
        ...

    def is_retriable(self, error: BaseException) -> bool:
        return isinstance(error, self.retriable_errors)

    async def extract(self, image: np.ndarray) -> ExtractionResult:
        start = time.monotonic()
        await self.initialize()
        b64_image = numpy_to_base64_png(image)

        for attempt in range(1, self._max_attempts + 1):
            try:
                logger.debug(
                    "%s extraction attempt %d/%d", self.name, attempt, self._max_attempts
                )
                text = await self._request(b64_image)
            except self.fatal_errors as e:
                logger.error("%s rejected the credentials: %s", self.name, e)
                break
            except Exception as e:
                if self.is_retriable(e) and attempt < self._max_attempts:
                    delay = self._backoff_base * 2 ** (attempt - 1)
                    logger.warning(
                        "%s extraction failed (attempt %d/%d): %s; retrying in %.1fs",
                        self.name, attempt, self._max_attempts, e, delay,
                    )
                    await self._sleep(delay)
                    continue
                logger.error(
                    "%s extraction failed (attempt %d/%d): %s",
                    self.name, attempt, self._max_attempts, e,
                )
                break
            else:
                return self._build_result(text, start)

        return ExtractionResult.empty(_elapsed_ms(start))

    def _build_result(self, text: str, start: float) -> ExtractionResult:
        # Vision models give no geometry or per-word confidence
        confidence = 0.95 if text.strip() else 0.0
        blocks = [
            TextBlock(text=line.strip(), confidence=confidence)
            for line in text.splitlines()
            if line.strip()
        ]
        return ExtractionResult(
            text=text,
            confidence=confidence,
            elapsed_ms=_elapsed_ms(start),
            blocks=blocks,
        )

    async def close(self) -> None:
        client, self._client = self._client, None
        if client is not None and hasattr(client, "close"):
            try:
                await client.close()
            except Exception as e:
                logger.debug("Error closing %s client: %s", self.name, e)
        await super().close()


def _elapsed_ms(start: float) -> float:
    return (time.monotonic() - start) * 1000.0


class ExtractionError(Exception):
    """Raised when text extraction cannot be performed."""

    def __init__(self, message: str, provider: str = "") -> None:
        super().__init__(message)
        self.provider = provider


class ProviderNotConfigured(ExtractionError):
    """Raised when a provider is invoked without the configuration it needs."""
