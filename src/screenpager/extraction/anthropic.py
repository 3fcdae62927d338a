"""Anthropic Claude vision extraction provider.

Uses the Anthropic Python SDK to send screenshots to Claude models with
vision capability and return the transcribed text.
"""

from __future__ import annotations

import logging

import anthropic

from screenpager.extraction.base import EXTRACTION_PROMPT, CloudExtractionProvider

logger = logging.getLogger(__name__)


class AnthropicVisionProvider(CloudExtractionProvider):
    """Cloud provider using Anthropic's messages API.

    Example usage::

        provider = AnthropicVisionProvider(api_key="sk-ant-...")
        result = await provider.extract(image)
    """

    name = "anthropic"
    retriable_errors = CloudExtractionProvider.retriable_errors + (
        anthropic.APIConnectionError,  # includes APITimeoutError
    )
    fatal_errors = (anthropic.AuthenticationError, anthropic.PermissionDeniedError)

    def __init__(
        self,
        api_key: str,
        model: str = "claude-sonnet-4-20250514",
        **kwargs,
    ) -> None:
        super().__init__(api_key=api_key, model=model, **kwargs)

    async def _setup(self) -> None:
        self._client = anthropic.AsyncAnthropic(
            api_key=self._api_key, timeout=self._timeout, max_retries=0
        )
        logger.info("Initialized Anthropic client (model=%s)", self._model)

    async def _request(self, b64_image: str) -> str:
        response = await self._client.messages.create(
            model=self._model,
            max_tokens=self._max_tokens,
            messages=[
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "image",
                            "source": {
                                "type": "base64",
                                "media_type": "image/png",
                                "data": b64_image,
                            },
                        },
                        {"type": "text", "text": EXTRACTION_PROMPT},
                    ],
                }
            ],
        )
        return "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )
