"""OpenAI-compatible vision extraction provider.

Works with OpenAI, OpenRouter, and any OpenAI-compatible API
by setting a custom base_url.
"""

from __future__ import annotations

import logging

import openai

from screenpager.extraction.base import EXTRACTION_PROMPT, CloudExtractionProvider

logger = logging.getLogger(__name__)


class OpenAIVisionProvider(CloudExtractionProvider):
    """Cloud provider using the chat completions API with image input."""

    name = "openai"
    retriable_errors = CloudExtractionProvider.retriable_errors + (
        openai.APIConnectionError,  # includes APITimeoutError
    )
    fatal_errors = (openai.AuthenticationError, openai.PermissionDeniedError)

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o",
        base_url: str | None = None,
        **kwargs,
    ) -> None:
        super().__init__(api_key=api_key, model=model, **kwargs)
        self._base_url = base_url

    async def _setup(self) -> None:
        """Lazily create the async client.

        SDK-level retries are disabled so the attempt budget is counted
        in one place.
        """
        kwargs = {"api_key": self._api_key, "timeout": self._timeout, "max_retries": 0}
        if self._base_url:
            kwargs["base_url"] = self._base_url
        self._client = openai.AsyncOpenAI(**kwargs)
        logger.info("Initialized OpenAI client (model=%s, base_url=%s)", self._model, self._base_url)

    async def _request(self, b64_image: str) -> str:
        response = await self._client.chat.completions.create(
            model=self._model,
            max_tokens=self._max_tokens,
            messages=[
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": EXTRACTION_PROMPT},
                        {
                            "type": "image_url",
                            "image_url": {
                                "url": f"data:image/png;base64,{b64_image}",
                                "detail": "high",
                            },
                        },
                    ],
                },
            ],
        )
        text = response.choices[0].message.content if response.choices else None
        usage = getattr(response, "usage", None)
        logger.debug(
            "OpenAI response: %d chars, %s tokens",
            len(text or ""), getattr(usage, "total_tokens", "n/a"),
        )
        return text or ""
