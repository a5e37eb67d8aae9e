"""OpenAI-compatible inference provider implementation.

Works with OpenAI, OpenRouter, OVHcloud AI Endpoints and any
OpenAI-compatible API by setting a custom base_url.
"""

from __future__ import annotations

import logging

import openai

from framesight.domain.models import InferenceErrorKind
from framesight.inference.base import (
    InferenceError,
    InferenceProvider,
    InferenceResponse,
    kind_from_status,
)
from framesight.utils.imaging import to_data_url

logger = logging.getLogger(__name__)


class OpenAIProvider(InferenceProvider):
    """Provider using the chat completions API.

    Also works with OpenRouter and other OpenAI-compatible endpoints.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o",
        base_url: str | None = None,
        system_prompt: str | None = None,
        timeout: float = 60.0,
    ) -> None:
        super().__init__(model=model, system_prompt=system_prompt)
        self._api_key = api_key
        self._base_url = base_url
        self._timeout = timeout
        self._client: openai.AsyncOpenAI | None = None

    async def _ensure_client(self) -> None:
        """Lazily initialize the OpenAI async client."""
        if self._client is not None:
            return
        kwargs = {"api_key": self._api_key, "timeout": self._timeout, "max_retries": 0}
        if self._base_url:
            kwargs["base_url"] = self._base_url
        self._client = openai.AsyncOpenAI(**kwargs)
        logger.info("Initialized OpenAI client (model=%s, base_url=%s)", self._model, self._base_url)

    async def infer(
        self,
        image: bytes | None,
        prompt: str,
        max_tokens: int = 2000,
        temperature: float = 0.1,
    ) -> InferenceResponse:
        """Send an optional image plus prompt to the chat completions API."""
        await self._ensure_client()

        content: list[dict] = [{"type": "text", "text": prompt}]
        if image is not None:
            content.append(
                {
                    "type": "image_url",
                    "image_url": {"url": to_data_url(image), "detail": "high"},
                }
            )

        messages = [
            {"role": "system", "content": self._system_prompt},
            {"role": "user", "content": content},
        ]

        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                max_tokens=max_tokens,
                temperature=temperature,
                messages=messages,
            )
        except openai.APIStatusError as e:
            raise InferenceError(
                f"OpenAI API call failed with status {e.status_code}: {e.message}",
                provider="openai",
                kind=kind_from_status(e.status_code),
                status_code=e.status_code,
            ) from e
        except openai.APIConnectionError as e:
            raise InferenceError(
                f"OpenAI API unreachable: {e}",
                provider="openai",
                kind=InferenceErrorKind.NETWORK,
            ) from e
        except openai.OpenAIError as e:
            raise InferenceError(f"OpenAI API call failed: {e}", provider="openai") from e

        if not response.choices or response.choices[0].message.content is None:
            raise InferenceError("OpenAI API returned an empty response", provider="openai")

        raw_text = response.choices[0].message.content
        logger.debug("Model raw response: %s", raw_text[:200])
        usage = response.usage.model_dump() if response.usage is not None else {}
        return InferenceResponse(text=raw_text, usage=usage)

    async def health_check(self) -> bool:
        """Check if the API is reachable."""
        try:
            await self._ensure_client()
            await self._client.models.list()
            return True
        except Exception as e:
            logger.warning("Health check failed: %s", e)
            return False

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
