"""Anthropic Claude inference provider implementation.

Uses the Anthropic Python SDK to send video frames to Claude models with
vision capability.
"""

from __future__ import annotations

import logging

import anthropic

from framesight.domain.models import InferenceErrorKind
from framesight.inference.base import (
    InferenceError,
    InferenceProvider,
    InferenceResponse,
    kind_from_status,
)
from framesight.utils.imaging import bytes_to_base64, media_type

logger = logging.getLogger(__name__)


class AnthropicProvider(InferenceProvider):
    """Provider using Anthropic's Messages API.

    Example usage::

        provider = AnthropicProvider(
            api_key="sk-ant-...",
            model="claude-sonnet-4-20250514",
        )
        response = await provider.infer(png_bytes, "What is on this slide?")
    """

    def __init__(
        self,
        api_key: str,
        model: str = "claude-sonnet-4-20250514",
        base_url: str | None = None,
        system_prompt: str | None = None,
        timeout: float = 60.0,
    ) -> None:
        """Initialize the Anthropic provider.

        Args:
            api_key: Anthropic API key.
            model: Model identifier (must support vision).
            base_url: Optional API base URL override.
            system_prompt: Custom system prompt override.
            timeout: Per-request timeout in seconds.
        """
        super().__init__(model=model, system_prompt=system_prompt)
        self._api_key = api_key
        self._base_url = base_url
        self._timeout = timeout
        self._client: anthropic.AsyncAnthropic | None = None

    async def _ensure_client(self) -> None:
        """Lazily initialize the Anthropic async client."""
        if self._client is not None:
            return
        kwargs = {"api_key": self._api_key, "timeout": self._timeout, "max_retries": 0}
        if self._base_url:
            kwargs["base_url"] = self._base_url
        self._client = anthropic.AsyncAnthropic(**kwargs)
        logger.info("Initialized Anthropic client (model=%s)", self._model)

    async def infer(
        self,
        image: bytes | None,
        prompt: str,
        max_tokens: int = 2000,
        temperature: float = 0.1,
    ) -> InferenceResponse:
        """Send an optional image plus prompt to Claude."""
        await self._ensure_client()

        content: list[dict] = []
        if image is not None:
            content.append(
                {
                    "type": "image",
                    "source": {
                        "type": "base64",
                        "media_type": media_type(image),
                        "data": bytes_to_base64(image),
                    },
                }
            )
        content.append({"type": "text", "text": prompt})

        try:
            response = await self._client.messages.create(
                model=self._model,
                max_tokens=max_tokens,
                temperature=temperature,
                system=self._system_prompt,
                messages=[{"role": "user", "content": content}],
            )
        except anthropic.APIStatusError as e:
            raise InferenceError(
                f"Anthropic API call failed with status {e.status_code}: {e.message}",
                provider="anthropic",
                kind=kind_from_status(e.status_code),
                status_code=e.status_code,
            ) from e
        except anthropic.APIConnectionError as e:
            raise InferenceError(
                f"Anthropic API unreachable: {e}",
                provider="anthropic",
                kind=InferenceErrorKind.NETWORK,
            ) from e
        except anthropic.AnthropicError as e:
            raise InferenceError(f"Anthropic API call failed: {e}", provider="anthropic") from e

        text = "".join(block.text for block in response.content if block.type == "text")
        if not text:
            raise InferenceError("Anthropic API returned no text", provider="anthropic")

        logger.debug("Model raw response: %s", text[:200])
        usage = {
            "input_tokens": response.usage.input_tokens,
            "output_tokens": response.usage.output_tokens,
        }
        return InferenceResponse(text=text, usage=usage)

    async def health_check(self) -> bool:
        """Check the API with a minimal text-only message."""
        try:
            await self.infer(None, "ping", max_tokens=5, temperature=0.0)
            return True
        except InferenceError as e:
            logger.warning("Health check failed: %s", e)
            return False

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
