"""Abstract base class for vision-model inference providers.

All provider implementations must conform to this interface, enabling
the system to swap between providers without changing the rest of the
pipeline. A provider does one thing: send an optional image plus a text
prompt to a model and return the text it produced.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from framesight.domain.models import InferenceErrorKind

logger = logging.getLogger(__name__)


DEFAULT_SYSTEM_PROMPT = """You are a video frame analyst. You are given screenshots captured from \
an online video (lectures, tutorials, presentations, demos) together with a request from a user.

Answer the request using only what is visible in the frame. Quote on-screen text and code exactly. \
When something is unreadable or ambiguous, say so plainly instead of guessing."""


class InferenceResponse(BaseModel):
    """Text produced by the model plus token accounting, if reported."""

    model_config = ConfigDict(frozen=True)

    text: str
    usage: dict[str, Any] = Field(default_factory=dict)


class InferenceProvider(ABC):
    """Abstract interface for vision-capable model providers."""

    def __init__(self, model: str, system_prompt: str | None = None) -> None:
        self._model = model
        self._system_prompt = system_prompt or DEFAULT_SYSTEM_PROMPT

    @property
    def model(self) -> str:
        return self._model

    @property
    def name(self) -> str:
        return type(self).__name__

    @abstractmethod
    async def infer(
        self,
        image: bytes | None,
        prompt: str,
        max_tokens: int = 2000,
        temperature: float = 0.1,
    ) -> InferenceResponse:
        """Run one model call.

        Args:
            image: Encoded PNG/JPEG bytes, or None for a text-only call.
            prompt: The user-turn text.
            max_tokens: Upper bound on generated tokens.
            temperature: Sampling temperature.

        Raises:
            InferenceError: On any failure, with ``kind`` set so callers can
                tell rate limiting apart from auth, network and server errors.
        """
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if the provider is reachable and authenticated."""
        ...

    async def close(self) -> None:
        """Release the underlying HTTP client, if any."""


class InferenceError(Exception):
    """Raised when a vision-model call fails."""

    def __init__(
        self,
        message: str,
        provider: str = "",
        kind: InferenceErrorKind = InferenceErrorKind.UNKNOWN,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.provider = provider
        self.kind = kind
        self.status_code = status_code

    @property
    def is_rate_limit(self) -> bool:
        return self.kind == InferenceErrorKind.RATE_LIMIT


def kind_from_status(status_code: int | None) -> InferenceErrorKind:
    """Map an HTTP status code onto an error kind."""
    if status_code is None:
        return InferenceErrorKind.NETWORK
    if status_code == 429:
        return InferenceErrorKind.RATE_LIMIT
    if status_code in (401, 403):
        return InferenceErrorKind.AUTH
    if status_code >= 500:
        return InferenceErrorKind.SERVER
    return InferenceErrorKind.UNKNOWN
