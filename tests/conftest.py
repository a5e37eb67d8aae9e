"""Shared test fixtures for the framesight test suite.

Provides a scripted browser navigator, a scripted inference provider,
and helpers to build real PNG bytes and frames. Nothing here touches a
network or a browser.
"""

from __future__ import annotations

import asyncio
from typing import Callable

import cv2
import numpy as np
import pytest

from framesight.domain.models import Frame
from framesight.inference.base import InferenceProvider, InferenceResponse
from framesight.navigation.base import (
    BrowserNavigator,
    NavigationError,
    PlayerDetectionError,
    PlayerHandle,
)

FRAME_ANALYSIS_TEXT = (
    "The slide introduces the main topic of the lecture: gradient descent.\n"
    "- Definition of the loss function\n"
    "- Learning rate is shown as alpha\n"
    "Key: the update rule is written in the top left corner\n"
    "The presenter explains each term carefully and the text is fully legible on screen."
)

SYNTHESIS_TEXT = (
    "Overall, the video is a clear introduction to gradient descent.\n\n"
    "Theme: Optimization basics\n"
    "Theme: Choosing a learning rate\n"
    "Topic: Convergence\n"
    "Theme: Practical tips\n\n"
    "The main idea is that small steps along the negative gradient reduce the loss.\n"
    "You should experiment with the learning rate on a small dataset first.\n"
    "I recommend reviewing the convergence plot at the end."
)


def _png(value: int = 0, width: int = 128, height: int = 72) -> bytes:
    image = np.full((height, width, 3), value % 256, dtype=np.uint8)
    ok, buffer = cv2.imencode(".png", image)
    assert ok
    return buffer.tobytes()


# ---------------------------------------------------------------------------
# Image / Frame Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def make_png() -> Callable[..., bytes]:
    """Factory for solid-colour PNG bytes."""
    return _png


@pytest.fixture
def make_frame() -> Callable[..., Frame]:
    """Factory for Frames with distinct image content per frame number."""

    def _make(frame_number: int = 1, timestamp: float | None = 0.0, context: str = "video_frame") -> Frame:
        return Frame(
            frame_number=frame_number,
            timestamp=timestamp,
            image=_png(frame_number * 17),
            context=context,
            capture_reason="test",
        )

    return _make


# ---------------------------------------------------------------------------
# Provider Fixtures
# ---------------------------------------------------------------------------


class FakeProvider(InferenceProvider):
    """InferenceProvider driven by a ``responder(image, prompt)`` callable.

    The responder returns response text, or an exception instance to raise.
    """

    def __init__(self, responder: Callable[[bytes | None, str], object] | None = None) -> None:
        super().__init__(model="fake-model")
        self.calls: list[dict] = []
        self.responder = responder or self._default_responder

    @staticmethod
    def _default_responder(image: bytes | None, prompt: str) -> str:
        return SYNTHESIS_TEXT if image is None else FRAME_ANALYSIS_TEXT

    async def infer(
        self,
        image: bytes | None,
        prompt: str,
        max_tokens: int = 2000,
        temperature: float = 0.1,
    ) -> InferenceResponse:
        self.calls.append(
            {"image": image, "prompt": prompt, "max_tokens": max_tokens, "temperature": temperature}
        )
        await asyncio.sleep(0)
        result = self.responder(image, prompt)
        if isinstance(result, Exception):
            raise result
        return InferenceResponse(text=str(result))

    async def health_check(self) -> bool:
        return True

    @property
    def frame_calls(self) -> list[dict]:
        return [c for c in self.calls if c["image"] is not None]


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


# ---------------------------------------------------------------------------
# Navigator Fixtures
# ---------------------------------------------------------------------------


class FakeNavigator(BrowserNavigator):
    """Scripted navigator over a virtual video.

    Screenshots are solid images whose colour follows the seek position,
    so every position yields distinct bytes. ``answers`` feeds ``ask``;
    when it runs out ``default_answer`` is returned.
    """

    def __init__(self, duration: float | None = 120.0) -> None:
        super().__init__()
        self.duration_value = duration
        self.position = 0.0
        self.open_calls = 0
        self.close_calls = 0
        self.navigated: list[str] = []
        self.seeks: list[float] = []
        self.questions: list[str] = []
        self.answers: list[str] = []
        self.default_answer = "EVENT_NOT_FOUND"
        self.navigate_failures = 0
        self.player_found = True
        self.failing_seeks: set[float] = set()
        self.seek_gate: asyncio.Event | None = None
        self.seek_entered = asyncio.Event()

    async def open(self) -> None:
        self.open_calls += 1
        self._is_open = True

    async def close(self) -> None:
        self.close_calls += 1
        self._is_open = False

    async def navigate(self, url: str) -> None:
        self.navigated.append(url)
        if self.navigate_failures > 0:
            self.navigate_failures -= 1
            raise NavigationError(f"Failed to load {url}", url=url)

    async def dismiss_cookie_dialog(self) -> bool:
        return False

    async def act(self, instruction: str) -> bool:
        return True

    async def ask(self, question: str, image: bytes | None = None) -> str:
        self.questions.append(question)
        return self.answers.pop(0) if self.answers else self.default_answer

    async def detect_player(self, hint: str = "") -> PlayerHandle:
        if not self.player_found:
            raise PlayerDetectionError("No video player detected on the page")
        return PlayerHandle(selector="video", page_url=self.navigated[-1] if self.navigated else "")

    async def seek(self, handle: PlayerHandle, percentage: float) -> None:
        self.seeks.append(round(percentage, 3))
        if self.seek_gate is not None:
            self.seek_entered.set()
            await self.seek_gate.wait()
        if round(percentage, 3) in self.failing_seeks:
            raise NavigationError(f"Seek to {percentage:.1f}% failed")
        if self.duration_value:
            self.position = self.duration_value * percentage / 100

    async def wait_stable(self, handle: PlayerHandle, timeout: float) -> bool:
        await asyncio.sleep(0)
        return True

    async def screenshot(self, handle: PlayerHandle) -> bytes:
        total = self.duration_value or 300.0
        return _png(int(self.position / total * 200) + 20)

    async def current_time(self, handle: PlayerHandle) -> float | None:
        return self.position

    async def duration(self, handle: PlayerHandle) -> float | None:
        return self.duration_value


@pytest.fixture
def fake_navigator() -> FakeNavigator:
    return FakeNavigator()


@pytest.fixture
def player_handle() -> PlayerHandle:
    return PlayerHandle(selector="video")


async def no_sleep(seconds: float) -> None:
    await asyncio.sleep(0)


@pytest.fixture
def instant_sleep() -> Callable[[float], object]:
    """Drop-in for asyncio.sleep that yields without waiting."""
    return no_sleep
