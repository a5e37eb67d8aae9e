"""Tests for the capture executor against a scripted navigator."""

from __future__ import annotations

import pytest

from framesight.capture.executor import CaptureExecutor
from framesight.capture.planner import CapturePlanner
from framesight.domain.models import VideoMetadata
from framesight.utils.imaging import decode_image

from conftest import FakeNavigator


class CrashingNavigator(FakeNavigator):
    """Raises an unexpected error on the n-th screenshot."""

    def __init__(self, crash_on_screenshot: int) -> None:
        super().__init__(duration=120.0)
        self.crash_on_screenshot = crash_on_screenshot
        self.screenshots = 0

    async def screenshot(self, handle):
        self.screenshots += 1
        if self.screenshots == self.crash_on_screenshot:
            raise RuntimeError("page crashed while capturing")
        return await super().screenshot(handle)


def _plan(prompt: str, duration: float = 120.0, slide_interval: float = 10.0):
    return CapturePlanner(slide_sample_interval=slide_interval).plan(VideoMetadata(duration=duration), prompt)


@pytest.fixture
def executor(instant_sleep) -> CaptureExecutor:
    return CaptureExecutor(stabilization_timeout=0.1, event_poll_interval=0.5, sleep=instant_sleep)


class TestTimestampCapture:
    @pytest.mark.asyncio
    async def test_frames_follow_plan_order(self, executor, fake_navigator, player_handle) -> None:
        frames = await executor.execute(_plan("summarize"), fake_navigator, player_handle)

        assert [f.frame_number for f in frames] == [1, 2, 3, 4, 5]
        assert [f.timestamp for f in frames] == [0, 24, 60, 96, 114]
        assert fake_navigator.seeks == [0, 20, 50, 80, 95]
        assert all(f.optimized for f in frames)

    @pytest.mark.asyncio
    async def test_failed_point_is_skipped_without_gaps(self, executor, fake_navigator, player_handle) -> None:
        fake_navigator.failing_seeks = {50.0}

        frames = await executor.execute(_plan("summarize"), fake_navigator, player_handle)

        assert [f.frame_number for f in frames] == [1, 2, 3, 4]
        assert [f.timestamp for f in frames] == [0, 24, 96, 114]

    @pytest.mark.asyncio
    async def test_unexpected_error_at_one_point_is_skipped(self, executor, player_handle) -> None:
        navigator = CrashingNavigator(crash_on_screenshot=2)

        frames = await executor.execute(_plan("summarize this video"), navigator, player_handle)

        assert [f.frame_number for f in frames] == [1, 2, 3, 4]
        assert [f.timestamp for f in frames] == [0, 60, 96, 114]

    @pytest.mark.asyncio
    async def test_everything_failing_returns_empty(self, executor, fake_navigator, player_handle) -> None:
        fake_navigator.failing_seeks = {0.0, 20.0, 50.0, 80.0, 95.0}

        assert await executor.execute(_plan("summarize"), fake_navigator, player_handle) == []

    @pytest.mark.asyncio
    async def test_progress_reported_per_point(self, executor, fake_navigator, player_handle) -> None:
        calls = []

        async def on_progress(done: int, total: int) -> None:
            calls.append((done, total))

        await executor.execute(_plan("summarize"), fake_navigator, player_handle, on_progress)

        assert calls == [(1, 5), (2, 5), (3, 5), (4, 5), (5, 5)]

    @pytest.mark.asyncio
    async def test_frames_remain_decodable(self, executor, fake_navigator, player_handle) -> None:
        frames = await executor.execute(_plan("summarize"), fake_navigator, player_handle)
        assert decode_image(frames[0].image).shape[:2] == (72, 128)


class TestEventCapture:
    @pytest.mark.asyncio
    async def test_capture_now_and_not_found(self, executor, fake_navigator, player_handle) -> None:
        fake_navigator.answers = ["CAPTURE_NOW"]

        frames = await executor.execute(_plan("explain the code"), fake_navigator, player_handle)

        assert [f.context for f in frames] == ["code_example", "video_frame", "video_frame", "video_frame"]
        assert frames[0].timestamp == 0
        assert [f.frame_number for f in frames] == [1, 2, 3, 4]
        assert len(fake_navigator.questions) == 2

    @pytest.mark.asyncio
    async def test_wait_longer_polls_until_attempts_exhausted(self, fake_navigator, player_handle) -> None:
        sleeps = []

        async def record_sleep(seconds: float) -> None:
            sleeps.append(seconds)

        executor = CaptureExecutor(event_detection_attempts=3, event_poll_interval=0.5, sleep=record_sleep)
        fake_navigator.answers = ["WAIT_LONGER"] * 3

        frames = await executor.execute(_plan("explain the code"), fake_navigator, player_handle)

        assert sleeps == [0.5, 0.5]
        assert len(frames) == 3
        assert all(f.context == "video_frame" for f in frames)


class TestSlideCapture:
    @pytest.mark.asyncio
    async def test_only_new_slides_are_kept(self, executor, fake_navigator, player_handle) -> None:
        fake_navigator.answers = ["NEW_SLIDE", "SAME_SLIDE", "NEW_SLIDE"]

        frames = await executor.execute(_plan("slide notes", slide_interval=30), fake_navigator, player_handle)

        assert [f.timestamp for f in frames] == [0, 30, 90]
        assert [f.slide_number for f in frames] == [1, 2, 3]
        assert [f.frame_number for f in frames] == [1, 2, 3]
        assert len(fake_navigator.questions) == 3

    @pytest.mark.asyncio
    async def test_failed_sample_does_not_stop_sampling(self, executor, fake_navigator, player_handle) -> None:
        fake_navigator.default_answer = "NEW_SLIDE"
        fake_navigator.failing_seeks = {25.0}

        frames = await executor.execute(_plan("slide notes", slide_interval=30), fake_navigator, player_handle)

        assert [f.timestamp for f in frames] == [0, 60, 90]

    @pytest.mark.asyncio
    async def test_unexpected_error_in_sample_does_not_stop_sampling(self, executor, player_handle) -> None:
        navigator = CrashingNavigator(crash_on_screenshot=2)
        navigator.default_answer = "NEW_SLIDE"

        frames = await executor.execute(_plan("slide notes", slide_interval=30), navigator, player_handle)

        assert [f.timestamp for f in frames] == [0, 60, 90]
