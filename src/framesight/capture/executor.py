"""Capture execution: turn a CapturePlan into Frames.

Walks the plan in order against a detected player. Timestamp points
seek and screenshot; event points poll the navigator's event detection;
repeating event points sample the whole video for slide transitions.
A failing point is logged and skipped whatever it raised; only
cancellation propagates. After capture, every frame is resized and
re-encoded with the profile its plan asks for.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Awaitable, Callable

from framesight.capture.base import CaptureError
from framesight.domain.models import (
    CapturePlan,
    EventPoint,
    Frame,
    OptimizationProfile,
    TimestampPoint,
)
from framesight.navigation.base import BrowserNavigator, EventSignal, PlayerHandle
from framesight.utils.imaging import optimize_image

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], "Awaitable[None] | None"]

OPTIMIZATION_PROFILES: dict[str, OptimizationProfile] = {
    "content_diversity": OptimizationProfile(max_width=1920, max_height=1080, quality=90, compression_level=6),
    "temporal_progression": OptimizationProfile(max_width=1600, max_height=900, quality=85, compression_level=7),
    "code_visibility": OptimizationProfile(max_width=1920, max_height=1080, quality=95, compression_level=5),
    "slide_content": OptimizationProfile(max_width=1920, max_height=1080, quality=90, compression_level=6),
    "learning_progression": OptimizationProfile(max_width=1600, max_height=900, quality=88, compression_level=6),
    "balanced_coverage": OptimizationProfile(max_width=1600, max_height=900, quality=85, compression_level=7),
    "basic_coverage": OptimizationProfile(max_width=1280, max_height=720, quality=80, compression_level=8),
}
DEFAULT_PROFILE = "balanced_coverage"

SLIDE_STABILIZATION_TIMEOUT = 1.0


class CaptureExecutor:
    """Executes capture plans against a BrowserNavigator.

    Args:
        stabilization_timeout: Seconds to wait for a settled frame after a seek.
        event_detection_attempts: How often an event point is polled.
        event_poll_interval: Seconds between event polls.
        image_format: Encoding used when optimizing frames (png or jpeg).
        sleep: Awaitable used between event polls.
    """

    def __init__(
        self,
        stabilization_timeout: float = 3.0,
        event_detection_attempts: int = 3,
        event_poll_interval: float = 2.0,
        image_format: str = "png",
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._stabilization_timeout = stabilization_timeout
        self._event_detection_attempts = event_detection_attempts
        self._event_poll_interval = event_poll_interval
        self._image_format = image_format
        self._sleep = sleep

    async def execute(
        self,
        plan: CapturePlan,
        navigator: BrowserNavigator,
        handle: PlayerHandle,
        on_progress: ProgressCallback | None = None,
    ) -> list[Frame]:
        """Capture every point of ``plan`` that can be captured.

        Returns frames numbered from 1 in plan order. Only cancellation
        propagates; an empty list means nothing could be captured.
        """
        logger.info("Starting %s capture (%d points)", plan.strategy.value, len(plan.capture_points))
        frames: list[Frame] = []
        total = len(plan.capture_points)

        for index, point in enumerate(plan.capture_points, start=1):
            try:
                if isinstance(point, TimestampPoint):
                    frames.append(
                        await self._capture_timestamp(point, plan.duration, navigator, handle, len(frames) + 1)
                    )
                elif point.repeat_interval is not None:
                    frames.extend(
                        await self._capture_slides(point, plan.duration, navigator, handle, len(frames) + 1)
                    )
                else:
                    frame = await self._capture_event(point, navigator, handle, len(frames) + 1)
                    if frame is not None:
                        frames.append(frame)
            except Exception as e:
                logger.warning("Capture point %d/%d (%s) failed: %s", index, total, point.reason, e)

            if on_progress is not None:
                await _notify(on_progress, index, total)

        optimized = [self._optimize(frame, plan.optimize_for) for frame in frames]
        logger.info("Capture completed: %d frames from %d points", len(optimized), total)
        return optimized

    async def _capture_timestamp(
        self,
        point: TimestampPoint,
        duration: float,
        navigator: BrowserNavigator,
        handle: PlayerHandle,
        frame_number: int,
    ) -> Frame:
        percentage = point.value / duration * 100 if duration else 0.0
        await navigator.seek(handle, percentage)
        if not await navigator.wait_stable(handle, self._stabilization_timeout):
            logger.debug("Player not stable after %.1fs at %.1fs", self._stabilization_timeout, point.value)
        image = await navigator.screenshot(handle)
        if not image:
            raise CaptureError(f"Empty screenshot at {point.value:.1f}s")
        return Frame(
            frame_number=frame_number,
            timestamp=point.value,
            image=image,
            context=point.context,
            capture_reason=point.reason,
        )

    async def _capture_event(
        self,
        point: EventPoint,
        navigator: BrowserNavigator,
        handle: PlayerHandle,
        frame_number: int,
    ) -> Frame | None:
        logger.info("Waiting for event: %s", point.description)
        for attempt in range(1, self._event_detection_attempts + 1):
            signal = await navigator.detect_event(handle, point.description)
            if signal == EventSignal.CAPTURE_NOW:
                image = await navigator.screenshot(handle)
                if not image:
                    raise CaptureError(f"Empty screenshot for event '{point.description}'")
                return Frame(
                    frame_number=frame_number,
                    timestamp=await navigator.current_time(handle),
                    image=image,
                    context=point.context,
                    capture_reason=point.reason,
                )
            if signal == EventSignal.EVENT_NOT_FOUND:
                break
            if attempt < self._event_detection_attempts:
                await self._sleep(self._event_poll_interval)

        logger.info("Event not detected, skipping: %s", point.description)
        return None

    async def _capture_slides(
        self,
        point: EventPoint,
        duration: float,
        navigator: BrowserNavigator,
        handle: PlayerHandle,
        first_frame_number: int,
    ) -> list[Frame]:
        frames: list[Frame] = []
        previous: bytes | None = None
        interval = point.repeat_interval
        step = 0
        while step * interval < duration:
            t = step * interval
            step += 1
            try:
                await navigator.seek(handle, t / duration * 100)
                await navigator.wait_stable(handle, SLIDE_STABILIZATION_TIMEOUT)
                current = await navigator.screenshot(handle)
                if not current:
                    continue
                is_new = previous is None or await navigator.is_new_slide(previous, current)
            except Exception as e:
                logger.warning("Slide sample at %.0fs failed: %s", t, e)
                continue
            previous = current
            if not is_new:
                continue

            slide_number = len(frames) + 1
            frames.append(
                Frame(
                    frame_number=first_frame_number + len(frames),
                    timestamp=round(t, 3),
                    image=current,
                    context=point.context,
                    capture_reason=point.reason,
                    slide_number=slide_number,
                )
            )
            logger.info("Captured slide %d at %.0fs", slide_number, t)

        logger.info("Captured %d slides", len(frames))
        return frames

    def _optimize(self, frame: Frame, optimize_for: str) -> Frame:
        profile = OPTIMIZATION_PROFILES.get(optimize_for, OPTIMIZATION_PROFILES[DEFAULT_PROFILE])
        try:
            image = optimize_image(frame.image, profile, image_format=self._image_format)
        except ValueError as e:
            logger.warning("Optimization of frame %d failed, keeping original: %s", frame.frame_number, e)
            return frame
        return frame.model_copy(update={"image": image, "optimized": True})


async def _notify(callback: ProgressCallback, done: int, total: int) -> None:
    result = callback(done, total)
    if inspect.isawaitable(result):
        await result
