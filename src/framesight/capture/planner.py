"""Capture planning: decide which moments of a video to screenshot.

The planner is pure. It classifies the request into a capture strategy
and lays capture points out over the video's duration with a fixed
formula per strategy.
"""

from __future__ import annotations

import logging

from framesight.analysis.intent import classify_capture_strategy
from framesight.domain.models import (
    CapturePlan,
    CapturePoint,
    CaptureStrategy,
    EventPoint,
    TimestampPoint,
    VideoMetadata,
)

logger = logging.getLogger(__name__)

NOMINAL_DURATION = 300.0

OPTIMIZE_FOR = {
    CaptureStrategy.SUMMARY: "content_diversity",
    CaptureStrategy.TIMELINE: "temporal_progression",
    CaptureStrategy.CODE_FOCUSED: "code_visibility",
    CaptureStrategy.SLIDE_TRANSITIONS: "slide_content",
    CaptureStrategy.EDUCATIONAL: "learning_progression",
    CaptureStrategy.COMPREHENSIVE: "balanced_coverage",
    CaptureStrategy.FALLBACK: "basic_coverage",
}


class CapturePlanner:
    """Builds a CapturePlan from video metadata and the user's request.

    Args:
        slide_sample_interval: Seconds between samples when looking for
            slide transitions.
    """

    def __init__(self, slide_sample_interval: float = 10.0) -> None:
        self._slide_sample_interval = slide_sample_interval

    def plan(self, metadata: VideoMetadata | None, prompt: str) -> CapturePlan:
        """Return a plan for ``prompt``. Never raises.

        With an unknown or zero duration the fallback plan is laid out
        over a nominal five-minute video.
        """
        duration = metadata.duration if metadata is not None else None
        if not duration:
            logger.info("Video duration unknown, using fallback capture plan")
            return self._build(CaptureStrategy.FALLBACK, NOMINAL_DURATION)

        strategy = classify_capture_strategy(prompt)
        plan = self._build(strategy, duration)
        logger.info(
            "Capture plan: %s strategy, %d points over %.0fs",
            plan.strategy.value, len(plan.capture_points), duration,
        )
        return plan

    def _build(self, strategy: CaptureStrategy, duration: float) -> CapturePlan:
        builders = {
            CaptureStrategy.SUMMARY: _summary_points,
            CaptureStrategy.TIMELINE: _timeline_points,
            CaptureStrategy.CODE_FOCUSED: _code_points,
            CaptureStrategy.SLIDE_TRANSITIONS: self._slide_points,
            CaptureStrategy.EDUCATIONAL: _educational_points,
            CaptureStrategy.COMPREHENSIVE: _comprehensive_points,
            CaptureStrategy.FALLBACK: _fallback_points,
        }
        return CapturePlan(
            strategy=strategy,
            capture_points=builders[strategy](duration),
            optimize_for=OPTIMIZE_FOR[strategy],
            duration=duration,
        )

    def _slide_points(self, duration: float) -> list[CapturePoint]:
        return [
            EventPoint(
                description="slide transition detected",
                reason="New slide content",
                context="slide_transition",
                repeat_interval=self._slide_sample_interval,
            )
        ]


def _at(value: float, duration: float, reason: str) -> TimestampPoint:
    """Timestamp point clamped to the video and rounded to milliseconds."""
    return TimestampPoint(value=round(min(max(value, 0.0), duration), 3), reason=reason)


def _summary_points(duration: float) -> list[CapturePoint]:
    return [
        _at(0, duration, "Introduction/opening"),
        _at(duration * 0.2, duration, "Early content sample"),
        _at(duration * 0.5, duration, "Mid-point content"),
        _at(duration * 0.8, duration, "Late content sample"),
        _at(max(duration * 0.95, duration - 30), duration, "Conclusion/summary"),
    ]


def _timeline_points(duration: float) -> list[CapturePoint]:
    interval = max(30.0, duration / 10)
    points: list[CapturePoint] = []
    step = 0
    while step * interval < duration:
        t = step * interval
        points.append(_at(t, duration, f"Timeline point at {round(t)}s"))
        step += 1
    return points


def _code_points(duration: float) -> list[CapturePoint]:
    return [
        EventPoint(
            description="code editor or IDE visible",
            reason="Code demonstration start",
            context="code_example",
        ),
        _at(duration * 0.25, duration, "Early code examples"),
        _at(duration * 0.5, duration, "Mid-content code"),
        _at(duration * 0.75, duration, "Advanced code examples"),
        EventPoint(
            description="terminal or console output",
            reason="Code execution results",
            context="console_output",
        ),
    ]


def _educational_points(duration: float) -> list[CapturePoint]:
    return [
        _at(0, duration, "Learning objectives introduction"),
        _at(duration * 0.15, duration, "Core concept introduction"),
        _at(duration * 0.35, duration, "Example or demonstration"),
        _at(duration * 0.55, duration, "Practice or application"),
        _at(duration * 0.75, duration, "Advanced concepts"),
        _at(duration * 0.9, duration, "Summary or conclusion"),
    ]


def _comprehensive_points(duration: float) -> list[CapturePoint]:
    return [
        _at(0, duration, "Opening content"),
        _at(duration * 0.2, duration, "Early content"),
        _at(duration * 0.4, duration, "First half content"),
        _at(duration * 0.6, duration, "Second half content"),
        _at(duration * 0.8, duration, "Late content"),
        _at(max(duration * 0.95, duration - 10), duration, "Closing content"),
    ]


def _fallback_points(duration: float) -> list[CapturePoint]:
    return [
        _at(0, duration, "Start"),
        _at(duration * 0.5, duration, "Middle"),
        _at(duration * 0.9, duration, "End"),
    ]
