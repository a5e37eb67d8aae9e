"""Tests for the core domain models."""

from __future__ import annotations

import pytest
from pydantic import TypeAdapter, ValidationError

from framesight.domain.models import (
    CapturePlan,
    CapturePoint,
    CaptureStrategy,
    EventPoint,
    Frame,
    FrameAnalysis,
    InferenceErrorKind,
    Session,
    SessionError,
    SessionStatus,
    TimestampPoint,
)


class TestCapturePoints:
    def test_discriminated_union_parses_by_kind(self) -> None:
        adapter = TypeAdapter(list[CapturePoint])
        points = adapter.validate_python(
            [
                {"kind": "timestamp", "value": 12.5, "reason": "intro"},
                {"kind": "event", "description": "terminal visible", "reason": "output"},
            ]
        )
        assert isinstance(points[0], TimestampPoint)
        assert isinstance(points[1], EventPoint)

    def test_timestamp_rejects_negative(self) -> None:
        with pytest.raises(ValidationError):
            TimestampPoint(value=-1, reason="bad")

    def test_plan_timestamps_skip_events(self) -> None:
        plan = CapturePlan(
            strategy=CaptureStrategy.CODE_FOCUSED,
            capture_points=[
                EventPoint(description="IDE", reason="start"),
                TimestampPoint(value=30, reason="a"),
                TimestampPoint(value=60, reason="b"),
            ],
            duration=120,
        )
        assert plan.timestamps == [30, 60]


class TestFrame:
    def test_frame_is_immutable(self) -> None:
        frame = Frame(frame_number=1, image=b"abc")
        with pytest.raises(ValidationError):
            frame.frame_number = 2

    def test_frame_numbers_start_at_one(self) -> None:
        with pytest.raises(ValidationError):
            Frame(frame_number=0, image=b"abc")

    def test_content_digest_depends_only_on_image(self) -> None:
        a = Frame(frame_number=1, timestamp=0, image=b"same")
        b = Frame(frame_number=7, timestamp=99, image=b"same")
        c = Frame(frame_number=1, timestamp=0, image=b"other")
        assert a.content_digest == b.content_digest
        assert a.content_digest != c.content_digest

    def test_image_not_in_repr(self) -> None:
        assert "image" not in repr(Frame(frame_number=1, image=b"\x89PNG" * 100))


class TestFrameAnalysis:
    def test_failed_copies_frame_identity(self) -> None:
        frame = Frame(frame_number=3, timestamp=42.0, image=b"x", context="code_example")
        analysis = FrameAnalysis.failed(frame, "rate limited", InferenceErrorKind.RATE_LIMIT)
        assert analysis.frame_number == 3
        assert analysis.timestamp == 42.0
        assert analysis.context == "code_example"
        assert analysis.analysis_text is None
        assert analysis.error_kind == InferenceErrorKind.RATE_LIMIT
        assert not analysis.ok

    def test_key_findings_capped_at_five(self) -> None:
        with pytest.raises(ValidationError):
            FrameAnalysis(frame_number=1, analysis_text="x", key_findings=["a"] * 6)

    def test_confidence_bounds(self) -> None:
        with pytest.raises(ValidationError):
            FrameAnalysis(frame_number=1, analysis_text="x", confidence=101)


class TestSession:
    def test_terminal_states(self) -> None:
        assert SessionStatus.COMPLETED.is_terminal
        assert SessionStatus.FAILED.is_terminal
        assert SessionStatus.CANCELLED.is_terminal
        assert not SessionStatus.ANALYZING.is_terminal

    def test_progress_validated_on_assignment(self) -> None:
        session = Session(id="s1", prompt="summarize")
        with pytest.raises(ValidationError):
            session.progress = 150

    def test_status_view(self) -> None:
        session = Session(id="s1", prompt="summarize")
        session.status = SessionStatus.FAILED
        session.error = SessionError(code="NavigationError", message="no site")
        view = session.status_view()
        assert view["session_id"] == "s1"
        assert view["status"] == "failed"
        assert view["error"] == "no site"
        assert view["progress"] == 0
