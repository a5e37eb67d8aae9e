"""Core domain models for framesight.

These models represent the data flowing through an analysis session:
the capture plan built from the user's request, the frames captured from
the video, the per-frame analyses returned by the vision model, the
synthesized answer, and the session that owns all of it.
"""

from __future__ import annotations

import enum
import hashlib
from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from framesight.config.settings import AnalysisConfig


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class SessionStatus(str, enum.Enum):
    """Lifecycle state of an analysis session."""

    INITIALIZING = "initializing"
    NAVIGATING = "navigating"
    DETECTING_PLAYER = "detecting_player"
    CAPTURING = "capturing"
    ANALYZING = "analyzing"
    SYNTHESIZING = "synthesizing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.COMPLETED, SessionStatus.FAILED, SessionStatus.CANCELLED)


class CaptureStrategy(str, enum.Enum):
    """How capture points are laid out over the video."""

    COMPREHENSIVE = "comprehensive"
    SUMMARY = "summary"
    TIMELINE = "timeline"
    CODE_FOCUSED = "code_focused"
    SLIDE_TRANSITIONS = "slide_transitions"
    EDUCATIONAL = "educational"
    FALLBACK = "fallback"


class SynthesisType(str, enum.Enum):
    """Shape of the final answer, derived from the prompt's intent."""

    SUMMARY = "summary"
    EXTRACTION = "extraction"
    EVALUATION = "evaluation"
    TIMELINE = "timeline"
    REPORT = "report"
    STUDY_NOTES = "study_notes"
    COMPREHENSIVE = "comprehensive"


class InferenceErrorKind(str, enum.Enum):
    """Failure class of a vision-model call."""

    RATE_LIMIT = "rate_limit"
    AUTH = "auth"
    NETWORK = "network"
    SERVER = "server"
    UNKNOWN = "unknown"


# ---------------------------------------------------------------------------
# Capture planning
# ---------------------------------------------------------------------------


class VideoMetadata(BaseModel):
    """What is known about the detected video before capture starts."""

    model_config = ConfigDict(frozen=True)

    duration: float | None = Field(default=None, ge=0, description="Total length in seconds")
    current_time: float | None = Field(default=None, ge=0)


class TimestampPoint(BaseModel):
    """Capture the frame shown at a fixed position of the video."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["timestamp"] = "timestamp"
    value: float = Field(ge=0, description="Position in seconds")
    reason: str = Field(description="Why this moment was chosen")
    context: str = Field(default="video_frame")


class EventPoint(BaseModel):
    """Capture the frame when a described event is visible."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["event"] = "event"
    description: str = Field(description="Natural-language description of the event")
    reason: str = Field(description="Why this event matters")
    context: str = Field(default="video_event")
    repeat_interval: float | None = Field(
        default=None,
        gt=0,
        description="Sample the whole video at this interval instead of waiting once",
    )


CapturePoint = Annotated[
    Union[TimestampPoint, EventPoint],
    Field(discriminator="kind"),
]


class OptimizationProfile(BaseModel):
    """Post-capture resize and re-encode parameters."""

    model_config = ConfigDict(frozen=True)

    max_width: int = Field(gt=0)
    max_height: int = Field(gt=0)
    quality: int = Field(ge=1, le=100, description="JPEG quality")
    compression_level: int = Field(ge=0, le=9, description="PNG compression level")


class CapturePlan(BaseModel):
    """Ordered capture points plus the optimization tag for the frames."""

    model_config = ConfigDict(frozen=True)

    strategy: CaptureStrategy
    capture_points: list[CapturePoint] = Field(default_factory=list)
    optimize_for: str = Field(default="balanced_coverage")
    duration: float = Field(gt=0, description="Video length the plan was computed for")

    @property
    def timestamps(self) -> list[float]:
        return [p.value for p in self.capture_points if isinstance(p, TimestampPoint)]


# ---------------------------------------------------------------------------
# Frames and analyses
# ---------------------------------------------------------------------------


class Frame(BaseModel):
    """A captured screenshot of the video plus where it came from."""

    model_config = ConfigDict(frozen=True)

    frame_number: int = Field(ge=1, description="1-based, unique within a session")
    timestamp: float | None = Field(default=None, ge=0, description="Seconds into the video")
    image: bytes = Field(repr=False, description="Encoded image bytes (PNG or JPEG)")
    context: str = Field(default="video_frame")
    capture_reason: str = Field(default="")
    slide_number: int | None = Field(default=None, ge=1)
    optimized: bool = Field(default=False)

    @property
    def content_digest(self) -> str:
        """SHA-256 of the image bytes, the frame's cache identity."""
        return hashlib.sha256(self.image).hexdigest()


class FrameAnalysis(BaseModel):
    """The vision model's reading of one frame, or why there is none."""

    model_config = ConfigDict(frozen=True)

    frame_number: int = Field(ge=1)
    analysis_text: str | None = Field(default=None)
    confidence: int = Field(default=0, ge=0, le=100)
    key_findings: list[str] = Field(default_factory=list, max_length=5)
    error: str | None = Field(default=None)
    error_kind: InferenceErrorKind | None = Field(default=None)
    context: str = Field(default="video_frame")
    timestamp: float | None = Field(default=None)
    cached: bool = Field(default=False)

    @property
    def ok(self) -> bool:
        return self.error is None and self.analysis_text is not None

    @classmethod
    def failed(
        cls,
        frame: Frame,
        error: str,
        kind: InferenceErrorKind = InferenceErrorKind.UNKNOWN,
    ) -> FrameAnalysis:
        return cls(
            frame_number=frame.frame_number,
            error=error,
            error_kind=kind,
            context=frame.context,
            timestamp=frame.timestamp,
        )


class SynthesizedResult(BaseModel):
    """The single cross-frame answer to the user's request."""

    model_config = ConfigDict(frozen=True)

    synthesis_type: SynthesisType
    comprehensive_response: str
    key_themes: list[str] = Field(default_factory=list, max_length=3)
    actionable_insights: list[str] = Field(default_factory=list, max_length=3)
    executive_summary: str = Field(default="")
    frames_synthesized: int = Field(default=0, ge=0)


class AnalysisResult(BaseModel):
    """What a completed session hands back to callers."""

    model_config = ConfigDict(frozen=True)

    synthesized: SynthesizedResult
    frame_analyses: list[FrameAnalysis] = Field(
        default_factory=list, description="Every analysis, including errored ones"
    )
    strategy: CaptureStrategy
    video: VideoMetadata = Field(default_factory=VideoMetadata)


# ---------------------------------------------------------------------------
# Sessions and events
# ---------------------------------------------------------------------------


class SessionError(BaseModel):
    """Human-readable failure recorded on a failed session."""

    model_config = ConfigDict(frozen=True)

    code: str = Field(description="Error class name, e.g. NavigationError")
    message: str


class Session(BaseModel):
    """One analysis request and its lifecycle state.

    Owned by the orchestrator; every mutation goes through it so that the
    terminal-state invariant (exactly one of result / error once completed
    or failed) holds.
    """

    model_config = ConfigDict(validate_assignment=True)

    id: str
    prompt: str
    target_url: str | None = None
    options: AnalysisConfig = Field(default_factory=AnalysisConfig)
    status: SessionStatus = SessionStatus.INITIALIZING
    progress: int = Field(default=0, ge=0, le=100)
    result: AnalysisResult | None = None
    error: SessionError | None = None
    frames: list[Frame] = Field(default_factory=list, repr=False)
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    def status_view(self) -> dict[str, Any]:
        return {
            "session_id": self.id,
            "status": self.status.value,
            "progress": self.progress,
            "error": self.error.message if self.error else None,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


class SessionEvent(BaseModel):
    """A message fanned out to the subscribers of a session."""

    model_config = ConfigDict(frozen=True)

    type: Literal["progress", "status", "error"]
    session_id: str
    status: SessionStatus | None = None
    progress: int | None = Field(default=None, ge=0, le=100)
    message: str = Field(default="")
    timestamp: datetime = Field(default_factory=datetime.now)
