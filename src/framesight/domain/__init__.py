"""Domain models for framesight.

This package contains all core data structures, enumerations, and value
objects used throughout the system. All models use Pydantic v2 for
validation and serialization.
"""

from framesight.domain.models import (
    AnalysisResult,
    CapturePlan,
    CapturePoint,
    CaptureStrategy,
    EventPoint,
    Frame,
    FrameAnalysis,
    InferenceErrorKind,
    OptimizationProfile,
    Session,
    SessionError,
    SessionEvent,
    SessionStatus,
    SynthesisType,
    SynthesizedResult,
    TimestampPoint,
    VideoMetadata,
)

__all__ = [
    "AnalysisResult",
    "CapturePlan",
    "CapturePoint",
    "CaptureStrategy",
    "EventPoint",
    "Frame",
    "FrameAnalysis",
    "InferenceErrorKind",
    "OptimizationProfile",
    "Session",
    "SessionError",
    "SessionEvent",
    "SessionStatus",
    "SynthesisType",
    "SynthesizedResult",
    "TimestampPoint",
    "VideoMetadata",
]
