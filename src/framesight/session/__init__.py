"""Analysis session management for framesight.

Public API:
    SessionOrchestrator -- Runs and tracks analysis sessions
    EventBroadcaster -- Per-session event fan-out
    SessionNotFound, SessionNotReady, SessionFailed, SessionCancelled,
    SessionTimeout, StageTimeout, SessionAborted -- Session lookup and lifecycle errors
"""

from framesight.session.broadcast import EventBroadcaster, Subscriber
from framesight.session.orchestrator import (
    SessionAborted,
    SessionCancelled,
    SessionFailed,
    SessionNotFound,
    SessionNotReady,
    SessionOrchestrator,
    SessionTimeout,
    StageTimeout,
)

__all__ = [
    "EventBroadcaster",
    "SessionAborted",
    "SessionCancelled",
    "SessionFailed",
    "SessionNotFound",
    "SessionNotReady",
    "SessionOrchestrator",
    "SessionTimeout",
    "StageTimeout",
    "Subscriber",
]
