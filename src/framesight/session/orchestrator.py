"""The session orchestrator that runs analysis sessions end to end.

Ties together browser navigation, capture planning, frame capture,
per-frame inference and cross-frame synthesis. Each session runs as one
asyncio task that owns its own browser; the orchestrator is the only
writer of session state and of the session's event stream.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime
from typing import Any, Callable

from pydantic import ValidationError

from framesight.analysis.synthesis import SynthesisEngine, SynthesisError
from framesight.capture.base import CaptureError
from framesight.capture.executor import CaptureExecutor
from framesight.capture.planner import CapturePlanner
from framesight.config.settings import AnalysisConfig
from framesight.domain.models import (
    AnalysisResult,
    Session,
    SessionError,
    SessionEvent,
    SessionStatus,
    VideoMetadata,
)
from framesight.inference.adapter import FrameAnalyzer
from framesight.navigation.base import BrowserNavigator, NavigationError, PlayerHandle, extract_target_url
from framesight.session.broadcast import EventBroadcaster

logger = logging.getLogger(__name__)

PROMPT_PREVIEW_LENGTH = 100

# Progress bands per stage: (start, end)
NAVIGATION_BAND = (0, 25)
DETECTION_BAND = (25, 40)
CAPTURE_BAND = (40, 70)
ANALYSIS_BAND = (70, 90)
SYNTHESIS_BAND = (90, 100)


def default_executor_factory(options: AnalysisConfig) -> CaptureExecutor:
    return CaptureExecutor(
        stabilization_timeout=options.stabilization_timeout,
        event_detection_attempts=options.event_detection_attempts,
        event_poll_interval=options.event_poll_interval,
        image_format=options.image_format,
    )


def default_planner_factory(options: AnalysisConfig) -> CapturePlanner:
    return CapturePlanner(slide_sample_interval=options.slide_sample_interval)


class SessionOrchestrator:
    """Creates, runs, tracks and cancels analysis sessions.

    Args:
        navigator_factory: Returns a fresh, unopened navigator per session.
        analyzer: Per-frame analysis adapter (shared; holds the cache).
        synthesizer: Cross-frame synthesis engine.
        broadcaster: Event fan-out; a private one is created if omitted.
        defaults: Analysis settings each session starts from.
        planner_factory: Builds the capture planner for a session's settings.
        executor_factory: Builds the capture executor for a session's settings.
        max_finished_sessions: How many terminal sessions are retained. The
            oldest are evicted when a new session starts. None keeps all.
    """

    def __init__(
        self,
        navigator_factory: Callable[[], BrowserNavigator],
        analyzer: FrameAnalyzer,
        synthesizer: SynthesisEngine,
        broadcaster: EventBroadcaster | None = None,
        defaults: AnalysisConfig | None = None,
        planner_factory: Callable[[AnalysisConfig], CapturePlanner] = default_planner_factory,
        executor_factory: Callable[[AnalysisConfig], CaptureExecutor] = default_executor_factory,
        max_finished_sessions: int | None = 100,
    ) -> None:
        self._navigator_factory = navigator_factory
        self._analyzer = analyzer
        self._synthesizer = synthesizer
        self._broadcaster = broadcaster or EventBroadcaster()
        self._defaults = defaults or AnalysisConfig()
        self._planner_factory = planner_factory
        self._executor_factory = executor_factory
        self._max_finished_sessions = max_finished_sessions
        self._sessions: dict[str, Session] = {}
        self._tasks: dict[str, asyncio.Task] = {}
        self._cancel_requested: set[str] = set()
        self._released: set[str] = set()

    @property
    def broadcaster(self) -> EventBroadcaster:
        return self._broadcaster

    @property
    def active_count(self) -> int:
        return sum(1 for s in self._sessions.values() if not s.status.is_terminal)

    async def start(self, prompt: str, url: str | None = None, settings: dict[str, Any] | None = None) -> str:
        """Create a session and start running it in the background.

        Args:
            prompt: The user's free-form request.
            url: Page to open; extracted from the prompt when omitted.
            settings: Per-session overrides of AnalysisConfig fields.

        Returns:
            The new session's id.

        Raises:
            ValueError: If the prompt is blank or the settings are invalid.
        """
        if not prompt or not prompt.strip():
            raise ValueError("Prompt must not be empty")

        try:
            options = AnalysisConfig.model_validate({**self._defaults.model_dump(), **(settings or {})})
        except ValidationError as e:
            raise ValueError(f"Invalid session settings: {e}") from e

        session = Session(
            id=str(uuid.uuid4()),
            prompt=prompt.strip(),
            target_url=url or None,
            options=options,
        )
        self._evict_finished()
        self._sessions[session.id] = session
        self._tasks[session.id] = asyncio.create_task(self._run(session), name=f"session-{session.id}")
        logger.info("Session %s started: %s", session.id, session.prompt[:PROMPT_PREVIEW_LENGTH])
        return session.id

    def get_status(self, session_id: str) -> Session:
        """Return the live session record.

        Raises:
            SessionNotFound: If the id is unknown.
        """
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    def get_result(self, session_id: str) -> AnalysisResult:
        """Return the result of a completed session.

        Raises:
            SessionNotFound: If the id is unknown.
            SessionNotReady: While the session is still running.
            SessionFailed: If the session failed; carries its error message.
            SessionCancelled: If the session was cancelled.
        """
        session = self.get_status(session_id)
        if session.status == SessionStatus.FAILED:
            raise SessionFailed(session.error.message if session.error else "Session failed")
        if session.status == SessionStatus.CANCELLED:
            raise SessionCancelled(session_id)
        if session.status != SessionStatus.COMPLETED or session.result is None:
            raise SessionNotReady(session_id)
        return session.result

    async def cancel(self, session_id: str) -> bool:
        """Cancel a running session and wait until it has released its browser.

        Returns False when the session had already reached a terminal state.

        Raises:
            SessionNotFound: If the id is unknown.
        """
        session = self.get_status(session_id)
        if session.status.is_terminal:
            return False

        self._cancel_requested.add(session_id)
        task = self._tasks.get(session_id)
        if task is not None and not task.done():
            task.cancel()
            await asyncio.wait({task})

        # A task cancelled before it ever ran never reached its own handler.
        if not session.status.is_terminal:
            await self._mark_cancelled(session)
        self._forget_task(session_id)
        return session.status == SessionStatus.CANCELLED

    def remove(self, session_id: str) -> None:
        """Forget a finished session and its result.

        Raises:
            SessionNotFound: If the id is unknown.
            SessionNotReady: While the session is still running.
        """
        session = self.get_status(session_id)
        if not session.status.is_terminal:
            raise SessionNotReady(session_id)
        del self._sessions[session_id]
        self._forget_task(session_id)
        logger.info("Session %s removed", session_id)

    async def wait(self, session_id: str, timeout: float | None = None) -> Session:
        """Wait until a session reaches a terminal state (or ``timeout`` passes)."""
        session = self.get_status(session_id)
        task = self._tasks.get(session_id)
        if task is not None and not task.done():
            await asyncio.wait({task}, timeout=timeout)
        return session

    def list_sessions(self) -> list[dict[str, Any]]:
        views = []
        for session in sorted(self._sessions.values(), key=lambda s: s.created_at, reverse=True):
            view = session.status_view()
            view["prompt"] = session.prompt[:PROMPT_PREVIEW_LENGTH]
            view["target_url"] = session.target_url
            views.append(view)
        return views

    async def shutdown(self) -> None:
        """Cancel every running session."""
        running = [sid for sid, s in self._sessions.items() if not s.status.is_terminal]
        if running:
            logger.info("Cancelling %d running sessions", len(running))
        await asyncio.gather(*(self.cancel(sid) for sid in running))

    # ------------------------------------------------------------------
    # Session task
    # ------------------------------------------------------------------

    async def _run(self, session: Session) -> None:
        navigator = self._navigator_factory()
        timeout = session.options.session_timeout
        try:
            if timeout is not None:
                await asyncio.wait_for(self._guarded_pipeline(session, navigator), timeout)
            else:
                await self._guarded_pipeline(session, navigator)
        except asyncio.CancelledError:
            await self._mark_cancelled(session)
            raise
        except asyncio.TimeoutError:
            # Only the session deadline lands here; stage timeouts surface as StageTimeout.
            await self._fail(session, SessionTimeout(f"Session exceeded its {timeout:.0f}s deadline"))
        except (NavigationError, CaptureError, SynthesisError, StageTimeout) as e:
            await self._fail(session, e)
        except Exception as e:
            logger.exception("Unexpected error in session %s", session.id)
            await self._fail(session, e)
        finally:
            await self._release(session, navigator)
            session.frames = []
            if not session.status.is_terminal:
                await self._fail(session, SessionAborted("Session stopped before reaching a final state"))
            self._forget_task(session.id)

    async def _guarded_pipeline(self, session: Session, navigator: BrowserNavigator) -> None:
        try:
            await self._pipeline(session, navigator)
        except asyncio.TimeoutError as e:
            raise StageTimeout(str(e) or f"A step timed out while {session.status.value}") from e

    async def _pipeline(self, session: Session, navigator: BrowserNavigator) -> None:
        options = session.options

        # 1. Navigate
        await self._advance(session, SessionStatus.NAVIGATING, NAVIGATION_BAND[0], "Opening browser")
        target = session.target_url or extract_target_url(session.prompt)
        if target is None:
            raise NavigationError(
                "Could not determine target website from prompt. "
                "Include a URL or a site such as 'visit coursera.org'."
            )
        session.target_url = target
        await navigator.open()
        await self._navigate_with_retry(session, navigator, target, options.navigation_attempts)
        await self._advance(session, None, 20, f"Loaded {target}")
        try:
            if await navigator.dismiss_cookie_dialog():
                logger.info("Session %s: dismissed cookie dialog", session.id)
        except NavigationError as e:
            logger.warning("Session %s: cookie dialog handling failed: %s", session.id, e)
        self._check_cancelled(session)

        # 2. Detect the player
        await self._advance(session, SessionStatus.DETECTING_PLAYER, DETECTION_BAND[0], "Detecting video player")
        handle = await navigator.detect_player(session.prompt)
        metadata = await self._read_metadata(navigator, handle)
        await self._advance(session, None, DETECTION_BAND[1], "Video player detected")
        self._check_cancelled(session)

        # 3. Plan and capture
        plan = self._planner_factory(options).plan(metadata, session.prompt)
        await self._advance(
            session, SessionStatus.CAPTURING, CAPTURE_BAND[0],
            f"Capturing {len(plan.capture_points)} points ({plan.strategy.value})",
        )
        frames = await self._executor_factory(options).execute(
            plan, navigator, handle,
            on_progress=self._band_progress(session, CAPTURE_BAND, "Captured point"),
        )
        if not frames:
            raise CaptureError("No frames could be captured from the video")
        session.frames = frames
        self._check_cancelled(session)

        # The browser is no longer needed once frames are in memory.
        await self._release(session, navigator)

        # 4. Analyze
        await self._advance(session, SessionStatus.ANALYZING, ANALYSIS_BAND[0], f"Analyzing {len(frames)} frames")
        analyses = await self._analyzer.analyze_batch(
            frames,
            session.prompt,
            concurrency=options.max_concurrent,
            batch_delay=options.batch_delay,
            on_progress=self._band_progress(session, ANALYSIS_BAND, "Analyzed frame"),
        )
        self._check_cancelled(session)

        # 5. Synthesize
        await self._advance(session, SessionStatus.SYNTHESIZING, SYNTHESIS_BAND[0], "Synthesizing results")
        synthesized = await self._synthesizer.synthesize(analyses, session.prompt)
        self._check_cancelled(session)

        session.result = AnalysisResult(
            synthesized=synthesized,
            frame_analyses=analyses,
            strategy=plan.strategy,
            video=metadata,
        )
        await self._advance(session, SessionStatus.COMPLETED, SYNTHESIS_BAND[1], "Analysis complete")
        logger.info(
            "Session %s completed: %d frames, %d analyses ok",
            session.id, len(frames), sum(1 for a in analyses if a.ok),
        )

    async def _navigate_with_retry(
        self, session: Session, navigator: BrowserNavigator, url: str, attempts: int
    ) -> None:
        for attempt in range(1, attempts + 1):
            try:
                await navigator.navigate(url)
                return
            except NavigationError as e:
                if attempt == attempts:
                    raise
                logger.warning(
                    "Session %s: navigation attempt %d/%d failed: %s",
                    session.id, attempt, attempts, e,
                )

    async def _read_metadata(self, navigator: BrowserNavigator, handle: PlayerHandle) -> VideoMetadata:
        try:
            duration = await navigator.duration(handle)
            current = await navigator.current_time(handle)
        except NavigationError as e:
            logger.warning("Could not read video metadata: %s", e)
            return VideoMetadata()
        return VideoMetadata(
            duration=duration if duration and duration > 0 else None,
            current_time=current if current is not None and current >= 0 else None,
        )

    # ------------------------------------------------------------------
    # State changes and events
    # ------------------------------------------------------------------

    def _band_progress(self, session: Session, band: tuple[int, int], label: str):
        start, end = band

        async def on_progress(done: int, total: int) -> None:
            value = start + (end - start) * done // total if total else end
            await self._advance(session, None, value, f"{label} {done}/{total}")

        return on_progress

    async def _advance(
        self,
        session: Session,
        status: SessionStatus | None,
        progress: int,
        message: str = "",
    ) -> None:
        """Move a session forward; progress never decreases."""
        if session.status.is_terminal:
            return
        new_progress = max(session.progress, min(progress, 100))
        session.progress = new_progress
        session.updated_at = datetime.now()

        if status is not None and status != session.status:
            session.status = status
            logger.info("Session %s -> %s (%d%%)", session.id, status.value, new_progress)
            await self._publish(session, "status", message)
        await self._publish(session, "progress", message)

    async def _fail(self, session: Session, error: Exception) -> None:
        if session.status.is_terminal:
            return
        message = str(error) or type(error).__name__
        session.error = SessionError(code=type(error).__name__, message=message)
        session.result = None
        session.status = SessionStatus.FAILED
        session.updated_at = datetime.now()
        logger.error("Session %s failed: %s", session.id, message)
        await self._publish(session, "status", message)
        await self._publish(session, "progress", message)
        await self._publish(session, "error", message)

    async def _mark_cancelled(self, session: Session) -> None:
        if session.status.is_terminal:
            return
        session.status = SessionStatus.CANCELLED
        session.result = None
        session.updated_at = datetime.now()
        logger.info("Session %s cancelled", session.id)
        await self._publish(session, "status", "Session cancelled")
        await self._publish(session, "progress", "Session cancelled")

    async def _publish(self, session: Session, event_type: str, message: str) -> None:
        await self._broadcaster.publish(
            session.id,
            SessionEvent(
                type=event_type,
                session_id=session.id,
                status=session.status,
                progress=session.progress,
                message=message,
            ),
        )

    def _check_cancelled(self, session: Session) -> None:
        if session.id in self._cancel_requested:
            raise asyncio.CancelledError()

    def _forget_task(self, session_id: str) -> None:
        self._tasks.pop(session_id, None)
        self._released.discard(session_id)
        self._cancel_requested.discard(session_id)

    def _evict_finished(self) -> None:
        if self._max_finished_sessions is None:
            return
        finished = sorted(
            (s for s in self._sessions.values() if s.status.is_terminal),
            key=lambda s: s.updated_at,
        )
        excess = len(finished) - self._max_finished_sessions
        for session in finished[:max(excess, 0)]:
            del self._sessions[session.id]
            self._forget_task(session.id)
            logger.debug("Evicted finished session %s", session.id)

    async def _release(self, session: Session, navigator: BrowserNavigator) -> None:
        """Close the session's browser once; later calls are no-ops."""
        if session.id in self._released:
            return
        self._released.add(session.id)
        try:
            await asyncio.shield(navigator.close())
        except Exception as e:
            logger.warning("Session %s: error releasing browser: %s", session.id, e)


class SessionNotFound(LookupError):
    """Raised for an unknown session id."""


class SessionNotReady(Exception):
    """Raised when a result is requested before the session finished."""


class SessionFailed(Exception):
    """Raised when a result is requested from a failed session."""


class SessionCancelled(Exception):
    """Raised when a result is requested from a cancelled session."""


class SessionTimeout(Exception):
    """The session did not finish within its deadline."""


class SessionAborted(Exception):
    """The session task ended without recording a final state."""


class StageTimeout(Exception):
    """A collaborator timed out inside one pipeline stage."""
