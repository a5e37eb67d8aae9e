"""FastAPI HTTP server exposing analysis sessions.

Starts, inspects, and cancels sessions over HTTP, and streams their
events to WebSocket clients that subscribe to a session id.
"""

from __future__ import annotations

import json
import logging
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from framesight import __version__
from framesight.domain.models import SessionEvent
from framesight.inference.cache import FrameCache
from framesight.session.broadcast import EventBroadcaster
from framesight.session.orchestrator import (
    SessionCancelled,
    SessionFailed,
    SessionNotFound,
    SessionNotReady,
    SessionOrchestrator,
)

logger = logging.getLogger(__name__)


class AnalyzeRequest(BaseModel):
    prompt: str = Field(description="What to find out about the video")
    url: str | None = Field(default=None, description="Page hosting the video")
    settings: dict[str, Any] = Field(default_factory=dict, description="Per-session analysis overrides")


class AnalyzeResponse(BaseModel):
    session_id: str
    status: str
    message: str = "Analysis started successfully"


class HealthStatus(BaseModel):
    status: str = "healthy"
    sessions: int = 0
    subscribers: int = 0
    cache: dict[str, Any] | None = None


class WebSocketSubscriber:
    """Adapts a WebSocket to the broadcaster's ``send(event)`` protocol."""

    def __init__(self, websocket: WebSocket) -> None:
        self._websocket = websocket

    async def send(self, event: SessionEvent) -> None:
        await self._websocket.send_text(event.model_dump_json())


def create_app(
    orchestrator: SessionOrchestrator,
    broadcaster: EventBroadcaster | None = None,
    cache: FrameCache | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    hub = broadcaster or orchestrator.broadcaster

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("framesight server started")
        yield
        await orchestrator.shutdown()
        logger.info("framesight server stopped")

    app = FastAPI(
        title="framesight",
        description="Vision-model analysis of online videos",
        version=__version__,
        lifespan=lifespan,
    )

    def _session_or_404(session_id: str):
        try:
            return orchestrator.get_status(session_id)
        except SessionNotFound:
            raise HTTPException(status_code=404, detail="Session not found")

    @app.post("/api/analyze")
    async def start_analysis(request: AnalyzeRequest) -> AnalyzeResponse:
        try:
            session_id = await orchestrator.start(request.prompt, request.url, request.settings)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        session = orchestrator.get_status(session_id)
        return AnalyzeResponse(session_id=session_id, status=session.status.value)

    @app.get("/api/analyze/status/{session_id}")
    async def get_status(session_id: str) -> dict[str, Any]:
        return _session_or_404(session_id).status_view()

    @app.get("/api/analyze/results/{session_id}")
    async def get_results(session_id: str) -> Any:
        session = _session_or_404(session_id)
        try:
            result = orchestrator.get_result(session_id)
        except SessionNotReady:
            return JSONResponse(
                status_code=202,
                content={
                    "message": "Analysis still in progress",
                    "status": session.status.value,
                    "progress": session.progress,
                },
            )
        except SessionFailed as e:
            return {"session_id": session_id, "status": "failed", "error": str(e)}
        except SessionCancelled:
            raise HTTPException(status_code=409, detail="Session was cancelled")
        return {
            "session_id": session_id,
            "status": session.status.value,
            "prompt": session.prompt,
            "url": session.target_url,
            "results": result.model_dump(mode="json"),
        }

    @app.delete("/api/analyze/{session_id}")
    async def cancel_analysis(session_id: str) -> dict[str, Any]:
        session = _session_or_404(session_id)
        if session.status.is_terminal:
            orchestrator.remove(session_id)
            return {"session_id": session_id, "cancelled": False, "message": "Session removed"}
        cancelled = await orchestrator.cancel(session_id)
        message = "Analysis cancelled successfully" if cancelled else "Session already finished"
        return {"session_id": session_id, "cancelled": cancelled, "message": message}

    @app.get("/api/analyze/sessions")
    async def list_sessions() -> dict[str, Any]:
        return {"sessions": orchestrator.list_sessions()}

    @app.get("/api/health")
    async def health_check() -> HealthStatus:
        return HealthStatus(
            sessions=orchestrator.active_count,
            subscribers=hub.subscriber_count(),
            cache=cache.stats() if cache is not None else None,
        )

    @app.websocket("/ws")
    async def events(websocket: WebSocket) -> None:
        await websocket.accept()
        subscriber = WebSocketSubscriber(websocket)
        try:
            while True:
                raw = await websocket.receive_text()
                try:
                    message = json.loads(raw)
                except ValueError:
                    logger.warning("Ignoring malformed WebSocket message: %s", raw[:100])
                    continue
                kind = message.get("type") if isinstance(message, dict) else None
                if kind == "ping":
                    await websocket.send_json({"type": "pong", "timestamp": int(time.time() * 1000)})
                elif kind == "subscribe" and message.get("session_id"):
                    hub.subscribe(message["session_id"], subscriber)
                    await websocket.send_json({"type": "subscribed", "session_id": message["session_id"]})
                else:
                    logger.debug("Unknown WebSocket message: %s", message)
        except WebSocketDisconnect:
            logger.debug("WebSocket client disconnected")
        finally:
            hub.unsubscribe_all(subscriber)

    return app
