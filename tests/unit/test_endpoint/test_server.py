"""Tests for the HTTP/WebSocket endpoint server."""

from __future__ import annotations

import asyncio
import time

import pytest
from fastapi.testclient import TestClient

from framesight.analysis.synthesis import SynthesisEngine
from framesight.config.settings import AnalysisConfig
from framesight.endpoint.server import create_app
from framesight.inference.adapter import FrameAnalyzer
from framesight.inference.cache import FrameCache
from framesight.session.orchestrator import SessionOrchestrator

from conftest import FakeNavigator

URL = "https://example.com/lecture"


def _poll(client: TestClient, session_id: str, statuses: set[str], timeout: float = 5.0) -> dict:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        body = client.get(f"/api/analyze/status/{session_id}").json()
        if body["status"] in statuses:
            return body
        time.sleep(0.01)
    raise AssertionError(f"session {session_id} never reached {statuses}")


class TestEndpointServer:
    """Test the FastAPI routes against a scripted orchestrator."""

    @pytest.fixture
    def navigator(self) -> FakeNavigator:
        return FakeNavigator(duration=120.0)

    @pytest.fixture
    def cache(self) -> FrameCache:
        return FrameCache()

    @pytest.fixture
    def client(self, fake_provider, navigator, cache, instant_sleep):
        orchestrator = SessionOrchestrator(
            navigator_factory=lambda: navigator,
            analyzer=FrameAnalyzer(fake_provider, cache=cache, sleep=instant_sleep),
            synthesizer=SynthesisEngine(fake_provider),
            defaults=AnalysisConfig(stabilization_timeout=0, batch_delay=0, event_poll_interval=0),
        )
        with TestClient(create_app(orchestrator, cache=cache)) as client:
            yield client

    def test_health(self, client) -> None:
        response = client.get("/api/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["sessions"] == 0
        assert body["cache"]["entries"] == 0

    def test_analyze_to_completion(self, client) -> None:
        response = client.post("/api/analyze", json={"prompt": "Summarize this video", "url": URL})
        assert response.status_code == 200
        session_id = response.json()["session_id"]

        _poll(client, session_id, {"completed"})
        results = client.get(f"/api/analyze/results/{session_id}")

        assert results.status_code == 200
        body = results.json()
        assert body["status"] == "completed"
        assert body["url"] == URL
        assert body["results"]["synthesized"]["synthesis_type"] == "summary"
        assert len(body["results"]["frame_analyses"]) == 5
        assert client.get("/api/health").json()["cache"]["entries"] == 5

    @pytest.mark.parametrize(
        "payload",
        [
            {"prompt": "   "},
            {"prompt": "Summarize", "settings": {"max_concurrent": 0}},
            {"prompt": "Summarize", "settings": {"bogus": True}},
        ],
    )
    def test_invalid_requests_rejected(self, client, payload) -> None:
        assert client.post("/api/analyze", json=payload).status_code == 400

    def test_unknown_session_is_404(self, client) -> None:
        assert client.get("/api/analyze/status/nope").status_code == 404
        assert client.get("/api/analyze/results/nope").status_code == 404
        assert client.delete("/api/analyze/nope").status_code == 404

    def test_failed_session_reports_error(self, client) -> None:
        session_id = client.post("/api/analyze", json={"prompt": "summarize this video"}).json()["session_id"]

        status = _poll(client, session_id, {"failed"})
        results = client.get(f"/api/analyze/results/{session_id}")

        assert "target website" in status["error"]
        assert results.status_code == 200
        assert results.json()["status"] == "failed"

    def test_running_then_cancelled(self, client, navigator) -> None:
        navigator.seek_gate = asyncio.Event()
        session_id = client.post(
            "/api/analyze", json={"prompt": "Summarize this video", "url": URL}
        ).json()["session_id"]
        _poll(client, session_id, {"capturing"})

        running = client.get(f"/api/analyze/results/{session_id}")
        assert running.status_code == 202
        assert running.json()["status"] == "capturing"

        cancel = client.delete(f"/api/analyze/{session_id}").json()
        assert cancel["cancelled"] is True
        assert client.get(f"/api/analyze/status/{session_id}").json()["status"] == "cancelled"
        assert client.get(f"/api/analyze/results/{session_id}").status_code == 409
        assert client.delete(f"/api/analyze/{session_id}").json()["cancelled"] is False
        assert client.get(f"/api/analyze/status/{session_id}").status_code == 404
        assert navigator.close_calls == 1

    def test_delete_removes_finished_session(self, client) -> None:
        session_id = client.post(
            "/api/analyze", json={"prompt": "Summarize this video", "url": URL}
        ).json()["session_id"]
        _poll(client, session_id, {"completed"})

        removed = client.delete(f"/api/analyze/{session_id}").json()

        assert removed == {"session_id": session_id, "cancelled": False, "message": "Session removed"}
        assert client.get(f"/api/analyze/results/{session_id}").status_code == 404
        assert client.get("/api/analyze/sessions").json()["sessions"] == []

    def test_list_sessions(self, client) -> None:
        session_id = client.post(
            "/api/analyze", json={"prompt": "Summarize this video", "url": URL}
        ).json()["session_id"]
        _poll(client, session_id, {"completed"})

        sessions = client.get("/api/analyze/sessions").json()["sessions"]

        assert [s["session_id"] for s in sessions] == [session_id]
        assert sessions[0]["prompt"] == "Summarize this video"


class TestWebSocket:
    @pytest.fixture
    def navigator(self) -> FakeNavigator:
        return FakeNavigator(duration=120.0)

    @pytest.fixture
    def client(self, fake_provider, navigator, instant_sleep):
        orchestrator = SessionOrchestrator(
            navigator_factory=lambda: navigator,
            analyzer=FrameAnalyzer(fake_provider, sleep=instant_sleep),
            synthesizer=SynthesisEngine(fake_provider),
            defaults=AnalysisConfig(stabilization_timeout=0, batch_delay=0),
        )
        with TestClient(create_app(orchestrator)) as client:
            yield client

    def test_ping_pong(self, client) -> None:
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"type": "ping"})
            reply = ws.receive_json()
        assert reply["type"] == "pong"
        assert isinstance(reply["timestamp"], int)

    def test_malformed_message_keeps_socket_open(self, client) -> None:
        with client.websocket_connect("/ws") as ws:
            ws.send_text("{not json")
            ws.send_json({"type": "ping"})
            reply = ws.receive_json()
        assert reply["type"] == "pong"

    def test_subscriber_receives_session_events(self, client, navigator) -> None:
        navigator.seek_gate = asyncio.Event()
        session_id = client.post(
            "/api/analyze", json={"prompt": "Summarize this video", "url": URL}
        ).json()["session_id"]
        _poll(client, session_id, {"capturing"})

        with client.websocket_connect("/ws") as ws:
            ws.send_json({"type": "subscribe", "session_id": session_id})
            assert ws.receive_json() == {"type": "subscribed", "session_id": session_id}
            assert client.get("/api/health").json()["subscribers"] == 1

            client.delete(f"/api/analyze/{session_id}")
            event = ws.receive_json()

        assert event["type"] == "status"
        assert event["session_id"] == session_id
        assert event["status"] == "cancelled"
