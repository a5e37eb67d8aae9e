"""Fan-out of session events to subscribers.

Each session has its own subscriber set. Publishing is best-effort: a
subscriber whose ``send`` raises or stalls past ``send_timeout`` is
dropped, and neither the publisher nor the other subscribers notice.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from framesight.domain.models import SessionEvent

logger = logging.getLogger(__name__)


class Subscriber(Protocol):
    async def send(self, event: SessionEvent) -> None: ...


class EventBroadcaster:
    """Per-session publish/subscribe hub for SessionEvents.

    Args:
        send_timeout: Seconds one subscriber may take to accept an event.
    """

    def __init__(self, send_timeout: float = 5.0) -> None:
        self._send_timeout = send_timeout
        self._subscribers: dict[str, list[Subscriber]] = {}

    def subscribe(self, session_id: str, subscriber: Subscriber) -> None:
        subs = self._subscribers.setdefault(session_id, [])
        if subscriber not in subs:
            subs.append(subscriber)
        logger.debug("Subscriber added to session %s (%d total)", session_id, len(subs))

    def unsubscribe(self, session_id: str, subscriber: Subscriber) -> None:
        subs = self._subscribers.get(session_id)
        if not subs:
            return
        if subscriber in subs:
            subs.remove(subscriber)
        if not subs:
            del self._subscribers[session_id]

    def unsubscribe_all(self, subscriber: Subscriber) -> None:
        """Remove ``subscriber`` from every session, e.g. when its socket closes."""
        for session_id in list(self._subscribers):
            self.unsubscribe(session_id, subscriber)

    def subscriber_count(self, session_id: str | None = None) -> int:
        if session_id is not None:
            return len(self._subscribers.get(session_id, []))
        return sum(len(subs) for subs in self._subscribers.values())

    async def publish(self, session_id: str, event: SessionEvent) -> None:
        """Deliver ``event`` to every subscriber of ``session_id``."""
        subs = list(self._subscribers.get(session_id, []))
        if not subs:
            return
        results = await asyncio.gather(
            *(asyncio.wait_for(s.send(event), self._send_timeout) for s in subs),
            return_exceptions=True,
        )
        for subscriber, result in zip(subs, results):
            if isinstance(result, asyncio.TimeoutError):
                logger.warning("Dropping subscriber of session %s: send stalled", session_id)
                self.unsubscribe(session_id, subscriber)
            elif isinstance(result, Exception):
                logger.warning("Dropping subscriber of session %s: %s", session_id, result)
                self.unsubscribe(session_id, subscriber)
