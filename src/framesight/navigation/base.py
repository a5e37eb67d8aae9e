"""Abstract base class for browser navigators.

A navigator owns one browser page for one analysis session. It exposes
two kinds of operations: deterministic player control (seek, wait,
screenshot, time queries) on a detected player, and natural-language
operations (``ask``, ``act``) that delegate page understanding to a
vision model. The capture pipeline only talks to this interface, so a
scripted fake can stand in for a real browser.
"""

from __future__ import annotations

import enum
import logging
import re
from abc import ABC, abstractmethod

from pydantic import BaseModel, ConfigDict, Field

from framesight.utils.imaging import has_frame_changed, side_by_side

logger = logging.getLogger(__name__)

_URL_RE = re.compile(r"https?://[^\s\"'<>]+", re.IGNORECASE)
_DOMAIN_RE = re.compile(
    r"\b(?:visit|go to|navigate to|open|from|on)\s+((?:www\.)?[a-z0-9-]+(?:\.[a-z0-9-]+)*\.(?:com|org|edu|net|tv|io|co\.uk))\b",
    re.IGNORECASE,
)
_PLATFORM_URLS = [
    ("youtube", "https://youtube.com"),
    ("coursera", "https://coursera.org"),
    ("udemy", "https://udemy.com"),
    ("edx", "https://edx.org"),
    ("khan academy", "https://khanacademy.org"),
    ("vimeo", "https://vimeo.com"),
    ("twitch", "https://twitch.tv"),
]


class EventSignal(str, enum.Enum):
    """Answer to "is the described event on screen right now?"."""

    CAPTURE_NOW = "CAPTURE_NOW"
    WAIT_LONGER = "WAIT_LONGER"
    EVENT_NOT_FOUND = "EVENT_NOT_FOUND"


class PlayerHandle(BaseModel):
    """Opaque reference to a detected video player."""

    model_config = ConfigDict(frozen=True)

    selector: str = Field(description="How the navigator finds the player again")
    player_type: str = Field(default="html5")
    page_url: str = Field(default="")


class BrowserNavigator(ABC):
    """Abstract interface for a browser page that hosts a video.

    Example usage::

        async with PlaywrightNavigator(provider) as nav:
            await nav.navigate("https://example.com/lecture")
            handle = await nav.detect_player("intro lecture")
            await nav.seek(handle, 50.0)
            png = await nav.screenshot(handle)
    """

    def __init__(self) -> None:
        self._is_open: bool = False

    @property
    def is_open(self) -> bool:
        return self._is_open

    @abstractmethod
    async def open(self) -> None:
        """Launch the browser and create the page.

        Raises:
            NavigationError: If the browser cannot be started.
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release the browser. Safe to call more than once."""
        ...

    @abstractmethod
    async def navigate(self, url: str) -> None:
        """Load ``url`` in the page.

        Raises:
            NavigationError: If the page cannot be loaded.
        """
        ...

    @abstractmethod
    async def dismiss_cookie_dialog(self) -> bool:
        """Dismiss a cookie or consent dialog if one is visible."""
        ...

    @abstractmethod
    async def act(self, instruction: str) -> bool:
        """Carry out a natural-language instruction on the page."""
        ...

    @abstractmethod
    async def ask(self, question: str, image: bytes | None = None) -> str:
        """Ask a natural-language question about ``image`` or the current page."""
        ...

    @abstractmethod
    async def detect_player(self, hint: str = "") -> PlayerHandle:
        """Find the video player on the page.

        Args:
            hint: What the user is looking for, used to pick a video
                  when the page lists several.

        Raises:
            PlayerDetectionError: If no player can be found.
        """
        ...

    @abstractmethod
    async def seek(self, handle: PlayerHandle, percentage: float) -> None:
        """Seek the player to ``percentage`` (0-100) of its duration."""
        ...

    @abstractmethod
    async def wait_stable(self, handle: PlayerHandle, timeout: float) -> bool:
        """Wait up to ``timeout`` seconds for the player to show a settled frame."""
        ...

    @abstractmethod
    async def screenshot(self, handle: PlayerHandle) -> bytes:
        """Capture the player area as PNG bytes."""
        ...

    @abstractmethod
    async def current_time(self, handle: PlayerHandle) -> float | None:
        ...

    @abstractmethod
    async def duration(self, handle: PlayerHandle) -> float | None:
        ...

    async def detect_event(self, handle: PlayerHandle, description: str) -> EventSignal:
        """Ask whether the described event is visible in the player now."""
        frame = await self.screenshot(handle)
        answer = await self.ask(
            f'I\'m looking for this event in the video: "{description}"\n\n'
            "Look at the current video frame and tell me:\n"
            f"1. Can you see {description}?\n"
            "2. Is this the right moment to capture for this event?\n"
            "3. Should I wait longer or capture now?\n\n"
            "Respond with exactly one of: CAPTURE_NOW, WAIT_LONGER, EVENT_NOT_FOUND",
            image=frame,
        )
        return parse_event_signal(answer)

    async def is_new_slide(self, previous: bytes, current: bytes) -> bool:
        """Decide whether ``current`` shows a different slide than ``previous``.

        Nearly identical pixels short-circuit to False without a model call.
        """
        try:
            if not has_frame_changed(previous, current):
                return False
            comparison = side_by_side(previous, current)
        except ValueError as e:
            logger.warning("Slide comparison on undecodable frame: %s", e)
            return False

        answer = await self.ask(
            "The image shows two frames of a presentation video side by side "
            "(earlier on the left, later on the right). Compare them to detect a slide transition.\n\n"
            "Look for:\n"
            "1. Different slide content\n"
            "2. New headings or titles\n"
            "3. Different layout or structure\n\n"
            "Respond with exactly one of: NEW_SLIDE, SAME_SLIDE",
            image=comparison,
        )
        return "NEW_SLIDE" in answer.upper()

    async def __aenter__(self) -> BrowserNavigator:
        await self.open()
        return self

    async def __aexit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        await self.close()


def parse_event_signal(answer: str) -> EventSignal:
    """Map a free-text model answer onto an EventSignal."""
    text = answer.upper()
    # EVENT_NOT_FOUND is checked first; some models echo all three options.
    for signal in (EventSignal.EVENT_NOT_FOUND, EventSignal.WAIT_LONGER, EventSignal.CAPTURE_NOW):
        if signal.value in text:
            return signal
    return EventSignal.EVENT_NOT_FOUND


def parse_time_to_seconds(text: str) -> float | None:
    """Parse ``SS``, ``MM:SS`` or ``HH:MM:SS`` out of a string."""
    match = re.search(r"\d+(?::\d{1,2}){0,2}", text)
    if not match:
        return None
    seconds = 0
    for part in match.group(0).split(":"):
        seconds = seconds * 60 + int(part)
    return float(seconds)


def extract_target_url(prompt: str) -> str | None:
    """Find the site a prompt refers to.

    Tries an explicit http(s) URL, then a bare domain after a verb such as
    "visit" or "from", then well-known video platform names.
    """
    url_match = _URL_RE.search(prompt)
    if url_match:
        return url_match.group(0).rstrip(".,;:!?)")

    domain_match = _DOMAIN_RE.search(prompt)
    if domain_match:
        return f"https://{domain_match.group(1).lower()}"

    lowered = prompt.lower()
    for name, url in _PLATFORM_URLS:
        if name in lowered:
            return url
    return None


class NavigationError(Exception):
    """Raised when the browser cannot reach or operate the target page."""

    def __init__(self, message: str, url: str | None = None) -> None:
        super().__init__(message)
        self.url = url


class PlayerDetectionError(NavigationError):
    """Raised when no video player can be found on the page."""
