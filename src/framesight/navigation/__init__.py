"""Browser navigation module for framesight.

Finds the target page and its video player and exposes player control
plus natural-language page operations to the capture pipeline.

Public API:
    BrowserNavigator -- Abstract base class
    PlaywrightNavigator -- Chromium implementation (Playwright)
    PlayerHandle -- Reference to a detected player
    extract_target_url -- Find the site a prompt refers to
"""

from framesight.navigation.base import (
    BrowserNavigator,
    EventSignal,
    NavigationError,
    PlayerDetectionError,
    PlayerHandle,
    extract_target_url,
)

__all__ = [
    "BrowserNavigator",
    "EventSignal",
    "NavigationError",
    "PlayerDetectionError",
    "PlayerHandle",
    "PlaywrightNavigator",
    "extract_target_url",
]


def __getattr__(name: str) -> type:
    """Lazy import for concrete implementations that require external deps."""
    if name == "PlaywrightNavigator":
        from framesight.navigation.playwright import PlaywrightNavigator
        return PlaywrightNavigator
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
