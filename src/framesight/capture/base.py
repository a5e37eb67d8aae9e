"""Errors raised while capturing frames from a video player."""

from __future__ import annotations


class CaptureError(Exception):
    """Raised when a frame cannot be captured."""
