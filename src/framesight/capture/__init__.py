"""Frame capture module for framesight.

Plans which moments of a video to capture and captures them through a
BrowserNavigator, producing optimized Frames.

Public API:
    CapturePlanner -- Request + duration to CapturePlan
    CaptureExecutor -- CapturePlan to list of Frames
    CaptureError -- Frame capture failure
"""

from framesight.capture.base import CaptureError
from framesight.capture.executor import OPTIMIZATION_PROFILES, CaptureExecutor
from framesight.capture.planner import CapturePlanner

__all__ = ["CaptureError", "CaptureExecutor", "CapturePlanner", "OPTIMIZATION_PROFILES"]
