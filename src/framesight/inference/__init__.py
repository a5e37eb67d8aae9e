"""Vision inference module for framesight.

Provides a provider-agnostic interface for sending video frames to
vision-capable models, a process-wide frame cache, and the batching
adapter that turns frames into per-frame analyses.

Public API:
    InferenceProvider -- Abstract base class
    FrameCache -- Thread-safe analysis cache
    FrameAnalyzer -- Batched, cache-checked per-frame analysis
    AnthropicProvider -- Claude API implementation
    OpenAIProvider -- OpenAI / OpenRouter / OVHcloud implementation
"""

from framesight.inference.adapter import FrameAnalyzer
from framesight.inference.base import InferenceError, InferenceProvider, InferenceResponse
from framesight.inference.cache import FrameCache

__all__ = [
    "AnthropicProvider",
    "FrameAnalyzer",
    "FrameCache",
    "InferenceError",
    "InferenceProvider",
    "InferenceResponse",
    "OpenAIProvider",
]


def __getattr__(name: str) -> type:
    """Lazy import for concrete implementations that require external deps."""
    if name == "AnthropicProvider":
        from framesight.inference.anthropic import AnthropicProvider
        return AnthropicProvider
    if name == "OpenAIProvider":
        from framesight.inference.openai import OpenAIProvider
        return OpenAIProvider
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
