"""Batched, cache-checked per-frame analysis.

Turns captured frames into FrameAnalysis records by calling an
InferenceProvider once per uncached frame. Frames are processed in
batches of ``concurrency`` with a fixed pause between batches to stay
under the upstream rate limit. A failing frame yields an errored
analysis; it never aborts its batch or the call.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Awaitable, Callable

from framesight.analysis.extraction import extract_confidence, extract_key_findings
from framesight.analysis.intent import analysis_guidance
from framesight.domain.models import Frame, FrameAnalysis, InferenceErrorKind
from framesight.inference.base import InferenceError, InferenceProvider
from framesight.inference.cache import FrameCache

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], "Awaitable[None] | None"]


class FrameAnalyzer:
    """Analyzes frames against a user request.

    Args:
        provider: The vision model to call.
        cache: Optional shared cache; ``None`` disables caching.
        max_tokens: Token cap per frame call.
        temperature: Sampling temperature per frame call.
        sleep: Awaitable used for the inter-batch delay.
    """

    def __init__(
        self,
        provider: InferenceProvider,
        cache: FrameCache | None = None,
        max_tokens: int = 2000,
        temperature: float = 0.1,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._provider = provider
        self._cache = cache
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._sleep = sleep

    @property
    def cache(self) -> FrameCache | None:
        return self._cache

    async def analyze_batch(
        self,
        frames: list[Frame],
        prompt: str,
        concurrency: int = 3,
        batch_delay: float = 2.0,
        on_progress: ProgressCallback | None = None,
    ) -> list[FrameAnalysis]:
        """Analyze every frame, preserving input order.

        Returns one FrameAnalysis per input frame, errored ones included.
        Only cancellation propagates out of this method.
        """
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")

        results: list[FrameAnalysis] = []
        total = len(frames)
        for start in range(0, total, concurrency):
            if start > 0 and batch_delay > 0:
                logger.debug("Waiting %.1fs before next batch", batch_delay)
                await self._sleep(batch_delay)

            batch = frames[start:start + concurrency]
            batch_results = await asyncio.gather(
                *(self.analyze_frame(frame, prompt) for frame in batch)
            )
            results.extend(batch_results)

            failed = sum(1 for r in batch_results if not r.ok)
            logger.info(
                "Analyzed batch %d-%d of %d (%d failed)",
                start + 1, start + len(batch), total, failed,
            )
            if on_progress is not None:
                await _notify(on_progress, len(results), total)

        return results

    async def analyze_frame(self, frame: Frame, prompt: str) -> FrameAnalysis:
        """Analyze one frame, consulting the cache first."""
        key = FrameCache.make_key(frame.content_digest, prompt) if self._cache is not None else None
        if key is not None:
            cached = self._cache.get(key)
            if cached is not None:
                logger.debug("Cache hit for frame %d", frame.frame_number)
                return cached.model_copy(
                    update={
                        "frame_number": frame.frame_number,
                        "context": frame.context,
                        "timestamp": frame.timestamp,
                        "cached": True,
                    }
                )

        try:
            response = await self._provider.infer(
                frame.image,
                build_frame_prompt(prompt, frame),
                max_tokens=self._max_tokens,
                temperature=self._temperature,
            )
        except InferenceError as e:
            logger.warning("Frame %d analysis failed (%s): %s", frame.frame_number, e.kind.value, e)
            return FrameAnalysis.failed(frame, str(e), e.kind)
        except Exception as e:
            logger.warning("Frame %d analysis failed: %s", frame.frame_number, e)
            return FrameAnalysis.failed(frame, f"Frame analysis failed: {e}", InferenceErrorKind.UNKNOWN)

        text = response.text.strip()
        if not text:
            return FrameAnalysis.failed(frame, "Model returned an empty analysis")

        analysis = FrameAnalysis(
            frame_number=frame.frame_number,
            analysis_text=text,
            confidence=extract_confidence(text),
            key_findings=extract_key_findings(text),
            context=frame.context,
            timestamp=frame.timestamp,
        )
        if key is not None:
            self._cache.set(key, analysis)
        return analysis


def build_frame_prompt(user_prompt: str, frame: Frame) -> str:
    """Build the per-frame prompt from the request plus intent guidance."""
    when = f"timestamp {frame.timestamp:.1f}s" if frame.timestamp is not None else "unknown time"
    slide = f" (slide {frame.slide_number})" if frame.slide_number is not None else ""
    return (
        f'Based on this user request: "{user_prompt}"\n\n'
        f"Please analyze this frame ({frame.frame_number}){slide} captured at {when}.\n\n"
        f"Context: {frame.context}\n\n"
        "Provide analysis that directly addresses the user's request. Be specific and actionable.\n\n"
        f"{analysis_guidance(user_prompt)}\n\n"
        "Important: Focus your analysis on what the user specifically asked for."
    )


async def _notify(callback: ProgressCallback, done: int, total: int) -> None:
    result = callback(done, total)
    if inspect.isawaitable(result):
        await result
