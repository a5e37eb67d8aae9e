"""Cross-frame synthesis of per-frame analyses into one answer.

One text-only model call sees every valid frame analysis and writes the
response to the user's request. Themes, insights and the executive
summary are then pulled out of that response with string heuristics.
"""

from __future__ import annotations

import logging

from framesight.analysis.extraction import (
    build_executive_summary,
    extract_actionable_insights,
    extract_key_themes,
)
from framesight.analysis.intent import classify_synthesis_type
from framesight.domain.models import FrameAnalysis, SynthesizedResult
from framesight.inference.base import InferenceError, InferenceProvider

logger = logging.getLogger(__name__)


class SynthesisEngine:
    """Builds a SynthesizedResult from a session's frame analyses."""

    def __init__(
        self,
        provider: InferenceProvider,
        max_tokens: int = 3000,
        temperature: float = 0.2,
    ) -> None:
        self._provider = provider
        self._max_tokens = max_tokens
        self._temperature = temperature

    async def synthesize(self, frame_analyses: list[FrameAnalysis], user_prompt: str) -> SynthesizedResult:
        """Synthesize the valid analyses into one answer.

        Raises:
            NoValidInputError: If no analysis succeeded (an empty list included).
            SynthesisError: If the synthesis model call fails.
        """
        valid = [a for a in frame_analyses if a.ok]
        if not valid:
            raise NoValidInputError(
                f"No valid frame analyses to synthesize ({len(frame_analyses)} errored)"
            )

        synthesis_type = classify_synthesis_type(user_prompt)
        logger.info(
            "Synthesizing %d of %d frame analyses as %s",
            len(valid), len(frame_analyses), synthesis_type.value,
        )

        try:
            response = await self._provider.infer(
                None,
                build_synthesis_prompt(user_prompt, valid),
                max_tokens=self._max_tokens,
                temperature=self._temperature,
            )
        except InferenceError as e:
            raise SynthesisError(f"Result synthesis failed: {e}") from e

        text = response.text.strip()
        if not text:
            raise SynthesisError("Result synthesis failed: model returned an empty response")

        return SynthesizedResult(
            synthesis_type=synthesis_type,
            comprehensive_response=text,
            key_themes=extract_key_themes(text),
            actionable_insights=extract_actionable_insights(text),
            executive_summary=build_executive_summary(text),
            frames_synthesized=len(valid),
        )


def build_synthesis_prompt(user_prompt: str, analyses: list[FrameAnalysis]) -> str:
    frames_block = "\n\n".join(
        f"Frame {a.frame_number} ({a.context}): {a.analysis_text}" for a in analyses
    )
    return (
        f'Original user request: "{user_prompt}"\n\n'
        f"I have analyzed {len(analyses)} frames from a video and gathered the following insights:\n\n"
        f"{frames_block}\n\n"
        f'Now please create a comprehensive response to the user\'s original request: "{user_prompt}"\n\n'
        "Requirements:\n"
        "1. Synthesize all frame analyses into a cohesive response\n"
        "2. Address the user's specific request directly\n"
        "3. Organize information logically and clearly\n"
        "4. Include specific examples and details from the frames\n"
        "5. Provide actionable insights where appropriate\n"
        "6. Format the response appropriately for the request type\n\n"
        "Label recurring themes with a 'Theme:' prefix on their own line."
    )


class SynthesisError(Exception):
    """Raised when the cross-frame synthesis cannot produce a result."""


class NoValidInputError(SynthesisError):
    """Raised when every frame analysis errored, leaving nothing to synthesize."""
