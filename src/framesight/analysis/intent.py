"""Keyword classification of the user's request.

The same request drives three decisions: where frames are captured,
what guidance each per-frame prompt carries, and the shape of the final
synthesized answer. All three are plain substring checks on the
lower-cased prompt, evaluated in a fixed precedence order.
"""

from __future__ import annotations

from framesight.domain.models import CaptureStrategy, SynthesisType

_STRATEGY_KEYWORDS: list[tuple[tuple[str, ...], CaptureStrategy]] = [
    (("summarize", "summarise", "overview"), CaptureStrategy.SUMMARY),
    (("timeline", "progression"), CaptureStrategy.TIMELINE),
    (("code", "programming"), CaptureStrategy.CODE_FOCUSED),
    (("slide", "presentation"), CaptureStrategy.SLIDE_TRANSITIONS),
    (("teaching", "educational"), CaptureStrategy.EDUCATIONAL),
]

_SYNTHESIS_KEYWORDS: list[tuple[tuple[str, ...], SynthesisType]] = [
    (("summarize", "summarise", "summary"), SynthesisType.SUMMARY),
    (("extract", "list"), SynthesisType.EXTRACTION),
    (("evaluate", "assess"), SynthesisType.EVALUATION),
    (("timeline", "timestamp"), SynthesisType.TIMELINE),
    (("report",), SynthesisType.REPORT),
    (("notes", "study"), SynthesisType.STUDY_NOTES),
]

SUMMARY_GUIDANCE = """For summarization:
- Extract the main topic or concept being presented
- Identify key points, definitions, or explanations
- Note any examples or demonstrations shown
- Highlight important visual elements (diagrams, code, text)"""

EXTRACTION_GUIDANCE = """For extraction:
- Identify and list all relevant items visible in the frame
- Include exact text, code snippets, or data if visible
- Note locations and context of found items
- Be comprehensive in your extraction"""

EVALUATION_GUIDANCE = """For evaluation:
- Assess the quality and clarity of presentation
- Identify strengths and weaknesses
- Note any errors or areas for improvement
- Provide constructive feedback
- Rate aspects on appropriate scales"""

CODE_GUIDANCE = """For code analysis:
- Identify programming languages used
- Extract code snippets with proper formatting
- Note syntax, patterns, and best practices
- Identify any errors or issues in the code
- Explain what the code does"""

EDUCATIONAL_GUIDANCE = """For educational analysis:
- Evaluate teaching methodology and clarity
- Assess how well concepts are explained
- Note use of examples, visuals, and demonstrations
- Identify learning objectives being addressed
- Suggest improvements for better learning outcomes"""

GENERAL_GUIDANCE = """General analysis guidelines:
- Be thorough and specific in your observations
- Include relevant details that address the user's request
- Provide context and explanations where helpful
- Note any issues, problems, or areas of interest"""

_GUIDANCE_KEYWORDS: list[tuple[tuple[str, ...], str]] = [
    (("summarize", "summarise", "summary"), SUMMARY_GUIDANCE),
    (("extract", "list", "find"), EXTRACTION_GUIDANCE),
    (("evaluate", "assess", "quality"), EVALUATION_GUIDANCE),
    (("code", "programming", "script"), CODE_GUIDANCE),
    (("teaching", "educational", "learning"), EDUCATIONAL_GUIDANCE),
]


def _first_match(prompt: str, table: list[tuple[tuple[str, ...], object]], default):
    text = prompt.lower()
    for keywords, value in table:
        if any(k in text for k in keywords):
            return value
    return default


def classify_capture_strategy(prompt: str) -> CaptureStrategy:
    """Pick the capture layout for a request; ``comprehensive`` if nothing matches."""
    return _first_match(prompt, _STRATEGY_KEYWORDS, CaptureStrategy.COMPREHENSIVE)


def classify_synthesis_type(prompt: str) -> SynthesisType:
    return _first_match(prompt, _SYNTHESIS_KEYWORDS, SynthesisType.COMPREHENSIVE)


def analysis_guidance(prompt: str) -> str:
    """Return the bullet list appended to every per-frame prompt."""
    return _first_match(prompt, _GUIDANCE_KEYWORDS, GENERAL_GUIDANCE)
