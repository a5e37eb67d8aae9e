"""Best-effort text extraction from model responses.

The vision model returns free text. These helpers pull a confidence
score, findings, themes, insights and a short summary out of it with
string heuristics. None of them raise; an empty result means nothing
matched.
"""

from __future__ import annotations

import re

MAX_KEY_FINDINGS = 5
MAX_KEY_THEMES = 3
MAX_ACTIONABLE_INSIGHTS = 3

HIGH_CONFIDENCE = 85
MEDIUM_CONFIDENCE = 70
LOW_CONFIDENCE = 60

_CONFIDENCE_RE = re.compile(r"confidence[:\s]*(\d{1,3})\s*%|(\d{1,3})\s*%\s*confident", re.IGNORECASE)
_BULLET_RE = re.compile(r"^(?:[-•*]|\d+[.)])\s+")
_HEDGE_WORDS = ("unclear", "difficult", "cannot tell", "not sure", "hard to read")
_THEME_MARKERS = ("Theme:", "Topic:", "Key area:")
_INSIGHT_WORDS = ("recommend", "suggest", "should", "could improve")
_SUMMARY_WORDS = ("overall", "main", "key", "important")
_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")


def extract_confidence(text: str) -> int:
    """Return an explicit ``confidence: N%`` score, else a length/hedge tier."""
    match = _CONFIDENCE_RE.search(text)
    if match:
        value = int(match.group(1) or match.group(2))
        return max(0, min(100, value))

    lowered = text.lower()
    if len(text) > 200 and not any(w in lowered for w in _HEDGE_WORDS):
        return HIGH_CONFIDENCE
    if len(text) > 100:
        return MEDIUM_CONFIDENCE
    return LOW_CONFIDENCE


def extract_key_findings(text: str) -> list[str]:
    """Bullet, numbered, ``Key:`` and ``Important:`` lines, at most five."""
    findings: list[str] = []
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped:
            continue
        if _BULLET_RE.match(stripped):
            finding = _BULLET_RE.sub("", stripped, count=1).strip()
        elif "Key:" in stripped or "Important:" in stripped:
            finding = stripped
        else:
            continue
        if finding:
            findings.append(finding)
        if len(findings) == MAX_KEY_FINDINGS:
            break
    return findings


def extract_key_themes(text: str) -> list[str]:
    """Text following a theme marker, one per line, at most three."""
    themes: list[str] = []
    for line in text.splitlines():
        for marker in _THEME_MARKERS:
            index = line.find(marker)
            if index == -1:
                continue
            theme = line[index + len(marker):].strip().strip("*").strip()
            if theme:
                themes.append(theme)
            break
        if len(themes) == MAX_KEY_THEMES:
            break
    return themes


def extract_actionable_insights(text: str) -> list[str]:
    insights: list[str] = []
    for line in text.splitlines():
        stripped = line.strip()
        if stripped and any(w in stripped.lower() for w in _INSIGHT_WORDS):
            insights.append(stripped)
        if len(insights) == MAX_ACTIONABLE_INSIGHTS:
            break
    return insights


def build_executive_summary(text: str) -> str:
    """Join the first two summary-signalling sentences; empty if there are none."""
    sentences = [s.strip() for s in _SENTENCE_SPLIT_RE.split(text)]
    picked = [
        s for s in sentences
        if len(s) > 20 and any(w in s.lower() for w in _SUMMARY_WORDS)
    ][:2]
    if not picked:
        return ""
    return ". ".join(picked) + "."
