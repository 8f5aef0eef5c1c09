from __future__ import annotations

import re

from nihilism.api.models import Choice, NarrativeMoment, Polarity

SCORE_MIN = -100
SCORE_MAX = 100

# Dark adds, Light subtracts the same magnitude.
SCORE_DELTA = 5

# Word patterns, matched on word boundaries against the lowercased choice id + text.
DARK_MARKERS: tuple[str, ...] = (
    r"dark(?:ness)?",
    r"hurt(?:s|ing)?",
    r"ignor(?:e|es|ed|ing)",
    r"nihilis\w*",
    r"cruel(?:ty|ly)?",
    r"abandon(?:s|ed|ing)?",
    r"kill(?:s|ed|ing)?",
    r"destroy(?:s|ed|ing)?",
    r"betray(?:s|ed|al)?",
    r"nothing matters",
    r"don'?t care",
    r"meaningless",
    r"leave them",
    r"walk away",
    r"give up",
    r"hopeless",
    r"pointless",
)

LIGHT_MARKERS: tuple[str, ...] = (
    r"light",
    r"help(?:s|ed|ing)?",
    r"comfort(?:s|ed|ing)?",
    r"hope(?:s|d|ful)?",
    r"kind(?:ly|ness)?",
    r"forgiv(?:e|es|en|ing|eness)",
    r"listen(?:s|ed|ing)?",
    r"embrace them",
    r"hold on",
    r"stay with",
    r"sav(?:e|es|ed|ing)",
    r"protect(?:s|ed|ing)?",
    r"thank(?:s|ed|ing)?",
    r"beaut(?:y|iful)",
    r"connect(?:s|ed|ing|ion)?",
    r"reach out",
)


def _word_pattern(markers: tuple[str, ...]) -> re.Pattern[str]:
    return re.compile(r"\b(?:" + "|".join(markers) + r")\b")


_DARK = _word_pattern(DARK_MARKERS)
_LIGHT = _word_pattern(LIGHT_MARKERS)
_WS = re.compile(r"[\s_\-]+")


def _normalize(text: str) -> str:
    return _WS.sub(" ", text.casefold()).strip()


def _hits(haystack: str, pattern: re.Pattern[str]) -> int:
    # Distinct words, so an id that repeats the text does not count twice.
    return len(set(pattern.findall(haystack)))


def classify(choice: Choice, moment: NarrativeMoment | None = None) -> Polarity:
    """Classify a choice as dark, light or neutral.

    A narrator-supplied tag on the choice wins. Otherwise a keyword heuristic
    over the choice id and text decides; ties and texts with no markers are
    neutral. The moment is accepted for context but the heuristic is purely a
    function of the choice, so the result is reproducible.
    """

    if choice.polarity is not None:
        return choice.polarity

    haystack = _normalize(f"{choice.id} {choice.text}")
    if not haystack:
        return Polarity.neutral

    dark = _hits(haystack, _DARK)
    light = _hits(haystack, _LIGHT)
    if dark > light:
        return Polarity.dark
    if light > dark:
        return Polarity.light
    return Polarity.neutral


def clamp_score(score: int) -> int:
    return max(SCORE_MIN, min(SCORE_MAX, score))


def apply(score: int, polarity: Polarity, *, delta: int | None = None) -> int:
    """Move the score by `delta` (default SCORE_DELTA) toward dark or light, clamped."""

    if delta is None:
        delta = SCORE_DELTA
    if polarity == Polarity.dark:
        return clamp_score(score + delta)
    if polarity == Polarity.light:
        return clamp_score(score - delta)
    return clamp_score(score)


def score_label(score: int) -> str:
    if score > 30:
        return "Descending into darkness"
    if score < -30:
        return "Finding meaning"
    return "Balanced on the edge"
