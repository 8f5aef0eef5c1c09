from __future__ import annotations

import pytest

from nihilism.api.models import Choice, Mood, NarrativeMoment, Polarity
from nihilism.scoring import SCORE_DELTA, apply, clamp_score, classify, score_label


def test_explicit_tag_wins_over_heuristic() -> None:
    choice = Choice(id="help_them", text="Help them up", polarity="dark")
    assert classify(choice) == Polarity.dark


def test_unknown_tag_falls_back_to_heuristic() -> None:
    choice = Choice(id="c1", text="Walk away and leave them", polarity="sideways")
    assert choice.polarity is None
    assert classify(choice) == Polarity.dark


@pytest.mark.parametrize(
    ("cid", "text", "expected"),
    [
        ("cruel_word", "Say something cruel", Polarity.dark),
        ("c2", "Nothing matters anyway", Polarity.dark),
        ("c3", "Comfort the crying child", Polarity.light),
        ("reach", "Reach out and listen", Polarity.light),
        ("c5", "Look at the clock", Polarity.neutral),
        ("c6", "", Polarity.neutral),
    ],
)
def test_heuristic_classification(cid: str, text: str, expected: Polarity) -> None:
    assert classify(Choice(id=cid, text=text)) == expected


def test_heuristic_is_deterministic_and_ignores_moment() -> None:
    choice = Choice(id="abandon", text="Abandon the old keeper")
    dark_moment = NarrativeMoment(text="x", mood=Mood.dark)
    hopeful_moment = NarrativeMoment(text="y", mood=Mood.hopeful)
    results = {classify(choice), classify(choice, dark_moment), classify(choice, hopeful_moment)}
    assert results == {Polarity.dark}


def test_consequence_hint_is_not_parsed() -> None:
    choice = Choice(id="c1", text="Open the door", consequence_hint="you will hurt them")
    assert classify(choice) == Polarity.neutral


def test_apply_moves_by_equal_magnitude() -> None:
    assert apply(0, Polarity.dark) == SCORE_DELTA
    assert apply(0, Polarity.light) == -SCORE_DELTA
    assert apply(7, Polarity.neutral) == 7


def test_apply_saturates_at_bounds() -> None:
    score = 0
    for _ in range(100):
        score = apply(score, Polarity.dark)
        assert -100 <= score <= 100
    assert score == 100

    for _ in range(100):
        score = apply(score, Polarity.light)
    assert score == -100
    assert apply(-100, Polarity.light) == -100
    assert apply(98, Polarity.dark, delta=10) == 100


def test_clamp_score() -> None:
    assert clamp_score(10_000) == 100
    assert clamp_score(-10_000) == -100
    assert clamp_score(3) == 3


def test_score_label() -> None:
    assert score_label(31) == "Descending into darkness"
    assert score_label(-31) == "Finding meaning"
    assert score_label(30) == "Balanced on the edge"


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("I feel hopeless", Polarity.dark),
        ("Stand there helpless", Polarity.neutral),
        ("Show them your skill", Polarity.neutral),
        ("Think of all mankind", Polarity.neutral),
        ("Lean slightly forward", Polarity.neutral),
        ("Keep hoping, and help", Polarity.light),
        ("Killing time", Polarity.dark),
        ("Be kind to her", Polarity.light),
    ],
)
def test_markers_match_whole_words(text: str, expected: Polarity) -> None:
    assert classify(Choice(id="c", text=text)) == expected


def test_apply_reads_score_delta_at_call_time(monkeypatch: pytest.MonkeyPatch) -> None:
    from nihilism import scoring

    monkeypatch.setattr(scoring, "SCORE_DELTA", 10)
    assert apply(0, Polarity.dark) == 10
    assert apply(0, Polarity.light, delta=3) == -3
