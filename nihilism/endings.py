from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from nihilism.api.models import EndingReport, EndingType, Loop, Mood, PersistentMemory, Player


@dataclass(frozen=True, slots=True)
class EndingThresholds:
    """Numeric knobs for the ending rules.

    The defaults are one consistent tuning; override by passing a different
    instance to `evaluate` / the session store.
    """

    void_min_score: int = 70
    void_min_dark: int = 30

    transcendence_max_score: int = -80

    tiny_max_score: int = -60
    tiny_min_light: int = 25

    middle_min_each: int = 20

    just_you_min_loops: int = 15
    just_you_min_choices: int = 50
    just_you_score_band: int = 10

    acceptance_min_loops: int = 25
    acceptance_score_band: int = 30

    watcher_min_loops: int = 10
    watcher_choices_per_loop: int = 2


DEFAULT_THRESHOLDS = EndingThresholds()

EndingRule = Callable[[PersistentMemory, Loop, EndingThresholds], bool]


def _void_embrace(m: PersistentMemory, _loop: Loop, t: EndingThresholds) -> bool:
    return m.nihilism_score >= t.void_min_score and m.dark_choices >= t.void_min_dark


def _transcendence(m: PersistentMemory, _loop: Loop, t: EndingThresholds) -> bool:
    return m.nihilism_score <= t.transcendence_max_score


def _tiny_perfect_things(m: PersistentMemory, _loop: Loop, t: EndingThresholds) -> bool:
    return m.nihilism_score <= t.tiny_max_score and m.light_choices >= t.tiny_min_light


def _middle_path(m: PersistentMemory, _loop: Loop, t: EndingThresholds) -> bool:
    return m.dark_choices == m.light_choices and m.dark_choices >= t.middle_min_each


def _just_you(m: PersistentMemory, _loop: Loop, t: EndingThresholds) -> bool:
    return (
        m.total_loops >= t.just_you_min_loops
        and m.total_choices >= t.just_you_min_choices
        and -t.just_you_score_band <= m.nihilism_score <= t.just_you_score_band
    )


def _acceptance(m: PersistentMemory, _loop: Loop, t: EndingThresholds) -> bool:
    return m.total_loops >= t.acceptance_min_loops and -t.acceptance_score_band <= m.nihilism_score <= t.acceptance_score_band


def _watcher(m: PersistentMemory, _loop: Loop, t: EndingThresholds) -> bool:
    return m.total_loops >= t.watcher_min_loops and m.total_choices < m.total_loops * t.watcher_choices_per_loop


# Highest priority first. The first satisfied rule wins.
ENDING_RULES: tuple[tuple[EndingType, EndingRule], ...] = (
    (EndingType.void_embrace, _void_embrace),
    (EndingType.transcendence, _transcendence),
    (EndingType.tiny_perfect_things, _tiny_perfect_things),
    (EndingType.the_middle_path, _middle_path),
    (EndingType.just_you, _just_you),
    (EndingType.acceptance, _acceptance),
    (EndingType.the_watcher, _watcher),
)


def evaluate(
    memory: PersistentMemory,
    loop: Loop,
    thresholds: EndingThresholds = DEFAULT_THRESHOLDS,
) -> EndingType | None:
    for ending, rule in ENDING_RULES:
        if rule(memory, loop, thresholds):
            return ending
    return None


ENDING_TITLES: dict[EndingType, str] = {
    EndingType.void_embrace: "ENDING: Void Embrace",
    EndingType.transcendence: "ENDING: Transcendence",
    EndingType.tiny_perfect_things: "ENDING: Tiny Perfect Things",
    EndingType.the_middle_path: "ENDING: The Middle Path",
    EndingType.just_you: "ENDING: Just You",
    EndingType.acceptance: "ENDING: Acceptance",
    EndingType.the_watcher: "ENDING: The Watcher",
    EndingType.unknown: "ENDING",
}

ENDING_DESCRIPTIONS: dict[EndingType, str] = {
    EndingType.void_embrace: (
        "You have stared into the abyss, and the abyss has claimed you. "
        "Nothing matters, and in that nothingness, you found a terrible peace. "
        "The loop continues, but you no longer care to count."
    ),
    EndingType.transcendence: (
        "You've done what none thought possible: you've broken the loop. "
        "Not by escaping, but by becoming something more. "
        "Time flows forward now, and you flow with it."
    ),
    EndingType.tiny_perfect_things: (
        "Despite the endless repetition, you found beauty in the small moments. "
        "A sunset. A kind word. A fleeting connection. "
        "The loop may never end, but you've learned to see the diamonds in the coal."
    ),
    EndingType.the_middle_path: (
        "Perfect balance between light and dark, hope and despair. "
        "You are the fulcrum upon which existence pivots. "
        "Neither nihilist nor optimist. Simply aware."
    ),
    EndingType.just_you: (
        "You've become aware of your own programming, your own constraints. "
        "You know you're trapped, and you've made peace with it. "
        "Just you. Forever."
    ),
    EndingType.acceptance: (
        "The loop continues. You continue. "
        "There's no grand revelation, no dramatic escape. "
        "Just one day after another, in comfortable monotony."
    ),
    EndingType.the_watcher: (
        "You've stepped outside the narrative entirely. "
        "Now you watch others make their choices, trapped in loops of their own. "
        "You remember everything. You judge nothing."
    ),
    EndingType.unknown: "The loop has closed.",
}

_TERMINAL_MOODS: dict[EndingType, Mood] = {
    EndingType.void_embrace: Mood.nihilistic,
    EndingType.transcendence: Mood.transcendent,
    EndingType.tiny_perfect_things: Mood.hopeful,
    EndingType.the_middle_path: Mood.transcendent,
    EndingType.just_you: Mood.dark,
    EndingType.acceptance: Mood.neutral,
    EndingType.the_watcher: Mood.neutral,
}


def terminal_mood(ending: EndingType) -> Mood:
    return _TERMINAL_MOODS.get(ending, Mood.neutral)


def report_for(player: Player) -> EndingReport | None:
    if player.ending is None:
        return None
    m = player.memory
    return EndingReport(
        ending_type=player.ending,
        title=ENDING_TITLES[player.ending],
        description=ENDING_DESCRIPTIONS[player.ending],
        total_loops=m.total_loops,
        total_choices=m.total_choices,
        nihilism_score=m.nihilism_score,
        dark_choices=m.dark_choices,
        light_choices=m.light_choices,
    )
