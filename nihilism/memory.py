from __future__ import annotations

from nihilism import scoring
from nihilism.api.models import Choice, Mood, NarrativeMoment, PersistentMemory, Polarity

DEFAULT_KEY_MEMORY_CAP = 50

SIGNIFICANT_MOODS = frozenset({Mood.dark, Mood.nihilistic, Mood.transcendent})


def is_significant(moment: NarrativeMoment | None) -> bool:
    if moment is None:
        return False
    if moment.significant is not None:
        return moment.significant
    return moment.mood in SIGNIFICANT_MOODS


def record_key_memory(memory: PersistentMemory, text: str, *, cap: int = DEFAULT_KEY_MEMORY_CAP) -> bool:
    """Append a key memory, evicting the oldest entries beyond `cap`.

    Returns False (and leaves memory untouched) for blank text or a repeat of the newest entry.
    """

    text = text.strip()
    if not text:
        return False
    if memory.key_memories and memory.key_memories[-1] == text:
        return False

    memory.key_memories.append(text)
    overflow = len(memory.key_memories) - max(1, cap)
    if overflow > 0:
        del memory.key_memories[:overflow]
    return True


def record_choice(
    memory: PersistentMemory,
    choice: Choice,
    polarity: Polarity,
    *,
    significant: bool = False,
    note: str | None = None,
    cap: int = DEFAULT_KEY_MEMORY_CAP,
    score_delta: int | None = None,
) -> PersistentMemory:
    """Fold one accepted choice into lifetime memory.

    Always counts the choice; exactly one of the dark/light/neutral counters moves.
    When `significant`, `note` (default: the choice text) becomes a key memory.
    """

    memory.total_choices += 1
    if polarity == Polarity.dark:
        memory.dark_choices += 1
    elif polarity == Polarity.light:
        memory.light_choices += 1
    else:
        memory.neutral_choices += 1

    memory.nihilism_score = scoring.apply(memory.nihilism_score, polarity, delta=score_delta)

    if significant:
        record_key_memory(memory, note if note is not None else choice.text, cap=cap)
    return memory


def record_death(memory: PersistentMemory, character: str) -> int:
    name = character.strip()
    if not name:
        return 0
    memory.character_deaths[name] = memory.character_deaths.get(name, 0) + 1
    return memory.character_deaths[name]


def record_truth(memory: PersistentMemory, fact_id: str) -> bool:
    fact = fact_id.strip()
    if not fact or fact in memory.truths_discovered:
        return False
    memory.truths_discovered.append(fact)
    return True


def apply_moment_annotations(memory: PersistentMemory, moment: NarrativeMoment) -> None:
    for character in moment.character_deaths:
        record_death(memory, character)
    for fact in moment.truths:
        record_truth(memory, fact)
