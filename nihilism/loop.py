from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime

from nihilism import memory as memory_ops
from nihilism.api.models import Choice, EndingType, Loop, NarrativeMoment, Player, Polarity
from nihilism.endings import DEFAULT_THRESHOLDS, ENDING_DESCRIPTIONS, EndingThresholds, evaluate, terminal_mood
from nihilism.errors import InvalidState, ValidationError
from nihilism.fsm import end_loop, require_active
from nihilism.scoring import classify

logger = logging.getLogger(__name__)

MANUAL_RESET_OUTCOME = "manually reset"


@dataclass(frozen=True, slots=True)
class ChoiceOutcome:
    choice: Choice
    polarity: Polarity
    # True when the choice was already counted (retry after an upstream failure).
    replayed: bool = False
    ending: EndingType | None = None


def _now() -> datetime:
    return datetime.now(tz=UTC)


def new_player(*, name: str | None = None) -> Player:
    now = _now()
    return Player(name=name, current_loop=Loop(number=1, started_at=now), created_at=now)


def current_moment(player: Player) -> NarrativeMoment | None:
    """Latest moment shown in the current loop.

    After an ending this is the terminal moment. None until the current loop has been opened.
    """

    if not player.narrative_history:
        return None
    last = player.narrative_history[-1]
    if player.ending is not None or last.loop_number == player.current_loop.number:
        return last
    return None


def record_moment(player: Player, moment: NarrativeMoment) -> None:
    player.narrative_history.append(moment)
    memory_ops.apply_moment_annotations(player.memory, moment)


def _terminal_moment(player: Player, ending: EndingType) -> NarrativeMoment:
    return NarrativeMoment(
        text=ENDING_DESCRIPTIONS[ending],
        speaker=None,
        mood=terminal_mood(ending),
        choices=[],
        loop_number=player.current_loop.number,
        significant=False,
    )


def make_choice(
    player: Player,
    choice_id: str,
    *,
    thresholds: EndingThresholds = DEFAULT_THRESHOLDS,
    key_memory_cap: int = memory_ops.DEFAULT_KEY_MEMORY_CAP,
    score_delta: int | None = None,
) -> ChoiceOutcome:
    """Accept one choice from the current moment and fold it into the player.

    Raises InvalidState when the loop has ended or a different choice is still
    awaiting its follow-up moment, and ValidationError when the id was not offered.
    Nothing is mutated when an error is raised.
    """

    if player.ending is not None:
        raise InvalidState(f"Session has ended ({player.ending.value}); start a new game")
    require_active(player.current_loop)

    pending = player.pending_choice
    if pending is not None:
        if pending.id != choice_id:
            raise InvalidState(f"Choice '{pending.id}' is still awaiting the next moment")
        return ChoiceOutcome(choice=pending, polarity=classify(pending), replayed=True)

    moment = current_moment(player)
    if moment is None:
        raise ValidationError("No moment has been presented in this loop yet")
    choice = moment.find_choice(choice_id)
    if choice is None:
        offered = ",".join(c.id for c in moment.choices)
        raise ValidationError(f"Choice '{choice_id}' is not offered by the current moment (offered: {offered})")

    polarity = classify(choice, moment)
    player.current_loop.choices_made.append(choice.id)
    memory_ops.record_choice(
        player.memory,
        choice,
        polarity,
        significant=memory_ops.is_significant(moment),
        note=moment.text,
        cap=key_memory_cap,
        score_delta=score_delta,
    )

    ending = evaluate(player.memory, player.current_loop, thresholds)
    if ending is not None:
        end_loop(player.current_loop, outcome=ending.value)
        player.ending = ending
        record_moment(player, _terminal_moment(player, ending))
        logger.info("player %s reached ending %s in loop #%s", player.id, ending.value, player.current_loop.number)
    else:
        player.pending_choice = choice

    return ChoiceOutcome(choice=choice, polarity=polarity, ending=ending)


def reset_loop(player: Player, *, key_memory_cap: int = memory_ops.DEFAULT_KEY_MEMORY_CAP) -> Loop:
    """End the current loop and begin the next one.

    Memory and narrative history carry over. Not allowed once an ending was reached.
    """

    if player.ending is not None:
        raise InvalidState(f"Session has ended ({player.ending.value}); start a new game")

    loop = player.current_loop
    if loop.is_active:
        end_loop(loop, outcome=MANUAL_RESET_OUTCOME)

    last = current_moment(player)
    if last is not None:
        memory_ops.record_key_memory(player.memory, last.text, cap=key_memory_cap)

    player.memory.total_loops += 1
    player.pending_choice = None
    player.current_loop = Loop(number=loop.number + 1, started_at=_now())
    logger.info("player %s started loop #%s", player.id, player.current_loop.number)
    return player.current_loop
