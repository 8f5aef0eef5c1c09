from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from statemachine import State, StateMachine
from statemachine.exceptions import TransitionNotAllowed

from nihilism.api.models import Loop
from nihilism.errors import InvalidState


class LoopPhase(StrEnum):
    active = "active"
    ended = "ended"


def loop_phase(loop: Loop) -> LoopPhase:
    return LoopPhase.active if loop.ended_at is None else LoopPhase.ended


class LoopFSM(StateMachine):
    """FSM wrapper around a single Loop.

    - phases: active -> ended
    - the loop model stays the source of truth (`ended_at`); the FSM only guards transitions.
    """

    active = State(LoopPhase.active.value, value=LoopPhase.active.value, initial=True)
    ended = State(LoopPhase.ended.value, value=LoopPhase.ended.value, final=True)

    finish = active.to(ended)

    def __init__(self, loop: Loop):
        self.loop = loop
        super().__init__(start_value=loop_phase(loop).value)

    @property
    def phase(self) -> LoopPhase:
        return LoopPhase(str(self.current_state.value))

    def sync_phase_to_model(self, *, outcome: str | None = None, now: datetime | None = None) -> None:
        if self.phase == LoopPhase.ended and self.loop.ended_at is None:
            self.loop.ended_at = now or datetime.now(tz=UTC)
            if self.loop.outcome is None:
                self.loop.outcome = outcome


def require_active(loop: Loop) -> None:
    if loop_phase(loop) != LoopPhase.active:
        raise InvalidState(f"Loop #{loop.number} has ended; no further choices are accepted")


def end_loop(loop: Loop, *, outcome: str) -> None:
    """Transition an active loop to ended, stamping `ended_at` and `outcome` once."""

    fsm = LoopFSM(loop)
    try:
        fsm.finish()
    except TransitionNotAllowed as e:
        raise InvalidState(f"Loop #{loop.number} has already ended") from e
    fsm.sync_phase_to_model(outcome=outcome)
