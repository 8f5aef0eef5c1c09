from __future__ import annotations

import logging
from collections.abc import Sequence
from uuid import UUID

from nihilism import loop as loop_ops
from nihilism.agents.narrator import Narrator
from nihilism.api.models import EndingReport, NarrativeMoment, Player, TurnResult
from nihilism.endings import DEFAULT_THRESHOLDS, EndingThresholds, report_for
from nihilism.errors import InvalidState, NotFound, PersistenceError
from nihilism.hooks import ChoiceObserver
from nihilism.lock import KeyedLock
from nihilism.memory import DEFAULT_KEY_MEMORY_CAP
from nihilism.persistence import SnapshotStore
from nihilism.scoring import SCORE_DELTA

logger = logging.getLogger(__name__)


class SessionStore:
    """Owns every live Player and serialises mutations per player id.

    Callers only ever receive copies; the gateway only ever sees snapshots.
    """

    def __init__(
        self,
        *,
        gateway: SnapshotStore,
        narrator: Narrator,
        observers: Sequence[ChoiceObserver] = (),
        thresholds: EndingThresholds = DEFAULT_THRESHOLDS,
        key_memory_cap: int = DEFAULT_KEY_MEMORY_CAP,
        score_delta: int = SCORE_DELTA,
    ) -> None:
        self._gateway = gateway
        self._narrator = narrator
        self._observers = tuple(observers)
        self._thresholds = thresholds
        self._key_memory_cap = key_memory_cap
        self._score_delta = score_delta
        self._players: dict[UUID, Player] = {}
        self._locks = KeyedLock()

    def _require(self, player_id: UUID) -> Player:
        player = self._players.get(player_id)
        if player is None:
            raise NotFound(f"Player {player_id} not found")
        return player

    def _result(self, player: Player, moment: NarrativeMoment, *, autosave_error: str | None = None) -> TurnResult:
        return TurnResult(
            moment=moment,
            loop_number=player.current_loop.number,
            nihilism_score=player.memory.nihilism_score,
            ending=report_for(player),
            autosave_error=autosave_error,
        )

    def _notify_choice(self, player: Player) -> str | None:
        snapshot = player.model_copy(deep=True)
        for observer in self._observers:
            try:
                observer.on_choice_recorded(snapshot)
            except PersistenceError as e:
                logger.warning("autosave failed for player %s: %s", player.id, e)
                return str(e)
        return None

    async def _advance(self, player: Player) -> NarrativeMoment:
        """Generate the moment that follows the pending choice and record it."""

        choice = player.pending_choice
        if choice is None:
            raise InvalidState(f"Player {player.id} has no choice awaiting a moment")
        moment = await self._narrator.next_moment(player, choice)
        loop_ops.record_moment(player, moment)
        player.pending_choice = None
        return moment

    # ── Sessions ─────

    async def create_player(self, *, name: str | None = None) -> Player:
        player = loop_ops.new_player(name=name)
        self._players[player.id] = player
        logger.info("created player %s", player.id)

        try:
            self._gateway.put(player.id, player.model_copy(deep=True))
        except PersistenceError as e:
            logger.warning("failed to save new player %s: %s", player.id, e)
        return player.model_copy(deep=True)

    async def get(self, player_id: UUID) -> Player:
        return self._require(player_id).model_copy(deep=True)

    async def current_moment(self, player_id: UUID) -> NarrativeMoment | None:
        return loop_ops.current_moment(self._require(player_id))

    async def ending(self, player_id: UUID) -> EndingReport | None:
        return report_for(self._require(player_id))

    # ── Narrative ─────

    async def start(self, player_id: UUID) -> TurnResult:
        """Return the current moment, generating the opening of the loop if needed.

        A choice left pending by an earlier upstream failure is retried first.
        """

        async with self._locks.hold(player_id):
            player = self._require(player_id)

            if player.pending_choice is not None and player.ending is None:
                moment = await self._advance(player)
                return self._result(player, moment)

            moment = loop_ops.current_moment(player)
            if moment is not None:
                return self._result(player, moment)

            moment = await self._narrator.opening_moment(player)
            loop_ops.record_moment(player, moment)
            return self._result(player, moment)

    async def make_choice(self, player_id: UUID, choice_id: str) -> TurnResult:
        async with self._locks.hold(player_id):
            player = self._require(player_id)

            outcome = loop_ops.make_choice(
                player,
                choice_id,
                thresholds=self._thresholds,
                key_memory_cap=self._key_memory_cap,
                score_delta=self._score_delta,
            )

            autosave_error = None
            if not outcome.replayed:
                logger.debug(
                    "player %s chose %s (%s), score %s",
                    player.id,
                    outcome.choice.id,
                    outcome.polarity.value,
                    player.memory.nihilism_score,
                )
                autosave_error = self._notify_choice(player)

            if outcome.ending is not None:
                # The concluded record is saved regardless of the autosave interval.
                try:
                    self._gateway.put(player.id, player.model_copy(deep=True))
                except PersistenceError as e:
                    logger.warning("failed to save concluded player %s: %s", player.id, e)
                    autosave_error = autosave_error or str(e)
                return self._result(player, player.narrative_history[-1], autosave_error=autosave_error)

            # Memory is already committed; an upstream failure leaves the choice pending.
            moment = await self._advance(player)
            return self._result(player, moment, autosave_error=autosave_error)

    async def reset(self, player_id: UUID) -> Player:
        async with self._locks.hold(player_id):
            player = self._require(player_id)
            loop_ops.reset_loop(player, key_memory_cap=self._key_memory_cap)

            try:
                self._gateway.put(player.id, player.model_copy(deep=True))
            except PersistenceError as e:
                logger.warning("failed to save player %s after reset: %s", player.id, e)
            return player.model_copy(deep=True)

    # ── Persistence ─────

    async def save(self, player_id: UUID) -> None:
        async with self._locks.hold(player_id):
            player = self._require(player_id)
            self._gateway.put(player.id, player.model_copy(deep=True))
            logger.info("saved player %s", player.id)

    async def load(self, player_id: UUID) -> Player:
        """Replace the live player with the saved snapshot.

        Falls back to the live player when nothing was saved; NotFound when neither exists.
        A live session that has reached an ending is never replaced (InvalidState).
        """

        async with self._locks.hold(player_id):
            live = self._players.get(player_id)
            if live is not None and live.ending is not None:
                raise InvalidState(f"Session has ended ({live.ending.value}); start a new game")
            player = self._gateway.get(player_id)
            if player is None:
                return self._require(player_id).model_copy(deep=True)
            self._players[player_id] = player
            logger.info("loaded player %s (loop #%s)", player_id, player.current_loop.number)
            return player.model_copy(deep=True)

    async def list(self) -> list[UUID]:
        return self._gateway.list_ids()
