from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from nihilism.api.models import Player
from nihilism.persistence import SnapshotStore

logger = logging.getLogger(__name__)


class ChoiceObserver(Protocol):
    """Called by the session store after a choice has been folded into memory.

    Observers see a read-only snapshot; they must not mutate it.
    """

    def on_choice_recorded(self, player: Player) -> None:  # pragma: no cover
        ...


@dataclass(slots=True)
class AutosaveObserver:
    """Save a snapshot every `every_n_choices` lifetime choices.

    Raises PersistenceError from the store; the caller reports it without rolling back.
    """

    gateway: SnapshotStore
    every_n_choices: int = 3

    def should_save(self, player: Player) -> bool:
        n = self.every_n_choices
        total = player.memory.total_choices
        return n > 0 and total > 0 and total % n == 0

    def on_choice_recorded(self, player: Player) -> None:
        if not self.should_save(player):
            return
        self.gateway.put(player.id, player)
        logger.debug("autosaved player %s at %s choices", player.id, player.memory.total_choices)
