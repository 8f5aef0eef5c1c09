from __future__ import annotations

from nihilism.agents.factory import create_default_agent
from nihilism.agents.narrator import Narrator
from nihilism.hooks import AutosaveObserver
from nihilism.persistence import create_snapshot_store
from nihilism.session_store import SessionStore
from nihilism.settings import EngineSettings, settings_from_env

_STORE: SessionStore | None = None


def build_session_store(settings: EngineSettings) -> SessionStore:
    gateway = create_snapshot_store(settings)
    narrator = Narrator(
        agent=create_default_agent(timeout_s=settings.narrator_timeout_s),
        timeout_s=settings.narrator_timeout_s,
    )
    observers = [AutosaveObserver(gateway=gateway, every_n_choices=settings.autosave_every)]
    return SessionStore(
        gateway=gateway,
        narrator=narrator,
        observers=observers,
        key_memory_cap=settings.key_memory_cap,
        score_delta=settings.score_delta,
    )


def init_session_store(*, settings: EngineSettings | None = None) -> SessionStore:
    """Build the process-wide session store once.

    Safe to call multiple times; subsequent calls return the existing instance.
    """

    global _STORE
    if _STORE is None:
        _STORE = build_session_store(settings or settings_from_env())
    return _STORE


def reset_session_store_for_tests() -> None:
    global _STORE
    _STORE = None


def get_session_store() -> SessionStore:
    if _STORE is None:
        raise RuntimeError("Session store not initialized. Call init_session_store() at startup.")
    return _STORE
