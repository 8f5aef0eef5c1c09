from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True, slots=True)
class EngineSettings:
    narrator_timeout_s: float = 30.0

    # "redis" or "file"
    store: str = "redis"
    data_dir: Path = Path("data/players")

    # Save a snapshot every N lifetime choices; 0 disables autosave.
    autosave_every: int = 3

    key_memory_cap: int = 50

    # Score movement per dark or light choice.
    score_delta: int = 5


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from e


def settings_from_env() -> EngineSettings:
    timeout_raw = os.environ.get("NIHILISM_NARRATOR_TIMEOUT_S", "30")
    try:
        timeout = float(timeout_raw)
    except ValueError as e:
        raise RuntimeError(f"NIHILISM_NARRATOR_TIMEOUT_S must be a number, got {timeout_raw!r}") from e

    store = os.environ.get("NIHILISM_STORE", "redis").strip().casefold()
    if store not in {"redis", "file"}:
        raise RuntimeError(f"NIHILISM_STORE must be 'redis' or 'file', got {store!r}")

    return EngineSettings(
        narrator_timeout_s=timeout,
        store=store,
        data_dir=Path(os.environ.get("NIHILISM_DATA_DIR", "data/players")),
        autosave_every=max(0, _int_env("NIHILISM_AUTOSAVE_EVERY", 3)),
        key_memory_cap=max(1, _int_env("NIHILISM_KEY_MEMORY_CAP", 50)),
        score_delta=max(0, _int_env("NIHILISM_SCORE_DELTA", 5)),
    )
