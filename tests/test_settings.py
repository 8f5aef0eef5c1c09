from __future__ import annotations

from pathlib import Path

import pytest

from nihilism.settings import EngineSettings, settings_from_env

_VARS = (
    "NIHILISM_NARRATOR_TIMEOUT_S",
    "NIHILISM_STORE",
    "NIHILISM_DATA_DIR",
    "NIHILISM_AUTOSAVE_EVERY",
    "NIHILISM_KEY_MEMORY_CAP",
    "NIHILISM_SCORE_DELTA",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults() -> None:
    assert settings_from_env() == EngineSettings()


def test_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("NIHILISM_NARRATOR_TIMEOUT_S", "2.5")
    monkeypatch.setenv("NIHILISM_STORE", "File")
    monkeypatch.setenv("NIHILISM_DATA_DIR", "/tmp/loops")
    monkeypatch.setenv("NIHILISM_AUTOSAVE_EVERY", "0")
    monkeypatch.setenv("NIHILISM_KEY_MEMORY_CAP", "20")
    monkeypatch.setenv("NIHILISM_SCORE_DELTA", "10")

    s = settings_from_env()
    assert s.narrator_timeout_s == 2.5
    assert s.store == "file"
    assert s.data_dir == Path("/tmp/loops")
    assert s.autosave_every == 0
    assert s.key_memory_cap == 20
    assert s.score_delta == 10


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("NIHILISM_STORE", "postgres"),
        ("NIHILISM_AUTOSAVE_EVERY", "often"),
        ("NIHILISM_NARRATOR_TIMEOUT_S", "soon"),
    ],
)
def test_invalid_values_fail_loudly(monkeypatch: pytest.MonkeyPatch, name: str, value: str) -> None:
    monkeypatch.setenv(name, value)
    with pytest.raises(RuntimeError):
        settings_from_env()
