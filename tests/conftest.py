from __future__ import annotations

import asyncio
import json
import os
from collections.abc import Generator
from pathlib import Path
from typing import Any

import pytest

from nihilism.agents.base import AgentAction
from nihilism.agents.json_schema import JsonSchema
from nihilism.core.context import RenderedContext

DEFAULT_CHOICES: list[dict[str, Any]] = [
    {"id": "embrace_void", "text": "Let the dark take the room", "polarity": "dark"},
    {"id": "hold_hand", "text": "Hold the stranger's hand", "polarity": "light"},
    {"id": "wait", "text": "Wait and watch the clock", "polarity": "neutral"},
]


def moment_json(
    *,
    text: str = "The clock on the wall ticks backwards.",
    mood: str = "neutral",
    choices: list[dict[str, Any]] | None = None,
    **extra: Any,
) -> str:
    payload: dict[str, Any] = {
        "text": text,
        "speaker": None,
        "mood": mood,
        "choices": DEFAULT_CHOICES if choices is None else choices,
    }
    payload.update(extra)
    return json.dumps(payload)


class ScriptedAgent:
    """Fake narrator agent: replays queued replies, then a default moment forever.

    A queued item may be an Exception instance, which is raised instead.
    """

    def __init__(self, replies: list[str | Exception] | None = None, *, delay: float = 0.0) -> None:
        self.name = "scripted"
        self.replies: list[str | Exception] = list(replies or [])
        self.delay = delay
        self.prompts: list[str] = []
        self.contexts: list[RenderedContext] = []
        self.seen_schema: JsonSchema | None = None

    async def propose_action(
        self,
        *,
        prompt: str,
        ctx: RenderedContext,
        structured_output: JsonSchema | None = None,
    ) -> AgentAction:
        self.prompts.append(prompt)
        self.contexts.append(ctx)
        self.seen_schema = structured_output
        # Always yield so concurrent callers interleave.
        await asyncio.sleep(self.delay)
        reply = self.replies.pop(0) if self.replies else moment_json()
        if isinstance(reply, Exception):
            raise reply
        return AgentAction(kind="chat", content=reply)


@pytest.fixture(scope="session", autouse=True)
def _load_dotenv_for_tests() -> None:
    """Load repo .env for local runs so OPENAI_* is available to the opt-in integration test.

    In CI we don't auto-load `.env`; opt in with NIHILISM_LOAD_DOTENV_FOR_TESTS=1.
    """

    if os.environ.get("CI") and os.environ.get("NIHILISM_LOAD_DOTENV_FOR_TESTS") != "1":
        return

    env_path = Path(__file__).resolve().parents[1] / ".env"
    if env_path.exists():
        from dotenv import load_dotenv

        load_dotenv(dotenv_path=env_path, override=False)


@pytest.fixture()
def make_agent() -> type[ScriptedAgent]:
    return ScriptedAgent


@pytest.fixture()
def make_moment() -> Any:
    return moment_json


@pytest.fixture()
def agent() -> ScriptedAgent:
    return ScriptedAgent()


@pytest.fixture()
def redis_client():
    import fakeredis

    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture()
def gateway(redis_client):
    from nihilism.persistence import RedisSnapshotStore

    return RedisSnapshotStore(redis_client)


@pytest.fixture()
def narrator(agent: ScriptedAgent):
    from nihilism.agents.narrator import Narrator

    return Narrator(agent=agent, timeout_s=1.0)


@pytest.fixture()
def session_store(gateway, narrator):
    from nihilism.hooks import AutosaveObserver
    from nihilism.session_store import SessionStore

    return SessionStore(gateway=gateway, narrator=narrator, observers=[AutosaveObserver(gateway=gateway, every_n_choices=3)])


@pytest.fixture()
def client(session_store) -> Generator[Any, None, None]:
    """FastAPI TestClient wired to the fakeredis-backed session store."""

    from fastapi.testclient import TestClient

    from nihilism.api.deps import get_session_store, reset_session_store_for_tests
    from nihilism.main import app

    app.dependency_overrides[get_session_store] = lambda: session_store
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
    reset_session_store_for_tests()
