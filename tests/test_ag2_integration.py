from __future__ import annotations

import os

import httpx
import pytest

from nihilism.agents.ag2_backend import Ag2ChatAgent
from nihilism.agents.narrator import Narrator
from nihilism.loop import new_player


def _server_healthy(base_url: str) -> bool:
    # base_url might be http://127.0.0.1:11434/v1
    try:
        r = httpx.get(f"{base_url.rstrip('/')}/models", timeout=1.0)
        return r.status_code == 200
    except Exception:
        return False


@pytest.mark.integration
async def test_ag2_narrator_opening_env_gated() -> None:
    if os.environ.get("NIHILISM_RUN_INTEGRATION") != "1":
        pytest.skip("Set NIHILISM_RUN_INTEGRATION=1 to talk to a live narrator")

    base_url = os.environ.get("OPENAI_BASE_URL")
    api_key = os.environ.get("OPENAI_API_KEY")
    if not (api_key or base_url):
        pytest.skip("Set OPENAI_API_KEY or OPENAI_BASE_URL")
    if base_url and not _server_healthy(base_url):
        pytest.skip("OpenAI-compatible server not reachable at OPENAI_BASE_URL")

    agent = Ag2ChatAgent(name="narrator-test", model=os.environ.get("OPENAI_MODEL", "gpt-4o-mini"), timeout_s=60.0)
    narrator = Narrator(agent=agent, timeout_s=120.0)

    moment = await narrator.opening_moment(new_player())

    assert moment.text
    assert moment.choices
    assert moment.loop_number == 1
