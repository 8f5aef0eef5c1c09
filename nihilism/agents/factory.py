from __future__ import annotations

import os
from typing import cast

from nihilism.agents.ag2_backend import Ag2ChatAgent
from nihilism.agents.base import Agent


def create_default_agent(*, name: str = "narrator", timeout_s: float | None = None) -> Agent:
    """Create the default LLM-backed narrator agent.

    Uses AG2/autogen and reads model configuration from env.
    """

    model = os.environ.get("OPENAI_MODEL", "gpt-4o-mini")
    return cast(Agent, Ag2ChatAgent(name=name, model=model, timeout_s=timeout_s))
