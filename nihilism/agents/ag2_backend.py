from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any

from autogen import ConversableAgent

from nihilism.agents.autogen_config import llm_config_from_env
from nihilism.agents.base import AgentAction
from nihilism.agents.json_schema import JsonSchema
from nihilism.core.context import RenderedContext

logger = logging.getLogger(__name__)


def _reply_text(result: Any) -> str:
    """Newest non-empty message in a finished AG2 run, else its summary."""

    for msg in reversed(list(getattr(result, "messages", None) or [])):
        content = msg.get("content") if isinstance(msg, dict) else None
        if isinstance(content, str) and content.strip():
            return content.strip()

    summary = getattr(result, "summary", None)
    return summary.strip() if isinstance(summary, str) else ""


@dataclass(slots=True)
class Ag2ChatAgent:
    """Single-turn AG2 chat against an OpenAI-compatible endpoint.

    Reads OPENAI_MODEL, OPENAI_API_KEY and OPENAI_BASE_URL (see autogen_config).
    """

    name: str
    model: str
    timeout_s: float | None = None

    def _complete(self, prompt: str, system_prompt: str, response_format: dict[str, Any] | None) -> str:
        narrator = ConversableAgent(
            name=self.name,
            system_message=system_prompt,
            llm_config=llm_config_from_env(default_model=self.model, timeout_s=self.timeout_s),
            human_input_mode="NEVER",
        )

        # Unknown run() kwargs are passed on to the OpenAI client.
        kwargs: dict[str, Any] = {"response_format": response_format} if response_format else {}
        result = narrator.run(message=prompt, max_turns=1, **kwargs)
        result.process()

        text = _reply_text(result)
        logger.debug("narrator %s replied with %d chars", self.name, len(text))
        return text

    async def propose_action(
        self,
        *,
        prompt: str,
        ctx: RenderedContext,
        structured_output: JsonSchema | None = None,
    ) -> AgentAction:
        # AG2 blocks; keep it off the event loop so other players keep moving.
        response_format = structured_output.as_response_format() if structured_output else None
        text = await asyncio.to_thread(self._complete, prompt, ctx.system_prompt, response_format)

        metadata: dict[str, Any] = {"model": self.model}
        if structured_output is not None:
            metadata["schema"] = structured_output.name
        return AgentAction(kind="chat", content=text, metadata=metadata)
