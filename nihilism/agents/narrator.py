from __future__ import annotations

import asyncio
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any

from nihilism.agents.base import Agent
from nihilism.agents.json_schema import JsonSchema
from nihilism.api.models import Choice, Mood, NarrativeMoment, Player
from nihilism.core.context import RenderedContext, compose_narrator_context
from nihilism.errors import UpstreamError, UpstreamTimeout
from nihilism.prompts import load_prompt

logger = logging.getLogger(__name__)

OPENING_PROMPT = "Begin or continue the narrative."

_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


NARRATIVE_MOMENT_SCHEMA = JsonSchema(
    name="narrative_moment",
    schema={
        "type": "object",
        "additionalProperties": False,
        "properties": {
            "text": {"type": "string", "minLength": 1},
            "speaker": {"type": ["string", "null"]},
            "mood": {"type": "string", "enum": ["neutral", "hopeful", "dark", "nihilistic", "transcendent"]},
            "significant": {"type": "boolean"},
            "character_deaths": {"type": "array", "items": {"type": "string"}},
            "truths": {"type": "array", "items": {"type": "string"}},
            "choices": {
                "type": "array",
                "items": {
                    "type": "object",
                    "additionalProperties": False,
                    "properties": {
                        "id": {"type": "string"},
                        "text": {"type": "string"},
                        "consequence_hint": {"type": ["string", "null"]},
                        "polarity": {"type": "string", "enum": ["dark", "light", "neutral"]},
                    },
                    "required": ["id", "text"],
                },
            },
        },
        "required": ["text", "mood", "choices"],
    },
    strict=True,
)


@dataclass(frozen=True, slots=True)
class MomentDraft:
    """Narrator output before it is stamped into a NarrativeMoment."""

    text: str
    speaker: str | None = None
    mood: Mood = Mood.neutral
    choices: tuple[Choice, ...] = ()
    significant: bool | None = None
    character_deaths: tuple[str, ...] = ()
    truths: tuple[str, ...] = ()
    structured: bool = True

    def to_moment(self, *, loop_number: int) -> NarrativeMoment:
        return NarrativeMoment(
            text=self.text,
            speaker=self.speaker,
            mood=self.mood,
            choices=list(self.choices),
            loop_number=loop_number,
            significant=self.significant,
            character_deaths=list(self.character_deaths),
            truths=list(self.truths),
        )


FALLBACK_CHOICES: tuple[Choice, ...] = (
    Choice(id="continue", text="Continue..."),
    Choice(id="reset", text="Let the loop reset...", consequence_hint="End this iteration"),
)


def _strip_fence(text: str) -> str:
    m = _FENCE.match(text.strip())
    return m.group(1) if m else text.strip()


def _str_list(raw: object) -> tuple[str, ...]:
    if not isinstance(raw, list):
        return ()
    return tuple(s.strip() for s in raw if isinstance(s, str) and s.strip())


def _parse_choices(raw: object) -> tuple[Choice, ...]:
    if not isinstance(raw, list):
        return ()

    seen: set[str] = set()
    out: list[Choice] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        cid = item.get("id")
        text = item.get("text")
        if not isinstance(cid, str) or not cid.strip() or not isinstance(text, str) or not text.strip():
            continue
        cid = cid.strip()
        # ids must be unique within a moment; keep the first.
        if cid in seen:
            continue
        seen.add(cid)
        hint = item.get("consequence_hint")
        out.append(
            Choice(
                id=cid,
                text=text.strip(),
                consequence_hint=hint.strip() if isinstance(hint, str) and hint.strip() else None,
                polarity=item.get("polarity"),
            )
        )
    return tuple(out)


def parse_moment_payload(text: str) -> MomentDraft:
    """Parse the narrator reply into a MomentDraft.

    Expected a JSON object (optionally wrapped in a ``` fence). A reply that is not a
    JSON object is kept as plain narration with the default continue/reset choices.
    An empty reply is an upstream failure.
    """

    body = _strip_fence(text or "")
    if not body:
        raise UpstreamError("Narrator returned an empty reply")

    try:
        data: Any = json.loads(body)
    except json.JSONDecodeError:
        data = None

    if not isinstance(data, dict):
        logger.warning("narrator reply was not a JSON object; using plain-text fallback")
        return MomentDraft(text=body, choices=FALLBACK_CHOICES, structured=False)

    moment_text = data.get("text")
    if not isinstance(moment_text, str) or not moment_text.strip():
        raise UpstreamError("Narrator reply is missing 'text'")

    speaker = data.get("speaker")
    significant = data.get("significant")

    choices = _parse_choices(data.get("choices"))
    if not choices:
        choices = FALLBACK_CHOICES[:1]

    return MomentDraft(
        text=moment_text.strip(),
        speaker=speaker.strip() if isinstance(speaker, str) and speaker.strip() else None,
        mood=Mood.parse(data.get("mood")),
        choices=choices,
        significant=significant if isinstance(significant, bool) else None,
        character_deaths=_str_list(data.get("character_deaths")),
        truths=_str_list(data.get("truths")),
    )


def choice_prompt(player: Player, choice: Choice) -> str:
    return (
        f"The player chose: '{choice.text}'. Continue the narrative based on this choice. "
        f"Remember, you know everything they've done across all {player.memory.total_loops} loops."
    )


@dataclass(slots=True)
class Narrator:
    """Produces NarrativeMoments from the narrator agent.

    Each request carries `timeout_s`; failures surface as UpstreamError / UpstreamTimeout.
    """

    agent: Agent
    timeout_s: float = 30.0
    base_prompt: str = field(default_factory=lambda: load_prompt("narrator.txt"))

    def context_for(self, player: Player) -> RenderedContext:
        return compose_narrator_context(base_prompt=self.base_prompt, player=player)

    async def _generate(self, player: Player, prompt: str) -> NarrativeMoment:
        ctx = self.context_for(player)
        try:
            action = await asyncio.wait_for(
                self.agent.propose_action(prompt=prompt, ctx=ctx, structured_output=NARRATIVE_MOMENT_SCHEMA),
                timeout=self.timeout_s,
            )
        except TimeoutError as e:
            raise UpstreamTimeout(f"Narrator did not answer within {self.timeout_s:g}s") from e
        except UpstreamError:
            raise
        except Exception as e:
            raise UpstreamError(f"Narrator request failed: {e}") from e

        logger.debug("narrator reply for player %s: %s", player.id, action.content)
        draft = parse_moment_payload(action.content)
        return draft.to_moment(loop_number=player.current_loop.number)

    async def opening_moment(self, player: Player) -> NarrativeMoment:
        return await self._generate(player, OPENING_PROMPT)

    async def next_moment(self, player: Player, choice: Choice) -> NarrativeMoment:
        return await self._generate(player, choice_prompt(player, choice))
