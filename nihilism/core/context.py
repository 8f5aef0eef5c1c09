from __future__ import annotations

from dataclasses import dataclass

from nihilism.api.models import Player
from nihilism.scoring import score_label

# How many of the newest key memories the narrator sees.
DIGEST_MEMORIES = 5


@dataclass(frozen=True, slots=True)
class RenderedContext:
    """Final, merged context passed into the LLM agent."""

    system_prompt: str

    def as_messages(self) -> list[dict[str, str]]:
        return [{"role": "system", "content": self.system_prompt}]


def player_state_digest(player: Player) -> str:
    """Summarise loop, score and remembered history for the narrator."""

    m = player.memory
    loop = player.current_loop

    lines: list[str] = [
        f"Loop #{loop.number}",
        f"Nihilism Score: {m.nihilism_score} ({score_label(m.nihilism_score)})",
        f"Lifetime choices: {m.total_choices} (dark {m.dark_choices}, light {m.light_choices})",
    ]

    if m.key_memories:
        lines.append("")
        lines.append("Memories that persist:")
        lines.extend(f"- {text}" for text in m.key_memories[-DIGEST_MEMORIES:])

    if loop.choices_made:
        lines.append("")
        lines.append("Choices this loop:")
        lines.extend(f"- {cid}" for cid in loop.choices_made)

    if m.truths_discovered:
        lines.append("")
        lines.append("Truths discovered:")
        lines.extend(f"- {fact}" for fact in m.truths_discovered)

    if m.character_deaths:
        lines.append("")
        lines.append("Deaths witnessed:")
        lines.extend(f"- {name}: {count}" for name, count in sorted(m.character_deaths.items()))

    return "\n".join(lines)


def compose_narrator_context(*, base_prompt: str, player: Player) -> RenderedContext:
    parts = [
        base_prompt.strip(),
        "PLAYER STATE:\n" + player_state_digest(player),
    ]
    system_prompt = "\n\n".join(p for p in parts if p.strip()).strip()
    return RenderedContext(system_prompt=system_prompt)
