from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _now() -> datetime:
    return datetime.now(tz=UTC)


class Polarity(StrEnum):
    dark = "dark"
    light = "light"
    neutral = "neutral"

    @classmethod
    def parse(cls, raw: object) -> "Polarity | None":
        if isinstance(raw, cls):
            return raw
        if not isinstance(raw, str):
            return None
        try:
            return cls(raw.strip().casefold())
        except ValueError:
            return None


class Mood(StrEnum):
    neutral = "neutral"
    hopeful = "hopeful"
    dark = "dark"
    nihilistic = "nihilistic"
    transcendent = "transcendent"
    # Anything the narrator sends that we don't recognise.
    unknown = "unknown"

    @classmethod
    def parse(cls, raw: object) -> "Mood":
        if isinstance(raw, cls):
            return raw
        if not isinstance(raw, str):
            return cls.unknown
        try:
            return cls(raw.strip().casefold())
        except ValueError:
            return cls.unknown


class EndingType(StrEnum):
    void_embrace = "void_embrace"
    transcendence = "transcendence"
    tiny_perfect_things = "tiny_perfect_things"
    the_middle_path = "the_middle_path"
    just_you = "just_you"
    acceptance = "acceptance"
    the_watcher = "the_watcher"
    # Snapshots written by a newer build may name endings we don't know.
    unknown = "unknown"

    @classmethod
    def parse(cls, raw: object) -> "EndingType":
        if isinstance(raw, cls):
            return raw
        if not isinstance(raw, str):
            return cls.unknown
        try:
            return cls(raw.strip().casefold())
        except ValueError:
            return cls.unknown


class Choice(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    text: str
    consequence_hint: str | None = None

    # Optional narrator tag; the local heuristic is used when absent.
    polarity: Polarity | None = None

    @field_validator("polarity", mode="before")
    @classmethod
    def _parse_polarity(cls, v: object) -> Polarity | None:
        return Polarity.parse(v)


class NarrativeMoment(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    text: str
    speaker: str | None = None
    mood: Mood = Mood.neutral
    choices: list[Choice] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=_now)

    # Loop this moment was shown in.
    loop_number: int = Field(1, ge=1)

    # Optional narrator annotations.
    significant: bool | None = None
    character_deaths: list[str] = Field(default_factory=list)
    truths: list[str] = Field(default_factory=list)

    @field_validator("mood", mode="before")
    @classmethod
    def _parse_mood(cls, v: object) -> Mood:
        return Mood.parse(v)

    def find_choice(self, choice_id: str) -> Choice | None:
        return next((c for c in self.choices if c.id == choice_id), None)


class Loop(BaseModel):
    number: int = Field(1, ge=1)
    started_at: datetime = Field(default_factory=_now)
    ended_at: datetime | None = None
    choices_made: list[str] = Field(default_factory=list)
    outcome: str | None = None

    @property
    def is_active(self) -> bool:
        return self.ended_at is None


class PersistentMemory(BaseModel):
    # Loops started, including the current one.
    total_loops: int = 1
    total_choices: int = 0
    dark_choices: int = 0
    light_choices: int = 0
    neutral_choices: int = 0

    # Newest last; capped with oldest-eviction.
    key_memories: list[str] = Field(default_factory=list)
    character_deaths: dict[str, int] = Field(default_factory=dict)
    # Insertion ordered, no duplicates.
    truths_discovered: list[str] = Field(default_factory=list)

    # -100 (hopeful) .. +100 (nihilistic)
    nihilism_score: int = Field(0, ge=-100, le=100)


class Player(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    name: str | None = None
    current_loop: Loop = Field(default_factory=Loop)
    memory: PersistentMemory = Field(default_factory=PersistentMemory)
    narrative_history: list[NarrativeMoment] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_now)

    # Set once, when an ending is reached. The session is concluded afterwards.
    ending: EndingType | None = None

    # Choice already counted whose follow-up moment could not be generated yet.
    pending_choice: Choice | None = None

    @field_validator("ending", mode="before")
    @classmethod
    def _parse_ending(cls, v: object) -> EndingType | None:
        if v is None:
            return None
        return EndingType.parse(v)


class EndingReport(BaseModel):
    ending_type: EndingType
    title: str
    description: str
    total_loops: int
    total_choices: int
    nihilism_score: int
    dark_choices: int
    light_choices: int


class TurnResult(BaseModel):
    moment: NarrativeMoment
    loop_number: int
    nihilism_score: int
    ending: EndingReport | None = None

    # Autosave failures are reported, never rolled back.
    autosave_error: str | None = None


# ── Transport payloads ─────


class CreateGameRequest(BaseModel):
    name: str | None = Field(None, max_length=200)


class ChoiceRequest(BaseModel):
    choice_id: str = Field(..., min_length=1, max_length=200)
    # Ignored by the engine; the offered choice is looked up by id.
    choice_text: str | None = None


class NewGameResponse(BaseModel):
    player: Player
    message: str


class GameStateResponse(BaseModel):
    player: Player
    current_moment: NarrativeMoment | None = None
    ending: EndingReport | None = None


class ResetResponse(BaseModel):
    player: Player
    message: str


class SaveGameResponse(BaseModel):
    success: bool
    message: str


class LoadGameResponse(BaseModel):
    player: Player
    message: str


class ListSavesResponse(BaseModel):
    saves: list[UUID]


class EndingCheckResponse(BaseModel):
    has_ending: bool
    ending: EndingReport | None = None
