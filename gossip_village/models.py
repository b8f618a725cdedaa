"""Core domain models.

Every component of the village operates on these types. Pydantic validates
and serialises them at each boundary (oracle payloads, session storage,
HTTP responses). Field names are snake_case in Python and dump as camelCase
when serialised with ``by_alias=True``.
"""

from __future__ import annotations

import uuid
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

GRID_SIZE = 4

Gender = Literal["Male", "Female"]

RelationshipType = Literal[
    "None", "Friend", "Enemy", "Lover", "Family", "Master", "Disciple",
]

Status = Literal[
    "Normal",
    "Injured",
    "Dead",
    "Jailed",
    "LeftVillage",
    "Escaped",
    "Heartbroken",
    "QiDeviated",
    "Agitated",
    "Depressed",
    "Married",
]

# Once a character enters one of these, status and position never change again.
INACTIVE_STATUSES: frozenset[str] = frozenset({"Dead", "Jailed", "LeftVillage", "Escaped"})

SpawnZone = Literal["Market", "Official", "Temple", "Secluded"]

IntelType = Literal["Observation", "Secret", "Rumor", "Fabrication", "Confession"]

LogType = Literal["Thought", "Action", "System"]

Phase = Literal["Morning", "Afternoon", "Evening", "Night"]

GameMode = Literal["Sandbox", "Chaos", "Matchmaker", "Detective"]

ActionType = Literal["WHISPER", "BROADCAST", "FABRICATE", "INCEPTION", "INTERROGATE"]

ErrorKind = Literal["generation_failed", "simulation_failed", "interaction_failed"]


def clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


class VillageModel(BaseModel):
    """Base for all village models: camelCase on the wire, snake_case in code."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Position(VillageModel):
    x: int = Field(ge=0, lt=GRID_SIZE)
    y: int = Field(ge=0, lt=GRID_SIZE)


class Relationship(VillageModel):
    """A directed edge owned by the source character."""

    target_id: str
    target_name: str
    type: RelationshipType = "None"
    affinity: int = 0  # -100 (hatred) .. 100 (love)
    trust: int = 50
    known_secrets: list[str] = Field(default_factory=list)

    @field_validator("affinity", mode="before")
    @classmethod
    def _clamp_affinity(cls, v: int) -> int:
        return clamp(int(v), -100, 100)

    @field_validator("trust", mode="before")
    @classmethod
    def _clamp_trust(cls, v: int) -> int:
        return clamp(int(v), 0, 100)


class Character(VillageModel):
    """An NPC living in the village."""

    id: str
    name: str
    age: int = 30
    gender: Gender = "Male"
    role: str = ""
    public_persona: str = ""
    deep_secret: str = ""
    life_goal: str = ""
    backstory: str | None = None
    current_mood: str = ""
    status: Status = "Normal"
    hp: int = 100
    mp: int = 0
    san: int = 0
    position: Position = Field(default_factory=lambda: Position(x=0, y=0))
    relationships: list[Relationship] = Field(default_factory=list)

    # Descriptor fields from village generation; only the placement engine reads them.
    spawn_zone: SpawnZone | None = None
    initial_connection_name: str | None = None
    initial_connection_type: RelationshipType | None = None

    @field_validator("hp", "mp", "san", mode="before")
    @classmethod
    def _clamp_stat(cls, v: int) -> int:
        return clamp(int(v), 0, 100)

    @property
    def is_inactive(self) -> bool:
        return self.status in INACTIVE_STATUSES

    def relationship_to(self, target_id: str) -> Relationship | None:
        for rel in self.relationships:
            if rel.target_id == target_id:
                return rel
        return None


class IntelCard(VillageModel):
    """A unit of knowledge visible to the player."""

    id: str = Field(default_factory=lambda: new_id("intel"))
    type: IntelType
    content: str
    source_id: str | None = None
    timestamp: int  # day number


class LogEntry(VillageModel):
    """A single entry in the append-only village log."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: new_id("log"))
    day: int
    phase: Phase
    npc_name: str | None = None
    content: str
    type: LogType


class DailyNews(VillageModel):
    headline: str
    articles: list[str] = Field(default_factory=list)


class GameOutcome(VillageModel):
    result: Literal["Victory", "Defeat"]
    reason: str = ""


class GameObjective(VillageModel):
    model_config = ConfigDict(frozen=True)

    mode: GameMode
    target_ids: tuple[str, ...] = ()
    description: str
    deadline_day: int | None = None


class PendingAction(VillageModel):
    """A player intervention queued for the next oracle call."""

    type: ActionType
    content: str
    target_id: str | None = None
    cost: int = 1
    log_id: str | None = None  # log line to remove on undo


class GameError(VillageModel):
    kind: ErrorKind
    message: str


class InteractionResult(VillageModel):
    npc_name: str
    question: str
    reply: str


class GameState(VillageModel):
    """Aggregate root for one game session."""

    day: int = 1
    phase: Phase = "Morning"
    npcs: list[Character] = Field(default_factory=list)
    intel: list[IntelCard] = Field(default_factory=list)
    logs: list[LogEntry] = Field(default_factory=list)
    grid_map: list[list[str]] = Field(default_factory=list)
    mode: GameMode = "Sandbox"
    objective: GameObjective | None = None
    outcome: GameOutcome | None = None
    last_newspaper: DailyNews | None = None
    action_points: int = 3
    pending_actions: list[PendingAction] = Field(default_factory=list)
    is_simulating: bool = False
    error: GameError | None = None
    interaction: InteractionResult | None = None

    def find_npc(self, npc_id: str) -> Character | None:
        for npc in self.npcs:
            if npc.id == npc_id:
                return npc
        return None
