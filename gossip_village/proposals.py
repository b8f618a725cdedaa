"""Validation layer for oracle output.

The oracle returns JSON that is shaped like our schema but cannot be trusted:
names may be unknown, enums misspelled, numbers out of range or missing.
Everything it says is parsed into these proposal models first, field by
field. Malformed list items are dropped and unknown enum values become None
("no proposal") so a single bad item never voids a whole phase. Only a
payload that is not JSON, or not an object at all, raises OracleError.

The merger then decides what to accept; nothing here touches game state.
"""

from __future__ import annotations

import json
import logging
from typing import Any, get_args

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from gossip_village.models import (
    DailyNews,
    GameOutcome,
    Gender,
    IntelType,
    RelationshipType,
    SpawnZone,
    Status,
    clamp,
)

logger = logging.getLogger(__name__)

_STATUSES = set(get_args(Status))
_RELATIONSHIP_TYPES = set(get_args(RelationshipType))
_INTEL_TYPES = set(get_args(IntelType))
_SPAWN_ZONES = set(get_args(SpawnZone))
_GENDERS = set(get_args(Gender))

# Spellings seen in oracle output that map onto our enum values
_STATUS_ALIASES = {"Left Village": "LeftVillage", "Qi Deviated": "QiDeviated"}


class OracleError(ValueError):
    """Raised when an oracle payload cannot be parsed at all."""


def _to_int(value: Any) -> int:
    if value is None or isinstance(value, bool):
        return 0
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


def _one_of(value: Any, allowed: set[str]) -> str | None:
    if isinstance(value, str) and value in allowed:
        return value
    return None


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


class Proposal(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


# ---------------------------------------------------------------------------
# Village generation
# ---------------------------------------------------------------------------

class VillagerDraft(Proposal):
    """One character descriptor from village generation."""

    name: str = Field(min_length=1)
    age: int = 30
    gender: str = "Male"
    role: str = ""
    public_persona: str = ""
    deep_secret: str = ""
    life_goal: str = ""
    backstory: str | None = None
    current_mood: str = ""
    hp: int = 80
    mp: int = 20
    san: int = 10
    spawn_zone: str | None = None
    initial_connection_name: str | None = None
    initial_connection_type: str | None = None

    @field_validator("age", mode="before")
    @classmethod
    def _age(cls, v: Any) -> int:
        return max(0, _to_int(v))

    @field_validator("hp", "mp", "san", mode="before")
    @classmethod
    def _stat(cls, v: Any) -> int:
        return clamp(_to_int(v), 0, 100)

    @field_validator("gender", mode="before")
    @classmethod
    def _gender(cls, v: Any) -> str:
        return _one_of(v, _GENDERS) or "Male"

    @field_validator("role", "public_persona", "deep_secret", "life_goal", "current_mood", mode="before")
    @classmethod
    def _plain_text(cls, v: Any) -> str:
        return _text(v)

    @field_validator("spawn_zone", mode="before")
    @classmethod
    def _zone(cls, v: Any) -> str | None:
        return _one_of(v, _SPAWN_ZONES)

    @field_validator("initial_connection_name", mode="before")
    @classmethod
    def _connection_name(cls, v: Any) -> str | None:
        return v.strip() or None if isinstance(v, str) else None

    @field_validator("initial_connection_type", mode="before")
    @classmethod
    def _connection_type(cls, v: Any) -> str | None:
        return _one_of(v, _RELATIONSHIP_TYPES - {"None"})


# ---------------------------------------------------------------------------
# Phase simulation
# ---------------------------------------------------------------------------

class NarrativeLog(Proposal):
    npc_name: str = ""
    thought: str = ""
    action: str = ""

    @field_validator("npc_name", "thought", "action", mode="before")
    @classmethod
    def _plain_text(cls, v: Any) -> str:
        return _text(v).strip()


class RelationshipDelta(Proposal):
    source_name: str
    target_name: str
    affinity_change: int = 0
    trust_change: int = 0
    new_type: str | None = None

    @field_validator("affinity_change", "trust_change", mode="before")
    @classmethod
    def _delta(cls, v: Any) -> int:
        return _to_int(v)

    @field_validator("new_type", mode="before")
    @classmethod
    def _type(cls, v: Any) -> str | None:
        return _one_of(v, _RELATIONSHIP_TYPES)


class StatDelta(Proposal):
    npc_name: str
    hp_change: int = 0
    mp_change: int = 0
    san_change: int = 0

    @field_validator("hp_change", "mp_change", "san_change", mode="before")
    @classmethod
    def _delta(cls, v: Any) -> int:
        return _to_int(v)


class IntelProposal(Proposal):
    content: str = Field(min_length=1)
    type: str | None = None
    source_name: str | None = None

    @field_validator("content", mode="before")
    @classmethod
    def _content(cls, v: Any) -> str:
        return _text(v).strip()

    @field_validator("type", mode="before")
    @classmethod
    def _type(cls, v: Any) -> str | None:
        return _one_of(v, _INTEL_TYPES)


class PositionProposal(Proposal):
    """Unchecked coordinates; the merger enforces grid bounds."""

    x: int
    y: int


class StatusProposal(Proposal):
    npc_name: str
    status: str | None = None
    mood: str | None = None
    new_position: PositionProposal | None = None

    @field_validator("status", mode="before")
    @classmethod
    def _status(cls, v: Any) -> str | None:
        if isinstance(v, str):
            v = _STATUS_ALIASES.get(v.strip(), v.strip())
        return _one_of(v, _STATUSES)

    @field_validator("mood", mode="before")
    @classmethod
    def _mood(cls, v: Any) -> str | None:
        return v.strip() or None if isinstance(v, str) else None

    @field_validator("new_position", mode="before")
    @classmethod
    def _position(cls, v: Any) -> Any:
        if isinstance(v, dict) and isinstance(v.get("x"), int) and isinstance(v.get("y"), int):
            return v
        return None


def _keep_valid(items: Any, model: type[BaseModel], field: str) -> list[BaseModel]:
    if not isinstance(items, list):
        return []
    kept = []
    for item in items:
        if isinstance(item, model):
            kept.append(item)
            continue
        try:
            kept.append(model.model_validate(item))
        except ValidationError as e:
            logger.warning("dropped malformed %s item %r: %s", field, item, e.error_count())
    return kept


def _optional(value: Any, model: type[BaseModel], field: str) -> BaseModel | None:
    if value is None or isinstance(value, model):
        return value
    try:
        return model.model_validate(value)
    except ValidationError:
        logger.warning("dropped malformed %s %r", field, value)
        return None


_LIST_ITEMS: dict[str, type[BaseModel]] = {
    "logs": NarrativeLog,
    "relationship_updates": RelationshipDelta,
    "stat_updates": StatDelta,
    "new_intel": IntelProposal,
    "npc_status_updates": StatusProposal,
}

_OPTIONAL_ITEMS: dict[str, type[BaseModel]] = {
    "newspaper": DailyNews,
    "game_outcome": GameOutcome,
}


class SimulationResult(Proposal):
    """Everything the oracle proposes for one phase."""

    logs: list[NarrativeLog] = Field(default_factory=list)
    relationship_updates: list[RelationshipDelta] = Field(default_factory=list)
    stat_updates: list[StatDelta] = Field(default_factory=list)
    new_intel: list[IntelProposal] = Field(default_factory=list)
    newspaper: DailyNews | None = None
    npc_status_updates: list[StatusProposal] = Field(default_factory=list)
    game_outcome: GameOutcome | None = None

    @model_validator(mode="before")
    @classmethod
    def _drop_malformed(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        cleaned = dict(data)
        for name, model in _LIST_ITEMS.items():
            for key in (to_camel(name), name):
                if key in cleaned:
                    cleaned[key] = _keep_valid(cleaned[key], model, name)
        for name, model in _OPTIONAL_ITEMS.items():
            for key in (to_camel(name), name):
                if key in cleaned:
                    cleaned[key] = _optional(cleaned[key], model, name)
        return cleaned

    def status_for(self, npc_name: str) -> StatusProposal | None:
        return next((u for u in self.npc_status_updates if u.npc_name == npc_name), None)

    def stats_for(self, npc_name: str) -> StatDelta | None:
        return next((u for u in self.stat_updates if u.npc_name == npc_name), None)

    def relationships_from(self, npc_name: str) -> list[RelationshipDelta]:
        return [u for u in self.relationship_updates if u.source_name == npc_name]


# ---------------------------------------------------------------------------
# Interrogation
# ---------------------------------------------------------------------------

class InteractionReply(Proposal):
    reply: str
    revealed_info: str | None = None
    mood_change: str = ""

    @field_validator("revealed_info", mode="before")
    @classmethod
    def _info(cls, v: Any) -> str | None:
        return v.strip() or None if isinstance(v, str) else None

    @field_validator("mood_change", mode="before")
    @classmethod
    def _mood(cls, v: Any) -> str:
        return _text(v).strip()


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def parse_json_output(text: str) -> Any:
    """Decode JSON from LLM output, stripping markdown fences."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        lines = cleaned.split("\n")
        lines = [l for l in lines[1:] if not l.strip().startswith("```")]
        cleaned = "\n".join(lines)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise OracleError(f"Oracle output is not valid JSON: {e}") from e


def parse_village(text: str) -> list[VillagerDraft]:
    data = parse_json_output(text)
    if isinstance(data, dict):
        data = data.get("npcs")
    if not isinstance(data, list):
        raise OracleError("Village payload must contain an 'npcs' array")
    drafts = _keep_valid(data, VillagerDraft, "npcs")
    if not drafts:
        raise OracleError("Village payload contained no usable villagers")
    return drafts


def parse_simulation(text: str) -> SimulationResult:
    data = parse_json_output(text)
    try:
        return SimulationResult.model_validate(data)
    except ValidationError as e:
        raise OracleError(f"Simulation payload rejected: {e}") from e


def parse_interaction(text: str) -> InteractionReply:
    data = parse_json_output(text)
    try:
        return InteractionReply.model_validate(data)
    except ValidationError as e:
        raise OracleError(f"Interaction payload rejected: {e}") from e
