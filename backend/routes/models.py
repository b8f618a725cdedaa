"""Pydantic request models for API endpoints."""

from typing import Any

from gossip_village.models import ActionType, GameMode, VillageModel


class StartGameBody(VillageModel):
    mode: GameMode = "Sandbox"


class ActionBody(VillageModel):
    type: ActionType
    content: str = ""
    target_id: str | None = None


class UpdateSettings(VillageModel):
    llm_connection: dict[str, Any] | None = None
    villager_count: int | None = None
    max_retries: int | None = None
    retry_delay: float | None = None
