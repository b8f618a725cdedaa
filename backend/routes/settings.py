"""Health check and settings endpoints."""

from fastapi import APIRouter

from backend import sessions
from gossip_village.config import MASKED_API_KEY, get_config, update_config

from .models import UpdateSettings

router = APIRouter()


def _masked(config: dict) -> dict:
    if config["llm_connection"].get("api_key"):
        config["llm_connection"]["api_key"] = MASKED_API_KEY
    return config


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok"}


@router.get("/settings")
async def get_settings():
    """Get app settings (LLM connection, villager count, retry policy)."""
    return _masked(get_config(sessions.data_dir()))


@router.patch("/settings")
async def update_settings(body: UpdateSettings):
    """Update app settings (partial merge)."""
    fields = body.model_dump(exclude_none=True)
    config = update_config(sessions.data_dir(), fields)
    sessions.apply_config()
    return _masked(config)
