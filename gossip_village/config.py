"""Game constants and app configuration.

Constants here are the hard rules of the village: action point budget,
status thresholds, the starting map. They are not user-configurable.

App configuration (LLM connection, villager count, retry policy) is stored
in ``<data_dir>/config.json``. ``get_config()`` returns defaults merged with
stored values; ``update_config()`` applies a partial update and persists it.
The API key may also come from the ``LLM_API_KEY`` environment variable
(loaded from ``.env`` by python-dotenv), which wins over the stored key.
"""

import json
import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

load_dotenv(Path(__file__).parent.parent / ".env")

MAX_ACTION_POINTS = 3

ACTION_COSTS: dict[str, int] = {"INTERROGATE": 2}
DEFAULT_ACTION_COST = 1

# hp below this forces Injured; reaching it again heals back to Normal
INJURY_HP = 20
# san at or above QI_DEVIATION_SAN forces QiDeviated; recovery needs san below QI_RECOVERY_SAN
QI_DEVIATION_SAN = 90
QI_RECOVERY_SAN = 80

OBJECTIVE_DEADLINE_DAY = 7

# 4x4 location names, indexed [y][x]
LOCATION_MAP: list[list[str]] = [
    ["Village Gate", "Mirror Lake Shore", "Hero's Tomb", "Reed Marsh"],
    ["Old Taoist Shrine", "Martial Field", "Chief's House", "Herb Garden"],
    ["Forge", "Rice Fragrance Tavern", "Waterside Stage", "Dark Bamboo Grove"],
    ["Hunter's Cabin", "Abandoned Altar", "Western Camp", "Back Mountain Cave"],
]

WELCOME_MESSAGE = (
    "Welcome to Rice Fragrance Village. Undercurrents stir in the jianghu; "
    "you are the unseen watcher who holds the threads of fate."
)

ERROR_MESSAGES: dict[str, str] = {
    "generation_failed": "The jianghu is far away and the server did not answer. Please try again.",
    "simulation_failed": "The server is meditating. Please try again shortly.",
    "interaction_failed": "The villager fell silent. Please try again.",
}

_CONFIG_DEFAULTS: dict[str, Any] = {
    "llm_connection": {
        "provider_url": "https://api.deepseek.com",
        "provider_format": "openai",
        "model": "deepseek-chat",
        "api_key": "",
        "timeout": 30.0,
    },
    "villager_count": 10,
    "max_retries": 3,
    "retry_delay": 1.0,
}


def _config_path(data_dir: Path) -> Path:
    return data_dir / "config.json"


MASKED_API_KEY = "***"


def _stored_config(data_dir: Path) -> dict[str, Any]:
    """Defaults merged with config.json, without environment overrides."""
    config: dict[str, Any] = json.loads(json.dumps(_CONFIG_DEFAULTS))
    path = _config_path(data_dir)
    if path.is_file():
        stored = json.loads(path.read_text())
        if isinstance(stored.get("llm_connection"), dict):
            config["llm_connection"].update(stored["llm_connection"])
        for key in ("villager_count", "max_retries", "retry_delay"):
            if key in stored:
                config[key] = stored[key]
    return config


def get_config(data_dir: Path) -> dict[str, Any]:
    """Read config, returning defaults merged with stored values."""
    config = _stored_config(data_dir)
    env_key = os.getenv("LLM_API_KEY", "")
    if env_key:
        config["llm_connection"]["api_key"] = env_key
    return config


def update_config(data_dir: Path, fields: dict[str, Any]) -> dict[str, Any]:
    """Merge fields into config and persist. Returns full config.

    The environment key is never written to disk, and the masked key the
    settings endpoint hands out is ignored when sent back.
    """
    config = _stored_config(data_dir)
    connection = fields.get("llm_connection")
    if isinstance(connection, dict):
        connection = dict(connection)
        if connection.get("api_key") == MASKED_API_KEY:
            del connection["api_key"]
        config["llm_connection"].update(connection)
    for key in ("villager_count", "max_retries", "retry_delay"):
        if key in fields:
            config[key] = fields[key]
    data_dir.mkdir(parents=True, exist_ok=True)
    _config_path(data_dir).write_text(json.dumps(config, indent=2))
    return get_config(data_dir)
