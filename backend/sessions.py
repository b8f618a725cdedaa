"""Session registry: one GameEngine per session id.

Engines live in memory while the server runs and are persisted to JSON after
every operation, so a restarted server picks sessions up again from disk.
Sessions never share state.
"""

import logging
import uuid
from pathlib import Path

from gossip_village.config import get_config
from gossip_village.engine import GameEngine
from gossip_village.llm import LLM, HttpLLM
from gossip_village.oracle import Oracle
from gossip_village.storage import Storage

logger = logging.getLogger(__name__)

_storage: Storage | None = None
_llm_override: LLM | None = None
_engines: dict[str, GameEngine] = {}


def init_sessions(data_dir: Path, llm: LLM | None = None) -> None:
    """Point the registry at a data directory. `llm` replaces HttpLLM (tests)."""
    global _storage, _llm_override
    data_dir.mkdir(parents=True, exist_ok=True)
    _storage = Storage(data_dir)
    _llm_override = llm
    _engines.clear()


def storage() -> Storage:
    assert _storage is not None, "Call init_sessions() before using sessions"
    return _storage


def data_dir() -> Path:
    return storage().base_path


def _oracle(config: dict) -> Oracle:
    llm = _llm_override or HttpLLM.from_config(config["llm_connection"])
    return Oracle(llm, retries=config["max_retries"], retry_delay=config["retry_delay"])


def _build_engine(state=None) -> GameEngine:
    config = get_config(data_dir())
    return GameEngine(_oracle(config), state=state, villager_count=config["villager_count"])


def apply_config() -> None:
    """Point every cached engine at the current LLM connection and retry policy.

    A call already in flight finishes on the oracle it started with.
    """
    config = get_config(data_dir())
    for engine in _engines.values():
        engine.oracle = _oracle(config)
        engine.villager_count = config["villager_count"]
    logger.info("applied settings to %d cached sessions", len(_engines))


def create_session() -> tuple[str, GameEngine]:
    session_id = uuid.uuid4().hex[:12]
    engine = _build_engine()
    _engines[session_id] = engine
    return session_id, engine


def get_engine(session_id: str) -> GameEngine | None:
    engine = _engines.get(session_id)
    if engine is not None:
        return engine
    try:
        state = storage().get_state(session_id)
    except ValueError:
        return None
    if state is None:
        return None
    # A session saved mid-call can never finish that call; unlock it.
    state.is_simulating = False
    engine = _build_engine(state)
    _engines[session_id] = engine
    logger.debug("loaded session %s from disk", session_id)
    return engine


def save(session_id: str) -> None:
    engine = _engines.get(session_id)
    if engine is not None:
        storage().save_state(session_id, engine.state)


def list_sessions() -> list[str]:
    return sorted(set(storage().list_sessions()) | set(_engines))


def delete_session(session_id: str) -> bool:
    in_memory = _engines.pop(session_id, None) is not None
    try:
        on_disk = storage().delete_session(session_id)
    except ValueError:
        return False
    return in_memory or on_disk
