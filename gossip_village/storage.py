"""JSON file storage for game sessions.

There is no database or ORM; each session is one JSON document written with
pydantic's serialiser.

Directory layout:

    {base}/
      config.json             ← app settings (see gossip_village.config)
      sessions/
        {session_id}.json     ← full GameState, camelCase keys
"""

from __future__ import annotations

import re
from pathlib import Path

from gossip_village.models import GameState

_SESSION_ID = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


class Storage:
    def __init__(self, base_path: Path) -> None:
        self._base = base_path
        self._sessions_root = base_path / "sessions"
        self._sessions_root.mkdir(parents=True, exist_ok=True)

    @property
    def base_path(self) -> Path:
        return self._base

    def _session_file(self, session_id: str) -> Path:
        if not _SESSION_ID.match(session_id):
            raise ValueError(f"Invalid session id: {session_id!r}")
        return self._sessions_root / f"{session_id}.json"

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def save_state(self, session_id: str, state: GameState) -> None:
        self._session_file(session_id).write_text(
            state.model_dump_json(by_alias=True, indent=2)
        )

    def get_state(self, session_id: str) -> GameState | None:
        path = self._session_file(session_id)
        if not path.exists():
            return None
        return GameState.model_validate_json(path.read_text())

    def list_sessions(self) -> list[str]:
        return sorted(p.stem for p in self._sessions_root.glob("*.json"))

    def delete_session(self, session_id: str) -> bool:
        path = self._session_file(session_id)
        if not path.exists():
            return False
        path.unlink()
        return True
