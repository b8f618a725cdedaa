"""FastMCP server exposing a running village as read-only MCP tools.

Tools:
  - get_village_snapshot()     day, phase, objective, action points, roster summary
  - lookup_villagers(names)    full records for villagers by name
  - list_intel()               every intel card collected so far

The engine is a module-level reference replaced via set_engine() for tests,
or loaded from storage when run as __main__.

Usage:
    DATA_DIR=data SESSION_ID=<id> python -m backend.mcp_server
"""

from mcp.server.fastmcp import FastMCP

from gossip_village.engine import GameEngine

mcp = FastMCP("gossip-village")

_engine: GameEngine | None = None


def set_engine(engine: GameEngine | None) -> None:
    """Replace the active engine (used in tests)."""
    global _engine
    _engine = engine


def get_engine() -> GameEngine:
    if _engine is None:
        raise RuntimeError("No village loaded")
    return _engine


@mcp.tool()
def get_village_snapshot() -> dict:
    """Summarise the village: clock, objective, points left and each villager's state."""
    state = get_engine().state
    return {
        "day": state.day,
        "phase": state.phase,
        "mode": state.mode,
        "objective": state.objective.description if state.objective else None,
        "actionPoints": state.action_points,
        "outcome": state.outcome.model_dump(by_alias=True) if state.outcome else None,
        "villagers": [
            {
                "id": npc.id,
                "name": npc.name,
                "role": npc.role,
                "status": npc.status,
                "location": state.grid_map[npc.position.y][npc.position.x],
            }
            for npc in state.npcs
        ],
    }


@mcp.tool()
def lookup_villagers(names: list[str]) -> dict:
    """Look up villagers by name (case-insensitive) and return their full records."""
    wanted = {name.lower() for name in names}
    npcs = get_engine().state.npcs
    return {
        "villagers": [
            npc.model_dump(by_alias=True) for npc in npcs if npc.name.lower() in wanted
        ]
    }


@mcp.tool()
def list_intel() -> dict:
    """Return every intel card in collection order."""
    return {"intel": [card.model_dump(by_alias=True) for card in get_engine().state.intel]}


if __name__ == "__main__":
    import os
    from pathlib import Path

    from gossip_village.llm import EchoLLM
    from gossip_village.oracle import Oracle
    from gossip_village.storage import Storage

    store = Storage(Path(os.getenv("DATA_DIR", "data")))
    state = store.get_state(os.environ["SESSION_ID"])
    if state is None:
        raise SystemExit(f"Session {os.environ['SESSION_ID']!r} not found")
    set_engine(GameEngine(Oracle(EchoLLM()), state=state))
    mcp.run()
