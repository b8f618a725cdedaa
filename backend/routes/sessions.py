"""Game session endpoints: start, snapshot, actions, undo, phase advance."""

from fastapi import APIRouter, HTTPException

from backend import sessions
from gossip_village.engine import GameEngine
from gossip_village.models import GameError

from .models import ActionBody, StartGameBody

router = APIRouter()


def _engine_or_404(session_id: str) -> GameEngine:
    engine = sessions.get_engine(session_id)
    if engine is None:
        raise HTTPException(404, "Session not found")
    return engine


def _state(engine: GameEngine) -> dict:
    return engine.state.model_dump(by_alias=True)


def _raise_on_error(engine: GameEngine, before: GameError | None = None) -> None:
    """Turn an error raised by this request into a 502. A stale error is left alone."""
    error = engine.state.error
    if error is not None and error is not before:
        raise HTTPException(502, {"kind": error.kind, "message": error.message})


@router.get("/sessions")
async def list_sessions():
    """List all session ids."""
    return sessions.list_sessions()


@router.post("/sessions", status_code=201)
async def start_session(body: StartGameBody):
    """Generate a new village and start a game in the chosen mode."""
    session_id, engine = sessions.create_session()
    await engine.start_game(body.mode)
    if engine.state.error is not None:
        sessions.delete_session(session_id)
        _raise_on_error(engine)
    sessions.save(session_id)
    return {"sessionId": session_id, "state": _state(engine)}


@router.get("/sessions/{session_id}")
async def get_session(session_id: str):
    """Get the full state of a session."""
    return _state(_engine_or_404(session_id))


@router.delete("/sessions/{session_id}")
async def delete_session(session_id: str):
    """Delete a session."""
    if not sessions.delete_session(session_id):
        raise HTTPException(404, "Session not found")
    return {"ok": True}


@router.post("/sessions/{session_id}/actions")
async def perform_action(session_id: str, body: ActionBody):
    """Queue a player action, or interrogate a villager immediately."""
    engine = _engine_or_404(session_id)
    if engine.state.is_simulating:
        raise HTTPException(409, "A simulation is already running")
    before = engine.state.error
    interaction = await engine.perform_action(body.type, body.content, body.target_id)
    sessions.save(session_id)
    _raise_on_error(engine, before)
    return {
        "state": _state(engine),
        "interaction": interaction.model_dump(by_alias=True) if interaction else None,
    }


@router.delete("/sessions/{session_id}/actions/last")
async def undo_last_action(session_id: str):
    """Undo the most recent queued action and refund its points."""
    engine = _engine_or_404(session_id)
    engine.undo_last_action()
    sessions.save(session_id)
    return _state(engine)


@router.post("/sessions/{session_id}/end-phase")
async def end_phase(session_id: str):
    """Send queued actions to the oracle, merge its reply and advance time."""
    engine = _engine_or_404(session_id)
    if engine.state.is_simulating:
        raise HTTPException(409, "A simulation is already running")
    before = engine.state.error
    await engine.end_phase()
    sessions.save(session_id)
    _raise_on_error(engine, before)
    return _state(engine)


@router.post("/sessions/{session_id}/close-newspaper")
async def close_newspaper(session_id: str):
    """Dismiss the current newspaper."""
    engine = _engine_or_404(session_id)
    engine.close_newspaper()
    sessions.save(session_id)
    return _state(engine)
