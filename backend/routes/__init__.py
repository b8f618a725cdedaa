"""FastAPI API endpoints under /api.

Endpoint groups: settings (health, app config) and sessions (start game,
snapshot, player actions, undo, end phase, newspaper). Every session
endpoint is nested under /api/sessions/{session_id}/.
"""

from fastapi import APIRouter

from .sessions import router as sessions_router
from .settings import router as settings_router

router = APIRouter()
router.include_router(settings_router)
router.include_router(sessions_router)
