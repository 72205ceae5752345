from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from app.config import get_settings
from app.core.app_state import AppState, get_app_state
from app.db import get_db

router = APIRouter(
    tags=["system"],
    responses={404: {"description": "Not found"}},
)


@router.get("/health")
def health(
    db: Session = Depends(get_db),
    state: AppState = Depends(get_app_state),
) -> dict:
    """Liveness plus a database round trip and the transport count."""
    s = get_settings()
    database = "ok"
    try:
        db.execute(text("SELECT 1"))
    except Exception:
        database = "unavailable"
    return {
        "status": "ok" if database == "ok" else "degraded",
        "app": s.app_name,
        "environment": s.environment,
        "database": database,
        "connected_transports": len(state.connections),
        "open_web_sessions": len(state.web_hub),
    }
