from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.orm import Session

from app.db import SessionLocal


@contextmanager
def db_session() -> Iterator[Session]:
    """Session scope for workers and background tasks outside a request."""
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
