import pytest
from fastapi.testclient import TestClient

from app.core.app_state import AppState
from app.core.routing import Router
from app.db import get_db, get_session_factory
from app.main import create_app


@pytest.fixture
def app_state(clock, assistant):
    return AppState(
        router=Router(assistant_factory=lambda db: assistant, clock=clock),
        redis_client=None,
    )


@pytest.fixture
def client(db, session_factory, app_state):
    """Client with db override and a test application state."""
    app = create_app(testing=True, state=app_state)

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
