"""FastAPI application factory."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi_pagination import add_pagination

from app.config import get_settings
from app.core.app_state import AppState
from app.infra.logging_config import LoggingConfig, get_logger
from app.routers import sessions_router, system, web_chat, webhooks


def create_app(testing: bool = False, state: Optional[AppState] = None) -> FastAPI:
    settings = get_settings()
    LoggingConfig()
    logger = get_logger("main")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "chatdesk", None) is None:
            app.state.chatdesk = AppState()
        logger.info("%s started (environment=%s)", settings.app_name, settings.environment)
        yield
        app.state.chatdesk.close()

    app = FastAPI(
        title=settings.app_name,
        lifespan=lifespan,
        debug=testing,
    )
    if state is not None:
        app.state.chatdesk = state

    app.include_router(webhooks.router)
    app.include_router(web_chat.router)
    app.include_router(sessions_router.sessions_router)
    app.include_router(system.router)
    add_pagination(app)
    return app


app = create_app()
