from __future__ import annotations

from typing import Optional

import redis
from fastapi import Request

from app.config import get_settings
from app.core.registry import ConnectionRegistry
from app.core.routing import Router
from app.core.web_hub import WebSessionHub
from app.utils.rate_limit import InboundRateLimiter
from app.workers.llm import build_llm_runner_from_env


class AppState:
    """
    Long-lived state of one API process: transport handles, open widget
    sockets, the router (with its per-user locks) and the inbound rate limiter.
    Created in the app lifespan and attached to `app.state`.
    """

    def __init__(
        self,
        router: Optional[Router] = None,
        redis_client: Optional[redis.Redis] = None,
    ) -> None:
        settings = get_settings()
        self.connections = ConnectionRegistry()
        self.web_hub = WebSessionHub()
        self.router = router or Router(llm=build_llm_runner_from_env())
        limit = settings.rate_limit_per_user_per_minute
        if redis_client is None and limit:
            redis_client = redis.Redis(
                host=settings.redis_host, port=settings.redis_port
            )
        self.rate_limiter = InboundRateLimiter(redis_client, limit)

    def close(self) -> None:
        self.rate_limiter.close()


def get_app_state(request: Request) -> AppState:
    return request.app.state.chatdesk
