"""Liveness (``/health``) and readiness (``/ready``) probes."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Dict, Optional, Union

import redis
import redis.asyncio as aioredis
from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

RedisTarget = Union[redis.Redis, aioredis.Redis, str]

REDIS_PING_TIMEOUT = 1.0


def _now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def check_database_health(engine: Optional[Engine]) -> bool:
    if engine is None:
        return False
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError:
        return False
    return True


async def _ping(client) -> None:
    if isinstance(client, redis.Redis):
        await asyncio.to_thread(client.ping)
    else:
        await asyncio.wait_for(client.ping(), timeout=REDIS_PING_TIMEOUT)


async def check_redis_health(target: Optional[RedisTarget] = None) -> Optional[bool]:
    """None when Redis is not configured, otherwise whether it answered a PING."""
    if target is None:
        return None
    try:
        if isinstance(target, str):
            client = aioredis.from_url(target)
            try:
                await _ping(client)
            finally:
                await client.aclose()
        else:
            await _ping(target)
    except (redis.RedisError, OSError, asyncio.TimeoutError):
        return False
    return True


def create_health_router(
    service_name: str,
    database_engine: Optional[Engine] = None,
    redis_client: Optional[RedisTarget] = None,
) -> APIRouter:
    router = APIRouter(tags=["Health"])

    @router.get("/health")
    def health():
        return {"status": "ok", "service": service_name, "timestamp": _now()}

    @router.get("/ready")
    async def ready():
        """The database is required; Redis only counts when it is configured."""
        checks: Dict[str, Optional[bool]] = {
            "database": check_database_health(database_engine),
            "redis": await check_redis_health(redis_client),
        }
        is_ready = checks["database"] and checks["redis"] is not False
        return JSONResponse(
            status_code=status.HTTP_200_OK if is_ready else status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "ready" if is_ready else "not_ready",
                "service": service_name,
                "timestamp": _now(),
                "checks": checks,
            },
        )

    return router
