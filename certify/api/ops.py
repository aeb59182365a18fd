"""Operational endpoints: liveness, readiness and Prometheus scrape.

  /health (liveness): is the process alive?  Always 200; the body says
    which backends are degraded.  A 503 here would get the container
    restarted for an outage it cannot fix.

  /ready (readiness): can this instance serve traffic?  503 when a
    configured backend is unreachable.  PostgreSQL holds the Store and
    the Ledger, so without it nothing works; Redis holds the fingerprint
    locks, so without it every submission fails with 503.

  /metrics: Prometheus text exposition.  Restrict it at the ingress in
    production; verdict counts reveal how the registry is being used.
"""

from __future__ import annotations

import logging
from typing import Annotated

import redis.asyncio as aioredis
from fastapi import APIRouter, Depends, Request, Response, status
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from certify.api.dependencies import get_runtime
from certify.services.engine import CertifyRuntime

logger = logging.getLogger(__name__)

router = APIRouter(tags=["ops"])


async def _check_database(runtime: CertifyRuntime) -> str:
    if runtime.session_factory is None:
        return "not_configured"
    try:
        async with runtime.session_factory() as session:
            await session.execute(text("SELECT 1"))
        return "ok"
    except (SQLAlchemyError, OSError):
        logger.warning("Database health check failed", exc_info=True)
        return "degraded"


async def _check_redis(client: aioredis.Redis | None) -> str:  # type: ignore[type-arg]
    if client is None:
        return "not_configured"
    try:
        await client.ping()  # type: ignore[misc]
        return "ok"
    except (aioredis.RedisError, OSError):
        logger.warning("Redis health check failed", exc_info=True)
        return "degraded"


async def _checks(request: Request, runtime: CertifyRuntime) -> dict[str, str]:
    return {
        "database": await _check_database(runtime),
        "redis": await _check_redis(getattr(request.app.state, "redis", None)),
    }


@router.get("/health")
async def health(
    request: Request,
    runtime: Annotated[CertifyRuntime, Depends(get_runtime)],
) -> dict:
    checks = await _checks(request, runtime)
    overall = "degraded" if "degraded" in checks.values() else "ok"
    return {"status": overall, "checks": checks}


@router.get("/ready")
async def ready(
    request: Request,
    runtime: Annotated[CertifyRuntime, Depends(get_runtime)],
) -> Response:
    checks = await _checks(request, runtime)
    if "degraded" in checks.values():
        return Response(status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
    return Response(status_code=status.HTTP_200_OK)


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
