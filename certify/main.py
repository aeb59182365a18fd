from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from certify.api.certificates import router as certificates_router
from certify.api.issuers import router as issuers_router
from certify.api.ledger import router as ledger_router
from certify.api.ops import router as ops_router
from certify.core.config import SETTINGS, Settings
from certify.core.errors import FormatError, RevocationNotPermitted, StorageError
from certify.core.logging import setup_logging
from certify.db.engine import create_engine_and_sessions, lifespan_db
from certify.db.redis import create_redis, lifespan_redis
from certify.middleware.metrics import MetricsMiddleware
from certify.middleware.request_context import RequestContextMiddleware
from certify.services.engine import CertifyRuntime
from certify.services.fingerprint_lock import RedisFingerprintLock

logger = logging.getLogger(__name__)

RETRY_AFTER_SECONDS = "1"


async def _format_error_handler(_request: Request, exc: Exception) -> JSONResponse:
    logger.warning("Rejected input: %s", exc)
    return JSONResponse(
        status_code=422,
        content={"detail": str(exc)},
    )


async def _storage_error_handler(_request: Request, exc: Exception) -> JSONResponse:
    logger.error("Request failed on storage backend: %s", exc)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "storage unavailable, retry later"},
        headers={"Retry-After": RETRY_AFTER_SECONDS},
    )


async def _forbidden_handler(_request: Request, _exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_403_FORBIDDEN,
        content={"detail": "not permitted to revoke this certificate"},
    )


def create_app(settings: Settings = SETTINGS) -> FastAPI:
    """Build the application and the backends it owns.

    DATABASE_URL selects the PostgreSQL Store and Ledger; REDIS_URL selects
    cross-instance fingerprint locks.  Without them everything is in
    memory and local to this app instance.
    """
    engine, session_factory = (None, None)
    if settings.database_url:
        engine, session_factory = create_engine_and_sessions(settings.database_url)

    redis_client = create_redis(settings.redis_url) if settings.redis_url else None
    locks = (
        RedisFingerprintLock(redis_client, timeout=settings.lock_timeout_seconds)
        if redis_client is not None
        else None
    )

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
        # Teardown runs in reverse order: Redis first, then the database.
        async with lifespan_db(engine):
            async with lifespan_redis(redis_client):
                yield

    app = FastAPI(
        title="certify-service",
        lifespan=lifespan,
        docs_url="/docs" if settings.is_dev else None,
        redoc_url="/redoc" if settings.is_dev else None,
    )
    app.state.settings = settings
    app.state.redis = redis_client
    app.state.runtime = CertifyRuntime(
        settings, locks=locks, session_factory=session_factory
    )

    app.add_exception_handler(FormatError, _format_error_handler)
    app.add_exception_handler(StorageError, _storage_error_handler)
    app.add_exception_handler(RevocationNotPermitted, _forbidden_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Last-added runs first: RequestContext → Metrics → CORS → route handler.
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestContextMiddleware)

    app.include_router(ops_router)
    app.include_router(certificates_router)
    app.include_router(ledger_router)
    app.include_router(issuers_router)

    logger.info(
        "certify-service configured  env=%s storage=%s locks=%s digest=v%d",
        settings.app_env,
        "postgres" if session_factory is not None else "memory",
        "redis" if redis_client is not None else "local",
        settings.digest_version,
    )
    return app


# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

app = create_app()
