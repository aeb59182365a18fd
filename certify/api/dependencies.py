from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from typing import Annotated

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.exc import SQLAlchemyError

from certify.core.errors import StorageError
from certify.models.certificate import CertificateRecord
from certify.models.principal import Principal
from certify.services import token_service
from certify.services.engine import CertifyEngine, CertifyRuntime

logger = logging.getLogger(__name__)

# Tokens come from the organization's identity provider; the URL is only
# used by the OpenAPI docs.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/oauth/token")


def get_runtime(request: Request) -> CertifyRuntime:
    return request.app.state.runtime


async def get_engine(
    runtime: Annotated[CertifyRuntime, Depends(get_runtime)],
) -> AsyncGenerator[CertifyEngine, None]:
    """Yield a request-scoped engine.

    In PostgreSQL mode the Store and Ledger share one session.  Write
    handlers commit it through `engine.commit()` before they return; work
    left uncommitted is rolled back when the session closes, and any
    exception (cancellation included) rolls back explicitly.
    """
    if runtime.session_factory is None:
        yield runtime.memory_engine()
        return

    async with runtime.session_factory() as session:
        try:
            yield runtime.engine_for(session)
        except SQLAlchemyError as exc:
            await session.rollback()
            raise StorageError("request transaction failed") from exc
        except Exception:
            await session.rollback()
            raise


def require_user(
    raw_token: Annotated[str, Depends(oauth2_scheme)],
) -> Principal:
    """Extract and validate the JWT bearer token. Returns a Principal."""
    try:
        claims = token_service.decode_access_token(raw_token)
    except jwt.ExpiredSignatureError:
        logger.warning("Expired token rejected")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token expired",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None
    except jwt.InvalidTokenError as e:
        logger.warning("Invalid token rejected: %s", e)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None

    principal = Principal(
        user_id=claims["sub"],
        roles=frozenset(claims.get("roles", [])),
        org=claims.get("org"),
    )
    logger.debug(
        "Token validated for user=%s roles=%s org=%s",
        principal.user_id,
        principal.roles,
        principal.org,
    )
    return principal


def require_role(role: str):
    """Dependency factory: demand a specific platform role.

    Usage: Depends(require_role("admin"))
    """

    def _guard(
        principal: Annotated[Principal, Depends(require_user)],
    ) -> Principal:
        if not principal.has_role(role):
            logger.warning(
                "Access denied: user=%s missing role=%s",
                principal.user_id,
                role,
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return principal

    return _guard


def may_revoke(principal: Principal, record: CertificateRecord | None) -> bool:
    """Revocation policy: platform admins, or the issuing organization.

    The issuing organization is the `issuer` metadata recorded at upload.
    If the payload is gone there is nothing to compare against, so only
    admins may revoke.
    """
    if principal.is_platform_admin():
        return True
    if record is None or principal.org is None:
        return False
    return record.metadata.get("issuer") == principal.org
