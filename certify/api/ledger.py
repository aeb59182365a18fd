"""Ledger-wide endpoints.

- GET /v1/ledger/audit : recompute the hash chain (platform admins only)
- GET /v1/stats        : public registry counts
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from certify.api.dependencies import get_engine, require_role
from certify.models.principal import Principal
from certify.services.engine import CertifyEngine

router = APIRouter(tags=["ledger"])


class ChainAuditOut(BaseModel):
    ok: bool
    length: int
    broken_at: int | None


class StatsOut(BaseModel):
    certificates: int
    issued: int
    revoked: int
    active: int


@router.get("/v1/ledger/audit", response_model=ChainAuditOut)
async def audit_ledger(
    _admin: Annotated[Principal, Depends(require_role("admin"))],
    engine: Annotated[CertifyEngine, Depends(get_engine)],
) -> ChainAuditOut:
    """Walk every ledger entry and check sequence and hash links.

    Cost is linear in ledger length; intended for scheduled audits,
    not per-request use.
    """
    result = await engine.issuance.audit_ledger()
    return ChainAuditOut(ok=result.ok, length=result.length, broken_at=result.broken_at)


@router.get("/v1/stats", response_model=StatsOut)
async def stats(
    engine: Annotated[CertifyEngine, Depends(get_engine)],
) -> StatsOut:
    ledger_stats = await engine.ledger.stats()
    return StatsOut(
        certificates=await engine.store.count(),
        issued=ledger_stats.issued,
        revoked=ledger_stats.revoked,
        active=ledger_stats.issued - ledger_stats.revoked,
    )
