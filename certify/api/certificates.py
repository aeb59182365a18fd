"""Certificate submission, verification and revocation endpoints.

- POST /v1/certificates                     : submit a document, get its verification ID
- GET  /v1/certificates/{id}/verify         : is this ID registered and active?
- POST /v1/certificates/{id}/verify         : does this document match this ID?
- POST /v1/certificates/{id}/revoke         : revoke (issuing org or admin)
- GET  /v1/certificates/{id}/history        : public ledger trail for one ID

Verification endpoints are public: a third party holding only the ID
(or the ID plus the document) must be able to check it without an account.

Document bytes travel as base64 in JSON.  Upload transport (multipart,
resumable uploads) belongs to the front-end gateway.
"""

from __future__ import annotations

import base64
import binascii
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from certify.api.dependencies import get_engine, may_revoke, require_user
from certify.core.errors import FormatError
from certify.models.ledger import RevokeOutcome
from certify.models.principal import Principal
from certify.models.verdict import Verdict, VerdictKind
from certify.services.engine import CertifyEngine

router = APIRouter(prefix="/v1/certificates", tags=["certificates"])


class CertificateSubmitIn(BaseModel):
    content_b64: str
    format: str
    metadata: dict[str, str] = Field(default_factory=dict)


class CertificateSubmitOut(BaseModel):
    verification_id: str
    status: str  # issued|duplicate


class VerifyIn(BaseModel):
    content_b64: str
    format: str | None = None  # defaults to the format it was registered under


class VerdictOut(BaseModel):
    verification_id: str
    verdict: str
    valid: bool
    metadata: dict[str, str]
    issued_at: int | None
    revoked_at: int | None


class RevokeOut(BaseModel):
    verification_id: str
    status: str


class LedgerEntryOut(BaseModel):
    sequence: int
    kind: str
    recorded_at: int
    prev_hash: str
    entry_hash: str


# Verdicts that are not a plain 200.
_VERDICT_STATUS = {
    VerdictKind.UNKNOWN: status.HTTP_404_NOT_FOUND,
    VerdictKind.INCONSISTENT: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def _decode_content(content_b64: str) -> bytes:
    try:
        return base64.b64decode(content_b64, validate=True)
    except (binascii.Error, ValueError):
        raise FormatError("content_b64 is not valid base64") from None


def _verdict_response(verdict: Verdict) -> JSONResponse:
    body = VerdictOut(
        verification_id=verdict.verification_id,
        verdict=verdict.kind.value,
        valid=verdict.is_positive,
        metadata=verdict.metadata,
        issued_at=verdict.issued_at,
        revoked_at=verdict.revoked_at,
    )
    return JSONResponse(
        status_code=_VERDICT_STATUS.get(verdict.kind, status.HTTP_200_OK),
        content=body.model_dump(),
    )


@router.post(
    "",
    response_model=CertificateSubmitOut,
    status_code=status.HTTP_201_CREATED,
)
async def submit_certificate(
    body: CertificateSubmitIn,
    response: Response,
    engine: Annotated[CertifyEngine, Depends(get_engine)],
) -> CertificateSubmitOut:
    """Register a certificate document.

    201 + status=issued on first sighting of the content; 200 +
    status=duplicate (same verification ID) on every later upload.
    """
    result = await engine.issuance.submit_certificate(
        _decode_content(body.content_b64), body.format, body.metadata
    )
    await engine.commit()
    if result.is_duplicate:
        response.status_code = status.HTTP_200_OK
    return CertificateSubmitOut(
        verification_id=result.verification_id, status=result.status
    )


@router.get("/{verification_id}/verify", response_model=VerdictOut)
async def verify_by_id(
    verification_id: str,
    engine: Annotated[CertifyEngine, Depends(get_engine)],
) -> JSONResponse:
    verdict = await engine.verification.verify_by_id(verification_id)
    return _verdict_response(verdict)


@router.post("/{verification_id}/verify", response_model=VerdictOut)
async def verify_document(
    verification_id: str,
    body: VerifyIn,
    engine: Annotated[CertifyEngine, Depends(get_engine)],
) -> JSONResponse:
    verdict = await engine.verification.verify_by_id(
        verification_id,
        presented=_decode_content(body.content_b64),
        declared_format=body.format,
    )
    return _verdict_response(verdict)


@router.post("/{verification_id}/revoke", response_model=RevokeOut)
async def revoke_certificate(
    verification_id: str,
    principal: Annotated[Principal, Depends(require_user)],
    engine: Annotated[CertifyEngine, Depends(get_engine)],
) -> RevokeOut:
    resolution = await engine.ledger.resolve(verification_id)
    record = (
        await engine.store.get(resolution.fingerprint) if resolution is not None else None
    )
    outcome = await engine.issuance.revoke(
        verification_id, permitted=may_revoke(principal, record)
    )
    await engine.commit()

    if outcome is RevokeOutcome.NOT_FOUND:
        raise HTTPException(status_code=404, detail="verification ID not found")
    if outcome is RevokeOutcome.ALREADY_REVOKED:
        raise HTTPException(status_code=409, detail="already revoked")
    return RevokeOut(verification_id=verification_id, status=outcome.value)


@router.get("/{verification_id}/history", response_model=list[LedgerEntryOut])
async def certificate_history(
    verification_id: str,
    engine: Annotated[CertifyEngine, Depends(get_engine)],
) -> list[LedgerEntryOut]:
    entries = await engine.ledger.history(verification_id)
    if not entries:
        raise HTTPException(status_code=404, detail="verification ID not found")
    return [
        LedgerEntryOut(
            sequence=e.sequence,
            kind=e.kind.value,
            recorded_at=e.recorded_at,
            prev_hash=e.prev_hash,
            entry_hash=e.entry_hash,
        )
        for e in entries
    ]
