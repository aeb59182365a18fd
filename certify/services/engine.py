"""Engine wiring: one Store, one Ledger and the services built on them.

There is no module-level engine.  create_app() owns a CertifyRuntime, and
the runtime hands out a CertifyEngine per request:

  - in-memory mode: the same engine every time (state lives in the runtime)
  - PostgreSQL mode: a fresh engine bound to the request's session, so
    Store and Ledger writes for one request commit or roll back together

Tests build their own runtime, so two engines never share state.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from certify.core.config import Settings
from certify.core.errors import StorageError
from certify.repos.certificate_store import CertificateStore, InMemoryCertificateStore
from certify.repos.issuance_ledger import InMemoryIssuanceLedger, IssuanceLedger
from certify.repos.pg_certificate_store import PgCertificateStore
from certify.repos.pg_issuance_ledger import PgIssuanceLedger
from certify.services.fingerprint_lock import FingerprintLock, InMemoryFingerprintLock
from certify.services.issuance_service import IssuanceService
from certify.services.issuer_directory import IssuerDirectory
from certify.services.verification_service import VerificationService


@dataclass(frozen=True, slots=True)
class CertifyEngine:
    store: CertificateStore
    ledger: IssuanceLedger
    issuance: IssuanceService
    verification: VerificationService
    issuers: IssuerDirectory
    session: AsyncSession | None = None

    async def commit(self) -> None:
        """Make this request's writes durable.

        Write handlers await this before returning, so a failed commit
        reaches the client as StorageError instead of a success response.
        In-memory writes are durable as soon as they return.
        """
        if self.session is None:
            return
        try:
            await self.session.commit()
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise StorageError("transaction commit failed") from exc


def build_engine(
    store: CertificateStore,
    ledger: IssuanceLedger,
    locks: FingerprintLock,
    settings: Settings,
    *,
    session: AsyncSession | None = None,
) -> CertifyEngine:
    return CertifyEngine(
        store=store,
        ledger=ledger,
        session=session,
        issuance=IssuanceService(
            store,
            ledger,
            locks,
            digest_version=settings.digest_version,
            max_document_bytes=settings.max_document_bytes,
        ),
        verification=VerificationService(
            store,
            ledger,
            retired_digest_versions=settings.retired_digest_versions,
            max_document_bytes=settings.max_document_bytes,
        ),
        issuers=IssuerDirectory(store, ledger),
    )


class CertifyRuntime:
    """Owns the backends for one application instance."""

    def __init__(
        self,
        settings: Settings,
        *,
        locks: FingerprintLock | None = None,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
    ) -> None:
        self.settings = settings
        self.locks = locks or InMemoryFingerprintLock()
        self.session_factory = session_factory
        self._id_secret = settings.verification_id_secret.encode("utf-8")
        self._memory_engine: CertifyEngine | None = None
        if session_factory is None:
            self._memory_engine = build_engine(
                InMemoryCertificateStore(),
                InMemoryIssuanceLedger(self._id_secret),
                self.locks,
                settings,
            )

    @property
    def uses_database(self) -> bool:
        return self.session_factory is not None

    def memory_engine(self) -> CertifyEngine:
        if self._memory_engine is None:
            raise RuntimeError("runtime is configured for PostgreSQL")
        return self._memory_engine

    def engine_for(self, session: AsyncSession) -> CertifyEngine:
        return build_engine(
            PgCertificateStore(session),
            PgIssuanceLedger(session, self._id_secret),
            self.locks,
            self.settings,
            session=session,
        )
