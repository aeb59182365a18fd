from __future__ import annotations

import enum
from dataclasses import dataclass, field


class VerdictKind(str, enum.Enum):
    AUTHENTIC = "authentic"  # ID is registered and active
    MATCH = "match"  # presented content is exactly what was registered
    MISMATCH = "mismatch"  # presented content differs from the registration
    REVOKED = "revoked"
    UNKNOWN = "unknown"
    INCONSISTENT = "inconsistent"  # ledger binding without a Store record
    DIGEST_VERSION_MISMATCH = "digest_version_mismatch"


@dataclass(frozen=True, slots=True)
class Verdict:
    kind: VerdictKind
    verification_id: str
    metadata: dict[str, str] = field(default_factory=dict)
    issued_at: int | None = None
    revoked_at: int | None = None

    @property
    def is_positive(self) -> bool:
        return self.kind in (VerdictKind.AUTHENTIC, VerdictKind.MATCH)
