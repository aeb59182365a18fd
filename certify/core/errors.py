"""Domain error taxonomy.

Only genuine faults are exceptions.  Expected outcomes (an unknown
verification ID, a second revoke, a duplicate upload) are return values:
see RevokeOutcome, Verdict and SubmissionResult.

  FormatError           : input cannot be canonicalized; never fingerprinted
  StorageError          : durable backend failed; retryable, never "not found"
  RevocationNotPermitted: the auth/policy decision said no
  DigestVersionError    : a fingerprint names an algorithm we don't know
"""

from __future__ import annotations


class CertifyError(Exception):
    """Base class for all certify-service errors."""


class FormatError(CertifyError, ValueError):
    """Raw bytes or metadata are not a supported certificate format."""


class StorageError(CertifyError):
    """The Store, Ledger or lock backend is unavailable or failed mid-call."""

    retryable = True


class RevocationNotPermitted(CertifyError):
    pass


class DigestVersionError(CertifyError, ValueError):
    pass
