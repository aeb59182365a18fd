"""Public verification ID minting.

IDs must not reveal the fingerprint, and two registrations of identical
content must not be linkable from the IDs alone.  So an ID is a keyed,
salted, one-way function of the fingerprint:

  HMAC-SHA256(secret, digest || sequence || 16 random bytes)[:16]

rendered as unpadded URL-safe base64 (22 characters, 128 bits).
The binding to the fingerprint lives in the ledger, not in the ID.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import re
import secrets

from certify.services.fingerprint import Fingerprint

ID_BYTES = 16
_ID_PATTERN = re.compile(r"[A-Za-z0-9_-]{22}")


def mint_verification_id(secret: bytes, fingerprint: Fingerprint, sequence: int) -> str:
    salt = secrets.token_bytes(16)
    mac = hmac.new(
        secret,
        fingerprint.digest + sequence.to_bytes(8, "big") + salt,
        hashlib.sha256,
    ).digest()
    return base64.urlsafe_b64encode(mac[:ID_BYTES]).rstrip(b"=").decode("ascii")


def is_well_formed(verification_id: str) -> bool:
    """Cheap shape check before touching storage."""
    return _ID_PATTERN.fullmatch(verification_id) is not None
