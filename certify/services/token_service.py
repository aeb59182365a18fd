"""JWT access token validation (ES256).

certify-service does not log anyone in.  Tokens are minted by the
organization's identity provider and only verified here; the revoke
endpoint needs to know who is asking and which organization they act for.

Key management:
  - TOKEN_PUBLIC_KEY_PEM set: verify with that key; minting is disabled.
  - Otherwise (dev/test): an ephemeral EC key pair is generated on import
    and create_access_token() works, which is what tests and the demo
    script use.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta

import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from certify.core.config import SETTINGS

ALGORITHM = "ES256"
ISSUER = "certify-idp"
AUDIENCE = "certify-service"
ACCESS_TOKEN_TTL_MIN = 15

if SETTINGS.token_public_key_pem:
    _private_key: ec.EllipticCurvePrivateKey | None = None
    _public_key = serialization.load_pem_public_key(
        SETTINGS.token_public_key_pem.replace("\\n", "\n").encode("utf-8")
    )
else:
    _private_key = ec.generate_private_key(ec.SECP256R1())
    _public_key = _private_key.public_key()


def create_access_token(
    *,
    sub: str,
    roles: list[str] | None = None,
    org: str | None = None,
) -> str:
    """Build and sign a JWT access token (dev/test key only)."""
    if _private_key is None:
        raise RuntimeError("token minting is disabled when TOKEN_PUBLIC_KEY_PEM is set")
    now = datetime.now(UTC)
    payload: dict[str, object] = {
        "sub": sub,
        "iss": ISSUER,
        "aud": AUDIENCE,
        "exp": now + timedelta(minutes=ACCESS_TOKEN_TTL_MIN),
        "iat": now,
        "jti": str(uuid.uuid4()),
        "roles": roles or ["user"],
    }
    if org is not None:
        payload["org"] = org
    return jwt.encode(payload, _private_key, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Verify signature and claims, return the payload.

    Pins algorithm to ES256 to prevent alg:none and alg-switching attacks.

    Raises jwt.ExpiredSignatureError, jwt.InvalidTokenError on failure.
    """
    return jwt.decode(
        token,
        _public_key,
        algorithms=[ALGORITHM],
        issuer=ISSUER,
        audience=AUDIENCE,
        options={"require": ["sub", "exp", "iat", "jti"]},
    )
