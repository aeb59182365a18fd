"""Versioned content fingerprints.

A fingerprint is `(version, digest)`.  The version names the hash
algorithm, so an algorithm upgrade adds a new version instead of silently
reinterpreting stored digests.  Old versions can be retired through
configuration; verification then refuses to re-derive under them.
"""

from __future__ import annotations

import hashlib
import hmac
from dataclasses import dataclass

from certify.core.errors import DigestVersionError

# version -> hashlib algorithm name.  Append only; never renumber.
ALGORITHMS: dict[int, str] = {
    1: "sha256",
    2: "sha3_256",
}

CURRENT_VERSION = 1


@dataclass(frozen=True, slots=True)
class Fingerprint:
    version: int
    digest: bytes

    @property
    def algorithm(self) -> str:
        try:
            return ALGORITHMS[self.version]
        except KeyError:
            raise DigestVersionError(
                f"unknown digest version {self.version}"
            ) from None

    @property
    def hex(self) -> str:
        return self.digest.hex()

    @property
    def key(self) -> str:
        """Storage key, e.g. ``v1:9f86d0…``."""
        return f"v{self.version}:{self.hex}"

    def label(self) -> str:
        """Short form that is safe to put in logs."""
        return f"v{self.version}:{self.hex[:12]}"

    def matches(self, other: Fingerprint) -> bool:
        return self.version == other.version and hmac.compare_digest(
            self.digest, other.digest
        )

    @staticmethod
    def parse(key: str) -> Fingerprint:
        prefix, sep, hex_digest = key.partition(":")
        if not sep or not prefix.startswith("v"):
            raise ValueError(f"malformed fingerprint key {key!r}")
        try:
            version = int(prefix[1:])
            digest = bytes.fromhex(hex_digest)
        except ValueError:
            raise ValueError(f"malformed fingerprint key {key!r}") from None
        return Fingerprint(version=version, digest=digest)


def fingerprint(canonical: bytes, version: int = CURRENT_VERSION) -> Fingerprint:
    """Digest canonical bytes under the algorithm named by `version`."""
    try:
        algorithm = ALGORITHMS[version]
    except KeyError:
        raise DigestVersionError(f"unknown digest version {version}") from None
    return Fingerprint(version=version, digest=hashlib.new(algorithm, canonical).digest())
