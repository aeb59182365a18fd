"""Canonicalization: raw upload bytes -> deterministic bytes to fingerprint.

Two uploads of "the same" certificate from different tools should hash
identically.  Each supported format has one canonical byte form:

  text : UTF-8, Unicode NFC, LF line endings, no trailing whitespace,
         no leading/trailing blank lines, exactly one final newline
  json : a JSON object with tool-added wrapper keys removed, strings in
         NFC, keys sorted, no insignificant whitespace
  x509 : the DER encoding of a PEM or DER X.509 certificate

Everything here is pure: no I/O, no clock, no randomness.  Anything that
does not parse raises FormatError before it can be fingerprinted.
"""

from __future__ import annotations

import json
import unicodedata
from collections.abc import Mapping
from typing import Any

from cryptography import x509
from cryptography.hazmat.primitives import serialization

from certify.core.errors import FormatError

SUPPORTED_FORMATS = ("text", "json", "x509")

# Keys that exporting tools stamp onto a JSON document without changing
# what it certifies.  Only stripped at the top level.
NON_SEMANTIC_JSON_KEYS = frozenset(
    {
        "$schema",
        "generated_at",
        "generator",
        "exported_at",
        "exporter",
        "tool",
        "tool_version",
    }
)

_COMMON_METADATA_KEYS = frozenset(
    {"issuer", "subject", "title", "description", "issued_on"}
)

# Closed set of recognized metadata keys per format.
METADATA_KEYS: dict[str, frozenset[str]] = {
    "text": _COMMON_METADATA_KEYS,
    "json": _COMMON_METADATA_KEYS,
    "x509": _COMMON_METADATA_KEYS | {"serial"},
}

MAX_METADATA_VALUE_LEN = 512

# Deeper documents are rejected before any recursive normalization.
MAX_JSON_DEPTH = 64


def canonicalize(
    raw: bytes, declared_format: str, *, max_bytes: int | None = None
) -> bytes:
    """Return the canonical byte form of `raw` under `declared_format`."""
    if declared_format not in SUPPORTED_FORMATS:
        raise FormatError(f"unsupported format {declared_format!r}")
    if not raw:
        raise FormatError("document is empty")
    if max_bytes is not None and len(raw) > max_bytes:
        raise FormatError(f"document exceeds {max_bytes} bytes")

    if declared_format == "text":
        return _canonical_text(raw)
    if declared_format == "json":
        return _canonical_json(raw)
    return _canonical_x509(raw)


def normalize_metadata(
    metadata: Mapping[str, str] | None, declared_format: str
) -> dict[str, str]:
    """Validate metadata against the format's key set; return it sorted by key."""
    if declared_format not in SUPPORTED_FORMATS:
        raise FormatError(f"unsupported format {declared_format!r}")
    allowed = METADATA_KEYS[declared_format]

    normalized: dict[str, str] = {}
    for key, value in (metadata or {}).items():
        if key not in allowed:
            raise FormatError(
                f"unrecognized metadata key {key!r} for format {declared_format!r}"
            )
        if not isinstance(value, str):
            raise FormatError(f"metadata value for {key!r} must be a string")
        value = unicodedata.normalize("NFC", value.strip())
        if not value:
            raise FormatError(f"metadata value for {key!r} is empty")
        if len(value) > MAX_METADATA_VALUE_LEN:
            raise FormatError(
                f"metadata value for {key!r} exceeds {MAX_METADATA_VALUE_LEN} chars"
            )
        normalized[key] = value
    return dict(sorted(normalized.items()))


# ---------------------------------------------------------------------------
# Per-format rules
# ---------------------------------------------------------------------------


def _decode_utf8(raw: bytes) -> str:
    try:
        text = raw.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise FormatError(f"document is not valid UTF-8: {exc.reason}") from None
    if "\x00" in text:
        raise FormatError("document contains NUL characters")
    return unicodedata.normalize("NFC", text)


def _canonical_text(raw: bytes) -> bytes:
    text = _decode_utf8(raw).replace("\r\n", "\n").replace("\r", "\n")
    lines = [line.rstrip() for line in text.split("\n")]

    while lines and not lines[0]:
        lines.pop(0)
    while lines and not lines[-1]:
        lines.pop()
    if not lines:
        raise FormatError("document has no content")

    return ("\n".join(lines) + "\n").encode("utf-8")


def _reject_constant(name: str) -> Any:
    raise FormatError(f"JSON constant {name} is not allowed")


def _unique_pairs(pairs: list[tuple[str, Any]]) -> dict[str, Any]:
    obj: dict[str, Any] = {}
    for key, value in pairs:
        key = unicodedata.normalize("NFC", key)
        if key in obj:
            raise FormatError(f"duplicate JSON key {key!r}")
        obj[key] = value
    return obj


def _nfc(value: Any) -> Any:
    if isinstance(value, str):
        return unicodedata.normalize("NFC", value)
    if isinstance(value, list):
        return [_nfc(v) for v in value]
    if isinstance(value, dict):
        return {k: _nfc(v) for k, v in value.items()}
    return value


def _depth(value: Any) -> int:
    deepest = 0
    stack = [(value, 1)]
    while stack:
        node, level = stack.pop()
        if isinstance(node, dict):
            children = node.values()
        elif isinstance(node, list):
            children = node
        else:
            continue
        deepest = max(deepest, level)
        if deepest > MAX_JSON_DEPTH:
            break
        stack.extend((child, level + 1) for child in children)
    return deepest


def _canonical_json(raw: bytes) -> bytes:
    text = _decode_utf8(raw)
    try:
        doc = json.loads(
            text, parse_constant=_reject_constant, object_pairs_hook=_unique_pairs
        )
    except json.JSONDecodeError as exc:
        raise FormatError(f"document is not valid JSON: {exc.msg}") from None
    except RecursionError:
        raise FormatError("JSON nesting too deep") from None

    if _depth(doc) > MAX_JSON_DEPTH:
        raise FormatError(f"JSON nesting exceeds {MAX_JSON_DEPTH} levels")

    if not isinstance(doc, dict):
        raise FormatError("JSON certificate must be an object")

    doc = {k: v for k, v in doc.items() if k not in NON_SEMANTIC_JSON_KEYS}
    if not doc:
        raise FormatError("JSON certificate has no semantic fields")

    return json.dumps(
        _nfc(doc),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    ).encode("utf-8")


def _canonical_x509(raw: bytes) -> bytes:
    try:
        if raw.lstrip().startswith(b"-----BEGIN"):
            cert = x509.load_pem_x509_certificate(raw.lstrip())
        else:
            cert = x509.load_der_x509_certificate(raw)
    except ValueError as exc:
        raise FormatError(f"document is not an X.509 certificate: {exc}") from None
    return cert.public_bytes(serialization.Encoding.DER)
