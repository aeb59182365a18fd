from __future__ import annotations

import os
import secrets
from dataclasses import dataclass
from typing import Literal

from certify.services.fingerprint import ALGORITHMS

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]

_DEFAULT_MAX_DOCUMENT_BYTES = 5 * 1024 * 1024


def _getenv(name: str, default: str) -> str:
    return os.environ.get(name, default).strip()


def _parse_int(name: str, raw: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from None


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    log_json: bool
    port: int
    database_url: str | None
    redis_url: str | None
    digest_version: int = 1
    retired_digest_versions: frozenset[int] = frozenset()
    verification_id_secret: str = ""
    max_document_bytes: int = _DEFAULT_MAX_DOCUMENT_BYTES
    lock_timeout_seconds: float = 10.0
    token_public_key_pem: str | None = None

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"


def load_settings() -> Settings:
    app_env_raw = _getenv("APP_ENV", "dev").lower()
    log_level_raw = _getenv("LOG_LEVEL", "info").lower()
    log_json_raw = _getenv("LOG_JSON", "false").lower()
    port_raw = _getenv("PORT", "8000")

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    port = _parse_int("PORT", port_raw)

    digest_version = _parse_int("DIGEST_VERSION", _getenv("DIGEST_VERSION", "1"))
    if digest_version not in ALGORITHMS:
        raise ValueError(
            f"DIGEST_VERSION must be one of {sorted(ALGORITHMS)} (got {digest_version})"
        )

    retired_raw = _getenv("RETIRED_DIGEST_VERSIONS", "")
    retired = frozenset(
        _parse_int("RETIRED_DIGEST_VERSIONS", part.strip())
        for part in retired_raw.split(",")
        if part.strip()
    )
    if digest_version in retired:
        raise ValueError(
            f"DIGEST_VERSION {digest_version} is listed in RETIRED_DIGEST_VERSIONS"
        )

    id_secret = _getenv("VERIFICATION_ID_SECRET", "")
    if not id_secret:
        if app_env_raw == "prod":
            raise ValueError("VERIFICATION_ID_SECRET is required when APP_ENV=prod")
        # Dev/test: IDs are persisted once minted, so a per-process key is fine.
        id_secret = secrets.token_hex(32)

    max_document_bytes = _parse_int(
        "MAX_DOCUMENT_BYTES",
        _getenv("MAX_DOCUMENT_BYTES", str(_DEFAULT_MAX_DOCUMENT_BYTES)),
    )
    if max_document_bytes <= 0:
        raise ValueError("MAX_DOCUMENT_BYTES must be positive")

    lock_timeout_raw = _getenv("LOCK_TIMEOUT_SECONDS", "10")
    try:
        lock_timeout = float(lock_timeout_raw)
    except ValueError:
        raise ValueError(
            f"LOCK_TIMEOUT_SECONDS must be a number (got {lock_timeout_raw!r})"
        ) from None

    database_url = _getenv("DATABASE_URL", "") or None
    redis_url = _getenv("REDIS_URL", "") or None
    token_public_key_pem = _getenv("TOKEN_PUBLIC_KEY_PEM", "") or None

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=log_json_raw in ("1", "true", "yes"),
        port=port,
        database_url=database_url,
        redis_url=redis_url,
        digest_version=digest_version,
        retired_digest_versions=retired,
        verification_id_secret=id_secret,
        max_document_bytes=max_document_bytes,
        lock_timeout_seconds=lock_timeout,
        token_public_key_pem=token_public_key_pem,
    )


# Read once at import; create_app() also accepts an explicit Settings.
SETTINGS = load_settings()
