from __future__ import annotations

import base64
import datetime
import sys
from pathlib import Path

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID
from fastapi import FastAPI
from fastapi.testclient import TestClient

from certify.core.config import Settings
from certify.main import create_app
from certify.services import token_service
from certify.services.engine import CertifyEngine, CertifyRuntime

# Ensure repo root is on sys.path so `import certify` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

TEST_ID_SECRET = "test-verification-id-secret"

DIPLOMA_TEXT = (
    "University of Example\n"
    "This certifies that Ada Lovelace\n"
    "has completed the degree of Bachelor of Science.\n"
)


def make_settings(**overrides: object) -> Settings:
    """In-memory settings with a fixed ID secret; override any field."""
    values: dict[str, object] = {
        "app_env": "test",
        "log_level": "info",
        "log_json": False,
        "port": 8000,
        "database_url": None,
        "redis_url": None,
        "verification_id_secret": TEST_ID_SECRET,
    }
    values.update(overrides)
    return Settings(**values)  # type: ignore[arg-type]


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def app(settings: Settings) -> FastAPI:
    """A fresh application per test: no state leaks between tests."""
    return create_app(settings)


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


@pytest.fixture
def runtime(app: FastAPI) -> CertifyRuntime:
    return app.state.runtime


@pytest.fixture
def engine(settings: Settings) -> CertifyEngine:
    """A standalone in-memory engine for service-level tests."""
    return CertifyRuntime(settings).memory_engine()


def mint_token(
    username: str = "test-user",
    roles: list[str] | None = None,
    org: str | None = None,
) -> str:
    """Create a valid ES256 JWT for testing."""
    return token_service.create_access_token(sub=username, roles=roles, org=org)


def auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def b64(data: bytes | str) -> str:
    if isinstance(data, str):
        data = data.encode("utf-8")
    return base64.b64encode(data).decode("ascii")


@pytest.fixture
def token() -> str:
    """Token with default role (user) and no organization."""
    return mint_token()


@pytest.fixture
def admin_token() -> str:
    return mint_token(username="test-admin", roles=["admin"])


@pytest.fixture
def issuer_token() -> str:
    """Token for a member of the issuing organization used in DIPLOMA uploads."""
    return mint_token(username="registrar", org="University of Example")


def make_certificate(common_name: str = "Ada Lovelace") -> x509.Certificate:
    """Self-signed X.509 certificate for x509-format uploads."""
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    now = datetime.datetime.now(datetime.UTC)
    return (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now)
        .not_valid_after(now + datetime.timedelta(days=365))
        .sign(key, hashes.SHA256())
    )
