"""Demo: issue → verify → tamper → revoke, using FastAPI TestClient.

Run with:
    python scripts/demo_certificate_flow.py
"""

from __future__ import annotations

import base64

from fastapi.testclient import TestClient

from certify.main import create_app
from certify.services import token_service

ISSUER = "University of Example"
DIPLOMA = (
    "University of Example\n"
    "This certifies that Ada Lovelace\n"
    "has completed the degree of Bachelor of Science.\n"
)


def _b64(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def main() -> None:
    client = TestClient(create_app())

    # ── Step 1: submit ──────────────────────────────────────────────
    r = client.post(
        "/v1/certificates",
        json={"content_b64": _b64(DIPLOMA), "format": "text", "metadata": {"issuer": ISSUER}},
    )
    vid = r.json()["verification_id"]
    print(f"1. POST /v1/certificates          → {r.status_code}  id={vid}")

    # ── Step 2: same document, Windows line endings ─────────────────
    r = client.post(
        "/v1/certificates",
        json={"content_b64": _b64(DIPLOMA.replace("\n", "\r\n")), "format": "text"},
    )
    print(f"2. POST (CRLF copy)               → {r.status_code}  {r.json()['status']}")
    assert r.json()["verification_id"] == vid

    # ── Step 3: verify by ID ────────────────────────────────────────
    r = client.get(f"/v1/certificates/{vid}/verify")
    print(f"3. GET  verify                    → {r.status_code}  {r.json()['verdict']}")

    # ── Step 4: verify a tampered copy ──────────────────────────────
    tampered = DIPLOMA.replace("Bachelor", "Doctor")
    r = client.post(f"/v1/certificates/{vid}/verify", json={"content_b64": _b64(tampered)})
    print(f"4. POST verify (tampered)         → {r.status_code}  {r.json()['verdict']}")

    # ── Step 5: revoke as the issuing organization ──────────────────
    token = token_service.create_access_token(sub="registrar", org=ISSUER)
    r = client.post(
        f"/v1/certificates/{vid}/revoke",
        headers={"Authorization": f"Bearer {token}"},
    )
    print(f"5. POST revoke                    → {r.status_code}  {r.json()['status']}")

    # ── Step 6: verify again ────────────────────────────────────────
    r = client.post(f"/v1/certificates/{vid}/verify", json={"content_b64": _b64(DIPLOMA)})
    print(f"6. POST verify (original)         → {r.status_code}  {r.json()['verdict']}")

    # ── Step 7: audit trail ─────────────────────────────────────────
    r = client.get(f"/v1/certificates/{vid}/history")
    kinds = [e["kind"] for e in r.json()]
    print(f"7. GET  history                   → {r.status_code}  {kinds}")


if __name__ == "__main__":
    main()
