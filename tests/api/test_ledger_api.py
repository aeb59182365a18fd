from __future__ import annotations

import dataclasses

from fastapi import FastAPI
from fastapi.testclient import TestClient

from tests.conftest import auth, b64


def _issue(client: TestClient, text: str) -> str:
    resp = client.post(
        "/v1/certificates", json={"content_b64": b64(text), "format": "text"}
    )
    return resp.json()["verification_id"]


def test_stats_start_empty(client: TestClient) -> None:
    resp = client.get("/v1/stats")
    assert resp.status_code == 200
    assert resp.json() == {"certificates": 0, "issued": 0, "revoked": 0, "active": 0}


def test_stats_count_issued_and_revoked(client: TestClient, admin_token: str) -> None:
    vid = _issue(client, "Certificate A")
    _issue(client, "Certificate B")
    _issue(client, "Certificate B")  # duplicate
    client.post(f"/v1/certificates/{vid}/revoke", headers=auth(admin_token))

    assert client.get("/v1/stats").json() == {
        "certificates": 2,
        "issued": 2,
        "revoked": 1,
        "active": 1,
    }


def test_audit_requires_admin(client: TestClient, token: str) -> None:
    assert client.get("/v1/ledger/audit").status_code == 401
    assert client.get("/v1/ledger/audit", headers=auth(token)).status_code == 403


def test_audit_reports_intact_chain(client: TestClient, admin_token: str) -> None:
    vid = _issue(client, "Certificate A")
    _issue(client, "Certificate B")
    client.post(f"/v1/certificates/{vid}/revoke", headers=auth(admin_token))

    resp = client.get("/v1/ledger/audit", headers=auth(admin_token))
    assert resp.status_code == 200
    assert resp.json() == {"ok": True, "length": 3, "broken_at": None}


def test_audit_reports_tampered_chain(
    client: TestClient, app: FastAPI, admin_token: str
) -> None:
    _issue(client, "Certificate A")
    _issue(client, "Certificate B")
    log = app.state.runtime.memory_engine().ledger._log
    log[1] = dataclasses.replace(log[1], verification_id="B" * 22)

    resp = client.get("/v1/ledger/audit", headers=auth(admin_token))
    assert resp.json() == {"ok": False, "length": 2, "broken_at": 2}


def test_issuer_listing(client: TestClient, admin_token: str) -> None:
    body = {"format": "text", "metadata": {"issuer": "Uni A", "title": "BSc"}}
    first = client.post(
        "/v1/certificates", json={**body, "content_b64": b64("Certificate A")}
    ).json()["verification_id"]
    second = client.post(
        "/v1/certificates", json={**body, "content_b64": b64("Certificate B")}
    ).json()["verification_id"]
    _issue(client, "Certificate C")  # no issuer
    client.post(f"/v1/certificates/{second}/revoke", headers=auth(admin_token))

    resp = client.get("/v1/issuers/Uni A/certificates")
    assert resp.status_code == 200
    payload = resp.json()
    assert payload["issuer"] == "Uni A"
    assert payload["count"] == 2
    assert [(c["verification_id"], c["status"]) for c in payload["certificates"]] == [
        (first, "active"),
        (second, "revoked"),
    ]
    assert payload["certificates"][0]["title"] == "BSc"
    assert "fingerprint" not in payload["certificates"][0]


def test_issuer_listing_unknown_issuer_is_404(client: TestClient) -> None:
    assert client.get("/v1/issuers/Nobody/certificates").status_code == 404
