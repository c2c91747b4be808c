from __future__ import annotations


def test_liveness(client) -> None:
    response = client.get("/api/healthz")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_readiness_checks_database(client) -> None:
    response = client.get("/api/readyz")

    assert response.status_code == 200
    assert response.json()["status"] == "ready"
