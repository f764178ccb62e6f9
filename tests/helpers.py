from __future__ import annotations

from fastapi.testclient import TestClient


def auth_header(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def signup_and_login(client: TestClient, email: str, password: str = "user-pass") -> str:
    response = client.post("/api/identity/signup", json={"email": email, "password": password})
    assert response.status_code == 201
    return login(client, email, password)


def bootstrap_and_login(client: TestClient, email: str = "root@example.com", password: str = "root-pass") -> str:
    response = client.post("/api/identity/bootstrap-admin", json={"email": email, "password": password})
    assert response.status_code == 201
    return login(client, email, password)


def login(client: TestClient, email: str, password: str) -> str:
    response = client.post("/api/identity/login", json={"email": email, "password": password})
    assert response.status_code == 200
    return response.json()["access_token"]
