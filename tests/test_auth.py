from __future__ import annotations

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from docvault.auth import TokenService, hash_password, verify_password
from docvault.database import UserCRUD

from conftest import register_and_login, upload


PROTECTED_ROUTES = [
    ("post", "/upload"),
    ("get", "/search"),
    ("delete", "/delete/1"),
    ("put", "/rename/1"),
    ("get", "/share/1"),
    ("post", "/chat-with-pdf"),
]


def _user_id(client: TestClient, headers: dict) -> int:
    token = headers["Authorization"].split(" ", 1)[1]
    return client.app.state.tokens.get_user_id(token)


def test_password_hash_roundtrip():
    hashed = hash_password("StrongPass123")
    assert hashed != "StrongPass123"
    assert verify_password("StrongPass123", hashed)
    assert not verify_password("wrong", hashed)


def test_register_then_login_issues_token_for_user(client: TestClient):
    response = client.post("/api/register", json={"username": "alice", "password": "StrongPass123"})
    assert response.status_code == 201
    assert response.json() == {"message": "User registered successfully"}

    response = client.post("/api/login", json={"username": "alice", "password": "StrongPass123"})
    assert response.status_code == 200
    payload = response.json()
    assert payload["message"] == "Authentication successful"
    assert payload["user"]["username"] == "alice"

    claims = client.app.state.tokens.decode_token(payload["token"])
    assert claims["id"] == payload["user"]["id"]
    assert claims["exp"] - claims["iat"] == 300 * 60


def test_register_does_not_return_token(client: TestClient):
    response = client.post("/api/register", json={"username": "alice", "password": "pw"})
    assert "token" not in response.json()


def test_duplicate_username_is_conflict(client: TestClient):
    register_and_login(client, "alice")
    response = client.post("/api/register", json={"username": "alice", "password": "other"})
    assert response.status_code == 409
    assert response.json()["error"] == "Username already exists"


@pytest.mark.parametrize("body", [
    {"username": "", "password": "pw"},
    {"username": "   ", "password": "pw"},
    {"username": "carol", "password": ""},
])
def test_register_rejects_empty_fields(client: TestClient, body):
    response = client.post("/api/register", json=body)
    assert response.status_code == 400


def test_malformed_request_is_sanitized_400(client: TestClient):
    response = client.post("/api/login", json={})
    assert response.status_code == 400
    assert response.json() == {
        "error": "Invalid request",
        "detail": "One or more request fields are invalid.",
    }


def test_login_wrong_password(client: TestClient):
    register_and_login(client, "alice")
    response = client.post("/api/login", json={"username": "alice", "password": "nope"})
    assert response.status_code == 401
    assert response.json()["error"] == "Authentication failed. Wrong password."
    assert "token" not in response.json()


def test_login_unknown_user(client: TestClient):
    response = client.post("/api/login", json={"username": "ghost", "password": "pw"})
    assert response.status_code == 401
    assert response.json()["error"] == "Authentication failed. User not found."


@pytest.mark.parametrize("method,path", PROTECTED_ROUTES)
def test_missing_token_is_401(client: TestClient, method, path):
    response = client.request(method.upper(), path, json={})
    assert response.status_code == 401


@pytest.mark.parametrize("method,path", PROTECTED_ROUTES)
def test_expired_token_is_403(client: TestClient, alice, method, path):
    tokens = client.app.state.tokens
    expired = tokens.create_access_token(_user_id(client, alice), expires_delta=timedelta(seconds=-5))

    response = client.request(method.upper(), path, headers={"Authorization": f"Bearer {expired}"}, json={})
    assert response.status_code == 403
    assert response.json()["error"] == "Token expired"


def test_token_signed_with_other_key_is_403(client: TestClient, alice):
    forged = TokenService("some-other-secret").create_access_token(_user_id(client, alice))
    response = client.get("/search", headers={"Authorization": f"Bearer {forged}"})
    assert response.status_code == 403
    assert response.json()["error"] == "Invalid token"


def test_garbage_token_is_403(client: TestClient):
    response = client.get("/search", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 403


def test_non_access_token_is_rejected(client: TestClient, alice):
    token = jwt.encode({"id": _user_id(client, alice), "type": "refresh"}, "test-secret", algorithm="HS256")
    response = client.get("/search", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 403


def test_token_carries_identity_into_uploads(client: TestClient, alice, bob):
    upload(client, alice, "alice.pdf", "alice text")
    upload(client, bob, "bob.pdf", "bob text")

    alice_docs = client.get("/search", headers=alice).json()
    assert [doc["filename"] for doc in alice_docs] == ["alice.pdf"]
    assert alice_docs[0]["owner_id"] == _user_id(client, alice)


def test_rejected_token_never_reaches_handlers(client: TestClient, alice):
    doc_id = upload(client, alice, "keep.pdf", "body").json()["id"]
    forged = {"Authorization": f"Bearer {TokenService('wrong-key').create_access_token(_user_id(client, alice))}"}

    assert upload(client, forged, "sneaky.pdf", "x").status_code == 403
    assert client.delete(f"/delete/{doc_id}", headers=forged).status_code == 403
    assert client.put(f"/rename/{doc_id}", json={"newFilename": "z.pdf"}, headers=forged).status_code == 403

    docs = client.get("/search", headers=alice).json()
    assert [(doc["id"], doc["filename"]) for doc in docs] == [(doc_id, "keep.pdf")]


def test_concurrent_register_hits_unique_constraint(client: TestClient, monkeypatch):
    monkeypatch.setattr(UserCRUD, "get_by_username", staticmethod(lambda db, username: None))

    first = client.post("/api/register", json={"username": "dana", "password": "pw1"})
    second = client.post("/api/register", json={"username": "dana", "password": "pw2"})

    assert first.status_code == 201
    assert second.status_code == 409
    assert second.json()["error"] == "Username already exists"
