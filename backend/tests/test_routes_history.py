"""Tests for api/routes_history.py and api/routes_auth.py."""

from __future__ import annotations

from perfume_chat.models.chat_models import ChatOut, MessageOut


class TestHistory:
    def test_requires_session(self, client):
        resp = client.get("/api/history")
        assert resp.status_code == 401
        assert resp.json()["code"] == "unauthorized:chat"

    def test_lists_own_chats(self, client, db, auth_headers):
        db.save_chat("c1", "1", "moje")
        db.save_chat("c2", "2", "cudze")
        resp = client.get("/api/history", headers=auth_headers)
        assert resp.status_code == 200
        assert [c["id"] for c in resp.json()] == ["c1"]
        assert set(resp.json()[0]) == set(ChatOut.model_fields)

    def test_limit_out_of_range(self, client, auth_headers):
        resp = client.get("/api/history", params={"limit": 0}, headers=auth_headers)
        assert resp.status_code == 400


class TestMessages:
    def test_owner_reads_private_chat(self, client, db, auth_headers):
        db.save_chat("c1", "1", "t", "private")
        db.save_messages([{"id": "m1", "chat_id": "c1", "role": "user",
                           "parts": [{"type": "text", "text": "hej"}]}])
        resp = client.get("/api/chat/c1/messages", headers=auth_headers)
        assert resp.status_code == 200
        assert resp.json()[0]["parts"] == [{"type": "text", "text": "hej"}]
        assert set(resp.json()[0]) == set(MessageOut.model_fields)

    def test_private_chat_forbidden_for_others(self, client, db, other_headers):
        db.save_chat("c1", "1", "t", "private")
        resp = client.get("/api/chat/c1/messages", headers=other_headers)
        assert resp.status_code == 403

    def test_public_chat_readable_by_others(self, client, db, other_headers):
        db.save_chat("c1", "1", "t", "public")
        resp = client.get("/api/chat/c1/messages", headers=other_headers)
        assert resp.status_code == 200

    def test_missing_chat(self, client, auth_headers):
        resp = client.get("/api/chat/ghost/messages", headers=auth_headers)
        assert resp.status_code == 404
        assert resp.json()["code"] == "not_found:chat"


class TestVisibility:
    def test_owner_updates(self, client, db, auth_headers):
        db.save_chat("c1", "1", "t", "private")
        resp = client.patch("/api/chat/c1/visibility", json={"visibility": "public"}, headers=auth_headers)
        assert resp.status_code == 200
        assert db.get_chat_by_id("c1")["visibility"] == "public"
        assert resp.json()["visibility"] == "public"

    def test_other_owner_forbidden(self, client, db, other_headers):
        db.save_chat("c1", "1", "t", "private")
        resp = client.patch("/api/chat/c1/visibility", json={"visibility": "public"}, headers=other_headers)
        assert resp.status_code == 403
        assert db.get_chat_by_id("c1")["visibility"] == "private"


class TestAuth:
    def test_register_login_me(self, client):
        resp = client.post("/auth/register", json={"email": "ala@example.com", "password": "sekret123"})
        assert resp.status_code == 200

        resp = client.post("/auth/login", json={"email": "ala@example.com", "password": "sekret123"})
        token = resp.json()["access_token"]

        me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"}).json()
        assert me["email"] == "ala@example.com"
        assert me["type"] == "regular"

    def test_duplicate_email(self, client):
        payload = {"email": "ala@example.com", "password": "sekret123"}
        client.post("/auth/register", json=payload)
        resp = client.post("/auth/register", json=payload)
        assert resp.status_code == 400

    def test_wrong_password(self, client):
        client.post("/auth/register", json={"email": "ala@example.com", "password": "sekret123"})
        resp = client.post("/auth/login", json={"email": "ala@example.com", "password": "zle-haslo"})
        assert resp.status_code == 401

    def test_guest_token(self, client):
        token = client.post("/auth/guest").json()["access_token"]
        me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"}).json()
        assert me["type"] == "guest"
