"""
tests/integration/test_rooms.py — Room lifecycle through the HTTP API.

Endpoints covered:
  GET    /rooms          → 200
  POST   /rooms          → 201
  GET    /rooms/:id      → 200 / 403
  DELETE /rooms/:id      → 200 / 403
"""

from __future__ import annotations

from .conftest import add_member, auth_headers, make_room, user_with_token


class TestCreateRoom:

    def test_creator_is_admin(self, app, client):
        alice, token = user_with_token(app, client, "alice")

        room = make_room(client, token, "General")

        assert room["name"] == "General"
        assert room["invitation_code"]
        assert room["members"] == [{"user_id": alice["id"], "role": "admin"}]

    def test_missing_name_is_400(self, app, client):
        _, token = user_with_token(app, client, "alice")
        resp = client.post("/api/v1/rooms/", json={}, headers=auth_headers(token))
        assert resp.status_code == 400
        assert resp.get_json()["error"]["code"] == "MISSING_FIELD"

    def test_requires_token(self, client):
        resp = client.post("/api/v1/rooms/", json={"name": "x"})
        assert resp.status_code == 401


class TestListAndGet:

    def test_list_only_my_rooms(self, app, client):
        _, alice_token = user_with_token(app, client, "alice")
        _, bob_token = user_with_token(app, client, "bob")
        make_room(client, alice_token, "Alice's")
        make_room(client, bob_token, "Bob's")

        resp = client.get("/api/v1/rooms/", headers=auth_headers(alice_token))

        assert resp.status_code == 200
        assert [r["name"] for r in resp.get_json()["data"]] == ["Alice's"]

    def test_member_can_read_room(self, app, client):
        _, alice_token = user_with_token(app, client, "alice")
        bob, bob_token = user_with_token(app, client, "bob")
        room = make_room(client, alice_token)
        add_member(client, alice_token, room, bob["id"], bob_token, role="read_only")

        resp = client.get(f"/api/v1/rooms/{room['id']}", headers=auth_headers(bob_token))

        assert resp.status_code == 200
        assert {m["user_id"] for m in resp.get_json()["data"]["members"]} == {
            m["user_id"] for m in room["members"]
        } | {bob["id"]}

    def test_non_member_is_403(self, app, client):
        _, alice_token = user_with_token(app, client, "alice")
        _, bob_token = user_with_token(app, client, "bob")
        room = make_room(client, alice_token)

        resp = client.get(f"/api/v1/rooms/{room['id']}", headers=auth_headers(bob_token))

        assert resp.status_code == 403
        assert resp.get_json()["error"]["code"] == "room.user_not_in_room"


class TestDeleteRoom:

    def test_admin_soft_deletes_room(self, app, client):
        _, token = user_with_token(app, client, "alice")
        room = make_room(client, token)

        resp = client.delete(f"/api/v1/rooms/{room['id']}", headers=auth_headers(token))
        assert resp.status_code == 200

        # Deleted rooms no longer grant membership.
        resp = client.get(f"/api/v1/rooms/{room['id']}", headers=auth_headers(token))
        assert resp.status_code == 403
        resp = client.get("/api/v1/rooms/", headers=auth_headers(token))
        assert resp.get_json()["data"] == []

    def test_member_cannot_delete(self, app, client):
        _, alice_token = user_with_token(app, client, "alice")
        bob, bob_token = user_with_token(app, client, "bob")
        room = make_room(client, alice_token)
        add_member(client, alice_token, room, bob["id"], bob_token)

        resp = client.delete(f"/api/v1/rooms/{room['id']}", headers=auth_headers(bob_token))

        assert resp.status_code == 403
        assert resp.get_json()["error"]["code"] == "room.not_admin"

    def test_admin_of_another_room_cannot_delete(self, app, client):
        _, alice_token = user_with_token(app, client, "alice")
        _, bob_token = user_with_token(app, client, "bob")
        room = make_room(client, alice_token)
        make_room(client, bob_token)

        resp = client.delete(f"/api/v1/rooms/{room['id']}", headers=auth_headers(bob_token))

        assert resp.status_code == 403
