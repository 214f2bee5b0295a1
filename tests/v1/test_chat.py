# tests/v1/test_chat.py
"""Tests for chat history, read receipts and unread counts."""

from fastapi import status
from fastapi.testclient import TestClient

from chatline.core.security import create_access_token
from chatline.models import User


class TestAuthentication:
    def test_missing_token(self, client: TestClient, alice: User, bob: User) -> None:
        response = client.get("/api/v1/chat/messages", params={"user1": alice.id, "user2": bob.id})

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["detail"] == "Unauthorized - No token provided"

    def test_garbage_token(self, client: TestClient, alice: User, bob: User) -> None:
        response = client.get(
            "/api/v1/chat/messages",
            params={"user1": alice.id, "user2": bob.id},
            headers={"Authorization": "Bearer garbage"},
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["detail"] == "Invalid token"

    def test_token_for_deleted_user(self, client: TestClient, alice: User, bob: User) -> None:
        response = client.get(
            "/api/v1/chat/messages",
            params={"user1": alice.id, "user2": bob.id},
            headers={"Authorization": f"Bearer {create_access_token('gone')}"},
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["detail"] == "User not found"


class TestMessages:
    def test_requires_both_participants(
        self, client: TestClient, alice: User, alice_headers: dict[str, str]
    ) -> None:
        response = client.get(
            "/api/v1/chat/messages", params={"user1": alice.id}, headers=alice_headers
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["detail"] == "Both user IDs are required"

    def test_outsider_cannot_read(
        self, client: TestClient, alice: User, bob: User, carol_token: str
    ) -> None:
        response = client.get(
            "/api/v1/chat/messages",
            params={"user1": alice.id, "user2": bob.id},
            headers={"Authorization": f"Bearer {carol_token}"},
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_history_is_decrypted_and_ordered(
        self, client: TestClient, pipeline, alice: User, bob: User, bob_headers: dict[str, str]
    ) -> None:
        pipeline.send(alice.id, bob.id, "first")
        pipeline.send(bob.id, alice.id, "second")

        response = client.get(
            "/api/v1/chat/messages",
            params={"user1": alice.id, "user2": bob.id},
            headers=bob_headers,
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert [m["content"] for m in data] == ["first", "second"]
        assert [m["sender"] for m in data] == [alice.id, bob.id]
        assert {"id", "sender", "receiver", "content", "image", "isRead", "timestamp"} <= set(data[0])

    def test_empty_conversation(
        self, client: TestClient, alice: User, bob: User, alice_headers: dict[str, str]
    ) -> None:
        response = client.get(
            "/api/v1/chat/messages",
            params={"user1": alice.id, "user2": bob.id},
            headers=alice_headers,
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == []


class TestReadReceipts:
    def test_receiver_marks_read(
        self, client: TestClient, pipeline, alice: User, bob: User, bob_headers: dict[str, str]
    ) -> None:
        pipeline.send(alice.id, bob.id, "one")
        pipeline.send(alice.id, bob.id, "two")

        response = client.post(
            "/api/v1/chat/mark-read",
            json={"sender": alice.id, "receiver": bob.id},
            headers=bob_headers,
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"msg": "Messages marked as read", "count": 2}
        assert pipeline.unread_counts(bob.id) == {}

    def test_sender_cannot_mark_read(
        self, client: TestClient, pipeline, alice: User, bob: User, alice_headers: dict[str, str]
    ) -> None:
        pipeline.send(alice.id, bob.id, "unread")

        response = client.post(
            "/api/v1/chat/mark-read",
            json={"sender": alice.id, "receiver": bob.id},
            headers=alice_headers,
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert pipeline.unread_counts(bob.id) == {alice.id: 1}

    def test_unread_counts_grouped_by_sender(
        self,
        client: TestClient,
        pipeline,
        alice: User,
        bob: User,
        carol: User,
        bob_headers: dict[str, str],
    ) -> None:
        pipeline.send(alice.id, bob.id, "a")
        pipeline.send(alice.id, bob.id, "b")
        pipeline.send(carol.id, bob.id, "c")

        response = client.get(
            "/api/v1/chat/unread-counts", params={"userId": bob.id}, headers=bob_headers
        )

        assert response.status_code == status.HTTP_200_OK
        assert sorted(response.json(), key=lambda row: row["sender"]) == sorted(
            [{"sender": alice.id, "count": 2}, {"sender": carol.id, "count": 1}],
            key=lambda row: row["sender"],
        )

    def test_unread_counts_for_someone_else(
        self, client: TestClient, alice: User, bob: User, bob_headers: dict[str, str]
    ) -> None:
        response = client.get(
            "/api/v1/chat/unread-counts", params={"userId": alice.id}, headers=bob_headers
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
