"""Chat endpoints: the admission gate over HTTP and the AI assistant bridge."""

from unittest.mock import AsyncMock, Mock

from fastapi import status

from libs.common.errors import UpstreamError


def _open_conversation(api_client):
    response = api_client.post("/api/chat/conversations", json={"coachId": "c1", "playerId": "p1"})
    assert response.status_code == status.HTTP_200_OK
    return response.json()["id"]


def _send(api_client, conversation_id, text="Hello coach"):
    return api_client.post(
        f"/api/chat/conversations/{conversation_id}/messages",
        json={"senderId": "p1", "senderType": "player", "text": text},
    )


def test_conversation_creation_is_idempotent(api_client, fake_firestore):
    first = _open_conversation(api_client)
    second = _open_conversation(api_client)

    assert first == second == "c1__p1"
    assert fake_firestore.ids("conversations") == ["c1__p1"]


def test_send_message_requires_active_subscription(api_client, fake_firestore):
    conversation_id = _open_conversation(api_client)

    response = _send(api_client, conversation_id)
    assert response.status_code == status.HTTP_404_NOT_FOUND

    fake_firestore.seed("subscriptions", "s1", {"coachId": "c1", "playerId": "p1", "status": "rejected"})
    response = _send(api_client, conversation_id)
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["message"] == (
        "Cannot send message. Subscription status is rejected. Only active subscriptions can chat."
    )


def test_message_round_trip(api_client, fake_firestore):
    # Arrange
    fake_firestore.seed("subscriptions", "s1", {"coachId": "c1", "playerId": "p1", "status": "active"})
    conversation_id = _open_conversation(api_client)

    # Act
    sent = _send(api_client, conversation_id, "See you at 9")
    listed = api_client.get(f"/api/chat/conversations/{conversation_id}/messages")
    marked = api_client.post(
        f"/api/chat/conversations/{conversation_id}/read", json={"userId": "c1", "userType": "coach"}
    )

    # Assert
    assert sent.status_code == status.HTTP_200_OK
    assert sent.json()["read"] is False
    assert [m["text"] for m in listed.json()] == ["See you at 9"]
    assert marked.json() == {"success": True, "markedCount": 1}


def test_blank_message_is_rejected(api_client):
    response = _send(api_client, "c1__p1", "   ")

    assert response.status_code == 422


def test_coach_conversation_list(api_client, fake_firestore, seed_pair):
    _open_conversation(api_client)

    response = api_client.get("/api/chat/conversations/coach/c1")

    assert response.status_code == status.HTTP_200_OK
    assert response.json()[0]["playerName"] == "Pat Player"


def test_close_and_reopen(api_client, fake_firestore):
    _open_conversation(api_client)

    closed = api_client.post("/api/chat/conversations/close", json={"coachId": "c1", "playerId": "p1"})
    assert closed.json()["success"] is True
    assert fake_firestore.get("conversations", "c1__p1")["status"] == "closed"

    api_client.post("/api/chat/conversations/reopen", json={"coachId": "c1", "playerId": "p1"})
    assert fake_firestore.get("conversations", "c1__p1")["status"] == "active"


def test_ai_message_without_bridge_only_stores_prompt(api_client, fake_firestore):
    response = api_client.post("/api/chat/ai", json={"playerId": "p1", "message": "How do I warm up?"})

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"success": True, "message": "Message sent successfully", "response": None}
    assert len(fake_firestore.ids("ai_chats/p1/messages")) == 1


def test_ai_message_with_bridge_stores_reply(api_client, fake_firestore):
    # Arrange
    fake_firestore.seed("ai_chats/p1/messages", "m0", {"role": "user", "text": "Hi", "createdAt": "2024-01-01T00:00:00"})
    bridge = Mock()
    bridge.generate = AsyncMock(return_value="Start with five minutes of jogging.")
    api_client.app.state.chat_bridge = bridge

    # Act
    response = api_client.post("/api/chat/ai", json={"playerId": "p1", "message": "How do I warm up?"})

    # Assert
    assert response.status_code == status.HTTP_200_OK
    reply = response.json()["response"]
    assert reply["role"] == "assistant"
    assert reply["text"] == "Start with five minutes of jogging."
    prompt, history = bridge.generate.call_args.args
    assert prompt == "How do I warm up?"
    assert [turn.text for turn in history] == ["Hi"]
    assert len(fake_firestore.ids("ai_chats/p1/messages")) == 3


def test_ai_bridge_failure_is_503(api_client, fake_firestore):
    bridge = Mock()
    bridge.generate = AsyncMock(side_effect=UpstreamError("AI assistant is unavailable"))
    api_client.app.state.chat_bridge = bridge

    response = api_client.post("/api/chat/ai", json={"playerId": "p1", "message": "Hello?"})

    assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
    assert response.json()["error"] == "UPSTREAM_UNAVAILABLE"
    assert len(fake_firestore.ids("ai_chats/p1/messages")) == 1


def test_store_and_delete_ai_history(api_client, fake_firestore):
    api_client.post("/api/chat/ai", json={"playerId": "p1", "message": "Hello?"})
    stored = api_client.post("/api/chat/ai/response", json={"playerId": "p1", "response": "Hi there"})
    history = api_client.get("/api/chat/ai/p1")
    deleted = api_client.delete("/api/chat/ai/p1")

    assert stored.json() == {"success": True}
    assert [turn["role"] for turn in history.json()] == ["user", "assistant"]
    assert deleted.json() == {"success": True, "deletedCount": 2}
