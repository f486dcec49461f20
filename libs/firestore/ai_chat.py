"""Stored history of each player's conversation with the AI assistant.

Turns live under ``ai_chats/{playerId}/messages``.
"""

import uuid

import structlog
from google.cloud.firestore_v1.async_client import AsyncClient

from libs.common.dates import now_iso
from libs.models.firestore import AiChatMessage, AiRole

logger = structlog.get_logger(__name__)

AI_CHATS = "ai_chats"


def _messages(client: AsyncClient, player_id: str):
    return client.collection(AI_CHATS).document(player_id).collection("messages")


async def get_ai_chat(client: AsyncClient, player_id: str) -> list[AiChatMessage]:
    """All turns of a player's AI chat, oldest first."""
    docs = await _messages(client, player_id).order_by("createdAt").get()
    return [AiChatMessage.from_snapshot(doc) for doc in docs]


async def add_ai_message(client: AsyncClient, player_id: str, role: AiRole, text: str) -> AiChatMessage:
    message = AiChatMessage(id=str(uuid.uuid4()), role=role, text=text, created_at=now_iso())
    await _messages(client, player_id).document(message.id).set(message.to_document())
    logger.info("AI chat message stored", player_id=player_id, role=role)
    return message


async def delete_ai_chat(client: AsyncClient, player_id: str) -> dict:
    """Deletes a player's whole AI chat history in one batch."""
    docs = await _messages(client, player_id).get()
    batch = client.batch()
    for doc in docs:
        batch.delete(doc.reference)
    await batch.commit()

    logger.info("AI chat deleted", player_id=player_id, count=len(docs))
    return {"success": True, "deletedCount": len(docs)}
