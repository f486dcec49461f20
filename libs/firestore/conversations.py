"""Coach-player conversations, their messages, and the chat admission gate.

A message is only accepted while the pair holds an ``active`` subscription.
The check runs on every send, so stopping or expiring a subscription closes
the channel without touching the conversation. ``Conversation.status`` is a
separate visibility flag and does not gate messaging.
"""

import uuid
from typing import Literal

import structlog
from google.api_core.exceptions import AlreadyExists
from google.cloud.firestore_v1.async_client import AsyncClient
from google.cloud.firestore_v1.base_query import FieldFilter

from libs.common.dates import now_iso
from libs.common.errors import InvalidRequestError, NotFoundError
from libs.firestore.lookups import fetch_documents
from libs.firestore.subscriptions import find_pair_subscriptions, pair_key
from libs.models.firestore import Conversation, ConversationView, LastMessage, Message

logger = structlog.get_logger(__name__)

CONVERSATIONS = "conversations"
MESSAGES = "messages"


async def _find_conversation(client: AsyncClient, coach_id: str, player_id: str):
    """Snapshot of the pair's conversation, or None."""
    doc = await client.collection(CONVERSATIONS).document(pair_key(coach_id, player_id)).get()
    if doc.exists:
        return doc

    # Conversations created before deterministic ids were stored under random ids.
    query = (
        client.collection(CONVERSATIONS)
        .where(filter=FieldFilter("coachId", "==", coach_id))
        .where(filter=FieldFilter("playerId", "==", player_id))
        .limit(1)
    )
    docs = await query.get()
    return docs[0] if docs else None


async def get_or_create_conversation(
    client: AsyncClient,
    coach_id: str,
    player_id: str,
    status: Literal["active", "closed"] = "active",
) -> Conversation:
    """Returns the pair's conversation, creating it on first contact.

    Idempotent: repeated calls return the same conversation id. When the
    conversation exists and ``status`` is ``active`` its status and
    ``updatedAt`` are refreshed.
    """
    existing = await _find_conversation(client, coach_id, player_id)
    if existing is None:
        timestamp = now_iso()
        conversation = Conversation(
            id=pair_key(coach_id, player_id),
            coach_id=coach_id,
            player_id=player_id,
            status=status,
            created_at=timestamp,
            updated_at=timestamp,
        )
        doc_ref = client.collection(CONVERSATIONS).document(conversation.id)
        try:
            await doc_ref.create(conversation.to_document())
            logger.info("Conversation created", conversation_id=conversation.id)
            return conversation
        except AlreadyExists:
            # Lost a creation race; the winner's document is the conversation.
            existing = await doc_ref.get()

    update_data = {}
    if status == "active":
        update_data = {"status": "active", "updatedAt": now_iso()}
        await existing.reference.update(update_data)

    data = {**(existing.to_dict() or {}), **update_data, "id": existing.id, "status": status}
    return Conversation.model_validate(data)


async def _set_conversation_status(client: AsyncClient, coach_id: str, player_id: str, closed: bool) -> dict:
    existing = await _find_conversation(client, coach_id, player_id)
    if existing is None:
        return {"success": False, "message": "No conversation found"}

    timestamp = now_iso()
    await existing.reference.update(
        {
            "status": "closed" if closed else "active",
            "closedAt": timestamp if closed else None,
            "updatedAt": timestamp,
        }
    )
    logger.info("Conversation status changed", conversation_id=existing.id, closed=closed)
    return {"success": True, "conversationId": existing.id}


async def close_conversation(client: AsyncClient, coach_id: str, player_id: str) -> dict:
    """Marks the pair's conversation closed."""
    return await _set_conversation_status(client, coach_id, player_id, closed=True)


async def reopen_conversation(client: AsyncClient, coach_id: str, player_id: str) -> dict:
    """Marks the pair's conversation active again and clears ``closedAt``."""
    return await _set_conversation_status(client, coach_id, player_id, closed=False)


async def list_coach_conversations(client: AsyncClient, coach_id: str) -> list[ConversationView]:
    """A coach's conversations, most recently active first, with player details."""
    query = (
        client.collection(CONVERSATIONS)
        .where(filter=FieldFilter("coachId", "==", coach_id))
        .order_by("updatedAt", direction="DESCENDING")
    )
    conversations = [Conversation.from_snapshot(doc) for doc in await query.get()]
    players = await fetch_documents(client, "players", (c.player_id for c in conversations))
    return [
        ConversationView(
            **c.model_dump(),
            player_name=(players.get(c.player_id) or {}).get("name") or "Unknown Player",
            player_email=(players.get(c.player_id) or {}).get("email") or "",
        )
        for c in conversations
    ]


async def list_player_conversations(client: AsyncClient, player_id: str) -> list[ConversationView]:
    """A player's conversations, most recently active first, with coach details."""
    query = (
        client.collection(CONVERSATIONS)
        .where(filter=FieldFilter("playerId", "==", player_id))
        .order_by("updatedAt", direction="DESCENDING")
    )
    conversations = [Conversation.from_snapshot(doc) for doc in await query.get()]
    coaches = await fetch_documents(client, "coaches", (c.coach_id for c in conversations))
    return [
        ConversationView(
            **c.model_dump(),
            coach_name=(coaches.get(c.coach_id) or {}).get("name") or "Unknown Coach",
            coach_email=(coaches.get(c.coach_id) or {}).get("email") or "",
        )
        for c in conversations
    ]


async def _get_conversation(client: AsyncClient, conversation_id: str):
    snapshot = await client.collection(CONVERSATIONS).document(conversation_id).get()
    if not snapshot.exists:
        raise NotFoundError("Conversation not found")
    return snapshot


async def get_messages(client: AsyncClient, conversation_id: str, limit: int = 50) -> list[Message]:
    """Fetches the last ``limit`` messages of a conversation, oldest first.

    Raises:
        NotFoundError: If the conversation does not exist
    """
    conversation = await _get_conversation(client, conversation_id)

    # Order newest first to apply the limit, then reverse into chronological order.
    query = (
        conversation.reference.collection(MESSAGES)
        .order_by("createdAt", direction="DESCENDING")
        .limit(limit)
    )
    messages = [Message.from_snapshot(doc) for doc in await query.get()]
    return messages[::-1]


async def check_chat_admission(client: AsyncClient, coach_id: str, player_id: str) -> None:
    """Raises unless the pair currently holds an active subscription.

    Raises:
        NotFoundError: If the pair has no subscription at all
        InvalidRequestError: If no subscription of the pair is active; the
            message names the status of the most recently updated one
    """
    subscriptions = [doc.to_dict() or {} for doc in await find_pair_subscriptions(client, coach_id, player_id)]
    if not subscriptions:
        raise NotFoundError("No subscription found between coach and player")

    if any(sub.get("status") == "active" for sub in subscriptions):
        return

    latest = max(subscriptions, key=lambda sub: str(sub.get("updatedAt") or sub.get("createdAt") or ""))
    status = latest.get("status")
    logger.info("Message rejected by subscription status", coach_id=coach_id, player_id=player_id, status=status)
    raise InvalidRequestError(
        f"Cannot send message. Subscription status is {status}. Only active subscriptions can chat."
    )


async def send_message(client: AsyncClient, conversation_id: str, message: Message) -> Message:
    """Appends a message after the admission gate accepts it.

    Also refreshes the conversation's ``lastMessage`` and ``updatedAt``.

    Raises:
        NotFoundError: If the conversation or the pair's subscription is missing
        InvalidRequestError: If the pair's subscription is not active
    """
    conversation = await _get_conversation(client, conversation_id)
    data = conversation.to_dict() or {}
    await check_chat_admission(client, data.get("coachId"), data.get("playerId"))

    stored = message.model_copy(update={"id": str(uuid.uuid4()), "created_at": now_iso(), "read": False})
    await conversation.reference.collection(MESSAGES).document(stored.id).set(stored.to_document())

    last_message = LastMessage(
        text=stored.text,
        sender_id=stored.sender_id,
        sender_type=stored.sender_type,
        created_at=stored.created_at,
    )
    await conversation.reference.update(
        {
            "lastMessage": last_message.model_dump(mode="json", by_alias=True),
            "updatedAt": stored.created_at,
        }
    )

    logger.info("Message sent", conversation_id=conversation_id, sender_type=stored.sender_type)
    return stored


async def mark_as_read(
    client: AsyncClient,
    conversation_id: str,
    user_id: str,
    user_type: Literal["coach", "player"],
) -> dict:
    """Marks unread messages from the other party as read in one batch."""
    other_party = "player" if user_type == "coach" else "coach"
    messages_ref = client.collection(CONVERSATIONS).document(conversation_id).collection(MESSAGES)
    unread = await (
        messages_ref.where(filter=FieldFilter("read", "==", False))
        .where(filter=FieldFilter("senderType", "==", other_party))
        .get()
    )

    batch = client.batch()
    for doc in unread:
        batch.update(doc.reference, {"read": True})
    await batch.commit()

    logger.info("Messages marked as read", conversation_id=conversation_id, user_id=user_id, count=len(unread))
    return {"success": True, "markedCount": len(unread)}


async def delete_conversation_messages(client: AsyncClient, conversation_id: str) -> dict:
    """Deletes every message of a conversation in one batch.

    Raises:
        NotFoundError: If the conversation does not exist
    """
    conversation = await _get_conversation(client, conversation_id)
    messages = await conversation.reference.collection(MESSAGES).get()

    batch = client.batch()
    for doc in messages:
        batch.delete(doc.reference)
    await batch.commit()

    logger.info("Conversation messages deleted", conversation_id=conversation_id, count=len(messages))
    return {"success": True, "deletedCount": len(messages)}
