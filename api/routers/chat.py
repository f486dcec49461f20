"""Coach-player chat and the player's AI assistant.

Sending a message goes through the subscription admission gate: only a pair
holding an ``active`` subscription can chat.
"""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query
from google.cloud.firestore_v1.async_client import AsyncClient

from api.auth import User, get_current_user
from api.dependencies import get_chat_bridge, get_firestore
from api.llm import ChatBridge
from api.models import (
    AiChatResponse,
    ConversationPairRequest,
    CreateConversationRequest,
    MarkReadRequest,
    SendAiMessageRequest,
    SendMessageRequest,
    StoreAiResponseRequest,
)
from libs.common.settings import get_settings
from libs.firestore import ai_chat as ai_chat_service
from libs.firestore import conversations as conversation_service
from libs.models.firestore import AiChatMessage, Conversation, ConversationView, Message

router = APIRouter()
logger = structlog.get_logger(__name__)


@router.post("/chat/conversations", response_model=Conversation, summary="Get or create a conversation")
async def get_or_create_conversation(
    request: CreateConversationRequest,
    current_user: User = Depends(get_current_user),
    client: AsyncClient = Depends(get_firestore),
) -> Conversation:
    """
    Return the pair's conversation, creating it on first contact.

    Repeated calls for the same coach and player return the same conversation.

    Example:
        ```bash
        curl -X POST http://localhost:8000/api/chat/conversations \\
          -H "Authorization: Bearer $TOKEN" -H "Content-Type: application/json" \\
          -d '{"coachId": "c1", "playerId": "p1"}'
        ```
    """
    return await conversation_service.get_or_create_conversation(
        client, request.coach_id, request.player_id, status=request.status
    )


@router.post("/chat/conversations/close", summary="Close a conversation")
async def close_conversation(
    request: ConversationPairRequest,
    current_user: User = Depends(get_current_user),
    client: AsyncClient = Depends(get_firestore),
) -> dict:
    return await conversation_service.close_conversation(client, request.coach_id, request.player_id)


@router.post("/chat/conversations/reopen", summary="Reopen a conversation")
async def reopen_conversation(
    request: ConversationPairRequest,
    current_user: User = Depends(get_current_user),
    client: AsyncClient = Depends(get_firestore),
) -> dict:
    return await conversation_service.reopen_conversation(client, request.coach_id, request.player_id)


@router.get(
    "/chat/conversations/coach/{coach_id}",
    response_model=list[ConversationView],
    response_model_exclude_none=True,
    summary="A coach's conversations",
)
async def coach_conversations(
    coach_id: str,
    current_user: User = Depends(get_current_user),
    client: AsyncClient = Depends(get_firestore),
) -> list[ConversationView]:
    return await conversation_service.list_coach_conversations(client, coach_id)


@router.get(
    "/chat/conversations/player/{player_id}",
    response_model=list[ConversationView],
    response_model_exclude_none=True,
    summary="A player's conversations",
)
async def player_conversations(
    player_id: str,
    current_user: User = Depends(get_current_user),
    client: AsyncClient = Depends(get_firestore),
) -> list[ConversationView]:
    return await conversation_service.list_player_conversations(client, player_id)


@router.get(
    "/chat/conversations/{conversation_id}/messages",
    response_model=list[Message],
    response_model_exclude_none=True,
    summary="Latest messages of a conversation",
)
async def get_messages(
    conversation_id: str,
    limit: Optional[int] = Query(None, ge=1, le=500, description="Number of most recent messages"),
    current_user: User = Depends(get_current_user),
    client: AsyncClient = Depends(get_firestore),
) -> list[Message]:
    """Most recent messages, returned oldest first."""
    return await conversation_service.get_messages(
        client, conversation_id, limit=limit or get_settings().messages_default_limit
    )


@router.post(
    "/chat/conversations/{conversation_id}/messages",
    response_model=Message,
    response_model_exclude_none=True,
    summary="Send a message",
)
async def send_message(
    conversation_id: str,
    request: SendMessageRequest,
    current_user: User = Depends(get_current_user),
    client: AsyncClient = Depends(get_firestore),
) -> Message:
    """
    Append a message to a conversation.

    Rejected with 400 naming the subscription status unless the pair holds
    an active subscription, and with 404 if the pair has none at all.

    Example:
        ```bash
        curl -X POST http://localhost:8000/api/chat/conversations/c1__p1/messages \\
          -H "Authorization: Bearer $TOKEN" -H "Content-Type: application/json" \\
          -d '{"senderId": "p1", "senderType": "player", "text": "See you tomorrow"}'
        ```
    """
    message = Message(
        sender_id=request.sender_id,
        sender_type=request.sender_type,
        text=request.text,
        media_url=request.media_url,
    )
    return await conversation_service.send_message(client, conversation_id, message)


@router.post("/chat/conversations/{conversation_id}/read", summary="Mark messages as read")
async def mark_as_read(
    conversation_id: str,
    request: MarkReadRequest,
    current_user: User = Depends(get_current_user),
    client: AsyncClient = Depends(get_firestore),
) -> dict:
    return await conversation_service.mark_as_read(client, conversation_id, request.user_id, request.user_type)


@router.delete("/chat/conversations/{conversation_id}/messages", summary="Delete all messages")
async def delete_messages(
    conversation_id: str,
    current_user: User = Depends(get_current_user),
    client: AsyncClient = Depends(get_firestore),
) -> dict:
    logger.info("Deleting conversation messages", uid=current_user.uid, conversation_id=conversation_id)
    return await conversation_service.delete_conversation_messages(client, conversation_id)


@router.get("/chat/ai/{player_id}", response_model=list[AiChatMessage], summary="AI chat history")
async def get_ai_chat(
    player_id: str,
    current_user: User = Depends(get_current_user),
    client: AsyncClient = Depends(get_firestore),
) -> list[AiChatMessage]:
    return await ai_chat_service.get_ai_chat(client, player_id)


@router.post("/chat/ai", response_model=AiChatResponse, summary="Send a prompt to the AI assistant")
async def send_ai_message(
    request: SendAiMessageRequest,
    current_user: User = Depends(get_current_user),
    client: AsyncClient = Depends(get_firestore),
    bridge: Optional[ChatBridge] = Depends(get_chat_bridge),
) -> AiChatResponse:
    """
    Store the player's prompt and, when a model is configured, the reply.

    Without a configured model ``response`` is null and the app stores its
    own reply through ``POST /chat/ai/response``. A model failure returns
    503 after the prompt has been stored.
    """
    history = await ai_chat_service.get_ai_chat(client, request.player_id)
    await ai_chat_service.add_ai_message(client, request.player_id, "user", request.message)

    if bridge is None:
        return AiChatResponse()

    reply = await bridge.generate(request.message, history)
    stored = await ai_chat_service.add_ai_message(client, request.player_id, "assistant", reply)
    return AiChatResponse(response=stored)


@router.post("/chat/ai/response", summary="Store an assistant reply")
async def store_ai_response(
    request: StoreAiResponseRequest,
    current_user: User = Depends(get_current_user),
    client: AsyncClient = Depends(get_firestore),
) -> dict:
    await ai_chat_service.add_ai_message(client, request.player_id, "assistant", request.response)
    return {"success": True}


@router.delete("/chat/ai/{player_id}", summary="Delete AI chat history")
async def delete_ai_chat(
    player_id: str,
    current_user: User = Depends(get_current_user),
    client: AsyncClient = Depends(get_firestore),
) -> dict:
    return await ai_chat_service.delete_ai_chat(client, player_id)
