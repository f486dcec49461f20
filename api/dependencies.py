"""FastAPI dependencies shared by the routers."""

from typing import Optional

from fastapi import Request
from google.cloud.firestore_v1.async_client import AsyncClient

from api.llm import ChatBridge
from libs.firebase.client import get_firestore_async_client


def get_firestore() -> AsyncClient:
    """The process-wide Firestore client; overridden in tests."""
    return get_firestore_async_client()


def get_chat_bridge(request: Request) -> Optional[ChatBridge]:
    """The AI bridge built at start-up, or None when no model is configured."""
    return getattr(request.app.state, "chat_bridge", None)
