from fastapi import APIRouter, Depends
from google.cloud.firestore_v1.async_client import AsyncClient

from api.auth import User, get_current_admin
from api.dependencies import get_firestore
from libs.firestore.calendar import get_calendar_data

router = APIRouter()


@router.get("/calendar", summary="Admin calendar feed")
async def calendar(
    current_admin: User = Depends(get_current_admin),
    client: AsyncClient = Depends(get_firestore),
) -> dict:
    """Subscriptions, tasks and coach availability for the admin calendar."""
    return await get_calendar_data(client)
