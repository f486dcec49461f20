"""Player endpoints. Listing and every mutation require an admin."""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query, status
from google.cloud.firestore_v1.async_client import AsyncClient

from api.auth import User, get_current_admin, get_current_user
from api.dependencies import get_firestore
from api.models import CreatePlayerRequest, UpdatePlayerRequest
from libs.firestore import players as player_service

router = APIRouter()
logger = structlog.get_logger(__name__)


@router.post("/players", status_code=status.HTTP_201_CREATED, summary="Create a player")
async def create_player(
    request: CreatePlayerRequest,
    current_admin: User = Depends(get_current_admin),
    client: AsyncClient = Depends(get_firestore),
) -> dict:
    """
    Create the player's identity account and profile.

    The identity account is rolled back if the profile cannot be written.
    The response carries a custom token the mobile app can sign in with.

    Example:
        ```bash
        curl -X POST http://localhost:8000/api/players \\
          -H "Authorization: Bearer $TOKEN" -H "Content-Type: application/json" \\
          -d '{"name": "Sam Player", "email": "sam@example.com", "password": "secret123", "dateOfBirth": "2008-05-14"}'
        ```
    """
    logger.info("Creating player", admin_uid=current_admin.uid, email=request.email)
    return await player_service.create_player(
        client,
        email=request.email,
        password=request.password,
        name=request.name,
        date_of_birth=request.date_of_birth,
        status=request.status,
    )


@router.get("/players", summary="List players")
async def list_players(
    search: Optional[str] = Query(None, description="Substring of name or email"),
    status_filter: Optional[str] = Query(None, alias="status", description="Account status or 'all'"),
    current_admin: User = Depends(get_current_admin),
    client: AsyncClient = Depends(get_firestore),
) -> dict:
    players = await player_service.list_players(client, search=search, status=status_filter)
    return {"success": True, "data": [p.model_dump(mode="json", by_alias=True, exclude_none=True) for p in players]}


@router.get("/players/{player_id}", summary="Get a player")
async def get_player(
    player_id: str,
    current_user: User = Depends(get_current_user),
    client: AsyncClient = Depends(get_firestore),
) -> dict:
    player = await player_service.get_player(client, player_id)
    return {"success": True, "data": player.model_dump(mode="json", by_alias=True, exclude_none=True)}


@router.get("/players/{player_id}/dashboard", summary="Player home screen summary")
async def player_dashboard(
    player_id: str,
    current_user: User = Depends(get_current_user),
    client: AsyncClient = Depends(get_firestore),
) -> dict:
    return {"success": True, "data": await player_service.get_player_dashboard(client, player_id)}


@router.patch("/players/{player_id}", summary="Update a player")
async def update_player(
    player_id: str,
    request: UpdatePlayerRequest,
    current_admin: User = Depends(get_current_admin),
    client: AsyncClient = Depends(get_firestore),
) -> dict:
    return await player_service.update_player(client, player_id, request.to_patch())


@router.delete("/players/{player_id}", summary="Delete a player")
async def delete_player(
    player_id: str,
    current_admin: User = Depends(get_current_admin),
    client: AsyncClient = Depends(get_firestore),
) -> dict:
    logger.info("Deleting player", admin_uid=current_admin.uid, player_id=player_id)
    return await player_service.delete_player(client, player_id)
