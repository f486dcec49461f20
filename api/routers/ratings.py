"""Rating endpoints. Every write refreshes the coach's rating aggregate."""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query, status
from google.cloud.firestore_v1.async_client import AsyncClient

from api.auth import User, get_current_user
from api.dependencies import get_firestore
from api.models import CreateRatingRequest, UpdateRatingRequest
from libs.firestore import ratings as rating_service
from libs.models.firestore import Rating

router = APIRouter()
logger = structlog.get_logger(__name__)


@router.post("/ratings", response_model=Rating, status_code=status.HTTP_201_CREATED, summary="Rate a coach")
async def create_rating(
    request: CreateRatingRequest,
    current_user: User = Depends(get_current_user),
    client: AsyncClient = Depends(get_firestore),
) -> Rating:
    """
    Create a player's rating of a coach.

    The player must have (or have had) a subscription with the coach, and
    may rate each coach once; later changes go through ``PATCH``.

    Example:
        ```bash
        curl -X POST http://localhost:8000/api/ratings \\
          -H "Authorization: Bearer $TOKEN" -H "Content-Type: application/json" \\
          -d '{"coachId": "c1", "playerId": "p1", "rating": 5, "review": "Great sessions"}'
        ```
    """
    return await rating_service.create_rating(
        client,
        coach_id=request.coach_id,
        player_id=request.player_id,
        rating=request.rating,
        review=request.review,
        player_name=request.player_name,
    )


@router.get("/ratings", response_model=list[Rating], summary="List ratings")
async def list_ratings(
    coach_id: Optional[str] = Query(None, alias="coachId"),
    player_id: Optional[str] = Query(None, alias="playerId"),
    current_user: User = Depends(get_current_user),
    client: AsyncClient = Depends(get_firestore),
) -> list[Rating]:
    return await rating_service.list_ratings(client, coach_id=coach_id, player_id=player_id)


@router.get("/ratings/coach/{coach_id}/stats", summary="Rating statistics for a coach")
async def coach_rating_stats(
    coach_id: str,
    current_user: User = Depends(get_current_user),
    client: AsyncClient = Depends(get_firestore),
) -> dict:
    """Average, count and 1-5 distribution over all of a coach's ratings."""
    return await rating_service.get_coach_rating_stats(client, coach_id)


@router.get(
    "/ratings/coach/{coach_id}/player/{player_id}",
    response_model=Optional[Rating],
    summary="The rating a player gave a coach",
)
async def rating_for_pair(
    coach_id: str,
    player_id: str,
    current_user: User = Depends(get_current_user),
    client: AsyncClient = Depends(get_firestore),
) -> Optional[Rating]:
    """Returns ``null`` when the player has not rated the coach."""
    return await rating_service.find_rating_for_pair(client, coach_id, player_id)


@router.get("/ratings/{rating_id}", response_model=Rating, summary="Get a rating")
async def get_rating(
    rating_id: str,
    current_user: User = Depends(get_current_user),
    client: AsyncClient = Depends(get_firestore),
) -> Rating:
    return await rating_service.get_rating(client, rating_id)


@router.patch("/ratings/{rating_id}", response_model=Rating, summary="Update a rating")
async def update_rating(
    rating_id: str,
    request: UpdateRatingRequest,
    current_user: User = Depends(get_current_user),
    client: AsyncClient = Depends(get_firestore),
) -> Rating:
    return await rating_service.update_rating(client, rating_id, rating=request.rating, review=request.review)


@router.delete("/ratings/{rating_id}", summary="Delete a rating")
async def delete_rating(
    rating_id: str,
    current_user: User = Depends(get_current_user),
    client: AsyncClient = Depends(get_firestore),
) -> dict:
    return await rating_service.delete_rating(client, rating_id)
