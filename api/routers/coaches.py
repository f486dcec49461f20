"""Coach endpoints. Mutations require an admin."""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query, status
from google.cloud.firestore_v1.async_client import AsyncClient

from api.auth import User, get_current_admin, get_current_user
from api.dependencies import get_firestore
from api.models import CoachFilterOptions, CreateCoachRequest, UpdateCoachRequest
from libs.firestore import coaches as coach_service
from libs.models.firestore import Coach

router = APIRouter()
logger = structlog.get_logger(__name__)


def _coach_data(coach: Coach) -> dict:
    return coach.model_dump(mode="json", by_alias=True, exclude_none=True)


@router.post("/coaches", status_code=status.HTTP_201_CREATED, summary="Create a coach")
async def create_coach(
    request: CreateCoachRequest,
    current_admin: User = Depends(get_current_admin),
    client: AsyncClient = Depends(get_firestore),
) -> dict:
    """
    Create the coach's identity account and profile.

    Example:
        ```bash
        curl -X POST http://localhost:8000/api/coaches \\
          -H "Authorization: Bearer $TOKEN" -H "Content-Type: application/json" \\
          -d '{"name": "Alex Coach", "email": "alex@example.com", "password": "secret123",
               "dateOfBirth": "1990-02-01", "profession": "Tennis", "pricePerSession": 40,
               "availableDays": ["Monday"], "availableHours": {"Monday": [{"start": "09:00", "end": "12:00"}]}}'
        ```
    """
    profile = Coach(
        name=request.name,
        date_of_birth=request.date_of_birth,
        profession=request.profession,
        price_per_session=request.price_per_session,
        available_days=request.available_days,
        available_hours=request.available_hours,
        status=request.status or "pending_activation",
    )
    logger.info("Creating coach", admin_uid=current_admin.uid, email=request.email)
    coach = await coach_service.create_coach(client, request.email, request.password, profile)
    return {"success": True, "message": "Coach created successfully", "data": _coach_data(coach)}


@router.get("/coaches", summary="List coaches")
async def list_coaches(
    search: Optional[str] = Query(None, description="Substring of name, email or profession"),
    status_filter: Optional[str] = Query(None, alias="status", description="Account status or 'all'"),
    profession: Optional[str] = Query(None),
    min_price: Optional[float] = Query(None, alias="minPrice"),
    max_price: Optional[float] = Query(None, alias="maxPrice"),
    day: Optional[str] = Query(None, description="Day the coach has time slots on"),
    current_user: User = Depends(get_current_user),
    client: AsyncClient = Depends(get_firestore),
) -> dict:
    coaches = await coach_service.list_coaches(
        client,
        search=search,
        status=status_filter,
        profession=profession,
        min_price=min_price,
        max_price=max_price,
        day=day,
    )
    return {"success": True, "data": [_coach_data(c) for c in coaches]}


@router.get("/coaches/filter-options", summary="Filter values for the coach search")
async def filter_options(
    current_user: User = Depends(get_current_user),
    client: AsyncClient = Depends(get_firestore),
) -> dict:
    options = CoachFilterOptions.model_validate(await coach_service.get_coach_filter_options(client))
    return {"success": True, "data": options.model_dump(by_alias=True)}


@router.get("/coaches/{coach_id}", summary="Get a coach")
async def get_coach(
    coach_id: str,
    current_user: User = Depends(get_current_user),
    client: AsyncClient = Depends(get_firestore),
) -> dict:
    return {"success": True, "data": _coach_data(await coach_service.get_coach(client, coach_id))}


@router.patch("/coaches/{coach_id}", summary="Update a coach")
async def update_coach(
    coach_id: str,
    request: UpdateCoachRequest,
    current_admin: User = Depends(get_current_admin),
    client: AsyncClient = Depends(get_firestore),
) -> dict:
    return await coach_service.update_coach(client, coach_id, request.to_patch())


@router.delete("/coaches/{coach_id}", summary="Delete a coach")
async def delete_coach(
    coach_id: str,
    current_admin: User = Depends(get_current_admin),
    client: AsyncClient = Depends(get_firestore),
) -> dict:
    logger.info("Deleting coach", admin_uid=current_admin.uid, coach_id=coach_id)
    return await coach_service.delete_coach(client, coach_id)
