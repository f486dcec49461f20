"""Subscription endpoints.

Listing runs the expiry sweep first so stale ``active`` rows never reach the
admin console; ``POST /subscriptions/expire-check`` runs it on demand.
"""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query, status
from google.cloud.firestore_v1.async_client import AsyncClient

from api.auth import User, get_current_user
from api.dependencies import get_firestore
from api.models import CreateSubscriptionRequest, ExpireCheckResponse, UpdateSubscriptionRequest
from api.scheduler import run_sweep
from libs.firestore import subscriptions as subscription_service
from libs.models.firestore import Subscription, SubscriptionStatus, SubscriptionView

router = APIRouter()
logger = structlog.get_logger(__name__)


@router.post(
    "/subscriptions",
    response_model=Subscription,
    status_code=status.HTTP_201_CREATED,
    summary="Create a subscription",
)
async def create_subscription(
    request: CreateSubscriptionRequest,
    current_user: User = Depends(get_current_user),
    client: AsyncClient = Depends(get_firestore),
) -> Subscription:
    """
    Create a subscription between a player and a coach.

    A second ``active`` subscription for the same pair is rejected with 400.
    An ``active`` subscription whose end date already passed is stored as
    ``stopped``.

    Example:
        ```bash
        curl -X POST http://localhost:8000/api/subscriptions \\
          -H "Authorization: Bearer $TOKEN" -H "Content-Type: application/json" \\
          -d '{"playerId": "p1", "coachId": "c1", "status": "active", "startDate": "2024-01-01", "endDate": "2024-01-31"}'
        ```
    """
    logger.info("Creating subscription", uid=current_user.uid, coach_id=request.coach_id, player_id=request.player_id)
    data = Subscription(**request.model_dump())
    return await subscription_service.create_subscription(client, data)


@router.get("/subscriptions", response_model=list[SubscriptionView], summary="List subscriptions")
async def list_subscriptions(
    search: Optional[str] = Query(None, description="Substring of a name, email or id"),
    status_filter: Optional[SubscriptionStatus] = Query(None, alias="status"),
    coach_id: Optional[str] = Query(None, alias="coachId"),
    player_id: Optional[str] = Query(None, alias="playerId"),
    current_user: User = Depends(get_current_user),
    client: AsyncClient = Depends(get_firestore),
) -> list[SubscriptionView]:
    """List subscriptions joined with player and coach names, after an expiry sweep."""
    await run_sweep(client, trigger="list")
    return await subscription_service.list_subscriptions(
        client, search=search, status=status_filter, coach_id=coach_id, player_id=player_id
    )


@router.post(
    "/subscriptions/expire-check",
    response_model=ExpireCheckResponse,
    summary="Run the expiry sweep now",
)
async def expire_check(
    current_user: User = Depends(get_current_user),
    client: AsyncClient = Depends(get_firestore),
) -> ExpireCheckResponse:
    """
    Stop every active subscription whose end date has passed.

    Example:
        ```bash
        curl -X POST http://localhost:8000/api/subscriptions/expire-check -H "Authorization: Bearer $TOKEN"
        ```
    """
    result = await subscription_service.expire_subscriptions(client)
    logger.info("Manual expiry check", uid=current_user.uid, expired_count=result["expiredCount"])
    return ExpireCheckResponse(
        message=f"Checked and updated {result['expiredCount']} expired subscriptions",
        expired_count=result["expiredCount"],
    )


@router.get("/subscriptions/{subscription_id}", response_model=SubscriptionView, summary="Get a subscription")
async def get_subscription(
    subscription_id: str,
    current_user: User = Depends(get_current_user),
    client: AsyncClient = Depends(get_firestore),
) -> SubscriptionView:
    return await subscription_service.get_subscription(client, subscription_id)


@router.patch("/subscriptions/{subscription_id}", response_model=SubscriptionView, summary="Update a subscription")
async def update_subscription(
    subscription_id: str,
    request: UpdateSubscriptionRequest,
    current_user: User = Depends(get_current_user),
    client: AsyncClient = Depends(get_firestore),
) -> SubscriptionView:
    """
    Partially update a subscription.

    Whatever status is requested, a subscription whose end date has passed
    is stored as ``stopped`` rather than ``active``. Fields sent as null are
    left unchanged, and activating a second subscription for the same pair
    is rejected.
    """
    return await subscription_service.update_subscription(client, subscription_id, request.to_patch())


@router.delete("/subscriptions/{subscription_id}", summary="Delete a subscription")
async def delete_subscription(
    subscription_id: str,
    current_user: User = Depends(get_current_user),
    client: AsyncClient = Depends(get_firestore),
) -> dict:
    return await subscription_service.delete_subscription(client, subscription_id)
