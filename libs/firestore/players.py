"""Player accounts: identity account plus a ``players`` profile document."""

import asyncio
from datetime import UTC, datetime
from typing import Any

import structlog
from google.cloud.firestore_v1.async_client import AsyncClient
from google.cloud.firestore_v1.base_query import FieldFilter

from libs.common.dates import now_iso, to_datetime
from libs.common.errors import NotFoundError
from libs.firebase import auth_service
from libs.firestore.lookups import fetch_documents
from libs.models.firestore import Player

logger = structlog.get_logger(__name__)

PLAYERS = "players"


async def create_player(
    client: AsyncClient,
    email: str,
    password: str,
    name: str,
    date_of_birth: str,
    status: str | None = None,
) -> dict[str, Any]:
    """Creates the identity account and the player profile.

    The profile is keyed by the new uid. A custom token is minted so the
    mobile app can sign the player in straight away.

    Raises:
        ConflictError: If the email is already registered
    """

    async def write_profile(uid: str) -> Player:
        timestamp = now_iso()
        player = Player(
            id=uid,
            uid=uid,
            email=email,
            name=name,
            date_of_birth=date_of_birth,
            status=status or "pending_activation",
            created_at=timestamp,
            updated_at=timestamp,
        )
        await client.collection(PLAYERS).document(uid).set(player.to_document())
        return player

    uid, player = await auth_service.create_account_with_profile(email, password, name, write_profile)
    access_token = auth_service.create_custom_token(uid)

    logger.info("Player created", player_id=uid)
    data = player.model_dump(mode="json", by_alias=True, exclude_none=True)
    return {
        "success": True,
        "message": "Player created successfully",
        "access_token": access_token,
        "data": data,
        "player": data,
    }


async def list_players(client: AsyncClient, search: str | None = None, status: str | None = None) -> list[Player]:
    """Lists players; ``status="all"`` disables the status filter.

    ``search`` is a case-insensitive substring match on name and email.
    """
    query = client.collection(PLAYERS)
    if status and status != "all":
        query = query.where(filter=FieldFilter("status", "==", status))

    players = [Player.from_snapshot(doc) for doc in await query.get()]
    if search and search.strip():
        needle = search.strip().lower()
        players = [p for p in players if needle in (p.name or "").lower() or needle in (p.email or "").lower()]

    logger.info("Players listed", count=len(players), status=status)
    return players


async def get_player(client: AsyncClient, player_id: str) -> Player:
    snapshot = await client.collection(PLAYERS).document(player_id).get()
    if not snapshot.exists:
        raise NotFoundError("Player not found")
    return Player.from_snapshot(snapshot)


async def update_player(client: AsyncClient, player_id: str, patch: dict[str, Any]) -> dict[str, Any]:
    """Updates the provided profile fields and refreshes ``updatedAt``.

    Raises:
        NotFoundError: If the player does not exist
    """
    doc_ref = client.collection(PLAYERS).document(player_id)
    if not (await doc_ref.get()).exists:
        raise NotFoundError("Player not found")

    await doc_ref.update({**patch, "updatedAt": now_iso()})
    logger.info("Player updated", player_id=player_id, fields=sorted(patch))
    return {"success": True, "message": "Player updated successfully"}


async def delete_player(client: AsyncClient, player_id: str) -> dict[str, Any]:
    """Deletes the profile, then the identity account.

    A failure removing the identity account is logged; the profile stays deleted.
    """
    doc_ref = client.collection(PLAYERS).document(player_id)
    if not (await doc_ref.get()).exists:
        raise NotFoundError("Player not found")

    await doc_ref.delete()
    try:
        auth_service.delete_account(player_id)
    except Exception as e:
        logger.error("Failed to delete player identity account", player_id=player_id, error=str(e))

    logger.info("Player deleted", player_id=player_id)
    return {"success": True, "message": "Player deleted successfully"}


def _latest_first(items: list[dict], field: str) -> list[dict]:
    oldest = datetime.min.replace(tzinfo=UTC)
    return sorted(items, key=lambda item: to_datetime(item.get(field)) or oldest, reverse=True)


def recent_activities(tasks: list[dict]) -> list[dict[str, Any]]:
    """Up to five recent events: three latest completions and two latest assignments."""
    completed = _latest_first(
        [t for t in tasks if t.get("status") == "completed" and t.get("completedAt")], "completedAt"
    )[:3]
    assigned = _latest_first([t for t in tasks if t.get("status") == "pending" and t.get("createdAt")], "createdAt")[:2]

    activities = []
    for task in completed:
        activities.append(
            {
                "type": "task_completed",
                "title": "Task Completed",
                "description": task.get("title") or "Task",
                "time": task["completedAt"],
            }
        )
    for task in assigned:
        activities.append(
            {
                "type": "task_assigned",
                "title": "New Task Assigned",
                "description": task.get("title") or "Task",
                "time": task["createdAt"],
            }
        )
    return _latest_first(activities, "time")[:5]


async def get_player_dashboard(client: AsyncClient, player_id: str) -> dict[str, Any]:
    """Summary shown on the player's home screen."""
    subscriptions_snap, tasks_snap = await asyncio.gather(
        client.collection("subscriptions").where(filter=FieldFilter("playerId", "==", player_id)).get(),
        client.collection("tasks").where(filter=FieldFilter("playerId", "==", player_id)).get(),
    )
    subscriptions = [doc.to_dict() or {} for doc in subscriptions_snap]
    tasks = [doc.to_dict() or {} for doc in tasks_snap]

    coaches = await fetch_documents(client, "coaches", (sub.get("coachId") for sub in subscriptions))

    return {
        "stats": {
            "activeSubscriptions": sum(1 for sub in subscriptions if sub.get("status") == "active"),
            "completedTasks": sum(1 for task in tasks if task.get("status") == "completed"),
            "pendingTasks": sum(1 for task in tasks if task.get("status") == "pending"),
            "totalCoaches": len(coaches),
        },
        "recentActivities": recent_activities(tasks),
    }
