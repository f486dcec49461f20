"""Calendar feed: subscriptions, tasks and coach availability in one payload."""

import asyncio
from typing import Any

import structlog
from google.cloud.firestore_v1.async_client import AsyncClient

from libs.firestore.lookups import display_name
from libs.models.firestore import Coach

logger = structlog.get_logger(__name__)


async def get_calendar_data(client: AsyncClient) -> dict[str, list[dict[str, Any]]]:
    """Builds the admin calendar feed.

    Four collections are read in parallel and joined through id lookup maps.
    Coaches that publish ``availableDays`` contribute an availability entry
    whose time slots fall back to 09:00-17:00 when none are recorded.
    """
    subscriptions_snap, tasks_snap, players_snap, coaches_snap = await asyncio.gather(
        client.collection("subscriptions").get(),
        client.collection("tasks").get(),
        client.collection("players").get(),
        client.collection("coaches").get(),
    )

    players = {doc.id: display_name(doc.to_dict(), "Unknown Player") for doc in players_snap}
    coaches = {}
    availability = []
    for doc in coaches_snap:
        data = doc.to_dict() or {}
        name = display_name(data, "Unknown Coach")
        coaches[doc.id] = name
        if not isinstance(data.get("availableDays"), list):
            continue
        coach = Coach.model_validate({**data, "id": doc.id})
        availability.append(
            {
                "id": doc.id,
                "coachName": name,
                "availableDays": coach.available_days,
                "timeSlots": coach.calendar_time_slots(),
            }
        )

    subscriptions = []
    for doc in subscriptions_snap:
        data = doc.to_dict() or {}
        subscriptions.append(
            {
                "id": doc.id,
                "playerName": players.get(data.get("playerId"), "Unknown Player"),
                "coachName": coaches.get(data.get("coachId"), "Unknown Coach"),
                "startDate": data.get("startDate"),
                "endDate": data.get("endDate"),
                "status": data.get("status"),
                "playerId": data.get("playerId"),
                "coachId": data.get("coachId"),
            }
        )

    tasks = []
    for doc in tasks_snap:
        data = doc.to_dict() or {}
        tasks.append(
            {
                "id": doc.id,
                "title": data.get("title"),
                "description": data.get("description") or "",
                "startDate": data.get("startDate"),
                "dueDate": data.get("dueDate"),
                "playerName": players.get(data.get("playerId"), "Unknown Player"),
                "coachName": coaches.get(data.get("coachId"), "Unknown Coach"),
                "status": data.get("status") or "pending",
                "playerId": data.get("playerId"),
                "coachId": data.get("coachId"),
            }
        )

    logger.info(
        "Calendar data fetched",
        subscriptions=len(subscriptions),
        tasks=len(tasks),
        coaches_with_availability=len(availability),
    )
    return {"subscriptions": subscriptions, "tasks": tasks, "coachAvailability": availability}
