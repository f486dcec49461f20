"""Coaching tasks assigned within an active subscription."""

import uuid
from typing import Any

import structlog
from google.cloud.firestore_v1.async_client import AsyncClient
from google.cloud.firestore_v1.base_query import FieldFilter

from libs.common.dates import now_iso, to_datetime
from libs.common.errors import InvalidRequestError, NotFoundError
from libs.firestore.lookups import fetch_documents
from libs.models.firestore import Task, TaskView

logger = structlog.get_logger(__name__)

TASKS = "tasks"


def validate_task_window(task: Task, subscription: dict[str, Any]) -> None:
    """Checks a task against the subscription it is assigned under.

    Raises:
        InvalidRequestError: If the subscription is not active, belongs to a
            different pair, or the task dates fall outside its window
    """
    status = subscription.get("status")
    if status != "active":
        raise InvalidRequestError(
            f"Cannot create task for a {status} subscription. The subscription must be active."
        )
    if task.player_id != subscription.get("playerId"):
        raise InvalidRequestError("Player ID does not match the subscription")
    if task.coach_id != subscription.get("coachId"):
        raise InvalidRequestError("Coach ID does not match the subscription")

    sub_start = to_datetime(subscription.get("startDate"))
    sub_end = to_datetime(subscription.get("endDate"))
    task_start = to_datetime(task.start_date)
    task_due = to_datetime(task.due_date)
    if task_start is None or task_due is None:
        raise InvalidRequestError("Task start and due dates are required")

    if sub_start and task_start < sub_start:
        raise InvalidRequestError(
            f"Task start date ({task.start_date}) must be on or after the subscription start date "
            f"({subscription.get('startDate')})"
        )
    if sub_end and task_start > sub_end:
        raise InvalidRequestError(
            f"Task start date ({task.start_date}) must be on or before the subscription end date "
            f"({subscription.get('endDate')})"
        )
    if sub_end and task_due > sub_end:
        raise InvalidRequestError(
            f"Task due date ({task.due_date}) must be on or before the subscription end date "
            f"({subscription.get('endDate')})"
        )
    if task_start >= task_due:
        raise InvalidRequestError("Task start date must be before the due date")


async def create_task(client: AsyncClient, task: Task) -> Task:
    """Creates a task after checking it against its subscription.

    Raises:
        InvalidRequestError: If the subscription is missing or the task breaks
            one of the window rules
    """
    subscription = await client.collection("subscriptions").document(task.subscription_id).get()
    if not subscription.exists:
        raise InvalidRequestError("Subscription not found")
    validate_task_window(task, subscription.to_dict() or {})

    timestamp = now_iso()
    stored = task.model_copy(update={"id": str(uuid.uuid4()), "created_at": timestamp, "updated_at": timestamp})
    await client.collection(TASKS).document(stored.id).set(stored.to_document())

    logger.info("Task created", task_id=stored.id, subscription_id=task.subscription_id)
    return stored


def _to_view(task: Task, players: dict, coaches: dict) -> TaskView:
    return TaskView(
        **task.model_dump(),
        player_name=(players.get(task.player_id) or {}).get("name") or task.player_id or "Unknown",
        coach_name=(coaches.get(task.coach_id) or {}).get("name") or task.coach_id or "Unknown",
    )


async def list_tasks(
    client: AsyncClient,
    coach_id: str | None = None,
    player_id: str | None = None,
    status: str | None = None,
) -> list[TaskView]:
    query = client.collection(TASKS)
    for field, value in (("coachId", coach_id), ("playerId", player_id), ("status", status)):
        if value:
            query = query.where(filter=FieldFilter(field, "==", value))

    tasks = [Task.from_snapshot(doc) for doc in await query.get()]
    players = await fetch_documents(client, "players", (t.player_id for t in tasks))
    coaches = await fetch_documents(client, "coaches", (t.coach_id for t in tasks))
    logger.info("Tasks listed", count=len(tasks))
    return [_to_view(t, players, coaches) for t in tasks]


async def get_task(client: AsyncClient, task_id: str) -> TaskView:
    snapshot = await client.collection(TASKS).document(task_id).get()
    if not snapshot.exists:
        raise NotFoundError(f"Task with ID {task_id} not found")
    task = Task.from_snapshot(snapshot)
    players = await fetch_documents(client, "players", [task.player_id])
    coaches = await fetch_documents(client, "coaches", [task.coach_id])
    return _to_view(task, players, coaches)


async def update_task(client: AsyncClient, task_id: str, patch: dict[str, Any]) -> TaskView:
    """Applies a partial update; moving to ``completed`` stamps ``completedAt``.

    Args:
        client: The asynchronous Firestore client.
        task_id: Document id.
        patch: camelCase fields to change.

    Raises:
        NotFoundError: If the task does not exist
    """
    doc_ref = client.collection(TASKS).document(task_id)
    snapshot = await doc_ref.get()
    if not snapshot.exists:
        raise NotFoundError(f"Task with ID {task_id} not found")

    timestamp = now_iso()
    update_data = {**patch, "updatedAt": timestamp}
    current_status = (snapshot.to_dict() or {}).get("status")
    if patch.get("status") == "completed" and current_status != "completed":
        update_data["completedAt"] = timestamp
    await doc_ref.update(update_data)

    logger.info("Task updated", task_id=task_id, fields=sorted(patch))
    return await get_task(client, task_id)


async def delete_task(client: AsyncClient, task_id: str) -> dict[str, str]:
    doc_ref = client.collection(TASKS).document(task_id)
    snapshot = await doc_ref.get()
    if not snapshot.exists:
        raise NotFoundError(f"Task with ID {task_id} not found")
    await doc_ref.delete()
    logger.info("Task deleted", task_id=task_id)
    return {"message": "Task deleted successfully"}
