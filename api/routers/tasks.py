from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query, status
from google.cloud.firestore_v1.async_client import AsyncClient

from api.auth import User, get_current_user
from api.dependencies import get_firestore
from api.models import CreateTaskRequest, UpdateTaskRequest
from libs.firestore import tasks as task_service
from libs.models.firestore import Task, TaskStatus, TaskView

router = APIRouter()
logger = structlog.get_logger(__name__)


@router.post(
    "/tasks",
    response_model=Task,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
    summary="Assign a task",
)
async def create_task(
    request: CreateTaskRequest,
    current_user: User = Depends(get_current_user),
    client: AsyncClient = Depends(get_firestore),
) -> Task:
    """
    Assign a task under an active subscription.

    The task must start within the subscription window, be due no later than
    its end, and start before it is due.
    """
    return await task_service.create_task(client, Task(**request.model_dump()))


@router.get("/tasks", response_model=list[TaskView], response_model_exclude_none=True, summary="List tasks")
async def list_tasks(
    coach_id: Optional[str] = Query(None, alias="coachId"),
    player_id: Optional[str] = Query(None, alias="playerId"),
    status_filter: Optional[TaskStatus] = Query(None, alias="status"),
    current_user: User = Depends(get_current_user),
    client: AsyncClient = Depends(get_firestore),
) -> list[TaskView]:
    return await task_service.list_tasks(client, coach_id=coach_id, player_id=player_id, status=status_filter)


@router.get("/tasks/{task_id}", response_model=TaskView, response_model_exclude_none=True, summary="Get a task")
async def get_task(
    task_id: str,
    current_user: User = Depends(get_current_user),
    client: AsyncClient = Depends(get_firestore),
) -> TaskView:
    return await task_service.get_task(client, task_id)


@router.patch("/tasks/{task_id}", response_model=TaskView, response_model_exclude_none=True, summary="Update a task")
async def update_task(
    task_id: str,
    request: UpdateTaskRequest,
    current_user: User = Depends(get_current_user),
    client: AsyncClient = Depends(get_firestore),
) -> TaskView:
    return await task_service.update_task(client, task_id, request.to_patch())


@router.delete("/tasks/{task_id}", summary="Delete a task")
async def delete_task(
    task_id: str,
    current_user: User = Depends(get_current_user),
    client: AsyncClient = Depends(get_firestore),
) -> dict:
    return await task_service.delete_task(client, task_id)
