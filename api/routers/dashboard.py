import structlog
from fastapi import APIRouter, Depends
from google.cloud.firestore_v1.async_client import AsyncClient

from api.auth import User, get_current_admin
from api.dependencies import get_firestore
from api.scheduler import run_sweep
from libs.firestore.dashboard import get_statistics

router = APIRouter()
logger = structlog.get_logger(__name__)


@router.get("/dashboard/stats", summary="Admin dashboard statistics")
async def dashboard_stats(
    current_admin: User = Depends(get_current_admin),
    client: AsyncClient = Depends(get_firestore),
) -> dict:
    """
    Totals, active counts, subscriptions by status and six months of growth.

    Expired subscriptions are stopped before counting.

    Example:
        ```bash
        curl http://localhost:8000/api/dashboard/stats -H "Authorization: Bearer $TOKEN"
        ```
    """
    await run_sweep(client, trigger="dashboard")
    return await get_statistics(client)
