"""Coach accounts: identity account plus a ``coaches`` profile document."""

from typing import Any

import structlog
from google.cloud.firestore_v1.async_client import AsyncClient
from google.cloud.firestore_v1.base_query import FieldFilter

from libs.common.dates import now_iso
from libs.common.errors import NotFoundError
from libs.firebase import auth_service
from libs.models.firestore import Coach

logger = structlog.get_logger(__name__)

COACHES = "coaches"

DEFAULT_PRICE_RANGE = {"min": 0, "max": 100}


async def create_coach(client: AsyncClient, email: str, password: str, profile: Coach) -> Coach:
    """Creates the identity account and the coach profile keyed by its uid.

    Args:
        client: The asynchronous Firestore client.
        email: Account email.
        password: Account password.
        profile: Profile fields; ids, status default and timestamps are set here.

    Raises:
        ConflictError: If the email is already registered
    """

    async def write_profile(uid: str) -> Coach:
        timestamp = now_iso()
        coach = profile.model_copy(
            update={"id": uid, "uid": uid, "email": email, "created_at": timestamp, "updated_at": timestamp}
        )
        await client.collection(COACHES).document(uid).set(coach.to_document())
        return coach

    _, coach = await auth_service.create_account_with_profile(email, password, profile.name, write_profile)
    logger.info("Coach created", coach_id=coach.id, profession=coach.profession)
    return coach


def _works_on(coach: Coach, day: str) -> bool:
    wanted = day.lower()
    return any(name.lower() == wanted and slots for name, slots in coach.available_hours.items())


async def list_coaches(
    client: AsyncClient,
    search: str | None = None,
    status: str | None = None,
    profession: str | None = None,
    min_price: float | None = None,
    max_price: float | None = None,
    day: str | None = None,
) -> list[Coach]:
    """Lists coaches with the admin console's filters.

    ``status`` runs in Firestore (``"all"`` disables it); the other filters
    are applied in memory. ``search`` matches name, email and profession.
    """
    query = client.collection(COACHES)
    if status and status != "all":
        query = query.where(filter=FieldFilter("status", "==", status))
    coaches = [Coach.from_snapshot(doc) for doc in await query.get()]

    if search and search.strip():
        needle = search.strip().lower()
        coaches = [
            c
            for c in coaches
            if any(needle in (value or "").lower() for value in (c.name, c.email, c.profession))
        ]
    if profession and profession.strip():
        coaches = [c for c in coaches if c.profession == profession]
    if min_price is not None:
        coaches = [c for c in coaches if c.price_per_session is not None and c.price_per_session >= min_price]
    if max_price is not None:
        coaches = [c for c in coaches if c.price_per_session is not None and c.price_per_session <= max_price]
    if day and day.strip():
        coaches = [c for c in coaches if _works_on(c, day.strip())]

    logger.info("Coaches listed", count=len(coaches), status=status, profession=profession)
    return coaches


async def get_coach_filter_options(client: AsyncClient) -> dict[str, Any]:
    """Professions, price range and working days across active coaches."""
    docs = await client.collection(COACHES).where(filter=FieldFilter("status", "==", "active")).get()

    professions = set()
    prices = []
    days = set()
    for doc in docs:
        coach = Coach.from_snapshot(doc)
        if coach.profession:
            professions.add(coach.profession)
        if coach.price_per_session:
            prices.append(coach.price_per_session)
        days.update(name for name, slots in coach.available_hours.items() if slots)

    return {
        "professions": sorted(professions),
        "priceRange": {"min": min(prices), "max": max(prices)} if prices else dict(DEFAULT_PRICE_RANGE),
        "days": sorted(days),
    }


async def get_coach(client: AsyncClient, coach_id: str) -> Coach:
    snapshot = await client.collection(COACHES).document(coach_id).get()
    if not snapshot.exists:
        raise NotFoundError("Coach not found")
    return Coach.from_snapshot(snapshot)


async def update_coach(client: AsyncClient, coach_id: str, patch: dict[str, Any]) -> dict[str, Any]:
    """Updates the provided profile fields and refreshes ``updatedAt``.

    Raises:
        NotFoundError: If the coach does not exist
    """
    doc_ref = client.collection(COACHES).document(coach_id)
    if not (await doc_ref.get()).exists:
        raise NotFoundError("Coach not found")

    await doc_ref.update({**patch, "updatedAt": now_iso()})
    logger.info("Coach updated", coach_id=coach_id, fields=sorted(patch))
    return {"success": True, "message": "Coach updated successfully"}


async def delete_coach(client: AsyncClient, coach_id: str) -> dict[str, Any]:
    """Deletes the identity account, then the profile document.

    Raises:
        NotFoundError: If the coach does not exist
    """
    doc_ref = client.collection(COACHES).document(coach_id)
    if not (await doc_ref.get()).exists:
        raise NotFoundError("Coach not found")

    auth_service.delete_account(coach_id)
    await doc_ref.delete()
    logger.info("Coach deleted", coach_id=coach_id)
    return {"success": True, "message": "Coach deleted successfully"}
