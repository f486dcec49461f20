"""Coach ratings and the denormalized coach rating aggregate.

Every create, update and delete recomputes ``averageRating`` and
``totalReviews`` on the coach document from the full set of the coach's
ratings.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable

import structlog
from google.api_core.exceptions import AlreadyExists, NotFound
from google.cloud.firestore_v1.async_client import AsyncClient
from google.cloud.firestore_v1.base_query import FieldFilter

from libs.common.dates import now_iso
from libs.common.errors import ConflictError, InvalidRequestError, NotFoundError
from libs.firestore.subscriptions import find_pair_subscriptions, pair_key
from libs.models.firestore import Rating

logger = structlog.get_logger(__name__)

RATINGS = "ratings"

DUPLICATE_RATING = "You have already rated this coach. You can update your existing rating."


def compute_rating_stats(values: Iterable[Any]) -> dict[str, Any]:
    """Aggregate rating values.

    The average is rounded half away from zero to one decimal place;
    values outside 1..5 count towards the average but not the distribution.

    Returns:
        ``{"averageRating", "totalReviews", "ratingDistribution"}``
    """
    ratings = [value for value in values if isinstance(value, (int, float)) and not isinstance(value, bool)]
    distribution = {star: 0 for star in range(1, 6)}
    if not ratings:
        return {"averageRating": 0, "totalReviews": 0, "ratingDistribution": distribution}

    for value in ratings:
        if value in distribution:
            distribution[int(value)] += 1

    average = Decimal(str(sum(ratings))) / Decimal(len(ratings))
    rounded = float(average.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))
    return {"averageRating": rounded, "totalReviews": len(ratings), "ratingDistribution": distribution}


async def get_coach_rating_stats(client: AsyncClient, coach_id: str) -> dict[str, Any]:
    """Rating statistics over all of a coach's ratings."""
    docs = await client.collection(RATINGS).where(filter=FieldFilter("coachId", "==", coach_id)).get()
    return compute_rating_stats((doc.to_dict() or {}).get("rating") for doc in docs)


async def refresh_coach_rating(client: AsyncClient, coach_id: str) -> dict[str, Any]:
    """Recomputes and stores the coach's ``averageRating`` and ``totalReviews``."""
    stats = await get_coach_rating_stats(client, coach_id)
    try:
        await client.collection("coaches").document(coach_id).update(
            {
                "averageRating": stats["averageRating"],
                "totalReviews": stats["totalReviews"],
                "updatedAt": now_iso(),
            }
        )
    except NotFound:
        logger.warning("Coach missing, rating aggregate not stored", coach_id=coach_id)
    return stats


async def _find_pair_rating(client: AsyncClient, coach_id: str, player_id: str):
    doc = await client.collection(RATINGS).document(pair_key(coach_id, player_id)).get()
    if doc.exists:
        return doc
    # Ratings created before deterministic ids.
    docs = await (
        client.collection(RATINGS)
        .where(filter=FieldFilter("coachId", "==", coach_id))
        .where(filter=FieldFilter("playerId", "==", player_id))
        .limit(1)
        .get()
    )
    return docs[0] if docs else None


async def create_rating(
    client: AsyncClient,
    coach_id: str,
    player_id: str,
    rating: int,
    review: str | None = None,
    player_name: str | None = None,
) -> Rating:
    """Creates the pair's rating and refreshes the coach aggregate.

    Raises:
        InvalidRequestError: If the pair has no subscription of any status
        ConflictError: If the player already rated this coach
    """
    if not await find_pair_subscriptions(client, coach_id, player_id):
        raise InvalidRequestError("You must have a subscription with this coach to leave a review")

    if await _find_pair_rating(client, coach_id, player_id) is not None:
        raise ConflictError(DUPLICATE_RATING)

    if not player_name:
        player = await client.collection("players").document(player_id).get()
        if player.exists:
            player_name = (player.to_dict() or {}).get("name")

    timestamp = now_iso()
    stored = Rating(
        id=pair_key(coach_id, player_id),
        coach_id=coach_id,
        player_id=player_id,
        player_name=player_name or "Anonymous",
        rating=rating,
        review=review or "",
        created_at=timestamp,
        updated_at=timestamp,
    )
    try:
        await client.collection(RATINGS).document(stored.id).create(stored.to_document())
    except AlreadyExists:
        raise ConflictError(DUPLICATE_RATING)

    await refresh_coach_rating(client, coach_id)
    logger.info("Rating created", rating_id=stored.id, coach_id=coach_id, rating=rating)
    return stored


async def list_ratings(client: AsyncClient, coach_id: str | None = None, player_id: str | None = None) -> list[Rating]:
    """Lists ratings, newest first, optionally filtered by coach and player."""
    query = client.collection(RATINGS)
    if coach_id:
        query = query.where(filter=FieldFilter("coachId", "==", coach_id))
    if player_id:
        query = query.where(filter=FieldFilter("playerId", "==", player_id))
    docs = await query.order_by("createdAt", direction="DESCENDING").get()
    return [Rating.from_snapshot(doc) for doc in docs]


async def get_rating(client: AsyncClient, rating_id: str) -> Rating:
    snapshot = await client.collection(RATINGS).document(rating_id).get()
    if not snapshot.exists:
        raise NotFoundError("Rating not found")
    return Rating.from_snapshot(snapshot)


async def find_rating_for_pair(client: AsyncClient, coach_id: str, player_id: str) -> Rating | None:
    doc = await _find_pair_rating(client, coach_id, player_id)
    return Rating.from_snapshot(doc) if doc is not None else None


async def update_rating(
    client: AsyncClient, rating_id: str, rating: int | None = None, review: str | None = None
) -> Rating:
    """Updates score and/or review, then refreshes the coach aggregate.

    Raises:
        NotFoundError: If the rating does not exist
    """
    doc_ref = client.collection(RATINGS).document(rating_id)
    snapshot = await doc_ref.get()
    if not snapshot.exists:
        raise NotFoundError("Rating not found")

    update_data: dict[str, Any] = {"updatedAt": now_iso()}
    if rating is not None:
        update_data["rating"] = rating
    if review is not None:
        update_data["review"] = review
    await doc_ref.update(update_data)

    coach_id = (snapshot.to_dict() or {}).get("coachId")
    if coach_id:
        await refresh_coach_rating(client, coach_id)

    logger.info("Rating updated", rating_id=rating_id)
    return await get_rating(client, rating_id)


async def delete_rating(client: AsyncClient, rating_id: str) -> dict[str, str]:
    """Deletes a rating, then refreshes the coach aggregate.

    Raises:
        NotFoundError: If the rating does not exist
    """
    doc_ref = client.collection(RATINGS).document(rating_id)
    snapshot = await doc_ref.get()
    if not snapshot.exists:
        raise NotFoundError("Rating not found")

    await doc_ref.delete()
    coach_id = (snapshot.to_dict() or {}).get("coachId")
    if coach_id:
        await refresh_coach_rating(client, coach_id)

    logger.info("Rating deleted", rating_id=rating_id)
    return {"message": "Rating deleted successfully"}
