"""Subscription lifecycle: CRUD, the past-end-date guard and the expiry sweep.

Statuses move ``pending -> active | rejected`` and ``active -> stopped``.
Two rules are enforced on writes:

* at most one ``active`` subscription per (coach, player) pair, checked on
  create and on activation against both a status query and a deterministic
  claim document written in the same commit as the subscription;
* a subscription whose end date has passed is never stored as ``active``;
  such writes are turned into ``stopped``.

``expire_subscriptions`` applies the time-driven ``active -> stopped``
transition and is safe to run repeatedly or concurrently.
"""

import uuid
from datetime import datetime
from typing import Any, Callable

import structlog
from google.api_core.exceptions import AlreadyExists
from google.cloud.firestore_v1.async_client import AsyncClient
from google.cloud.firestore_v1.base_query import FieldFilter

from libs.common.dates import has_ended, now_iso, utc_now
from libs.common.errors import ConflictError, InvalidRequestError, NotFoundError
from libs.firestore.lookups import fetch_documents
from libs.models.firestore import Subscription, SubscriptionView

logger = structlog.get_logger(__name__)

SUBSCRIPTIONS = "subscriptions"
ACTIVE_CLAIMS = "active_subscription_claims"
PAIR_SEPARATOR = "__"


def pair_key(coach_id: str, player_id: str) -> str:
    """Deterministic document id for a (coach, player) pair.

    Raises:
        InvalidRequestError: If either id contains the separator, which would
            let two different pairs share a key
    """
    if PAIR_SEPARATOR in coach_id or PAIR_SEPARATOR in player_id:
        raise InvalidRequestError(f"Ids must not contain '{PAIR_SEPARATOR}'")
    return f"{coach_id}{PAIR_SEPARATOR}{player_id}"


def resolve_status(status: str, end_date: Any, now: datetime | None = None) -> str:
    """Status to persist: ``active`` with a past end date becomes ``stopped``."""
    if status == "active" and has_ended(end_date, now):
        return "stopped"
    return status


async def find_pair_subscriptions(
    client: AsyncClient, coach_id: str, player_id: str, status: str | None = None
) -> list:
    """All subscription snapshots for a pair, optionally filtered by status."""
    query = (
        client.collection(SUBSCRIPTIONS)
        .where(filter=FieldFilter("coachId", "==", coach_id))
        .where(filter=FieldFilter("playerId", "==", player_id))
    )
    if status:
        query = query.where(filter=FieldFilter("status", "==", status))
    return list(await query.get())


async def _ensure_no_other_active(client: AsyncClient, coach_id: str, player_id: str, subscription_id: str) -> None:
    active = [
        doc
        for doc in await find_pair_subscriptions(client, coach_id, player_id, status="active")
        if doc.id != subscription_id
    ]
    if active:
        logger.warning(
            "Duplicate active subscription rejected",
            coach_id=coach_id,
            player_id=player_id,
            existing_id=active[0].id,
        )
        raise ConflictError("An active subscription already exists for this player and coach")


async def _write_with_active_claim(
    client: AsyncClient,
    coach_id: str,
    player_id: str,
    subscription_id: str,
    write: Callable[[Any], None],
) -> None:
    """Commits the subscription write together with the pair's active claim.

    ``write`` adds the subscription write to the batch. The claim is created
    in the same commit, so a claim never exists without its subscription. An
    existing claim is only taken over when the subscription it points to is
    gone or no longer active for this pair.

    Raises:
        ConflictError: If the claim is held by a subscription that is still active
    """
    claim_ref = client.collection(ACTIVE_CLAIMS).document(pair_key(coach_id, player_id))
    claim = {
        "coachId": coach_id,
        "playerId": player_id,
        "subscriptionId": subscription_id,
        "claimedAt": now_iso(),
    }

    batch = client.batch()
    batch.create(claim_ref, claim)
    write(batch)
    try:
        await batch.commit()
        return
    except AlreadyExists:
        pass

    existing = await claim_ref.get()
    holder_id = (existing.to_dict() or {}).get("subscriptionId") if existing.exists else None
    if holder_id and holder_id != subscription_id:
        holder = await client.collection(SUBSCRIPTIONS).document(holder_id).get()
        held = holder.to_dict() or {}
        if (
            held.get("status") == "active"
            and held.get("coachId", coach_id) == coach_id
            and held.get("playerId", player_id) == player_id
        ):
            raise ConflictError("An active subscription already exists for this player and coach")

    logger.info("Taking over stale active claim", coach_id=coach_id, player_id=player_id, stale_holder=holder_id)
    batch = client.batch()
    batch.set(claim_ref, claim)
    write(batch)
    await batch.commit()


async def create_subscription(client: AsyncClient, data: Subscription) -> Subscription:
    """Creates a subscription document.

    Args:
        client: The asynchronous Firestore client.
        data: Subscription fields; ``id`` and timestamps are assigned here.

    Returns:
        The stored subscription.

    Raises:
        ConflictError: If the subscription would be a second active one for the pair
    """
    status = resolve_status(data.status, data.end_date)
    if status != data.status:
        logger.warning("Creating subscription with past end date as stopped", end_date=data.end_date)

    subscription_id = str(uuid.uuid4())
    timestamp = now_iso()
    subscription = data.model_copy(
        update={"id": subscription_id, "status": status, "created_at": timestamp, "updated_at": timestamp}
    )
    doc_ref = client.collection(SUBSCRIPTIONS).document(subscription_id)

    if status == "active":
        await _ensure_no_other_active(client, data.coach_id, data.player_id, subscription_id)
        await _write_with_active_claim(
            client,
            data.coach_id,
            data.player_id,
            subscription_id,
            lambda batch: batch.set(doc_ref, subscription.to_document()),
        )
    else:
        await doc_ref.set(subscription.to_document())

    logger.info(
        "Subscription created",
        subscription_id=subscription_id,
        coach_id=data.coach_id,
        player_id=data.player_id,
        status=status,
    )
    return subscription


def _to_view(subscription: Subscription, players: dict, coaches: dict) -> SubscriptionView:
    player = players.get(subscription.player_id) or {}
    coach = coaches.get(subscription.coach_id) or {}
    return SubscriptionView(
        **subscription.model_dump(),
        player_name=player.get("name") or "Unknown",
        player_email=player.get("email") or "",
        coach_name=coach.get("name") or "Unknown",
        coach_email=coach.get("email") or "",
    )


def _matches(view: SubscriptionView, needle: str) -> bool:
    fields = (
        view.player_id,
        view.coach_id,
        view.player_name,
        view.coach_name,
        view.player_email,
        view.coach_email,
    )
    return any(needle in (value or "").lower() for value in fields)


async def list_subscriptions(
    client: AsyncClient,
    search: str | None = None,
    status: str | None = None,
    coach_id: str | None = None,
    player_id: str | None = None,
) -> list[SubscriptionView]:
    """Lists subscriptions joined with player and coach names.

    Equality filters run in Firestore; ``search`` is a case-insensitive
    substring match over ids, names and emails applied in memory.
    """
    query = client.collection(SUBSCRIPTIONS)
    for field, value in (("status", status), ("coachId", coach_id), ("playerId", player_id)):
        if value:
            query = query.where(filter=FieldFilter(field, "==", value))

    subscriptions = [Subscription.from_snapshot(snapshot) for snapshot in await query.get()]
    players = await fetch_documents(client, "players", (s.player_id for s in subscriptions))
    coaches = await fetch_documents(client, "coaches", (s.coach_id for s in subscriptions))
    views = [_to_view(s, players, coaches) for s in subscriptions]

    if search and search.strip():
        needle = search.strip().lower()
        views = [view for view in views if _matches(view, needle)]

    logger.info("Subscriptions listed", count=len(views), status=status, search=search)
    return views


async def get_subscription(client: AsyncClient, subscription_id: str) -> SubscriptionView:
    """Retrieves one subscription joined with player and coach names.

    Raises:
        NotFoundError: If the subscription does not exist
    """
    snapshot = await client.collection(SUBSCRIPTIONS).document(subscription_id).get()
    if not snapshot.exists:
        raise NotFoundError("Subscription not found")

    subscription = Subscription.from_snapshot(snapshot)
    players = await fetch_documents(client, "players", [subscription.player_id])
    coaches = await fetch_documents(client, "coaches", [subscription.coach_id])
    return _to_view(subscription, players, coaches)


async def update_subscription(client: AsyncClient, subscription_id: str, patch: dict[str, Any]) -> SubscriptionView:
    """Applies a partial update.

    The past-end-date guard runs on every update: if the resulting status is
    ``active`` and the resulting end date has passed, ``stopped`` is written
    regardless of what was requested.

    Args:
        client: The asynchronous Firestore client.
        subscription_id: Document id.
        patch: camelCase fields to change.

    Raises:
        NotFoundError: If the subscription does not exist
        ConflictError: If activating would give the pair a second active subscription
    """
    doc_ref = client.collection(SUBSCRIPTIONS).document(subscription_id)
    snapshot = await doc_ref.get()
    if not snapshot.exists:
        raise NotFoundError("Subscription not found")

    current = snapshot.to_dict() or {}
    merged = {**current, **patch}
    update_data = dict(patch)

    status = resolve_status(merged.get("status"), merged.get("endDate"))
    if status != merged.get("status"):
        logger.warning(
            "Subscription end date passed, forcing stopped",
            subscription_id=subscription_id,
            requested_status=merged.get("status"),
            end_date=merged.get("endDate"),
        )
        update_data["status"] = status

    update_data["updatedAt"] = now_iso()

    coach_id, player_id = merged.get("coachId"), merged.get("playerId")
    moved = (coach_id, player_id) != (current.get("coachId"), current.get("playerId"))
    if status == "active" and (current.get("status") != "active" or moved):
        await _ensure_no_other_active(client, coach_id, player_id, subscription_id)
        await _write_with_active_claim(
            client, coach_id, player_id, subscription_id, lambda batch: batch.update(doc_ref, update_data)
        )
    else:
        await doc_ref.update(update_data)

    logger.info("Subscription updated", subscription_id=subscription_id, fields=sorted(patch))
    return await get_subscription(client, subscription_id)


async def delete_subscription(client: AsyncClient, subscription_id: str) -> dict[str, str]:
    """Hard-deletes a subscription. Conversations, ratings and tasks are kept.

    Raises:
        NotFoundError: If the subscription does not exist
    """
    doc_ref = client.collection(SUBSCRIPTIONS).document(subscription_id)
    snapshot = await doc_ref.get()
    if not snapshot.exists:
        raise NotFoundError("Subscription not found")

    await doc_ref.delete()
    logger.info("Subscription deleted", subscription_id=subscription_id)
    return {"message": "Subscription deleted successfully"}


async def expire_subscriptions(client: AsyncClient, now: datetime | None = None) -> dict[str, int]:
    """Stops every active subscription whose end date has passed.

    Only documents currently ``active`` are examined, so re-running finds
    nothing left to do. A failure on one document is logged and the sweep
    moves on; that subscription is retried on the next run.

    Returns:
        ``{"expiredCount": n}``
    """
    now = now or utc_now()
    snapshots = await client.collection(SUBSCRIPTIONS).where(filter=FieldFilter("status", "==", "active")).get()

    expired = 0
    for snapshot in snapshots:
        data = snapshot.to_dict() or {}
        if not has_ended(data.get("endDate"), now):
            continue
        try:
            await snapshot.reference.update({"status": "stopped", "updatedAt": now_iso()})
        except Exception as e:
            logger.error(
                "Failed to expire subscription",
                subscription_id=snapshot.id,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            continue
        expired += 1
        logger.info("Subscription expired", subscription_id=snapshot.id, end_date=data.get("endDate"))

    logger.info("Subscription expiry sweep completed", expired_count=expired, checked=len(snapshots))
    return {"expiredCount": expired}
