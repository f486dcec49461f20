"""Read-only statistics rollup for the admin dashboard."""

import asyncio
from datetime import datetime
from typing import Any, Iterable

import structlog
from google.cloud.firestore_v1.async_client import AsyncClient

from libs.common.dates import month_key, to_datetime, trailing_months, utc_now

logger = structlog.get_logger(__name__)

SUBSCRIPTION_STATUSES = ("active", "pending", "rejected", "stopped")


def monthly_counts(created_values: Iterable[Any], months: list[tuple[int, int]]) -> dict[tuple[int, int], int]:
    """Count creation timestamps per ``(year, month)`` bucket.

    Missing or unparseable values are skipped.
    """
    counts = {month: 0 for month in months}
    for value in created_values:
        created = to_datetime(value)
        if created is None:
            continue
        bucket = (created.year, created.month)
        if bucket in counts:
            counts[bucket] += 1
    return counts


def build_monthly_data(
    players: list[dict], coaches: list[dict], subscriptions: list[dict], now: datetime
) -> list[dict[str, Any]]:
    """Six trailing calendar months, oldest first, keyed ``"Mon YYYY"``."""
    months = trailing_months(now, 6)
    per_entity = {
        name: monthly_counts((doc.get("createdAt") for doc in docs), months)
        for name, docs in (("players", players), ("coaches", coaches), ("subscriptions", subscriptions))
    }
    return [
        {
            "month": month_key(year, month),
            "players": per_entity["players"][(year, month)],
            "coaches": per_entity["coaches"][(year, month)],
            "subscriptions": per_entity["subscriptions"][(year, month)],
        }
        for year, month in months
    ]


def _active(docs: list[dict]) -> int:
    return sum(1 for doc in docs if doc.get("status") == "active")


async def get_statistics(client: AsyncClient, now: datetime | None = None) -> dict[str, Any]:
    """Totals, active counts, subscription status histogram and monthly growth.

    Args:
        client: The asynchronous Firestore client.
        now: Reference time for the monthly buckets (defaults to now, UTC).
    """
    now = now or utc_now()
    players_snap, coaches_snap, subscriptions_snap = await asyncio.gather(
        client.collection("players").get(),
        client.collection("coaches").get(),
        client.collection("subscriptions").get(),
    )
    players = [doc.to_dict() or {} for doc in players_snap]
    coaches = [doc.to_dict() or {} for doc in coaches_snap]
    subscriptions = [doc.to_dict() or {} for doc in subscriptions_snap]

    by_status = {status: 0 for status in SUBSCRIPTION_STATUSES}
    for doc in subscriptions:
        if doc.get("status") in by_status:
            by_status[doc["status"]] += 1

    stats = {
        "totals": {"players": len(players), "coaches": len(coaches), "subscriptions": len(subscriptions)},
        "active": {"players": _active(players), "coaches": _active(coaches), "subscriptions": _active(subscriptions)},
        "subscriptionsByStatus": by_status,
        "monthlyData": build_monthly_data(players, coaches, subscriptions, now),
    }
    logger.info("Dashboard statistics computed", totals=stats["totals"])
    return stats
