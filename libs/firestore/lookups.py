"""Lookup maps used to join documents across collections in memory."""

from typing import Any, Iterable

from google.cloud.firestore_v1.async_client import AsyncClient


async def fetch_documents(client: AsyncClient, collection: str, ids: Iterable[str]) -> dict[str, dict[str, Any]]:
    """Batch-fetch documents by id.

    Args:
        client: The asynchronous Firestore client.
        collection: Collection holding the documents.
        ids: Document ids; falsy ids are ignored.

    Returns:
        Mapping of id to document data for the documents that exist.
    """
    unique_ids = sorted({doc_id for doc_id in ids if doc_id})
    if not unique_ids:
        return {}

    collection_ref = client.collection(collection)
    refs = [collection_ref.document(doc_id) for doc_id in unique_ids]
    found = {}
    async for snapshot in client.get_all(refs):
        if snapshot.exists:
            found[snapshot.id] = snapshot.to_dict() or {}
    return found


def display_name(data: dict[str, Any] | None, default: str) -> str:
    """Name to show for a player or coach document."""
    if not data:
        return default
    return data.get("fullName") or data.get("name") or default
