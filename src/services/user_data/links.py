"""
Saved links per user and adviser (``user_ria_links``).

A URL may be saved once per user and RIA; creating or renaming onto an
existing URL is a DuplicateError.
"""

from datetime import datetime, timezone

from supabase import AsyncClient

from src.services.supabase_client import get_supabase_client
from src.services.user_data.common import DuplicateError, ensure_uuid, get_owned_row

TABLE = "user_ria_links"

# Distinguishes "not provided" from an explicit null description.
UNSET = object()


async def _find_duplicate(
    client: AsyncClient, user_id: str, ria_id: str, link_url: str, exclude_id: str | None = None
) -> dict | None:
    query = client.table(TABLE).select("id").eq("user_id", user_id).eq("ria_id", ria_id).eq("link_url", link_url)
    if exclude_id:
        query = query.neq("id", exclude_id)
    result = await query.limit(1).execute()
    return result.data[0] if result.data else None


async def list_links(user_id: str, ria_id: str, client: AsyncClient | None = None) -> list[dict]:
    client = client or await get_supabase_client()
    result = await (
        client.table(TABLE)
        .select("*")
        .eq("ria_id", ria_id)
        .eq("user_id", user_id)
        .order("created_at", desc=True)
        .execute()
    )
    return result.data or []


async def create_link(
    user_id: str, ria_id: str, link_url: str, link_description: str | None = None, client: AsyncClient | None = None
) -> dict:
    client = client or await get_supabase_client()
    existing = await _find_duplicate(client, user_id, ria_id, link_url)
    if existing:
        raise DuplicateError("This URL has already been added for this RIA by you.", link_id=existing["id"])

    result = await (
        client.table(TABLE)
        .insert(
            {"ria_id": ria_id, "user_id": user_id, "link_url": link_url, "link_description": link_description}
        )
        .execute()
    )
    return result.data[0]


async def update_link(
    user_id: str,
    link_id: str,
    link_url: str | None = None,
    link_description=UNSET,
    client: AsyncClient | None = None,
) -> dict:
    if not link_url and link_description is UNSET:
        raise ValueError("At least link_url or link_description must be provided for update")
    link_id = ensure_uuid(link_id, "link")
    client = client or await get_supabase_client()
    current = await get_owned_row(client, TABLE, link_id, user_id, "link", "id, user_id, link_url, ria_id")

    if link_url and link_url != current.get("link_url"):
        if await _find_duplicate(client, user_id, current.get("ria_id"), link_url, exclude_id=link_id):
            raise DuplicateError("This URL is already in use for another link by you for this RIA.")

    values: dict = {"updated_at": datetime.now(timezone.utc).isoformat()}
    if link_url:
        values["link_url"] = link_url
    if link_description is not UNSET:
        values["link_description"] = link_description

    result = await client.table(TABLE).update(values).eq("id", link_id).eq("user_id", user_id).execute()
    return result.data[0]


async def delete_link(user_id: str, link_id: str, client: AsyncClient | None = None) -> None:
    link_id = ensure_uuid(link_id, "link")
    client = client or await get_supabase_client()
    await get_owned_row(client, TABLE, link_id, user_id, "link", "id, user_id")
    await client.table(TABLE).delete().eq("id", link_id).eq("user_id", user_id).execute()
