"""User tags on advisers (``user_tags``)."""

from supabase import AsyncClient

from src.config.logging_config import setup_logger
from src.services.supabase_client import get_supabase_client
from src.services.user_data.common import DuplicateError, ensure_ria_exists, ensure_uuid, get_owned_row

logger = setup_logger(__name__)

TABLE = "user_tags"


async def list_tags(user_id: str, ria_id: str, client: AsyncClient | None = None) -> list[dict]:
    client = client or await get_supabase_client()
    await ensure_ria_exists(client, ria_id)
    result = await (
        client.table(TABLE)
        .select("*")
        .eq("user_id", user_id)
        .eq("ria_id", ria_id)
        .order("created_at", desc=True)
        .execute()
    )
    return result.data or []


async def create_tag(user_id: str, ria_id: str, tag_text: str, client: AsyncClient | None = None) -> dict:
    client = client or await get_supabase_client()
    await ensure_ria_exists(client, ria_id)

    existing = await (
        client.table(TABLE)
        .select("id")
        .eq("user_id", user_id)
        .eq("ria_id", ria_id)
        .eq("tag_text", tag_text)
        .limit(1)
        .execute()
    )
    if existing.data:
        raise DuplicateError("Tag already exists for this RIA")

    result = await client.table(TABLE).insert({"user_id": user_id, "ria_id": ria_id, "tag_text": tag_text}).execute()
    logger.info("User %s tagged RIA %s with %r", user_id, ria_id, tag_text)
    return result.data[0]


async def delete_tag(user_id: str, tag_id: str, client: AsyncClient | None = None) -> None:
    tag_id = ensure_uuid(tag_id, "tag")
    client = client or await get_supabase_client()
    await get_owned_row(client, TABLE, tag_id, user_id, "tag", "id, user_id")
    await client.table(TABLE).delete().eq("id", tag_id).eq("user_id", user_id).execute()
