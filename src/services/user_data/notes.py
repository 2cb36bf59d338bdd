"""Free-text research notes per user and adviser (``user_ria_notes``)."""

from datetime import datetime, timezone

from supabase import AsyncClient

from src.services.supabase_client import get_supabase_client
from src.services.user_data.common import ensure_uuid, get_owned_row

TABLE = "user_ria_notes"


async def list_notes(user_id: str, ria_id: str, client: AsyncClient | None = None) -> list[dict]:
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


async def create_note(user_id: str, ria_id: str, note_content: str, client: AsyncClient | None = None) -> dict:
    client = client or await get_supabase_client()
    result = await (
        client.table(TABLE).insert({"ria_id": ria_id, "user_id": user_id, "note_content": note_content}).execute()
    )
    return result.data[0]


async def update_note(user_id: str, note_id: str, note_content: str, client: AsyncClient | None = None) -> dict:
    note_id = ensure_uuid(note_id, "note")
    client = client or await get_supabase_client()
    await get_owned_row(client, TABLE, note_id, user_id, "note", "id, user_id")
    result = await (
        client.table(TABLE)
        .update({"note_content": note_content, "updated_at": datetime.now(timezone.utc).isoformat()})
        .eq("id", note_id)
        .eq("user_id", user_id)
        .execute()
    )
    return result.data[0]


async def delete_note(user_id: str, note_id: str, client: AsyncClient | None = None) -> None:
    note_id = ensure_uuid(note_id, "note")
    client = client or await get_supabase_client()
    await get_owned_row(client, TABLE, note_id, user_id, "note", "id, user_id")
    await client.table(TABLE).delete().eq("id", note_id).eq("user_id", user_id).execute()
