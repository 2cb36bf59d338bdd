# © 2026 Crest Advisory Group LLC. All rights reserved.
# PROPRIETARY AND CONFIDENTIAL. Unauthorized copying, distribution, or use is strictly prohibited.

"""Shared lookups and errors for per-user research data (tags, notes, links)."""

import uuid

from supabase import AsyncClient


class UserDataError(Exception):
    """Base for user data failures; ``status_code`` is the HTTP status routes should return."""

    status_code = 500

    def __init__(self, message: str, **extra):
        super().__init__(message)
        self.message = message
        self.extra = extra


class InvalidIdError(UserDataError):
    status_code = 400


class ForbiddenError(UserDataError):
    status_code = 403


class NotFoundError(UserDataError):
    status_code = 404


class DuplicateError(UserDataError):
    status_code = 409


def ensure_uuid(value: str, label: str) -> str:
    try:
        uuid.UUID(str(value))
    except ValueError:
        raise InvalidIdError(f"Invalid {label} ID format") from None
    return str(value)


async def ensure_ria_exists(client: AsyncClient, ria_id: str) -> None:
    """Raise NotFoundError unless an adviser with this CIK exists."""
    try:
        cik = int(ria_id)
    except ValueError:
        raise NotFoundError("RIA not found") from None
    result = await client.table("advisers").select("cik").eq("cik", cik).limit(1).execute()
    if not result.data:
        raise NotFoundError("RIA not found")


async def get_owned_row(client: AsyncClient, table: str, row_id: str, user_id: str, label: str, columns: str) -> dict:
    """Fetch ``row_id`` from ``table``; 404 when missing, 403 when another user owns it."""
    result = await client.table(table).select(columns).eq("id", row_id).limit(1).execute()
    if not result.data:
        raise NotFoundError(f"{label.capitalize()} not found")
    row = result.data[0]
    if row.get("user_id") != user_id:
        raise ForbiddenError(f"Forbidden: You do not own this {label}")
    return row
