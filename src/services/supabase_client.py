"""
Shared async Supabase client.

One client per process, created lazily on first use. Service modules take
an optional ``client`` argument and only fall back to this one when it is
not given.
"""

import asyncio
import os

import httpx
from postgrest.exceptions import APIError as PostgrestAPIError
from supabase import AsyncClient, create_async_client

from src.config.logging_config import setup_logger

logger = setup_logger(__name__)

# PostgREST errors plus the transport failures underneath them (httpx timeouts,
# refused connections).
DATABASE_ERRORS = (PostgrestAPIError, httpx.HTTPError, OSError)

_client_holder: list[AsyncClient] = []  # lazy singleton; list avoids global statement
_client_lock = asyncio.Lock()


def _credentials() -> tuple[str, str]:
    url = os.getenv("SUPABASE_URL", "").strip()
    key = (os.getenv("SUPABASE_SERVICE_ROLE_KEY") or os.getenv("SUPABASE_KEY") or "").strip()
    if not url or not key:
        raise ValueError("Supabase URL and KEY required")
    return url, key


async def get_supabase_client() -> AsyncClient:
    """Return the process-wide async client, creating it on first call."""
    async with _client_lock:
        if not _client_holder:
            url, key = _credentials()
            _client_holder.append(await create_async_client(url, key))
    return _client_holder[0]
