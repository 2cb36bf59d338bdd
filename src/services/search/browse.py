"""
Browse RIAs by location and fund filters, no search query required.
"""

import uuid
from datetime import datetime, timezone

from supabase import AsyncClient

from src.config.logging_config import setup_logger
from src.services.search.funds import analyze_funds, apply_city_filter, filter_by_funds, has_vc_activity
from src.services.supabase_client import get_supabase_client

logger = setup_logger(__name__)

BROWSE_SELECT = """
    crd_number, legal_name, city, state, aum, private_fund_count, private_fund_aum,
    phone, website,
    ria_private_funds(fund_name, fund_type, gross_asset_value)
"""

SORT_COLUMNS = {"aum": "aum", "name": "legal_name", "fund_count": "private_fund_count"}


def _format_row(row: dict) -> dict:
    funds = row.get("ria_private_funds") or []
    analysis = analyze_funds(funds)
    return {
        "crd_number": row.get("crd_number"),
        "legal_name": row.get("legal_name"),
        "city": row.get("city"),
        "state": row.get("state"),
        "aum": row.get("aum") or 0,
        "private_fund_count": row.get("private_fund_count") or 0,
        "private_fund_aum": row.get("private_fund_aum") or analysis["total_fund_aum"],
        "website": row.get("website"),
        "phone": row.get("phone"),
        "funds": funds,
        "fund_types": analysis["fund_types"],
        "funds_by_type": analysis["funds_by_type"],
        "has_vc_activity": has_vc_activity(funds),
    }


async def browse_rias(
    state: str | None = None,
    city: str | None = None,
    fund_type: str | None = None,
    vc_activity: bool = False,
    min_aum: int | None = None,
    limit: int = 50,
    offset: int = 0,
    sort_by: str = "aum",
    sort_order: str = "desc",
    client: AsyncClient | None = None,
) -> dict:
    """
    One page of ria_profiles.

    Fund-type and VC filters run on the fetched page, so ``pagination.total``
    is the database count before those two filters.
    """
    client = client or await get_supabase_client()
    query = client.table("ria_profiles").select(BROWSE_SELECT, count="exact")

    if state:
        query = query.eq("state", state.upper())
    if city:
        query = apply_city_filter(query, city)
    if min_aum:
        query = query.gte("aum", min_aum)

    column = SORT_COLUMNS.get(sort_by, "aum")
    descending = sort_order != "asc"
    if column == "legal_name":
        query = query.order(column, desc=descending)
    else:
        query = query.order(column, desc=descending, nullsfirst=False)

    response = await query.range(offset, offset + limit - 1).execute()
    total = response.count or 0

    rows = filter_by_funds(response.data or [], fund_type, vc_activity)
    results = [_format_row(r) for r in rows]
    logger.info("Browse returned %s of %s rows (offset=%s)", len(results), total, offset)

    return {
        "success": True,
        "filters": {
            "state": state,
            "city": city,
            "fundType": fund_type,
            "hasVcActivity": vc_activity,
            "minAum": min_aum,
        },
        "pagination": {"limit": limit, "offset": offset, "total": total, "hasMore": total > offset + limit},
        "sorting": {"sortBy": sort_by, "sortOrder": sort_order},
        "results": results,
        "metadata": {
            "requestId": f"browse-{uuid.uuid4().hex[:12]}",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "totalResults": len(results),
        },
    }
