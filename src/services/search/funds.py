# © 2026 Crest Advisory Group LLC. All rights reserved.
# PROPRIETARY AND CONFIDENTIAL. Unauthorized copying, distribution, or use is strictly prohibited.

"""
Private-fund helpers shared by browse, hybrid ranking and profile views.

Fund types come straight from Form ADV filings as free text, so matching
is substring based ("Venture Capital Fund", "VC", "Private Equity Fund"...).
"""


def _type_of(fund: dict) -> str:
    return (fund.get("fund_type") or "").lower()


def is_vc_pe_type(fund_type: str) -> bool:
    ft = fund_type.lower()
    return "venture" in ft or "vc" in ft or "private equity" in ft or "pe" in ft


def fund_matches_type(fund: dict, target: str) -> bool:
    """Does this fund match the requested type? Handles venture/VC, private equity/PE and hedge aliases."""
    wanted = target.lower()
    ft = _type_of(fund)
    if "venture" in wanted or wanted == "vc":
        return "venture" in ft or "vc" in ft
    if "private equity" in wanted or wanted == "pe":
        return "private equity" in ft or "pe" in ft
    if "hedge" in wanted:
        return "hedge" in ft
    return wanted in ft


def has_vc_activity(funds: list[dict] | None) -> bool:
    return any(is_vc_pe_type(_type_of(f)) for f in funds or [])


def filter_by_funds(rows: list[dict], fund_type: str | None, vc_activity: bool | None) -> list[dict]:
    """Keep rows whose ``ria_private_funds`` satisfy the fund type and/or VC-activity filters."""
    if fund_type:
        rows = [r for r in rows if any(fund_matches_type(f, fund_type) for f in r.get("ria_private_funds") or [])]
    if vc_activity:
        rows = [r for r in rows if has_vc_activity(r.get("ria_private_funds"))]
    return rows


def analyze_funds(funds: list[dict] | None) -> dict:
    """Summarize a list of ria_private_funds rows."""
    fund_types: list[str] = []
    funds_by_type: dict[str, int] = {}
    total_fund_aum = 0.0
    vc = pe = hedge = 0

    for fund in funds or []:
        fund_type = fund.get("fund_type")
        if fund_type:
            if fund_type not in funds_by_type:
                fund_types.append(fund_type)
            funds_by_type[fund_type] = funds_by_type.get(fund_type, 0) + 1
            ft = fund_type.lower()
            if "venture" in ft or "vc" in ft:
                vc += 1
            if "private equity" in ft or "pe" in ft:
                pe += 1
            if "hedge" in ft:
                hedge += 1
        if fund.get("gross_asset_value"):
            total_fund_aum += float(fund["gross_asset_value"])

    return {
        "fund_types": fund_types,
        "funds_by_type": funds_by_type,
        "total_fund_aum": total_fund_aum,
        "vc_fund_count": vc,
        "pe_fund_count": pe,
        "hedge_fund_count": hedge,
    }


def apply_city_filter(query, city: str):
    """ilike city filter; St. Louis is stored both with and without the period."""
    city_lower = city.lower()
    if "st" in city_lower and "louis" in city_lower:
        return query.or_("city.ilike.%ST LOUIS%,city.ilike.%ST. LOUIS%")
    return query.ilike("city", f"%{city}%")
