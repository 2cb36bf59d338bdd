"""
Build the LLM context block from search result rows.
"""

from src.config.settings import config

ADDRESS_NOTICE = (
    "\n\nNote: Full street addresses are not currently available in the database. "
    "Only city and state information is provided."
)


def _money(value) -> str:
    number = float(value)
    if number.is_integer():
        return f"${int(number):,}"
    return f"${number:,.2f}"


def _executives(row: dict) -> str:
    people = [e for e in row.get("executives") or [] if e and (e.get("name") or e.get("title"))]
    labels = []
    for person in people[:5]:
        label = person.get("name") or "N/A"
        if person.get("title"):
            label += f" ({person['title']})"
        labels.append(label)
    return "; ".join(labels)


def _describe(index: int, row: dict, wants_fund_activity: bool) -> str:
    parts = [f"{index}. {row.get('legal_name')}", f"Location: {row.get('city')}, {row.get('state')}"]

    if (row.get("aum") or 0) > 0:
        parts.append(f"Total AUM: {_money(row['aum'])}")
    elif (row.get("vc_total_aum") or 0) > 0:
        parts.append(f"VC AUM: {_money(row['vc_total_aum'])}")

    if (row.get("private_fund_count") or 0) > 0:
        parts.append(f"Private Funds: {row['private_fund_count']}")
        if (row.get("private_fund_aum") or 0) > 0:
            parts.append(f"Private Fund AUM: {_money(row['private_fund_aum'])}")
    elif (row.get("vc_fund_count") or 0) > 0:
        parts.append(f"VC funds: {row['vc_fund_count']}")

    funds = row.get("private_funds") or []
    if wants_fund_activity and funds:
        recent = "; ".join(
            f"{f.get('fund_name') or 'Unnamed Fund'} ({f.get('fund_type') or 'Type N/A'}, "
            f"{_money(f.get('gross_asset_value') or 0)})"
            for f in funds[:3]
        )
        parts.append(f"Recent Funds: {recent}")

    similarity = row.get("similarity") or row.get("similarity_score") or 0
    if similarity > 0:
        parts.append(f"Relevance: {similarity * 100:.1f}%")
    elif (row.get("activity_score") or 0) > 0:
        parts.append(f"Score: {float(row['activity_score']):.2f}")

    executives = _executives(row)
    if executives:
        parts.append(f"Executives: {executives}")

    return " | ".join(parts)


def build_answer_context(rows: list[dict], query: str) -> str:
    """One line per RIA (capped at MAX_CONTEXT_ROWS) under a query-aware header."""
    query_lower = query.lower()
    wants_fund_activity = "private fund" in query_lower or "fund activity" in query_lower

    if "venture" in query_lower or "vc" in query_lower:
        header = f"User query: {query}\n\nThe following dataset lists RIAs most active in venture/private funds."
    else:
        header = f"User query: {query}\n\nThe following are Registered Investment Advisors (RIAs) matching your query:"
    notice = ADDRESS_NOTICE if "address" in query_lower else ""

    lines = [
        _describe(i, row, wants_fund_activity) for i, row in enumerate(rows[: config.MAX_CONTEXT_ROWS], start=1)
    ]
    return "\n".join([header, notice, "", *lines])
