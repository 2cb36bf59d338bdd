"""
RIA profile lookups: by SEC CIK (advisers / filings / private_funds) and
by FINRA CRD number (ria_profiles with narratives, people and funds).
"""

import uuid
from datetime import datetime, timezone

from pydantic import BaseModel
from supabase import AsyncClient

from src.config.logging_config import setup_logger
from src.services.search.funds import analyze_funds
from src.services.supabase_client import get_supabase_client

logger = setup_logger(__name__)

FILINGS_LIMIT = 10
PRIVATE_FUNDS_LIMIT = 20

CRD_PROFILE_SELECT = """
    *,
    narratives(narrative),
    control_persons(person_name, title),
    ria_private_funds(
        fund_name, fund_type, fund_type_other, gross_asset_value, min_investment,
        is_3c1, is_3c7, is_master, is_feeder, master_fund_name, master_fund_id,
        is_fund_of_funds, invested_self_related, invested_securities, prime_brokers,
        custodians, administrator, percent_assets_valued, marketing, annual_audit,
        gaap, fs_distributed, unqualified_opinion, owners
    )
"""


class ProfileFiling(BaseModel):
    filing_id: str
    filing_date: str
    total_aum: float | None = None
    manages_private_funds_flag: bool | None = None
    report_period_end_date: str | None = None
    form_type: str | None = None


class ProfilePrivateFund(BaseModel):
    fund_id: str
    fund_name: str
    fund_type: str | None = None
    gross_asset_value: float | None = None
    min_investment: float | None = None
    auditor_name: str | None = None
    auditor_location: str | None = None


class RiaProfile(BaseModel):
    cik: int
    crd_number: int | None = None
    legal_name: str
    main_addr_street1: str | None = None
    main_addr_street2: str | None = None
    main_addr_city: str | None = None
    main_addr_state: str | None = None
    main_addr_zip: str | None = None
    main_addr_country: str | None = None
    phone_number: str | None = None
    fax_number: str | None = None
    website: str | None = None
    is_st_louis_msa: bool | None = None
    filings: list[ProfileFiling]
    private_funds: list[ProfilePrivateFund]


async def get_profile_by_cik(cik: int, client: AsyncClient | None = None) -> RiaProfile | None:
    """
    Adviser profile with its 10 most recent filings and up to 20 private funds.

    Returns None when no adviser has this CIK. Raises pydantic.ValidationError
    when stored rows don't fit the profile shape.
    """
    client = client or await get_supabase_client()

    adviser_rows = (await client.table("advisers").select("*").eq("cik", cik).limit(1).execute()).data
    if not adviser_rows:
        logger.info("No adviser with CIK %s", cik)
        return None
    adviser = adviser_rows[0]

    filings = (
        await client.table("filings")
        .select("filing_id:id, filing_date, total_aum, private_fund_count, report_period_end_date")
        .eq("adviser_id", adviser["id"])
        .order("filing_date", desc=True)
        .limit(FILINGS_LIMIT)
        .execute()
    ).data or []

    funds: list[dict] = []
    if filings:
        funds = (
            await client.table("private_funds")
            .select("fund_id:id, fund_name, fund_type, gross_asset_value")
            .in_("filing_id", [f["filing_id"] for f in filings])
            .limit(PRIVATE_FUNDS_LIMIT)
            .execute()
        ).data or []

    location = adviser.get("main_office_location") or {}
    return RiaProfile.model_validate(
        {
            "cik": adviser["cik"],
            # Not carried by the advisers table.
            "crd_number": None,
            "legal_name": adviser.get("legal_name"),
            "main_addr_street1": location.get("street"),
            "main_addr_street2": None,
            "main_addr_city": location.get("city"),
            "main_addr_state": location.get("state"),
            "main_addr_zip": location.get("zipcode"),
            "main_addr_country": location.get("country"),
            "phone_number": None,
            "fax_number": None,
            "website": None,
            "is_st_louis_msa": None,
            "filings": [
                {
                    "filing_id": str(f["filing_id"]),
                    "filing_date": f.get("filing_date"),
                    "total_aum": f.get("total_aum"),
                    "manages_private_funds_flag": (f.get("private_fund_count") or 0) > 0,
                    "report_period_end_date": f.get("report_period_end_date"),
                    "form_type": None,
                }
                for f in filings
            ],
            "private_funds": [
                {
                    "fund_id": str(pf["fund_id"]),
                    "fund_name": pf.get("fund_name"),
                    "fund_type": pf.get("fund_type"),
                    "gross_asset_value": pf.get("gross_asset_value"),
                }
                for pf in funds
            ],
        }
    )


async def get_profile_by_crd(crd: str, client: AsyncClient | None = None) -> dict | None:
    """ria_profiles row with related data and a fund analysis block, or None."""
    client = client or await get_supabase_client()
    rows = (
        await client.table("ria_profiles").select(CRD_PROFILE_SELECT).eq("crd_number", crd).limit(1).execute()
    ).data
    if not rows:
        logger.info("No ria_profiles row for CRD %s", crd)
        return None

    profile = rows[0]
    funds = profile.get("ria_private_funds") or []
    analysis = analyze_funds(funds)
    return {
        "success": True,
        "profile": {
            **profile,
            "fund_analysis": {
                "totalFunds": len(funds),
                "fundTypes": analysis["fund_types"],
                "totalFundAum": analysis["total_fund_aum"],
                "vcFunds": analysis["vc_fund_count"],
                "peFunds": analysis["pe_fund_count"],
                "hedgeFunds": analysis["hedge_fund_count"],
            },
        },
        "metadata": {
            "requestId": f"profile-{uuid.uuid4().hex[:12]}",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    }
