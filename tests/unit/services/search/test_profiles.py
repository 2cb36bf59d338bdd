"""
Unit tests for profile lookups by CIK and by CRD number.
"""

import pytest
from pydantic import ValidationError

from src.services.search.profiles import get_profile_by_cik, get_profile_by_crd
from tests.helpers import make_query, make_ria_row, make_supabase_client


class TestProfileByCik:
    async def test_missing_adviser(self) -> None:
        client = make_supabase_client({"advisers": make_query([])})
        assert await get_profile_by_cik(123, client=client) is None

    async def test_assembles_profile(self) -> None:
        adviser = {
            "id": 5,
            "cik": 123,
            "legal_name": "Gateway",
            "main_office_location": {"street": "1 Main", "city": "Clayton", "state": "MO", "zipcode": "63105"},
        }
        filings = [{"filing_id": 77, "filing_date": "2024-03-01", "total_aum": 1e9, "private_fund_count": 2}]
        funds = [{"fund_id": 9, "fund_name": "Fund I", "fund_type": "Hedge Fund", "gross_asset_value": 10}]
        private_funds = make_query(funds)
        client = make_supabase_client(
            {"advisers": make_query([adviser]), "filings": make_query(filings), "private_funds": private_funds}
        )

        profile = await get_profile_by_cik(123, client=client)

        assert profile.legal_name == "Gateway"
        assert profile.main_addr_city == "Clayton"
        assert profile.crd_number is None
        assert profile.filings[0].filing_id == "77"
        assert profile.filings[0].manages_private_funds_flag is True
        assert profile.private_funds[0].fund_id == "9"
        private_funds.in_.assert_called_once_with("filing_id", [77])

    async def test_no_filings_skips_funds(self) -> None:
        client = make_supabase_client({"advisers": make_query([{"id": 1, "cik": 2, "legal_name": "X"}])})

        profile = await get_profile_by_cik(2, client=client)

        assert profile.filings == []
        assert profile.private_funds == []

    async def test_bad_row_raises_validation_error(self) -> None:
        client = make_supabase_client({"advisers": make_query([{"id": 1, "cik": 2, "legal_name": None}])})
        with pytest.raises(ValidationError):
            await get_profile_by_cik(2, client=client)


class TestProfileByCrd:
    async def test_missing(self) -> None:
        client = make_supabase_client({"ria_profiles": make_query([])})
        assert await get_profile_by_crd("1", client=client) is None

    async def test_fund_analysis(self) -> None:
        client = make_supabase_client({"ria_profiles": make_query([make_ria_row()])})

        result = await get_profile_by_crd("1001", client=client)

        analysis = result["profile"]["fund_analysis"]
        assert analysis["totalFunds"] == 1
        assert analysis["vcFunds"] == 1
        assert analysis["totalFundAum"] == 50_000_000
        assert result["metadata"]["requestId"].startswith("profile-")
