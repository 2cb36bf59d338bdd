"""
Unit tests for browse_rias: filters, sorting, pagination.
"""

from src.services.search.browse import browse_rias
from tests.helpers import make_query, make_ria_row, make_supabase_client


class TestBrowse:
    async def test_filters_and_pagination(self) -> None:
        profiles = make_query([make_ria_row()], count=120)
        client = make_supabase_client({"ria_profiles": profiles})

        result = await browse_rias(state="mo", min_aum=1000, limit=50, offset=50, client=client)

        profiles.eq.assert_called_once_with("state", "MO")
        profiles.gte.assert_called_once_with("aum", 1000)
        profiles.range.assert_called_once_with(50, 99)
        assert result["pagination"] == {"limit": 50, "offset": 50, "total": 120, "hasMore": True}
        assert result["results"][0]["has_vc_activity"] is True
        assert result["results"][0]["funds_by_type"] == {"Venture Capital Fund": 1}

    async def test_last_page_has_no_more(self) -> None:
        client = make_supabase_client({"ria_profiles": make_query([], count=10)})
        result = await browse_rias(limit=50, client=client)
        assert result["pagination"]["hasMore"] is False
        assert result["results"] == []

    async def test_sort_by_name_ascending(self) -> None:
        profiles = make_query([])
        client = make_supabase_client({"ria_profiles": profiles})

        await browse_rias(sort_by="name", sort_order="asc", client=client)

        profiles.order.assert_called_once_with("legal_name", desc=False)

    async def test_unknown_sort_column_defaults_to_aum(self) -> None:
        profiles = make_query([])
        client = make_supabase_client({"ria_profiles": profiles})

        await browse_rias(sort_by="bogus", client=client)

        profiles.order.assert_called_once_with("aum", desc=True, nullsfirst=False)

    async def test_fund_type_filter_runs_on_page(self) -> None:
        rows = [make_ria_row(crd_number=1), make_ria_row(crd_number=2, ria_private_funds=[{"fund_type": "Hedge Fund"}])]
        client = make_supabase_client({"ria_profiles": make_query(rows, count=2)})

        result = await browse_rias(fund_type="hedge", client=client)

        assert [r["crd_number"] for r in result["results"]] == [2]
        assert result["pagination"]["total"] == 2
        assert result["filters"]["fundType"] == "hedge"

    async def test_st_louis_city_filter(self) -> None:
        profiles = make_query([])
        client = make_supabase_client({"ria_profiles": profiles})

        await browse_rias(city="St. Louis", client=client)

        profiles.or_.assert_called_once_with("city.ilike.%ST LOUIS%,city.ilike.%ST. LOUIS%")
