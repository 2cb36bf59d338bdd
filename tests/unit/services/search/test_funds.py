# © 2026 Crest Advisory Group LLC. All rights reserved.
# PROPRIETARY AND CONFIDENTIAL. Unauthorized copying, distribution, or use is strictly prohibited.

"""
Unit tests for private-fund matching and summaries.
"""

from unittest.mock import MagicMock

import pytest

from src.services.search.funds import (
    analyze_funds,
    apply_city_filter,
    filter_by_funds,
    fund_matches_type,
    has_vc_activity,
)


class TestFundMatchesType:
    @pytest.mark.parametrize(
        ("fund_type", "target", "expected"),
        [
            ("Venture Capital Fund", "venture capital", True),
            ("Venture Capital Fund", "vc", True),
            ("Private Equity Fund", "pe", True),
            ("Private Equity Fund", "venture capital", False),
            ("Hedge Fund", "hedge fund", True),
            ("Real Estate Fund", "real estate", True),
            ("Real Estate Fund", "hedge", False),
        ],
    )
    def test_aliases(self, fund_type: str, target: str, expected: bool) -> None:
        assert fund_matches_type({"fund_type": fund_type}, target) is expected

    def test_missing_type_never_matches(self) -> None:
        assert fund_matches_type({"fund_type": None}, "venture") is False


class TestFilterByFunds:
    def _rows(self) -> list[dict]:
        return [
            {"crd_number": 1, "ria_private_funds": [{"fund_type": "Venture Capital Fund"}]},
            {"crd_number": 2, "ria_private_funds": [{"fund_type": "Hedge Fund"}]},
            {"crd_number": 3, "ria_private_funds": []},
        ]

    def test_fund_type(self) -> None:
        assert [r["crd_number"] for r in filter_by_funds(self._rows(), "hedge", None)] == [2]

    def test_vc_activity(self) -> None:
        assert [r["crd_number"] for r in filter_by_funds(self._rows(), None, True)] == [1]

    def test_no_filters_keeps_everything(self) -> None:
        assert len(filter_by_funds(self._rows(), None, None)) == 3

    def test_has_vc_activity_with_none(self) -> None:
        assert has_vc_activity(None) is False


class TestAnalyzeFunds:
    def test_summary(self) -> None:
        summary = analyze_funds(
            [
                {"fund_type": "Venture Capital Fund", "gross_asset_value": 10},
                {"fund_type": "Venture Capital Fund", "gross_asset_value": "5"},
                {"fund_type": "Private Equity Fund", "gross_asset_value": None},
                {"fund_type": "Hedge Fund"},
            ]
        )
        assert summary["fund_types"] == ["Venture Capital Fund", "Private Equity Fund", "Hedge Fund"]
        assert summary["funds_by_type"]["Venture Capital Fund"] == 2
        assert summary["total_fund_aum"] == 15.0
        assert summary["vc_fund_count"] == 2
        assert summary["pe_fund_count"] == 1
        assert summary["hedge_fund_count"] == 1

    def test_empty(self) -> None:
        assert analyze_funds(None)["fund_types"] == []


class TestApplyCityFilter:
    def test_st_louis_matches_both_spellings(self) -> None:
        query = MagicMock()
        apply_city_filter(query, "St Louis")
        query.or_.assert_called_once_with("city.ilike.%ST LOUIS%,city.ilike.%ST. LOUIS%")

    def test_other_city_uses_ilike(self) -> None:
        query = MagicMock()
        apply_city_filter(query, "Austin")
        query.ilike.assert_called_once_with("city", "%Austin%")
