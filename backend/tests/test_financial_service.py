import asyncio
from decimal import Decimal

import pytest

from jkas_api.services import financial_service
from jkas_api.services.financial_service import (
    build_category_breakdown_chart,
    build_filters,
    build_monthly_performance_chart,
    build_yearly_trends_chart,
    compute_growth_percentage,
    compute_spread_percentage,
    normalize_amount,
    quantize_amount,
)


def _run(coro):
    return asyncio.run(coro)


class ScriptedCursor:
    """Answers each query with the first scripted result whose marker appears in the SQL."""

    def __init__(self, connection):
        self.connection = connection
        self._rows = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def execute(self, query, params=None):
        self.connection.executed.append((query, list(params or [])))
        for marker, rows in self.connection.script:
            if marker in query:
                self._rows = list(rows)
                return
        self._rows = []

    async def fetchone(self):
        return self._rows[0] if self._rows else None

    async def fetchall(self):
        return list(self._rows)


class ScriptedConnection:
    def __init__(self, script):
        self.script = script
        self.executed = []

    def cursor(self):
        return ScriptedCursor(self)


def test_build_filters_empty_when_nothing_set() -> None:
    assert build_filters() == ("", [])


def test_build_filters_combines_all_conditions_in_order() -> None:
    where, params = build_filters(year=2024, category="Pembersihan", subcategory="Pembersihan Pasar", month=3)

    assert where == "WHERE year = %s AND category = %s AND subcategory = %s AND march > 0"
    assert params == [2024, "Pembersihan", "Pembersihan Pasar"]


def test_build_filters_month_uses_table_column_name() -> None:
    where, params = build_filters(month=1)
    assert where == "WHERE januari > 0"
    assert params == []


def test_growth_percentage_signed_and_guarded() -> None:
    assert compute_growth_percentage(Decimal("110"), Decimal("100")) == Decimal("10.0")
    assert compute_growth_percentage(Decimal("90"), Decimal("100")) == Decimal("-10.0")
    assert compute_growth_percentage(Decimal("90"), Decimal("0")) == Decimal("0")
    assert compute_growth_percentage(Decimal("90"), None) == Decimal("0")
    assert compute_growth_percentage(Decimal("1"), Decimal("3"), places=2) == Decimal("-66.67")


def test_amount_helpers_round_half_up() -> None:
    assert quantize_amount(Decimal("12.345")) == Decimal("12.35")
    assert normalize_amount(None) == Decimal("0.00")
    assert normalize_amount(7) == Decimal("7.00")


def test_yearly_trends_chart_labels_are_strings() -> None:
    chart = build_yearly_trends_chart(
        [
            {"year": 2024, "total_amount": Decimal("1000.00")},
            {"year": 2025, "total_amount": Decimal("1250.50")},
        ]
    )
    assert chart["labels"] == ["2024", "2025"]
    assert chart["datasets"][0]["data"] == [1000.0, 1250.5]
    assert chart["datasets"][0]["label"] == "Total Revenue (RM)"


def test_monthly_performance_chart_zero_fills_missing_row() -> None:
    chart = build_monthly_performance_chart(None)
    assert chart["labels"][0] == "January"
    assert chart["datasets"][0]["data"] == [0.0] * 12


def test_category_breakdown_chart_keeps_query_order() -> None:
    chart = build_category_breakdown_chart(
        [
            {"category": "Summary PSPPA", "total_amount": Decimal("900.00")},
            {"category": "Pembersihan", "total_amount": Decimal("100.00")},
        ]
    )
    assert chart["labels"] == ["Summary PSPPA", "Pembersihan"]
    assert chart["datasets"][0]["data"] == [900.0, 100.0]
    assert len(chart["datasets"][0]["backgroundColor"]) == 8


def test_get_financial_data_passes_filters_to_sql() -> None:
    connection = ScriptedConnection([("FROM financial_data", [{"id": 1, "year": 2024}])])

    rows = _run(financial_service.get_financial_data(connection, year=2024, month=2))

    assert rows == [{"id": 1, "year": 2024}]
    query, params = connection.executed[0]
    assert "WHERE year = %s AND februari > 0" in query
    assert "ORDER BY year DESC, category, subcategory" in query
    assert params == [2024]


def test_get_top_performers_appends_limit_param() -> None:
    connection = ScriptedConnection([])

    _run(financial_service.get_top_performers(connection, year=2025, limit=5))

    query, params = connection.executed[0]
    assert "LIMIT %s" in query
    assert params == [2025, 5]


def test_summary_stats_growth_compares_two_latest_years() -> None:
    connection = ScriptedConnection(
        [
            ("LIMIT 2", [
                {"year": 2025, "yearly_total": Decimal("1100.00")},
                {"year": 2024, "yearly_total": Decimal("1000.00")},
            ]),
            ("COUNT(DISTINCT year)", [
                {
                    "total_records": 4,
                    "total_revenue": Decimal("2100.00"),
                    "active_categories": 2,
                    "years_span": 2,
                    "average_amount": Decimal("525.004"),
                }
            ]),
        ]
    )

    stats = _run(financial_service.get_summary_stats(connection))

    assert stats == {
        "total_records": 4,
        "total_revenue": Decimal("2100.00"),
        "active_categories": 2,
        "years_span": 2,
        "average_amount": Decimal("525.00"),
        "yearly_growth": Decimal("10.0"),
    }


def test_summary_stats_single_year_has_zero_growth() -> None:
    connection = ScriptedConnection(
        [("LIMIT 2", [{"year": 2025, "yearly_total": Decimal("1100.00")}])]
    )

    stats = _run(financial_service.get_summary_stats(connection, year=2025))

    assert stats["yearly_growth"] == Decimal("0")
    assert stats["total_records"] == 0
    assert stats["total_revenue"] == Decimal("0.00")


def test_chart_data_rejects_unknown_type_before_querying() -> None:
    connection = ScriptedConnection([])

    with pytest.raises(ValueError, match="Invalid chart type"):
        _run(financial_service.get_chart_data(connection, "pie-slices"))

    assert connection.executed == []


def test_chart_data_monthly_performance_applies_year() -> None:
    connection = ScriptedConnection([("SUM(januari)", [{"januari": Decimal("10.00"), "december": None}])])

    chart = _run(financial_service.get_chart_data(connection, "monthly-performance", year=2024))

    assert chart["datasets"][0]["data"][0] == 10.0
    assert chart["datasets"][0]["data"][11] == 0.0
    assert connection.executed[0][1] == [2024]


def test_count_financial_records_handles_missing_row() -> None:
    assert _run(financial_service.count_financial_records(ScriptedConnection([]))) == 0
    connection = ScriptedConnection([("COUNT(*)", [{"record_count": 42}])])
    assert _run(financial_service.count_financial_records(connection)) == 42


def test_spread_percentage_is_never_negative() -> None:
    assert compute_spread_percentage([Decimal("80.00"), Decimal("100.00")]) == Decimal("25.0")
    assert compute_spread_percentage([Decimal("100.00"), Decimal("80.00")]) == Decimal("25.0")
    assert compute_spread_percentage([Decimal("100.00")]) == Decimal("0")
    assert compute_spread_percentage([Decimal("100.00"), Decimal("0.00")]) == Decimal("0")


def test_summary_stats_growth_after_declining_year() -> None:
    connection = ScriptedConnection(
        [
            ("LIMIT 2", [
                {"year": 2025, "yearly_total": Decimal("80.00")},
                {"year": 2024, "yearly_total": Decimal("100.00")},
            ]),
        ]
    )

    stats = _run(financial_service.get_summary_stats(connection))

    assert stats["yearly_growth"] == Decimal("25.0")
