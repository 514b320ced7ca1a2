"""Aggregate SQL over the financial_data table for the dashboard endpoints."""

from __future__ import annotations

import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import TYPE_CHECKING, Any

from .months import MONTH_COLUMNS, MONTH_NAMES, month_column

if TYPE_CHECKING:
    from psycopg import AsyncConnection
else:
    AsyncConnection = Any

logger = logging.getLogger(__name__)

MONEY_QUANT = Decimal("0.01")

CHART_DATA_TYPES: tuple[str, ...] = ("yearly-trends", "category-breakdown", "monthly-performance")

CATEGORY_PALETTE: list[str] = [
    "#FF6384", "#36A2EB", "#FFCE56", "#4BC0C0",
    "#9966FF", "#FF9F40", "#FF6384", "#C9CBCF",
]

FINANCIAL_DATA_COLUMNS = """
    id,
    year,
    category,
    subcategory,
    jenis_bulan,
    januari,
    februari,
    march,
    april,
    may,
    june,
    july,
    august,
    september,
    october,
    november,
    december,
    total_amount,
    currency,
    data_source,
    created_at
"""


def quantize_amount(value: Decimal) -> Decimal:
    """Normalize money values to two decimal places."""
    return value.quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def normalize_amount(value: Decimal | float | int | None) -> Decimal:
    if value is None:
        return Decimal("0.00")
    return quantize_amount(Decimal(str(value)))


def as_number(value: Decimal | float | int | None) -> float:
    """Chart libraries want plain JSON numbers, not decimal strings."""
    return float(normalize_amount(value))


def build_filters(
    *,
    year: int | None = None,
    category: str | None = None,
    subcategory: str | None = None,
    month: int | None = None,
) -> tuple[str, list[object]]:
    """Return a WHERE clause (possibly empty) and its parameters."""
    filters: list[str] = []
    params: list[object] = []

    if year is not None:
        filters.append("year = %s")
        params.append(year)

    if category:
        filters.append("category = %s")
        params.append(category)

    if subcategory:
        filters.append("subcategory = %s")
        params.append(subcategory)

    if month is not None:
        # Column name comes from a fixed whitelist, never from the request.
        filters.append(f"{month_column(month)} > 0")

    if not filters:
        return "", params
    return "WHERE " + " AND ".join(filters), params


def compute_growth_percentage(
    current_total: Decimal,
    previous_total: Decimal | None,
    *,
    places: int = 1,
) -> Decimal:
    """Signed growth of current over previous; zero when there is no usable base."""
    if previous_total is None or previous_total <= Decimal("0"):
        return Decimal("0")
    ratio = (current_total - previous_total) / previous_total * Decimal("100")
    return ratio.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def build_yearly_trends_chart(rows: list[dict[str, Any]]) -> dict[str, Any]:
    return {
        "labels": [str(row["year"]) for row in rows],
        "datasets": [
            {
                "label": "Total Revenue (RM)",
                "data": [as_number(row["total_amount"]) for row in rows],
                "borderColor": "rgb(75, 192, 192)",
                "backgroundColor": "rgba(75, 192, 192, 0.2)",
            }
        ],
    }


def build_monthly_performance_chart(row: dict[str, Any] | None) -> dict[str, Any]:
    row = row or {}
    return {
        "labels": list(MONTH_NAMES),
        "datasets": [
            {
                "label": "Monthly Revenue (RM)",
                "data": [as_number(row.get(column)) for column in MONTH_COLUMNS],
                "backgroundColor": "rgba(54, 162, 235, 0.6)",
            }
        ],
    }


def build_category_breakdown_chart(rows: list[dict[str, Any]]) -> dict[str, Any]:
    return {
        "labels": [row["category"] or "" for row in rows],
        "datasets": [
            {
                "label": "Amount (RM)",
                "data": [as_number(row["total_amount"]) for row in rows],
                "backgroundColor": list(CATEGORY_PALETTE),
            }
        ],
    }


async def _fetchall(connection: AsyncConnection, query: str, params: list[object] | tuple = ()) -> list[dict]:
    async with connection.cursor() as cursor:
        await cursor.execute(query, params)
        return await cursor.fetchall()


async def _fetchone(connection: AsyncConnection, query: str, params: list[object] | tuple = ()) -> dict | None:
    async with connection.cursor() as cursor:
        await cursor.execute(query, params)
        return await cursor.fetchone()


async def get_financial_data(
    connection: AsyncConnection,
    *,
    year: int | None = None,
    category: str | None = None,
    month: int | None = None,
    subcategory: str | None = None,
) -> list[dict]:
    """Raw dashboard rows; month keeps rows with a positive value in that month."""
    where, params = build_filters(year=year, category=category, subcategory=subcategory, month=month)
    query = f"""
        SELECT {FINANCIAL_DATA_COLUMNS}
        FROM financial_data
        {where}
        ORDER BY year DESC, category, subcategory
    """
    logger.debug("Executing financial data query: %s params=%s", " ".join(query.split()), params)
    rows = await _fetchall(connection, query, params)
    logger.info("Financial data query result: %d rows returned", len(rows))
    return rows


async def get_yearly_summary(connection: AsyncConnection) -> list[dict]:
    return await _fetchall(
        connection,
        """
        SELECT
            year,
            category,
            COALESCE(SUM(total_amount), 0) AS total_yearly_amount,
            COUNT(*) AS record_count
        FROM financial_data
        GROUP BY year, category
        ORDER BY year DESC, total_yearly_amount DESC
        """,
    )


async def get_monthly_trends(
    connection: AsyncConnection,
    *,
    year: int | None = None,
    category: str | None = None,
) -> list[dict]:
    where, params = build_filters(year=year, category=category)
    return await _fetchall(
        connection,
        f"""
        SELECT
            category,
            COALESCE(SUM(januari), 0) AS total_jan,
            COALESCE(SUM(februari), 0) AS total_feb,
            COALESCE(SUM(march), 0) AS total_mar,
            COALESCE(SUM(april), 0) AS total_apr,
            COALESCE(SUM(may), 0) AS total_may,
            COALESCE(SUM(june), 0) AS total_jun,
            COALESCE(SUM(july), 0) AS total_jul,
            COALESCE(SUM(august), 0) AS total_aug,
            COALESCE(SUM(september), 0) AS total_sep,
            COALESCE(SUM(october), 0) AS total_oct,
            COALESCE(SUM(november), 0) AS total_nov,
            COALESCE(SUM(december), 0) AS total_dec
        FROM financial_data
        {where}
        GROUP BY category
        ORDER BY category
        """,
        params,
    )


async def get_category_breakdown(connection: AsyncConnection, *, year: int | None = None) -> list[dict]:
    where, params = build_filters(year=year)
    return await _fetchall(
        connection,
        f"""
        SELECT
            category,
            COALESCE(SUM(total_amount), 0) AS total_amount,
            COUNT(*) AS record_count
        FROM financial_data
        {where}
        GROUP BY category
        ORDER BY total_amount DESC
        """,
        params,
    )


async def get_subcategory_analysis(
    connection: AsyncConnection,
    *,
    year: int | None = None,
    category: str | None = None,
) -> list[dict]:
    where, params = build_filters(year=year, category=category)
    return await _fetchall(
        connection,
        f"""
        SELECT
            category,
            subcategory,
            COALESCE(SUM(total_amount), 0) AS subcategory_total,
            COUNT(*) AS record_count
        FROM financial_data
        {where}
        GROUP BY category, subcategory
        ORDER BY subcategory_total DESC
        """,
        params,
    )


async def get_quarterly_data(
    connection: AsyncConnection,
    *,
    year: int | None = None,
    category: str | None = None,
) -> list[dict]:
    where, params = build_filters(year=year, category=category)
    return await _fetchall(
        connection,
        f"""
        SELECT
            year,
            category,
            COALESCE(SUM(COALESCE(januari, 0) + COALESCE(februari, 0) + COALESCE(march, 0)), 0) AS "Q1",
            COALESCE(SUM(COALESCE(april, 0) + COALESCE(may, 0) + COALESCE(june, 0)), 0) AS "Q2",
            COALESCE(SUM(COALESCE(july, 0) + COALESCE(august, 0) + COALESCE(september, 0)), 0) AS "Q3",
            COALESCE(SUM(COALESCE(october, 0) + COALESCE(november, 0) + COALESCE(december, 0)), 0) AS "Q4"
        FROM financial_data
        {where}
        GROUP BY year, category
        ORDER BY year DESC, category
        """,
        params,
    )


async def get_growth_analysis(connection: AsyncConnection) -> list[dict]:
    """Year-over-year growth per category; each category's first year is omitted."""
    return await _fetchall(
        connection,
        """
        WITH yearly_totals AS (
            SELECT
                year,
                category,
                COALESCE(SUM(total_amount), 0) AS yearly_total
            FROM financial_data
            GROUP BY year, category
        ),
        growth_calc AS (
            SELECT
                year,
                category,
                yearly_total,
                LAG(yearly_total) OVER (PARTITION BY category ORDER BY year) AS previous_year_total
            FROM yearly_totals
        )
        SELECT
            year,
            category,
            yearly_total,
            previous_year_total,
            CASE
                WHEN previous_year_total > 0
                THEN ROUND(((yearly_total - previous_year_total) / previous_year_total * 100)::numeric, 2)
                ELSE 0
            END AS growth_percentage
        FROM growth_calc
        WHERE previous_year_total IS NOT NULL
        ORDER BY year DESC, category
        """,
    )


async def get_top_performers(
    connection: AsyncConnection,
    *,
    year: int | None = None,
    limit: int = 10,
) -> list[dict]:
    where, params = build_filters(year=year)
    return await _fetchall(
        connection,
        f"""
        SELECT
            category,
            subcategory,
            COALESCE(SUM(total_amount), 0) AS total_amount,
            COUNT(*) AS record_count
        FROM financial_data
        {where}
        GROUP BY category, subcategory
        ORDER BY total_amount DESC
        LIMIT %s
        """,
        [*params, limit],
    )


async def list_years(connection: AsyncConnection) -> list[int]:
    rows = await _fetchall(
        connection,
        """
        SELECT DISTINCT year
        FROM financial_data
        ORDER BY year DESC
        """,
    )
    return [row["year"] for row in rows]


async def list_categories(connection: AsyncConnection) -> list[str]:
    rows = await _fetchall(
        connection,
        """
        SELECT DISTINCT category
        FROM financial_data
        WHERE category IS NOT NULL
        ORDER BY category
        """,
    )
    return [row["category"] for row in rows]


def compute_spread_percentage(totals: list[Decimal], *, places: int = 1) -> Decimal:
    """(max - min) / min * 100 over the given totals; zero for fewer than two or a non-positive min."""
    if len(totals) < 2:
        return Decimal("0")
    low, high = min(totals), max(totals)
    if low <= Decimal("0"):
        return Decimal("0")
    ratio = (high - low) / low * Decimal("100")
    return ratio.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


async def _latest_yearly_growth(connection: AsyncConnection) -> Decimal:
    """Spread between the two most recent yearly totals, never negative."""
    rows = await _fetchall(
        connection,
        """
        SELECT year, COALESCE(SUM(total_amount), 0) AS yearly_total
        FROM financial_data
        GROUP BY year
        ORDER BY year DESC
        LIMIT 2
        """,
    )
    return compute_spread_percentage([normalize_amount(row["yearly_total"]) for row in rows])


async def get_summary_stats(
    connection: AsyncConnection,
    *,
    year: int | None = None,
    category: str | None = None,
) -> dict:
    where, params = build_filters(year=year, category=category)
    summary = await _fetchone(
        connection,
        f"""
        SELECT
            COUNT(*) AS total_records,
            COALESCE(SUM(total_amount), 0) AS total_revenue,
            COUNT(DISTINCT category) AS active_categories,
            COUNT(DISTINCT year) AS years_span,
            COALESCE(AVG(total_amount), 0) AS average_amount
        FROM financial_data
        {where}
        """,
        params,
    )
    summary = summary or {}
    yearly_growth = await _latest_yearly_growth(connection)

    return {
        "total_records": summary.get("total_records") or 0,
        "total_revenue": normalize_amount(summary.get("total_revenue")),
        "active_categories": summary.get("active_categories") or 0,
        "years_span": summary.get("years_span") or 0,
        "average_amount": normalize_amount(summary.get("average_amount")),
        "yearly_growth": yearly_growth,
    }


async def get_chart_data(
    connection: AsyncConnection,
    chart_type: str,
    *,
    year: int | None = None,
) -> dict[str, Any]:
    """Chart.js-ready {labels, datasets} for one of CHART_DATA_TYPES."""
    if chart_type not in CHART_DATA_TYPES:
        raise ValueError("Invalid chart type")

    if chart_type == "yearly-trends":
        rows = await _fetchall(
            connection,
            """
            SELECT
                year,
                COALESCE(SUM(total_amount), 0) AS total_amount
            FROM financial_data
            GROUP BY year
            ORDER BY year
            """,
        )
        return build_yearly_trends_chart(rows)

    where, params = build_filters(year=year)

    if chart_type == "category-breakdown":
        rows = await _fetchall(
            connection,
            f"""
            SELECT
                category,
                COALESCE(SUM(total_amount), 0) AS total_amount
            FROM financial_data
            {where}
            GROUP BY category
            ORDER BY total_amount DESC
            """,
            params,
        )
        return build_category_breakdown_chart(rows)

    row = await _fetchone(
        connection,
        f"""
        SELECT
            SUM(januari) AS januari,
            SUM(februari) AS februari,
            SUM(march) AS march,
            SUM(april) AS april,
            SUM(may) AS may,
            SUM(june) AS june,
            SUM(july) AS july,
            SUM(august) AS august,
            SUM(september) AS september,
            SUM(october) AS october,
            SUM(november) AS november,
            SUM(december) AS december
        FROM financial_data
        {where}
        """,
        params,
    )
    return build_monthly_performance_chart(row)


async def count_financial_records(connection: AsyncConnection) -> int:
    row = await _fetchone(connection, "SELECT COUNT(*) AS record_count FROM financial_data")
    if row is None:
        return 0
    return row["record_count"]
