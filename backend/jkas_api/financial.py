"""Read-only aggregation endpoints over financial_data."""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

import psycopg
from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, field_serializer

from .config import settings
from .database import get_db_connection
from .services.financial_service import (
    count_financial_records,
    get_category_breakdown,
    get_chart_data,
    get_financial_data,
    get_growth_analysis,
    get_monthly_trends,
    get_quarterly_data,
    get_subcategory_analysis,
    get_summary_stats,
    get_top_performers,
    get_yearly_summary,
    list_categories,
    list_years,
    normalize_amount,
)

if TYPE_CHECKING:
    from psycopg import AsyncConnection
else:
    AsyncConnection = Any

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["financial"])


def _number(value: Decimal | None) -> float | None:
    """Serialize amounts as JSON numbers so chart code can sum them directly."""
    if value is None:
        return None
    return float(normalize_amount(value))


def _query_failed(what: str, exc: Exception) -> HTTPException:
    logger.error("Error fetching %s: %s", what, exc)
    return HTTPException(status_code=500, detail=f"Failed to fetch {what}")


class FinancialDataRow(BaseModel):
    id: int
    year: int
    category: str | None
    subcategory: str | None
    jenis_bulan: str | None = None
    januari: Decimal | None = None
    februari: Decimal | None = None
    march: Decimal | None = None
    april: Decimal | None = None
    may: Decimal | None = None
    june: Decimal | None = None
    july: Decimal | None = None
    august: Decimal | None = None
    september: Decimal | None = None
    october: Decimal | None = None
    november: Decimal | None = None
    december: Decimal | None = None
    total_amount: Decimal | None = None
    currency: str | None = None
    data_source: str | None = None
    created_at: datetime | None = None

    @field_serializer(
        "januari",
        "februari",
        "march",
        "april",
        "may",
        "june",
        "july",
        "august",
        "september",
        "october",
        "november",
        "december",
        "total_amount",
        when_used="always",
    )
    def serialize_decimal(self, value: Decimal | None) -> float | None:
        return _number(value)


class YearlySummaryItem(BaseModel):
    year: int
    category: str | None
    total_yearly_amount: Decimal
    record_count: int

    @field_serializer("total_yearly_amount")
    def serialize_decimal(self, value: Decimal) -> float | None:
        return _number(value)


class MonthlyTrendItem(BaseModel):
    category: str | None
    total_jan: Decimal
    total_feb: Decimal
    total_mar: Decimal
    total_apr: Decimal
    total_may: Decimal
    total_jun: Decimal
    total_jul: Decimal
    total_aug: Decimal
    total_sep: Decimal
    total_oct: Decimal
    total_nov: Decimal
    total_dec: Decimal

    @field_serializer(
        "total_jan",
        "total_feb",
        "total_mar",
        "total_apr",
        "total_may",
        "total_jun",
        "total_jul",
        "total_aug",
        "total_sep",
        "total_oct",
        "total_nov",
        "total_dec",
    )
    def serialize_decimal(self, value: Decimal) -> float | None:
        return _number(value)


class CategoryBreakdownItem(BaseModel):
    category: str | None
    total_amount: Decimal
    record_count: int

    @field_serializer("total_amount")
    def serialize_decimal(self, value: Decimal) -> float | None:
        return _number(value)


class SubcategoryAnalysisItem(BaseModel):
    category: str | None
    subcategory: str | None
    subcategory_total: Decimal
    record_count: int

    @field_serializer("subcategory_total")
    def serialize_decimal(self, value: Decimal) -> float | None:
        return _number(value)


class QuarterlyDataItem(BaseModel):
    # Quarter keys are upper-case in the JSON contract.
    year: int
    category: str | None
    Q1: Decimal
    Q2: Decimal
    Q3: Decimal
    Q4: Decimal

    @field_serializer("Q1", "Q2", "Q3", "Q4")
    def serialize_decimal(self, value: Decimal) -> float | None:
        return _number(value)


class GrowthAnalysisItem(BaseModel):
    year: int
    category: str | None
    yearly_total: Decimal
    previous_year_total: Decimal
    growth_percentage: Decimal

    @field_serializer("yearly_total", "previous_year_total", "growth_percentage")
    def serialize_decimal(self, value: Decimal) -> float | None:
        return _number(value)


class TopPerformerItem(BaseModel):
    category: str | None
    subcategory: str | None
    total_amount: Decimal
    record_count: int

    @field_serializer("total_amount")
    def serialize_decimal(self, value: Decimal) -> float | None:
        return _number(value)


class SummaryStatsResponse(BaseModel):
    total_records: int
    total_revenue: Decimal
    active_categories: int
    years_span: int
    average_amount: Decimal
    yearly_growth: Decimal

    @field_serializer("total_revenue", "average_amount")
    def serialize_decimal(self, value: Decimal) -> float | None:
        return _number(value)

    @field_serializer("yearly_growth")
    def serialize_growth(self, value: Decimal) -> float:
        return float(value)


class DebugConnectionResponse(BaseModel):
    status: str
    database: str
    table: str
    total_records: int


@router.get("/financial_data", response_model=list[FinancialDataRow])
async def financial_data(
    year: int | None = Query(default=None),
    category: str | None = Query(default=None),
    month: int | None = Query(default=None, ge=1, le=12),
    subcategory: str | None = Query(default=None),
    connection: AsyncConnection = Depends(get_db_connection),
) -> list[FinancialDataRow]:
    """
    Raw financial_data rows for the dashboard, newest year first.

    `month` keeps only rows with a positive amount in that month.
    """
    try:
        rows = await get_financial_data(
            connection,
            year=year,
            category=category,
            month=month,
            subcategory=subcategory,
        )
    except psycopg.Error as exc:
        raise _query_failed("financial data", exc) from exc

    return [FinancialDataRow(**row) for row in rows]


@router.get("/yearly-summary", response_model=list[YearlySummaryItem])
async def yearly_summary(
    connection: AsyncConnection = Depends(get_db_connection),
) -> list[YearlySummaryItem]:
    try:
        rows = await get_yearly_summary(connection)
    except psycopg.Error as exc:
        raise _query_failed("yearly summary", exc) from exc

    return [YearlySummaryItem(**row) for row in rows]


@router.get("/monthly-trends", response_model=list[MonthlyTrendItem])
async def monthly_trends(
    year: int | None = Query(default=None),
    category: str | None = Query(default=None),
    connection: AsyncConnection = Depends(get_db_connection),
) -> list[MonthlyTrendItem]:
    """Per-category monthly totals (total_jan .. total_dec)."""
    try:
        rows = await get_monthly_trends(connection, year=year, category=category)
    except psycopg.Error as exc:
        raise _query_failed("monthly trends", exc) from exc

    return [MonthlyTrendItem(**row) for row in rows]


@router.get("/category-breakdown", response_model=list[CategoryBreakdownItem])
async def category_breakdown(
    year: int | None = Query(default=None),
    connection: AsyncConnection = Depends(get_db_connection),
) -> list[CategoryBreakdownItem]:
    try:
        rows = await get_category_breakdown(connection, year=year)
    except psycopg.Error as exc:
        raise _query_failed("category breakdown", exc) from exc

    return [CategoryBreakdownItem(**row) for row in rows]


@router.get("/subcategory-analysis", response_model=list[SubcategoryAnalysisItem])
async def subcategory_analysis(
    year: int | None = Query(default=None),
    category: str | None = Query(default=None),
    connection: AsyncConnection = Depends(get_db_connection),
) -> list[SubcategoryAnalysisItem]:
    try:
        rows = await get_subcategory_analysis(connection, year=year, category=category)
    except psycopg.Error as exc:
        raise _query_failed("subcategory analysis", exc) from exc

    return [SubcategoryAnalysisItem(**row) for row in rows]


@router.get("/quarterly-data", response_model=list[QuarterlyDataItem])
async def quarterly_data(
    year: int | None = Query(default=None),
    category: str | None = Query(default=None),
    connection: AsyncConnection = Depends(get_db_connection),
) -> list[QuarterlyDataItem]:
    try:
        rows = await get_quarterly_data(connection, year=year, category=category)
    except psycopg.Error as exc:
        raise _query_failed("quarterly data", exc) from exc

    return [QuarterlyDataItem(**row) for row in rows]


@router.get("/growth-analysis", response_model=list[GrowthAnalysisItem])
async def growth_analysis(
    connection: AsyncConnection = Depends(get_db_connection),
) -> list[GrowthAnalysisItem]:
    """Year-over-year growth per category; a category's first year has no row."""
    try:
        rows = await get_growth_analysis(connection)
    except psycopg.Error as exc:
        raise _query_failed("growth analysis", exc) from exc

    return [GrowthAnalysisItem(**row) for row in rows]


@router.get("/top-performers", response_model=list[TopPerformerItem])
async def top_performers(
    year: int | None = Query(default=None),
    limit: int = Query(default=10, ge=1, le=100),
    connection: AsyncConnection = Depends(get_db_connection),
) -> list[TopPerformerItem]:
    try:
        rows = await get_top_performers(connection, year=year, limit=limit)
    except psycopg.Error as exc:
        raise _query_failed("top performers", exc) from exc

    return [TopPerformerItem(**row) for row in rows]


@router.get("/years", response_model=list[int])
async def years(
    connection: AsyncConnection = Depends(get_db_connection),
) -> list[int]:
    try:
        return await list_years(connection)
    except psycopg.Error as exc:
        raise _query_failed("years", exc) from exc


@router.get("/categories", response_model=list[str])
async def categories(
    connection: AsyncConnection = Depends(get_db_connection),
) -> list[str]:
    try:
        return await list_categories(connection)
    except psycopg.Error as exc:
        raise _query_failed("categories", exc) from exc


@router.get("/summary-stats", response_model=SummaryStatsResponse)
async def summary_stats(
    year: int | None = Query(default=None),
    category: str | None = Query(default=None),
    connection: AsyncConnection = Depends(get_db_connection),
) -> SummaryStatsResponse:
    """
    Headline statistics; yearly_growth always compares the two latest years.

    Example response:
    {
      "total_records": 120,
      "total_revenue": 1520000.0,
      "active_categories": 4,
      "years_span": 3,
      "average_amount": 12666.67,
      "yearly_growth": 8.4
    }
    """
    try:
        data = await get_summary_stats(connection, year=year, category=category)
    except psycopg.Error as exc:
        raise _query_failed("summary stats", exc) from exc

    return SummaryStatsResponse(**data)


@router.get("/chart-data/{chart_type}")
async def chart_data(
    chart_type: str,
    year: int | None = Query(default=None),
    connection: AsyncConnection = Depends(get_db_connection),
) -> dict[str, Any]:
    """
    Chart.js {labels, datasets} for yearly-trends, category-breakdown or monthly-performance.
    """
    try:
        return await get_chart_data(connection, chart_type, year=year)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except psycopg.Error as exc:
        raise _query_failed("chart data", exc) from exc


@router.get("/debug/connection", response_model=DebugConnectionResponse)
async def debug_connection(
    connection: AsyncConnection = Depends(get_db_connection),
) -> DebugConnectionResponse | JSONResponse:
    try:
        total_records = await count_financial_records(connection)
    except psycopg.Error as exc:
        logger.error("Debug connection error: %s", exc)
        return JSONResponse(status_code=500, content={"status": "Error", "error": str(exc)})

    return DebugConnectionResponse(
        status="Connected",
        database=settings.database_name,
        table="financial_data",
        total_records=total_records,
    )
