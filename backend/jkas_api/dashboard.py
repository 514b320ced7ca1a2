"""
Dashboard API router.

Serves the tile grid of the financial dashboard:

- tile configuration and filter options
- Chart.js configs per tile, re-shaped from filtered financial_data rows
- drill-down rows behind a clicked chart element
- PDF export of a single tile or the whole dashboard
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Any

import psycopg
from fastapi import APIRouter, Depends, HTTPException, Query, Response
from pydantic import BaseModel, field_serializer

from .database import get_db_connection
from .services.dashboard_charts import (
    TILES,
    DashboardFilters,
    apply_filters,
    build_chart_config,
    build_chart_data,
    chart_details,
    compute_summary,
    get_tile,
)
from .services.financial_service import get_financial_data, list_categories, list_years
from .services.months import MONTH_NAMES
from .services.pdf_export import TileSection, export_filename, render_dashboard_pdf, render_tile_pdf

if TYPE_CHECKING:
    from psycopg import AsyncConnection
else:
    AsyncConnection = Any

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


class TileOut(BaseModel):
    id: str
    title: str
    type: str
    description: str
    stacked: bool


class MonthOption(BaseModel):
    value: int
    label: str


class FilterOptionsResponse(BaseModel):
    years: list[int]
    categories: list[str]
    months: list[MonthOption]


class DashboardSummary(BaseModel):
    """Headline numbers above the tile grid."""
    total_revenue: Decimal
    total_records: int
    active_categories: int
    yearly_growth: Decimal

    @field_serializer("total_revenue", "yearly_growth")
    def serialize_decimal(self, value: Decimal) -> float:
        return float(value)


class ChartOut(BaseModel):
    tile: TileOut
    config: dict[str, Any]


class DashboardChartsResponse(BaseModel):
    summary: DashboardSummary
    charts: list[ChartOut]


class ChartDetailItem(BaseModel):
    period: str
    category: str | None
    subcategory: str
    amount: float
    data_source: str


class ChartDetailsResponse(BaseModel):
    tile_id: str
    heading: str | None
    items: list[ChartDetailItem]
    total: int
    truncated: bool


def dashboard_filters(
    year: int | None = Query(default=None),
    category: str | None = Query(default=None),
    month: int | None = Query(default=None, ge=1, le=12),
    subcategory: str | None = Query(default=None),
    start_date: date | None = Query(default=None, description="YYYY-MM-DD"),
    end_date: date | None = Query(default=None, description="YYYY-MM-DD"),
) -> DashboardFilters:
    if start_date and end_date and start_date > end_date:
        raise HTTPException(status_code=422, detail="start_date must be on or before end_date")

    return DashboardFilters(
        year=year,
        category=category or None,
        month=month,
        subcategory=subcategory or None,
        start_date=start_date,
        end_date=end_date,
    )


async def _load_rows(connection: AsyncConnection, filters: DashboardFilters) -> list[dict[str, Any]]:
    """Fetch with the SQL-side filters, then apply the rest (date range) in memory."""
    try:
        rows = await get_financial_data(
            connection,
            year=filters.year,
            category=filters.category,
            month=filters.month,
            subcategory=filters.subcategory,
        )
    except psycopg.Error as exc:
        logger.error("Error loading dashboard data: %s", exc)
        raise HTTPException(status_code=500, detail="Failed to fetch financial data") from exc

    return apply_filters(rows, filters)


def _tile_or_404(tile_id: str):
    try:
        return get_tile(tile_id)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


def _chart_out(tile, rows: list[dict[str, Any]], chart_type: str | None = None) -> ChartOut:
    chart_data = build_chart_data(tile.id, rows)
    try:
        config = build_chart_config(tile, chart_data, chart_type)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return ChartOut(tile=TileOut(**tile.as_dict()), config=config)


def _pdf_response(content: bytes, filename: str) -> Response:
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/tiles", response_model=list[TileOut])
async def dashboard_tiles() -> list[TileOut]:
    """Static tile grid, in display order."""
    return [TileOut(**tile.as_dict()) for tile in TILES]


@router.get("/filters", response_model=FilterOptionsResponse)
async def dashboard_filter_options(
    connection: AsyncConnection = Depends(get_db_connection),
) -> FilterOptionsResponse:
    """Options for the year/category/month selectors."""
    try:
        years = await list_years(connection)
        categories = await list_categories(connection)
    except psycopg.Error as exc:
        logger.error("Error loading filter options: %s", exc)
        raise HTTPException(status_code=500, detail="Failed to fetch filter options") from exc

    return FilterOptionsResponse(
        years=years,
        categories=categories,
        months=[MonthOption(value=index + 1, label=name) for index, name in enumerate(MONTH_NAMES)],
    )


@router.get("/charts", response_model=DashboardChartsResponse)
async def dashboard_charts(
    filters: DashboardFilters = Depends(dashboard_filters),
    connection: AsyncConnection = Depends(get_db_connection),
) -> DashboardChartsResponse:
    """
    Every tile's Chart.js config plus the summary, for one set of filters.

    Example response:
    {
      "summary": {"total_revenue": 152000.0, "total_records": 40, "active_categories": 3, "yearly_growth": 4.2},
      "charts": [
        {
          "tile": {"id": "yearlyTrends", "title": "Hasil Tahunan", "type": "line", "description": "...", "stacked": false},
          "config": {"type": "line", "data": {"labels": ["2023", "2024"], "datasets": [...]}, "options": {...}, "currency": "RM"}
        }
      ]
    }
    """
    rows = await _load_rows(connection, filters)
    logger.info("Updating charts with filters: %s (%d rows)", filters, len(rows))

    return DashboardChartsResponse(
        summary=DashboardSummary(**compute_summary(rows)),
        charts=[_chart_out(tile, rows) for tile in TILES],
    )


@router.get("/summary", response_model=DashboardSummary)
async def dashboard_summary(
    filters: DashboardFilters = Depends(dashboard_filters),
    connection: AsyncConnection = Depends(get_db_connection),
) -> DashboardSummary:
    rows = await _load_rows(connection, filters)
    return DashboardSummary(**compute_summary(rows))


@router.get("/charts/{tile_id}", response_model=ChartOut)
async def dashboard_chart(
    tile_id: str,
    chart_type: str | None = Query(default=None, description="bar, line, doughnut, radar, polarArea or scatter"),
    filters: DashboardFilters = Depends(dashboard_filters),
    connection: AsyncConnection = Depends(get_db_connection),
) -> ChartOut:
    """One tile, optionally re-rendered as a different chart type."""
    tile = _tile_or_404(tile_id)
    rows = await _load_rows(connection, filters)
    return _chart_out(tile, rows, chart_type)


@router.get("/charts/{tile_id}/details", response_model=ChartDetailsResponse)
async def dashboard_chart_details(
    tile_id: str,
    index: int = Query(ge=0, description="Index of the clicked chart element"),
    filters: DashboardFilters = Depends(dashboard_filters),
    connection: AsyncConnection = Depends(get_db_connection),
) -> ChartDetailsResponse:
    """Rows behind one chart element, capped at 50 with the full count."""
    tile = _tile_or_404(tile_id)
    rows = await _load_rows(connection, filters)
    chart_data = build_chart_data(tile.id, rows)

    try:
        details = chart_details(tile.id, index, rows, chart_data)
    except IndexError as exc:
        raise HTTPException(status_code=404, detail="Chart element not found") from exc

    return ChartDetailsResponse(**details)


@router.get("/charts/{tile_id}/export.pdf")
async def dashboard_chart_pdf(
    tile_id: str,
    filters: DashboardFilters = Depends(dashboard_filters),
    connection: AsyncConnection = Depends(get_db_connection),
) -> Response:
    tile = _tile_or_404(tile_id)
    rows = await _load_rows(connection, filters)
    section = TileSection(tile=tile, chart_data=build_chart_data(tile.id, rows))

    content = render_tile_pdf(section, compute_summary(rows), filters)
    logger.info("Exported %s PDF (%d bytes)", tile.id, len(content))
    return _pdf_response(content, export_filename(tile.title))


@router.get("/export.pdf")
async def dashboard_pdf(
    filters: DashboardFilters = Depends(dashboard_filters),
    connection: AsyncConnection = Depends(get_db_connection),
) -> Response:
    rows = await _load_rows(connection, filters)
    sections = [TileSection(tile=tile, chart_data=build_chart_data(tile.id, rows)) for tile in TILES]

    content = render_dashboard_pdf(sections, compute_summary(rows), filters)
    logger.info("Exported dashboard PDF (%d bytes)", len(content))
    return _pdf_response(content, export_filename("Financial Dashboard"))
