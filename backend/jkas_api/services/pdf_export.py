"""PDF reports for dashboard tiles, built with reportlab platypus."""

from __future__ import annotations

import io
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any
from xml.sax.saxutils import escape

from reportlab.graphics.charts.barcharts import VerticalBarChart
from reportlab.graphics.shapes import Drawing
from reportlab.lib import colors
from reportlab.lib.colors import HexColor
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import PageBreak, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from .dashboard_charts import DashboardFilters, TileConfig, build_export_table, format_rm

MAX_TABLE_COLUMNS = 7
MAX_CELL_CHARS = 12
CELL_WIDTH = 35 * mm

BAR_COLORS = [
    "#FF6384", "#36A2EB", "#FFCE56", "#4BC0C0", "#9966FF",
    "#FF9F40", "#C7C7C7", "#5366FF", "#FF63FF", "#63FF84",
]


@dataclass(frozen=True)
class TileSection:
    """One tile's worth of report content."""
    tile: TileConfig
    chart_data: dict[str, Any]


def truncate_cell(value: object) -> str:
    text = str(value)
    if len(text) > MAX_CELL_CHARS:
        return text[:MAX_CELL_CHARS - 3] + "..."
    return text


def export_filename(title: str, today: date | None = None) -> str:
    """'Hasil Tahunan' -> 'Hasil_Tahunan_with_data_2026-03-01.pdf'"""
    stamp = (today or date.today()).isoformat()
    name = re.sub(r"\s+", "_", title.strip())
    return f"{name}_with_data_{stamp}.pdf"


def _styles() -> dict[str, ParagraphStyle]:
    base = getSampleStyleSheet()
    return {
        "title": ParagraphStyle("TileTitle", parent=base["Heading1"], fontSize=20, spaceAfter=6),
        "description": ParagraphStyle("TileDescription", parent=base["Normal"], fontSize=12, spaceAfter=10),
        "section": ParagraphStyle("Section", parent=base["Heading2"], fontSize=14, spaceBefore=10, spaceAfter=6),
        "body": ParagraphStyle("Body", parent=base["Normal"], fontSize=12, leading=16),
        "bullet": ParagraphStyle("Bullet", parent=base["Normal"], fontSize=12, leading=16, leftIndent=10 * mm),
    }


def chart_drawing(
    chart_data: dict[str, Any],
    *,
    stacked: bool = False,
    width: float = 180 * mm,
    height: float = 100 * mm,
) -> Drawing | None:
    """Bar chart of labelled numeric datasets; None when there is nothing to draw."""
    labels = chart_data.get("labels") or []
    datasets = [
        dataset
        for dataset in chart_data.get("datasets") or []
        if dataset.get("data") and not isinstance(dataset["data"][0], dict)
    ]
    if not labels or not datasets:
        return None

    series = [tuple(float(value or 0) for value in dataset["data"]) for dataset in datasets]
    if max(max(values) for values in series) <= 0:
        return None

    drawing = Drawing(width, height)
    chart = VerticalBarChart()
    chart.x = 15 * mm
    chart.y = 12 * mm
    chart.width = width - 25 * mm
    chart.height = height - 20 * mm
    chart.data = series
    chart.valueAxis.valueMin = 0
    chart.valueAxis.labels.fontSize = 7
    chart.categoryAxis.categoryNames = [str(label) for label in labels]
    chart.categoryAxis.labels.fontSize = 7
    if stacked:
        chart.categoryAxis.style = "stacked"
    for index in range(len(series)):
        chart.bars[index].fillColor = HexColor(BAR_COLORS[index % len(BAR_COLORS)])
    drawing.add(chart)
    return drawing


def data_table(rows: list[list[str]]) -> Table:
    clipped = [[truncate_cell(cell) for cell in row[:MAX_TABLE_COLUMNS]] for row in rows]
    width = max(len(row) for row in clipped)
    table = Table(clipped, colWidths=[CELL_WIDTH] * width, repeatRows=1)
    table.setStyle(TableStyle([
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 8),
        ("BACKGROUND", (0, 0), (-1, 0), HexColor("#f8f9fa")),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.black),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
    ]))
    return table


def _tile_story(section: TileSection, styles: dict[str, ParagraphStyle]) -> list[Any]:
    story: list[Any] = [
        Paragraph(escape(section.tile.title), styles["title"]),
        Paragraph(escape(section.tile.description), styles["description"]),
    ]

    drawing = chart_drawing(section.chart_data, stacked=section.tile.stacked)
    if drawing is not None:
        story.append(drawing)
        story.append(Spacer(1, 6 * mm))

    story.append(Paragraph("Data Values:", styles["section"]))
    story.append(data_table(build_export_table(section.tile.id, section.chart_data)))
    return story


def _summary_story(
    summary: dict[str, Any],
    filters: DashboardFilters,
    generated_at: datetime,
    styles: dict[str, ParagraphStyle],
) -> list[Any]:
    story: list[Any] = [
        Paragraph("Summary Statistics", styles["title"]),
        Spacer(1, 6 * mm),
        Paragraph(f"Total Revenue: {format_rm(summary['total_revenue'])}", styles["body"]),
        Paragraph(f"Total Records: {summary['total_records']:,}", styles["body"]),
        Paragraph(f"Active Categories: {summary['active_categories']}", styles["body"]),
        Paragraph(f"Report Generated: {generated_at:%Y-%m-%d %H:%M:%S}", styles["body"]),
        Paragraph("Filters Applied:", styles["body"]),
    ]
    applied = filters.describe() or ["None"]
    story.extend(Paragraph(f"• {escape(line)}", styles["bullet"]) for line in applied)
    return story


def _build(story: list[Any], title: str) -> bytes:
    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=landscape(A4),
        leftMargin=20 * mm,
        rightMargin=20 * mm,
        topMargin=15 * mm,
        bottomMargin=15 * mm,
        title=title,
    )
    doc.build(story)
    return buffer.getvalue()


def render_tile_pdf(
    section: TileSection,
    summary: dict[str, Any],
    filters: DashboardFilters,
    *,
    generated_at: datetime | None = None,
) -> bytes:
    """Chart, data table, then a summary page for one tile."""
    styles = _styles()
    story = _tile_story(section, styles)
    story.append(PageBreak())
    story.extend(_summary_story(summary, filters, generated_at or datetime.now(), styles))
    return _build(story, section.tile.title)


def render_dashboard_pdf(
    sections: list[TileSection],
    summary: dict[str, Any],
    filters: DashboardFilters,
    *,
    title: str = "Financial Dashboard",
    generated_at: datetime | None = None,
) -> bytes:
    """Every tile on its own page, followed by the summary page."""
    styles = _styles()
    story: list[Any] = []
    for section in sections:
        story.extend(_tile_story(section, styles))
        story.append(PageBreak())
    story.extend(_summary_story(summary, filters, generated_at or datetime.now(), styles))
    return _build(story, title)
