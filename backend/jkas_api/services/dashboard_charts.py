"""
Dashboard data shaping.

Takes raw financial_data rows, applies the dashboard filters and reshapes
them into Chart.js configuration objects, one per tile. Everything here is
pure so the same shaping feeds the JSON endpoints and the PDF export.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import asdict, dataclass
from datetime import date
from decimal import Decimal
from typing import Any

from .financial_service import as_number, compute_growth_percentage, normalize_amount
from .months import MONTH_ABBREVIATIONS, MONTH_COLUMNS, MONTH_NAMES, month_column, month_name

CHART_TYPES: tuple[str, ...] = ("bar", "line", "doughnut", "radar", "polarArea", "scatter")
RADIAL_CHART_TYPES: frozenset[str] = frozenset({"doughnut", "pie", "radar", "polarArea"})

DETAIL_ROW_LIMIT = 50

CLEANING_CATEGORY = "Pembersihan"
SERVICE_PAYMENT_CATEGORY = "Pembayaran Perkhidmatan"
SUMMARY_CATEGORY = "Summary PSPPA"
ROAD_SWEEPING_SUBCATEGORIES = ("Sapuan Jalan Perumahan", "Sapuan Jalan Komersial")
DRAIN_CLEANING_SUBCATEGORIES = ("Pembersihan Longkang Perumahan", "Pembersihan Longkang Komersial")
GRASS_CUTTING_SUBCATEGORY = "Pemotongan Rumput"

CATEGORY_COLORS = ["#FF6384", "#36A2EB", "#FFCE56", "#4BC0C0", "#9966FF", "#FF9F40"]

# One colour per cleaning service, in the order subcategories first appear.
SERVICE_COLORS = [
    "rgba(255, 99, 132, 0.8)",
    "rgba(54, 162, 235, 0.8)",
    "rgba(255, 205, 86, 0.8)",
    "rgba(75, 192, 192, 0.8)",
    "rgba(153, 102, 255, 0.8)",
    "rgba(255, 159, 64, 0.8)",
    "rgba(199, 199, 199, 0.8)",
    "rgba(83, 102, 255, 0.8)",
    "rgba(255, 99, 255, 0.8)",
    "rgba(99, 255, 132, 0.8)",
]
ROAD_SWEEPING_COLORS = ["rgba(255, 99, 132, 0.8)", "rgba(54, 162, 235, 0.8)"]
DRAIN_CLEANING_COLORS = ["rgba(75, 192, 192, 0.8)", "rgba(153, 102, 255, 0.8)"]
SUMMARY_COLORS = ["rgba(54, 162, 235, 0.8)", "rgba(255, 99, 132, 0.8)"]


@dataclass(frozen=True)
class DashboardFilters:
    year: int | None = None
    category: str | None = None
    month: int | None = None
    subcategory: str | None = None
    start_date: date | None = None
    end_date: date | None = None

    def describe(self) -> list[str]:
        """Human-readable list of the filters in effect, for report footers."""
        lines: list[str] = []
        if self.year is not None:
            lines.append(f"Year: {self.year}")
        if self.category:
            lines.append(f"Category: {self.category}")
        if self.subcategory:
            lines.append(f"Subcategory: {self.subcategory}")
        if self.month is not None:
            lines.append(f"Month: {month_name(self.month)}")
        if self.start_date and self.end_date:
            lines.append(f"Date Range: {self.start_date.isoformat()} to {self.end_date.isoformat()}")
        return lines


@dataclass(frozen=True)
class TileConfig:
    id: str
    title: str
    type: str
    description: str
    stacked: bool = False

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


TILES: tuple[TileConfig, ...] = (
    TileConfig("yearlyTrends", "Hasil Tahunan", "line", "Jumlah Tuntutan Pembayaran (RM)"),
    TileConfig(
        "categoryBreakdown",
        "Hasil Mengikut Parlimen",
        "bar",
        "Jumlah Tuntutan Pembayaran (RM) mengikut parlimen",
    ),
    TileConfig(
        "monthlyPerformance",
        "Hasil Bulanan",
        "bar",
        "Jumlah Tuntutan Pembayaran (RM) mengikut bulan",
    ),
    TileConfig("subcategoryAnalysis", "Pembersihan", "bar", "Perkhidmatan Pembersihan (RM)", stacked=True),
    TileConfig(
        "quarterlyComparison",
        "P.Jalan",
        "bar",
        "Pembayaran Perkhidmatan Sapuan Jalan (RM)",
        stacked=True,
    ),
    TileConfig("growthAnalysis", "P.Longkang", "bar", "Pembayaran Perkhidmatan Longkang (RM)", stacked=True),
    TileConfig("topPerformers", "P.Rumput", "bar", "Pembayaran Perkhidmatan Rumput (RM)", stacked=True),
    TileConfig(
        "seasonalTrends",
        "Rumusan",
        "bar",
        "Jumlah Tuntutan Pembayaran (RM) Kutipan Sisa Pepejal Dan Pembersihan Awam",
    ),
    TileConfig("distributionAnalysis", "Hari-hari Festive", "scatter", "Revenue distribution analysis"),
)

TILES_BY_ID: dict[str, TileConfig] = {tile.id: tile for tile in TILES}


def get_tile(tile_id: str) -> TileConfig:
    try:
        return TILES_BY_ID[tile_id]
    except KeyError:
        raise LookupError(f"Unknown dashboard tile: {tile_id}") from None


def _amount(row: dict[str, Any], key: str) -> Decimal:
    return normalize_amount(row.get(key))


def _empty_chart() -> dict[str, Any]:
    return {"labels": [], "datasets": []}


def _unique(values: Iterable[Any]) -> list[Any]:
    # Preserves first-seen order.
    return list(dict.fromkeys(values))


def apply_filters(rows: Iterable[dict[str, Any]], filters: DashboardFilters) -> list[dict[str, Any]]:
    """Keep rows matching every filter that is set."""
    month_key = month_column(filters.month) if filters.month is not None else None
    use_range = filters.start_date is not None and filters.end_date is not None

    kept: list[dict[str, Any]] = []
    for row in rows:
        if filters.year is not None and row.get("year") != filters.year:
            continue
        if filters.category and row.get("category") != filters.category:
            continue
        if filters.subcategory and row.get("subcategory") != filters.subcategory:
            continue
        if month_key is not None and not row.get(month_key):
            continue
        if use_range:
            row_year = row.get("year")
            if row_year is None or row_year < filters.start_date.year or row_year > filters.end_date.year:
                continue
        kept.append(row)
    return kept


def _monthly_totals(rows: Iterable[dict[str, Any]]) -> list[Decimal]:
    totals = [Decimal("0.00")] * len(MONTH_COLUMNS)
    for row in rows:
        for index, column in enumerate(MONTH_COLUMNS):
            totals[index] += _amount(row, column)
    return totals


def _subcategory_monthly_datasets(
    rows: list[dict[str, Any]],
    colors: list[str],
    **extra: Any,
) -> list[dict[str, Any]]:
    datasets: list[dict[str, Any]] = []
    for index, subcategory in enumerate(_unique(row.get("subcategory") for row in rows)):
        color = colors[index % len(colors)]
        totals = _monthly_totals(row for row in rows if row.get("subcategory") == subcategory)
        datasets.append(
            {
                "label": subcategory,
                "data": [float(value) for value in totals],
                "backgroundColor": color,
                "borderColor": color.replace("0.8", "1"),
                "borderWidth": 1,
                **extra,
            }
        )
    return datasets


def _yearly_trends(rows: list[dict[str, Any]]) -> dict[str, Any]:
    by_year: dict[int, Decimal] = {}
    for row in rows:
        by_year[row["year"]] = by_year.get(row["year"], Decimal("0.00")) + _amount(row, "total_amount")

    years = sorted(by_year)
    return {
        "labels": [str(year) for year in years],
        "datasets": [
            {
                "label": "Total Revenue (RM)",
                "data": [float(by_year[year]) for year in years],
                "borderColor": "rgb(75, 192, 192)",
                "backgroundColor": "rgba(75, 192, 192, 0.2)",
                "tension": 0.4,
            }
        ],
    }


def _category_breakdown(rows: list[dict[str, Any]]) -> dict[str, Any]:
    by_category: dict[str, Decimal] = {}
    for row in rows:
        category = row.get("category")
        by_category[category] = by_category.get(category, Decimal("0.00")) + _amount(row, "total_amount")

    return {
        "labels": list(by_category),
        "datasets": [
            {
                "data": [float(value) for value in by_category.values()],
                "backgroundColor": CATEGORY_COLORS[:len(by_category)],
                "borderWidth": 2,
                "borderColor": "#fff",
            }
        ],
    }


def _monthly_performance(rows: list[dict[str, Any]]) -> dict[str, Any]:
    return {
        "labels": list(MONTH_NAMES),
        "datasets": [
            {
                "label": "Monthly Revenue (RM)",
                "data": [float(value) for value in _monthly_totals(rows)],
                "backgroundColor": "rgba(54, 162, 235, 0.6)",
                "borderColor": "rgba(54, 162, 235, 1)",
                "borderWidth": 1,
            }
        ],
    }


def _cleaning_services(rows: list[dict[str, Any]]) -> dict[str, Any]:
    cleaning = [row for row in rows if row.get("category") == CLEANING_CATEGORY]
    if not cleaning:
        return _empty_chart()

    datasets = _subcategory_monthly_datasets(cleaning, SERVICE_COLORS)
    return {
        "labels": list(MONTH_ABBREVIATIONS),
        # Services with no spend in any month are left out of the stack.
        "datasets": [dataset for dataset in datasets if any(value > 0 for value in dataset["data"])],
    }


def _service_payments(
    rows: list[dict[str, Any]],
    subcategories: tuple[str, ...],
    colors: list[str],
    **extra: Any,
) -> dict[str, Any]:
    selected = [
        row
        for row in rows
        if row.get("category") == SERVICE_PAYMENT_CATEGORY and row.get("subcategory") in subcategories
    ]
    if not selected:
        return _empty_chart()

    return {
        "labels": list(MONTH_ABBREVIATIONS),
        "datasets": _subcategory_monthly_datasets(selected, colors, **extra),
    }


def _grass_cutting(rows: list[dict[str, Any]]) -> dict[str, Any]:
    selected = [
        row
        for row in rows
        if row.get("category") == SERVICE_PAYMENT_CATEGORY and row.get("subcategory") == GRASS_CUTTING_SUBCATEGORY
    ]
    if not selected:
        return _empty_chart()

    return {
        "labels": list(MONTH_ABBREVIATIONS),
        "datasets": [
            {
                "label": f"{GRASS_CUTTING_SUBCATEGORY} (RM)",
                "data": [float(value) for value in _monthly_totals(selected)],
                "backgroundColor": "rgba(75, 192, 192, 0.8)",
                "borderColor": "rgba(75, 192, 192, 1)",
                "borderWidth": 1,
            }
        ],
    }


def _collection_summary(rows: list[dict[str, Any]]) -> dict[str, Any]:
    summary = [row for row in rows if row.get("category") == SUMMARY_CATEGORY]
    if not summary:
        return _empty_chart()

    subcategories = _unique(row.get("subcategory") for row in summary)
    return {
        "labels": subcategories,
        "datasets": [
            {
                "data": [
                    float(sum(
                        (_amount(row, "total_amount") for row in summary if row.get("subcategory") == subcategory),
                        Decimal("0.00"),
                    ))
                    for subcategory in subcategories
                ],
                "backgroundColor": list(SUMMARY_COLORS),
                "borderWidth": 2,
            }
        ],
    }


def _distribution(rows: list[dict[str, Any]]) -> dict[str, Any]:
    datasets: list[dict[str, Any]] = []
    for index, category in enumerate(_unique(row.get("category") for row in rows)):
        hue = index * 60
        datasets.append(
            {
                "label": category,
                "data": [
                    {"x": row.get("year"), "y": as_number(row.get("total_amount")), "category": category}
                    for row in rows
                    if row.get("category") == category
                ],
                "backgroundColor": f"hsla({hue}, 70%, 50%, 0.6)",
                "borderColor": f"hsla({hue}, 70%, 50%, 1)",
                "pointRadius": 5,
            }
        )
    return {"datasets": datasets}


def build_chart_data(tile_id: str, rows: list[dict[str, Any]]) -> dict[str, Any]:
    """Reshape already-filtered rows into Chart.js {labels, datasets} for one tile."""
    get_tile(tile_id)

    if tile_id == "yearlyTrends":
        return _yearly_trends(rows)
    if tile_id == "categoryBreakdown":
        return _category_breakdown(rows)
    if tile_id == "monthlyPerformance":
        return _monthly_performance(rows)
    if tile_id == "subcategoryAnalysis":
        return _cleaning_services(rows)
    if tile_id == "quarterlyComparison":
        return _service_payments(rows, ROAD_SWEEPING_SUBCATEGORIES, ROAD_SWEEPING_COLORS)
    if tile_id == "growthAnalysis":
        return _service_payments(rows, DRAIN_CLEANING_SUBCATEGORIES, DRAIN_CLEANING_COLORS, tension=0.4)
    if tile_id == "topPerformers":
        return _grass_cutting(rows)
    if tile_id == "seasonalTrends":
        return _collection_summary(rows)
    return _distribution(rows)


def scale_config(chart_type: str) -> dict[str, Any]:
    if chart_type in RADIAL_CHART_TYPES:
        return {}

    if chart_type == "scatter":
        return {
            "x": {
                "type": "linear",
                "position": "bottom",
                "title": {"display": True, "text": "Year"},
            },
            "y": {
                "beginAtZero": True,
                "title": {"display": True, "text": "Revenue (RM)"},
            },
        }

    return {"y": {"beginAtZero": True}}


def build_chart_config(
    tile: TileConfig,
    chart_data: dict[str, Any],
    chart_type: str | None = None,
) -> dict[str, Any]:
    """Full Chart.js config; chart_type overrides the tile's default type."""
    resolved_type = chart_type or tile.type
    if resolved_type not in CHART_TYPES:
        raise ValueError(f"chart_type must be one of: {', '.join(CHART_TYPES)}")

    if tile.stacked:
        scales = {
            "x": {"stacked": True},
            "y": {"stacked": True, "beginAtZero": True},
        }
    else:
        scales = scale_config(resolved_type)

    return {
        "type": resolved_type,
        "data": chart_data,
        "options": {
            "responsive": True,
            "maintainAspectRatio": False,
            "plugins": {"legend": {"display": True, "position": "top"}},
            "scales": scales,
        },
        # Read by the browser to format ticks and tooltips as "RM 1,234".
        "currency": "RM",
    }


def compute_summary(rows: list[dict[str, Any]]) -> dict[str, Any]:
    """Headline numbers shown above the tile grid."""
    total_revenue = sum((_amount(row, "total_amount") for row in rows), Decimal("0.00"))

    by_year: dict[int, Decimal] = {}
    for row in rows:
        by_year[row["year"]] = by_year.get(row["year"], Decimal("0.00")) + _amount(row, "total_amount")

    years = sorted(by_year)
    yearly_growth = Decimal("0")
    if len(years) > 1:
        yearly_growth = compute_growth_percentage(by_year[years[-1]], by_year[years[-2]])

    return {
        "total_revenue": total_revenue,
        "total_records": len(rows),
        "active_categories": len(_unique(row.get("category") for row in rows)),
        "yearly_growth": yearly_growth,
    }


def _detail_item(row: dict[str, Any], period: str, amount: Decimal) -> dict[str, Any]:
    return {
        "period": period,
        "category": row.get("category"),
        "subcategory": row.get("subcategory") or "N/A",
        "amount": float(amount),
        "data_source": row.get("data_source") or "N/A",
    }


def chart_details(
    tile_id: str,
    index: int,
    rows: list[dict[str, Any]],
    chart_data: dict[str, Any],
) -> dict[str, Any]:
    """Rows behind one clicked chart element (drill-down table)."""
    get_tile(tile_id)
    if index < 0:
        raise IndexError("index must be >= 0")

    labels = chart_data.get("labels") or []
    heading: str | None = None
    items: list[dict[str, Any]] = []

    if tile_id == "subcategoryAnalysis":
        if index >= len(MONTH_COLUMNS):
            raise IndexError("index out of range")
        column = MONTH_COLUMNS[index]
        label = MONTH_NAMES[index]
        heading = f"Data for {label}"
        items = [
            _detail_item(row, label, _amount(row, column))
            for row in rows
            if row.get("category") == CLEANING_CATEGORY and _amount(row, column) > 0
        ]
    elif tile_id == "categoryBreakdown":
        if index >= len(labels):
            raise IndexError("index out of range")
        category = labels[index]
        items = [
            _detail_item(row, "All Year", _amount(row, "total_amount"))
            for row in rows
            if row.get("category") == category
        ]
    elif tile_id == "yearlyTrends":
        if index >= len(labels):
            raise IndexError("index out of range")
        year_label = labels[index]
        items = [
            _detail_item(row, year_label, _amount(row, "total_amount"))
            for row in rows
            if str(row.get("year")) == year_label
        ]

    return {
        "tile_id": tile_id,
        "heading": heading,
        "items": items[:DETAIL_ROW_LIMIT],
        "total": len(items),
        "truncated": len(items) > DETAIL_ROW_LIMIT,
    }


def format_rm(value: Decimal | float | int | None) -> str:
    return f"RM {as_number(value):,.2f}"


def build_export_table(tile_id: str, chart_data: dict[str, Any]) -> list[list[str]]:
    """Header row plus data rows for the "Data Values" table of a tile export."""
    get_tile(tile_id)
    labels = chart_data.get("labels") or []
    datasets = chart_data.get("datasets") or []

    if tile_id == "subcategoryAnalysis":
        table = [["Service Type", *MONTH_ABBREVIATIONS, "Total"]]
        for dataset in datasets:
            values = dataset["data"]
            table.append([str(dataset.get("label")), *(format_rm(value) for value in values), format_rm(sum(values))])
        return table

    if tile_id == "monthlyPerformance":
        values = datasets[0]["data"] if datasets else []
        return [["Month", "Revenue (RM)"], *([label, format_rm(value)] for label, value in zip(labels, values))]

    if tile_id == "categoryBreakdown":
        values = [normalize_amount(value) for value in (datasets[0]["data"] if datasets else [])]
        total = sum(values, Decimal("0.00"))
        table = [["Category", "Total Revenue (RM)", "Percentage"]]
        for label, value in zip(labels, values):
            share = (value / total * 100) if total > 0 else Decimal("0")
            table.append([str(label), format_rm(value), f"{share:.1f}%"])
        table.append(["TOTAL", format_rm(total), "100.0%"])
        return table

    if tile_id == "yearlyTrends":
        values = [normalize_amount(value) for value in (datasets[0]["data"] if datasets else [])]
        table = [["Year", "Revenue (RM)", "Growth %"]]
        for position, (label, value) in enumerate(zip(labels, values)):
            growth = "N/A"
            if position > 0 and values[position - 1] > 0:
                growth = f"{compute_growth_percentage(value, values[position - 1])}%"
            table.append([str(label), format_rm(value), growth])
        return table

    table = [["Label", "Value (RM)"]]
    if labels:
        for position, label in enumerate(labels):
            for dataset in datasets:
                data = dataset.get("data") or []
                value = data[position] if position < len(data) else 0
                name = dataset.get("label")
                table.append([f"{label} ({name})" if name else str(label), format_rm(value)])
    else:
        for dataset in datasets:
            for position, point in enumerate(dataset.get("data") or []):
                value = point.get("y") if isinstance(point, dict) else point
                table.append([f"{dataset.get('label')} #{position + 1}", format_rm(value)])
    return table
