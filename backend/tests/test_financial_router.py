from datetime import datetime
from decimal import Decimal

import psycopg
from fastapi import FastAPI
from fastapi.testclient import TestClient

import jkas_api.financial as financial_router


def _app_with_overrides():
    app = FastAPI()
    app.include_router(financial_router.router)

    async def override_db():
        yield object()

    app.dependency_overrides[financial_router.get_db_connection] = override_db
    return app


def test_database_not_configured_returns_500() -> None:
    app = FastAPI()
    app.include_router(financial_router.router)

    with TestClient(app) as client:
        response = client.get("/api/years")

    assert response.status_code == 500
    assert response.json()["detail"] == "DATABASE_URL is not configured"


def test_financial_data_serializes_amounts_as_numbers(monkeypatch) -> None:
    app = _app_with_overrides()

    async def fake_financial_data(connection, *, year, category, month, subcategory):
        assert (year, category, month, subcategory) == (2025, "Pembersihan", 3, None)
        return [
            {
                "id": 7,
                "year": 2025,
                "category": "Pembersihan",
                "subcategory": "Pembersihan Pasar",
                "jenis_bulan": "Bulanan",
                "januari": Decimal("100.10"),
                "march": Decimal("250.00"),
                "december": None,
                "total_amount": Decimal("350.10"),
                "currency": "RM",
                "data_source": "Laporan",
                "created_at": datetime(2025, 1, 5, 8, 0, 0),
            }
        ]

    monkeypatch.setattr(financial_router, "get_financial_data", fake_financial_data)

    with TestClient(app) as client:
        response = client.get("/api/financial_data", params={"year": 2025, "category": "Pembersihan", "month": 3})

    assert response.status_code == 200
    row = response.json()[0]
    assert row["januari"] == 100.1
    assert row["march"] == 250.0
    assert row["december"] is None
    assert row["total_amount"] == 350.1


def test_financial_data_month_out_of_range(monkeypatch) -> None:
    app = _app_with_overrides()

    with TestClient(app) as client:
        response = client.get("/api/financial_data", params={"month": 13})

    assert response.status_code == 422


def test_quarterly_data_uses_upper_case_quarter_keys(monkeypatch) -> None:
    app = _app_with_overrides()

    async def fake_quarterly(connection, *, year, category):
        return [
            {
                "year": 2025,
                "category": "Pembersihan",
                "Q1": Decimal("300.00"),
                "Q2": Decimal("0.00"),
                "Q3": Decimal("150.50"),
                "Q4": Decimal("0.00"),
            }
        ]

    monkeypatch.setattr(financial_router, "get_quarterly_data", fake_quarterly)

    with TestClient(app) as client:
        response = client.get("/api/quarterly-data")

    assert response.status_code == 200
    assert response.json() == [
        {"year": 2025, "category": "Pembersihan", "Q1": 300.0, "Q2": 0.0, "Q3": 150.5, "Q4": 0.0}
    ]


def test_top_performers_limit_bounds(monkeypatch) -> None:
    app = _app_with_overrides()
    seen = {}

    async def fake_top(connection, *, year, limit):
        seen["limit"] = limit
        return [
            {
                "category": "Summary PSPPA",
                "subcategory": "Kutipan Sisa Pepejal",
                "total_amount": Decimal("9000.00"),
                "record_count": 2,
            }
        ]

    monkeypatch.setattr(financial_router, "get_top_performers", fake_top)

    with TestClient(app) as client:
        default = client.get("/api/top-performers")
        too_small = client.get("/api/top-performers", params={"limit": 0})
        too_large = client.get("/api/top-performers", params={"limit": 101})

    assert default.status_code == 200
    assert seen["limit"] == 10
    assert default.json()[0]["total_amount"] == 9000.0
    assert too_small.status_code == 422
    assert too_large.status_code == 422


def test_growth_analysis_passthrough(monkeypatch) -> None:
    app = _app_with_overrides()

    async def fake_growth(connection):
        return [
            {
                "year": 2025,
                "category": "Pembersihan",
                "yearly_total": Decimal("1200.00"),
                "previous_year_total": Decimal("1000.00"),
                "growth_percentage": Decimal("20.00"),
            }
        ]

    monkeypatch.setattr(financial_router, "get_growth_analysis", fake_growth)

    with TestClient(app) as client:
        response = client.get("/api/growth-analysis")

    assert response.status_code == 200
    assert response.json()[0]["growth_percentage"] == 20.0


def test_summary_stats_response(monkeypatch) -> None:
    app = _app_with_overrides()

    async def fake_stats(connection, *, year, category):
        return {
            "total_records": 12,
            "total_revenue": Decimal("15200.00"),
            "active_categories": 3,
            "years_span": 2,
            "average_amount": Decimal("1266.67"),
            "yearly_growth": Decimal("-4.2"),
        }

    monkeypatch.setattr(financial_router, "get_summary_stats", fake_stats)

    with TestClient(app) as client:
        response = client.get("/api/summary-stats")

    assert response.status_code == 200
    assert response.json() == {
        "total_records": 12,
        "total_revenue": 15200.0,
        "active_categories": 3,
        "years_span": 2,
        "average_amount": 1266.67,
        "yearly_growth": -4.2,
    }


def test_chart_data_invalid_type_returns_400() -> None:
    app = _app_with_overrides()

    with TestClient(app) as client:
        response = client.get("/api/chart-data/pie-slices")

    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid chart type"


def test_chart_data_valid_type(monkeypatch) -> None:
    app = _app_with_overrides()

    async def fake_chart(connection, chart_type, *, year):
        assert chart_type == "yearly-trends"
        return {"labels": ["2025"], "datasets": [{"label": "Total Revenue (RM)", "data": [1.0]}]}

    monkeypatch.setattr(financial_router, "get_chart_data", fake_chart)

    with TestClient(app) as client:
        response = client.get("/api/chart-data/yearly-trends")

    assert response.status_code == 200
    assert response.json()["labels"] == ["2025"]


def test_query_failure_maps_to_500(monkeypatch) -> None:
    app = _app_with_overrides()

    async def failing_years(connection):
        raise psycopg.OperationalError("server closed the connection")

    monkeypatch.setattr(financial_router, "list_years", failing_years)

    with TestClient(app) as client:
        response = client.get("/api/years")

    assert response.status_code == 500
    assert response.json()["detail"] == "Failed to fetch years"


def test_debug_connection_reports_record_count(monkeypatch) -> None:
    app = _app_with_overrides()

    async def fake_count(connection):
        return 42

    monkeypatch.setattr(financial_router, "count_financial_records", fake_count)

    with TestClient(app) as client:
        response = client.get("/api/debug/connection")

    assert response.status_code == 200
    assert response.json() == {
        "status": "Connected",
        "database": financial_router.settings.database_name,
        "table": "financial_data",
        "total_records": 42,
    }


def test_debug_connection_error_body(monkeypatch) -> None:
    app = _app_with_overrides()

    async def failing_count(connection):
        raise psycopg.OperationalError("no route to host")

    monkeypatch.setattr(financial_router, "count_financial_records", failing_count)

    with TestClient(app) as client:
        response = client.get("/api/debug/connection")

    assert response.status_code == 500
    assert response.json() == {"status": "Error", "error": "no route to host"}


def test_aggregate_endpoints_serialize_totals(monkeypatch) -> None:
    app = _app_with_overrides()

    async def fake_yearly(connection):
        return [{"year": 2025, "category": "Pembersihan", "total_yearly_amount": Decimal("1200.50"), "record_count": 3}]

    async def fake_monthly(connection, *, year, category):
        months = ["jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec"]
        row = {f"total_{month}": Decimal("0.00") for month in months}
        row["total_feb"] = Decimal("75.25")
        return [{"category": "Pembersihan", **row}]

    async def fake_breakdown(connection, *, year):
        assert year == 2024
        return [{"category": "Summary PSPPA", "total_amount": Decimal("5000.00"), "record_count": 2}]

    async def fake_subcategories(connection, *, year, category):
        return [
            {
                "category": "Pembayaran Perkhidmatan",
                "subcategory": "Pemotongan Rumput",
                "subcategory_total": Decimal("640.10"),
                "record_count": 1,
            }
        ]

    monkeypatch.setattr(financial_router, "get_yearly_summary", fake_yearly)
    monkeypatch.setattr(financial_router, "get_monthly_trends", fake_monthly)
    monkeypatch.setattr(financial_router, "get_category_breakdown", fake_breakdown)
    monkeypatch.setattr(financial_router, "get_subcategory_analysis", fake_subcategories)

    with TestClient(app) as client:
        yearly = client.get("/api/yearly-summary")
        monthly = client.get("/api/monthly-trends", params={"category": "Pembersihan"})
        breakdown = client.get("/api/category-breakdown", params={"year": 2024})
        subcategories = client.get("/api/subcategory-analysis")

    assert yearly.json()[0]["total_yearly_amount"] == 1200.5
    assert monthly.json()[0]["total_feb"] == 75.25
    assert monthly.json()[0]["total_dec"] == 0.0
    assert breakdown.json() == [{"category": "Summary PSPPA", "total_amount": 5000.0, "record_count": 2}]
    assert subcategories.json()[0]["subcategory_total"] == 640.1
