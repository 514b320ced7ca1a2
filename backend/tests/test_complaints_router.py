from contextlib import asynccontextmanager
from datetime import date

import psycopg
from fastapi import FastAPI
from fastapi.testclient import TestClient

import jkas_api.complaints as complaints_router
import jkas_api.database as database
from jkas_api.main import app as main_app
from jkas_api.services.complaints_service import COMPLAINT_COLUMNS, INSERT_COMPLAINT_SQL, complaint_params


class RecordingCursor:
    def __init__(self, connection):
        self.connection = connection

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def execute(self, query, params=None):
        self.connection.executed.append((query, params))


class RecordingConnection:
    def __init__(self):
        self.executed = []

    def cursor(self):
        return RecordingCursor(self)


def _app_with_connection(monkeypatch, connection):
    app = FastAPI()
    app.include_router(complaints_router.router)

    @asynccontextmanager
    async def fake_connect():
        yield connection

    monkeypatch.setattr(complaints_router, "connect_complaints_db", fake_connect)
    return app


def test_insert_sql_lists_every_column_once() -> None:
    assert INSERT_COMPLAINT_SQL.count("%s") == len(COMPLAINT_COLUMNS) == 21
    assert "INSERT INTO PublicComplaints" in INSERT_COMPLAINT_SQL
    assert "ComplainantName" in INSERT_COMPLAINT_SQL
    assert "FollowUpAction" in INSERT_COMPLAINT_SQL


def test_complaint_params_follow_column_order() -> None:
    params = complaint_params({"follow_up_action": "Pantau", "complainant_name": "Aminah"})

    assert params[0] == "Aminah"
    assert params[-1] == "Pantau"
    assert params.count(None) == 19


def test_submit_complaint_inserts_normalized_record(monkeypatch) -> None:
    connection = RecordingConnection()
    app = _app_with_connection(monkeypatch, connection)

    with TestClient(app) as client:
        response = client.post(
            "/api/pelarasan",
            json={
                "complainantName": "  Aminah binti Ali  ",
                "email": "aminah@example.com",
                "phone": "",
                "complaintSource": "Portal",
                "complaintDate": "2026-01-15",
                "receivedDate": "",
                "latitude": "3.139",
                "longitude": 101.6869,
                "followUpAction": "Pemantauan mingguan",
            },
        )

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Complaint submitted successfully"}

    query, params = connection.executed[0]
    assert query == INSERT_COMPLAINT_SQL
    by_column = dict(zip(COMPLAINT_COLUMNS.values(), params))
    assert by_column["ComplainantName"] == "Aminah binti Ali"
    assert by_column["Phone"] is None
    assert by_column["ComplaintDate"] == date(2026, 1, 15)
    assert by_column["ReceivedDate"] is None
    assert by_column["Latitude"] == 3.139
    assert by_column["FollowUpAction"] == "Pemantauan mingguan"


def test_submit_complaint_accepts_snake_case_fields(monkeypatch) -> None:
    connection = RecordingConnection()
    app = _app_with_connection(monkeypatch, connection)

    with TestClient(app) as client:
        response = client.post("/api/pelarasan", json={"complainant_name": "Lim", "zone": "Zon 3"})

    assert response.status_code == 200
    by_column = dict(zip(COMPLAINT_COLUMNS.values(), connection.executed[0][1]))
    assert by_column["Zone"] == "Zon 3"


def test_submit_complaint_validation_errors(monkeypatch) -> None:
    connection = RecordingConnection()
    app = _app_with_connection(monkeypatch, connection)

    with TestClient(app) as client:
        missing_name = client.post("/api/pelarasan", json={"email": "a@b.com"})
        blank_name = client.post("/api/pelarasan", json={"complainantName": "   "})
        bad_latitude = client.post("/api/pelarasan", json={"complainantName": "Lim", "latitude": 95})
        bad_email = client.post("/api/pelarasan", json={"complainantName": "Lim", "email": "not-an-email"})
        bad_date = client.post("/api/pelarasan", json={"complainantName": "Lim", "complaintDate": "15/01/2026"})

    assert missing_name.status_code == 422
    assert blank_name.status_code == 422
    assert bad_latitude.status_code == 422
    assert bad_email.status_code == 422
    assert bad_date.status_code == 422
    assert connection.executed == []


def test_submit_complaint_database_error_returns_500_body(monkeypatch) -> None:
    app = FastAPI()
    app.include_router(complaints_router.router)

    @asynccontextmanager
    async def failing_connect():
        raise psycopg.OperationalError("connection refused")
        yield

    monkeypatch.setattr(complaints_router, "connect_complaints_db", failing_connect)

    with TestClient(app) as client:
        response = client.post("/api/pelarasan", json={"complainantName": "Lim"})

    assert response.status_code == 500
    assert response.json() == {
        "success": False,
        "message": "Error submitting complaint",
        "error": "connection refused",
    }


def test_pelarasan_rejects_other_methods_on_full_app() -> None:
    # The full app also serves the dashboard page and static assets.
    client = TestClient(main_app)

    get_response = client.get("/api/pelarasan")
    put_response = client.put("/api/pelarasan", json={"complainantName": "Lim"})

    assert get_response.status_code == 405
    assert put_response.status_code == 405


def test_submit_complaint_without_dsn_keeps_error_body(monkeypatch) -> None:
    monkeypatch.setattr(database.settings, "complaints_database_url", "")
    monkeypatch.setattr(database.settings, "database_url", "")

    app = FastAPI()
    app.include_router(complaints_router.router)

    with TestClient(app) as client:
        response = client.post("/api/pelarasan", json={"complainantName": "Lim"})

    assert response.status_code == 500
    assert response.json() == {
        "success": False,
        "message": "Error submitting complaint",
        "error": "DATABASE_URL is not configured",
    }
