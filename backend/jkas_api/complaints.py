"""Complaint intake router (pelarasan)."""

from __future__ import annotations

import logging
from datetime import date

import psycopg
from fastapi import APIRouter, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .database import connect_complaints_db
from .services.complaints_service import insert_complaint

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["complaints"])


class ComplaintCreate(BaseModel):
    """Citizen complaint as posted by the intake form (camelCase keys)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    complainant_name: str = Field(max_length=200)
    complainant_address: str | None = Field(default=None, max_length=500)
    reference_number: str | None = Field(default=None, max_length=100)
    email: str | None = Field(default=None, max_length=254)
    phone: str | None = Field(default=None, max_length=50)
    fax: str | None = Field(default=None, max_length=50)
    complaint_source: str | None = Field(default=None, max_length=100)
    complaint_date: date | None = None
    received_date: date | None = None
    complaint_location: str | None = Field(default=None, max_length=500)
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    area_type: str | None = Field(default=None, max_length=100)
    officer_name: str | None = Field(default=None, max_length=200)
    zone: str | None = Field(default=None, max_length=100)
    parliament: str | None = Field(default=None, max_length=100)
    monitoring_date: date | None = None
    investigation_report: str | None = None
    root_cause: str | None = None
    action_taken: str | None = None
    follow_up_action: str | None = None

    @field_validator(
        "complainant_name",
        "complainant_address",
        "reference_number",
        "email",
        "phone",
        "fax",
        "complaint_source",
        "complaint_location",
        "area_type",
        "officer_name",
        "zone",
        "parliament",
        "investigation_report",
        "root_cause",
        "action_taken",
        "follow_up_action",
        mode="before",
    )
    @classmethod
    def clean_text(cls, value: str | None) -> str | None:
        if value is None:
            return None

        if isinstance(value, str):
            trimmed = value.strip()
            return trimmed or None

        return value

    @field_validator("complaint_date", "received_date", "monitoring_date", "latitude", "longitude", mode="before")
    @classmethod
    def blank_to_none(cls, value: object) -> object:
        # HTML forms post empty strings for untouched inputs.
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str | None) -> str | None:
        if value is not None and "@" not in value:
            raise ValueError("email must contain '@'")
        return value


class ComplaintResponse(BaseModel):
    success: bool
    message: str
    error: str | None = None


def _submission_failed(error: str) -> JSONResponse:
    failure = ComplaintResponse(success=False, message="Error submitting complaint", error=error)
    return JSONResponse(status_code=500, content=failure.model_dump())


@router.post("/pelarasan", response_model=ComplaintResponse, response_model_exclude_none=True)
async def submit_complaint(payload: ComplaintCreate) -> ComplaintResponse | JSONResponse:
    """
    Validate and store one public complaint.

    Example response:
    {"success": true, "message": "Complaint submitted successfully"}
    """
    try:
        async with connect_complaints_db() as connection:
            await insert_complaint(connection, payload.model_dump())
    except psycopg.Error as exc:
        logger.error("API Error: failed to insert complaint: %s", exc)
        return _submission_failed(str(exc))
    except HTTPException as exc:
        # Unconfigured DSN; keep the intake error body.
        logger.error("API Error: complaint database unavailable: %s", exc.detail)
        return _submission_failed(str(exc.detail))

    return ComplaintResponse(success=True, message="Complaint submitted successfully")
