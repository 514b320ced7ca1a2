from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from psycopg import AsyncConnection
else:
    AsyncConnection = Any

logger = logging.getLogger(__name__)

# Request field -> PublicComplaints column, in insert order.
COMPLAINT_COLUMNS: dict[str, str] = {
    "complainant_name": "ComplainantName",
    "complainant_address": "ComplainantAddress",
    "reference_number": "ReferenceNumber",
    "email": "Email",
    "phone": "Phone",
    "fax": "Fax",
    "complaint_source": "ComplaintSource",
    "complaint_date": "ComplaintDate",
    "received_date": "ReceivedDate",
    "complaint_location": "ComplaintLocation",
    "latitude": "Latitude",
    "longitude": "Longitude",
    "area_type": "AreaType",
    "officer_name": "OfficerName",
    "zone": "Zone",
    "parliament": "Parliament",
    "monitoring_date": "MonitoringDate",
    "investigation_report": "InvestigationReport",
    "root_cause": "RootCause",
    "action_taken": "ActionTaken",
    "follow_up_action": "FollowUpAction",
}

INSERT_COMPLAINT_SQL = """
    INSERT INTO PublicComplaints
    ({columns})
    VALUES
    ({placeholders})
""".format(
    columns=", ".join(COMPLAINT_COLUMNS.values()),
    placeholders=", ".join(["%s"] * len(COMPLAINT_COLUMNS)),
)


def complaint_params(record: dict[str, Any]) -> tuple[Any, ...]:
    """Order a validated complaint dict to match INSERT_COMPLAINT_SQL."""
    return tuple(record.get(field) for field in COMPLAINT_COLUMNS)


async def insert_complaint(connection: AsyncConnection, record: dict[str, Any]) -> None:
    async with connection.cursor() as cursor:
        await cursor.execute(INSERT_COMPLAINT_SQL, complaint_params(record))

    logger.info(
        "Complaint inserted: reference=%s source=%s",
        record.get("reference_number"),
        record.get("complaint_source"),
    )
