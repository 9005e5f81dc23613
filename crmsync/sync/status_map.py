"""Booking status <-> remote lead status / opportunity stage tables."""

from __future__ import annotations

# Display buckets shared by statuses and stages. Stages are finer-grained than
# statuses, so a round trip lands in the same bucket rather than the same value.
STATUS_BUCKETS: dict[str, str] = {
    "pending": "open",
    "acknowledged": "in_progress",
    "completed": "won",
    "cancelled": "lost",
    "missed": "lost",
}

LEAD_STATUS_BY_BOOKING_STATUS: dict[str, str] = {
    "acknowledged": "Working - Contacted",
    "completed": "Closed - Converted",
    "cancelled": "Closed - Not Converted",
    "missed": "Closed - Not Converted",
}

BOOKING_STATUS_BY_LEAD_STATUS: dict[str, str] = {
    "Open - Not Contacted": "pending",
    "Working - Contacted": "acknowledged",
    "Closed - Converted": "completed",
    "Closed - Not Converted": "cancelled",
}

OPPORTUNITY_STAGE_BY_BOOKING_STATUS: dict[str, str] = {
    "acknowledged": "Qualification",
    "completed": "Closed Won",
    "cancelled": "Closed Lost",
    "missed": "Closed Lost",
}

BOOKING_STATUS_BY_OPPORTUNITY_STAGE: dict[str, str] = {
    "Prospecting": "pending",
    "Qualification": "acknowledged",
    "Needs Analysis": "acknowledged",
    "Value Proposition": "acknowledged",
    "Id. Decision Makers": "acknowledged",
    "Perception Analysis": "acknowledged",
    "Proposal/Price Quote": "acknowledged",
    "Negotiation/Review": "acknowledged",
    "Closed Won": "completed",
    "Closed Lost": "cancelled",
}

CLOSED_WON_STAGE = "Closed Won"


def lead_status_for(booking_status: str, default: str = "Open - Not Contacted") -> str:
    """Remote lead status for a booking status; pending and unknown use ``default``."""
    return LEAD_STATUS_BY_BOOKING_STATUS.get(booking_status, default)


def opportunity_stage_for(booking_status: str, default: str = "Prospecting") -> str:
    """Opportunity stage for a booking status; pending and unknown use ``default``."""
    return OPPORTUNITY_STAGE_BY_BOOKING_STATUS.get(booking_status, default)


def booking_status_for_lead_status(lead_status: str) -> str:
    return BOOKING_STATUS_BY_LEAD_STATUS.get(lead_status, "pending")


def booking_status_for_stage(stage: str) -> str:
    return BOOKING_STATUS_BY_OPPORTUNITY_STAGE.get(stage, "pending")


def bucket_for(booking_status: str) -> str:
    return STATUS_BUCKETS.get(booking_status, "open")
