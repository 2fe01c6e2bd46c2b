# sophub/services/status.py
"""
Status derivation for assignments, acknowledgment history and reviews.

Every function here is pure: inputs are timestamps and flags, ``now`` is
passed explicitly, and the stored ``status`` columns are never consulted.
"""
from __future__ import annotations

import math
from datetime import datetime, timedelta
from typing import Optional

# -----------------------------
# Status vocabularies
# -----------------------------
PENDING = "pending"
ACKNOWLEDGED = "acknowledged"
OVERDUE = "overdue"
DECLINED = "declined"

EXPIRED = "expired"
SUPERSEDED = "superseded"

REVIEW_OVERDUE = "overdue"
REVIEW_DUE_SOON = "due-soon"
REVIEW_CURRENT = "current"

# Retention window (days) an acknowledgment stays valid, per document type
RETENTION_DAYS = {
    "sop": 730,
    "procedure": 730,
    "policy": 1095,
    "training": 365,
}
DEFAULT_RETENTION_DAYS = 730

DOCUMENT_TYPE_LABELS = {
    "sop": "SOP",
    "policy": "Policy",
    "training": "Training",
    "procedure": "Procedure",
}

DECLINED_PREFIX = "DECLINED:"
REVIEW_DUE_SOON_DAYS = 7


# -----------------------------
# Document types
# -----------------------------
def normalize_document_type(document_type: Optional[str]) -> str:
    value = (document_type or "").strip().lower()
    return value or "sop"


def display_document_type(document_type: Optional[str]) -> str:
    return DOCUMENT_TYPE_LABELS.get(normalize_document_type(document_type), "SOP")


def retention_days(document_type: Optional[str]) -> int:
    return RETENTION_DAYS.get(normalize_document_type(document_type), DEFAULT_RETENTION_DAYS)


def expiry_date(acknowledged_at: datetime, document_type: Optional[str]) -> datetime:
    return acknowledged_at + timedelta(days=retention_days(document_type))


# -----------------------------
# Assignment status
# -----------------------------
def derive_assignment_status(
    due_date: Optional[datetime],
    acknowledged: bool,
    now: datetime,
) -> str:
    """
    acknowledged if an acknowledgment exists, overdue if the due date has
    passed, pending otherwise. No due date means never overdue.
    """
    if acknowledged:
        return ACKNOWLEDGED
    if due_date is not None and due_date < now:
        return OVERDUE
    return PENDING


def is_declined(notes: Optional[str]) -> bool:
    return bool(notes) and notes.startswith(DECLINED_PREFIX)


def declined_reason(notes: Optional[str]) -> Optional[str]:
    if not is_declined(notes):
        return None
    return notes[len(DECLINED_PREFIX):].strip() or None


def derive_tracking_status(
    due_date: Optional[datetime],
    acknowledged: bool,
    notes: Optional[str],
    now: datetime,
) -> str:
    """Admin tracking view: a decline recorded in the notes outranks overdue."""
    if acknowledged:
        return ACKNOWLEDGED
    if is_declined(notes):
        return DECLINED
    return derive_assignment_status(due_date, False, now)


# -----------------------------
# Acknowledgment history status
# -----------------------------
def is_superseded(acknowledged_at: datetime, document_updated_at: Optional[datetime]) -> bool:
    return document_updated_at is not None and document_updated_at > acknowledged_at


def derive_acknowledgment_status(
    acknowledged_at: datetime,
    document_updated_at: Optional[datetime],
    document_type: Optional[str],
    now: datetime,
) -> str:
    # supersession wins over expiry
    if is_superseded(acknowledged_at, document_updated_at):
        return SUPERSEDED
    if expiry_date(acknowledged_at, document_type) < now:
        return EXPIRED
    return ACKNOWLEDGED


# -----------------------------
# Review status
# -----------------------------
def derive_review_status(
    review_status: Optional[str],
    due_date: Optional[datetime],
    now: datetime,
) -> str:
    if review_status == PENDING and due_date is not None:
        days_left = math.ceil((due_date - now).total_seconds() / 86400)
        if days_left < 0:
            return REVIEW_OVERDUE
        if days_left <= REVIEW_DUE_SOON_DAYS:
            return REVIEW_DUE_SOON
    return REVIEW_CURRENT


# -----------------------------
# Receipts
# -----------------------------
def receipt_id(acknowledgment_id) -> str:
    tail = str(acknowledgment_id)[-8:].upper()
    return f"ACK-{tail.zfill(8)}"
