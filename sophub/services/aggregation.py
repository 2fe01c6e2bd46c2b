# sophub/services/aggregation.py
"""
Roll-ups of assignment / acknowledgment rows into dashboard and report stats.

Rows are plain dicts as produced by ``sophub.services.assignments``:

    {
        "assignment_id", "sop_id", "user_id", "title", "document_type",
        "department",        # document department (may be None)
        "user_department",   # assignee department (may be None)
        "user_status", "due_date", "created_at", "acknowledged_at", "notes",
    }

Nothing in here raises on empty input: every function returns all-zero
statistics for an empty collection.
"""
from __future__ import annotations

import math
from collections import OrderedDict
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence

from sophub.services.status import (
    ACKNOWLEDGED,
    DECLINED,
    EXPIRED,
    OVERDUE,
    PENDING,
    SUPERSEDED,
    derive_assignment_status,
    derive_tracking_status,
)

UNKNOWN_DEPARTMENT = "Unknown"


# -----------------------------
# Small helpers
# -----------------------------
def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def compliance_rate(acknowledged: int, total: int) -> int:
    """Percentage of acknowledged rows, 0 (not NaN) when there is nothing to count."""
    if not total:
        return 0
    return round_half_up(acknowledged / total * 100)


def is_acknowledged(row: Dict[str, Any]) -> bool:
    return row.get("acknowledged_at") is not None


def department_of(row: Dict[str, Any]) -> str:
    return row.get("department") or row.get("user_department") or UNKNOWN_DEPARTMENT


def row_status(row: Dict[str, Any], now: datetime) -> str:
    return derive_assignment_status(row.get("due_date"), is_acknowledged(row), now)


# -----------------------------
# Assignment counts
# -----------------------------
def count_assignment_statuses(rows: Iterable[Dict[str, Any]], now: datetime) -> Dict[str, int]:
    counts = {"total": 0, PENDING: 0, ACKNOWLEDGED: 0, OVERDUE: 0}
    for row in rows:
        counts["total"] += 1
        counts[row_status(row, now)] += 1
    return counts


def tracking_stats(rows: Iterable[Dict[str, Any]], now: datetime) -> Dict[str, int]:
    """Counts for the admin acknowledgment-tracking view (declines split out)."""
    counts = {"total": 0, ACKNOWLEDGED: 0, PENDING: 0, OVERDUE: 0, DECLINED: 0}
    for row in rows:
        counts["total"] += 1
        status = derive_tracking_status(row.get("due_date"), is_acknowledged(row), row.get("notes"), now)
        counts[status] += 1
    return counts


def acknowledgment_report_stats(rows: Sequence[Dict[str, Any]]) -> Dict[str, int]:
    """Stats over already-formatted acknowledgment report rows (status precomputed)."""
    stats = {"total": len(rows), ACKNOWLEDGED: 0, PENDING: 0, OVERDUE: 0, DECLINED: 0}
    for row in rows:
        status = row.get("status")
        if status in stats:
            stats[status] += 1
    return stats


# -----------------------------
# Department roll-up
# -----------------------------
def _new_bucket() -> Dict[str, Any]:
    return {
        "total_docs": 0,
        ACKNOWLEDGED: 0,
        PENDING: 0,
        OVERDUE: 0,
        "users": set(),
        "active_users": set(),
        "response_days": [],
    }


def rollup_by_department(rows: Iterable[Dict[str, Any]], now: datetime) -> List[Dict[str, Any]]:
    """
    Group rows by document department (falling back to the assignee's, then
    "Unknown") and compute counts, compliance rate and mean response time.
    Output is ordered by department name.
    """
    buckets: Dict[str, Dict[str, Any]] = OrderedDict()
    for row in rows:
        bucket = buckets.setdefault(department_of(row), _new_bucket())
        bucket["total_docs"] += 1

        status = row_status(row, now)
        bucket[status] += 1
        if status == ACKNOWLEDGED and row.get("created_at") is not None:
            delta = row["acknowledged_at"] - row["created_at"]
            bucket["response_days"].append(delta.total_seconds() / 86400)

        user_id = row.get("user_id")
        if user_id is not None:
            bucket["users"].add(user_id)
            if (row.get("user_status") or "active") == "active":
                bucket["active_users"].add(user_id)

    out: List[Dict[str, Any]] = []
    for department in sorted(buckets):
        b = buckets[department]
        days = b["response_days"]
        out.append(
            {
                "department": department,
                "total_docs": b["total_docs"],
                "acknowledged": b[ACKNOWLEDGED],
                "pending": b[PENDING],
                "overdue": b[OVERDUE],
                "compliance_rate": compliance_rate(b[ACKNOWLEDGED], b["total_docs"]),
                "avg_response_time_days": round(sum(days) / len(days), 1) if days else 0.0,
                "total_users": len(b["users"]),
                "active_users": len(b["active_users"]),
            }
        )
    return out


def compliance_summary_stats(departments: Sequence[Dict[str, Any]]) -> Dict[str, int]:
    total_docs = sum(d["total_docs"] for d in departments)
    total_ack = sum(d["acknowledged"] for d in departments)
    avg = (
        round_half_up(sum(d["compliance_rate"] for d in departments) / len(departments))
        if departments
        else 0
    )
    return {
        "total": len(departments),
        "avg_compliance": avg,
        "total_docs": total_docs,
        "total_acknowledged": total_ack,
    }


# -----------------------------
# User activity
# -----------------------------
def _within(ts: Optional[datetime], start: datetime, end: datetime) -> bool:
    return ts is not None and start <= ts <= end


def user_activity_rows(
    users: Iterable[Dict[str, Any]],
    assignments: Iterable[Dict[str, Any]],
    start: datetime,
    end: datetime,
) -> List[Dict[str, Any]]:
    """
    One row per user: assignments created inside [start, end], how many of
    them are acknowledged and how many are still open.
    """
    per_user: Dict[Any, Dict[str, int]] = {}
    for a in assignments:
        if not _within(a.get("created_at"), start, end):
            continue
        counts = per_user.setdefault(a["user_id"], {"total": 0, "acknowledged": 0})
        counts["total"] += 1
        if _within(a.get("acknowledged_at"), start, end):
            counts["acknowledged"] += 1

    out: List[Dict[str, Any]] = []
    for u in users:
        counts = per_user.get(u["id"], {"total": 0, "acknowledged": 0})
        out.append(
            {
                "id": u["id"],
                "user": u.get("name") or "Unknown User",
                "email": u.get("email"),
                "department": u.get("department") or UNKNOWN_DEPARTMENT,
                "role": u.get("role"),
                "status": u.get("status"),
                "last_login": u.get("last_login_at"),
                "joined_at": u.get("created_at"),
                "acknowledged_count": counts["acknowledged"],
                "pending_count": counts["total"] - counts["acknowledged"],
                "total_assignments": counts["total"],
            }
        )
    return out


def user_activity_stats(rows: Sequence[Dict[str, Any]]) -> Dict[str, int]:
    total_ack = sum(r["acknowledged_count"] for r in rows)
    return {
        "total": len(rows),
        "active": sum(1 for r in rows if r.get("status") == "active"),
        "inactive": sum(1 for r in rows if r.get("status") == "inactive"),
        "avg_acknowledged": round_half_up(total_ack / len(rows)) if rows else 0,
        "total_pending": sum(r["pending_count"] for r in rows),
        "total_acknowledged": total_ack,
    }


# -----------------------------
# Reviews / audit trail
# -----------------------------
def review_stats(rows: Sequence[Dict[str, Any]]) -> Dict[str, int]:
    return {
        "total": len(rows),
        "pending": sum(1 for r in rows if r.get("status") == "pending"),
        "approved": sum(1 for r in rows if r.get("status") == "approved"),
        "rejected": sum(1 for r in rows if r.get("status") == "rejected"),
        "overdue": sum(1 for r in rows if r.get("review_status") == "overdue"),
    }


def audit_trail_stats(rows: Sequence[Dict[str, Any]], now: datetime) -> Dict[str, int]:
    today = now.date()
    return {
        "total": len(rows),
        "today": sum(1 for r in rows if r.get("timestamp") and r["timestamp"].date() == today),
        "users": len({r.get("user") for r in rows}),
        "events": len({r.get("event") for r in rows}),
    }


# -----------------------------
# Acknowledgment history
# -----------------------------
def history_stats(records: Iterable[Dict[str, Any]]) -> Dict[str, int]:
    stats = {"total": 0, ACKNOWLEDGED: 0, EXPIRED: 0, SUPERSEDED: 0}
    for rec in records:
        stats["total"] += 1
        status = rec.get("status")
        if status in stats:
            stats[status] += 1
    return stats


# -----------------------------
# Notifications
# -----------------------------
def notification_stats(notifications: Iterable[Any], now: datetime) -> Dict[str, int]:
    """Works on ORM rows or dicts with read/priority/created_at."""
    stats = {"total": 0, "unread": 0, "urgent": 0, "today": 0}
    today = now.date()
    for n in notifications:
        get = n.get if isinstance(n, dict) else (lambda k, _n=n: getattr(_n, k, None))
        stats["total"] += 1
        if not get("read"):
            stats["unread"] += 1
        if get("priority") == "urgent":
            stats["urgent"] += 1
        created = get("created_at")
        if created is not None and created.date() == today:
            stats["today"] += 1
    return stats


# -----------------------------
# Dashboards
# -----------------------------
def _month_key(ts: datetime) -> str:
    return f"{ts.year:04d}-{ts.month:02d}"


def acknowledgment_trend(ack_times: Iterable[datetime], now: datetime, months: int = 6) -> List[Dict[str, Any]]:
    """Monthly acknowledgment counts for the last ``months`` calendar months (oldest first)."""
    keys: List[str] = []
    year, month = now.year, now.month
    for _ in range(max(months, 0)):
        keys.append(f"{year:04d}-{month:02d}")
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    keys.reverse()

    counts = OrderedDict((k, 0) for k in keys)
    for ts in ack_times:
        if ts is None:
            continue
        key = _month_key(ts)
        if key in counts:
            counts[key] += 1
    return [{"month": k, "count": v} for k, v in counts.items()]


def employee_dashboard_stats(
    rows: Sequence[Dict[str, Any]],
    now: datetime,
    unread_notifications: int = 0,
) -> Dict[str, int]:
    counts = count_assignment_statuses(rows, now)
    month_start = datetime(now.year, now.month, 1)
    this_month = sum(
        1 for r in rows if r.get("acknowledged_at") is not None and r["acknowledged_at"] >= month_start
    )
    # nothing assigned means nothing outstanding: fully compliant
    rate = compliance_rate(counts[ACKNOWLEDGED], counts["total"]) if counts["total"] else 100
    return {
        "pending": counts[PENDING],
        "overdue": counts[OVERDUE],
        "acknowledged": counts[ACKNOWLEDGED],
        "total": counts["total"],
        "acknowledged_this_month": this_month,
        "compliance_rate": rate,
        "unread_notifications": unread_notifications,
    }


def upcoming_deadlines(
    rows: Iterable[Dict[str, Any]],
    now: datetime,
    within_days: int = 7,
    limit: int = 10,
) -> List[Dict[str, Any]]:
    """Open assignments whose due date falls in the next ``within_days`` days."""
    horizon = now + timedelta(days=within_days)
    items = [
        r
        for r in rows
        if not is_acknowledged(r) and r.get("due_date") is not None and now <= r["due_date"] <= horizon
    ]
    items.sort(key=lambda r: (r["due_date"], r.get("assignment_id") or 0))
    return items[:limit]
