"""
tests/test_aggregation.py

Department roll-ups, compliance rates and dashboard counters over plain rows.
"""
from __future__ import annotations

import unittest
from datetime import datetime, timedelta

from sophub.services.aggregation import (
    acknowledgment_trend,
    compliance_rate,
    compliance_summary_stats,
    employee_dashboard_stats,
    notification_stats,
    rollup_by_department,
    tracking_stats,
    upcoming_deadlines,
    user_activity_rows,
)

NOW = datetime(2024, 6, 15, 12, 0)


def row(n, department="Safety", acknowledged=False, due_in_days=None, user_id=1, notes=None):
    created = NOW - timedelta(days=10)
    return {
        "assignment_id": n,
        "user_id": user_id,
        "department": department,
        "user_department": None,
        "user_status": "active",
        "created_at": created,
        "due_date": NOW + timedelta(days=due_in_days) if due_in_days is not None else None,
        "acknowledged_at": created + timedelta(days=2) if acknowledged else None,
        "notes": notes,
    }


class TestComplianceRate(unittest.TestCase):
    def test_rounds_half_up(self) -> None:
        self.assertEqual(compliance_rate(7, 10), 70)
        self.assertEqual(compliance_rate(1, 8), 13)  # 12.5
        self.assertEqual(compliance_rate(2, 3), 67)

    def test_zero_total_is_zero(self) -> None:
        self.assertEqual(compliance_rate(0, 0), 0)


class TestDepartmentRollup(unittest.TestCase):
    def test_safety_department_at_seventy_percent(self) -> None:
        rows = [row(i, acknowledged=i < 7, due_in_days=5) for i in range(10)]
        (safety,) = rollup_by_department(rows, NOW)
        self.assertEqual(safety["department"], "Safety")
        self.assertEqual(safety["total_docs"], 10)
        self.assertEqual(safety["acknowledged"], 7)
        self.assertEqual(safety["pending"], 3)
        self.assertEqual(safety["compliance_rate"], 70)
        self.assertEqual(safety["avg_response_time_days"], 2.0)

    def test_department_fallbacks_and_ordering(self) -> None:
        rows = [
            row(1, department="Warehouse"),
            row(2, department=None),
            dict(row(3, department=None), user_department="Finance"),
        ]
        names = [d["department"] for d in rollup_by_department(rows, NOW)]
        self.assertEqual(names, ["Finance", "Unknown", "Warehouse"])

    def test_overdue_counted_separately(self) -> None:
        rows = [row(1, due_in_days=-1), row(2, due_in_days=3), row(3, acknowledged=True)]
        (dept,) = rollup_by_department(rows, NOW)
        self.assertEqual((dept["overdue"], dept["pending"], dept["acknowledged"]), (1, 1, 1))
        self.assertEqual(dept["compliance_rate"], 33)

    def test_empty_input(self) -> None:
        self.assertEqual(rollup_by_department([], NOW), [])
        self.assertEqual(
            compliance_summary_stats([]),
            {"total": 0, "avg_compliance": 0, "total_docs": 0, "total_acknowledged": 0},
        )


class TestTrackingStats(unittest.TestCase):
    def test_declined_split_out(self) -> None:
        rows = [
            row(1, acknowledged=True),
            row(2, due_in_days=-2, notes="DECLINED: not applicable"),
            row(3, due_in_days=-2),
            row(4, due_in_days=2),
        ]
        stats = tracking_stats(rows, NOW)
        self.assertEqual(
            stats, {"total": 4, "acknowledged": 1, "pending": 1, "overdue": 1, "declined": 1}
        )


class TestDashboardHelpers(unittest.TestCase):
    def test_trend_covers_months_oldest_first(self) -> None:
        trend = acknowledgment_trend(
            [datetime(2024, 6, 1), datetime(2024, 6, 3), datetime(2024, 4, 20), datetime(2023, 1, 1), None],
            NOW,
            months=3,
        )
        self.assertEqual(
            trend,
            [
                {"month": "2024-04", "count": 1},
                {"month": "2024-05", "count": 0},
                {"month": "2024-06", "count": 2},
            ],
        )

    def test_trend_wraps_year(self) -> None:
        trend = acknowledgment_trend([], datetime(2024, 1, 10), months=2)
        self.assertEqual([t["month"] for t in trend], ["2023-12", "2024-01"])

    def test_upcoming_deadlines_only_open_and_in_window(self) -> None:
        rows = [
            row(1, due_in_days=3),
            row(2, due_in_days=1),
            row(3, due_in_days=10),
            row(4, due_in_days=-1),
            row(5, due_in_days=2, acknowledged=True),
        ]
        self.assertEqual([r["assignment_id"] for r in upcoming_deadlines(rows, NOW)], [2, 1])

    def test_employee_with_nothing_assigned_is_fully_compliant(self) -> None:
        stats = employee_dashboard_stats([], NOW)
        self.assertEqual(stats["compliance_rate"], 100)
        self.assertEqual(stats["total"], 0)

    def test_employee_counts(self) -> None:
        rows = [row(1, acknowledged=True), row(2, due_in_days=-1), row(3, due_in_days=4)]
        stats = employee_dashboard_stats(rows, NOW, unread_notifications=2)
        self.assertEqual(stats["pending"], 1)
        self.assertEqual(stats["overdue"], 1)
        self.assertEqual(stats["acknowledged"], 1)
        self.assertEqual(stats["compliance_rate"], 33)
        self.assertEqual(stats["unread_notifications"], 2)
        self.assertEqual(stats["acknowledged_this_month"], 1)


class TestUserActivity(unittest.TestCase):
    def test_counts_only_inside_window(self) -> None:
        start, end = NOW - timedelta(days=30), NOW
        users = [
            {"id": 1, "name": "Ana Diaz", "email": "ana@acme.test", "department": None, "status": "active"},
            {"id": 2, "name": "", "email": "bo@acme.test", "department": "Ops", "status": "inactive"},
        ]
        old = dict(row(9, user_id=1), created_at=NOW - timedelta(days=90))
        rows = user_activity_rows(users, [row(1, acknowledged=True), row(2), old], start, end)
        ana, bo = rows
        self.assertEqual(ana["total_assignments"], 2)
        self.assertEqual(ana["acknowledged_count"], 1)
        self.assertEqual(ana["pending_count"], 1)
        self.assertEqual(ana["department"], "Unknown")
        self.assertEqual(bo["user"], "Unknown User")
        self.assertEqual(bo["total_assignments"], 0)


class TestNotificationStats(unittest.TestCase):
    def test_counts(self) -> None:
        items = [
            {"read": False, "priority": "urgent", "created_at": NOW},
            {"read": True, "priority": "low", "created_at": NOW - timedelta(days=3)},
            {"read": False, "priority": "medium", "created_at": NOW - timedelta(hours=1)},
        ]
        self.assertEqual(
            notification_stats(items, NOW), {"total": 3, "unread": 2, "urgent": 1, "today": 2}
        )


if __name__ == "__main__":
    unittest.main()
