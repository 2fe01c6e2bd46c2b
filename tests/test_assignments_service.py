"""
tests/test_assignments_service.py

Assign / acknowledge / decline / remind flows against an in-memory database.
"""
from __future__ import annotations

import unittest
from datetime import timedelta

from sophub.core.timeutils import utcnow
from sophub.crud import sop as crud_sop
from sophub.models.acknowledgment import Acknowledgment
from sophub.models.audit_log import AuditLog
from sophub.models.notification import Notification
from sophub.models.sop_assignment import SopAssignment
from sophub.schemas.report import PaginationParams, ReportFilters
from sophub.services import assignments as svc
from sophub.services.notifications import generate_due_soon_reminders, generate_overdue_reminders
from tests.factories import make_assignment, make_company, make_session_factory, make_sop, make_user


class AssignmentCase(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_session_factory()()
        self.company = make_company(self.db)
        self.admin = make_user(self.db, self.company, "admin@acme.test", role="admin", first_name="Ada")
        self.ana = make_user(self.db, self.company, "ana@acme.test", department="Safety", first_name="Ana")
        self.bo = make_user(self.db, self.company, "bo@acme.test", department="Ops", first_name="Bo")
        other = make_company(self.db, name="Other")
        self.outsider = make_user(self.db, other, "x@other.test")
        self.sop = make_sop(self.db, self.company, version="2.1")

    def tearDown(self) -> None:
        self.db.close()

    def notifications(self, user, type_=None):
        q = self.db.query(Notification).filter(Notification.user_id == user.id)
        if type_:
            q = q.filter(Notification.type == type_)
        return q.all()


class TestAssign(AssignmentCase):
    def test_creates_and_notifies(self) -> None:
        created, skipped = svc.assign(self.db, None, self.sop, [self.ana.id, self.bo.id], self.admin)
        self.assertEqual(len(created), 2)
        self.assertEqual(skipped, [])
        self.assertEqual(len(self.notifications(self.ana, "assigned")), 1)
        self.assertEqual(
            self.db.query(AuditLog).filter(AuditLog.action == "assign_sop").count(), 1
        )

    def test_existing_assignees_are_skipped(self) -> None:
        svc.assign(self.db, None, self.sop, [self.ana.id], self.admin)
        created, skipped = svc.assign(self.db, None, self.sop, [self.ana.id, self.bo.id], self.admin)
        self.assertEqual([a.user_id for a in created], [self.bo.id])
        self.assertEqual(skipped, [self.ana.id])

    def test_foreign_users_rejected(self) -> None:
        with self.assertRaises(ValueError):
            svc.assign(self.db, None, self.sop, [self.ana.id, self.outsider.id], self.admin)
        with self.assertRaises(ValueError):
            svc.assign(self.db, None, self.sop, [], self.admin)


class TestAcknowledge(AssignmentCase):
    def test_acknowledge_once(self) -> None:
        a = make_assignment(self.db, self.sop, self.ana, assigned_by=self.admin)
        ack = svc.acknowledge(self.db, None, a, self.ana)
        self.assertEqual(ack.sop_version, "2.1")
        self.assertEqual(len(self.notifications(self.admin, "acknowledgment_completed")), 1)

        with self.assertRaises(ValueError) as ctx:
            svc.acknowledge(self.db, None, a, self.ana)
        self.assertEqual(str(ctx.exception), "Assignment already acknowledged")
        self.assertEqual(self.db.query(Acknowledgment).count(), 1)

    def test_only_assignee_can_acknowledge(self) -> None:
        a = make_assignment(self.db, self.sop, self.ana)
        with self.assertRaises(ValueError):
            svc.acknowledge(self.db, None, a, self.bo)

    def test_bulk_is_all_or_nothing(self) -> None:
        other_sop = make_sop(self.db, self.company, title="Lockout Tagout")
        a1 = make_assignment(self.db, self.sop, self.ana)
        a2 = make_assignment(self.db, other_sop, self.ana)
        svc.acknowledge(self.db, None, a2, self.ana)

        with self.assertRaises(ValueError):
            svc.bulk_acknowledge(self.db, None, [a1.id, a2.id], self.ana)
        self.assertEqual(svc.acknowledged_ids(self.db, [a1.id]), [])

        foreign = make_assignment(self.db, self.sop, self.bo)
        with self.assertRaises(ValueError):
            svc.bulk_acknowledge(self.db, None, [a1.id, foreign.id], self.ana)

        acks = svc.bulk_acknowledge(self.db, None, [a1.id, a1.id], self.ana)
        self.assertEqual(len(acks), 1)

    def test_bulk_with_a_deleted_document_writes_nothing(self) -> None:
        withdrawn = make_sop(self.db, self.company, title="Old Ladder Policy")
        a1 = make_assignment(self.db, self.sop, self.ana)
        a2 = make_assignment(self.db, withdrawn, self.ana)
        crud_sop.soft_delete_sop(self.db, withdrawn)

        with self.assertRaises(ValueError) as ctx:
            svc.bulk_acknowledge(self.db, None, [a1.id, a2.id], self.ana)
        self.assertIn(str(a2.id), str(ctx.exception))
        self.assertEqual(self.db.query(Acknowledgment).count(), 0)
        self.assertEqual(self.db.get(SopAssignment, a1.id).status, "pending")


class TestDecline(AssignmentCase):
    def test_decline_shows_in_tracking(self) -> None:
        a = make_assignment(self.db, self.sop, self.ana, assigned_by=self.admin)
        svc.decline(self.db, None, a, self.ana, "Not my department")
        self.assertEqual(len(self.notifications(self.admin, "acknowledgment_declined")), 1)

        page = svc.tracking_page(
            self.db, self.company.id, ReportFilters(status="declined"), PaginationParams()
        )
        self.assertEqual(page.total, 1)
        self.assertEqual(page.data[0]["declined_reason"], "Not my department")
        self.assertEqual(page.stats["declined"], 1)

        with self.assertRaises(ValueError):
            svc.decline(self.db, None, a, self.ana, "again")

    def test_acknowledged_cannot_be_declined(self) -> None:
        a = make_assignment(self.db, self.sop, self.ana)
        svc.acknowledge(self.db, None, a, self.ana)
        with self.assertRaises(ValueError):
            svc.decline(self.db, None, a, self.ana, "too late")


class TestReaderAndReminders(AssignmentCase):
    def test_user_assignments_sorted_by_due_date(self) -> None:
        now = utcnow()
        late = make_sop(self.db, self.company, title="Late")
        undated = make_sop(self.db, self.company, title="Undated")
        make_assignment(self.db, undated, self.ana)
        make_assignment(self.db, self.sop, self.ana, due_date=now + timedelta(days=5))
        make_assignment(self.db, late, self.ana, due_date=now - timedelta(days=1))

        views = svc.user_assignments(self.db, self.ana.id, now=now)
        self.assertEqual([v["title"] for v in views], ["Late", "Forklift Safety", "Undated"])
        self.assertEqual([v["status"] for v in views], ["overdue", "pending", "pending"])
        self.assertEqual(
            [v["title"] for v in svc.user_assignments(self.db, self.ana.id, now=now, status="overdue")],
            ["Late"],
        )

    def test_deleted_documents_are_left_out(self) -> None:
        make_assignment(self.db, self.sop, self.ana)
        self.sop.deleted_at = utcnow()
        self.db.commit()
        self.assertEqual(svc.load_assignment_rows(self.db, user_id=self.ana.id), [])

    def test_remind_skips_acknowledged(self) -> None:
        other_sop = make_sop(self.db, self.company, title="Lockout Tagout")
        open_one = make_assignment(self.db, self.sop, self.ana, due_date=utcnow() - timedelta(days=1))
        done = make_assignment(self.db, other_sop, self.ana)
        svc.acknowledge(self.db, None, done, self.ana)

        sent = svc.remind(self.db, None, [open_one, done], self.admin)
        self.assertEqual(sent, 1)
        (n,) = self.notifications(self.ana, "overdue")
        self.assertEqual(n.priority, "urgent")

    def test_daily_reminders_are_deduplicated(self) -> None:
        now = utcnow()
        make_assignment(self.db, self.sop, self.ana, due_date=now - timedelta(days=2))
        soon = make_sop(self.db, self.company, title="Soon")
        make_assignment(self.db, soon, self.bo, due_date=now + timedelta(days=1))

        self.assertEqual(generate_overdue_reminders(self.db), 1)
        self.assertEqual(generate_overdue_reminders(self.db), 0)
        self.assertEqual(generate_due_soon_reminders(self.db), 1)
        self.assertEqual(generate_due_soon_reminders(self.db), 0)
        self.assertEqual(len(self.notifications(self.bo, "reminder")), 1)


if __name__ == "__main__":
    unittest.main()
