"""
tests/test_scheduler.py
"""
from __future__ import annotations

import unittest
from datetime import timedelta
from unittest import mock

from sqlalchemy.exc import OperationalError

from sophub.core.timeutils import utcnow
from sophub.crud.notification import create_notification
from sophub.worker import scheduler
from tests.factories import make_assignment, make_company, make_session_factory, make_sop, make_user


class TestDailyNotifications(unittest.TestCase):
    def setUp(self) -> None:
        self.Session = make_session_factory()
        patcher = mock.patch.object(scheduler, "SessionLocal", self.Session)
        patcher.start()
        self.addCleanup(patcher.stop)

        with self.Session() as db:
            company = make_company(db)
            ana = make_user(db, company, "ana@acme.test")
            make_assignment(db, make_sop(db, company), ana, due_date=utcnow() - timedelta(days=1))
            make_assignment(db, make_sop(db, company, title="Ladder Use"), ana, due_date=utcnow() + timedelta(days=2))
            create_notification(
                db, user_id=ana.id, type="system", title="Old news", expires_at=utcnow() - timedelta(days=1)
            )

    def test_runs_every_step(self) -> None:
        self.assertEqual(scheduler.run_daily_notifications(), {"overdue": 1, "due_soon": 1, "purged": 1})
        # same day: nothing new to send
        self.assertEqual(scheduler.run_daily_notifications(), {"overdue": 0, "due_soon": 0, "purged": 0})

    def test_failed_step_is_logged_and_counted_as_zero(self) -> None:
        def broken(db, **kwargs):
            raise OperationalError("SELECT 1", {}, Exception("database is locked"))

        with mock.patch.object(scheduler, "generate_overdue_reminders", broken):
            with self.assertLogs("sophub.worker", level="ERROR"):
                result = scheduler.run_daily_notifications()
        self.assertEqual(result["overdue"], 0)
        self.assertEqual(result["due_soon"], 1)


class TestMakeScheduler(unittest.TestCase):
    def test_registers_daily_job(self) -> None:
        sched = scheduler.make_scheduler()
        job = sched.get_job("daily_notifications")
        self.assertIsNotNone(job)
        self.assertIs(job.func, scheduler.run_daily_notifications)


if __name__ == "__main__":
    unittest.main()
