"""
tests/test_api.py

End-to-end checks through the HTTP layer with an in-memory database.
"""
from __future__ import annotations

import unittest
from datetime import datetime, timedelta

from fastapi.testclient import TestClient

from sophub.core.auth import get_db
from sophub.core.timeutils import utcnow
from sophub.main import app
from sophub.models.company import Company
from sophub.models.sop_assignment import SopAssignment
from sophub.models.user import User
from tests.factories import PASSWORD, make_assignment, make_company, make_session_factory, make_sop, make_user

API = "/api/v1"


class ApiCase(unittest.TestCase):
    def setUp(self) -> None:
        self.Session = make_session_factory()

        def override_get_db():
            db = self.Session()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = override_get_db
        self.client = TestClient(app)

        with self.Session() as db:
            company = make_company(db)
            self.company_id = company.id
            self.admin_id = make_user(db, company, "admin@acme.test", role="admin", first_name="Ada").id
            self.employee_id = make_user(
                db, company, "ana@acme.test", department="Safety", first_name="Ana"
            ).id

    def tearDown(self) -> None:
        app.dependency_overrides.clear()

    def login(self, email: str, password: str = PASSWORD):
        return self.client.post(f"{API}/login", data={"username": email, "password": password})

    def auth(self, email: str) -> dict:
        res = self.login(email)
        self.assertEqual(res.status_code, 200, res.text)
        return {"Authorization": f"Bearer {res.json()['access_token']}"}


class TestAuthApi(ApiCase):
    def test_login_success(self) -> None:
        res = self.login("admin@acme.test")
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.json()["token_type"], "bearer")

        me = self.client.get(f"{API}/me", headers={"Authorization": f"Bearer {res.json()['access_token']}"})
        self.assertEqual(me.status_code, 200)
        self.assertEqual(me.json()["email"], "admin@acme.test")

    def test_bad_credentials_use_the_error_envelope(self) -> None:
        res = self.client.post(
            f"{API}/login",
            data={"username": "admin@acme.test", "password": "nope"},
            headers={"X-Request-ID": "trace-123"},
        )
        self.assertEqual(res.status_code, 401)
        body = res.json()
        self.assertFalse(body["ok"])
        self.assertEqual(body["error"]["message"], "Incorrect email or password")
        self.assertEqual(body["error"]["status"], 401)
        self.assertEqual(body["error"]["trace_id"], "trace-123")
        self.assertEqual(res.headers["X-Request-ID"], "trace-123")

    def test_lockout(self) -> None:
        for _ in range(3):
            self.assertEqual(self.login("ana@acme.test", "wrong").status_code, 401)
        res = self.login("ana@acme.test")
        self.assertEqual(res.status_code, 429)
        self.assertIn("temporarily locked", res.json()["error"]["message"])

    def test_missing_token(self) -> None:
        self.assertEqual(self.client.get(f"{API}/me").status_code, 401)

    def test_password_mismatch(self) -> None:
        res = self.client.post(
            f"{API}/auth/change-password",
            json={"current_password": PASSWORD, "new_password": "newpass12", "confirm_password": "newpass13"},
            headers=self.auth("ana@acme.test"),
        )
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.json()["error"]["message"], "New passwords do not match")

    def test_health(self) -> None:
        res = self.client.get("/api/healthz")
        self.assertEqual(res.status_code, 200)
        self.assertTrue(res.json()["ok"])
        self.assertIn("X-Request-ID", res.headers)

        ready = self.client.get("/api/readyz")
        self.assertEqual(ready.status_code, 200)
        self.assertEqual(ready.json()["db"], "up")


class TestDocumentFlow(ApiCase):
    def create_published(self, headers, title="Forklift Safety") -> int:
        res = self.client.post(
            f"{API}/sops",
            json={"title": title, "department": "Safety", "version": "1.2", "content": "Stay clear."},
            headers=headers,
        )
        self.assertEqual(res.status_code, 201, res.text)
        sop_id = res.json()["id"]
        self.assertEqual(res.json()["status"], "draft")

        res = self.client.post(f"{API}/sops/{sop_id}/publish", headers=headers)
        self.assertEqual(res.status_code, 200, res.text)
        self.assertEqual(res.json()["status"], "published")
        return sop_id

    def test_assign_and_acknowledge(self) -> None:
        admin = self.auth("admin@acme.test")
        employee = self.auth("ana@acme.test")
        sop_id = self.create_published(admin)

        due = (utcnow() + timedelta(days=7)).isoformat()
        res = self.client.post(
            f"{API}/sops/{sop_id}/assign",
            json={"user_ids": [self.employee_id], "due_date": due},
            headers=admin,
        )
        self.assertEqual(res.status_code, 201, res.text)
        (assignment_id,) = res.json()["created"]

        again = self.client.post(f"{API}/sops/{sop_id}/assign", json={"user_ids": [self.employee_id]}, headers=admin)
        self.assertEqual(again.json(), {"created": [], "skipped_user_ids": [self.employee_id]})

        mine = self.client.get(f"{API}/me/assignments", headers=employee).json()
        self.assertEqual([(a["id"], a["status"]) for a in mine], [(assignment_id, "pending")])

        unread = self.client.get(f"{API}/notifications/unread-count", headers=employee).json()
        self.assertEqual(unread, {"count": 1})

        res = self.client.post(f"{API}/assignments/{assignment_id}/acknowledge", headers=employee)
        self.assertEqual(res.status_code, 200, res.text)
        self.assertEqual(res.json()["sop_version"], "1.2")

        dup = self.client.post(f"{API}/assignments/{assignment_id}/acknowledge", headers=employee)
        self.assertEqual(dup.status_code, 400)
        self.assertEqual(dup.json()["error"]["message"], "Assignment already acknowledged")

        history = self.client.get(f"{API}/me/history", headers=employee).json()
        self.assertEqual([h["status"] for h in history], ["acknowledged"])

        tracking = self.client.get(f"{API}/acknowledgments", headers=admin)
        self.assertEqual(tracking.headers["X-Total-Count"], "1")
        self.assertEqual(tracking.json()["stats"]["acknowledged"], 1)

        read = self.client.post(f"{API}/notifications/read-all", headers=employee).json()
        self.assertEqual(read, {"updated": 1})
        unread = self.client.get(f"{API}/notifications/unread-count", headers=employee).json()
        self.assertEqual(unread, {"count": 0})

    def test_offset_due_dates_are_stored_as_utc(self) -> None:
        admin = self.auth("admin@acme.test")
        sop_id = self.create_published(admin)

        res = self.client.post(
            f"{API}/sops/{sop_id}/assign",
            json={"user_ids": [self.employee_id], "due_date": "2030-01-10T23:00:00-05:00"},
            headers=admin,
        )
        self.assertEqual(res.status_code, 201, res.text)
        (assignment_id,) = res.json()["created"]
        with self.Session() as db:
            stored = db.get(SopAssignment, assignment_id).due_date
        self.assertEqual(stored, datetime(2030, 1, 11, 4, 0))
        self.assertIsNone(stored.tzinfo)

        res = self.client.patch(
            f"{API}/sops/{sop_id}",
            json={"next_review_date": "2030-06-01T02:30:00+02:00"},
            headers=admin,
        )
        self.assertEqual(res.status_code, 200, res.text)
        self.assertEqual(res.json()["next_review_date"], "2030-06-01T00:30:00")

    def test_employee_cannot_see_drafts_or_write(self) -> None:
        admin = self.auth("admin@acme.test")
        employee = self.auth("ana@acme.test")
        res = self.client.post(f"{API}/sops", json={"title": "Draft only"}, headers=admin)
        draft_id = res.json()["id"]

        self.assertEqual(self.client.get(f"{API}/sops/{draft_id}", headers=employee).status_code, 404)
        self.assertEqual(self.client.get(f"{API}/sops/{draft_id}", headers=admin).status_code, 200)
        res = self.client.post(f"{API}/sops", json={"title": "Nope"}, headers=employee)
        self.assertEqual(res.status_code, 403)

    def test_validation_errors_use_the_envelope(self) -> None:
        res = self.client.post(f"{API}/sops", json={"title": "ab"}, headers=self.auth("admin@acme.test"))
        self.assertEqual(res.status_code, 422)
        body = res.json()
        self.assertEqual(body["error"]["type"], "validation_error")
        self.assertTrue(body["error"]["details"])


class TestReportsApi(ApiCase):
    def test_report_page(self) -> None:
        res = self.client.get(f"{API}/reports/user-activity", headers=self.auth("admin@acme.test"))
        self.assertEqual(res.status_code, 200, res.text)
        self.assertEqual(res.headers["X-Total-Count"], "2")
        self.assertEqual(set(res.json()), {"data", "total", "stats", "page", "items_per_page"})

    def test_invalid_report_type(self) -> None:
        res = self.client.get(f"{API}/reports/bogus", headers=self.auth("admin@acme.test"))
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.json()["error"]["message"], "Invalid report type")

    def test_employees_cannot_read_reports(self) -> None:
        res = self.client.get(f"{API}/reports/acknowledgment", headers=self.auth("ana@acme.test"))
        self.assertEqual(res.status_code, 403)

    def test_csv_export(self) -> None:
        res = self.client.get(
            f"{API}/reports/user-activity/export", params={"format": "csv"}, headers=self.auth("admin@acme.test")
        )
        self.assertEqual(res.status_code, 200)
        self.assertTrue(res.headers["content-type"].startswith("text/csv"))
        self.assertEqual(
            res.headers["content-disposition"], "attachment; filename=user-activity-report.csv"
        )
        self.assertEqual(res.headers["cache-control"], "no-store")
        self.assertEqual(len(res.text.splitlines()), 3)

    def test_excel_export_not_implemented(self) -> None:
        res = self.client.get(
            f"{API}/reports/acknowledgment/export", params={"format": "excel"}, headers=self.auth("admin@acme.test")
        )
        self.assertEqual(res.status_code, 501)
        self.assertEqual(res.json()["error"]["message"], "Export format excel not implemented yet")

    def test_unknown_date_range_means_thirty_days(self) -> None:
        now = utcnow()
        with self.Session() as db:
            company = db.get(Company, self.company_id)
            sop = make_sop(db, company)
            make_assignment(db, sop, db.get(User, self.employee_id), created_at=now - timedelta(days=10))
            make_assignment(db, sop, db.get(User, self.admin_id), created_at=now - timedelta(days=45))

        admin = self.auth("admin@acme.test")
        res = self.client.get(f"{API}/reports/acknowledgment", params={"date_range": "custom"}, headers=admin)
        self.assertEqual(res.status_code, 200, res.text)
        self.assertEqual(res.headers["X-Total-Count"], "1")
        self.assertEqual([r["user_id"] for r in res.json()["data"]], [self.employee_id])

        wide = self.client.get(f"{API}/reports/acknowledgment", params={"date_range": "last-90-days"}, headers=admin)
        self.assertEqual(wide.headers["X-Total-Count"], "2")

        tracking = self.client.get(f"{API}/acknowledgments", params={"date_range": "custom"}, headers=admin)
        self.assertEqual(tracking.status_code, 200, tracking.text)


if __name__ == "__main__":
    unittest.main()
