"""
tests/test_status.py

Status derivation for assignments, acknowledgment history and reviews.
"""
from __future__ import annotations

import unittest
from datetime import datetime, timedelta

from sophub.services.status import (
    declined_reason,
    derive_acknowledgment_status,
    derive_assignment_status,
    derive_review_status,
    derive_tracking_status,
    display_document_type,
    expiry_date,
    receipt_id,
)


class TestAssignmentStatus(unittest.TestCase):
    def test_past_due_without_acknowledgment_is_overdue(self) -> None:
        # created 2024-01-01, due 2024-01-10, no acknowledgment
        status = derive_assignment_status(datetime(2024, 1, 10), False, datetime(2024, 2, 1))
        self.assertEqual(status, "overdue")

    def test_acknowledged_wins_over_due_date(self) -> None:
        status = derive_assignment_status(datetime(2024, 1, 10), True, datetime(2024, 2, 1))
        self.assertEqual(status, "acknowledged")

    def test_future_or_missing_due_date_is_pending(self) -> None:
        now = datetime(2024, 2, 1)
        self.assertEqual(derive_assignment_status(now + timedelta(days=1), False, now), "pending")
        self.assertEqual(derive_assignment_status(None, False, now), "pending")

    def test_due_exactly_now_is_not_overdue(self) -> None:
        now = datetime(2024, 2, 1, 12, 0)
        self.assertEqual(derive_assignment_status(now, False, now), "pending")


class TestTrackingStatus(unittest.TestCase):
    def test_decline_outranks_overdue(self) -> None:
        status = derive_tracking_status(
            datetime(2024, 1, 10), False, "DECLINED: not my department", datetime(2024, 2, 1)
        )
        self.assertEqual(status, "declined")

    def test_acknowledged_outranks_decline(self) -> None:
        status = derive_tracking_status(None, True, "DECLINED: x", datetime(2024, 2, 1))
        self.assertEqual(status, "acknowledged")

    def test_declined_reason(self) -> None:
        self.assertEqual(declined_reason("DECLINED: wrong team"), "wrong team")
        self.assertIsNone(declined_reason("please read by Friday"))
        self.assertIsNone(declined_reason(None))


class TestAcknowledgmentStatus(unittest.TestCase):
    def test_training_expires_after_a_year(self) -> None:
        status = derive_acknowledgment_status(
            datetime(2024, 1, 5), None, "training", datetime(2025, 6, 1)
        )
        self.assertEqual(status, "expired")

    def test_policy_still_valid_after_a_year(self) -> None:
        status = derive_acknowledgment_status(
            datetime(2024, 1, 5), None, "policy", datetime(2025, 6, 1)
        )
        self.assertEqual(status, "acknowledged")

    def test_update_after_acknowledgment_supersedes_even_if_expired(self) -> None:
        status = derive_acknowledgment_status(
            datetime(2024, 1, 5), datetime(2024, 3, 1), "training", datetime(2026, 1, 1)
        )
        self.assertEqual(status, "superseded")

    def test_update_before_acknowledgment_does_not_supersede(self) -> None:
        status = derive_acknowledgment_status(
            datetime(2024, 1, 5), datetime(2024, 1, 1), "sop", datetime(2024, 2, 1)
        )
        self.assertEqual(status, "acknowledged")

    def test_expiry_date_by_document_type(self) -> None:
        ack = datetime(2024, 1, 1)
        self.assertEqual(expiry_date(ack, "training"), ack + timedelta(days=365))
        self.assertEqual(expiry_date(ack, "policy"), ack + timedelta(days=1095))
        self.assertEqual(expiry_date(ack, "SOP"), ack + timedelta(days=730))
        self.assertEqual(expiry_date(ack, None), ack + timedelta(days=730))


class TestReviewStatus(unittest.TestCase):
    def setUp(self) -> None:
        self.now = datetime(2024, 6, 1, 9, 0)

    def test_pending_review_past_due_is_overdue(self) -> None:
        self.assertEqual(derive_review_status("pending", self.now - timedelta(days=2), self.now), "overdue")

    def test_pending_review_within_a_week_is_due_soon(self) -> None:
        self.assertEqual(derive_review_status("pending", self.now + timedelta(days=3), self.now), "due-soon")

    def test_completed_or_undated_reviews_are_current(self) -> None:
        self.assertEqual(derive_review_status("approved", self.now - timedelta(days=2), self.now), "current")
        self.assertEqual(derive_review_status("pending", None, self.now), "current")
        self.assertEqual(derive_review_status("pending", self.now + timedelta(days=30), self.now), "current")


class TestLabels(unittest.TestCase):
    def test_receipt_id_is_padded(self) -> None:
        self.assertEqual(receipt_id(42), "ACK-00000042")
        self.assertEqual(receipt_id("abcdef1234"), "ACK-CDEF1234")

    def test_display_document_type(self) -> None:
        self.assertEqual(display_document_type("POLICY"), "Policy")
        self.assertEqual(display_document_type(None), "SOP")
        self.assertEqual(display_document_type("unknown"), "SOP")


if __name__ == "__main__":
    unittest.main()
