"""
tests/test_events.py

Change feed delivery and its use by the notification writer.
"""
from __future__ import annotations

import unittest

from sophub.crud import notification as crud_notification
from sophub.services.events import ChangeFeed, change_feed
from tests.factories import make_company, make_session_factory, make_user


class TestChangeFeed(unittest.TestCase):
    def setUp(self) -> None:
        self.feed = ChangeFeed()
        self.received = []

    def test_delivers_to_matching_table_only(self) -> None:
        self.feed.subscribe("notifications", self.received.append)
        delivered = self.feed.publish("sops", "INSERT", {"id": 1})
        self.assertEqual(delivered, 0)
        delivered = self.feed.publish("notifications", "INSERT", {"id": 2}, user_id=5)
        self.assertEqual(delivered, 1)
        (event,) = self.received
        self.assertEqual((event.table, event.type, event.row, event.user_id), ("notifications", "INSERT", {"id": 2}, 5))
        self.assertIsNotNone(event.ts_utc)

    def test_user_filter(self) -> None:
        self.feed.subscribe("notifications", self.received.append, user_id=7)
        self.feed.publish("notifications", "INSERT", {"id": 1}, user_id=8)
        self.feed.publish("notifications", "UPDATE", {"id": 2}, user_id=7, old={"id": 2, "read": False})
        self.assertEqual([e.row["id"] for e in self.received], [2])
        self.assertEqual(self.received[0].old, {"id": 2, "read": False})

    def test_unsubscribe(self) -> None:
        sub = self.feed.subscribe("sops", self.received.append)
        self.assertTrue(self.feed.unsubscribe(sub))
        self.assertFalse(self.feed.unsubscribe(sub))
        self.feed.publish("sops", "DELETE", {"id": 1})
        self.assertEqual(self.received, [])

    def test_failing_subscriber_does_not_block_others(self) -> None:
        def broken(event):
            raise RuntimeError("boom")

        self.feed.subscribe("sops", broken)
        self.feed.subscribe("sops", self.received.append)
        with self.assertLogs("sophub.services.events", level="ERROR"):
            delivered = self.feed.publish("sops", "UPDATE", {"id": 3})
        self.assertEqual(delivered, 1)
        self.assertEqual(len(self.received), 1)

    def test_published_row_is_a_copy(self) -> None:
        self.feed.subscribe("sops", self.received.append)
        row = {"id": 1, "title": "A"}
        self.feed.publish("sops", "INSERT", row)
        row["title"] = "B"
        self.assertEqual(self.received[0].row["title"], "A")


class TestNotificationWrites(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_session_factory()()
        company = make_company(self.db)
        self.user = make_user(self.db, company, "ana@acme.test")
        self.received = []
        self.sub = change_feed.subscribe("notifications", self.received.append, user_id=self.user.id)

    def tearDown(self) -> None:
        change_feed.unsubscribe(self.sub)
        self.db.close()

    def test_insert_update_delete_are_published(self) -> None:
        n = crud_notification.create_notification(
            self.db, user_id=self.user.id, type="reminder", title="Read me"
        )
        crud_notification.set_read(self.db, n, True)
        crud_notification.delete_notification(self.db, n)

        self.assertEqual([e.type for e in self.received], ["INSERT", "UPDATE", "DELETE"])
        self.assertEqual(self.received[0].row["title"], "Read me")
        self.assertTrue(self.received[1].row["read"])


if __name__ == "__main__":
    unittest.main()
