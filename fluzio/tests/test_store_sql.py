import unittest
from datetime import datetime, timezone

from fluzio.store import SqlDocumentStore, insert_record
from shared.documents import from_document
from shared.types import Notification, NotificationType


class SqlDocumentStoreTests(unittest.TestCase):
    """
    Uses SQLite via SQLAlchemy URL for fast/local testing of the SQL store logic.
    """

    def setUp(self):
        self.store = SqlDocumentStore("sqlite+pysqlite:///:memory:")

    def test_requires_url(self):
        with self.assertRaises(ValueError):
            SqlDocumentStore("")

    def test_set_get_and_merge(self):
        self.store.set("users", "u1", {"name": "Ana", "points": 0})
        self.store.set("users", "u1", {"points": 5}, merge=True)
        self.assertEqual(self.store.get("users", "u1"), {"name": "Ana", "points": 5})

        self.store.set("users", "u1", {"name": "Ana B"})
        self.assertEqual(self.store.get("users", "u1"), {"name": "Ana B"})
        self.assertIsNone(self.store.get("users", "missing"))

    def test_update_dotted_paths(self):
        self.store.set("prefs", "u1", {"categories": {"missions": {"push": True}}})
        self.assertTrue(self.store.update("prefs", "u1", {"categories.missions.push": False}))
        self.assertFalse(self.store.get("prefs", "u1")["categories"]["missions"]["push"])
        self.assertFalse(self.store.update("prefs", "missing", {"a": 1}))

    def test_increment(self):
        self.store.set("users", "u1", {"points": 10})
        self.assertEqual(self.store.increment("users", "u1", "points", 5), 15)
        self.assertEqual(self.store.increment("users", "u1", "points", -20), -5)
        self.assertEqual(self.store.increment("users", "u1", "visits", 1), 1)
        self.assertIsNone(self.store.increment("users", "missing", "points", 1))

    def test_delete(self):
        doc_id = self.store.add("check_ins", {"user_id": "u1"})
        self.assertTrue(self.store.delete("check_ins", doc_id))
        self.assertFalse(self.store.delete("check_ins", doc_id))

    def test_query_filters_order_and_limit(self):
        for doc_id, points, level in [("a", 30, 1), ("b", 10, 2), ("c", 20, 2), ("d", None, 2)]:
            self.store.set("users", doc_id, {"points": points, "level": level, "tags": ["x"]})
        self.store.set("rewards", "r1", {"points": 1, "level": 2})

        rows = self.store.query("users", [("level", "==", 2)], order_by="points")
        self.assertEqual([doc_id for doc_id, _ in rows], ["d", "b", "c"])

        rows = self.store.query(
            "users", [("points", ">=", 20)], order_by="points", descending=True, limit=1
        )
        self.assertEqual([doc_id for doc_id, _ in rows], ["a"])

        rows = self.store.query("users", [("level", "in", [1]), ("tags", "array_contains", "x")])
        self.assertEqual([doc_id for doc_id, _ in rows], ["a"])

        with self.assertRaises(ValueError):
            self.store.query("users", [("points", "~", 1)])

    def test_datetime_filters_use_stored_format(self):
        earlier = datetime(2030, 1, 1, 9, 0, tzinfo=timezone.utc)
        later = datetime(2030, 1, 1, 18, 0, tzinfo=timezone.utc)
        self.store.set("check_ins", "early", {"timestamp": earlier})
        self.store.set("check_ins", "late", {"timestamp": later})

        rows = self.store.query(
            "check_ins", [("timestamp", ">=", datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc))]
        )
        self.assertEqual([doc_id for doc_id, _ in rows], ["late"])

    def test_insert_record_writes_id_back(self):
        notification = Notification(
            notification_id="",
            user_id="u1",
            type=NotificationType.SYSTEM,
            title="Welcome",
            message="Hello",
        )
        doc_id = insert_record(self.store, "notifications", notification)
        self.assertEqual(notification.notification_id, doc_id)

        loaded = from_document(Notification, self.store.get("notifications", doc_id), doc_id)
        self.assertEqual(loaded.type, NotificationType.SYSTEM)
        self.assertEqual(loaded.notification_id, doc_id)


if __name__ == "__main__":
    unittest.main()
