import unittest

from fluzio.store import InMemoryDocumentStore, matches
from shared.types import MissionStatus


class InMemoryDocumentStoreTests(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryDocumentStore()

    def test_returned_documents_are_copies(self):
        self.store.set("users", "u1", {"name": "Ana", "tags": ["a"]})
        data = self.store.get("users", "u1")
        data["tags"].append("b")
        self.assertEqual(self.store.get("users", "u1")["tags"], ["a"])

        rows = self.store.query("users")
        rows[0][1]["name"] = "Changed"
        self.assertEqual(self.store.get("users", "u1")["name"], "Ana")

    def test_enum_values_are_stored_and_matched(self):
        self.store.set("missions", "m1", {"status": MissionStatus.ACTIVE})
        self.assertEqual(self.store.get("missions", "m1")["status"], "ACTIVE")
        rows = self.store.query("missions", [("status", "==", MissionStatus.ACTIVE)])
        self.assertEqual(len(rows), 1)

    def test_increment_nested_field(self):
        self.store.set("stats", "s1", {})
        self.store.increment("stats", "s1", "counts.visits", 2)
        self.store.increment("stats", "s1", "counts.visits", 3)
        self.assertEqual(self.store.get("stats", "s1"), {"counts": {"visits": 5}})

    def test_missing_field_never_matches(self):
        self.assertFalse(matches({"a": 1}, [("b", "==", None)]))
        self.assertTrue(matches({"a": {"b": None}}, [("a.b", "==", None)]))
        self.assertFalse(matches({"a": None}, [("a", "<", 5)]))

    def test_reset(self):
        self.store.add("users", {"name": "Ana"})
        self.store.reset()
        self.assertEqual(self.store.query("users"), [])


if __name__ == "__main__":
    unittest.main()
