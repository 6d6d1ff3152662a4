import json
import unittest
from datetime import datetime, timedelta, timezone

from fluzio.errors import ForbiddenError, NotFoundError, RateLimitError, ValidationError
from fluzio.services.checkins import (
    CheckInService,
    haversine_distance,
    required_radius,
    within_radius,
)
from fluzio.services.notifications import NotificationService, Notifier
from fluzio.services.points import PointsLedger
from fluzio.services.users import UserService
from fluzio.store import InMemoryDocumentStore
from shared.types import CheckInMethod, NotificationType, UserRole

NOW = datetime(2030, 6, 5, 12, 0, tzinfo=timezone.utc)
LAT, LON = 52.3700, 4.8900


class GeoTests(unittest.TestCase):
    def test_haversine_one_degree_of_latitude(self):
        self.assertAlmostEqual(haversine_distance(0, 0, 1, 0), 111195, delta=1)
        self.assertEqual(haversine_distance(LAT, LON, LAT, LON), 0)

    def test_radius(self):
        self.assertTrue(within_radius(LAT + 0.0005, LON, LAT, LON))
        self.assertFalse(within_radius(LAT + 0.002, LON, LAT, LON))
        self.assertEqual(required_radius(None), 100)
        self.assertEqual(required_radius(20), 100)
        self.assertEqual(required_radius(80), 50)


class CheckInServiceTests(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryDocumentStore()
        users = UserService(self.store)
        users.create_user(
            "Cafe Blue", UserRole.BUSINESS, user_id="biz1", latitude=LAT, longitude=LON
        )
        users.create_user("Bakery", UserRole.BUSINESS, user_id="biz2")
        users.create_user("Ana", user_id="ana")
        self.users = users
        self.service = CheckInService(self.store, Notifier(self.store))

    def test_qr_check_in_awards_both_sides(self):
        payload = self.service.generate_qr_payload("biz1", now=NOW)
        decoded = json.loads(payload)
        self.assertEqual(decoded["type"], "FLUZIO_CHECK_IN")
        self.assertEqual(decoded["business_name"], "Cafe Blue")

        check_in = self.service.process_qr_check_in(payload, "ana", now=NOW)

        self.assertEqual(check_in.method, "QR_SCAN")
        self.assertEqual(self.users.get_balance("ana"), 10)
        self.assertEqual(self.users.get_balance("biz1"), 5)
        tx = PointsLedger(self.store).list_transactions("biz1")[0]
        self.assertEqual(tx.metadata["customer_id"], "ana")
        inbox = NotificationService(self.store).list_notifications("ana")
        self.assertEqual(inbox[0].type, NotificationType.CHECK_IN)

    def test_qr_once_per_business_per_day(self):
        payload = self.service.generate_qr_payload("biz1", now=NOW)
        self.service.process_qr_check_in(payload, "ana", now=NOW)
        with self.assertRaises(RateLimitError):
            self.service.process_qr_check_in(payload, "ana", now=NOW + timedelta(hours=3))

        other = self.service.generate_qr_payload("biz2", now=NOW)
        self.service.process_qr_check_in(other, "ana", now=NOW)
        self.service.process_qr_check_in(payload, "ana", now=NOW + timedelta(days=1))
        self.assertEqual(self.users.get_balance("ana"), 30)

    def test_invalid_qr_payloads(self):
        for qr_data in ("not json", json.dumps([1, 2]), json.dumps({"type": "OTHER"})):
            with self.assertRaises(ValidationError):
                self.service.process_qr_check_in(qr_data, "ana", now=NOW)
        unknown = json.dumps({"type": "FLUZIO_CHECK_IN", "business_id": "ghost"})
        with self.assertRaises(NotFoundError):
            self.service.process_qr_check_in(unknown, "ana", now=NOW)

    def test_method_restrictions(self):
        self.assertEqual(self.service.get_check_in_method("biz1"), CheckInMethod.BOTH)

        self.service.set_check_in_method("biz1", CheckInMethod.GPS)
        payload = self.service.generate_qr_payload("biz1", now=NOW)
        with self.assertRaises(ForbiddenError):
            self.service.process_qr_check_in(payload, "ana", now=NOW)

        self.service.set_check_in_method("biz1", CheckInMethod.QR_ONLY)
        with self.assertRaises(ForbiddenError):
            self.service.process_gps_check_in("ana", "biz1", LAT, LON, now=NOW)

    def test_gps_distance_and_accuracy(self):
        with self.assertRaises(ValidationError):
            self.service.process_gps_check_in("ana", "biz1", LAT + 0.01, LON, now=NOW)
        # About 70m away: close enough, unless the fix is poor.
        with self.assertRaises(ValidationError):
            self.service.process_gps_check_in(
                "ana", "biz1", LAT + 0.00063, LON, accuracy=60, now=NOW
            )
        check_in = self.service.process_gps_check_in(
            "ana", "biz1", LAT + 0.00063, LON, accuracy=10, now=NOW
        )
        self.assertEqual(check_in.method, "GPS")
        self.assertEqual(check_in.distance, 70)

    def test_gps_requires_business_location(self):
        with self.assertRaises(ValidationError):
            self.service.process_gps_check_in("ana", "biz2", LAT, LON, now=NOW)

    def test_gps_daily_limit(self):
        for i in range(5):
            self.service.process_gps_check_in(
                "ana", "biz1", LAT, LON, now=NOW + timedelta(minutes=i)
            )
        with self.assertRaises(RateLimitError):
            self.service.process_gps_check_in(
                "ana", "biz1", LAT, LON, now=NOW + timedelta(minutes=10)
            )

    def test_stats_and_listing(self):
        self.users.create_user("Ben", user_id="ben")
        payload = self.service.generate_qr_payload("biz1", now=NOW)
        self.service.process_qr_check_in(payload, "ana", now=NOW - timedelta(days=10))
        self.service.process_qr_check_in(payload, "ana", now=NOW - timedelta(days=2))
        self.service.process_qr_check_in(payload, "ben", now=NOW)

        stats = self.service.check_in_stats("biz1", now=NOW)
        self.assertEqual(stats["total"], 3)
        self.assertEqual(stats["today"], 1)
        self.assertEqual(stats["this_week"], 2)
        self.assertEqual(stats["this_month"], 2)
        self.assertEqual(stats["unique_customers"], 2)

        listed = self.service.list_business_check_ins("biz1", limit=2)
        self.assertEqual([c.user_id for c in listed], ["ben", "ana"])


if __name__ == "__main__":
    unittest.main()
