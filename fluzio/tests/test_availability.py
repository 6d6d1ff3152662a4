import unittest
from datetime import date, datetime, timedelta, timezone

from fluzio.errors import NotFoundError, ValidationError
from fluzio.services.availability import (
    AvailabilityService,
    iter_dates,
    sunday_based_weekday,
)
from fluzio.store import InMemoryDocumentStore
from shared.types import AvailabilityStatus

# 2030-06-02 is a Sunday.
NOW = datetime(2030, 6, 5, 12, 0, tzinfo=timezone.utc)


class DateHelperTests(unittest.TestCase):
    def test_sunday_based_weekday(self):
        self.assertEqual(sunday_based_weekday(date(2030, 6, 2)), 0)
        self.assertEqual(sunday_based_weekday(date(2030, 6, 3)), 1)
        self.assertEqual(sunday_based_weekday(date(2030, 6, 8)), 6)

    def test_iter_dates_validation(self):
        self.assertEqual(len(list(iter_dates("2030-02-27", "2030-03-02"))), 4)
        with self.assertRaises(ValidationError):
            list(iter_dates("2030-06-05", "2030-06-01"))
        with self.assertRaises(ValidationError):
            list(iter_dates("2030-01-01", "2031-02-01"))
        with self.assertRaises(ValidationError):
            list(iter_dates("June 1", "2030-06-05"))

    def test_only_calendar_dates_are_accepted(self):
        for spelling in ("20300610", "2030-W24-1", "2030-6-10", "2030-02-30"):
            with self.assertRaises(ValidationError):
                list(iter_dates(spelling, "2030-06-30"))


class AvailabilityServiceTests(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryDocumentStore()
        self.service = AvailabilityService(self.store)

    def test_compact_date_is_rejected(self):
        with self.assertRaises(ValidationError):
            self.service.set_date_availability(
                "cr1", "20300610", AvailabilityStatus.UNAVAILABLE, now=NOW
            )
        self.service.set_date_availability(
            "cr1", "2030-06-10", AvailabilityStatus.UNAVAILABLE, now=NOW
        )
        self.assertFalse(self.service.is_date_available("cr1", "2030-06-10"))

    def test_block_beats_pattern_beats_default(self):
        self.service.set_recurring_availability("cr1", 0, False, "2030-06-01", now=NOW)
        self.service.set_date_availability("cr1", "2030-06-02", AvailabilityStatus.AVAILABLE, now=NOW)
        self.service.set_date_availability(
            "cr1", "2030-06-04", AvailabilityStatus.UNAVAILABLE, reason="Travel", now=NOW
        )
        self.service.mark_date_booked("cr1", "2030-06-05", "bk1", now=NOW)

        result = self.service.get_availability_range("cr1", "2030-06-02", "2030-06-09")

        self.assertEqual(
            result.available_dates,
            ["2030-06-02", "2030-06-03", "2030-06-06", "2030-06-07", "2030-06-08"],
        )
        self.assertEqual(result.unavailable_dates, ["2030-06-04", "2030-06-09"])
        self.assertEqual(result.booked_dates, ["2030-06-05"])
        self.assertFalse(self.service.is_date_available("cr1", "2030-06-05"))
        self.assertTrue(self.service.is_date_available("cr1", "2030-06-03"))

    def test_pattern_date_bounds(self):
        self.service.set_recurring_availability(
            "cr1", 1, False, "2030-06-01", end_date="2030-06-05", now=NOW
        )
        self.assertFalse(self.service.is_date_available("cr1", "2030-06-03"))
        self.assertTrue(self.service.is_date_available("cr1", "2030-06-10"))
        self.assertTrue(self.service.is_date_available("cr1", "2030-05-27"))

    def test_default_unavailable_with_available_pattern(self):
        self.service.update_settings("cr1", {"default_available": False}, now=NOW)
        self.service.set_recurring_availability("cr1", 6, True, "2030-01-01", now=NOW)
        result = self.service.get_availability_range("cr1", "2030-06-02", "2030-06-15")
        self.assertEqual(result.available_dates, ["2030-06-08", "2030-06-15"])

    def test_recurring_validation_and_delete(self):
        with self.assertRaises(ValidationError):
            self.service.set_recurring_availability("cr1", 7, True, "2030-06-01")
        with self.assertRaises(ValidationError):
            self.service.set_recurring_availability(
                "cr1", 1, True, "2030-06-05", end_date="2030-06-01"
            )
        pattern = self.service.set_recurring_availability("cr1", 1, True, "2030-06-01", now=NOW)
        self.assertEqual(len(self.service.list_recurring_availability("cr1")), 1)
        self.service.delete_recurring_availability(pattern.pattern_id)
        self.assertEqual(self.service.list_recurring_availability("cr1"), [])
        with self.assertRaises(NotFoundError):
            self.service.delete_recurring_availability(pattern.pattern_id)

    def test_overrides(self):
        blocks = self.service.set_bulk_availability(
            "cr1", ["2030-06-10", "2030-06-11"], AvailabilityStatus.UNAVAILABLE, reason="Holiday"
        )
        self.assertEqual([b.block_id for b in blocks], ["cr1_2030-06-10", "cr1_2030-06-11"])
        with self.assertRaises(ValidationError):
            self.service.set_bulk_availability("cr1", ["2030-06-12", "bad"], AvailabilityStatus.UNAVAILABLE)
        self.assertEqual(len(self.service.list_availability_blocks("cr1")), 2)

        self.service.remove_availability_override("cr1", "2030-06-10")
        self.assertTrue(self.service.is_date_available("cr1", "2030-06-10"))
        with self.assertRaises(NotFoundError):
            self.service.remove_availability_override("cr1", "2030-06-10")

    def test_booked_date_release(self):
        self.service.mark_date_booked("cr1", "2030-06-12", "bk1", now=NOW)
        updated = self.service.set_date_availability(
            "cr1", "2030-06-12", AvailabilityStatus.BOOKED, notes="Shoot", now=NOW + timedelta(hours=1)
        )
        self.assertEqual(updated.booking_id, "bk1")
        self.assertEqual(updated.created_at, NOW)

        self.assertFalse(self.service.release_booked_date("cr1", "2030-06-13"))
        self.assertTrue(self.service.release_booked_date("cr1", "2030-06-12"))
        self.assertTrue(self.service.is_date_available("cr1", "2030-06-12"))

    def test_next_available_dates_respects_lead_time(self):
        self.service.set_date_availability("cr1", "2030-06-07", AvailabilityStatus.UNAVAILABLE)
        dates = self.service.next_available_dates("cr1", count=3, now=NOW)
        self.assertEqual(dates, ["2030-06-06", "2030-06-08", "2030-06-09"])

        self.service.update_settings("cr1", {"lead_time_hours": 72}, now=NOW)
        self.assertEqual(self.service.next_available_dates("cr1", count=1, now=NOW), ["2030-06-08"])

    def test_settings(self):
        settings = self.service.get_settings("cr1")
        self.assertTrue(settings.default_available)
        self.assertEqual(settings.max_advance_booking_days, 90)

        updated = self.service.update_settings(
            "cr1", {"buffer_days": 2, "timezone": "Europe/Amsterdam"}, now=NOW
        )
        self.assertEqual(updated.buffer_days, 2)
        self.assertEqual(self.service.get_settings("cr1").timezone, "Europe/Amsterdam")

        for changes in ({"lead_time_hours": -1}, {"max_advance_booking_days": 400}, {"color": "red"}):
            with self.assertRaises(ValidationError):
                self.service.update_settings("cr1", changes)

    def test_percentage(self):
        self.service.set_date_availability("cr1", "2030-06-03", AvailabilityStatus.UNAVAILABLE)
        self.assertEqual(
            self.service.availability_percentage("cr1", "2030-06-02", "2030-06-05"), 75.0
        )


if __name__ == "__main__":
    unittest.main()
