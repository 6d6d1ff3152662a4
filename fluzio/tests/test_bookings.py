import unittest
from datetime import datetime, timezone

from fluzio.errors import ConflictError, NotFoundError, ValidationError
from fluzio.services.availability import AvailabilityService
from fluzio.services.bookings import (
    BookingRequest,
    BookingService,
    PackageDetails,
    can_transition,
)
from fluzio.services.notifications import NotificationService, Notifier
from fluzio.services.users import UserService
from fluzio.store import InMemoryDocumentStore
from shared.types import AvailabilityStatus, BookingStatus, NotificationType, UserRole

NOW = datetime(2030, 6, 5, 9, 0, tzinfo=timezone.utc)


def _package(price=300.0, tier="silver", delivery_days=7):
    return PackageDetails(
        name="Reel package",
        tier=tier,
        price=price,
        currency="USD",
        delivery_days=delivery_days,
        features=["2 revisions"],
        deliverables=["1 reel", "3 stories"],
    )


class BookingServiceTests(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryDocumentStore()
        users = UserService(self.store)
        users.create_user("Cafe Blue", UserRole.BUSINESS, user_id="biz1")
        users.create_user("Cleo", UserRole.CREATOR, user_id="cr1")
        self.service = BookingService(self.store, Notifier(self.store))
        self.availability = AvailabilityService(self.store)

    def _book(self, day, price=300.0, business_id="biz1"):
        request = BookingRequest(
            business_id=business_id,
            creator_id="cr1",
            package_id="pkg-silver",
            start_date=day,
            requirements="Summer menu launch",
        )
        return self.service.create_booking(request, _package(price=price), now=NOW)

    def test_transitions(self):
        self.assertTrue(can_transition(BookingStatus.PENDING, BookingStatus.CONFIRMED))
        self.assertTrue(can_transition(BookingStatus.PAID, BookingStatus.REFUNDED))
        self.assertFalse(can_transition(BookingStatus.PENDING, BookingStatus.PAID))
        self.assertFalse(can_transition(BookingStatus.COMPLETED, BookingStatus.CANCELLED))

    def test_create_splits_price_and_blocks_date(self):
        booking = self._book("2030-06-10", price=250.0)

        self.assertEqual(booking.status, BookingStatus.PENDING)
        self.assertEqual(booking.deposit_amount, 125.0)
        self.assertEqual(booking.remaining_amount, 125.0)
        self.assertEqual(booking.delivery_date, "2030-06-17")
        self.assertEqual(booking.creator_name, "Cleo")
        self.assertEqual(booking.deliverables, ["1 reel", "3 stories"])
        self.assertFalse(self.availability.is_date_available("cr1", "2030-06-10"))
        inbox = NotificationService(self.store).list_notifications("cr1")
        self.assertEqual(inbox[0].type, NotificationType.BOOKING_REQUEST)

        with self.assertRaises(ConflictError):
            self._book("2030-06-10")

    def test_create_validation(self):
        with self.assertRaises(ValidationError):
            self._book("2030-06-10", price=-1)
        with self.assertRaises(ValidationError):
            self.service.create_booking(
                BookingRequest("biz1", "cr1", "pkg", "2030-06-10"), _package(tier="platinum")
            )
        with self.assertRaises(ValidationError):
            self.service.create_booking(
                BookingRequest("biz1", "cr1", "pkg", "2030-06-10"), _package(delivery_days=-2)
            )
        with self.assertRaises(ValidationError):
            self._book("10/06/2030")
        with self.assertRaises(NotFoundError):
            self._book("2030-06-10", business_id="ghost")

        self.availability.set_date_availability("cr1", "2030-06-11", AvailabilityStatus.UNAVAILABLE)
        with self.assertRaises(ConflictError):
            self._book("2030-06-11")

    def test_full_lifecycle(self):
        booking = self._book("2030-06-10")
        booking_id = booking.booking_id

        with self.assertRaises(ConflictError):
            self.service.start_booking(booking_id)
        with self.assertRaises(ConflictError):
            self.service.mark_final_payment_paid(booking_id)

        confirmed = self.service.confirm_booking(booking_id, notes="Looking forward to it")
        self.assertEqual(confirmed.status, BookingStatus.CONFIRMED)
        self.assertEqual(confirmed.creator_notes, "Looking forward to it")
        self.assertIsNotNone(confirmed.confirmed_at)

        paid = self.service.mark_deposit_paid(booking_id)
        self.assertEqual(paid.status, BookingStatus.PAID)
        self.assertTrue(paid.deposit_paid)

        self.assertEqual(self.service.start_booking(booking_id).status, BookingStatus.IN_PROGRESS)
        completed = self.service.complete_booking(booking_id)
        self.assertEqual(completed.status, BookingStatus.COMPLETED)
        self.assertIsNotNone(completed.completed_at)

        final = self.service.mark_final_payment_paid(booking_id)
        self.assertTrue(final.final_payment_paid)
        with self.assertRaises(ConflictError):
            self.service.mark_final_payment_paid(booking_id)

        titles = [n.title for n in NotificationService(self.store).list_notifications("biz1")]
        for title in ("Booking Confirmed", "Payment Confirmed", "Work Started", "Project Completed"):
            self.assertIn(title, titles)

    def test_cancel_refunds_only_after_deposit(self):
        unpaid = self._book("2030-06-10")
        cancelled = self.service.cancel_booking(unpaid.booking_id, "Plans changed", refund=True)
        self.assertEqual(cancelled.status, BookingStatus.CANCELLED)
        self.assertIsNotNone(cancelled.cancelled_at)
        self.assertTrue(self.availability.is_date_available("cr1", "2030-06-10"))
        with self.assertRaises(ConflictError):
            self.service.cancel_booking(unpaid.booking_id, "again")

        paid = self._book("2030-06-10")
        self.service.confirm_booking(paid.booking_id)
        self.service.mark_deposit_paid(paid.booking_id)
        refunded = self.service.cancel_booking(paid.booking_id, "Creator ill", refund=True)
        self.assertEqual(refunded.status, BookingStatus.REFUNDED)
        inbox = NotificationService(self.store).list_notifications("biz1")
        self.assertEqual(inbox[0].title, "Booking Cancelled - Refund Processed")

    def test_stats_and_calendar(self):
        b1 = self._book("2030-06-10", price=300.0)
        self.service.confirm_booking(b1.booking_id)
        self.service.mark_deposit_paid(b1.booking_id)

        b2 = self._book("2030-06-11", price=200.0)
        self.service.confirm_booking(b2.booking_id)
        self.service.mark_deposit_paid(b2.booking_id)
        self.service.start_booking(b2.booking_id)

        self._book("2030-06-12", price=100.0)

        b4 = self._book("2030-06-13", price=100.0)
        self.service.cancel_booking(b4.booking_id, "No longer needed")

        b5 = self._book("2030-06-14", price=500.0)
        self.service.confirm_booking(b5.booking_id)
        self.service.mark_deposit_paid(b5.booking_id)
        self.service.start_booking(b5.booking_id)
        self.service.complete_booking(b5.booking_id)

        creator = self.service.creator_booking_stats("cr1", now=NOW)
        self.assertEqual(creator["total"], 5)
        self.assertEqual(creator["pending"], 1)
        self.assertEqual(creator["paid"], 1)
        self.assertEqual(creator["in_progress"], 1)
        self.assertEqual(creator["completed"], 1)
        self.assertEqual(creator["cancelled"], 1)
        self.assertEqual(creator["total_earnings"], 700.0)
        self.assertEqual(creator["pending_payments"], 250.0)
        self.assertEqual([b.booking_id for b in creator["upcoming_bookings"]], [b1.booking_id])

        business = self.service.business_booking_stats("biz1", now=NOW)
        self.assertEqual(business["total"], 5)
        self.assertEqual(business["pending"], 1)
        self.assertEqual(business["active"], 2)
        self.assertEqual(business["completed"], 1)
        self.assertEqual(business["cancelled"], 1)
        self.assertEqual(business["total_spent"], 500.0)
        self.assertEqual(business["pending_payments"], 250.0)
        self.assertEqual(
            [b.booking_id for b in business["upcoming_deliveries"]],
            [b1.booking_id, b2.booking_id],
        )

        calendar = self.service.booking_calendar("cr1", "2030-06-10", "2030-06-13")
        self.assertEqual(
            [day["status"] for day in calendar], ["booked", "booked", "booked", "available"]
        )
        self.assertEqual(calendar[0]["booking_id"], b1.booking_id)
        paid_only = self.service.list_creator_bookings("cr1", BookingStatus.PAID)
        self.assertEqual([b.booking_id for b in paid_only], [b1.booking_id])


if __name__ == "__main__":
    unittest.main()
