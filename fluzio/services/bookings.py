"""
Creator bookings: a business books a creator package for a start date.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from fluzio.errors import ConflictError, NotFoundError, ValidationError
from fluzio.services.availability import AvailabilityService, iter_dates, parse_date
from fluzio.services.notifications import Notifier
from fluzio.services.users import UserService
from fluzio.store import DocumentStore, insert_record
from shared.collections import BOOKINGS_COLLECTION
from shared.documents import ensure_utc, from_document, utcnow
from shared.types import Booking, BookingStatus, NotificationType

logger = logging.getLogger(__name__)

DEPOSIT_RATE = 0.5
PACKAGE_TIERS = ("bronze", "silver", "gold", "custom")

ALLOWED_TRANSITIONS = {
    BookingStatus.PENDING: {BookingStatus.CONFIRMED, BookingStatus.CANCELLED},
    BookingStatus.CONFIRMED: {BookingStatus.PAID, BookingStatus.CANCELLED},
    BookingStatus.PAID: {
        BookingStatus.IN_PROGRESS,
        BookingStatus.CANCELLED,
        BookingStatus.REFUNDED,
    },
    BookingStatus.IN_PROGRESS: {
        BookingStatus.COMPLETED,
        BookingStatus.CANCELLED,
        BookingStatus.REFUNDED,
    },
}

INACTIVE_STATUSES = {BookingStatus.CANCELLED, BookingStatus.REFUNDED}

STATUS_MESSAGES = {
    BookingStatus.CONFIRMED: (
        "Booking Confirmed",
        "Your booking request has been confirmed by the creator",
    ),
    BookingStatus.IN_PROGRESS: (
        "Work Started",
        "The creator has started working on your project",
    ),
    BookingStatus.COMPLETED: (
        "Project Completed",
        "Your project has been completed and is ready for review",
    ),
}


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(BookingStatus(current), set())


@dataclass
class BookingRequest:
    business_id: str
    creator_id: str
    package_id: str
    start_date: str
    requirements: str = ""


@dataclass
class PackageDetails:
    name: str
    tier: str
    price: float
    currency: str
    delivery_days: int
    features: list[str] = field(default_factory=list)
    deliverables: list[str] = field(default_factory=list)


def _outstanding(booking: Booking) -> float:
    return booking.remaining_amount if booking.deposit_paid else booking.deposit_amount


class BookingService:
    def __init__(self, store: DocumentStore, notifier: Notifier):
        self.store = store
        self.notifier = notifier
        self.users = UserService(store)
        self.availability = AvailabilityService(store)

    def _active_bookings_on(self, creator_id: str, day: str) -> list[Booking]:
        rows = self.store.query(
            BOOKINGS_COLLECTION,
            [("creator_id", "==", creator_id), ("start_date", "==", day)],
        )
        bookings = [from_document(Booking, data, doc_id) for doc_id, data in rows]
        return [b for b in bookings if b.status not in INACTIVE_STATUSES]

    def is_booking_date_available(self, creator_id: str, day: str) -> bool:
        if not self.availability.is_date_available(creator_id, day):
            return False
        return not self._active_bookings_on(creator_id, day)

    def create_booking(
        self,
        request: BookingRequest,
        package: PackageDetails,
        now: Optional[datetime] = None,
    ) -> Booking:
        now = now or utcnow()
        if package.price < 0:
            raise ValidationError("Package price must not be negative")
        if package.delivery_days < 0:
            raise ValidationError("Delivery days must not be negative")
        if package.tier not in PACKAGE_TIERS:
            raise ValidationError(f"Unknown package tier: {package.tier}")
        start = parse_date(request.start_date)
        business = self.users.get_user(request.business_id)
        creator = self.users.get_user(request.creator_id)
        if not self.is_booking_date_available(request.creator_id, request.start_date):
            raise ConflictError(f"Creator is not available on {request.start_date}")

        deposit = round(package.price * DEPOSIT_RATE, 2)
        booking = Booking(
            booking_id="",
            business_id=business.user_id,
            business_name=business.name,
            creator_id=creator.user_id,
            creator_name=creator.name,
            package_id=request.package_id,
            package_name=package.name,
            package_tier=package.tier,
            start_date=request.start_date,
            delivery_date=(start + timedelta(days=package.delivery_days)).isoformat(),
            price=package.price,
            currency=package.currency,
            deposit_amount=deposit,
            remaining_amount=round(package.price - deposit, 2),
            requirements=request.requirements,
            deliverables=list(package.deliverables),
            features=list(package.features),
            created_at=now,
            updated_at=now,
        )
        insert_record(self.store, BOOKINGS_COLLECTION, booking)
        self.availability.mark_date_booked(
            creator.user_id, request.start_date, booking.booking_id, now=now
        )
        logger.info(
            "[%s] %s booked %s for %s",
            booking.booking_id,
            business.user_id,
            creator.user_id,
            request.start_date,
        )
        self.notifier.notify(
            creator.user_id,
            NotificationType.BOOKING_REQUEST,
            "New Booking Request",
            f"{business.name or 'A business'} has requested to book your services",
            action_link=f"/bookings/{booking.booking_id}",
            data={"booking_id": booking.booking_id},
            now=now,
        )
        return booking

    def get_booking(self, booking_id: str) -> Booking:
        data = self.store.get(BOOKINGS_COLLECTION, booking_id)
        if data is None:
            raise NotFoundError(f"Booking {booking_id} not found")
        return from_document(Booking, data, booking_id)

    def _transition(
        self,
        booking: Booking,
        target: BookingStatus,
        now: datetime,
        extra: Optional[dict] = None,
    ) -> None:
        if not can_transition(booking.status, target):
            raise ConflictError(f"Cannot move booking from {booking.status} to {target}")
        updates = {"status": target, "updated_at": now}
        if target == BookingStatus.CONFIRMED:
            updates["confirmed_at"] = now
        elif target == BookingStatus.COMPLETED:
            updates["completed_at"] = now
        elif target in INACTIVE_STATUSES:
            updates["cancelled_at"] = now
        updates.update(extra or {})
        self.store.update(BOOKINGS_COLLECTION, booking.booking_id, updates)
        logger.info("[%s] Booking %s -> %s", booking.booking_id, booking.status, target)

    def _update_status(
        self,
        booking_id: str,
        target: BookingStatus,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Booking:
        now = now or utcnow()
        booking = self.get_booking(booking_id)
        self._transition(booking, target, now, {"creator_notes": notes} if notes else None)
        title, message = STATUS_MESSAGES[target]
        self.notifier.notify(
            booking.business_id,
            NotificationType.BOOKING_UPDATE,
            title,
            message,
            action_link=f"/bookings/{booking_id}",
            data={"booking_id": booking_id, "status": str(target)},
            now=now,
        )
        return self.get_booking(booking_id)

    def confirm_booking(
        self, booking_id: str, notes: Optional[str] = None, now: Optional[datetime] = None
    ) -> Booking:
        return self._update_status(booking_id, BookingStatus.CONFIRMED, notes, now)

    def start_booking(self, booking_id: str, now: Optional[datetime] = None) -> Booking:
        return self._update_status(booking_id, BookingStatus.IN_PROGRESS, None, now)

    def complete_booking(
        self, booking_id: str, notes: Optional[str] = None, now: Optional[datetime] = None
    ) -> Booking:
        return self._update_status(booking_id, BookingStatus.COMPLETED, notes, now)

    def mark_deposit_paid(self, booking_id: str, now: Optional[datetime] = None) -> Booking:
        now = now or utcnow()
        booking = self.get_booking(booking_id)
        self._transition(
            booking,
            BookingStatus.PAID,
            now,
            {"deposit_paid": True, "deposit_paid_at": now},
        )
        data = {"booking_id": booking_id}
        self.notifier.notify(
            booking.creator_id,
            NotificationType.PAYMENT_RECEIVED,
            "Deposit Received",
            "Deposit payment has been received for your booking",
            action_link=f"/bookings/{booking_id}",
            data=data,
            now=now,
        )
        self.notifier.notify(
            booking.business_id,
            NotificationType.PAYMENT_RECEIVED,
            "Payment Confirmed",
            "Your deposit payment has been confirmed. The creator will begin work soon.",
            action_link=f"/bookings/{booking_id}",
            data=data,
            now=now,
        )
        return self.get_booking(booking_id)

    def mark_final_payment_paid(
        self, booking_id: str, now: Optional[datetime] = None
    ) -> Booking:
        now = now or utcnow()
        booking = self.get_booking(booking_id)
        if not booking.deposit_paid:
            raise ConflictError("Deposit has not been paid")
        if booking.final_payment_paid:
            raise ConflictError("Final payment already recorded")
        if booking.status in INACTIVE_STATUSES:
            raise ConflictError(f"Booking is {booking.status}")
        self.store.update(
            BOOKINGS_COLLECTION,
            booking_id,
            {"final_payment_paid": True, "final_payment_paid_at": now, "updated_at": now},
        )
        self.notifier.notify(
            booking.creator_id,
            NotificationType.PAYMENT_RECEIVED,
            "Final Payment Received",
            "The final payment for your booking has been received",
            action_link=f"/bookings/{booking_id}",
            data={"booking_id": booking_id},
            now=now,
        )
        return self.get_booking(booking_id)

    def cancel_booking(
        self,
        booking_id: str,
        reason: str,
        refund: bool = False,
        now: Optional[datetime] = None,
    ) -> Booking:
        now = now or utcnow()
        booking = self.get_booking(booking_id)
        refunded = refund and booking.deposit_paid
        target = BookingStatus.REFUNDED if refunded else BookingStatus.CANCELLED
        self._transition(booking, target, now, {"creator_notes": reason})
        self.availability.release_booked_date(booking.creator_id, booking.start_date)
        self.notifier.notify(
            booking.business_id,
            NotificationType.BOOKING_UPDATE,
            "Booking Cancelled - Refund Processed" if refunded else "Booking Cancelled",
            reason or "Your booking has been cancelled",
            action_link=f"/bookings/{booking_id}",
            data={"booking_id": booking_id, "refund": refunded},
            now=now,
        )
        return self.get_booking(booking_id)

    def list_creator_bookings(
        self, creator_id: str, status: Optional[BookingStatus] = None
    ) -> list[Booking]:
        return self._list("creator_id", creator_id, status)

    def list_business_bookings(
        self, business_id: str, status: Optional[BookingStatus] = None
    ) -> list[Booking]:
        return self._list("business_id", business_id, status)

    def _list(
        self, field_name: str, value: str, status: Optional[BookingStatus]
    ) -> list[Booking]:
        filters = [(field_name, "==", value)]
        if status:
            filters.append(("status", "==", status))
        rows = self.store.query(
            BOOKINGS_COLLECTION, filters, order_by="created_at", descending=True
        )
        return [from_document(Booking, data, doc_id) for doc_id, data in rows]

    def creator_booking_stats(self, creator_id: str, now: Optional[datetime] = None) -> dict:
        today = (ensure_utc(now) if now else utcnow()).date().isoformat()
        bookings = self.list_creator_bookings(creator_id)
        stats = {"total": len(bookings)}
        for status in BookingStatus:
            stats[status.value.lower()] = sum(1 for b in bookings if b.status == status)
        stats["total_earnings"] = sum(
            b.price
            for b in bookings
            if b.status in (BookingStatus.COMPLETED, BookingStatus.IN_PROGRESS)
        )
        stats["pending_payments"] = sum(
            _outstanding(b)
            for b in bookings
            if b.status in (BookingStatus.PAID, BookingStatus.IN_PROGRESS)
        )
        upcoming = [
            b
            for b in bookings
            if b.status in (BookingStatus.PAID, BookingStatus.CONFIRMED) and b.start_date > today
        ]
        stats["upcoming_bookings"] = sorted(upcoming, key=lambda b: b.start_date)[:5]
        return stats

    def business_booking_stats(self, business_id: str, now: Optional[datetime] = None) -> dict:
        today = (ensure_utc(now) if now else utcnow()).date().isoformat()
        bookings = self.list_business_bookings(business_id)
        active = [
            b for b in bookings if b.status in (BookingStatus.PAID, BookingStatus.IN_PROGRESS)
        ]
        upcoming = [b for b in active if b.delivery_date > today]
        return {
            "total": len(bookings),
            "pending": sum(1 for b in bookings if b.status == BookingStatus.PENDING),
            "confirmed": sum(1 for b in bookings if b.status == BookingStatus.CONFIRMED),
            "active": len(active),
            "completed": sum(1 for b in bookings if b.status == BookingStatus.COMPLETED),
            "cancelled": sum(1 for b in bookings if b.status == BookingStatus.CANCELLED),
            "total_spent": sum(
                b.price for b in bookings if b.status == BookingStatus.COMPLETED
            ),
            "pending_payments": sum(_outstanding(b) for b in active),
            "upcoming_deliveries": sorted(upcoming, key=lambda b: b.delivery_date)[:5],
        }

    def booking_calendar(self, creator_id: str, start: str, end: str) -> list[dict]:
        days = list(iter_dates(start, end))
        by_date = {}
        for booking in self.list_creator_bookings(creator_id):
            if booking.status not in INACTIVE_STATUSES:
                by_date.setdefault(booking.start_date, booking.booking_id)
        calendar = []
        for day in days:
            key = day.isoformat()
            booking_id = by_date.get(key)
            calendar.append(
                {
                    "date": key,
                    "status": "booked" if booking_id else "available",
                    "booking_id": booking_id,
                }
            )
        return calendar
