"""
Creator availability calendar.

A date resolves in three layers: an explicit block for that date, then a
recurring weekly pattern covering it, then the creator's default setting.
"""

from __future__ import annotations

import logging
import re
from datetime import date, datetime, timedelta
from typing import Iterator, Optional

from fluzio.errors import NotFoundError, ValidationError
from fluzio.store import DocumentStore, insert_record
from shared.collections import (
    AVAILABILITY_BLOCKS_COLLECTION,
    AVAILABILITY_SETTINGS_COLLECTION,
    RECURRING_AVAILABILITY_COLLECTION,
)
from shared.documents import ensure_utc, from_document, to_document, utcnow
from shared.types import (
    AvailabilityBlock,
    AvailabilityRange,
    AvailabilitySettings,
    AvailabilityStatus,
    RecurringAvailability,
)

logger = logging.getLogger(__name__)

MAX_RANGE_DAYS = 366
MAX_ADVANCE_BOOKING_DAYS = 365

SETTINGS_UPDATABLE_FIELDS = {
    "timezone",
    "default_available",
    "lead_time_hours",
    "buffer_days",
    "max_advance_booking_days",
}

_DATE_PATTERN = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")


def parse_date(value: str) -> date:
    # Blocks and bookings are keyed by this exact spelling.
    if not isinstance(value, str) or not _DATE_PATTERN.fullmatch(value):
        raise ValidationError(f"Invalid date: {value!r}, expected YYYY-MM-DD")
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValidationError(f"Invalid date: {value!r}, expected YYYY-MM-DD")


def iter_dates(start: str, end: str) -> Iterator[date]:
    start_day = parse_date(start)
    end_day = parse_date(end)
    if start_day > end_day:
        raise ValidationError("Start date must not be after end date")
    if (end_day - start_day).days >= MAX_RANGE_DAYS:
        raise ValidationError(f"Date ranges are limited to {MAX_RANGE_DAYS} days")
    day = start_day
    while day <= end_day:
        yield day
        day += timedelta(days=1)


def sunday_based_weekday(day: date) -> int:
    """0 = Sunday ... 6 = Saturday."""
    return (day.weekday() + 1) % 7


def block_id(creator_id: str, day: str) -> str:
    return f"{creator_id}_{day}"


class AvailabilityService:
    def __init__(self, store: DocumentStore):
        self.store = store

    # Date overrides

    def set_date_availability(
        self,
        creator_id: str,
        day: str,
        status: AvailabilityStatus,
        reason: Optional[str] = None,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> AvailabilityBlock:
        parse_date(day)
        now = now or utcnow()
        key = block_id(creator_id, day)
        existing = self.store.get(AVAILABILITY_BLOCKS_COLLECTION, key)
        block = AvailabilityBlock(
            block_id=key,
            creator_id=creator_id,
            date=day,
            status=AvailabilityStatus(status),
            reason=reason,
            notes=notes,
            booking_id=(existing or {}).get("booking_id"),
            created_at=now,
            updated_at=now,
        )
        if existing and existing.get("created_at"):
            block.created_at = from_document(AvailabilityBlock, existing, key).created_at
        self.store.set(AVAILABILITY_BLOCKS_COLLECTION, key, to_document(block))
        return block

    def set_bulk_availability(
        self,
        creator_id: str,
        days: list[str],
        status: AvailabilityStatus,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> list[AvailabilityBlock]:
        for day in days:
            parse_date(day)
        blocks = [
            self.set_date_availability(creator_id, day, status, reason=reason, now=now)
            for day in days
        ]
        logger.info("[%s] Set %d dates to %s", creator_id, len(blocks), status)
        return blocks

    def remove_availability_override(self, creator_id: str, day: str) -> None:
        if not self.store.delete(AVAILABILITY_BLOCKS_COLLECTION, block_id(creator_id, day)):
            raise NotFoundError(f"No availability override for {day}")

    def list_availability_blocks(self, creator_id: str) -> list[AvailabilityBlock]:
        rows = self.store.query(
            AVAILABILITY_BLOCKS_COLLECTION,
            [("creator_id", "==", creator_id)],
            order_by="date",
        )
        return [from_document(AvailabilityBlock, data, doc_id) for doc_id, data in rows]

    # Recurring patterns

    def set_recurring_availability(
        self,
        creator_id: str,
        day_of_week: int,
        is_available: bool,
        start_date: str,
        end_date: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> RecurringAvailability:
        if not 0 <= day_of_week <= 6:
            raise ValidationError("day_of_week uses 0 (Sunday) to 6 (Saturday)")
        start = parse_date(start_date)
        if end_date is not None and parse_date(end_date) < start:
            raise ValidationError("Pattern end date must not be before its start date")
        pattern = RecurringAvailability(
            pattern_id="",
            creator_id=creator_id,
            day_of_week=day_of_week,
            is_available=is_available,
            start_date=start_date,
            end_date=end_date,
            created_at=now or utcnow(),
        )
        insert_record(self.store, RECURRING_AVAILABILITY_COLLECTION, pattern)
        return pattern

    def list_recurring_availability(self, creator_id: str) -> list[RecurringAvailability]:
        rows = self.store.query(
            RECURRING_AVAILABILITY_COLLECTION,
            [("creator_id", "==", creator_id)],
            order_by="created_at",
        )
        return [from_document(RecurringAvailability, data, doc_id) for doc_id, data in rows]

    def delete_recurring_availability(self, pattern_id: str) -> None:
        if not self.store.delete(RECURRING_AVAILABILITY_COLLECTION, pattern_id):
            raise NotFoundError(f"Recurring pattern {pattern_id} not found")

    # Settings

    def get_settings(self, creator_id: str) -> AvailabilitySettings:
        data = self.store.get(AVAILABILITY_SETTINGS_COLLECTION, creator_id)
        if data is None:
            return AvailabilitySettings(creator_id=creator_id)
        return from_document(AvailabilitySettings, data, creator_id)

    def update_settings(
        self, creator_id: str, changes: dict, now: Optional[datetime] = None
    ) -> AvailabilitySettings:
        unknown = set(changes) - SETTINGS_UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown settings: {', '.join(sorted(unknown))}")
        for key in ("lead_time_hours", "buffer_days", "max_advance_booking_days"):
            if key in changes and changes[key] < 0:
                raise ValidationError(f"{key} must not be negative")
        if changes.get("max_advance_booking_days", 0) > MAX_ADVANCE_BOOKING_DAYS:
            raise ValidationError(
                f"max_advance_booking_days must be at most {MAX_ADVANCE_BOOKING_DAYS}"
            )
        settings = self.get_settings(creator_id)
        for key, value in changes.items():
            setattr(settings, key, value)
        settings.updated_at = now or utcnow()
        self.store.set(AVAILABILITY_SETTINGS_COLLECTION, creator_id, to_document(settings))
        return settings

    # Resolution

    def get_availability_range(self, creator_id: str, start: str, end: str) -> AvailabilityRange:
        days = list(iter_dates(start, end))
        rows = self.store.query(
            AVAILABILITY_BLOCKS_COLLECTION,
            [
                ("creator_id", "==", creator_id),
                ("date", ">=", start),
                ("date", "<=", end),
            ],
        )
        blocks = {data["date"]: AvailabilityStatus(data["status"]) for _, data in rows}
        patterns = self.list_recurring_availability(creator_id)
        settings = self.get_settings(creator_id)

        result = AvailabilityRange(start_date=start, end_date=end)
        for day in days:
            key = day.isoformat()
            status = blocks.get(key)
            if status is None:
                status = self._resolve_without_block(day, patterns, settings)
            if status == AvailabilityStatus.AVAILABLE:
                result.available_dates.append(key)
            elif status == AvailabilityStatus.BOOKED:
                result.booked_dates.append(key)
            else:
                result.unavailable_dates.append(key)
        return result

    @staticmethod
    def _resolve_without_block(
        day: date,
        patterns: list[RecurringAvailability],
        settings: AvailabilitySettings,
    ) -> AvailabilityStatus:
        weekday = sunday_based_weekday(day)
        for pattern in patterns:
            if pattern.day_of_week != weekday:
                continue
            if day < parse_date(pattern.start_date):
                continue
            if pattern.end_date and day > parse_date(pattern.end_date):
                continue
            return AvailabilityStatus.AVAILABLE if pattern.is_available else AvailabilityStatus.UNAVAILABLE
        if settings.default_available:
            return AvailabilityStatus.AVAILABLE
        return AvailabilityStatus.UNAVAILABLE

    def is_date_available(self, creator_id: str, day: str) -> bool:
        return day in self.get_availability_range(creator_id, day, day).available_dates

    def mark_date_booked(
        self, creator_id: str, day: str, booking_id: str, now: Optional[datetime] = None
    ) -> AvailabilityBlock:
        parse_date(day)
        now = now or utcnow()
        key = block_id(creator_id, day)
        block = AvailabilityBlock(
            block_id=key,
            creator_id=creator_id,
            date=day,
            status=AvailabilityStatus.BOOKED,
            booking_id=booking_id,
            created_at=now,
            updated_at=now,
        )
        self.store.set(AVAILABILITY_BLOCKS_COLLECTION, key, to_document(block))
        logger.info("[%s] %s booked by %s", creator_id, day, booking_id)
        return block

    def release_booked_date(self, creator_id: str, day: str) -> bool:
        key = block_id(creator_id, day)
        data = self.store.get(AVAILABILITY_BLOCKS_COLLECTION, key)
        if not data or data.get("status") != AvailabilityStatus.BOOKED.value:
            return False
        self.store.delete(AVAILABILITY_BLOCKS_COLLECTION, key)
        logger.info("[%s] Released booked date %s", creator_id, day)
        return True

    def next_available_dates(
        self, creator_id: str, count: int = 5, now: Optional[datetime] = None
    ) -> list[str]:
        now = ensure_utc(now) if now else utcnow()
        settings = self.get_settings(creator_id)
        first = (now + timedelta(hours=settings.lead_time_hours)).date()
        last = (now + timedelta(days=settings.max_advance_booking_days)).date()
        if first > last:
            return []
        available = self.get_availability_range(
            creator_id, first.isoformat(), last.isoformat()
        ).available_dates
        return available[:count]

    def availability_percentage(self, creator_id: str, start: str, end: str) -> float:
        result = self.get_availability_range(creator_id, start, end)
        total = (
            len(result.available_dates)
            + len(result.unavailable_dates)
            + len(result.booked_dates)
        )
        if total == 0:
            return 0.0
        return len(result.available_dates) / total * 100
