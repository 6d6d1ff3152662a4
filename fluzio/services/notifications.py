"""
In-app notifications, per-user delivery preferences and quiet hours.

`Notifier` is what the other services use to tell a user something happened.
It writes the notification document and hands the id to the push queue.
Delivery problems are logged and never break the calling flow.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from fluzio.errors import NotFoundError, ValidationError
from fluzio.queue import NotificationQueue, PushJob
from fluzio.store import DocumentStore, insert_record
from shared.collections import (
    NOTIFICATION_PREFERENCES_COLLECTION,
    NOTIFICATIONS_COLLECTION,
)
from shared.documents import ensure_utc, from_document, to_document, utcnow
from shared.types import (
    ChannelPreferences,
    Notification,
    NotificationPreferences,
    NotificationType,
    QuietHours,
)

logger = logging.getLogger(__name__)

CATEGORIES = ("missions", "social", "rewards", "events", "achievements", "system")
CHANNELS = ("push", "email", "in_app")

CATEGORY_BY_TYPE = {
    NotificationType.MISSION_POSTED: "missions",
    NotificationType.MISSION_APPLICATION: "missions",
    NotificationType.MISSION_APPROVED: "missions",
    NotificationType.MISSION_REJECTED: "missions",
    NotificationType.POINTS_ACTIVITY: "rewards",
    NotificationType.REWARD_REDEEMED: "rewards",
    NotificationType.CHECK_IN: "rewards",
    NotificationType.BOOKING_REQUEST: "social",
    NotificationType.BOOKING_UPDATE: "social",
    NotificationType.PAYMENT_RECEIVED: "social",
    NotificationType.SYSTEM: "system",
}


def category_for(notification_type: NotificationType) -> str:
    return CATEGORY_BY_TYPE.get(NotificationType(notification_type), "system")


def default_preferences(user_id: str) -> NotificationPreferences:
    return NotificationPreferences(
        user_id=user_id,
        categories={name: ChannelPreferences() for name in CATEGORIES},
        quiet_hours=QuietHours(),
    )


def _parse_clock(value: str) -> tuple[int, int]:
    try:
        hours, minutes = value.split(":")
        parsed = int(hours), int(minutes)
    except (AttributeError, ValueError):
        raise ValidationError(f"Invalid time of day: {value!r}")
    if not (0 <= parsed[0] < 24 and 0 <= parsed[1] < 60):
        raise ValidationError(f"Invalid time of day: {value!r}")
    return parsed


def in_quiet_hours(quiet_hours: QuietHours, now: datetime) -> bool:
    """Inclusive at both ends. A start later than the end wraps past midnight."""
    if not quiet_hours.enabled:
        return False
    current = (now.hour, now.minute)
    start = _parse_clock(quiet_hours.start_time)
    end = _parse_clock(quiet_hours.end_time)
    if start > end:
        return current >= start or current <= end
    return start <= current <= end


def should_send(
    prefs: NotificationPreferences,
    category: str,
    channel: str,
    now: Optional[datetime] = None,
) -> bool:
    if channel not in CHANNELS:
        raise ValidationError(f"Unknown channel: {channel}")
    channel_prefs = prefs.categories.get(category, ChannelPreferences())
    if not getattr(channel_prefs, channel):
        return False
    if channel == "in_app":
        return True
    return not in_quiet_hours(prefs.quiet_hours, now or utcnow())


class NotificationService:
    def __init__(self, store: DocumentStore):
        self.store = store

    def get_notification(self, notification_id: str) -> Notification:
        data = self.store.get(NOTIFICATIONS_COLLECTION, notification_id)
        if data is None:
            raise NotFoundError(f"Notification {notification_id} not found")
        return from_document(Notification, data, notification_id)

    def list_notifications(
        self, user_id: str, unread_only: bool = False, limit: Optional[int] = None
    ) -> list[Notification]:
        filters = [("user_id", "==", user_id), ("deleted", "==", False)]
        if unread_only:
            filters.append(("is_read", "==", False))
        rows = self.store.query(
            NOTIFICATIONS_COLLECTION,
            filters,
            order_by="created_at",
            descending=True,
            limit=limit,
        )
        return [from_document(Notification, data, doc_id) for doc_id, data in rows]

    def unread_count(self, user_id: str) -> int:
        return len(self.list_notifications(user_id, unread_only=True))

    def mark_read(self, notification_id: str, now: Optional[datetime] = None) -> None:
        updated = self.store.update(
            NOTIFICATIONS_COLLECTION,
            notification_id,
            {"is_read": True, "read_at": now or utcnow()},
        )
        if not updated:
            raise NotFoundError(f"Notification {notification_id} not found")

    def mark_all_read(self, user_id: str, now: Optional[datetime] = None) -> int:
        now = now or utcnow()
        unread = self.list_notifications(user_id, unread_only=True)
        for notification in unread:
            self.store.update(
                NOTIFICATIONS_COLLECTION,
                notification.notification_id,
                {"is_read": True, "read_at": now},
            )
        return len(unread)

    def delete_notification(self, notification_id: str) -> None:
        if not self.store.update(
            NOTIFICATIONS_COLLECTION, notification_id, {"deleted": True}
        ):
            raise NotFoundError(f"Notification {notification_id} not found")

    def delete_all(self, user_id: str) -> int:
        notifications = self.list_notifications(user_id)
        for notification in notifications:
            self.store.update(
                NOTIFICATIONS_COLLECTION, notification.notification_id, {"deleted": True}
            )
        return len(notifications)

    def get_preferences(self, user_id: str) -> NotificationPreferences:
        data = self.store.get(NOTIFICATION_PREFERENCES_COLLECTION, user_id)
        if data is None:
            return default_preferences(user_id)
        prefs = from_document(NotificationPreferences, data, user_id)
        # Categories added after the document was written fall back to defaults.
        for name in CATEGORIES:
            prefs.categories.setdefault(name, ChannelPreferences())
        return prefs

    def update_preferences(
        self,
        user_id: str,
        categories: Optional[dict] = None,
        quiet_hours: Optional[dict] = None,
        now: Optional[datetime] = None,
    ) -> NotificationPreferences:
        prefs = self.get_preferences(user_id)
        for name, channels in (categories or {}).items():
            if name not in CATEGORIES:
                raise ValidationError(f"Unknown notification category: {name}")
            current = prefs.categories[name]
            for channel, enabled in channels.items():
                if channel not in CHANNELS:
                    raise ValidationError(f"Unknown channel: {channel}")
                setattr(current, channel, bool(enabled))
        if quiet_hours:
            for key in ("start_time", "end_time"):
                if key in quiet_hours:
                    _parse_clock(quiet_hours[key])
            prefs.quiet_hours = QuietHours(
                enabled=quiet_hours.get("enabled", prefs.quiet_hours.enabled),
                start_time=quiet_hours.get("start_time", prefs.quiet_hours.start_time),
                end_time=quiet_hours.get("end_time", prefs.quiet_hours.end_time),
            )
        prefs.updated_at = now or utcnow()
        self.store.set(NOTIFICATION_PREFERENCES_COLLECTION, user_id, to_document(prefs))
        return prefs


class Notifier:
    """Creates notifications on behalf of the other services."""

    def __init__(self, store: DocumentStore, queue: Optional[NotificationQueue] = None):
        self.store = store
        self.queue = queue
        self.notifications = NotificationService(store)

    def notify(
        self,
        user_id: str,
        notification_type: NotificationType,
        title: str,
        message: str,
        action_link: Optional[str] = None,
        data: Optional[dict] = None,
        now: Optional[datetime] = None,
    ) -> Optional[str]:
        """Returns the notification id, or None when it was suppressed or failed."""
        now = ensure_utc(now) if now else utcnow()
        try:
            prefs = self.notifications.get_preferences(user_id)
            if not should_send(prefs, category_for(notification_type), "in_app", now):
                logger.info(
                    "[%s] %s notification suppressed by preferences",
                    user_id,
                    notification_type,
                )
                return None
            notification = Notification(
                notification_id="",
                user_id=user_id,
                type=NotificationType(notification_type),
                title=title,
                message=message,
                action_link=action_link,
                data=data or {},
                created_at=now,
            )
            notification_id = insert_record(
                self.store, NOTIFICATIONS_COLLECTION, notification
            )
        except Exception:
            logger.exception("[%s] Failed to create %s notification", user_id, notification_type)
            return None

        if self.queue is not None:
            try:
                self.queue.enqueue(
                    PushJob(notification_id, user_id, notification.type, enqueued_at=now)
                )
            except Exception:
                logger.exception("[%s] Failed to enqueue push", notification_id)
        return notification_id
