"""
Push delivery for queued notifications: FCM via the Firebase Admin SDK, plus
an in-memory sender for tests/dev.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional, Protocol

from firebase_admin import messaging

from fluzio.queue import NotificationQueue
from fluzio.services.notifications import (
    NotificationService,
    category_for,
    should_send,
)
from fluzio.store import DocumentStore
from shared.collections import NOTIFICATIONS_COLLECTION, USERS_COLLECTION
from shared.documents import from_document, utcnow
from shared.types import Notification

logger = logging.getLogger(__name__)


@dataclass
class PushResult:
    """Result of a push notification attempt"""

    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None


class PushSender(Protocol):
    def send(
        self, token: str, title: str, body: str, data: Dict[str, str]
    ) -> PushResult:
        ...


@dataclass
class InMemoryPushSender:
    """Records messages instead of sending them."""

    sent: list[dict] = field(default_factory=list)

    def send(
        self, token: str, title: str, body: str, data: Dict[str, str]
    ) -> PushResult:
        self.sent.append({"token": token, "title": title, "body": body, "data": data})
        return PushResult(success=True, message_id=f"in-memory-{len(self.sent)}")

    def reset(self) -> None:
        self.sent.clear()


class FcmPushSender:
    """
    Firebase Cloud Messaging sender. Requires an initialized default
    firebase_admin app.
    """

    def send(
        self, token: str, title: str, body: str, data: Dict[str, str]
    ) -> PushResult:
        message = messaging.Message(
            token=token,
            notification=messaging.Notification(title=title, body=body),
            data={key: str(value) for key, value in data.items()},
        )
        try:
            message_id = messaging.send(message)
        except messaging.UnregisteredError:
            logger.warning("[FCM] Token unregistered: %s...", token[:20])
            return PushResult(
                success=False, error="Token unregistered", error_code="UNREGISTERED"
            )
        except messaging.SenderIdMismatchError:
            logger.error("[FCM] Sender ID mismatch")
            return PushResult(
                success=False,
                error="Sender ID mismatch",
                error_code="SENDER_ID_MISMATCH",
            )
        except Exception as exc:
            logger.error("[FCM] Send error: %s", exc)
            return PushResult(success=False, error=str(exc), error_code="exception")
        logger.info("[FCM] Message sent: %s", message_id)
        return PushResult(success=True, message_id=message_id)


def push_notification(
    store: DocumentStore,
    sender: PushSender,
    notification: Notification,
    now: Optional[datetime] = None,
) -> Optional[PushResult]:
    """
    Send one notification to its owner's device. Returns None when the push
    is skipped (no device token, or the user's preferences forbid it).
    """
    user = store.get(USERS_COLLECTION, notification.user_id)
    token = (user or {}).get("fcm_token")
    if not token:
        logger.info("[%s] No device token, skipping push", notification.notification_id)
        return None
    prefs = NotificationService(store).get_preferences(notification.user_id)
    if not should_send(prefs, category_for(notification.type), "push", now or utcnow()):
        logger.info("[%s] Push suppressed by preferences", notification.notification_id)
        return None
    data = {
        "notification_id": notification.notification_id,
        "type": str(notification.type),
    }
    if notification.action_link:
        data["action_link"] = notification.action_link
    result = sender.send(token, notification.title, notification.message, data)
    if not result.success:
        logger.warning(
            "[%s] Push failed: %s (%s)",
            notification.notification_id,
            result.error,
            result.error_code,
        )
    return result


def dispatch_next(
    store: DocumentStore,
    queue: NotificationQueue,
    sender: PushSender,
    now: Optional[datetime] = None,
    *,
    block: bool = False,
    timeout: Optional[int] = None,
) -> bool:
    """
    Pop one push job from the queue and deliver it. Returns True if a job
    was consumed, whether or not a push went out.
    """
    job = queue.dequeue(block=block, timeout=timeout)
    if job is None:
        return False
    notification_id = job.notification_id
    data = store.get(NOTIFICATIONS_COLLECTION, notification_id)
    if data is None:
        logger.warning(
            "Received notification_id %s from queue but no document found",
            notification_id,
        )
        return True
    notification = from_document(Notification, data, notification_id)
    if notification.deleted:
        logger.info("[%s] Notification deleted, skipping push", notification_id)
        return True
    if notification.user_id != job.user_id:
        logger.warning(
            "[%s] Push job for %s does not match recipient %s, skipping",
            notification_id,
            job.user_id,
            notification.user_id,
        )
        return True
    push_notification(store, sender, notification, now)
    return True
