"""
Dependency wiring for the FastAPI app and the worker.
"""

from __future__ import annotations

import logging

import firebase_admin
from firebase_admin import firestore

from fluzio.config import get_settings
from fluzio.push import FcmPushSender, InMemoryPushSender, PushSender
from fluzio.queue import InMemoryNotificationQueue, NotificationQueue, RedisNotificationQueue
from fluzio.services.availability import AvailabilityService
from fluzio.services.bookings import BookingService
from fluzio.services.bring_a_friend import BringAFriendService
from fluzio.services.checkins import CheckInService
from fluzio.services.first_purchase import FirstPurchaseService
from fluzio.services.missions import MissionService
from fluzio.services.notifications import NotificationService, Notifier
from fluzio.services.points import PointsLedger
from fluzio.services.rewards import RewardService
from fluzio.services.users import UserService
from fluzio.storage import InMemoryStorageClient, S3StorageClient, StorageClient
from fluzio.store import (
    DocumentStore,
    FirestoreDocumentStore,
    InMemoryDocumentStore,
    SqlDocumentStore,
)

logger = logging.getLogger(__name__)

_document_store: DocumentStore | None = None
_storage_client: StorageClient | None = None
_queue_client: NotificationQueue | None = None
_push_sender: PushSender | None = None


def _firebase_app() -> firebase_admin.App:
    try:
        return firebase_admin.get_app()
    except ValueError:
        settings = get_settings()
        options = {"projectId": settings.firebase_project_id} if settings.firebase_project_id else None
        return firebase_admin.initialize_app(options=options)


def get_document_store() -> DocumentStore:
    """
    Return a singleton document store so state persists across requests.
    """
    global _document_store
    if _document_store:
        return _document_store

    settings = get_settings()
    if settings.use_in_memory_backends:
        _document_store = InMemoryDocumentStore()
    elif settings.use_firestore:
        _document_store = FirestoreDocumentStore(firestore.client(_firebase_app()))
    elif settings.database_url:
        _document_store = SqlDocumentStore(settings.database_url)
    else:
        _document_store = InMemoryDocumentStore()
    logger.info("Document store: %s", _document_store.__class__.__name__)
    return _document_store


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client:
        return _storage_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.s3_bucket:
        _storage_client = InMemoryStorageClient()
    else:
        _storage_client = S3StorageClient(
            bucket=settings.s3_bucket,
            region=settings.s3_region or "",
            endpoint=settings.s3_endpoint or "",
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
        )
    return _storage_client


def get_queue_client() -> NotificationQueue:
    """
    Return a singleton queue client for handing notifications to the push worker.
    """
    global _queue_client
    if _queue_client:
        return _queue_client

    settings = get_settings()
    if settings.redis_url and not settings.use_in_memory_backends:
        _queue_client = RedisNotificationQueue(
            url=settings.redis_url,
            queue_key=settings.redis_queue_key,
        )
    else:
        _queue_client = InMemoryNotificationQueue()
    return _queue_client


def get_push_sender() -> PushSender:
    global _push_sender
    if _push_sender:
        return _push_sender

    settings = get_settings()
    if settings.push_enabled and not settings.use_in_memory_backends:
        _firebase_app()
        _push_sender = FcmPushSender()
    else:
        _push_sender = InMemoryPushSender()
    return _push_sender


def get_notifier() -> Notifier:
    return Notifier(get_document_store(), get_queue_client())


def get_user_service() -> UserService:
    return UserService(get_document_store())


def get_points_ledger() -> PointsLedger:
    return PointsLedger(get_document_store())


def get_notification_service() -> NotificationService:
    return NotificationService(get_document_store())


def get_mission_service() -> MissionService:
    return MissionService(get_document_store(), get_notifier())


def get_check_in_service() -> CheckInService:
    return CheckInService(get_document_store(), get_notifier())


def get_reward_service() -> RewardService:
    return RewardService(get_document_store(), get_notifier())


def get_bring_a_friend_service() -> BringAFriendService:
    return BringAFriendService(get_document_store(), get_notifier())


def get_first_purchase_service() -> FirstPurchaseService:
    return FirstPurchaseService(get_document_store(), get_notifier())


def get_availability_service() -> AvailabilityService:
    return AvailabilityService(get_document_store())


def get_booking_service() -> BookingService:
    return BookingService(get_document_store(), get_notifier())
