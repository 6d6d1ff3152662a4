# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================

# Cloud functions for the Fluzio backend - reward sweeps, push delivery and
# the callable redemption endpoints used by the mobile apps.
#
# This file containing Python cloud functions must be named main.py.
# See https://cloud.google.com/run/docs/write-functions#python for more info.

# Standard library imports
from typing import Optional

# Third-party library imports
from firebase_admin import initialize_app, firestore
from firebase_functions import https_fn, logger, options, scheduler_fn
from firebase_functions.firestore_fn import (
    on_document_created,
    Event,
    DocumentSnapshot,
)

# Local application imports
from fluzio.errors import (
    ConflictError,
    FluzioError,
    ForbiddenError,
    NotFoundError,
    RateLimitError,
    ValidationError,
)
from fluzio.push import FcmPushSender, PushResult, PushSender, push_notification
from fluzio.services.notifications import Notifier
from fluzio.services.rewards import RewardService
from fluzio.store import DocumentStore, FirestoreDocumentStore
from fluzio.worker import SweepReport, run_sweeps
from shared.collections import NOTIFICATIONS_COLLECTION
from shared.documents import from_document, to_document
from shared.types import Notification

MAX_CODE_LENGTH = 128

# Most specific first: InsufficientPointsError is a ConflictError.
ERROR_CODES = [
    (NotFoundError, https_fn.FunctionsErrorCode.NOT_FOUND),
    (ValidationError, https_fn.FunctionsErrorCode.INVALID_ARGUMENT),
    (ForbiddenError, https_fn.FunctionsErrorCode.PERMISSION_DENIED),
    (RateLimitError, https_fn.FunctionsErrorCode.RESOURCE_EXHAUSTED),
    (ConflictError, https_fn.FunctionsErrorCode.FAILED_PRECONDITION),
]

initialize_app()


def _store() -> DocumentStore:
    return FirestoreDocumentStore(firestore.client())


def _to_https_error(exc: FluzioError) -> https_fn.HttpsError:
    for error_type, code in ERROR_CODES:
        if isinstance(exc, error_type):
            return https_fn.HttpsError(code, exc.message)
    return https_fn.HttpsError(https_fn.FunctionsErrorCode.INTERNAL, exc.message)


def _require(data: dict, *names: str) -> list:
    values = []
    for name in names:
        value = data.get(name)
        if not value or not isinstance(value, str):
            raise https_fn.HttpsError(
                https_fn.FunctionsErrorCode.INVALID_ARGUMENT,
                f"Must specify {name} parameter.",
            )
        values.append(value)
    return values


def _run_scheduled_sweeps(store: DocumentStore) -> SweepReport:
    report = run_sweeps(store, Notifier(store))
    for error in report.errors:
        logger.warn(f"Sweep error: {error}")
    logger.info(f"Sweeps finished: {report.to_dict()}")
    return report


@scheduler_fn.on_schedule(schedule="every 60 minutes", memory=options.MemoryOption.MB_512)
def scheduled_reward_sweep(event: scheduler_fn.ScheduledEvent) -> None:
    """
    Expires stale bring-a-friend sessions and pays out referral and
    first-purchase rewards whose verification period has ended.
    """
    _run_scheduled_sweeps(_store())


def _push_created_notification(
    store: DocumentStore,
    sender: PushSender,
    notification_id: str,
    data: Optional[dict],
) -> Optional[PushResult]:
    if not data:
        return None
    notification = from_document(Notification, data, notification_id)
    if notification.deleted:
        return None
    return push_notification(store, sender, notification)


@on_document_created(document=NOTIFICATIONS_COLLECTION + "/{notificationId}")
def on_notification_created(event: Event[DocumentSnapshot]) -> None:
    """Sends the push for every in-app notification the services create."""
    notification_id = event.params["notificationId"]
    data = event.data.to_dict() if event.data else None
    result = _push_created_notification(_store(), FcmPushSender(), notification_id, data)
    if result is not None and not result.success:
        logger.warn(f"Push for {notification_id} failed: {result.error_code}")


@https_fn.on_call(memory=options.MemoryOption.MB_512)
def redeem_reward(req: https_fn.CallableRequest) -> dict:
    """
    Redeems a reward for the calling user and returns the redemption,
    including the codes the business scans or types in.
    """
    user_id, reward_id = _require(req.data, "user_id", "reward_id")
    store = _store()
    try:
        redemption = RewardService(store, Notifier(store)).redeem_reward(user_id, reward_id)
    except FluzioError as e:
        raise _to_https_error(e)
    return to_document(redemption)


@https_fn.on_call(memory=options.MemoryOption.MB_512)
def validate_voucher(req: https_fn.CallableRequest) -> dict:
    code, business_id, validated_by = _require(
        req.data, "code", "business_id", "validated_by"
    )
    if len(code) > MAX_CODE_LENGTH:
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.INVALID_ARGUMENT,
            "Incorrect code length.",
        )
    store = _store()
    try:
        redemption = RewardService(store, Notifier(store)).validate_redemption_code(
            code, business_id, validated_by
        )
    except FluzioError as e:
        raise _to_https_error(e)
    return to_document(redemption)
