"""
Background worker: periodic reward sweeps plus push delivery for queued
notifications.

Run with `python -m fluzio.worker` under systemd/supervisor.
"""

from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Optional

from fluzio.config import get_settings
from fluzio.dependencies import (
    get_document_store,
    get_notifier,
    get_push_sender,
    get_queue_client,
    get_storage_client,
)
from fluzio.push import PushSender, dispatch_next
from fluzio.queue import NotificationQueue
from fluzio.services.bring_a_friend import BringAFriendService
from fluzio.services.first_purchase import FirstPurchaseService
from fluzio.services.notifications import Notifier
from fluzio.services.sweeps import SweepResult
from fluzio.storage import StorageClient
from fluzio.store import DocumentStore
from shared.documents import ensure_utc, to_timestamp, utcnow

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    ran_at: datetime
    expired_sessions: SweepResult = field(default_factory=SweepResult)
    bring_a_friend_rewards: SweepResult = field(default_factory=SweepResult)
    first_purchase_rewards: SweepResult = field(default_factory=SweepResult)

    @property
    def errors(self) -> list[str]:
        return (
            self.expired_sessions.errors
            + self.bring_a_friend_rewards.errors
            + self.first_purchase_rewards.errors
        )

    def to_dict(self) -> dict:
        payload = asdict(self)
        payload["ran_at"] = to_timestamp(self.ran_at)
        return payload


def run_sweeps(
    store: DocumentStore,
    notifier: Notifier,
    now: Optional[datetime] = None,
) -> SweepReport:
    """Run every periodic pass once, in order."""
    now = ensure_utc(now) if now else utcnow()
    bring_a_friend = BringAFriendService(store, notifier)
    first_purchase = FirstPurchaseService(store, notifier)
    report = SweepReport(ran_at=now)
    report.expired_sessions = bring_a_friend.expire_stale_sessions(now)
    report.bring_a_friend_rewards = bring_a_friend.unlock_pending_rewards(now)
    report.first_purchase_rewards = first_purchase.unlock_first_purchase_rewards(now)
    logger.info(
        "Sweeps done: %d sessions expired, %d referral rewards, %d first-purchase rewards, %d errors",
        report.expired_sessions.processed,
        report.bring_a_friend_rewards.processed,
        report.first_purchase_rewards.processed,
        len(report.errors),
    )
    return report


def archive_report(storage: StorageClient, report: SweepReport) -> str:
    path = f"sweeps/{report.ran_at.strftime('%Y/%m/%d/%H%M%S')}.json"
    storage.upload_json(path, report.to_dict())
    return path


def process_next(
    *,
    store: Optional[DocumentStore] = None,
    queue: Optional[NotificationQueue] = None,
    sender: Optional[PushSender] = None,
    block: bool = True,
    timeout: Optional[int] = None,
) -> bool:
    """
    Dispatch one queued notification. Returns True if a queue entry was consumed.
    """
    store = store or get_document_store()
    queue = queue or get_queue_client()
    sender = sender or get_push_sender()
    return dispatch_next(store, queue, sender, block=block, timeout=timeout)


def run_loop(poll_interval_seconds: float = 2.0) -> None:
    """
    Blocks on the notification queue and runs the sweeps every
    sweep_interval_seconds.
    """
    settings = get_settings()
    store = get_document_store()
    queue = get_queue_client()
    sender = get_push_sender()
    notifier = get_notifier()
    storage = get_storage_client()
    last_sweep = 0.0
    while True:
        if time.monotonic() - last_sweep >= settings.sweep_interval_seconds:
            try:
                report = run_sweeps(store, notifier)
                archive_report(storage, report)
            except Exception:
                logger.exception("Sweep run failed")
            last_sweep = time.monotonic()
        try:
            processed = process_next(
                store=store,
                queue=queue,
                sender=sender,
                block=True,
                timeout=int(poll_interval_seconds),
            )
        except Exception:
            logger.exception("Push dispatch failed")
            processed = False
        if not processed:
            time.sleep(poll_interval_seconds)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    run_loop()
