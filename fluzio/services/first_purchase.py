"""
First-purchase missions: a customer's first order at a business earns points
once the purchase is verified and the refund window has passed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

from fluzio.errors import ConflictError, NotFoundError, ValidationError
from fluzio.services.missions import MissionService
from fluzio.services.notifications import Notifier
from fluzio.services.points import PointsLedger
from fluzio.services.sweeps import SweepResult
from fluzio.services.users import UserService
from fluzio.store import DocumentStore, insert_record
from shared.collections import FIRST_PURCHASES_COLLECTION
from shared.documents import ensure_utc, from_document, utcnow
from shared.types import (
    FirstPurchase,
    NotificationType,
    PurchaseChannel,
    PurchaseStatus,
)

logger = logging.getLogger(__name__)

MIN_PURCHASE_AMOUNT = 10
REWARD_DELAY = timedelta(days=7)


class FirstPurchaseService:
    def __init__(self, store: DocumentStore, notifier: Notifier):
        self.store = store
        self.notifier = notifier
        self.users = UserService(store)
        self.missions = MissionService(store, notifier)
        self.ledger = PointsLedger(store)

    def get_purchase(self, purchase_id: str) -> FirstPurchase:
        data = self.store.get(FIRST_PURCHASES_COLLECTION, purchase_id)
        if data is None:
            raise NotFoundError(f"Purchase {purchase_id} not found")
        return from_document(FirstPurchase, data, purchase_id)

    def has_claimed_first_purchase(self, user_id: str, business_id: str) -> bool:
        rows = self.store.query(
            FIRST_PURCHASES_COLLECTION,
            [
                ("user_id", "==", user_id),
                ("business_id", "==", business_id),
                ("status", "in", [PurchaseStatus.VERIFIED, PurchaseStatus.COMPLETED]),
            ],
            limit=1,
        )
        return bool(rows)

    def submit_first_purchase(
        self,
        user_id: str,
        mission_id: str,
        purchase_amount: float,
        order_number: str,
        purchase_channel: PurchaseChannel = PurchaseChannel.IN_STORE,
        receipt_url: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> FirstPurchase:
        now = ensure_utc(now) if now else utcnow()
        mission = self.missions.get_mission(mission_id)
        user = self.users.get_user(user_id)
        if self.has_claimed_first_purchase(user_id, mission.business_id):
            raise ConflictError(
                "You have already claimed your first purchase reward at this business"
            )
        if purchase_amount < MIN_PURCHASE_AMOUNT:
            raise ValidationError(f"Minimum purchase amount is {MIN_PURCHASE_AMOUNT}")
        if not (order_number or "").strip():
            raise ValidationError("Order number is required")

        purchase = FirstPurchase(
            purchase_id="",
            mission_id=mission_id,
            business_id=mission.business_id,
            business_name=mission.business_name,
            user_id=user_id,
            user_name=user.name,
            purchase_amount=purchase_amount,
            order_number=order_number.strip(),
            purchase_channel=PurchaseChannel(purchase_channel),
            purchase_date=now,
            reward_points=mission.reward_points,
            receipt_url=receipt_url,
            created_at=now,
        )
        insert_record(self.store, FIRST_PURCHASES_COLLECTION, purchase)
        logger.info("[%s] First purchase submitted by %s", purchase.purchase_id, user_id)

        self.notifier.notify(
            mission.business_id,
            NotificationType.PAYMENT_RECEIVED,
            "New first purchase",
            f"{user.name} submitted order {purchase.order_number} "
            f"({purchase_amount:.2f}) for verification",
            data={"purchase_id": purchase.purchase_id},
            now=now,
        )
        self.notifier.notify(
            user_id,
            NotificationType.MISSION_APPLICATION,
            "Purchase submitted",
            f"Your purchase at {mission.business_name} is awaiting verification",
            action_link=f"/missions/{mission_id}",
            data={"purchase_id": purchase.purchase_id},
            now=now,
        )
        return purchase

    def _notify_verified(self, purchase: FirstPurchase, unlock: datetime, now: datetime) -> None:
        self.notifier.notify(
            purchase.user_id,
            NotificationType.MISSION_APPROVED,
            "Purchase verified",
            f"Your purchase at {purchase.business_name} is verified. "
            f"{purchase.reward_points} points unlock on {unlock.date().isoformat()}",
            data={"purchase_id": purchase.purchase_id},
            now=now,
        )

    def verify_purchase_via_webhook(
        self,
        order_number: str,
        business_id: str,
        purchase_amount: float,
        now: Optional[datetime] = None,
    ) -> FirstPurchase:
        now = ensure_utc(now) if now else utcnow()
        rows = self.store.query(
            FIRST_PURCHASES_COLLECTION,
            [
                ("order_number", "==", order_number),
                ("business_id", "==", business_id),
                ("status", "==", PurchaseStatus.PENDING),
            ],
            limit=1,
        )
        if not rows:
            raise NotFoundError("Purchase not found")
        purchase_id, data = rows[0]
        purchase = from_document(FirstPurchase, data, purchase_id)
        unlock = now + REWARD_DELAY
        self.store.update(
            FIRST_PURCHASES_COLLECTION,
            purchase_id,
            {
                "status": PurchaseStatus.VERIFIED,
                "webhook_verified": True,
                "purchase_amount": purchase_amount,
                "verified_at": now,
                "reward_unlock_date": unlock,
            },
        )
        logger.info("[%s] Purchase verified via webhook", purchase_id)
        self._notify_verified(purchase, unlock, now)
        return self.get_purchase(purchase_id)

    def confirm_purchase(self, purchase_id: str, now: Optional[datetime] = None) -> FirstPurchase:
        now = ensure_utc(now) if now else utcnow()
        purchase = self.get_purchase(purchase_id)
        if purchase.status != PurchaseStatus.PENDING:
            raise ConflictError(f"Cannot confirm purchase with status: {purchase.status}")
        unlock = now + REWARD_DELAY
        self.store.update(
            FIRST_PURCHASES_COLLECTION,
            purchase_id,
            {
                "status": PurchaseStatus.VERIFIED,
                "business_confirmed": True,
                "verified_at": now,
                "reward_unlock_date": unlock,
            },
        )
        logger.info("[%s] Purchase confirmed by business", purchase_id)
        self._notify_verified(purchase, unlock, now)
        return self.get_purchase(purchase_id)

    def reject_purchase(
        self, purchase_id: str, reason: str, now: Optional[datetime] = None
    ) -> FirstPurchase:
        purchase = self.get_purchase(purchase_id)
        if purchase.status not in (PurchaseStatus.PENDING, PurchaseStatus.VERIFIED):
            raise ConflictError(f"Cannot reject purchase with status: {purchase.status}")
        self.store.update(
            FIRST_PURCHASES_COLLECTION,
            purchase_id,
            {"status": PurchaseStatus.REJECTED, "rejection_reason": reason},
        )
        logger.info("[%s] Purchase rejected: %s", purchase_id, reason)
        self.notifier.notify(
            purchase.user_id,
            NotificationType.MISSION_REJECTED,
            "Purchase not verified",
            f"Your purchase at {purchase.business_name} was rejected: {reason}",
            data={"purchase_id": purchase_id},
            now=now,
        )
        return self.get_purchase(purchase_id)

    def mark_refunded(self, purchase_id: str) -> FirstPurchase:
        purchase = self.get_purchase(purchase_id)
        if purchase.status == PurchaseStatus.COMPLETED or purchase.points_awarded:
            raise ConflictError("Reward already paid for this purchase")
        if purchase.status != PurchaseStatus.VERIFIED:
            raise ConflictError(f"Cannot refund purchase with status: {purchase.status}")
        self.store.update(
            FIRST_PURCHASES_COLLECTION, purchase_id, {"status": PurchaseStatus.REFUNDED}
        )
        logger.info("[%s] Purchase refunded, reward cancelled", purchase_id)
        return self.get_purchase(purchase_id)

    def _complete(self, purchase: FirstPurchase, now: datetime) -> None:
        self.users.get_user(purchase.user_id)
        self.ledger.award(
            purchase.user_id,
            purchase.reward_points,
            source="first_purchase",
            description=f"First purchase at {purchase.business_name}",
            metadata={"purchase_id": purchase.purchase_id, "mission_id": purchase.mission_id},
            now=now,
        )
        self.store.update(
            FIRST_PURCHASES_COLLECTION,
            purchase.purchase_id,
            {
                "status": PurchaseStatus.COMPLETED,
                "points_awarded": True,
                "completed_at": now,
            },
        )
        self.notifier.notify(
            purchase.user_id,
            NotificationType.POINTS_ACTIVITY,
            "Reward unlocked!",
            f"You earned {purchase.reward_points} points for your first purchase "
            f"at {purchase.business_name}!",
            action_link="/wallet",
            data={"purchase_id": purchase.purchase_id},
            now=now,
        )

    def unlock_first_purchase_rewards(self, now: Optional[datetime] = None) -> SweepResult:
        now = ensure_utc(now) if now else utcnow()
        rows = self.store.query(
            FIRST_PURCHASES_COLLECTION,
            [
                ("status", "==", PurchaseStatus.VERIFIED),
                ("points_awarded", "==", False),
                ("reward_unlock_date", "<=", now),
            ],
        )
        logger.info("Processing %d pending first-purchase rewards", len(rows))
        result = SweepResult()
        for doc_id, data in rows:
            try:
                self._complete(from_document(FirstPurchase, data, doc_id), now)
                result.processed += 1
            except Exception as exc:
                logger.exception("[%s] Failed to unlock first-purchase reward", doc_id)
                result.record_error(doc_id, exc)
        return result

    def list_user_purchases(self, user_id: str) -> list[FirstPurchase]:
        rows = self.store.query(
            FIRST_PURCHASES_COLLECTION,
            [("user_id", "==", user_id)],
            order_by="created_at",
            descending=True,
        )
        return [from_document(FirstPurchase, data, doc_id) for doc_id, data in rows]

    def list_business_purchases(
        self, business_id: str, status: Optional[PurchaseStatus] = None
    ) -> list[FirstPurchase]:
        filters = [("business_id", "==", business_id)]
        if status:
            filters.append(("status", "==", status))
        rows = self.store.query(
            FIRST_PURCHASES_COLLECTION, filters, order_by="created_at", descending=True
        )
        return [from_document(FirstPurchase, data, doc_id) for doc_id, data in rows]

    def get_purchase_by_order_number(
        self, order_number: str, business_id: str
    ) -> Optional[FirstPurchase]:
        rows = self.store.query(
            FIRST_PURCHASES_COLLECTION,
            [("order_number", "==", order_number), ("business_id", "==", business_id)],
            limit=1,
        )
        if not rows:
            return None
        doc_id, data = rows[0]
        return from_document(FirstPurchase, data, doc_id)
