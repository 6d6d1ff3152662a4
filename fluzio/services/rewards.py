"""
Business rewards, redemption eligibility and one-time redemption codes.

Redeeming moves the points from the customer to the business that offered the
reward. Cancelling a pending redemption reverses both sides.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
import string
import uuid
from datetime import datetime, timedelta
from typing import Optional

from fluzio.errors import (
    ConflictError,
    ForbiddenError,
    InsufficientPointsError,
    NotFoundError,
    RateLimitError,
    ValidationError,
)
from fluzio.services.notifications import Notifier
from fluzio.services.points import PointsLedger
from fluzio.services.users import UserService
from fluzio.store import DocumentStore, insert_record
from shared.collections import REDEMPTIONS_COLLECTION, REWARDS_COLLECTION
from shared.documents import ensure_utc, from_document, to_document, utcnow
from shared.types import (
    NotificationType,
    Redemption,
    RedemptionFrequency,
    RedemptionStatus,
    Reward,
    ValidationType,
)

logger = logging.getLogger(__name__)

DAY_NAMES = ["", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]

REWARD_UPDATABLE_FIELDS = {
    "title",
    "description",
    "category",
    "points_cost",
    "active",
    "unlimited",
    "total_available",
    "expires_at",
    "valid_days",
    "valid_time_start",
    "valid_time_end",
    "min_points_required",
    "level_required",
    "redemption_frequency",
    "validation_type",
    "expiry_days",
}

REWARD_NULLABLE_FIELDS = {
    "expires_at",
    "valid_time_start",
    "valid_time_end",
    "min_points_required",
    "level_required",
}

_BASE36 = string.digits + string.ascii_uppercase


def to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


def _millis(now: datetime) -> int:
    return int(ensure_utc(now).timestamp() * 1000)


def _random_token(length: int) -> str:
    return "".join(secrets.choice(_BASE36) for _ in range(length))


def _sha256(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def generate_coupon_code(business_name: str, now: datetime) -> str:
    prefix = "".join(ch for ch in business_name.upper() if ch.isalnum())[:3] or "FLZ"
    return f"{prefix}-{to_base36(_millis(now))}-{_random_token(4)}"


def generate_qr_code(redemption_id: str, user_id: str, business_id: str, now: datetime) -> str:
    millis = _millis(now)
    digest = _sha256(f"{redemption_id}:{user_id}:{business_id}:{millis}:{_random_token(13)}")
    return f"REDEEM-{digest[:16].upper()}-{millis}"


def generate_alphanumeric_code(redemption_id: str, now: datetime) -> str:
    return f"{redemption_id[:4].upper()}-{_random_token(6)}-{to_base36(_millis(now))}"


def generate_validation_token(redemption_id: str, code: str, now: datetime) -> str:
    return _sha256(f"{redemption_id}:{code}:{_millis(now)}")


def is_sold_out(reward: Reward) -> bool:
    return not reward.unlimited and reward.claimed >= reward.total_available


def is_reward_expired(reward: Reward, now: datetime) -> bool:
    return reward.expires_at is not None and ensure_utc(now) > reward.expires_at


def _validate_reward_fields(fields: dict) -> None:
    if "title" in fields and not (fields["title"] or "").strip():
        raise ValidationError("Reward title is required")
    if "points_cost" in fields and fields["points_cost"] <= 0:
        raise ValidationError("Points cost must be positive")
    for day in fields.get("valid_days") or []:
        if not 1 <= day <= 7:
            raise ValidationError("valid_days uses 1 (Monday) to 7 (Sunday)")
    if fields.get("expiry_days") is not None and fields["expiry_days"] <= 0:
        raise ValidationError("expiry_days must be positive")


class RewardService:
    def __init__(self, store: DocumentStore, notifier: Notifier):
        self.store = store
        self.notifier = notifier
        self.users = UserService(store)
        self.ledger = PointsLedger(store)

    # Rewards

    def create_reward(
        self,
        business_id: str,
        title: str,
        points_cost: int,
        now: Optional[datetime] = None,
        **options,
    ) -> Reward:
        unknown = set(options) - REWARD_UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown reward fields: {', '.join(sorted(unknown))}")
        _validate_reward_fields({"title": title, "points_cost": points_cost, **options})
        business = self.users.get_user(business_id)
        now = now or utcnow()
        reward = Reward(
            reward_id="",
            business_id=business_id,
            business_name=business.name,
            title=title.strip(),
            points_cost=points_cost,
            created_at=now,
            updated_at=now,
        )
        # Without a stock count the reward never sells out.
        reward.unlimited = options.get("total_available") is None
        for key, value in options.items():
            if value is not None:
                setattr(reward, key, value)
        reward.redemption_frequency = RedemptionFrequency(reward.redemption_frequency)
        reward.validation_type = ValidationType(reward.validation_type)
        if reward.expires_at is not None:
            reward.expires_at = ensure_utc(reward.expires_at)
        insert_record(self.store, REWARDS_COLLECTION, reward)
        logger.info("[%s] Reward created by %s", reward.reward_id, business_id)
        return reward

    def get_reward(self, reward_id: str) -> Reward:
        data = self.store.get(REWARDS_COLLECTION, reward_id)
        if data is None:
            raise NotFoundError(f"Reward {reward_id} not found")
        return from_document(Reward, data, reward_id)

    def update_reward(
        self, reward_id: str, changes: dict, now: Optional[datetime] = None
    ) -> Reward:
        unknown = set(changes) - REWARD_UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")
        nulls = sorted(
            key for key, value in changes.items()
            if value is None and key not in REWARD_NULLABLE_FIELDS
        )
        if nulls:
            raise ValidationError(f"Fields cannot be null: {', '.join(nulls)}")
        _validate_reward_fields(changes)
        self.get_reward(reward_id)
        updates = dict(changes)
        # Setting a stock count makes the reward limited.
        if "total_available" in updates and "unlimited" not in updates:
            updates["unlimited"] = False
        updates["updated_at"] = now or utcnow()
        self.store.update(REWARDS_COLLECTION, reward_id, updates)
        return self.get_reward(reward_id)

    def delete_reward(self, reward_id: str) -> None:
        if not self.store.delete(REWARDS_COLLECTION, reward_id):
            raise NotFoundError(f"Reward {reward_id} not found")

    def list_business_rewards(self, business_id: str) -> list[Reward]:
        rows = self.store.query(
            REWARDS_COLLECTION,
            [("business_id", "==", business_id)],
            order_by="created_at",
            descending=True,
        )
        return [from_document(Reward, data, doc_id) for doc_id, data in rows]

    def list_active_rewards(
        self, business_id: Optional[str] = None, now: Optional[datetime] = None
    ) -> list[Reward]:
        now = now or utcnow()
        filters = [("active", "==", True)]
        if business_id:
            filters.append(("business_id", "==", business_id))
        rows = self.store.query(REWARDS_COLLECTION, filters, order_by="points_cost")
        rewards = [from_document(Reward, data, doc_id) for doc_id, data in rows]
        return [r for r in rewards if not is_reward_expired(r, now) and not is_sold_out(r)]

    # Redemptions

    def _check_frequency(self, reward: Reward, user_id: str, now: datetime) -> None:
        frequency = reward.redemption_frequency
        if frequency == RedemptionFrequency.UNLIMITED:
            return
        rows = self.store.query(
            REDEMPTIONS_COLLECTION,
            [("user_id", "==", user_id), ("reward_id", "==", reward.reward_id)],
        )
        previous = [
            from_document(Redemption, data, doc_id)
            for doc_id, data in rows
            if data.get("status") != RedemptionStatus.CANCELLED.value
        ]
        if frequency == RedemptionFrequency.ONCE:
            window_start = None
            message = "You have already redeemed this reward"
        elif frequency == RedemptionFrequency.ONCE_PER_DAY:
            window_start = now - timedelta(days=1)
            message = "You can redeem this reward once per day"
        else:
            window_start = now - timedelta(days=7)
            message = "You can redeem this reward once per week"
        for redemption in previous:
            if window_start is None or (
                redemption.redeemed_at and redemption.redeemed_at >= window_start
            ):
                raise RateLimitError(message)

    def redeem_reward(
        self, user_id: str, reward_id: str, now: Optional[datetime] = None
    ) -> Redemption:
        now = ensure_utc(now) if now else utcnow()
        reward = self.get_reward(reward_id)
        user = self.users.get_user(user_id)

        if not reward.active:
            raise ValidationError("Reward is no longer active")
        if is_sold_out(reward):
            raise ValidationError("Reward is no longer available")
        if is_reward_expired(reward, now):
            raise ValidationError("This reward has expired")
        if reward.valid_days and now.isoweekday() not in reward.valid_days:
            names = ", ".join(DAY_NAMES[d] for d in reward.valid_days)
            raise ValidationError(f"This reward is only valid on: {names}")
        if reward.valid_time_start and reward.valid_time_end:
            current = now.strftime("%H:%M")
            if current < reward.valid_time_start or current > reward.valid_time_end:
                raise ValidationError(
                    f"This reward is only valid between {reward.valid_time_start} "
                    f"and {reward.valid_time_end}"
                )
        if reward.min_points_required and user.points < reward.min_points_required:
            raise ValidationError(
                f"You need at least {reward.min_points_required} points balance to redeem this reward"
            )
        if user.points < reward.points_cost:
            raise InsufficientPointsError(required=reward.points_cost, available=user.points)
        if reward.level_required and user.level < reward.level_required:
            raise ForbiddenError(f"This reward requires level {reward.level_required} or higher")
        self._check_frequency(reward, user_id, now)

        redemption_id = uuid.uuid4().hex
        redemption = Redemption(
            redemption_id=redemption_id,
            user_id=user_id,
            user_name=user.name,
            reward_id=reward_id,
            business_id=reward.business_id,
            business_name=reward.business_name,
            title=reward.title,
            points_spent=reward.points_cost,
            coupon_code=generate_coupon_code(reward.business_name, now),
            validation_token="",
            validation_type=reward.validation_type,
            redeemed_at=now,
            expires_at=now + timedelta(days=reward.expiry_days),
        )
        if reward.validation_type == ValidationType.ONLINE:
            redemption.alphanumeric_code = generate_alphanumeric_code(redemption_id, now)
            code = redemption.alphanumeric_code
        else:
            redemption.qr_code = generate_qr_code(redemption_id, user_id, reward.business_id, now)
            code = redemption.qr_code
        redemption.validation_token = generate_validation_token(redemption_id, code, now)

        metadata = {"reward_id": reward_id, "redemption_id": redemption_id}
        self.ledger.spend(
            user_id,
            reward.points_cost,
            source="reward_redemption",
            description=f"Redeemed: {reward.title}",
            metadata=metadata,
            now=now,
        )
        self.store.set(REDEMPTIONS_COLLECTION, redemption_id, to_document(redemption))
        if not reward.unlimited:
            self.store.increment(REWARDS_COLLECTION, reward_id, "claimed", 1)
        self.ledger.award(
            reward.business_id,
            reward.points_cost,
            source="reward_redemption",
            description=f"Customer redeemed: {reward.title}",
            metadata={**metadata, "customer_id": user_id},
            now=now,
        )
        logger.info("[%s] %s redeemed reward %s", redemption_id, user_id, reward_id)

        self.notifier.notify(
            user_id,
            NotificationType.REWARD_REDEEMED,
            "Reward redeemed",
            f"You've redeemed \"{reward.title}\" from {reward.business_name}. "
            f"Your coupon code: {redemption.coupon_code}",
            action_link=f"/redemptions/{redemption_id}",
            data=metadata,
            now=now,
        )
        self.notifier.notify(
            reward.business_id,
            NotificationType.POINTS_ACTIVITY,
            "Reward redeemed",
            f"{user.name} redeemed \"{reward.title}\" for {reward.points_cost} points",
            data=metadata,
            now=now,
        )
        return redemption

    def get_redemption(self, redemption_id: str) -> Redemption:
        data = self.store.get(REDEMPTIONS_COLLECTION, redemption_id)
        if data is None:
            raise NotFoundError(f"Redemption {redemption_id} not found")
        return from_document(Redemption, data, redemption_id)

    def _find_by_code(self, code: str, business_id: str) -> Optional[Redemption]:
        for field in ("qr_code", "alphanumeric_code", "coupon_code"):
            rows = self.store.query(
                REDEMPTIONS_COLLECTION,
                [("business_id", "==", business_id), (field, "==", code)],
                limit=1,
            )
            if rows:
                doc_id, data = rows[0]
                return from_document(Redemption, data, doc_id)
        return None

    def _use(self, redemption: Redemption, used_by: str, now: datetime) -> Redemption:
        if redemption.status != RedemptionStatus.PENDING:
            raise ConflictError(f"Redemption is already {redemption.status}")
        if redemption.expires_at and now > redemption.expires_at:
            self.store.update(
                REDEMPTIONS_COLLECTION,
                redemption.redemption_id,
                {"status": RedemptionStatus.EXPIRED},
            )
            logger.info("[%s] Redemption expired", redemption.redemption_id)
            raise ConflictError("This redemption has expired")
        self.store.update(
            REDEMPTIONS_COLLECTION,
            redemption.redemption_id,
            {"status": RedemptionStatus.USED, "used_at": now, "used_by": used_by},
        )
        logger.info("[%s] Redemption used (%s)", redemption.redemption_id, used_by)
        return self.get_redemption(redemption.redemption_id)

    def validate_redemption_code(
        self,
        code: str,
        business_id: str,
        validated_by: str,
        now: Optional[datetime] = None,
    ) -> Redemption:
        normalized = (code or "").strip().upper()
        if not normalized:
            raise ValidationError("Redemption code is required")
        redemption = self._find_by_code(normalized, business_id)
        if redemption is None:
            raise NotFoundError("Invalid redemption code")
        return self._use(redemption, validated_by, ensure_utc(now) if now else utcnow())

    def mark_redemption_used(
        self, redemption_id: str, staff_name: str, now: Optional[datetime] = None
    ) -> Redemption:
        redemption = self.get_redemption(redemption_id)
        return self._use(redemption, staff_name, ensure_utc(now) if now else utcnow())

    def cancel_redemption(
        self, redemption_id: str, now: Optional[datetime] = None
    ) -> Redemption:
        now = now or utcnow()
        redemption = self.get_redemption(redemption_id)
        if redemption.status != RedemptionStatus.PENDING:
            raise ConflictError(f"Cannot cancel a {redemption.status} redemption")
        metadata = {"reward_id": redemption.reward_id, "redemption_id": redemption_id}
        self.store.update(
            REDEMPTIONS_COLLECTION, redemption_id, {"status": RedemptionStatus.CANCELLED}
        )
        self.ledger.refund(
            redemption.user_id,
            redemption.points_spent,
            source="reward_cancellation",
            description=f"Cancelled: {redemption.title}",
            metadata=metadata,
            now=now,
        )
        self.ledger.adjust(
            redemption.business_id,
            -redemption.points_spent,
            source="reward_cancellation",
            description=f"Customer cancelled: {redemption.title}",
            metadata=metadata,
            now=now,
        )
        reward_data = self.store.get(REWARDS_COLLECTION, redemption.reward_id)
        if reward_data and not reward_data.get("unlimited") and reward_data.get("claimed", 0) > 0:
            self.store.increment(REWARDS_COLLECTION, redemption.reward_id, "claimed", -1)
        logger.info("[%s] Redemption cancelled and refunded", redemption_id)
        return self.get_redemption(redemption_id)

    def list_user_redemptions(self, user_id: str) -> list[Redemption]:
        rows = self.store.query(
            REDEMPTIONS_COLLECTION,
            [("user_id", "==", user_id)],
            order_by="redeemed_at",
            descending=True,
        )
        return [from_document(Redemption, data, doc_id) for doc_id, data in rows]

    def list_business_redemptions(self, business_id: str) -> list[Redemption]:
        rows = self.store.query(
            REDEMPTIONS_COLLECTION,
            [("business_id", "==", business_id)],
            order_by="redeemed_at",
            descending=True,
        )
        return [from_document(Redemption, data, doc_id) for doc_id, data in rows]
