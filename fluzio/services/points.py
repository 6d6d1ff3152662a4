"""
Points ledger. Every balance change goes through here so each one leaves a
transaction record.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from fluzio.errors import InsufficientPointsError, NotFoundError, ValidationError
from fluzio.store import DocumentStore, insert_record
from shared.collections import POINTS_TRANSACTIONS_COLLECTION, USERS_COLLECTION
from shared.documents import from_document, utcnow
from shared.types import PointsTransaction, TransactionType

logger = logging.getLogger(__name__)


class PointsLedger:
    def __init__(self, store: DocumentStore):
        self.store = store

    def _balance(self, user_id: str) -> int:
        data = self.store.get(USERS_COLLECTION, user_id)
        if data is None:
            raise NotFoundError(f"User {user_id} not found")
        return int(data.get("points") or 0)

    def _apply(
        self,
        user_id: str,
        tx_type: TransactionType,
        amount: int,
        source: str,
        description: str,
        metadata: Optional[dict],
        now: Optional[datetime],
    ) -> PointsTransaction:
        new_balance = self.store.increment(USERS_COLLECTION, user_id, "points", amount)
        if new_balance is None:
            raise NotFoundError(f"User {user_id} not found")
        new_balance = int(new_balance)
        tx = PointsTransaction(
            transaction_id="",
            user_id=user_id,
            type=tx_type,
            amount=amount,
            source=source,
            description=description,
            balance_before=new_balance - amount,
            balance_after=new_balance,
            metadata=metadata or {},
            created_at=now or utcnow(),
        )
        insert_record(self.store, POINTS_TRANSACTIONS_COLLECTION, tx)
        logger.info(
            "[%s] %s %+d points (%s), balance %d",
            user_id,
            tx_type,
            amount,
            source,
            new_balance,
        )
        return tx

    def award(
        self,
        user_id: str,
        amount: int,
        source: str,
        description: str,
        metadata: Optional[dict] = None,
        now: Optional[datetime] = None,
    ) -> PointsTransaction:
        if amount <= 0:
            raise ValidationError("Amount must be positive")
        return self._apply(
            user_id, TransactionType.EARN, amount, source, description, metadata, now
        )

    def spend(
        self,
        user_id: str,
        amount: int,
        source: str,
        description: str,
        metadata: Optional[dict] = None,
        now: Optional[datetime] = None,
    ) -> PointsTransaction:
        if amount <= 0:
            raise ValidationError("Amount must be positive")
        balance = self._balance(user_id)
        if balance < amount:
            raise InsufficientPointsError(required=amount, available=balance)
        return self._apply(
            user_id, TransactionType.SPEND, -amount, source, description, metadata, now
        )

    def refund(
        self,
        user_id: str,
        amount: int,
        source: str,
        description: str,
        metadata: Optional[dict] = None,
        now: Optional[datetime] = None,
    ) -> PointsTransaction:
        if amount <= 0:
            raise ValidationError("Amount must be positive")
        return self._apply(
            user_id, TransactionType.REFUND, amount, source, description, metadata, now
        )

    def adjust(
        self,
        user_id: str,
        amount: int,
        source: str,
        description: str,
        metadata: Optional[dict] = None,
        now: Optional[datetime] = None,
    ) -> Optional[PointsTransaction]:
        """
        Signed correction. Debits are capped at the current balance so a
        balance never goes negative; returns None when nothing changes.
        """
        if amount < 0:
            amount = max(amount, -self._balance(user_id))
        if amount == 0:
            return None
        return self._apply(
            user_id, TransactionType.ADJUST, amount, source, description, metadata, now
        )

    def list_transactions(self, user_id: str, limit: int = 50) -> list[PointsTransaction]:
        rows = self.store.query(
            POINTS_TRANSACTIONS_COLLECTION,
            [("user_id", "==", user_id)],
            order_by="created_at",
            descending=True,
            limit=limit,
        )
        return [from_document(PointsTransaction, data, doc_id) for doc_id, data in rows]
