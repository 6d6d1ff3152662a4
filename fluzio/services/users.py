"""
User profiles and balances.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Optional

from fluzio.errors import ConflictError, NotFoundError, ValidationError
from fluzio.store import DocumentStore
from shared.collections import USERS_COLLECTION
from shared.documents import from_document, to_document, utcnow
from shared.types import User, UserRole

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = {"name", "email", "fcm_token", "level", "latitude", "longitude"}


class UserService:
    def __init__(self, store: DocumentStore):
        self.store = store

    def create_user(
        self,
        name: str,
        role: UserRole = UserRole.CUSTOMER,
        *,
        user_id: Optional[str] = None,
        email: Optional[str] = None,
        fcm_token: Optional[str] = None,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
        now: Optional[datetime] = None,
    ) -> User:
        if not name or not name.strip():
            raise ValidationError("User name is required")
        user_id = user_id or uuid.uuid4().hex
        if self.store.get(USERS_COLLECTION, user_id) is not None:
            raise ConflictError(f"User {user_id} already exists")
        now = now or utcnow()
        user = User(
            user_id=user_id,
            name=name.strip(),
            role=UserRole(role),
            email=email,
            fcm_token=fcm_token,
            latitude=latitude,
            longitude=longitude,
            created_at=now,
            updated_at=now,
        )
        self.store.set(USERS_COLLECTION, user_id, to_document(user))
        logger.info("[%s] Created %s user", user_id, user.role)
        return user

    def find_user(self, user_id: str) -> Optional[User]:
        data = self.store.get(USERS_COLLECTION, user_id)
        if data is None:
            return None
        return from_document(User, data, user_id)

    def get_user(self, user_id: str) -> User:
        user = self.find_user(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        return user

    def update_user(self, user_id: str, changes: dict, now: Optional[datetime] = None) -> User:
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")
        if "name" in changes and not (changes["name"] or "").strip():
            raise ValidationError("User name is required")
        updates = dict(changes)
        updates["updated_at"] = now or utcnow()
        if not self.store.update(USERS_COLLECTION, user_id, updates):
            raise NotFoundError(f"User {user_id} not found")
        return self.get_user(user_id)

    def get_balance(self, user_id: str) -> int:
        return self.get_user(user_id).points
