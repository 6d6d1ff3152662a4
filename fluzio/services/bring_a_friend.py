"""
Bring-a-friend referrals.

The referrer scans the business QR code first and opens a session. The friend
has SCAN_WINDOW to scan in too. Both rewards are then held for
VERIFICATION_PERIOD before the unlock sweep pays them out.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

from fluzio.errors import ConflictError, NotFoundError, RateLimitError, ValidationError
from fluzio.services.missions import (
    REFEREE_PARTICIPATION,
    REFERRER_PARTICIPATION,
    MissionService,
)
from fluzio.services.notifications import Notifier
from fluzio.services.points import PointsLedger
from fluzio.services.sweeps import SweepResult
from fluzio.services.users import UserService
from fluzio.store import DocumentStore, insert_record
from shared.collections import (
    BRING_A_FRIEND_SESSIONS_COLLECTION,
    PARTICIPATIONS_COLLECTION,
)
from shared.documents import ensure_utc, from_document, utcnow
from shared.types import (
    BringAFriendSession,
    NotificationType,
    Participation,
    ParticipationStatus,
    SessionStatus,
)

logger = logging.getLogger(__name__)

SCAN_WINDOW = timedelta(minutes=30)
VERIFICATION_PERIOD = timedelta(days=3)
RATE_LIMIT_WINDOW = timedelta(days=30)
MAX_REFERRALS_PER_WINDOW = 20


def _scan_window_open(session: BringAFriendSession, now: datetime) -> bool:
    return now - session.referrer_scan_time < SCAN_WINDOW


class BringAFriendService:
    def __init__(self, store: DocumentStore, notifier: Notifier):
        self.store = store
        self.notifier = notifier
        self.users = UserService(store)
        self.missions = MissionService(store, notifier)
        self.ledger = PointsLedger(store)

    def get_session(self, session_id: str) -> BringAFriendSession:
        data = self.store.get(BRING_A_FRIEND_SESSIONS_COLLECTION, session_id)
        if data is None:
            raise NotFoundError(f"Session {session_id} not found")
        return from_document(BringAFriendSession, data, session_id)

    def _expire(self, session_id: str) -> None:
        self.store.update(
            BRING_A_FRIEND_SESSIONS_COLLECTION, session_id, {"status": SessionStatus.EXPIRED}
        )
        logger.info("[%s] Session expired", session_id)

    def _within_rate_limit(self, referrer_id: str, business_id: str, now: datetime) -> bool:
        rows = self.store.query(
            BRING_A_FRIEND_SESSIONS_COLLECTION,
            [
                ("referrer_id", "==", referrer_id),
                ("business_id", "==", business_id),
                ("created_at", ">=", now - RATE_LIMIT_WINDOW),
            ],
        )
        return len(rows) < MAX_REFERRALS_PER_WINDOW

    def _waiting_sessions(self, user_id: str, business_id: str) -> list[BringAFriendSession]:
        rows = self.store.query(
            BRING_A_FRIEND_SESSIONS_COLLECTION,
            [
                ("referrer_id", "==", user_id),
                ("business_id", "==", business_id),
                ("status", "==", SessionStatus.WAITING_FOR_FRIEND),
            ],
            order_by="referrer_scan_time",
            descending=True,
        )
        return [from_document(BringAFriendSession, data, doc_id) for doc_id, data in rows]

    def initiate_referral(
        self, mission_id: str, referrer_id: str, now: Optional[datetime] = None
    ) -> BringAFriendSession:
        now = ensure_utc(now) if now else utcnow()
        mission = self.missions.get_mission(mission_id)
        if not self._within_rate_limit(referrer_id, mission.business_id, now):
            raise RateLimitError(
                f"You have reached the maximum number of friend referrals "
                f"({MAX_REFERRALS_PER_WINDOW}) for this month"
            )
        referrer = self.users.get_user(referrer_id)

        for existing in self._waiting_sessions(referrer_id, mission.business_id):
            if _scan_window_open(existing, now):
                return existing
            self._expire(existing.session_id)

        session = BringAFriendSession(
            session_id="",
            mission_id=mission_id,
            business_id=mission.business_id,
            business_name=mission.business_name,
            referrer_id=referrer_id,
            referrer_name=referrer.name,
            reward_points=mission.reward_points,
            referrer_scan_time=now,
            created_at=now,
        )
        insert_record(self.store, BRING_A_FRIEND_SESSIONS_COLLECTION, session)
        logger.info("[%s] Referral opened by %s at %s", session.session_id, referrer_id, mission.business_id)
        self.notifier.notify(
            referrer_id,
            NotificationType.SYSTEM,
            "Waiting for your friend",
            f"Ask your friend to scan the code at {mission.business_name} "
            f"within {int(SCAN_WINDOW.total_seconds() // 60)} minutes",
            action_link=f"/missions/{mission_id}",
            data={"session_id": session.session_id},
            now=now,
        )
        return session

    def is_new_to_business(
        self, friend_id: str, business_id: str, exclude_session_id: Optional[str] = None
    ) -> bool:
        visits = self.store.query(
            PARTICIPATIONS_COLLECTION,
            [
                ("user_id", "==", friend_id),
                ("business_id", "==", business_id),
                (
                    "status",
                    "in",
                    [ParticipationStatus.APPROVED, ParticipationStatus.PENDING],
                ),
            ],
        )
        if visits:
            return False
        sessions = self.store.query(
            BRING_A_FRIEND_SESSIONS_COLLECTION,
            [
                ("friend_id", "==", friend_id),
                ("business_id", "==", business_id),
                ("status", "==", SessionStatus.VERIFIED),
            ],
        )
        return not [doc_id for doc_id, _ in sessions if doc_id != exclude_session_id]

    def complete_friend_scan(
        self, session_id: str, friend_id: str, now: Optional[datetime] = None
    ) -> BringAFriendSession:
        now = ensure_utc(now) if now else utcnow()
        session = self.get_session(session_id)
        if session.status != SessionStatus.WAITING_FOR_FRIEND:
            raise ConflictError("This referral session is no longer active")
        if not _scan_window_open(session, now):
            self._expire(session_id)
            minutes = int((now - session.referrer_scan_time).total_seconds() // 60)
            raise ValidationError(
                f"Time window expired: the referrer scanned {minutes} minutes ago "
                f"(limit {int(SCAN_WINDOW.total_seconds() // 60)} minutes)"
            )
        if friend_id == session.referrer_id:
            raise ValidationError("You cannot bring yourself as a friend")
        if not self.is_new_to_business(friend_id, session.business_id, session_id):
            raise ConflictError("This friend has already visited this business. Bring someone new!")
        friend = self.users.get_user(friend_id)

        unlock_date = now + VERIFICATION_PERIOD
        self.store.update(
            BRING_A_FRIEND_SESSIONS_COLLECTION,
            session_id,
            {
                "status": SessionStatus.BOTH_SCANNED,
                "friend_id": friend_id,
                "friend_name": friend.name,
                "friend_scan_time": now,
                "reward_unlock_date": unlock_date,
            },
        )
        for user_id, kind, other in (
            (session.referrer_id, REFERRER_PARTICIPATION, {"friend_id": friend_id}),
            (friend_id, REFEREE_PARTICIPATION, {"referrer_id": session.referrer_id}),
        ):
            participation = Participation(
                participation_id="",
                mission_id=session.mission_id,
                user_id=user_id,
                business_id=session.business_id,
                applied_at=now,
                metadata={
                    "type": kind,
                    "session_id": session_id,
                    "reward_unlock_date": unlock_date,
                    **other,
                },
            )
            insert_record(self.store, PARTICIPATIONS_COLLECTION, participation)
        logger.info("[%s] Friend %s scanned, unlock at %s", session_id, friend_id, unlock_date)

        days = VERIFICATION_PERIOD.days
        self.notifier.notify(
            session.referrer_id,
            NotificationType.MISSION_APPROVED,
            "Friend verified!",
            f"{friend.name} scanned successfully! You'll both receive "
            f"{session.reward_points} points in {days} days.",
            action_link=f"/missions/{session.mission_id}",
            data={"session_id": session_id},
            now=now,
        )
        self.notifier.notify(
            friend_id,
            NotificationType.MISSION_APPROVED,
            "Welcome!",
            f"You visited {session.business_name} with {session.referrer_name}. "
            f"You'll receive {session.reward_points} points in {days} days.",
            action_link=f"/missions/{session.mission_id}",
            data={"session_id": session_id},
            now=now,
        )
        return self.get_session(session_id)

    def get_active_session(
        self, user_id: str, business_id: str, now: Optional[datetime] = None
    ) -> Optional[BringAFriendSession]:
        now = ensure_utc(now) if now else utcnow()
        active = None
        for session in self._waiting_sessions(user_id, business_id):
            if active is None and _scan_window_open(session, now):
                active = session
            elif not _scan_window_open(session, now):
                self._expire(session.session_id)
        return active

    def list_user_sessions(self, user_id: str) -> list[BringAFriendSession]:
        sessions = {}
        for field in ("referrer_id", "friend_id"):
            rows = self.store.query(BRING_A_FRIEND_SESSIONS_COLLECTION, [(field, "==", user_id)])
            for doc_id, data in rows:
                sessions[doc_id] = from_document(BringAFriendSession, data, doc_id)
        return sorted(sessions.values(), key=lambda s: s.referrer_scan_time, reverse=True)

    def _claim_session(self, session: BringAFriendSession, now: datetime) -> bool:
        current = self.get_session(session.session_id)
        if current.status != SessionStatus.BOTH_SCANNED:
            return False
        self.users.get_user(session.referrer_id)
        if session.friend_id:
            self.users.get_user(session.friend_id)
        # The session leaves BOTH_SCANNED before any points move.
        self.store.update(
            BRING_A_FRIEND_SESSIONS_COLLECTION,
            session.session_id,
            {"status": SessionStatus.VERIFIED, "completed_at": now},
        )
        return True

    def _unlock_session(self, session: BringAFriendSession, now: datetime) -> bool:
        if not self._claim_session(session, now):
            logger.info("[%s] Session already settled", session.session_id)
            return False
        metadata = {"session_id": session.session_id, "mission_id": session.mission_id}
        self.ledger.award(
            session.referrer_id,
            session.reward_points,
            source="bring_a_friend",
            description=f"Brought {session.friend_name} to {session.business_name}",
            metadata=metadata,
            now=now,
        )
        self.notifier.notify(
            session.referrer_id,
            NotificationType.POINTS_ACTIVITY,
            "Reward unlocked!",
            f"You earned {session.reward_points} points for bringing "
            f"{session.friend_name} to {session.business_name}!",
            action_link="/wallet",
            data=metadata,
            now=now,
        )
        if session.friend_id:
            self.ledger.award(
                session.friend_id,
                session.reward_points,
                source="bring_a_friend",
                description=f"Visited {session.business_name} with {session.referrer_name}",
                metadata=metadata,
                now=now,
            )
            self.notifier.notify(
                session.friend_id,
                NotificationType.POINTS_ACTIVITY,
                "Reward unlocked!",
                f"You earned {session.reward_points} points for visiting {session.business_name}!",
                action_link="/wallet",
                data=metadata,
                now=now,
            )
        linked = self.store.query(
            PARTICIPATIONS_COLLECTION, [("metadata.session_id", "==", session.session_id)]
        )
        for participation_id, _ in linked:
            self.store.update(
                PARTICIPATIONS_COLLECTION,
                participation_id,
                {
                    "status": ParticipationStatus.APPROVED,
                    "points_awarded": True,
                    "reviewed_at": now,
                },
            )
        return True

    def unlock_pending_rewards(self, now: Optional[datetime] = None) -> SweepResult:
        now = ensure_utc(now) if now else utcnow()
        rows = self.store.query(
            BRING_A_FRIEND_SESSIONS_COLLECTION,
            [
                ("status", "==", SessionStatus.BOTH_SCANNED),
                ("reward_unlock_date", "<=", now),
            ],
        )
        logger.info("Processing %d pending bring-a-friend rewards", len(rows))
        result = SweepResult()
        for doc_id, data in rows:
            try:
                if self._unlock_session(from_document(BringAFriendSession, data, doc_id), now):
                    result.processed += 1
            except Exception as exc:
                logger.exception("[%s] Failed to distribute bring-a-friend rewards", doc_id)
                result.record_error(doc_id, exc)
        return result

    def expire_stale_sessions(self, now: Optional[datetime] = None) -> SweepResult:
        now = ensure_utc(now) if now else utcnow()
        rows = self.store.query(
            BRING_A_FRIEND_SESSIONS_COLLECTION,
            [
                ("status", "==", SessionStatus.WAITING_FOR_FRIEND),
                ("referrer_scan_time", "<=", now - SCAN_WINDOW),
            ],
        )
        result = SweepResult()
        for doc_id, _ in rows:
            try:
                self._expire(doc_id)
                result.processed += 1
            except Exception as exc:
                logger.exception("[%s] Failed to expire session", doc_id)
                result.record_error(doc_id, exc)
        return result
