"""
Missions posted by businesses and the participations customers hold in them.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from fluzio.errors import ConflictError, NotFoundError, ValidationError
from fluzio.services.notifications import Notifier
from fluzio.services.points import PointsLedger
from fluzio.services.users import UserService
from fluzio.store import DocumentStore, insert_record
from shared.collections import MISSIONS_COLLECTION, PARTICIPATIONS_COLLECTION
from shared.documents import ensure_utc, from_document, utcnow
from shared.types import (
    Mission,
    MissionStatus,
    MissionType,
    NotificationType,
    Participation,
    ParticipationStatus,
    UserRole,
)

logger = logging.getLogger(__name__)

MISSION_UPDATABLE_FIELDS = {
    "title",
    "description",
    "mission_type",
    "reward_points",
    "max_participants",
    "requires_proof",
    "expires_at",
}

REFERRER_PARTICIPATION = "BRING_A_FRIEND_REFERRER"
REFEREE_PARTICIPATION = "BRING_A_FRIEND_REFEREE"

# Settled by the referral unlock sweep, never by a business review.
SWEEP_SETTLED_PARTICIPATIONS = {REFERRER_PARTICIPATION, REFEREE_PARTICIPATION}


def is_expired(mission: Mission, now: datetime) -> bool:
    return mission.expires_at is not None and mission.expires_at <= ensure_utc(now)


def is_full(mission: Mission) -> bool:
    return (
        mission.max_participants is not None
        and mission.current_participants >= mission.max_participants
    )


class MissionService:
    def __init__(self, store: DocumentStore, notifier: Notifier):
        self.store = store
        self.notifier = notifier
        self.users = UserService(store)
        self.ledger = PointsLedger(store)

    # Missions

    def create_mission(
        self,
        business_id: str,
        title: str,
        reward_points: int,
        *,
        description: str = "",
        mission_type: MissionType = MissionType.STANDARD,
        max_participants: Optional[int] = None,
        requires_proof: bool = True,
        expires_at: Optional[datetime] = None,
        publish: bool = False,
        now: Optional[datetime] = None,
    ) -> Mission:
        business = self.users.get_user(business_id)
        if business.role != UserRole.BUSINESS:
            raise ValidationError(f"User {business_id} is not a business")
        if not title or not title.strip():
            raise ValidationError("Mission title is required")
        if reward_points <= 0:
            raise ValidationError("Reward points must be positive")
        if max_participants is not None and max_participants <= 0:
            raise ValidationError("max_participants must be positive")
        now = now or utcnow()
        mission = Mission(
            mission_id="",
            business_id=business_id,
            business_name=business.name,
            title=title.strip(),
            reward_points=reward_points,
            description=description,
            mission_type=MissionType(mission_type),
            status=MissionStatus.ACTIVE if publish else MissionStatus.DRAFT,
            max_participants=max_participants,
            requires_proof=requires_proof,
            expires_at=ensure_utc(expires_at) if expires_at else None,
            created_at=now,
            updated_at=now,
            published_at=now if publish else None,
        )
        insert_record(self.store, MISSIONS_COLLECTION, mission)
        logger.info("[%s] Mission created by %s (%s)", mission.mission_id, business_id, mission.status)
        return mission

    def get_mission(self, mission_id: str) -> Mission:
        data = self.store.get(MISSIONS_COLLECTION, mission_id)
        if data is None:
            raise NotFoundError(f"Mission {mission_id} not found")
        return from_document(Mission, data, mission_id)

    def update_mission(
        self, mission_id: str, changes: dict, now: Optional[datetime] = None
    ) -> Mission:
        unknown = set(changes) - MISSION_UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")
        if "title" in changes and not (changes["title"] or "").strip():
            raise ValidationError("Mission title is required")
        if "reward_points" in changes and changes["reward_points"] <= 0:
            raise ValidationError("Reward points must be positive")
        self.get_mission(mission_id)
        updates = dict(changes)
        updates["updated_at"] = now or utcnow()
        self.store.update(MISSIONS_COLLECTION, mission_id, updates)
        return self.get_mission(mission_id)

    def delete_mission(self, mission_id: str) -> None:
        if not self.store.delete(MISSIONS_COLLECTION, mission_id):
            raise NotFoundError(f"Mission {mission_id} not found")
        logger.info("[%s] Mission deleted", mission_id)

    def _set_status(
        self,
        mission: Mission,
        status: MissionStatus,
        now: datetime,
        extra: Optional[dict] = None,
    ) -> Mission:
        updates = {"status": status, "updated_at": now}
        updates.update(extra or {})
        self.store.update(MISSIONS_COLLECTION, mission.mission_id, updates)
        logger.info("[%s] Mission %s -> %s", mission.mission_id, mission.status, status)
        return self.get_mission(mission.mission_id)

    def publish_mission(self, mission_id: str, now: Optional[datetime] = None) -> Mission:
        mission = self.get_mission(mission_id)
        if mission.status not in (MissionStatus.DRAFT, MissionStatus.PAUSED):
            raise ConflictError(f"Cannot publish a {mission.status} mission")
        now = now or utcnow()
        if is_expired(mission, now):
            raise ConflictError("Cannot publish an expired mission")
        return self._set_status(
            mission, MissionStatus.ACTIVE, now, {"published_at": now}
        )

    def pause_mission(self, mission_id: str, now: Optional[datetime] = None) -> Mission:
        mission = self.get_mission(mission_id)
        if mission.status != MissionStatus.ACTIVE:
            raise ConflictError(f"Cannot pause a {mission.status} mission")
        return self._set_status(mission, MissionStatus.PAUSED, now or utcnow())

    def list_business_missions(
        self, business_id: str, status: Optional[MissionStatus] = None
    ) -> list[Mission]:
        filters = [("business_id", "==", business_id)]
        if status:
            filters.append(("status", "==", status))
        rows = self.store.query(
            MISSIONS_COLLECTION, filters, order_by="created_at", descending=True
        )
        return [from_document(Mission, data, doc_id) for doc_id, data in rows]

    def list_active_missions(
        self, business_id: Optional[str] = None, now: Optional[datetime] = None
    ) -> list[Mission]:
        now = now or utcnow()
        filters = [("status", "==", MissionStatus.ACTIVE)]
        if business_id:
            filters.append(("business_id", "==", business_id))
        rows = self.store.query(
            MISSIONS_COLLECTION, filters, order_by="created_at", descending=True
        )
        missions = [from_document(Mission, data, doc_id) for doc_id, data in rows]
        return [m for m in missions if not is_expired(m, now) and not is_full(m)]

    # Participations

    def get_participation(self, participation_id: str) -> Participation:
        data = self.store.get(PARTICIPATIONS_COLLECTION, participation_id)
        if data is None:
            raise NotFoundError(f"Participation {participation_id} not found")
        return from_document(Participation, data, participation_id)

    def find_user_participation(
        self, mission_id: str, user_id: str
    ) -> Optional[Participation]:
        """The user's current, non-rejected participation in a mission."""
        rows = self.store.query(
            PARTICIPATIONS_COLLECTION,
            [("mission_id", "==", mission_id), ("user_id", "==", user_id)],
        )
        for doc_id, data in rows:
            participation = from_document(Participation, data, doc_id)
            if participation.status != ParticipationStatus.REJECTED:
                return participation
        return None

    def apply_to_mission(
        self,
        mission_id: str,
        user_id: str,
        now: Optional[datetime] = None,
    ) -> Participation:
        now = now or utcnow()
        mission = self.get_mission(mission_id)
        user = self.users.get_user(user_id)
        if mission.status != MissionStatus.ACTIVE:
            raise ConflictError(f"Mission is {mission.status}, not accepting applications")
        if is_expired(mission, now):
            self._set_status(mission, MissionStatus.EXPIRED, now)
            raise ConflictError("Mission has expired")
        if is_full(mission):
            raise ConflictError("Mission is full")
        if self.find_user_participation(mission_id, user_id):
            raise ConflictError("User already participates in this mission")

        participation = Participation(
            participation_id="",
            mission_id=mission_id,
            user_id=user_id,
            business_id=mission.business_id,
            applied_at=now,
        )
        insert_record(self.store, PARTICIPATIONS_COLLECTION, participation)
        self.store.increment(MISSIONS_COLLECTION, mission_id, "current_participants", 1)
        logger.info("[%s] %s applied to mission %s", participation.participation_id, user_id, mission_id)

        self.notifier.notify(
            mission.business_id,
            NotificationType.MISSION_APPLICATION,
            "New mission application",
            f"{user.name} applied to {mission.title}",
            action_link=f"/missions/{mission_id}",
            data={"mission_id": mission_id, "participation_id": participation.participation_id},
            now=now,
        )
        return participation

    def submit_proof(
        self,
        participation_id: str,
        proof_url: Optional[str] = None,
        proof_text: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Participation:
        participation = self.get_participation(participation_id)
        if participation.status != ParticipationStatus.PENDING:
            raise ConflictError(f"Cannot submit proof for a {participation.status} participation")
        if not proof_url and not (proof_text or "").strip():
            raise ValidationError("Proof URL or text is required")
        self.store.update(
            PARTICIPATIONS_COLLECTION,
            participation_id,
            {
                "status": ParticipationStatus.PENDING_APPROVAL,
                "proof_url": proof_url,
                "proof_text": proof_text,
                "submitted_at": now or utcnow(),
            },
        )
        return self.get_participation(participation_id)

    def review_participation(
        self,
        participation_id: str,
        approved: bool,
        feedback: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Participation:
        now = now or utcnow()
        participation = self.get_participation(participation_id)
        if (participation.metadata or {}).get("type") in SWEEP_SETTLED_PARTICIPATIONS:
            raise ConflictError("Referral participations are settled when the reward unlocks")
        mission = self.get_mission(participation.mission_id)
        reviewable = participation.status == ParticipationStatus.PENDING_APPROVAL or (
            participation.status == ParticipationStatus.PENDING and not mission.requires_proof
        )
        if not reviewable:
            raise ConflictError(f"Cannot review a {participation.status} participation")

        if approved:
            self.ledger.award(
                participation.user_id,
                mission.reward_points,
                source="mission",
                description=f"Completed mission: {mission.title}",
                metadata={"mission_id": mission.mission_id, "participation_id": participation_id},
                now=now,
            )
            self.store.update(
                PARTICIPATIONS_COLLECTION,
                participation_id,
                {
                    "status": ParticipationStatus.APPROVED,
                    "feedback": feedback,
                    "points_awarded": True,
                    "reviewed_at": now,
                },
            )
            self.notifier.notify(
                participation.user_id,
                NotificationType.MISSION_APPROVED,
                "Mission approved",
                f"You earned {mission.reward_points} points for {mission.title}",
                action_link=f"/missions/{mission.mission_id}",
                data={"mission_id": mission.mission_id, "points": mission.reward_points},
                now=now,
            )
        else:
            self.store.update(
                PARTICIPATIONS_COLLECTION,
                participation_id,
                {
                    "status": ParticipationStatus.REJECTED,
                    "feedback": feedback,
                    "reviewed_at": now,
                },
            )
            message = f"Your submission for {mission.title} was not approved"
            if feedback:
                message = f"{message}: {feedback}"
            self.notifier.notify(
                participation.user_id,
                NotificationType.MISSION_REJECTED,
                "Mission not approved",
                message,
                action_link=f"/missions/{mission.mission_id}",
                data={"mission_id": mission.mission_id},
                now=now,
            )
        logger.info("[%s] Participation reviewed, approved=%s", participation_id, approved)
        return self.get_participation(participation_id)

    def list_mission_participations(
        self, mission_id: str, status: Optional[ParticipationStatus] = None
    ) -> list[Participation]:
        filters = [("mission_id", "==", mission_id)]
        if status:
            filters.append(("status", "==", status))
        rows = self.store.query(
            PARTICIPATIONS_COLLECTION, filters, order_by="applied_at", descending=True
        )
        return [from_document(Participation, data, doc_id) for doc_id, data in rows]

    def list_user_participations(
        self, user_id: str, status: Optional[ParticipationStatus] = None
    ) -> list[Participation]:
        filters = [("user_id", "==", user_id)]
        if status:
            filters.append(("status", "==", status))
        rows = self.store.query(
            PARTICIPATIONS_COLLECTION, filters, order_by="applied_at", descending=True
        )
        return [from_document(Participation, data, doc_id) for doc_id, data in rows]

    def mission_stats(self, business_id: str) -> dict:
        missions = self.list_business_missions(business_id)
        rows = self.store.query(
            PARTICIPATIONS_COLLECTION, [("business_id", "==", business_id)]
        )
        statuses = [data.get("status") for _, data in rows]
        return {
            "total_missions": len(missions),
            "active_missions": sum(1 for m in missions if m.status == MissionStatus.ACTIVE),
            "total_applications": len(statuses),
            "pending_reviews": statuses.count(ParticipationStatus.PENDING_APPROVAL.value),
            "completed": statuses.count(ParticipationStatus.APPROVED.value),
        }
