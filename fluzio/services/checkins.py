"""
Business check-ins by QR scan or GPS proximity.
"""

from __future__ import annotations

import json
import logging
import math
from datetime import datetime, timedelta
from typing import Optional

from fluzio.errors import ForbiddenError, RateLimitError, ValidationError
from fluzio.services.notifications import Notifier
from fluzio.services.points import PointsLedger
from fluzio.services.users import UserService
from fluzio.store import DocumentStore, insert_record
from shared.collections import CHECK_IN_SETTINGS_COLLECTION, CHECK_INS_COLLECTION
from shared.documents import ensure_utc, from_document, utcnow
from shared.types import CheckIn, CheckInMethod, NotificationType

logger = logging.getLogger(__name__)

QR_PAYLOAD_TYPE = "FLUZIO_CHECK_IN"
CHECK_IN_RADIUS_METERS = 100
POOR_ACCURACY_METERS = 50
CUSTOMER_CHECK_IN_POINTS = 10
BUSINESS_CHECK_IN_POINTS = 5
MAX_GPS_CHECK_INS_PER_DAY = 5
EARTH_RADIUS_METERS = 6371000


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in meters."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)
    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    return EARTH_RADIUS_METERS * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def within_radius(
    user_lat: float,
    user_lon: float,
    business_lat: float,
    business_lon: float,
    radius_meters: float = CHECK_IN_RADIUS_METERS,
) -> bool:
    return haversine_distance(user_lat, user_lon, business_lat, business_lon) <= radius_meters


def required_radius(accuracy: Optional[float]) -> float:
    if accuracy is not None and accuracy > POOR_ACCURACY_METERS:
        return CHECK_IN_RADIUS_METERS / 2
    return CHECK_IN_RADIUS_METERS


def _start_of_day(now: datetime) -> datetime:
    return ensure_utc(now).replace(hour=0, minute=0, second=0, microsecond=0)


class CheckInService:
    def __init__(self, store: DocumentStore, notifier: Notifier):
        self.store = store
        self.notifier = notifier
        self.users = UserService(store)
        self.ledger = PointsLedger(store)

    def get_check_in_method(self, business_id: str) -> CheckInMethod:
        data = self.store.get(CHECK_IN_SETTINGS_COLLECTION, business_id) or {}
        return CheckInMethod(data.get("method") or CheckInMethod.BOTH)

    def set_check_in_method(self, business_id: str, method: CheckInMethod) -> CheckInMethod:
        self.users.get_user(business_id)
        method = CheckInMethod(method)
        self.store.set(CHECK_IN_SETTINGS_COLLECTION, business_id, {"method": method}, merge=True)
        return method

    def generate_qr_payload(self, business_id: str, now: Optional[datetime] = None) -> str:
        business = self.users.get_user(business_id)
        now = ensure_utc(now) if now else utcnow()
        return json.dumps(
            {
                "type": QR_PAYLOAD_TYPE,
                "business_id": business_id,
                "business_name": business.name,
                "timestamp": int(now.timestamp() * 1000),
            }
        )

    def _check_ins_since(
        self, user_id: str, since: datetime, business_id: Optional[str] = None
    ) -> list[tuple[str, dict]]:
        filters = [("user_id", "==", user_id), ("timestamp", ">=", since)]
        if business_id:
            filters.append(("business_id", "==", business_id))
        return self.store.query(CHECK_INS_COLLECTION, filters)

    def _record(self, check_in: CheckIn) -> CheckIn:
        insert_record(self.store, CHECK_INS_COLLECTION, check_in)
        metadata = {"check_in_id": check_in.check_in_id, "method": check_in.method}
        if check_in.distance is not None:
            metadata["distance"] = check_in.distance
        self.ledger.award(
            check_in.user_id,
            check_in.points_earned,
            source="check_in",
            description=f"Checked in at {check_in.business_name}",
            metadata=metadata,
            now=check_in.timestamp,
        )
        self.ledger.award(
            check_in.business_id,
            check_in.business_points_earned,
            source="check_in",
            description="Customer check-in",
            metadata={**metadata, "customer_id": check_in.user_id},
            now=check_in.timestamp,
        )
        self.notifier.notify(
            check_in.user_id,
            NotificationType.CHECK_IN,
            "Checked in",
            f"You earned {check_in.points_earned} points at {check_in.business_name}",
            data={"business_id": check_in.business_id, "check_in_id": check_in.check_in_id},
            now=check_in.timestamp,
        )
        logger.info(
            "[%s] %s checked in at %s via %s",
            check_in.check_in_id,
            check_in.user_id,
            check_in.business_id,
            check_in.method,
        )
        return check_in

    def process_qr_check_in(
        self, qr_data: str, user_id: str, now: Optional[datetime] = None
    ) -> CheckIn:
        now = ensure_utc(now) if now else utcnow()
        try:
            payload = json.loads(qr_data)
        except (TypeError, ValueError):
            raise ValidationError("Invalid QR code")
        if not isinstance(payload, dict) or payload.get("type") != QR_PAYLOAD_TYPE:
            raise ValidationError("Invalid QR code")
        business_id = payload.get("business_id") or payload.get("businessId")
        if not business_id:
            raise ValidationError("Invalid QR code")

        self.users.get_user(user_id)
        business = self.users.get_user(business_id)
        if self.get_check_in_method(business_id) == CheckInMethod.GPS:
            raise ForbiddenError("This business only accepts GPS check-ins")
        if self._check_ins_since(user_id, _start_of_day(now), business_id):
            raise RateLimitError("You already checked in to this business today")

        check_in = CheckIn(
            check_in_id="",
            user_id=user_id,
            business_id=business_id,
            business_name=business.name,
            method="QR_SCAN",
            points_earned=CUSTOMER_CHECK_IN_POINTS,
            business_points_earned=BUSINESS_CHECK_IN_POINTS,
            timestamp=now,
        )
        return self._record(check_in)

    def process_gps_check_in(
        self,
        user_id: str,
        business_id: str,
        latitude: float,
        longitude: float,
        accuracy: Optional[float] = None,
        now: Optional[datetime] = None,
    ) -> CheckIn:
        now = ensure_utc(now) if now else utcnow()
        self.users.get_user(user_id)
        business = self.users.get_user(business_id)
        if self.get_check_in_method(business_id) == CheckInMethod.QR_ONLY:
            raise ForbiddenError("This business only accepts QR check-ins")
        if business.latitude is None or business.longitude is None:
            raise ValidationError("Business location is not set")

        distance = haversine_distance(latitude, longitude, business.latitude, business.longitude)
        radius = required_radius(accuracy)
        if distance > radius:
            raise ValidationError(
                f"You are {round(distance)}m away. Move within {round(radius)}m to check in"
            )
        if len(self._check_ins_since(user_id, _start_of_day(now))) >= MAX_GPS_CHECK_INS_PER_DAY:
            raise RateLimitError(
                f"Daily check-in limit of {MAX_GPS_CHECK_INS_PER_DAY} reached"
            )

        check_in = CheckIn(
            check_in_id="",
            user_id=user_id,
            business_id=business_id,
            business_name=business.name,
            method="GPS",
            points_earned=CUSTOMER_CHECK_IN_POINTS,
            business_points_earned=BUSINESS_CHECK_IN_POINTS,
            timestamp=now,
            latitude=latitude,
            longitude=longitude,
            accuracy=accuracy,
            distance=round(distance),
        )
        return self._record(check_in)

    def list_business_check_ins(self, business_id: str, limit: int = 50) -> list[CheckIn]:
        rows = self.store.query(
            CHECK_INS_COLLECTION,
            [("business_id", "==", business_id)],
            order_by="timestamp",
            descending=True,
            limit=limit,
        )
        return [from_document(CheckIn, data, doc_id) for doc_id, data in rows]

    def check_in_stats(self, business_id: str, now: Optional[datetime] = None) -> dict:
        now = ensure_utc(now) if now else utcnow()
        today_start = _start_of_day(now)
        week_start = now - timedelta(days=7)
        month_start = today_start.replace(day=1)
        rows = self.store.query(CHECK_INS_COLLECTION, [("business_id", "==", business_id)])
        check_ins = [from_document(CheckIn, data, doc_id) for doc_id, data in rows]
        return {
            "total": len(check_ins),
            "today": sum(1 for c in check_ins if c.timestamp >= today_start),
            "this_week": sum(1 for c in check_ins if c.timestamp >= week_start),
            "this_month": sum(1 for c in check_ins if c.timestamp >= month_start),
            "unique_customers": len({c.user_id for c in check_ins}),
        }
