"""
Pydantic schemas for the Fluzio FastAPI backend.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from shared.types import (
    AvailabilityStatus,
    CheckInMethod,
    MissionType,
    PurchaseChannel,
    RedemptionFrequency,
    UserRole,
    ValidationType,
)


class StatusResponse(BaseModel):
    status: Literal["ok"]


class CountResponse(BaseModel):
    count: int


class StatsResponse(BaseModel):
    stats: dict


# Users and points


class CreateUserRequest(BaseModel):
    name: str = Field(..., max_length=120)
    role: UserRole = UserRole.CUSTOMER
    user_id: Optional[str] = Field(default=None, max_length=128)
    email: Optional[str] = None
    fcm_token: Optional[str] = None
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)


class UpdateUserRequest(BaseModel):
    name: Optional[str] = Field(default=None, max_length=120)
    email: Optional[str] = None
    fcm_token: Optional[str] = None
    level: Optional[int] = Field(default=None, ge=1)
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)


class UserResponse(BaseModel):
    user_id: str
    user: dict


class BalanceResponse(BaseModel):
    user_id: str
    points: int


class TransactionListResponse(BaseModel):
    user_id: str
    transactions: list[dict]


# Notifications


class NotificationListResponse(BaseModel):
    user_id: str
    notifications: list[dict]
    unread_count: int


class QuietHoursPayload(BaseModel):
    enabled: Optional[bool] = None
    start_time: Optional[str] = Field(default=None, pattern=r"^\d{2}:\d{2}$")
    end_time: Optional[str] = Field(default=None, pattern=r"^\d{2}:\d{2}$")


class PreferencesRequest(BaseModel):
    categories: Optional[dict[str, dict[str, bool]]] = None
    quiet_hours: Optional[QuietHoursPayload] = None


class PreferencesResponse(BaseModel):
    user_id: str
    preferences: dict


# Missions


class CreateMissionRequest(BaseModel):
    business_id: str
    title: str = Field(..., max_length=200)
    reward_points: int
    description: str = Field(default="", max_length=4000)
    mission_type: MissionType = MissionType.STANDARD
    max_participants: Optional[int] = None
    requires_proof: bool = True
    expires_at: Optional[datetime] = None
    publish: bool = False


class UpdateMissionRequest(BaseModel):
    title: Optional[str] = Field(default=None, max_length=200)
    description: Optional[str] = Field(default=None, max_length=4000)
    mission_type: Optional[MissionType] = None
    reward_points: Optional[int] = None
    max_participants: Optional[int] = None
    requires_proof: Optional[bool] = None
    expires_at: Optional[datetime] = None


class MissionResponse(BaseModel):
    mission_id: str
    mission: dict


class MissionListResponse(BaseModel):
    missions: list[dict]


class ApplyRequest(BaseModel):
    user_id: str


class ProofRequest(BaseModel):
    proof_url: Optional[str] = None
    proof_text: Optional[str] = Field(default=None, max_length=4000)


class ReviewRequest(BaseModel):
    approved: bool
    feedback: Optional[str] = Field(default=None, max_length=1024)


class ParticipationResponse(BaseModel):
    participation_id: str
    participation: dict


class ParticipationListResponse(BaseModel):
    participations: list[dict]


# Check-ins


class QrCheckInRequest(BaseModel):
    user_id: str
    qr_data: str = Field(..., max_length=2048)


class GpsCheckInRequest(BaseModel):
    user_id: str
    business_id: str
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    accuracy: Optional[float] = Field(default=None, ge=0)


class CheckInResponse(BaseModel):
    check_in_id: str
    check_in: dict


class CheckInListResponse(BaseModel):
    check_ins: list[dict]


class QrPayloadResponse(BaseModel):
    business_id: str
    qr_data: str


class CheckInMethodRequest(BaseModel):
    method: CheckInMethod


class CheckInMethodResponse(BaseModel):
    business_id: str
    method: CheckInMethod


# Rewards


class RewardFields(BaseModel):
    description: Optional[str] = Field(default=None, max_length=4000)
    category: Optional[str] = None
    active: Optional[bool] = None
    unlimited: Optional[bool] = None
    total_available: Optional[int] = Field(default=None, ge=0)
    expires_at: Optional[datetime] = None
    valid_days: Optional[list[int]] = None
    valid_time_start: Optional[str] = Field(default=None, pattern=r"^\d{2}:\d{2}$")
    valid_time_end: Optional[str] = Field(default=None, pattern=r"^\d{2}:\d{2}$")
    min_points_required: Optional[int] = None
    level_required: Optional[int] = None
    redemption_frequency: Optional[RedemptionFrequency] = None
    validation_type: Optional[ValidationType] = None
    expiry_days: Optional[int] = None


class CreateRewardRequest(RewardFields):
    business_id: str
    title: str = Field(..., max_length=200)
    points_cost: int


class UpdateRewardRequest(RewardFields):
    title: Optional[str] = Field(default=None, max_length=200)
    points_cost: Optional[int] = None


class RewardResponse(BaseModel):
    reward_id: str
    reward: dict


class RewardListResponse(BaseModel):
    rewards: list[dict]


class RedeemRequest(BaseModel):
    user_id: str


class ValidateCodeRequest(BaseModel):
    code: str = Field(..., max_length=128)
    business_id: str
    validated_by: str


class MarkUsedRequest(BaseModel):
    staff_name: str


class RedemptionResponse(BaseModel):
    redemption_id: str
    redemption: dict


class RedemptionListResponse(BaseModel):
    redemptions: list[dict]


# Bring-a-friend


class InitiateReferralRequest(BaseModel):
    mission_id: str
    referrer_id: str


class FriendScanRequest(BaseModel):
    friend_id: str


class SessionResponse(BaseModel):
    session_id: str
    session: dict


class ActiveSessionResponse(BaseModel):
    session: Optional[dict] = None


class SessionListResponse(BaseModel):
    sessions: list[dict]


# First purchase


class SubmitPurchaseRequest(BaseModel):
    user_id: str
    mission_id: str
    purchase_amount: float
    order_number: str = Field(..., max_length=128)
    purchase_channel: PurchaseChannel = PurchaseChannel.IN_STORE
    receipt_url: Optional[str] = None


class PurchaseWebhookRequest(BaseModel):
    order_number: str
    business_id: str
    purchase_amount: float


class RejectPurchaseRequest(BaseModel):
    reason: str = Field(..., max_length=1024)


class PurchaseResponse(BaseModel):
    purchase_id: str
    purchase: dict


class PurchaseListResponse(BaseModel):
    purchases: list[dict]


# Availability


class DateAvailabilityRequest(BaseModel):
    status: AvailabilityStatus
    reason: Optional[str] = None
    notes: Optional[str] = None


class BulkAvailabilityRequest(BaseModel):
    dates: list[str] = Field(..., max_length=366)
    status: AvailabilityStatus
    reason: Optional[str] = None


class RecurringAvailabilityRequest(BaseModel):
    day_of_week: int = Field(..., ge=0, le=6)
    is_available: bool
    start_date: str
    end_date: Optional[str] = None


class AvailabilitySettingsRequest(BaseModel):
    timezone: Optional[str] = None
    default_available: Optional[bool] = None
    lead_time_hours: Optional[int] = Field(default=None, ge=0)
    buffer_days: Optional[int] = Field(default=None, ge=0)
    max_advance_booking_days: Optional[int] = Field(default=None, ge=0, le=365)


class AvailabilityRangeResponse(BaseModel):
    creator_id: str
    range: dict
    availability_percentage: float


class AvailabilityBlockResponse(BaseModel):
    block_id: str
    block: dict


class AvailabilityBlockListResponse(BaseModel):
    blocks: list[dict]


class RecurringAvailabilityResponse(BaseModel):
    pattern_id: str
    pattern: dict


class RecurringAvailabilityListResponse(BaseModel):
    patterns: list[dict]


class AvailabilitySettingsResponse(BaseModel):
    creator_id: str
    settings: dict


class DateListResponse(BaseModel):
    creator_id: str
    dates: list[str]


class DateCheckResponse(BaseModel):
    creator_id: str
    date: str
    available: bool


# Bookings


class PackagePayload(BaseModel):
    name: str
    tier: Literal["bronze", "silver", "gold", "custom"]
    price: float
    currency: str = "USD"
    delivery_days: int
    features: list[str] = Field(default_factory=list)
    deliverables: list[str] = Field(default_factory=list)


class CreateBookingRequest(BaseModel):
    business_id: str
    creator_id: str
    package_id: str
    start_date: str
    requirements: str = Field(default="", max_length=4000)
    package: PackagePayload


class BookingNotesRequest(BaseModel):
    notes: Optional[str] = Field(default=None, max_length=4000)


class CancelBookingRequest(BaseModel):
    reason: str = Field(..., max_length=1024)
    refund: bool = False


class BookingResponse(BaseModel):
    booking_id: str
    booking: dict


class BookingListResponse(BaseModel):
    bookings: list[dict]


class BookingCalendarResponse(BaseModel):
    creator_id: str
    days: list[dict]


# Uploads and admin


class SignUploadRequest(BaseModel):
    kind: Literal["receipt", "proof", "avatar"]
    user_id: str
    filename: Optional[str] = None
    content_type: str = "application/octet-stream"


class SignUrlResponse(BaseModel):
    url: str
    path: str


class SweepReportResponse(BaseModel):
    report: dict
    errors: list[str]
