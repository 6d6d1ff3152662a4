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

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any, Dict, List, Optional


class UserRole(StrEnum):
    CUSTOMER = "CUSTOMER"
    CREATOR = "CREATOR"
    BUSINESS = "BUSINESS"
    ADMIN = "ADMIN"


class TransactionType(StrEnum):
    EARN = "EARN"
    SPEND = "SPEND"
    REFUND = "REFUND"
    ADJUST = "ADJUST"


class NotificationType(StrEnum):
    MISSION_POSTED = "MISSION_POSTED"
    MISSION_APPLICATION = "MISSION_APPLICATION"
    MISSION_APPROVED = "MISSION_APPROVED"
    MISSION_REJECTED = "MISSION_REJECTED"
    POINTS_ACTIVITY = "POINTS_ACTIVITY"
    REWARD_REDEEMED = "REWARD_REDEEMED"
    BOOKING_REQUEST = "BOOKING_REQUEST"
    BOOKING_UPDATE = "BOOKING_UPDATE"
    PAYMENT_RECEIVED = "PAYMENT_RECEIVED"
    CHECK_IN = "CHECK_IN"
    SYSTEM = "SYSTEM"


class MissionType(StrEnum):
    STANDARD = "STANDARD"
    CHECK_IN = "CHECK_IN"
    BRING_A_FRIEND = "BRING_A_FRIEND"
    FIRST_PURCHASE = "FIRST_PURCHASE"
    CONTENT = "CONTENT"


class MissionStatus(StrEnum):
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    EXPIRED = "EXPIRED"


class ParticipationStatus(StrEnum):
    PENDING = "PENDING"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class CheckInMethod(StrEnum):
    QR_ONLY = "QR_ONLY"
    GPS = "GPS"
    BOTH = "BOTH"


class RedemptionFrequency(StrEnum):
    UNLIMITED = "UNLIMITED"
    ONCE = "ONCE"
    ONCE_PER_DAY = "ONCE_PER_DAY"
    ONCE_PER_WEEK = "ONCE_PER_WEEK"


class ValidationType(StrEnum):
    PHYSICAL = "PHYSICAL"
    ONLINE = "ONLINE"


class RedemptionStatus(StrEnum):
    PENDING = "PENDING"
    USED = "USED"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"


class SessionStatus(StrEnum):
    WAITING_FOR_FRIEND = "WAITING_FOR_FRIEND"
    BOTH_SCANNED = "BOTH_SCANNED"
    VERIFIED = "VERIFIED"
    EXPIRED = "EXPIRED"


class PurchaseStatus(StrEnum):
    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"
    REFUNDED = "REFUNDED"


class PurchaseChannel(StrEnum):
    ONLINE = "ONLINE"
    IN_STORE = "IN_STORE"
    MOBILE_APP = "MOBILE_APP"


class AvailabilityStatus(StrEnum):
    AVAILABLE = "AVAILABLE"
    UNAVAILABLE = "UNAVAILABLE"
    BOOKED = "BOOKED"


class BookingStatus(StrEnum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PAID = "PAID"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


@dataclass
class User:
    user_id: str
    name: str
    role: UserRole = UserRole.CUSTOMER
    points: int = 0
    level: int = 1
    email: Optional[str] = None
    fcm_token: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class PointsTransaction:
    transaction_id: str
    user_id: str
    type: TransactionType
    amount: int
    source: str
    description: str
    balance_before: int
    balance_after: int
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None


@dataclass
class Notification:
    notification_id: str
    user_id: str
    type: NotificationType
    title: str
    message: str
    action_link: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)
    is_read: bool = False
    deleted: bool = False
    created_at: Optional[datetime] = None
    read_at: Optional[datetime] = None


@dataclass
class ChannelPreferences:
    push: bool = True
    email: bool = True
    in_app: bool = True


@dataclass
class QuietHours:
    enabled: bool = False
    start_time: str = "22:00"
    end_time: str = "08:00"


@dataclass
class NotificationPreferences:
    """Per-user delivery rules, keyed by preference category."""

    user_id: str
    categories: Dict[str, ChannelPreferences] = field(default_factory=dict)
    quiet_hours: QuietHours = field(default_factory=QuietHours)
    updated_at: Optional[datetime] = None


@dataclass
class Mission:
    mission_id: str
    business_id: str
    business_name: str
    title: str
    reward_points: int
    description: str = ""
    mission_type: MissionType = MissionType.STANDARD
    status: MissionStatus = MissionStatus.DRAFT
    max_participants: Optional[int] = None
    current_participants: int = 0
    requires_proof: bool = True
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    published_at: Optional[datetime] = None


@dataclass
class Participation:
    participation_id: str
    mission_id: str
    user_id: str
    business_id: str
    status: ParticipationStatus = ParticipationStatus.PENDING
    proof_url: Optional[str] = None
    proof_text: Optional[str] = None
    feedback: Optional[str] = None
    points_awarded: bool = False
    metadata: Dict[str, Any] = field(default_factory=dict)
    applied_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None


@dataclass
class CheckIn:
    check_in_id: str
    user_id: str
    business_id: str
    business_name: str
    method: str
    points_earned: int
    business_points_earned: int
    timestamp: datetime
    verified: bool = True
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    accuracy: Optional[float] = None
    distance: Optional[int] = None


@dataclass
class Reward:
    reward_id: str
    business_id: str
    business_name: str
    title: str
    points_cost: int
    description: str = ""
    category: str = "GENERAL"
    active: bool = True
    unlimited: bool = False
    total_available: int = 0
    claimed: int = 0
    expires_at: Optional[datetime] = None
    valid_days: List[int] = field(default_factory=list)
    valid_time_start: Optional[str] = None
    valid_time_end: Optional[str] = None
    min_points_required: Optional[int] = None
    level_required: Optional[int] = None
    redemption_frequency: RedemptionFrequency = RedemptionFrequency.UNLIMITED
    validation_type: ValidationType = ValidationType.PHYSICAL
    expiry_days: int = 30
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class Redemption:
    redemption_id: str
    user_id: str
    user_name: str
    reward_id: str
    business_id: str
    business_name: str
    title: str
    points_spent: int
    coupon_code: str
    validation_token: str
    validation_type: ValidationType = ValidationType.PHYSICAL
    status: RedemptionStatus = RedemptionStatus.PENDING
    qr_code: Optional[str] = None
    alphanumeric_code: Optional[str] = None
    redeemed_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    used_at: Optional[datetime] = None
    used_by: Optional[str] = None


@dataclass
class BringAFriendSession:
    session_id: str
    mission_id: str
    business_id: str
    business_name: str
    referrer_id: str
    referrer_name: str
    reward_points: int
    referrer_scan_time: datetime
    status: SessionStatus = SessionStatus.WAITING_FOR_FRIEND
    friend_id: Optional[str] = None
    friend_name: Optional[str] = None
    friend_scan_time: Optional[datetime] = None
    reward_unlock_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


@dataclass
class FirstPurchase:
    purchase_id: str
    mission_id: str
    business_id: str
    business_name: str
    user_id: str
    user_name: str
    purchase_amount: float
    order_number: str
    purchase_channel: PurchaseChannel
    purchase_date: datetime
    reward_points: int
    status: PurchaseStatus = PurchaseStatus.PENDING
    receipt_url: Optional[str] = None
    webhook_verified: bool = False
    business_confirmed: bool = False
    points_awarded: bool = False
    reward_unlock_date: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    verified_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


@dataclass
class AvailabilityBlock:
    block_id: str
    creator_id: str
    date: str
    status: AvailabilityStatus
    reason: Optional[str] = None
    notes: Optional[str] = None
    booking_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class RecurringAvailability:
    pattern_id: str
    creator_id: str
    # 0 = Sunday ... 6 = Saturday
    day_of_week: int
    is_available: bool
    start_date: str
    end_date: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass
class AvailabilitySettings:
    creator_id: str
    timezone: str = "America/New_York"
    default_available: bool = True
    lead_time_hours: int = 24
    buffer_days: int = 0
    max_advance_booking_days: int = 90
    updated_at: Optional[datetime] = None


@dataclass
class AvailabilityRange:
    start_date: str
    end_date: str
    available_dates: List[str] = field(default_factory=list)
    unavailable_dates: List[str] = field(default_factory=list)
    booked_dates: List[str] = field(default_factory=list)


@dataclass
class Booking:
    booking_id: str
    business_id: str
    business_name: str
    creator_id: str
    creator_name: str
    package_id: str
    package_name: str
    package_tier: str
    start_date: str
    delivery_date: str
    price: float
    currency: str
    deposit_amount: float
    remaining_amount: float
    status: BookingStatus = BookingStatus.PENDING
    requirements: str = ""
    deliverables: List[str] = field(default_factory=list)
    features: List[str] = field(default_factory=list)
    deposit_paid: bool = False
    deposit_paid_at: Optional[datetime] = None
    final_payment_paid: bool = False
    final_payment_paid_at: Optional[datetime] = None
    notes: str = ""
    creator_notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    confirmed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
