"""
HTTP routes for the Fluzio backend API.
"""

from fastapi import APIRouter

from .admin import router as admin_router
from .availability import router as availability_router
from .bookings import router as bookings_router
from .bring_a_friend import router as bring_a_friend_router
from .checkins import router as checkins_router
from .first_purchase import router as first_purchase_router
from .health import router as health_router
from .missions import router as missions_router
from .notifications import router as notifications_router
from .rewards import router as rewards_router
from .uploads import router as uploads_router
from .users import router as users_router

router = APIRouter()
for _router in (
    health_router,
    users_router,
    notifications_router,
    missions_router,
    checkins_router,
    rewards_router,
    bring_a_friend_router,
    first_purchase_router,
    availability_router,
    bookings_router,
    uploads_router,
    admin_router,
):
    router.include_router(_router)

__all__ = ["router"]
