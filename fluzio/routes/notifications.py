from typing import Optional

from fastapi import APIRouter, Depends, Query

from fluzio.dependencies import get_notification_service
from fluzio.schemas import (
    CountResponse,
    NotificationListResponse,
    PreferencesRequest,
    PreferencesResponse,
    StatusResponse,
)
from fluzio.services.notifications import NotificationService
from shared.documents import to_document

router = APIRouter(tags=["notifications"])


@router.get("/users/{user_id}/notifications", response_model=NotificationListResponse)
def list_notifications(
    user_id: str,
    unread_only: bool = False,
    limit: Optional[int] = Query(None, ge=1, le=500),
    service: NotificationService = Depends(get_notification_service),
):
    notifications = service.list_notifications(user_id, unread_only=unread_only, limit=limit)
    return NotificationListResponse(
        user_id=user_id,
        notifications=[to_document(n) for n in notifications],
        unread_count=service.unread_count(user_id),
    )


@router.post("/users/{user_id}/notifications/read", response_model=CountResponse)
def mark_all_read(
    user_id: str, service: NotificationService = Depends(get_notification_service)
):
    return CountResponse(count=service.mark_all_read(user_id))


@router.delete("/users/{user_id}/notifications", response_model=CountResponse)
def delete_all(
    user_id: str, service: NotificationService = Depends(get_notification_service)
):
    return CountResponse(count=service.delete_all(user_id))


@router.post("/notifications/{notification_id}/read", response_model=StatusResponse)
def mark_read(
    notification_id: str,
    service: NotificationService = Depends(get_notification_service),
):
    service.mark_read(notification_id)
    return StatusResponse(status="ok")


@router.delete("/notifications/{notification_id}", response_model=StatusResponse)
def delete_notification(
    notification_id: str,
    service: NotificationService = Depends(get_notification_service),
):
    service.delete_notification(notification_id)
    return StatusResponse(status="ok")


@router.get(
    "/users/{user_id}/notification-preferences", response_model=PreferencesResponse
)
def get_preferences(
    user_id: str, service: NotificationService = Depends(get_notification_service)
):
    prefs = service.get_preferences(user_id)
    return PreferencesResponse(user_id=user_id, preferences=to_document(prefs))


@router.put(
    "/users/{user_id}/notification-preferences", response_model=PreferencesResponse
)
def update_preferences(
    user_id: str,
    payload: PreferencesRequest,
    service: NotificationService = Depends(get_notification_service),
):
    quiet_hours = (
        payload.quiet_hours.model_dump(exclude_none=True) if payload.quiet_hours else None
    )
    prefs = service.update_preferences(
        user_id, categories=payload.categories, quiet_hours=quiet_hours
    )
    return PreferencesResponse(user_id=user_id, preferences=to_document(prefs))
