from fastapi import APIRouter, Depends

from fluzio.dependencies import get_bring_a_friend_service
from fluzio.schemas import (
    ActiveSessionResponse,
    FriendScanRequest,
    InitiateReferralRequest,
    SessionListResponse,
    SessionResponse,
)
from fluzio.services.bring_a_friend import BringAFriendService
from shared.documents import to_document

router = APIRouter(prefix="/bring-a-friend", tags=["bring-a-friend"])


@router.post("/sessions", response_model=SessionResponse, status_code=201)
def initiate_referral(
    payload: InitiateReferralRequest,
    service: BringAFriendService = Depends(get_bring_a_friend_service),
):
    session = service.initiate_referral(payload.mission_id, payload.referrer_id)
    return SessionResponse(session_id=session.session_id, session=to_document(session))


@router.get("/sessions/{session_id}", response_model=SessionResponse)
def get_session(
    session_id: str, service: BringAFriendService = Depends(get_bring_a_friend_service)
):
    session = service.get_session(session_id)
    return SessionResponse(session_id=session_id, session=to_document(session))


@router.post("/sessions/{session_id}/scan", response_model=SessionResponse)
def complete_friend_scan(
    session_id: str,
    payload: FriendScanRequest,
    service: BringAFriendService = Depends(get_bring_a_friend_service),
):
    session = service.complete_friend_scan(session_id, payload.friend_id)
    return SessionResponse(session_id=session_id, session=to_document(session))


@router.get("/users/{user_id}/active", response_model=ActiveSessionResponse)
def get_active_session(
    user_id: str,
    business_id: str,
    service: BringAFriendService = Depends(get_bring_a_friend_service),
):
    session = service.get_active_session(user_id, business_id)
    return ActiveSessionResponse(session=to_document(session) if session else None)


@router.get("/users/{user_id}/sessions", response_model=SessionListResponse)
def list_user_sessions(
    user_id: str, service: BringAFriendService = Depends(get_bring_a_friend_service)
):
    sessions = service.list_user_sessions(user_id)
    return SessionListResponse(sessions=[to_document(s) for s in sessions])
