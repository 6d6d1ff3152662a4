from fastapi import APIRouter, Depends, Query

from fluzio.dependencies import get_points_ledger, get_user_service
from fluzio.schemas import (
    BalanceResponse,
    CreateUserRequest,
    TransactionListResponse,
    UpdateUserRequest,
    UserResponse,
)
from fluzio.services.points import PointsLedger
from fluzio.services.users import UserService
from shared.documents import to_document

router = APIRouter(prefix="/users", tags=["users"])


@router.post("", response_model=UserResponse, status_code=201)
def create_user(
    payload: CreateUserRequest, users: UserService = Depends(get_user_service)
):
    user = users.create_user(
        payload.name,
        payload.role,
        user_id=payload.user_id,
        email=payload.email,
        fcm_token=payload.fcm_token,
        latitude=payload.latitude,
        longitude=payload.longitude,
    )
    return UserResponse(user_id=user.user_id, user=to_document(user))


@router.get("/{user_id}", response_model=UserResponse)
def get_user(user_id: str, users: UserService = Depends(get_user_service)):
    user = users.get_user(user_id)
    return UserResponse(user_id=user_id, user=to_document(user))


@router.patch("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: str,
    payload: UpdateUserRequest,
    users: UserService = Depends(get_user_service),
):
    user = users.update_user(user_id, payload.model_dump(exclude_unset=True))
    return UserResponse(user_id=user_id, user=to_document(user))


@router.get("/{user_id}/balance", response_model=BalanceResponse)
def get_balance(user_id: str, users: UserService = Depends(get_user_service)):
    return BalanceResponse(user_id=user_id, points=users.get_balance(user_id))


@router.get("/{user_id}/transactions", response_model=TransactionListResponse)
def list_transactions(
    user_id: str,
    limit: int = Query(50, ge=1, le=200),
    ledger: PointsLedger = Depends(get_points_ledger),
):
    transactions = ledger.list_transactions(user_id, limit=limit)
    return TransactionListResponse(
        user_id=user_id,
        transactions=[to_document(t) for t in transactions],
    )
