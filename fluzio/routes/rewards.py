from typing import Optional

from fastapi import APIRouter, Depends

from fluzio.dependencies import get_reward_service
from fluzio.schemas import (
    CreateRewardRequest,
    MarkUsedRequest,
    RedeemRequest,
    RedemptionListResponse,
    RedemptionResponse,
    RewardListResponse,
    RewardResponse,
    StatusResponse,
    UpdateRewardRequest,
    ValidateCodeRequest,
)
from fluzio.services.rewards import RewardService
from shared.documents import to_document

router = APIRouter(tags=["rewards"])


def _reward_response(reward) -> RewardResponse:
    return RewardResponse(reward_id=reward.reward_id, reward=to_document(reward))


def _redemption_response(redemption) -> RedemptionResponse:
    return RedemptionResponse(
        redemption_id=redemption.redemption_id, redemption=to_document(redemption)
    )


@router.post("/rewards", response_model=RewardResponse, status_code=201)
def create_reward(
    payload: CreateRewardRequest, rewards: RewardService = Depends(get_reward_service)
):
    options = payload.model_dump(
        exclude_none=True, exclude={"business_id", "title", "points_cost"}
    )
    reward = rewards.create_reward(
        payload.business_id, payload.title, payload.points_cost, **options
    )
    return _reward_response(reward)


@router.get("/rewards", response_model=RewardListResponse)
def list_active_rewards(
    business_id: Optional[str] = None,
    rewards: RewardService = Depends(get_reward_service),
):
    rows = rewards.list_active_rewards(business_id)
    return RewardListResponse(rewards=[to_document(r) for r in rows])


@router.get("/rewards/{reward_id}", response_model=RewardResponse)
def get_reward(reward_id: str, rewards: RewardService = Depends(get_reward_service)):
    return _reward_response(rewards.get_reward(reward_id))


@router.patch("/rewards/{reward_id}", response_model=RewardResponse)
def update_reward(
    reward_id: str,
    payload: UpdateRewardRequest,
    rewards: RewardService = Depends(get_reward_service),
):
    reward = rewards.update_reward(reward_id, payload.model_dump(exclude_unset=True))
    return _reward_response(reward)


@router.delete("/rewards/{reward_id}", response_model=StatusResponse)
def delete_reward(reward_id: str, rewards: RewardService = Depends(get_reward_service)):
    rewards.delete_reward(reward_id)
    return StatusResponse(status="ok")


@router.post("/rewards/{reward_id}/redeem", response_model=RedemptionResponse, status_code=201)
def redeem_reward(
    reward_id: str,
    payload: RedeemRequest,
    rewards: RewardService = Depends(get_reward_service),
):
    return _redemption_response(rewards.redeem_reward(payload.user_id, reward_id))


@router.get("/redemptions/{redemption_id}", response_model=RedemptionResponse)
def get_redemption(
    redemption_id: str, rewards: RewardService = Depends(get_reward_service)
):
    return _redemption_response(rewards.get_redemption(redemption_id))


@router.post("/redemptions/validate", response_model=RedemptionResponse)
def validate_redemption_code(
    payload: ValidateCodeRequest, rewards: RewardService = Depends(get_reward_service)
):
    redemption = rewards.validate_redemption_code(
        payload.code, payload.business_id, payload.validated_by
    )
    return _redemption_response(redemption)


@router.post("/redemptions/{redemption_id}/use", response_model=RedemptionResponse)
def mark_redemption_used(
    redemption_id: str,
    payload: MarkUsedRequest,
    rewards: RewardService = Depends(get_reward_service),
):
    return _redemption_response(
        rewards.mark_redemption_used(redemption_id, payload.staff_name)
    )


@router.post("/redemptions/{redemption_id}/cancel", response_model=RedemptionResponse)
def cancel_redemption(
    redemption_id: str, rewards: RewardService = Depends(get_reward_service)
):
    return _redemption_response(rewards.cancel_redemption(redemption_id))


@router.get("/users/{user_id}/redemptions", response_model=RedemptionListResponse)
def list_user_redemptions(user_id: str, rewards: RewardService = Depends(get_reward_service)):
    rows = rewards.list_user_redemptions(user_id)
    return RedemptionListResponse(redemptions=[to_document(r) for r in rows])


@router.get("/businesses/{business_id}/rewards", response_model=RewardListResponse)
def list_business_rewards(
    business_id: str, rewards: RewardService = Depends(get_reward_service)
):
    rows = rewards.list_business_rewards(business_id)
    return RewardListResponse(rewards=[to_document(r) for r in rows])


@router.get("/businesses/{business_id}/redemptions", response_model=RedemptionListResponse)
def list_business_redemptions(
    business_id: str, rewards: RewardService = Depends(get_reward_service)
):
    rows = rewards.list_business_redemptions(business_id)
    return RedemptionListResponse(redemptions=[to_document(r) for r in rows])
