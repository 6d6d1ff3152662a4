from typing import Optional

from fastapi import APIRouter, Depends

from fluzio.dependencies import get_mission_service
from fluzio.schemas import (
    ApplyRequest,
    CreateMissionRequest,
    MissionListResponse,
    MissionResponse,
    ParticipationListResponse,
    ParticipationResponse,
    ProofRequest,
    ReviewRequest,
    StatsResponse,
    StatusResponse,
    UpdateMissionRequest,
)
from fluzio.services.missions import MissionService
from shared.documents import to_document
from shared.types import MissionStatus, ParticipationStatus

router = APIRouter(tags=["missions"])


def _mission_response(mission) -> MissionResponse:
    return MissionResponse(mission_id=mission.mission_id, mission=to_document(mission))


def _participation_response(participation) -> ParticipationResponse:
    return ParticipationResponse(
        participation_id=participation.participation_id,
        participation=to_document(participation),
    )


@router.post("/missions", response_model=MissionResponse, status_code=201)
def create_mission(
    payload: CreateMissionRequest, missions: MissionService = Depends(get_mission_service)
):
    mission = missions.create_mission(
        payload.business_id,
        payload.title,
        payload.reward_points,
        description=payload.description,
        mission_type=payload.mission_type,
        max_participants=payload.max_participants,
        requires_proof=payload.requires_proof,
        expires_at=payload.expires_at,
        publish=payload.publish,
    )
    return _mission_response(mission)


@router.get("/missions", response_model=MissionListResponse)
def list_active_missions(
    business_id: Optional[str] = None,
    missions: MissionService = Depends(get_mission_service),
):
    active = missions.list_active_missions(business_id)
    return MissionListResponse(missions=[to_document(m) for m in active])


@router.get("/missions/{mission_id}", response_model=MissionResponse)
def get_mission(mission_id: str, missions: MissionService = Depends(get_mission_service)):
    return _mission_response(missions.get_mission(mission_id))


@router.patch("/missions/{mission_id}", response_model=MissionResponse)
def update_mission(
    mission_id: str,
    payload: UpdateMissionRequest,
    missions: MissionService = Depends(get_mission_service),
):
    mission = missions.update_mission(mission_id, payload.model_dump(exclude_unset=True))
    return _mission_response(mission)


@router.delete("/missions/{mission_id}", response_model=StatusResponse)
def delete_mission(mission_id: str, missions: MissionService = Depends(get_mission_service)):
    missions.delete_mission(mission_id)
    return StatusResponse(status="ok")


@router.post("/missions/{mission_id}/publish", response_model=MissionResponse)
def publish_mission(mission_id: str, missions: MissionService = Depends(get_mission_service)):
    return _mission_response(missions.publish_mission(mission_id))


@router.post("/missions/{mission_id}/pause", response_model=MissionResponse)
def pause_mission(mission_id: str, missions: MissionService = Depends(get_mission_service)):
    return _mission_response(missions.pause_mission(mission_id))


@router.post(
    "/missions/{mission_id}/apply", response_model=ParticipationResponse, status_code=201
)
def apply_to_mission(
    mission_id: str,
    payload: ApplyRequest,
    missions: MissionService = Depends(get_mission_service),
):
    return _participation_response(missions.apply_to_mission(mission_id, payload.user_id))


@router.get("/missions/{mission_id}/participations", response_model=ParticipationListResponse)
def list_mission_participations(
    mission_id: str,
    status: Optional[ParticipationStatus] = None,
    missions: MissionService = Depends(get_mission_service),
):
    rows = missions.list_mission_participations(mission_id, status)
    return ParticipationListResponse(participations=[to_document(p) for p in rows])


@router.post("/participations/{participation_id}/proof", response_model=ParticipationResponse)
def submit_proof(
    participation_id: str,
    payload: ProofRequest,
    missions: MissionService = Depends(get_mission_service),
):
    participation = missions.submit_proof(
        participation_id, proof_url=payload.proof_url, proof_text=payload.proof_text
    )
    return _participation_response(participation)


@router.post("/participations/{participation_id}/review", response_model=ParticipationResponse)
def review_participation(
    participation_id: str,
    payload: ReviewRequest,
    missions: MissionService = Depends(get_mission_service),
):
    participation = missions.review_participation(
        participation_id, payload.approved, feedback=payload.feedback
    )
    return _participation_response(participation)


@router.get("/users/{user_id}/participations", response_model=ParticipationListResponse)
def list_user_participations(
    user_id: str,
    status: Optional[ParticipationStatus] = None,
    missions: MissionService = Depends(get_mission_service),
):
    rows = missions.list_user_participations(user_id, status)
    return ParticipationListResponse(participations=[to_document(p) for p in rows])


@router.get("/businesses/{business_id}/missions", response_model=MissionListResponse)
def list_business_missions(
    business_id: str,
    status: Optional[MissionStatus] = None,
    missions: MissionService = Depends(get_mission_service),
):
    rows = missions.list_business_missions(business_id, status)
    return MissionListResponse(missions=[to_document(m) for m in rows])


@router.get("/businesses/{business_id}/missions/stats", response_model=StatsResponse)
def mission_stats(business_id: str, missions: MissionService = Depends(get_mission_service)):
    return StatsResponse(stats=missions.mission_stats(business_id))
