from fastapi import APIRouter, Depends, Query

from fluzio.dependencies import get_check_in_service
from fluzio.schemas import (
    CheckInListResponse,
    CheckInMethodRequest,
    CheckInMethodResponse,
    CheckInResponse,
    GpsCheckInRequest,
    QrCheckInRequest,
    QrPayloadResponse,
    StatsResponse,
)
from fluzio.services.checkins import CheckInService
from shared.documents import encode_value, to_document

router = APIRouter(tags=["check-ins"])


@router.post("/check-ins/qr", response_model=CheckInResponse, status_code=201)
def qr_check_in(
    payload: QrCheckInRequest, service: CheckInService = Depends(get_check_in_service)
):
    check_in = service.process_qr_check_in(payload.qr_data, payload.user_id)
    return CheckInResponse(check_in_id=check_in.check_in_id, check_in=to_document(check_in))


@router.post("/check-ins/gps", response_model=CheckInResponse, status_code=201)
def gps_check_in(
    payload: GpsCheckInRequest, service: CheckInService = Depends(get_check_in_service)
):
    check_in = service.process_gps_check_in(
        payload.user_id,
        payload.business_id,
        payload.latitude,
        payload.longitude,
        accuracy=payload.accuracy,
    )
    return CheckInResponse(check_in_id=check_in.check_in_id, check_in=to_document(check_in))


@router.get("/businesses/{business_id}/check-in-qr", response_model=QrPayloadResponse)
def check_in_qr(business_id: str, service: CheckInService = Depends(get_check_in_service)):
    return QrPayloadResponse(
        business_id=business_id, qr_data=service.generate_qr_payload(business_id)
    )


@router.get("/businesses/{business_id}/check-in-method", response_model=CheckInMethodResponse)
def get_check_in_method(
    business_id: str, service: CheckInService = Depends(get_check_in_service)
):
    return CheckInMethodResponse(
        business_id=business_id, method=service.get_check_in_method(business_id)
    )


@router.put("/businesses/{business_id}/check-in-method", response_model=CheckInMethodResponse)
def set_check_in_method(
    business_id: str,
    payload: CheckInMethodRequest,
    service: CheckInService = Depends(get_check_in_service),
):
    method = service.set_check_in_method(business_id, payload.method)
    return CheckInMethodResponse(business_id=business_id, method=method)


@router.get("/businesses/{business_id}/check-ins", response_model=CheckInListResponse)
def list_business_check_ins(
    business_id: str,
    limit: int = Query(50, ge=1, le=500),
    service: CheckInService = Depends(get_check_in_service),
):
    rows = service.list_business_check_ins(business_id, limit=limit)
    return CheckInListResponse(check_ins=[to_document(c) for c in rows])


@router.get("/businesses/{business_id}/check-ins/stats", response_model=StatsResponse)
def check_in_stats(business_id: str, service: CheckInService = Depends(get_check_in_service)):
    return StatsResponse(stats=encode_value(service.check_in_stats(business_id)))
