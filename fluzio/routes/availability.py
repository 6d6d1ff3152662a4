from fastapi import APIRouter, Depends, Query

from fluzio.dependencies import get_availability_service
from fluzio.schemas import (
    AvailabilityBlockListResponse,
    AvailabilityBlockResponse,
    AvailabilityRangeResponse,
    AvailabilitySettingsRequest,
    AvailabilitySettingsResponse,
    BulkAvailabilityRequest,
    DateAvailabilityRequest,
    DateCheckResponse,
    DateListResponse,
    RecurringAvailabilityListResponse,
    RecurringAvailabilityRequest,
    RecurringAvailabilityResponse,
    StatusResponse,
)
from fluzio.services.availability import AvailabilityService
from shared.documents import to_document

router = APIRouter(prefix="/creators/{creator_id}/availability", tags=["availability"])


@router.get("", response_model=AvailabilityRangeResponse)
def get_availability_range(
    creator_id: str,
    start: str,
    end: str,
    service: AvailabilityService = Depends(get_availability_service),
):
    result = service.get_availability_range(creator_id, start, end)
    return AvailabilityRangeResponse(
        creator_id=creator_id,
        range=to_document(result),
        availability_percentage=service.availability_percentage(creator_id, start, end),
    )


@router.get("/next", response_model=DateListResponse)
def next_available_dates(
    creator_id: str,
    count: int = Query(5, ge=1, le=60),
    service: AvailabilityService = Depends(get_availability_service),
):
    return DateListResponse(
        creator_id=creator_id, dates=service.next_available_dates(creator_id, count=count)
    )


@router.get("/blocks", response_model=AvailabilityBlockListResponse)
def list_availability_blocks(
    creator_id: str, service: AvailabilityService = Depends(get_availability_service)
):
    blocks = service.list_availability_blocks(creator_id)
    return AvailabilityBlockListResponse(blocks=[to_document(b) for b in blocks])


@router.post("/bulk", response_model=AvailabilityBlockListResponse)
def set_bulk_availability(
    creator_id: str,
    payload: BulkAvailabilityRequest,
    service: AvailabilityService = Depends(get_availability_service),
):
    blocks = service.set_bulk_availability(
        creator_id, payload.dates, payload.status, reason=payload.reason
    )
    return AvailabilityBlockListResponse(blocks=[to_document(b) for b in blocks])


@router.get("/dates/{day}", response_model=DateCheckResponse)
def is_date_available(
    creator_id: str, day: str, service: AvailabilityService = Depends(get_availability_service)
):
    return DateCheckResponse(
        creator_id=creator_id, date=day, available=service.is_date_available(creator_id, day)
    )


@router.put("/dates/{day}", response_model=AvailabilityBlockResponse)
def set_date_availability(
    creator_id: str,
    day: str,
    payload: DateAvailabilityRequest,
    service: AvailabilityService = Depends(get_availability_service),
):
    block = service.set_date_availability(
        creator_id, day, payload.status, reason=payload.reason, notes=payload.notes
    )
    return AvailabilityBlockResponse(block_id=block.block_id, block=to_document(block))


@router.delete("/dates/{day}", response_model=StatusResponse)
def remove_availability_override(
    creator_id: str, day: str, service: AvailabilityService = Depends(get_availability_service)
):
    service.remove_availability_override(creator_id, day)
    return StatusResponse(status="ok")


@router.get("/recurring", response_model=RecurringAvailabilityListResponse)
def list_recurring_availability(
    creator_id: str, service: AvailabilityService = Depends(get_availability_service)
):
    patterns = service.list_recurring_availability(creator_id)
    return RecurringAvailabilityListResponse(patterns=[to_document(p) for p in patterns])


@router.post("/recurring", response_model=RecurringAvailabilityResponse, status_code=201)
def set_recurring_availability(
    creator_id: str,
    payload: RecurringAvailabilityRequest,
    service: AvailabilityService = Depends(get_availability_service),
):
    pattern = service.set_recurring_availability(
        creator_id,
        payload.day_of_week,
        payload.is_available,
        payload.start_date,
        end_date=payload.end_date,
    )
    return RecurringAvailabilityResponse(pattern_id=pattern.pattern_id, pattern=to_document(pattern))


@router.delete("/recurring/{pattern_id}", response_model=StatusResponse)
def delete_recurring_availability(
    creator_id: str,
    pattern_id: str,
    service: AvailabilityService = Depends(get_availability_service),
):
    service.delete_recurring_availability(pattern_id)
    return StatusResponse(status="ok")


@router.get("/settings", response_model=AvailabilitySettingsResponse)
def get_settings(
    creator_id: str, service: AvailabilityService = Depends(get_availability_service)
):
    settings = service.get_settings(creator_id)
    return AvailabilitySettingsResponse(creator_id=creator_id, settings=to_document(settings))


@router.patch("/settings", response_model=AvailabilitySettingsResponse)
def update_settings(
    creator_id: str,
    payload: AvailabilitySettingsRequest,
    service: AvailabilityService = Depends(get_availability_service),
):
    settings = service.update_settings(creator_id, payload.model_dump(exclude_unset=True))
    return AvailabilitySettingsResponse(creator_id=creator_id, settings=to_document(settings))
