from typing import Optional

from fastapi import APIRouter, Depends

from fluzio.dependencies import get_booking_service
from fluzio.schemas import (
    BookingCalendarResponse,
    BookingListResponse,
    BookingNotesRequest,
    BookingResponse,
    CancelBookingRequest,
    CreateBookingRequest,
    StatsResponse,
)
from fluzio.services.bookings import BookingRequest, BookingService, PackageDetails
from shared.documents import encode_value, to_document
from shared.types import BookingStatus

router = APIRouter(tags=["bookings"])


def _booking_response(booking) -> BookingResponse:
    return BookingResponse(booking_id=booking.booking_id, booking=to_document(booking))


@router.post("/bookings", response_model=BookingResponse, status_code=201)
def create_booking(
    payload: CreateBookingRequest, bookings: BookingService = Depends(get_booking_service)
):
    request = BookingRequest(
        business_id=payload.business_id,
        creator_id=payload.creator_id,
        package_id=payload.package_id,
        start_date=payload.start_date,
        requirements=payload.requirements,
    )
    package = PackageDetails(**payload.package.model_dump())
    return _booking_response(bookings.create_booking(request, package))


@router.get("/bookings/{booking_id}", response_model=BookingResponse)
def get_booking(booking_id: str, bookings: BookingService = Depends(get_booking_service)):
    return _booking_response(bookings.get_booking(booking_id))


@router.post("/bookings/{booking_id}/confirm", response_model=BookingResponse)
def confirm_booking(
    booking_id: str,
    payload: BookingNotesRequest,
    bookings: BookingService = Depends(get_booking_service),
):
    return _booking_response(bookings.confirm_booking(booking_id, notes=payload.notes))


@router.post("/bookings/{booking_id}/deposit", response_model=BookingResponse)
def mark_deposit_paid(booking_id: str, bookings: BookingService = Depends(get_booking_service)):
    return _booking_response(bookings.mark_deposit_paid(booking_id))


@router.post("/bookings/{booking_id}/start", response_model=BookingResponse)
def start_booking(booking_id: str, bookings: BookingService = Depends(get_booking_service)):
    return _booking_response(bookings.start_booking(booking_id))


@router.post("/bookings/{booking_id}/complete", response_model=BookingResponse)
def complete_booking(
    booking_id: str,
    payload: BookingNotesRequest,
    bookings: BookingService = Depends(get_booking_service),
):
    return _booking_response(bookings.complete_booking(booking_id, notes=payload.notes))


@router.post("/bookings/{booking_id}/final-payment", response_model=BookingResponse)
def mark_final_payment_paid(
    booking_id: str, bookings: BookingService = Depends(get_booking_service)
):
    return _booking_response(bookings.mark_final_payment_paid(booking_id))


@router.post("/bookings/{booking_id}/cancel", response_model=BookingResponse)
def cancel_booking(
    booking_id: str,
    payload: CancelBookingRequest,
    bookings: BookingService = Depends(get_booking_service),
):
    booking = bookings.cancel_booking(booking_id, payload.reason, refund=payload.refund)
    return _booking_response(booking)


@router.get("/creators/{creator_id}/bookings", response_model=BookingListResponse)
def list_creator_bookings(
    creator_id: str,
    status: Optional[BookingStatus] = None,
    bookings: BookingService = Depends(get_booking_service),
):
    rows = bookings.list_creator_bookings(creator_id, status)
    return BookingListResponse(bookings=[to_document(b) for b in rows])


@router.get("/creators/{creator_id}/bookings/stats", response_model=StatsResponse)
def creator_booking_stats(
    creator_id: str, bookings: BookingService = Depends(get_booking_service)
):
    return StatsResponse(stats=encode_value(bookings.creator_booking_stats(creator_id)))


@router.get("/creators/{creator_id}/bookings/calendar", response_model=BookingCalendarResponse)
def booking_calendar(
    creator_id: str,
    start: str,
    end: str,
    bookings: BookingService = Depends(get_booking_service),
):
    days = bookings.booking_calendar(creator_id, start, end)
    return BookingCalendarResponse(creator_id=creator_id, days=encode_value(days))


@router.get("/businesses/{business_id}/bookings", response_model=BookingListResponse)
def list_business_bookings(
    business_id: str,
    status: Optional[BookingStatus] = None,
    bookings: BookingService = Depends(get_booking_service),
):
    rows = bookings.list_business_bookings(business_id, status)
    return BookingListResponse(bookings=[to_document(b) for b in rows])


@router.get("/businesses/{business_id}/bookings/stats", response_model=StatsResponse)
def business_booking_stats(
    business_id: str, bookings: BookingService = Depends(get_booking_service)
):
    return StatsResponse(stats=encode_value(bookings.business_booking_stats(business_id)))
