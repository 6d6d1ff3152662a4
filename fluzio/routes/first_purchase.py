from typing import Optional

from fastapi import APIRouter, Depends

from fluzio.dependencies import get_first_purchase_service
from fluzio.schemas import (
    PurchaseListResponse,
    PurchaseResponse,
    PurchaseWebhookRequest,
    RejectPurchaseRequest,
    SubmitPurchaseRequest,
)
from fluzio.services.first_purchase import FirstPurchaseService
from shared.documents import to_document
from shared.types import PurchaseStatus

router = APIRouter(tags=["first-purchase"])


def _purchase_response(purchase) -> PurchaseResponse:
    return PurchaseResponse(purchase_id=purchase.purchase_id, purchase=to_document(purchase))


@router.post("/first-purchases", response_model=PurchaseResponse, status_code=201)
def submit_first_purchase(
    payload: SubmitPurchaseRequest,
    service: FirstPurchaseService = Depends(get_first_purchase_service),
):
    purchase = service.submit_first_purchase(
        payload.user_id,
        payload.mission_id,
        payload.purchase_amount,
        payload.order_number,
        purchase_channel=payload.purchase_channel,
        receipt_url=payload.receipt_url,
    )
    return _purchase_response(purchase)


@router.post("/first-purchases/webhook", response_model=PurchaseResponse)
def purchase_webhook(
    payload: PurchaseWebhookRequest,
    service: FirstPurchaseService = Depends(get_first_purchase_service),
):
    """Order confirmation pushed by a shop integration."""
    purchase = service.verify_purchase_via_webhook(
        payload.order_number, payload.business_id, payload.purchase_amount
    )
    return _purchase_response(purchase)


@router.get("/first-purchases/{purchase_id}", response_model=PurchaseResponse)
def get_purchase(
    purchase_id: str, service: FirstPurchaseService = Depends(get_first_purchase_service)
):
    return _purchase_response(service.get_purchase(purchase_id))


@router.post("/first-purchases/{purchase_id}/confirm", response_model=PurchaseResponse)
def confirm_purchase(
    purchase_id: str, service: FirstPurchaseService = Depends(get_first_purchase_service)
):
    return _purchase_response(service.confirm_purchase(purchase_id))


@router.post("/first-purchases/{purchase_id}/reject", response_model=PurchaseResponse)
def reject_purchase(
    purchase_id: str,
    payload: RejectPurchaseRequest,
    service: FirstPurchaseService = Depends(get_first_purchase_service),
):
    return _purchase_response(service.reject_purchase(purchase_id, payload.reason))


@router.post("/first-purchases/{purchase_id}/refund", response_model=PurchaseResponse)
def mark_refunded(
    purchase_id: str, service: FirstPurchaseService = Depends(get_first_purchase_service)
):
    return _purchase_response(service.mark_refunded(purchase_id))


@router.get("/users/{user_id}/first-purchases", response_model=PurchaseListResponse)
def list_user_purchases(
    user_id: str, service: FirstPurchaseService = Depends(get_first_purchase_service)
):
    rows = service.list_user_purchases(user_id)
    return PurchaseListResponse(purchases=[to_document(p) for p in rows])


@router.get("/businesses/{business_id}/first-purchases", response_model=PurchaseListResponse)
def list_business_purchases(
    business_id: str,
    status: Optional[PurchaseStatus] = None,
    service: FirstPurchaseService = Depends(get_first_purchase_service),
):
    rows = service.list_business_purchases(business_id, status)
    return PurchaseListResponse(purchases=[to_document(p) for p in rows])
