from fastapi import APIRouter, Depends

from payrecon.api.deps import get_gateway
from payrecon.schemas.gateway import FirstPaymentRequest, MandateRead, PendingTransactionRead
from payrecon.services import api_recurring as api_recurring_service
from payrecon.services.gateway import Gateway

router = APIRouter()


@router.post(
    "/recurring/first-payment",
    tags=["recurring"],
)
def start_first_payment(payload: FirstPaymentRequest, gateway: Gateway = Depends(get_gateway)):
    return api_recurring_service.start_first_payment(gateway, payload)


@router.post(
    "/subscriptions/{subscription_id}/cancel",
    tags=["recurring"],
)
def cancel_subscription(subscription_id: str, gateway: Gateway = Depends(get_gateway)):
    return api_recurring_service.cancel_subscription(gateway, subscription_id)


@router.get(
    "/clients/{client_id}/mandates",
    response_model=list[MandateRead],
    tags=["recurring"],
)
def list_mandates(client_id: int, gateway: Gateway = Depends(get_gateway)):
    return api_recurring_service.list_mandates(gateway, client_id)


@router.get(
    "/invoices/{invoice_id}/pending",
    response_model=PendingTransactionRead,
    tags=["recurring"],
)
def get_pending_transaction(invoice_id: int, gateway: Gateway = Depends(get_gateway)):
    return api_recurring_service.get_pending(gateway, invoice_id)
