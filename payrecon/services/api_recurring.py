"""Recurring-payment API orchestration: mandate bootstrap, cancellation, status."""

from __future__ import annotations

from fastapi import HTTPException
from fastapi.responses import JSONResponse

from payrecon.schemas.gateway import (
    FirstPaymentRequest,
    MandateRead,
    PaymentParams,
    PendingTransactionRead,
)
from payrecon.services.gateway import Gateway


def _require_recurring(gateway: Gateway) -> None:
    if not gateway.settings.is_active:
        raise HTTPException(status_code=503, detail="Gateway not activated")
    if not gateway.settings.enable_recurring:
        raise HTTPException(
            status_code=400, detail="Recurring payments are not enabled for this gateway"
        )


def start_first_payment(gateway: Gateway, payload: FirstPaymentRequest) -> JSONResponse:
    """Send the customer through a first payment unless a mandate already exists."""
    _require_recurring(gateway)

    customer_id = gateway.engine.ensure_customer(payload.client)
    if not customer_id:
        return JSONResponse(
            {"status": "error", "message": "Could not create Mollie customer"},
            status_code=502,
        )

    mandate = gateway.engine.get_or_create_mandate(customer_id)
    if mandate:
        gateway.engine.store_mandate(payload.client.id, mandate.id, mandate.method, mandate.status)
        return JSONResponse(
            {"status": "mandate_exists", "mandate_id": mandate.id, "method": mandate.method}
        )

    payment = gateway.engine.create_first_payment_for_mandate(
        customer_id,
        PaymentParams(
            invoice_id=payload.invoice_id,
            amount=payload.amount,
            description=payload.description,
            return_url=payload.return_url,
            service_id=payload.service_id,
        ),
    )
    if payment is None:
        return JSONResponse(
            {"status": "error", "message": "Could not create first payment"},
            status_code=502,
        )
    return JSONResponse(
        {
            "status": "pending",
            "transaction_id": payment.id,
            "checkout_url": payment.checkout_url,
        }
    )


def cancel_subscription(gateway: Gateway, subscription_id: str) -> dict:
    _require_recurring(gateway)
    row = gateway.subscriptions.get(subscription_id)
    if not row:
        raise HTTPException(status_code=404, detail="Subscription not found")
    canceled = gateway.engine.cancel_subscription(row.customer_id, subscription_id)
    return {"subscription_id": subscription_id, "canceled": canceled}


def list_mandates(gateway: Gateway, client_id: int) -> list[MandateRead]:
    return [MandateRead.model_validate(row) for row in gateway.mandates.list_for_client(client_id)]


def get_pending(gateway: Gateway, invoice_id: int) -> PendingTransactionRead:
    pending = gateway.pending.get(invoice_id)
    if not pending:
        raise HTTPException(status_code=404, detail="No pending transaction for invoice")
    return PendingTransactionRead.model_validate(pending)
