from fastapi import APIRouter, Depends, Form

from payrecon.api.deps import get_gateway
from payrecon.services import api_webhooks as api_webhooks_service
from payrecon.services.gateway import Gateway

router = APIRouter()


@router.post(
    "/callback/mollie",
    tags=["callbacks"],
)
def mollie_webhook(
    reference: str | None = Form(None, alias="id"),
    status: str | None = None,
    gateway: Gateway = Depends(get_gateway),
):
    return api_webhooks_service.process_mollie_webhook(
        gateway=gateway,
        reference=reference.strip() if reference else None,
        status_override=status or None,
    )
