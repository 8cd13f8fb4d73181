from fastapi import APIRouter, Depends

from payrecon.api.deps import get_gateway
from payrecon.schemas.gateway import ChargeRequest, ChargeResult
from payrecon.services.gateway import Gateway

router = APIRouter()


@router.post(
    "/charges",
    response_model=ChargeResult,
    tags=["charges"],
)
def charge_invoice(payload: ChargeRequest, gateway: Gateway = Depends(get_gateway)):
    """Charge a due invoice through the configured recurring strategy."""
    return gateway.charges.charge(payload)
