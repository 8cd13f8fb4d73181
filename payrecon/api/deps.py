from fastapi import Depends
from sqlalchemy.orm import Session

from payrecon.config import GatewaySettings, gateway_settings
from payrecon.db import get_db
from payrecon.services.gateway import Gateway, build_gateway


def get_gateway_settings() -> GatewaySettings:
    return gateway_settings


def get_gateway(
    db: Session = Depends(get_db),
    settings: GatewaySettings = Depends(get_gateway_settings),
) -> Gateway:
    """Per-request gateway collaborators bound to the request's session."""
    return build_gateway(db, settings)


__all__ = ["get_db", "get_gateway", "get_gateway_settings"]
