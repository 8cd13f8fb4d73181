"""Provider webhook orchestration for the HTTP layer."""

from __future__ import annotations

import logging

from fastapi.responses import JSONResponse, Response

from payrecon.services.gateway import Gateway

logger = logging.getLogger(__name__)

INACTIVE_BODY = {
    "status": "error",
    "message": "Gateway not activated. Please try again later.",
}


def process_mollie_webhook(
    *,
    gateway: Gateway,
    reference: str | None,
    status_override: str | None = None,
) -> Response:
    if not reference:
        return Response(status_code=200)

    if not gateway.callbacks.is_active():
        logger.warning("Mollie webhook for %s received while gateway is inactive", reference)
        return JSONResponse(INACTIVE_BODY, status_code=503)

    try:
        gateway.callbacks.process(reference, status_override=status_override)
    except Exception as exc:
        # process() logs its own failures; this only guards the response contract
        logger.exception("Mollie webhook processing error for %s: %s", reference, exc)

    return Response(status_code=200)
