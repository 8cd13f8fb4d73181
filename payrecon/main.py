import logging

from fastapi import FastAPI
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from payrecon.api.charges import router as charges_router
from payrecon.api.recurring import router as recurring_router
from payrecon.api.webhooks import router as webhooks_router
from payrecon.config import gateway_settings
from payrecon.errors import register_error_handlers
from payrecon.logging import configure_logging

configure_logging()

app = FastAPI(title="payrecon API")
logger = logging.getLogger(__name__)
register_error_handlers(app)

app.include_router(webhooks_router)
app.include_router(charges_router)
app.include_router(recurring_router)


@app.get("/health", tags=["health"])
def health():
    return {
        "status": "ok",
        "gateway": gateway_settings.name,
        "active": gateway_settings.is_active,
        "sandbox": gateway_settings.sandbox,
    }


@app.get("/metrics", include_in_schema=False)
def metrics():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


if not gateway_settings.is_active:
    logger.warning("No Mollie API key configured; callbacks will answer 503")
