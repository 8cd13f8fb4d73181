from __future__ import annotations

import enum
import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ErrorKind(enum.Enum):
    missing_binding = "missing_binding"
    invalid_invoice = "invalid_invoice"
    no_customer = "no_customer"
    no_mandate = "no_mandate"
    provider_error = "provider_error"
    persistence_error = "persistence_error"
    already_processed = "already_processed"
    recurring_disabled = "recurring_disabled"
    inactive = "inactive"


class GatewayError(Exception):
    """Base exception for gateway reconciliation failures."""

    kind: ErrorKind = ErrorKind.provider_error
    status_code: int = 400

    def __init__(self, message: str, kind: ErrorKind | None = None):
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind


class MissingBindingError(GatewayError):
    """Provider payment carries no invoice reference in its metadata."""

    kind = ErrorKind.missing_binding


class InvalidInvoiceError(GatewayError):
    kind = ErrorKind.invalid_invoice
    status_code = 404


class NoCustomerError(GatewayError):
    kind = ErrorKind.no_customer


class NoMandateError(GatewayError):
    kind = ErrorKind.no_mandate


class ProviderError(GatewayError):
    """Any failure talking to the payment provider API."""

    kind = ErrorKind.provider_error
    status_code = 502

    def __init__(
        self,
        message: str,
        provider_status: int | None = None,
        detail: str | None = None,
    ):
        super().__init__(message)
        self.provider_status = provider_status
        self.detail = detail


class PersistenceError(GatewayError):
    kind = ErrorKind.persistence_error
    status_code = 500


class AlreadyProcessed(GatewayError):
    """Transaction was already posted to the ledger. Expected under duplicate delivery."""

    kind = ErrorKind.already_processed
    status_code = 409


def _error_payload(code: str, message: str, details: object, request_id: str | None):
    return {"code": code, "message": message, "details": details, "request_id": request_id}


def _request_id(request: Request) -> str:
    rid = getattr(request.state, "request_id", None) or request.headers.get("X-Request-ID")
    return str(rid) if rid else "unknown"


def register_error_handlers(app) -> None:
    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError):
        if exc.status_code >= 500:
            logger.error("Gateway error on %s: %s", request.url.path, exc.message)
        return JSONResponse(
            _error_payload(exc.kind.value, exc.message, None, _request_id(request)),
            status_code=exc.status_code,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        detail = exc.detail if isinstance(exc.detail, str) else "Request failed"
        return JSONResponse(
            _error_payload(f"http_{exc.status_code}", detail, exc.detail, _request_id(request)),
            status_code=exc.status_code,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            _error_payload(
                "validation_error",
                "Some required information is missing or invalid.",
                exc.errors(),
                _request_id(request),
            ),
            status_code=422,
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s", request.url.path)
        return JSONResponse(
            _error_payload("server_error", "Internal server error", None, _request_id(request)),
            status_code=500,
        )


__all__ = [
    "AlreadyProcessed",
    "ErrorKind",
    "GatewayError",
    "InvalidInvoiceError",
    "MissingBindingError",
    "NoCustomerError",
    "NoMandateError",
    "PersistenceError",
    "ProviderError",
    "register_error_handlers",
]
