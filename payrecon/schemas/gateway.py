from __future__ import annotations

import enum
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ChargeStatus(enum.Enum):
    success = "success"
    pending = "pending"
    error = "error"


class ClientDetails(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: int = Field(ge=1)
    name: str | None = Field(default=None, max_length=255)
    email: str | None = Field(default=None, max_length=255)


class ChargeRequest(BaseModel):
    invoice_id: int = Field(ge=1)
    client: ClientDetails
    amount: Decimal = Field(gt=0)
    description: str = Field(min_length=1, max_length=255)
    service_id: int | None = None


class ChargeResult(BaseModel):
    status: ChargeStatus
    message: str
    data: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def success(cls, message: str, **data) -> ChargeResult:
        return cls(status=ChargeStatus.success, message=message, data=data)

    @classmethod
    def pending(cls, message: str, **data) -> ChargeResult:
        return cls(status=ChargeStatus.pending, message=message, data=data)

    @classmethod
    def error(cls, message: str, **data) -> ChargeResult:
        return cls(status=ChargeStatus.error, message=message, data=data)


class PaymentParams(BaseModel):
    """Parameters for a payment bound to a ledger invoice."""

    invoice_id: int = Field(ge=1)
    amount: Decimal = Field(gt=0)
    description: str = Field(min_length=1, max_length=255)
    return_url: str | None = None
    service_id: int | None = None


class SubscriptionParams(BaseModel):
    client_id: int = Field(ge=1)
    service_id: int = 0
    amount: Decimal = Field(gt=0)
    interval: str = "1 month"
    description: str = Field(min_length=1, max_length=255)
    start_date: str | None = None


class FirstPaymentRequest(BaseModel):
    invoice_id: int = Field(ge=1)
    client: ClientDetails
    amount: Decimal = Field(gt=0)
    description: str = Field(min_length=1, max_length=255)
    return_url: str
    service_id: int | None = None


class MandateRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    mandate_id: str
    client_id: int
    method: str
    status: str


class PendingTransactionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    invoice_id: int
    transaction_id: str
    status: str
