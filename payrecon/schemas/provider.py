"""Typed views of provider API resources.

Responses are validated on the way in; a resource missing a required
field is rejected at the client boundary instead of surfacing as ``None``
deep inside the reconciliation code.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class _ProviderModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class Amount(_ProviderModel):
    currency: str = Field(min_length=3, max_length=3)
    value: Decimal

    @classmethod
    def of(cls, value: Decimal | float | str, currency: str) -> Amount:
        return cls(currency=currency, value=Decimal(str(value)))

    def to_api(self) -> dict[str, str]:
        return {"currency": self.currency, "value": f"{self.value:.2f}"}


class PaymentMetadata(_ProviderModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    invoice_id: int | None = Field(
        default=None, validation_alias=AliasChoices("invoice_id", "whmcs_invoice")
    )
    service_id: int | None = None
    recurring: bool = False
    first_payment: bool = False

    @field_validator("invoice_id", "service_id", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if v in ("", 0, "0"):
            return None
        return v


class Payment(_ProviderModel):
    id: str
    status: str
    mode: str = "live"
    amount: Amount
    description: str | None = None
    method: str | None = None
    metadata: PaymentMetadata = Field(default_factory=PaymentMetadata)
    customer_id: str | None = Field(default=None, alias="customerId")
    mandate_id: str | None = Field(default=None, alias="mandateId")
    sequence_type: str | None = Field(default=None, alias="sequenceType")
    links: dict[str, Any] = Field(default_factory=dict, alias="_links")

    @field_validator("metadata", mode="before")
    @classmethod
    def coerce_metadata(cls, v):
        # Payments created outside this system may carry string or null metadata
        if not isinstance(v, dict):
            return {}
        return v

    @property
    def is_test(self) -> bool:
        return self.mode == "test"

    @property
    def checkout_url(self) -> str | None:
        checkout = self.links.get("checkout") or {}
        return checkout.get("href")


class Mandate(_ProviderModel):
    id: str
    status: str
    method: str
    mode: str = "live"
    created_at: datetime | None = Field(default=None, alias="createdAt")


class Subscription(_ProviderModel):
    id: str
    status: str
    customer_id: str | None = Field(default=None, alias="customerId")
    mode: str = "live"
    amount: Amount | None = None
    interval: str | None = None
    description: str | None = None
    next_payment_date: date | None = Field(default=None, alias="nextPaymentDate")
    metadata: dict[str, Any] | None = None


class Customer(_ProviderModel):
    id: str
    name: str | None = None
    email: str | None = None
    metadata: dict[str, Any] | None = None
