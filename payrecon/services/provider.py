"""Mollie API client.

Thin typed wrapper over the Mollie v2 REST API covering the payment,
customer, mandate and subscription resources the reconciliation flows
need. Every failure, including a malformed response body, surfaces as
:class:`~payrecon.errors.ProviderError`.
"""

from __future__ import annotations

import logging
import time
from typing import Any, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ValidationError

from payrecon.errors import ProviderError
from payrecon.metrics import observe_provider_call
from payrecon.schemas.provider import Amount, Customer, Mandate, Payment, Subscription

logger = logging.getLogger(__name__)

MOLLIE_API_BASE = "https://api.mollie.com/v2"

M = TypeVar("M", bound=BaseModel)


class ProviderClient:
    """HTTP client for the Mollie v2 API."""

    def __init__(
        self,
        api_key: str,
        base_url: str = MOLLIE_API_BASE,
        timeout: float = 30.0,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _request(
        self,
        operation: str,
        method: str,
        path: str,
        params: dict | None = None,
        json_data: dict | None = None,
    ) -> dict[str, Any]:
        """Perform one API call and return the decoded JSON body.

        Raises:
            ProviderError: On transport failure, non-2xx status or a body
                that is not JSON.
        """
        if not self.api_key:
            raise ProviderError("Mollie API key is not configured")

        url = f"{self.base_url}{path}"
        headers = {"Authorization": f"Bearer {self.api_key}"}
        started = time.monotonic()
        status = "error"
        try:
            with httpx.Client(timeout=self.timeout, headers=headers) as client:
                response = client.request(method, url, params=params, json=json_data)
                response.raise_for_status()
                status = str(response.status_code)
                if response.status_code == 204 or not response.content:
                    return {}
                return response.json()
        except httpx.HTTPStatusError as e:
            status = str(e.response.status_code)
            detail = _error_detail(e.response)
            logger.error("Mollie API error on %s: %s - %s", operation, status, detail)
            raise ProviderError(
                f"Mollie API error: {e.response.status_code}",
                provider_status=e.response.status_code,
                detail=detail,
            ) from e
        except httpx.RequestError as e:
            logger.error("Mollie request error on %s: %s", operation, e)
            raise ProviderError(f"Mollie request error: {e}") from e
        except ValueError as e:
            logger.error("Mollie returned invalid JSON on %s", operation)
            raise ProviderError("Mollie returned an invalid response body") from e
        finally:
            observe_provider_call(operation, status, time.monotonic() - started)

    @staticmethod
    def _parse(model: type[M], data: Any) -> M:
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise ProviderError(
                f"Unexpected {model.__name__.lower()} payload from Mollie",
                detail=str(e),
            ) from e

    @staticmethod
    def _embedded(data: dict[str, Any], key: str) -> list[Any]:
        embedded = data.get("_embedded") or {}
        items = embedded.get(key, [])
        if not isinstance(items, list):
            raise ProviderError(f"Unexpected {key} listing from Mollie")
        return items

    # -------------------------------------------------------------------------
    # Payments
    # -------------------------------------------------------------------------

    def get_payment(self, payment_id: str) -> Payment:
        data = self._request("get_payment", "GET", f"/payments/{quote(payment_id, safe='')}")
        return self._parse(Payment, data)

    def create_payment(
        self,
        customer_id: str,
        amount: Amount,
        description: str,
        return_url: str | None,
        metadata: dict[str, Any],
        *,
        webhook_url: str | None = None,
        sequence_type: str | None = None,
        mandate_id: str | None = None,
    ) -> Payment:
        """Create a payment on behalf of a customer.

        Args:
            customer_id: Mollie customer ID (``cst_...``).
            amount: Amount to charge.
            description: Description shown on the customer's statement.
            return_url: Where the customer lands after checkout. Not needed
                for ``recurring`` payments, which never see a checkout.
            metadata: Free-form metadata; carries the invoice binding.
            webhook_url: Callback URL for status changes.
            sequence_type: ``oneoff``, ``first`` or ``recurring``.
            mandate_id: Mandate to charge for ``recurring`` payments.
        """
        payload: dict[str, Any] = {
            "amount": amount.to_api(),
            "description": description,
            "metadata": metadata,
        }
        if return_url:
            payload["redirectUrl"] = return_url
        if webhook_url:
            payload["webhookUrl"] = webhook_url
        if sequence_type:
            payload["sequenceType"] = sequence_type
        if mandate_id:
            payload["mandateId"] = mandate_id

        data = self._request(
            "create_payment",
            "POST",
            f"/customers/{quote(customer_id, safe='')}/payments",
            json_data=payload,
        )
        return self._parse(Payment, data)

    # -------------------------------------------------------------------------
    # Customers and mandates
    # -------------------------------------------------------------------------

    def create_customer(
        self,
        name: str | None,
        email: str | None,
        metadata: dict[str, Any] | None = None,
    ) -> Customer:
        payload: dict[str, Any] = {}
        if name:
            payload["name"] = name
        if email:
            payload["email"] = email
        if metadata:
            payload["metadata"] = metadata
        data = self._request("create_customer", "POST", "/customers", json_data=payload)
        return self._parse(Customer, data)

    def list_mandates(self, customer_id: str) -> list[Mandate]:
        data = self._request(
            "list_mandates",
            "GET",
            f"/customers/{quote(customer_id, safe='')}/mandates",
        )
        return [self._parse(Mandate, item) for item in self._embedded(data, "mandates")]

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    def get_subscription(self, customer_id: str, subscription_id: str) -> Subscription:
        data = self._request(
            "get_subscription",
            "GET",
            f"/customers/{quote(customer_id, safe='')}"
            f"/subscriptions/{quote(subscription_id, safe='')}",
        )
        return self._parse(Subscription, data)

    def create_subscription(
        self,
        customer_id: str,
        amount: Amount,
        interval: str,
        description: str,
        *,
        webhook_url: str | None = None,
        metadata: dict[str, Any] | None = None,
        start_date: str | None = None,
    ) -> Subscription:
        payload: dict[str, Any] = {
            "amount": amount.to_api(),
            "interval": interval,
            "description": description,
        }
        if webhook_url:
            payload["webhookUrl"] = webhook_url
        if metadata:
            payload["metadata"] = metadata
        if start_date:
            payload["startDate"] = start_date

        data = self._request(
            "create_subscription",
            "POST",
            f"/customers/{quote(customer_id, safe='')}/subscriptions",
            json_data=payload,
        )
        return self._parse(Subscription, data)

    def cancel_subscription(self, customer_id: str, subscription_id: str) -> Subscription | None:
        data = self._request(
            "cancel_subscription",
            "DELETE",
            f"/customers/{quote(customer_id, safe='')}"
            f"/subscriptions/{quote(subscription_id, safe='')}",
        )
        if not data:
            return None
        return self._parse(Subscription, data)


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:500]
    if isinstance(body, dict):
        return str(body.get("detail") or body.get("title") or body)
    return str(body)
