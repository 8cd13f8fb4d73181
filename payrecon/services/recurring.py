"""Recurring payment lifecycle.

Mandates are acquired through a ``first`` payment: the customer pays once
through checkout, and when that payment's callback reports ``paid`` the
resulting mandate is stored (see :mod:`payrecon.services.callback`).
With a valid mandate, invoices are charged either as individual
``recurring`` payments or by a provider subscription. Subscription status
after creation is only ever mirrored from the provider.

Provider failures never escape this module: they are written to the
gateway log and reported as ``None`` / ``False`` to the caller, who must
handle the "nothing was created" case.
"""

from __future__ import annotations

import logging
from typing import Any

from payrecon.config import GatewaySettings
from payrecon.errors import PersistenceError, ProviderError
from payrecon.models.recurring import Mandate as MandateRow
from payrecon.models.recurring import MandateStatus
from payrecon.schemas.gateway import ClientDetails, PaymentParams, SubscriptionParams
from payrecon.schemas.provider import Amount, Mandate, Payment, Subscription
from payrecon.services.common import as_datetime
from payrecon.services.gateway_log import GatewayLog
from payrecon.services.provider import ProviderClient
from payrecon.services.stores import (
    CustomerStore,
    MandateStore,
    PendingTransactionStore,
    SubscriptionStore,
)

logger = logging.getLogger(__name__)

SEQUENCE_FIRST = "first"
SEQUENCE_RECURRING = "recurring"


class RecurringEngine:
    def __init__(
        self,
        gateway: GatewaySettings,
        provider: ProviderClient,
        mandates: MandateStore,
        subscriptions: SubscriptionStore,
        pending: PendingTransactionStore,
        customers: CustomerStore,
        log: GatewayLog,
    ):
        self.gateway = gateway
        self.provider = provider
        self.mandates = mandates
        self.subscriptions = subscriptions
        self.pending = pending
        self.customers = customers
        self.log = log

    def _amount(self, value) -> Amount:
        return Amount.of(value, self.gateway.currency)

    @staticmethod
    def _invoice_metadata(params: PaymentParams) -> dict[str, Any]:
        return {"invoice_id": params.invoice_id, "service_id": params.service_id}

    # -------------------------------------------------------------------------
    # Customers and mandates
    # -------------------------------------------------------------------------

    def ensure_customer(self, client: ClientDetails) -> str | None:
        """Return the provider customer id for a client, creating it if needed."""
        customer_id = self.customers.get_customer_id(client.id)
        if customer_id:
            return customer_id
        try:
            customer = self.provider.create_customer(
                client.name, client.email, metadata={"client_id": client.id}
            )
        except ProviderError as exc:
            self.log.error(f"Error creating customer for client {client.id}: {exc.message}")
            return None
        self.customers.save(client.id, customer.id)
        logger.info("Created Mollie customer %s for client %s", customer.id, client.id)
        return customer.id

    def get_or_create_mandate(self, customer_id: str, method: str | None = None) -> Mandate | None:
        """Return the customer's first valid mandate at the provider.

        ``None`` means no usable mandate exists and the customer has to go
        through a first payment before recurring charges are possible.
        """
        try:
            mandates = self.provider.list_mandates(customer_id)
        except ProviderError as exc:
            self.log.error(f"Error getting mandate: {exc.message}")
            return None
        for mandate in mandates:
            if mandate.status == MandateStatus.valid.value and (
                method is None or mandate.method == method
            ):
                return mandate
        return None

    def get_valid_mandate(self, client_id: int, method: str | None = None) -> MandateRow | None:
        return self.mandates.get_valid_mandate(client_id, method)

    def store_mandate(self, client_id: int, mandate_id: str, method: str, status: str) -> MandateRow:
        return self.mandates.store_mandate(client_id, mandate_id, method, status)

    # -------------------------------------------------------------------------
    # Payments
    # -------------------------------------------------------------------------

    def create_first_payment_for_mandate(
        self, customer_id: str, params: PaymentParams
    ) -> Payment | None:
        metadata = self._invoice_metadata(params)
        metadata.update({"recurring": True, "first_payment": True})
        try:
            payment = self.provider.create_payment(
                customer_id,
                self._amount(params.amount),
                params.description,
                params.return_url,
                metadata,
                webhook_url=self.gateway.webhook_url,
                sequence_type=SEQUENCE_FIRST,
            )
        except ProviderError as exc:
            self.log.error(f"Error creating first payment for mandate: {exc.message}")
            return None

        self.pending.mark_pending(
            params.invoice_id, payment.id, details={"sequence_type": SEQUENCE_FIRST}
        )
        self.log.record(
            f"First payment for recurring mandate attempted for invoice {params.invoice_id}. "
            f"Awaiting payment confirmation from callback for transaction {payment.id}."
        )
        return payment

    def create_recurring_payment(
        self, customer_id: str, mandate_id: str, params: PaymentParams
    ) -> Payment | None:
        try:
            payment = self.provider.create_payment(
                customer_id,
                self._amount(params.amount),
                params.description,
                None,
                self._invoice_metadata(params),
                webhook_url=self.gateway.webhook_url,
                sequence_type=SEQUENCE_RECURRING,
                mandate_id=mandate_id,
            )
        except ProviderError as exc:
            self.log.error(f"Error creating recurring payment: {exc.message}")
            return None

        self.pending.mark_pending(
            params.invoice_id,
            payment.id,
            details={"sequence_type": SEQUENCE_RECURRING, "mandate_id": mandate_id},
        )
        self.log.record(
            f"Recurring payment attempted for invoice {params.invoice_id}. "
            f"Transaction ID: {payment.id}."
        )
        return payment

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    def create_subscription(
        self, customer_id: str, params: SubscriptionParams
    ) -> Subscription | None:
        try:
            subscription = self.provider.create_subscription(
                customer_id,
                self._amount(params.amount),
                params.interval,
                params.description,
                webhook_url=self.gateway.webhook_url,
                metadata={"client_id": params.client_id, "service_id": params.service_id},
                start_date=params.start_date,
            )
        except ProviderError as exc:
            self.log.error(f"Error creating subscription: {exc.message}")
            return None

        try:
            self.subscriptions.create(
                subscription_id=subscription.id,
                customer_id=customer_id,
                client_id=params.client_id,
                service_id=params.service_id,
                status=subscription.status,
                next_payment_date=as_datetime(subscription.next_payment_date),
                amount=params.amount,
                interval=params.interval,
                description=params.description,
            )
        except PersistenceError as exc:
            self.log.error(
                f"Subscription {subscription.id} created at Mollie but could not be "
                f"stored: {exc.message}"
            )
            self._cancel_unstored(customer_id, subscription.id)
            return None

        self.log.record(f"Subscription created: {subscription.id} for client {params.client_id}.")
        return subscription

    def _cancel_unstored(self, customer_id: str, subscription_id: str) -> None:
        try:
            self.provider.cancel_subscription(customer_id, subscription_id)
        except ProviderError as exc:
            self.log.error(
                f"Error canceling unstored subscription {subscription_id}: {exc.message}"
            )

    def cancel_subscription(self, customer_id: str, subscription_id: str) -> bool:
        try:
            self.provider.cancel_subscription(customer_id, subscription_id)
        except ProviderError as exc:
            self.log.error(f"Error canceling subscription {subscription_id}: {exc.message}")
            return False

        self.subscriptions.mark_canceled(subscription_id)
        self.log.record(f"Subscription {subscription_id} canceled successfully.")
        return True


__all__ = ["RecurringEngine", "SEQUENCE_FIRST", "SEQUENCE_RECURRING"]
