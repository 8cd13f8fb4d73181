"""Charge-now entry point used by the billing host when an invoice falls due.

The host renders the returned :class:`ChargeResult` directly, so every
failure is reported as an ``error`` result rather than raised.
"""

from __future__ import annotations

import logging

from payrecon.config import GatewaySettings
from payrecon.errors import AlreadyProcessed, GatewayError, NoCustomerError, NoMandateError
from payrecon.metrics import observe_charge
from payrecon.schemas.gateway import ChargeRequest, ChargeResult, PaymentParams, SubscriptionParams
from payrecon.services.callback import NO_FEE, STATUS_PAID
from payrecon.services.gateway_log import GatewayLog
from payrecon.services.ledger import LedgerGateway
from payrecon.services.recurring import RecurringEngine
from payrecon.services.stores import CustomerStore, SubscriptionStore

logger = logging.getLogger(__name__)


class ChargeRequestHandler:
    def __init__(
        self,
        gateway: GatewaySettings,
        engine: RecurringEngine,
        ledger: LedgerGateway,
        subscriptions: SubscriptionStore,
        customers: CustomerStore,
        log: GatewayLog,
    ):
        self.gateway = gateway
        self.engine = engine
        self.ledger = ledger
        self.subscriptions = subscriptions
        self.customers = customers
        self.log = log

    def charge(self, request: ChargeRequest) -> ChargeResult:
        strategy = "subscription" if self.gateway.uses_subscriptions else "manual"
        result = self._charge(request)
        observe_charge(strategy, result.status.value)
        return result

    def _charge(self, request: ChargeRequest) -> ChargeResult:
        if not self.gateway.is_active:
            return ChargeResult.error(
                f"Failed to process recurring payment for invoice {request.invoice_id} "
                "- API key is missing!"
            )
        if not self.gateway.enable_recurring:
            return ChargeResult.error("Recurring payments are not enabled for this gateway.")

        try:
            customer_id = self._customer_id(request.client.id)
            if self.gateway.uses_subscriptions:
                return self._charge_by_subscription(request, customer_id)
            return self._charge_manual(request, customer_id)
        except (NoCustomerError, NoMandateError) as exc:
            return ChargeResult.error(exc.message, error=exc.kind.value)
        except GatewayError as exc:
            logger.error("Charge for invoice %s failed: %s", request.invoice_id, exc.message)
            return ChargeResult.error(
                f"Failed to process recurring payment for invoice {request.invoice_id}.",
                error=exc.kind.value,
                exception=exc.message,
            )

    def _customer_id(self, client_id: int) -> str:
        customer_id = self.customers.get_customer_id(client_id)
        if not customer_id:
            raise NoCustomerError(f"Customer ID not found for client {client_id}.")
        return customer_id

    def _require_mandate(self, client_id: int):
        mandate = self.engine.get_valid_mandate(client_id)
        if not mandate:
            raise NoMandateError(
                f"No valid mandate found for client {client_id}. "
                "Client must make a first payment to authorize recurring payments."
            )
        return mandate

    def _charge_manual(self, request: ChargeRequest, customer_id: str) -> ChargeResult:
        mandate = self._require_mandate(request.client.id)
        payment = self.engine.create_recurring_payment(
            customer_id,
            mandate.mandate_id,
            PaymentParams(
                invoice_id=request.invoice_id,
                amount=request.amount,
                description=request.description,
                service_id=request.service_id,
            ),
        )
        if payment is None:
            return ChargeResult.error(
                f"Failed to create recurring payment for invoice {request.invoice_id}."
            )

        # Some push-payment methods settle immediately instead of via callback
        if payment.status == STATUS_PAID:
            try:
                self.ledger.post_payment(
                    request.invoice_id,
                    payment.id,
                    payment.amount.value,
                    NO_FEE,
                    self.gateway.payment_method,
                )
            except AlreadyProcessed:
                logger.info("Payment %s was already applied by its callback", payment.id)
            else:
                self.log.record(
                    f"Payment {payment.id} completed successfully - invoice {request.invoice_id}."
                )
            self.engine.pending.clear(request.invoice_id)
            return ChargeResult.success(
                f"Successfully processed recurring payment for invoice {request.invoice_id}.",
                transaction_id=payment.id,
            )

        return ChargeResult.pending(
            f"Recurring payment initiated for invoice {request.invoice_id}. "
            "Awaiting processing by Mollie.",
            transaction_id=payment.id,
        )

    def _charge_by_subscription(self, request: ChargeRequest, customer_id: str) -> ChargeResult:
        client_id = request.client.id
        existing = self.subscriptions.get_active_for_client(client_id)
        if existing:
            return ChargeResult.pending(
                f"Client already has an active subscription. "
                f"Invoice {request.invoice_id} will be paid automatically.",
                subscription_id=existing.subscription_id,
            )

        self._require_mandate(client_id)
        subscription = self.engine.create_subscription(
            customer_id,
            SubscriptionParams(
                client_id=client_id,
                service_id=request.service_id or 0,
                amount=request.amount,
                interval=self.gateway.subscription_interval,
                description=request.description,
            ),
        )
        if subscription is None:
            return ChargeResult.error(f"Failed to create subscription for client {client_id}.")

        return ChargeResult.success(
            f"Successfully created subscription for client {client_id}.",
            subscription_id=subscription.id,
        )
