"""Provider webhook processing.

Mollie posts only the id of a payment or subscription whose state changed.
The processor fetches the authoritative record, checks it is bound to one
of our invoices and applies the matching ledger mutation exactly once.

Nothing raised here reaches the HTTP layer: a failure response would make
the provider retry a delivery we have already given up on. Every outcome
is written to the gateway log instead.
"""

from __future__ import annotations

import logging

from payrecon.config import GatewaySettings
from payrecon.errors import AlreadyProcessed, MissingBindingError
from payrecon.metrics import observe_webhook
from payrecon.models.recurring import MandateStatus
from payrecon.schemas.provider import Payment
from payrecon.services.common import as_datetime, round_money
from payrecon.services.gateway_log import GatewayLog
from payrecon.services.ledger import LedgerGateway
from payrecon.services.provider import ProviderClient
from payrecon.services.recurring import RecurringEngine
from payrecon.services.stores import PendingTransactionStore, SubscriptionStore

logger = logging.getLogger(__name__)

SUBSCRIPTION_PREFIX = "sub_"

STATUS_PAID = "paid"
STATUS_CHARGED_BACK = "charged_back"

NO_FEE = round_money("0.00")


class CallbackProcessor:
    def __init__(
        self,
        gateway: GatewaySettings,
        provider: ProviderClient,
        ledger: LedgerGateway,
        engine: RecurringEngine,
        subscriptions: SubscriptionStore,
        pending: PendingTransactionStore,
        log: GatewayLog,
    ):
        self.gateway = gateway
        self.provider = provider
        self.ledger = ledger
        self.engine = engine
        self.subscriptions = subscriptions
        self.pending = pending
        self.log = log

    def is_active(self) -> bool:
        """True when an API key is configured for the current mode."""
        return self.gateway.is_active

    def process(self, reference: str, status_override: str | None = None) -> None:
        """Reconcile one provider notification.

        Args:
            reference: Payment (``tr_...``) or subscription (``sub_...``) id.
            status_override: Replaces the reported status of test-mode
                payments while running in sandbox, for manual QA.
        """
        if not self.is_active():
            return

        if reference.startswith(SUBSCRIPTION_PREFIX):
            self._handle_subscription(reference)
            return

        try:
            outcome = self._handle_payment(reference, status_override)
        except Exception as exc:
            observe_webhook("payment", "error")
            message = getattr(exc, "message", None) or str(exc)
            self.log.error(f"Payment {reference} failed with an error - {message}.")
            return
        observe_webhook("payment", outcome)

    def _handle_payment(self, reference: str, status_override: str | None) -> str:
        transaction = self.provider.get_payment(reference)

        invoice_id = transaction.metadata.invoice_id
        if not invoice_id:
            raise MissingBindingError("Invoice ID is missing from transaction metadata")

        self.ledger.validate_invoice_binding(invoice_id, self.gateway.name)

        status = transaction.status
        if self.gateway.sandbox and transaction.is_test and status_override:
            logger.info(
                "Overriding status of test payment %s: %s -> %s",
                transaction.id,
                status,
                status_override,
            )
            status = status_override

        if status == STATUS_PAID:
            outcome = self._handle_paid(invoice_id, transaction)
        elif status == STATUS_CHARGED_BACK:
            outcome = self._handle_charged_back(invoice_id, transaction)
        else:
            logger.info("Payment %s for invoice %s is %s", transaction.id, invoice_id, status)
            outcome = "ignored"

        self.pending.clear(invoice_id)
        return outcome

    def _handle_paid(self, invoice_id: int, transaction: Payment) -> str:
        if self.ledger.is_known_transaction(transaction.id):
            logger.info("Payment %s already applied to invoice %s", transaction.id, invoice_id)
            return "duplicate"

        try:
            self.ledger.post_payment(
                invoice_id,
                transaction.id,
                transaction.amount.value,
                NO_FEE,
                self.gateway.payment_method,
            )
        except AlreadyProcessed:
            logger.info("Payment %s was applied by a concurrent delivery", transaction.id)
            return "duplicate"

        self.log.record(
            f"Payment {transaction.id} completed successfully - invoice {invoice_id}."
        )

        if self.gateway.enable_recurring and transaction.metadata.recurring:
            self._capture_mandate(invoice_id, transaction)
        return STATUS_PAID

    def _capture_mandate(self, invoice_id: int, transaction: Payment) -> None:
        # Runs after the payment is posted; a failure here must not undo it.
        try:
            customer_id = transaction.customer_id
            if not customer_id:
                logger.warning(
                    "Recurring payment %s has no customer, skipping mandate capture",
                    transaction.id,
                )
                return
            for mandate in self.provider.list_mandates(customer_id):
                if mandate.status != MandateStatus.valid.value:
                    continue
                client_id = self.ledger.get_invoice_owner(invoice_id)
                self.engine.store_mandate(client_id, mandate.id, mandate.method, mandate.status)
                self.log.record(
                    f"Valid mandate {mandate.id} created for customer {customer_id} "
                    f"with method {mandate.method}."
                )
                break
        except Exception as exc:
            message = getattr(exc, "message", None) or str(exc)
            self.log.error(f"Error processing recurring payment mandate: {message}")

    def _handle_charged_back(self, invoice_id: int, transaction: Payment) -> str:
        description = (
            f"Payment {transaction.id} charged back by customer - invoice {invoice_id}."
        )
        try:
            self.ledger.reverse_payment(
                invoice_id,
                transaction.amount.value,
                description,
                NO_FEE,
                self.gateway.payment_method,
                transaction.id,
            )
        except AlreadyProcessed:
            logger.info("Chargeback for %s was already recorded", transaction.id)
            return "duplicate"

        self.log.record(description, "Charged Back")
        return STATUS_CHARGED_BACK

    def _handle_subscription(self, subscription_id: str) -> None:
        try:
            row = self.subscriptions.get(subscription_id)
            if row is None:
                raise LookupError(f"Cannot find client ID for subscription {subscription_id}")

            subscription = self.provider.get_subscription(row.customer_id, subscription_id)
            self.subscriptions.update_status(
                subscription_id,
                subscription.status,
                as_datetime(subscription.next_payment_date),
            )
        except Exception as exc:
            observe_webhook("subscription", "error")
            message = getattr(exc, "message", None) or str(exc)
            self.log.error(f"Error processing subscription notification: {message}")
            return

        observe_webhook("subscription", subscription.status)
        self.log.record(
            f"Subscription {subscription_id} status updated to {subscription.status}."
        )
