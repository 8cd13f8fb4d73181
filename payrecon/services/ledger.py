"""Billing ledger boundary.

The ledger (invoices, payments, transaction rows, gateway log) belongs to
the billing host. :class:`LedgerGateway` is the narrow surface the
reconciliation code depends on; :class:`SqlLedgerGateway` implements it on
the host tables mapped in :mod:`payrecon.models.ledger`.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Protocol

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from payrecon.errors import AlreadyProcessed, InvalidInvoiceError, PersistenceError
from payrecon.models.ledger import (
    GatewayLogEntry,
    Invoice,
    InvoiceStatus,
    LedgerTransaction,
    LedgerTransactionKind,
)
from payrecon.services.common import round_money

logger = logging.getLogger(__name__)


class LedgerGateway(Protocol):
    def is_known_transaction(self, transaction_id: str) -> bool: ...

    def post_payment(
        self,
        invoice_id: int,
        transaction_id: str,
        amount: Decimal,
        fee: Decimal,
        method: str,
    ) -> None: ...

    def mark_invoice_unpaid(self, invoice_id: int) -> None: ...

    def reverse_payment(
        self,
        invoice_id: int,
        amount: Decimal,
        description: str,
        fee: Decimal,
        method: str,
        transaction_id: str,
    ) -> None: ...

    def record_transaction(
        self,
        client_id: int,
        amount: Decimal,
        description: str,
        fee: Decimal,
        invoice_id: int,
        method: str,
        transaction_id: str,
    ) -> None: ...

    def get_invoice_owner(self, invoice_id: int) -> int: ...

    def validate_invoice_binding(self, invoice_id: int, gateway_name: str) -> None: ...

    def write_audit_log(self, gateway_name: str, description: str, status: str) -> None: ...


class SqlLedgerGateway:
    """LedgerGateway backed by the billing host's tables."""

    def __init__(self, db: Session):
        self.db = db

    def _get_invoice(self, invoice_id: int) -> Invoice:
        invoice = self.db.get(Invoice, invoice_id)
        if not invoice:
            raise InvalidInvoiceError(f"Invoice {invoice_id} not found")
        return invoice

    def _commit(self, action: str) -> None:
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise PersistenceError(f"Failed to {action}: {exc}") from exc

    def is_known_transaction(self, transaction_id: str) -> bool:
        stmt = (
            select(LedgerTransaction.id)
            .where(LedgerTransaction.transaction_id == transaction_id)
            .where(LedgerTransaction.kind == LedgerTransactionKind.payment)
            .limit(1)
        )
        try:
            return self.db.scalar(stmt) is not None
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to look up transaction {transaction_id}") from exc

    def post_payment(
        self,
        invoice_id: int,
        transaction_id: str,
        amount: Decimal,
        fee: Decimal,
        method: str,
    ) -> None:
        """Apply a provider payment to an invoice.

        The ``(transaction_id, kind)`` unique constraint is the claim: when
        two deliveries of the same transaction race past
        :meth:`is_known_transaction`, only one insert commits and the other
        raises :class:`AlreadyProcessed`.
        """
        invoice = self._get_invoice(invoice_id)
        self.db.add(
            LedgerTransaction(
                client_id=invoice.client_id,
                invoice_id=invoice.id,
                transaction_id=transaction_id,
                kind=LedgerTransactionKind.payment,
                description=f"Invoice Payment (Trans ID: {transaction_id})",
                amount_in=round_money(amount),
                fees=round_money(fee),
                payment_method=method,
            )
        )
        try:
            self.db.flush()
        except IntegrityError as exc:
            self.db.rollback()
            raise AlreadyProcessed(f"Transaction {transaction_id} already posted") from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise PersistenceError(f"Failed to post payment {transaction_id}") from exc

        if self._amount_paid(invoice.id) >= round_money(invoice.total):
            invoice.status = InvoiceStatus.paid
            invoice.date_paid = datetime.now(timezone.utc)
        try:
            self._commit(f"post payment {transaction_id}")
        except IntegrityError as exc:
            raise AlreadyProcessed(f"Transaction {transaction_id} already posted") from exc

    def _amount_paid(self, invoice_id: int) -> Decimal:
        stmt = select(
            func.coalesce(func.sum(LedgerTransaction.amount_in), 0)
            - func.coalesce(func.sum(LedgerTransaction.amount_out), 0)
        ).where(LedgerTransaction.invoice_id == invoice_id)
        return round_money(Decimal(str(self.db.scalar(stmt) or 0)))

    @staticmethod
    def _set_unpaid(invoice: Invoice) -> None:
        invoice.status = InvoiceStatus.unpaid
        invoice.date_paid = None

    def mark_invoice_unpaid(self, invoice_id: int) -> None:
        self._set_unpaid(self._get_invoice(invoice_id))
        self._commit(f"mark invoice {invoice_id} unpaid")

    def record_transaction(
        self,
        client_id: int,
        amount: Decimal,
        description: str,
        fee: Decimal,
        invoice_id: int,
        method: str,
        transaction_id: str,
    ) -> None:
        """Record a money-out row against the client (chargebacks, reversals)."""
        self._claim_reversal(client_id, amount, description, fee, invoice_id, method, transaction_id)
        self._commit(f"record transaction {transaction_id}")

    def reverse_payment(
        self,
        invoice_id: int,
        amount: Decimal,
        description: str,
        fee: Decimal,
        method: str,
        transaction_id: str,
    ) -> None:
        """Record a chargeback and reopen its invoice in a single commit.

        The reversal row is the claim: a repeated delivery raises
        :class:`AlreadyProcessed` before the invoice is touched, so an
        invoice paid again in the meantime stays paid.
        """
        invoice = self._get_invoice(invoice_id)
        self._claim_reversal(
            invoice.client_id, amount, description, fee, invoice.id, method, transaction_id
        )
        self._set_unpaid(invoice)
        self._commit(f"reverse payment {transaction_id}")

    def _claim_reversal(
        self,
        client_id: int,
        amount: Decimal,
        description: str,
        fee: Decimal,
        invoice_id: int,
        method: str,
        transaction_id: str,
    ) -> None:
        self.db.add(
            LedgerTransaction(
                client_id=client_id,
                invoice_id=invoice_id,
                transaction_id=transaction_id,
                kind=LedgerTransactionKind.chargeback,
                description=description,
                amount_out=round_money(amount),
                fees=round_money(fee),
                payment_method=method,
            )
        )
        try:
            self.db.flush()
        except IntegrityError as exc:
            self.db.rollback()
            raise AlreadyProcessed(
                f"Reversal for transaction {transaction_id} already recorded"
            ) from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise PersistenceError(f"Failed to record reversal {transaction_id}") from exc

    def get_invoice_owner(self, invoice_id: int) -> int:
        stmt = select(Invoice.client_id).where(Invoice.id == invoice_id)
        client_id = self.db.scalar(stmt)
        if client_id is None:
            raise InvalidInvoiceError(f"Invoice {invoice_id} not found")
        return client_id

    def validate_invoice_binding(self, invoice_id: int, gateway_name: str) -> None:
        invoice = self._get_invoice(invoice_id)
        if invoice.payment_method != gateway_name:
            raise InvalidInvoiceError(
                f"Invoice {invoice_id} does not belong to gateway {gateway_name}"
            )

    def write_audit_log(self, gateway_name: str, description: str, status: str) -> None:
        self.db.add(GatewayLogEntry(gateway=gateway_name, description=description, status=status))
        self._commit("write gateway log")
