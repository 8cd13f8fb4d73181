from datetime import datetime

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError

from payrecon.errors import PersistenceError
from payrecon.models.recurring import PendingTransaction
from payrecon.services.common import utcnow
from payrecon.services.stores.base import BaseStore


class PendingTransactionStore(BaseStore[PendingTransaction]):
    """Invoice -> provider transaction markers for payments awaiting a callback."""

    model_class = PendingTransaction

    def get(self, invoice_id: int) -> PendingTransaction | None:
        return self._first(
            select(PendingTransaction).where(PendingTransaction.invoice_id == invoice_id)
        )

    def mark_pending(
        self,
        invoice_id: int,
        transaction_id: str,
        details: dict | None = None,
    ) -> PendingTransaction:
        pending = self.get(invoice_id)
        if pending:
            pending.transaction_id = transaction_id
            pending.status = "pending"
            pending.details = details
            pending.updated_at = utcnow()
        else:
            pending = PendingTransaction(
                invoice_id=invoice_id,
                transaction_id=transaction_id,
                status="pending",
                details=details,
            )
            self.db.add(pending)
        self._commit(pending)
        return pending

    def clear(self, invoice_id: int) -> int:
        try:
            result = self.db.execute(
                delete(PendingTransaction).where(PendingTransaction.invoice_id == invoice_id)
            )
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise PersistenceError(f"Failed to clear pending invoice {invoice_id}") from exc
        self._commit()
        return result.rowcount or 0

    def list_older_than(self, cutoff: datetime) -> list[PendingTransaction]:
        """Markers not armed or re-armed since ``cutoff``."""
        last_armed = func.coalesce(PendingTransaction.updated_at, PendingTransaction.created_at)
        stmt = (
            select(PendingTransaction)
            .where(last_armed < cutoff)
            .order_by(last_armed.asc())
        )
        return self._all(stmt)
