from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from payrecon.errors import PersistenceError
from payrecon.models.recurring import Mandate, MandateStatus
from payrecon.services.common import utcnow
from payrecon.services.stores.base import BaseStore


class MandateStore(BaseStore[Mandate]):
    model_class = Mandate

    def get(self, mandate_id: str) -> Mandate | None:
        return self._first(select(Mandate).where(Mandate.mandate_id == mandate_id))

    def store_mandate(self, client_id: int, mandate_id: str, method: str, status: str) -> Mandate:
        """Insert or update a mandate keyed by its provider id.

        An existing row keeps its owning client; only method, status and
        the update timestamp change. Rows are never deleted.
        """
        mandate = self.get(mandate_id)
        if mandate:
            self._apply(mandate, method, status)
            self._commit(mandate)
            return mandate

        mandate = Mandate(client_id=client_id, mandate_id=mandate_id, method=method, status=status)
        self.db.add(mandate)
        try:
            self.db.flush()
        except IntegrityError as exc:
            # Lost an insert race with a concurrent delivery of the same mandate
            self.db.rollback()
            mandate = self.get(mandate_id)
            if mandate is None:
                raise PersistenceError(f"Failed to store mandate {mandate_id}") from exc
            self._apply(mandate, method, status)
        self._commit(mandate)
        return mandate

    @staticmethod
    def _apply(mandate: Mandate, method: str, status: str) -> None:
        mandate.method = method
        mandate.status = status
        mandate.updated_at = utcnow()

    def get_valid_mandate(self, client_id: int, method: str | None = None) -> Mandate | None:
        stmt = (
            select(Mandate)
            .where(Mandate.client_id == client_id)
            .where(Mandate.status == MandateStatus.valid.value)
            .order_by(Mandate.created_at.desc())
        )
        if method is not None:
            stmt = stmt.where(Mandate.method == method)
        return self._first(stmt)

    def list_for_client(self, client_id: int) -> list[Mandate]:
        stmt = (
            select(Mandate)
            .where(Mandate.client_id == client_id)
            .order_by(Mandate.created_at.desc())
        )
        return self._all(stmt)
