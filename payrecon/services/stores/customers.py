from sqlalchemy import select

from payrecon.models.recurring import ProviderCustomer
from payrecon.services.stores.base import BaseStore


class CustomerStore(BaseStore[ProviderCustomer]):
    """Billing client -> provider customer id mapping."""

    model_class = ProviderCustomer

    def get_customer_id(self, client_id: int) -> str | None:
        return self._value(
            select(ProviderCustomer.customer_id).where(ProviderCustomer.client_id == client_id)
        )

    def save(self, client_id: int, customer_id: str) -> ProviderCustomer:
        row = self._first(select(ProviderCustomer).where(ProviderCustomer.client_id == client_id))
        if row:
            row.customer_id = customer_id
        else:
            row = ProviderCustomer(client_id=client_id, customer_id=customer_id)
            self.db.add(row)
        self._commit(row)
        return row
