from datetime import datetime
from decimal import Decimal

from sqlalchemy import select

from payrecon.models.recurring import Subscription, SubscriptionStatus
from payrecon.services.common import utcnow
from payrecon.services.stores.base import BaseStore


class SubscriptionStore(BaseStore[Subscription]):
    model_class = Subscription

    def create(
        self,
        *,
        subscription_id: str,
        customer_id: str,
        client_id: int,
        service_id: int,
        status: str,
        next_payment_date: datetime | None,
        amount: Decimal | None = None,
        interval: str | None = None,
        description: str | None = None,
    ) -> Subscription:
        subscription = Subscription(
            subscription_id=subscription_id,
            customer_id=customer_id,
            client_id=client_id,
            service_id=service_id or 0,
            status=status,
            next_payment_date=next_payment_date,
            amount=amount,
            interval=interval,
            description=description,
        )
        self.db.add(subscription)
        self._commit(subscription)
        return subscription

    def get(self, subscription_id: str) -> Subscription | None:
        return self._first(
            select(Subscription).where(Subscription.subscription_id == subscription_id)
        )

    def get_active_for_client(self, client_id: int) -> Subscription | None:
        stmt = (
            select(Subscription)
            .where(Subscription.client_id == client_id)
            .where(Subscription.status == SubscriptionStatus.active.value)
            .order_by(Subscription.created_at.desc())
        )
        return self._first(stmt)

    def update_status(
        self,
        subscription_id: str,
        status: str,
        next_payment_date: datetime | None,
    ) -> Subscription | None:
        """Overwrite status and next payment date with provider-reported values."""
        subscription = self.get(subscription_id)
        if not subscription:
            return None
        subscription.status = status
        subscription.next_payment_date = next_payment_date
        subscription.updated_at = utcnow()
        self._commit(subscription)
        return subscription

    def mark_canceled(self, subscription_id: str) -> Subscription | None:
        subscription = self.get(subscription_id)
        if not subscription:
            return None
        subscription.status = SubscriptionStatus.canceled.value
        subscription.updated_at = utcnow()
        self._commit(subscription)
        return subscription
