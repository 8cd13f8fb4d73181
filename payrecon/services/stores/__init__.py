from payrecon.services.stores.customers import CustomerStore
from payrecon.services.stores.mandates import MandateStore
from payrecon.services.stores.pending import PendingTransactionStore
from payrecon.services.stores.subscriptions import SubscriptionStore

__all__ = [
    "CustomerStore",
    "MandateStore",
    "PendingTransactionStore",
    "SubscriptionStore",
]
