from payrecon.models.ledger import (  # noqa: F401
    GatewayLogEntry,
    Invoice,
    InvoiceStatus,
    LedgerTransaction,
    LedgerTransactionKind,
)
from payrecon.models.recurring import (  # noqa: F401
    Mandate,
    MandateStatus,
    PendingTransaction,
    ProviderCustomer,
    Subscription,
    SubscriptionStatus,
)
