"""Construction of the gateway's collaborators for one unit of work.

Each webhook delivery, charge request or background run gets its own set
of objects bound to its own database session; nothing is shared between
invocations except the database.
"""

from dataclasses import dataclass

from sqlalchemy.orm import Session

from payrecon.config import GatewaySettings, gateway_settings
from payrecon.services.callback import CallbackProcessor
from payrecon.services.charge import ChargeRequestHandler
from payrecon.services.gateway_log import GatewayLog
from payrecon.services.ledger import LedgerGateway, SqlLedgerGateway
from payrecon.services.provider import ProviderClient
from payrecon.services.recurring import RecurringEngine
from payrecon.services.stores import (
    CustomerStore,
    MandateStore,
    PendingTransactionStore,
    SubscriptionStore,
)


@dataclass
class Gateway:
    settings: GatewaySettings
    provider: ProviderClient
    ledger: LedgerGateway
    mandates: MandateStore
    subscriptions: SubscriptionStore
    pending: PendingTransactionStore
    customers: CustomerStore
    log: GatewayLog
    engine: RecurringEngine
    callbacks: CallbackProcessor
    charges: ChargeRequestHandler


def build_provider(settings: GatewaySettings) -> ProviderClient:
    return ProviderClient(settings.api_key, base_url=settings.api_base, timeout=settings.timeout)


def build_gateway(
    db: Session,
    settings: GatewaySettings | None = None,
    provider: ProviderClient | None = None,
    ledger: LedgerGateway | None = None,
) -> Gateway:
    settings = settings or gateway_settings
    provider = provider or build_provider(settings)
    ledger = ledger or SqlLedgerGateway(db)

    mandates = MandateStore(db)
    subscriptions = SubscriptionStore(db)
    pending = PendingTransactionStore(db)
    customers = CustomerStore(db)
    log = GatewayLog(ledger, settings)

    engine = RecurringEngine(settings, provider, mandates, subscriptions, pending, customers, log)
    callbacks = CallbackProcessor(settings, provider, ledger, engine, subscriptions, pending, log)
    charges = ChargeRequestHandler(settings, engine, ledger, subscriptions, customers, log)

    return Gateway(
        settings=settings,
        provider=provider,
        ledger=ledger,
        mandates=mandates,
        subscriptions=subscriptions,
        pending=pending,
        customers=customers,
        log=log,
        engine=engine,
        callbacks=callbacks,
        charges=charges,
    )
