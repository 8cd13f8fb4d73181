from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from payrecon import models  # noqa: F401
from payrecon.config import GatewaySettings
from payrecon.db import Base
from payrecon.models.ledger import Invoice, InvoiceStatus
from payrecon.services.gateway import build_gateway
from tests.mocks import FakeProviderClient


@pytest.fixture()
def engine():
    # Fresh in-memory database per test so service-level rollbacks stay isolated
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine):
    SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def gateway_settings():
    return GatewaySettings(
        live_api_key="live_abc",
        test_api_key="test_abc",
        sandbox="off",
        enable_recurring="on",
        recurring_type="manual",
        webhook_url="https://billing.example.com/callback/mollie",
    )


@pytest.fixture()
def sandbox_settings(gateway_settings):
    return gateway_settings.model_copy(update={"sandbox": True})


@pytest.fixture()
def subscription_settings(gateway_settings):
    return gateway_settings.model_copy(update={"recurring_type": "subscription"})


@pytest.fixture()
def provider():
    return FakeProviderClient()


@pytest.fixture()
def invoice(db_session):
    """Unpaid invoice 42 for client 7, bound to the mollie gateway."""
    invoice = Invoice(
        id=42,
        client_id=7,
        payment_method="mollie",
        status=InvoiceStatus.unpaid,
        total=Decimal("10.00"),
    )
    db_session.add(invoice)
    db_session.commit()
    db_session.refresh(invoice)
    return invoice


@pytest.fixture()
def make_gateway(db_session, provider):
    def _make(settings):
        return build_gateway(db_session, settings, provider=provider)

    return _make


@pytest.fixture()
def gateway(make_gateway, gateway_settings):
    return make_gateway(gateway_settings)
