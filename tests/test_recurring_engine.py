from decimal import Decimal

from payrecon.errors import PersistenceError
from payrecon.models.ledger import GatewayLogEntry
from payrecon.models.recurring import Subscription
from payrecon.schemas.gateway import ClientDetails, PaymentParams, SubscriptionParams


def _params(**overrides):
    data = {"invoice_id": 42, "amount": Decimal("10.00"), "description": "Invoice #42"}
    data.update(overrides)
    return PaymentParams(**data)


def _log_lines(db_session):
    return [(e.status, e.description) for e in db_session.query(GatewayLogEntry).all()]


def test_ensure_customer_creates_once(gateway, provider):
    client = ClientDetails(id=7, name="Jane Doe", email="jane@example.com")

    first = gateway.engine.ensure_customer(client)
    second = gateway.engine.ensure_customer(client)

    assert first == second
    assert len(provider.calls_to("create_customer")) == 1
    assert gateway.customers.get_customer_id(7) == first


def test_ensure_customer_provider_failure(gateway, provider, db_session):
    provider.fail_on.add("create_customer")

    assert gateway.engine.ensure_customer(ClientDetails(id=7)) is None
    assert gateway.customers.get_customer_id(7) is None
    assert _log_lines(db_session)[0][0] == "Error"


def test_get_or_create_mandate_returns_first_valid(gateway, provider):
    provider.add_mandate("cst_1", "mdt_pending", status="pending")
    provider.add_mandate("cst_1", "mdt_card", method="creditcard")
    provider.add_mandate("cst_1", "mdt_dd", method="directdebit")

    assert gateway.engine.get_or_create_mandate("cst_1").id == "mdt_card"
    assert gateway.engine.get_or_create_mandate("cst_1", "directdebit").id == "mdt_dd"


def test_get_or_create_mandate_none_when_absent(gateway, provider):
    provider.add_mandate("cst_1", "mdt_invalid", status="invalid")
    assert gateway.engine.get_or_create_mandate("cst_1") is None


def test_get_or_create_mandate_provider_failure(gateway, provider, db_session):
    provider.fail_on.add("list_mandates")

    assert gateway.engine.get_or_create_mandate("cst_1") is None
    assert "Error getting mandate" in _log_lines(db_session)[0][1]


def test_first_payment_carries_binding_and_marks_pending(gateway, provider):
    payment = gateway.engine.create_first_payment_for_mandate(
        "cst_1", _params(return_url="https://billing.example.com/return", service_id=3)
    )

    call = provider.calls_to("create_payment")[0]
    assert call["sequence_type"] == "first"
    assert call["metadata"] == {
        "invoice_id": 42,
        "service_id": 3,
        "recurring": True,
        "first_payment": True,
    }
    assert call["return_url"] == "https://billing.example.com/return"
    assert call["webhook_url"] == "https://billing.example.com/callback/mollie"
    assert gateway.pending.get(42).transaction_id == payment.id


def test_first_payment_provider_failure_returns_none(gateway, provider):
    provider.fail_on.add("create_payment")

    assert gateway.engine.create_first_payment_for_mandate("cst_1", _params()) is None
    assert gateway.pending.get(42) is None


def test_recurring_payment_uses_mandate(gateway, provider):
    payment = gateway.engine.create_recurring_payment("cst_1", "mdt_1", _params())

    call = provider.calls_to("create_payment")[0]
    assert call["sequence_type"] == "recurring"
    assert call["mandate_id"] == "mdt_1"
    assert call["return_url"] is None
    assert call["amount"].value == Decimal("10.00")
    assert gateway.pending.get(42).details["mandate_id"] == "mdt_1"
    assert payment.status == "open"


def test_create_subscription_persists_row(gateway, provider):
    subscription = gateway.engine.create_subscription(
        "cst_1",
        SubscriptionParams(client_id=7, amount=Decimal("10.00"), description="Monthly plan"),
    )

    row = gateway.subscriptions.get(subscription.id)
    assert row.client_id == 7
    assert row.customer_id == "cst_1"
    assert row.status == "active"
    assert row.next_payment_date.date().isoformat() == "2026-11-01"
    assert provider.calls_to("create_subscription")[0]["interval"] == "1 month"


def test_create_subscription_failure_persists_nothing(gateway, provider, db_session):
    provider.fail_on.add("create_subscription")

    result = gateway.engine.create_subscription(
        "cst_1",
        SubscriptionParams(client_id=7, amount=Decimal("10.00"), description="Monthly plan"),
    )

    assert result is None
    assert db_session.query(Subscription).count() == 0


def test_create_subscription_unstored_is_canceled_at_provider(
    gateway, provider, db_session, monkeypatch
):
    def fail_create(**kwargs):
        raise PersistenceError("database is locked")

    monkeypatch.setattr(gateway.subscriptions, "create", fail_create)

    result = gateway.engine.create_subscription(
        "cst_1",
        SubscriptionParams(client_id=7, amount=Decimal("10.00"), description="Monthly plan"),
    )

    assert result is None
    canceled = provider.calls_to("cancel_subscription")
    assert canceled == [{"customer_id": "cst_1", "subscription_id": "sub_1"}]
    errors = [d for s, d in _log_lines(db_session) if s == "Error"]
    assert errors == [
        "Subscription sub_1 created at Mollie but could not be stored: database is locked"
    ]


def test_create_subscription_unstored_cancel_failure_is_logged(
    gateway, provider, db_session, monkeypatch
):
    def fail_create(**kwargs):
        raise PersistenceError("database is locked")

    monkeypatch.setattr(gateway.subscriptions, "create", fail_create)
    provider.fail_on.add("cancel_subscription")

    result = gateway.engine.create_subscription(
        "cst_1",
        SubscriptionParams(client_id=7, amount=Decimal("10.00"), description="Monthly plan"),
    )

    assert result is None
    errors = [d for s, d in _log_lines(db_session) if s == "Error"]
    assert len(errors) == 2
    assert errors[1].startswith("Error canceling unstored subscription sub_1:")


def test_cancel_subscription(gateway, provider):
    subscription = gateway.engine.create_subscription(
        "cst_1",
        SubscriptionParams(client_id=7, amount=Decimal("10.00"), description="Monthly plan"),
    )

    assert gateway.engine.cancel_subscription("cst_1", subscription.id)
    assert gateway.subscriptions.get(subscription.id).status == "canceled"


def test_cancel_subscription_failure_keeps_row(gateway, provider):
    subscription = gateway.engine.create_subscription(
        "cst_1",
        SubscriptionParams(client_id=7, amount=Decimal("10.00"), description="Monthly plan"),
    )
    provider.fail_on.add("cancel_subscription")

    assert not gateway.engine.cancel_subscription("cst_1", subscription.id)
    assert gateway.subscriptions.get(subscription.id).status == "active"
