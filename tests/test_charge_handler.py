from decimal import Decimal

import pytest

from payrecon.models.ledger import InvoiceStatus
from payrecon.schemas.gateway import ChargeRequest, ChargeStatus, ClientDetails


def _request(**overrides):
    data = {
        "invoice_id": 42,
        "client": ClientDetails(id=7, name="Jane Doe", email="jane@example.com"),
        "amount": Decimal("10.00"),
        "description": "Invoice #42",
    }
    data.update(overrides)
    return ChargeRequest(**data)


@pytest.fixture()
def customer(gateway):
    gateway.customers.save(7, "cst_1")
    return "cst_1"


@pytest.fixture()
def mandate(gateway, customer):
    return gateway.mandates.store_mandate(7, "mdt_1", "directdebit", "valid")


class TestManualCharges:
    def test_no_customer(self, gateway, provider):
        result = gateway.charges.charge(_request())

        assert result.status == ChargeStatus.error
        assert result.data["error"] == "no_customer"
        assert provider.calls == []

    def test_no_mandate_makes_no_provider_call(self, gateway, provider, customer):
        result = gateway.charges.charge(_request())

        assert result.status == ChargeStatus.error
        assert result.data["error"] == "no_mandate"
        assert "first payment" in result.message
        assert provider.calls_to("create_payment") == []

    def test_invalid_mandate_is_not_used(self, gateway, provider, customer):
        gateway.mandates.store_mandate(7, "mdt_1", "directdebit", "invalid")

        result = gateway.charges.charge(_request())

        assert result.data["error"] == "no_mandate"

    def test_payment_awaiting_callback_is_pending(self, gateway, provider, mandate):
        result = gateway.charges.charge(_request())

        assert result.status == ChargeStatus.pending
        transaction_id = result.data["transaction_id"]
        assert gateway.pending.get(42).transaction_id == transaction_id
        call = provider.calls_to("create_payment")[0]
        assert call["mandate_id"] == "mdt_1"
        assert call["customer_id"] == "cst_1"

    def test_immediately_paid_payment_is_posted(
        self, gateway, provider, mandate, db_session, invoice
    ):
        provider.next_payment_status = "paid"

        result = gateway.charges.charge(_request())

        assert result.status == ChargeStatus.success
        db_session.refresh(invoice)
        assert invoice.status == InvoiceStatus.paid
        assert gateway.ledger.is_known_transaction(result.data["transaction_id"])
        assert gateway.pending.get(42) is None

    def test_callback_after_immediate_payment_is_duplicate(
        self, gateway, provider, mandate, db_session, invoice
    ):
        provider.next_payment_status = "paid"
        result = gateway.charges.charge(_request())

        gateway.callbacks.process(result.data["transaction_id"])

        db_session.refresh(invoice)
        assert invoice.status == InvoiceStatus.paid

    def test_provider_failure(self, gateway, provider, mandate):
        provider.fail_on.add("create_payment")

        result = gateway.charges.charge(_request())

        assert result.status == ChargeStatus.error
        assert result.message == "Failed to create recurring payment for invoice 42."


class TestGatewayState:
    def test_inactive_gateway(self, make_gateway, gateway_settings, provider):
        gateway = make_gateway(gateway_settings.model_copy(update={"live_api_key": ""}))

        result = gateway.charges.charge(_request())

        assert result.status == ChargeStatus.error
        assert "API key is missing" in result.message
        assert provider.calls == []

    def test_recurring_disabled(self, make_gateway, gateway_settings):
        gateway = make_gateway(gateway_settings.model_copy(update={"enable_recurring": False}))

        result = gateway.charges.charge(_request())

        assert result.status == ChargeStatus.error
        assert "not enabled" in result.message


class TestSubscriptionCharges:
    @pytest.fixture()
    def sub_gateway(self, make_gateway, subscription_settings):
        return make_gateway(subscription_settings)

    def test_creates_subscription(self, sub_gateway, provider):
        sub_gateway.customers.save(7, "cst_1")
        sub_gateway.mandates.store_mandate(7, "mdt_1", "directdebit", "valid")

        result = sub_gateway.charges.charge(_request(service_id=5))

        assert result.status == ChargeStatus.success
        row = sub_gateway.subscriptions.get(result.data["subscription_id"])
        assert row.client_id == 7
        assert row.service_id == 5
        call = provider.calls_to("create_subscription")[0]
        assert call["interval"] == "1 month"
        assert call["metadata"] == {"client_id": 7, "service_id": 5}

    def test_existing_active_subscription_is_pending(self, sub_gateway, provider):
        sub_gateway.customers.save(7, "cst_1")
        sub_gateway.subscriptions.create(
            subscription_id="sub_XYZ",
            customer_id="cst_1",
            client_id=7,
            service_id=0,
            status="active",
            next_payment_date=None,
        )

        result = sub_gateway.charges.charge(_request())

        assert result.status == ChargeStatus.pending
        assert result.data["subscription_id"] == "sub_XYZ"
        assert provider.calls_to("create_subscription") == []

    def test_no_mandate(self, sub_gateway, provider):
        sub_gateway.customers.save(7, "cst_1")

        result = sub_gateway.charges.charge(_request())

        assert result.data["error"] == "no_mandate"
        assert provider.calls_to("create_subscription") == []

    def test_provider_failure(self, sub_gateway, provider):
        sub_gateway.customers.save(7, "cst_1")
        sub_gateway.mandates.store_mandate(7, "mdt_1", "directdebit", "valid")
        provider.fail_on.add("create_subscription")

        result = sub_gateway.charges.charge(_request())

        assert result.status == ChargeStatus.error
        assert result.message == "Failed to create subscription for client 7."
