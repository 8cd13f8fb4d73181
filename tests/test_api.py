"""HTTP surface tests: callbacks, charges and recurring endpoints."""

import inspect

import pytest
from fastapi.testclient import TestClient

from payrecon.api.deps import get_gateway
from payrecon.api.webhooks import mollie_webhook
from payrecon.main import app
from payrecon.models.ledger import InvoiceStatus
from payrecon.schemas.provider import Amount
from tests.mocks import make_payment


@pytest.fixture()
def use_gateway():
    def _use(gateway):
        app.dependency_overrides[get_gateway] = lambda: gateway

    yield _use
    app.dependency_overrides.clear()


@pytest.fixture()
def client(use_gateway, gateway):
    use_gateway(gateway)
    return TestClient(app)


@pytest.fixture()
def inactive_client(use_gateway, make_gateway, gateway_settings):
    use_gateway(make_gateway(gateway_settings.model_copy(update={"live_api_key": ""})))
    return TestClient(app)


class TestMollieCallback:
    def test_paid_callback_returns_empty_200(self, client, provider, db_session, invoice):
        provider.payments["tr_ABC"] = make_payment()

        response = client.post("/callback/mollie", data={"id": "tr_ABC"})

        assert response.status_code == 200
        assert response.content == b""
        db_session.refresh(invoice)
        assert invoice.status == InvoiceStatus.paid

    def test_callback_route_runs_in_threadpool(self):
        assert not inspect.iscoroutinefunction(mollie_webhook)

    def test_whitespace_around_id_is_stripped(self, client, provider, db_session, invoice):
        provider.payments["tr_ABC"] = make_payment()

        response = client.post("/callback/mollie", data={"id": "  tr_ABC \n"})

        assert response.status_code == 200
        assert provider.calls_to("get_payment") != []
        db_session.refresh(invoice)
        assert invoice.status == InvoiceStatus.paid

    def test_failed_processing_still_returns_200(self, client, provider):
        provider.fail_on.add("get_payment")

        response = client.post("/callback/mollie", data={"id": "tr_ABC"})

        assert response.status_code == 200

    def test_missing_id_is_acknowledged(self, client, provider):
        response = client.post("/callback/mollie", data={})

        assert response.status_code == 200
        assert provider.calls == []

    def test_inactive_gateway_returns_503(self, inactive_client, provider):
        response = inactive_client.post("/callback/mollie", data={"id": "tr_ABC"})

        assert response.status_code == 503
        assert response.json() == {
            "status": "error",
            "message": "Gateway not activated. Please try again later.",
        }
        assert provider.calls == []

    def test_status_override_from_query(
        self, use_gateway, make_gateway, sandbox_settings, provider, db_session, invoice
    ):
        use_gateway(make_gateway(sandbox_settings))
        provider.payments["tr_ABC"] = make_payment(status="open", mode="test")

        response = TestClient(app).post(
            "/callback/mollie?status=paid", data={"id": "tr_ABC"}
        )

        assert response.status_code == 200
        db_session.refresh(invoice)
        assert invoice.status == InvoiceStatus.paid


class TestCharges:
    def test_charge_without_customer(self, client):
        response = client.post(
            "/charges",
            json={
                "invoice_id": 42,
                "client": {"id": 7},
                "amount": "10.00",
                "description": "Invoice #42",
            },
        )

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "error"
        assert body["data"]["error"] == "no_customer"

    def test_charge_pending(self, client, gateway):
        gateway.customers.save(7, "cst_1")
        gateway.mandates.store_mandate(7, "mdt_1", "directdebit", "valid")

        response = client.post(
            "/charges",
            json={
                "invoice_id": 42,
                "client": {"id": 7},
                "amount": "10.00",
                "description": "Invoice #42",
            },
        )

        body = response.json()
        assert body["status"] == "pending"
        assert body["data"]["transaction_id"].startswith("tr_")

    def test_invalid_payload(self, client):
        response = client.post("/charges", json={"invoice_id": 42})

        assert response.status_code == 422
        assert response.json()["code"] == "validation_error"


class TestRecurringEndpoints:
    def _first_payment(self, client):
        return client.post(
            "/recurring/first-payment",
            json={
                "invoice_id": 42,
                "client": {"id": 7, "name": "Jane Doe", "email": "jane@example.com"},
                "amount": "10.00",
                "description": "First payment",
                "return_url": "https://billing.example.com/return",
            },
        )

    def test_first_payment_returns_checkout(self, client, provider):
        response = self._first_payment(client)

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "pending"
        assert body["checkout_url"] == "https://www.mollie.com/checkout/test"
        assert provider.calls_to("create_payment")[0]["sequence_type"] == "first"

    def test_first_payment_skipped_when_mandate_exists(self, client, gateway, provider):
        gateway.customers.save(7, "cst_1")
        provider.add_mandate("cst_1", "mdt_1")

        response = self._first_payment(client)

        body = response.json()
        assert body["status"] == "mandate_exists"
        assert body["mandate_id"] == "mdt_1"
        assert gateway.mandates.get_valid_mandate(7).mandate_id == "mdt_1"
        assert provider.calls_to("create_payment") == []

    def test_list_mandates(self, client, gateway):
        gateway.mandates.store_mandate(7, "mdt_1", "directdebit", "valid")

        response = client.get("/clients/7/mandates")

        assert response.status_code == 200
        assert response.json() == [
            {"mandate_id": "mdt_1", "client_id": 7, "method": "directdebit", "status": "valid"}
        ]

    def test_pending_transaction(self, client, gateway):
        assert client.get("/invoices/42/pending").status_code == 404

        gateway.pending.mark_pending(42, "tr_1")
        response = client.get("/invoices/42/pending")

        assert response.status_code == 200
        assert response.json()["transaction_id"] == "tr_1"

    def test_cancel_unknown_subscription(self, client):
        response = client.post("/subscriptions/sub_none/cancel")

        assert response.status_code == 404
        assert response.json()["code"] == "http_404"

    def test_cancel_subscription(self, client, gateway, provider):
        subscription = provider.create_subscription(
            "cst_1", Amount.of("10.00", "EUR"), "1 month", "Plan"
        )
        gateway.subscriptions.create(
            subscription_id=subscription.id,
            customer_id="cst_1",
            client_id=7,
            service_id=0,
            status="active",
            next_payment_date=None,
        )

        response = client.post(f"/subscriptions/{subscription.id}/cancel")

        assert response.json() == {"subscription_id": subscription.id, "canceled": True}
        assert gateway.subscriptions.get(subscription.id).status == "canceled"

    def test_recurring_endpoints_require_recurring(
        self, use_gateway, make_gateway, gateway_settings
    ):
        use_gateway(make_gateway(gateway_settings.model_copy(update={"enable_recurring": False})))

        response = self._first_payment(TestClient(app))

        assert response.status_code == 400


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["gateway"] == "mollie"
