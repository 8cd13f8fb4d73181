from datetime import timedelta

from payrecon.models.ledger import InvoiceStatus
from payrecon.services.common import utcnow
from payrecon.tasks.recurring import reconcile_pending
from tests.mocks import make_payment


def _stale_marker(gateway, db_session, invoice_id, transaction_id):
    marker = gateway.pending.mark_pending(invoice_id, transaction_id)
    marker.created_at = utcnow() - timedelta(hours=2)
    db_session.commit()
    return marker


def test_settled_payment_is_reconciled(gateway, provider, db_session, invoice):
    _stale_marker(gateway, db_session, 42, "tr_ABC")
    provider.payments["tr_ABC"] = make_payment()

    assert reconcile_pending(gateway, older_than_minutes=30) == 1

    db_session.refresh(invoice)
    assert invoice.status == InvoiceStatus.paid
    assert gateway.pending.get(42) is None


def test_in_flight_payment_keeps_marker(gateway, provider, db_session, invoice):
    _stale_marker(gateway, db_session, 42, "tr_ABC")
    provider.payments["tr_ABC"] = make_payment(status="pending")

    assert reconcile_pending(gateway, older_than_minutes=30) == 0
    assert gateway.pending.get(42) is not None


def test_recent_marker_is_left_alone(gateway, provider, invoice):
    gateway.pending.mark_pending(42, "tr_ABC")
    provider.payments["tr_ABC"] = make_payment()

    assert reconcile_pending(gateway, older_than_minutes=30) == 0
    assert provider.calls_to("get_payment") == []


def test_provider_failure_skips_marker(gateway, provider, db_session, invoice):
    _stale_marker(gateway, db_session, 42, "tr_ABC")
    provider.fail_on.add("get_payment")

    assert reconcile_pending(gateway, older_than_minutes=30) == 0
    assert gateway.pending.get(42) is not None


def test_already_applied_payment_is_not_posted_twice(gateway, provider, db_session, invoice):
    provider.payments["tr_ABC"] = make_payment()
    gateway.callbacks.process("tr_ABC")
    _stale_marker(gateway, db_session, 42, "tr_ABC")

    reconcile_pending(gateway, older_than_minutes=30)

    assert gateway.ledger.is_known_transaction("tr_ABC")
    assert gateway.pending.get(42) is None


def test_inactive_gateway_skips(make_gateway, gateway_settings, provider, db_session):
    gateway = make_gateway(gateway_settings.model_copy(update={"live_api_key": ""}))

    assert reconcile_pending(gateway, older_than_minutes=30) == 0
    assert provider.calls == []
