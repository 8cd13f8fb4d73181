"""Background reconciliation of payments still awaiting a callback."""

import logging
from datetime import timedelta

from sqlalchemy.orm import Session

from payrecon.celery_app import celery_app
from payrecon.config import settings
from payrecon.db import SessionLocal
from payrecon.errors import ProviderError
from payrecon.services.common import utcnow
from payrecon.services.gateway import Gateway, build_gateway

logger = logging.getLogger(__name__)

IN_FLIGHT_STATUSES = {"open", "pending", "authorized"}


def reconcile_pending(gateway: Gateway, older_than_minutes: int) -> int:
    """Re-run callback processing for stale pending markers.

    The provider stays the source of truth; the ledger's idempotency gate
    makes re-processing a transaction that was already applied a no-op.
    """
    if not gateway.callbacks.is_active():
        logger.info("Gateway inactive, skipping pending reconciliation")
        return 0

    cutoff = utcnow() - timedelta(minutes=older_than_minutes)
    stale = gateway.pending.list_older_than(cutoff)
    reconciled = 0
    for marker in stale:
        try:
            payment = gateway.provider.get_payment(marker.transaction_id)
        except ProviderError as exc:
            logger.warning(
                "Could not fetch pending payment %s: %s", marker.transaction_id, exc.message
            )
            continue
        # Processing clears the marker, so leave payments that are still in flight
        if payment.status in IN_FLIGHT_STATUSES:
            continue
        gateway.callbacks.process(marker.transaction_id)
        reconciled += 1
    if reconciled:
        logger.info("Reconciled %d pending transaction(s)", reconciled)
    return reconciled


@celery_app.task(name="payrecon.tasks.recurring.reconcile_pending_transactions")
def reconcile_pending_transactions():
    session: Session = SessionLocal()
    try:
        return reconcile_pending(build_gateway(session), settings.pending_reconcile_minutes)
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
