"""Gateway audit log writer.

Every reconciliation outcome ends up as one line in the billing host's
gateway log, which is what operators reconcile from. Sandbox lines are
prefixed so test traffic is easy to tell apart.
"""

import logging

from payrecon.config import GatewaySettings
from payrecon.errors import PersistenceError
from payrecon.services.ledger import LedgerGateway

logger = logging.getLogger(__name__)

SANDBOX_PREFIX = "[SANDBOX] "


class GatewayLog:
    def __init__(self, ledger: LedgerGateway, gateway: GatewaySettings):
        self.ledger = ledger
        self.gateway = gateway

    def record(self, description: str, status: str = "Success") -> None:
        if self.gateway.sandbox:
            description = SANDBOX_PREFIX + description
        status = status[:1].upper() + status[1:]

        level = logging.ERROR if status == "Error" else logging.INFO
        logger.log(level, "%s: %s", status, description)
        try:
            self.ledger.write_audit_log(self.gateway.name, description, status)
        except PersistenceError:
            logger.exception("Could not write gateway log line: %s", description)

    def error(self, description: str) -> None:
        self.record(description, "Error")
