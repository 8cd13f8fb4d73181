from prometheus_client import Counter, Histogram

WEBHOOK_EVENTS = Counter(
    "payrecon_webhook_events_total",
    "Processed provider callbacks",
    ["kind", "outcome"],
)
CHARGE_RESULTS = Counter(
    "payrecon_charge_results_total",
    "Charge request outcomes",
    ["strategy", "status"],
)
PROVIDER_LATENCY = Histogram(
    "payrecon_provider_request_duration_seconds",
    "Payment provider API latency",
    ["operation", "status"],
)


def observe_webhook(kind: str, outcome: str) -> None:
    WEBHOOK_EVENTS.labels(kind=kind, outcome=outcome).inc()


def observe_charge(strategy: str, status: str) -> None:
    CHARGE_RESULTS.labels(strategy=strategy, status=status).inc()


def observe_provider_call(operation: str, status: str, duration: float) -> None:
    PROVIDER_LATENCY.labels(operation=operation, status=status).observe(duration)
