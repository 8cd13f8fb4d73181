from celery import Celery

from payrecon.config import settings

celery_app = Celery("payrecon")
celery_app.conf.update(
    broker_url=settings.broker_url,
    result_backend=settings.result_backend,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
)
celery_app.conf.beat_schedule = {
    "reconcile-pending-transactions": {
        "task": "payrecon.tasks.recurring.reconcile_pending_transactions",
        "schedule": float(settings.pending_reconcile_interval),
    },
}
celery_app.autodiscover_tasks(["payrecon.tasks"])
