from payrecon.tasks.recurring import reconcile_pending_transactions

__all__ = ["reconcile_pending_transactions"]
