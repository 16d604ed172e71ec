"""
Subscription storage re-exports.
"""
from core.db.subscriptions.subs_store import (
    add_subscription,
    get_subscription,
    list_subscriptions,
    delete_subscription,
    update_subscription_cursor,
)

__all__ = [
    "add_subscription",
    "get_subscription",
    "list_subscriptions",
    "delete_subscription",
    "update_subscription_cursor",
]
