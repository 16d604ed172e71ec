"""
Facade over the storage modules; callers import from here.
"""
from core.db.base import get_conn
from core.db.schema import init_db
from core.db.subscriptions import (
    add_subscription,
    delete_subscription,
    get_subscription,
    list_subscriptions,
    update_subscription_cursor,
)

__all__ = [
    "get_conn",
    "init_db",
    "add_subscription",
    "delete_subscription",
    "get_subscription",
    "list_subscriptions",
    "update_subscription_cursor",
]
