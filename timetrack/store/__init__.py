"""
Record Store gateway: per-user persistence with live snapshot subscriptions.
"""

from .subscriptions import Collection, Snapshot, Subscription, SubscriptionHub
from .record_store import RecordStore
from .filters import filter_tasks
from .export import EXPORT_FIELDS, tasks_to_csv

__all__ = [
    'Collection',
    'Snapshot',
    'Subscription',
    'SubscriptionHub',
    'RecordStore',
    'filter_tasks',
    'EXPORT_FIELDS',
    'tasks_to_csv',
]
