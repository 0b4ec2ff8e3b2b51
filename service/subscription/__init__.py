from .models import (
    TIME_UNKNOWN,
    DeleteResult,
    DeleteStatus,
    SubscribeResult,
    SubscribeStatus,
    Subscription,
)
from .service import SubscriptionService
from .store import JsonSubscriptionStore, StoreError, SubscriptionStore

__all__ = [
    'TIME_UNKNOWN',
    'DeleteResult',
    'DeleteStatus',
    'SubscribeResult',
    'SubscribeStatus',
    'Subscription',
    'SubscriptionService',
    'JsonSubscriptionStore',
    'StoreError',
    'SubscriptionStore',
]
