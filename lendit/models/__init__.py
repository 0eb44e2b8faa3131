"""Database models for the lending application."""

from .user import User, PremiumStatus
from .item import Item, ItemStatus
from .transaction import Transaction, TransactionStatus, TERMINAL_STATUSES
from .review import Review
from .subscription import Subscription, SubscriptionPlan, SubscriptionStatus

__all__ = [
    'User',
    'PremiumStatus',
    'Item',
    'ItemStatus',
    'Transaction',
    'TransactionStatus',
    'TERMINAL_STATUSES',
    'Review',
    'Subscription',
    'SubscriptionPlan',
    'SubscriptionStatus',
]
