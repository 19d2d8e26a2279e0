"""Services package: subscription gate, access evaluation, chapter store, and book aggregate."""

from services.subscription_gate import (
    SubscriptionGate,
    SubscriptionState,
    SyncResult,
    next_subscription_state,
    is_subscription_active,
)
from services.access_evaluator import AccessEvaluator
from services.chapter_store import ChapterStore, coerce_chapter_input, validate_chapter_order
from services.book_service import BookService, parse_enum

__all__ = [
    "SubscriptionGate",
    "SubscriptionState",
    "SyncResult",
    "next_subscription_state",
    "is_subscription_active",
    "AccessEvaluator",
    "ChapterStore",
    "coerce_chapter_input",
    "validate_chapter_order",
    "BookService",
    "parse_enum",
]
