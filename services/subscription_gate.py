"""Lazy subscription expiry.

There is no background sweep: every read path that checks premium access
calls :meth:`SubscriptionGate.evaluate_and_sync`, which downgrades an expired
subscription on the spot. The decision itself is the pure function
:func:`next_subscription_state`; persisting it is a separate step.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from config.exceptions import NotFoundError
from models.database import Database, utcnow
from models.enums import Plan, SubscriptionStatus
from models.user import User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubscriptionState:
    plan: Plan
    status: SubscriptionStatus
    expires_at: Optional[datetime]

    def to_dict(self) -> dict:
        return {
            "plan": self.plan.value,
            "subscriptionStatus": self.status.value,
            "subscriptionExpiresAt": self.expires_at.isoformat() if self.expires_at else None,
        }


@dataclass(frozen=True)
class SyncResult:
    expired: bool


def next_subscription_state(user: User, now: datetime) -> Optional[SubscriptionState]:
    """Return the downgraded state if ``user``'s active subscription has lapsed, else None."""
    expires_at = user.subscription_expires_at
    if (
        user.subscription_status == SubscriptionStatus.ACTIVE
        and expires_at is not None
        and expires_at <= now
    ):
        return SubscriptionState(plan=Plan.FREE, status=SubscriptionStatus.INACTIVE, expires_at=expires_at)
    return None


def is_subscription_active(user: User, now: datetime) -> bool:
    return (
        user.subscription_status == SubscriptionStatus.ACTIVE
        and user.subscription_expires_at is not None
        and user.subscription_expires_at > now
    )


class SubscriptionGate:
    """Determines a user's effective subscription and persists lazy downgrades."""

    def __init__(self, db: Database):
        self.db = db

    def evaluate_and_sync(self, user: User, now: Optional[datetime] = None) -> SyncResult:
        """Downgrade ``user`` to free/inactive if expired.

        Mutates ``user`` in place and persists the change. Safe to call
        repeatedly and to race: the target state is always the same.
        """
        now = now or utcnow()
        next_state = next_subscription_state(user, now)
        if next_state is None:
            return SyncResult(expired=False)

        previous_plan = user.plan
        user.plan = next_state.plan
        user.subscription_status = next_state.status
        self.db.update_user_subscription(user)
        logger.info(
            "Subscription expired for user %s: %s -> %s (expired at %s)",
            user.id, previous_plan.value, user.plan.value, next_state.expires_at,
        )
        return SyncResult(expired=True)

    def get_subscription_status(self, user_id: str, now: Optional[datetime] = None) -> SubscriptionState:
        """Return the user's current plan/status/expiry after applying lazy expiry."""
        user = self.db.get_user(user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        self.evaluate_and_sync(user, now)
        return SubscriptionState(
            plan=user.plan,
            status=user.subscription_status,
            expires_at=user.subscription_expires_at,
        )
