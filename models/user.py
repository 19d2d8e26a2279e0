"""User and requester data models."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from models.enums import UserRole, Plan, SubscriptionStatus


@dataclass
class User:
    """Persisted user with subscription state."""
    id: Optional[str] = None
    name: str = ""
    role: UserRole = UserRole.READER
    age: Optional[int] = None
    plan: Plan = Plan.FREE
    subscription_status: SubscriptionStatus = SubscriptionStatus.INACTIVE
    subscription_expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class Requester:
    """Pre-authenticated requester identity (id, role, age, plan).

    Anonymous requests are represented by ``None`` rather than an instance.
    """
    id: str
    role: UserRole = UserRole.READER
    age: Optional[int] = None
    plan: Plan = Plan.FREE

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @classmethod
    def from_user(cls, user: User) -> "Requester":
        return cls(id=user.id, role=user.role, age=user.age, plan=user.plan)
