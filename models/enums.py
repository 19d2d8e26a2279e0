"""Enumerations for book lifecycle, ratings, roles, and subscriptions."""

from enum import Enum


class PublicationStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"


class BookStatus(str, Enum):
    ONGOING = "ongoing"
    FINISHED = "finished"


class ContentType(str, Enum):
    KIDS = "kids"
    ADULT = "adult"


class UserRole(str, Enum):
    READER = "reader"
    AUTHOR = "author"
    ADMIN = "admin"


class Plan(str, Enum):
    FREE = "free"
    BASIC = "basic"
    PREMIUM = "premium"


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class RestrictionType(str, Enum):
    AGE = "age"
    SUBSCRIPTION = "subscription"
