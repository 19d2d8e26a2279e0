"""Read-visibility policy: draft state, age rating, and premium subscription.

The evaluator composes the three policies into one :class:`AccessDecision`.
Normal restrictions are returned as data; only a missing or draft-hidden
book raises (:class:`NotFoundError`), so draft existence never leaks.
"""

import logging
from datetime import datetime
from typing import Optional

from config.exceptions import NotFoundError
from config.settings import Settings
from models.access import AccessDecision, ListingFilter, Restriction
from models.book import Book
from models.database import Database, utcnow
from models.enums import BookStatus, ContentType, Plan, RestrictionType
from models.user import Requester
from services.subscription_gate import SubscriptionGate, is_subscription_active

logger = logging.getLogger(__name__)

REASON_AGE_LOGIN = "You must be logged in to access adult content."
REASON_AGE_NOT_SET = "Please set your age in your profile to access this content."
REASON_AGE_UNDERAGE = "You must be {age}+ years old to access adult content."
REASON_SUBSCRIPTION_LOGIN = "This content requires an active subscription. Please log in and subscribe."
REASON_SUBSCRIPTION_REQUIRED = "This content requires an active subscription. Please subscribe to continue reading."


class AccessEvaluator:
    """Decides what a requester may see of a book."""

    def __init__(self, db: Database, gate: SubscriptionGate, settings: Optional[Settings] = None):
        self.db = db
        self.gate = gate
        self.settings = settings or Settings()

    def evaluate(
        self,
        book: Optional[Book],
        requester: Optional[Requester],
        now: Optional[datetime] = None,
    ) -> AccessDecision:
        """Evaluate draft, age and premium policies in that order.

        Args:
            book: The loaded book, or None if it does not exist.
            requester: Authenticated identity, or None for anonymous requests.
            now: Clock override for subscription expiry checks.

        Raises:
            NotFoundError: the book is absent or is a draft hidden from the requester.
        """
        if book is None:
            raise NotFoundError("Book")

        is_author = requester is not None and requester.id == book.author_id
        is_admin = requester is not None and requester.is_admin

        if book.is_draft and not (is_author or is_admin):
            logger.debug("Draft book %s hidden from requester %s", book.id, requester and requester.id)
            raise NotFoundError("Book", book.id)

        decision = AccessDecision()
        if is_author or is_admin:
            return decision

        age_restriction = self._check_age(book, requester)
        if age_restriction is not None:
            decision.restrictions.append(age_restriction)

        subscription_restriction = self._check_subscription(book, requester, now or utcnow())
        if subscription_restriction is not None:
            decision.restrictions.append(subscription_restriction)

        decision.can_read_chapters = not decision.restrictions
        if decision.restrictions:
            logger.debug(
                "Book %s restricted for requester %s: %s",
                book.id, requester and requester.id,
                [r.type.value for r in decision.restrictions],
            )
        return decision

    def _check_age(self, book: Book, requester: Optional[Requester]) -> Optional[Restriction]:
        if book.content_type != ContentType.ADULT:
            return None
        if requester is None:
            return Restriction(type=RestrictionType.AGE, reason=REASON_AGE_LOGIN, requires_login=True)
        if requester.age is None:
            return Restriction(type=RestrictionType.AGE, reason=REASON_AGE_NOT_SET, requires_age=True)
        min_age = self.settings.adult_min_age
        if requester.age < min_age:
            return Restriction(
                type=RestrictionType.AGE,
                reason=REASON_AGE_UNDERAGE.format(age=min_age),
                current_age=requester.age,
                required_age=min_age,
            )
        return None

    def _check_subscription(
        self, book: Book, requester: Optional[Requester], now: datetime,
    ) -> Optional[Restriction]:
        if not book.is_premium:
            return None
        if requester is None:
            return Restriction(
                type=RestrictionType.SUBSCRIPTION,
                reason=REASON_SUBSCRIPTION_LOGIN,
                requires_login=True,
                requires_subscription=True,
            )

        user = self.db.get_user(requester.id)
        if user is None:
            # Identity without a stored record: nothing to sync, token plan is all we know
            logger.warning("No stored user for requester %s; treating as unsubscribed", requester.id)
            current_plan = (requester.plan or Plan.FREE).value
        else:
            self.gate.evaluate_and_sync(user, now)
            if is_subscription_active(user, now):
                return None
            current_plan = user.plan.value

        return Restriction(
            type=RestrictionType.SUBSCRIPTION,
            reason=REASON_SUBSCRIPTION_REQUIRED,
            requires_subscription=True,
            current_plan=current_plan,
        )

    def listing_filter(self, requester: Optional[Requester]) -> ListingFilter:
        """Catalog rule: adult titles only for adults; ongoing titles only for premium."""
        content_types = None
        if requester is None or requester.age is None or requester.age < self.settings.adult_min_age:
            content_types = (ContentType.KIDS,)

        book_statuses = None
        plan = requester.plan if requester is not None else Plan.FREE
        if plan != Plan.PREMIUM:
            book_statuses = (BookStatus.FINISHED,)

        return ListingFilter(content_types=content_types, book_statuses=book_statuses)
