"""
Subscription tiers and usage limits.

FREE users may connect 5 repositories and get 5 reviews per repository.
PRO users are unlimited. Usage counters are created lazily and changed with
atomic SQL increments, so concurrent reviews cannot lose updates.
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy import case, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from coderevu.database import (
    Repository,
    RepositoryReviewCount,
    SubscriptionStatus,
    SubscriptionTier,
    User,
    UserUsage,
)

logger = logging.getLogger(__name__)

# Hard-coded tier rules (None = unlimited)
TIER_LIMITS = {
    SubscriptionTier.FREE: {
        "repositories": 5,
        "reviews_per_repo": 5,
    },
    SubscriptionTier.PRO: {
        "repositories": None,
        "reviews_per_repo": None,
    },
}


def get_user_tier(db: Session, user_id: str) -> SubscriptionTier:
    """Fetch user's subscription tier; defaults to FREE."""
    user = db.query(User).filter(User.id == user_id).first()
    if user is None or user.subscription_tier is None:
        return SubscriptionTier.FREE
    return SubscriptionTier(user.subscription_tier)


def get_user_usage(db: Session, user_id: str) -> UserUsage:
    """Fetch the usage record, creating it if missing."""
    usage = db.query(UserUsage).filter(UserUsage.user_id == user_id).first()
    if usage is not None:
        return usage

    usage = UserUsage(user_id=user_id, repository_count=0)
    db.add(usage)
    try:
        db.commit()
    except IntegrityError:
        # Another worker created it first
        db.rollback()
        usage = db.query(UserUsage).filter(UserUsage.user_id == user_id).one()
    return usage


def _review_count(db: Session, user_id: str, repository_id: str) -> int:
    row = (
        db.query(RepositoryReviewCount)
        .filter(
            RepositoryReviewCount.user_id == user_id,
            RepositoryReviewCount.repository_id == repository_id,
        )
        .first()
    )
    return row.count if row else 0


def _within(current: int, limit: Optional[int]) -> bool:
    return limit is None or current < limit


def can_connect_repository(db: Session, user_id: str) -> bool:
    """Check if user can connect another repository."""
    tier = get_user_tier(db, user_id)
    if tier == SubscriptionTier.PRO:
        return True

    usage = get_user_usage(db, user_id)
    return _within(usage.repository_count, TIER_LIMITS[tier]["repositories"])


def can_create_review(db: Session, user_id: str, repository_id: str) -> bool:
    """Check if user can get another review for a repository."""
    tier = get_user_tier(db, user_id)
    if tier == SubscriptionTier.PRO:
        return True

    return _within(
        _review_count(db, user_id, repository_id),
        TIER_LIMITS[tier]["reviews_per_repo"],
    )


def increment_repository_count(db: Session, user_id: str) -> None:
    """Increase repository count (creates record if missing)."""
    get_user_usage(db, user_id)
    db.execute(
        update(UserUsage)
        .where(UserUsage.user_id == user_id)
        .values(repository_count=UserUsage.repository_count + 1)
    )
    db.commit()


def decrement_repository_count(db: Session, user_id: str, by: int = 1) -> None:
    """Decrease repository count, never below 0."""
    get_user_usage(db, user_id)
    db.execute(
        update(UserUsage)
        .where(UserUsage.user_id == user_id)
        .values(
            repository_count=case(
                (UserUsage.repository_count > by, UserUsage.repository_count - by),
                else_=0,
            )
        )
    )
    db.commit()


def increment_review_count(db: Session, user_id: str, repository_id: str) -> None:
    """Increase the review count of one repository by one."""
    get_user_usage(db, user_id)

    statement = (
        update(RepositoryReviewCount)
        .where(
            RepositoryReviewCount.user_id == user_id,
            RepositoryReviewCount.repository_id == repository_id,
        )
        .values(count=RepositoryReviewCount.count + 1)
    )

    if db.execute(statement).rowcount == 0:
        db.add(
            RepositoryReviewCount(user_id=user_id, repository_id=repository_id, count=1)
        )
        try:
            db.commit()
            return
        except IntegrityError:
            # Lost the insert race; the row exists now
            db.rollback()
            db.execute(statement)

    db.commit()


def get_remaining_limits(db: Session, user_id: str) -> Dict[str, Any]:
    """
    Remaining limits overview for a user and each of their repositories.

    Returns:
        {"tier", "repositories": {current, limit, canAdd},
         "reviews": {repository_id: {current, limit, canAdd}}}
    """
    tier = get_user_tier(db, user_id)
    usage = get_user_usage(db, user_id)
    db.refresh(usage)
    review_counts = {
        row.repository_id: row.count
        for row in db.query(RepositoryReviewCount).filter(
            RepositoryReviewCount.user_id == user_id
        )
    }
    limits = TIER_LIMITS[tier]

    overview: Dict[str, Any] = {
        "tier": tier.value,
        "repositories": {
            "current": usage.repository_count,
            "limit": limits["repositories"],
            "canAdd": _within(usage.repository_count, limits["repositories"]),
        },
        "reviews": {},
    }

    repositories = db.query(Repository.id).filter(Repository.user_id == user_id).all()
    for (repository_id,) in repositories:
        current = review_counts.get(repository_id, 0)
        overview["reviews"][repository_id] = {
            "current": current,
            "limit": limits["reviews_per_repo"],
            "canAdd": _within(current, limits["reviews_per_repo"]),
        }

    return overview


def update_user_tier(
    db: Session,
    user_id: str,
    tier: SubscriptionTier,
    status: SubscriptionStatus,
    polar_subscription_id: Optional[str] = None,
) -> None:
    """Update subscription tier and status."""
    user = db.query(User).filter(User.id == user_id).one()
    user.subscription_tier = tier
    user.subscription_status = status
    if polar_subscription_id is not None:
        user.polar_subscription_id = polar_subscription_id
    db.commit()
    logger.info(f"User {user_id} moved to {tier.value} ({status.value})")


def update_polar_customer_id(db: Session, user_id: str, polar_customer_id: str) -> None:
    """Store the billing provider's customer id on the user."""
    user = db.query(User).filter(User.id == user_id).one()
    user.polar_customer_id = polar_customer_id
    db.commit()
