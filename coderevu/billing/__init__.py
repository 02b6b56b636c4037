"""
Billing Package

Subscription tiers and per-user usage limits.
"""

from coderevu.billing.subscription import (
    TIER_LIMITS,
    can_connect_repository,
    can_create_review,
    decrement_repository_count,
    get_remaining_limits,
    get_user_tier,
    get_user_usage,
    increment_repository_count,
    increment_review_count,
    update_polar_customer_id,
    update_user_tier,
)

__all__ = [
    "TIER_LIMITS",
    "can_connect_repository",
    "can_create_review",
    "decrement_repository_count",
    "get_remaining_limits",
    "get_user_tier",
    "get_user_usage",
    "increment_repository_count",
    "increment_review_count",
    "update_polar_customer_id",
    "update_user_tier",
]
