from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from loanadmin.core.features import FeatureKey
from loanadmin.schemas.tenancy import OrganisationOut, SubscriptionPlanOut
from loanadmin.services.record_store import STAFF_MEMBERS, SUBSCRIPTION_PLANS, RecordStore, parse_record

if TYPE_CHECKING:
    from loanadmin.services.tenancy import TenancyContext

logger = logging.getLogger(__name__)

DEFAULT_PLAN_TYPE = "Starter"

PLAN_DEFINITIONS = {
    "Starter": {
        "description": "Basic loan management and reporting",
        "price_per_month": Decimal("99"),
        "features": [
            FeatureKey.BASIC_REPORTING,
            FeatureKey.CUSTOMER_MANAGEMENT,
            FeatureKey.LOAN_MANAGEMENT,
        ],
    },
    "Professional": {
        "description": "Advanced analytics, bulk operations and credit committee workflow",
        "price_per_month": Decimal("299"),
        "features": [
            FeatureKey.BASIC_REPORTING,
            FeatureKey.ADVANCED_REPORTING,
            FeatureKey.CUSTOMER_MANAGEMENT,
            FeatureKey.LOAN_MANAGEMENT,
            FeatureKey.BULK_DISBURSEMENT,
            FeatureKey.CREDIT_COMMITTEE,
        ],
    },
    "Enterprise": {
        "description": "All features including compliance, API access and integrations",
        "price_per_month": Decimal("999"),
        "features": list(FeatureKey),
    },
}


# Ordered lowest to highest; a plan satisfies every tier at or below its own.
PLAN_TIERS = ("Starter", "Professional", "Enterprise")

# None means unlimited.
USAGE_LIMITS: dict[str, dict[str, Optional[int]]] = {
    "Starter": {
        "max_loans": 100,
        "max_users": 5,
        "max_reports_per_month": 10,
        "max_api_calls_per_day": 1000,
    },
    "Professional": {
        "max_loans": 1000,
        "max_users": 25,
        "max_reports_per_month": 100,
        "max_api_calls_per_day": 10000,
    },
    "Enterprise": {
        "max_loans": None,
        "max_users": None,
        "max_reports_per_month": None,
        "max_api_calls_per_day": None,
    },
}

# Limits whose usage can be counted from a stored collection.
COUNTED_LIMITS = {"max_users": STAFF_MEMBERS}


@dataclass(frozen=True, slots=True)
class UsageCheck:
    within_limit: bool
    current: int
    limit: Optional[int]
    reason: Optional[str] = None


@dataclass(frozen=True, slots=True)
class SubscriptionCheck:
    valid: bool
    message: Optional[str] = None


def serialize_features(features) -> str:
    return ",".join(FeatureKey(f).value for f in features)


async def list_plans(store: RecordStore) -> list[SubscriptionPlanOut]:
    result = await store.get_all(SUBSCRIPTION_PLANS)
    return [parse_record(SubscriptionPlanOut, SUBSCRIPTION_PLANS, raw) for raw in result.get("items", [])]


async def resolve_plan(store: RecordStore, organisation: OrganisationOut) -> Optional[SubscriptionPlanOut]:
    """Plan whose name matches the organisation's subscription plan type."""
    plan_type = (organisation.subscription_plan_type or "").strip().lower()
    if not plan_type:
        return None
    for plan in await list_plans(store):
        if plan.plan_name.strip().lower() == plan_type:
            return plan
    logger.warning("No subscription plan named %r for organisation %s", plan_type, organisation.id)
    return None


async def seed_subscription_plans(store: RecordStore) -> dict[str, SubscriptionPlanOut]:
    """
    Ensure the catalogue plans exist, returning a name->plan mapping.
    Existing plans keep their is_active flag; features and pricing are refreshed.
    """
    existing = {plan.plan_name: plan for plan in await list_plans(store)}

    seeded: dict[str, SubscriptionPlanOut] = {}
    for name, definition in PLAN_DEFINITIONS.items():
        values = {
            "plan_name": name,
            "features": serialize_features(definition["features"]),
            "price_per_month": definition["price_per_month"],
            "plan_description": definition["description"],
        }
        plan = existing.get(name)
        if plan:
            raw = await store.update(SUBSCRIPTION_PLANS, {"id": plan.id, **values})
        else:
            raw = await store.create(SUBSCRIPTION_PLANS, {**values, "is_active": True})
            logger.info("Seeded subscription plan %s", name)
        if raw is None:
            continue
        seeded[name] = parse_record(SubscriptionPlanOut, SUBSCRIPTION_PLANS, raw)
    return seeded


def plan_tier(plan_name: Optional[str]) -> Optional[str]:
    """Catalogue tier for a plan name, matched case-insensitively."""
    name = (plan_name or "").strip().lower()
    for tier in PLAN_TIERS:
        if tier.lower() == name:
            return tier
    return None


async def check_usage_limit(
    store: RecordStore,
    ctx: TenancyContext,
    limit_key: str,
    current: Optional[int] = None,
) -> UsageCheck:
    """Compare usage against the organisation's plan limit.

    ``current`` may be omitted for limits counted from a stored collection.
    A missing or inactive plan is reported as over the limit.
    """
    if limit_key not in USAGE_LIMITS[PLAN_TIERS[0]]:
        raise ValueError(f"Unknown usage limit: {limit_key}")

    plan = ctx.subscription_plan
    tier = plan_tier(plan.plan_name) if plan is not None else None
    if ctx.organisation is None or tier is None or not ctx.is_subscription_valid:
        return UsageCheck(False, current or 0, None, "No active subscription plan")

    if current is None:
        collection = COUNTED_LIMITS.get(limit_key)
        if collection is None:
            raise ValueError(f"Usage for {limit_key} must be supplied by the caller")
        result = await store.get_all(collection)
        current = sum(1 for item in result.get("items", []) if item.get("organisation_id") == ctx.organisation.id)

    limit = USAGE_LIMITS[tier][limit_key]
    if limit is None or current < limit:
        return UsageCheck(True, current, limit)
    logger.info("Organisation %s reached %s (%s/%s)", ctx.organisation.id, limit_key, current, limit)
    return UsageCheck(False, current, limit, f"{tier} plan allows {limit} for {limit_key}")


def validate_subscription_for_operation(
    ctx: TenancyContext, required_tier: str = DEFAULT_PLAN_TYPE
) -> SubscriptionCheck:
    required = plan_tier(required_tier)
    if required is None:
        raise ValueError(f"Unknown subscription tier: {required_tier}")
    plan = ctx.subscription_plan
    if plan is None or not ctx.is_subscription_valid:
        return SubscriptionCheck(False, "Subscription is not active")
    tier = plan_tier(plan.plan_name)
    if tier is None or PLAN_TIERS.index(tier) < PLAN_TIERS.index(required):
        return SubscriptionCheck(False, f"Operation requires {required} subscription")
    return SubscriptionCheck(True)
