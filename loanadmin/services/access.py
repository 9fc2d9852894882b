from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional

from loanadmin.core.features import FeatureKey
from loanadmin.core.permissions import PermissionCode, StaffRole
from loanadmin.services.authz import violates_segregation_of_duties
from loanadmin.services.subscription import DEFAULT_PLAN_TYPE
from loanadmin.services.tenancy import TenancyContext


class Decision(str, Enum):
    ALLOW = "ALLOW"
    DENY = "DENY"

    @classmethod
    def of(cls, allowed: bool) -> "Decision":
        return cls.ALLOW if allowed else cls.DENY


@dataclass(frozen=True, slots=True)
class AuthorizationResult:
    authorized: bool
    reason: Optional[str] = None


class AccessDecisionEngine:
    """Feature and role gates over a live ``TenancyContext``.

    Nothing is cached: every call reads the context as it is now, so plan or
    role changes apply to the very next decision.
    """

    def __init__(self, ctx: TenancyContext) -> None:
        self.ctx = ctx

    def has_feature(self, key: FeatureKey | str) -> bool:
        feature = FeatureKey(key)
        plan = self.ctx.subscription_plan
        if plan is None or not self.ctx.is_subscription_valid:
            return False
        return feature in plan.feature_set

    def has_all_features(self, keys: Iterable[FeatureKey | str]) -> bool:
        return all(self.has_feature(key) for key in keys)

    def has_any_feature(self, keys: Iterable[FeatureKey | str]) -> bool:
        return any(self.has_feature(key) for key in keys)

    def decide(self, required_features: Iterable[FeatureKey | str], require_all: bool = False) -> Decision:
        features = list(required_features)
        if require_all:
            return Decision.of(self.has_all_features(features))
        return Decision.of(self.has_any_feature(features))

    def decide_role(self, required_roles: Iterable[StaffRole | str]) -> Decision:
        role = self.ctx.role
        if role is None:
            return Decision.DENY
        return Decision.of(role in {StaffRole(r) for r in required_roles})

    def has_permission(self, permission: PermissionCode | str) -> bool:
        return PermissionCode(permission).value in self.ctx.permissions

    def decide_permission(self, permission: PermissionCode | str) -> Decision:
        return Decision.of(self.has_permission(permission))

    def authorize_action(self, action: PermissionCode | str) -> AuthorizationResult:
        if not self.has_permission(action):
            return AuthorizationResult(False, "Insufficient permissions")
        if violates_segregation_of_duties(self.ctx.permissions, action):
            return AuthorizationResult(False, "Segregation of duties violation")
        return AuthorizationResult(True)

    def available_features(self) -> List[FeatureKey]:
        plan = self.ctx.subscription_plan
        if plan is None or not self.ctx.is_subscription_valid:
            return []
        return sorted(plan.feature_set, key=lambda key: key.value)

    def plan_type(self) -> str:
        plan = self.ctx.subscription_plan
        return plan.plan_name if plan is not None and plan.plan_name else DEFAULT_PLAN_TYPE
