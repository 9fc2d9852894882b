from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from loanadmin.core.features import FeatureKey, parse_features


class OrganisationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    subscription_plan_type: Optional[str] = None
    organisation_status: str = "ACTIVE"
    created_at: Optional[datetime] = None


class SubscriptionPlanOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    plan_name: str
    features: str = ""
    is_active: Optional[bool] = None
    price_per_month: Optional[Decimal] = None
    plan_description: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def feature_set(self) -> frozenset[FeatureKey]:
        return parse_features(self.features)


class StaffMemberOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    organisation_id: str
    full_name: Optional[str] = None
    email: Optional[str] = None
    phone_number: Optional[str] = None
    role: Optional[str] = None
    created_at: Optional[datetime] = None


class TenancySnapshotOut(BaseModel):
    organisation_id: Optional[str] = None
    organisation_name: Optional[str] = None
    plan_name: Optional[str] = None
    is_subscription_valid: bool = False
    staff_id: Optional[str] = None
    role: Optional[str] = None
    permissions: List[str] = []
    super_admin_view_all: bool = False
    # An organisation id, "unscoped", or null (no data visible)
    active_filter: Optional[str] = None
    available_features: List[FeatureKey] = []


class AccessDecisionOut(BaseModel):
    decision: str
    features: List[FeatureKey]
    require_all: bool
