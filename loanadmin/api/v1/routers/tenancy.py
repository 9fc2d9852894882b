from typing import List

from fastapi import APIRouter, Depends, Query

from loanadmin.api import deps
from loanadmin.core.features import FeatureKey
from loanadmin.core.permissions import PermissionCode
from loanadmin.schemas.tenancy import AccessDecisionOut, StaffMemberOut, TenancySnapshotOut
from loanadmin.services.access import AccessDecisionEngine
from loanadmin.services.org_scoping import list_scoped
from loanadmin.services.record_store import STAFF_MEMBERS, RecordStore, parse_record
from loanadmin.services.tenancy import Scope, TenancyContext

router = APIRouter(prefix="/tenancy", tags=["tenancy"])


def _snapshot(ctx: TenancyContext) -> TenancySnapshotOut:
    scope = ctx.active_filter()
    return TenancySnapshotOut(
        organisation_id=ctx.organisation.id if ctx.organisation else None,
        organisation_name=ctx.organisation.name if ctx.organisation else None,
        plan_name=ctx.subscription_plan.plan_name if ctx.subscription_plan else None,
        is_subscription_valid=ctx.is_subscription_valid,
        staff_id=ctx.staff.id if ctx.staff else None,
        role=ctx.role.value if ctx.role else None,
        permissions=sorted(ctx.permissions),
        super_admin_view_all=ctx.super_admin_view_all,
        active_filter=scope.value if isinstance(scope, Scope) else scope,
        available_features=AccessDecisionEngine(ctx).available_features(),
    )


@router.get("/context", response_model=TenancySnapshotOut, summary="Current tenancy snapshot")
async def read_context(ctx: TenancyContext = Depends(deps.get_tenancy)) -> TenancySnapshotOut:
    return _snapshot(ctx)


@router.get("/access", response_model=AccessDecisionOut, summary="Decide access for a feature set")
async def read_access(
    features: List[FeatureKey] = Query(default=[]),
    require_all: bool = Query(default=False),
    engine: AccessDecisionEngine = Depends(deps.get_access_engine),
) -> AccessDecisionOut:
    decision = engine.decide(features, require_all=require_all)
    return AccessDecisionOut(decision=decision.value, features=features, require_all=require_all)


@router.get("/staff", response_model=List[StaffMemberOut], summary="Staff visible in the current scope")
async def list_staff(
    engine: AccessDecisionEngine = Depends(deps.require_permission(PermissionCode.MANAGE_STAFF)),
    store: RecordStore = Depends(deps.get_record_store),
) -> List[StaffMemberOut]:
    items = await list_scoped(store, STAFF_MEMBERS, engine.ctx)
    return [parse_record(StaffMemberOut, STAFF_MEMBERS, raw) for raw in items]
