from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from loanadmin.core.context import set_staff_id, set_tenant_id
from loanadmin.core.features import FeatureKey
from loanadmin.core.permissions import PermissionCode, StaffRole
from loanadmin.core.settings import settings
from loanadmin.db.session import get_db
from loanadmin.services.access import AccessDecisionEngine, Decision
from loanadmin.services.notifications import LoggingNotifier, Notifier
from loanadmin.services.record_store import RecordStore, SqlAlchemyRecordStore
from loanadmin.services.tenancy import TenancyContext, load_tenancy_context
from loanadmin.services.verification import VerificationEngine


@dataclass(slots=True)
class TenantContext:
    org_id: str


def _resolve_subdomain(request: Request) -> str | None:
    host = request.headers.get("host", "")
    # strip port if present
    host = host.split(":")[0]
    if settings.allowed_tenant_hosts:
        if host not in settings.allowed_tenant_hosts:
            return None
    parts = host.split(".")
    # ignore localhost/invalid hosts
    if len(parts) >= 3:
        return parts[0]
    return None


async def get_tenant_context(
    request: Request,
    tenant_id: str | None = Header(default=None, alias="X-Tenant-ID"),
) -> TenantContext:
    if settings.tenancy_mode == "multi":
        candidate = tenant_id or _resolve_subdomain(request)
        if not candidate:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Tenant resolution failed: provide X-Tenant-ID header or subdomain",
            )
        set_tenant_id(candidate)
        return TenantContext(org_id=candidate)

    set_tenant_id(settings.default_org_id)
    return TenantContext(org_id=settings.default_org_id)


async def get_db_session(db: AsyncSession = Depends(get_db)) -> AsyncSession:
    return db


async def get_record_store(db: AsyncSession = Depends(get_db_session)) -> RecordStore:
    return SqlAlchemyRecordStore(db)


async def get_verification_engine(store: RecordStore = Depends(get_record_store)) -> VerificationEngine:
    return VerificationEngine(store)


async def get_notifier() -> Notifier:
    return LoggingNotifier()


async def get_tenancy(
    ctx: TenantContext = Depends(get_tenant_context),
    store: RecordStore = Depends(get_record_store),
    staff_id: Optional[str] = Header(default=None, alias="X-Staff-ID"),
    view_all: bool = Header(default=False, alias="X-View-All"),
) -> TenancyContext:
    """Tenancy snapshot for this request; the staff id comes from the auth gateway."""
    if staff_id:
        set_staff_id(staff_id)
    return await load_tenancy_context(
        store,
        organisation_id=ctx.org_id,
        staff_id=staff_id,
        view_all=view_all,
    )


async def get_access_engine(tenancy: TenancyContext = Depends(get_tenancy)) -> AccessDecisionEngine:
    return AccessDecisionEngine(tenancy)


def require_features(*features: FeatureKey, require_all: bool = False):
    required = [FeatureKey(f) for f in features]

    async def dependency(engine: AccessDecisionEngine = Depends(get_access_engine)) -> AccessDecisionEngine:
        if engine.decide(required, require_all=require_all) is Decision.DENY:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "code": "feature_not_available",
                    "message": f"Feature not available on the {engine.plan_type()} plan",
                    "required_features": [f.value for f in required],
                    "require_all": require_all,
                },
            )
        return engine

    return dependency


def require_roles(*roles: StaffRole):
    required = [StaffRole(r) for r in roles]

    async def dependency(engine: AccessDecisionEngine = Depends(get_access_engine)) -> AccessDecisionEngine:
        if engine.decide_role(required) is Decision.DENY:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "code": "access_denied",
                    "message": "You do not have permission to access this resource",
                    "required_roles": [r.value for r in required],
                },
            )
        return engine

    return dependency


def require_permission(permission_code: PermissionCode):
    async def dependency(engine: AccessDecisionEngine = Depends(get_access_engine)) -> AccessDecisionEngine:
        result = engine.authorize_action(permission_code)
        if not result.authorized:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail={
                    "code": "access_denied",
                    "message": result.reason or "Access denied",
                    "permission": PermissionCode(permission_code).value,
                },
            )
        return engine

    return dependency
