"""Per-session tenancy state.

A ``TenancyContext`` is owned by exactly one request or session and passed
explicitly to whatever needs it. ``active_filter()`` is the single read path
for deciding which organisation's records a query may see.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Iterable, Optional, Union

from loanadmin.core.logging import get_audit_logger
from loanadmin.core.permissions import SUPER_ADMIN_ROLES, StaffRole
from loanadmin.schemas.tenancy import OrganisationOut, StaffMemberOut, SubscriptionPlanOut
from loanadmin.services.authz import permissions_for_role
from loanadmin.services.record_store import ORGANISATIONS, STAFF_MEMBERS, RecordStore, parse_record
from loanadmin.services.subscription import resolve_plan

logger = logging.getLogger(__name__)
audit_logger = get_audit_logger()


class Scope(str, Enum):
    UNSCOPED = "unscoped"


OrganisationFilter = Union[str, Scope, None]


@dataclass(slots=True)
class TenancyContext:
    organisation: Optional[OrganisationOut] = None
    subscription_plan: Optional[SubscriptionPlanOut] = None
    is_subscription_valid: bool = False
    staff: Optional[StaffMemberOut] = None
    role: Optional[StaffRole] = None
    permissions: frozenset[str] = field(default_factory=frozenset)
    organisation_filter: Optional[str] = None
    super_admin_view_all: bool = False

    @property
    def is_super_admin(self) -> bool:
        return self.role in SUPER_ADMIN_ROLES

    def set_organisation(self, organisation: OrganisationOut) -> None:
        # Switching tenants never carries a view-all override across.
        self.organisation = organisation
        self.organisation_filter = organisation.id
        self.super_admin_view_all = False

    def set_subscription_plan(self, plan: Optional[SubscriptionPlanOut]) -> None:
        self.subscription_plan = plan
        self.is_subscription_valid = plan is not None and plan.is_active is True

    def set_staff(self, staff: Optional[StaffMemberOut]) -> None:
        self.staff = staff

    def set_role(self, role: Optional[StaffRole]) -> None:
        self.role = role

    def set_permissions(self, permissions: Iterable[str]) -> None:
        self.permissions = frozenset(permissions)

    def set_super_admin_view_all(self, enabled: bool) -> bool:
        """Returns whether the requested state was applied."""
        if enabled and not self.is_super_admin:
            audit_logger.warning(
                "tenancy.view_all_rejected",
                extra={"role": self.role.value if self.role else None},
            )
            self.super_admin_view_all = False
            return False
        self.super_admin_view_all = enabled
        audit_logger.info("tenancy.view_all_changed", extra={"enabled": enabled})
        return True

    def toggle_super_admin_view_all(self) -> bool:
        return self.set_super_admin_view_all(not self.super_admin_view_all)

    def active_filter(self) -> OrganisationFilter:
        """Organisation id to filter on, ``Scope.UNSCOPED``, or ``None`` (see nothing)."""
        if self.super_admin_view_all and self.is_super_admin:
            return Scope.UNSCOPED
        return self.organisation_filter

    def clear(self) -> None:
        blank = TenancyContext()
        for f in fields(self):
            setattr(self, f.name, getattr(blank, f.name))


async def load_tenancy_context(
    store: RecordStore,
    *,
    organisation_id: Optional[str],
    staff_id: Optional[str] = None,
    view_all: bool = False,
) -> TenancyContext:
    """Build the context for one request from the record store.

    Staff from another organisation are ignored unless they hold a super-admin
    role; an unknown organisation leaves the filter empty so nothing is visible.
    """
    ctx = TenancyContext()

    organisation = None
    if organisation_id:
        raw_org = await store.get_by_id(ORGANISATIONS, organisation_id)
        if raw_org is not None:
            organisation = parse_record(OrganisationOut, ORGANISATIONS, raw_org)
            ctx.set_organisation(organisation)
            ctx.set_subscription_plan(await resolve_plan(store, organisation))
        else:
            logger.info("Unknown organisation %s; tenancy context left empty", organisation_id)

    if staff_id:
        raw_staff = await store.get_by_id(STAFF_MEMBERS, staff_id)
        if raw_staff is not None:
            staff = parse_record(StaffMemberOut, STAFF_MEMBERS, raw_staff)
            role = StaffRole.parse(staff.role)
            belongs = organisation is not None and staff.organisation_id == organisation.id
            if belongs or role in SUPER_ADMIN_ROLES:
                ctx.set_staff(staff)
                ctx.set_role(role)
                ctx.set_permissions(permissions_for_role(role))
            else:
                logger.warning(
                    "Staff %s does not belong to organisation %s", staff.id, organisation_id
                )

    if view_all:
        ctx.set_super_admin_view_all(True)
    return ctx
