import pytest
from sqlalchemy import select
from sqlalchemy.dialects import postgresql

from loanadmin.core.permissions import StaffRole
from loanadmin.models import StaffMember
from loanadmin.schemas.tenancy import OrganisationOut
from loanadmin.services.org_scoping import (
    apply_org_filter,
    can_access,
    create_scoped,
    delete_scoped,
    get_scoped,
    list_scoped,
    update_scoped,
)
from loanadmin.services.record_store import STAFF_MEMBERS
from loanadmin.services.tenancy import TenancyContext

from conftest import seed_staff


def _scoped(org_id: str = "org-a", role: StaffRole | None = StaffRole.ADMIN) -> TenancyContext:
    ctx = TenancyContext()
    ctx.set_organisation(OrganisationOut(id=org_id, name=org_id))
    ctx.set_role(role)
    return ctx


def _unscoped() -> TenancyContext:
    ctx = _scoped(role=StaffRole.SYSTEM_OWNER)
    ctx.set_super_admin_view_all(True)
    return ctx


def _sql(stmt) -> str:
    return str(stmt.compile(dialect=postgresql.dialect(), compile_kwargs={"literal_binds": True}))


def test_apply_org_filter_scopes_to_organisation():
    stmt = apply_org_filter(select(StaffMember), _scoped("org-a"), StaffMember.organisation_id)

    assert "WHERE staff_members.organisation_id = 'org-a'" in _sql(stmt)


def test_apply_org_filter_unscoped_leaves_statement_alone():
    stmt = apply_org_filter(select(StaffMember), _unscoped(), StaffMember.organisation_id)

    assert "WHERE" not in _sql(stmt)


def test_apply_org_filter_without_organisation_matches_nothing():
    stmt = apply_org_filter(select(StaffMember), TenancyContext(), StaffMember.organisation_id)

    assert "false" in _sql(stmt).lower()


def test_apply_org_filter_requires_a_column():
    with pytest.raises(ValueError):
        apply_org_filter(select(StaffMember), _scoped())


def test_can_access():
    record = {"id": "s1", "organisation_id": "org-a"}

    assert can_access(record, _scoped("org-a")) is True
    assert can_access(record, _scoped("org-b")) is False
    assert can_access(record, _unscoped()) is True
    assert can_access(record, TenancyContext()) is False


@pytest.mark.asyncio
async def test_list_scoped_filters_by_organisation(store):
    await seed_staff(store, "a1", org_id="org-a")
    await seed_staff(store, "a2", org_id="org-a")
    await seed_staff(store, "b1", org_id="org-b")

    scoped = await list_scoped(store, STAFF_MEMBERS, _scoped("org-a"))
    everything = await list_scoped(store, STAFF_MEMBERS, _unscoped())
    nothing = await list_scoped(store, STAFF_MEMBERS, TenancyContext())

    assert sorted(item["id"] for item in scoped) == ["a1", "a2"]
    assert sorted(item["id"] for item in everything) == ["a1", "a2", "b1"]
    assert nothing == []


@pytest.mark.asyncio
async def test_non_super_admin_cannot_list_other_organisations(store):
    await seed_staff(store, "b1", org_id="org-b")
    ctx = _scoped("org-a", role=StaffRole.ADMIN)
    ctx.set_super_admin_view_all(True)

    assert await list_scoped(store, STAFF_MEMBERS, ctx) == []


@pytest.mark.asyncio
async def test_get_scoped_hides_other_organisation(store):
    await seed_staff(store, "b1", org_id="org-b")

    assert await get_scoped(store, STAFF_MEMBERS, "b1", _scoped("org-a")) is None
    assert (await get_scoped(store, STAFF_MEMBERS, "b1", _scoped("org-b")))["id"] == "b1"
    assert (await get_scoped(store, STAFF_MEMBERS, "b1", _unscoped()))["id"] == "b1"
    assert await get_scoped(store, STAFF_MEMBERS, "missing", _scoped("org-b")) is None
    assert await get_scoped(store, STAFF_MEMBERS, "b1", TenancyContext()) is None


@pytest.mark.asyncio
async def test_create_scoped_stamps_active_organisation(store):
    created = await create_scoped(store, STAFF_MEMBERS, {"id": "s1", "organisation_id": "org-b"}, _scoped("org-a"))

    assert created["organisation_id"] == "org-a"
    assert (await store.get_by_id(STAFF_MEMBERS, "s1"))["organisation_id"] == "org-a"


@pytest.mark.asyncio
async def test_create_scoped_refuses_without_organisation(store):
    assert await create_scoped(store, STAFF_MEMBERS, {"id": "s1"}, TenancyContext()) is None
    assert (await store.get_all(STAFF_MEMBERS))["items"] == []


@pytest.mark.asyncio
async def test_create_scoped_refuses_other_organisation_target(store):
    assert await create_scoped(store, STAFF_MEMBERS, {"id": "s1"}, _scoped("org-a"), organisation_id="org-b") is None
    assert await store.get_by_id(STAFF_MEMBERS, "s1") is None


@pytest.mark.asyncio
async def test_unscoped_create_needs_explicit_organisation(store):
    assert await create_scoped(store, STAFF_MEMBERS, {"id": "s1"}, _unscoped()) is None

    created = await create_scoped(store, STAFF_MEMBERS, {"id": "s1"}, _unscoped(), organisation_id="org-b")
    assert created["organisation_id"] == "org-b"


@pytest.mark.asyncio
async def test_update_scoped_only_touches_own_organisation(store):
    await seed_staff(store, "a1", org_id="org-a")
    await seed_staff(store, "b1", org_id="org-b")

    updated = await update_scoped(store, STAFF_MEMBERS, {"id": "a1", "role": "ADMIN"}, _scoped("org-a"))
    denied = await update_scoped(store, STAFF_MEMBERS, {"id": "b1", "role": "ADMIN"}, _scoped("org-a"))

    assert updated["role"] == "ADMIN"
    assert denied is None
    assert (await store.get_by_id(STAFF_MEMBERS, "b1"))["role"] == "STAFF"
    assert await update_scoped(store, STAFF_MEMBERS, {"id": "missing", "role": "ADMIN"}, _scoped("org-a")) is None
    assert await update_scoped(store, STAFF_MEMBERS, {"id": "a1", "role": "STAFF"}, TenancyContext()) is None


@pytest.mark.asyncio
async def test_update_scoped_cannot_move_record_to_another_organisation(store):
    await seed_staff(store, "a1", org_id="org-a")

    moved = await update_scoped(store, STAFF_MEMBERS, {"id": "a1", "organisation_id": "org-b"}, _scoped("org-a"))

    assert moved is None
    assert (await store.get_by_id(STAFF_MEMBERS, "a1"))["organisation_id"] == "org-a"


@pytest.mark.asyncio
async def test_update_scoped_unscoped_reaches_any_organisation(store):
    await seed_staff(store, "b1", org_id="org-b")

    updated = await update_scoped(store, STAFF_MEMBERS, {"id": "b1", "role": "ADMIN"}, _unscoped())

    assert updated["role"] == "ADMIN"


@pytest.mark.asyncio
async def test_update_scoped_requires_id(store):
    with pytest.raises(ValueError):
        await update_scoped(store, STAFF_MEMBERS, {"role": "ADMIN"}, _scoped("org-a"))


@pytest.mark.asyncio
async def test_delete_scoped(store):
    await seed_staff(store, "a1", org_id="org-a")
    await seed_staff(store, "b1", org_id="org-b")
    await seed_staff(store, "b2", org_id="org-b")

    assert await delete_scoped(store, STAFF_MEMBERS, "b1", _scoped("org-a")) is False
    assert await delete_scoped(store, STAFF_MEMBERS, "a1", TenancyContext()) is False
    assert await delete_scoped(store, STAFF_MEMBERS, "a1", _scoped("org-a")) is True
    assert await delete_scoped(store, STAFF_MEMBERS, "b2", _unscoped()) is True
    assert sorted(item["id"] for item in (await store.get_all(STAFF_MEMBERS))["items"]) == ["b1"]
