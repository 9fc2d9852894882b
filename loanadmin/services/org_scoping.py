from __future__ import annotations

import logging
from typing import Any, Mapping

from sqlalchemy import false
from sqlalchemy.orm import InstrumentedAttribute
from sqlalchemy.sql import Select

from loanadmin.services.record_store import RecordStore, eq
from loanadmin.services.tenancy import Scope, TenancyContext

logger = logging.getLogger(__name__)

ORG_FIELD = "organisation_id"


def apply_org_filter(stmt: Select, ctx: TenancyContext, *columns: InstrumentedAttribute) -> Select:
    if not columns:
        raise ValueError("apply_org_filter requires at least one org-scoped column")
    scope = ctx.active_filter()
    if scope is Scope.UNSCOPED:
        return stmt
    if scope is None:
        return stmt.where(false())
    return stmt.where(*[col == scope for col in columns])


def can_access(record: Mapping[str, Any], ctx: TenancyContext) -> bool:
    scope = ctx.active_filter()
    if scope is Scope.UNSCOPED:
        return True
    if scope is None:
        return False
    return record.get(ORG_FIELD) == scope


async def list_scoped(store: RecordStore, collection: str, ctx: TenancyContext) -> list[dict[str, Any]]:
    scope = ctx.active_filter()
    if scope is None:
        logger.info("No organisation in context; %s listing is empty", collection)
        return []
    result = await store.get_all(collection)
    items = result.get("items", [])
    if scope is Scope.UNSCOPED:
        logger.info("Unscoped listing of %s", collection)
        return items
    return [item for item in items if item.get(ORG_FIELD) == scope]


async def get_scoped(
    store: RecordStore, collection: str, record_id: str, ctx: TenancyContext
) -> dict[str, Any] | None:
    if ctx.active_filter() is None:
        return None
    record = await store.get_by_id(collection, record_id)
    if record is None:
        return None
    if not can_access(record, ctx):
        logger.warning("Denied %s/%s outside organisation %s", collection, record_id, ctx.active_filter())
        return None
    return record


async def create_scoped(
    store: RecordStore,
    collection: str,
    record: Mapping[str, Any],
    ctx: TenancyContext,
    organisation_id: str | None = None,
) -> dict[str, Any] | None:
    """Create ``record`` stamped with the active organisation.

    An unscoped context must name the target organisation explicitly; a scoped
    one may only write into its own. Returns ``None`` when refused.
    """
    scope = ctx.active_filter()
    if scope is None:
        logger.warning("Create on %s refused without organisation context", collection)
        return None
    if scope is Scope.UNSCOPED:
        if not organisation_id:
            logger.warning("Unscoped create on %s refused without an explicit organisation", collection)
            return None
        target = organisation_id
    else:
        if organisation_id and organisation_id != scope:
            logger.warning("Create on %s for %s refused outside organisation %s", collection, organisation_id, scope)
            return None
        target = scope
    logger.info("Creating %s for organisation %s", collection, target)
    return await store.create(collection, {**record, ORG_FIELD: target})


async def update_scoped(
    store: RecordStore, collection: str, partial: Mapping[str, Any], ctx: TenancyContext
) -> dict[str, Any] | None:
    """Apply ``partial`` only to a record of the active organisation."""
    record_id = partial.get("id")
    if not record_id:
        raise ValueError("update_scoped requires an id")
    scope = ctx.active_filter()
    if scope is None:
        return None
    if scope is Scope.UNSCOPED:
        return await store.update(collection, partial)
    if partial.get(ORG_FIELD, scope) != scope:
        logger.warning("Denied moving %s/%s out of organisation %s", collection, record_id, scope)
        return None
    changes = {k: v for k, v in partial.items() if k != "id"}
    # Ownership is checked in the same write, so a record moved meanwhile is not touched.
    if not await store.update_if(collection, record_id, [eq(ORG_FIELD, scope)], changes):
        logger.warning("Update denied for %s/%s outside organisation %s", collection, record_id, scope)
        return None
    return await store.get_by_id(collection, record_id)


async def delete_scoped(store: RecordStore, collection: str, record_id: str, ctx: TenancyContext) -> bool:
    scope = ctx.active_filter()
    if scope is None:
        return False
    conditions = [] if scope is Scope.UNSCOPED else [eq(ORG_FIELD, scope)]
    deleted = await store.delete_if(collection, record_id, conditions)
    if not deleted:
        logger.warning("Delete of %s/%s refused or missing for organisation %s", collection, record_id, scope)
    return deleted
