"""Collection-oriented record storage.

Records cross this boundary as plain dicts keyed by column name. Filtering is
left to callers except for the two conditional primitives (``update_if`` and
``delete_if``), which adapters must apply atomically so that check-then-act
sequences such as "verify if still pending" have a single winner.
"""

from __future__ import annotations

import asyncio
import copy
import uuid
import weakref
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Iterable, Literal, Mapping, Sequence, TypeVar

from pydantic import BaseModel, ValidationError
from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from loanadmin.core.errors import MalformedRecordError, RecordStoreError, UnknownCollectionError
from loanadmin.models import Organisation, StaffMember, SubscriptionPlan, VerificationRecord


VERIFICATION_RECORDS = "verificationrecords"
ORGANISATIONS = "organisations"
SUBSCRIPTION_PLANS = "subscriptionplans"
STAFF_MEMBERS = "staffmembers"

SchemaT = TypeVar("SchemaT", bound=BaseModel)

COLLECTION_MODELS: dict[str, type] = {
    VERIFICATION_RECORDS: VerificationRecord,
    ORGANISATIONS: Organisation,
    SUBSCRIPTION_PLANS: SubscriptionPlan,
    STAFF_MEMBERS: StaffMember,
}


@dataclass(frozen=True, slots=True)
class Condition:
    """``value`` may be a zero-argument callable, read when the condition is applied."""

    field: str
    op: Literal["eq", "lt", "ge"]
    value: Any

    def resolved_value(self) -> Any:
        return self.value() if callable(self.value) else self.value

    def matches(self, record: Mapping[str, Any]) -> bool:
        current = record.get(self.field)
        value = self.resolved_value()
        if self.op == "eq":
            return current == value
        if current is None or value is None:
            return False
        if self.op == "ge":
            return current >= value
        return current < value


def eq(field: str, value: Any) -> Condition:
    return Condition(field, "eq", value)


def before(field: str, when: Any) -> Condition:
    return Condition(field, "lt", when)


def not_before(field: str, when: Any) -> Condition:
    return Condition(field, "ge", when)


def new_record_id() -> str:
    return uuid.uuid4().hex


class RecordStore(ABC):
    @abstractmethod
    async def create(self, collection: str, record: Mapping[str, Any]) -> dict[str, Any]:
        """Persist ``record``; an ``id`` is generated when missing."""

    @abstractmethod
    async def get_by_id(self, collection: str, record_id: str) -> dict[str, Any] | None:
        pass

    @abstractmethod
    async def get_all(self, collection: str) -> dict[str, list[dict[str, Any]]]:
        """Return ``{"items": [...]}`` in no particular order."""

    @abstractmethod
    async def update(self, collection: str, partial: Mapping[str, Any]) -> dict[str, Any] | None:
        """Merge ``partial`` (which must carry ``id``) into the stored record."""

    @abstractmethod
    async def delete(self, collection: str, record_id: str) -> None:
        pass

    @abstractmethod
    async def update_if(
        self,
        collection: str,
        record_id: str,
        conditions: Sequence[Condition],
        changes: Mapping[str, Any],
    ) -> bool:
        """Apply ``changes`` only if every condition holds at write time."""

    @abstractmethod
    async def delete_if(
        self,
        collection: str,
        record_id: str,
        conditions: Sequence[Condition],
    ) -> bool:
        """Delete only if every condition holds at delete time."""


class InMemoryRecordStore(RecordStore):
    """Process-local store; conditional operations take a per-record lock.

    Locks live only while some caller holds or awaits them.
    """

    def __init__(self, collections: Iterable[str] | None = None) -> None:
        names = list(collections) if collections is not None else list(COLLECTION_MODELS)
        self._data: dict[str, dict[str, dict[str, Any]]] = {name: {} for name in names}
        self._locks: weakref.WeakValueDictionary[tuple[str, str], asyncio.Lock] = weakref.WeakValueDictionary()

    def _collection(self, collection: str) -> dict[str, dict[str, Any]]:
        try:
            return self._data[collection]
        except KeyError:
            raise UnknownCollectionError(collection) from None

    def _lock(self, collection: str, record_id: str) -> asyncio.Lock:
        return self._locks.setdefault((collection, record_id), asyncio.Lock())

    async def create(self, collection: str, record: Mapping[str, Any]) -> dict[str, Any]:
        items = self._collection(collection)
        stored = copy.deepcopy(dict(record))
        stored.setdefault("id", new_record_id())
        items[stored["id"]] = stored
        return copy.deepcopy(stored)

    async def get_by_id(self, collection: str, record_id: str) -> dict[str, Any] | None:
        stored = self._collection(collection).get(record_id)
        return copy.deepcopy(stored) if stored is not None else None

    async def get_all(self, collection: str) -> dict[str, list[dict[str, Any]]]:
        return {"items": [copy.deepcopy(r) for r in self._collection(collection).values()]}

    async def update(self, collection: str, partial: Mapping[str, Any]) -> dict[str, Any] | None:
        record_id = partial.get("id")
        if not record_id:
            raise ValueError("update requires an id")
        items = self._collection(collection)
        async with self._lock(collection, record_id):
            stored = items.get(record_id)
            if stored is None:
                return None
            stored.update(copy.deepcopy({k: v for k, v in partial.items() if k != "id"}))
            return copy.deepcopy(stored)

    async def delete(self, collection: str, record_id: str) -> None:
        items = self._collection(collection)
        async with self._lock(collection, record_id):
            items.pop(record_id, None)

    async def update_if(
        self,
        collection: str,
        record_id: str,
        conditions: Sequence[Condition],
        changes: Mapping[str, Any],
    ) -> bool:
        items = self._collection(collection)
        async with self._lock(collection, record_id):
            stored = items.get(record_id)
            if stored is None or not all(c.matches(stored) for c in conditions):
                return False
            stored.update(copy.deepcopy(dict(changes)))
            return True

    async def delete_if(
        self,
        collection: str,
        record_id: str,
        conditions: Sequence[Condition],
    ) -> bool:
        items = self._collection(collection)
        async with self._lock(collection, record_id):
            stored = items.get(record_id)
            if stored is None or not all(c.matches(stored) for c in conditions):
                return False
            del items[record_id]
        return True


class SqlAlchemyRecordStore(RecordStore):
    """Record store over an ``AsyncSession``; one table per collection."""

    def __init__(self, db: AsyncSession, models: Mapping[str, type] | None = None) -> None:
        self.db = db
        self.models = dict(models or COLLECTION_MODELS)

    def _model(self, collection: str) -> type:
        try:
            return self.models[collection]
        except KeyError:
            raise UnknownCollectionError(collection) from None

    @staticmethod
    def _to_dict(model: type, instance: Any) -> dict[str, Any]:
        return {column.name: getattr(instance, column.name) for column in model.__table__.columns}

    @staticmethod
    def _columns_only(model: type, values: Mapping[str, Any]) -> dict[str, Any]:
        columns = set(model.__table__.columns.keys())
        return {key: value for key, value in values.items() if key in columns}

    @staticmethod
    def _where(model: type, conditions: Sequence[Condition]) -> list:
        clauses = []
        for condition in conditions:
            column = getattr(model, condition.field)
            value = condition.resolved_value()
            if condition.op == "eq":
                clauses.append(column == value)
            elif condition.op == "ge":
                clauses.append(column >= value)
            else:
                clauses.append(column < value)
        return clauses

    async def _execute_and_commit(self, stmt, collection: str, action: str):
        try:
            result = await self.db.execute(stmt)
            await self.db.commit()
        except SQLAlchemyError as exc:
            await self.db.rollback()
            raise RecordStoreError(f"{action} failed on {collection}") from exc
        return result

    async def create(self, collection: str, record: Mapping[str, Any]) -> dict[str, Any]:
        model = self._model(collection)
        values = self._columns_only(model, record)
        values.setdefault("id", new_record_id())
        instance = model(**values)
        try:
            self.db.add(instance)
            await self.db.commit()
            await self.db.refresh(instance)
        except SQLAlchemyError as exc:
            await self.db.rollback()
            raise RecordStoreError(f"create failed on {collection}") from exc
        return self._to_dict(model, instance)

    async def get_by_id(self, collection: str, record_id: str) -> dict[str, Any] | None:
        model = self._model(collection)
        try:
            result = await self.db.execute(
                select(model).where(model.id == record_id).execution_options(populate_existing=True)
            )
        except SQLAlchemyError as exc:
            raise RecordStoreError(f"get_by_id failed on {collection}") from exc
        instance = result.scalar_one_or_none()
        return self._to_dict(model, instance) if instance is not None else None

    async def get_all(self, collection: str) -> dict[str, list[dict[str, Any]]]:
        model = self._model(collection)
        try:
            result = await self.db.execute(select(model).execution_options(populate_existing=True))
        except SQLAlchemyError as exc:
            raise RecordStoreError(f"get_all failed on {collection}") from exc
        return {"items": [self._to_dict(model, row) for row in result.scalars().all()]}

    async def update(self, collection: str, partial: Mapping[str, Any]) -> dict[str, Any] | None:
        record_id = partial.get("id")
        if not record_id:
            raise ValueError("update requires an id")
        model = self._model(collection)
        changes = self._columns_only(model, {k: v for k, v in partial.items() if k != "id"})
        if changes:
            stmt = update(model).where(model.id == record_id).values(**changes)
            result = await self._execute_and_commit(stmt, collection, "update")
            if result.rowcount == 0:
                return None
        return await self.get_by_id(collection, record_id)

    async def delete(self, collection: str, record_id: str) -> None:
        model = self._model(collection)
        await self._execute_and_commit(delete(model).where(model.id == record_id), collection, "delete")

    async def update_if(
        self,
        collection: str,
        record_id: str,
        conditions: Sequence[Condition],
        changes: Mapping[str, Any],
    ) -> bool:
        model = self._model(collection)
        stmt = (
            update(model)
            .where(model.id == record_id, *self._where(model, conditions))
            .values(**self._columns_only(model, changes))
            .execution_options(synchronize_session=False)
        )
        result = await self._execute_and_commit(stmt, collection, "update_if")
        return result.rowcount == 1

    async def delete_if(
        self,
        collection: str,
        record_id: str,
        conditions: Sequence[Condition],
    ) -> bool:
        model = self._model(collection)
        stmt = (
            delete(model)
            .where(model.id == record_id, *self._where(model, conditions))
            .execution_options(synchronize_session=False)
        )
        result = await self._execute_and_commit(stmt, collection, "delete_if")
        return result.rowcount == 1


def parse_record(schema: type[SchemaT], collection: str, raw: Mapping[str, Any]) -> SchemaT:
    """Validate a stored record; bad rows surface as ``MalformedRecordError``."""
    try:
        return schema.model_validate(dict(raw))
    except ValidationError as exc:
        raise MalformedRecordError(collection, raw.get("id"), str(exc)) from exc
