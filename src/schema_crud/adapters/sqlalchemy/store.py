"""SQLAlchemyStoreClient — async SQLAlchemy implementation of IStoreClient."""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from sqlalchemy import asc, desc, func, inspect
from sqlalchemy import select as sa_select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload

from ...exceptions import NotFoundError, StoreError
from ...ports.store import IStoreClient
from .where import build_where

if TYPE_CHECKING:
    from sqlalchemy import Select
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
    from sqlalchemy.orm import RelationshipProperty

logger = logging.getLogger("schema_crud.store.sqlalchemy")

_RELATION_OPERATIONS = frozenset({"set", "connect", "disconnect"})


class SQLAlchemyStoreClient(IStoreClient):
    """
    Store client over one mapped model.

    Each call opens its own session from ``session_factory`` (an
    ``async_sessionmaker``, ideally with ``expire_on_commit=False``) and
    commits writes before returning.  Results are plain dicts: scalar
    columns by default, shaped by ``select``/``include`` for
    ``find_many``; relationships are eagerly loaded with ``selectinload``.

    ``SQLAlchemyError`` is re-raised as :class:`StoreError` with the cause
    chained.
    """

    def __init__(
        self,
        model: type[Any],
        session_factory: async_sessionmaker[AsyncSession],
        *,
        entity_name: str | None = None,
    ) -> None:
        self.model = model
        self.entity_name = entity_name or model.__name__
        self._session_factory = session_factory
        self._mapper = inspect(model)
        self._id_field = self._mapper.get_property_by_column(
            self._mapper.primary_key[0]
        ).key

    # -- IStoreClient --------------------------------------------------------

    async def create(self, data: dict[str, Any]) -> Any:
        with self._translate("create"):
            async with self._session_factory() as session, session.begin():
                obj = self.model()
                await self._assign(session, obj, data)
                session.add(obj)
                await session.flush()
                await session.refresh(obj)
                result = _serialize(obj, None, None)
        logger.debug("Created %s id=%r", self.entity_name, result.get(self._id_field))
        return result

    async def find_first(self, where: dict[str, Any]) -> Any | None:
        with self._translate("find_first"):
            async with self._session_factory() as session:
                stmt = self._filtered(sa_select(self.model), where).limit(1)
                obj = (await session.scalars(stmt)).first()
                return None if obj is None else _serialize(obj, None, None)

    async def find_many(
        self,
        *,
        skip: int = 0,
        take: int | None = None,
        order_by: dict[str, str] | None = None,
        where: dict[str, Any] | None = None,
        select: dict[str, Any] | None = None,
        include: dict[str, Any] | None = None,
    ) -> list[Any]:
        stmt = self._filtered(sa_select(self.model), where)
        stmt = self._ordered(stmt, order_by or {})
        if skip:
            stmt = stmt.offset(skip)
        if take is not None:
            stmt = stmt.limit(take)
        options = _loader_options(self.model, select, include)
        if options:
            stmt = stmt.options(*options)
        with self._translate("find_many"):
            async with self._session_factory() as session:
                rows = (await session.scalars(stmt)).all()
                return [_serialize(obj, select, include) for obj in rows]

    async def update(self, *, where: dict[str, Any], data: dict[str, Any]) -> Any:
        with self._translate("update"):
            async with self._session_factory() as session, session.begin():
                touched = [k for k in data if k in self._mapper.relationships]
                obj = await self._require(session, where, touched)
                await self._assign(session, obj, data)
                await session.flush()
                result = _serialize(obj, None, None)
        logger.debug("Updated %s id=%r", self.entity_name, result.get(self._id_field))
        return result

    async def delete(
        self, *, where: dict[str, Any], select: dict[str, Any] | None = None
    ) -> Any:
        with self._translate("delete"):
            async with self._session_factory() as session, session.begin():
                obj = await self._require(session, where, [])
                result = _serialize(obj, _scalar_select(select), None)
                await session.delete(obj)
        logger.debug("Deleted %s id=%r", self.entity_name, where.get(self._id_field))
        return result

    async def aggregate(
        self, *, where: dict[str, Any] | None = None, count: dict[str, bool]
    ) -> dict[str, Any]:
        counts: dict[str, int] = {}
        with self._translate("aggregate"):
            async with self._session_factory() as session:
                for name, wanted in count.items():
                    if not wanted:
                        continue
                    stmt = self._filtered(
                        sa_select(func.count(getattr(self.model, name))), where
                    )
                    counts[name] = int((await session.execute(stmt)).scalar_one())
        return {"_count": counts}

    # -- internals -----------------------------------------------------------

    @contextmanager
    def _translate(self, operation: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as exc:
            logger.warning(
                "%s.%s failed: %s", self.entity_name, operation, exc, exc_info=exc
            )
            raise StoreError(
                f"{operation} on {self.entity_name} failed: {exc}"
            ) from exc

    def _filtered(self, stmt: Select[Any], where: Mapping[str, Any] | None) -> Any:
        clause = build_where(self.model, where)
        return stmt if clause is None else stmt.where(clause)

    def _ordered(self, stmt: Select[Any], order_by: Mapping[str, str]) -> Any:
        for path, direction in order_by.items():
            current: type[Any] = self.model
            *relations, column_name = path.split(".")
            for name in relations:
                prop = inspect(current).relationships[name]
                stmt = stmt.join(getattr(current, name))
                current = prop.mapper.class_
            column = getattr(current, column_name)
            stmt = stmt.order_by(
                desc(column) if str(direction).lower() == "desc" else asc(column)
            )
        return stmt

    async def _require(
        self, session: AsyncSession, where: dict[str, Any], relations: list[str]
    ) -> Any:
        stmt = self._filtered(sa_select(self.model), where).limit(1)
        if relations:
            stmt = stmt.options(
                *(selectinload(getattr(self.model, name)) for name in relations)
            )
        obj = (await session.scalars(stmt)).first()
        if obj is None:
            raise NotFoundError(self.entity_name, where.get(self._id_field))
        return obj

    async def _assign(
        self, session: AsyncSession, obj: Any, data: Mapping[str, Any]
    ) -> None:
        for key, value in data.items():
            if key in self._mapper.relationships:
                await self._apply_relation(
                    session, obj, self._mapper.relationships[key], value
                )
            elif key in self._mapper.column_attrs:
                setattr(obj, key, value)
            else:
                raise StoreError(f"{self.entity_name} has no attribute '{key}'")

    async def _apply_relation(
        self,
        session: AsyncSession,
        obj: Any,
        prop: RelationshipProperty[Any],
        directive: Any,
    ) -> None:
        if not isinstance(directive, Mapping) or not (
            set(directive) <= _RELATION_OPERATIONS
        ):
            raise StoreError(
                f"Relation '{prop.key}' on {self.entity_name} needs a "
                f"set/connect/disconnect directive, got {directive!r}"
            )
        target = prop.mapper.class_
        for operation, operand in directive.items():
            if prop.uselist:
                refs = operand if isinstance(operand, (list, tuple)) else [operand]
                if operation == "disconnect" and operand is True:
                    setattr(obj, prop.key, [])
                    continue
                loaded = [await self._load_target(session, target, r) for r in refs]
                collection = getattr(obj, prop.key)
                if operation == "set":
                    setattr(obj, prop.key, loaded)
                elif operation == "connect":
                    collection.extend(item for item in loaded if item not in collection)
                else:
                    for item in loaded:
                        if item in collection:
                            collection.remove(item)
            elif operation == "disconnect" or operand is None:
                setattr(obj, prop.key, None)
            else:
                loaded_one = await self._load_target(session, target, operand)
                setattr(obj, prop.key, loaded_one)

    @staticmethod
    async def _load_target(session: AsyncSession, target: type[Any], ref: Any) -> Any:
        target_mapper = inspect(target)
        id_key = target_mapper.get_property_by_column(target_mapper.primary_key[0]).key
        ref_id = ref.get(id_key) if isinstance(ref, Mapping) else ref
        found = await session.get(target, ref_id)
        if found is None:
            raise NotFoundError(target.__name__, ref_id)
        return found


def _scalar_select(select_map: Mapping[str, Any] | None) -> dict[str, Any] | None:
    if not select_map:
        return None
    return {k: v for k, v in select_map.items() if v is True}


def _loader_options(
    model: type[Any],
    select_map: Mapping[str, Any] | None,
    include: Mapping[str, Any] | None,
) -> list[Any]:
    mapper = inspect(model)
    options = []
    for spec_map in (select_map, include):
        for name, spec in (spec_map or {}).items():
            if not spec or name not in mapper.relationships:
                continue
            attr = getattr(model, name)
            target = mapper.relationships[name].mapper.class_
            loader = selectinload(attr)
            if isinstance(spec, Mapping):
                nested = _loader_options(
                    target, spec.get("select"), spec.get("include")
                )
                if nested:
                    loader = loader.options(*nested)
            options.append(loader)
    return options


def _serialize(
    obj: Any,
    select_map: Mapping[str, Any] | None,
    include: Mapping[str, Any] | None,
) -> dict[str, Any]:
    mapper = inspect(type(obj))
    if select_map:
        out: dict[str, Any] = {}
        for name, spec in select_map.items():
            if not spec:
                continue
            if name in mapper.relationships:
                out[name] = _serialize_relation(getattr(obj, name), spec)
            elif name in mapper.column_attrs:
                out[name] = getattr(obj, name)
        return out

    out = {attr.key: getattr(obj, attr.key) for attr in mapper.column_attrs}
    for name, spec in (include or {}).items():
        if spec and name in mapper.relationships:
            out[name] = _serialize_relation(getattr(obj, name), spec)
    return out


def _serialize_relation(value: Any, spec: Any) -> Any:
    nested_select = spec.get("select") if isinstance(spec, Mapping) else None
    nested_include = spec.get("include") if isinstance(spec, Mapping) else None
    if value is None:
        return None
    if isinstance(value, (list, tuple, set)):
        return [_serialize(item, nested_select, nested_include) for item in value]
    return _serialize(value, nested_select, nested_include)
