"""InMemoryStoreClient — dict-backed store for tests and prototyping."""

from __future__ import annotations

import copy
import logging
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

from ...exceptions import NotFoundError, StoreError
from ...ports.store import IStoreClient
from .evaluator import PredicateEvaluator

if TYPE_CHECKING:
    from ...schema.descriptors import EntityDescriptor, FieldDescriptor
    from ...schema.registry import SchemaRegistry

logger = logging.getLogger("schema_crud.store.memory")


class InMemoryStoreClient(IStoreClient):
    """
    In-memory implementation of :class:`IStoreClient` for one entity.

    Records are plain dicts.  Relations are stored denormalised: a related
    record dict for to-one relations and a list of dicts for to-many.
    Relation directives (``set``, ``connect``, ``disconnect``) resolve
    ``{"id": ...}`` references through stores registered with
    :meth:`link`; without one, the bare reference is stored.

    Without ``select``/``include`` results carry scalar fields only.
    """

    def __init__(
        self,
        entity: EntityDescriptor | str,
        schema: SchemaRegistry,
        records: Iterable[Mapping[str, Any]] | None = None,
        *,
        evaluator: PredicateEvaluator | None = None,
    ) -> None:
        self._entity = schema.get_entity(entity) if isinstance(entity, str) else entity
        self._schema = schema
        self._evaluator = evaluator or PredicateEvaluator(schema)
        self._records: list[dict[str, Any]] = []
        self._related: dict[str, InMemoryStoreClient] = {}
        self._next_id = 1
        for record in records or ():
            self._insert(dict(record))

    @property
    def entity(self) -> EntityDescriptor:
        return self._entity

    def link(self, *stores: InMemoryStoreClient) -> None:
        """Register stores used to resolve relation references by entity name."""
        for store in stores:
            self._related[store.entity.name] = store

    # -- IStoreClient --------------------------------------------------------

    async def create(self, data: dict[str, Any]) -> Any:
        record: dict[str, Any] = {}
        for key, value in data.items():
            field = self._entity.get_field(key)
            if field is not None and field.is_relation and _is_directive(value):
                record[key] = self._apply_directive(field, None, value)
            else:
                record[key] = copy.deepcopy(value)
        self._insert(record)
        logger.debug("Created %s id=%r", self._entity.name, record[self._id_field])
        return self._project(record, None, None)

    async def find_first(self, where: dict[str, Any]) -> Any | None:
        for record in self._records:
            if self._evaluator.matches(self._entity, record, where):
                return self._project(record, None, None)
        return None

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
        matched = self._filter(where)
        for key, direction in reversed(list((order_by or {}).items())):
            matched.sort(
                key=lambda r, k=key: _sort_key(_dig(r, k)),
                reverse=str(direction).lower() == "desc",
            )
        end = None if take is None else skip + take
        return [self._project(r, select, include) for r in matched[skip:end]]

    async def update(self, *, where: dict[str, Any], data: dict[str, Any]) -> Any:
        record = self._require(where)
        for key, value in data.items():
            field = self._entity.get_field(key)
            if field is not None and field.is_relation:
                if not _is_directive(value):
                    raise StoreError(
                        f"Relation '{key}' on {self._entity.name} must be updated "
                        f"with a directive, got {value!r}"
                    )
                record[key] = self._apply_directive(field, record.get(key), value)
            else:
                record[key] = copy.deepcopy(value)
        logger.debug("Updated %s id=%r", self._entity.name, record.get(self._id_field))
        return self._project(record, None, None)

    async def delete(
        self, *, where: dict[str, Any], select: dict[str, Any] | None = None
    ) -> Any:
        record = self._require(where)
        self._records.remove(record)
        logger.debug("Deleted %s id=%r", self._entity.name, record.get(self._id_field))
        return self._project(record, select, None)

    async def aggregate(
        self, *, where: dict[str, Any] | None = None, count: dict[str, bool]
    ) -> dict[str, Any]:
        matched = self._filter(where)
        return {
            "_count": {
                name: sum(1 for r in matched if r.get(name) is not None)
                for name, wanted in count.items()
                if wanted
            }
        }

    # -- test helpers --------------------------------------------------------

    @property
    def records(self) -> list[dict[str, Any]]:
        return copy.deepcopy(self._records)

    def clear(self) -> None:
        self._records.clear()
        self._next_id = 1

    def __len__(self) -> int:
        return len(self._records)

    # -- internals -----------------------------------------------------------

    @property
    def _id_field(self) -> str:
        return self._entity.id_field

    def _insert(self, record: dict[str, Any]) -> None:
        current = record.get(self._id_field)
        if current is None:
            record[self._id_field] = self._next_id
            self._next_id += 1
        elif isinstance(current, int) and current >= self._next_id:
            self._next_id = current + 1
        self._records.append(record)

    def _filter(self, where: dict[str, Any] | None) -> list[dict[str, Any]]:
        return [
            r for r in self._records if self._evaluator.matches(self._entity, r, where)
        ]

    def _require(self, where: dict[str, Any]) -> dict[str, Any]:
        for record in self._records:
            if self._evaluator.matches(self._entity, record, where):
                return record
        raise NotFoundError(self._entity.name, where.get(self._id_field))

    def _project(
        self,
        record: Mapping[str, Any],
        select: Mapping[str, Any] | None,
        include: Mapping[str, Any] | None,
    ) -> dict[str, Any]:
        return _project(self._schema, self._entity, record, select, include)

    def _resolve(self, field: FieldDescriptor, reference: Any) -> Any:
        store = self._related.get(field.target or "")
        if store is None or not isinstance(reference, Mapping):
            return copy.deepcopy(reference)
        target_id = reference.get(store.entity.id_field)
        for record in store._records:
            if record.get(store.entity.id_field) == target_id:
                return store._project(record, None, None)
        raise NotFoundError(store.entity.name, target_id)

    def _apply_directive(
        self, field: FieldDescriptor, current: Any, directive: Mapping[str, Any]
    ) -> Any:
        for operation, operand in directive.items():
            if field.is_list:
                current = self._apply_list(field, current or [], operation, operand)
            else:
                current = self._apply_single(field, operation, operand)
        return current

    def _apply_list(
        self, field: FieldDescriptor, current: list[Any], operation: str, operand: Any
    ) -> list[Any]:
        refs = operand if isinstance(operand, (list, tuple)) else [operand]
        if operation == "set":
            return [self._resolve(field, ref) for ref in refs]
        if operation == "connect":
            known = {_ref_id(item) for item in current}
            added = [
                self._resolve(field, ref) for ref in refs if _ref_id(ref) not in known
            ]
            return [*current, *added]
        if operation == "disconnect":
            dropped = {_ref_id(ref) for ref in refs}
            return [item for item in current if _ref_id(item) not in dropped]
        raise StoreError(
            f"Relation operation '{operation}' is not supported by the memory store"
        )

    def _apply_single(
        self, field: FieldDescriptor, operation: str, operand: Any
    ) -> Any:
        if operation in {"set", "connect"}:
            return None if operand is None else self._resolve(field, operand)
        if operation == "disconnect":
            return None
        raise StoreError(
            f"Relation operation '{operation}' is not supported by the memory store"
        )


_DIRECTIVES = frozenset({"set", "connect", "disconnect", "create", "update", "delete"})


def _is_directive(value: Any) -> bool:
    return isinstance(value, Mapping) and bool(value) and set(value) <= _DIRECTIVES


def _ref_id(item: Any) -> Any:
    return item.get("id") if isinstance(item, Mapping) else item


def _dig(record: Mapping[str, Any], path: str) -> Any:
    value: Any = record
    for part in path.split("."):
        if not isinstance(value, Mapping):
            return None
        value = value.get(part)
    return value


def _sort_key(value: Any) -> tuple[int, Any]:
    # None sorts first ascending.
    return (0, 0) if value is None else (1, value)


def _project(
    schema: SchemaRegistry,
    entity: EntityDescriptor,
    record: Mapping[str, Any],
    select: Mapping[str, Any] | None,
    include: Mapping[str, Any] | None,
) -> dict[str, Any]:
    if select:
        out: dict[str, Any] = {}
        for name, spec in select.items():
            if not spec or name not in record:
                continue
            out[name] = _project_relation(schema, entity, name, record[name], spec)
        return out

    out = {
        name: copy.deepcopy(record[name])
        for name in entity.scalar_field_names
        if name in record
    }
    for name, spec in (include or {}).items():
        if spec and name in record:
            out[name] = _project_relation(schema, entity, name, record[name], spec)
    return out


def _project_relation(
    schema: SchemaRegistry,
    entity: EntityDescriptor,
    name: str,
    value: Any,
    spec: Any,
) -> Any:
    field = entity.get_field(name)
    if field is None or not field.is_relation or value is None:
        return copy.deepcopy(value)
    target = schema.get_entity(field.target or "")
    nested_select = spec.get("select") if isinstance(spec, Mapping) else None
    nested_include = spec.get("include") if isinstance(spec, Mapping) else None
    if nested_select is None and nested_include is None:
        return copy.deepcopy(value)
    if isinstance(value, list):
        return [
            _project(schema, target, item, nested_select, nested_include)
            for item in value
            if isinstance(item, Mapping)
        ]
    if isinstance(value, Mapping):
        return _project(schema, target, value, nested_select, nested_include)
    return copy.deepcopy(value)
