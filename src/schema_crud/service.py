"""
GenericRepositoryService — CRUD and declarative search over one entity.

The service owns no persistence logic.  It resolves the entity against the
schema, compiles filters into the store's native predicate, shapes update
payloads, and delegates every read and write to an :class:`IStoreClient`.
Successful mutations are announced on a :class:`ChangeNotifier`; every
operation runs through the service's :class:`HookRegistry` with an
:class:`OperationContext` carrying the compiled ``where``.  Computed fields
registered with :meth:`GenericRepositoryService.extend` are added to the
records it returns.

Example::

    service = GenericRepositoryService("Ticket", store, schema)
    page = await service.get_all({
        "filters": [{"status": {"mode": "EQ", "value": "OPEN"}}],
        "limit": 5,
    })
    page.total, len(page.items)
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from .computed import ComputedFields
from .config import CrudSettings
from .events import ChangeNotifier, CreatedEvent, DeletedEvent, UpdatedEvent
from .filters.compiler import FilterCompiler
from .instrumentation import CrudOperation, HookRegistry, OperationContext
from .mutations import UpdateOptions, build_update_payload
from .search import (
    SearchPage,
    SearchRequest,
    build_select,
    validate_include,
    validate_order_by,
)

if TYPE_CHECKING:
    from .computed import ComputedField
    from .ports.store import IStoreClient
    from .schema.descriptors import EntityDescriptor
    from .schema.registry import SchemaRegistry

logger = logging.getLogger("schema_crud.service")


class GenericRepositoryService:
    """Schema-aware repository for a single entity.

    Raises:
        UnknownEntityError: At construction, if ``entity_name`` is not in
            ``schema``.
    """

    def __init__(
        self,
        entity_name: str,
        store: IStoreClient,
        schema: SchemaRegistry,
        *,
        settings: CrudSettings | None = None,
        notifier: ChangeNotifier | None = None,
        compiler: FilterCompiler | None = None,
        hooks: HookRegistry | None = None,
    ) -> None:
        self._settings = settings or CrudSettings()
        self._entity = schema.get_entity(entity_name)
        self._schema = schema
        self._store = store
        self._notifier = notifier or ChangeNotifier()
        self._compiler = compiler or FilterCompiler(
            schema, case_insensitive=self._settings.case_insensitive_strings
        )
        self._hooks = hooks if hooks is not None else HookRegistry()
        self._computed = ComputedFields(self._entity)

    @property
    def entity(self) -> EntityDescriptor:
        return self._entity

    @property
    def entity_name(self) -> str:
        return self._entity.name

    @property
    def notifier(self) -> ChangeNotifier:
        return self._notifier

    @property
    def hooks(self) -> HookRegistry:
        return self._hooks

    @property
    def settings(self) -> CrudSettings:
        return self._settings

    def extend(self, fields: Mapping[str, ComputedField]) -> None:
        """
        Register computed fields on the records this service returns.

        Raises:
            SchemaError: A computed name shadows a declared field.
            InvalidFieldReferenceError: A computed field needs something
                other than a scalar field of this entity.
        """
        self._computed.add(fields)

    # -- mutations -----------------------------------------------------------

    async def create(self, data: Mapping[str, Any]) -> Any:
        """Insert ``data`` verbatim and announce a :class:`CreatedEvent`."""
        payload = dict(data)

        async def _run() -> Any:
            result = self._computed.apply(await self._store.create(payload))
            logger.debug("Created %s", self.entity_name)
            self._notifier.publish(
                CreatedEvent(entity=self.entity_name, data=payload, result=result)
            )
            return result

        ctx = self._context(CrudOperation.CREATE, data=payload)
        return await self._hooks.run(ctx, _run)

    async def delete_item(self, item_id: Any) -> Any:
        """
        Delete the record with ``item_id``.

        Raises:
            NotFoundError: If no such record exists (no event is published).
        """
        id_field = self._entity.id_field
        where = {id_field: item_id}

        async def _run() -> Any:
            result = await self._store.delete(where=where, select={id_field: True})
            logger.debug("Deleted %s id=%r", self.entity_name, item_id)
            self._notifier.publish(
                DeletedEvent(entity=self.entity_name, id=item_id, result=result)
            )
            return result

        ctx = self._context(CrudOperation.DELETE, item_id=item_id, where=where)
        return await self._hooks.run(ctx, _run)

    async def update(
        self,
        item_id: Any,
        data: Mapping[str, Any],
        options: UpdateOptions | None = None,
    ) -> Any:
        """
        Update the record with ``item_id``.

        Scalar keys are written as given; relation keys are wrapped in the
        configured relation directive (see :func:`build_update_payload`).
        """
        input_data = dict(data)
        payload = self.build_update_payload(input_data, options)
        where = {self._entity.id_field: item_id}

        async def _run() -> Any:
            result = self._computed.apply(
                await self._store.update(where=where, data=payload)
            )
            logger.debug("Updated %s id=%r", self.entity_name, item_id)
            self._notifier.publish(
                UpdatedEvent(
                    entity=self.entity_name,
                    id=item_id,
                    input_data=input_data,
                    result=result,
                )
            )
            return result

        ctx = self._context(
            CrudOperation.UPDATE, item_id=item_id, where=where, data=input_data
        )
        return await self._hooks.run(ctx, _run)

    def build_update_payload(
        self, data: Mapping[str, Any], options: UpdateOptions | None = None
    ) -> dict[str, Any]:
        return build_update_payload(self._entity, data, options, self._settings)

    # -- reads ---------------------------------------------------------------

    async def get_one(self, item_id: Any) -> Any:
        """Return the record with ``item_id``, or ``{}`` when there is none."""
        where = {self._entity.id_field: item_id}

        async def _run() -> Any:
            found = await self._store.find_first(where=where)
            return self._computed.apply(found) if found is not None else {}

        ctx = self._context(CrudOperation.GET_ONE, item_id=item_id, where=where)
        return await self._hooks.run(ctx, _run)

    async def get_all(
        self, request: SearchRequest | Mapping[str, Any] | None = None
    ) -> SearchPage:
        """
        Run a declarative search and return one page plus the total count.

        Every filter mode, filter field, projected field, ordering key and
        include key is checked before the store is touched.  ``fields`` may
        name computed fields; their needed columns are selected for them
        and left out of the returned items.

        Raises:
            UnsupportedFilterModeError: Unknown filter mode.
            InvalidFieldReferenceError: Unknown or unresolvable field.
            pydantic.ValidationError: ``request`` is malformed.
        """
        if request is None:
            request = SearchRequest()
        elif not isinstance(request, SearchRequest):
            request = SearchRequest.model_validate(request)

        entity = self._entity
        id_field = entity.id_field
        fields = request.fields
        if fields is None and entity.display_fields:
            fields = list(entity.display_fields)
        order_by = request.order_by or {id_field: "asc"}

        self._compiler.validate(entity, request.filters)
        computed: list[str] | None = None
        hidden: set[str] = set()
        if fields:
            declared, computed = self._computed.split(fields)
            select = build_select(self._schema, entity, declared)
            if computed:
                select = select or {}
                hidden = self._computed.widen(select, computed)
                select = select or None
        else:
            select = None
        validate_order_by(self._schema, entity, order_by)
        if request.include:
            validate_include(entity, request.include)

        where = self._compiler.compile_disjunction(entity, request.filters)
        skip = self._settings.resolve_offset(request.offset)
        take = self._settings.resolve_limit(request.limit)

        async def _run() -> SearchPage:
            counted = await self._store.aggregate(where=where, count={id_field: True})
            total = counted["_count"][id_field]
            items = await self._store.find_many(
                skip=skip,
                take=take,
                order_by=order_by,
                where=where,
                select=select,
                include=request.include,
            )
            return SearchPage(
                total=total,
                items=[self._computed.apply(i, computed, hidden) for i in items],
            )

        ctx = self._context(CrudOperation.GET_ALL, where=where, skip=skip, take=take)
        return await self._hooks.run(ctx, _run)

    # -- internals -----------------------------------------------------------

    def _context(self, operation: CrudOperation, **details: Any) -> OperationContext:
        return OperationContext(
            entity=self.entity_name, operation=operation, **details
        )
