"""IStoreClient — the per-entity store port."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class IStoreClient(Protocol):
    """
    Asynchronous per-entity accessor for a relational store.

    ``where`` arguments are native predicates as produced by
    :class:`~schema_crud.filters.FilterCompiler`; ``select`` is the nested
    projection map from :func:`~schema_crud.search.build_select`.
    ``aggregate`` returns ``{"_count": {field: n}}`` for every field
    requested in ``count``.

    ``update`` and ``delete`` raise :class:`~schema_crud.exceptions.NotFoundError`
    when no record matches ``where``.
    """

    async def create(self, data: dict[str, Any]) -> Any: ...

    async def find_first(self, where: dict[str, Any]) -> Any | None: ...

    async def find_many(
        self,
        *,
        skip: int = 0,
        take: int | None = None,
        order_by: dict[str, str] | None = None,
        where: dict[str, Any] | None = None,
        select: dict[str, Any] | None = None,
        include: dict[str, Any] | None = None,
    ) -> list[Any]: ...

    async def update(self, *, where: dict[str, Any], data: dict[str, Any]) -> Any: ...

    async def delete(
        self, *, where: dict[str, Any], select: dict[str, Any] | None = None
    ) -> Any: ...

    async def aggregate(
        self, *, where: dict[str, Any] | None = None, count: dict[str, bool]
    ) -> dict[str, Any]: ...
