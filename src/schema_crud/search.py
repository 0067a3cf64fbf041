"""
Search requests, result pages, and schema-checked projections.

``SearchRequest`` carries the declarative search: OR-ed filter groups,
pagination, ordering, projection.  The helpers here validate every field
reference against the schema and translate dotted ``fields`` paths into
the store's nested ``select`` map.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from .exceptions import InvalidFieldReferenceError

if TYPE_CHECKING:
    from .schema.descriptors import EntityDescriptor
    from .schema.registry import SchemaRegistry

SortDirection = Literal["asc", "desc"]


class SearchRequest(BaseModel):
    """
    Declarative search over one entity.

    Attributes:
        filters: OR-ed filter groups; a single group mapping is accepted
            as a one-group list.  ``groups`` is accepted as an alias.
        offset: Records to skip (``None`` → configured default, 0).
        limit: Page size (``0``/``None`` → configured default, 10).
        order_by: Field → ``"asc"``/``"desc"``; ``None`` → id ascending.
        fields: Dotted field paths to project; ``None`` → the entity's
            display fields, or no projection when it declares none.
        include: Relation include map, passed to the store untouched.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    filters: list[dict[str, Any]] | dict[str, Any] | None = Field(
        default=None, validation_alias=AliasChoices("filters", "groups")
    )
    offset: int | None = Field(default=None, ge=0)
    limit: int | None = Field(default=None, ge=0)
    order_by: dict[str, SortDirection] | None = Field(
        default=None, validation_alias=AliasChoices("order_by", "orderBy")
    )
    fields: list[str] | None = None
    include: dict[str, Any] | None = None


class SearchPage(BaseModel):
    """One page of search results plus the total match count."""

    total: int
    items: list[Any]


def build_select(
    schema: SchemaRegistry,
    entity: EntityDescriptor,
    fields: Sequence[str] | None,
) -> dict[str, Any] | None:
    """
    Translate dotted field paths into a nested ``select`` map.

    Example::

        build_select(schema, user, ["name", "roles.name", "roles.id"])
        # {"name": True, "roles": {"select": {"name": True, "id": True}}}

    Returns ``None`` when no fields are given (no projection).

    Raises:
        InvalidFieldReferenceError: If a path segment does not exist or
            traverses a non-relation field.
    """
    if not fields:
        return None
    select: dict[str, Any] = {}
    for path in fields:
        steps = schema.resolve_path(entity, path)
        node = select
        for index, (_, field) in enumerate(steps):
            if index == len(steps) - 1:
                if not isinstance(node.get(field.name), dict):
                    node[field.name] = True
                break
            child = node.get(field.name)
            if not isinstance(child, dict):
                child = {"select": {}}
                node[field.name] = child
            node = child["select"]
    return select


def validate_order_by(
    schema: SchemaRegistry,
    entity: EntityDescriptor,
    order_by: Mapping[str, str],
) -> None:
    """Check every ordering key resolves to a field of ``entity``."""
    for path in order_by:
        schema.resolve_path(entity, path)


def validate_include(entity: EntityDescriptor, include: Mapping[str, Any]) -> None:
    """Check every include key is a relation of ``entity``."""
    for name in include:
        field = entity.get_field(name)
        if field is None or not field.is_relation:
            raise InvalidFieldReferenceError(
                name,
                entity.name,
                sorted(entity.relation_field_names),
                reason="Only relation fields can be included.",
            )
