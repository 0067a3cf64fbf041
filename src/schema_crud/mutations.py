"""Relation-aware update payloads built from flat input data."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .config import CrudSettings, NullRelationPolicy, RelationOperation

if TYPE_CHECKING:
    from .schema.descriptors import EntityDescriptor

logger = logging.getLogger("schema_crud.service")

RelationValueMapper = Callable[[Any], Any]


@dataclass(frozen=True)
class UpdateOptions:
    """
    Per-call options for :meth:`GenericRepositoryService.update`.

    Attributes:
        relation_operation: Directive wrapped around every relation value
            (``set`` when left to the settings default).
        relation_value_mapper: Converts a raw relation value into the
            directive operand; defaults to :func:`id_references`.
        null_relation_policy: Overrides the settings policy for ``None``
            relation values.
    """

    relation_operation: RelationOperation | str | None = None
    relation_value_mapper: RelationValueMapper | None = None
    null_relation_policy: NullRelationPolicy | None = None


def id_references(value: Any) -> Any:
    """``[1, 2]`` → ``[{"id": 1}, {"id": 2}]``; ``5`` → ``{"id": 5}``."""
    if isinstance(value, (list, tuple)):
        return [{"id": item} for item in value]
    return {"id": value}


def build_update_payload(
    entity: EntityDescriptor,
    data: Mapping[str, Any],
    options: UpdateOptions | None = None,
    settings: CrudSettings | None = None,
) -> dict[str, Any]:
    """
    Partition ``data`` into scalar values and relation directives.

    Keys naming a non-relation field of ``entity`` are copied verbatim;
    every other key is treated as a relation and rewritten to
    ``{operation: mapper(value)}``.  ``None`` relation values are dropped
    under :attr:`NullRelationPolicy.DROP`, or become ``{"set": []}`` (list
    relations) / ``{"disconnect": True}`` under ``DISCONNECT``.

    Example::

        build_update_payload(user, {"name": "x", "role": 5, "tags": [1, 2]})
        # {"name": "x",
        #  "role": {"set": {"id": 5}},
        #  "tags": {"set": [{"id": 1}, {"id": 2}]}}
    """
    options = options or UpdateOptions()
    settings = settings or CrudSettings()
    operation = RelationOperation(
        options.relation_operation or settings.default_relation_operation
    ).value
    mapper = options.relation_value_mapper or id_references
    null_policy = options.null_relation_policy or settings.null_relation_policy

    scalars = entity.scalar_field_names
    payload: dict[str, Any] = {}
    for key, value in data.items():
        if key in scalars:
            payload[key] = value
            continue
        if value is None:
            if null_policy is NullRelationPolicy.DISCONNECT:
                payload[key] = _disconnect_directive(entity, key)
            else:
                logger.debug("Dropping empty relation value %s.%s", entity.name, key)
            continue
        payload[key] = {operation: mapper(value)}
    return payload


def _disconnect_directive(entity: EntityDescriptor, key: str) -> dict[str, Any]:
    field = entity.get_field(key)
    if field is not None and field.is_list:
        return {RelationOperation.SET.value: []}
    return {RelationOperation.DISCONNECT.value: True}
