"""Schema metadata: descriptors, the immutable registry, and providers."""

from __future__ import annotations

from .descriptors import EntityDescriptor, FieldDescriptor, FieldType, relation, scalar
from .providers import (
    JsonSchemaProvider,
    SchemaProvider,
    StaticSchemaProvider,
    entity_from_dict,
    field_from_dict,
)
from .registry import SchemaRegistry

__all__ = [
    "EntityDescriptor",
    "FieldDescriptor",
    "FieldType",
    "JsonSchemaProvider",
    "SchemaProvider",
    "SchemaRegistry",
    "StaticSchemaProvider",
    "entity_from_dict",
    "field_from_dict",
    "relation",
    "scalar",
]
