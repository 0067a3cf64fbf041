"""
Schema metadata providers.

A provider reduces some external schema definition to
:class:`EntityDescriptor` records and caches the resulting
:class:`SchemaRegistry` for the lifetime of the provider.  Loading is
idempotent: the first successful ``load_schema()`` call reads the source,
every later call returns the same registry object.

Usage::

    provider = JsonSchemaProvider("schema.json")
    schema = provider.load_schema()          # reads the file once
    user = provider.get_entity("User")
    index = provider.get_field_index("User")
"""

from __future__ import annotations

import json
import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from ..exceptions import SchemaNotFoundError
from .descriptors import EntityDescriptor, FieldDescriptor, FieldType
from .registry import SchemaRegistry

logger = logging.getLogger("schema_crud.schema")

# Scalar type names as written in declarative schema files.
_SCALAR_ALIASES: dict[str, FieldType] = {
    "int": FieldType.INT,
    "integer": FieldType.INT,
    "bigint": FieldType.BIG_INT,
    "float": FieldType.FLOAT,
    "double": FieldType.FLOAT,
    "decimal": FieldType.DECIMAL,
    "string": FieldType.STRING,
    "boolean": FieldType.BOOLEAN,
    "bool": FieldType.BOOLEAN,
    "datetime": FieldType.DATETIME,
    "bytes": FieldType.BYTES,
    "json": FieldType.JSON,
}


class SchemaProvider(ABC):
    """Loads entity metadata once and exposes it as a lookup table."""

    def __init__(self) -> None:
        self._registry: SchemaRegistry | None = None
        self._lock = threading.Lock()

    @property
    @abstractmethod
    def source(self) -> str:
        """Human-readable name of the schema source (for errors and logs)."""
        ...

    @abstractmethod
    def _read_entities(self) -> Iterable[EntityDescriptor]:
        """Read the backing source and return entity descriptors."""
        ...

    @property
    def is_loaded(self) -> bool:
        return self._registry is not None

    def load_schema(self) -> SchemaRegistry:
        """
        Return the cached registry, reading the source on first call.

        Raises:
            SchemaNotFoundError: If the source cannot be read or parsed.
        """
        registry = self._registry
        if registry is not None:
            return registry
        with self._lock:
            if self._registry is None:
                entities = list(self._read_entities())
                self._registry = SchemaRegistry(entities)
                logger.info(
                    "Loaded %d entities from schema source %s",
                    len(entities),
                    self.source,
                )
            return self._registry

    def get_entity(self, name: str) -> EntityDescriptor:
        return self.load_schema().get_entity(name)

    def get_field_index(self, name: str) -> Mapping[str, FieldDescriptor]:
        return self.load_schema().get_field_index(name)


class StaticSchemaProvider(SchemaProvider):
    """Provider over descriptors constructed in code."""

    def __init__(self, entities: Iterable[EntityDescriptor]) -> None:
        super().__init__()
        self._entities = list(entities)

    @property
    def source(self) -> str:
        return "<static>"

    def _read_entities(self) -> Iterable[EntityDescriptor]:
        return self._entities


class JsonSchemaProvider(SchemaProvider):
    """
    Provider over a JSON schema document.

    Accepts ``{"entities": [...]}`` or ``{"models": [...]}``.  Each entity
    has ``name``, ``fields``, and optionally ``primaryKey`` (list of
    names, or ``{"fields": [...]}``) and ``displayFields``.  Each field has
    ``name`` and ``type``, plus ``kind`` (``scalar`` | ``object`` |
    ``enum``) and the boolean flags ``isRequired``, ``isList``, ``isId``,
    ``isUnique``.  For ``kind == "object"`` the ``type`` names the target
    entity.
    """

    def __init__(self, path: str | Path) -> None:
        super().__init__()
        self._path = Path(path)

    @property
    def source(self) -> str:
        return str(self._path)

    def _read_entities(self) -> Iterable[EntityDescriptor]:
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except OSError as err:
            raise SchemaNotFoundError(self.source, str(err)) from err
        except json.JSONDecodeError as err:
            raise SchemaNotFoundError(self.source, f"invalid JSON: {err}") from err

        if not isinstance(raw, dict):
            raise SchemaNotFoundError(self.source, "top-level value must be an object")
        models = raw.get("entities", raw.get("models"))
        if not isinstance(models, list):
            raise SchemaNotFoundError(
                self.source, "expected an 'entities' or 'models' list"
            )
        try:
            return [entity_from_dict(m) for m in models]
        except (ValidationError, KeyError, TypeError, ValueError) as err:
            raise SchemaNotFoundError(self.source, str(err)) from err


def entity_from_dict(data: Mapping[str, Any]) -> EntityDescriptor:
    """Build an :class:`EntityDescriptor` from a DMMF-like mapping."""
    fields = tuple(field_from_dict(f) for f in data["fields"])
    pk = data.get("primaryKey")
    if isinstance(pk, Mapping):
        primary_key = tuple(pk.get("fields", ()))
    elif pk:
        primary_key = tuple(pk)
    else:
        primary_key = tuple(f.name for f in fields if f.is_id)
    display = data.get("displayFields")
    return EntityDescriptor(
        name=data["name"],
        fields=fields,
        primary_key=primary_key,
        display_fields=tuple(display) if display is not None else None,
    )


def field_from_dict(data: Mapping[str, Any]) -> FieldDescriptor:
    """Build a :class:`FieldDescriptor` from a DMMF-like field mapping."""
    kind = data.get("kind", "scalar")
    type_name = str(data["type"])
    common = {
        "name": data["name"],
        "is_required": bool(data.get("isRequired", True)),
        "is_list": bool(data.get("isList", False)),
        "is_unique": bool(data.get("isUnique", False)),
        "is_id": bool(data.get("isId", False)),
    }
    if kind == "object":
        return FieldDescriptor(
            type=FieldType.RELATION,
            target=type_name,
            relation_name=data.get("relationName"),
            **common,
        )
    if kind == "enum":
        return FieldDescriptor(type=FieldType.ENUM, enum_name=type_name, **common)
    field_type = _SCALAR_ALIASES.get(type_name.lower())
    if field_type is None:
        raise ValueError(
            f"Unsupported scalar type {type_name!r} for field {data['name']!r}"
        )
    return FieldDescriptor(type=field_type, **common)
