"""Immutable entity and field metadata."""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ConfigDict, PrivateAttr, model_validator


class FieldType(str, Enum):
    """Storage type of an entity field."""

    INT = "Int"
    BIG_INT = "BigInt"
    FLOAT = "Float"
    DECIMAL = "Decimal"
    STRING = "String"
    BOOLEAN = "Boolean"
    DATETIME = "DateTime"
    BYTES = "Bytes"
    JSON = "Json"
    ENUM = "Enum"
    RELATION = "Relation"

    @property
    def is_numeric(self) -> bool:
        return self in _NUMERIC_TYPES


_NUMERIC_TYPES = frozenset(
    {FieldType.INT, FieldType.BIG_INT, FieldType.FLOAT, FieldType.DECIMAL}
)


class FieldDescriptor(BaseModel):
    """
    Static metadata about one entity field.

    ``is_relation`` holds exactly when ``type`` is ``Relation``; relation
    descriptors name their ``target`` entity.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    type: FieldType
    is_required: bool = True
    is_list: bool = False
    is_unique: bool = False
    is_id: bool = False
    is_relation: bool = False
    relation_name: str | None = None
    target: str | None = None
    enum_name: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _derive_relation_flag(cls, data: Any) -> Any:
        if isinstance(data, Mapping) and "is_relation" not in data:
            data = dict(data)
            data["is_relation"] = data.get("type") in (
                FieldType.RELATION,
                FieldType.RELATION.value,
            )
        return data

    @model_validator(mode="after")
    def _check_relation(self) -> FieldDescriptor:
        if self.is_relation != (self.type is FieldType.RELATION):
            raise ValueError(
                f"Field {self.name!r}: is_relation must match type == Relation"
            )
        if self.is_relation and not self.target:
            raise ValueError(f"Relation field {self.name!r} must name a target")
        return self

    @property
    def is_optional(self) -> bool:
        return not self.is_required


class EntityDescriptor(BaseModel):
    """A named record type: its ordered fields and primary key."""

    model_config = ConfigDict(frozen=True)

    name: str
    fields: tuple[FieldDescriptor, ...] = ()
    primary_key: tuple[str, ...] = ()
    display_fields: tuple[str, ...] | None = None

    _index: Mapping[str, FieldDescriptor] = PrivateAttr(
        default_factory=lambda: MappingProxyType({})
    )

    def model_post_init(self, __context: Any) -> None:
        self._index = MappingProxyType({f.name: f for f in self.fields})

    @property
    def field_index(self) -> Mapping[str, FieldDescriptor]:
        """Read-only mapping of field name to descriptor."""
        return self._index

    @property
    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]

    @property
    def scalar_field_names(self) -> frozenset[str]:
        return frozenset(f.name for f in self.fields if not f.is_relation)

    @property
    def relation_field_names(self) -> frozenset[str]:
        return frozenset(f.name for f in self.fields if f.is_relation)

    @property
    def id_field(self) -> str:
        """Name of the field used for point lookups."""
        if self.primary_key:
            return self.primary_key[0]
        for f in self.fields:
            if f.is_id:
                return f.name
        return "id"

    def get_field(self, name: str) -> FieldDescriptor | None:
        return self._index.get(name)


def relation(
    name: str,
    target: str,
    *,
    is_list: bool = False,
    is_required: bool = False,
    relation_name: str | None = None,
) -> FieldDescriptor:
    """Shorthand for building a relation descriptor."""
    return FieldDescriptor(
        name=name,
        type=FieldType.RELATION,
        target=target,
        is_list=is_list,
        is_required=is_required or is_list,
        relation_name=relation_name,
    )


def scalar(
    name: str,
    type: FieldType | str,  # noqa: A002
    *,
    is_required: bool = True,
    is_id: bool = False,
    is_unique: bool = False,
    is_list: bool = False,
) -> FieldDescriptor:
    """Shorthand for building a scalar descriptor."""
    return FieldDescriptor(
        name=name,
        type=FieldType(type),
        is_required=is_required,
        is_id=is_id,
        is_unique=is_unique or is_id,
        is_list=is_list,
    )
