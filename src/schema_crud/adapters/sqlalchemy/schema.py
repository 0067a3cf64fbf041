"""Schema metadata reflected from SQLAlchemy declarative mappings."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Date,
    DateTime,
    Enum,
    Float,
    Integer,
    LargeBinary,
    Numeric,
    String,
    inspect,
)
from sqlalchemy.orm import DeclarativeBase

from ...exceptions import SchemaNotFoundError
from ...schema.descriptors import (
    EntityDescriptor,
    FieldDescriptor,
    FieldType,
    relation,
)
from ...schema.providers import SchemaProvider

if TYPE_CHECKING:
    from sqlalchemy.orm import ColumnProperty, Mapper, RelationshipProperty

logger = logging.getLogger("schema_crud.schema")

# Checked in order: subclasses before their bases.
_TYPE_MAP: tuple[tuple[type[Any], FieldType], ...] = (
    (Enum, FieldType.ENUM),
    (BigInteger, FieldType.BIG_INT),
    (Integer, FieldType.INT),
    (Float, FieldType.FLOAT),
    (Numeric, FieldType.DECIMAL),
    (Boolean, FieldType.BOOLEAN),
    (DateTime, FieldType.DATETIME),
    (Date, FieldType.DATETIME),
    (String, FieldType.STRING),
    (LargeBinary, FieldType.BYTES),
    (JSON, FieldType.JSON),
)


class SQLAlchemySchemaProvider(SchemaProvider):
    """
    Provider that reflects mapped classes with ``sqlalchemy.inspect``.

    Accepts a ``DeclarativeBase`` subclass (every mapper in its registry)
    or an iterable of mapped classes.  Columns become scalar descriptors
    (``is_required = not nullable``); relationships become relation
    descriptors (``is_list = uselist``).
    """

    def __init__(
        self, base_or_models: type[DeclarativeBase] | Iterable[type[Any]]
    ) -> None:
        super().__init__()
        self._source = base_or_models

    @property
    def source(self) -> str:
        if isinstance(self._source, type):
            return f"<sqlalchemy:{self._source.__name__}>"
        return "<sqlalchemy>"

    def _read_entities(self) -> Iterable[EntityDescriptor]:
        if isinstance(self._source, type) and issubclass(self._source, DeclarativeBase):
            mappers = [m for m in self._source.registry.mappers]
        else:
            mappers = [inspect(model) for model in self._source]
        if not mappers:
            raise SchemaNotFoundError(self.source, "no mapped classes found")
        return [entity_from_mapper(m) for m in sorted(mappers, key=_mapper_name)]


def entity_from_mapper(mapper: Mapper[Any]) -> EntityDescriptor:
    fields: list[FieldDescriptor] = [
        _column_field(prop, mapper) for prop in mapper.column_attrs
    ]
    fields.extend(_relationship_field(prop) for prop in mapper.relationships)
    primary_key = tuple(
        mapper.get_property_by_column(column).key for column in mapper.primary_key
    )
    return EntityDescriptor(
        name=mapper.class_.__name__, fields=tuple(fields), primary_key=primary_key
    )


def _column_field(prop: ColumnProperty[Any], mapper: Mapper[Any]) -> FieldDescriptor:
    column = prop.columns[0]
    return FieldDescriptor(
        name=prop.key,
        type=_field_type(column.type, f"{mapper.class_.__name__}.{prop.key}"),
        is_required=not column.nullable,
        is_id=bool(column.primary_key),
        is_unique=bool(column.unique) or bool(column.primary_key),
        enum_name=getattr(column.type, "name", None)
        if isinstance(column.type, Enum)
        else None,
    )


def _relationship_field(prop: RelationshipProperty[Any]) -> FieldDescriptor:
    return relation(
        prop.key,
        prop.mapper.class_.__name__,
        is_list=bool(prop.uselist),
        relation_name=prop.back_populates or None,
    )


def _field_type(sql_type: Any, where: str) -> FieldType:
    for sql_class, field_type in _TYPE_MAP:
        if isinstance(sql_type, sql_class):
            return field_type
    logger.debug("Unmapped column type %r on %s treated as Json", sql_type, where)
    return FieldType.JSON


def _mapper_name(mapper: Mapper[Any]) -> str:
    return str(mapper.class_.__name__)
