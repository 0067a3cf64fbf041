"""SQLAlchemy store backend and schema reflection (``schema-crud[sqlalchemy]``)."""

from .schema import SQLAlchemySchemaProvider, entity_from_mapper
from .store import SQLAlchemyStoreClient
from .where import build_where

__all__ = [
    "SQLAlchemySchemaProvider",
    "SQLAlchemyStoreClient",
    "build_where",
    "entity_from_mapper",
]
