"""schema-crud: schema-aware generic CRUD and declarative search."""

from .computed import ComputedField
from .config import CrudSettings, NullRelationPolicy, RelationOperation
from .events import (
    ChangeEvent,
    ChangeNotifier,
    CreatedEvent,
    DeletedEvent,
    EventChannel,
    Subscription,
    UpdatedEvent,
)
from .exceptions import (
    CrudError,
    FilterError,
    InvalidFieldReferenceError,
    NotFoundError,
    SchemaError,
    SchemaNotFoundError,
    StoreError,
    UnknownEntityError,
    UnsupportedFilterModeError,
)
from .filters import (
    FilterCompiler,
    FilterContext,
    FilterMode,
    FilterModeHandler,
    FilterModeRegistry,
    FilterSpec,
    build_default_registry,
)
from .instrumentation import (
    CrudOperation,
    HookRegistration,
    HookRegistry,
    InstrumentationHook,
    OperationContext,
)
from .mutations import UpdateOptions, build_update_payload, id_references
from .ports import IStoreClient
from .schema import (
    EntityDescriptor,
    FieldDescriptor,
    FieldType,
    JsonSchemaProvider,
    SchemaProvider,
    SchemaRegistry,
    StaticSchemaProvider,
    relation,
    scalar,
)
from .search import SearchPage, SearchRequest, build_select
from .service import GenericRepositoryService

__version__ = "0.1.0"

__all__: list[str] = [
    # Configuration
    "CrudSettings",
    "NullRelationPolicy",
    "RelationOperation",
    # Schema
    "EntityDescriptor",
    "FieldDescriptor",
    "FieldType",
    "JsonSchemaProvider",
    "SchemaProvider",
    "SchemaRegistry",
    "StaticSchemaProvider",
    "relation",
    "scalar",
    # Filters
    "FilterCompiler",
    "FilterContext",
    "FilterMode",
    "FilterModeHandler",
    "FilterModeRegistry",
    "FilterSpec",
    "build_default_registry",
    # Search and mutations
    "SearchPage",
    "SearchRequest",
    "UpdateOptions",
    "build_select",
    "build_update_payload",
    "id_references",
    # Service and ports
    "ComputedField",
    "GenericRepositoryService",
    "IStoreClient",
    # Events
    "ChangeEvent",
    "ChangeNotifier",
    "CreatedEvent",
    "DeletedEvent",
    "EventChannel",
    "Subscription",
    "UpdatedEvent",
    # Instrumentation
    "CrudOperation",
    "HookRegistration",
    "HookRegistry",
    "InstrumentationHook",
    "OperationContext",
    # Errors
    "CrudError",
    "FilterError",
    "InvalidFieldReferenceError",
    "NotFoundError",
    "SchemaError",
    "SchemaNotFoundError",
    "StoreError",
    "UnknownEntityError",
    "UnsupportedFilterModeError",
]
