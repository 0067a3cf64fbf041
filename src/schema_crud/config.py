"""Service-level defaults for search pagination and relation updates."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class RelationOperation(str, Enum):
    """Relation-operation directives understood by the store client."""

    SET = "set"
    CONNECT = "connect"
    DISCONNECT = "disconnect"
    DELETE = "delete"
    CREATE = "create"
    CREATE_MANY = "createMany"
    UPDATE = "update"
    UPDATE_MANY = "updateMany"
    UPSERT = "upsert"
    UPSERT_MANY = "upsertMany"
    DELETE_MANY = "deleteMany"
    DISCONNECT_MANY = "disconnectMany"


class NullRelationPolicy(str, Enum):
    """What an explicit ``None`` relation value means on update."""

    DROP = "drop"
    DISCONNECT = "disconnect"


@dataclass(frozen=True)
class CrudSettings:
    """
    Immutable defaults for a :class:`GenericRepositoryService`.

    Attributes:
        default_limit: Page size used when a request asks for ``limit=0``
            or omits it.
        default_offset: Offset used when a request omits it.
        max_limit: Optional upper bound applied to every page size.
        default_relation_operation: Directive used for relation fields on
            update when the caller does not choose one.
        null_relation_policy: ``DROP`` ignores ``None`` relation values;
            ``DISCONNECT`` turns them into disconnect directives.
        case_insensitive_strings: Emit ``mode: "insensitive"`` next to
            string ``contains`` fragments.
    """

    default_limit: int = 10
    default_offset: int = 0
    max_limit: int | None = None
    default_relation_operation: RelationOperation = RelationOperation.SET
    null_relation_policy: NullRelationPolicy = NullRelationPolicy.DROP
    case_insensitive_strings: bool = True

    def resolve_limit(self, limit: int | None) -> int:
        """Return the effective page size for a requested ``limit``."""
        effective = limit if limit else self.default_limit
        if self.max_limit is not None:
            effective = min(effective, self.max_limit)
        return effective

    def resolve_offset(self, offset: int | None) -> int:
        return self.default_offset if offset is None else offset
