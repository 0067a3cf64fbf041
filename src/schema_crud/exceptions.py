"""
Exception hierarchy with fuzzy-match suggestions.

All exceptions inherit from ``CrudError`` and provide ``to_dict()`` for
API-friendly error responses.  Compilation-time errors (schema, filter
mode, field reference) are raised before any store call; store errors are
raised by store adapters and passed through the service untouched.
"""

from __future__ import annotations

from difflib import get_close_matches
from typing import Any


class CrudError(Exception):
    """Root exception for the schema-crud package."""

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.__class__.__name__,
            "message": str(self),
        }


# ── Schema ───────────────────────────────────────────────────────────


class SchemaError(CrudError):
    """Base class for schema metadata errors."""


class SchemaNotFoundError(SchemaError):
    """The backing schema source is missing or unreadable."""

    def __init__(self, source: str, reason: str | None = None) -> None:
        self.source = source
        self.reason = reason
        message = f"Schema source {source!r} could not be loaded"
        if reason:
            message += f": {reason}"
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "SCHEMA_NOT_FOUND",
            "source": self.source,
            "reason": self.reason,
        }


class UnknownEntityError(SchemaError):
    """
    Entity is not present in the loaded schema.

    Provides fuzzy-matched suggestions for likely intended entity names.
    """

    def __init__(self, entity: str, available: list[str]) -> None:
        self.entity = entity
        self.available = available
        self.suggestions = get_close_matches(entity, available, n=3, cutoff=0.6)

        message = f"Unknown entity: '{entity}'."
        if self.suggestions:
            message += f" Did you mean: {', '.join(self.suggestions)}?"
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "UNKNOWN_ENTITY",
            "entity": self.entity,
            "suggestions": self.suggestions,
            "available_entities": sorted(self.available),
        }


# ── Filters ──────────────────────────────────────────────────────────


class FilterError(CrudError):
    """Base class for filter and search-request compilation errors."""


class UnsupportedFilterModeError(FilterError):
    """Filter specification uses a mode outside the registered set."""

    def __init__(self, mode: Any, valid_modes: list[str]) -> None:
        self.mode = mode
        self.valid_modes = valid_modes
        self.suggestions = get_close_matches(
            str(mode).upper(), valid_modes, n=3, cutoff=0.5
        )

        message = f"Unsupported filter mode: '{mode}'."
        if self.suggestions:
            message += f" Did you mean: {', '.join(self.suggestions)}?"
        message += f" Valid modes: {', '.join(valid_modes)}"
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "UNSUPPORTED_FILTER_MODE",
            "mode": str(self.mode),
            "suggestions": self.suggestions,
            "valid_modes": list(self.valid_modes),
        }


class InvalidFieldReferenceError(FilterError):
    """
    A filter, field selection, or ordering references an unknown field.

    Example error message::

        Invalid field 'nme' on 'User'.
        Did you mean one of these?
          • name

        Available fields: email, id, name, roles
    """

    def __init__(
        self,
        field: str,
        entity: str,
        available: list[str],
        full_path: str | None = None,
        reason: str | None = None,
    ) -> None:
        self.field = field
        self.entity = entity
        self.available = available
        self.full_path = full_path or field
        self.reason = reason
        self.suggestions = get_close_matches(field, available, n=5, cutoff=0.6)
        super().__init__(self._build_message())

    def _build_message(self) -> str:
        lines = [f"Invalid field '{self.field}' on '{self.entity}'."]
        if self.reason:
            lines.append(self.reason)
        if self.suggestions:
            lines.append("Did you mean one of these?")
            for s in self.suggestions:
                lines.append(f"  • {s}")

        sorted_fields = sorted(self.available)
        preview = ", ".join(sorted_fields[:15])
        if len(sorted_fields) > 15:
            preview += ", ..."
        lines.append(f"Available fields: {preview}")
        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "INVALID_FIELD_REFERENCE",
            "field": self.field,
            "entity": self.entity,
            "full_path": self.full_path,
            "suggestions": self.suggestions,
            "available_fields": sorted(self.available),
        }


# ── Store ────────────────────────────────────────────────────────────


class StoreError(CrudError):
    """Any failure reported by the underlying store client."""


class NotFoundError(StoreError):
    """No record matched a point update or delete."""

    def __init__(self, entity: str, entity_id: object) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} with id={entity_id!r} not found")

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": "NOT_FOUND",
            "entity": self.entity,
            "id": self.entity_id,
        }
