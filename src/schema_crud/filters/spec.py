"""
Filter specifications: how to constrain one field, and groups of them.

A filter group maps field names to filter specs; all entries of a group
are AND-ed.  A list of groups is OR-ed::

    groups = [
        {"status": {"mode": "EQ", "value": "OPEN"}},
        {"priority": {"mode": "GT", "value": 3},
         "tags": {"mode": "EQ", "value": [1, 2], "isRelation": True}},
    ]
    # → status ~ "OPEN"  OR  (priority > 3 AND tags has any of [1, 2])
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..exceptions import FilterError
from .modes import FilterMode

FilterGroup = Mapping[str, Union["FilterSpec", Mapping[str, Any]]]


class FilterSpec(BaseModel):
    """
    Constraint on a single field.

    Attributes:
        mode: Filter mode name.  Kept as given so that unknown modes are
            reported by the compiler, not by model validation.
        value: Scalar or list operand.
        is_relation: Treat list values as related-record ids.  ``None``
            defers to the field descriptor.
        nested_field_path: Dotted path rooted at the entity
            (e.g. ``"author.name"``) that replaces the field as target.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    mode: FilterMode | str
    value: Any = None
    is_relation: bool | None = Field(default=None, alias="isRelation")
    nested_field_path: str | None = Field(default=None, alias="nestedFieldPath")


def parse_filter_spec(field: str, raw: Any) -> FilterSpec:
    """Coerce a mapping (or an existing spec) into a :class:`FilterSpec`."""
    if isinstance(raw, FilterSpec):
        return raw
    if not isinstance(raw, Mapping):
        raise FilterError(
            f"Filter for field '{field}' must be a mapping with 'mode' and "
            f"'value', got {type(raw).__name__}"
        )
    try:
        return FilterSpec.model_validate(raw)
    except ValidationError as err:
        raise FilterError(f"Invalid filter for field '{field}': {err}") from err


def normalise_groups(
    filters: FilterGroup | Sequence[FilterGroup] | None,
) -> list[FilterGroup]:
    """
    Return filters as a list of groups.

    ``None`` becomes ``[]``; a single group mapping becomes a one-element
    list.
    """
    if filters is None:
        return []
    if isinstance(filters, Mapping):
        return [filters]
    return list(filters)
