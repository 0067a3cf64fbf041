"""
Computed fields: values derived from a record's scalar columns on read.

A computed field declares the columns it ``needs`` and a ``compute``
callable over the record.  The service adds it to every record it returns
from ``get_one``, ``get_all``, ``create`` and ``update``.  When a search
projects specific ``fields``, computed fields appear only if named there,
and the columns they need are selected too, then removed again from the
returned items.

Example::

    service.extend({
        "label": ComputedField(
            needs={"id": True, "title": True},
            compute=lambda t: f"#{t['id']} {t['title']}",
        ),
    })
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .exceptions import InvalidFieldReferenceError, SchemaError

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Sequence

    from .schema.descriptors import EntityDescriptor

logger = logging.getLogger("schema_crud.computed")


@dataclass(frozen=True)
class ComputedField:
    """
    A derived read-only field.

    Attributes:
        needs: Scalar fields ``compute`` reads; either a sequence of names
            or a ``{name: True}`` map.  Entries mapped to ``False`` are
            ignored.
        compute: Called with the record; its return value is the field.
    """

    needs: tuple[str, ...] | Mapping[str, bool]
    compute: Callable[[Mapping[str, Any]], Any]

    def __post_init__(self) -> None:
        if isinstance(self.needs, Mapping):
            needs = tuple(name for name, wanted in self.needs.items() if wanted)
        else:
            needs = tuple(self.needs)
        object.__setattr__(self, "needs", needs)


class ComputedFields:
    """The computed fields registered for one entity."""

    def __init__(self, entity: EntityDescriptor) -> None:
        self._entity = entity
        self._fields: dict[str, ComputedField] = {}

    def add(self, fields: Mapping[str, ComputedField]) -> None:
        """
        Register ``fields``; a name registered again replaces the old one.

        Raises:
            SchemaError: A name collides with a declared field.
            InvalidFieldReferenceError: A ``needs`` entry is not a scalar
                field of the entity.
        """
        entity = self._entity
        for name, computed in fields.items():
            if entity.get_field(name) is not None:
                raise SchemaError(
                    f"Computed field {name!r} shadows a field of {entity.name!r}"
                )
            for need in computed.needs:
                declared = entity.get_field(need)
                if declared is None or declared.is_relation:
                    raise InvalidFieldReferenceError(
                        need,
                        entity.name,
                        sorted(entity.scalar_field_names),
                        reason="Computed fields can only need scalar fields.",
                    )
        self._fields.update(fields)
        logger.debug("Computed fields on %s: %s", entity.name, sorted(self._fields))

    def split(self, paths: Sequence[str]) -> tuple[list[str], list[str]]:
        """Separate projected ``paths`` into declared and computed names."""
        declared = [p for p in paths if p not in self._fields]
        computed = [p for p in paths if p in self._fields]
        return declared, computed

    def widen(self, select: dict[str, Any], names: Iterable[str]) -> set[str]:
        """
        Add the columns ``names`` need to ``select``.

        Returns the columns that were not already selected, so they can be
        stripped from the results.
        """
        added: set[str] = set()
        for name in names:
            for need in self._fields[name].needs:
                if need not in select:
                    select[need] = True
                    added.add(need)
        return added

    def apply(
        self,
        record: Any,
        names: Iterable[str] | None = None,
        strip: Iterable[str] = (),
    ) -> Any:
        """
        Return ``record`` with computed values added.

        ``names`` limits which computed fields are evaluated (all when
        ``None``).  A field is skipped when one of its needs is absent from
        the record.  Anything that is not a non-empty mapping is returned
        unchanged.
        """
        if not self._fields or not isinstance(record, Mapping) or not record:
            return record
        result = dict(record)
        for name in self._fields if names is None else names:
            computed = self._fields[name]
            if all(need in record for need in computed.needs):
                result[name] = computed.compute(record)
        for column in strip:
            result.pop(column, None)
        return result
