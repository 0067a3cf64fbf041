"""Equality and membership modes: EQ (equals / contains / in), EX (negation)."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ...schema.descriptors import FieldType
from ..modes import FilterMode
from ..strategy import FilterContext, FilterModeHandler
from ..utils import day_bounds, parse_calendar_date

if TYPE_CHECKING:
    from ...schema.descriptors import FieldDescriptor

_EXACT_TYPES = frozenset({FieldType.BOOLEAN, FieldType.ENUM, FieldType.DATETIME})


def _is_exact(field: FieldDescriptor) -> bool:
    return field.type.is_numeric or field.type in _EXACT_TYPES


class EqualHandler(FilterModeHandler):
    """
    Equals for exact types, case-insensitive substring for strings,
    membership for lists.

    A ``YYYY-MM-DD`` value on a DateTime field matches the whole day:
    ``{gte: day, lt: day + 1}``.
    """

    @property
    def mode(self) -> FilterMode:
        return FilterMode.EQ

    def apply(self, predicate: dict[str, Any], ctx: FilterContext) -> None:
        value = ctx.value
        field = ctx.field

        if isinstance(value, (list, tuple)):
            if ctx.is_relation:
                self.write(predicate, ctx.at("some", "id", "in"), list(value))
            elif field.is_relation:
                self.write(predicate, ctx.at("id", "in"), list(value))
            else:
                self.write(predicate, ctx.at("in"), list(value))
            return

        if field.is_relation:
            if field.is_list:
                self.write(predicate, ctx.at("some", "id", "in"), [value])
            else:
                self.write(predicate, ctx.at("id", "equals"), value)
            return

        if field.type is FieldType.DATETIME:
            day = parse_calendar_date(value)
            if day is not None:
                start, end = day_bounds(day)
                self.write(predicate, ctx.at("gte"), start)
                self.write(predicate, ctx.at("lt"), end)
                return

        if field.type is FieldType.STRING:
            self.write(predicate, ctx.at("contains"), value)
            if ctx.case_insensitive:
                self.write(predicate, ctx.at("mode"), "insensitive")
            return

        if _is_exact(field):
            self.write(predicate, ctx.at("equals"), value)
            return

        self.inert(ctx, f"type {field.type.value} has no equality form")


class ExcludeHandler(FilterModeHandler):
    """Negation of EQ: not-equals, substring exclusion, ``not in`` / ``none``."""

    @property
    def mode(self) -> FilterMode:
        return FilterMode.EX

    def apply(self, predicate: dict[str, Any], ctx: FilterContext) -> None:
        value = ctx.value
        field = ctx.field

        if isinstance(value, (list, tuple)):
            if ctx.is_relation:
                self.write(predicate, ctx.at("none", "id", "in"), list(value))
            elif field.is_relation:
                self.write(predicate, ctx.at("id", "not", "in"), list(value))
            else:
                self.write(predicate, ctx.at("not", "in"), list(value))
            return

        if field.is_relation:
            if field.is_list:
                self.write(predicate, ctx.at("none", "id", "in"), [value])
            else:
                self.write(predicate, ctx.at("id", "not", "equals"), value)
            return

        if field.type is FieldType.STRING:
            self.write(predicate, ctx.at("not", "contains"), value)
            if ctx.case_insensitive:
                self.write(predicate, ctx.at("mode"), "insensitive")
            return

        if _is_exact(field):
            self.write(predicate, ctx.at("not", "equals"), value)
            return

        self.inert(ctx, f"type {field.type.value} has no equality form")
