"""Ordering modes: LT, GT, RG (closed interval)."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ...schema.descriptors import FieldType
from ..modes import FilterMode
from ..strategy import FilterContext, FilterModeHandler

if TYPE_CHECKING:
    from ...schema.descriptors import FieldDescriptor


def _is_ordered(field: FieldDescriptor) -> bool:
    return field.type.is_numeric or field.type is FieldType.DATETIME


class _BoundHandler(FilterModeHandler):
    operator: str

    def apply(self, predicate: dict[str, Any], ctx: FilterContext) -> None:
        if isinstance(ctx.value, (list, tuple)):
            self.inert(ctx, "list operand")
            return
        if not _is_ordered(ctx.field):
            self.inert(ctx, f"type {ctx.field.type.value} is not ordered")
            return
        self.write(predicate, ctx.at(self.operator), ctx.value)


class LessThanHandler(_BoundHandler):
    operator = "lt"

    @property
    def mode(self) -> FilterMode:
        return FilterMode.LT


class GreaterThanHandler(_BoundHandler):
    operator = "gt"

    @property
    def mode(self) -> FilterMode:
        return FilterMode.GT


class RangeHandler(FilterModeHandler):
    """``[a, b]`` → ``{gte: a, lte: b}``; a ``None`` bound is left open."""

    @property
    def mode(self) -> FilterMode:
        return FilterMode.RG

    def apply(self, predicate: dict[str, Any], ctx: FilterContext) -> None:
        value = ctx.value
        if not isinstance(value, (list, tuple)) or len(value) != 2:
            self.inert(ctx, "range needs a two-element list")
            return
        if not _is_ordered(ctx.field):
            self.inert(ctx, f"type {ctx.field.type.value} is not ordered")
            return
        start, end = value
        if start is not None:
            self.write(predicate, ctx.at("gte"), start)
        if end is not None:
            self.write(predicate, ctx.at("lte"), end)
