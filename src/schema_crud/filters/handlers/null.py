"""Null checks: EM (is empty / null), NEM (is not null).

Both only apply to optional fields; on required fields they would make
the predicate falsely restrictive, so they emit nothing.
"""

from __future__ import annotations

from typing import Any

from ..modes import FilterMode
from ..strategy import FilterContext, FilterModeHandler


def _nullable(ctx: FilterContext) -> bool:
    field = ctx.field
    return field.is_optional and not (field.is_relation and field.is_list)


class IsEmptyHandler(FilterModeHandler):
    @property
    def mode(self) -> FilterMode:
        return FilterMode.EM

    def apply(self, predicate: dict[str, Any], ctx: FilterContext) -> None:
        if not _nullable(ctx):
            self.inert(ctx, "field is not nullable")
            return
        self.write(predicate, ctx.target_path, None)


class IsNotEmptyHandler(FilterModeHandler):
    @property
    def mode(self) -> FilterMode:
        return FilterMode.NEM

    def apply(self, predicate: dict[str, Any], ctx: FilterContext) -> None:
        if not _nullable(ctx):
            self.inert(ctx, "field is not nullable")
            return
        self.write(predicate, ctx.at("not"), None)
