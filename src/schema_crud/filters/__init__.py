"""Filter compilation: modes, specs, handlers, and the group/disjunction compiler."""

from __future__ import annotations

from .compiler import FilterCompiler
from .handlers import build_default_registry
from .modes import FilterMode
from .spec import FilterGroup, FilterSpec, normalise_groups, parse_filter_spec
from .strategy import FilterContext, FilterModeHandler, FilterModeRegistry
from .utils import deep_merge, parse_calendar_date, set_path

__all__ = [
    "FilterCompiler",
    "FilterContext",
    "FilterGroup",
    "FilterMode",
    "FilterModeHandler",
    "FilterModeRegistry",
    "FilterSpec",
    "build_default_registry",
    "deep_merge",
    "normalise_groups",
    "parse_calendar_date",
    "parse_filter_spec",
    "set_path",
]
