"""
Built-in filter mode handlers.

Usage::

    from schema_crud.filters.handlers import build_default_registry

    registry = build_default_registry()
    handler = registry.resolve("EQ")
"""

from __future__ import annotations

from ..strategy import FilterModeRegistry
from .equality import EqualHandler, ExcludeHandler
from .null import IsEmptyHandler, IsNotEmptyHandler
from .ordering import GreaterThanHandler, LessThanHandler, RangeHandler


def build_default_registry() -> FilterModeRegistry:
    """
    Create a registry with all seven built-in modes.

    Returns a fresh instance on each call, so callers may register
    replacement handlers without affecting other registries.

    Example:
        >>> registry = build_default_registry()
        >>> registry.supported_modes
        ['EQ', 'EX', 'LT', 'GT', 'RG', 'EM', 'NEM']
    """
    registry = FilterModeRegistry()
    registry.register_all(
        EqualHandler(),
        ExcludeHandler(),
        LessThanHandler(),
        GreaterThanHandler(),
        RangeHandler(),
        IsEmptyHandler(),
        IsNotEmptyHandler(),
    )
    return registry


__all__ = [
    "EqualHandler",
    "ExcludeHandler",
    "GreaterThanHandler",
    "IsEmptyHandler",
    "IsNotEmptyHandler",
    "LessThanHandler",
    "RangeHandler",
    "build_default_registry",
]
