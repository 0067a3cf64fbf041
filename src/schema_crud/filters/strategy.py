"""
Filter mode compilation strategy.

Provides the ``FilterModeHandler`` interface, the context a handler
receives, and a registry keyed by :class:`FilterMode`.  Handlers are pure:
they read the context and write fragments into the predicate dict they
are given, nothing else.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from ..exceptions import UnsupportedFilterModeError
from .modes import FilterMode
from .utils import set_path

if TYPE_CHECKING:
    from ..schema.descriptors import FieldDescriptor

logger = logging.getLogger("schema_crud.filters")


@dataclass(frozen=True)
class FilterContext:
    """
    Everything a handler needs to build one predicate fragment.

    Attributes:
        field_name: Key of the entry in the filter group.
        target_path: Predicate path the fragment is written under; the
            field name itself, or the expanded nested path.
        field: Descriptor of the terminal field the path points at.
        value: Filter operand.
        is_relation: Whether list operands are related-record ids.
        nested: True when a nested field path redirected the target.
        case_insensitive: Emit ``mode: "insensitive"`` for string matches.
    """

    field_name: str
    target_path: tuple[str, ...]
    field: FieldDescriptor
    value: Any
    is_relation: bool = False
    nested: bool = False
    case_insensitive: bool = True

    def at(self, *suffix: str) -> tuple[str, ...]:
        """Target path extended with operator segments."""
        return self.target_path + suffix


class FilterModeHandler(ABC):
    """
    Strategy interface for compiling one filter mode into a native
    predicate fragment.
    """

    @property
    @abstractmethod
    def mode(self) -> FilterMode:
        """The mode this strategy handles."""
        ...

    @abstractmethod
    def apply(self, predicate: dict[str, Any], ctx: FilterContext) -> None:
        """
        Write this mode's fragment for ``ctx`` into ``predicate``.

        Handlers write nothing when the field type does not support the
        mode.
        """
        ...

    # -- helpers shared by handlers ---------------------------------------

    @staticmethod
    def write(predicate: dict[str, Any], path: tuple[str, ...], value: Any) -> None:
        set_path(predicate, path, value)

    def inert(self, ctx: FilterContext, reason: str) -> None:
        logger.debug(
            "Filter %s on '%s' produced no fragment: %s",
            self.mode.value,
            ".".join(ctx.target_path),
            reason,
        )


class FilterModeRegistry:
    """Registry of ``FilterModeHandler`` instances keyed by mode."""

    def __init__(self) -> None:
        self._handlers: dict[FilterMode, FilterModeHandler] = {}

    def register(self, handler: FilterModeHandler) -> None:
        self._handlers[handler.mode] = handler

    def register_all(self, *handlers: FilterModeHandler) -> None:
        for handler in handlers:
            self.register(handler)

    def get(self, mode: FilterMode) -> FilterModeHandler | None:
        return self._handlers.get(mode)

    @property
    def supported_modes(self) -> list[str]:
        return [m.value for m in FilterMode if m in self._handlers]

    def resolve(self, mode: FilterMode | str) -> FilterModeHandler:
        """
        Look up the handler for ``mode``.

        Raises:
            UnsupportedFilterModeError: If ``mode`` is not a known mode or
                has no registered handler.
        """
        name = mode.value if isinstance(mode, FilterMode) else str(mode).upper()
        try:
            handler = self._handlers.get(FilterMode(name))
        except ValueError:
            handler = None
        if handler is None:
            raise UnsupportedFilterModeError(mode, self.supported_modes)
        return handler
