"""Instrumentation hooks wrapped around every repository operation.

A hook is async middleware: it receives an :class:`OperationContext`
describing the call (entity, operation, item id, compiled ``where``,
payload) and a ``next_handler`` to await.  Registrations are filtered by
operation and entity, then chained in priority order, lowest outermost.

Example::

    async def timing(ctx, next_handler):
        started = time.perf_counter()
        try:
            return await next_handler()
        finally:
            log.info("%s took %.3fs", ctx.name, time.perf_counter() - started)

    service.hooks.register(timing, operations=[CrudOperation.GET_ALL])
"""

from __future__ import annotations

import enum
import functools
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable, Mapping

logger = logging.getLogger("schema_crud.instrumentation")


class CrudOperation(str, enum.Enum):
    """The repository operations a hook can observe."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    GET_ONE = "get_one"
    GET_ALL = "get_all"


@dataclass(frozen=True)
class OperationContext:
    """What a hook sees about the call it wraps.

    ``where`` is the compiled store predicate (``None`` for ``create``);
    ``data`` is the caller's payload for ``create`` and ``update``.
    ``skip`` and ``take`` are the resolved page window of ``get_all``.
    """

    entity: str
    operation: CrudOperation
    item_id: Any = None
    where: Mapping[str, Any] | None = None
    data: Mapping[str, Any] | None = None
    skip: int | None = None
    take: int | None = None

    @property
    def name(self) -> str:
        return f"crud.{self.operation.value}.{self.entity}"


@runtime_checkable
class InstrumentationHook(Protocol):
    """Protocol for instrumentation hooks (timing, tracing, auditing)."""

    async def __call__(
        self,
        ctx: OperationContext,
        next_handler: Callable[[], Awaitable[Any]],
    ) -> Any: ...


@dataclass(eq=False)
class HookRegistration:
    """A registered hook with its filters and priority.

    Empty ``operations`` or ``entities`` match everything.
    """

    hook: InstrumentationHook
    priority: int = 0
    operations: frozenset[CrudOperation] = field(default_factory=frozenset)
    entities: frozenset[str] = field(default_factory=frozenset)
    enabled: bool = True

    def matches(self, ctx: OperationContext) -> bool:
        if not self.enabled:
            return False
        if self.operations and ctx.operation not in self.operations:
            return False
        return not self.entities or ctx.entity in self.entities


class HookRegistry:
    """Ordered collection of hook registrations."""

    def __init__(self) -> None:
        self._registrations: list[HookRegistration] = []

    def register(
        self,
        hook: InstrumentationHook,
        *,
        priority: int = 0,
        operations: Iterable[CrudOperation | str] | None = None,
        entities: Iterable[str] | None = None,
        enabled: bool = True,
    ) -> HookRegistration:
        """Register ``hook``; lower priorities run outermost.

        Raises:
            ValueError: An entry of ``operations`` is not a CRUD operation.
        """
        registration = HookRegistration(
            hook,
            priority=priority,
            operations=frozenset(CrudOperation(op) for op in operations or ()),
            entities=frozenset(entities or ()),
            enabled=enabled,
        )
        self._registrations.append(registration)
        self._registrations.sort(key=lambda r: r.priority)
        logger.debug(
            "Registered hook %s (priority=%d)", type(hook).__name__, priority
        )
        return registration

    def unregister(self, registration: HookRegistration) -> None:
        if registration in self._registrations:
            self._registrations.remove(registration)

    def __len__(self) -> int:
        return len(self._registrations)

    async def run(
        self,
        ctx: OperationContext,
        handler: Callable[[], Awaitable[Any]],
    ) -> Any:
        """Run every matching hook around ``handler``."""
        call = handler
        for registration in reversed(self._registrations):
            if registration.matches(ctx):
                call = functools.partial(registration.hook, ctx, call)
        return await call()

    def clear(self) -> None:
        self._registrations.clear()
