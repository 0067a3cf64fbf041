"""Change notifications published after successful mutations."""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from inspect import isawaitable
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger("schema_crud.events")


class ChangeEvent(BaseModel):
    """Base class for change events. Immutable."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    entity: str


class CreatedEvent(ChangeEvent):
    data: dict[str, Any]
    result: Any = None


class UpdatedEvent(ChangeEvent):
    id: Any
    input_data: dict[str, Any]
    result: Any = None


class DeletedEvent(ChangeEvent):
    id: Any
    result: Any = None


E = TypeVar("E", bound=ChangeEvent)


class Subscription:
    """Handle returned by :meth:`EventChannel.subscribe`."""

    __slots__ = ("_channel", "_handler")

    def __init__(
        self, channel: EventChannel[Any], handler: Callable[[Any], Any]
    ) -> None:
        self._channel = channel
        self._handler = handler

    def unsubscribe(self) -> None:
        self._channel.unsubscribe(self._handler)


class EventChannel(Generic[E]):
    """
    Fan-out of one event kind to any number of subscribers.

    ``publish`` never raises: a failing sync handler is logged and the
    next one runs; async handlers are scheduled on the running loop and
    their failures are logged when the task finishes.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._handlers: list[Callable[[E], Any]] = []
        self._tasks: set[asyncio.Task[Any]] = set()

    def subscribe(self, handler: Callable[[E], Any]) -> Subscription:
        if handler not in self._handlers:
            self._handlers.append(handler)
        return Subscription(self, handler)

    def unsubscribe(self, handler: Callable[[E], Any]) -> None:
        if handler in self._handlers:
            self._handlers.remove(handler)

    @property
    def subscriber_count(self) -> int:
        return len(self._handlers)

    def publish(self, event: E) -> None:
        for handler in list(self._handlers):
            try:
                result = handler(event)
            except Exception:
                logger.exception(
                    "Subscriber %s failed on %s for %s",
                    _handler_name(handler),
                    self.name,
                    event.entity,
                )
                continue
            if isawaitable(result):
                self._schedule(handler, result)

    def _schedule(self, handler: Callable[[E], Any], awaitable: Any) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(
                "No running event loop; skipping async subscriber %s on %s",
                _handler_name(handler),
                self.name,
            )
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            return

        async def _await() -> Any:
            return await awaitable

        task = loop.create_task(_await())
        self._tasks.add(task)
        task.add_done_callback(self._on_done(handler))

    def _on_done(
        self, handler: Callable[[E], Any]
    ) -> Callable[[asyncio.Task[Any]], None]:
        def callback(task: asyncio.Task[Any]) -> None:
            self._tasks.discard(task)
            if task.cancelled():
                return
            exc = task.exception()
            if exc is not None:
                logger.warning(
                    "Async subscriber %s failed on %s: %s",
                    _handler_name(handler),
                    self.name,
                    exc,
                    exc_info=exc,
                )

        return callback

    async def drain(self) -> None:
        """Wait until every scheduled async handler has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def clear(self) -> None:
        """Remove all subscribers (testing utility)."""
        self._handlers.clear()


class ChangeNotifier:
    """Per-service create/update/delete channels."""

    def __init__(self) -> None:
        self.on_create: EventChannel[CreatedEvent] = EventChannel("on_create")
        self.on_update: EventChannel[UpdatedEvent] = EventChannel("on_update")
        self.on_delete: EventChannel[DeletedEvent] = EventChannel("on_delete")

    def publish(self, event: ChangeEvent) -> None:
        if isinstance(event, CreatedEvent):
            self.on_create.publish(event)
        elif isinstance(event, UpdatedEvent):
            self.on_update.publish(event)
        elif isinstance(event, DeletedEvent):
            self.on_delete.publish(event)
        else:
            raise TypeError(f"Unsupported change event: {type(event).__name__}")

    async def drain(self) -> None:
        await asyncio.gather(
            self.on_create.drain(), self.on_update.drain(), self.on_delete.drain()
        )


def _handler_name(handler: Callable[..., Any]) -> str:
    return getattr(handler, "__qualname__", type(handler).__name__)
