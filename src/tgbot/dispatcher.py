"""Long-poll update dispatcher.

`UpdateDispatcher` drives the `tgbot.state` machine: it issues one
`getUpdates` call at a time, feeds the outcome back into `transition()`, and
executes the resulting effects (notify listeners, poll again).

Notification model:
- Listeners are registered per `UpdateKind` plus the reserved `"error"`
  category; each update produces exactly one notification, for its kind.
- Listeners run in arrival order. Awaitable results are awaited before the
  next notification, so slow listeners delay the next poll instead of
  piling up work.
- Poll failures (network, `ok: false`, undecodable bodies) become `"error"`
  notifications and the loop keeps going. Nothing here stops the loop except
  `stop()`.
- An update that fails to decode is reported on `"error"` as an
  `UpdateDecodeError` and acknowledged with the rest of its batch.

`stop()` is cooperative: the in-flight long-poll is not aborted; when it
settles no further poll is issued.
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable, Sequence
from logging import getLogger
from typing import Any, Final, Literal

import anyio
from anyio.abc import TaskGroup

from .methods import BotApi
from .state import (
    DispatcherEffect,
    DispatcherEvent,
    DispatcherPhase,
    DispatcherState,
    EmitError,
    EmitUpdate,
    IssuePoll,
    PollAbandoned,
    PollFailed,
    PollSettled,
    PollSucceeded,
    Start,
    Stop,
    transition,
)
from .types import Update, UpdateKind

logger = getLogger(__name__)

ERROR: Final = "error"

type Category = UpdateKind | Literal["error"]
type Listener = Callable[[Any], Awaitable[object] | object]

DEFAULT_POLL_TIMEOUT_SECONDS: Final[int] = 60


class ListenerError(RuntimeError):
    """A listener raised while handling a notification."""

    def __init__(self, kind: UpdateKind, update_id: int) -> None:
        super().__init__(f"listener for {kind.value!r} failed on update_id={update_id}")
        self.kind = kind
        self.update_id = update_id


def _category(kind: str) -> Category:
    if kind == ERROR:
        return ERROR
    try:
        return UpdateKind(kind)
    except ValueError:
        raise ValueError(f"unknown update category: {kind!r}") from None


class ListenerRegistry:
    """Listener slots keyed by update category."""

    def __init__(self) -> None:
        self._listeners: dict[Category, list[Listener]] = {}

    def subscribe(self, kind: str, listener: Listener) -> Callable[[], None]:
        """Register `listener`; returns a callable that unregisters it."""

        category = _category(kind)
        self._listeners.setdefault(category, []).append(listener)
        return lambda: self.unsubscribe(category, listener)

    def unsubscribe(self, kind: str, listener: Listener) -> None:
        listeners = self._listeners.get(_category(kind), [])
        if listener in listeners:
            listeners.remove(listener)

    def listeners(self, kind: str) -> list[Listener]:
        # Copy so listeners may (un)subscribe while being notified.
        return list(self._listeners.get(_category(kind), ()))


async def _call_listener(listener: Listener, payload: Any) -> None:
    result = listener(payload)
    if inspect.isawaitable(result):
        await result


class UpdateDispatcher:
    """Polls `getUpdates` and notifies listeners by update kind."""

    def __init__(
        self,
        api: BotApi,
        *,
        timeout_seconds: int = DEFAULT_POLL_TIMEOUT_SECONDS,
        limit: int | None = None,
        allowed_updates: Sequence[str] | None = None,
    ) -> None:
        if timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be > 0; got {timeout_seconds}")
        self.api = api
        self.timeout_seconds = timeout_seconds
        self.limit = limit
        self.allowed_updates = (
            [UpdateKind(kind).value for kind in allowed_updates]
            if allowed_updates is not None
            else None
        )
        self.registry = ListenerRegistry()
        self._state = DispatcherState()

    # -- state ---------------------------------------------------------------

    @property
    def state(self) -> DispatcherState:
        return self._state

    @property
    def phase(self) -> DispatcherPhase:
        return self._state.phase

    @property
    def running(self) -> bool:
        return self._state.running

    @property
    def last_update_id(self) -> int:
        return self._state.last_update_id

    def _feed(self, event: DispatcherEvent) -> list[DispatcherEffect]:
        self._state, effects = transition(self._state, event)
        return effects

    # -- subscriptions ---------------------------------------------------------

    def subscribe(self, kind: str, listener: Listener) -> Callable[[], None]:
        return self.registry.subscribe(kind, listener)

    def unsubscribe(self, kind: str, listener: Listener) -> None:
        self.registry.unsubscribe(kind, listener)

    def on(self, kind: str) -> Callable[[Listener], Listener]:
        """Decorator form of `subscribe`."""

        def decorator(listener: Listener) -> Listener:
            self.subscribe(kind, listener)
            return listener

        return decorator

    # -- lifecycle -------------------------------------------------------------

    def start(self, task_group: TaskGroup) -> None:
        """Begin polling inside `task_group`; a no-op unless idle."""

        for effect in self._feed(Start()):
            if isinstance(effect, IssuePoll):
                task_group.start_soon(self._poll_loop, effect.offset)

    def stop(self) -> None:
        """Request the loop to end after the in-flight poll settles."""

        self._feed(Stop())
        logger.debug(f"dispatcher phase={self.phase.value} after stop")

    async def run(self) -> None:
        """Poll until `stop()` is called and the last poll has settled."""

        async with anyio.create_task_group() as tg:
            self.start(tg)

    async def _poll_loop(self, offset: int) -> None:
        try:
            await self._poll_until_idle(offset)
        except BaseException:
            # Cancelled from outside; allow a later start() to resume.
            self._feed(PollAbandoned())
            raise

    async def _poll_until_idle(self, offset: int) -> None:
        next_offset: int | None = offset
        while next_offset is not None:
            event: DispatcherEvent
            try:
                updates = await self.api.get_updates(
                    offset=next_offset,
                    timeout=self.timeout_seconds,
                    limit=self.limit,
                    allowed_updates=self.allowed_updates,
                )
            except Exception as e:
                event = PollFailed(error=e)
            else:
                event = PollSucceeded(updates=updates)

            for effect in self._feed(event):
                await self._execute(effect)

            next_offset = None
            for effect in self._feed(PollSettled()):
                if isinstance(effect, IssuePoll):
                    next_offset = effect.offset
        logger.debug(f"dispatcher idle last_update_id={self.last_update_id}")

    async def _execute(self, effect: DispatcherEffect) -> None:
        match effect:
            case EmitUpdate(update=update):
                await self._emit_update(update)
            case EmitError(error=error):
                await self._emit_error(error)
            case IssuePoll():
                raise AssertionError("polls are only issued once a poll settles")

    # -- notification ------------------------------------------------------------

    async def _emit_update(self, update: Update) -> None:
        kind = update.kind
        if kind is None:
            logger.debug(f"skipping update_id={update.update_id} of unknown kind")
            return

        payload = update.payload
        for listener in self.registry.listeners(kind):
            try:
                await _call_listener(listener, payload)
            except Exception as e:
                logger.exception(
                    f"listener for {kind.value} failed update_id={update.update_id}"
                )
                error = ListenerError(kind, update.update_id)
                error.__cause__ = e
                await self._emit_error(error)

    async def _emit_error(self, error: Exception) -> None:
        logger.warning(f"dispatcher error: {type(error).__name__}: {error}")
        for listener in self.registry.listeners(ERROR):
            try:
                await _call_listener(listener, error)
            except Exception:
                logger.exception("error listener failed")
