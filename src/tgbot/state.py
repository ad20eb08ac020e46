"""Pure state machine for the update dispatcher.

`transition(state, event)` returns the next state and the effects the runtime
must perform; it does no I/O, so the polling control flow can be tested
without a network.

Phases:
- `IDLE`: not running, no poll in flight.
- `POLLING`: running, exactly one `getUpdates` call in flight (or its result
  being processed).
- `STOPPING`: `stop()` was requested while a poll was in flight; the result is
  awaited but no further poll is issued.

Invariants:
- At most one poll is in flight: `IssuePoll` is only produced by `Start` from
  `IDLE` and by `PollSettled` in `POLLING`.
- `last_update_id` never decreases. A batch's maximum id is held in
  `pending_update_id` while its notifications run and is committed on
  `PollSettled`, so arrival order inside a batch cannot regress the offset and
  a batch is only acknowledged once fully processed.
- Entries that failed to decode are reported as `EmitError` in arrival order
  and still count towards the batch maximum, so one malformed update cannot
  pin the offset.
- A batch that arrives in `STOPPING` is neither emitted nor acknowledged; the
  next `Start` refetches it.
- `PollAbandoned` (the loop was cancelled from outside) returns to `IDLE`
  from any phase and discards the uncommitted batch id.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, replace
from enum import StrEnum

from .transport import UpdateDecodeError
from .types import Update


class DispatcherPhase(StrEnum):
    IDLE = "idle"
    POLLING = "polling"
    STOPPING = "stopping"


@dataclass(frozen=True, slots=True)
class DispatcherState:
    phase: DispatcherPhase = DispatcherPhase.IDLE
    last_update_id: int = 0
    pending_update_id: int | None = None

    @property
    def running(self) -> bool:
        return self.phase is DispatcherPhase.POLLING

    @property
    def next_offset(self) -> int:
        return self.last_update_id + 1

    def _committed(self) -> DispatcherState:
        if self.pending_update_id is None:
            return self
        return replace(
            self,
            last_update_id=max(self.last_update_id, self.pending_update_id),
            pending_update_id=None,
        )


# -- events ------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Start:
    pass


@dataclass(frozen=True, slots=True)
class Stop:
    pass


@dataclass(frozen=True, slots=True)
class PollSucceeded:
    updates: Sequence[Update | UpdateDecodeError]


@dataclass(frozen=True, slots=True)
class PollFailed:
    error: Exception


@dataclass(frozen=True, slots=True)
class PollSettled:
    """The in-flight poll's result has been fully processed."""


@dataclass(frozen=True, slots=True)
class PollAbandoned:
    """The poll loop was cancelled before its poll settled."""


type DispatcherEvent = (
    Start | Stop | PollSucceeded | PollFailed | PollSettled | PollAbandoned
)


# -- effects -----------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class IssuePoll:
    offset: int


@dataclass(frozen=True, slots=True)
class EmitUpdate:
    update: Update


@dataclass(frozen=True, slots=True)
class EmitError:
    error: Exception


type DispatcherEffect = IssuePoll | EmitUpdate | EmitError


def transition(
    state: DispatcherState, event: DispatcherEvent
) -> tuple[DispatcherState, list[DispatcherEffect]]:
    phase = state.phase

    match event:
        case Start():
            if phase is not DispatcherPhase.IDLE:
                return state, []
            return (
                replace(state, phase=DispatcherPhase.POLLING),
                [IssuePoll(offset=state.next_offset)],
            )

        case Stop():
            if phase is not DispatcherPhase.POLLING:
                return state, []
            return replace(state, phase=DispatcherPhase.STOPPING), []

        case PollSucceeded(updates=updates):
            if phase is not DispatcherPhase.POLLING or not updates:
                return state, []
            effects: list[DispatcherEffect] = []
            ids: list[int] = []
            for item in updates:
                if isinstance(item, UpdateDecodeError):
                    effects.append(EmitError(error=item))
                    if item.update_id is not None:
                        ids.append(item.update_id)
                else:
                    effects.append(EmitUpdate(update=item))
                    ids.append(item.update_id)
            pending = max(ids) if ids else state.pending_update_id
            return replace(state, pending_update_id=pending), effects

        case PollFailed(error=error):
            if phase is DispatcherPhase.IDLE:
                return state, []
            return state, [EmitError(error=error)]

        case PollSettled():
            committed = state._committed()
            if phase is DispatcherPhase.POLLING:
                return committed, [IssuePoll(offset=committed.next_offset)]
            if phase is DispatcherPhase.STOPPING:
                return replace(committed, phase=DispatcherPhase.IDLE), []
            return state, []

        case PollAbandoned():
            return (
                replace(state, phase=DispatcherPhase.IDLE, pending_update_id=None),
                [],
            )

    raise TypeError(f"unknown dispatcher event: {event!r}")
