"""Practice session timer: countdown state machine and asyncio driver.

State progression: inactive -> running <-> paused -> completed
``reset`` returns any state to inactive. Invalid actions are no-ops.

``transition`` is pure; ``SessionTimer`` ticks it from an asyncio task and
``TimerRegistry`` keeps at most one timer per user.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Union

from skillforge.exceptions import ConflictError, NotFoundError

logger = logging.getLogger(__name__)


class TimerStatus(str, Enum):
    INACTIVE = "inactive"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"


@dataclass(frozen=True)
class TimerState:
    status: TimerStatus = TimerStatus.INACTIVE
    duration: int = 0  # seconds
    remaining: int = 0
    just_completed: bool = False  # True only on the tick that reached zero

    @property
    def completed(self) -> bool:
        return self.status is TimerStatus.COMPLETED

    @property
    def progress(self) -> float:
        """Fraction elapsed, 0.0 to 1.0."""
        if self.duration <= 0:
            return 0.0
        return (self.duration - self.remaining) / self.duration


# --- Actions ---


@dataclass(frozen=True)
class Start:
    duration: int


@dataclass(frozen=True)
class Tick:
    units: int = 1


@dataclass(frozen=True)
class Pause:
    pass


@dataclass(frozen=True)
class Resume:
    pass


@dataclass(frozen=True)
class Reset:
    duration: int | None = None


TimerAction = Union[Start, Tick, Pause, Resume, Reset]


def _ignore(state: TimerState) -> TimerState:
    # No-op, but completion is only reported on the transition that produced it
    return replace(state, just_completed=False) if state.just_completed else state


def transition(state: TimerState, action: TimerAction) -> TimerState:
    """Apply one action to a timer state. Raises ValueError on a non-positive duration."""
    if isinstance(action, Start):
        if action.duration <= 0:
            raise ValueError(f"Timer duration must be positive, got {action.duration}")
        if state.status is not TimerStatus.INACTIVE:
            return _ignore(state)
        return TimerState(TimerStatus.RUNNING, action.duration, action.duration)

    if isinstance(action, Tick):
        if action.units <= 0:
            raise ValueError(f"Tick units must be positive, got {action.units}")
        if state.status is not TimerStatus.RUNNING:
            return _ignore(state)
        remaining = max(state.remaining - action.units, 0)
        if remaining == 0:
            return TimerState(TimerStatus.COMPLETED, state.duration, 0, just_completed=True)
        return TimerState(TimerStatus.RUNNING, state.duration, remaining)

    if isinstance(action, Pause):
        if state.status is not TimerStatus.RUNNING:
            return _ignore(state)
        return replace(state, status=TimerStatus.PAUSED, just_completed=False)

    if isinstance(action, Resume):
        if state.status is not TimerStatus.PAUSED:
            return _ignore(state)
        return replace(state, status=TimerStatus.RUNNING, just_completed=False)

    if isinstance(action, Reset):
        duration = state.duration if action.duration is None else action.duration
        if duration < 0:
            raise ValueError(f"Timer duration must not be negative, got {duration}")
        return TimerState(TimerStatus.INACTIVE, duration, duration)

    raise TypeError(f"Unknown timer action: {action!r}")


# --- Async driver ---

CompletionCallback = Callable[[TimerState], Union[Awaitable[None], None]]


class SessionTimer:
    """Runs a timer state machine in real time.

    One asyncio task exists while the timer is running; it sleeps
    ``tick_seconds`` between ticks. Pause and reset cancel it. The completion
    callback fires once per run.
    """

    def __init__(
        self,
        tick_seconds: float = 1.0,
        on_complete: CompletionCallback | None = None,
    ) -> None:
        self.tick_seconds = tick_seconds
        self._on_complete = on_complete
        self._state = TimerState()
        self._task: asyncio.Task[None] | None = None

    @property
    def state(self) -> TimerState:
        return self._state

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def dispatch(self, action: TimerAction) -> TimerState:
        """Apply an action and start or stop the tick task to match the new state."""
        self._state = transition(self._state, action)
        if self._state.status is TimerStatus.RUNNING:
            if not self.running:
                self._task = asyncio.get_running_loop().create_task(self._run())
        else:
            self._cancel()
        return self._state

    def _cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def _run(self) -> None:
        while self._state.status is TimerStatus.RUNNING:
            await asyncio.sleep(self.tick_seconds)
            self._state = transition(self._state, Tick())
            if self._state.just_completed:
                self._task = None
                await self._fire_complete(self._state)
                return

    async def _fire_complete(self, state: TimerState) -> None:
        if self._on_complete is None:
            return
        try:
            result = self._on_complete(state)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.warning("Timer completion callback failed", exc_info=True)

    async def close(self) -> None:
        """Cancel the tick task and wait for it to finish."""
        task = self._task
        self._task = None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass


# --- Per-user registry ---


@dataclass
class ActiveTimer:
    user_id: int
    skill_category_id: int
    duration_minutes: int
    timer: SessionTimer
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def state(self) -> TimerState:
        return self.timer.state

    def to_dict(self) -> dict[str, Any]:
        state = self.timer.state
        return {
            "status": state.status.value,
            "skill_category_id": self.skill_category_id,
            "duration_minutes": self.duration_minutes,
            "duration_seconds": state.duration,
            "remaining_seconds": state.remaining,
            "progress": round(state.progress, 4),
            "started_at": self.started_at.isoformat(),
        }


class TimerRegistry:
    """At most one practice timer per user, owned by the application.

    Created in ``create_app()`` and stored on ``app.state.timer_registry``.
    State changes made through the API are sent to the user's connections
    subscribed to the ``timer`` channel; completion is sent to all of them.
    """

    def __init__(self, manager: Any | None = None, tick_seconds: float = 1.0) -> None:
        self.manager = manager
        self.tick_seconds = tick_seconds
        self._timers: dict[int, ActiveTimer] = {}

    def __len__(self) -> int:
        return len(self._timers)

    def get(self, user_id: int) -> ActiveTimer | None:
        return self._timers.get(user_id)

    def require(self, user_id: int) -> ActiveTimer:
        active = self._timers.get(user_id)
        if active is None:
            raise NotFoundError("No active practice timer")
        return active

    async def start(self, user_id: int, skill_category_id: int, duration_minutes: int) -> ActiveTimer:
        """Start a new timer, discarding any previous one for this user."""
        if duration_minutes <= 0:
            raise ValueError(f"Timer duration must be positive, got {duration_minutes}")
        self.discard(user_id)

        async def _completed(state: TimerState) -> None:
            await self._notify_completed(user_id, state)

        timer = SessionTimer(tick_seconds=self.tick_seconds, on_complete=_completed)
        active = ActiveTimer(user_id, skill_category_id, duration_minutes, timer)
        self._timers[user_id] = active
        timer.dispatch(Start(duration_minutes * 60))
        logger.info("Timer started for user %d: %d min (category %d)", user_id, duration_minutes, skill_category_id)
        await self._announce(active)
        return active

    async def pause(self, user_id: int) -> ActiveTimer:
        return await self._apply(user_id, Pause())

    async def resume(self, user_id: int) -> ActiveTimer:
        return await self._apply(user_id, Resume())

    async def reset(self, user_id: int) -> ActiveTimer:
        return await self._apply(user_id, Reset())

    async def _apply(self, user_id: int, action: TimerAction) -> ActiveTimer:
        active = self.require(user_id)
        before = active.state.status
        active.timer.dispatch(action)
        if active.state.status is not before:
            await self._announce(active)
        return active

    def claim(self, user_id: int) -> ActiveTimer:
        """Remove and return the user's completed timer.

        Runs without awaiting, so a completed run is handed out at most once.
        """
        active = self.require(user_id)
        if not active.state.completed:
            raise ConflictError("Practice timer has not completed")
        del self._timers[user_id]
        return active

    def restore(self, active: ActiveTimer) -> None:
        """Put back a claimed timer unless the user has started a new one since."""
        self._timers.setdefault(active.user_id, active)

    def discard(self, user_id: int) -> None:
        active = self._timers.pop(user_id, None)
        if active is not None:
            active.timer.dispatch(Reset())

    async def close(self) -> None:
        """Cancel every running timer (application shutdown)."""
        timers = list(self._timers.values())
        self._timers.clear()
        for active in timers:
            await active.timer.close()

    async def _announce(self, active: ActiveTimer) -> None:
        if self.manager is not None:
            await self.manager.deliver(active.user_id, {"type": "timer_state", **active.to_dict()}, channel="timer")

    async def _notify_completed(self, user_id: int, state: TimerState) -> None:
        active = self._timers.get(user_id)
        logger.info("Timer completed for user %d", user_id)
        if self.manager is None or active is None:
            return
        await self.manager.deliver(user_id, {
            "type": "practice_timer_completed",
            "payload": active.to_dict(),
        })
