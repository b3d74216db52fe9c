# studypet/core/scheduler.py
"""Periodic timer abstraction.

The lifecycle store never touches asyncio timers directly. It asks a Scheduler
for `schedule(interval, fn)` and keeps the returned handle so that
`stop_monitoring` can cancel it. AsyncioScheduler runs on the event loop's wall
clock; ManualScheduler keeps a virtual clock that tests and the offline
simulator advance explicitly.

A failing callback is logged and the timer keeps firing.
"""
from __future__ import annotations

import asyncio
import inspect
import itertools
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Optional, Protocol, Union

import structlog

log = structlog.get_logger(__name__)

TickCallback = Callable[[], Union[None, Awaitable[None]]]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def run_callback(name: str, fn: TickCallback) -> None:
    try:
        result = fn()
        if inspect.isawaitable(result):
            await result
    except asyncio.CancelledError:
        raise
    except Exception as e:
        # One bad tick must not kill the timer
        log.error("scheduled_tick_failed", timer=name, error=str(e), exc_info=True)


class ScheduledTask(Protocol):
    name: str

    def cancel(self) -> None: ...

    @property
    def cancelled(self) -> bool: ...


class Scheduler(Protocol):
    def now(self) -> datetime: ...

    def schedule(self, interval_seconds: float, fn: TickCallback, name: str = "") -> ScheduledTask: ...


class _AsyncioTask:
    def __init__(self, name: str, task: asyncio.Task):
        self.name = name
        self._task = task

    def cancel(self) -> None:
        if not self._task.done():
            self._task.cancel()

    @property
    def cancelled(self) -> bool:
        return self._task.cancelled() or self._task.done()


class AsyncioScheduler:
    """Real-time scheduler backed by one asyncio task per timer."""

    def now(self) -> datetime:
        return utcnow()

    def schedule(self, interval_seconds: float, fn: TickCallback, name: str = "") -> _AsyncioTask:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")

        async def _loop():
            log.debug("timer_started", timer=name, interval_seconds=interval_seconds)
            try:
                while True:
                    await asyncio.sleep(interval_seconds)
                    await run_callback(name, fn)
            except asyncio.CancelledError:
                log.debug("timer_cancelled", timer=name)
                raise

        task = asyncio.get_running_loop().create_task(_loop(), name=name or None)
        return _AsyncioTask(name, task)


class _ManualTask:
    def __init__(self, seq: int, name: str, interval: timedelta, fn: TickCallback, next_due: datetime):
        self.seq = seq
        self.name = name
        self.interval = interval
        self.fn = fn
        self.next_due = next_due
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class ManualScheduler:
    """Virtual-time scheduler: nothing fires until `advance` is awaited."""

    def __init__(self, start: Optional[datetime] = None):
        self._now = start or utcnow()
        self._tasks: list[_ManualTask] = []
        self._seq = itertools.count()

    def now(self) -> datetime:
        return self._now

    def schedule(self, interval_seconds: float, fn: TickCallback, name: str = "") -> _ManualTask:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        interval = timedelta(seconds=interval_seconds)
        task = _ManualTask(next(self._seq), name, interval, fn, self._now + interval)
        self._tasks.append(task)
        return task

    @property
    def active_timers(self) -> list[str]:
        return [t.name for t in self._tasks if not t.cancelled]

    async def advance(self, seconds: float) -> None:
        """Move the clock forward, firing every timer that falls due on the way."""
        target = self._now + timedelta(seconds=seconds)
        while True:
            self._tasks = [t for t in self._tasks if not t.cancelled]
            due = [t for t in self._tasks if t.next_due <= target]
            if not due:
                break
            task = min(due, key=lambda t: (t.next_due, t.seq))
            self._now = task.next_due
            task.next_due = task.next_due + task.interval
            await run_callback(task.name, task.fn)
        self._now = target

    def set_time(self, when: datetime) -> None:
        """Jump the clock without firing timers (e.g. to fake an app restart)."""
        self._now = when
        for task in self._tasks:
            task.next_due = when + task.interval
