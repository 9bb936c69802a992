"""Scheduling strategies for agenda subscriptions.

A strategy only has to run submitted callbacks while preserving their
relative submission order. The engine never owns the strategy; it is passed
in through ``EngineOptions.scheduler``.
"""
from __future__ import annotations

import asyncio
import logging
import threading
from collections import deque
from typing import Callable, Deque, Optional, Protocol, runtime_checkable

from agenda_dispatch.observable import Subscription

logger = logging.getLogger("agenda_dispatch.scheduler")

Action = Callable[[], None]


@runtime_checkable
class Scheduler(Protocol):
    """Submit a callback; run it according to the strategy."""

    def schedule(self, action: Action) -> Subscription:
        ...


class ScheduledAction(Subscription):
    """A submitted callback that can be cancelled until it runs."""

    def __init__(self, action: Action) -> None:
        super().__init__()
        self._action = action

    def run(self) -> None:
        if self.closed:
            return
        self._action()


class ImmediateScheduler:
    """Runs every action synchronously at submission time."""

    def schedule(self, action: Action) -> Subscription:
        scheduled = ScheduledAction(action)
        scheduled.run()
        return scheduled


class QueueScheduler:
    """Trampolining enqueue-and-drain scheduler.

    When idle, an action runs immediately. An action submitted while another
    one is running is queued and runs after it finishes, so work triggered
    from inside a reduction never interleaves with that reduction.

    A raising action does not cancel the work queued behind it: the drain
    runs to the end, then the first exception is re-raised. Later failures
    in the same drain are logged.
    """

    def __init__(self) -> None:
        self._local = threading.local()

    @property
    def draining(self) -> bool:
        return getattr(self._local, "queue", None) is not None

    def schedule(self, action: Action) -> Subscription:
        scheduled = ScheduledAction(action)
        queue: Optional[Deque[ScheduledAction]] = getattr(self._local, "queue", None)
        if queue is not None:
            queue.append(scheduled)
            return scheduled

        queue = deque([scheduled])
        self._local.queue = queue
        error: Optional[Exception] = None
        try:
            while queue:
                try:
                    queue.popleft().run()
                except Exception as exc:
                    if error is None:
                        error = exc
                    else:
                        logger.error("Scheduled action failed during drain", exc_info=exc)
        finally:
            self._local.queue = None
        if error is not None:
            raise error
        return scheduled


class AsyncioScheduler:
    """Submits actions to an asyncio event loop with ``call_soon``."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            return asyncio.get_running_loop()
        return self._loop

    def schedule(self, action: Action) -> Subscription:
        scheduled = ScheduledAction(action)
        handle = self.loop.call_soon(scheduled.run)
        scheduled.add(handle.cancel)
        return scheduled


queue_scheduler = QueueScheduler()
