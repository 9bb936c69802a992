"""Explicit push-based stream primitives.

Provides the small set of multicast/replay/merge building blocks the
dispatcher and stores are assembled from:

- ``Subscription`` / ``Subscriber``: teardown bookkeeping and the
  ``next* (error | completed)?`` notification grammar.
- ``Observable``: cold stream with the operators the reduction pipeline uses.
- ``Subject`` / ``ReplaySubject``: hot multicast channels keyed by
  subscriber id, the latter replaying a bounded or unbounded buffer.
- ``ConnectableObservable``: connect-on-demand sharing with ``ref_count``.

Errors raised by a downstream handler are never converted into stream
errors; only a source's own failures (a raising iterator, a rejected future,
a raising ``map`` function) travel down the error channel.
"""
from __future__ import annotations

import asyncio
import concurrent.futures
import itertools
from collections import deque
from typing import (
    Any,
    AsyncIterable,
    Awaitable,
    Callable,
    Deque,
    Dict,
    Iterable,
    List,
    Optional,
    Union,
)

Teardown = Union["Subscription", Callable[[], Any], None]
OnNext = Callable[[Any], Any]
OnError = Callable[[BaseException], Any]
OnCompleted = Callable[[], Any]

_NOTHING = object()


def _run_teardown(teardown: Teardown) -> None:
    if isinstance(teardown, Subscription):
        teardown.unsubscribe()
    elif teardown is not None:
        teardown()


class Subscription:
    """Handle releasing resources held by an active subscription."""

    def __init__(self, teardown: Teardown = None) -> None:
        self.closed = False
        self._teardowns: List[Teardown] = []
        self.add(teardown)

    def add(self, teardown: Teardown) -> None:
        """Register a teardown; runs it at once if already closed."""
        if teardown is None or teardown is self:
            return
        if self.closed:
            _run_teardown(teardown)
            return
        self._teardowns.append(teardown)

    def remove(self, teardown: Teardown) -> None:
        try:
            self._teardowns.remove(teardown)
        except ValueError:
            pass

    def unsubscribe(self) -> None:
        if self.closed:
            return
        self.closed = True
        teardowns, self._teardowns = self._teardowns, []
        for teardown in reversed(teardowns):
            _run_teardown(teardown)

    dispose = unsubscribe


class Subscriber(Subscription):
    """Observer wrapper that stops after the first terminal notification.

    An error delivered to a subscriber without an ``on_error`` handler is
    re-raised to the caller of ``on_error``.
    """

    def __init__(
        self,
        on_next: Optional[OnNext] = None,
        on_error: Optional[OnError] = None,
        on_completed: Optional[OnCompleted] = None,
    ) -> None:
        super().__init__()
        self.stopped = False
        self._on_next = on_next
        self._on_error = on_error
        self._on_completed = on_completed

    def on_next(self, value: Any) -> None:
        if self.stopped or self.closed:
            return
        if self._on_next is not None:
            self._on_next(value)

    def on_error(self, error: BaseException) -> None:
        if self.stopped or self.closed:
            return
        self.stopped = True
        try:
            if self._on_error is None:
                raise error
            self._on_error(error)
        finally:
            self.unsubscribe()

    def on_completed(self) -> None:
        if self.stopped or self.closed:
            return
        self.stopped = True
        try:
            if self._on_completed is not None:
                self._on_completed()
        finally:
            self.unsubscribe()


def _forward(downstream: Any) -> Subscriber:
    return Subscriber(downstream.on_next, downstream.on_error, downstream.on_completed)


class Observable:
    """A cold stream: each subscription runs ``subscribe`` anew."""

    def __init__(self, subscribe: Optional[Callable[[Subscriber], Teardown]] = None) -> None:
        self._subscribe_fn = subscribe

    def _subscribe(self, subscriber: Subscriber) -> Teardown:
        if self._subscribe_fn is None:
            return None
        return self._subscribe_fn(subscriber)

    def subscribe(
        self,
        on_next: Union[OnNext, Subscriber, None] = None,
        on_error: Optional[OnError] = None,
        on_completed: Optional[OnCompleted] = None,
    ) -> Subscriber:
        if isinstance(on_next, Subscriber):
            subscriber = on_next
        else:
            subscriber = Subscriber(on_next, on_error, on_completed)
        subscriber.add(self._subscribe(subscriber))
        return subscriber

    # ── Creation ─────────────────────────────────────────────────────────

    @staticmethod
    def empty() -> "Observable":
        return Observable(lambda subscriber: subscriber.on_completed())

    @staticmethod
    def of(*values: Any) -> "Observable":
        return Observable.from_iterable(values)

    @staticmethod
    def from_iterable(iterable: Iterable[Any]) -> "Observable":
        """Emit the items of ``iterable``; a raising iterator errors the stream."""

        def subscribe(subscriber: Subscriber) -> None:
            try:
                iterator = iter(iterable)
            except Exception as exc:
                subscriber.on_error(exc)
                return
            while not subscriber.closed:
                try:
                    value = next(iterator)
                except StopIteration:
                    subscriber.on_completed()
                    return
                except Exception as exc:
                    subscriber.on_error(exc)
                    return
                subscriber.on_next(value)

        return Observable(subscribe)

    @staticmethod
    def from_future(future: Union[Awaitable[Any], concurrent.futures.Future]) -> "Observable":
        """Emit the resolved value of a future or awaitable, then complete.

        Coroutines and other awaitables are wrapped with
        ``asyncio.ensure_future`` on subscription, which requires a running
        event loop.
        """

        def subscribe(subscriber: Subscriber) -> Teardown:
            if isinstance(future, concurrent.futures.Future):
                fut: Any = future
            else:
                fut = asyncio.ensure_future(future)

            def done(f: Any) -> None:
                if f.cancelled():
                    subscriber.on_error(concurrent.futures.CancelledError())
                    return
                error = f.exception()
                if error is not None:
                    subscriber.on_error(error)
                    return
                subscriber.on_next(f.result())
                subscriber.on_completed()

            fut.add_done_callback(done)
            if isinstance(fut, asyncio.Future):
                return lambda: fut.remove_done_callback(done)
            return None

        return Observable(subscribe)

    @staticmethod
    def from_async_iterable(iterable: AsyncIterable[Any]) -> "Observable":
        """Pump an async iterator on the running event loop."""

        def subscribe(subscriber: Subscriber) -> Teardown:
            finished = False

            async def pump() -> None:
                nonlocal finished
                iterator = iterable.__aiter__()
                while not subscriber.closed:
                    try:
                        value = await iterator.__anext__()
                    except StopAsyncIteration:
                        finished = True
                        subscriber.on_completed()
                        return
                    except Exception as exc:
                        finished = True
                        subscriber.on_error(exc)
                        return
                    subscriber.on_next(value)

            task = asyncio.ensure_future(pump())

            def cancel() -> None:
                # the pump tears itself down after a terminal notification
                if not finished and not task.done():
                    task.cancel()

            return cancel

        return Observable(subscribe)

    @staticmethod
    def concat(*sources: "Observable") -> "Observable":
        """Subscribe to each source in turn once the previous one completes."""

        def subscribe(downstream: Subscriber) -> None:
            remaining = iter(sources)

            def subscribe_next() -> None:
                source = next(remaining, None)
                if source is None:
                    downstream.on_completed()
                    return
                inner = Subscriber(
                    downstream.on_next,
                    downstream.on_error,
                    lambda: (downstream.remove(inner), subscribe_next()),
                )
                downstream.add(inner)
                source.subscribe(inner)

            subscribe_next()

        return Observable(subscribe)

    # ── Operators ────────────────────────────────────────────────────────

    def _lift(self, make_upstream: Callable[[Subscriber], Subscriber]) -> "Observable":
        def subscribe(downstream: Subscriber) -> None:
            upstream = make_upstream(downstream)
            downstream.add(upstream)
            self.subscribe(upstream)

        return Observable(subscribe)

    def map(self, fn: Callable[[Any], Any]) -> "Observable":
        def make(downstream: Subscriber) -> Subscriber:
            def on_next(value: Any) -> None:
                try:
                    result = fn(value)
                except Exception as exc:
                    downstream.on_error(exc)
                    return
                downstream.on_next(result)

            return Subscriber(on_next, downstream.on_error, downstream.on_completed)

        return self._lift(make)

    def filter(self, predicate: Callable[[Any], Any]) -> "Observable":
        def make(downstream: Subscriber) -> Subscriber:
            def on_next(value: Any) -> None:
                try:
                    keep = predicate(value)
                except Exception as exc:
                    downstream.on_error(exc)
                    return
                if keep:
                    downstream.on_next(value)

            return Subscriber(on_next, downstream.on_error, downstream.on_completed)

        return self._lift(make)

    def catch(self, handler: Callable[[BaseException], "Observable"]) -> "Observable":
        """Replace an error with the stream returned by ``handler``."""

        def make(downstream: Subscriber) -> Subscriber:
            def on_error(error: BaseException) -> None:
                try:
                    fallback = handler(error)
                except Exception as exc:
                    downstream.on_error(exc)
                    return
                inner = _forward(downstream)
                downstream.add(inner)
                fallback.subscribe(inner)

            return Subscriber(downstream.on_next, on_error, downstream.on_completed)

        return self._lift(make)

    def distinct_until_changed(self) -> "Observable":
        def make(downstream: Subscriber) -> Subscriber:
            last = _NOTHING

            def on_next(value: Any) -> None:
                nonlocal last
                if last is not _NOTHING and last == value:
                    return
                last = value
                downstream.on_next(value)

            return Subscriber(on_next, downstream.on_error, downstream.on_completed)

        return self._lift(make)

    def start_with(self, *values: Any) -> "Observable":
        return Observable.concat(Observable.of(*values), self)

    def synchronize(self, lock: Any) -> "Observable":
        """Deliver every notification downstream while holding ``lock``.

        Notifications arriving from different threads are serialized; the
        lock stays held until the whole downstream chain has handled one.
        """

        def make(downstream: Subscriber) -> Subscriber:
            def on_next(value: Any) -> None:
                with lock:
                    downstream.on_next(value)

            def on_error(error: BaseException) -> None:
                with lock:
                    downstream.on_error(error)

            def on_completed() -> None:
                with lock:
                    downstream.on_completed()

            return Subscriber(on_next, on_error, on_completed)

        return self._lift(make)

    def subscribe_on(self, scheduler: Any) -> "Observable":
        """Perform the actual subscription as a unit of work on ``scheduler``."""

        def subscribe(subscriber: Subscriber) -> Teardown:
            def action() -> None:
                if not subscriber.closed:
                    self.subscribe(subscriber)

            return scheduler.schedule(action)

        return Observable(subscribe)

    def merge_all(self) -> "Observable":
        """Flatten a stream of streams, interleaving inner values by arrival."""

        def subscribe(downstream: Subscriber) -> None:
            active = 0
            outer_done = False

            def inner_completed(inner: Subscriber) -> None:
                nonlocal active
                active -= 1
                downstream.remove(inner)
                if outer_done and active == 0:
                    downstream.on_completed()

            def on_next(source: "Observable") -> None:
                nonlocal active
                active += 1
                inner = Subscriber(
                    downstream.on_next,
                    downstream.on_error,
                    lambda: inner_completed(inner),
                )
                downstream.add(inner)
                source.subscribe(inner)

            def on_completed() -> None:
                nonlocal outer_done
                outer_done = True
                if active == 0:
                    downstream.on_completed()

            outer = Subscriber(on_next, downstream.on_error, on_completed)
            downstream.add(outer)
            self.subscribe(outer)

        return Observable(subscribe)

    def publish_replay(self, buffer_size: Optional[int] = None) -> "ConnectableObservable":
        return ConnectableObservable(self, ReplaySubject(buffer_size))


class Subject(Observable):
    """Hot multicast channel holding a mapping of subscriber id to subscriber."""

    def __init__(self) -> None:
        super().__init__()
        self._observers: Dict[int, Subscriber] = {}
        self._ids = itertools.count()
        self.is_stopped = False
        self._has_error = False
        self._error: Optional[BaseException] = None

    @property
    def observer_count(self) -> int:
        return len(self._observers)

    def _register(self, subscriber: Subscriber) -> Teardown:
        key = next(self._ids)
        self._observers[key] = subscriber
        return lambda: self._observers.pop(key, None)

    def _replay_terminal(self, subscriber: Subscriber) -> None:
        if self._has_error:
            assert self._error is not None
            subscriber.on_error(self._error)
        else:
            subscriber.on_completed()

    def _subscribe(self, subscriber: Subscriber) -> Teardown:
        if self.is_stopped:
            self._replay_terminal(subscriber)
            return None
        return self._register(subscriber)

    def on_next(self, value: Any) -> None:
        if self.is_stopped:
            return
        for subscriber in list(self._observers.values()):
            subscriber.on_next(value)

    def on_error(self, error: BaseException) -> None:
        if self.is_stopped:
            return
        self.is_stopped = True
        self._has_error = True
        self._error = error
        observers = list(self._observers.values())
        self._observers.clear()
        for subscriber in observers:
            subscriber.on_error(error)

    def on_completed(self) -> None:
        if self.is_stopped:
            return
        self.is_stopped = True
        observers = list(self._observers.values())
        self._observers.clear()
        for subscriber in observers:
            subscriber.on_completed()


class ReplaySubject(Subject):
    """Subject that replays buffered values to late subscribers.

    A ``buffer_size`` of None keeps every value.
    """

    def __init__(self, buffer_size: Optional[int] = None) -> None:
        super().__init__()
        self._buffer: Deque[Any] = deque(maxlen=buffer_size)

    @property
    def has_value(self) -> bool:
        return len(self._buffer) > 0

    @property
    def value(self) -> Any:
        """Most recently buffered value."""
        if not self._buffer:
            raise LookupError("ReplaySubject has not received a value")
        return self._buffer[-1]

    def on_next(self, value: Any) -> None:
        if self.is_stopped:
            return
        self._buffer.append(value)
        super().on_next(value)

    def _subscribe(self, subscriber: Subscriber) -> Teardown:
        teardown = None if self.is_stopped else self._register(subscriber)
        for value in list(self._buffer):
            if subscriber.closed:
                break
            subscriber.on_next(value)
        if self.is_stopped:
            self._replay_terminal(subscriber)
        return teardown


class ConnectableObservable(Observable):
    """Shares one subscription to ``source`` through ``subject``.

    The source is subscribed at most once: after the subject terminates, or
    after ``disconnect``, ``connect`` is a no-op and late subscribers only
    receive what the subject replays followed by its terminal notification.
    """

    def __init__(self, source: Observable, subject: Subject) -> None:
        super().__init__()
        self._source = source
        self._subject = subject
        self._connection: Optional[Subscription] = None

    @property
    def subject(self) -> Subject:
        return self._subject

    def _subscribe(self, subscriber: Subscriber) -> Teardown:
        return self._subject.subscribe(subscriber)

    def connect(self) -> Subscription:
        if self._connection is not None:
            return self._connection
        connection = Subscription()
        self._connection = connection
        if self._subject.is_stopped:
            connection.unsubscribe()
            return connection
        source_subscriber = _forward(self._subject)
        connection.add(source_subscriber)
        self._source.subscribe(source_subscriber)
        return connection

    def disconnect(self) -> None:
        """Release the source subscription and complete the subject."""
        if self._connection is None:
            self._connection = Subscription()
        self._connection.unsubscribe()
        self._subject.on_completed()

    def ref_count(self) -> Observable:
        """Connect on the first subscriber, disconnect after the last leaves."""
        count = 0

        def subscribe(subscriber: Subscriber) -> Teardown:
            nonlocal count
            count += 1
            self.subscribe(subscriber)
            if count == 1:
                self.connect()

            def release() -> None:
                nonlocal count
                count -= 1
                if count == 0:
                    self.disconnect()

            return release

        return Observable(subscribe)
