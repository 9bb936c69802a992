"""Agenda normalization.

Turns every input shape accepted by ``Engine.next`` into an Agenda, the
stream of actions that the dispatcher multicasts to every store.

Accepted shapes:
    - ``Observable``: used as-is.
    - futures, coroutines and other awaitables: a single deferred action.
    - async iterators: an externally-driven stream.
    - iterators and generator objects: a synchronous stream.
    - callables (thunks, generator functions): invoked with ``(emit, fold)``;
      a stream they return becomes an additional Agenda.
    - anything else: a plain action, wrapped as a single-element Agenda.
"""
from __future__ import annotations

import asyncio
import concurrent.futures
import inspect
from collections.abc import AsyncIterable, Iterator
from typing import Any, Callable, Optional

from ulid import ULID

from agenda_dispatch.models import InputContractError
from agenda_dispatch.observable import Observable, Subscriber, Teardown


class Agenda(Observable):
    """A normalized agenda as published on the dispatcher.

    The source is subscribed on ``scheduler`` and shared through a
    replaying, reference-counted connection, so every store folds the same
    run of the source independently.
    """

    def __init__(self, source: Observable, scheduler: Any) -> None:
        super().__init__()
        self.agenda_id = str(ULID())
        self._shared = source.subscribe_on(scheduler).publish_replay().ref_count()

    def _subscribe(self, subscriber: Subscriber) -> Teardown:
        return self._shared._subscribe(subscriber)

    def __repr__(self) -> str:
        """Human-readable representation."""
        return f"Agenda(agenda_id={self.agenda_id})"


def is_observable(value: Any) -> bool:
    return isinstance(value, Observable)


def is_deferred(value: Any) -> bool:
    """True for futures and awaitables (a single value arriving later)."""
    return isinstance(value, concurrent.futures.Future) or inspect.isawaitable(value)


def _needs_event_loop(value: Any) -> bool:
    if isinstance(value, concurrent.futures.Future) or asyncio.isfuture(value):
        return False
    return inspect.isawaitable(value) or isinstance(value, AsyncIterable)


def require_event_loop(value: Any) -> None:
    """Reject loop-bound inputs when no asyncio event loop is running.

    Raises:
        InputContractError: If ``value`` is a coroutine, awaitable or async
            iterator and the caller is not inside a running event loop.
    """
    if not _needs_event_loop(value):
        return
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        if inspect.iscoroutine(value):
            value.close()
        raise InputContractError(
            f"Awaitables and async iterators can only be used as agendas "
            f"inside a running event loop; got {type(value).__name__}"
        ) from None


def to_observable(value: Any) -> Optional[Observable]:
    """Convert a stream-like value into an Observable, or None if it is not one."""
    if is_observable(value):
        return value
    if is_deferred(value):
        require_event_loop(value)
        return Observable.from_future(value)
    if isinstance(value, AsyncIterable):
        require_event_loop(value)
        return Observable.from_async_iterable(value)
    if isinstance(value, Iterator):
        return Observable.from_iterable(value)
    return None


def normalize(
    value: Any,
    emit: Callable[[Any], None],
    fold: Callable[..., Any],
) -> Optional[Observable]:
    """Return the Agenda described by one ``next`` input.

    Thunks are invoked synchronously here with ``emit`` (publish a fresh
    Agenda) and ``fold`` (register or look up a Store); their ``emit`` calls
    publish independently. Returns None when a thunk produced no stream.

    Raises:
        InputContractError: For loop-bound inputs outside an event loop.
    """
    stream = to_observable(value)
    if stream is not None:
        return stream
    if callable(value):
        return to_observable(value(emit, fold))
    return Observable.of(value)
