"""Unit tests for agenda normalization."""
from __future__ import annotations

import concurrent.futures
from typing import Any, List, Optional

import pytest

from agenda_dispatch import Agenda, InputContractError, Observable
from agenda_dispatch.agenda import is_deferred, normalize, to_observable
from agenda_dispatch.scheduler import ImmediateScheduler


def _values(stream: Observable) -> List[Any]:
    values: List[Any] = []
    stream.subscribe(values.append)
    return values


def _normalize(value: Any, emitted: Optional[List[Any]] = None) -> Any:
    sink: List[Any] = [] if emitted is None else emitted
    return normalize(value, sink.append, lambda reducer, init=None: (reducer, init))


class TestNormalize:
    """Input shapes accepted by ``next``."""

    def test_plain_action(self) -> None:
        action = {"type": "ADD"}
        assert _values(_normalize(action)) == [action]

    def test_observable_is_used_as_is(self) -> None:
        source = Observable.of(1, 2)
        assert _normalize(source) is source

    def test_iterator_is_a_stream(self) -> None:
        assert _values(_normalize(iter([1, 2]))) == [1, 2]

    def test_collections_are_plain_actions(self) -> None:
        for value in ([1, 2], (1, 2), {"a": 1}):
            assert _values(_normalize(value)) == [value]

    def test_thunk_gets_emit_and_fold(self) -> None:
        emitted: List[Any] = []
        received: List[Any] = []

        def thunk(emit: Any, fold: Any) -> None:
            received.append(fold("reducer", 3))
            emit("side effect")

        assert _normalize(thunk, emitted) is None
        assert emitted == ["side effect"]
        assert received == [("reducer", 3)]

    def test_thunk_returned_stream_becomes_agenda(self) -> None:
        result = _normalize(lambda emit, fold: iter(["x"]))
        assert _values(result) == ["x"]

    def test_generator_function(self) -> None:
        def steps(emit: Any, fold: Any):
            yield "a"
            yield "b"

        assert _values(_normalize(steps)) == ["a", "b"]

    def test_future(self) -> None:
        future: concurrent.futures.Future = concurrent.futures.Future()
        future.set_result("resolved")
        assert _values(_normalize(future)) == ["resolved"]


class TestEventLoopRequirement:
    """Loop-bound inputs outside a running loop."""

    def test_coroutine_rejected_and_closed(self) -> None:
        async def later() -> str:
            return "never"

        coro = later()
        with pytest.raises(InputContractError, match="running event loop"):
            to_observable(coro)
        assert coro.cr_frame is None

    def test_async_generator_rejected(self) -> None:
        async def ticks():
            yield 1

        with pytest.raises(InputContractError):
            to_observable(ticks())

    def test_concurrent_future_needs_no_loop(self) -> None:
        future: concurrent.futures.Future = concurrent.futures.Future()
        assert is_deferred(future)
        assert to_observable(future) is not None


class TestAgenda:
    """Shared agenda as published on the dispatcher."""

    def test_source_runs_once_for_every_subscriber(self) -> None:
        runs: List[int] = []

        def source():
            runs.append(1)
            yield "x"
            yield "y"

        scheduler = ImmediateScheduler()
        agenda = Agenda(Observable.from_iterable(source()), scheduler)
        first: List[Any] = []
        second: List[Any] = []

        agenda.subscribe(first.append)
        agenda.subscribe(second.append)
        assert runs == [1]
        assert first == ["x", "y"]
        assert second == ["x", "y"]

    def test_agenda_ids_are_unique(self) -> None:
        scheduler = ImmediateScheduler()
        first = Agenda(Observable.empty(), scheduler)
        second = Agenda(Observable.empty(), scheduler)
        assert first.agenda_id != second.agenda_id
        assert first.agenda_id in repr(first)
