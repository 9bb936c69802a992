"""Tests for the deprecated ``dispatch`` and ``schedule`` entry points."""
from __future__ import annotations

import concurrent.futures
import warnings
from typing import Any, List

import pytest

from agenda_dispatch import INIT_ACTION, Engine, InputContractError, Observable, create_engine


def trail(state: Any, action: Any) -> tuple:
    if action is INIT_ACTION:
        return ()
    return state + (action,)


class TestDispatch:
    """Legacy single-action entry point."""

    def test_plain_action_is_published_and_returned(self, engine: Engine) -> None:
        store = engine.reduce(trail)
        action = {"type": "ADD"}
        with pytest.deprecated_call():
            result = engine.dispatch(action)
        assert result is action
        assert store.state == (action,)

    def test_deprecation_notice_is_emitted_once(self, engine: Engine) -> None:
        with pytest.deprecated_call():
            engine.dispatch({"type": "ADD"})
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            engine.dispatch({"type": "ADD"})

    def test_notice_is_per_engine(self) -> None:
        for _ in range(2):
            eng = create_engine()
            with pytest.deprecated_call():
                eng.dispatch({"type": "ADD"})

    def test_thunk_receives_emit_only(self, engine: Engine) -> None:
        store = engine.reduce(trail)
        received: List[Any] = []

        def thunk(emit: Any) -> str:
            received.append(emit)
            emit("a")
            emit("b")
            return "done"

        with pytest.deprecated_call():
            result = engine.dispatch(thunk)
        assert result == "done"
        assert len(received) == 1
        assert store.state == ("a", "b")

    def test_future_is_published_and_returned(self, engine: Engine) -> None:
        store = engine.reduce(trail)
        future: concurrent.futures.Future = concurrent.futures.Future()
        with pytest.deprecated_call():
            result = engine.dispatch(future)
        assert result is future
        future.set_result("late")
        assert store.state == ("late",)

    @pytest.mark.parametrize("invalid", [None, "text", b"raw", 3, 2.5, True])
    def test_rejects_scalars(self, engine: Engine, invalid: Any) -> None:
        with pytest.deprecated_call():
            with pytest.raises(InputContractError, match="Expected a thunk, promise or action"):
                engine.dispatch(invalid)


class TestSchedule:
    """Legacy multi-agenda entry point."""

    def test_single_agenda(self, engine: Engine) -> None:
        store = engine.reduce(trail)
        with pytest.deprecated_call():
            engine.schedule(Observable.of("a", "b"))
        assert store.state == ("a", "b")

    def test_multiple_agendas_are_concatenated(self, engine: Engine, collect: Any) -> None:
        store = engine.reduce(trail)
        agendas = collect(engine)
        with pytest.deprecated_call():
            engine.schedule(Observable.of("a"), Observable.of("b", "c"))
        assert len(agendas) == 1
        assert store.state == ("a", "b", "c")

    def test_no_agendas_is_a_no_op(self, engine: Engine, collect: Any) -> None:
        agendas = collect(engine)
        with pytest.deprecated_call():
            engine.schedule()
        assert agendas == []

    def test_rejects_non_observables(self, engine: Engine) -> None:
        with pytest.deprecated_call():
            with pytest.raises(InputContractError, match="Observables"):
                engine.schedule(Observable.of("a"), ["b"])  # type: ignore[arg-type]

    def test_input_contract_error_is_an_assertion_error(self, engine: Engine) -> None:
        with pytest.deprecated_call():
            with pytest.raises(AssertionError):
                engine.schedule("not an agenda")  # type: ignore[arg-type]
