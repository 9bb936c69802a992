"""Unit tests for the identity-keyed reducer registry."""
from __future__ import annotations

from typing import Any, List

import pytest

from agenda_dispatch import ReducerRegistry, Store, Subject


def _reducer(state: Any, action: Any) -> Any:
    return state


def _store(reducer: Any) -> Store:
    return Store(reducer, Subject())


def test_get_or_create_runs_factory_once() -> None:
    registry = ReducerRegistry()
    built: List[Store] = []

    def factory() -> Store:
        store = _store(_reducer)
        built.append(store)
        return store

    first = registry.get_or_create(_reducer, factory)
    second = registry.get_or_create(_reducer, factory)
    assert first is second
    assert built == [first]
    assert _reducer in registry
    assert len(registry) == 1


def test_equal_but_distinct_reducers_are_separate() -> None:
    registry = ReducerRegistry()

    class Reducer:
        def __eq__(self, other: object) -> bool:
            return True

        def __hash__(self) -> int:
            return 0

        def __call__(self, state: Any, action: Any) -> Any:
            return state

    first, second = Reducer(), Reducer()
    registry.get_or_create(first, lambda: _store(first))
    registry.get_or_create(second, lambda: _store(second))
    assert len(registry) == 2
    assert registry.get(first) is not registry.get(second)


def test_factory_error_registers_nothing() -> None:
    registry = ReducerRegistry()

    def factory() -> Store:
        raise ValueError("genesis failed")

    with pytest.raises(ValueError):
        registry.get_or_create(_reducer, factory)
    assert registry.get(_reducer) is None
    assert len(registry) == 0


def test_clear_returns_held_stores() -> None:
    registry = ReducerRegistry()
    store = registry.get_or_create(_reducer, lambda: _store(_reducer))
    assert registry.stores() == [store]
    assert registry.clear() == [store]
    assert registry.stores() == []
    assert _reducer not in registry
