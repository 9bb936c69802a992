"""Shared pytest fixtures for all tests."""
from typing import Any, Callable, Iterator, List

import pytest

from agenda_dispatch import Engine, Observable, create_engine


@pytest.fixture
def engine() -> Iterator[Engine]:
    """Engine with the default queue scheduler, disposed after the test."""
    eng = create_engine()
    yield eng
    eng.dispose()


@pytest.fixture
def collect() -> Callable[[Observable], List[Any]]:
    """Subscribe to a stream and return the list its values are appended to."""

    def _collect(stream: Observable) -> List[Any]:
        values: List[Any] = []
        stream.subscribe(values.append)
        return values

    return _collect
