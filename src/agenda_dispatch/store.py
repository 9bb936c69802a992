"""Stores and the reduction pipeline behind them.

A Store folds every Agenda observed on the dispatcher through one reducer.
Each Agenda is folded from an ``anchor`` (the Store's Cursor when the Agenda
arrived) and tags every Cursor it contributes with its own origin. If the
Agenda fails, exactly the Cursors carrying that origin are excised from the
history; Cursors contributed by other Agendas are kept in their original
order, even when they hold the very same action objects.

The per-Agenda state sequences are merged by arrival, collapsed with a
store-wide distinct-until-changed, and exposed with replay of the latest
state. Every notification reaching the pipeline is delivered under the
Store's lock, so folds driven from several threads (futures resolved on
worker threads) emit states in the order they were applied.
"""
import logging
import threading
from typing import Any, Callable, List, Optional

from agenda_dispatch.logger import DiagnosticSink, report_error
from agenda_dispatch.models import Cursor, Reducer
from agenda_dispatch.observable import Observable, Subscriber, Subscription, Teardown
from agenda_dispatch.state import (
    create_state,
    do_next,
    filter_actions,
    history,
)

logger = logging.getLogger("agenda_dispatch.store")

SinkFactory = Callable[[str, Observable], DiagnosticSink]


class Store(Observable):
    """Continuously-updated, replay-cached sequence of one reducer's states.

    Raises:
        Exception: Whatever the reducer raises while computing the genesis
            state; the Store is not created and never connects.
    """

    def __init__(
        self,
        reducer: Reducer,
        agendas: Observable,
        init: Any = None,
        *,
        name: Optional[str] = None,
        sink_factory: Optional[SinkFactory] = None,
    ) -> None:
        super().__init__()
        self._reducer = reducer
        self.name = name or getattr(reducer, "__name__", None) or repr(reducer)
        self._sink_factory = sink_factory
        self._lock = threading.RLock()
        self._cursor = create_state(reducer, init)

        states = (
            agendas
            .synchronize(self._lock)
            .map(self._fold)
            .merge_all()
            .start_with(self._cursor.state)
            .distinct_until_changed()
            .publish_replay(1)
        )
        self._states = states
        self._connection: Subscription = states.connect()
        logger.debug("Store %s connected with genesis state %r", self.name, self._cursor.state)

    def __repr__(self) -> str:
        """Human-readable representation."""
        return f"Store(name={self.name}, state={self.state!r})"

    @property
    def reducer(self) -> Reducer:
        return self._reducer

    @property
    def cursor(self) -> Cursor:
        return self._cursor

    @property
    def state(self) -> Any:
        """The most recently emitted state."""
        return self._states.subject.value  # type: ignore[attr-defined]

    @property
    def disposed(self) -> bool:
        return self._connection.closed

    def history(self) -> List[Cursor]:
        """Cursors from genesis to the current one, oldest first."""
        return history(self._cursor)

    def dispose(self) -> None:
        """Disconnect from the dispatcher; already-started folds finish."""
        if not self._connection.closed:
            logger.debug("Store %s disposed", self.name)
        with self._lock:
            self._states.disconnect()

    def _subscribe(self, subscriber: Subscriber) -> Teardown:
        with self._lock:
            return self._states.subscribe(subscriber)

    # ── Reduction pipeline ───────────────────────────────────────────────

    def _fold(self, agenda: Observable) -> Observable:
        """Map one Agenda to the states it produces in this Store."""
        with self._lock:
            anchor = self._cursor
        origin = object()
        applied: List[Any] = []
        sink = self._sink_factory(self.name, agenda) if self._sink_factory else None

        def apply(action: Any) -> Any:
            with self._lock:
                self._cursor = do_next(self._cursor, self._reducer, action, origin)
                applied.append(action)
                state = self._cursor.state
            if sink is not None:
                sink.change(action, state)
            return state

        def recover(error: BaseException) -> Observable:
            with self._lock:
                previous_state = self._cursor.state
                self._cursor = filter_actions(
                    self._cursor,
                    anchor,
                    self._reducer,
                    origin,
                )
                state = self._cursor.state
            if sink is None:
                report_error(error, self.name)
            else:
                sink.revert((previous_state, state), error, list(applied))
            return Observable.of(state)

        return (
            agenda
            .synchronize(self._lock)
            .filter(bool)
            .map(apply)
            .catch(recover)
            .distinct_until_changed()
        )
