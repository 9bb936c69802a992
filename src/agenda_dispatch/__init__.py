"""
agenda-dispatch: Reactive state engine folding agendas of actions into stores.

Callers publish agendas (single actions, thunks, futures, iterators or
Observables) with ``Engine.next``. Every registered reducer folds every
agenda into its own Store, a replaying stream of distinct states. An agenda
that fails is rolled back in each Store: exactly its own actions are removed
from that Store's history, while actions from concurrently interleaved
agendas are kept.

Example:
    >>> from agenda_dispatch import create_engine
    >>> engine = create_engine()
    >>> def counter(state, action):
    ...     if action == "INC":
    ...         return (state or 0) + 1
    ...     return state or 0
    >>> store = engine.reduce(counter)
    >>> engine.next("INC")
    >>> store.state
    1
"""

__version__ = "1.0.0"

# Core data models
from agenda_dispatch.models import (
    INIT_ACTION,
    Cursor,
    AgendaDispatchError,
    InputContractError,
    ConfigurationError,
    EngineOptions,
    LoggingOptions,
)

# Stream primitives
from agenda_dispatch.observable import (
    Subscription,
    Subscriber,
    Observable,
    Subject,
    ReplaySubject,
    ConnectableObservable,
)

# Scheduling strategies
from agenda_dispatch.scheduler import (
    Scheduler,
    QueueScheduler,
    ImmediateScheduler,
    AsyncioScheduler,
    queue_scheduler,
)

# Agenda normalization
from agenda_dispatch.agenda import Agenda, normalize

# Diagnostics
from agenda_dispatch.logger import DiagnosticSink, StoreLogger

# Stores and engine
from agenda_dispatch.store import Store
from agenda_dispatch.registry import ReducerRegistry
from agenda_dispatch.dispatcher import Engine, create_engine, create_dispatcher

__all__ = [
    # Core data models
    "INIT_ACTION",
    "Cursor",
    "AgendaDispatchError",
    "InputContractError",
    "ConfigurationError",
    "EngineOptions",
    "LoggingOptions",
    # Stream primitives
    "Subscription",
    "Subscriber",
    "Observable",
    "Subject",
    "ReplaySubject",
    "ConnectableObservable",
    # Scheduling strategies
    "Scheduler",
    "QueueScheduler",
    "ImmediateScheduler",
    "AsyncioScheduler",
    "queue_scheduler",
    # Agenda normalization
    "Agenda",
    "normalize",
    # Diagnostics
    "DiagnosticSink",
    "StoreLogger",
    # Stores and engine
    "Store",
    "ReducerRegistry",
    "Engine",
    "create_engine",
    "create_dispatcher",
]
