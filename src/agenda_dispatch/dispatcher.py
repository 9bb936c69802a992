"""The engine: dispatcher channel, reducer registration and entry points."""
import functools
import logging
import warnings
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from agenda_dispatch.agenda import (
    Agenda,
    is_deferred,
    is_observable,
    normalize,
    require_event_loop,
)
from agenda_dispatch.logger import StoreLogger, log_agendas
from agenda_dispatch.models import (
    ConfigurationError,
    EngineOptions,
    InputContractError,
    Reducer,
)
from agenda_dispatch.observable import Observable, Subject, Subscriber, Subscription, Teardown
from agenda_dispatch.registry import ReducerRegistry
from agenda_dispatch.scheduler import queue_scheduler
from agenda_dispatch.store import Store

logger = logging.getLogger("agenda_dispatch.dispatcher")

_SCALAR_TYPES = (str, bytes, int, float, bool)


def warn_once(message: str) -> Callable[[], None]:
    """Return a callable emitting ``message`` as a DeprecationWarning once."""
    warned = False

    def notice() -> None:
        nonlocal warned
        if warned:
            return
        warned = True
        warnings.warn(message, DeprecationWarning, stacklevel=3)

    return notice


class Engine(Observable):
    """Reactive state engine.

    Subscribing to the engine observes the dispatcher channel: every Agenda
    published from that point on, with no replay of earlier ones.

    Example:
        >>> engine = create_engine()
        >>> store = engine.reduce(lambda state, action: (state or 0) + 1)
        >>> engine.next({"type": "INC"})
        >>> store.state
        2
    """

    def __init__(self, options: EngineOptions) -> None:
        super().__init__()
        self.options = options
        self.scheduler = options.scheduler or queue_scheduler
        self._dispatcher = Subject()
        self._registry = ReducerRegistry()
        self._dispatch_notice = warn_once(
            "Dispatcher method `dispatch` is deprecated. Please use `next` instead."
        )
        self._schedule_notice = warn_once(
            "Dispatcher method `schedule` is deprecated. Please use `next` instead."
        )
        self._agenda_log: Optional[Subscription] = None
        if options.logging.agendas:
            self._agenda_log = log_agendas(self._dispatcher)

    def _subscribe(self, subscriber: Subscriber) -> Teardown:
        return self._dispatcher.subscribe(subscriber)

    def _publish(self, source: Observable) -> None:
        agenda = Agenda(source, self.scheduler)
        # Every store attaches to the agenda before its source starts.
        self.scheduler.schedule(lambda: self._dispatcher.on_next(agenda))

    # ── Public operations ────────────────────────────────────────────────

    def next(self, arg: Any) -> None:
        """Publish ``arg`` as an Agenda.

        Accepts a plain action, a thunk or generator function (called with
        ``emit`` and ``fold``), a future/awaitable, an iterator or async
        iterator, or an Observable.

        Raises:
            InputContractError: For awaitables or async iterators passed
                outside a running event loop.
        """
        agenda = normalize(arg, self.next, self.reduce)
        if agenda is not None:
            self._publish(agenda)

    def reduce(self, fn: Reducer, init: Any = None) -> Store:
        """Return the Store of ``fn``, registering it on first use.

        ``init`` is only used by the first registration; the genesis state
        is ``fn(init, INIT_ACTION)``.
        """

        def create() -> Store:
            store = Store(
                fn,
                self._dispatcher,
                init,
                name=getattr(fn, "__name__", None) or str(len(self._registry)),
                sink_factory=StoreLogger if self.options.logging.stores else None,
            )
            logger.debug("Registered store %s", store.name)
            return store

        return self._registry.get_or_create(fn, create)

    def wrap_actions(
        self, arg: Union[Callable[..., Any], Mapping[str, Callable[..., Any]]]
    ) -> Union[Callable[..., Any], Dict[str, Callable[..., Any]]]:
        """Bind action creators so calling them publishes their result.

        Raises:
            InputContractError: If ``arg`` is neither a callable nor a
                mapping of callables.
        """
        if isinstance(arg, Mapping):
            return {key: self._bind_action(creator) for key, creator in arg.items()}
        return self._bind_action(arg)

    def _bind_action(self, creator: Callable[..., Any]) -> Callable[..., Any]:
        if not callable(creator):
            raise InputContractError(
                f"Expected an action creator or a mapping of action creators; "
                f"got {type(creator).__name__}"
            )

        @functools.wraps(creator)
        def bound(*args: Any, **kwargs: Any) -> Any:
            action = creator(*args, **kwargs)
            self.next(action)
            return action

        return bound

    def stores(self) -> List[Store]:
        return self._registry.stores()

    def dispose(self) -> None:
        """Disconnect every Store and the agenda logger."""
        for store in self._registry.clear():
            store.dispose()
        if self._agenda_log is not None:
            self._agenda_log.unsubscribe()
            self._agenda_log = None

    # ── Deprecated entry points ──────────────────────────────────────────

    def dispatch(self, action: Any) -> Any:
        """Deprecated: use ``next``."""
        self._dispatch_notice()
        if action is None or isinstance(action, _SCALAR_TYPES):
            raise InputContractError("Expected a thunk, promise or action as argument.")

        if is_deferred(action):
            require_event_loop(action)
            self._publish(Observable.from_future(action))
            return action

        if callable(action):
            return action(lambda x: self._publish(Observable.of(x)))

        self._publish(Observable.of(action))
        return action

    def schedule(self, *agendas: Observable) -> None:
        """Deprecated: use ``next``."""
        self._schedule_notice()
        if not all(is_observable(agenda) for agenda in agendas):
            raise InputContractError("Agendas can only be represented by Observables.")

        if len(agendas) == 1:
            self._publish(agendas[0])
        elif len(agendas) > 1:
            self._publish(Observable.concat(*agendas))


def create_engine(
    options: Union[EngineOptions, Mapping[str, Any], None] = None,
    **kwargs: Any,
) -> Engine:
    """Create an Engine from options, a mapping, or keyword arguments.

    Raises:
        ConfigurationError: If the options fail validation.
    """
    if isinstance(options, EngineOptions) and not kwargs:
        return Engine(options)
    if isinstance(options, EngineOptions):
        data: Dict[str, Any] = {"scheduler": options.scheduler, "logging": options.logging}
    else:
        data = dict(options or {})
    data.update(kwargs)
    try:
        validated = EngineOptions.model_validate(data)
    except PydanticValidationError as exc:
        raise ConfigurationError(f"Invalid engine options: {exc}") from exc
    return Engine(validated)


create_dispatcher = create_engine
