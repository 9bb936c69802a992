"""Diagnostic sinks for agendas and stores."""
import logging
from typing import Any, Optional, Protocol, Sequence, Tuple

from agenda_dispatch.observable import Observable, Subscription

logger = logging.getLogger("agenda_dispatch.logger")


class DiagnosticSink(Protocol):
    """Receives every state change and rollback of one store/agenda fold."""

    def change(self, action: Any, state: Any) -> None:
        ...

    def revert(
        self,
        states: Tuple[Any, Any],
        error: BaseException,
        actions: Sequence[Any],
    ) -> None:
        ...


class StoreLogger:
    """Sink writing a store's folds of one agenda to the library logger."""

    def __init__(self, store_name: str, agenda: Any = None) -> None:
        self.store_name = store_name
        self.agenda_id: Optional[str] = getattr(agenda, "agenda_id", None)

    def change(self, action: Any, state: Any) -> None:
        logger.debug(
            "[%s] agenda %s: %r -> %r",
            self.store_name, self.agenda_id, action, state,
        )

    def revert(
        self,
        states: Tuple[Any, Any],
        error: BaseException,
        actions: Sequence[Any],
    ) -> None:
        previous_state, state = states
        logger.warning(
            "[%s] agenda %s failed with %r; reverted %d action(s) %r: %r -> %r",
            self.store_name, self.agenda_id, error, len(actions),
            list(actions), previous_state, state,
        )


def report_error(error: BaseException, store_name: str) -> None:
    """Default error channel for fold errors when no sink is configured."""
    logger.error(
        "Agenda folded by store %s failed; its actions were rolled back",
        store_name,
        exc_info=error,
    )


def log_agendas(dispatcher: Observable) -> Subscription:
    """Log the lifecycle and actions of every agenda on ``dispatcher``."""

    def on_agenda(agenda: Observable) -> None:
        agenda_id = getattr(agenda, "agenda_id", None)
        logger.info("Agenda %s started", agenda_id)
        agenda.subscribe(
            lambda action: logger.debug("Agenda %s action: %r", agenda_id, action),
            lambda error: logger.warning("Agenda %s failed: %r", agenda_id, error),
            lambda: logger.info("Agenda %s completed", agenda_id),
        )

    return dispatcher.subscribe(on_agenda)
