"""Core data models for agenda-dispatch library."""
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _InitAction:
    """Marker action used to ask a reducer for its genesis state."""

    __slots__ = ()
    type = "_INIT_"

    def __repr__(self) -> str:
        return "INIT_ACTION"


INIT_ACTION = _InitAction()

Reducer = Callable[[Any, Any], Any]


@dataclass(frozen=True, eq=False)
class Cursor:
    """Immutable history node: the state reached by applying ``action``.

    ``previous`` links back towards the genesis Cursor, whose ``action`` is
    ``INIT_ACTION`` and whose ``previous`` is None. ``origin`` tags the fold
    that contributed the node and is carried over when a rollback replays it.
    """

    action: Any
    state: Any
    previous: Optional["Cursor"] = None
    origin: Any = None

    def __repr__(self) -> str:
        """Human-readable representation."""
        return f"Cursor(action={self.action!r}, state={self.state!r})"

    @property
    def is_genesis(self) -> bool:
        return self.previous is None


# Custom Exceptions
class AgendaDispatchError(Exception):
    """Base exception for all library errors."""
    pass


class InputContractError(AgendaDispatchError, AssertionError):
    """Unsupported input shape passed to an engine entry point."""
    pass


class ConfigurationError(AgendaDispatchError):
    """Engine options failed validation."""
    pass


# ---------------------------------------------------------------------------
# Options
# ---------------------------------------------------------------------------


class LoggingOptions(BaseModel):
    """Which diagnostic loggers an engine attaches."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    agendas: bool = Field(
        default=False,
        description="Log every agenda passing through the dispatcher",
    )
    stores: bool = Field(
        default=False,
        description="Attach a StoreLogger sink to every store fold",
    )


class EngineOptions(BaseModel):
    """Validated configuration for ``create_engine``."""

    model_config = ConfigDict(
        frozen=True, extra="forbid", arbitrary_types_allowed=True
    )

    scheduler: Any = Field(
        default=None,
        description="Scheduling strategy (None selects the queue scheduler)",
    )
    logging: LoggingOptions = Field(
        default_factory=LoggingOptions,
        description="Diagnostic logging flags",
    )

    @field_validator("logging", mode="before")
    @classmethod
    def _expand_logging_shorthand(
        cls, v: Union[None, bool, Dict[str, Any], LoggingOptions]
    ) -> Union[Dict[str, Any], LoggingOptions]:
        """Expand ``True``/``False``/``None`` into both logging flags."""
        if v is None:
            return {}
        if isinstance(v, bool):
            return {"agendas": v, "stores": v}
        return v

    @field_validator("scheduler")
    @classmethod
    def _check_scheduler(cls, v: Any) -> Any:
        if v is not None and not callable(getattr(v, "schedule", None)):
            raise ValueError(
                f"scheduler must expose a callable 'schedule'; "
                f"got {type(v).__name__}"
            )
        return v
