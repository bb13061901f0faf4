"""Remote operations: backend protocol and typed outcomes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from loguru import logger

from trainerdesk.bridge.channels import EventHandler, Subscription

OPEN_NODE = "open_node"
OPEN_HRM = "open_hrm"
OPEN_FITNESS_EQUIPMENT = "open_fitness_equipment"
LOAD_WORKOUT = "load_workout"
START_WORKOUT = "start_workout"


class RemoteError(Exception):
    """Failure reported by the backend for a remote operation."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class Backend(Protocol):
    async def invoke(self, operation: str, **arguments: Any) -> Any: ...

    def listen(self, channel: str, handler: EventHandler) -> Subscription: ...


@dataclass(frozen=True)
class OperationOutcome:
    operation: str
    value: Any = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def call_remote(backend: Backend, operation: str, **arguments: Any) -> OperationOutcome:
    """Invoke ``operation`` and fold any failure into the returned outcome."""
    logger.debug(f"invoking {operation}")
    try:
        value = await backend.invoke(operation, **arguments)
    except RemoteError as exc:
        logger.warning(f"{operation} failed: {exc.message}")
        return OperationOutcome(operation, error=exc.message)
    except Exception as exc:
        logger.exception(f"{operation} failed with a non-text error")
        return OperationOutcome(
            operation,
            error=f"{operation} failed: {type(exc).__name__}: {exc}",
        )
    logger.debug(f"{operation} completed")
    return OperationOutcome(operation, value=value)
