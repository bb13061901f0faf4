"""Device lifecycle: fail-fast open sequence and connectivity reconciliation."""

from __future__ import annotations

from typing import Optional

from loguru import logger

from trainerdesk.bridge.channels import NODE_CONNECTED, Subscription
from trainerdesk.bridge.operations import (
    OPEN_FITNESS_EQUIPMENT,
    OPEN_HRM,
    OPEN_NODE,
    Backend,
    call_remote,
)
from trainerdesk.bridge.payloads import PayloadError, decode_connectivity
from trainerdesk.core.state import ConnectPhase, ErrorKind, SessionState

DEVICE_OPERATIONS = (OPEN_HRM, OPEN_FITNESS_EQUIPMENT)


class DeviceLifecycleController:
    """Brings the backend from "not connected" to "ready to train".

    Two independent signals are tracked: ``transport_open_requested`` follows
    the outcome of the ``open_node`` operation, ``live_connected`` follows the
    ``node_connected`` channel only. Neither is derived from the other.
    """

    def __init__(self, backend: Backend, state: SessionState) -> None:
        self._backend = backend
        self._state = state
        self._subscription: Optional[Subscription] = None
        self._shut_down = False

    @property
    def attached(self) -> bool:
        return self._subscription is not None and not self._subscription.closed

    @property
    def ready(self) -> bool:
        connection = self._state.connection
        return connection.devices_open and connection.live_connected

    @property
    def busy(self) -> bool:
        """An open sequence is in flight; another one must not interleave with it."""
        return self._state.connection.phase is ConnectPhase.CONNECTING

    @property
    def can_open_transport(self) -> bool:
        return not self.busy and not self._state.connection.transport_open_requested

    @property
    def can_open_devices(self) -> bool:
        connection = self._state.connection
        return connection.live_connected and not connection.devices_open and not self.busy

    def attach(self) -> None:
        """Subscribe to the connectivity channel; only the first call subscribes."""
        if self._subscription is not None or self._shut_down:
            return
        self._subscription = self._backend.listen(NODE_CONNECTED, self._on_node_connected)

    def shutdown(self) -> None:
        self._shut_down = True
        if self._subscription is not None:
            self._subscription.close()

    async def connect(self) -> bool:
        """Open transport, heart-rate monitor and fitness equipment, in order."""
        return await self._run_sequence((OPEN_NODE, *DEVICE_OPERATIONS))

    async def open_transport(self) -> bool:
        return await self._run_sequence((OPEN_NODE,))

    async def open_devices(self) -> bool:
        """Open the device endpoints once the transport reports itself connected."""
        if not self.can_open_devices:
            logger.warning(
                "open devices unavailable "
                f"(live_connected={self._state.connection.live_connected}, "
                f"devices_open={self._state.connection.devices_open}, "
                f"busy={self.busy})"
            )
            return False
        return await self._run_sequence(DEVICE_OPERATIONS)

    async def _run_sequence(self, operations: tuple[str, ...]) -> bool:
        if self._shut_down:
            return False
        if self.busy:
            logger.warning(f"device sequence already running; ignoring {', '.join(operations)}")
            return False

        connection = self._state.connection
        self._state.clear_error()
        connection.phase = ConnectPhase.CONNECTING
        connection.failure = None

        for operation in operations:
            outcome = await call_remote(self._backend, operation)
            if self._shut_down:
                logger.debug(f"ignoring {operation} response after shutdown")
                return False
            if outcome.error is not None:
                connection.phase = ConnectPhase.CONNECT_FAILED
                connection.failure = outcome.error
                self._state.record_error(ErrorKind.CONNECT, outcome.error)
                return False
            if operation == OPEN_NODE:
                connection.transport_open_requested = True

        if operations[-1] in DEVICE_OPERATIONS:
            connection.devices_open = True
        connection.phase = ConnectPhase.CONNECTED
        logger.info(f"device sequence complete: {', '.join(operations)}")
        return True

    def _on_node_connected(self, payload: object) -> None:
        try:
            connected = decode_connectivity(payload)
        except PayloadError as exc:
            logger.warning(f"rejected node_connected event: {exc}")
            self._state.record_error(ErrorKind.PROTOCOL, str(exc))
            return
        if connected != self._state.connection.live_connected:
            logger.info(f"transport {'connected' if connected else 'disconnected'}")
        self._state.set_live_connected(connected)
