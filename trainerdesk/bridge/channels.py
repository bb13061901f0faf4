"""Push-event channels: in-process event bus and unsubscribe handles."""

from __future__ import annotations

from typing import Any, Callable

from loguru import logger

NODE_CONNECTED = "node_connected"
HEART_RATE = "heart_rate"
FITNESS_EQUIPMENT_DATA = "fitness_equipment_data"
WORKOUT_STATUS = "workout_status"

EventHandler = Callable[[Any], None]


class Subscription:
    """Unsubscribe capability returned by ``listen``.

    ``close`` releases the handler exactly once; further calls are no-ops.
    """

    def __init__(self, channel: str, release: Callable[[], None]) -> None:
        self.channel = channel
        self._release: Callable[[], None] | None = release

    @property
    def closed(self) -> bool:
        return self._release is None

    def close(self) -> None:
        release, self._release = self._release, None
        if release is not None:
            release()

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class EventBus:
    """Named fire-and-forget channels with synchronous, run-to-completion handlers."""

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = {}

    def subscribe(self, channel: str, handler: EventHandler) -> Subscription:
        handlers = self._handlers.setdefault(channel, [])
        handlers.append(handler)

        def _release() -> None:
            # Identity match: the same callable may be subscribed twice.
            for i, registered in enumerate(handlers):
                if registered is handler:
                    del handlers[i]
                    break

        return Subscription(channel, _release)

    def subscriber_count(self, channel: str) -> int:
        return len(self._handlers.get(channel, ()))

    def emit(self, channel: str, payload: Any) -> int:
        handlers = list(self._handlers.get(channel, ()))
        for handler in handlers:
            try:
                handler(payload)
            except Exception:
                logger.exception(f"Handler for channel '{channel}' raised")
        return len(handlers)
