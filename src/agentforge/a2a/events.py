"""Observer channel for remote agent proxy calls.

Listeners subscribe to a proxy and receive a ProxyEvent for every attempt
and call outcome. The proxy does not depend on any logging or metrics
backend; those subscribe as ordinary listeners.
"""

import inspect
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Union

from pydantic import BaseModel, Field

from agentforge.observability.logging import get_logger

logger = get_logger(__name__)


class ProxyEventType(str, Enum):
    """Kinds of events emitted by a remote agent proxy."""

    ATTEMPT_STARTED = "attempt_started"
    ATTEMPT_FAILED = "attempt_failed"
    CALL_SUCCEEDED = "call_succeeded"
    CALL_EXHAUSTED = "call_exhausted"
    CALL_FAILED = "call_failed"
    CACHE_HIT = "cache_hit"


class ProxyEvent(BaseModel):
    """Event emitted by a remote agent proxy.

    Attributes:
        type: Event kind
        agent: Logical name of the remote agent
        task_id: Identifier of the call's task request
        timestamp: When the event occurred
        endpoint_url: Endpoint involved, if any
        attempt_number: 1-based attempt index within the call
        outcome: Attempt outcome for attempt_failed events
        error: Error description for failure events
        duration_ms: Attempt duration, when known
    """

    type: ProxyEventType
    agent: str
    task_id: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    endpoint_url: Optional[str] = None
    attempt_number: Optional[int] = None
    outcome: Optional[str] = None
    error: Optional[str] = None
    duration_ms: Optional[float] = None


ProxyEventListener = Callable[[ProxyEvent], Union[None, Awaitable[None]]]


class ProxyEventEmitter:
    """Fan-out of proxy events to subscribed listeners.

    Listeners may be plain or async callables. A failing listener is
    logged and does not affect the call or other listeners.
    """

    def __init__(self) -> None:
        self._listeners: list[ProxyEventListener] = []

    def subscribe(self, listener: ProxyEventListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: ProxyEventListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    async def emit(self, event_type: ProxyEventType, **fields: Any) -> Optional[ProxyEvent]:
        """Build an event and deliver it to every listener.

        Returns:
            The emitted event, or None when nobody is subscribed
        """
        if not self._listeners:
            return None

        event = ProxyEvent(type=event_type, **fields)
        for listener in list(self._listeners):
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:  # noqa: BLE001
                logger.exception("proxy_event_listener_failed", event_type=event_type.value)
        return event
