"""Data model for remote agent invocation.

Wire models (the request body sent to a remote agent) are Pydantic models;
the in-process bookkeeping types (endpoints, attempts, per-call dispatch
state, cache entries) are plain dataclasses.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class HealthStatus(str, Enum):
    """Health of a remote endpoint as tracked by the endpoint pool."""

    UNKNOWN = "unknown"
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class AttemptOutcome(str, Enum):
    """Outcome of a single remote invocation attempt."""

    SUCCESS = "success"
    TIMEOUT = "timeout"
    CONNECTION_ERROR = "connection_error"
    SERVER_ERROR = "server_error"
    AUTH_ERROR = "auth_error"


class DispatchStrategy(str, Enum):
    """Endpoint selection strategy of a remote agent proxy."""

    PRIORITY = "priority"
    ROUND_ROBIN = "round-robin"
    LEAST_CONNECTIONS = "least-connections"


class ProxyPhase(str, Enum):
    """Lifecycle phase of a single proxy call."""

    IDLE = "idle"
    DISPATCHING = "dispatching"
    RETRYING = "retrying"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"
    FAILED = "failed"


TERMINAL_PHASES = frozenset({ProxyPhase.SUCCEEDED, ProxyPhase.EXHAUSTED, ProxyPhase.FAILED})

_ALLOWED_TRANSITIONS: dict[ProxyPhase, frozenset[ProxyPhase]] = {
    ProxyPhase.IDLE: frozenset({ProxyPhase.DISPATCHING, ProxyPhase.SUCCEEDED}),
    ProxyPhase.DISPATCHING: frozenset(
        {ProxyPhase.SUCCEEDED, ProxyPhase.RETRYING, ProxyPhase.EXHAUSTED, ProxyPhase.FAILED}
    ),
    ProxyPhase.RETRYING: frozenset({ProxyPhase.DISPATCHING, ProxyPhase.EXHAUSTED}),
    ProxyPhase.SUCCEEDED: frozenset(),
    ProxyPhase.EXHAUSTED: frozenset(),
    ProxyPhase.FAILED: frozenset(),
}


@dataclass(eq=False)
class Endpoint:
    """A candidate remote endpoint for one logical remote agent.

    Attributes:
        url: Base URL of the remote agent
        priority: Declaration index (0 is the primary endpoint)
        weight: Relative weight (informational, reported in snapshots)
        health: Current health status
        consecutive_failures: Failures since the last success
        consecutive_successes: Successes since the last failure
        in_flight: Number of calls currently using this endpoint
    """

    url: str
    priority: int = 0
    weight: int = 1
    health: HealthStatus = HealthStatus.UNKNOWN
    consecutive_failures: int = 0
    consecutive_successes: int = 0
    in_flight: int = 0

    @property
    def is_eligible(self) -> bool:
        """Whether the endpoint may be selected without last-resort fallback."""
        return self.health != HealthStatus.UNHEALTHY


@dataclass(frozen=True)
class RemoteCallAttempt:
    """Immutable record of one remote invocation attempt."""

    endpoint_url: str
    started_at: datetime
    duration_ms: float
    outcome: AttemptOutcome
    status_code: Optional[int] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.outcome == AttemptOutcome.SUCCESS


@dataclass
class DispatchState:
    """Per-call dispatch bookkeeping. Never shared between calls.

    Attributes:
        strategy: Selection strategy in effect for the call
        phase: Current lifecycle phase of the call
        tried: URLs attempted in the current round over the pool
        last_endpoint_url: URL of the most recent attempt
        failover_count: Number of failovers performed so far
        attempts: Every attempt made during the call
    """

    strategy: DispatchStrategy
    phase: ProxyPhase = ProxyPhase.IDLE
    tried: set[str] = field(default_factory=set)
    last_endpoint_url: Optional[str] = None
    failover_count: int = 0
    attempts: list[RemoteCallAttempt] = field(default_factory=list)

    def transition(self, phase: ProxyPhase) -> None:
        """Move the call to a new lifecycle phase.

        Raises:
            RuntimeError: If the transition is not permitted
        """
        if phase not in _ALLOWED_TRANSITIONS[self.phase]:
            raise RuntimeError(
                f"Illegal proxy phase transition: {self.phase.value} -> {phase.value}"
            )
        self.phase = phase

    @property
    def is_terminal(self) -> bool:
        return self.phase in TERMINAL_PHASES


@dataclass(frozen=True)
class CacheEntry:
    """A memoized remote agent output."""

    fingerprint: str
    value: Any
    inserted_at: float
    ttl: float

    def is_expired(self, now: float) -> bool:
        """Whether the entry's time-to-live has elapsed at ``now``."""
        return now >= self.inserted_at + self.ttl


class RemoteTaskRequest(BaseModel):
    """JSON body POSTed to a remote agent.

    Attributes:
        task_id: Unique identifier of this invocation
        task: Task description (string or any JSON value)
        context: Additional context forwarded to the remote agent
    """

    task_id: str = Field(default_factory=lambda: str(uuid.uuid4()), min_length=1)
    task: Any
    context: dict[str, Any] = Field(default_factory=dict)


@dataclass(frozen=True)
class RemoteResponse:
    """Successful response of a single transport invocation."""

    output: Any
    endpoint_url: str
    status_code: int
    duration_ms: float
    attempt: Optional[RemoteCallAttempt] = None


@dataclass(frozen=True)
class RemoteAgentResult:
    """Result of a remote agent proxy call.

    Attributes:
        output: Output produced by the remote agent
        endpoint_url: Endpoint that produced the output (None for cache hits)
        attempts: Every attempt made during the call
        from_cache: Whether the output was served from the response cache
    """

    output: Any
    endpoint_url: Optional[str]
    attempts: tuple[RemoteCallAttempt, ...] = ()
    from_cache: bool = False
