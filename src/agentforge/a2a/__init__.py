"""Agent-to-agent (A2A) remote invocation.

This package lets one agent run a task on another agent living in a
different process or host:

- RemoteAgentProxy: local-looking ``run(task)`` with failover, load
  balancing, health hysteresis and response caching
- TransportClient: a single HTTP invocation attempt with classified errors
- EndpointPool / DispatchPolicy: endpoint health and selection
- ResponseCache: TTL-bounded memoization of remote outputs
- create_a2a_app: FastAPI server exposing a local agent over the same contract
"""

from agentforge.a2a.cache import ResponseCache, generate_fingerprint
from agentforge.a2a.config import (
    RemoteAgentConfig,
    load_remote_agents_config,
)
from agentforge.a2a.dispatch import DispatchPolicy
from agentforge.a2a.errors import (
    AuthError,
    ExhaustedError,
    RemoteAgentError,
    RemoteConnectionError,
    RemoteError,
    RemoteTimeoutError,
    TransportError,
)
from agentforge.a2a.events import ProxyEvent, ProxyEventType
from agentforge.a2a.health import HealthChecker
from agentforge.a2a.models import (
    AttemptOutcome,
    DispatchStrategy,
    HealthStatus,
    RemoteAgentResult,
    RemoteCallAttempt,
)
from agentforge.a2a.pool import EndpointPool
from agentforge.a2a.proxy import RemoteAgentProxy, create_remote_agent
from agentforge.a2a.server import create_a2a_app
from agentforge.a2a.transport import TransportClient

__all__ = [
    "AttemptOutcome",
    "AuthError",
    "DispatchPolicy",
    "DispatchStrategy",
    "EndpointPool",
    "ExhaustedError",
    "HealthChecker",
    "HealthStatus",
    "ProxyEvent",
    "ProxyEventType",
    "RemoteAgentConfig",
    "RemoteAgentError",
    "RemoteAgentProxy",
    "RemoteAgentResult",
    "RemoteCallAttempt",
    "RemoteConnectionError",
    "RemoteError",
    "RemoteTimeoutError",
    "ResponseCache",
    "TransportClient",
    "TransportError",
    "create_a2a_app",
    "create_remote_agent",
    "generate_fingerprint",
    "load_remote_agents_config",
]
