"""Remote agent proxy.

A RemoteAgentProxy looks like a local agent (``await proxy.run(task)``) but
executes the task on one of several remote endpoints. Each call moves
through the phases::

    idle -> dispatching -> succeeded
                        -> retrying -> dispatching ...
                        -> exhausted   (failover budget spent)
                        -> failed      (non-retryable error, e.g. AuthError)

A cache hit goes straight from idle to succeeded without any network
attempt.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional, Union

import httpx

from agentforge.a2a.cache import ResponseCache, generate_fingerprint
from agentforge.a2a.config import RemoteAgentConfig
from agentforge.a2a.dispatch import DispatchPolicy
from agentforge.a2a.errors import ExhaustedError, TransportError
from agentforge.a2a.events import ProxyEventEmitter, ProxyEventListener, ProxyEventType
from agentforge.a2a.health import HealthChecker
from agentforge.a2a.models import (
    AttemptOutcome,
    DispatchState,
    Endpoint,
    ProxyPhase,
    RemoteAgentResult,
    RemoteCallAttempt,
    RemoteTaskRequest,
)
from agentforge.a2a.pool import EndpointPool
from agentforge.a2a.transport import TransportClient
from agentforge.observability.logging import get_logger

logger = get_logger(__name__)


class RemoteAgentProxy:
    """Runs tasks on a remote agent with failover, load balancing and caching.

    The proxy is built from an immutable RemoteAgentConfig. Multiple calls
    may be in flight concurrently; each call has its own DispatchState while
    the endpoint pool (health counters, round-robin cursor, in-flight
    counts) is shared.

    Example:
        >>> config = RemoteAgentConfig(
        ...     server_url="https://agent-a.internal",
        ...     failover={"servers": ["https://agent-b.internal"], "max_failovers": 1},
        ... )
        >>> async with RemoteAgentProxy(config) as agent:
        ...     result = await agent.run("Summarize the quarterly report")
        ...     print(result.output, result.endpoint_url)
    """

    def __init__(
        self,
        config: RemoteAgentConfig,
        transport: Optional[TransportClient] = None,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
        cache: Optional[ResponseCache] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the proxy.

        Args:
            config: Validated remote agent configuration
            transport: Optional transport client (built from config if omitted)
            http_transport: Optional httpx transport for the built transport client
            cache: Optional response cache (built from config when caching is enabled)
            sleep: Coroutine used to wait out retry delays
        """
        self.config = config
        health = config.health_check
        self.pool = EndpointPool(
            config.endpoint_urls,
            failure_threshold=health.failure_threshold,
            recovery_threshold=health.recovery_threshold,
            history_size=health.history_size,
        )
        self.policy = DispatchPolicy(
            strategy=config.failover.strategy,
            max_failovers=config.failover.max_failovers,
            retry_delay=config.failover.retry_delay_seconds,
            tie_break=config.failover.tie_break,
        )

        if transport is None:
            transport = TransportClient(
                path=config.path,
                token=config.authentication.token,
                recorder=self.pool,
                transport=http_transport,
            )
        elif transport.recorder is None:
            transport.recorder = self.pool
        self.transport = transport

        if cache is None and config.cache.enabled:
            cache = ResponseCache(max_entries=config.cache.max_entries)
        self.cache = cache if config.cache.enabled else None

        self.health_checker: Optional[HealthChecker] = None
        if health.enabled:
            self.health_checker = HealthChecker(
                self.pool,
                self.transport.http_client,
                path=health.path,
                timeout=health.timeout_seconds,
                interval=health.interval_seconds,
                token=config.authentication.token,
            )

        self._events = ProxyEventEmitter()
        self._sleep = sleep

    @property
    def name(self) -> str:
        return self.config.name

    def subscribe(self, listener: ProxyEventListener) -> None:
        """Register a listener for this proxy's events."""
        self._events.subscribe(listener)

    def unsubscribe(self, listener: ProxyEventListener) -> None:
        self._events.unsubscribe(listener)

    async def close(self) -> None:
        await self.transport.close()

    async def __aenter__(self) -> "RemoteAgentProxy":
        return self

    async def __aexit__(self, exc_type: type, exc_val: Exception, exc_tb: object) -> None:
        await self.close()

    async def run(
        self, task: Any, context: Optional[dict[str, Any]] = None
    ) -> RemoteAgentResult:
        """Run a task on the remote agent.

        Args:
            task: Task description (string or JSON-serialisable value)
            context: Optional context forwarded to the remote agent

        Returns:
            RemoteAgentResult with the output and every attempt made

        Raises:
            AuthError: If the remote side rejects the credentials (no failover)
            ExhaustedError: If every permitted attempt failed
            asyncio.CancelledError: If the caller cancels the call
        """
        request = RemoteTaskRequest(task=task, context=context or {})
        state = self.policy.new_state()

        fingerprint: Optional[str] = None
        if self.cache is not None:
            fingerprint = generate_fingerprint(task, context)
            entry = await self.cache.get(fingerprint)
            if entry is not None:
                state.transition(ProxyPhase.SUCCEEDED)
                logger.debug("remote_call_cache_hit", agent=self.name, task_id=request.task_id)
                await self._events.emit(
                    ProxyEventType.CACHE_HIT, agent=self.name, task_id=request.task_id
                )
                return RemoteAgentResult(output=entry.value, endpoint_url=None, from_cache=True)

        if self.health_checker is not None and self.health_checker.is_stale():
            await self.health_checker.check_all()

        state.transition(ProxyPhase.DISPATCHING)
        while True:
            endpoint = self.policy.select_next(self.pool, state)
            if endpoint is None:
                raise await self._exhaust(state, request, cause=None)

            # The endpoint carries no load while the call waits out the delay.
            delay = self.policy.delay_before(state, endpoint)
            if delay > 0:
                self.pool.end_attempt(endpoint)
                await self._sleep(delay)
                self.pool.begin_attempt(endpoint)

            try:
                if state.phase == ProxyPhase.RETRYING:
                    state.transition(ProxyPhase.DISPATCHING)

                await self._events.emit(
                    ProxyEventType.ATTEMPT_STARTED,
                    agent=self.name,
                    task_id=request.task_id,
                    endpoint_url=endpoint.url,
                    attempt_number=len(state.attempts) + 1,
                )
                response = await self.transport.invoke(
                    endpoint, request, timeout=self.config.timeout_seconds
                )
            except TransportError as exc:
                await self._handle_failure(state, request, endpoint, exc)
                if not exc.retryable:
                    state.transition(ProxyPhase.FAILED)
                    await self._events.emit(
                        ProxyEventType.CALL_FAILED,
                        agent=self.name,
                        task_id=request.task_id,
                        endpoint_url=endpoint.url,
                        error=str(exc),
                    )
                    raise
                if self.policy.on_failure(state, exc):
                    state.transition(ProxyPhase.RETRYING)
                    logger.info(
                        "remote_call_failover",
                        agent=self.name,
                        failed_endpoint=endpoint.url,
                        failover_count=state.failover_count,
                        max_failovers=self.policy.max_failovers,
                    )
                    continue
                raise await self._exhaust(state, request, cause=exc) from exc
            finally:
                self.pool.end_attempt(endpoint)

            attempt = response.attempt or self._synthesize_attempt(endpoint, None)
            state.attempts.append(attempt)
            state.last_endpoint_url = endpoint.url
            self.pool.mark_result(endpoint, success=True)
            state.transition(ProxyPhase.SUCCEEDED)

            if self.cache is not None and fingerprint is not None:
                await self.cache.put(fingerprint, response.output, self.config.cache.ttl_seconds)

            await self._events.emit(
                ProxyEventType.CALL_SUCCEEDED,
                agent=self.name,
                task_id=request.task_id,
                endpoint_url=endpoint.url,
                attempt_number=len(state.attempts),
                duration_ms=attempt.duration_ms,
            )
            logger.info(
                "remote_call_succeeded",
                agent=self.name,
                endpoint=endpoint.url,
                attempts=len(state.attempts),
            )
            return RemoteAgentResult(
                output=response.output,
                endpoint_url=endpoint.url,
                attempts=tuple(state.attempts),
            )

    async def _handle_failure(
        self,
        state: DispatchState,
        request: RemoteTaskRequest,
        endpoint: Endpoint,
        exc: TransportError,
    ) -> None:
        attempt = exc.attempt or self._synthesize_attempt(endpoint, exc)
        state.attempts.append(attempt)
        state.last_endpoint_url = endpoint.url
        self.pool.mark_result(endpoint, success=False)

        logger.warning(
            "remote_attempt_failed",
            agent=self.name,
            endpoint=endpoint.url,
            outcome=attempt.outcome.value,
            error=str(exc),
        )
        await self._events.emit(
            ProxyEventType.ATTEMPT_FAILED,
            agent=self.name,
            task_id=request.task_id,
            endpoint_url=endpoint.url,
            attempt_number=len(state.attempts),
            outcome=attempt.outcome.value,
            error=str(exc),
            duration_ms=attempt.duration_ms,
        )

    async def _exhaust(
        self,
        state: DispatchState,
        request: RemoteTaskRequest,
        cause: Optional[TransportError],
    ) -> ExhaustedError:
        state.transition(ProxyPhase.EXHAUSTED)
        error = ExhaustedError(state.attempts, agent=self.name)
        logger.error(
            "remote_call_exhausted",
            agent=self.name,
            attempts=[(a.endpoint_url, a.outcome.value) for a in state.attempts],
        )
        await self._events.emit(
            ProxyEventType.CALL_EXHAUSTED,
            agent=self.name,
            task_id=request.task_id,
            endpoint_url=cause.endpoint_url if cause is not None else None,
            attempt_number=len(state.attempts),
            error=error.message,
        )
        return error

    @staticmethod
    def _synthesize_attempt(
        endpoint: Endpoint, exc: Optional[TransportError]
    ) -> RemoteCallAttempt:
        """Attempt record for transports that do not attach one."""
        return RemoteCallAttempt(
            endpoint_url=endpoint.url,
            started_at=datetime.now(timezone.utc),
            duration_ms=0.0,
            outcome=exc.outcome if exc is not None else AttemptOutcome.SUCCESS,
            error=str(exc) if exc is not None else None,
        )


def create_remote_agent(
    config: Union[RemoteAgentConfig, dict[str, Any]],
    **kwargs: Any,
) -> RemoteAgentProxy:
    """Build a RemoteAgentProxy from a config object or a raw config dict.

    Args:
        config: RemoteAgentConfig or a dict accepted by RemoteAgentConfig
        **kwargs: Forwarded to RemoteAgentProxy

    Returns:
        A ready-to-use proxy

    Raises:
        pydantic.ValidationError: If the raw config is invalid
    """
    if not isinstance(config, RemoteAgentConfig):
        config = RemoteAgentConfig.model_validate(config)
    return RemoteAgentProxy(config, **kwargs)
