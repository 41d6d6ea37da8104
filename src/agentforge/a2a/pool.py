"""Endpoint pool with health hysteresis.

The pool owns the endpoints of one logical remote agent: their health
status, consecutive success/failure counters, in-flight counts, recent
attempt history and the round-robin cursor shared by all calls. Every
mutation happens under a single lock so concurrent calls never lose
updates.
"""

import threading
from collections import deque
from typing import Any, Optional

from agentforge.a2a.models import Endpoint, HealthStatus, RemoteCallAttempt
from agentforge.observability.logging import get_logger

logger = get_logger(__name__)


class EndpointPool:
    """Fixed, ordered set of endpoints for one remote agent.

    An endpoint becomes unhealthy only after ``failure_threshold``
    consecutive failures and healthy again only after
    ``recovery_threshold`` consecutive successes. An endpoint whose health
    is still unknown becomes healthy on its first success.

    Example:
        >>> pool = EndpointPool(["http://a", "http://b"], failure_threshold=3)
        >>> a = pool.all_endpoints()[0]
        >>> pool.mark_result(a, success=False)
        <HealthStatus.UNKNOWN: 'unknown'>
    """

    def __init__(
        self,
        urls: list[str],
        failure_threshold: int = 3,
        recovery_threshold: int = 3,
        history_size: int = 20,
    ) -> None:
        """Initialize the pool.

        Args:
            urls: Primary endpoint followed by failover endpoints
            failure_threshold: Consecutive failures before marking unhealthy
            recovery_threshold: Consecutive successes before marking healthy again
            history_size: Number of recent attempts retained per endpoint

        Raises:
            ValueError: If no URL is given, a URL repeats or a threshold is not positive
        """
        if not urls:
            raise ValueError("EndpointPool requires at least one endpoint URL")
        if len(set(urls)) != len(urls):
            raise ValueError(f"Duplicate endpoint URLs: {urls}")
        if failure_threshold < 1 or recovery_threshold < 1:
            raise ValueError("Health thresholds must be at least 1")

        self._endpoints: tuple[Endpoint, ...] = tuple(
            Endpoint(url=url, priority=index) for index, url in enumerate(urls)
        )
        self._by_url = {endpoint.url: endpoint for endpoint in self._endpoints}
        self._history: dict[str, deque[RemoteCallAttempt]] = {
            endpoint.url: deque(maxlen=history_size) for endpoint in self._endpoints
        }
        self.failure_threshold = failure_threshold
        self.recovery_threshold = recovery_threshold
        self._cursor = 0
        self._lock = threading.RLock()

    @property
    def lock(self) -> threading.RLock:
        """Lock guarding all pool state; held while a selection is made."""
        return self._lock

    def all_endpoints(self) -> tuple[Endpoint, ...]:
        """Return every endpoint in declaration order."""
        return self._endpoints

    def get(self, url: str) -> Endpoint:
        """Return the endpoint with the given URL.

        Raises:
            KeyError: If the URL is not part of the pool
        """
        return self._by_url[url]

    def __len__(self) -> int:
        return len(self._endpoints)

    def mark_result(self, endpoint: Endpoint, success: bool) -> HealthStatus:
        """Record the outcome of an attempt and apply the hysteresis rule.

        Args:
            endpoint: Endpoint the attempt was made against
            success: Whether the attempt succeeded

        Returns:
            The endpoint's health status after the update
        """
        with self._lock:
            previous = endpoint.health
            if success:
                endpoint.consecutive_successes += 1
                endpoint.consecutive_failures = 0
                if endpoint.health == HealthStatus.UNKNOWN:
                    endpoint.health = HealthStatus.HEALTHY
                elif (
                    endpoint.health == HealthStatus.UNHEALTHY
                    and endpoint.consecutive_successes >= self.recovery_threshold
                ):
                    endpoint.health = HealthStatus.HEALTHY
            else:
                endpoint.consecutive_failures += 1
                endpoint.consecutive_successes = 0
                if (
                    endpoint.health != HealthStatus.UNHEALTHY
                    and endpoint.consecutive_failures >= self.failure_threshold
                ):
                    endpoint.health = HealthStatus.UNHEALTHY
            current = endpoint.health

        if current != previous:
            logger.info(
                "endpoint_health_changed",
                endpoint=endpoint.url,
                previous=previous.value,
                current=current.value,
            )
        return current

    def mark_unhealthy(self, endpoint: Endpoint) -> None:
        """Force an endpoint into the unhealthy state (e.g. after a failed probe)."""
        with self._lock:
            previous = endpoint.health
            endpoint.health = HealthStatus.UNHEALTHY
            endpoint.consecutive_successes = 0
        if previous != HealthStatus.UNHEALTHY:
            logger.info("endpoint_marked_unhealthy", endpoint=endpoint.url)

    def record_probe_success(self, endpoint: Endpoint) -> HealthStatus:
        """Count a passing health probe toward recovery of an unhealthy endpoint.

        A probe only reports that the health route answers, so it leaves the
        call failure streak of unknown and healthy endpoints untouched.
        """
        with self._lock:
            if endpoint.health != HealthStatus.UNHEALTHY:
                return endpoint.health
            endpoint.consecutive_successes += 1
            if endpoint.consecutive_successes < self.recovery_threshold:
                return endpoint.health
            endpoint.health = HealthStatus.HEALTHY
            endpoint.consecutive_failures = 0

        logger.info(
            "endpoint_health_changed",
            endpoint=endpoint.url,
            previous=HealthStatus.UNHEALTHY.value,
            current=HealthStatus.HEALTHY.value,
        )
        return HealthStatus.HEALTHY

    def record(self, attempt: RemoteCallAttempt) -> None:
        """Retain an attempt in the endpoint's bounded history."""
        with self._lock:
            history = self._history.get(attempt.endpoint_url)
            if history is not None:
                history.append(attempt)

    def recent_attempts(self, endpoint: Endpoint) -> list[RemoteCallAttempt]:
        """Return the retained attempts for an endpoint, oldest first."""
        with self._lock:
            return list(self._history[endpoint.url])

    def begin_attempt(self, endpoint: Endpoint) -> None:
        with self._lock:
            endpoint.in_flight += 1

    def end_attempt(self, endpoint: Endpoint) -> None:
        with self._lock:
            endpoint.in_flight = max(0, endpoint.in_flight - 1)

    def rotation_order(self) -> list[Endpoint]:
        """Endpoints ordered from the round-robin cursor onwards."""
        with self._lock:
            start = self._cursor % len(self._endpoints)
            return list(self._endpoints[start:] + self._endpoints[:start])

    def advance_cursor(self, endpoint: Endpoint) -> None:
        """Move the shared round-robin cursor past ``endpoint``."""
        with self._lock:
            self._cursor = (endpoint.priority + 1) % len(self._endpoints)

    def snapshot(self, endpoint: Optional[Endpoint] = None) -> list[dict[str, Any]]:
        """Return a diagnostic view of the pool (or of one endpoint)."""
        with self._lock:
            endpoints = [endpoint] if endpoint is not None else list(self._endpoints)
            return [
                {
                    "url": ep.url,
                    "priority": ep.priority,
                    "weight": ep.weight,
                    "health": ep.health.value,
                    "consecutive_failures": ep.consecutive_failures,
                    "consecutive_successes": ep.consecutive_successes,
                    "in_flight": ep.in_flight,
                    "recent_attempts": len(self._history[ep.url]),
                }
                for ep in endpoints
            ]
