"""Opportunistic health probing of remote endpoints.

Probes are a hint, not a substitute for per-call failure handling: a failed
probe marks the endpoint unhealthy so the dispatch policy avoids it, and a
successful probe counts towards its recovery.
"""

import asyncio
import time
from typing import Callable, Optional

import httpx

from agentforge.a2a.models import Endpoint
from agentforge.a2a.pool import EndpointPool
from agentforge.observability.logging import get_logger

logger = get_logger(__name__)

HEALTHY_STATUSES = frozenset({"ok", "healthy", "up", "pass"})


class HealthChecker:
    """Probes every endpoint of a pool with a plain GET.

    Example:
        >>> checker = HealthChecker(pool, http_client, path="/health", interval=30.0)
        >>> if checker.is_stale():
        ...     await checker.check_all()
    """

    def __init__(
        self,
        pool: EndpointPool,
        http_client: httpx.AsyncClient,
        path: str = "/health",
        timeout: float = 2.0,
        interval: float = 30.0,
        token: Optional[str] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.pool = pool
        self.path = path if path.startswith("/") else f"/{path}"
        self.timeout = timeout
        self.interval = interval
        self._http_client = http_client
        self._token = token
        self._clock = clock
        self._last_check: Optional[float] = None
        self._lock = asyncio.Lock()

    def is_stale(self) -> bool:
        """Whether the last full check is older than the probe interval."""
        if self._last_check is None:
            return True
        return self._clock() - self._last_check >= self.interval

    async def probe(self, endpoint: Endpoint) -> bool:
        """Probe a single endpoint.

        An endpoint is healthy when it answers 2xx and, if the body carries
        a ``status`` field, that status is one of ok/healthy/up/pass.

        Returns:
            True if the endpoint reported itself healthy
        """
        headers = {"Authorization": f"Bearer {self._token}"} if self._token else {}
        try:
            response = await self._http_client.get(
                f"{endpoint.url}{self.path}",
                headers=headers,
                timeout=httpx.Timeout(self.timeout),
            )
        except httpx.HTTPError as exc:
            logger.warning("health_probe_failed", endpoint=endpoint.url, error=str(exc))
            return False

        if not response.is_success:
            logger.warning(
                "health_probe_failed", endpoint=endpoint.url, status_code=response.status_code
            )
            return False

        try:
            body = response.json()
        except ValueError:
            return True

        status = body.get("status") if isinstance(body, dict) else None
        if status is None:
            return True
        return str(status).lower() in HEALTHY_STATUSES

    async def check_all(self) -> dict[str, bool]:
        """Probe every endpoint concurrently and update the pool.

        Returns:
            Mapping of endpoint URL to probe result
        """
        async with self._lock:
            endpoints = self.pool.all_endpoints()
            results = await asyncio.gather(*(self.probe(ep) for ep in endpoints))

            for endpoint, healthy in zip(endpoints, results):
                if healthy:
                    self.pool.record_probe_success(endpoint)
                else:
                    self.pool.mark_unhealthy(endpoint)

            self._last_check = self._clock()

        report = {endpoint.url: healthy for endpoint, healthy in zip(endpoints, results)}
        logger.debug("health_check_completed", results=report)
        return report
