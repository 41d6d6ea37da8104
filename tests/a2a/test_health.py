"""Tests for endpoint health probing."""

import httpx
import pytest

from agentforge.a2a.health import HealthChecker
from agentforge.a2a.models import HealthStatus


def make_checker(pool, handler, **kwargs) -> HealthChecker:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HealthChecker(pool, client, **kwargs)


class TestHealthChecker:
    """Tests for HealthChecker."""

    @pytest.mark.asyncio
    async def test_probe_healthy_status(self, pool) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"status": "healthy"})

        checker = make_checker(pool, handler, token="secret")

        assert await checker.probe(pool.all_endpoints()[0]) is True
        assert str(requests[0].url) == "http://agent-a.test/health"
        assert requests[0].headers["Authorization"] == "Bearer secret"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "response, expected",
        [
            (httpx.Response(200, json={"status": "OK"}), True),
            (httpx.Response(200, json={"status": "down"}), False),
            (httpx.Response(200, json={"uptime": 12}), True),
            (httpx.Response(200, text="alive"), True),
            (httpx.Response(503, json={"status": "healthy"}), False),
        ],
    )
    async def test_probe_classification(self, pool, response, expected) -> None:
        checker = make_checker(pool, lambda request: response)

        assert await checker.probe(pool.all_endpoints()[0]) is expected

    @pytest.mark.asyncio
    async def test_probe_connection_failure(self, pool) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        checker = make_checker(pool, handler)

        assert await checker.probe(pool.all_endpoints()[0]) is False

    @pytest.mark.asyncio
    async def test_check_all_updates_pool(self, pool, endpoint_urls) -> None:
        """Failed probes mark endpoints unhealthy; passing ones leave unknown endpoints unknown."""

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "agent-b.test":
                return httpx.Response(503)
            return httpx.Response(200, json={"status": "ok"})

        checker = make_checker(pool, handler, path="status")

        results = await checker.check_all()

        assert results == {
            endpoint_urls[0]: True,
            endpoint_urls[1]: False,
            endpoint_urls[2]: True,
        }
        health = [ep.health for ep in pool.all_endpoints()]
        assert health == [HealthStatus.UNKNOWN, HealthStatus.UNHEALTHY, HealthStatus.UNKNOWN]

    @pytest.mark.asyncio
    async def test_staleness_follows_interval(self, pool) -> None:
        now = [0.0]
        checker = make_checker(
            pool,
            lambda request: httpx.Response(200),
            interval=30.0,
            clock=lambda: now[0],
        )

        assert checker.is_stale()
        await checker.check_all()
        assert not checker.is_stale()

        now[0] = 29.9
        assert not checker.is_stale()
        now[0] = 30.0
        assert checker.is_stale()

    @pytest.mark.asyncio
    async def test_repeated_passing_checks_recover_endpoint(self, pool) -> None:
        endpoint = pool.all_endpoints()[0]
        pool.mark_unhealthy(endpoint)
        checker = make_checker(pool, lambda request: httpx.Response(200))

        for _ in range(pool.recovery_threshold - 1):
            await checker.check_all()
            assert endpoint.health == HealthStatus.UNHEALTHY

        await checker.check_all()
        assert endpoint.health == HealthStatus.HEALTHY

    @pytest.mark.asyncio
    async def test_passing_check_does_not_reset_call_failures(self, pool) -> None:
        endpoint = pool.all_endpoints()[0]
        pool.mark_result(endpoint, success=False)
        checker = make_checker(pool, lambda request: httpx.Response(200))

        await checker.check_all()

        assert endpoint.consecutive_failures == 1
