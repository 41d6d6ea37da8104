"""Tests for the A2A server and end-to-end proxy calls against it."""

import httpx
import pytest

from agentforge.a2a.errors import AuthError, ExhaustedError
from agentforge.a2a.models import AttemptOutcome
from agentforge.a2a.proxy import create_remote_agent
from agentforge.a2a.server import create_a2a_app
from agentforge.agents.base import AgentDefinition, FunctionAgent

REMOTE_URL = "http://remote-agent.test"


@pytest.fixture
def echo_agent() -> FunctionAgent:
    """Create a local agent echoing its task."""

    async def handler(task):
        if task == "explode":
            raise RuntimeError("agent crashed")
        return {"echo": task}

    return FunctionAgent(AgentDefinition(name="echo", role="Echoes tasks"), handler)


def asgi_client(app) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url=REMOTE_URL)


class TestA2AServer:
    """Tests for the server routes."""

    @pytest.mark.asyncio
    async def test_run_task(self, echo_agent) -> None:
        app = create_a2a_app(echo_agent)

        async with asgi_client(app) as client:
            response = await client.post(
                "/a2a/tasks", json={"task_id": "t-1", "task": "hello", "context": {}}
            )

        assert response.status_code == 200
        assert response.json() == {"output": {"echo": "hello"}, "task_id": "t-1"}

    @pytest.mark.asyncio
    async def test_health(self, echo_agent) -> None:
        app = create_a2a_app(echo_agent, health_path="/ping")

        async with asgi_client(app) as client:
            response = await client.get("/ping")

        assert response.json() == {"status": "healthy", "agent": "echo"}

    @pytest.mark.asyncio
    async def test_missing_token_rejected(self, echo_agent) -> None:
        app = create_a2a_app(echo_agent, token="secret")

        async with asgi_client(app) as client:
            response = await client.post("/a2a/tasks", json={"task": "hello"})

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "unauthorized"

    @pytest.mark.asyncio
    async def test_agent_failure_reported_as_error_object(self, echo_agent) -> None:
        app = create_a2a_app(echo_agent)

        async with asgi_client(app) as client:
            response = await client.post("/a2a/tasks", json={"task": "explode"})

        assert response.status_code == 500
        assert response.json() == {
            "error": {"code": "agent_error", "message": "agent crashed"}
        }


class TestProxyAgainstServer:
    """End-to-end calls from a RemoteAgentProxy to a served local agent."""

    @pytest.mark.asyncio
    async def test_round_trip(self, echo_agent) -> None:
        app = create_a2a_app(echo_agent, token="secret")
        proxy = create_remote_agent(
            {"serverUrl": REMOTE_URL, "authentication": {"token": "secret"}},
            http_transport=httpx.ASGITransport(app=app),
        )

        async with proxy:
            result = await proxy.run({"question": "status?"}, {"lang": "en"})

        assert result.output == {"echo": {"question": "status?"}}
        assert result.endpoint_url == REMOTE_URL

    @pytest.mark.asyncio
    async def test_wrong_token_raises_auth_error(self, echo_agent) -> None:
        app = create_a2a_app(echo_agent, token="secret")
        proxy = create_remote_agent(
            {
                "serverUrl": REMOTE_URL,
                "authentication": {"token": "wrong"},
                "failover": {"maxFailovers": 2},
            },
            http_transport=httpx.ASGITransport(app=app),
        )

        async with proxy:
            with pytest.raises(AuthError) as exc_info:
                await proxy.run("hello")

        assert exc_info.value.reason == "credential rejected"

    @pytest.mark.asyncio
    async def test_agent_failure_exhausts(self, echo_agent) -> None:
        app = create_a2a_app(echo_agent)
        proxy = create_remote_agent(
            {"serverUrl": REMOTE_URL}, http_transport=httpx.ASGITransport(app=app)
        )

        async with proxy:
            with pytest.raises(ExhaustedError) as exc_info:
                await proxy.run("explode")

        attempt = exc_info.value.attempts[0]
        assert attempt.outcome == AttemptOutcome.SERVER_ERROR
        assert attempt.status_code == 500
