"""A2A server exposing a local agent over HTTP.

This is the remote side of the wire contract spoken by TransportClient:

- ``POST {path}`` with a RemoteTaskRequest body returns ``{"output": ...}``
  or an error object ``{"error": {"code": ..., "message": ...}}``
- ``GET {health_path}`` returns ``{"status": "healthy", "agent": ...}``
"""

import secrets
from typing import Any, Optional

from fastapi import APIRouter, FastAPI, Request, status
from fastapi.responses import JSONResponse

from agentforge.a2a.models import RemoteTaskRequest
from agentforge.core.protocols import AgentRunner
from agentforge.observability.logging import get_logger

logger = get_logger(__name__)


def _error_response(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message}},
    )


def _is_authorized(request: Request, token: Optional[str]) -> bool:
    if token is None:
        return True
    header = request.headers.get("Authorization", "")
    scheme, _, credential = header.partition(" ")
    if scheme.lower() != "bearer" or not credential:
        return False
    return secrets.compare_digest(credential, token)


def create_a2a_router(
    agent: AgentRunner,
    name: str,
    path: str = "/a2a/tasks",
    health_path: str = "/health",
    token: Optional[str] = None,
) -> APIRouter:
    """Build the router serving one local agent.

    Args:
        agent: Local agent to run incoming tasks
        name: Agent name reported by the health endpoint
        path: Path tasks are POSTed to
        health_path: Path of the health endpoint
        token: Optional bearer token required on task requests

    Returns:
        APIRouter with the task and health routes
    """
    router = APIRouter(tags=["a2a"])

    @router.post(path)
    async def run_task(task_request: RemoteTaskRequest, request: Request) -> Any:
        """Run a task on the local agent."""
        if not _is_authorized(request, token):
            logger.warning("a2a_request_unauthorized", agent=name, task_id=task_request.task_id)
            return _error_response(
                status.HTTP_401_UNAUTHORIZED, "unauthorized", "Valid bearer token required"
            )

        try:
            output = await agent.run(task_request.task)
        except Exception as exc:  # noqa: BLE001
            logger.exception("a2a_agent_failed", agent=name, task_id=task_request.task_id)
            return _error_response(
                status.HTTP_500_INTERNAL_SERVER_ERROR, "agent_error", str(exc) or type(exc).__name__
            )

        logger.info("a2a_task_completed", agent=name, task_id=task_request.task_id)
        return {"output": output, "task_id": task_request.task_id}

    @router.get(health_path)
    async def health() -> dict[str, str]:
        """Report that the agent is able to accept tasks."""
        return {"status": "healthy", "agent": name}

    return router


def create_a2a_app(
    agent: AgentRunner,
    name: Optional[str] = None,
    path: str = "/a2a/tasks",
    health_path: str = "/health",
    token: Optional[str] = None,
) -> FastAPI:
    """Create a FastAPI application serving a local agent over A2A.

    Args:
        agent: Local agent to expose
        name: Agent name (defaults to ``agent.name`` or "agent")
        path: Path tasks are POSTed to
        health_path: Path of the health endpoint
        token: Optional bearer token required on task requests

    Returns:
        Configured FastAPI application

    Examples:
        >>> app = create_a2a_app(echo_agent, token="secret")
        >>> # uvicorn-compatible: serve ``app`` with any ASGI server
    """
    agent_name = name or getattr(agent, "name", None) or "agent"
    app = FastAPI(
        title=f"Agent Forge A2A: {agent_name}",
        version="0.1.0",
        description="Agent-to-agent task endpoint",
    )
    app.include_router(
        create_a2a_router(agent, agent_name, path=path, health_path=health_path, token=token)
    )
    return app
