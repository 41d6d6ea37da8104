"""Local agents built from an immutable definition and a handler.

An agent's capability bundle (name, role, objective, tool set) is an
immutable AgentDefinition value passed to the constructor, rather than
metadata attached to a class after the fact.
"""

import inspect
from typing import Any, Awaitable, Callable, Union

from pydantic import BaseModel, ConfigDict, Field

from agentforge.observability.logging import get_logger

logger = get_logger(__name__)

AgentHandler = Callable[[Any], Union[Any, Awaitable[Any]]]


class AgentDefinition(BaseModel):
    """Immutable description of an agent.

    Attributes:
        name: Unique agent name
        role: Short role description
        objective: What the agent is meant to achieve
        tools: Names of the tools available to the agent
        version: Agent version string
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, max_length=255)
    role: str = ""
    objective: str = ""
    tools: tuple[str, ...] = ()
    version: str = "1.0.0"


class FunctionAgent:
    """Agent whose behaviour is a plain or async callable.

    Example:
        >>> agent = FunctionAgent(
        ...     AgentDefinition(name="echo", role="Echoes its input"),
        ...     lambda task: f"echo: {task}",
        ... )
        >>> await agent.run("hello")
        'echo: hello'
    """

    def __init__(self, definition: AgentDefinition, handler: AgentHandler) -> None:
        self.definition = definition
        self._handler = handler

    @property
    def name(self) -> str:
        return self.definition.name

    async def run(self, task: Any) -> Any:
        """Run the handler on a task and return its output."""
        logger.debug("local_agent_run", agent=self.name)
        result = self._handler(task)
        if inspect.isawaitable(result):
            result = await result
        return result
