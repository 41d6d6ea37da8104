"""Core protocols for cross-layer abstractions.

This module defines protocol interfaces that let the A2A layer work with
agents without depending on any concrete agent implementation.
"""

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class AgentRunner(Protocol):
    """Anything that can run a task and produce an output.

    Local agents (e.g. agentforge.agents.base.FunctionAgent) implement this
    protocol and can be served over A2A. RemoteAgentProxy exposes the same
    ``run`` entry point for the calling side.
    """

    async def run(self, task: Any) -> Any:
        """Run a task.

        Args:
            task: Task description (string or JSON-serialisable value)

        Returns:
            The agent's output
        """
        ...
