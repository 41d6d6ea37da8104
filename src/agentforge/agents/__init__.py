"""Local agent implementations."""

from agentforge.agents.base import AgentDefinition, FunctionAgent

__all__ = ["AgentDefinition", "FunctionAgent"]
