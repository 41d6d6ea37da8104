"""Core abstractions shared across Agent Forge layers."""

from agentforge.core.protocols import AgentRunner

__all__ = ["AgentRunner"]
