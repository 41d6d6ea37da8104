"""Agent Forge: agent orchestration with agent-to-agent remote invocation."""

__version__ = "0.1.0"
