"""Observability for remote agent calls.

- Structured logging with correlation IDs and secret redaction
- Prometheus metrics fed by proxy events
"""

from agentforge.observability.logging import get_logger, setup_logging

__all__ = [
    "setup_logging",
    "get_logger",
]
