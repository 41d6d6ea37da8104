"""Main CLI entry point for Agent Forge.

Provides command-line interface for remote agent management.
"""

import click

from agentforge.cli import remote
from agentforge.observability.logging import setup_logging_from_env


@click.group()
@click.version_option(version="0.1.0", prog_name="agentforge")
def cli() -> None:
    """Agent Forge - agent orchestration with agent-to-agent invocation."""
    setup_logging_from_env()


cli.add_command(remote.remote)


def main() -> None:
    """CLI entry point."""
    cli()


if __name__ == "__main__":
    main()
