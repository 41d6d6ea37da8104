"""Remote agent CLI commands.

Provides commands for listing configured remote agents, running a task on
one of them and probing their endpoints.
"""

import asyncio
import json
from typing import Any, Optional

import click
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from agentforge.a2a.config import RemoteAgentConfig, load_remote_agents_config
from agentforge.a2a.errors import ExhaustedError, RemoteAgentError
from agentforge.a2a.health import HealthChecker
from agentforge.a2a.proxy import RemoteAgentProxy

console = Console()


def load_agent_config(config_source: Optional[str], agent_name: Optional[str]) -> RemoteAgentConfig:
    """Resolve one remote agent configuration.

    Args:
        config_source: Config file path or JSON string (falls back to
            AGENTFORGE_A2A_CONFIG)
        agent_name: Agent to select; optional when exactly one is configured

    Returns:
        The selected RemoteAgentConfig

    Raises:
        click.ClickException: If the config is missing, invalid or ambiguous
    """
    try:
        agents = load_remote_agents_config(config_source)
    except (ValueError, ValidationError) as exc:
        raise click.ClickException(f"Invalid remote agent configuration: {exc}") from exc

    if not agents:
        raise click.ClickException(
            "No remote agents configured. Use --config or set AGENTFORGE_A2A_CONFIG."
        )

    if agent_name is None:
        if len(agents) > 1:
            raise click.ClickException(
                f"Several remote agents configured ({', '.join(agents)}); choose one with --agent."
            )
        return next(iter(agents.values()))

    if agent_name not in agents:
        raise click.ClickException(f"Remote agent '{agent_name}' not found in configuration")
    return agents[agent_name]


def _parse_task(task: str) -> Any:
    """Interpret the task argument as JSON when possible, else as plain text."""
    try:
        return json.loads(task)
    except json.JSONDecodeError:
        return task


@click.group(name="remote")
def remote() -> None:
    """Work with remote (A2A) agents."""
    pass


@remote.command(name="list")
@click.option("--config", "config_source", type=str, help="Config file path or JSON string")
def list_agents(config_source: Optional[str]) -> None:
    """List configured remote agents.

    Examples:
        agentforge remote list --config agents.json
    """
    try:
        agents = load_remote_agents_config(config_source)
    except (ValueError, ValidationError) as exc:
        raise click.ClickException(f"Invalid remote agent configuration: {exc}") from exc

    table = Table(title="Remote Agents")
    table.add_column("Name", style="cyan")
    table.add_column("Endpoints")
    table.add_column("Strategy")
    table.add_column("Max failovers", justify="right")
    table.add_column("Cache")

    for name, config in agents.items():
        table.add_row(
            name,
            "\n".join(config.endpoint_urls),
            config.failover.strategy.value,
            str(config.failover.max_failovers),
            f"{config.cache.ttl_ms}ms" if config.cache.enabled else "off",
        )

    console.print(table)


@remote.command(name="run")
@click.argument("task")
@click.option("--config", "config_source", type=str, help="Config file path or JSON string")
@click.option("--agent", "agent_name", type=str, help="Remote agent name")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
def run_task(
    task: str,
    config_source: Optional[str],
    agent_name: Optional[str],
    as_json: bool,
) -> None:
    """Run TASK on a remote agent.

    Examples:
        agentforge remote run "Summarize the report" --config agents.json
        agentforge remote run '{"query": "status"}' --agent researcher --json
    """
    config = load_agent_config(config_source, agent_name)

    async def _run() -> Any:
        async with RemoteAgentProxy(config) as proxy:
            return await proxy.run(_parse_task(task))

    try:
        result = asyncio.run(_run())
    except ExhaustedError as exc:
        for attempt in exc.attempts:
            console.print(
                f"[red]✗[/red] {attempt.endpoint_url}: {attempt.outcome.value}"
                f" ({attempt.error or 'no detail'})"
            )
        raise click.ClickException(exc.message) from exc
    except RemoteAgentError as exc:
        raise click.ClickException(str(exc)) from exc

    if as_json:
        click.echo(
            json.dumps(
                {
                    "output": result.output,
                    "endpoint": result.endpoint_url,
                    "attempts": len(result.attempts),
                    "from_cache": result.from_cache,
                },
                default=str,
            )
        )
        return

    console.print(f"[green]✓[/green] {config.name} via {result.endpoint_url}")
    console.print(result.output)


@remote.command(name="health")
@click.option("--config", "config_source", type=str, help="Config file path or JSON string")
@click.option("--agent", "agent_name", type=str, help="Remote agent name")
def health(config_source: Optional[str], agent_name: Optional[str]) -> None:
    """Probe the health endpoint of every endpoint of a remote agent.

    Examples:
        agentforge remote health --config agents.json --agent researcher
    """
    config = load_agent_config(config_source, agent_name)

    async def _probe() -> dict[str, bool]:
        async with RemoteAgentProxy(config) as proxy:
            checker = HealthChecker(
                proxy.pool,
                proxy.transport.http_client,
                path=config.health_check.path,
                timeout=config.health_check.timeout_seconds,
                token=config.authentication.token,
            )
            return await checker.check_all()

    results = asyncio.run(_probe())

    table = Table(title=f"Health: {config.name}")
    table.add_column("Endpoint", style="cyan")
    table.add_column("Status")
    for url, healthy in results.items():
        table.add_row(url, "[green]healthy[/green]" if healthy else "[red]unhealthy[/red]")
    console.print(table)

    if not any(results.values()):
        raise click.ClickException("No healthy endpoint")
