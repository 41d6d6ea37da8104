#!/usr/bin/env python3
"""Remote agent failover demo.

Serves two copies of a local agent in-process (one of them broken) and calls
them through a RemoteAgentProxy configured with priority failover, so the
failover path can be observed without any network setup.
"""

import asyncio

import httpx
from rich.console import Console

from agentforge.a2a import ProxyEvent, create_a2a_app, create_remote_agent
from agentforge.agents import AgentDefinition, FunctionAgent
from agentforge.observability.logging import setup_logging

console = Console()


def build_transport() -> httpx.AsyncBaseTransport:
    """Route each host to its own in-process A2A app."""

    async def broken(task):
        raise RuntimeError("primary is down for maintenance")

    async def summarize(task):
        return f"Summary of '{task}': all systems nominal"

    apps = {
        "primary.local": httpx.ASGITransport(
            app=create_a2a_app(FunctionAgent(AgentDefinition(name="primary"), broken))
        ),
        "backup.local": httpx.ASGITransport(
            app=create_a2a_app(FunctionAgent(AgentDefinition(name="backup"), summarize))
        ),
    }

    class HostRouter(httpx.AsyncBaseTransport):
        async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
            return await apps[request.url.host].handle_async_request(request)

    return HostRouter()


def print_event(event: ProxyEvent) -> None:
    console.print(
        f"[dim]{event.type.value:<16}[/dim] {event.endpoint_url or '-'}"
        f" {event.outcome or ''}"
    )


async def main() -> None:
    setup_logging(log_level="WARNING", json_logs=False)

    proxy = create_remote_agent(
        {
            "name": "reporter",
            "serverUrl": "http://primary.local",
            "failover": {
                "servers": ["http://backup.local"],
                "strategy": "priority",
                "maxFailovers": 1,
            },
            "cache": {"enabled": True, "ttl": 60000},
        },
        http_transport=build_transport(),
    )
    proxy.subscribe(print_event)

    async with proxy:
        for _ in range(2):
            result = await proxy.run("weekly status report")
            source = "cache" if result.from_cache else result.endpoint_url
            console.print(f"[green]✓[/green] {result.output} [dim](from {source})[/dim]\n")

        for entry in proxy.pool.snapshot():
            console.print(entry)


if __name__ == "__main__":
    asyncio.run(main())
