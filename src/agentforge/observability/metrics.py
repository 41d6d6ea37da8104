"""Prometheus metrics for remote agent calls.

MetricsEventListener subscribes to a RemoteAgentProxy and turns its events
into counters and histograms, keeping the proxy itself free of any metrics
dependency.
"""

from typing import Optional

from prometheus_client import Counter, Histogram, generate_latest

from agentforge.a2a.events import ProxyEvent, ProxyEventType

remote_attempts_total = Counter(
    "a2a_remote_attempts_total",
    "Total number of remote agent invocation attempts",
    labelnames=["agent", "endpoint", "outcome"],
)

remote_attempt_duration_seconds = Histogram(
    "a2a_remote_attempt_duration_seconds",
    "Remote agent invocation attempt duration in seconds",
    labelnames=["agent", "outcome"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
)

remote_calls_total = Counter(
    "a2a_remote_calls_total",
    "Total number of remote agent calls by final status",
    labelnames=["agent", "status"],
)

cache_hits_total = Counter(
    "a2a_cache_hits_total",
    "Total number of remote agent calls served from the response cache",
    labelnames=["agent"],
)


class MetricsEventListener:
    """Records proxy events as Prometheus metrics.

    Example:
        >>> proxy.subscribe(get_metrics_listener())
    """

    def __call__(self, event: ProxyEvent) -> None:
        if event.type == ProxyEventType.ATTEMPT_FAILED:
            self._record_attempt(event, event.outcome or "unknown")
        elif event.type == ProxyEventType.CALL_SUCCEEDED:
            self._record_attempt(event, "success")
            remote_calls_total.labels(agent=event.agent, status="succeeded").inc()
        elif event.type == ProxyEventType.CALL_EXHAUSTED:
            remote_calls_total.labels(agent=event.agent, status="exhausted").inc()
        elif event.type == ProxyEventType.CALL_FAILED:
            remote_calls_total.labels(agent=event.agent, status="failed").inc()
        elif event.type == ProxyEventType.CACHE_HIT:
            cache_hits_total.labels(agent=event.agent).inc()
            remote_calls_total.labels(agent=event.agent, status="cached").inc()

    def _record_attempt(self, event: ProxyEvent, outcome: str) -> None:
        remote_attempts_total.labels(
            agent=event.agent,
            endpoint=event.endpoint_url or "unknown",
            outcome=outcome,
        ).inc()
        if event.duration_ms is not None:
            remote_attempt_duration_seconds.labels(agent=event.agent, outcome=outcome).observe(
                event.duration_ms / 1000
            )

    def generate_metrics(self) -> bytes:
        """Generate Prometheus metrics in text exposition format."""
        return generate_latest()


_metrics_listener: Optional[MetricsEventListener] = None


def get_metrics_listener() -> MetricsEventListener:
    """Get the global MetricsEventListener instance."""
    global _metrics_listener
    if _metrics_listener is None:
        _metrics_listener = MetricsEventListener()
    return _metrics_listener
