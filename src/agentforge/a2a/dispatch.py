"""Dispatch policy: endpoint selection and failover decisions.

A selection only considers endpoints not yet tried in the current round of
a call. Once every endpoint has been tried, a new round begins, so a call
can keep failing over until its budget is spent even with a small pool.
"""

from typing import Optional

from agentforge.a2a.errors import TransportError
from agentforge.a2a.models import DispatchState, DispatchStrategy, Endpoint
from agentforge.a2a.pool import EndpointPool


class DispatchPolicy:
    """Selects endpoints for a call and decides when to fail over.

    Attributes:
        strategy: Endpoint selection strategy
        max_failovers: Maximum number of failovers per call
        retry_delay: Minimum wait in seconds before re-attempting the same endpoint
        tie_break: Least-connections tie-break ("declaration" or "round-robin")

    Example:
        >>> policy = DispatchPolicy(DispatchStrategy.PRIORITY, max_failovers=2)
        >>> state = policy.new_state()
        >>> endpoint = policy.select_next(pool, state)
    """

    def __init__(
        self,
        strategy: DispatchStrategy = DispatchStrategy.PRIORITY,
        max_failovers: int = 0,
        retry_delay: float = 0.0,
        tie_break: str = "declaration",
    ) -> None:
        if max_failovers < 0:
            raise ValueError("max_failovers must be >= 0")
        if retry_delay < 0:
            raise ValueError("retry_delay must be >= 0")
        if tie_break not in ("declaration", "round-robin"):
            raise ValueError("tie_break must be 'declaration' or 'round-robin'")

        self.strategy = DispatchStrategy(strategy)
        self.max_failovers = max_failovers
        self.retry_delay = retry_delay
        self.tie_break = tie_break

    def new_state(self) -> DispatchState:
        """Create fresh per-call dispatch state."""
        return DispatchState(strategy=self.strategy)

    def select_next(self, pool: EndpointPool, state: DispatchState) -> Optional[Endpoint]:
        """Select the endpoint for the next attempt of a call.

        The chosen endpoint's in-flight count is incremented atomically with
        the selection; callers must release it with ``pool.end_attempt``.

        Args:
            pool: Endpoint pool of the remote agent
            state: Dispatch state of the call

        Returns:
            The selected endpoint, or None when the call's budget is spent
        """
        # A call gets its initial attempt plus one per granted failover.
        if len(state.attempts) > state.failover_count or (
            state.failover_count > self.max_failovers
        ):
            return None

        with pool.lock:
            candidates = [ep for ep in pool.all_endpoints() if ep.url not in state.tried]
            if not candidates:
                state.tried.clear()
                candidates = list(pool.all_endpoints())

            if self.strategy == DispatchStrategy.ROUND_ROBIN:
                endpoint = self._select_round_robin(pool, candidates)
            elif self.strategy == DispatchStrategy.LEAST_CONNECTIONS:
                endpoint = self._select_least_connections(pool, candidates)
            else:
                endpoint = self._select_priority(candidates)

            pool.begin_attempt(endpoint)

        state.tried.add(endpoint.url)
        return endpoint

    def on_failure(self, state: DispatchState, error: TransportError) -> bool:
        """Decide whether a failed attempt should fail over.

        Args:
            state: Dispatch state of the call; its failover count is
                incremented when a failover is granted
            error: The attempt's error

        Returns:
            True if another attempt should be made
        """
        if not error.retryable:
            return False
        if state.failover_count >= self.max_failovers:
            return False
        state.failover_count += 1
        return True

    def delay_before(self, state: DispatchState, endpoint: Endpoint) -> float:
        """Seconds to wait before attempting ``endpoint``.

        The retry delay applies only when the previous attempt of the call
        went to the same endpoint; switching endpoints is immediate.
        """
        if state.last_endpoint_url == endpoint.url:
            return self.retry_delay
        return 0.0

    def _select_priority(self, candidates: list[Endpoint]) -> Endpoint:
        for endpoint in candidates:
            if endpoint.is_eligible:
                return endpoint
        return candidates[0]

    def _select_round_robin(self, pool: EndpointPool, candidates: list[Endpoint]) -> Endpoint:
        candidate_urls = {ep.url for ep in candidates}
        ordered = [ep for ep in pool.rotation_order() if ep.url in candidate_urls]
        endpoint = next((ep for ep in ordered if ep.is_eligible), ordered[0])
        pool.advance_cursor(endpoint)
        return endpoint

    def _select_least_connections(
        self, pool: EndpointPool, candidates: list[Endpoint]
    ) -> Endpoint:
        eligible = [ep for ep in candidates if ep.is_eligible] or candidates
        if self.tie_break == "round-robin":
            order = {ep.url: index for index, ep in enumerate(pool.rotation_order())}
        else:
            order = {ep.url: ep.priority for ep in eligible}

        endpoint = min(eligible, key=lambda ep: (ep.in_flight, order[ep.url]))
        if self.tie_break == "round-robin":
            pool.advance_cursor(endpoint)
        return endpoint
