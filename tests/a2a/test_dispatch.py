"""Tests for the dispatch policy."""

from datetime import datetime, timezone

import pytest

from agentforge.a2a.dispatch import DispatchPolicy
from agentforge.a2a.errors import AuthError, RemoteConnectionError, RemoteTimeoutError
from agentforge.a2a.models import AttemptOutcome, DispatchStrategy, RemoteCallAttempt


def select_and_release(policy, pool):
    """Run a fresh single-attempt call and release the endpoint."""
    state = policy.new_state()
    endpoint = policy.select_next(pool, state)
    pool.end_attempt(endpoint)
    return endpoint.url


def failed_attempt(url: str) -> RemoteCallAttempt:
    return RemoteCallAttempt(
        endpoint_url=url,
        started_at=datetime.now(timezone.utc),
        duration_ms=1.0,
        outcome=AttemptOutcome.CONNECTION_ERROR,
    )


class TestDispatchPolicyValidation:
    """Tests for DispatchPolicy construction."""

    def test_negative_failovers_rejected(self) -> None:
        with pytest.raises(ValueError):
            DispatchPolicy(max_failovers=-1)

    def test_negative_delay_rejected(self) -> None:
        with pytest.raises(ValueError):
            DispatchPolicy(retry_delay=-0.5)

    def test_unknown_tie_break_rejected(self) -> None:
        with pytest.raises(ValueError):
            DispatchPolicy(tie_break="random")

    def test_strategy_accepts_string_value(self) -> None:
        policy = DispatchPolicy(strategy="round-robin")

        assert policy.strategy == DispatchStrategy.ROUND_ROBIN
        assert policy.new_state().strategy == DispatchStrategy.ROUND_ROBIN


class TestPriorityStrategy:
    """Tests for priority selection."""

    def test_fresh_call_follows_declaration_order(self, pool, endpoint_urls) -> None:
        """Each failover moves to the next declared endpoint."""
        policy = DispatchPolicy(DispatchStrategy.PRIORITY, max_failovers=2)
        state = policy.new_state()
        selected = []

        for _ in range(3):
            endpoint = policy.select_next(pool, state)
            selected.append(endpoint.url)
            state.attempts.append(failed_attempt(endpoint.url))
            policy.on_failure(state, RemoteConnectionError(endpoint.url, "refused"))

        assert selected == endpoint_urls

    def test_unhealthy_primary_skipped(self, pool, endpoint_urls) -> None:
        pool.mark_unhealthy(pool.all_endpoints()[0])
        policy = DispatchPolicy(DispatchStrategy.PRIORITY)

        assert select_and_release(policy, pool) == endpoint_urls[1]

    def test_all_unhealthy_selects_first(self, pool, endpoint_urls) -> None:
        """With every endpoint unhealthy the first declared one is the last resort."""
        for endpoint in pool.all_endpoints():
            pool.mark_unhealthy(endpoint)
        policy = DispatchPolicy(DispatchStrategy.PRIORITY)

        assert select_and_release(policy, pool) == endpoint_urls[0]

    def test_selection_increments_in_flight(self, pool) -> None:
        policy = DispatchPolicy()
        endpoint = policy.select_next(pool, policy.new_state())

        assert endpoint.in_flight == 1

    def test_new_round_after_every_endpoint_tried(self, pool, endpoint_urls) -> None:
        """Once all endpoints were tried the candidate set resets."""
        policy = DispatchPolicy(DispatchStrategy.PRIORITY, max_failovers=5)
        state = policy.new_state()
        state.tried.update(endpoint_urls)

        endpoint = policy.select_next(pool, state)

        assert endpoint.url == endpoint_urls[0]
        assert state.tried == {endpoint_urls[0]}


class TestRoundRobinStrategy:
    """Tests for round-robin selection."""

    def test_sequential_calls_rotate(self, pool, endpoint_urls) -> None:
        """Six calls over three healthy endpoints split 2-2-2 in declaration order."""
        policy = DispatchPolicy(DispatchStrategy.ROUND_ROBIN)

        selected = [select_and_release(policy, pool) for _ in range(6)]

        assert selected == endpoint_urls * 2

    def test_unhealthy_endpoint_skipped(self, pool, endpoint_urls) -> None:
        pool.mark_unhealthy(pool.all_endpoints()[1])
        policy = DispatchPolicy(DispatchStrategy.ROUND_ROBIN)

        selected = [select_and_release(policy, pool) for _ in range(4)]

        assert selected == [endpoint_urls[0], endpoint_urls[2]] * 2

    def test_failover_within_call_uses_untried(self, pool, endpoint_urls) -> None:
        """Within a call, failover continues from the cursor among untried endpoints."""
        policy = DispatchPolicy(DispatchStrategy.ROUND_ROBIN, max_failovers=2)
        select_and_release(policy, pool)

        state = policy.new_state()
        first = policy.select_next(pool, state)
        state.attempts.append(failed_attempt(first.url))
        policy.on_failure(state, RemoteConnectionError(first.url, "refused"))
        second = policy.select_next(pool, state)

        assert [first.url, second.url] == [endpoint_urls[1], endpoint_urls[2]]


class TestLeastConnectionsStrategy:
    """Tests for least-connections selection."""

    def test_picks_fewest_in_flight(self, pool, endpoint_urls) -> None:
        endpoints = pool.all_endpoints()
        pool.begin_attempt(endpoints[0])
        pool.begin_attempt(endpoints[1])
        policy = DispatchPolicy(DispatchStrategy.LEAST_CONNECTIONS)

        assert select_and_release(policy, pool) == endpoint_urls[2]

    def test_ties_broken_by_declaration_order(self, pool, endpoint_urls) -> None:
        policy = DispatchPolicy(DispatchStrategy.LEAST_CONNECTIONS)

        selected = [select_and_release(policy, pool) for _ in range(3)]

        assert selected == [endpoint_urls[0]] * 3

    def test_ties_broken_by_rotation(self, pool, endpoint_urls) -> None:
        """With the round-robin tie-break, equally loaded endpoints take turns."""
        policy = DispatchPolicy(DispatchStrategy.LEAST_CONNECTIONS, tie_break="round-robin")

        selected = [select_and_release(policy, pool) for _ in range(3)]

        assert selected == endpoint_urls

    def test_concurrent_calls_spread(self, pool, endpoint_urls) -> None:
        """Selections that stay in flight spread over the pool."""
        policy = DispatchPolicy(DispatchStrategy.LEAST_CONNECTIONS)

        selected = [policy.select_next(pool, policy.new_state()).url for _ in range(3)]

        assert selected == endpoint_urls

    def test_unhealthy_endpoint_avoided(self, pool, endpoint_urls) -> None:
        pool.mark_unhealthy(pool.all_endpoints()[0])
        policy = DispatchPolicy(DispatchStrategy.LEAST_CONNECTIONS)

        assert select_and_release(policy, pool) == endpoint_urls[1]


class TestFailoverDecisions:
    """Tests for on_failure, the attempt budget and retry delays."""

    def test_auth_error_never_fails_over(self) -> None:
        policy = DispatchPolicy(max_failovers=3)
        state = policy.new_state()

        assert policy.on_failure(state, AuthError("http://a.test", "credential rejected")) is False
        assert state.failover_count == 0

    def test_budget_is_bounded(self) -> None:
        """Failover count never exceeds max_failovers."""
        policy = DispatchPolicy(max_failovers=2)
        state = policy.new_state()
        error = RemoteTimeoutError("http://a.test", 1.0)

        assert policy.on_failure(state, error) is True
        assert policy.on_failure(state, error) is True
        assert policy.on_failure(state, error) is False
        assert state.failover_count == 2

    def test_no_selection_without_granted_failover(self, pool) -> None:
        """After a failed attempt, selection requires a granted failover."""
        policy = DispatchPolicy(max_failovers=0)
        state = policy.new_state()
        endpoint = policy.select_next(pool, state)
        state.attempts.append(failed_attempt(endpoint.url))

        assert policy.select_next(pool, state) is None

    def test_delay_only_for_same_endpoint(self, pool) -> None:
        endpoints = pool.all_endpoints()
        policy = DispatchPolicy(retry_delay=0.25)
        state = policy.new_state()

        assert policy.delay_before(state, endpoints[0]) == 0.0

        state.last_endpoint_url = endpoints[0].url
        assert policy.delay_before(state, endpoints[0]) == 0.25
        assert policy.delay_before(state, endpoints[1]) == 0.0
