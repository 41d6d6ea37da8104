"""Tests for A2A data model and error types."""

from datetime import datetime, timezone

import pytest

from agentforge.a2a.errors import (
    AuthError,
    ExhaustedError,
    RemoteConnectionError,
    RemoteError,
    RemoteTimeoutError,
)
from agentforge.a2a.models import (
    AttemptOutcome,
    CacheEntry,
    DispatchState,
    DispatchStrategy,
    Endpoint,
    HealthStatus,
    ProxyPhase,
    RemoteCallAttempt,
    RemoteTaskRequest,
)


class TestDispatchState:
    """Tests for the per-call phase machine."""

    def test_starts_idle(self) -> None:
        state = DispatchState(strategy=DispatchStrategy.PRIORITY)

        assert state.phase == ProxyPhase.IDLE
        assert not state.is_terminal

    def test_failover_path(self) -> None:
        state = DispatchState(strategy=DispatchStrategy.PRIORITY)

        for phase in (
            ProxyPhase.DISPATCHING,
            ProxyPhase.RETRYING,
            ProxyPhase.DISPATCHING,
            ProxyPhase.SUCCEEDED,
        ):
            state.transition(phase)

        assert state.is_terminal

    def test_cache_hit_goes_straight_to_succeeded(self) -> None:
        state = DispatchState(strategy=DispatchStrategy.PRIORITY)

        state.transition(ProxyPhase.SUCCEEDED)

        assert state.phase == ProxyPhase.SUCCEEDED

    @pytest.mark.parametrize(
        "path",
        [
            [ProxyPhase.RETRYING],
            [ProxyPhase.DISPATCHING, ProxyPhase.IDLE],
            [ProxyPhase.DISPATCHING, ProxyPhase.SUCCEEDED, ProxyPhase.DISPATCHING],
            [ProxyPhase.DISPATCHING, ProxyPhase.FAILED, ProxyPhase.RETRYING],
        ],
    )
    def test_illegal_transitions_raise(self, path) -> None:
        state = DispatchState(strategy=DispatchStrategy.PRIORITY)

        with pytest.raises(RuntimeError, match="Illegal"):
            for phase in path:
                state.transition(phase)


class TestValueTypes:
    """Tests for endpoints, attempts, cache entries and requests."""

    def test_endpoint_eligibility(self) -> None:
        assert Endpoint(url="http://a.test").is_eligible
        assert Endpoint(url="http://a.test", health=HealthStatus.HEALTHY).is_eligible
        assert not Endpoint(url="http://a.test", health=HealthStatus.UNHEALTHY).is_eligible

    def test_attempt_is_immutable(self) -> None:
        attempt = RemoteCallAttempt(
            endpoint_url="http://a.test",
            started_at=datetime.now(timezone.utc),
            duration_ms=3.0,
            outcome=AttemptOutcome.SUCCESS,
        )

        assert attempt.succeeded
        with pytest.raises(AttributeError):
            attempt.outcome = AttemptOutcome.TIMEOUT  # type: ignore[misc]

    def test_cache_entry_expiry_boundary(self) -> None:
        entry = CacheEntry(fingerprint="fp", value=1, inserted_at=100.0, ttl=5.0)

        assert not entry.is_expired(104.999)
        assert entry.is_expired(105.0)

    def test_task_request_generates_unique_ids(self) -> None:
        first = RemoteTaskRequest(task="a")
        second = RemoteTaskRequest(task="a")

        assert first.task_id != second.task_id
        assert first.context == {}


class TestErrors:
    """Tests for the error taxonomy."""

    def test_str_includes_code_and_context(self) -> None:
        error = RemoteConnectionError("http://a.test", "refused")

        assert str(error).startswith("[CONNECTION_ERROR] Connection to 'http://a.test' failed")
        assert "endpoint_url=http://a.test" in str(error)

    def test_retryability(self) -> None:
        assert RemoteTimeoutError("http://a.test", 1.0).retryable
        assert RemoteConnectionError("http://a.test", "refused").retryable
        assert RemoteError("http://a.test", "boom", "failed").retryable
        assert not AuthError("http://a.test", "credential rejected").retryable

    def test_outcomes(self) -> None:
        assert RemoteTimeoutError("http://a.test", 1.0).outcome == AttemptOutcome.TIMEOUT
        assert RemoteError("http://a.test", "x", "y").outcome == AttemptOutcome.SERVER_ERROR
        assert AuthError("http://a.test", "x").outcome == AttemptOutcome.AUTH_ERROR

    def test_exhausted_error_summarizes_attempts(self) -> None:
        attempts = [
            RemoteCallAttempt(
                endpoint_url=url,
                started_at=datetime.now(timezone.utc),
                duration_ms=1.0,
                outcome=outcome,
            )
            for url, outcome in [
                ("http://a.test", AttemptOutcome.TIMEOUT),
                ("http://b.test", AttemptOutcome.CONNECTION_ERROR),
            ]
        ]

        error = ExhaustedError(attempts, agent="researcher")

        assert error.attempts == attempts
        assert error.message == (
            "All 2 attempt(s) failed: http://a.test=timeout; http://b.test=connection_error"
        )
        assert str(error).endswith("(agent=researcher)")
