"""Exception hierarchy for remote agent invocation.

Attempt-level failures (timeouts, connection failures, remote errors and
authentication failures) derive from TransportError and carry the endpoint
they happened on. ExhaustedError is the single error surfaced to callers once
the failover budget for a call is spent.
"""

from typing import TYPE_CHECKING, Any, Optional

from agentforge.a2a.models import AttemptOutcome

if TYPE_CHECKING:
    from agentforge.a2a.models import RemoteCallAttempt


class RemoteAgentError(Exception):
    """Base exception for all remote agent errors.

    Attributes:
        message: Human-readable error description
        error_code: Unique code for programmatic error handling
        context: Additional context information
    """

    error_code: str = "REMOTE_AGENT_ERROR"

    def __init__(self, message: str, **context: Any) -> None:
        """Initialize remote agent error with message and optional context.

        Args:
            message: Human-readable error description
            **context: Additional context information (endpoint_url, agent, etc.)
        """
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        """Return formatted error message with context."""
        if not self.context:
            return f"[{self.error_code}] {self.message}"

        context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
        return f"[{self.error_code}] {self.message} ({context_str})"


class TransportError(RemoteAgentError):
    """Base class for failures of a single remote invocation attempt.

    Attributes:
        endpoint_url: URL of the endpoint the attempt was made against
        outcome: Attempt outcome recorded for this failure
        retryable: Whether failing over to another endpoint may help
        attempt: Attempt record, attached by the transport once recorded
    """

    error_code = "TRANSPORT_ERROR"
    outcome: AttemptOutcome = AttemptOutcome.CONNECTION_ERROR
    retryable: bool = True

    def __init__(self, endpoint_url: str, message: str, **context: Any) -> None:
        super().__init__(message, endpoint_url=endpoint_url, **context)
        self.endpoint_url = endpoint_url
        self.attempt: Optional["RemoteCallAttempt"] = None


class RemoteTimeoutError(TransportError):
    """Raised when no response arrives before the attempt timeout elapses."""

    error_code = "TIMEOUT"
    outcome = AttemptOutcome.TIMEOUT

    def __init__(self, endpoint_url: str, timeout_seconds: float, **context: Any) -> None:
        message = f"No response from '{endpoint_url}' within {timeout_seconds}s"
        super().__init__(endpoint_url, message, timeout_seconds=timeout_seconds, **context)
        self.timeout_seconds = timeout_seconds


class RemoteConnectionError(TransportError):
    """Raised when a connection cannot be established or is lost mid-request."""

    error_code = "CONNECTION_ERROR"
    outcome = AttemptOutcome.CONNECTION_ERROR

    def __init__(self, endpoint_url: str, reason: str, **context: Any) -> None:
        message = f"Connection to '{endpoint_url}' failed: {reason}"
        super().__init__(endpoint_url, message, reason=reason, **context)
        self.reason = reason


class RemoteError(TransportError):
    """Raised when the remote agent answers with a well-formed error.

    Attributes:
        code: Error code reported by the remote side
        remote_message: Error message reported by the remote side
        status_code: HTTP status code of the response, if any
    """

    error_code = "REMOTE_ERROR"
    outcome = AttemptOutcome.SERVER_ERROR

    def __init__(
        self,
        endpoint_url: str,
        code: str,
        message: str,
        status_code: Optional[int] = None,
        **context: Any,
    ) -> None:
        super().__init__(
            endpoint_url,
            f"Remote agent at '{endpoint_url}' returned error '{code}': {message}",
            code=code,
            status_code=status_code,
            **context,
        )
        self.code = code
        self.remote_message = message
        self.status_code = status_code


class AuthError(TransportError):
    """Raised when the remote endpoint refuses the request's credentials.

    Credentials are not endpoint-specific, so this error is never retried
    against another endpoint.
    """

    error_code = "AUTH_ERROR"
    outcome = AttemptOutcome.AUTH_ERROR
    retryable = False

    def __init__(
        self, endpoint_url: str, reason: str, status_code: Optional[int] = None, **context: Any
    ) -> None:
        message = f"Authentication with '{endpoint_url}' failed: {reason}"
        super().__init__(endpoint_url, message, status_code=status_code, **context)
        self.reason = reason
        self.status_code = status_code


class ExhaustedError(RemoteAgentError):
    """Raised when every permitted attempt of a call has failed.

    Attributes:
        attempts: Every attempt made during the call, in order
    """

    error_code = "EXHAUSTED"

    def __init__(self, attempts: list["RemoteCallAttempt"], **context: Any) -> None:
        summary = "; ".join(f"{a.endpoint_url}={a.outcome.value}" for a in attempts)
        message = f"All {len(attempts)} attempt(s) failed: {summary}"
        super().__init__(message, **context)
        self.attempts = list(attempts)
