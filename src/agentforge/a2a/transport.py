"""HTTP transport for remote agent invocation.

This module provides the TransportClient class, which performs exactly one
remote invocation attempt against one endpoint and classifies its failure.
It never retries; failover is the dispatch policy's job.
"""

import asyncio
import time
from datetime import datetime, timezone
from typing import Any, Optional, Protocol, Union

import httpx

from agentforge.a2a.errors import (
    AuthError,
    RemoteConnectionError,
    RemoteError,
    RemoteTimeoutError,
    TransportError,
)
from agentforge.a2a.models import (
    AttemptOutcome,
    Endpoint,
    RemoteCallAttempt,
    RemoteResponse,
    RemoteTaskRequest,
)
from agentforge.observability.logging import get_logger

logger = get_logger(__name__)


class AttemptRecorder(Protocol):
    """Receives one record per transport attempt."""

    def record(self, attempt: RemoteCallAttempt) -> None: ...


class TransportClient:
    """HTTP client performing single remote agent invocations.

    Each call to ``invoke`` POSTs a RemoteTaskRequest to
    ``{endpoint}{path}`` and returns the remote output or raises a
    TransportError subclass:

    - RemoteTimeoutError when no response arrives within the timeout
    - RemoteConnectionError when the connection fails or drops
    - AuthError on HTTP 401/403
    - RemoteError on any other error response

    Attributes:
        path: Path the task is POSTed to
        token: Optional bearer token attached to every request

    Example:
        >>> async with TransportClient(token="secret") as transport:
        ...     response = await transport.invoke(
        ...         "https://agent.example.com",
        ...         RemoteTaskRequest(task="Summarize the report"),
        ...         timeout=10.0,
        ...     )
        ...     print(response.output)
    """

    def __init__(
        self,
        path: str = "/a2a/tasks",
        token: Optional[str] = None,
        recorder: Optional[AttemptRecorder] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize the transport client.

        Args:
            path: Path the task is POSTed to
            token: Optional bearer token attached to every request
            recorder: Optional sink for attempt records (usually the endpoint pool)
            http_client: Optional pre-configured client; not closed by this transport
            transport: Optional httpx transport for the internally created client
        """
        self.path = path if path.startswith("/") else f"/{path}"
        self.token = token
        self.recorder = recorder
        self._owns_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(
            transport=transport,
            follow_redirects=True,
        )

    async def close(self) -> None:
        """Close the underlying HTTP client if this transport created it."""
        if self._owns_client:
            await self._http_client.aclose()

    async def __aenter__(self) -> "TransportClient":
        return self

    async def __aexit__(self, exc_type: type, exc_val: Exception, exc_tb: object) -> None:
        await self.close()

    @property
    def http_client(self) -> httpx.AsyncClient:
        return self._http_client

    def build_headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def invoke(
        self,
        endpoint: Union[Endpoint, str],
        task: RemoteTaskRequest,
        timeout: float,
    ) -> RemoteResponse:
        """Perform one remote invocation attempt.

        Exactly one RemoteCallAttempt is recorded per invocation, unless the
        calling task is cancelled, in which case the request is aborted and
        nothing is recorded.

        Args:
            endpoint: Endpoint (or base URL) to invoke
            task: Task request to send
            timeout: Timeout in seconds for the whole attempt

        Returns:
            RemoteResponse carrying the remote agent's output

        Raises:
            ValueError: If the endpoint URL is empty or the timeout is not positive
            TransportError: Classified attempt failure
        """
        url = endpoint.url if isinstance(endpoint, Endpoint) else endpoint
        if not url:
            raise ValueError("Endpoint URL must not be empty")
        if timeout <= 0:
            raise ValueError("Timeout must be positive")

        started_at = datetime.now(timezone.utc)
        start = time.perf_counter()
        try:
            response = await asyncio.wait_for(self._post(url, task, timeout), timeout=timeout)
            output, status_code = self._parse_response(url, response)
        except TransportError as exc:
            exc.attempt = self._record(
                url, started_at, start, exc.outcome, getattr(exc, "status_code", None), exc
            )
            raise
        except asyncio.TimeoutError:
            timeout_error = RemoteTimeoutError(url, timeout)
            timeout_error.attempt = self._record(
                url, started_at, start, timeout_error.outcome, None, timeout_error
            )
            raise timeout_error from None

        attempt = self._record(url, started_at, start, AttemptOutcome.SUCCESS, status_code, None)
        return RemoteResponse(
            output=output,
            endpoint_url=url,
            status_code=status_code,
            duration_ms=attempt.duration_ms,
            attempt=attempt,
        )

    async def _post(self, url: str, task: RemoteTaskRequest, timeout: float) -> httpx.Response:
        target = f"{url.rstrip('/')}{self.path}"
        try:
            return await self._http_client.post(
                target,
                json=task.model_dump(mode="json"),
                headers=self.build_headers(),
                timeout=httpx.Timeout(timeout),
            )
        except httpx.TimeoutException as exc:
            raise RemoteTimeoutError(url, timeout) from exc
        except httpx.TransportError as exc:
            raise RemoteConnectionError(url, str(exc) or type(exc).__name__) from exc
        except httpx.DecodingError as exc:
            raise RemoteError(
                url, "invalid_response", str(exc) or "Response body could not be decoded"
            ) from exc
        except httpx.HTTPError as exc:
            raise RemoteConnectionError(url, str(exc) or type(exc).__name__) from exc

    def _parse_response(self, url: str, response: httpx.Response) -> tuple[Any, int]:
        """Return ``(output, status_code)`` or raise the classified error."""
        status_code = response.status_code

        if status_code in (401, 403):
            reason = "credential rejected" if self.token else "credential required"
            raise AuthError(url, reason, status_code=status_code)

        try:
            body: Any = response.json()
        except ValueError:
            body = None

        if status_code >= 400:
            code, message = self._extract_error(body)
            raise RemoteError(
                url,
                code or str(status_code),
                message or response.text or response.reason_phrase,
                status_code=status_code,
            )

        if not isinstance(body, dict):
            raise RemoteError(
                url,
                "invalid_response",
                "Response body is not a JSON object",
                status_code=status_code,
            )

        if body.get("error"):
            code, message = self._extract_error(body)
            raise RemoteError(
                url, code or "remote_error", message or "", status_code=status_code
            )

        if "output" not in body:
            raise RemoteError(
                url,
                "invalid_response",
                "Response body has no 'output'",
                status_code=status_code,
            )

        return body["output"], status_code

    @staticmethod
    def _extract_error(body: Any) -> tuple[Optional[str], Optional[str]]:
        """Pull ``{code, message}`` out of an error body, if present."""
        if not isinstance(body, dict):
            return None, None
        error = body.get("error", body)
        if isinstance(error, str):
            return None, error
        if not isinstance(error, dict):
            return None, None
        code = error.get("code")
        message = error.get("message")
        return (str(code) if code is not None else None), (
            str(message) if message is not None else None
        )

    def _record(
        self,
        url: str,
        started_at: datetime,
        start: float,
        outcome: AttemptOutcome,
        status_code: Optional[int],
        error: Optional[Exception],
    ) -> RemoteCallAttempt:
        attempt = RemoteCallAttempt(
            endpoint_url=url,
            started_at=started_at,
            duration_ms=(time.perf_counter() - start) * 1000,
            outcome=outcome,
            status_code=status_code,
            error=str(error) if error is not None else None,
        )
        if self.recorder is not None:
            self.recorder.record(attempt)
        logger.debug(
            "remote_attempt_recorded",
            endpoint=url,
            outcome=outcome.value,
            status_code=status_code,
            duration_ms=round(attempt.duration_ms, 2),
        )
        return attempt
