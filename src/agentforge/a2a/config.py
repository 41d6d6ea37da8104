"""Remote agent configuration loading.

Configuration is validated once, at proxy construction, and is immutable
afterwards. Durations are expressed in milliseconds. Both snake_case field
names and the camelCase keys used in JSON config files are accepted::

    {
      "remoteAgents": {
        "researcher": {
          "serverUrl": "https://research-1.internal",
          "timeout": 30000,
          "failover": {
            "servers": ["https://research-2.internal"],
            "strategy": "priority",
            "retryDelay": 250,
            "maxFailovers": 2
          },
          "authentication": {"token": "..."},
          "cache": {"enabled": true, "ttl": 60000}
        }
      }
    }
"""

import json
import os
from typing import Any, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from agentforge.a2a.models import DispatchStrategy

TOKEN_ENV_VAR = "AGENTFORGE_A2A_TOKEN"
DEFAULT_AGENT_NAME = "default"


def _validate_url(value: str) -> str:
    url = value.strip()
    if not url:
        raise ValueError("Endpoint URL must not be empty")
    if not url.startswith(("http://", "https://")):
        raise ValueError(f"Endpoint URL must use http or https: '{url}'")
    return url.rstrip("/")


class _FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")


class FailoverConfig(_FrozenModel):
    """Failover and load-balancing settings.

    Attributes:
        servers: Ordered failover endpoints tried after the primary
        strategy: Endpoint selection strategy
        retry_delay_ms: Minimum wait before retrying the same endpoint
        max_failovers: Maximum number of failovers per call
        tie_break: Tie-break rule for least-connections ("declaration" or "round-robin")
    """

    servers: list[str] = Field(default_factory=list)
    strategy: DispatchStrategy = DispatchStrategy.PRIORITY
    retry_delay_ms: int = Field(default=0, ge=0, alias="retryDelay")
    max_failovers: int = Field(default=0, ge=0, alias="maxFailovers")
    tie_break: str = Field(default="declaration", alias="tieBreak")

    @field_validator("servers")
    @classmethod
    def validate_servers(cls, value: list[str]) -> list[str]:
        return [_validate_url(url) for url in value]

    @field_validator("strategy", mode="before")
    @classmethod
    def normalize_strategy(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower().replace("_", "-")
        return value

    @field_validator("tie_break")
    @classmethod
    def validate_tie_break(cls, value: str) -> str:
        normalized = value.strip().lower().replace("_", "-")
        if normalized not in ("declaration", "round-robin"):
            raise ValueError("tie_break must be 'declaration' or 'round-robin'")
        return normalized

    @property
    def retry_delay_seconds(self) -> float:
        return self.retry_delay_ms / 1000


class AuthenticationConfig(_FrozenModel):
    """Credentials attached to every remote request."""

    token: Optional[str] = Field(default=None, repr=False, description="Bearer token (sensitive)")


class CacheConfig(_FrozenModel):
    """Response cache settings."""

    enabled: bool = False
    ttl_ms: int = Field(default=300000, alias="ttl")
    max_entries: int = Field(default=1024, ge=1, alias="maxEntries")

    @model_validator(mode="after")
    def validate_ttl(self) -> "CacheConfig":
        if self.enabled and self.ttl_ms <= 0:
            raise ValueError("cache ttl must be positive when caching is enabled")
        return self

    @property
    def ttl_seconds(self) -> float:
        return self.ttl_ms / 1000


class HealthCheckConfig(_FrozenModel):
    """Health tracking settings.

    The thresholds drive the endpoint pool's hysteresis even when active
    health probing is disabled.
    """

    enabled: bool = False
    path: str = "/health"
    interval_ms: int = Field(default=30000, gt=0, alias="interval")
    timeout_ms: int = Field(default=2000, gt=0, alias="timeout")
    failure_threshold: int = Field(default=3, ge=1, alias="failureThreshold")
    recovery_threshold: int = Field(default=3, ge=1, alias="recoveryThreshold")
    history_size: int = Field(default=20, ge=1, alias="historySize")

    @property
    def interval_seconds(self) -> float:
        return self.interval_ms / 1000

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000


class RemoteAgentConfig(_FrozenModel):
    """Configuration for one logical remote agent.

    Attributes:
        name: Logical name of the remote agent
        server_url: Primary endpoint
        path: Path the task is POSTed to
        timeout_ms: Per-attempt timeout
        failover: Failover and load-balancing settings
        authentication: Credentials
        cache: Response cache settings
        health_check: Health tracking settings
    """

    name: str = DEFAULT_AGENT_NAME
    server_url: str = Field(alias="serverUrl")
    path: str = "/a2a/tasks"
    timeout_ms: int = Field(default=30000, gt=0, alias="timeout")
    failover: FailoverConfig = Field(default_factory=FailoverConfig)
    authentication: AuthenticationConfig = Field(default_factory=AuthenticationConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    health_check: HealthCheckConfig = Field(default_factory=HealthCheckConfig, alias="healthCheck")

    @field_validator("server_url")
    @classmethod
    def validate_server_url(cls, value: str) -> str:
        return _validate_url(value)

    @field_validator("path")
    @classmethod
    def validate_path(cls, value: str) -> str:
        return value if value.startswith("/") else f"/{value}"

    @model_validator(mode="after")
    def validate_unique_endpoints(self) -> "RemoteAgentConfig":
        urls = self.endpoint_urls
        if len(set(urls)) != len(urls):
            raise ValueError(f"Duplicate endpoint URLs in configuration: {urls}")
        return self

    @property
    def endpoint_urls(self) -> list[str]:
        """Primary endpoint followed by the failover list, in declaration order."""
        return [self.server_url, *self.failover.servers]

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000


def load_remote_agents_config(
    config: Optional[Any] = None,
    env_var: str = "AGENTFORGE_A2A_CONFIG",
) -> dict[str, RemoteAgentConfig]:
    """Load remote agent configuration from various sources.

    Priority (highest to lowest):
    1. ``config`` argument (dict, JSON string or file path)
    2. ``AGENTFORGE_A2A_CONFIG`` environment variable (JSON string or file path)

    Accepted layouts are ``{"remoteAgents": {name: {...}}}``,
    ``{"agents": {name: {...}}}`` or a single agent object, which is
    registered under ``"default"``. When an agent has no token configured,
    ``AGENTFORGE_A2A_TOKEN`` is used if set.

    Args:
        config: Optional dict with raw config, file path or JSON string.
        env_var: Name of the environment variable to check.

    Returns:
        Mapping of agent name to validated RemoteAgentConfig (empty if no source).

    Raises:
        ValueError: If the source is not valid JSON or not a JSON object
        pydantic.ValidationError: If an agent configuration is invalid
    """
    load_dotenv()
    raw: Optional[dict[str, Any]] = None

    if config is not None:
        if isinstance(config, dict):
            raw = config
        elif isinstance(config, str):
            raw = _load_from_file_or_json(config)
    else:
        env_value = os.environ.get(env_var)
        if env_value:
            raw = _load_from_file_or_json(env_value)

    if raw is None:
        return {}

    return _parse_raw_config(raw)


def _load_from_file_or_json(value: str) -> dict[str, Any]:
    """Load a JSON dict from a file path or raw JSON string."""
    if os.path.exists(value):
        with open(value) as f:
            result = json.load(f)
    else:
        try:
            result = json.loads(value)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid remote agent config JSON: {exc}") from exc

    if not isinstance(result, dict):
        raise ValueError(f"Expected a JSON object, got {type(result).__name__}")
    return result


def _parse_raw_config(raw: dict[str, Any]) -> dict[str, RemoteAgentConfig]:
    if "remoteAgents" in raw:
        agents_raw = raw["remoteAgents"]
    elif "agents" in raw:
        agents_raw = raw["agents"]
    else:
        agents_raw = {raw.get("name", DEFAULT_AGENT_NAME): raw}

    env_token = os.environ.get(TOKEN_ENV_VAR)
    agents: dict[str, RemoteAgentConfig] = {}
    for name, agent_data in agents_raw.items():
        data = {**agent_data, "name": name}
        if env_token and not _has_token(data):
            auth = dict(data.get("authentication") or {})
            auth["token"] = env_token
            data["authentication"] = auth
        agents[name] = RemoteAgentConfig.model_validate(data)
    return agents


def _has_token(data: dict[str, Any]) -> bool:
    auth = data.get("authentication") or {}
    return bool(auth.get("token"))
