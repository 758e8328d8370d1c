# statuspulse_agent/internal/agent/config.py

import os
from dataclasses import dataclass

from statuspulse_agent.internal.agent.credentials import load_credentials
from statuspulse_agent.internal.agent.loop import (
    DEFAULT_INTERVAL_SECONDS,
    DEFAULT_SETTLE_DELAY_SECONDS,
)
from statuspulse_agent.internal.errors import ConfigError
from statuspulse_agent.internal.forwarder.reporter import (
    DEFAULT_SERVER_URL,
    REQUEST_TIMEOUT_SECONDS,
)


@dataclass(frozen=True)
class AgentConfig:
    credential: str
    collector_endpoint: str = DEFAULT_SERVER_URL
    sample_interval_seconds: int = DEFAULT_INTERVAL_SECONDS
    settle_delay_seconds: float = DEFAULT_SETTLE_DELAY_SECONDS
    request_timeout_seconds: float = REQUEST_TIMEOUT_SECONDS
    log_level: str = "INFO"


def resolve_config(
    token: str | None = None,
    server: str | None = None,
    interval: int | str | None = None,
    quiet: bool = False,
    use_stored: bool = True,
) -> AgentConfig:
    """
    Build the agent configuration.

    Precedence: explicit arguments, then STATUSPULSE_* environment
    variables, then stored credentials, then defaults.

    Raises:
        ConfigError: no credential found, or the interval is not a
            positive integer.
    """
    stored = load_credentials() if use_stored else None
    stored = stored or {}

    credential = token or os.getenv("STATUSPULSE_TOKEN") or stored.get("token")
    if not credential:
        raise ConfigError(
            "No host token provided. Use --token, set STATUSPULSE_TOKEN, "
            "or run 'statuspulse-agent register' first."
        )

    endpoint = server or os.getenv("STATUSPULSE_SERVER_URL") or stored.get("server_url") or DEFAULT_SERVER_URL

    raw_interval = interval if interval is not None else os.getenv("STATUSPULSE_INTERVAL", DEFAULT_INTERVAL_SECONDS)
    try:
        sample_interval = int(raw_interval)
    except (TypeError, ValueError):
        raise ConfigError(f"Sample interval must be an integer, got {raw_interval!r}")
    if sample_interval <= 0:
        raise ConfigError(f"Sample interval must be positive, got {sample_interval}")

    return AgentConfig(
        credential=credential,
        collector_endpoint=endpoint,
        sample_interval_seconds=sample_interval,
        log_level="WARNING" if quiet else "INFO",
    )
