# statuspulse_agent/internal/errors.py

"""
Exception hierarchy for the StatusPulse agent.

None of these are fatal to the agent loop except ConfigError, which is
raised before the loop starts.
"""


class AgentError(Exception):
    """Base class for every agent-side error."""


class ConfigError(AgentError):
    """Invalid or incomplete startup configuration."""


class SamplingDegraded(AgentError):
    """A sub-metric could not be measured this cycle."""

    def __init__(self, metric: str, reason: str):
        self.metric = metric
        self.reason = reason
        super().__init__(f"{metric}: {reason}")


class DeliveryError(AgentError):
    """A snapshot could not be delivered to the collector."""

    kind = "DeliveryError"

    def classification(self) -> str:
        return self.kind


class NetworkUnreachable(DeliveryError):
    kind = "NetworkUnreachable"


class DeliveryTimeout(DeliveryError):
    kind = "Timeout"


class Rejected(DeliveryError):
    kind = "Rejected"

    def __init__(self, status_code: int, detail: str = ""):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"collector rejected snapshot: {status_code} {detail}".strip())

    def classification(self) -> str:
        return f"Rejected({self.status_code})"
