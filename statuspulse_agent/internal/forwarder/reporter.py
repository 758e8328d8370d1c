# statuspulse_agent/internal/forwarder/reporter.py

import logging
import time
from dataclasses import dataclass

import requests

from statuspulse_agent.internal.errors import (
    DeliveryTimeout,
    NetworkUnreachable,
    Rejected,
)
from statuspulse_agent.internal.metrics.models import Snapshot

logger = logging.getLogger(__name__)

DEFAULT_SERVER_URL = "http://localhost:8282/api/metrics"
REQUEST_TIMEOUT_SECONDS = 10


@dataclass(frozen=True)
class Accepted:
    status_code: int
    elapsed_seconds: float


class Reporter:
    """
    Delivers snapshots to the collector's ingestion endpoint.

    One attempt per snapshot. A failed delivery raises a DeliveryError and
    the snapshot is gone: the next cycle is the retry.
    """

    def __init__(
        self,
        endpoint: str = DEFAULT_SERVER_URL,
        credential: str = "",
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        session: requests.Session | None = None,
    ):
        """
        Args:
            endpoint: Full URL of the collector's metrics endpoint.
            credential: Bearer token issued to this host. Fixed for the
                lifetime of the process.
            timeout: Per-request timeout in seconds.
            session: Optional requests session (connection reuse, tests).
        """
        if not credential:
            raise ValueError("Reporter requires a host credential")
        self.endpoint = endpoint
        self.timeout = timeout
        self.session = session or requests.Session()
        self.headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {credential}",
        }

    def send(self, snapshot: Snapshot) -> Accepted:
        """
        POST one snapshot.

        Raises:
            NetworkUnreachable: connection could not be established.
            DeliveryTimeout: the collector did not answer in time.
            Rejected: the collector answered with a non-2xx status.
        """
        # json= lets requests encode nested structures as real JSON objects
        payload = snapshot.to_payload()
        started = time.monotonic()
        try:
            response = self.session.post(
                self.endpoint,
                json=payload,
                headers=self.headers,
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as e:
            raise DeliveryTimeout(f"no response from {self.endpoint} within {self.timeout}s") from e
        except requests.exceptions.RequestException as e:
            raise NetworkUnreachable(f"could not reach {self.endpoint}: {e}") from e

        elapsed = time.monotonic() - started
        if not 200 <= response.status_code < 300:
            raise Rejected(response.status_code, _error_detail(response))

        logger.debug(f"Snapshot accepted by collector ({response.status_code}) in {elapsed:.2f}s")
        return Accepted(status_code=response.status_code, elapsed_seconds=elapsed)

    def close(self):
        self.session.close()


def _error_detail(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        detail = body.get("detail") or body.get("error")
        if detail is not None:
            return str(detail)
    return str(body)[:200]
