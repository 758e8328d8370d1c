# statuspulse_agent/internal/agent/loop.py

import logging
import threading
import time
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor, wait
from functools import partial

from statuspulse_agent.internal.errors import DeliveryError
from statuspulse_agent.internal.forwarder.reporter import Reporter
from statuspulse_agent.internal.metrics.sampler import Sampler

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 60
DEFAULT_SETTLE_DELAY_SECONDS = 1.0

OUTCOME_DISPATCHED = "dispatched"
OUTCOME_DROPPED = "dropped"
OUTCOME_ERROR = "error"


class AgentLoop:
    """
    Drives Sampling -> Reporting on a fixed interval.

    Sending happens on a single reporter thread so a slow collector never
    delays the next sample. At most one send is in flight: before a new
    snapshot is handed over, the loop waits (up to send_timeout) for the
    previous send to finish, and drops the new snapshot if it has not.
    """

    def __init__(
        self,
        sampler: Sampler,
        reporter: Reporter,
        interval: float = DEFAULT_INTERVAL_SECONDS,
        settle_delay: float = DEFAULT_SETTLE_DELAY_SECONDS,
        send_timeout: float | None = None,
        stop_event: threading.Event | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.sampler = sampler
        self.reporter = reporter
        self.interval = interval
        self.settle_delay = settle_delay
        self.send_timeout = send_timeout if send_timeout is not None else interval
        self._stop_event = stop_event or threading.Event()
        self._clock = clock
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="reporter")
        self._in_flight: Future | None = None
        self._lock = threading.Lock()

        self.cycles = 0
        self.sent = 0
        self.dropped = 0
        self.errors = 0

    def _count(self, outcome: str):
        with self._lock:
            setattr(self, outcome, getattr(self, outcome) + 1)

    def _slot_free(self) -> bool:
        """Wait for the previous send, bounded by send_timeout."""
        previous = self._in_flight
        if previous is None or previous.done():
            return True
        wait([previous], timeout=self.send_timeout)
        return previous.done()

    def _on_send_done(self, cycle: int, future: Future):
        try:
            accepted = future.result()
        except DeliveryError as e:
            self._count("dropped")
            logger.warning(f"Cycle {cycle} dropped: {e.classification()}: {e}")
        except Exception as e:
            self._count("errors")
            logger.error(f"Cycle {cycle} error: unexpected delivery failure: {type(e).__name__}: {e}")
        else:
            self._count("sent")
            logger.info(f"Cycle {cycle} sent: {accepted.status_code} in {accepted.elapsed_seconds:.2f}s")

    def run_cycle(self) -> str:
        """
        Sample once and hand the snapshot to the reporter thread.

        Returns "dispatched", "dropped" or "error". The final outcome of a
        dispatched send is logged by the reporter thread when it completes.
        """
        with self._lock:
            self.cycles += 1
            cycle = self.cycles

        try:
            snapshot = self.sampler.sample()
        except Exception as e:
            self._count("errors")
            logger.error(f"Cycle {cycle} error: sampling failed: {type(e).__name__}: {e}")
            return OUTCOME_ERROR

        if not self._slot_free():
            self._count("dropped")
            logger.warning(f"Cycle {cycle} dropped: previous send still in flight after {self.send_timeout}s")
            return OUTCOME_DROPPED

        future = self._executor.submit(self.reporter.send, snapshot)
        future.add_done_callback(partial(self._on_send_done, cycle))
        self._in_flight = future
        return OUTCOME_DISPATCHED

    def drain(self, timeout: float | None = None) -> bool:
        """Wait for the in-flight send, if any. Returns True if none is left."""
        if self._in_flight is None:
            return True
        wait([self._in_flight], timeout=timeout)
        return self._in_flight.done()

    def run(self):
        """Run until stop() is called (or the stop event is set)."""
        logger.info(f"Agent loop starting (interval {self.interval}s)")
        try:
            self.sampler.warm_up()
        except Exception as e:
            logger.warning(f"Warm-up sample failed: {type(e).__name__}: {e}")

        if self._stop_event.wait(self.settle_delay):
            self._shutdown()
            return

        next_tick = self._clock()
        while not self._stop_event.is_set():
            self.run_cycle()

            next_tick += self.interval
            delay = next_tick - self._clock()
            if delay < 0:
                logger.warning(f"Cycle overran the interval by {-delay:.1f}s, rescheduling")
                next_tick = self._clock()
                delay = 0
            self._stop_event.wait(delay)

        self._shutdown()

    def stop(self):
        self._stop_event.set()

    def _shutdown(self):
        if not self.drain(timeout=self.send_timeout):
            logger.warning("Shutting down with a send still in flight")
        self._executor.shutdown(wait=False, cancel_futures=True)
        logger.info(
            f"Agent loop stopped after {self.cycles} cycles "
            f"(sent={self.sent}, dropped={self.dropped}, errors={self.errors})"
        )
