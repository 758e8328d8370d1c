import threading
import time

from statuspulse_agent.internal.agent.loop import (
    OUTCOME_DISPATCHED,
    OUTCOME_DROPPED,
    OUTCOME_ERROR,
    AgentLoop,
)
from statuspulse_agent.internal.errors import NetworkUnreachable, Rejected
from statuspulse_agent.internal.forwarder.reporter import Accepted


def wait_until(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class DummySampler:
    def __init__(self, fail=False):
        self.fail = fail
        self.samples = 0
        self.warm_ups = 0
        self.sample_times = []

    def warm_up(self):
        self.warm_ups += 1

    def sample(self):
        self.samples += 1
        self.sample_times.append(time.monotonic())
        if self.fail:
            raise RuntimeError("psutil exploded")
        return {"n": self.samples}


class DummyReporter:
    def __init__(self, error=None, delay=0.0):
        self.error = error
        self.delay = delay
        self.sent = []
        self.release = threading.Event()

    def send(self, snapshot):
        if self.delay:
            self.release.wait(self.delay)
        if self.error:
            raise self.error
        self.sent.append(snapshot)
        return Accepted(status_code=200, elapsed_seconds=0.0)


def test_run_cycle_dispatches_and_counts_sent():
    reporter = DummyReporter()
    loop = AgentLoop(DummySampler(), reporter, interval=60)

    assert loop.run_cycle() == OUTCOME_DISPATCHED
    assert loop.drain(timeout=2)
    assert wait_until(lambda: loop.sent == 1)

    assert reporter.sent == [{"n": 1}]
    assert loop.dropped == 0


def test_delivery_failure_is_counted_as_dropped(caplog):
    loop = AgentLoop(DummySampler(), DummyReporter(error=Rejected(503, "busy")), interval=60)

    loop.run_cycle()
    assert wait_until(lambda: loop.dropped == 1)

    assert loop.sent == 0
    assert any("Rejected(503)" in r.message for r in caplog.records)


def test_sampling_failure_is_error_not_crash():
    reporter = DummyReporter()
    loop = AgentLoop(DummySampler(fail=True), reporter, interval=60)

    assert loop.run_cycle() == OUTCOME_ERROR
    assert loop.run_cycle() == OUTCOME_ERROR
    assert loop.errors == 2
    assert reporter.sent == []


def test_busy_send_slot_drops_new_snapshot():
    reporter = DummyReporter(delay=5.0)
    sampler = DummySampler()
    loop = AgentLoop(sampler, reporter, interval=60, send_timeout=0.05)

    assert loop.run_cycle() == OUTCOME_DISPATCHED
    assert loop.run_cycle() == OUTCOME_DROPPED
    # sampling still happened for the dropped cycle
    assert sampler.samples == 2

    reporter.release.set()
    assert loop.drain(timeout=2)
    assert loop.run_cycle() == OUTCOME_DISPATCHED


def test_next_send_waits_for_previous_to_finish():
    reporter = DummyReporter(delay=0.2)
    loop = AgentLoop(DummySampler(), reporter, interval=60, send_timeout=2)

    loop.run_cycle()
    started = time.monotonic()
    assert loop.run_cycle() == OUTCOME_DISPATCHED
    assert time.monotonic() - started >= 0.1
    loop.drain(timeout=2)
    assert len(reporter.sent) == 2


def test_failing_reporter_does_not_delay_sampling():
    sampler = DummySampler()
    reporter = DummyReporter(error=NetworkUnreachable("connection refused"))
    loop = AgentLoop(sampler, reporter, interval=0.05, settle_delay=0)

    thread = threading.Thread(target=loop.run, daemon=True)
    thread.start()
    time.sleep(0.5)
    loop.stop()
    thread.join(timeout=2)

    assert not thread.is_alive()
    assert sampler.warm_ups == 1
    assert sampler.samples >= 5
    assert wait_until(lambda: loop.dropped == sampler.samples)
    gaps = [b - a for a, b in zip(sampler.sample_times, sampler.sample_times[1:])]
    assert max(gaps) < 0.05 * 2 + 0.1
    assert loop.sent == 0
    assert loop.dropped >= 4


def test_slow_reporter_does_not_stall_sampling():
    sampler = DummySampler()
    reporter = DummyReporter(delay=10.0)
    loop = AgentLoop(sampler, reporter, interval=0.05, settle_delay=0, send_timeout=0.01)

    thread = threading.Thread(target=loop.run, daemon=True)
    thread.start()
    time.sleep(0.5)
    loop.stop()
    reporter.release.set()
    thread.join(timeout=2)

    assert sampler.samples >= 5
    assert loop.dropped >= 4


def test_stop_during_settle_delay_skips_cycles():
    sampler = DummySampler()
    loop = AgentLoop(sampler, DummyReporter(), interval=60, settle_delay=10)

    thread = threading.Thread(target=loop.run, daemon=True)
    thread.start()
    time.sleep(0.1)
    loop.stop()
    thread.join(timeout=2)

    assert not thread.is_alive()
    assert sampler.warm_ups == 1
    assert sampler.samples == 0
