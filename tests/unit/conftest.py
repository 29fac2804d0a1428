"""
Shared fakes for the unit tests.
"""

import time
from collections import deque

import pytest

from filescout.core.jobs import JobRunner
from filescout.session.keys import KeyEvent


class ScriptedKeys:
    """Key source fed from a list of key presses."""

    def __init__(self):
        self.queue = deque()

    def press(self, *keys):
        for key in keys:
            self.queue.append(key if isinstance(key, KeyEvent) else KeyEvent(key))

    def type(self, text):
        self.press(*text)

    def read_key(self, timeout=0.0):
        return self.queue.popleft() if self.queue else None


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def settle(controller, keys, timeout=5.0):
    """Tick until every key is consumed and no refresh or search is pending."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        controller.tick()
        job = controller.engine.current_job
        if not keys.queue and not controller.state.needs_refresh and (job is None or job.done()):
            controller.tick()
            return
        time.sleep(0.005)
    raise AssertionError("session did not settle")


def wait_for(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return False


@pytest.fixture
def job_runner():
    runner = JobRunner(max_workers=4)
    yield runner
    runner.shutdown(wait=True)


@pytest.fixture
def scripted_keys():
    return ScriptedKeys()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def session_helpers():
    """settle() and wait_for() for tests that drive a controller."""
    return settle, wait_for
