"""
Shared fixtures for the vibeseq test suite

RecordingSink keeps every command in order; ManualTimerFactory replaces the
timer thread so tests drive ticks by hand.
"""

import os
import sys

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from vibeseq.actuator import ActuatorSink, DeviceSession


class RecordingSink(ActuatorSink):
    """Sink that records commands as tuples"""

    def __init__(self, linear=True, vibrate=False, on_send=None):
        self._linear = linear
        self._vibrate = vibrate
        self.on_send = on_send
        self.commands = []

    @property
    def supports_linear_move(self):
        return self._linear

    @property
    def supports_vibrate(self):
        return self._vibrate

    def send_linear(self, position, duration_ms):
        self.commands.append(('linear', position, duration_ms))
        if self.on_send:
            self.on_send()

    def send_vibrate(self, intensity):
        self.commands.append(('vibrate', intensity))
        if self.on_send:
            self.on_send()

    def stop(self):
        self.commands.append(('stop',))

    @property
    def positions(self):
        return [c[1] for c in self.commands if c[0] in ('linear', 'vibrate')]


class ManualTimer:
    """Timer stand-in: fire() runs one callback"""

    def __init__(self, interval_ms, callback, token):
        self.interval_ms = interval_ms
        self.callback = callback
        self.token = token
        self.started = False
        self.cancel_count = 0

    def start(self):
        self.started = True

    def cancel(self):
        self.cancel_count += 1

    def fire(self):
        self.callback(self.token)


class ManualTimerFactory:
    def __init__(self):
        self.timers = []

    def __call__(self, interval_ms, callback, token):
        timer = ManualTimer(interval_ms, callback, token)
        self.timers.append(timer)
        return timer

    @property
    def latest(self):
        return self.timers[-1] if self.timers else None


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def session(sink):
    session = DeviceSession(sink, name="test")
    session.open()
    yield session
    session.close()


@pytest.fixture
def timers():
    return ManualTimerFactory()
