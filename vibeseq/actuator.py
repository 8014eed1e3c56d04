"""
Actuator interface for vibeseq
Device command sink and the session object that owns it
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


class SessionClosedError(RuntimeError):
    """Raised when playback is requested on a closed device session"""


class ActuatorSink(ABC):
    """
    Receives normalized intensity commands for one device.

    Implementations advertise which command families the device accepts.
    Playback prefers linear movement when both are available.
    """

    @property
    def supports_linear_move(self) -> bool:
        return False

    @property
    def supports_vibrate(self) -> bool:
        return False

    @property
    def is_capable(self) -> bool:
        """Whether the sink accepts any playback command at all"""
        return self.supports_linear_move or self.supports_vibrate

    def send_linear(self, position: float, duration_ms: int):
        """Move to position (0-1) over duration_ms; only called when supports_linear_move"""
        raise NotImplementedError

    def send_vibrate(self, intensity: float):
        """Vibrate at intensity (0-1); only called when supports_vibrate"""
        raise NotImplementedError

    @abstractmethod
    def stop(self):
        """Bring the device to rest (zero intensity)"""
        pass


class ConsoleSink(ActuatorSink):
    """Sink that logs every command; used by the command line player"""

    def __init__(self, linear: bool = True, vibrate: bool = True,
                 echo: Optional[Callable[[str], None]] = None):
        self._linear = linear
        self._vibrate = vibrate
        self._echo = echo or logger.info

    @property
    def supports_linear_move(self) -> bool:
        return self._linear

    @property
    def supports_vibrate(self) -> bool:
        return self._vibrate

    def send_linear(self, position: float, duration_ms: int):
        bar = '#' * int(round(position * 20))
        self._echo(f"linear {position:5.2f} {duration_ms:5d}ms |{bar:<20}|")

    def send_vibrate(self, intensity: float):
        bar = '#' * int(round(intensity * 20))
        self._echo(f"vibrate {intensity:5.2f}        |{bar:<20}|")

    def stop(self):
        self._echo("stop")


class DeviceSession:
    """
    Owns the connection to one actuator sink.

    Schedulers and controllers receive the session at construction instead
    of looking up a global device. Closing the session notifies every
    registered close listener before the sink is released.

    Usage:
        with DeviceSession(sink) as session:
            scheduler = PlaybackScheduler(session)
            ...
    """

    def __init__(self, sink: Optional[ActuatorSink] = None, name: str = "vibeseq"):
        self.name = name
        self._sink = sink
        self._open = False
        self._lock = threading.Lock()
        self._close_listeners: List[Callable[[], None]] = []

    @property
    def is_open(self) -> bool:
        return self._open

    @property
    def sink(self) -> ActuatorSink:
        """The session's sink; raises SessionClosedError when not open"""
        if not self._open or self._sink is None:
            raise SessionClosedError(f"Session '{self.name}' is not open")
        return self._sink

    def open(self, sink: Optional[ActuatorSink] = None) -> 'DeviceSession':
        """Open the session, optionally binding a different sink"""
        with self._lock:
            if sink is not None:
                self._sink = sink
            if self._sink is None:
                raise SessionClosedError(f"Session '{self.name}' has no sink to open")
            self._open = True
        logger.info("Session '%s' opened with %s", self.name, type(self._sink).__name__)
        return self

    def close(self):
        """Close the session; listeners run while the sink is still reachable"""
        with self._lock:
            if not self._open:
                return
            listeners = list(self._close_listeners)

        try:
            for listener in listeners:
                try:
                    listener()
                except Exception as e:
                    logger.error(f"Close listener failed on session '{self.name}': {e}")
        finally:
            with self._lock:
                self._open = False
        logger.info("Session '%s' closed", self.name)

    def add_close_listener(self, callback: Callable[[], None]):
        """Register a callback run when the session closes"""
        self._close_listeners.append(callback)

    def remove_close_listener(self, callback: Callable[[], None]):
        if callback in self._close_listeners:
            self._close_listeners.remove(callback)

    def __enter__(self) -> 'DeviceSession':
        if not self._open:
            self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
