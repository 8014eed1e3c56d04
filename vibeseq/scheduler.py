"""
Playback Scheduler for vibeseq

Steps through a SequenceModel at its step duration and sends one command per
step to the session's actuator sink.

- Timer thread per run; ticks are serialized by a lock
- stop() takes the same lock, so a tick in flight finishes first and no tick
  runs after it; the stop command is always the last command the sink sees
- Every start() issues a new generation token; timer callbacks and loop
  events carrying an older token are dropped
- LoopComplete events are delivered to listeners after the tick releases the
  lock, so a listener may stop or restart the scheduler from the timer thread
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from .actuator import ActuatorSink, DeviceSession
from .sequence import SequenceModel

logger = logging.getLogger(__name__)


# Share of the step duration given to each linear move
LINEAR_MOVE_FRACTION = 0.9


class PlaybackState(Enum):
    STOPPED = 0
    RUNNING = 1


@dataclass(frozen=True)
class LoopComplete:
    """Raised when the cursor wraps back to the first step"""
    model: SequenceModel
    generation: int
    cycle: int


class IntervalTimer:
    """
    Repeating timer on a daemon thread.

    The callback receives the token given at construction. cancel() only
    signals the thread; it never joins, so it is safe to call from inside
    the callback.
    """

    def __init__(self, interval_ms: int, callback: Callable[[int], None], token: int):
        self.interval_ms = interval_ms
        self._callback = callback
        self._token = token
        self._cancelled = threading.Event()
        self._thread = threading.Thread(target=self._run, daemon=True,
                                        name=f"vibeseq-timer-{token}")

    def start(self):
        self._thread.start()

    def cancel(self):
        self._cancelled.set()

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled.is_set()

    def _run(self):
        interval_s = self.interval_ms / 1000.0
        while not self._cancelled.wait(interval_s):
            self._callback(self._token)


class PlaybackScheduler:
    """
    Drives one sequence on one sink.

    Usage:
        scheduler = PlaybackScheduler(session)
        scheduler.add_loop_listener(on_loop)
        scheduler.start(model)
        ...
        scheduler.stop()
    """

    def __init__(self, session: DeviceSession,
                 timer_factory: Callable[[int, Callable[[int], None], int], IntervalTimer] = IntervalTimer):
        self.session = session
        self._timer_factory = timer_factory

        self._lock = threading.RLock()
        self._state = PlaybackState.STOPPED
        self._model: Optional[SequenceModel] = None
        self._sink: Optional[ActuatorSink] = None
        self._timer: Optional[IntervalTimer] = None
        self._generation = 0

        # Playback position
        self.cursor = 0
        self._bound_length = 0
        self._cycles = 0

        self._loop_listeners: List[Callable[[LoopComplete], None]] = []

        session.add_close_listener(self.stop)

    # ============ Properties ============

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state == PlaybackState.RUNNING

    @property
    def model(self) -> Optional[SequenceModel]:
        return self._model

    @property
    def generation(self) -> int:
        """Token of the current run; increments on every (re)start and stop"""
        return self._generation

    @property
    def interval_ms(self) -> Optional[int]:
        return self._timer.interval_ms if self._timer is not None else None

    # ============ Listeners ============

    def add_loop_listener(self, callback: Callable[[LoopComplete], None]):
        """Register a callback for loop-complete events"""
        self._loop_listeners.append(callback)

    def remove_loop_listener(self, callback: Callable[[LoopComplete], None]):
        if callback in self._loop_listeners:
            self._loop_listeners.remove(callback)

    # ============ Transport ============

    def start(self, model: SequenceModel, sink: Optional[ActuatorSink] = None):
        """
        Start (or restart) playback of model.

        Starting the model that is already running at its current duration
        is a no-op. A different model or duration resets the cursor and
        reschedules the timer.
        """
        if sink is None:
            sink = self.session.sink

        with self._lock:
            if (self.is_running and model is self._model and sink is self._sink
                    and self._timer is not None
                    and self._timer.interval_ms == model.step_duration_ms):
                return

            self._cancel_timer()
            self._generation += 1
            self._model = model
            self._sink = sink
            self.cursor = 0
            self._cycles = 0
            self._bound_length = len(model.levels)
            self._state = PlaybackState.RUNNING

            if not sink.is_capable:
                logger.warning("Sink %s supports neither linear nor vibrate commands; "
                               "playback will send nothing", type(sink).__name__)

            self._schedule(model.step_duration_ms)
            logger.debug("Playback started: %d steps every %d ms (generation %d)",
                         len(model.levels), model.step_duration_ms, self._generation)

    def stop(self):
        """Stop playback and bring the device to rest"""
        with self._lock:
            if not self.is_running:
                return

            self._cancel_timer()
            self._generation += 1
            self._state = PlaybackState.STOPPED
            self.cursor = 0

            sink = self._sink
            if sink is not None and sink.is_capable:
                sink.stop()
            logger.debug("Playback stopped (generation %d)", self._generation)

    def toggle(self, model: SequenceModel):
        """Toggle playback of model on/off"""
        if self.is_running:
            self.stop()
        else:
            self.start(model)

    # ============ Tick ============

    def tick(self) -> Optional[float]:
        """
        Advance one step and send its command.

        Returns:
            The normalized intensity sent, or None if nothing was played.
        """
        with self._lock:
            if not self.is_running:
                return None
            event, intensity = self._advance()

        if event is not None:
            self._emit(event)
        return intensity

    def _on_timer(self, token: int):
        """Timer callback; stale timers are ignored"""
        with self._lock:
            if token != self._generation or not self.is_running:
                return
            event, _ = self._advance()

        if event is not None:
            self._emit(event)

    def _advance(self):
        """One step of playback. Caller holds the lock."""
        model = self._model
        step_count = len(model.levels)
        if step_count == 0:
            return None, None

        # Resized while running: restart from the top
        if step_count != self._bound_length:
            self._bound_length = step_count
            self.cursor = 0

        # Duration edited while running: reschedule, keep the cursor
        if self._timer is not None and self._timer.interval_ms != model.step_duration_ms:
            self._cancel_timer()
            self._schedule(model.step_duration_ms)

        self.cursor = (self.cursor + 1) % step_count
        intensity = model.levels[self.cursor] / (model.row_count - 1)
        self._send(intensity, model.step_duration_ms)

        event = None
        # The sink may have stopped us from inside the send
        if self.cursor == 0 and self.is_running:
            self._cycles += 1
            event = LoopComplete(model, self._generation, self._cycles)
        return event, intensity

    def _send(self, intensity: float, step_duration_ms: int):
        sink = self._sink
        try:
            if sink.supports_linear_move:
                sink.send_linear(intensity, int(step_duration_ms * LINEAR_MOVE_FRACTION))
            elif sink.supports_vibrate:
                sink.send_vibrate(intensity)
        except Exception as e:
            # A failed write drops this step; playback continues
            logger.error(f"Sink error at step {self.cursor}: {e}")

    def _emit(self, event: LoopComplete):
        if event.generation != self._generation:
            return
        for listener in list(self._loop_listeners):
            listener(event)

    # ============ Timer ============

    def _schedule(self, interval_ms: int):
        self._timer = self._timer_factory(interval_ms, self._on_timer, self._generation)
        self._timer.start()

    def _cancel_timer(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
