"""
vibeseq
Haptic pattern sequencer: pattern generators, playback scheduling and
sequence chaining for linear and vibrating actuators
"""

__version__ = "1.0.0"

from .generators import PatternMode, GenerationRequest, generate, genetic_search
from .sequence import SequenceModel, RangeError
from .actuator import ActuatorSink, ConsoleSink, DeviceSession, SessionClosedError
from .scheduler import PlaybackScheduler, PlaybackState, LoopComplete, IntervalTimer
from .chain_controller import ChainController
from .movement import MovementController, MovementParameters

__all__ = [
    'PatternMode',
    'GenerationRequest',
    'generate',
    'genetic_search',
    'SequenceModel',
    'RangeError',
    'ActuatorSink',
    'ConsoleSink',
    'DeviceSession',
    'SessionClosedError',
    'PlaybackScheduler',
    'PlaybackState',
    'LoopComplete',
    'IntervalTimer',
    'ChainController',
    'MovementController',
    'MovementParameters',
]
