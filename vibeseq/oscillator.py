"""
Oscillator for vibeseq
Periodic waveforms evaluated on the step grid of a sequence
"""

import numpy as np
from enum import Enum


class WaveformType(Enum):
    SINE = 0
    SQUARE = 1
    TRIANGLE = 2
    SAWTOOTH = 3


def normalized_waveform(waveform: WaveformType, phase: np.ndarray) -> np.ndarray:
    """
    Evaluate a waveform normalized to [0, 1]

    Args:
        waveform: Waveform shape
        phase: Phase in cycles, already wrapped to [0, 1)

    Returns:
        numpy array of values in [0, 1]
    """
    if waveform == WaveformType.SINE:
        return (np.sin(2.0 * np.pi * phase) + 1.0) / 2.0
    elif waveform == WaveformType.SQUARE:
        # High for the first half-cycle
        return np.where(phase < 0.5, 1.0, 0.0)
    elif waveform == WaveformType.TRIANGLE:
        # Rises from 0 to 1 at half-cycle, back to 0
        return 1.0 - np.abs(2.0 * phase - 1.0)
    elif waveform == WaveformType.SAWTOOTH:
        return phase.astype(np.float64)
    raise ValueError(f"Unknown waveform: {waveform}")


def render_waveform(waveform: WaveformType, row_count: int, column_count: int,
                    indices=None) -> np.ndarray:
    """
    Quantize one waveform cycle onto a grid of row_count levels.

    The cycle spans column_count steps. Column indices are wrapped before
    evaluation, so index i and i + column_count always give the same level.

    Args:
        waveform: Waveform shape
        row_count: Number of levels (>= 2)
        column_count: Steps per cycle (>= 1)
        indices: Optional column indices to evaluate (default: one full cycle)

    Returns:
        numpy int array of levels in [0, row_count - 1]
    """
    if indices is None:
        indices = np.arange(column_count)
    indices = np.asarray(indices, dtype=np.int64)

    phase = np.mod(indices, column_count) / float(column_count)
    values = normalized_waveform(waveform, phase)
    levels = np.floor(values * (row_count - 1)).astype(np.int64)
    return np.clip(levels, 0, row_count - 1)
