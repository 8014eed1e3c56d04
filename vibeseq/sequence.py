"""
Sequence Model for vibeseq
Holds one pattern of intensity levels and its step duration
"""

import numbers

import numpy as np
from typing import Dict, List, Optional, Sequence, Union

from .generators import PatternMode, fit_to_length, generate


DEFAULT_COLUMN_COUNT = 8
DEFAULT_ROW_COUNT = 5
DEFAULT_STEP_DURATION_MS = 250
MIN_STEP_DURATION_MS = 250
MAX_STEP_DURATION_MS = 3000


class RangeError(ValueError):
    """Raised when an edit targets a step or level outside the grid"""


class SequenceModel:
    """A single sequence: one level per step plus the time between steps"""

    def __init__(self, levels: Optional[Sequence[int]] = None,
                 step_duration_ms: int = DEFAULT_STEP_DURATION_MS,
                 row_count: int = DEFAULT_ROW_COUNT):
        self.row_count = max(2, int(row_count))
        if levels is None or len(levels) == 0:
            levels = [0] * DEFAULT_COLUMN_COUNT
        self.levels: List[int] = fit_to_length(levels, len(levels), self.row_count)
        self.step_duration_ms = DEFAULT_STEP_DURATION_MS
        self.set_duration(step_duration_ms)

    @classmethod
    def create(cls, column_count: int = DEFAULT_COLUMN_COUNT,
               row_count: int = DEFAULT_ROW_COUNT) -> 'SequenceModel':
        """Create a zero-filled sequence with the default duration"""
        return cls([0] * max(1, int(column_count)), DEFAULT_STEP_DURATION_MS, row_count)

    def __len__(self) -> int:
        return len(self.levels)

    def __repr__(self):
        return f"SequenceModel(levels={self.levels}, duration={self.step_duration_ms}ms, rows={self.row_count})"

    @property
    def step_count(self) -> int:
        return len(self.levels)

    # ============ Edits ============

    def set_value_at(self, index: int, value: int):
        """Set the level at a single step"""
        if not isinstance(index, numbers.Integral) or isinstance(index, bool):
            raise RangeError(f"Step index {index!r} is not an integer")
        if not isinstance(value, numbers.Integral) or isinstance(value, bool):
            raise RangeError(f"Level {value!r} is not an integer")
        if not 0 <= index < len(self.levels):
            raise RangeError(f"Step index {index} outside [0, {len(self.levels)})")
        if not 0 <= value <= self.row_count - 1:
            raise RangeError(f"Level {value} outside [0, {self.row_count - 1}]")
        self.levels[index] = int(value)

    def get_value_at(self, index: int) -> int:
        """Get the level at a step"""
        return self.levels[index]

    def resize(self, column_count: int):
        """Change the step count, keeping the existing prefix"""
        column_count = max(1, int(column_count))
        if column_count == len(self.levels):
            return

        # If growing, append silent steps
        if column_count > len(self.levels):
            self.levels.extend([0] * (column_count - len(self.levels)))
        # If shrinking, drop the tail
        else:
            del self.levels[column_count:]

    def set_duration(self, duration_ms: int):
        """Set step duration in ms (clamped 250-3000)"""
        self.step_duration_ms = int(max(MIN_STEP_DURATION_MS, min(MAX_STEP_DURATION_MS, duration_ms)))

    def set_row_count(self, row_count: int):
        """Change the number of levels, clamping existing steps into range"""
        self.row_count = max(2, int(row_count))
        top = self.row_count - 1
        for i, value in enumerate(self.levels):
            if value > top:
                self.levels[i] = top

    def apply_pattern(self, levels: Sequence[int]):
        """Replace every step at once, keeping the current step count"""
        self.levels[:] = fit_to_length(levels, len(self.levels), self.row_count)

    def regenerate(self, mode: Union[PatternMode, str], seed: Optional[float] = None,
                   rng: Optional[np.random.Generator] = None) -> List[int]:
        """Run a pattern generator over this sequence's grid"""
        levels = generate(mode, self.row_count, len(self.levels), seed=seed,
                          existing=self.levels, rng=rng)
        self.apply_pattern(levels)
        return self.levels

    def clear(self):
        """Set every step to level 0"""
        for i in range(len(self.levels)):
            self.levels[i] = 0

    def intensity_at(self, index: int) -> float:
        """Normalized intensity (0-1) of the level at a step"""
        return self.levels[index] / (self.row_count - 1)

    def copy(self) -> 'SequenceModel':
        """Create a deep copy of this sequence"""
        return SequenceModel(list(self.levels), self.step_duration_ms, self.row_count)

    # ============ Serialization ============

    def to_dict(self) -> Dict:
        """Convert to dictionary for serialization"""
        return {
            'levels': list(self.levels),
            'stepDurationMs': self.step_duration_ms,
            'rowCount': self.row_count,
        }

    @staticmethod
    def from_dict(data: Dict) -> 'SequenceModel':
        """Create from dictionary (also accepts the older values/duration keys)"""
        levels = data.get('levels', data.get('values'))
        duration = data.get('stepDurationMs', data.get('duration', DEFAULT_STEP_DURATION_MS))
        return SequenceModel(levels, duration, data.get('rowCount', DEFAULT_ROW_COUNT))
