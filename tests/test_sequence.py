"""
vibeseq Sequence Model Test Suite

Tests for creation, edits, resizing, duration clamping and serialization.

Run with: pytest tests/test_sequence.py -v
"""

import numpy as np
import os
import sys

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from vibeseq.generators import PatternMode
from vibeseq.sequence import RangeError, SequenceModel


class TestSequenceBasics:
    """Creation and single-cell edits"""

    def test_create_defaults(self):
        """A new sequence is 8 silent steps at 250ms on a 5-level grid"""
        model = SequenceModel.create()
        assert model.levels == [0] * 8
        assert model.step_duration_ms == 250
        assert model.row_count == 5

    def test_create_custom_length(self):
        model = SequenceModel.create(12, row_count=7)
        assert len(model) == 12
        assert model.row_count == 7

    def test_set_value_at(self):
        model = SequenceModel.create()
        model.set_value_at(3, 4)
        assert model.levels[3] == 4
        assert model.get_value_at(3) == 4

    def test_set_value_bad_index_rejected(self):
        """Out-of-range index raises and leaves the sequence unchanged"""
        model = SequenceModel([1, 2, 3, 4])
        with pytest.raises(RangeError):
            model.set_value_at(4, 1)
        with pytest.raises(RangeError):
            model.set_value_at(-1, 1)
        assert model.levels == [1, 2, 3, 4]

    def test_set_value_bad_level_rejected(self):
        model = SequenceModel([1, 2, 3, 4], row_count=5)
        with pytest.raises(RangeError):
            model.set_value_at(0, 5)
        with pytest.raises(RangeError):
            model.set_value_at(0, -1)
        assert model.levels == [1, 2, 3, 4]

    def test_non_integer_edit_rejected(self):
        """Fractional levels and float indices raise and leave the sequence unchanged"""
        model = SequenceModel([2, 0, 0])
        with pytest.raises(RangeError):
            model.set_value_at(0, 2.5)
        with pytest.raises(RangeError):
            model.set_value_at(1.0, 1)
        with pytest.raises(RangeError):
            model.set_value_at(0, True)
        assert model.levels == [2, 0, 0]

    def test_numpy_integers_accepted(self):
        model = SequenceModel([0, 0, 0])
        model.set_value_at(np.int64(1), np.int64(3))
        assert model.levels == [0, 3, 0]
        assert type(model.levels[1]) is int

    def test_range_error_is_value_error(self):
        assert issubclass(RangeError, ValueError)

    def test_intensity_at(self):
        model = SequenceModel([0, 2, 4], row_count=5)
        assert model.intensity_at(0) == 0.0
        assert model.intensity_at(1) == 0.5
        assert model.intensity_at(2) == 1.0


class TestResize:
    """Step count changes"""

    def test_grow_preserves_prefix(self):
        """8 -> 12 keeps the first 8 values and appends four zeros"""
        levels = [1, 2, 3, 4, 4, 3, 2, 1]
        model = SequenceModel(levels)
        model.resize(12)
        assert model.levels == levels + [0, 0, 0, 0]

    def test_shrink_keeps_prefix(self):
        """12 -> 8 keeps exactly the first 8 values"""
        levels = [1, 2, 3, 4, 4, 3, 2, 1, 4, 4, 4, 4]
        model = SequenceModel(levels)
        model.resize(8)
        assert model.levels == levels[:8]

    def test_resize_keeps_list_identity(self):
        model = SequenceModel.create()
        levels = model.levels
        model.resize(3)
        model.resize(10)
        assert model.levels is levels
        assert len(levels) == 10

    def test_resize_minimum_one_step(self):
        model = SequenceModel.create()
        model.resize(0)
        assert len(model) == 1


class TestDurationAndRows:
    """Clamped setters"""

    def test_duration_clamped(self):
        model = SequenceModel.create()
        model.set_duration(100)
        assert model.step_duration_ms == 250
        model.set_duration(5000)
        assert model.step_duration_ms == 3000
        model.set_duration(750)
        assert model.step_duration_ms == 750

    def test_constructor_clamps_duration(self):
        assert SequenceModel(step_duration_ms=10).step_duration_ms == 250

    def test_row_count_shrink_clamps_levels(self):
        model = SequenceModel([0, 2, 4, 3], row_count=5)
        model.set_row_count(3)
        assert model.levels == [0, 2, 2, 2]


class TestPatternReplacement:
    """Full replacement by generators"""

    def test_regenerate_replaces_all_steps(self):
        model = SequenceModel.create(8)
        model.regenerate(PatternMode.SQUARE)
        assert model.levels == [4, 4, 4, 4, 0, 0, 0, 0]

    def test_regenerate_manual_keeps_values(self):
        model = SequenceModel([1, 2, 3])
        model.regenerate("manual")
        assert model.levels == [1, 2, 3]

    def test_regenerate_random_respects_grid(self):
        model = SequenceModel.create(16, row_count=3)
        model.regenerate(PatternMode.RANDOM, rng=np.random.default_rng(0))
        assert len(model) == 16
        assert all(0 <= v <= 2 for v in model.levels)

    def test_apply_pattern_fits_length(self):
        model = SequenceModel.create(4)
        model.apply_pattern([1, 2, 3, 4, 4, 4])
        assert model.levels == [1, 2, 3, 4]
        model.apply_pattern([3])
        assert model.levels == [3, 0, 0, 0]

    def test_clear(self):
        model = SequenceModel([1, 2, 3])
        model.clear()
        assert model.levels == [0, 0, 0]


class TestSequenceSerialization:
    """Dictionary form used by the playlist file"""

    def test_to_dict(self):
        model = SequenceModel([1, 2], step_duration_ms=500, row_count=4)
        assert model.to_dict() == {'levels': [1, 2], 'stepDurationMs': 500, 'rowCount': 4}

    def test_round_trip(self):
        model = SequenceModel([3, 1, 4, 1], step_duration_ms=1250, row_count=6)
        restored = SequenceModel.from_dict(model.to_dict())
        assert restored.levels == model.levels
        assert restored.step_duration_ms == 1250
        assert restored.row_count == 6

    def test_from_legacy_keys(self):
        """values/duration entries load with the default grid height"""
        restored = SequenceModel.from_dict({'values': [0, 1, 2, 3], 'duration': 500})
        assert restored.levels == [0, 1, 2, 3]
        assert restored.step_duration_ms == 500
        assert restored.row_count == 5

    def test_copy_is_independent(self):
        model = SequenceModel([1, 2, 3])
        clone = model.copy()
        model.set_value_at(0, 4)
        assert clone.levels == [1, 2, 3]


if __name__ == '__main__':
    exit(pytest.main([__file__, '-v']))
