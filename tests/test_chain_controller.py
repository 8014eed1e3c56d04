"""
vibeseq Chain Controller Test Suite

Tests for playlist editing, hand-off between sequences, auto-advance and
playlist persistence.

Run with: pytest tests/test_chain_controller.py -v
"""

import json
import os
import sys
import time

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from conftest import RecordingSink
from vibeseq.actuator import DeviceSession
from vibeseq.chain_controller import ChainController
from vibeseq.scheduler import LoopComplete, PlaybackScheduler
from vibeseq.sequence import SequenceModel


class StopFailingSink(RecordingSink):
    """Sink whose stop command raises"""

    def stop(self):
        raise OSError("device gone")


def make_chain(session, timers, levels_list, auto_advance=False):
    scheduler = PlaybackScheduler(session, timer_factory=timers)
    sequences = [SequenceModel(levels, row_count=5) for levels in levels_list]
    return ChainController(session, sequences, auto_advance=auto_advance, scheduler=scheduler)


class TestPlaylistEditing:
    """Adding and removing sequences"""

    def test_add_returns_index(self, session, timers):
        controller = make_chain(session, timers, [])
        assert controller.add() == 0
        assert controller.add(SequenceModel([1, 2])) == 1
        assert len(controller) == 2
        assert controller.get(0).levels == [0] * 8
        assert controller.get(5) is None

    def test_remove_before_active_shifts_index(self, session, sink, timers):
        controller = make_chain(session, timers, [[1], [2], [3]])
        controller.activate(2)
        playing = controller.get_active()

        controller.remove(0)
        assert controller.active_index == 1
        assert controller.get_active() is playing
        assert controller.is_playing

    def test_remove_active_stops(self, session, sink, timers):
        controller = make_chain(session, timers, [[1], [2], [3]])
        controller.activate(1)
        removed = controller.remove(1)

        assert removed.levels == [2]
        assert controller.active_index is None
        assert not controller.is_playing
        assert sink.commands[-1] == ('stop',)
        assert len(controller) == 2

    def test_bad_index_raises(self, session, timers):
        controller = make_chain(session, timers, [[1]])
        with pytest.raises(IndexError):
            controller.activate(1)
        with pytest.raises(IndexError):
            controller.remove(-1)
        assert controller.active_index is None


class TestActivation:
    """Exactly one sequence plays at a time"""

    def test_activate_hands_off(self, session, sink, timers):
        """Activating another sequence stops the first and starts from its first step"""
        controller = make_chain(session, timers, [[4, 4, 4], [0, 2, 0]])
        controller.activate(0)
        controller.scheduler.tick()
        first_timer = timers.latest

        controller.activate(1)
        assert first_timer.cancel_count == 1
        assert controller.active_index == 1
        assert controller.scheduler.model is controller.get(1)
        assert controller.scheduler.cursor == 0

        controller.scheduler.tick()
        assert sink.commands == [('linear', 1.0, 225), ('stop',), ('linear', 0.5, 225)]

    def test_toggle(self, session, timers):
        controller = make_chain(session, timers, [[1], [2]])
        controller.toggle(0)
        assert controller.is_playing and controller.active_index == 0
        controller.toggle(1)
        assert controller.active_index == 1
        controller.toggle(1)
        assert not controller.is_playing
        assert controller.active_index is None

    def test_stop(self, session, sink, timers):
        controller = make_chain(session, timers, [[1, 2]])
        controller.activate(0)
        controller.stop()
        assert controller.get_active() is None
        assert sink.commands == [('stop',)]

    def test_session_close_stops_chain(self, sink, timers):
        session = DeviceSession(sink).open()
        controller = make_chain(session, timers, [[1, 2]])
        controller.activate(0)
        session.close()
        assert controller.active_index is None
        assert not controller.scheduler.is_running

    def test_session_close_survives_failing_stop(self, timers):
        """A sink that fails to stop still leaves the session closed and the chain idle"""
        session = DeviceSession(StopFailingSink()).open()
        controller = make_chain(session, timers, [[1, 2]])
        controller.activate(0)

        session.close()
        assert not session.is_open
        assert controller.active_index is None
        assert not controller.scheduler.is_running

    def test_stop_clears_index_when_sink_fails(self, timers):
        with DeviceSession(StopFailingSink()) as session:
            controller = make_chain(session, timers, [[1, 2]])
            controller.activate(0)
            with pytest.raises(OSError):
                controller.stop()
            assert controller.active_index is None


class TestAutoAdvance:
    """Loop completion hands playback to the next sequence"""

    def test_advances_through_chain_and_stops(self, session, sink, timers):
        """Three two-step sequences play in order, then playback stops"""
        controller = make_chain(session, timers, [[1, 2], [3, 4], [0, 1]], auto_advance=True)
        controller.activate(0)

        visited = []
        for _ in range(6):
            visited.append(controller.active_index)
            controller.scheduler.tick()

        assert visited == [0, 0, 1, 1, 2, 2]
        assert sink.positions == [0.5, 0.25, 1.0, 0.75, 0.25, 0.0]
        assert not controller.is_playing
        assert controller.active_index is None
        assert sink.commands[-1] == ('stop',)

        # No wrap to the first sequence
        assert controller.scheduler.tick() is None

    def test_no_advance_when_disabled(self, session, timers):
        controller = make_chain(session, timers, [[1, 2], [3, 4]])
        controller.activate(0)
        for _ in range(6):
            controller.scheduler.tick()
        assert controller.active_index == 0
        assert controller.is_playing

    def test_enable_while_playing(self, session, timers):
        controller = make_chain(session, timers, [[1, 2], [3, 4]])
        controller.activate(0)
        controller.scheduler.tick()
        controller.set_auto_advance(True)
        controller.scheduler.tick()
        assert controller.active_index == 1

    def test_stale_loop_event_ignored(self, session, timers):
        """An event from an earlier run does not advance the chain"""
        controller = make_chain(session, timers, [[1, 2], [3, 4], [0, 1]], auto_advance=True)
        controller.activate(0)
        stale = LoopComplete(controller.get(0), controller.scheduler.generation, 1)
        controller.activate(1)

        controller._handle_loop_complete(stale)
        assert controller.active_index == 1

    def test_loop_of_inactive_index_ignored(self, session, timers):
        controller = make_chain(session, timers, [[1], [2], [3]], auto_advance=True)
        controller.activate(1)
        controller.on_loop_complete(0)
        assert controller.active_index == 1

    def test_real_timer_chain(self, session, sink):
        """Single-step sequences advance on each real timer tick"""
        sequences = [SequenceModel([4]), SequenceModel([2]), SequenceModel([0])]
        controller = ChainController(session, sequences, auto_advance=True)
        controller.activate(0)

        deadline = time.time() + 3.0
        while controller.is_playing and time.time() < deadline:
            time.sleep(0.05)

        assert not controller.is_playing
        assert sink.positions == [1.0, 0.5, 0.0]
        assert sink.commands[-1] == ('stop',)


class TestPlaylistPersistence:
    """JSON round trips of the playlist"""

    def test_to_list(self, session, timers):
        controller = make_chain(session, timers, [[1, 2]])
        assert controller.to_list() == [{'levels': [1, 2], 'stepDurationMs': 250, 'rowCount': 5}]

    def test_json_round_trip(self, session, timers):
        controller = make_chain(session, timers, [[1, 2, 3], [4, 0]])
        controller.get(1).set_duration(900)
        text = controller.to_json()

        other = make_chain(session, timers, [])
        other.from_json(text)
        assert [s.levels for s in other.sequences] == [[1, 2, 3], [4, 0]]
        assert other.get(1).step_duration_ms == 900

    def test_file_round_trip(self, session, timers, tmp_path):
        path = str(tmp_path / "sequences.json")
        controller = make_chain(session, timers, [[0, 1, 2, 3, 4]])
        controller.save_playlist(path)

        other = make_chain(session, timers, [[9]])
        other.load_playlist(path)
        assert len(other) == 1
        assert other.get(0).levels == [0, 1, 2, 3, 4]

    def test_load_legacy_file(self, session, timers, tmp_path):
        path = tmp_path / "old.json"
        path.write_text(json.dumps([{'values': [1, 0, 1], 'duration': 500}]))

        controller = make_chain(session, timers, [])
        controller.load_playlist(str(path))
        assert controller.get(0).levels == [1, 0, 1]
        assert controller.get(0).step_duration_ms == 500

    def test_load_stops_playback(self, session, timers):
        controller = make_chain(session, timers, [[1, 2]])
        controller.activate(0)
        controller.from_list([{'levels': [3]}])
        assert not controller.is_playing
        assert controller.get(0).levels == [3]


if __name__ == '__main__':
    exit(pytest.main([__file__, '-v']))
