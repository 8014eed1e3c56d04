"""
Chain Controller for vibeseq
Handles the playlist of sequences, which one is playing, and auto-advance
"""

import json
import logging
import threading
from typing import Dict, List, Optional

from .actuator import DeviceSession
from .scheduler import LoopComplete, PlaybackScheduler
from .sequence import SequenceModel

logger = logging.getLogger(__name__)


class ChainController:
    """
    Manages an ordered playlist of sequences sharing one scheduler.

    Only the active sequence plays. With auto-advance on, each completed
    loop hands playback to the next sequence; the last sequence stops
    playback instead of wrapping to the first.
    """

    def __init__(self, session: DeviceSession, sequences: Optional[List[SequenceModel]] = None,
                 auto_advance: bool = False, scheduler: Optional[PlaybackScheduler] = None):
        self.session = session
        self.sequences: List[SequenceModel] = list(sequences) if sequences else []
        self.auto_advance = auto_advance
        self.active_index: Optional[int] = None

        self._lock = threading.RLock()
        self.scheduler = scheduler if scheduler is not None else PlaybackScheduler(session)
        self.scheduler.add_loop_listener(self._handle_loop_complete)
        session.add_close_listener(self.stop)

    def __len__(self) -> int:
        return len(self.sequences)

    @property
    def is_playing(self) -> bool:
        with self._lock:
            return self.active_index is not None and self.scheduler.is_running

    def get(self, index: int) -> Optional[SequenceModel]:
        """Get sequence by index"""
        if 0 <= index < len(self.sequences):
            return self.sequences[index]
        return None

    def get_active(self) -> Optional[SequenceModel]:
        """Get the currently playing sequence"""
        if self.active_index is None:
            return None
        return self.sequences[self.active_index]

    def set_auto_advance(self, enabled: bool):
        """Enable or disable auto-advance"""
        self.auto_advance = bool(enabled)

    # ============ Playlist Operations ============

    def add(self, model: Optional[SequenceModel] = None) -> int:
        """Append a sequence (default: a fresh zero sequence). Returns its index."""
        with self._lock:
            self.sequences.append(model if model is not None else SequenceModel.create())
            return len(self.sequences) - 1

    def remove(self, index: int) -> SequenceModel:
        """Remove a sequence, stopping playback first if it is the active one"""
        with self._lock:
            self._check_index(index)
            if index == self.active_index:
                self.stop()
            removed = self.sequences.pop(index)
            if self.active_index is not None and index < self.active_index:
                self.active_index -= 1
            return removed

    # ============ Playback ============

    def activate(self, index: int):
        """Stop whatever plays and start the sequence at index"""
        with self._lock:
            self._check_index(index)
            self.scheduler.stop()
            self.active_index = index
            try:
                self.scheduler.start(self.sequences[index])
            except Exception:
                self.active_index = None
                raise
            logger.info("Activated sequence %d of %d", index, len(self.sequences))

    def stop(self):
        """Stop playback entirely"""
        with self._lock:
            try:
                self.scheduler.stop()
            finally:
                self.active_index = None

    def toggle(self, index: int):
        """Play the sequence at index, or stop it if it is the one playing"""
        with self._lock:
            if self.active_index == index and self.scheduler.is_running:
                self.stop()
            else:
                self.activate(index)

    def on_loop_complete(self, index: int):
        """React to the sequence at index finishing a loop"""
        with self._lock:
            if not self.auto_advance:
                return
            if self.active_index != index:
                return

            if index >= len(self.sequences) - 1:
                logger.info("Chain finished at sequence %d", index)
                self.stop()
            else:
                self.activate(index + 1)

    def _handle_loop_complete(self, event: LoopComplete):
        with self._lock:
            # Events from a run that has since been stopped or replaced
            if event.generation != self.scheduler.generation:
                return
            if self.active_index is None or self.sequences[self.active_index] is not event.model:
                return
            self.on_loop_complete(self.active_index)

    def _check_index(self, index: int):
        if not 0 <= index < len(self.sequences):
            raise IndexError(f"Sequence index {index} outside [0, {len(self.sequences)})")

    # ============ Serialization ============

    def to_list(self) -> List[Dict]:
        """Serialize the playlist to a list of dictionaries"""
        return [sequence.to_dict() for sequence in self.sequences]

    def from_list(self, data: List[Dict]):
        """Replace the playlist from a list of dictionaries"""
        with self._lock:
            self.stop()
            self.sequences = [SequenceModel.from_dict(item) for item in data]

    def to_json(self) -> str:
        return json.dumps(self.to_list())

    def from_json(self, text: str):
        self.from_list(json.loads(text))

    def save_playlist(self, filepath: str):
        """Save the playlist to a JSON file"""
        with open(filepath, 'w', encoding='utf-8') as f:
            json.dump(self.to_list(), f, indent=2)

    def load_playlist(self, filepath: str):
        """Load the playlist from a JSON file"""
        with open(filepath, 'r', encoding='utf-8') as f:
            data = json.load(f)
        self.from_list(data)
