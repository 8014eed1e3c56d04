"""
Preferences Manager for vibeseq
Handles persistent user preferences and the default playlist location
Cross-platform support using platformdirs
"""

import json
import logging
import os
from typing import Any, Dict, Optional

from platformdirs import user_config_dir, user_data_dir

logger = logging.getLogger(__name__)


class PreferencesManager:
    """
    Manages application preferences with persistent storage.
    Preferences are stored in a JSON file in the platform-appropriate location.
    """

    APP_NAME = "vibeseq"
    APP_AUTHOR = "vibeseq"
    PREFS_FILENAME = "preferences.json"
    PLAYLIST_FILENAME = "sequences.json"

    DEFAULT_PREFERENCES = {
        # Grid and timing for new sequences
        'default_column_count': 8,
        'default_row_count': 5,
        'default_step_duration_ms': 250,
        'auto_advance': False,
        'last_pattern_mode': 'manual',
        # Device
        'device_index': None,  # None = first device found
        # Playlist file; None = sequences.json in the user data directory
        'playlist_file': None,
        # Text-to-movement model
        'llm_api_url': 'http://localhost:11434/api/generate',
        'llm_model': 'llama2',
        'llm_timeout_s': 30.0,
        # Sensor bridge
        'bridge_port': 8765,
        'bridge_move_ms': 400,
    }

    def __init__(self, config_dir: Optional[str] = None, data_dir: Optional[str] = None):
        """
        Initialize the preferences manager

        Args:
            config_dir: Override for the preferences directory
            data_dir: Override for the playlist directory
        """
        self.prefs_dir = config_dir or self._get_config_dir()
        self.data_dir = data_dir or self._get_data_dir()
        os.makedirs(self.prefs_dir, exist_ok=True)
        self.prefs_file = os.path.join(self.prefs_dir, self.PREFS_FILENAME)
        self.preferences = self._load_preferences()

    def _get_config_dir(self) -> str:
        """Get the configuration directory (cross-platform)"""
        return user_config_dir(self.APP_NAME, self.APP_AUTHOR)

    def _get_data_dir(self) -> str:
        """Get the data directory for playlists (cross-platform)"""
        return user_data_dir(self.APP_NAME, self.APP_AUTHOR)

    def _load_preferences(self) -> Dict[str, Any]:
        """Load preferences from file"""
        if os.path.exists(self.prefs_file):
            try:
                with open(self.prefs_file, 'r', encoding='utf-8') as f:
                    loaded_prefs = json.load(f)

                # Merge with defaults to ensure all keys exist
                prefs = self.DEFAULT_PREFERENCES.copy()
                prefs.update(loaded_prefs)
                return prefs
            except (OSError, ValueError, TypeError) as e:
                logger.error(f"Error loading preferences: {e}")
                return self.DEFAULT_PREFERENCES.copy()
        else:
            return self.DEFAULT_PREFERENCES.copy()

    def _save_preferences(self) -> bool:
        """Save preferences to file"""
        try:
            os.makedirs(os.path.dirname(self.prefs_file), exist_ok=True)
            with open(self.prefs_file, 'w', encoding='utf-8') as f:
                json.dump(self.preferences, f, indent=2)
            return True
        except OSError as e:
            logger.error(f"Error saving preferences: {e}")
            return False

    def get(self, key: str, default: Any = None) -> Any:
        """Get a preference value"""
        return self.preferences.get(key, default)

    def set(self, key: str, value: Any) -> bool:
        """Set a preference value and save"""
        self.preferences[key] = value
        return self._save_preferences()

    def get_playlist_path(self) -> str:
        """Get the playlist file path, creating its directory"""
        path = self.preferences.get('playlist_file')
        if not path:
            path = os.path.join(self.data_dir, self.PLAYLIST_FILENAME)
        os.makedirs(os.path.dirname(path) or '.', exist_ok=True)
        return path

    def reset_to_defaults(self) -> bool:
        """Reset all preferences to defaults"""
        self.preferences = self.DEFAULT_PREFERENCES.copy()
        return self._save_preferences()

    def get_all_preferences(self) -> Dict[str, Any]:
        """Get all preferences"""
        return self.preferences.copy()
