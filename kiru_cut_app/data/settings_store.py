"""
Persisted user settings for the KiruCut app.

A thin wrapper around QSettings holding a couple of boolean flags. Values
are read from the backing store on every access, never cached.
"""
import logging
import typing as t

from PySide6.QtCore import QSettings

from kiru_cut_app.config import SETTINGS_APP, SETTINGS_ORG
from kiru_cut_app.core.models import ToolPolicy

logger = logging.getLogger(__name__)

USE_INSTALLED_FFMPEG_KEY = "UseInstalledFFmpeg"
SHOW_OPEN_INPUT_AT_LAUNCH_KEY = "ShowOpenInputAtLaunch"


class SettingsStore:
    """Boolean key-value settings backed by QSettings."""

    def __init__(self, settings: t.Optional[QSettings] = None):
        """Initialize the store.

        Args:
            settings: QSettings instance to use; defaults to the app's
                native per-user settings
        """
        self._settings = settings if settings is not None else QSettings(SETTINGS_ORG, SETTINGS_APP)

    def _get_bool(self, key: str, default: bool) -> bool:
        if not self._settings.contains(key):
            return default
        value = self._settings.value(key)
        # INI backends hand booleans back as strings
        if isinstance(value, str):
            return value.lower() in ("true", "1")
        return bool(value)

    def _set_bool(self, key: str, value: bool) -> None:
        self._settings.setValue(key, bool(value))
        self._settings.sync()
        logger.debug("Setting %s = %s", key, value)

    @property
    def use_installed_ffmpeg(self) -> bool:
        return self._get_bool(USE_INSTALLED_FFMPEG_KEY, False)

    def set_use_installed_ffmpeg(self, value: bool) -> None:
        self._set_bool(USE_INSTALLED_FFMPEG_KEY, value)

    @property
    def show_open_input_at_launch(self) -> bool:
        return self._get_bool(SHOW_OPEN_INPUT_AT_LAUNCH_KEY, True)

    def set_show_open_input_at_launch(self, value: bool) -> None:
        self._set_bool(SHOW_OPEN_INPUT_AT_LAUNCH_KEY, value)

    def tool_policy(self) -> ToolPolicy:
        """Current executable lookup policy."""
        return ToolPolicy.INSTALLED if self.use_installed_ffmpeg else ToolPolicy.BUNDLED

    def apply_launch_defaults(self) -> None:
        """Reset per-launch defaults: installed ffmpeg stays opt-in."""
        self.set_use_installed_ffmpeg(False)
