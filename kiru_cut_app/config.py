"""
Global configuration settings for the KiruCut trimming app.
"""
import os
import pathlib
from dotenv import load_dotenv

# Load environment variables from .env file if present
load_dotenv()

# Paths
APP_DIR = pathlib.Path(__file__).parent.absolute()
LOG_PATH = pathlib.Path.home() / ".kiru_cut_app.log"

# Directory holding bundled ffmpeg/ffprobe builds (directly or under bin/)
RESOURCES_DIR = pathlib.Path(
    os.environ.get("KIRUCUT_RESOURCES_DIR", APP_DIR / "resources")
)

# Conventional install locations, searched before $PATH
INSTALLED_SEARCH_DIRS = (
    "/opt/homebrew/bin",
    "/usr/local/bin",
    "/usr/bin",
)

# Persisted settings identity (QSettings)
SETTINGS_ORG = "KiruCut"
SETTINGS_APP = "KiruCut"

# Threading configuration
MAX_WORKERS = int(os.environ.get("MAX_WORKERS", "4"))

# UI timing
DEBOUNCE_MS = int(os.environ.get("KIRUCUT_DEBOUNCE_MS", "220"))  # prediction debounce
PROGRESS_TICK_MS = int(os.environ.get("KIRUCUT_PROGRESS_TICK_MS", "120"))
PROGRESS_CAP = 0.9  # last 10% is reserved for confirmed completion


# Status severities shown next to the status message
class Severity:
    NEUTRAL = "neutral"
    ERROR = "error"
    SUCCESS = "success"
