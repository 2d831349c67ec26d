"""
Core trimming engine: executable lookup, subprocess running, probing and cutting.
"""

from .errors import (
    Cancelled,
    CommandFailed,
    DurationUnavailable,
    InvalidRequest,
    KiruCutError,
    SpawnFailed,
    ToolNotFound,
)
from .ffmpeg_service import FFmpegService
from .models import CutPrediction, MediaSource, ProcessResult, Tool, ToolPolicy, TrimRequest
from .process import CancelToken, ProcessRunner
from .resolver import ExecutableResolver
