# -*- coding: utf-8 -*-
"""
Utilities for parsing and formatting trim times.
"""
import logging
import math
import typing as t
from pathlib import Path

from kiru_cut_app.core.models import CutPrediction

# Set up logging
logger = logging.getLogger(__name__)


def _finite_float(text: str) -> t.Optional[float]:
    try:
        value = float(text)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def parse_time(text: str) -> t.Optional[float]:
    """
    Parses a user-entered time into seconds.

    Accepts either plain seconds ("12.5") or minutes and seconds ("2:05.4").
    The seconds part of the "m:s" form must lie in [0, 60).

    Args:
        text (str): Raw text from the start/end field.

    Returns:
        Optional[float]: Seconds, or None if the text is empty, negative or
                         not in one of the two accepted forms.
    """
    trimmed = text.strip()
    if not trimmed:
        return None

    seconds = _finite_float(trimmed)
    if seconds is not None:
        return seconds if seconds >= 0 else None

    parts = trimmed.split(":")
    if len(parts) != 2:
        return None

    minutes = _finite_float(parts[0])
    if minutes is None or minutes < 0:
        return None
    seconds = _finite_float(parts[1])
    if seconds is None or not 0 <= seconds < 60:
        return None

    return minutes * 60 + seconds


def format_seconds(value: float) -> str:
    """Format seconds as "7" when whole, otherwise "7.25"."""
    clamped = max(0.0, value)
    if abs(round(clamped) - clamped) < 0.005:
        return str(int(round(clamped)))
    return f"{clamped:.2f}"


def _format_seconds_component(value: float) -> str:
    safe = max(0.0, min(value, 59.999))
    if abs(round(safe) - safe) < 0.005:
        return f"{int(round(safe)):02d}"
    return f"{safe:05.2f}"


def format_time_for_input(seconds: float) -> str:
    """
    Formats seconds the way the start/end fields display them.

    Values under a minute are plain seconds ("12.50", or "7" when whole);
    longer values use "m:ss" ("2:05.40", "60:05").
    """
    # Round to the displayed precision first so 119.998 becomes "2:00", not "1:60"
    value = round(max(0.0, seconds), 2)
    if value < 60:
        return format_seconds(value)

    total_minutes = int(value // 60)
    remaining = round(value - total_minutes * 60, 2)
    return f"{total_minutes}:" + _format_seconds_component(remaining)


def format_prediction(prediction: CutPrediction) -> str:
    """Render a prediction as the one-line summary shown under the fields."""
    line = (
        f"Requested {format_seconds(prediction.requested_start)}s -> "
        f"{format_seconds(prediction.requested_end)}s | "
        f"Predicted {format_seconds(prediction.predicted_start)}s -> "
        f"{format_seconds(prediction.predicted_end)}s"
    )

    fps = prediction.frame_rate
    if fps is not None and fps > 0:
        start_frame = math.floor(prediction.predicted_start * fps + 0.5)
        end_frame = math.floor(prediction.predicted_end * fps + 0.5)
        line += f" (frames ~{start_frame}-{end_frame} @ {fps:.3f}fps)"
    return line


def default_output_path(input_path: t.Union[str, Path]) -> Path:
    """Suggest "<name>-cut.<ext>" next to the input (mp4 if it has no extension)."""
    input_path = Path(input_path)
    ext = input_path.suffix or ".mp4"
    return input_path.with_name(f"{input_path.stem}-cut{ext}")
