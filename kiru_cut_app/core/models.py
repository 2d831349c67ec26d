"""
Pydantic models for the KiruCut app.

This module contains the value objects passed between the trimming core and
the session controller.
"""
import enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Tool(str, enum.Enum):
    """External executables the app delegates to."""
    FFMPEG = "ffmpeg"
    FFPROBE = "ffprobe"


class ToolPolicy(str, enum.Enum):
    """Where executables are looked up."""
    INSTALLED = "installed"
    BUNDLED = "bundled"


class ProcessResult(BaseModel):
    """Exit code plus merged stdout/stderr of one subprocess invocation.

    Attributes:
        exit_code: Process exit status (negative when killed by a signal)
        output: Captured text, decoded as UTF-8 with replacement
    """
    exit_code: int
    output: str = ""
    model_config = ConfigDict(frozen=True)


class TrimRequest(BaseModel):
    """A requested [start, end) range in seconds."""
    start: float = Field(ge=0)
    end: float = Field(ge=0)
    model_config = ConfigDict(frozen=True)

    @property
    def duration(self) -> float:
        return self.end - self.start

    @property
    def is_executable(self) -> bool:
        return self.end > self.start


class CutPrediction(BaseModel):
    """Requested range and the boundaries a stream copy will actually hit.

    Attributes:
        requested_start: Start the user asked for (seconds)
        requested_end: End the user asked for (seconds)
        predicted_start: Nearest packet time at or before requested_start
        predicted_end: Predicted end, never earlier than predicted_start
        frame_rate: Average frame rate of the first video stream, if known
    """
    requested_start: float
    requested_end: float
    predicted_start: float
    predicted_end: float
    frame_rate: Optional[float] = None
    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def _check_order(self):
        if self.predicted_end < self.predicted_start:
            raise ValueError("predicted_end must not precede predicted_start")
        return self


class MediaSource(BaseModel):
    """The input currently loaded into a trim session.

    Identified by ``input_path``; a new selection replaces the whole object.
    """
    input_path: Path
    output_path: Optional[Path] = None
    duration: Optional[float] = None
    start_text: str = "0"
    end_text: str = ""
    prediction: Optional[CutPrediction] = None
    model_config = ConfigDict(validate_assignment=True)
