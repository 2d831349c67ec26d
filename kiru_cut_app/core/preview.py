"""
Preview availability check for a newly selected input.

The check runs on a worker next to the duration probe and never gates it;
it only tells the UI whether the embedded player is worth showing.
"""
import logging
import typing as t
from pathlib import Path

from PySide6.QtCore import QMimeDatabase

from kiru_cut_app.core.errors import Cancelled, KiruCutError
from kiru_cut_app.core.process import CancelToken

logger = logging.getLogger(__name__)


def player_mime_types() -> t.Set[str]:
    """Return the MIME types the Qt Multimedia backend can decode."""
    from PySide6.QtMultimedia import QMediaFormat

    media_format = QMediaFormat()
    mime_types = set()
    for file_format in media_format.supportedFileFormats(QMediaFormat.ConversionMode.Decode):
        mime_types.add(QMediaFormat(file_format).mimeType().name())
    return mime_types


class PreviewAvailabilityChecker:
    """Explains why a file cannot be previewed, or returns None if it can.

    Args:
        service: FFmpegService used to look for a video stream
        supported_mime_types: MIME types the player handles. Queried from
            Qt Multimedia on first use when not given.
    """

    def __init__(self, service, supported_mime_types: t.Optional[t.Iterable[str]] = None):
        self.service = service
        self._supported = set(supported_mime_types) if supported_mime_types is not None else None
        self._mime_db = QMimeDatabase()

    def __call__(self, input_path, cancel: t.Optional[CancelToken] = None) -> t.Optional[str]:
        path = Path(input_path)
        if not path.is_file():
            return "Preview unavailable: the file could not be found."

        mime = self._mime_db.mimeTypeForFile(str(path)).name()
        supported = self.supported_mime_types()
        if supported and mime not in supported:
            logger.info("No player support for %s (%s)", path.name, mime)
            return "Preview unavailable: the media player cannot play this file's format."

        try:
            if not self.service.has_video_stream(path, cancel=cancel):
                return "Preview unavailable: this file has no video track."
        except Cancelled:
            raise
        except KiruCutError as e:
            return f"Preview unavailable: {e}"

        return None

    def supported_mime_types(self) -> t.Set[str]:
        if self._supported is None:
            try:
                self._supported = player_mime_types()
            except ImportError as e:
                # No multimedia module: only the video-stream check applies
                logger.warning("Qt Multimedia unavailable: %s", e)
                self._supported = set()
        return self._supported
