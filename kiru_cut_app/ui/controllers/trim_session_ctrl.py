"""
Trim session controller for the KiruCut application.

This module owns the state of the current trim session and coordinates the
background ffmpeg/ffprobe work against it. All state changes happen on the
GUI thread; subprocess work runs on a thread pool and reports back through
queued signals. Every result carries the input it was issued for and is
dropped if that input is no longer the current one.
"""
import enum
import logging
import os
import time
import typing as t
from pathlib import Path

from PySide6.QtCore import QObject, QRunnable, QThreadPool, QTimer, Signal, Slot

from kiru_cut_app.config import (
    DEBOUNCE_MS,
    MAX_WORKERS,
    PROGRESS_CAP,
    PROGRESS_TICK_MS,
    Severity,
)
from kiru_cut_app.core.errors import Cancelled, InvalidRequest, KiruCutError
from kiru_cut_app.core.models import CutPrediction, MediaSource, TrimRequest
from kiru_cut_app.core.preview import PreviewAvailabilityChecker
from kiru_cut_app.core.process import CancelToken
from kiru_cut_app.core.timecode import (
    default_output_path,
    format_prediction,
    format_time_for_input,
    parse_time,
)
from kiru_cut_app.ui.event_bus import BUS

logger = logging.getLogger(__name__)

INITIAL_STATUS = "Choose input/output and click Cut Video."

# Slack when comparing an end time against the probed duration; the end
# field only shows two decimals
END_CLAMP_TOLERANCE = 0.005


class SessionPhase(str, enum.Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    RUNNING = "running"


def describe_error(error: BaseException) -> str:
    """Status-line text for an exception coming back from a worker."""
    if isinstance(error, KiruCutError):
        return str(error)
    return f"Unexpected error: {error}"


def same_file_path(a: Path, b: Path) -> bool:
    return os.path.normpath(os.path.abspath(a)) == os.path.normpath(os.path.abspath(b))


class WorkerSignals(QObject):
    """Signals for worker thread communication."""
    finished = Signal(object, object)  # tag, result
    failed = Signal(object, object)    # tag, exception


class TaskWorker(QRunnable):
    """Runs ``fn(cancel)`` on the thread pool and reports the outcome.

    ``tag`` identifies what the work was issued for (the input path, plus a
    serial for predictions) and is echoed back with the result.
    """

    def __init__(self, tag, fn: t.Callable[[CancelToken], t.Any], cancel: CancelToken):
        super().__init__()
        self.tag = tag
        self.fn = fn
        self.cancel = cancel
        self.signals = WorkerSignals()

    @Slot()
    def run(self):
        """Run the task in a background thread."""
        try:
            result = self.fn(self.cancel)
        except Cancelled as e:
            logger.debug("Task %r cancelled", self.tag)
            self.signals.failed.emit(self.tag, e)
        except KiruCutError as e:
            logger.error("Task %r failed: %s", self.tag, e, exc_info=True)
            self.signals.failed.emit(self.tag, e)
        except Exception as e:
            logger.error("Unexpected error in task %r: %s", self.tag, e, exc_info=True)
            self.signals.failed.emit(self.tag, e)
        else:
            self.signals.finished.emit(self.tag, result)


class TrimSessionController(QObject):
    """Controller for a single trim session.

    Owns the current input/output, the requested range text, the latest
    prediction, the status line and the running/progress state.

    Signals:
        inputChanged: Input path (empty string when none)
        outputChanged: Output path (empty string when none)
        startTextChanged / endTextChanged: Requested range text
        predictionChanged: One-line prediction summary ("" when none)
        statusChanged: Status message and severity
        progressChanged: Cut progress in [0, 1]
        runningChanged: Whether a cut is running
        previewAvailabilityChanged: (checking, unavailable message or "")
    """
    inputChanged = Signal(str)
    outputChanged = Signal(str)
    startTextChanged = Signal(str)
    endTextChanged = Signal(str)
    predictionChanged = Signal(str)
    statusChanged = Signal(str, str)
    progressChanged = Signal(float)
    runningChanged = Signal(bool)
    previewAvailabilityChanged = Signal(bool, str)

    def __init__(
        self,
        service,
        preview_checker: t.Optional[t.Callable[..., t.Optional[str]]] = None,
        confirm_overwrite: t.Optional[t.Callable[[Path], bool]] = None,
        threadpool: t.Optional[QThreadPool] = None,
        debounce_ms: int = DEBOUNCE_MS,
        progress_tick_ms: int = PROGRESS_TICK_MS,
        bus=BUS,
        parent: t.Optional[QObject] = None,
    ):
        """Initialize the controller.

        Args:
            service: FFmpegService (or any object with the same methods)
            preview_checker: Callable(path, cancel) returning why the file
                cannot be previewed, or None
            confirm_overwrite: Callable(path) asked before replacing an
                existing output; declines by default
            threadpool: Pool for background work; a private pool by default
            debounce_ms: Delay between the last range edit and prediction
            progress_tick_ms: Synthetic progress update interval
            bus: Event bus to listen on, or None to stay unconnected
            parent: Optional parent QObject
        """
        super().__init__(parent)
        self.service = service
        self.preview_checker = preview_checker or PreviewAvailabilityChecker(service)
        self.confirm_overwrite = confirm_overwrite or (lambda path: False)

        if threadpool is None:
            threadpool = QThreadPool(self)
            threadpool.setMaxThreadCount(MAX_WORKERS)
        self.threadpool = threadpool

        # Session state
        self._source: t.Optional[MediaSource] = None
        self._loading = False
        self._is_running = False
        self._progress = 0.0
        self._status = (INITIAL_STATUS, Severity.NEUTRAL)
        self._prediction_text = ""
        self._checking_preview = False
        self._preview_message: t.Optional[str] = None

        # In-flight work
        self._load_token: t.Optional[CancelToken] = None
        self._preview_token: t.Optional[CancelToken] = None
        self._prediction_token: t.Optional[CancelToken] = None
        self._prediction_serial = 0
        self._cut_token: t.Optional[CancelToken] = None
        self._workers: t.Dict[WorkerSignals, TaskWorker] = {}

        # Debounced prediction
        self._debounce = QTimer(self)
        self._debounce.setSingleShot(True)
        self._debounce.setInterval(debounce_ms)
        self._debounce.timeout.connect(self._update_prediction)

        # Synthetic progress while a cut runs
        self._progress_timer = QTimer(self)
        self._progress_timer.setInterval(progress_tick_ms)
        self._progress_timer.timeout.connect(self._tick_progress)
        self._cut_started_at = 0.0
        self._cut_estimate = 1.0

        if bus is not None:
            bus.inputSelected.connect(self.load_input_file)
            bus.outputSelected.connect(self.set_output_file)
            bus.trimSelected.connect(self.apply_trim_selection)

        logger.info("Trim session controller initialized with %d worker threads",
                    self.threadpool.maxThreadCount())

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def source(self) -> t.Optional[MediaSource]:
        return self._source

    @property
    def input_path(self) -> t.Optional[Path]:
        return self._source.input_path if self._source else None

    @property
    def output_path(self) -> t.Optional[Path]:
        return self._source.output_path if self._source else None

    @property
    def has_selected_input(self) -> bool:
        return self._source is not None

    @property
    def start_text(self) -> str:
        return self._source.start_text if self._source else ""

    @property
    def end_text(self) -> str:
        return self._source.end_text if self._source else ""

    @property
    def duration(self) -> t.Optional[float]:
        return self._source.duration if self._source else None

    @property
    def prediction(self) -> t.Optional[CutPrediction]:
        return self._source.prediction if self._source else None

    @property
    def prediction_text(self) -> str:
        return self._prediction_text

    @property
    def status_message(self) -> str:
        return self._status[0]

    @property
    def status_severity(self) -> str:
        return self._status[1]

    @property
    def is_running(self) -> bool:
        return self._is_running

    @property
    def progress(self) -> float:
        return self._progress

    @property
    def is_checking_preview(self) -> bool:
        return self._checking_preview

    @property
    def preview_unavailable_message(self) -> t.Optional[str]:
        return self._preview_message

    @property
    def phase(self) -> SessionPhase:
        if self._source is None:
            return SessionPhase.IDLE
        if self._is_running:
            return SessionPhase.RUNNING
        if self._loading:
            return SessionPhase.LOADING
        return SessionPhase.READY

    # ------------------------------------------------------------------
    # Input / output selection
    # ------------------------------------------------------------------

    @Slot(Path)
    def load_input_file(self, path) -> None:
        """Make ``path`` the current input and start probing it.

        Anything still in flight for the previous input is cancelled, and
        its results are ignored if they arrive anyway.
        """
        path = Path(path)
        logger.info("Loading input %s", path)

        self._cancel_input_work()
        self._debounce.stop()

        self._source = MediaSource(input_path=path, output_path=default_output_path(path))
        self._loading = True
        self._checking_preview = True
        self._preview_message = None

        self.inputChanged.emit(str(path))
        self.outputChanged.emit(str(self._source.output_path))
        self.startTextChanged.emit(self._source.start_text)
        self.endTextChanged.emit(self._source.end_text)
        self._set_prediction(None)
        self.previewAvailabilityChanged.emit(True, "")
        self._set_status("Input selected. Reading duration...", Severity.NEUTRAL)

        tag = str(path)
        service = self.service
        preview_checker = self.preview_checker

        self._load_token = CancelToken()
        self._start_worker(
            tag,
            lambda cancel: service.media_duration(path, cancel=cancel),
            self._load_token,
            self._on_duration_loaded,
            self._on_duration_failed,
        )

        self._preview_token = CancelToken()
        self._start_worker(
            tag,
            lambda cancel: preview_checker(path, cancel),
            self._preview_token,
            self._on_preview_checked,
            self._on_preview_failed,
        )

    @Slot(Path)
    def set_output_file(self, path) -> None:
        """Use ``path`` as the output for the current input."""
        if self._source is None:
            self._set_status("Select an input file first.", Severity.ERROR)
            return
        self._source.output_path = Path(path)
        self.outputChanged.emit(str(self._source.output_path))
        self._set_status("Output selected.", Severity.NEUTRAL)

    # ------------------------------------------------------------------
    # Range editing and prediction
    # ------------------------------------------------------------------

    def set_start_text(self, text: str) -> None:
        if self._source is None:
            return
        self._source.start_text = text
        self.startTextChanged.emit(text)
        self.schedule_prediction_update()

    def set_end_text(self, text: str) -> None:
        if self._source is None:
            return
        self._set_end_text(text)
        self.schedule_prediction_update()

    @Slot(float, float)
    def apply_trim_selection(self, start: float, end: float) -> None:
        """Apply a range picked on the preview/slider, clamped to the file."""
        if self._source is None:
            return

        clamped_start = max(0.0, start)
        clamped_end = max(0.0, end)
        if self._source.duration is not None:
            clamped_start = min(clamped_start, self._source.duration)
            clamped_end = min(clamped_end, self._source.duration)

        if clamped_end <= clamped_start:
            self._set_status("Invalid trim selection from preview.", Severity.ERROR)
            return

        self._source.start_text = format_time_for_input(clamped_start)
        self.startTextChanged.emit(self._source.start_text)
        self._set_end_text(format_time_for_input(clamped_end))
        self._set_status("Trim range updated from preview.", Severity.NEUTRAL)
        self.schedule_prediction_update()

    def schedule_prediction_update(self) -> None:
        """(Re)start the debounce timer; only the last edit triggers a probe."""
        self._debounce.start()

    @Slot()
    def _update_prediction(self) -> None:
        request = self._parse_range()

        # Any earlier prediction is obsolete from here on
        if self._prediction_token is not None:
            self._prediction_token.cancel()
            self._prediction_token = None
        self._prediction_serial += 1

        if request is None:
            self._set_prediction(None)
            return

        path = self._source.input_path
        tag = (str(path), self._prediction_serial)
        service = self.service

        self._prediction_token = CancelToken()
        self._start_worker(
            tag,
            lambda cancel: service.predict_cut(path, request.start, request.end, cancel=cancel),
            self._prediction_token,
            self._on_prediction_ready,
            self._on_prediction_failed,
        )

    def _parse_range(self) -> t.Optional[TrimRequest]:
        if self._source is None:
            return None
        start = parse_time(self._source.start_text)
        if start is None:
            return None
        end = parse_time(self._source.end_text)
        if end is None or end <= start:
            return None
        return TrimRequest(start=start, end=end)

    # ------------------------------------------------------------------
    # Cutting
    # ------------------------------------------------------------------

    def run_cut(self) -> bool:
        """Validate the current request and start the cut.

        Returns:
            True if a cut was started
        """
        if self._is_running:
            logger.warning("Cut requested while another cut is running; ignored")
            return False

        try:
            request, overwrite = self._validate_cut_request()
        except InvalidRequest as e:
            logger.info("Cut request rejected: %s", e.reason)
            self._set_status(e.reason, e.severity)
            return False

        source = self._source
        input_path, output_path = source.input_path, source.output_path
        self._set_end_text(format_time_for_input(request.end))

        self._set_running(True)
        self._start_progress(request.duration)
        self._set_status("Running ffmpeg...", Severity.NEUTRAL)

        # Refresh the prediction for exactly what is being cut
        self._debounce.stop()
        self._update_prediction()

        service = self.service

        def job(cancel):
            service.cut(
                input_path,
                output_path,
                request.start,
                request.duration,
                overwrite,
                cancel=cancel,
            )
            return output_path

        self._cut_token = CancelToken()
        self._start_worker(
            str(input_path),
            job,
            self._cut_token,
            self._on_cut_finished,
            self._on_cut_failed,
        )
        logger.info("Cut started: %s [%.2f-%.2f] -> %s (overwrite=%s)",
                    input_path, request.start, request.end, output_path, overwrite)
        return True

    def _validate_cut_request(self) -> t.Tuple[TrimRequest, bool]:
        """Check the session before any process is spawned.

        Returns:
            The parsed request and whether the output may be overwritten

        Raises:
            InvalidRequest: With the message to show the user
        """
        source = self._source
        if source is None:
            raise InvalidRequest("Select an input file first.")
        if source.output_path is None:
            raise InvalidRequest("Select an output file first.")
        if same_file_path(source.input_path, source.output_path):
            raise InvalidRequest("Output file must be different from input file.")

        start = parse_time(source.start_text)
        if start is None:
            raise InvalidRequest("Start time must be seconds or mm:ss, and >= 0.")
        end = parse_time(source.end_text)
        if end is None:
            raise InvalidRequest("End time must be seconds or mm:ss, and >= 0.")

        if source.duration is not None and end > source.duration + END_CLAMP_TOLERANCE:
            # Clamp and let the user confirm by cutting again
            self._set_end_text(format_time_for_input(source.duration))
            self.schedule_prediction_update()
            raise InvalidRequest(
                "End time exceeded file length. End time was reset to video end.",
                Severity.NEUTRAL,
            )

        if end <= start:
            raise InvalidRequest("End time must be greater than start time.")

        overwrite = False
        if source.output_path.exists():
            if not self.confirm_overwrite(source.output_path):
                raise InvalidRequest("Canceled: output file was not overwritten.", Severity.NEUTRAL)
            overwrite = True

        return TrimRequest(start=start, end=end), overwrite

    def shutdown(self) -> None:
        """Cancel all background work and stop timers."""
        logger.info("Shutting down trim session")
        self._debounce.stop()
        self._progress_timer.stop()
        self._cancel_input_work()
        if self._cut_token is not None:
            self._cut_token.cancel()

    # ------------------------------------------------------------------
    # Worker plumbing and result handlers
    # ------------------------------------------------------------------

    def _start_worker(self, tag, fn, cancel, on_finished, on_failed) -> None:
        worker = TaskWorker(tag, fn, cancel)
        worker.signals.finished.connect(on_finished)
        worker.signals.failed.connect(on_failed)
        worker.signals.finished.connect(self._release_worker)
        worker.signals.failed.connect(self._release_worker)
        # Hold a reference until the result is delivered
        self._workers[worker.signals] = worker
        self.threadpool.start(worker)

    @Slot(object, object)
    def _release_worker(self, tag, _result) -> None:
        self._workers.pop(self.sender(), None)

    def _is_current(self, tag) -> bool:
        return self._source is not None and str(self._source.input_path) == tag

    def _cancel_input_work(self) -> None:
        for token in (self._load_token, self._preview_token, self._prediction_token):
            if token is not None:
                token.cancel()
        self._load_token = self._preview_token = self._prediction_token = None
        # Predictions already queued for the old session must not apply
        self._prediction_serial += 1

    @Slot(object, object)
    def _on_duration_loaded(self, tag, duration) -> None:
        if not self._is_current(tag):
            logger.debug("Dropping stale duration for %s", tag)
            return

        self._loading = False
        self._source.duration = duration
        self._set_end_text(format_time_for_input(duration))
        self._set_status("Input selected. Output defaulted to same folder.", Severity.NEUTRAL)
        self.schedule_prediction_update()

    @Slot(object, object)
    def _on_duration_failed(self, tag, error) -> None:
        if not self._is_current(tag) or isinstance(error, Cancelled):
            return

        self._loading = False
        self._source.duration = None
        self._set_prediction(None)
        self._set_status(
            f"Input selected, but duration could not be read: {describe_error(error)}",
            Severity.ERROR,
        )

    @Slot(object, object)
    def _on_preview_checked(self, tag, message) -> None:
        if not self._is_current(tag):
            return
        self._checking_preview = False
        self._preview_message = message
        self.previewAvailabilityChanged.emit(False, message or "")

    @Slot(object, object)
    def _on_preview_failed(self, tag, error) -> None:
        if not self._is_current(tag) or isinstance(error, Cancelled):
            return
        self._checking_preview = False
        self._preview_message = f"Preview unavailable: {describe_error(error)}"
        self.previewAvailabilityChanged.emit(False, self._preview_message)

    def _is_current_prediction(self, tag) -> bool:
        path, serial = tag
        return self._is_current(path) and serial == self._prediction_serial

    @Slot(object, object)
    def _on_prediction_ready(self, tag, prediction) -> None:
        if not self._is_current_prediction(tag):
            logger.debug("Dropping stale prediction %r", tag)
            return
        self._set_prediction(prediction)

    @Slot(object, object)
    def _on_prediction_failed(self, tag, error) -> None:
        if not self._is_current_prediction(tag) or isinstance(error, Cancelled):
            return
        # No prediction is shown; cutting is still allowed
        logger.info("Prediction unavailable: %s", error)
        self._set_prediction(None)

    @Slot(object, object)
    def _on_cut_finished(self, tag, output_path) -> None:
        self._finish_cut()
        self._set_progress(1.0)
        self._set_status(f"Success: {Path(output_path).name}", Severity.SUCCESS)
        logger.info("Cut of %s completed: %s", tag, output_path)

    @Slot(object, object)
    def _on_cut_failed(self, tag, error) -> None:
        self._finish_cut()
        self._set_progress(0.0)
        self._set_status(f"Error: {describe_error(error)}", Severity.ERROR)
        logger.error("Cut of %s failed: %s", tag, error)

    # ------------------------------------------------------------------
    # State setters
    # ------------------------------------------------------------------

    def _set_end_text(self, text: str) -> None:
        self._source.end_text = text
        self.endTextChanged.emit(text)

    def _set_prediction(self, prediction: t.Optional[CutPrediction]) -> None:
        if self._source is not None:
            self._source.prediction = prediction
        self._prediction_text = format_prediction(prediction) if prediction else ""
        self.predictionChanged.emit(self._prediction_text)

    def _set_status(self, message: str, severity: str) -> None:
        self._status = (message, severity)
        self.statusChanged.emit(message, severity)

    def _set_running(self, running: bool) -> None:
        self._is_running = running
        self.runningChanged.emit(running)

    def _set_progress(self, value: float) -> None:
        self._progress = value
        self.progressChanged.emit(value)

    def _start_progress(self, estimated_duration: float) -> None:
        self._set_progress(0.0)
        self._cut_started_at = time.monotonic()
        self._cut_estimate = max(estimated_duration, 1.0)
        self._progress_timer.start()

    @Slot()
    def _tick_progress(self) -> None:
        elapsed = time.monotonic() - self._cut_started_at
        self._set_progress(min(elapsed / self._cut_estimate, PROGRESS_CAP))

    def _finish_cut(self) -> None:
        self._progress_timer.stop()
        self._cut_token = None
        self._set_running(False)
