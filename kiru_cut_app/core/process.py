"""
Subprocess execution with merged, incrementally drained output.
"""
import logging
import shlex
import subprocess
import threading
import typing as t

from kiru_cut_app.core.errors import Cancelled, SpawnFailed
from kiru_cut_app.core.models import ProcessResult

logger = logging.getLogger(__name__)


class CancelToken:
    """Thread-safe cancellation flag with kill callbacks.

    Callbacks registered while the token is live run once on ``cancel()``;
    callbacks registered after cancellation run immediately.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._cancelled = False
        self._callbacks: t.List[t.Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback()
            except OSError as e:
                # Process already gone
                logger.debug("Cancel callback failed: %s", e)

    def add_callback(self, callback: t.Callable[[], None]) -> t.Callable[[], None]:
        """Register ``callback`` and return a function that unregisters it."""
        with self._lock:
            if not self._cancelled:
                self._callbacks.append(callback)
                return lambda: self._remove(callback)
        callback()
        return lambda: None

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise Cancelled()

    def _remove(self, callback):
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)


class ProcessRunner:
    """Runs an executable and captures stdout+stderr as one text stream.

    A non-zero exit code is returned as data; only a failure to launch raises.
    Output is read in chunks while the process runs so a chatty tool never
    blocks on a full pipe.
    """

    def __init__(self, chunk_size: int = 64 * 1024):
        self.chunk_size = chunk_size

    def run(
        self,
        executable: str,
        arguments: t.Sequence[str],
        cancel: t.Optional[CancelToken] = None,
    ) -> ProcessResult:
        """Run ``executable`` with ``arguments`` until it exits.

        Args:
            executable: Absolute path of the program to launch
            arguments: Command-line arguments (without argv[0])
            cancel: Optional token; cancelling it kills the process

        Returns:
            ProcessResult with the exit code and captured text

        Raises:
            SpawnFailed: If the executable cannot be launched
            Cancelled: If ``cancel`` fired before or during the run
        """
        if cancel is not None:
            cancel.raise_if_cancelled()

        cmd = [executable, *arguments]
        logger.debug("Running %s", shlex.join(cmd))

        try:
            proc = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
            )
        except OSError as e:
            raise SpawnFailed(executable, e.strerror or str(e)) from e

        unregister = cancel.add_callback(proc.kill) if cancel is not None else None
        buffer = bytearray()
        try:
            while True:
                chunk = proc.stdout.read1(self.chunk_size)
                if not chunk:
                    break
                buffer.extend(chunk)
            exit_code = proc.wait()
        except BaseException:
            proc.kill()
            proc.wait()
            raise
        finally:
            proc.stdout.close()
            if unregister is not None:
                unregister()

        if cancel is not None and cancel.cancelled:
            logger.debug("Cancelled %s (exit %d)", executable, exit_code)
            raise Cancelled()

        logger.debug("%s exited with %d (%d bytes)", executable, exit_code, len(buffer))
        return ProcessResult(
            exit_code=exit_code,
            output=buffer.decode("utf-8", errors="replace"),
        )
