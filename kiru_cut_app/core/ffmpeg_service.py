"""
Facade over the ffmpeg/ffprobe helpers used by the session controller.
"""
import logging
import typing as t

from kiru_cut_app.core import cutter, probe
from kiru_cut_app.core.models import CutPrediction, ToolPolicy
from kiru_cut_app.core.process import CancelToken, ProcessRunner
from kiru_cut_app.core.resolver import ExecutableResolver

logger = logging.getLogger(__name__)


class FFmpegService:
    """Runs every external-tool operation the app needs.

    The tool policy is read from ``policy_provider`` on each call, so a
    settings change takes effect on the next operation without restarting.

    Args:
        resolver: Executable resolver (defaults to the standard search)
        runner: Process runner (defaults to a fresh ProcessRunner)
        policy_provider: Callable returning the current ToolPolicy
    """

    def __init__(
        self,
        resolver: t.Optional[ExecutableResolver] = None,
        runner: t.Optional[ProcessRunner] = None,
        policy_provider: t.Optional[t.Callable[[], ToolPolicy]] = None,
    ):
        self.resolver = resolver or ExecutableResolver()
        self.runner = runner or ProcessRunner()
        self.policy_provider = policy_provider or (lambda: ToolPolicy.BUNDLED)

    @property
    def policy(self) -> ToolPolicy:
        return ToolPolicy(self.policy_provider())

    def media_duration(self, input_path, cancel: t.Optional[CancelToken] = None) -> float:
        return probe.probe_duration(self.resolver, self.runner, input_path, self.policy, cancel)

    def predict_cut(
        self,
        input_path,
        requested_start: float,
        requested_end: float,
        cancel: t.Optional[CancelToken] = None,
    ) -> CutPrediction:
        return probe.predict_cut(
            self.resolver,
            self.runner,
            input_path,
            requested_start,
            requested_end,
            self.policy,
            cancel,
        )

    def cut(
        self,
        input_path,
        output_path,
        start: float,
        duration: float,
        overwrite: bool,
        cancel: t.Optional[CancelToken] = None,
    ) -> None:
        cutter.cut(
            self.resolver,
            self.runner,
            input_path,
            output_path,
            start,
            duration,
            overwrite,
            self.policy,
            cancel,
        )

    def has_video_stream(self, input_path, cancel: t.Optional[CancelToken] = None) -> bool:
        return probe.has_video_stream(self.resolver, self.runner, input_path, self.policy, cancel)

    def installed_tools_available(self) -> bool:
        return self.resolver.installed_tools_available()
