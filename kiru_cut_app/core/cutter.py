"""
Stream-copy trimming through ffmpeg.
"""
import logging
import typing as t

from kiru_cut_app.core.errors import CommandFailed
from kiru_cut_app.core.models import Tool, ToolPolicy
from kiru_cut_app.core.process import CancelToken, ProcessRunner
from kiru_cut_app.core.resolver import ExecutableResolver

logger = logging.getLogger(__name__)


def cut_args(input_path, output_path, start: float, duration: float,
             overwrite: bool) -> t.List[str]:
    """Build the ffmpeg arguments for copying ``duration`` seconds from ``start``.

    Times are written with two decimals, so the executed cut has 10 ms
    granularity at best.
    """
    return [
        "-y" if overwrite else "-n",
        "-ss", f"{start:.2f}",
        "-i", str(input_path),
        "-c", "copy",
        "-map", "0",
        "-t", f"{duration:.2f}",
        str(output_path),
    ]


def cut(
    resolver: ExecutableResolver,
    runner: ProcessRunner,
    input_path,
    output_path,
    start: float,
    duration: float,
    overwrite: bool,
    policy: ToolPolicy,
    cancel: t.Optional[CancelToken] = None,
) -> None:
    """Trim [start, start + duration) of ``input_path`` into ``output_path``.

    Raises:
        ToolNotFound: If ffmpeg cannot be resolved
        CommandFailed: If ffmpeg exits non-zero (including "file exists"
            when ``overwrite`` is False)
    """
    ffmpeg = resolver.resolve(Tool.FFMPEG, policy)
    logger.info("Cutting %s [%.2f +%.2fs] -> %s", input_path, start, duration, output_path)

    result = runner.run(
        ffmpeg,
        cut_args(input_path, output_path, start, duration, overwrite),
        cancel=cancel,
    )
    if result.exit_code != 0:
        raise CommandFailed(result.exit_code, result.output.strip())

    logger.info("Cut finished: %s", output_path)
