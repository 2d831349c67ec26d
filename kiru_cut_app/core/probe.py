"""
ffprobe helpers: media duration and keyframe-aware cut prediction.
"""
import logging
import math
import typing as t
from concurrent.futures import ThreadPoolExecutor

from kiru_cut_app.core.errors import CommandFailed, DurationUnavailable
from kiru_cut_app.core.models import CutPrediction, Tool, ToolPolicy
from kiru_cut_app.core.process import CancelToken, ProcessRunner
from kiru_cut_app.core.resolver import ExecutableResolver

logger = logging.getLogger(__name__)


def duration_args(input_path) -> t.List[str]:
    return [
        "-v", "error",
        "-show_entries", "format=duration",
        "-of", "default=noprint_wrappers=1:nokey=1",
        str(input_path),
    ]


def packet_times_args(input_path) -> t.List[str]:
    return [
        "-v", "error",
        "-select_streams", "v:0",
        "-show_entries", "packet=pts_time",
        "-of", "csv=p=0",
        str(input_path),
    ]


def frame_rate_args(input_path) -> t.List[str]:
    return [
        "-v", "error",
        "-select_streams", "v:0",
        "-show_entries", "stream=avg_frame_rate",
        "-of", "default=noprint_wrappers=1:nokey=1",
        str(input_path),
    ]


def video_streams_args(input_path) -> t.List[str]:
    return [
        "-v", "error",
        "-select_streams", "v",
        "-show_entries", "stream=codec_type",
        "-of", "csv=p=0",
        str(input_path),
    ]


def _to_float(text: str) -> t.Optional[float]:
    try:
        value = float(text)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def parse_first_csv_number(line: str) -> t.Optional[float]:
    """Parse the first comma-separated field of ``line`` as a float."""
    raw = line.strip()
    if not raw:
        return None
    token = raw.split(",", 1)[0].strip()
    if not token:
        return None
    return _to_float(token)


def parse_packet_times(output: str) -> t.List[float]:
    """Turn ffprobe CSV packet output into a sorted list of timestamps.

    Lines that do not start with a number (``N/A``, blank lines, warnings)
    are dropped.
    """
    times = [
        value
        for value in (parse_first_csv_number(line) for line in output.splitlines())
        if value is not None
    ]
    times.sort()
    return times


def parse_frame_rate(text: str) -> t.Optional[float]:
    """Parse ffprobe's ``avg_frame_rate`` value.

    Accepts a bare number or ``num/den``. Returns None when the rate is
    unknown (empty, ``0/0``, zero denominator, or garbage).
    """
    value = text.strip()
    if not value or value == "0/0":
        return None

    if "/" in value:
        parts = value.split("/")
        if len(parts) != 2:
            return None
        num, den = _to_float(parts[0]), _to_float(parts[1])
        if num is None or den is None or den == 0:
            return None
        return num / den

    return _to_float(value)


def nearest_time_at_or_before(target: float, times: t.Sequence[float]) -> t.Optional[float]:
    """Return the largest element of sorted ``times`` that is <= ``target``.

    Returns None if ``times`` is empty or every element exceeds ``target``.
    """
    best = None
    for value in times:
        if value <= target:
            best = value
        else:
            break
    return best


def predict_boundaries(
    requested_start: float,
    requested_end: float,
    packet_times: t.Sequence[float],
    frame_rate: t.Optional[float] = None,
) -> CutPrediction:
    """Map a requested range onto the packet boundaries a stream copy can use."""
    requested_duration = max(0.0, requested_end - requested_start)

    predicted_start = nearest_time_at_or_before(requested_start, packet_times)
    if predicted_start is None:
        predicted_start = requested_start

    nominal_end = predicted_start + requested_duration
    end_candidate = nearest_time_at_or_before(nominal_end, packet_times)
    if end_candidate is None:
        end_candidate = nominal_end

    return CutPrediction(
        requested_start=requested_start,
        requested_end=requested_end,
        predicted_start=predicted_start,
        predicted_end=max(predicted_start, end_candidate),
        frame_rate=frame_rate,
    )


def probe_duration(
    resolver: ExecutableResolver,
    runner: ProcessRunner,
    input_path,
    policy: ToolPolicy,
    cancel: t.Optional[CancelToken] = None,
) -> float:
    """Return the container duration of ``input_path`` in seconds.

    Raises:
        ToolNotFound: If ffprobe cannot be resolved
        CommandFailed: If ffprobe exits non-zero
        DurationUnavailable: If the output is not a positive number
    """
    ffprobe = resolver.resolve(Tool.FFPROBE, policy)
    result = runner.run(ffprobe, duration_args(input_path), cancel=cancel)
    output = result.output.strip()

    if result.exit_code != 0:
        raise CommandFailed(result.exit_code, output)

    duration = _to_float(output)
    if duration is None or duration <= 0:
        logger.warning("Unusable duration output for %s: %r", input_path, output)
        raise DurationUnavailable()

    logger.info("Duration of %s: %.3fs", input_path, duration)
    return duration


def load_packet_times(
    runner: ProcessRunner,
    ffprobe: str,
    input_path,
    cancel: t.Optional[CancelToken] = None,
) -> t.List[float]:
    result = runner.run(ffprobe, packet_times_args(input_path), cancel=cancel)
    if result.exit_code != 0:
        raise CommandFailed(result.exit_code, result.output.strip())
    return parse_packet_times(result.output)


def load_frame_rate(
    runner: ProcessRunner,
    ffprobe: str,
    input_path,
    cancel: t.Optional[CancelToken] = None,
) -> t.Optional[float]:
    result = runner.run(ffprobe, frame_rate_args(input_path), cancel=cancel)
    if result.exit_code != 0:
        # Frame rate is cosmetic; the prediction still stands without it
        logger.debug("Frame rate probe exited %d for %s", result.exit_code, input_path)
        return None
    return parse_frame_rate(result.output)


def predict_cut(
    resolver: ExecutableResolver,
    runner: ProcessRunner,
    input_path,
    requested_start: float,
    requested_end: float,
    policy: ToolPolicy,
    cancel: t.Optional[CancelToken] = None,
) -> CutPrediction:
    """Predict where a stream-copy cut of [start, end) will really land.

    Packet timestamps and the frame rate are probed in parallel. A failed
    packet listing fails the prediction; a failed frame-rate probe only
    leaves ``frame_rate`` unset.
    """
    ffprobe = resolver.resolve(Tool.FFPROBE, policy)

    with ThreadPoolExecutor(max_workers=2, thread_name_prefix="predict") as pool:
        packets = pool.submit(load_packet_times, runner, ffprobe, input_path, cancel)
        frame_rate = pool.submit(load_frame_rate, runner, ffprobe, input_path, cancel)
        packet_times = packets.result()
        fps = frame_rate.result()

    prediction = predict_boundaries(requested_start, requested_end, packet_times, fps)
    logger.debug(
        "Prediction for %s: %.3f-%.3f -> %.3f-%.3f (%d packets)",
        input_path,
        requested_start,
        requested_end,
        prediction.predicted_start,
        prediction.predicted_end,
        len(packet_times),
    )
    return prediction


def has_video_stream(
    resolver: ExecutableResolver,
    runner: ProcessRunner,
    input_path,
    policy: ToolPolicy,
    cancel: t.Optional[CancelToken] = None,
) -> bool:
    """Return True if ffprobe reports at least one video stream."""
    ffprobe = resolver.resolve(Tool.FFPROBE, policy)
    result = runner.run(ffprobe, video_streams_args(input_path), cancel=cancel)
    if result.exit_code != 0:
        raise CommandFailed(result.exit_code, result.output.strip())
    return any(line.strip().startswith("video") for line in result.output.splitlines())
