"""
Duration probing and cut prediction.
"""
import os
import random
import sys

import pytest

from kiru_cut_app.core import probe
from kiru_cut_app.core.errors import CommandFailed, DurationUnavailable, SpawnFailed, ToolNotFound
from kiru_cut_app.core.models import ProcessResult, ToolPolicy
from kiru_cut_app.core.process import ProcessRunner
from kiru_cut_app.core.resolver import ExecutableResolver

posix_only = pytest.mark.skipif(
    not os.path.exists("/bin/sh") or sys.platform.startswith("win"),
    reason="needs a POSIX shell",
)

FAKE_FFPROBE = """
case "$*" in
  *format=duration*) echo "12.500000" ;;
  *packet=pts_time*) printf '0.000000\\n2.000000,\\nN/A\\n\\n6.000000\\n4.000000\\n' ;;
  *avg_frame_rate*) echo "30000/1001" ;;
  *codec_type*) echo "video" ;;
  *) exit 1 ;;
esac
"""


class ScriptedRunner:
    """Runner double that answers by matching a marker in the arguments."""

    def __init__(self, responses):
        self.responses = responses
        self.calls = []

    def run(self, executable, arguments, cancel=None):
        self.calls.append((executable, list(arguments)))
        joined = " ".join(arguments)
        for marker, response in self.responses.items():
            if marker in joined:
                if isinstance(response, Exception):
                    raise response
                return response
        return ProcessResult(exit_code=1, output="unexpected call")


@pytest.fixture
def resolver(tmp_path, make_tool):
    make_tool("bin/ffmpeg")
    make_tool("bin/ffprobe", FAKE_FFPROBE)
    return ExecutableResolver(installed_dirs=[tmp_path / "bin"], resources_dir=tmp_path / "none")


# ----- pure helpers -----

def test_nearest_time_scenarios():
    times = [0.0, 2.0, 4.0, 6.0]
    assert probe.nearest_time_at_or_before(1.0, times) == 0.0
    assert probe.nearest_time_at_or_before(4.0, times) == 4.0
    assert probe.nearest_time_at_or_before(100.0, times) == 6.0
    assert probe.nearest_time_at_or_before(-1.0, times) is None
    assert probe.nearest_time_at_or_before(1.0, []) is None


def test_nearest_time_is_max_element_not_above_target():
    rng = random.Random(1234)
    for _ in range(200):
        times = sorted(round(rng.uniform(0, 50), 3) for _ in range(rng.randint(0, 30)))
        target = rng.uniform(-5, 55)
        below = [x for x in times if x <= target]
        expected = max(below) if below else None
        assert probe.nearest_time_at_or_before(target, times) == expected


def test_predict_boundaries_snaps_to_packets():
    prediction = probe.predict_boundaries(1.0, 5.0, [0.0, 2.0, 4.0, 6.0])

    assert prediction.requested_start == 1.0
    assert prediction.requested_end == 5.0
    assert prediction.predicted_start == 0.0
    assert prediction.predicted_end == 4.0
    assert prediction.frame_rate is None


def test_predict_boundaries_without_packets_keeps_request():
    prediction = probe.predict_boundaries(1.5, 3.0, [])
    assert prediction.predicted_start == 1.5
    assert prediction.predicted_end == 3.0


def test_predict_boundaries_start_before_first_packet():
    prediction = probe.predict_boundaries(0.5, 1.0, [2.0, 4.0])
    # No packet at or before 0.5 or 1.0: both fall back to nominal values
    assert prediction.predicted_start == 0.5
    assert prediction.predicted_end == 1.0


def test_predicted_end_never_precedes_start():
    rng = random.Random(99)
    for _ in range(200):
        times = sorted(rng.uniform(0, 30) for _ in range(rng.randint(0, 20)))
        start = rng.uniform(0, 30)
        end = start + rng.uniform(0.01, 10)
        prediction = probe.predict_boundaries(start, end, times)
        assert prediction.predicted_end >= prediction.predicted_start


@pytest.mark.parametrize(
    "text, expected",
    [
        ("30000/1001", pytest.approx(29.97, abs=0.01)),
        ("25/1", 25.0),
        ("24", 24.0),
        ("0/0", None),
        ("", None),
        ("30/0", None),
        ("1/2/3", None),
        ("abc", None),
    ],
)
def test_parse_frame_rate(text, expected):
    assert probe.parse_frame_rate(text) == expected


def test_parse_packet_times_skips_garbage_and_sorts():
    output = "4.0\n0.5,K_\nN/A\n\n  2.25 ,x\n,1.0\n"
    assert probe.parse_packet_times(output) == [0.5, 2.25, 4.0]


# ----- command shapes -----

def test_duration_command_shape():
    runner = ScriptedRunner({"format=duration": ProcessResult(exit_code=0, output="12.5\n")})
    resolver = ExecutableResolver(installed_dirs=[], resources_dir="/nonexistent")
    resolver.resolve = lambda tool, policy: "/x/ffprobe"

    assert probe.probe_duration(resolver, runner, "/in.mp4", ToolPolicy.BUNDLED) == 12.5
    assert runner.calls == [(
        "/x/ffprobe",
        ["-v", "error", "-show_entries", "format=duration",
         "-of", "default=noprint_wrappers=1:nokey=1", "/in.mp4"],
    )]


def test_prediction_command_shapes():
    runner = ScriptedRunner({
        "packet=pts_time": ProcessResult(exit_code=0, output="0\n2\n4\n6\n"),
        "avg_frame_rate": ProcessResult(exit_code=0, output="25/1\n"),
    })
    resolver = ExecutableResolver(installed_dirs=[], resources_dir="/nonexistent")
    resolver.resolve = lambda tool, policy: "/x/ffprobe"

    prediction = probe.predict_cut(resolver, runner, "/in.mp4", 1.0, 5.0, ToolPolicy.BUNDLED)

    assert prediction.predicted_start == 0.0
    assert prediction.predicted_end == 4.0
    assert prediction.frame_rate == 25.0
    calls = sorted(args for _, args in runner.calls)
    assert calls == sorted([
        ["-v", "error", "-select_streams", "v:0", "-show_entries", "packet=pts_time",
         "-of", "csv=p=0", "/in.mp4"],
        ["-v", "error", "-select_streams", "v:0", "-show_entries", "stream=avg_frame_rate",
         "-of", "default=noprint_wrappers=1:nokey=1", "/in.mp4"],
    ])


def test_frame_rate_failure_is_tolerated():
    runner = ScriptedRunner({
        "packet=pts_time": ProcessResult(exit_code=0, output="0\n2\n"),
        "avg_frame_rate": ProcessResult(exit_code=1, output="boom"),
    })
    resolver = ExecutableResolver(installed_dirs=[], resources_dir="/nonexistent")
    resolver.resolve = lambda tool, policy: "/x/ffprobe"

    prediction = probe.predict_cut(resolver, runner, "/in.mp4", 0.0, 1.0, ToolPolicy.BUNDLED)
    assert prediction.frame_rate is None


def test_packet_listing_failure_is_fatal():
    runner = ScriptedRunner({
        "packet=pts_time": ProcessResult(exit_code=1, output=" bad input \n"),
        "avg_frame_rate": ProcessResult(exit_code=0, output="25/1"),
    })
    resolver = ExecutableResolver(installed_dirs=[], resources_dir="/nonexistent")
    resolver.resolve = lambda tool, policy: "/x/ffprobe"

    with pytest.raises(CommandFailed) as excinfo:
        probe.predict_cut(resolver, runner, "/in.mp4", 0.0, 1.0, ToolPolicy.BUNDLED)
    assert excinfo.value.exit_code == 1
    assert excinfo.value.output == "bad input"


def test_frame_rate_spawn_failure_fails_prediction():
    runner = ScriptedRunner({
        "packet=pts_time": ProcessResult(exit_code=0, output="0\n"),
        "avg_frame_rate": SpawnFailed("/x/ffprobe", "Permission denied"),
    })
    resolver = ExecutableResolver(installed_dirs=[], resources_dir="/nonexistent")
    resolver.resolve = lambda tool, policy: "/x/ffprobe"

    with pytest.raises(SpawnFailed):
        probe.predict_cut(resolver, runner, "/in.mp4", 0.0, 1.0, ToolPolicy.BUNDLED)


@pytest.mark.parametrize("output", ["", "N/A", "0", "-3", "nan"])
def test_unusable_duration(output):
    runner = ScriptedRunner({"format=duration": ProcessResult(exit_code=0, output=output)})
    resolver = ExecutableResolver(installed_dirs=[], resources_dir="/nonexistent")
    resolver.resolve = lambda tool, policy: "/x/ffprobe"

    with pytest.raises(DurationUnavailable):
        probe.probe_duration(resolver, runner, "/in.mp4", ToolPolicy.BUNDLED)


def test_duration_nonzero_exit():
    runner = ScriptedRunner({"format=duration": ProcessResult(exit_code=1, output="No such file\n")})
    resolver = ExecutableResolver(installed_dirs=[], resources_dir="/nonexistent")
    resolver.resolve = lambda tool, policy: "/x/ffprobe"

    with pytest.raises(CommandFailed) as excinfo:
        probe.probe_duration(resolver, runner, "/in.mp4", ToolPolicy.BUNDLED)
    assert str(excinfo.value) == "ffmpeg failed with exit code 1: No such file"


def test_missing_ffprobe(tmp_path):
    resolver = ExecutableResolver(installed_dirs=[tmp_path], resources_dir=tmp_path)
    with pytest.raises(ToolNotFound):
        probe.probe_duration(resolver, ProcessRunner(), "/in.mp4", ToolPolicy.INSTALLED)


# ----- end to end with a scripted ffprobe -----

@posix_only
@pytest.mark.integration
def test_duration_with_script(resolver):
    assert probe.probe_duration(resolver, ProcessRunner(), "/in.mp4", ToolPolicy.INSTALLED) == 12.5


@posix_only
@pytest.mark.integration
def test_prediction_with_script(resolver):
    prediction = probe.predict_cut(resolver, ProcessRunner(), "/in.mp4", 1.0, 5.0, ToolPolicy.INSTALLED)

    assert prediction.predicted_start == 0.0
    assert prediction.predicted_end == 4.0
    assert prediction.frame_rate == pytest.approx(29.97, abs=0.01)


@posix_only
@pytest.mark.integration
def test_video_stream_with_script(resolver):
    assert probe.has_video_stream(resolver, ProcessRunner(), "/in.mp4", ToolPolicy.INSTALLED)
