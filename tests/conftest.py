"""
Pytest configuration file for the KiruCut test suite.
"""

import os
import stat
import sys
import threading
from pathlib import Path
import pytest

# Qt must not try to open a real display in tests
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

# Add the parent directory to sys.path to allow imports from the root directory
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from kiru_cut_app.core.models import CutPrediction  # noqa: E402


class FakeService:
    """In-memory stand-in for FFmpegService.

    ``gates`` maps an input path to an Event the duration probe waits on,
    letting tests hold a probe "in flight" while they change the input.
    ``predict_gates`` does the same for predictions, keyed by
    ``(path, start, end)``.
    """

    def __init__(self, durations=None):
        self.durations = dict(durations or {})
        self.gates = {}
        self.predict_gates = {}
        self.cut_gate = None
        self.cut_error = None
        self.predict_error = None
        self.cut_calls = []
        self.predict_calls = []
        self.predict_done = []
        self.duration_calls = []

    def media_duration(self, input_path, cancel=None):
        self.duration_calls.append(str(input_path))
        gate = self.gates.get(str(input_path))
        if gate is not None:
            gate.wait(5)
        value = self.durations.get(str(input_path), 10.0)
        if isinstance(value, Exception):
            raise value
        return value

    def predict_cut(self, input_path, requested_start, requested_end, cancel=None):
        self.predict_calls.append((str(input_path), requested_start, requested_end))
        key = (str(input_path), requested_start, requested_end)
        gate = self.predict_gates.get(key)
        if gate is not None:
            gate.wait(5)
        self.predict_done.append(key)
        if self.predict_error is not None:
            raise self.predict_error
        return CutPrediction(
            requested_start=requested_start,
            requested_end=requested_end,
            predicted_start=requested_start,
            predicted_end=requested_end,
            frame_rate=30.0,
        )

    def cut(self, input_path, output_path, start, duration, overwrite, cancel=None):
        self.cut_calls.append((str(input_path), str(output_path), start, duration, overwrite))
        if self.cut_gate is not None:
            self.cut_gate.wait(5)
        if self.cut_error is not None:
            raise self.cut_error

    def has_video_stream(self, input_path, cancel=None):
        return True

    def installed_tools_available(self):
        return False

    def release_all(self):
        for gate in (*self.gates.values(), *self.predict_gates.values()):
            gate.set()
        if self.cut_gate is not None:
            self.cut_gate.set()


@pytest.fixture
def fake_service():
    """Return a FakeService whose gates are opened again after the test."""
    service = FakeService()
    yield service
    service.release_all()


@pytest.fixture
def make_controller(qtbot):
    """Factory for TrimSessionControllers with fast timers and no event bus."""
    from kiru_cut_app.ui.controllers.trim_session_ctrl import TrimSessionController

    created = []

    def factory(service, **kwargs):
        kwargs.setdefault("preview_checker", lambda path, cancel=None: None)
        kwargs.setdefault("bus", None)
        kwargs.setdefault("debounce_ms", 20)
        kwargs.setdefault("progress_tick_ms", 10)
        ctrl = TrimSessionController(service, **kwargs)
        created.append((ctrl, service))
        return ctrl

    yield factory

    for ctrl, service in created:
        if hasattr(service, "release_all"):
            service.release_all()
        ctrl.shutdown()
        ctrl.threadpool.waitForDone(5000)


@pytest.fixture
def make_tool(tmp_path):
    """Write an executable shell script and return its path.

    Usage: ``make_tool("bin/ffprobe", "echo 12.5")``
    """
    def factory(relative: str, body: str = "exit 0", executable: bool = True) -> Path:
        path = tmp_path / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("#!/bin/sh\n" + body + "\n")
        mode = path.stat().st_mode
        if executable:
            path.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        else:
            path.chmod(mode & ~(stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH))
        return path

    return factory


@pytest.fixture
def gate():
    """A threading.Event that is always set on teardown."""
    event = threading.Event()
    yield event
    event.set()


# Define custom markers for categorizing tests
def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "slow: mark test as slow (may take longer to run)")
    config.addinivalue_line("markers", "gui: mark test as requiring a GUI environment")

    # Skip GUI tests in CI environment to avoid Qt-related errors
    if os.environ.get('CI') or os.environ.get('GITHUB_ACTIONS'):
        config.option.markexpr = 'not gui'


# Setup logging for tests
@pytest.fixture(scope="session", autouse=True)
def setup_logging():
    """Configure logging for tests."""
    import logging
    logging.basicConfig(
        level=logging.DEBUG,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    yield
