"""
Main window for the KiruCut application.

This module is the composition root: it builds the widgets, wires them to
the event bus and the trim session controller, and supplies the dialogs the
controller asks for (overwrite confirmation). No trimming logic lives here.
"""
import logging
from pathlib import Path

from PySide6.QtCore import QTimer, Slot
from PySide6.QtGui import QAction
from PySide6.QtWidgets import (
    QMainWindow, QWidget, QVBoxLayout, QHBoxLayout, QGridLayout,
    QLabel, QLineEdit, QPushButton, QProgressBar, QMessageBox, QFileDialog
)

from kiru_cut_app.config import Severity
from kiru_cut_app.core.ffmpeg_service import FFmpegService
from kiru_cut_app.core.preview import PreviewAvailabilityChecker
from kiru_cut_app.core.timecode import default_output_path
from kiru_cut_app.data.settings_store import SettingsStore
from kiru_cut_app.ui.controllers.trim_session_ctrl import TrimSessionController
from kiru_cut_app.ui.event_bus import BUS

logger = logging.getLogger(__name__)

STATUS_COLORS = {
    Severity.NEUTRAL: "palette(mid)",
    Severity.ERROR: "#c62828",
    Severity.SUCCESS: "#2e7d32",
}

MEDIA_FILTER = "Video (*.mp4 *.mov *.m4v *.mkv *.avi *.webm *.ts);;All (*)"


class MainWindow(QMainWindow):
    """Main application window."""

    def __init__(self, settings: SettingsStore = None, service: FFmpegService = None):
        """Initialize the main window.

        Args:
            settings: Settings store (defaults to the per-user store)
            service: FFmpeg service (defaults to one reading the policy
                from ``settings`` on every call)
        """
        super().__init__()
        self.setWindowTitle("KiruCut")
        self.setMinimumWidth(680)

        self.settings = settings or SettingsStore()
        self.service = service or FFmpegService(policy_provider=self.settings.tool_policy)
        self.controller = TrimSessionController(
            self.service,
            preview_checker=PreviewAvailabilityChecker(self.service),
            confirm_overwrite=self._confirm_overwrite,
            parent=self,
        )

        self._init_ui()
        self._init_connections()

    def _init_ui(self):
        """Initialize the user interface."""
        menubar = self.menuBar()
        settings_menu = menubar.addMenu("Settings")

        self.installed_action = QAction("Use installed ffmpeg", self)
        self.installed_action.setCheckable(True)
        self.installed_action.setChecked(self.settings.use_installed_ffmpeg)
        self.installed_action.toggled.connect(self._on_use_installed_toggled)
        settings_menu.addAction(self.installed_action)

        self.launch_prompt_action = QAction("Show open dialog at launch", self)
        self.launch_prompt_action.setCheckable(True)
        self.launch_prompt_action.setChecked(self.settings.show_open_input_at_launch)
        self.launch_prompt_action.toggled.connect(self.settings.set_show_open_input_at_launch)
        settings_menu.addAction(self.launch_prompt_action)

        main_widget = QWidget()
        layout = QVBoxLayout(main_widget)

        grid = QGridLayout()
        self.input_edit = QLineEdit()
        self.input_edit.setReadOnly(True)
        self.input_edit.setPlaceholderText("No file selected")
        self.input_btn = QPushButton("Choose Input...")
        grid.addWidget(QLabel("Input"), 0, 0)
        grid.addWidget(self.input_edit, 0, 1)
        grid.addWidget(self.input_btn, 0, 2)

        self.output_edit = QLineEdit()
        self.output_edit.setReadOnly(True)
        self.output_edit.setPlaceholderText("No file selected")
        self.output_btn = QPushButton("Choose Output...")
        grid.addWidget(QLabel("Output"), 1, 0)
        grid.addWidget(self.output_edit, 1, 1)
        grid.addWidget(self.output_btn, 1, 2)
        layout.addLayout(grid)

        times = QHBoxLayout()
        self.start_edit = QLineEdit()
        self.start_edit.setPlaceholderText("seconds or mm:ss")
        self.end_edit = QLineEdit()
        self.end_edit.setPlaceholderText("seconds or mm:ss")
        times.addWidget(QLabel("Start"))
        times.addWidget(self.start_edit)
        times.addWidget(QLabel("End"))
        times.addWidget(self.end_edit)
        layout.addLayout(times)

        self.prediction_label = QLabel()
        self.preview_label = QLabel()
        self.preview_label.setWordWrap(True)
        layout.addWidget(self.prediction_label)
        layout.addWidget(self.preview_label)

        self.progress_bar = QProgressBar()
        self.progress_bar.setRange(0, 1000)
        self.progress_bar.setTextVisible(False)
        layout.addWidget(self.progress_bar)

        bottom = QHBoxLayout()
        self.status_label = QLabel(self.controller.status_message)
        self.status_label.setWordWrap(True)
        self.cut_btn = QPushButton("Cut Video")
        bottom.addWidget(self.status_label, 1)
        bottom.addWidget(self.cut_btn)
        layout.addLayout(bottom)

        self.setCentralWidget(main_widget)
        self._set_fields_enabled(False)

    def _init_connections(self):
        """Connect widgets, bus and controller."""
        self.input_btn.clicked.connect(self._on_pick_input)
        self.output_btn.clicked.connect(self._on_pick_output)
        self.cut_btn.clicked.connect(self.controller.run_cut)

        # textEdited fires for user edits only, so controller echoes don't loop
        self.start_edit.textEdited.connect(self.controller.set_start_text)
        self.end_edit.textEdited.connect(self.controller.set_end_text)

        ctrl = self.controller
        ctrl.inputChanged.connect(self._on_input_changed)
        ctrl.outputChanged.connect(self.output_edit.setText)
        ctrl.startTextChanged.connect(lambda text: self._sync_text(self.start_edit, text))
        ctrl.endTextChanged.connect(lambda text: self._sync_text(self.end_edit, text))
        ctrl.predictionChanged.connect(self.prediction_label.setText)
        ctrl.statusChanged.connect(self._on_status_changed)
        ctrl.progressChanged.connect(lambda value: self.progress_bar.setValue(int(value * 1000)))
        ctrl.runningChanged.connect(self._on_running_changed)
        ctrl.previewAvailabilityChanged.connect(self._on_preview_availability)

    # ----- launch -----

    def prompt_for_input_on_launch(self):
        """Open the input picker shortly after launch if the user wants that."""
        if not self.settings.show_open_input_at_launch:
            return
        QTimer.singleShot(150, self._launch_prompt)

    def _launch_prompt(self):
        if self.controller.has_selected_input:
            return
        self.activateWindow()
        self._on_pick_input()

    # ----- pickers -----

    def _on_pick_input(self):
        path, _ = QFileDialog.getOpenFileName(self, "Choose input video", str(Path.home()), MEDIA_FILTER)
        if path:
            logger.info("User selected input %s", path)
            BUS.inputSelected.emit(Path(path))

    def _on_pick_output(self):
        input_path = self.controller.input_path
        if input_path is not None:
            suggestion = str(default_output_path(input_path))
        else:
            suggestion = str(Path.home() / "out.mp4")
        path, _ = QFileDialog.getSaveFileName(
            self, "Choose output video", suggestion, MEDIA_FILTER,
            options=QFileDialog.Option.DontConfirmOverwrite,
        )
        if path:
            logger.info("User selected output %s", path)
            BUS.outputSelected.emit(Path(path))

    def _confirm_overwrite(self, path: Path) -> bool:
        reply = QMessageBox.warning(
            self,
            "Output file exists",
            f"\"{path.name}\" already exists. Do you want to replace it?",
            QMessageBox.StandardButton.Yes | QMessageBox.StandardButton.Cancel,
            QMessageBox.StandardButton.Cancel,
        )
        return reply == QMessageBox.StandardButton.Yes

    # ----- settings -----

    @Slot(bool)
    def _on_use_installed_toggled(self, checked: bool):
        if checked and not self.service.installed_tools_available():
            QMessageBox.warning(
                self,
                "ffmpeg not installed",
                "No installed ffmpeg/ffprobe was found. Install it (for example: "
                "brew install ffmpeg) and try again.",
            )
            self.installed_action.blockSignals(True)
            self.installed_action.setChecked(False)
            self.installed_action.blockSignals(False)
            return
        self.settings.set_use_installed_ffmpeg(checked)

    # ----- controller feedback -----

    def _on_input_changed(self, path: str):
        self.input_edit.setText(path)
        self._set_fields_enabled(bool(path))

    def _on_status_changed(self, message: str, severity: str):
        self.status_label.setText(message)
        self.status_label.setStyleSheet(f"color: {STATUS_COLORS.get(severity, 'palette(mid)')};")

    def _on_running_changed(self, running: bool):
        self.cut_btn.setEnabled(not running)
        self.input_btn.setEnabled(not running)
        self.output_btn.setEnabled(not running)

    def _on_preview_availability(self, checking: bool, message: str):
        if checking:
            self.preview_label.setText("Checking preview compatibility...")
        else:
            self.preview_label.setText(message)

    def _set_fields_enabled(self, enabled: bool):
        self.start_edit.setEnabled(enabled)
        self.end_edit.setEnabled(enabled)

    @staticmethod
    def _sync_text(edit: QLineEdit, text: str):
        if edit.text() != text:
            edit.setText(text)

    def closeEvent(self, event):
        """Stop background work before the window goes away."""
        self.controller.shutdown()
        super().closeEvent(event)
