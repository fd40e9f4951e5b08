"""Main application window (UI layer).

Wires the timeline model to its two consumers: the sequential preview
controller and the merge controller. Widgets only translate user intent into
timeline/controller calls and re-render when the timeline signals a change.
"""

from __future__ import annotations

import logging
import sys
from typing import Dict, Optional

from PySide6.QtCore import QTimer
from PySide6.QtGui import QAction, QDesktopServices, QGuiApplication
from PySide6.QtWidgets import (
    QApplication,
    QFileDialog,
    QHBoxLayout,
    QLabel,
    QMainWindow,
    QMessageBox,
    QPushButton,
    QScrollArea,
    QVBoxLayout,
    QWidget,
)

from ..config import Settings, configure_logging
from ..core.timeline import Timeline
from ..errors import EngineUnavailable, MergeInProgress, MergeRefused
from ..media.playback import PlaybackState, SequencePlaybackController
from ..media.player import QtAudioPlayer
from ..media.source import AudioSource, OutputArtifact
from ..services.export import FFmpegEngine, MergeController
from ..services.probe import DurationProber
from ..utils.timefmt import format_time
from .components.clip_row import ClipRowWidget

logger = logging.getLogger(__name__)


class MainWindow(QMainWindow):
    def __init__(self, settings: Optional[Settings] = None, *, merge_controller=None):
        super().__init__()
        self.settings = settings or Settings.from_env()
        self.setWindowTitle("MP3 Medley Maker")
        self.setGeometry(100, 100, 960, 640)

        self.timeline = Timeline(self)
        self.playback = SequencePlaybackController(
            QtAudioPlayer(volume=self.settings.volume), self
        )
        self.merger = merge_controller or MergeController(
            self,
            engine_factory=lambda: FFmpegEngine(self.settings.ffmpeg_binary),
            settings=self.settings.export_settings(),
        )
        self.prober = DurationProber(self.timeline, self)
        self._rows: Dict[str, ClipRowWidget] = {}

        self._createMenuBar()
        self._createLayout()

        self.timeline.changed.connect(self._syncRows)
        self.timeline.changed.connect(self._updateControls)
        self.playback.elapsedChanged.connect(lambda _: self._updatePreviewLabel())
        self.playback.stateChanged.connect(lambda _: self._updateControls())
        self.playback.failed.connect(self._onPreviewFailed)
        self.merger.statusChanged.connect(self.engine_label.setText)
        self.merger.busyChanged.connect(lambda _: self._updateControls())
        self.merger.succeeded.connect(self._onMergeSucceeded)
        self.merger.failed.connect(self._onMergeFailed)
        self.prober.probeFailed.connect(
            lambda _id, reason: self.statusBar().showMessage(reason, 5000)
        )

        self._syncRows()
        self._updateControls()
        QTimer.singleShot(0, self._initEngine)

    def centerOnPreferredScreen(self):
        screens = QGuiApplication.screens()
        if not screens:
            return
        idx = self.settings.screen_index
        screen = screens[idx] if idx is not None and 0 <= idx < len(screens) else None
        screen = screen or QGuiApplication.primaryScreen() or screens[0]
        win_geo = self.frameGeometry()
        win_geo.moveCenter(screen.availableGeometry().center())
        self.move(win_geo.topLeft())

    def _createMenuBar(self):
        menu_bar = self.menuBar()
        file_menu = menu_bar.addMenu("File")
        add_action = QAction("Add another MP3", self)
        add_action.triggered.connect(self.timeline.add_clip)
        file_menu.addAction(add_action)
        exit_action = QAction("Exit", self)
        exit_action.triggered.connect(self.close)
        file_menu.addAction(exit_action)
        about_menu = menu_bar.addMenu("About")
        about_action = QAction("About Medley", self)
        about_action.triggered.connect(self._showAboutDialog)
        about_menu.addAction(about_action)

    def _showAboutDialog(self):
        QMessageBox.about(
            self,
            "About Medley",
            "MP3 Medley Maker\nTrim sections, add fades and merge MP3s into one medley.",
        )

    def _createLayout(self):
        central = QWidget()
        root = QVBoxLayout()

        self.engine_label = QLabel(self.merger.status)
        self.engine_label.setStyleSheet("color:#888;font-size:11px;")
        root.addWidget(self.engine_label)

        self._rows_container = QWidget()
        self._rows_layout = QVBoxLayout()
        self._rows_layout.addStretch(1)
        self._rows_container.setLayout(self._rows_layout)
        scroll = QScrollArea()
        scroll.setWidgetResizable(True)
        scroll.setWidget(self._rows_container)
        root.addWidget(scroll, stretch=1)

        controls = QHBoxLayout()
        self.add_btn = QPushButton("Add another MP3")
        self.preview_btn = QPushButton("Play medley preview")
        self.pause_btn = QPushButton("Pause preview")
        self.resume_btn = QPushButton("Resume preview")
        self.stop_btn = QPushButton("Stop preview")
        self.preview_label = QLabel()
        self.join_btn = QPushButton("Join tracks")
        for w in (
            self.add_btn,
            self.preview_btn,
            self.pause_btn,
            self.resume_btn,
            self.stop_btn,
            self.preview_label,
            self.join_btn,
        ):
            controls.addWidget(w)
        root.addLayout(controls)

        output = QHBoxLayout()
        self.output_label = QLabel("")
        self.open_output_btn = QPushButton("Play output")
        self.save_output_btn = QPushButton("Download MP3")
        output.addWidget(self.output_label, stretch=1)
        output.addWidget(self.open_output_btn)
        output.addWidget(self.save_output_btn)
        root.addLayout(output)

        central.setLayout(root)
        self.setCentralWidget(central)

        self.add_btn.clicked.connect(self.timeline.add_clip)
        self.preview_btn.clicked.connect(lambda: self.playback.start(self.timeline))
        self.pause_btn.clicked.connect(self.playback.pause)
        self.resume_btn.clicked.connect(self.playback.resume)
        self.stop_btn.clicked.connect(self.playback.stop)
        self.join_btn.clicked.connect(self.joinTracks)
        self.open_output_btn.clicked.connect(self._openOutput)
        self.save_output_btn.clicked.connect(self._saveOutput)

    def _initEngine(self):
        self.merger.initialize_engine()
        self._updateControls()

    # --- Timeline -> widgets ---
    def _syncRows(self):
        ids = [c.id for c in self.timeline]
        if list(self._rows) != ids:
            for row in self._rows.values():
                self._rows_layout.removeWidget(row)
                row.deleteLater()
            self._rows = {}
            for i, clip_id in enumerate(ids):
                row = ClipRowWidget(clip_id)
                row.fileRequested.connect(self._chooseFile)
                row.timeEdited.connect(self.timeline.set_time_field)
                row.playRequested.connect(self._previewClip)
                row.stopRequested.connect(self.playback.stop)
                row.moveRequested.connect(self._moveClip)
                row.removeRequested.connect(self._removeClip)
                self._rows_layout.insertWidget(i, row)
                self._rows[clip_id] = row
        count = len(ids)
        for i, clip in enumerate(self.timeline):
            self._rows[clip.id].refresh(clip, i, count)

    def _updatePreviewLabel(self):
        self.preview_label.setText(
            f"Preview length: {format_time(self.timeline.preview_length)}"
            f" · Played: {format_time(self.playback.elapsed)}"
        )

    def _updateControls(self):
        state = self.playback.state
        self.preview_btn.setEnabled(self.timeline.has_eligible_clips)
        self.pause_btn.setEnabled(state == PlaybackState.PLAYING)
        self.resume_btn.setEnabled(state == PlaybackState.PAUSED)
        self.stop_btn.setEnabled(self.playback.is_active)
        self.join_btn.setEnabled(self.merger.can_merge(self.timeline))
        self.join_btn.setText("Joining..." if self.merger.busy else "Join tracks")
        has_output = self.merger.artifact is not None
        self.open_output_btn.setEnabled(has_output)
        self.save_output_btn.setEnabled(has_output)
        self._updatePreviewLabel()

    # --- User intents ---
    def _chooseFile(self, clip_id: str):
        path, _ = QFileDialog.getOpenFileName(
            self, "Choose MP3", "", "MP3 Files (*.mp3)"
        )
        self.attachFile(clip_id, path or None)

    def attachFile(self, clip_id: str, path: Optional[str]):
        """Attach ``path`` to a clip (None detaches) and start probing it."""
        if not path:
            self.prober.forget(clip_id)
            self.timeline.detach_source(clip_id)
            return
        self.timeline.attach_source(clip_id, AudioSource(path))
        self.prober.request(clip_id, path)

    def _previewClip(self, clip_id: str):
        self.playback.preview_clip(self.timeline.clip(clip_id))

    def _moveClip(self, clip_id: str, direction: int):
        self.timeline.move_clip(self.timeline.index_of(clip_id), direction)

    def _removeClip(self, clip_id: str):
        if len(self.timeline) > 1:
            self.timeline.remove_clip(clip_id)

    def joinTracks(self):
        try:
            self.merger.merge(self.timeline)
        except (EngineUnavailable, MergeRefused, MergeInProgress) as e:
            logger.info("Join refused: %s", e)
            self.statusBar().showMessage(str(e), 5000)
        self._updateControls()

    # --- Controller callbacks ---
    def _onPreviewFailed(self, reason: str):
        self.statusBar().showMessage(f"Preview failed: {reason}", 5000)

    def _onMergeSucceeded(self, artifact: OutputArtifact):
        self.output_label.setText(f"{artifact.filename} ({artifact.size} bytes)")
        self._updateControls()

    def _onMergeFailed(self, reason: str):
        QMessageBox.warning(self, "Join failed", reason)
        self._updateControls()

    def _openOutput(self):
        if self.merger.artifact is not None:
            QDesktopServices.openUrl(self.merger.artifact.url)

    def _saveOutput(self):
        artifact = self.merger.artifact
        if artifact is None:
            return
        path, _ = QFileDialog.getSaveFileName(
            self, "Download MP3", artifact.filename, "MP3 Files (*.mp3)"
        )
        if path:
            artifact.save_as(path)

    def closeEvent(self, event):  # noqa: D401 - Qt override
        self.playback.cancel()
        self.prober.wait()
        self.merger.release()
        self.timeline.clear()
        super().closeEvent(event)


def run():  # convenience launcher
    settings = Settings.from_env()
    configure_logging(settings)
    app = QApplication(sys.argv)
    window = MainWindow(settings)
    window.show()
    window.centerOnPreferredScreen()
    sys.exit(app.exec())


__all__ = ["MainWindow", "run"]
