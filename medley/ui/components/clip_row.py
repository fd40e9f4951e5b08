"""Editor row for a single clip.

The row never mutates the timeline itself; it emits intent signals with the
clip id and the main window applies them. ``refresh`` copies model state back
into the widgets without disturbing a field the user is typing into.
"""

from __future__ import annotations

from PySide6.QtCore import Signal
from PySide6.QtWidgets import (
    QFrame,
    QGridLayout,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QPushButton,
)

from ...core.timeline import TIME_FIELDS, Clip
from ...utils.timefmt import format_time

_LABELS = {
    "start": "Start (hh:mm:ss)",
    "end": "End (hh:mm:ss)",
    "fade_in": "Fade in (hh:mm:ss)",
    "fade_out": "Fade out (hh:mm:ss)",
}


class ClipRowWidget(QFrame):
    fileRequested = Signal(str)
    timeEdited = Signal(str, str, str)  # clip_id, field, text
    playRequested = Signal(str)
    stopRequested = Signal()
    moveRequested = Signal(str, int)  # clip_id, direction
    removeRequested = Signal(str)

    def __init__(self, clip_id: str, parent=None):
        super().__init__(parent)
        self.clip_id = clip_id
        self.setFrameShape(QFrame.StyledPanel)
        grid = QGridLayout()

        self.file_btn = QPushButton("Choose MP3…")
        self.name_label = QLabel("No file selected")
        self.duration_label = QLabel("Duration: 00:00:00")
        for lbl in (self.name_label, self.duration_label):
            lbl.setStyleSheet("color:#888;font-size:11px;")
        grid.addWidget(self.file_btn, 0, 0)
        grid.addWidget(self.name_label, 1, 0)
        grid.addWidget(self.duration_label, 2, 0)

        self.fields: dict[str, QLineEdit] = {}
        for col, name in enumerate(TIME_FIELDS, start=1):
            grid.addWidget(QLabel(_LABELS[name]), 0, col)
            edit = QLineEdit("00:00:00")
            edit.textEdited.connect(
                lambda text, n=name: self.timeEdited.emit(self.clip_id, n, text)
            )
            grid.addWidget(edit, 1, col)
            self.fields[name] = edit

        actions = QHBoxLayout()
        self.play_btn = QPushButton("Play")
        self.stop_btn = QPushButton("Stop")
        self.up_btn = QPushButton("↑")
        self.down_btn = QPushButton("↓")
        self.remove_btn = QPushButton("Remove")
        for b in (self.play_btn, self.stop_btn, self.up_btn, self.down_btn, self.remove_btn):
            actions.addWidget(b)
        grid.addLayout(actions, 2, 1, 1, len(TIME_FIELDS))
        self.setLayout(grid)

        self.file_btn.clicked.connect(lambda: self.fileRequested.emit(self.clip_id))
        self.play_btn.clicked.connect(lambda: self.playRequested.emit(self.clip_id))
        self.stop_btn.clicked.connect(self.stopRequested.emit)
        self.up_btn.clicked.connect(lambda: self.moveRequested.emit(self.clip_id, -1))
        self.down_btn.clicked.connect(lambda: self.moveRequested.emit(self.clip_id, 1))
        self.remove_btn.clicked.connect(lambda: self.removeRequested.emit(self.clip_id))

    def refresh(self, clip: Clip, index: int, count: int):
        self.name_label.setText(clip.name or "No file selected")
        self.duration_label.setText(f"Duration: {format_time(clip.source_duration)}")
        for name, edit in self.fields.items():
            text = getattr(clip, name).text
            if edit.text() != text:
                edit.setText(text)
        reason = clip.ineligibility()
        self.setToolTip("" if reason is None else f"Not usable: {reason}")
        self.play_btn.setEnabled(clip.has_source)
        self.up_btn.setEnabled(index > 0)
        self.down_btn.setEnabled(index < count - 1)
        self.remove_btn.setEnabled(count > 1)


__all__ = ["ClipRowWidget"]
