"""Asynchronous duration probing for uploaded audio files.

Probing decodes the file header through MoviePy, which can block for a
noticeable time on large files, so it runs in a worker ``QThread`` in the same
way thumbnails used to be generated. Results are tagged with a per-clip
generation id; a result for a source that has since been replaced is ignored.
"""

from __future__ import annotations

import logging
import math
from typing import Dict, Optional, Tuple

from PySide6.QtCore import QObject, QThread, Signal

from moviepy import AudioFileClip

from ..core.timeline import Timeline

logger = logging.getLogger(__name__)


def probe_duration(path: str) -> float:
    """Return the duration of an audio file in seconds (finite, >= 0)."""
    clip = AudioFileClip(str(path))
    try:
        duration = float(clip.duration or 0.0)
    finally:
        clip.close()
    if not math.isfinite(duration) or duration < 0:
        return 0.0
    return duration


class DurationProbeWorker(QObject):
    finished = Signal(int, str, float)  # generation_id, clip_id, duration
    failed = Signal(int, str, str)  # generation_id, clip_id, reason

    def __init__(self, path: str, clip_id: str, generation_id: int, probe=None):
        super().__init__()
        self._path = path
        self._clip_id = clip_id
        self._gen = generation_id
        self._probe = probe or probe_duration

    def run(self):  # executed in thread
        try:
            duration = self._probe(self._path)
        except Exception as e:
            self.failed.emit(self._gen, self._clip_id, f"probe error: {e}")
            return
        self.finished.emit(self._gen, self._clip_id, duration)


class DurationProber(QObject):
    """Runs one probe per clip and applies the result to the timeline.

    Signals:
        probed(clip_id, duration)
        probeFailed(clip_id, reason)
    """

    probed = Signal(str, float)
    probeFailed = Signal(str, str)

    def __init__(self, timeline: Timeline, parent: Optional[QObject] = None, probe=None):
        super().__init__(parent)
        self._timeline = timeline
        self._probe = probe
        self._gen_id = 0
        self._latest: Dict[str, int] = {}
        self._jobs: Dict[int, Tuple[QThread, DurationProbeWorker]] = {}
        timeline.clipRemoved.connect(self.forget)

    def request(self, clip_id: str, path: str) -> int:
        self._gen_id += 1
        gen = self._gen_id
        self._latest[clip_id] = gen
        worker = DurationProbeWorker(path, clip_id, gen, self._probe)
        thread = QThread()
        self._jobs[gen] = (thread, worker)
        worker.moveToThread(thread)
        thread.started.connect(worker.run)
        worker.finished.connect(self._probeReady)
        worker.failed.connect(self._probeFailed)
        worker.finished.connect(lambda *_: thread.quit())
        worker.failed.connect(lambda *_: thread.quit())
        thread.finished.connect(worker.deleteLater)
        thread.finished.connect(lambda: self._jobs.pop(gen, None))
        thread.start()
        logger.debug("Probing %s for clip %s (gen=%d)", path, clip_id, gen)
        return gen

    def forget(self, clip_id: str):
        """Invalidate any pending probe for ``clip_id``."""
        self._latest.pop(clip_id, None)

    def _probeReady(self, gen: int, clip_id: str, duration: float):
        if self._latest.get(clip_id) != gen:
            logger.debug("Dropping stale probe gen=%d for clip %s", gen, clip_id)
            return
        del self._latest[clip_id]
        if self._timeline.index_of(clip_id) < 0:
            return
        self._timeline.set_duration(clip_id, duration)
        self.probed.emit(clip_id, duration)

    def _probeFailed(self, gen: int, clip_id: str, reason: str):
        if self._latest.get(clip_id) != gen:
            return
        del self._latest[clip_id]
        logger.warning("Duration probe failed for clip %s: %s", clip_id, reason)
        self.probeFailed.emit(clip_id, reason)

    def wait(self, msecs: int = 5000):
        for thread, _ in list(self._jobs.values()):
            thread.wait(msecs)


__all__ = ["probe_duration", "DurationProbeWorker", "DurationProber"]
