"""Merge pipeline: compile the timeline into an ffmpeg job and run it.

Responsibilities:
 - Translate eligible clips into one ``-filter_complex`` graph
   (trim -> reset timestamps -> fade in -> fade out, then concat in order)
 - Stage the source bytes and invoke ffmpeg without blocking the GUI thread
 - Wrap the encoded mp3 into an ``OutputArtifact`` and keep the previous one
   when a merge fails

Only one merge runs at a time; a second request while one is in flight is
rejected with ``MergeInProgress`` and does not disturb the running job.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from PySide6.QtCore import QObject, QThread, Signal

import imageio_ffmpeg

from ..core.timeline import Timeline
from ..errors import EngineFailure, EngineUnavailable, MergeInProgress, MergeRefused
from ..media.source import OutputArtifact

logger = logging.getLogger(__name__)


class ExportSettings:
    def __init__(
        self,
        output_name: str = "medley.mp3",
        codec: str = "libmp3lame",
        quality: int = 2,
        output_label: str = "outa",
    ):
        self.output_name = output_name
        self.codec = codec
        self.quality = quality
        self.output_label = output_label


@dataclass(frozen=True)
class StagedInput:
    name: str
    data: bytes


@dataclass(frozen=True)
class MergePlan:
    inputs: Tuple[StagedInput, ...]
    filter_graph: str
    output_label: str = "outa"
    output_name: str = "medley.mp3"
    codec: str = "libmp3lame"
    quality: int = 2

    def ffmpeg_args(self) -> List[str]:
        args: List[str] = []
        for staged in self.inputs:
            args.extend(["-i", staged.name])
        args.extend(
            [
                "-filter_complex",
                self.filter_graph,
                "-map",
                f"[{self.output_label}]",
                "-c:a",
                self.codec,
                "-q:a",
                str(self.quality),
                self.output_name,
            ]
        )
        return args


def _num(value: float) -> str:
    value = float(value)
    if value.is_integer():
        return str(int(value))
    # fixed point: ffmpeg rejects exponent notation
    return f"{value:.6f}".rstrip("0").rstrip(".") or "0"


def clip_filter_chain(index: int, start: float, end: float, fade_in: float, fade_out: float) -> str:
    """Filter chain for one clip, labelled ``[a{index}]``."""
    duration = max(end - start, 0.0)
    filters = [
        f"[{index}:a]atrim=start={_num(start)}:end={_num(end)}",
        "asetpts=PTS-STARTPTS",
    ]
    if fade_in > 0:
        filters.append(f"afade=t=in:st=0:d={_num(fade_in)}")
    if fade_out > 0 and duration > fade_out:
        fade_start = max(duration - fade_out, 0.0)
        filters.append(f"afade=t=out:st={fade_start:.3f}:d={_num(fade_out)}")
    return f"{','.join(filters)}[a{index}]"


def compile_merge_plan(
    timeline: Timeline, settings: Optional[ExportSettings] = None
) -> MergePlan:
    """Build the ffmpeg job for ``timeline``.

    Raises MergeRefused unless every clip has a source and a positive length.
    """
    settings = settings or ExportSettings()
    if len(timeline) == 0:
        raise MergeRefused("timeline is empty")
    if not timeline.is_mergeable:
        reasons = []
        for i, clip in enumerate(timeline):
            reason = clip.ineligibility()
            if reason:
                reasons.append(f"clip {i + 1}: {reason}")
        raise MergeRefused("timeline is not mergeable (" + ", ".join(reasons) + ")")
    clips = timeline.eligible_clips()
    if not clips:
        raise MergeRefused("no eligible clips")

    inputs = []
    chains = []
    labels = []
    for index, clip in enumerate(clips):
        inputs.append(StagedInput(f"input-{clip.id}.mp3", clip.source.data))
        chains.append(
            clip_filter_chain(index, clip.start, clip.end, clip.fade_in, clip.fade_out)
        )
        labels.append(f"[a{index}]")
    graph = (
        f"{';'.join(chains)};{''.join(labels)}"
        f"concat=n={len(labels)}:v=0:a=1[{settings.output_label}]"
    )
    return MergePlan(
        inputs=tuple(inputs),
        filter_graph=graph,
        output_label=settings.output_label,
        output_name=settings.output_name,
        codec=settings.codec,
        quality=settings.quality,
    )


class FFmpegEngine:
    """Runs a MergePlan with an ffmpeg binary in a scratch directory."""

    def __init__(self, binary: Optional[str] = None):
        self.binary = self._resolve(binary)

    @staticmethod
    def _resolve(binary: Optional[str]) -> str:
        if binary:
            found = shutil.which(binary) or (binary if Path(binary).is_file() else None)
            if found is None:
                raise EngineUnavailable(f"ffmpeg binary not found: {binary}")
            return found
        try:
            return imageio_ffmpeg.get_ffmpeg_exe()
        except RuntimeError as e:
            found = shutil.which("ffmpeg")
            if found is None:
                raise EngineUnavailable(f"ffmpeg not available: {e}") from e
            return found

    def run(self, plan: MergePlan) -> bytes:
        with tempfile.TemporaryDirectory(prefix="medley-job-") as tmp:
            workdir = Path(tmp)
            for staged in plan.inputs:
                (workdir / staged.name).write_bytes(staged.data)
            cmd = [self.binary, "-y", "-hide_banner", "-loglevel", "error"]
            cmd += plan.ffmpeg_args()
            logger.debug("Running %s", " ".join(cmd))
            try:
                proc = subprocess.run(cmd, cwd=workdir, capture_output=True)
            except OSError as e:
                raise EngineFailure(f"could not start ffmpeg: {e}") from e
            if proc.returncode != 0:
                tail = proc.stderr.decode("utf-8", "replace").strip()[-500:]
                raise EngineFailure(
                    f"ffmpeg exited with {proc.returncode}: {tail}", proc.returncode
                )
            out = workdir / plan.output_name
            if not out.is_file():
                raise EngineFailure("ffmpeg produced no output file")
            return out.read_bytes()


class MergeWorker(QObject):
    finished = Signal(int, object)  # generation_id, bytes
    failed = Signal(int, str)

    def __init__(self, engine, plan: MergePlan, generation_id: int):
        super().__init__()
        self._engine = engine
        self._plan = plan
        self._gen = generation_id

    def run(self):  # executed in thread
        try:
            data = self._engine.run(self._plan)
        except EngineFailure as e:
            self.failed.emit(self._gen, str(e))
            return
        except Exception as e:
            self.failed.emit(self._gen, f"engine error: {e}")
            return
        self.finished.emit(self._gen, data)


class MergeController(QObject):
    """Owns the engine, the in-flight merge and the current output artifact.

    Signals:
        started()
        succeeded(OutputArtifact)
        failed(str)
        busyChanged(bool)
        statusChanged(str)
    """

    started = Signal()
    succeeded = Signal(object)
    failed = Signal(str)
    busyChanged = Signal(bool)
    statusChanged = Signal(str)

    def __init__(
        self,
        parent: Optional[QObject] = None,
        *,
        engine_factory: Optional[Callable[[], object]] = None,
        settings: Optional[ExportSettings] = None,
        threaded: bool = True,
    ):
        super().__init__(parent)
        self._engine_factory = engine_factory or FFmpegEngine
        self._settings = settings or ExportSettings()
        self._threaded = threaded
        self._engine = None
        self._engine_error: Optional[EngineUnavailable] = None
        self._busy = False
        self._gen_id = 0
        self._artifact: Optional[OutputArtifact] = None
        self._last_error: Optional[Exception] = None
        self._thread: Optional[QThread] = None
        self._worker: Optional[MergeWorker] = None
        self._status = "Loading ffmpeg..."

    # --- State ---
    @property
    def engine_ready(self) -> bool:
        return self._engine is not None

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def artifact(self) -> Optional[OutputArtifact]:
        return self._artifact

    @property
    def last_error(self) -> Optional[Exception]:
        return self._last_error

    @property
    def status(self) -> str:
        return self._status

    def can_merge(self, timeline: Timeline) -> bool:
        return self.engine_ready and not self._busy and timeline.is_mergeable

    def _setStatus(self, text: str):
        self._status = text
        self.statusChanged.emit(text)

    def _setBusy(self, busy: bool):
        if busy != self._busy:
            self._busy = busy
            self.busyChanged.emit(busy)

    # --- Engine ---
    def initialize_engine(self) -> bool:
        if self._engine is not None:
            return True
        try:
            self._engine = self._engine_factory()
        except EngineUnavailable as e:
            self._engine_error = e
            logger.error("FFmpeg unavailable: %s", e)
            self._setStatus("Failed to load FFmpeg")
            return False
        self._engine_error = None
        self._setStatus("FFmpeg ready")
        return True

    # --- Merge ---
    def merge(self, timeline: Timeline) -> int:
        """Start merging ``timeline``; returns the job generation id.

        Raises EngineUnavailable, MergeInProgress or MergeRefused before any
        work is dispatched.
        """
        if self._busy:
            raise MergeInProgress("a merge is already running")
        if self._engine is None and not self.initialize_engine():
            error = EngineUnavailable(str(self._engine_error))
            self._last_error = error
            raise error
        try:
            plan = compile_merge_plan(timeline, self._settings)
        except MergeRefused as e:
            self._last_error = e
            self._setStatus(f"Cannot join: {e}")
            raise
        self._gen_id += 1
        gen = self._gen_id
        self._setBusy(True)
        self._setStatus("Joining...")
        self.started.emit()
        logger.info("Merging %d clip(s), job %d", len(plan.inputs), gen)
        if not self._threaded:
            try:
                data = self._engine.run(plan)
            except EngineFailure as e:
                self._onFailed(gen, str(e))
            except Exception as e:
                self._onFailed(gen, f"engine error: {e}")
            else:
                self._onFinished(gen, data)
            return gen
        worker = MergeWorker(self._engine, plan, gen)
        thread = QThread()
        self._thread = thread
        self._worker = worker
        worker.moveToThread(thread)
        thread.started.connect(worker.run)
        worker.finished.connect(self._onFinished)
        worker.failed.connect(self._onFailed)
        worker.finished.connect(lambda *_: thread.quit())
        worker.failed.connect(lambda *_: thread.quit())
        thread.finished.connect(worker.deleteLater)
        thread.start()
        return gen

    def _onFinished(self, gen: int, data):
        if gen != self._gen_id:
            return
        if not data:
            self._onFailed(gen, "engine returned no data")
            return
        artifact = OutputArtifact(bytes(data), self._settings.output_name)
        previous = self._artifact
        self._artifact = artifact
        if previous is not None:
            previous.release()
        self._last_error = None
        self._setBusy(False)
        self._setStatus("Medley ready")
        logger.info("Merge job %d produced %d bytes", gen, artifact.size)
        self.succeeded.emit(artifact)

    def _onFailed(self, gen: int, reason: str):
        if gen != self._gen_id:
            return
        self._last_error = EngineFailure(reason)
        logger.error("Merge job %d failed: %s", gen, reason)
        self._setBusy(False)
        self._setStatus("Join failed")
        self.failed.emit(reason)

    def wait(self, msecs: int = 30000) -> bool:
        if self._thread is None:
            return True
        return self._thread.wait(msecs)

    def release(self):
        """Tear down: wait for a running job and drop the current artifact."""
        self.wait()
        if self._artifact is not None:
            self._artifact.release()
            self._artifact = None


__all__ = [
    "ExportSettings",
    "StagedInput",
    "MergePlan",
    "clip_filter_chain",
    "compile_merge_plan",
    "FFmpegEngine",
    "MergeWorker",
    "MergeController",
]
