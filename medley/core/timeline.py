"""Timeline model: an ordered list of trimmed, optionally faded clips.

The timeline owns every clip and every source handle attached to a clip.
Derived values (``preview_length``, ``is_mergeable``, eligible snapshots) are
recomputed from the clips on each read so they can never go stale.

Observers connect to ``changed`` (emitted once after every mutation) instead
of polling; the preview controller and the merge button enablement both work
that way.

Time fields keep two representations: the raw text the user typed and the
last value that parsed. Invalid text is stored but never clobbers the value.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field, replace
from typing import Any, Iterator, List, Optional, Tuple

from PySide6.QtCore import QObject, Signal

from ..utils.timefmt import format_time, parse_time

logger = logging.getLogger(__name__)

TIME_FIELDS = ("start", "end", "fade_in", "fade_out")


@dataclass
class TimeField:
    text: str = "00:00:00"
    value: float = 0.0

    def set_text(self, text: str) -> bool:
        """Store ``text``; adopt its value only if it parses."""
        self.text = text
        parsed = parse_time(text)
        if parsed is None:
            return False
        self.value = max(parsed, 0.0)
        return True

    def set_value(self, seconds: float) -> None:
        self.value = max(float(seconds), 0.0)
        self.text = format_time(self.value)


@dataclass(frozen=True)
class ClipSnapshot:
    """Read-only view of an eligible clip used by preview and merge."""

    id: str
    source: Any
    name: Optional[str]
    start: float
    end: float
    fade_in: float
    fade_out: float

    @property
    def length(self) -> float:
        return self.end - self.start


@dataclass
class Clip:
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    source: Any = None
    name: Optional[str] = None
    source_duration: Optional[float] = None
    start: TimeField = field(default_factory=TimeField)
    end: TimeField = field(default_factory=TimeField)
    fade_in: TimeField = field(default_factory=TimeField)
    fade_out: TimeField = field(default_factory=TimeField)

    @property
    def length(self) -> float:
        return self.end.value - self.start.value

    @property
    def has_source(self) -> bool:
        return self.source is not None

    @property
    def is_eligible(self) -> bool:
        return self.ineligibility() is None

    def ineligibility(self) -> Optional[str]:
        if self.source is None:
            return "no source"
        if self.end.value <= self.start.value:
            return "end <= start"
        return None

    def snapshot(self) -> ClipSnapshot:
        return ClipSnapshot(
            id=self.id,
            source=self.source,
            name=self.name,
            start=self.start.value,
            end=self.end.value,
            fade_in=self.fade_in.value,
            fade_out=self.fade_out.value,
        )

    def copy(self) -> "Clip":
        return replace(
            self,
            start=replace(self.start),
            end=replace(self.end),
            fade_in=replace(self.fade_in),
            fade_out=replace(self.fade_out),
        )


def _release(source: Any) -> None:
    if source is None:
        return
    release = getattr(source, "release", None)
    if callable(release):
        release()


class Timeline(QObject):
    """Ordered clip sequence with change notification.

    Signals:
        changed()          after every successful mutation
        clipAdded(str)     clip id
        clipRemoved(str)   clip id
    """

    changed = Signal()
    clipAdded = Signal(str)
    clipRemoved = Signal(str)

    def __init__(self, parent: Optional[QObject] = None, *, initial_clips: int = 1):
        super().__init__(parent)
        self._clips: List[Clip] = [Clip() for _ in range(max(0, initial_clips))]

    # --- Lookup ---
    @property
    def clips(self) -> Tuple[Clip, ...]:
        return tuple(self._clips)

    def __len__(self) -> int:
        return len(self._clips)

    def __iter__(self) -> Iterator[Clip]:
        return iter(tuple(self._clips))

    def index_of(self, clip_id: str) -> int:
        for i, clip in enumerate(self._clips):
            if clip.id == clip_id:
                return i
        return -1

    def clip(self, clip_id: str) -> Clip:
        idx = self.index_of(clip_id)
        if idx < 0:
            raise KeyError(clip_id)
        return self._clips[idx]

    # --- Derived values ---
    @property
    def preview_length(self) -> float:
        return sum(c.length for c in self._clips if c.is_eligible)

    @property
    def is_mergeable(self) -> bool:
        return bool(self._clips) and all(c.is_eligible for c in self._clips)

    @property
    def has_eligible_clips(self) -> bool:
        return any(c.is_eligible for c in self._clips)

    def eligible_clips(self) -> List[ClipSnapshot]:
        return [c.snapshot() for c in self._clips if c.is_eligible]

    # --- Mutations ---
    def _replace(self, idx: int, clip: Clip) -> None:
        clips = list(self._clips)
        clips[idx] = clip
        self._clips = clips

    def add_clip(self) -> str:
        clip = Clip()
        self._clips = [*self._clips, clip]
        logger.debug("Added clip %s", clip.id)
        self.clipAdded.emit(clip.id)
        self.changed.emit()
        return clip.id

    def remove_clip(self, clip_id: str) -> bool:
        idx = self.index_of(clip_id)
        if idx < 0:
            return False
        removed = self._clips[idx]
        self._clips = self._clips[:idx] + self._clips[idx + 1 :]
        _release(removed.source)
        logger.debug("Removed clip %s", clip_id)
        self.clipRemoved.emit(clip_id)
        self.changed.emit()
        return True

    def move_clip(self, index: int, direction: int) -> bool:
        target = index + direction
        if direction not in (-1, 1):
            raise ValueError("direction must be -1 or 1")
        if not 0 <= index < len(self._clips) or not 0 <= target < len(self._clips):
            return False
        clips = list(self._clips)
        clips[index], clips[target] = clips[target], clips[index]
        self._clips = clips
        self.changed.emit()
        return True

    def attach_source(
        self,
        clip_id: str,
        source: Any,
        probed_duration: Optional[float] = None,
        *,
        name: Optional[str] = None,
    ) -> None:
        idx = self.index_of(clip_id)
        if idx < 0:
            raise KeyError(clip_id)
        old = self._clips[idx]
        new = old.copy()
        new.source = source
        new.name = name or getattr(source, "name", None)
        new.source_duration = None
        if probed_duration is not None:
            self._apply_duration(new, probed_duration)
        self._replace(idx, new)
        if old.source is not None and old.source is not source:
            _release(old.source)
        logger.debug("Attached %r to clip %s", source, clip_id)
        self.changed.emit()

    def set_duration(self, clip_id: str, duration: float) -> None:
        """Record the probed duration and clamp ``end`` to it."""
        idx = self.index_of(clip_id)
        if idx < 0:
            raise KeyError(clip_id)
        new = self._clips[idx].copy()
        self._apply_duration(new, duration)
        self._replace(idx, new)
        self.changed.emit()

    @staticmethod
    def _apply_duration(clip: Clip, duration: float) -> None:
        duration = max(float(duration), 0.0)
        clip.source_duration = duration
        if clip.end.value > 0:
            clip.end.set_value(min(clip.end.value, duration))
        else:
            clip.end.set_value(duration)
        if duration < clip.start.value:
            logger.info(
                "Clip %s: start %.3f is past source duration %.3f",
                clip.id,
                clip.start.value,
                duration,
            )

    def set_time_field(self, clip_id: str, field_name: str, text: str) -> bool:
        """Store ``text`` for one of start/end/fade_in/fade_out.

        Returns whether it parsed; on failure the numeric value is unchanged.
        """
        if field_name not in TIME_FIELDS:
            raise ValueError(f"unknown time field {field_name!r}")
        idx = self.index_of(clip_id)
        if idx < 0:
            raise KeyError(clip_id)
        new = self._clips[idx].copy()
        ok = getattr(new, field_name).set_text(text)
        self._replace(idx, new)
        self.changed.emit()
        return ok

    def detach_source(self, clip_id: str) -> None:
        idx = self.index_of(clip_id)
        if idx < 0:
            raise KeyError(clip_id)
        old = self._clips[idx]
        new = old.copy()
        new.source = None
        new.name = None
        new.source_duration = None
        self._replace(idx, new)
        _release(old.source)
        self.changed.emit()

    def clear(self) -> None:
        """Discard every clip, releasing each held source once."""
        old = self._clips
        self._clips = []
        for clip in old:
            _release(clip.source)
            self.clipRemoved.emit(clip.id)
        self.changed.emit()


__all__ = ["TIME_FIELDS", "TimeField", "Clip", "ClipSnapshot", "Timeline"]
