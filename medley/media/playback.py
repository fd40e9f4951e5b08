"""Sequential preview controller.

Goals:
- Play the eligible clips of a timeline back to back through one audio player.
- Report elapsed preview time across segment boundaries.
- Pause/resume/stop with deterministic state, even when player events arrive late.

Design:
SequencePlaybackController drives an ``AudioPlayer`` through a snapshot of
eligible clips taken when the preview starts; later timeline edits do not
reach an in-flight preview. API:
    start(timeline_or_clips) -> bool
    preview_clip(clip) -> bool     single segment, stops at its end
    pause() / resume() -> bool
    stop() / cancel() -> bool
Signals:
    elapsedChanged(float)   seconds of preview played so far
    stateChanged(str)       'idle'|'playing'|'paused'|'completed'|'cancelled'
    segmentChanged(int)     index of the segment being played
    finished()              last segment reached its end
    failed(str)             player error; the session is cancelled

Stale events:
Each session gets a generation number and each segment load a player token.
Player notifications are acted on only when both match the live session, so
a position update racing a cancel, or a ready signal from a source that was
already replaced, is dropped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Union

from PySide6.QtCore import QObject, Signal

from ..core.timeline import Clip, ClipSnapshot, Timeline
from ..errors import PlaybackDeviceError
from .player import AudioPlayer, QtAudioPlayer

logger = logging.getLogger(__name__)


class PlaybackState(str, Enum):
    IDLE = "idle"
    PLAYING = "playing"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass
class PlaybackSession:
    generation: int
    segments: List[ClipSnapshot]
    total: float
    single: bool = False
    index: int = 0
    prior: float = 0.0
    token: Optional[int] = None
    awaiting_ready: bool = True
    # False until the first position after the seek has been seen
    armed: bool = False
    elapsed: float = 0.0

    @property
    def segment(self) -> ClipSnapshot:
        return self.segments[self.index]


def _snapshots(source: Union[Timeline, Iterable]) -> List[ClipSnapshot]:
    if isinstance(source, Timeline):
        return source.eligible_clips()
    result = []
    for item in source:
        if isinstance(item, Clip):
            if item.is_eligible:
                result.append(item.snapshot())
        elif item.source is not None and item.end > item.start:
            result.append(item)
    return result


class SequencePlaybackController(QObject):
    elapsedChanged = Signal(float)
    stateChanged = Signal(str)
    segmentChanged = Signal(int)
    finished = Signal()
    failed = Signal(str)

    def __init__(
        self,
        player: Optional[AudioPlayer] = None,
        parent: Optional[QObject] = None,
    ):
        super().__init__(parent)
        self._player = player if player is not None else QtAudioPlayer(self)
        if self._player.parent() is None:
            self._player.setParent(self)
        self._player.ready.connect(self._onReady)
        self._player.positionChanged.connect(self._onPosition)
        self._player.ended.connect(self._onEnded)
        self._player.failed.connect(self._onFailed)
        self._state = PlaybackState.IDLE
        self._session: Optional[PlaybackSession] = None
        self._generation = 0
        self._elapsed = 0.0

    # --- Read-only state ---
    @property
    def player(self) -> AudioPlayer:
        return self._player

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def elapsed(self) -> float:
        return self._elapsed

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def is_active(self) -> bool:
        return self._state in (PlaybackState.PLAYING, PlaybackState.PAUSED)

    @property
    def segment_index(self) -> Optional[int]:
        return self._session.index if self._session is not None else None

    @property
    def preview_length(self) -> float:
        return self._session.total if self._session is not None else 0.0

    # --- Public API ---
    def start(self, source: Union[Timeline, Iterable]) -> bool:
        """Preview every eligible clip in order. Returns False if there is none."""
        segments = _snapshots(source)
        if not segments:
            logger.debug("Preview requested with no eligible clips")
            return False
        return self._begin(segments, single=False)

    def preview_clip(self, clip: Union[Clip, ClipSnapshot]) -> bool:
        segments = _snapshots([clip])
        if not segments:
            return False
        return self._begin(segments, single=True)

    def pause(self) -> bool:
        if self._state != PlaybackState.PLAYING:
            return False
        try:
            self._player.pause()
        except Exception as e:
            self._fail(f"pause failed: {e}")
            return False
        self._setState(PlaybackState.PAUSED)
        return True

    def resume(self) -> bool:
        if self._state != PlaybackState.PAUSED or self._session is None:
            return False
        self._setState(PlaybackState.PLAYING)
        if not self._session.awaiting_ready:
            try:
                self._player.play()
            except Exception as e:
                self._fail(f"resume failed: {e}")
                return False
        return True

    def cancel(self) -> bool:
        if self._session is None:
            return False
        logger.debug("Cancelling preview generation %d", self._session.generation)
        self._teardown()
        self._resetElapsed()
        self._setState(PlaybackState.CANCELLED)
        return True

    stop = cancel

    # --- Session internals ---
    def _begin(self, segments: List[ClipSnapshot], single: bool) -> bool:
        if self._session is not None:
            self.cancel()
        self._generation += 1
        total = sum(s.length for s in segments)
        self._session = PlaybackSession(
            generation=self._generation,
            segments=segments,
            total=total,
            single=single,
        )
        self._resetElapsed()
        logger.debug(
            "Preview generation %d: %d segment(s), %.3fs",
            self._generation,
            len(segments),
            total,
        )
        self._enterSegment(0)
        return self._session is not None

    def _enterSegment(self, index: int):
        session = self._session
        assert session is not None
        session.index = index
        session.awaiting_ready = True
        session.armed = False
        self._setState(PlaybackState.PLAYING)
        self.segmentChanged.emit(index)
        try:
            session.token = self._player.load(session.segment.source)
        except Exception as e:
            self._fail(f"load failed: {e}")

    def _isCurrent(self, token: int) -> bool:
        session = self._session
        return (
            session is not None
            and session.generation == self._generation
            and session.token == token
        )

    def _onReady(self, token: int):
        if not self._isCurrent(token) or not self._session.awaiting_ready:
            logger.debug("Dropping stale ready for token %d", token)
            return
        session = self._session
        session.awaiting_ready = False
        try:
            self._player.seek(session.segment.start)
            if self._state == PlaybackState.PLAYING:
                self._player.play()
        except Exception as e:
            self._fail(f"start failed: {e}")

    def _onPosition(self, token: int, position: float):
        if not self._isCurrent(token) or self._state != PlaybackState.PLAYING:
            return
        session = self._session
        if session.awaiting_ready:
            return
        seg = session.segment
        if not session.armed:
            session.armed = True
            if position >= seg.end:
                # at most one report from before the seek landed
                return
        played = max(min(position, seg.end) - seg.start, 0.0)
        self._setElapsed(session.prior + played)
        if position >= seg.end:
            self._completeSegment()

    def _onEnded(self, token: int):
        if not self._isCurrent(token) or self._state != PlaybackState.PLAYING:
            return
        if self._session.awaiting_ready:
            return
        self._completeSegment()

    def _onFailed(self, token: int, reason: str):
        if not self._isCurrent(token):
            return
        self._fail(reason)

    def _completeSegment(self):
        session = self._session
        assert session is not None
        session.prior += session.segment.length
        self._setElapsed(session.prior)
        if session.single or session.index + 1 >= len(session.segments):
            self._complete()
        else:
            self._enterSegment(session.index + 1)

    def _complete(self):
        logger.debug("Preview generation %d completed", self._generation)
        self._teardown()
        self._setState(PlaybackState.COMPLETED)
        self.finished.emit()

    def _fail(self, reason: str):
        error = PlaybackDeviceError(reason)
        logger.error("Preview failed: %s", error)
        self._teardown()
        self._resetElapsed()
        self._setState(PlaybackState.CANCELLED)
        self.failed.emit(str(error))

    def _teardown(self):
        self._session = None
        try:
            self._player.stop()
            self._player.release()
        except Exception as e:
            logger.warning("Releasing audio player failed: %s", e)

    def _setElapsed(self, value: float):
        session = self._session
        if session is None:
            return
        value = min(max(value, session.elapsed), session.total)
        if value == session.elapsed:
            return
        session.elapsed = value
        self._elapsed = value
        self.elapsedChanged.emit(value)

    def _resetElapsed(self):
        self._elapsed = 0.0
        self.elapsedChanged.emit(0.0)

    def _setState(self, state: PlaybackState):
        if state == self._state:
            return
        self._state = state
        self.stateChanged.emit(state.value)


__all__ = ["PlaybackState", "PlaybackSession", "SequencePlaybackController"]
