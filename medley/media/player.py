"""Single-stream audio player used by the preview controller.

Every notification carries the token returned by the ``load`` call it belongs
to, so a consumer can drop events from a source it has already moved past.

``QtAudioPlayer`` is the real implementation on top of ``QMediaPlayer``. Tests
substitute a fake emitting the same signals.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from PySide6.QtCore import QObject, QTimer, QUrl, Signal
from PySide6.QtMultimedia import QAudioOutput, QMediaPlayer

logger = logging.getLogger(__name__)


def source_url(source: Any) -> QUrl:
    url = getattr(source, "url", None)
    if isinstance(url, QUrl):
        return url
    if url is not None:
        return QUrl(str(url))
    return QUrl.fromLocalFile(str(source))


class AudioPlayer(QObject):
    """Interface of the platform player.

    Signals:
        ready(token)                 source loaded and seekable, once per load
        positionChanged(token, sec)  periodic position while playing or after seek
        ended(token)                 natural end of stream
        failed(token, reason)        load/decode/output error
    """

    ready = Signal(int)
    positionChanged = Signal(int, float)
    ended = Signal(int)
    failed = Signal(int, str)

    def __init__(self, parent: Optional[QObject] = None):
        super().__init__(parent)
        self._token = 0

    @property
    def token(self) -> int:
        return self._token

    def _next_token(self) -> int:
        self._token += 1
        return self._token

    def load(self, source: Any) -> int:
        raise NotImplementedError

    def seek(self, seconds: float) -> None:
        raise NotImplementedError

    def play(self) -> None:
        raise NotImplementedError

    def pause(self) -> None:
        raise NotImplementedError

    def stop(self) -> None:
        raise NotImplementedError

    def release(self) -> None:
        raise NotImplementedError

    def position(self) -> float:
        raise NotImplementedError


class QtAudioPlayer(AudioPlayer):
    """QMediaPlayer backed player. The media player is created lazily and
    dropped again on ``release()``."""

    def __init__(self, parent: Optional[QObject] = None, *, volume: float = 0.8):
        super().__init__(parent)
        self._volume = volume
        self._player: Optional[QMediaPlayer] = None
        self._output: Optional[QAudioOutput] = None
        self._ready_sent = False

    def _ensurePlayer(self) -> QMediaPlayer:
        if self._player is None:
            self._output = QAudioOutput(self)
            self._output.setVolume(self._volume)
            self._player = QMediaPlayer(self)
            self._player.setAudioOutput(self._output)
            self._player.mediaStatusChanged.connect(self._onMediaStatus)
            self._player.positionChanged.connect(self._onPosition)
            self._player.errorOccurred.connect(self._onError)
        return self._player

    def load(self, source: Any) -> int:
        token = self._next_token()
        url = source_url(source)
        player = self._ensurePlayer()
        loaded = (
            QMediaPlayer.MediaStatus.LoadedMedia,
            QMediaPlayer.MediaStatus.BufferedMedia,
            QMediaPlayer.MediaStatus.BufferingMedia,
            QMediaPlayer.MediaStatus.EndOfMedia,
        )
        if player.source() == url and player.mediaStatus() in loaded:
            # Same file as the previous segment: keep the decoder, only re-seek.
            self._ready_sent = True
            QTimer.singleShot(0, lambda: self._emitReady(token))
            return token
        self._ready_sent = False
        player.setSource(url)
        return token

    def _emitReady(self, token: int):
        if token == self._token:
            self.ready.emit(token)

    def seek(self, seconds: float) -> None:
        self._ensurePlayer().setPosition(int(round(max(seconds, 0.0) * 1000)))

    def play(self) -> None:
        self._ensurePlayer().play()

    def pause(self) -> None:
        if self._player is not None:
            self._player.pause()

    def stop(self) -> None:
        if self._player is not None:
            self._player.stop()

    def release(self) -> None:
        if self._player is None:
            return
        player, output = self._player, self._output
        self._player = None
        self._output = None
        player.mediaStatusChanged.disconnect(self._onMediaStatus)
        player.positionChanged.disconnect(self._onPosition)
        player.errorOccurred.disconnect(self._onError)
        player.stop()
        player.setSource(QUrl())
        player.deleteLater()
        if output is not None:
            output.deleteLater()

    def position(self) -> float:
        if self._player is None:
            return 0.0
        return self._player.position() / 1000.0

    # --- QMediaPlayer callbacks ---
    def _onMediaStatus(self, status):
        token = self._token
        if status in (
            QMediaPlayer.MediaStatus.LoadedMedia,
            QMediaPlayer.MediaStatus.BufferedMedia,
        ):
            if not self._ready_sent:
                self._ready_sent = True
                self.ready.emit(token)
        elif status == QMediaPlayer.MediaStatus.EndOfMedia:
            self.ended.emit(token)
        elif status == QMediaPlayer.MediaStatus.InvalidMedia:
            self.failed.emit(token, "invalid media")

    def _onPosition(self, ms: int):
        self.positionChanged.emit(self._token, ms / 1000.0)

    def _onError(self, error, message: str):
        if error == QMediaPlayer.Error.NoError:
            return
        logger.error("Audio player error: %s", message)
        self.failed.emit(self._token, message or str(error))


__all__ = ["AudioPlayer", "QtAudioPlayer", "source_url"]
