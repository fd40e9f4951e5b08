"""Shared fakes for the Qt collaborators."""

from PySide6.QtWidgets import QApplication

from medley.media.player import AudioPlayer

_app = None


def ensure_app():
    global _app
    if _app is None:
        _app = QApplication.instance() or QApplication([])
    return _app


class FakeSource:
    def __init__(self, name="a.mp3", data=b"ID3fake"):
        self.name = name
        self.data = data
        self.releases = 0

    def release(self):
        self.releases += 1


class FakePlayer(AudioPlayer):
    """Records calls; the test drives ready/position/ended by hand."""

    def __init__(self):
        super().__init__()
        self.calls = []
        self.loaded = None
        self.fail_on_load = False

    def load(self, source):
        if self.fail_on_load:
            raise RuntimeError("no audio device")
        self.loaded = source
        self.calls.append(("load", source.name))
        return self._next_token()

    def seek(self, seconds):
        self.calls.append(("seek", seconds))

    def play(self):
        self.calls.append(("play",))

    def pause(self):
        self.calls.append(("pause",))

    def stop(self):
        self.calls.append(("stop",))

    def release(self):
        self.calls.append(("release",))
        self.loaded = None

    def position(self):
        return 0.0

    # test drivers
    def emit_ready(self):
        self.ready.emit(self.token)

    def emit_position(self, seconds, token=None):
        self.positionChanged.emit(self.token if token is None else token, seconds)
