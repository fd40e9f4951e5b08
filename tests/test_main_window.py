from medley.config import Settings
from medley.services.export import MergeController
from medley.ui.main_window import MainWindow

from .helpers import FakeSource, ensure_app


class FakeEngine:
    def run(self, plan):
        return b"ID3merged"


def _window():
    ensure_app()
    merger = MergeController(engine_factory=FakeEngine, threaded=False)
    win = MainWindow(Settings(), merge_controller=merger)
    win.show()
    win._initEngine()
    return win


def test_rows_follow_timeline():
    win = _window()
    assert len(win._rows) == 1
    win.add_btn.click()
    assert len(win._rows) == 2
    first, second = [c.id for c in win.timeline]
    win.timeline.move_clip(0, 1)
    assert list(win._rows) == [second, first]
    win.timeline.set_time_field(first, "start", "00:1x")
    assert win._rows[first].fields["start"].text() == "00:1x"
    win.close()


def test_join_enabled_only_when_mergeable():
    win = _window()
    tl = win.timeline
    cid = tl.clips[0].id
    assert not win.join_btn.isEnabled()
    assert not win.preview_btn.isEnabled()
    src = FakeSource()
    tl.attach_source(cid, src, 5)
    assert win.join_btn.isEnabled()
    assert win.preview_btn.isEnabled()
    win.join_btn.click()
    assert win.merger.artifact is not None
    assert win.save_output_btn.isEnabled()
    assert "medley.mp3" in win.output_label.text()
    win.close()
    assert src.releases == 1
    assert len(tl) == 0


def test_preview_label_shows_length():
    win = _window()
    cid = win.timeline.clips[0].id
    win.timeline.attach_source(cid, FakeSource(), 75)
    assert "Preview length: 00:01:15" in win.preview_label.text()
    win.close()
