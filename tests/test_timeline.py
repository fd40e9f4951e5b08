import pytest

from medley.core.timeline import Timeline, TimeField

from .helpers import FakeSource, ensure_app


def _timeline(n=0):
    ensure_app()
    return Timeline(initial_clips=n)


def test_default_timeline_has_one_empty_clip():
    ensure_app()
    tl = Timeline()
    assert len(tl) == 1
    clip = tl.clips[0]
    assert clip.start.value == 0 and clip.end.value == 0
    assert clip.start.text == "00:00:00"
    assert not tl.is_mergeable
    assert tl.preview_length == 0


def test_time_field_keeps_value_on_invalid_text():
    f = TimeField()
    assert f.set_text("00:01:00")
    assert f.value == 60
    assert not f.set_text("00:01:")
    assert f.text == "00:01:"
    assert f.value == 60


def test_set_time_field_invalid_text_is_stored_but_not_parsed():
    tl = _timeline()
    cid = tl.add_clip()
    assert tl.set_time_field(cid, "end", "00:00:10")
    assert not tl.set_time_field(cid, "end", "00:0x")
    clip = tl.clip(cid)
    assert clip.end.text == "00:0x"
    assert clip.end.value == 10


def test_set_time_field_rejects_unknown_field():
    tl = _timeline()
    cid = tl.add_clip()
    with pytest.raises(ValueError):
        tl.set_time_field(cid, "volume", "1")


def test_attach_source_sets_end_from_duration():
    tl = _timeline()
    cid = tl.add_clip()
    tl.attach_source(cid, FakeSource(), 12.5)
    clip = tl.clip(cid)
    assert clip.end.value == 12.5
    assert clip.end.text == "00:00:12"
    assert clip.name == "a.mp3"
    assert tl.is_mergeable
    assert tl.preview_length == 12.5


def test_duration_clamps_existing_end():
    tl = _timeline()
    cid = tl.add_clip()
    tl.set_time_field(cid, "end", "30")
    tl.attach_source(cid, FakeSource())
    tl.set_duration(cid, 20)
    assert tl.clip(cid).end.value == 20
    tl.set_duration(cid, 25)
    assert tl.clip(cid).end.value == 20


def test_duration_shorter_than_start_makes_clip_ineligible():
    tl = _timeline()
    cid = tl.add_clip()
    tl.set_time_field(cid, "start", "40")
    tl.attach_source(cid, FakeSource(), 30)
    clip = tl.clip(cid)
    assert clip.ineligibility() == "end <= start"
    assert not tl.is_mergeable


def test_is_mergeable_requires_every_clip():
    tl = _timeline()
    a = tl.add_clip()
    b = tl.add_clip()
    tl.attach_source(a, FakeSource(), 5)
    assert tl.has_eligible_clips
    assert not tl.is_mergeable
    assert tl.clip(b).ineligibility() == "no source"
    tl.attach_source(b, FakeSource("b.mp3"), 3)
    assert tl.is_mergeable
    assert tl.preview_length == 8
    assert not Timeline(initial_clips=0).is_mergeable


def test_remove_releases_source_once():
    tl = _timeline()
    a = tl.add_clip()
    b = tl.add_clip()
    src = FakeSource()
    tl.attach_source(a, src, 5)
    assert tl.remove_clip(a)
    assert src.releases == 1
    assert not tl.remove_clip(a)
    assert src.releases == 1
    assert tl.remove_clip(b)
    assert len(tl) == 0


def test_replacing_source_releases_old_one():
    tl = _timeline()
    cid = tl.add_clip()
    first, second = FakeSource("1.mp3"), FakeSource("2.mp3")
    tl.attach_source(cid, first, 5)
    tl.attach_source(cid, second, 6)
    assert first.releases == 1
    assert second.releases == 0
    assert tl.clip(cid).source is second


def test_detach_keeps_trim_values():
    tl = _timeline()
    cid = tl.add_clip()
    src = FakeSource()
    tl.attach_source(cid, src, 9)
    tl.set_time_field(cid, "fade_in", "2")
    tl.detach_source(cid)
    clip = tl.clip(cid)
    assert src.releases == 1
    assert clip.source is None and clip.name is None and clip.source_duration is None
    assert clip.end.value == 9
    assert clip.fade_in.value == 2


def test_move_clip_swaps_and_ignores_out_of_bounds():
    tl = _timeline()
    a, b, c = tl.add_clip(), tl.add_clip(), tl.add_clip()
    assert tl.move_clip(0, 1)
    assert [x.id for x in tl] == [b, a, c]
    assert not tl.move_clip(0, -1)
    assert not tl.move_clip(2, 1)
    assert [x.id for x in tl] == [b, a, c]


def test_clear_releases_every_source():
    tl = _timeline()
    sources = [FakeSource(str(i)) for i in range(3)]
    for src in sources:
        tl.attach_source(tl.add_clip(), src, 4)
    tl.clear()
    assert len(tl) == 0
    assert [s.releases for s in sources] == [1, 1, 1]


def test_changed_signal_per_mutation():
    tl = _timeline()
    seen = []
    tl.changed.connect(lambda: seen.append(len(tl)))
    cid = tl.add_clip()
    tl.set_time_field(cid, "start", "1")
    tl.remove_clip(cid)
    assert seen == [1, 1, 0]


def test_snapshot_is_detached_from_later_edits():
    tl = _timeline()
    cid = tl.add_clip()
    tl.attach_source(cid, FakeSource(), 10)
    snap = tl.eligible_clips()[0]
    tl.set_time_field(cid, "end", "4")
    assert snap.end == 10
    assert tl.clip(cid).end.value == 4
