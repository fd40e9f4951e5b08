"""End-to-end merge through the real ffmpeg binary."""

import subprocess

import pytest

from medley.core.timeline import Timeline
from medley.errors import EngineUnavailable
from medley.media.source import AudioSource
from medley.services.export import FFmpegEngine, MergeController
from medley.services.probe import probe_duration

from .helpers import ensure_app


@pytest.fixture(scope="module")
def engine():
    try:
        return FFmpegEngine()
    except EngineUnavailable as e:
        pytest.skip(str(e))


def _tone(engine, path, seconds, freq):
    subprocess.run(
        [
            engine.binary,
            "-y",
            "-loglevel",
            "error",
            "-f",
            "lavfi",
            "-i",
            f"sine=frequency={freq}:duration={seconds}",
            "-c:a",
            "libmp3lame",
            str(path),
        ],
        check=True,
    )
    return path


def test_probe_and_merge_real_files(engine, tmp_path):
    ensure_app()
    a = _tone(engine, tmp_path / "a.mp3", 2, 440)
    b = _tone(engine, tmp_path / "b.mp3", 2, 660)
    assert probe_duration(str(a)) == pytest.approx(2.0, abs=0.15)

    tl = Timeline(initial_clips=0)
    for path in (a, b):
        cid = tl.add_clip()
        tl.attach_source(cid, AudioSource(path), probe_duration(str(path)))
        tl.set_time_field(cid, "start", "0.5")
        tl.set_time_field(cid, "fade_out", "0.5")

    ctl = MergeController(engine_factory=lambda: engine, threaded=False)
    ctl.merge(tl)
    assert ctl.last_error is None
    artifact = ctl.artifact
    assert artifact.size > 0
    assert probe_duration(str(artifact.path)) == pytest.approx(
        tl.preview_length, abs=0.3
    )
    ctl.release()
    tl.clear()
