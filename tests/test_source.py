import pytest

from medley.errors import SourceReleasedError
from medley.media.source import AudioSource, OutputArtifact


def test_audio_source_reads_lazily_and_releases(tmp_path):
    path = tmp_path / "song.mp3"
    path.write_bytes(b"ID3data")
    src = AudioSource(path)
    assert src.name == "song.mp3"
    assert src.data == b"ID3data"
    assert src.url.toLocalFile() == str(path)
    src.release()
    assert src.released
    with pytest.raises(SourceReleasedError):
        src.data
    src.release()  # second release is ignored
    assert path.exists()


def test_output_artifact_lifecycle(tmp_path):
    artifact = OutputArtifact(b"ID3medley")
    assert artifact.size == 9
    assert artifact.path.name == "medley.mp3"
    saved = artifact.save_as(tmp_path)
    assert saved == tmp_path / "medley.mp3"
    assert saved.read_bytes() == b"ID3medley"
    folder = artifact.path.parent
    artifact.release()
    assert not folder.exists()
    with pytest.raises(SourceReleasedError):
        artifact.path
    artifact.release()
    assert saved.exists()
