"""Byte-source handles owned by timeline clips and by the merge output.

Each handle has a single owner. The owner calls ``release()`` when the handle
is removed or replaced; afterwards the bytes and the display URL are gone.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from pathlib import Path
from typing import Optional

from PySide6.QtCore import QUrl

from ..errors import SourceReleasedError

logger = logging.getLogger(__name__)


class AudioSource:
    """An uploaded audio file: path on disk plus lazily read bytes."""

    def __init__(self, path: str | Path, name: Optional[str] = None):
        self._path = Path(path)
        self._name = name or self._path.name
        self._data: Optional[bytes] = None
        self._released = False

    def _check(self):
        if self._released:
            raise SourceReleasedError(f"source {self._name!r} already released")

    @property
    def path(self) -> Path:
        self._check()
        return self._path

    @property
    def name(self) -> str:
        return self._name

    @property
    def url(self) -> QUrl:
        self._check()
        return QUrl.fromLocalFile(str(self._path))

    @property
    def data(self) -> bytes:
        self._check()
        if self._data is None:
            self._data = self._path.read_bytes()
        return self._data

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        if self._released:
            logger.warning("Source %s released twice; ignoring", self._name)
            return
        self._released = True
        self._data = None
        logger.debug("Released source %s", self._name)

    def __repr__(self) -> str:
        state = " released" if self._released else ""
        return f"<AudioSource {self._name}{state}>"


class OutputArtifact:
    """Merged audio bytes exposed as a temp file for playback and download."""

    mime_type = "audio/mpeg"

    def __init__(self, data: bytes, filename: str = "medley.mp3"):
        self._dir: Optional[Path] = Path(tempfile.mkdtemp(prefix="medley-"))
        self._filename = filename
        self._size = len(data)
        (self._dir / filename).write_bytes(data)

    def _check(self) -> Path:
        if self._dir is None:
            raise SourceReleasedError("artifact already released")
        return self._dir

    @property
    def filename(self) -> str:
        return self._filename

    @property
    def size(self) -> int:
        return self._size

    @property
    def path(self) -> Path:
        return self._check() / self._filename

    @property
    def url(self) -> QUrl:
        return QUrl.fromLocalFile(str(self.path))

    @property
    def released(self) -> bool:
        return self._dir is None

    def read_bytes(self) -> bytes:
        return self.path.read_bytes()

    def save_as(self, destination: str | Path) -> Path:
        dest = Path(destination)
        if dest.is_dir():
            dest = dest / self._filename
        shutil.copyfile(self.path, dest)
        return dest

    def release(self) -> None:
        if self._dir is None:
            logger.warning("Artifact %s released twice; ignoring", self._filename)
            return
        shutil.rmtree(self._dir, ignore_errors=True)
        self._dir = None
        logger.debug("Released artifact %s", self._filename)

    def __repr__(self) -> str:
        return f"<OutputArtifact {self._filename} {self._size} bytes>"


__all__ = ["AudioSource", "OutputArtifact"]
