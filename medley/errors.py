"""Error taxonomy for merge and playback operations.

Time text and clip eligibility problems are not exceptions: they are recovered
locally by the timeline (the numeric value is kept, the clip is excluded).
"""

from __future__ import annotations


class MedleyError(Exception):
    """Base class for all medley errors."""


class EngineUnavailable(MedleyError):
    """The ffmpeg engine could not be located or initialised."""


class MergeRefused(MedleyError):
    """The timeline does not satisfy the merge preconditions."""


class MergeInProgress(MedleyError):
    """A merge was requested while another one is still running."""


class EngineFailure(MedleyError):
    """The engine ran but did not produce an output."""

    def __init__(self, message: str, returncode: int | None = None):
        super().__init__(message)
        self.returncode = returncode


class PlaybackDeviceError(MedleyError):
    """The audio player failed to load, seek or start."""


class SourceReleasedError(MedleyError):
    """A byte source was used after its owner released it."""


__all__ = [
    "MedleyError",
    "EngineUnavailable",
    "MergeRefused",
    "MergeInProgress",
    "EngineFailure",
    "PlaybackDeviceError",
    "SourceReleasedError",
]
