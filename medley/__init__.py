"""Top-level package exports.

Public API surface (keep minimal):
 - Timeline (clip model), format_time / parse_time (time codec)

The preview controller (``medley.media.playback``), the merge controller
(``medley.services.export``) and the window (``medley.ui.main_window``) are
imported from their modules so the model can be used without QtMultimedia
or widgets.
"""

from .core.timeline import Timeline  # noqa: F401
from .utils.timefmt import format_time, parse_time  # noqa: F401

__all__ = ["Timeline", "format_time", "parse_time"]
