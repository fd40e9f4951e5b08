"""Runtime settings read from environment variables.

Variables:
    MEDLEY_FFMPEG_BINARY  explicit ffmpeg executable (default: imageio-ffmpeg's)
    MEDLEY_MP3_QUALITY    libmp3lame VBR quality 0-9 (default 2)
    MEDLEY_OUTPUT_NAME    suggested filename of the merged file (default medley.mp3)
    MEDLEY_VOLUME         preview volume 0.0-1.0 (default 0.8)
    MEDLEY_DEBUG          enable debug logging when set to 1/true/yes
    MEDLEY_SCREEN_INDEX   screen to center the main window on
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

_TRUTHY = {"1", "true", "yes", "on"}


def _env_int(env: Mapping[str, str], key: str, default: int, lo: int, hi: int) -> int:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r: not an integer", key, raw)
        return default
    if not lo <= value <= hi:
        logger.warning("Ignoring %s=%r: expected %d..%d", key, raw, lo, hi)
        return default
    return value


def _env_float(
    env: Mapping[str, str], key: str, default: float, lo: float, hi: float
) -> float:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r: not a number", key, raw)
        return default
    if not lo <= value <= hi:
        logger.warning("Ignoring %s=%r: expected %s..%s", key, raw, lo, hi)
        return default
    return value


@dataclass
class Settings:
    ffmpeg_binary: Optional[str] = None
    mp3_quality: int = 2
    output_name: str = "medley.mp3"
    volume: float = 0.8
    debug: bool = False
    screen_index: Optional[int] = None

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if env is None else env
        screen = env.get("MEDLEY_SCREEN_INDEX")
        screen_index = None
        if screen:
            try:
                screen_index = int(screen)
            except ValueError:
                logger.warning("Ignoring MEDLEY_SCREEN_INDEX=%r", screen)
        return cls(
            ffmpeg_binary=env.get("MEDLEY_FFMPEG_BINARY") or None,
            mp3_quality=_env_int(env, "MEDLEY_MP3_QUALITY", 2, 0, 9),
            output_name=env.get("MEDLEY_OUTPUT_NAME") or "medley.mp3",
            volume=_env_float(env, "MEDLEY_VOLUME", 0.8, 0.0, 1.0),
            debug=env.get("MEDLEY_DEBUG", "").strip().lower() in _TRUTHY,
            screen_index=screen_index,
        )

    def export_settings(self):
        from .services.export import ExportSettings

        return ExportSettings(output_name=self.output_name, quality=self.mp3_quality)


def configure_logging(settings: Optional[Settings] = None) -> None:
    """Install a basic stderr handler; DEBUG level when settings.debug is set."""
    settings = settings or Settings.from_env()
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


__all__ = ["Settings", "configure_logging"]
