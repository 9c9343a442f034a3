"""User settings for spacemap."""

import json
import logging
import os
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

HOME_ENV_VAR = "SPACEMAP_HOME"
SETTINGS_FILE_NAME = "settings.json"


def spacemap_home() -> Path:
    """Directory holding settings and cache (``$SPACEMAP_HOME`` or ~/.spacemap)."""
    override = os.environ.get(HOME_ENV_VAR)
    if override:
        return Path(os.path.expanduser(override))
    return Path.home() / ".spacemap"


def settings_path() -> Path:
    return spacemap_home() / SETTINGS_FILE_NAME


def cache_dir() -> Path:
    """Directory injected into the CacheStore."""
    return spacemap_home() / "cache"


class Settings(BaseModel):
    """Settings consumed by the scanner, cache and views."""

    excluded_folders: list[str] = Field(
        default_factory=lambda: ["$RECYCLE.BIN", "System Volume Information"],
        description="Folder names (case-insensitive) to skip during scanning",
    )
    max_scan_depth: int = Field(
        0, ge=0, description="Levels to materialize on the initial scan (0 = built-in default)"
    )
    cache_max_age_days: int = Field(
        7, ge=0, description="Days before a cached scan is flagged stale (0 = disabled)"
    )
    max_children_display: int = Field(
        0, ge=0, description="Largest N children shown per directory (0 = all)"
    )
    default_view: Literal["treemap", "table"] = Field("treemap", description="Initial view")

    @property
    def effective_max_depth(self) -> Optional[int]:
        """Depth handed to the scanner; None selects its built-in default."""
        return self.max_scan_depth if self.max_scan_depth > 0 else None


def load_settings(path: Optional[Path] = None) -> Settings:
    """Load settings from disk, falling back to defaults."""
    path = path or settings_path()
    if not path.exists():
        return Settings()

    try:
        with open(path, encoding="utf-8") as f:
            return Settings.model_validate(json.load(f))
    except (ValueError, OSError) as e:
        # Decoding and validation errors are both ValueErrors
        logger.warning("Ignoring unreadable settings file %s: %s", path, e)
        return Settings()


def save_settings(settings: Settings, path: Optional[Path] = None) -> bool:
    """Save settings to disk."""
    path = path or settings_path()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(settings.model_dump(), f, indent=2)
        return True
    except OSError as e:
        logger.warning("Could not save settings to %s: %s", path, e)
        return False
