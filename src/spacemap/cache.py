"""Persisted scan cache for spacemap.

One JSON file per scanned volume identity. Caching is an optimization only:
every failure here is swallowed and the cache simply reads as absent.
"""

import hashlib
import json
import logging
import ntpath
import os
import re
import shutil
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from spacemap.models import ScanResult

logger = logging.getLogger(__name__)

CACHE_FILE_NAME = "spacemap.cache.json"

_LABEL_MAX = 48

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def _volume_label(root_path: str) -> str:
    """Drive on Windows (letter or UNC share), a slug of the path elsewhere."""
    if sys.platform == "win32":
        drive, _ = ntpath.splitdrive(root_path)
        if drive:
            return _UNSAFE_CHARS.sub("_", drive.strip(":\\/")).upper() or "DRIVE"

    slug = _UNSAFE_CHARS.sub("_", root_path.strip("/\\")) or "root"
    if len(slug) > _LABEL_MAX:
        digest = hashlib.sha1(root_path.encode("utf-8", "surrogateescape")).hexdigest()[:8]
        slug = f"{slug[:_LABEL_MAX]}~{digest}"
    return slug


def volume_id(root_path: str | os.PathLike) -> str:
    """
    Stable identity for the volume holding ``root_path``.

    Uses the device id when available, falls back to the volume capacity,
    and finally to the bare label. Example: ``home_user-0000FD01``.
    """
    path = os.path.abspath(os.fspath(root_path))
    label = _volume_label(path)

    try:
        device = os.stat(path).st_dev
        if device:
            return f"{label}-{device & 0xFFFFFFFF:08X}"
    except OSError:
        pass

    try:
        total_mb = shutil.disk_usage(path).total // (1024 * 1024)
        return f"{label}-{total_mb}MB"
    except OSError:
        return label


class CacheStore:
    """Save and load ScanResults under an injected cache directory."""

    def __init__(self, cache_dir: str | os.PathLike):
        self.cache_dir = Path(cache_dir)

    def cache_path(self, root_path: str | os.PathLike) -> Path:
        """File holding the cache for ``root_path``'s volume."""
        return self.cache_dir / f"{volume_id(root_path)}_{CACHE_FILE_NAME}"

    def save(self, result: ScanResult) -> bool:
        """
        Serialize a scan result. Parent references are not written.

        Returns:
            True if the cache file was written
        """
        path = self.cache_path(result.root_path)
        tmp_path = path.with_name(path.name + ".tmp")
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(result.model_dump_json(), encoding="utf-8")
            os.replace(tmp_path, path)
            logger.debug("Cached scan of %s to %s", result.root_path, path)
            return True
        except (OSError, ValueError) as e:
            logger.debug("Could not write cache %s: %s", path, e)
            try:
                tmp_path.unlink(missing_ok=True)
            except OSError:
                pass
            return False

    def load(self, root_path: str | os.PathLike) -> Optional[ScanResult]:
        """
        Load a cached scan and rebuild parent references.

        Returns:
            The ScanResult, or None if missing, corrupt or unreadable
        """
        path = self.cache_path(root_path)
        if not path.exists():
            return None

        try:
            # pydantic-core's own JSON parser rejects deeply nested trees
            data = json.loads(path.read_text(encoding="utf-8"))
            result = ScanResult.model_validate(data)
        except (OSError, ValueError) as e:
            # JSONDecodeError and ValidationError are ValueErrors
            logger.debug("Ignoring unreadable cache %s: %s", path, e)
            return None

        if os.path.normcase(result.root_path) != os.path.normcase(os.path.abspath(os.fspath(root_path))):
            logger.debug("Cache %s belongs to %s, not %s", path, result.root_path, root_path)
            return None

        result.root.set_parent_references()
        return result

    def has_cache(self, root_path: str | os.PathLike) -> bool:
        """Whether a cache file exists for ``root_path``."""
        try:
            return self.cache_path(root_path).exists()
        except OSError:
            return False

    def get_cache_time(self, root_path: str | os.PathLike) -> Optional[datetime]:
        """Modification time of the cache file, or None."""
        try:
            return datetime.fromtimestamp(self.cache_path(root_path).stat().st_mtime)
        except OSError:
            return None

    def delete(self, root_path: str | os.PathLike) -> None:
        """Remove the cache file, ignoring errors."""
        path = self.cache_path(root_path)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.debug("Could not delete cache %s: %s", path, e)
