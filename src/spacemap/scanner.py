"""Disk scanning functionality for spacemap.

The scanner materializes Node objects down to a depth boundary. Below the
boundary it still walks the filesystem, but only to sum sizes and counts,
so every node carries exact aggregates without building the whole tree.
"""

import logging
import os
import threading
from datetime import datetime
from typing import Callable, Iterable, Optional

from spacemap.models import Node, ScanResult

logger = logging.getLogger(__name__)

# Directory levels fully enumerated on the initial scan.
INITIAL_DEPTH = 4

# Additional levels enumerated when a partial node is opened.
DEEPER_INCREMENT = 3

# Hard recursion cap for the size-only walk, independent of any max depth.
SIZE_ONLY_DEPTH_CAP = 512

ProgressCallback = Callable[[str], None]

_FILE = "file"
_DIR = "dir"


class ScanCancelled(Exception):
    """Raised when a scan is cancelled through its CancelToken."""


class RootInaccessibleError(OSError):
    """The scan root does not exist or cannot be listed."""


class CancelToken:
    """Cooperative cancellation handle checked at every directory entry."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        """Request cancellation."""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ScanCancelled()


def normalize_excluded(names: Optional[Iterable[str]]) -> frozenset[str]:
    """Case-insensitive set of excluded directory names."""
    if not names:
        return frozenset()
    return frozenset(name.casefold() for name in names if name)


def _is_excluded(name: str, excluded: frozenset[str]) -> bool:
    return bool(excluded) and name.casefold() in excluded


def _check(cancel: Optional[CancelToken]) -> None:
    if cancel is not None:
        cancel.raise_if_cancelled()


def _classify(entry: os.DirEntry) -> tuple[Optional[str], int]:
    """
    Classify a directory entry.

    Symlinks are never followed: a link is a small file entry. Junctions and
    other reparse points that report as directories are skipped.

    Returns:
        Tuple of (kind, size_in_bytes); kind is None for skipped entries
    """
    try:
        is_junction = getattr(entry, "is_junction", None)
        if is_junction is not None and is_junction():
            return None, 0
        if entry.is_dir(follow_symlinks=False):
            return _DIR, 0
    except OSError:
        return None, 0

    try:
        return _FILE, entry.stat(follow_symlinks=False).st_size
    except OSError:
        # Still a file, just one whose size cannot be read
        return _FILE, 0


def _safe_mtime(path: str) -> Optional[datetime]:
    try:
        return datetime.fromtimestamp(os.stat(path, follow_symlinks=False).st_mtime)
    except (OSError, OverflowError, ValueError):
        return None


def _entry_mtime(entry: os.DirEntry) -> Optional[datetime]:
    try:
        return datetime.fromtimestamp(entry.stat(follow_symlinks=False).st_mtime)
    except (OSError, OverflowError, ValueError):
        return None


def _display_name(path: str) -> str:
    name = os.path.basename(path.rstrip("/\\"))
    return name or path


def compute_size_only(
    path: str,
    excluded: frozenset[str] = frozenset(),
    cancel: Optional[CancelToken] = None,
    depth: int = 0,
) -> tuple[int, int, int]:
    """
    Recursively sum a directory without building Node objects.

    Used at the depth boundary so partial nodes still report exact totals.

    Args:
        path: Directory to measure
        excluded: Normalized excluded directory names
        cancel: Optional cancellation handle
        depth: Current recursion depth (capped at SIZE_ONLY_DEPTH_CAP)

    Returns:
        Tuple of (total_bytes, file_count, dir_count)
    """
    if depth > SIZE_ONLY_DEPTH_CAP:
        return 0, 0, 0

    total_size = 0
    file_count = 0
    dir_count = 0

    try:
        with os.scandir(path) as entries:
            for entry in entries:
                _check(cancel)
                kind, size = _classify(entry)
                if kind == _FILE:
                    total_size += size
                    file_count += 1
                elif kind == _DIR:
                    if _is_excluded(entry.name, excluded):
                        continue
                    sub_size, sub_files, sub_dirs = compute_size_only(
                        entry.path, excluded, cancel, depth + 1
                    )
                    total_size += sub_size
                    file_count += sub_files
                    dir_count += 1 + sub_dirs
    except (PermissionError, OSError) as e:
        logger.debug("Size-only walk stopped at %s: %s", path, e)

    return total_size, file_count, dir_count


def _scan_directory(
    path: str,
    depth: int,
    max_depth: int,
    excluded: frozenset[str],
    cancel: Optional[CancelToken],
    progress_callback: Optional[ProgressCallback],
) -> Node:
    """Build the Node for one directory, recursing until the depth boundary."""
    _check(cancel)

    node = Node(
        name=_display_name(path),
        full_path=path,
        is_directory=True,
        last_modified=_safe_mtime(path),
    )

    if progress_callback:
        progress_callback(path)

    # Depth boundary: exact totals, no child nodes
    if depth >= max_depth:
        node.size, node.file_count, node.directory_count = compute_size_only(
            path, excluded, cancel
        )
        node.is_fully_loaded = False
        return node

    try:
        entries = os.scandir(path)
    except (PermissionError, OSError) as e:
        logger.debug("Cannot open %s: %s", path, e)
        node.is_fully_loaded = False
        return node

    children: list[Node] = []
    with entries:
        try:
            for entry in entries:
                _check(cancel)
                kind, size = _classify(entry)
                if kind == _FILE:
                    child = Node(
                        name=entry.name,
                        full_path=entry.path,
                        size=size,
                        is_directory=False,
                        file_count=1,
                        last_modified=_entry_mtime(entry),
                    )
                    node.size += size
                    node.file_count += 1
                elif kind == _DIR:
                    if _is_excluded(entry.name, excluded):
                        continue
                    _check(cancel)
                    child = _scan_directory(
                        entry.path, depth + 1, max_depth, excluded, cancel, progress_callback
                    )
                    node.size += child.size
                    node.file_count += child.file_count
                    node.directory_count += 1 + child.directory_count
                else:
                    continue
                child.attach_to(node)
                children.append(child)
        except (PermissionError, OSError) as e:
            # Keep whatever was gathered before the error
            logger.debug("Enumeration of %s interrupted: %s", path, e)

    children.sort(key=lambda n: n.size, reverse=True)
    node.children = children
    node.is_fully_loaded = True
    return node


def scan(
    root_path: str | os.PathLike,
    excluded_names: Optional[Iterable[str]] = None,
    max_depth: Optional[int] = None,
    cancel: Optional[CancelToken] = None,
    progress_callback: Optional[ProgressCallback] = None,
) -> ScanResult:
    """
    Scan a directory tree.

    Args:
        root_path: Directory to scan
        excluded_names: Directory names to skip (case-insensitive)
        max_depth: Levels to materialize; None uses INITIAL_DEPTH
        cancel: Optional cancellation handle
        progress_callback: Optional callback(path) for each directory visited

    Returns:
        ScanResult whose totals mirror the root node

    Raises:
        RootInaccessibleError: If the root cannot be listed
        ScanCancelled: If the cancel token fires mid-scan
    """
    path = os.path.abspath(os.fspath(root_path))
    depth_limit = INITIAL_DEPTH if max_depth is None else max(0, max_depth)
    excluded = normalize_excluded(excluded_names)

    try:
        with os.scandir(path):
            pass
    except (PermissionError, OSError) as e:
        raise RootInaccessibleError(e.errno, f"Cannot read scan root: {e.strerror or e}", path) from e

    logger.info("Scanning %s (depth %d)", path, depth_limit)
    root = _scan_directory(path, 0, depth_limit, excluded, cancel, progress_callback)
    result = ScanResult.from_root(path, root)
    logger.info(
        "Scanned %s: %d files, %d dirs, %s",
        path,
        result.total_files,
        result.total_dirs,
        result.size_human,
    )
    return result


def scan_deeper(
    node: Node,
    excluded_names: Optional[Iterable[str]] = None,
    cancel: Optional[CancelToken] = None,
    progress_callback: Optional[ProgressCallback] = None,
) -> None:
    """
    Materialize DEEPER_INCREMENT more levels below a node, in place.

    Children, counts and is_fully_loaded are replaced. ``size`` is kept: it
    was already exact from the boundary walk, and changing it would have to
    cascade through every ancestor.

    Raises:
        ScanCancelled: If cancelled; the node is left untouched
    """
    if not node.is_directory:
        return

    scanned = _scan_directory(
        node.full_path,
        0,
        DEEPER_INCREMENT,
        normalize_excluded(excluded_names),
        cancel,
        progress_callback,
    )
    _check(cancel)

    node.replace_children(
        scanned.children,
        file_count=scanned.file_count,
        directory_count=scanned.directory_count,
        is_fully_loaded=scanned.is_fully_loaded,
    )
    logger.debug("Deepened %s: %d children", node.full_path, len(node.children))
