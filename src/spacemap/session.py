"""Scan orchestration for spacemap.

A ScanSession runs scans off the caller's thread and keeps at most one full
scan and one deepening in flight, each with its own CancelToken. Starting a
new operation cancels the previous one of the same kind.
"""

import logging
import os
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Optional

from spacemap.cache import CacheStore
from spacemap.config import Settings
from spacemap.models import Node, ScanResult
from spacemap.scanner import CancelToken, ScanCancelled, scan, scan_deeper
from spacemap.staleness import Staleness, check_staleness, format_age

logger = logging.getLogger(__name__)


class ScanSession:
    """Control layer between the scanner, the cache and a view."""

    def __init__(
        self,
        store: CacheStore,
        settings: Optional[Settings] = None,
        progress_listener: Optional[Callable[[str], None]] = None,
        max_workers: int = 4,
    ):
        self.store = store
        self.settings = settings or Settings()
        self.progress_listener = progress_listener

        self.result: Optional[ScanResult] = None
        self.current_node: Optional[Node] = None
        self.root_path: Optional[str] = None
        self.status = "Select a folder and scan."
        self.latest_progress: Optional[str] = None
        self.from_cache = False

        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="spacemap-scan")
        self._lock = threading.Lock()
        self._scan_token: Optional[CancelToken] = None
        self._deepen_token: Optional[CancelToken] = None

    def __enter__(self) -> "ScanSession":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        """Cancel outstanding work and stop the worker threads."""
        self.cancel_scan()
        self.cancel_deepen()
        self._executor.shutdown(wait=True)

    # ------------------------------------------------------------------
    # Progress
    # ------------------------------------------------------------------

    def _on_progress(self, path: str) -> None:
        # Latest wins; listeners may drop or coalesce.
        self.latest_progress = path
        if self.progress_listener:
            self.progress_listener(path)

    # ------------------------------------------------------------------
    # Full scan
    # ------------------------------------------------------------------

    @property
    def is_scanning(self) -> bool:
        token = self._scan_token
        return token is not None and not token.cancelled

    def start_scan(self, root_path: str | os.PathLike, force: bool = False) -> "Future[Optional[ScanResult]]":
        """
        Load ``root_path`` from cache, or scan it on a worker thread.

        Args:
            root_path: Directory to scan
            force: Ignore and delete any cached result first

        Returns:
            Future resolving to the ScanResult, or None if cancelled. The
            future raises RootInaccessibleError if the root cannot be read.
        """
        token = CancelToken()
        with self._lock:
            if self._scan_token is not None:
                self._scan_token.cancel()
            self._scan_token = token
        root = os.path.abspath(os.fspath(root_path))
        return self._executor.submit(self._run_scan, root, force, token)

    def _run_scan(self, root: str, force: bool, token: CancelToken) -> Optional[ScanResult]:
        if force:
            self.store.delete(root)
        elif self.store.has_cache(root):
            self.status = "Loading from cache..."
            cached = self.store.load(root)
            if cached is not None and not token.cancelled:
                self._apply(cached, from_cache=True)
                self._finish_scan(token)
                return cached

        self.status = "Scanning..."
        try:
            result = scan(
                root,
                self.settings.excluded_folders,
                self.settings.effective_max_depth,
                token,
                self._on_progress,
            )
        except ScanCancelled:
            self.status = "Scan cancelled."
            logger.info("Scan of %s cancelled", root)
            return None
        except OSError as e:
            self.status = f"Error: {e}"
            logger.error("Scan of %s failed: %s", root, e)
            self._finish_scan(token)
            raise
        finally:
            self.latest_progress = None

        if token.cancelled:
            self.status = "Scan cancelled."
            return None

        self.store.save(result)
        self._apply(result, from_cache=False)
        self._finish_scan(token)
        return result

    def _finish_scan(self, token: CancelToken) -> None:
        with self._lock:
            if self._scan_token is token:
                self._scan_token = None

    def _apply(self, result: ScanResult, from_cache: bool) -> None:
        self.result = result
        self.root_path = result.root_path
        self.current_node = result.root
        self.from_cache = from_cache
        self.status = self.summary()

    def cancel_scan(self) -> None:
        """Cancel the running full scan, if any."""
        with self._lock:
            if self._scan_token is not None:
                self._scan_token.cancel()
                self._scan_token = None

    # ------------------------------------------------------------------
    # Deepening
    # ------------------------------------------------------------------

    def start_deepen(self, node: Node) -> "Future[bool]":
        """
        Load more levels below a partial node on a worker thread.

        Any earlier deepening still running is cancelled. When it completes
        the enriched tree is written back to the cache.

        Returns:
            Future resolving to True if the node was updated
        """
        token = CancelToken()
        with self._lock:
            if self._deepen_token is not None:
                self._deepen_token.cancel()
            self._deepen_token = token
        return self._executor.submit(self._run_deepen, node, token)

    def _run_deepen(self, node: Node, token: CancelToken) -> bool:
        try:
            scan_deeper(node, self.settings.excluded_folders, token, self._on_progress)
        except ScanCancelled:
            logger.debug("Deepening of %s cancelled", node.full_path)
            return False
        finally:
            self.latest_progress = None
            with self._lock:
                if self._deepen_token is token:
                    self._deepen_token = None

        if self.result is not None:
            self.store.save(self.result)
        return True

    def cancel_deepen(self) -> None:
        """Cancel the running deepening, if any."""
        with self._lock:
            if self._deepen_token is not None:
                self._deepen_token.cancel()
                self._deepen_token = None

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def navigate_to(self, node: Node) -> "Optional[Future[bool]]":
        """Make ``node`` current; partial directories start a deepening."""
        self.current_node = node
        if node.is_partial:
            return self.start_deepen(node)
        return None

    def navigate_up(self) -> Optional[Node]:
        """Move to the current node's parent, if there is one."""
        if self.current_node is not None and self.current_node.parent is not None:
            self.navigate_to(self.current_node.parent)
        return self.current_node

    def open_path(self, path: str | os.PathLike) -> Optional[Node]:
        """
        Navigate to a path below the scanned root, deepening as needed.

        Blocks until any deepening along the way has finished.

        Returns:
            The node for ``path``, or None if it is not in the tree
        """
        if self.result is None:
            return None

        target = os.path.abspath(os.fspath(path))
        try:
            relative = os.path.relpath(target, self.result.root.full_path)
        except ValueError:
            # Different drive
            return None
        if relative == os.pardir or relative.startswith(os.pardir + os.sep):
            return None

        node = self.result.root
        if relative != os.curdir:
            for part in relative.split(os.sep):
                if node.is_partial:
                    self.start_deepen(node).result()
                child = node.find_child(part)
                if child is None:
                    return None
                node = child

        future = self.navigate_to(node)
        if future is not None:
            future.result()
        return node

    def visible_children(self) -> list[Node]:
        """Children of the current node after the display cap."""
        if self.current_node is None:
            return []
        return self.current_node.top_children(self.settings.max_children_display)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def summary(self) -> str:
        """One-line description of the loaded result."""
        if self.result is None:
            return self.status
        result = self.result
        return (
            f"{result.total_files:,} files  ·  {result.total_dirs:,} dirs  ·  "
            f"{result.size_human}  ·  Scanned {format_age(result.scan_time)}"
        )

    def staleness(self) -> Staleness:
        """Staleness verdict for the current root's cache."""
        if self.root_path is None:
            return Staleness()
        return check_staleness(
            self.store.get_cache_time(self.root_path),
            self.settings.cache_max_age_days,
        )

    def cache_info(self, root_path: Optional[str | os.PathLike] = None) -> str:
        """'Cached  <age>' or 'No cache'."""
        root = root_path or self.root_path
        if root is None:
            return "No cache"
        cache_time = self.store.get_cache_time(root)
        return f"Cached  {format_age(cache_time)}" if cache_time else "No cache"
