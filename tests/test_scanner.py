"""Tests for disk scanner."""

import os
from unittest.mock import patch

import pytest

from conftest import write_file
from spacemap import scanner
from spacemap.scanner import (
    CancelToken,
    RootInaccessibleError,
    ScanCancelled,
    compute_size_only,
    normalize_excluded,
    scan,
    scan_deeper,
)

_real_scandir = os.scandir


def assert_sorted(node):
    sizes = [child.size for child in node.children]
    assert sizes == sorted(sizes, reverse=True)
    for child in node.children:
        assert_sorted(child)


def assert_conserved(node):
    """Materialized directories sum exactly to their children."""
    if node.is_directory and node.is_fully_loaded:
        assert node.size == sum(child.size for child in node.children)
        assert node.file_count == sum(child.file_count for child in node.children)
        for child in node.children:
            assert_conserved(child)


def assert_parents(node):
    for child in node.children:
        assert child.parent is node
        assert_parents(child)


class TestScanBasics:
    def test_three_files(self, tmp_path):
        """Files become leaves and the directory sums them."""
        for name, size in [("a", 100), ("b", 200), ("c", 300)]:
            write_file(tmp_path / name, size)

        result = scan(tmp_path)
        root = result.root

        assert root.size == 600
        assert root.file_count == 3
        assert root.directory_count == 0
        assert [c.size for c in root.children] == [300, 200, 100]
        assert root.is_fully_loaded

    def test_result_totals_mirror_root(self, sample_tree):
        result = scan(sample_tree)
        assert result.root_path == str(sample_tree)
        assert result.total_size == result.root.size == 2500
        assert result.total_files == result.root.file_count == 6
        assert result.total_dirs == result.root.directory_count == 4

    def test_leaf_fields(self, tmp_path):
        write_file(tmp_path / "f.txt", 42)
        leaf = scan(tmp_path).root.children[0]
        assert leaf.name == "f.txt"
        assert leaf.full_path == str(tmp_path / "f.txt")
        assert not leaf.is_directory
        assert leaf.file_count == 1
        assert leaf.last_modified is not None

    def test_empty_directory(self, tmp_path):
        result = scan(tmp_path)
        assert result.root.size == 0
        assert result.root.children == []
        assert result.root.is_fully_loaded

    def test_sorted_conserved_and_linked(self, sample_tree):
        root = scan(sample_tree).root
        assert_sorted(root)
        assert_conserved(root)
        assert_parents(root)
        assert root.parent is None

    def test_progress_reports_directories(self, sample_tree):
        visited = []
        scan(sample_tree, progress_callback=visited.append)
        assert str(sample_tree) in visited
        assert str(sample_tree / "docs") in visited


class TestDepthBoundary:
    def test_max_depth_zero(self, tmp_path):
        """Root at the boundary still reports the whole subtree."""
        write_file(tmp_path / "one" / "a.bin", 4000)
        write_file(tmp_path / "one" / "two" / "b.bin", 6000)

        root = scan(tmp_path, max_depth=0).root

        assert not root.is_fully_loaded
        assert root.children == []
        assert root.size == 10000
        assert root.file_count == 2
        assert root.directory_count == 2

    def test_boundary_matches_full_walk(self, sample_tree):
        shallow = scan(sample_tree, max_depth=1).root
        deep = scan(sample_tree, max_depth=10).root

        docs_shallow = shallow.find_child("docs")
        docs_deep = deep.find_child("docs")

        assert docs_shallow.is_partial
        assert docs_shallow.children == []
        assert docs_shallow.size == docs_deep.size == 1000
        assert docs_shallow.file_count == docs_deep.file_count == 4
        assert docs_shallow.directory_count == docs_deep.directory_count == 2
        assert shallow.size == deep.size

    def test_default_depth(self, tmp_path):
        deep = tmp_path
        for i in range(scanner.INITIAL_DEPTH + 2):
            deep = deep / f"level{i}"
        write_file(deep / "f", 7)

        root = scan(tmp_path).root

        node = root
        for _ in range(scanner.INITIAL_DEPTH):
            assert node.is_fully_loaded
            node = node.children[0]
        assert node.is_partial
        assert node.size == 7

    def test_size_only_depth_cap(self, tmp_path):
        write_file(tmp_path / "a" / "b" / "c" / "deep.bin", 50)
        write_file(tmp_path / "top.bin", 5)

        with patch.object(scanner, "SIZE_ONLY_DEPTH_CAP", 1):
            size, files, dirs = compute_size_only(str(tmp_path))

        # Only levels 0 and 1 are walked
        assert size == 5
        assert files == 1
        assert dirs == 2

    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks not supported")
    def test_symlink_loops_are_not_followed(self, tmp_path):
        write_file(tmp_path / "real" / "f.bin", 10)
        try:
            os.symlink(tmp_path, tmp_path / "real" / "loop", target_is_directory=True)
        except OSError:
            pytest.skip("cannot create symlinks")

        size, files, dirs = compute_size_only(str(tmp_path))
        root = scan(tmp_path, max_depth=5).root

        assert dirs == 1
        assert root.size == size
        assert root.find_child("real").find_child("loop").is_directory is False


class TestExclusion:
    def test_excluded_directory_absent(self, sample_tree):
        root = scan(sample_tree, excluded_names=["media"]).root
        assert root.find_child("media") is None
        assert root.size == 1500
        assert root.file_count == 5
        assert root.directory_count == 3

    def test_exclusion_is_case_insensitive(self, sample_tree):
        root = scan(sample_tree, excluded_names=["OLD"]).root
        assert all(node.name != "old" for node in root.iter_all())
        assert root.find_child("docs").size == 300

    def test_exclusion_applies_below_boundary(self, sample_tree):
        root = scan(sample_tree, excluded_names=["archive"], max_depth=1).root
        assert root.find_child("docs").size == 600
        assert root.find_child("docs").directory_count == 1

    def test_files_with_excluded_names_are_kept(self, tmp_path):
        write_file(tmp_path / "media", 10)
        root = scan(tmp_path, excluded_names=["media"]).root
        assert root.size == 10

    def test_normalize_excluded(self):
        assert normalize_excluded(None) == frozenset()
        assert normalize_excluded(["$RECYCLE.BIN", ""]) == frozenset({"$recycle.bin"})


class TestErrors:
    def test_nonexistent_root(self, tmp_path):
        with pytest.raises(RootInaccessibleError):
            scan(tmp_path / "missing")

    def test_file_as_root(self, tmp_path):
        write_file(tmp_path / "f", 1)
        with pytest.raises(RootInaccessibleError):
            scan(tmp_path / "f")

    def test_unopenable_subdirectory_is_placeholder(self, sample_tree):
        locked = str(sample_tree / "docs")

        def fake_scandir(path):
            if os.fspath(path) == locked:
                raise PermissionError("Access denied")
            return _real_scandir(path)

        with patch("spacemap.scanner.os.scandir", side_effect=fake_scandir):
            root = scan(sample_tree).root

        docs = root.find_child("docs")
        assert docs is not None
        assert docs.size == 0
        assert docs.children == []
        assert not docs.is_fully_loaded
        assert root.size == 1500

    def test_error_mid_enumeration_keeps_partial(self, tmp_path):
        for name in ("a", "b", "c"):
            write_file(tmp_path / "sub" / name, 10)
        failing = str(tmp_path / "sub")

        class FailingIterator:
            def __init__(self, path):
                self._it = _real_scandir(path)

            def __enter__(self):
                return self

            def __exit__(self, *exc):
                self._it.close()

            def __iter__(self):
                for entry in self._it:
                    yield entry
                    raise OSError("I/O error")

        def fake_scandir(path):
            if os.fspath(path) == failing:
                return FailingIterator(path)
            return _real_scandir(path)

        with patch("spacemap.scanner.os.scandir", side_effect=fake_scandir):
            root = scan(tmp_path).root

        sub = root.find_child("sub")
        assert sub.is_fully_loaded
        assert len(sub.children) == 1
        assert sub.size == 10
        assert root.size == 10

    def test_unstattable_file_counts_with_zero_size(self, tmp_path):
        write_file(tmp_path / "ok.bin", 10)
        write_file(tmp_path / "locked.bin", 20)
        write_file(tmp_path / "deep" / "locked.bin", 30)

        class LockedEntry:
            def __init__(self, entry):
                self._entry = entry

            def __getattr__(self, name):
                return getattr(self._entry, name)

            def stat(self, *args, **kwargs):
                raise PermissionError("Access denied")

        class LockingIterator:
            def __init__(self, path):
                self._it = _real_scandir(path)

            def __enter__(self):
                return self

            def __exit__(self, *exc):
                self._it.close()

            def __iter__(self):
                for entry in self._it:
                    yield LockedEntry(entry) if entry.name == "locked.bin" else entry

        with patch("spacemap.scanner.os.scandir", side_effect=LockingIterator):
            full = scan(tmp_path).root
            boundary = scan(tmp_path, max_depth=0).root

        locked = full.find_child("locked.bin")
        assert locked is not None
        assert locked.size == 0
        assert full.file_count == 3
        assert full.size == 10
        assert boundary.file_count == 3
        assert boundary.size == 10


class TestCancellation:
    def test_cancelled_before_start(self, sample_tree):
        token = CancelToken()
        token.cancel()
        with pytest.raises(ScanCancelled):
            scan(sample_tree, cancel=token)

    def test_cancelled_mid_scan(self, sample_tree):
        token = CancelToken()
        visited = []

        def progress(path):
            visited.append(path)
            if len(visited) == 2:
                token.cancel()

        result = None
        with pytest.raises(ScanCancelled):
            result = scan(sample_tree, cancel=token, progress_callback=progress)
        assert result is None

    def test_cancelled_size_only_walk(self, sample_tree):
        token = CancelToken()
        token.cancel()
        with pytest.raises(ScanCancelled):
            compute_size_only(str(sample_tree), cancel=token)

    def test_token_state(self):
        token = CancelToken()
        assert not token.cancelled
        token.raise_if_cancelled()
        token.cancel()
        assert token.cancelled


class TestScanDeeper:
    def test_deepens_partial_node(self, sample_tree):
        root = scan(sample_tree, max_depth=1).root
        docs = root.find_child("docs")
        assert docs.is_partial

        scan_deeper(docs)

        assert docs.is_fully_loaded
        assert [c.name for c in docs.children] == ["old", "b.txt", "a.txt"]
        assert docs.file_count == 4
        assert docs.directory_count == 2
        assert all(child.parent is docs for child in docs.children)
        assert docs.parent is root
        assert_sorted(docs)
        assert_conserved(docs)

    def test_loads_fixed_increment(self, tmp_path):
        deep = tmp_path / "start"
        for i in range(scanner.DEEPER_INCREMENT + 2):
            deep = deep / f"level{i}"
        write_file(deep / "f", 3)

        start = scan(tmp_path, max_depth=1).root.find_child("start")
        scan_deeper(start)

        node = start
        for _ in range(scanner.DEEPER_INCREMENT):
            assert node.is_fully_loaded
            node = node.children[0]
        assert node.is_partial

    def test_size_is_not_recomputed(self, sample_tree):
        root = scan(sample_tree, max_depth=1).root
        docs = root.find_child("docs")

        write_file(sample_tree / "docs" / "new.bin", 5000)
        scan_deeper(docs)

        assert docs.size == 1000
        assert sum(c.size for c in docs.children) == 6000
        assert root.size == 2500

    def test_cancelled_leaves_node_untouched(self, sample_tree):
        root = scan(sample_tree, max_depth=1).root
        docs = root.find_child("docs")
        token = CancelToken()
        token.cancel()

        with pytest.raises(ScanCancelled):
            scan_deeper(docs, cancel=token)

        assert docs.is_partial
        assert docs.children == []

    def test_deeper_respects_exclusions(self, sample_tree):
        root = scan(sample_tree, max_depth=1).root
        docs = root.find_child("docs")
        scan_deeper(docs, excluded_names=["old"])
        assert docs.find_child("old") is None
        assert docs.directory_count == 0

    def test_file_node_is_ignored(self, sample_tree):
        root = scan(sample_tree).root
        leaf = root.find_child("big.bin")
        scan_deeper(leaf)
        assert leaf.children == []
