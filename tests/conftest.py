"""Shared fixtures for spacemap tests."""

from pathlib import Path

import pytest


def write_file(path: Path, size: int) -> Path:
    """Create a file of exactly ``size`` bytes."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"x" * size)
    return path


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Keep settings and cache out of the real home directory."""
    home = tmp_path / "spacemap-home"
    monkeypatch.setenv("SPACEMAP_HOME", str(home))
    return home


@pytest.fixture
def sample_tree(tmp_path) -> Path:
    """
    data/
      big.bin          500
      docs/
        a.txt          100
        b.txt          200
        old/
          c.txt        300
          archive/
            d.txt      400
      media/
        e.bin          1000
    """
    root = tmp_path / "data"
    write_file(root / "big.bin", 500)
    write_file(root / "docs" / "a.txt", 100)
    write_file(root / "docs" / "b.txt", 200)
    write_file(root / "docs" / "old" / "c.txt", 300)
    write_file(root / "docs" / "old" / "archive" / "d.txt", 400)
    write_file(root / "media" / "e.bin", 1000)
    return root
