"""Interactive treemap browser for spacemap (requires textual)."""

from spacemap.tui.app import SpacemapApp, run_tui

__all__ = ["SpacemapApp", "run_tui"]
