"""Main TUI application for spacemap."""

import os
from pathlib import Path

from textual.app import App
from textual.binding import Binding

from spacemap.cache import CacheStore
from spacemap.config import cache_dir, load_settings
from spacemap.session import ScanSession
from spacemap.tui.screens import BrowserScreen


class SpacemapApp(App):
    """Interactive disk usage browser."""

    TITLE = "spacemap"
    SUB_TITLE = "Disk Usage Treemap"

    CSS = """
    #content {
        height: 1fr;
    }
    #treemap {
        width: 2fr;
    }
    #children-table {
        width: 1fr;
    }
    #breadcrumbs, #stale-banner, #status {
        height: auto;
        padding: 0 1;
    }
    """

    BINDINGS = [
        Binding("q", "quit", "Quit"),
        Binding("?", "help", "Help"),
    ]

    SCREENS = {
        "browser": BrowserScreen,
    }

    def __init__(self, root_path: str | os.PathLike = "."):
        super().__init__()
        self.root_path = os.path.abspath(os.fspath(root_path))
        self.session = ScanSession(CacheStore(cache_dir()), load_settings())
        self.sub_title = self.root_path

    def on_mount(self) -> None:
        """Called when the app is mounted."""
        self.push_screen("browser")

    def on_unmount(self) -> None:
        self.session.close()

    def action_help(self) -> None:
        """Show help information."""
        self.notify(
            "Enter opens a folder, Backspace goes up, R rescans, C cancels, T toggles the treemap",
            title="Help",
            timeout=5,
        )


def run_tui(root_path: str | Path = ".") -> None:
    """Run the interactive browser on ``root_path``."""
    app = SpacemapApp(root_path)
    app.run()
