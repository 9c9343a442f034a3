"""TUI screens for spacemap."""

from concurrent.futures import Future
from functools import partial
from typing import Optional

from rich.markup import escape
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.screen import Screen
from textual.widgets import DataTable, Footer, Header, Static

from spacemap.display import node_label, truncate_path
from spacemap.models import Node, format_size
from spacemap.tui.widgets import Breadcrumbs, TreemapView


class BrowserScreen(Screen):
    """Treemap and table view of one folder level."""

    BINDINGS = [
        Binding("backspace", "navigate_up", "Up"),
        Binding("r", "rescan", "Rescan"),
        Binding("c", "cancel", "Cancel"),
        Binding("t", "toggle_view", "Treemap/Table"),
    ]

    def compose(self) -> ComposeResult:
        yield Header()

        with Vertical(id="browser"):
            yield Breadcrumbs("", id="breadcrumbs")
            yield Static("", id="stale-banner")
            with Horizontal(id="content"):
                yield TreemapView(id="treemap")
                yield DataTable(id="children-table")
            yield Static("", id="status")

        yield Footer()

    def on_mount(self) -> None:
        """Initialize the screen."""
        table = self.query_one("#children-table", DataTable)
        table.cursor_type = "row"
        table.add_columns("Name", "Size", "%", "Files")

        if self.app.session.settings.default_view == "table":
            self.query_one("#treemap", TreemapView).display = False

        self.set_interval(0.25, self._poll_progress)
        self.start_scan(force=False)

    # ------------------------------------------------------------------
    # Scanning
    # ------------------------------------------------------------------

    def start_scan(self, force: bool) -> None:
        """Scan (or load from cache) in the background."""
        session = self.app.session
        future = session.start_scan(self.app.root_path, force=force)
        self._set_status("Scanning...")
        self.run_worker(partial(self._wait_for_scan, future), thread=True)

    def _wait_for_scan(self, future: Future) -> None:
        try:
            result = future.result()
        except OSError as e:
            self.app.call_from_thread(self._set_status, f"[red]Error: {escape(str(e))}[/red]")
            return
        if result is None:
            self.app.call_from_thread(self._set_status, f"[yellow]{self.app.session.status}[/yellow]")
            return
        self.app.call_from_thread(self._show_current)

    def _wait_for_deepen(self, future: Future, node: Node) -> None:
        updated = future.result()
        # Only redraw if the user is still looking at this node
        if self.app.session.current_node is not node:
            return
        self.app.call_from_thread(self._show_current)
        if not updated:
            self.app.call_from_thread(self._set_status, "[yellow]Loading cancelled.[/yellow]")

    def _poll_progress(self) -> None:
        current = self.app.session.latest_progress
        if current:
            self._set_status(f"[dim]Scanning {truncate_path(current, 70)}[/dim]")

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def _set_status(self, message: str) -> None:
        self.query_one("#status", Static).update(message)

    def _show_current(self, loading: bool = False) -> None:
        """Redraw everything for the session's current node."""
        session = self.app.session
        node = session.current_node
        if node is None:
            return

        self.query_one("#breadcrumbs", Breadcrumbs).show_node(node)
        self.query_one("#treemap", TreemapView).show_node(
            node, session.settings.max_children_display, loading=loading
        )

        table = self.query_one("#children-table", DataTable)
        table.clear()
        for child in session.visible_children():
            table.add_row(
                node_label(child),
                format_size(child.size),
                f"{child.percent_of_parent:.1f}",
                f"{child.file_count:,}",
                key=child.full_path,
            )

        staleness = session.staleness()
        banner = self.query_one("#stale-banner", Static)
        banner.update(f"[yellow]{staleness.message}[/yellow]" if staleness.is_stale else "")
        banner.display = staleness.is_stale

        self._set_status(session.summary())

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def _child_for_key(self, key: Optional[str]) -> Optional[Node]:
        node = self.app.session.current_node
        if node is None or key is None:
            return None
        for child in node.children:
            if child.full_path == key:
                return child
        return None

    def on_data_table_row_selected(self, event: DataTable.RowSelected) -> None:
        """Drill into the selected folder."""
        child = self._child_for_key(event.row_key.value if event.row_key else None)
        if child is None or not child.is_directory:
            return
        self._navigate(child)

    def on_treemap_view_selected(self, event: TreemapView.Selected) -> None:
        """Drill into a folder clicked in the treemap."""
        if event.node.is_directory:
            self._navigate(event.node)

    def _navigate(self, node: Node) -> None:
        future = self.app.session.navigate_to(node)
        self._show_current(loading=future is not None)
        if future is not None:
            self._set_status(f"Loading {node.name}...")
            self.run_worker(partial(self._wait_for_deepen, future, node), thread=True)

    def action_navigate_up(self) -> None:
        """Go to the parent folder."""
        node = self.app.session.current_node
        if node is not None and node.parent is not None:
            self._navigate(node.parent)

    def action_rescan(self) -> None:
        """Discard the cache and scan again."""
        self.start_scan(force=True)

    def action_cancel(self) -> None:
        """Cancel running scans."""
        session = self.app.session
        session.cancel_scan()
        session.cancel_deepen()
        self._set_status("[yellow]Cancelled.[/yellow]")

    def action_toggle_view(self) -> None:
        """Show or hide the treemap."""
        treemap = self.query_one("#treemap", TreemapView)
        treemap.display = not treemap.display
