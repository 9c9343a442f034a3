"""Custom widgets for the spacemap TUI."""

from typing import Optional

from rich.text import Text
from textual import events
from textual.message import Message
from textual.widget import Widget
from textual.widgets import Static

from spacemap.display import render_treemap
from spacemap.models import Node, format_size
from spacemap.treemap import Rect, hit_test, layout_children


class TreemapView(Widget):
    """Squarified treemap of the current node's children."""

    class Selected(Message):
        """A rectangle in the treemap was clicked."""

        def __init__(self, node: Node) -> None:
            self.node = node
            super().__init__()

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.node: Optional[Node] = None
        self.max_children = 0
        self.loading = False

    def show_node(self, node: Optional[Node], max_children: int = 0, loading: bool = False) -> None:
        """Draw ``node``; call again after it was deepened in place."""
        self.node = node
        self.max_children = max_children
        self.loading = loading
        self.refresh()

    def render(self) -> Text:
        if self.node is None:
            return Text("Scanning...", style="dim")
        if not any(child.size > 0 for child in self.node.children):
            if self.node.is_partial:
                if self.loading:
                    return Text("Loading deeper levels...", style="dim")
                return Text("Not loaded - open the folder again to retry", style="dim")
            return Text("Empty folder", style="dim")
        return render_treemap(self.node, self.size.width, self.size.height, self.max_children)

    def on_click(self, event: events.Click) -> None:
        if self.node is None:
            return
        bounds = Rect(0, 0, self.size.width, self.size.height)
        layout = layout_children(self.node, bounds, self.max_children)
        # Cell centre
        child = hit_test(layout, event.x + 0.5, event.y + 0.5)
        if child is not None:
            self.post_message(self.Selected(child))


class Breadcrumbs(Static):
    """Path from the scan root to the current node."""

    def show_node(self, node: Node) -> None:
        crumbs = " › ".join(n.name for n in node.ancestors())
        self.update(f"[bold]{crumbs}[/bold]  [dim]{format_size(node.size)}[/dim]")
