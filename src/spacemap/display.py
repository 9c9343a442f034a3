"""Rich terminal display for spacemap."""

from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table
from rich.text import Text

from spacemap.models import Node, ScanResult, format_size
from spacemap.staleness import Staleness
from spacemap.treemap import Rect, layout_children

console = Console()

PALETTE = [
    "#4e79a7",
    "#f28e2b",
    "#e15759",
    "#76b7b2",
    "#59a14f",
    "#edc948",
    "#b07aa1",
    "#ff9da7",
    "#9c755f",
    "#bab0ac",
]

PARTIAL_BADGE = "···"


def node_label(node: Node) -> str:
    """Name with a trailing slash for directories and a badge for partial ones."""
    if not node.is_directory:
        return node.name
    label = f"{node.name}/"
    if node.is_partial:
        label += f" {PARTIAL_BADGE}"
    return label


def show_scanning_progress() -> Progress:
    """Create a progress display for scanning."""
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    )


def truncate_path(path: str, max_len: int = 80) -> str:
    """Keep the tail of long paths."""
    return path if len(path) <= max_len else "…" + path[-(max_len - 1):]


def show_scan_summary(result: ScanResult, cache_info: Optional[str] = None) -> None:
    """Display totals for a scan."""
    table = Table(title=f"Scan of {result.root_path}", show_header=True, header_style="bold")
    table.add_column("Size", justify="right")
    table.add_column("Files", justify="right")
    table.add_column("Dirs", justify="right")
    table.add_column("Scanned", justify="right")

    table.add_row(
        f"[bold]{format_size(result.total_size)}[/bold]",
        f"{result.total_files:,}",
        f"{result.total_dirs:,}",
        result.scan_time.strftime("%Y-%m-%d %H:%M"),
    )

    console.print(table)
    if cache_info:
        console.print(f"[dim]{cache_info}[/dim]")
    console.print()


def show_breadcrumbs(node: Node) -> None:
    """Display the path from the root to ``node``."""
    crumbs = " › ".join(n.name for n in node.ancestors())
    console.print(f"[bold]{crumbs}[/bold]")


def show_children_table(node: Node, max_children: int = 0) -> None:
    """Display a node's children, largest first."""
    children = node.top_children(max_children)

    table = Table(show_header=True, header_style="bold")
    table.add_column("Name")
    table.add_column("Size", justify="right")
    table.add_column("%", justify="right")
    table.add_column("Files", justify="right")
    table.add_column("Dirs", justify="right")
    table.add_column("Modified", justify="right")

    for child in children:
        style = "cyan" if child.is_directory else None
        table.add_row(
            Text(node_label(child), style=style or ""),
            format_size(child.size),
            f"{child.percent_of_parent:.1f}",
            f"{child.file_count:,}",
            f"{child.directory_count:,}" if child.is_directory else "",
            child.last_modified.strftime("%Y-%m-%d") if child.last_modified else "",
        )

    console.print(table)

    hidden = len(node.children) - len(children)
    if hidden > 0:
        console.print(f"[dim]{hidden} smaller entries hidden[/dim]")
    if node.is_partial:
        console.print("[dim]Contents not loaded yet - open this folder to scan deeper.[/dim]")


def render_treemap(node: Node, width: int, height: int, max_children: int = 0) -> Text:
    """
    Rasterize a squarified layout of ``node``'s children into character cells.

    Each cell takes the colour of the rectangle containing its centre; the
    top-left of each rectangle carries the child's name when it fits.
    """
    if width <= 0 or height <= 0:
        return Text()

    layout = layout_children(node, Rect(0, 0, width, height), max_children)
    cells: list[list[tuple[str, str]]] = [[(" ", "") for _ in range(width)] for _ in range(height)]

    for index, (rect, child) in enumerate(layout):
        colour = PALETTE[index % len(PALETTE)]
        x0, x1 = round(rect.x), round(rect.right)
        y0, y1 = round(rect.y), round(rect.bottom)
        if x1 <= x0 or y1 <= y0:
            continue

        style = f"black on {colour}"
        for y in range(y0, min(y1, height)):
            for x in range(x0, min(x1, width)):
                cells[y][x] = (" ", style)

        label = node_label(child)
        if x1 - x0 >= 4:
            text = label[: x1 - x0 - 1]
            for offset, char in enumerate(text):
                cells[y0][x0 + offset] = (char, f"bold {style}")
            if y1 - y0 >= 2:
                size_text = format_size(child.size)[: x1 - x0 - 1]
                for offset, char in enumerate(size_text):
                    cells[y0 + 1][x0 + offset] = (char, style)

    text = Text()
    for row_index, row in enumerate(cells):
        for char, style in row:
            text.append(char, style=style or None)
        if row_index < height - 1:
            text.append("\n")
    return text


def show_treemap(node: Node, width: Optional[int] = None, height: int = 24, max_children: int = 0) -> None:
    """Display a treemap of a node's children."""
    width = width or max(console.width - 4, 10)
    if not any(child.size > 0 for child in node.children):
        console.print("[yellow]Nothing to draw - this folder has no sized entries loaded.[/yellow]")
        return
    console.print(
        Panel(
            render_treemap(node, width, height, max_children),
            title=f"{node.name} · {format_size(node.size)}",
            expand=False,
            padding=0,
        )
    )


def show_stale_warning(staleness: Staleness) -> None:
    """Display the stale-cache banner when needed."""
    if staleness.is_stale:
        console.print(f"[yellow]⚠ {staleness.message}[/yellow]")


def show_cache_info(root_path: str, cache_path: str, info: str, staleness: Staleness) -> None:
    """Display cache details for a root."""
    table = Table(title="Cache", show_header=False)
    table.add_column("Key", style="bold")
    table.add_column("Value")
    table.add_row("Root", root_path)
    table.add_row("File", cache_path)
    table.add_row("Status", info)
    if staleness.age_days is not None:
        color = "yellow" if staleness.is_stale else "green"
        table.add_row("Age", f"[{color}]{staleness.age_days} days[/{color}]")
    console.print(table)
