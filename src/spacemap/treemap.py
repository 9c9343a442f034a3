"""Squarified treemap layout.

Items are batched greedily into rows laid along the shorter edge of the
remaining bounds; a row is closed as soon as adding the next item would
make its worst aspect ratio worse.
"""

from dataclasses import dataclass
from typing import Any, Optional, Sequence, TypeVar

from spacemap.models import Node

T = TypeVar("T")


@dataclass(frozen=True)
class Rect:
    """Rectangle bounds for treemap layout."""

    x: float
    y: float
    width: float
    height: float

    @property
    def area(self) -> float:
        return self.width * self.height

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def is_degenerate(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def contains(self, x: float, y: float) -> bool:
        """Whether a point lies inside (left/top edges inclusive)."""
        return self.x <= x < self.right and self.y <= y < self.bottom

    def inset(self, padding: float) -> "Rect":
        """New rectangle inset by padding on all sides."""
        return Rect(
            self.x + padding,
            self.y + padding,
            max(0.0, self.width - 2 * padding),
            max(0.0, self.height - 2 * padding),
        )


def worst_ratio(areas: Sequence[float], short_edge: float) -> float:
    """
    Worst aspect ratio of a row of areas laid along ``short_edge``.

    Each member gets the row's full thickness (row area / short edge) and a
    length proportional to its area. Empty rows score infinity.
    """
    total = sum(areas)
    if not areas or total <= 0 or short_edge <= 0:
        return float("inf")

    thickness = total / short_edge
    worst = 0.0
    for area in areas:
        if area <= 0:
            continue
        length = area / thickness
        ratio = thickness / length if thickness > length else length / thickness
        worst = max(worst, ratio)
    return worst


def _layout_row(
    row: list[tuple[float, T]],
    bounds: Rect,
    acc: list[tuple[Rect, T]],
    fill: bool = False,
) -> Rect:
    """
    Place a row as a strip along the shorter edge of ``bounds``.

    Returns the bounds left over after the strip. With ``fill`` the strip
    takes all of ``bounds``.
    """
    row_area = sum(area for area, _ in row)

    if bounds.width >= bounds.height:
        # Wide: vertical strip on the left, items stacked top to bottom
        strip = bounds.width if fill else min(row_area / bounds.height, bounds.width)
        y = bounds.y
        for i, (area, payload) in enumerate(row):
            if i == len(row) - 1:
                item_h = bounds.bottom - y
            else:
                item_h = area / strip if strip > 0 else 0.0
            acc.append((Rect(bounds.x, y, strip, item_h), payload))
            y += item_h
        return Rect(bounds.x + strip, bounds.y, max(0.0, bounds.width - strip), bounds.height)

    # Tall: horizontal strip on top, items left to right
    strip = bounds.height if fill else min(row_area / bounds.width, bounds.height)
    x = bounds.x
    for i, (area, payload) in enumerate(row):
        if i == len(row) - 1:
            item_w = bounds.right - x
        else:
            item_w = area / strip if strip > 0 else 0.0
        acc.append((Rect(x, bounds.y, item_w, strip), payload))
        x += item_w
    return Rect(bounds.x, bounds.y + strip, bounds.width, max(0.0, bounds.height - strip))


def squarify(items: Sequence[tuple[float, T]], bounds: Rect) -> list[tuple[Rect, T]]:
    """
    Tile ``bounds`` with one rectangle per weighted item.

    Weights must already be scaled so that they sum to ``bounds.area``
    (see :func:`normalize`). Zero-weight items get no rectangle, and
    degenerate bounds give an empty layout.

    Args:
        items: Ordered (weight, payload) pairs, normally largest first
        bounds: Region to tile

    Returns:
        List of (rect, payload) in layout order
    """
    if bounds.is_degenerate:
        return []

    pending = [(weight, payload) for weight, payload in items if weight > 0]
    result: list[tuple[Rect, T]] = []
    row: list[tuple[float, T]] = []
    remaining = bounds

    i = 0
    while i < len(pending):
        item = pending[i]
        short_edge = min(remaining.width, remaining.height)
        areas = [area for area, _ in row]
        if not row or worst_ratio(areas + [item[0]], short_edge) <= worst_ratio(areas, short_edge):
            row.append(item)
            i += 1
        else:
            remaining = _layout_row(row, remaining, result)
            row = []

    if row:
        _layout_row(row, remaining, result, fill=True)

    return result


def normalize(items: Sequence[tuple[int, T]], bounds: Rect) -> list[tuple[float, T]]:
    """
    Scale raw sizes to areas of ``bounds``.

    Non-positive sizes are dropped.
    """
    positive = [(size, payload) for size, payload in items if size > 0]
    total = sum(size for size, _ in positive)
    if total <= 0 or bounds.is_degenerate:
        return []
    scale = bounds.area / total
    return [(size * scale, payload) for size, payload in positive]


def layout_children(node: Node, bounds: Rect, max_children: int = 0) -> list[tuple[Rect, Node]]:
    """
    Lay out one view level: the children of ``node`` inside ``bounds``.

    Args:
        node: Directory whose children are shown
        bounds: Region to tile
        max_children: Show only the largest N children (0 = all)

    Returns:
        List of (rect, child) pairs
    """
    children = node.top_children(max_children)
    return squarify(normalize([(child.size, child) for child in children], bounds), bounds)


def hit_test(layout: Sequence[tuple[Rect, Any]], x: float, y: float) -> Optional[Any]:
    """Payload under a point; the last-drawn rectangle wins."""
    for rect, payload in reversed(layout):
        if rect.contains(x, y):
            return payload
    return None
