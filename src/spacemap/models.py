"""Data models for spacemap."""

import weakref
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional

from pydantic import BaseModel, Field, PrivateAttr


def format_size(size_bytes: int) -> str:
    """Format bytes to human-readable string (decimal units)."""
    if size_bytes >= 1000**4:
        return f"{size_bytes / (1000**4):.1f} TB"
    elif size_bytes >= 1000**3:
        return f"{size_bytes / (1000**3):.1f} GB"
    elif size_bytes >= 1000**2:
        return f"{size_bytes / (1000**2):.1f} MB"
    elif size_bytes >= 1000:
        return f"{size_bytes / 1000:.1f} KB"
    else:
        return f"{size_bytes} B"


class Node(BaseModel):
    """A file or directory in a scanned tree.

    Aggregates (size, file_count, directory_count) are exact for the whole
    subtree even when ``is_fully_loaded`` is False and ``children`` is empty.
    """

    name: str = Field(..., description="Base name of the entry")
    full_path: str = Field(..., description="Absolute path")
    size: int = Field(0, description="Total bytes of every file below this node")
    is_directory: bool = Field(False, description="Whether this is a directory")
    file_count: int = Field(0, description="Files in the whole subtree")
    directory_count: int = Field(0, description="Subdirectories in the whole subtree, excluding self")
    last_modified: Optional[datetime] = Field(None, description="Last write time")
    children: list["Node"] = Field(
        default_factory=list,
        description="Materialized children, largest first",
    )
    is_fully_loaded: bool = Field(
        True,
        description="False at the depth boundary: size is exact but children are not built",
    )

    # Non-owning back-reference, rebuilt after deserialization.
    _parent_ref: Optional[weakref.ReferenceType] = PrivateAttr(default=None)

    # Nodes are identity objects: the tree is mutated in place.
    def __eq__(self, other: object) -> bool:
        return self is other

    def __hash__(self) -> int:
        return id(self)

    def __repr__(self) -> str:
        return f"Node({self.full_path!r}, size={self.size}, loaded={self.is_fully_loaded})"

    @property
    def parent(self) -> Optional["Node"]:
        """The node whose children contain this one, if still alive."""
        return self._parent_ref() if self._parent_ref is not None else None

    def attach_to(self, parent: Optional["Node"]) -> None:
        """Set the non-owning back-reference."""
        self._parent_ref = weakref.ref(parent) if parent is not None else None

    @property
    def is_partial(self) -> bool:
        """Directory whose children have not been materialized yet."""
        return self.is_directory and not self.is_fully_loaded

    @property
    def percent_of_parent(self) -> float:
        """Share of the parent's size, in percent."""
        parent = self.parent
        if parent is None or parent.size <= 0:
            return 0.0
        return self.size / parent.size * 100.0

    @property
    def size_human(self) -> str:
        """Human-readable size string."""
        return format_size(self.size)

    def set_parent_references(self, parent: Optional["Node"] = None) -> None:
        """Point every descendant's back-reference at its container."""
        self.attach_to(parent)
        stack = [self]
        while stack:
            node = stack.pop()
            for child in node.children:
                child.attach_to(node)
                stack.append(child)

    def sort_children(self) -> None:
        """Order children largest first."""
        self.children.sort(key=lambda n: n.size, reverse=True)

    def replace_children(
        self,
        children: list["Node"],
        file_count: int,
        directory_count: int,
        is_fully_loaded: bool,
    ) -> None:
        """Swap in a freshly scanned child list. ``size`` is left as-is."""
        for child in children:
            child.attach_to(self)
        self.file_count = file_count
        self.directory_count = directory_count
        self.is_fully_loaded = is_fully_loaded
        self.children = children

    def top_children(self, limit: int = 0) -> list["Node"]:
        """Largest ``limit`` children (0 = all of them)."""
        if limit > 0 and len(self.children) > limit:
            return sorted(self.children, key=lambda n: n.size, reverse=True)[:limit]
        return list(self.children)

    def iter_all(self) -> Iterator["Node"]:
        """Yield this node and all materialized descendants."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def find_by_path(self, target: str | Path) -> Optional["Node"]:
        """Find a materialized node by its full path."""
        target = str(target)
        for node in self.iter_all():
            if node.full_path == target:
                return node
        return None

    def find_child(self, name: str) -> Optional["Node"]:
        """Direct child with the given name."""
        for child in self.children:
            if child.name == name:
                return child
        return None

    def ancestors(self) -> list["Node"]:
        """Chain from the root down to this node (breadcrumbs)."""
        chain = []
        node: Optional[Node] = self
        while node is not None:
            chain.append(node)
            node = node.parent
        chain.reverse()
        return chain


Node.model_rebuild()


class ScanResult(BaseModel):
    """Result of scanning a directory tree."""

    root_path: str = Field(..., description="Path that was scanned")
    scan_time: datetime = Field(default_factory=datetime.now)
    root: Node = Field(..., description="Root of the scanned tree")
    total_size: int = Field(0, description="Total size in bytes")
    total_files: int = Field(0, description="Number of files")
    total_dirs: int = Field(0, description="Number of directories")

    @classmethod
    def from_root(cls, root_path: str, root: Node, scan_time: Optional[datetime] = None) -> "ScanResult":
        """Build a result whose totals mirror the root node."""
        return cls(
            root_path=root_path,
            scan_time=scan_time or datetime.now(),
            root=root,
            total_size=root.size,
            total_files=root.file_count,
            total_dirs=root.directory_count,
        )

    @property
    def size_human(self) -> str:
        """Human-readable total size."""
        return format_size(self.total_size)
