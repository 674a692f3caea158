"""Ordered forest of addressable record nodes.

A ``SyncTree`` is used both for the full set of synchronized tickets and for
the change-set of a single run. Nodes may be looked up by handle (an exact
token such as a ticket number) through an index that is maintained as nodes
are added, or by the positional address printed next to them when rendered
(``2=`` is the second root, ``2.1=`` its first child).
"""

import re
from typing import Any, Callable, Iterator

import yaml
from pydantic import BaseModel, Field, PrivateAttr

from ticketsync.models.config import DetailLevel

ADDRESS_PATTERN = re.compile(r"^\d+(?:\.\d+)*=$")

# Deepest level shown for each detail level; None means unlimited.
DETAIL_DEPTH: dict[DetailLevel, int | None] = {
    DetailLevel.TERSE: 1,
    DetailLevel.NORMAL: 2,
    DetailLevel.EXTRA: 3,
    DetailLevel.ALL: None,
}


def is_address(token: str | None) -> bool:
    """Check whether ``token`` looks like a positional tree address."""
    return bool(token) and ADDRESS_PATTERN.match(token) is not None


class TreeNode(BaseModel):
    """A node mirroring one remote resource."""

    label: str = Field(default=..., description="Display text")
    handle: str | None = Field(default=None, description="Lookup key, unique within a tree")
    rest_ref: str | None = Field(default=None, description="Locator of the mirrored resource")
    data: dict[str, str] = Field(
        default_factory=dict, description="Artifact reference, sync stamp and record ids"
    )
    children: list["TreeNode"] = Field(default_factory=list)

    _tree: Any = PrivateAttr(default=None)

    def add_child(self, child: "TreeNode") -> "TreeNode":
        """Append ``child`` and index its handles if this node is in a tree."""
        self.children.append(child)
        if self._tree is not None:
            self._tree._attach(child)
        return child

    def replace_child(self, child: "TreeNode", key: str) -> "TreeNode":
        """Replace the child whose ``data[key]`` matches ``child``'s, or append it."""
        value = child.data.get(key)
        for position, existing in enumerate(self.children):
            if value is not None and existing.data.get(key) == value:
                if self._tree is not None:
                    self._tree._detach(existing)
                self.children[position] = child
                if self._tree is not None:
                    self._tree._attach(child)
                return child
        return self.add_child(child)

    def find_child(self, key: str, value: str) -> "TreeNode | None":
        for child in self.children:
            if child.data.get(key) == value:
                return child
        return None

    def walk(self) -> Iterator["TreeNode"]:
        """Yield this node and its descendants depth first."""
        yield self
        for child in self.children:
            yield from child.walk()


class SyncTree(BaseModel):
    """An ordered forest of ``TreeNode`` roots with a handle index."""

    roots: list[TreeNode] = Field(default_factory=list)

    _index: dict[str, TreeNode] = PrivateAttr(default_factory=dict)

    def model_post_init(self, __context: Any) -> None:
        for root in self.roots:
            self._attach(root)

    def _attach(self, node: TreeNode) -> None:
        for member in node.walk():
            member._tree = self
            if member.handle:
                self._index[member.handle] = member

    def _detach(self, node: TreeNode) -> None:
        for member in node.walk():
            member._tree = None
            if member.handle and self._index.get(member.handle) is member:
                del self._index[member.handle]

    def add_root(self, node: TreeNode) -> TreeNode:
        self.roots.append(node)
        self._attach(node)
        return node

    def replace_root(self, node: TreeNode) -> TreeNode:
        """Put ``node`` in place of the root with the same handle, or append it."""
        existing = self._index.get(node.handle) if node.handle else None
        position = next((i for i, root in enumerate(self.roots) if root is existing), None)
        if position is None:
            return self.add_root(node)
        self._detach(existing)
        self.roots[position] = node
        self._attach(node)
        return node

    def find_by_handle(self, token: str) -> TreeNode | None:
        """Exact lookup of a node by handle."""
        return self._index.get(token)

    def find_by_address(self, address: str) -> TreeNode | None:
        """Resolve a positional address such as ``2.1=``."""
        if not is_address(address):
            return None
        nodes = self.roots
        node = None
        for part in address[:-1].split("."):
            position = int(part) - 1
            if position < 0 or position >= len(nodes):
                return None
            node = nodes[position]
            nodes = node.children
        return node

    def is_empty(self) -> bool:
        return not self.roots

    def walk(self) -> Iterator[TreeNode]:
        for root in self.roots:
            yield from root.walk()

    def handles(self) -> list[str]:
        return list(self._index)

    def render(
        self,
        sink: Callable[[str], Any],
        detail_level: DetailLevel = DetailLevel.TERSE,
        annotate: bool = True,
    ) -> bool:
        """Emit one line per node to ``sink``.

        Args:
            sink: Callable receiving each line, e.g. ``print`` or ``list.append``
            detail_level: Limits how deep the tree is shown
            annotate: Prefix every line with the node's positional address

        Returns:
            True if at least one line was emitted
        """
        max_depth = DETAIL_DEPTH[DetailLevel(detail_level)]
        emitted = False
        pending = [(str(n), root, 0) for n, root in enumerate(self.roots, 1)]
        pending.reverse()
        while pending:
            address, node, depth = pending.pop()
            indent = "  " * depth
            sink(f"{indent}{address}= {node.label}" if annotate else f"{indent}{node.label}")
            emitted = True
            if max_depth is None or depth + 1 < max_depth:
                children = [
                    (f"{address}.{n}", child, depth + 1)
                    for n, child in enumerate(node.children, 1)
                ]
                pending.extend(reversed(children))
        return emitted

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.model_dump(exclude_none=True), sort_keys=False)

    @classmethod
    def from_yaml(cls, text: str) -> "SyncTree":
        document = yaml.safe_load(text) or {}
        return cls.model_validate(document)
