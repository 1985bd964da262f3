"""In-memory view over one memo's version DAG.

Nodes are held in an arena keyed by id; edges are only ever followed through
``parent_node_ids``. A parent -> children index is built once per graph so that
child lookups do not rescan the node set.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from datetime import datetime
from typing import Optional

from memotrail.domain.models import MemoActionType, VersionNode


class VersionGraph:
    """Read-only graph algorithms over the nodes of a single memo."""

    def __init__(self, memo_id: str, nodes: Iterable[VersionNode]) -> None:
        self.memo_id = memo_id
        self._ordered = sorted(
            (node for node in nodes if node.memo_id == memo_id),
            key=lambda node: (node.version, node.created_at),
        )
        self._by_id = {node.id: node for node in self._ordered}
        self._by_version = {node.version: node for node in self._ordered}
        self._children: dict[str, list[VersionNode]] = {}
        for node in self._ordered:
            for parent_id in dict.fromkeys(node.parent_node_ids):
                self._children.setdefault(parent_id, []).append(node)

    def __len__(self) -> int:
        return len(self._ordered)

    def __iter__(self) -> Iterator[VersionNode]:
        return iter(self._ordered)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._by_id

    @property
    def nodes(self) -> list[VersionNode]:
        """All nodes in ascending version order."""

        return list(self._ordered)

    def get(self, node_id: Optional[str]) -> Optional[VersionNode]:
        if node_id is None:
            return None
        return self._by_id.get(node_id)

    def at_version(self, version: int) -> Optional[VersionNode]:
        return self._by_version.get(version)

    def children_of(self, node_id: str) -> list[VersionNode]:
        """Nodes listing ``node_id`` as a parent, ascending by version."""

        return list(self._children.get(node_id, ()))

    def branch_count(self, node_id: str) -> int:
        return len(self._children.get(node_id, ()))

    def next_of(self, node_id: str) -> Optional[VersionNode]:
        children = self._children.get(node_id)
        return children[0] if children else None

    def previous_of(self, node: VersionNode) -> Optional[VersionNode]:
        return self.get(node.primary_parent_id)

    def latest_at(self, timestamp: datetime) -> Optional[VersionNode]:
        """Newest node created at or before ``timestamp``; ties go to the higher version."""

        candidates = [node for node in self._ordered if node.created_at <= timestamp]
        if not candidates:
            return None
        return max(candidates, key=lambda node: (node.created_at, node.version))

    def latest_with_action(self, action_type: MemoActionType) -> Optional[VersionNode]:
        for node in reversed(self._ordered):
            if node.action_type == action_type:
                return node
        return None

    def walk(self, start_id: str) -> list[tuple[VersionNode, int]]:
        """Pre-order depth-first walk of the subtree under ``start_id``.

        Children are visited in ascending version order and every node is
        emitted once, paired with its depth below the start node.
        """

        start = self._by_id.get(start_id)
        if start is None:
            return []

        visited: set[str] = set()
        path: list[tuple[VersionNode, int]] = []
        stack: list[tuple[VersionNode, int]] = [(start, 0)]
        while stack:
            node, depth = stack.pop()
            if node.id in visited:
                continue
            visited.add(node.id)
            path.append((node, depth))
            for child in reversed(self._children.get(node.id, ())):
                if child.id not in visited:
                    stack.append((child, depth + 1))
        return path
