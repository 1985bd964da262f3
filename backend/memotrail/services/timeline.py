from __future__ import annotations

from memotrail.domain.models import Memo, VersionNode
from memotrail.domain.views import (
    RevisionPath,
    RevisionPathNode,
    TimelineEntry,
    TimelineView,
)
from memotrail.services.version_graph import VersionGraph


def build_timeline(memo: Memo, current: VersionNode, graph: VersionGraph) -> TimelineView:
    """Annotated list of every version of a memo, oldest first."""

    entries = [
        TimelineEntry(
            node_id=node.id,
            version=node.version,
            action_type=node.action_type,
            action_by_id=node.action_by_id,
            action_comment=node.action_comment,
            timestamp=node.created_at,
            is_current_version=node.id == memo.current_node_id,
            # Recomputed on every call; nothing about branching is stored.
            has_branches=graph.branch_count(node.id) > 1,
        )
        for node in graph
    ]
    return TimelineView(
        memo_id=memo.id,
        total_versions=len(graph),
        current_version=current.version,
        timeline=entries,
    )


def build_revision_path(
    graph: VersionGraph, walked: list[tuple[VersionNode, int]]
) -> RevisionPath:
    """Wrap a depth-first walk with per-node branching flags."""

    path = [
        RevisionPathNode(
            node_id=node.id,
            version=node.version,
            title=node.title,
            action_type=node.action_type,
            action_by_id=node.action_by_id,
            timestamp=node.created_at,
            has_multiple_parents=len(node.parent_node_ids) > 1,
            has_multiple_children=graph.branch_count(node.id) > 1,
            depth=depth,
        )
        for node, depth in walked
    ]
    versions = [entry.version for entry in path]
    return RevisionPath(
        memo_id=graph.memo_id,
        start_version=path[0].version if path else 0,
        end_version=max(versions) if versions else 0,
        path=path,
        total_nodes=len(path),
    )
