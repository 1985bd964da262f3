from __future__ import annotations

from memotrail.domain.models import Memo, VersionNode
from memotrail.domain.views import MemoListItem, MemoView
from memotrail.services.version_graph import VersionGraph


def build_memo_view(memo: Memo, node: VersionNode, graph: VersionGraph) -> MemoView:
    """Combine a node with navigation context drawn from its memo's graph."""

    next_node = graph.next_of(node.id)
    previous_node = graph.previous_of(node)
    return MemoView(
        id=node.id,
        memo_id=node.memo_id,
        version=node.version,
        title=node.title,
        content=node.content,
        status=node.status,
        sender_id=node.sender_id,
        recipient_id=node.recipient_id,
        assigned_to_id=node.assigned_to_id,
        metadata=node.metadata_dict(),
        is_current_version=node.id == memo.current_node_id,
        total_versions=len(graph),
        created_at=memo.created_at,
        last_modified_at=memo.updated_at,
        next_version_id=next_node.id if next_node else None,
        previous_version_id=previous_node.id if previous_node else None,
        can_go_forward=next_node is not None,
        can_go_backward=previous_node is not None,
        action_type=node.action_type,
        action_by_id=node.action_by_id,
        action_comment=node.action_comment,
        action_timestamp=node.created_at,
    )


def build_list_item(memo: Memo, current: VersionNode, total_versions: int) -> MemoListItem:
    """Summarize a memo at its current version."""

    return MemoListItem(
        id=memo.id,
        current_version=current.version,
        total_versions=total_versions,
        title=current.title,
        status=current.status,
        sender_id=current.sender_id,
        recipient_id=current.recipient_id,
        assigned_to_id=current.assigned_to_id,
        created_at=memo.created_at,
        last_modified_at=memo.updated_at,
    )
