from __future__ import annotations

from typing import Optional, TypeVar

from memotrail.domain.models import VersionNode
from memotrail.domain.views import FieldChange, FieldChanges, MemoDifferences

T = TypeVar("T")


def diff_nodes(node_a: VersionNode, node_b: VersionNode) -> MemoDifferences:
    """Field-level differences going from ``node_a`` to ``node_b``.

    Metadata is compared structurally; only the scalar fields carry a
    from/to pair. A missing assignee is reported as an empty string.
    """

    assigned_a = node_a.assigned_to_id or ""
    assigned_b = node_b.assigned_to_id or ""
    return MemoDifferences(
        title_changed=node_a.title != node_b.title,
        content_changed=node_a.content != node_b.content,
        status_changed=node_a.status != node_b.status,
        assignment_changed=node_a.assigned_to_id != node_b.assigned_to_id,
        metadata_changed=node_a.metadata_dict() != node_b.metadata_dict(),
        fields=FieldChanges(
            title=_change(node_a.title, node_b.title),
            content=_change(node_a.content, node_b.content),
            status=_change(node_a.status, node_b.status),
            assigned_to=(
                FieldChange(assigned_a, assigned_b)
                if node_a.assigned_to_id != node_b.assigned_to_id
                else None
            ),
        ),
    )


def _change(before: T, after: T) -> Optional[FieldChange[T]]:
    if before == after:
        return None
    return FieldChange(before, after)
