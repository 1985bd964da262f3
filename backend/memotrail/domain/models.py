from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional


class MemoStatus(str, Enum):
    """Workflow status carried by every memo version."""

    DRAFT = "DRAFT"
    SENT = "SENT"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    ARCHIVED = "ARCHIVED"


class MemoActionType(str, Enum):
    """Why a version node exists."""

    CREATED = "CREATED"
    UPDATED = "UPDATED"
    ASSIGNED = "ASSIGNED"
    COMMENTED = "COMMENTED"
    STATUS_CHANGED = "STATUS_CHANGED"


def _freeze_mapping(value: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    return MappingProxyType(dict(value or {}))


@dataclass(frozen=True)
class VersionNode:
    """One immutable snapshot of a memo plus the action that produced it.

    ``parent_node_ids`` only names other nodes; the store owns them. The first
    entry is the primary parent used for linear navigation.
    """

    id: str
    memo_id: str
    version: int
    title: str
    content: str
    status: MemoStatus
    sender_id: str
    recipient_id: str
    action_type: MemoActionType
    action_by_id: str
    created_at: datetime
    assigned_to_id: Optional[str] = None
    action_comment: Optional[str] = None
    parent_node_ids: tuple[str, ...] = ()
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "parent_node_ids", tuple(self.parent_node_ids))
        object.__setattr__(self, "metadata", _freeze_mapping(self.metadata))

    @property
    def is_root(self) -> bool:
        return not self.parent_node_ids

    @property
    def primary_parent_id(self) -> Optional[str]:
        return self.parent_node_ids[0] if self.parent_node_ids else None

    def metadata_dict(self) -> dict[str, Any]:
        """Return a mutable copy of the metadata for serialization."""

        return dict(self.metadata)


@dataclass
class Memo:
    """Control record for a memo: a stable root and a movable current pointer."""

    id: str
    root_node_id: str
    current_node_id: str
    created_at: datetime
    updated_at: datetime
