from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Generic, Optional, TypeVar

from memotrail.domain.models import MemoActionType, MemoStatus

T = TypeVar("T")


@dataclass(frozen=True)
class MemoView:
    """A version node enriched with navigation context."""

    id: str
    memo_id: str
    version: int
    title: str
    content: str
    status: MemoStatus
    sender_id: str
    recipient_id: str
    assigned_to_id: Optional[str]
    metadata: dict[str, Any]
    is_current_version: bool
    total_versions: int
    created_at: datetime
    last_modified_at: datetime
    next_version_id: Optional[str]
    previous_version_id: Optional[str]
    can_go_forward: bool
    can_go_backward: bool
    action_type: MemoActionType
    action_by_id: str
    action_comment: Optional[str]
    action_timestamp: datetime


@dataclass(frozen=True)
class TimelineEntry:
    node_id: str
    version: int
    action_type: MemoActionType
    action_by_id: str
    action_comment: Optional[str]
    timestamp: datetime
    is_current_version: bool
    has_branches: bool


@dataclass(frozen=True)
class TimelineView:
    memo_id: str
    total_versions: int
    current_version: int
    timeline: list[TimelineEntry] = field(default_factory=list)


@dataclass(frozen=True)
class FieldChange(Generic[T]):
    from_value: T
    to_value: T


@dataclass(frozen=True)
class FieldChanges:
    title: Optional[FieldChange[str]] = None
    content: Optional[FieldChange[str]] = None
    status: Optional[FieldChange[MemoStatus]] = None
    assigned_to: Optional[FieldChange[str]] = None


@dataclass(frozen=True)
class MemoDifferences:
    title_changed: bool
    content_changed: bool
    status_changed: bool
    assignment_changed: bool
    metadata_changed: bool
    fields: FieldChanges

    @property
    def any_changed(self) -> bool:
        return (
            self.title_changed
            or self.content_changed
            or self.status_changed
            or self.assignment_changed
            or self.metadata_changed
        )


@dataclass(frozen=True)
class MemoComparison:
    version_a: MemoView
    version_b: MemoView
    differences: MemoDifferences
    versions_between: int


@dataclass(frozen=True)
class RevisionPathNode:
    node_id: str
    version: int
    title: str
    action_type: MemoActionType
    action_by_id: str
    timestamp: datetime
    has_multiple_parents: bool
    has_multiple_children: bool
    depth: int


@dataclass(frozen=True)
class RevisionPath:
    memo_id: str
    start_version: int
    end_version: int
    path: list[RevisionPathNode]
    total_nodes: int


@dataclass(frozen=True)
class MemoListItem:
    """Summary of a memo at its current version."""

    id: str
    current_version: int
    total_versions: int
    title: str
    status: MemoStatus
    sender_id: str
    recipient_id: str
    assigned_to_id: Optional[str]
    created_at: datetime
    last_modified_at: datetime
