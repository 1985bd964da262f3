from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any, List, Optional

from pydantic import Field, field_validator

from memotrail.domain.models import MemoActionType, MemoStatus
from memotrail.schemas.common import APIModel


def _plain_dict(value: Any) -> Any:
    if isinstance(value, Mapping):
        return dict(value)
    return value


class MemoCreateRequest(APIModel):
    """Payload for sending a new memo."""

    title: str
    content: str
    sender_id: str = Field(min_length=1)
    recipient_id: str = Field(min_length=1)
    metadata: Optional[dict[str, Any]] = Field(default=None)


class MemoUpdateRequest(APIModel):
    """Payload for editing title, content or metadata."""

    title: Optional[str] = Field(default=None)
    content: Optional[str] = Field(default=None)
    metadata: Optional[dict[str, Any]] = Field(default=None)


class MemoAssignRequest(APIModel):
    """Payload for assigning a memo to someone."""

    assigned_to_id: str = Field(min_length=1)
    assigned_by_id: str = Field(min_length=1)
    comment: Optional[str] = Field(default=None)


class MemoStatusRequest(APIModel):
    """Payload for moving a memo to another status."""

    status: MemoStatus
    comment: Optional[str] = Field(default=None)


class MemoCommentRequest(APIModel):
    """Payload for annotating a memo without changing it."""

    user_id: str = Field(min_length=1)
    comment: str


class MemoOut(APIModel):
    """Serialized memo control record."""

    id: str
    root_node_id: str
    current_node_id: str
    created_at: datetime
    updated_at: datetime


class VersionNodeOut(APIModel):
    """Serialized immutable version node."""

    id: str
    memo_id: str
    version: int
    title: str
    content: str
    status: MemoStatus
    sender_id: str
    recipient_id: str
    assigned_to_id: Optional[str]
    action_type: MemoActionType
    action_by_id: str
    action_comment: Optional[str]
    parent_node_ids: List[str]
    metadata: dict[str, Any]
    created_at: datetime

    @field_validator("metadata", mode="before")
    @classmethod
    def _copy_metadata(cls, value: Any) -> Any:
        return _plain_dict(value)


class HistoryResponse(APIModel):
    """All versions of a memo, oldest first."""

    nodes: List[VersionNodeOut]


class MemoViewOut(APIModel):
    """Version node with navigation context."""

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

    @field_validator("metadata", mode="before")
    @classmethod
    def _copy_metadata(cls, value: Any) -> Any:
        return _plain_dict(value)


class TimelineEntryOut(APIModel):
    node_id: str
    version: int
    action_type: MemoActionType
    action_by_id: str
    action_comment: Optional[str]
    timestamp: datetime
    is_current_version: bool
    has_branches: bool


class TimelineOut(APIModel):
    memo_id: str
    total_versions: int
    current_version: int
    timeline: List[TimelineEntryOut]


class FieldChangeOut(APIModel):
    from_value: Any = Field(serialization_alias="from")
    to_value: Any = Field(serialization_alias="to")


class FieldChangesOut(APIModel):
    title: Optional[FieldChangeOut]
    content: Optional[FieldChangeOut]
    status: Optional[FieldChangeOut]
    assigned_to: Optional[FieldChangeOut]


class DifferencesOut(APIModel):
    title_changed: bool
    content_changed: bool
    status_changed: bool
    assignment_changed: bool
    metadata_changed: bool
    fields: FieldChangesOut


class ComparisonOut(APIModel):
    version_a: MemoViewOut
    version_b: MemoViewOut
    differences: DifferencesOut
    versions_between: int


class RevisionPathNodeOut(APIModel):
    node_id: str
    version: int
    title: str
    action_type: MemoActionType
    action_by_id: str
    timestamp: datetime
    has_multiple_parents: bool
    has_multiple_children: bool
    depth: int


class RevisionPathOut(APIModel):
    memo_id: str
    start_version: int
    end_version: int
    path: List[RevisionPathNodeOut]
    total_nodes: int


class MemoListItemOut(APIModel):
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


class MemoListResponse(APIModel):
    """Memos involving one user."""

    memos: List[MemoListItemOut]
