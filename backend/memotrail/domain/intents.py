"""Mutation intents accepted by ``MemoService.append_version``.

Each intent names the action it records and which fields it overrides; any
field it leaves alone is inherited from the current node.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Union

from memotrail.domain.models import MemoActionType, MemoStatus


@dataclass(frozen=True)
class UpdateIntent:
    title: Optional[str] = None
    content: Optional[str] = None
    metadata: Mapping[str, Any] = field(default_factory=dict)

    action_type = MemoActionType.UPDATED


@dataclass(frozen=True)
class AssignIntent:
    assigned_to_id: str
    comment: Optional[str] = None

    action_type = MemoActionType.ASSIGNED


@dataclass(frozen=True)
class StatusChangeIntent:
    status: MemoStatus
    comment: Optional[str] = None

    action_type = MemoActionType.STATUS_CHANGED


@dataclass(frozen=True)
class CommentIntent:
    comment: str

    action_type = MemoActionType.COMMENTED


MutationIntent = Union[UpdateIntent, AssignIntent, StatusChangeIntent, CommentIntent]
