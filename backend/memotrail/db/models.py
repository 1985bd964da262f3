from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, DateTime, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from memotrail.db.base import Base
from memotrail.utils.time_utils import utc_now


class MemoRow(Base):
    """Mutable control record pointing at a memo's current version."""

    __tablename__ = "memos"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    root_node_id: Mapped[str] = mapped_column(String, nullable=False)
    current_node_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)


class MemoNodeRow(Base):
    """Immutable version snapshot of a memo."""

    __tablename__ = "memo_nodes"
    __table_args__ = (
        UniqueConstraint("memo_id", "version", name="uq_memo_node_version"),
        Index("ix_memo_nodes_sender", "sender_id"),
        Index("ix_memo_nodes_recipient", "recipient_id"),
        Index("ix_memo_nodes_assignee", "assigned_to_id"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True)
    memo_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False)
    sender_id: Mapped[str] = mapped_column(String, nullable=False)
    recipient_id: Mapped[str] = mapped_column(String, nullable=False)
    assigned_to_id: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    action_type: Mapped[str] = mapped_column(String, nullable=False)
    action_by_id: Mapped[str] = mapped_column(String, nullable=False)
    action_comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    parent_node_ids: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    # "metadata" is reserved on declarative classes.
    node_metadata: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JSON, nullable=False, default=dict
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
