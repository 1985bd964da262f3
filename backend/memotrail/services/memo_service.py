from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any, Optional

from fastapi import Request

from memotrail.domain.errors import InvalidOperationError, NotFoundError
from memotrail.domain.intents import (
    AssignIntent,
    CommentIntent,
    MutationIntent,
    StatusChangeIntent,
    UpdateIntent,
)
from memotrail.domain.models import Memo, MemoActionType, MemoStatus, VersionNode
from memotrail.domain.views import (
    MemoComparison,
    MemoListItem,
    MemoView,
    RevisionPath,
    TimelineView,
)
from memotrail.services.diff import diff_nodes
from memotrail.services.timeline import build_revision_path, build_timeline
from memotrail.services.version_graph import VersionGraph
from memotrail.services.view_builder import build_list_item, build_memo_view
from memotrail.services.write_guard import MemoWriteGuard
from memotrail.store.base import MemoStore
from memotrail.utils.time_utils import ensure_utc, utc_now

logger = logging.getLogger(__name__)


def _new_id() -> str:
    return uuid.uuid4().hex


class MemoService:
    """Version graph engine: immutable memo versions behind a movable pointer."""

    def __init__(
        self,
        store: MemoStore,
        *,
        write_retry_attempts: int = 3,
        clock: Callable[[], datetime] = utc_now,
        id_factory: Callable[[], str] = _new_id,
    ) -> None:
        self._store = store
        self._guard = MemoWriteGuard(write_retry_attempts)
        self._clock = clock
        self._id_factory = id_factory

    @property
    def write_guard(self) -> MemoWriteGuard:
        return self._guard

    # Writes

    async def create_memo(
        self,
        title: str,
        content: str,
        sender_id: str,
        recipient_id: str,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> Memo:
        """Create a memo together with its root version."""

        now = self._clock()
        memo_id = self._id_factory()
        root = VersionNode(
            id=self._id_factory(),
            memo_id=memo_id,
            version=1,
            title=title,
            content=content,
            status=MemoStatus.SENT,
            sender_id=sender_id,
            recipient_id=recipient_id,
            action_type=MemoActionType.CREATED,
            action_by_id=sender_id,
            parent_node_ids=(),
            metadata=metadata or {},
            created_at=now,
        )
        memo = Memo(
            id=memo_id,
            root_node_id=root.id,
            current_node_id=root.id,
            created_at=now,
            updated_at=now,
        )
        await self._store.put_node(root)
        await self._store.put_memo(memo)
        logger.info("Created memo %s (root %s) by %s", memo_id, root.id, sender_id)
        return memo

    async def append_version(
        self, memo_id: str, intent: MutationIntent, actor_id: str
    ) -> Memo:
        """Append a version built from the current one and advance the pointer."""

        async def attempt() -> Memo:
            return await self._append_once(memo_id, intent, actor_id)

        return await self._guard.run(memo_id, attempt)

    async def update_memo(
        self,
        memo_id: str,
        actor_id: str,
        *,
        title: Optional[str] = None,
        content: Optional[str] = None,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> Memo:
        intent = UpdateIntent(title=title, content=content, metadata=metadata or {})
        return await self.append_version(memo_id, intent, actor_id)

    async def assign_memo(
        self,
        memo_id: str,
        assigned_to_id: str,
        assigned_by_id: str,
        comment: Optional[str] = None,
    ) -> Memo:
        intent = AssignIntent(assigned_to_id=assigned_to_id, comment=comment)
        return await self.append_version(memo_id, intent, assigned_by_id)

    async def change_status(
        self,
        memo_id: str,
        status: MemoStatus,
        actor_id: str,
        comment: Optional[str] = None,
    ) -> Memo:
        intent = StatusChangeIntent(status=status, comment=comment)
        return await self.append_version(memo_id, intent, actor_id)

    async def comment_memo(self, memo_id: str, comment: str, actor_id: str) -> Memo:
        return await self.append_version(memo_id, CommentIntent(comment=comment), actor_id)

    async def _append_once(
        self, memo_id: str, intent: MutationIntent, actor_id: str
    ) -> Memo:
        memo = await self._require_memo(memo_id)
        current = await self._store.get_node(memo.current_node_id)
        if current is None or current.memo_id != memo_id:
            raise NotFoundError("NODE_NOT_FOUND", "Current node not found")

        node = _derive_node(
            current,
            intent,
            node_id=self._id_factory(),
            actor_id=actor_id,
            created_at=self._clock(),
        )
        updated = await self._store.append_node(node, expected_current_node_id=current.id)
        logger.info(
            "Memo %s advanced to v%d (%s) by %s",
            memo_id,
            node.version,
            node.action_type.value,
            actor_id,
        )
        return updated

    # Raw lookups

    async def get_memo(self, memo_id: str) -> Memo:
        return await self._require_memo(memo_id)

    async def get_node(self, memo_id: str, node_id: str) -> VersionNode:
        node = await self._store.get_node(node_id)
        if node is None or node.memo_id != memo_id:
            raise NotFoundError("NODE_NOT_FOUND", "Node not found")
        return node

    async def get_node_at_version(self, memo_id: str, version: int) -> VersionNode:
        graph = await self._load_graph(memo_id)
        return _require_version(graph, version)

    async def get_current_node(self, memo_id: str) -> VersionNode:
        memo = await self._require_memo(memo_id)
        node = await self._store.get_node(memo.current_node_id)
        if node is None or node.memo_id != memo_id:
            raise NotFoundError("NODE_NOT_FOUND", "Current node not found")
        return node

    async def get_root_node(self, memo_id: str) -> VersionNode:
        memo = await self._require_memo(memo_id)
        node = await self._store.get_node(memo.root_node_id)
        if node is None or node.memo_id != memo_id:
            raise NotFoundError("NODE_NOT_FOUND", "Root node not found")
        return node

    async def get_history(self, memo_id: str) -> list[VersionNode]:
        """All versions of a memo in ascending version order."""

        graph = await self._load_graph(memo_id)
        return graph.nodes

    async def find_children(self, memo_id: str, node_id: str) -> list[VersionNode]:
        graph = await self._load_graph(memo_id)
        return graph.children_of(node_id)

    async def branch_count(self, memo_id: str, node_id: str) -> int:
        graph = await self._load_graph(memo_id)
        return graph.branch_count(node_id)

    async def navigate_next(self, memo_id: str, node_id: str) -> VersionNode:
        graph = await self._load_graph(memo_id)
        return _next_node(graph, node_id)

    async def navigate_previous(self, memo_id: str, node_id: str) -> VersionNode:
        graph = await self._load_graph(memo_id)
        return _previous_node(graph, node_id)

    async def checkout_by_timestamp(self, memo_id: str, timestamp: datetime) -> VersionNode:
        graph = await self._load_graph(memo_id)
        return _node_at_timestamp(graph, timestamp)

    async def checkout_by_action(
        self, memo_id: str, action_type: MemoActionType
    ) -> VersionNode:
        graph = await self._load_graph(memo_id)
        return _node_with_action(graph, action_type)

    async def revision_path(
        self, memo_id: str, from_version: Optional[int] = None
    ) -> list[VersionNode]:
        """Pre-order walk from a version (default: the root), each node once."""

        _, walked = await self._walk(memo_id, from_version)
        return [node for node, _ in walked]

    async def list_user_memos(self, user_id: str) -> list[MemoListItem]:
        """Memos where the user ever appeared as sender, recipient or assignee."""

        memo_ids = await self._store.find_memo_ids_by_user(user_id)
        items: list[MemoListItem] = []
        for memo in await self._store.get_memos(memo_ids):
            graph = VersionGraph(memo.id, await self._store.find_nodes_by_memo(memo.id))
            current = graph.get(memo.current_node_id)
            if current is None:
                raise NotFoundError("NODE_NOT_FOUND", f"Current node of memo {memo.id} not found")
            items.append(build_list_item(memo, current, len(graph)))
        return items

    # Enriched views

    async def checkout_latest(self, memo_id: str) -> MemoView:
        memo, graph = await self._load_memo_graph(memo_id)
        return build_memo_view(memo, _require_node(graph, memo.current_node_id), graph)

    async def checkout_root(self, memo_id: str) -> MemoView:
        memo, graph = await self._load_memo_graph(memo_id)
        return build_memo_view(memo, _require_node(graph, memo.root_node_id), graph)

    async def checkout_version(self, memo_id: str, version: int) -> MemoView:
        memo, graph = await self._load_memo_graph(memo_id)
        return build_memo_view(memo, _require_version(graph, version), graph)

    async def checkout_node(self, memo_id: str, node_id: str) -> MemoView:
        memo, graph = await self._load_memo_graph(memo_id)
        return build_memo_view(memo, _require_node(graph, node_id), graph)

    async def checkout_timestamp(self, memo_id: str, timestamp: datetime) -> MemoView:
        memo, graph = await self._load_memo_graph(memo_id)
        return build_memo_view(memo, _node_at_timestamp(graph, timestamp), graph)

    async def checkout_action(self, memo_id: str, action_type: MemoActionType) -> MemoView:
        memo, graph = await self._load_memo_graph(memo_id)
        return build_memo_view(memo, _node_with_action(graph, action_type), graph)

    async def navigate_next_view(self, memo_id: str, node_id: str) -> MemoView:
        memo, graph = await self._load_memo_graph(memo_id)
        return build_memo_view(memo, _next_node(graph, node_id), graph)

    async def navigate_previous_view(self, memo_id: str, node_id: str) -> MemoView:
        memo, graph = await self._load_memo_graph(memo_id)
        return build_memo_view(memo, _previous_node(graph, node_id), graph)

    async def compare_versions(
        self, memo_id: str, version_a: int, version_b: int
    ) -> MemoComparison:
        memo, graph = await self._load_memo_graph(memo_id)
        node_a = _require_version(graph, version_a)
        node_b = _require_version(graph, version_b)
        return MemoComparison(
            version_a=build_memo_view(memo, node_a, graph),
            version_b=build_memo_view(memo, node_b, graph),
            differences=diff_nodes(node_a, node_b),
            versions_between=max(abs(version_b - version_a) - 1, 0),
        )

    async def get_timeline(self, memo_id: str) -> TimelineView:
        memo, graph = await self._load_memo_graph(memo_id)
        current = _require_node(graph, memo.current_node_id)
        return build_timeline(memo, current, graph)

    async def get_revision_path(
        self, memo_id: str, from_version: Optional[int] = None
    ) -> RevisionPath:
        graph, walked = await self._walk(memo_id, from_version)
        return build_revision_path(graph, walked)

    # Helpers

    async def _require_memo(self, memo_id: str) -> Memo:
        memo = await self._store.get_memo(memo_id)
        if memo is None:
            raise NotFoundError("MEMO_NOT_FOUND", "Memo not found")
        return memo

    async def _load_graph(self, memo_id: str) -> VersionGraph:
        _, graph = await self._load_memo_graph(memo_id)
        return graph

    async def _load_memo_graph(self, memo_id: str) -> tuple[Memo, VersionGraph]:
        memo = await self._require_memo(memo_id)
        nodes = await self._store.find_nodes_by_memo(memo_id)
        return memo, VersionGraph(memo_id, nodes)

    async def _walk(
        self, memo_id: str, from_version: Optional[int]
    ) -> tuple[VersionGraph, list[tuple[VersionNode, int]]]:
        memo, graph = await self._load_memo_graph(memo_id)
        if from_version is None:
            start = _require_node(graph, memo.root_node_id)
        else:
            start = _require_version(graph, from_version)
        return graph, graph.walk(start.id)


def _derive_node(
    current: VersionNode,
    intent: MutationIntent,
    *,
    node_id: str,
    actor_id: str,
    created_at: datetime,
) -> VersionNode:
    """Build the child of ``current`` described by ``intent``.

    Fields the intent does not override are inherited. The action comment is
    per-action and is never inherited.
    """

    title = current.title
    content = current.content
    status = current.status
    assigned_to_id = current.assigned_to_id
    metadata: Mapping[str, Any] = current.metadata
    comment: Optional[str] = None

    if isinstance(intent, UpdateIntent):
        title = intent.title if intent.title is not None else title
        content = intent.content if intent.content is not None else content
        metadata = {**current.metadata, **intent.metadata}
    elif isinstance(intent, AssignIntent):
        status = MemoStatus.IN_PROGRESS
        assigned_to_id = intent.assigned_to_id
        comment = intent.comment
    elif isinstance(intent, StatusChangeIntent):
        status = intent.status
        comment = intent.comment
    elif isinstance(intent, CommentIntent):
        comment = intent.comment
    else:
        raise TypeError(f"Unsupported mutation intent: {type(intent).__name__}")

    return VersionNode(
        id=node_id,
        memo_id=current.memo_id,
        version=current.version + 1,
        title=title,
        content=content,
        status=status,
        sender_id=current.sender_id,
        recipient_id=current.recipient_id,
        assigned_to_id=assigned_to_id,
        action_type=intent.action_type,
        action_by_id=actor_id,
        action_comment=comment,
        parent_node_ids=(current.id,),
        metadata=metadata,
        created_at=created_at,
    )


def _require_node(graph: VersionGraph, node_id: str) -> VersionNode:
    node = graph.get(node_id)
    if node is None:
        raise NotFoundError("NODE_NOT_FOUND", "Node not found")
    return node


def _require_version(graph: VersionGraph, version: int) -> VersionNode:
    node = graph.at_version(version)
    if node is None:
        raise NotFoundError("VERSION_NOT_FOUND", f"Version {version} not found")
    return node


def _next_node(graph: VersionGraph, node_id: str) -> VersionNode:
    _require_node(graph, node_id)
    child = graph.next_of(node_id)
    if child is None:
        raise InvalidOperationError("NO_NEXT_VERSION", "No next version available")
    return child


def _previous_node(graph: VersionGraph, node_id: str) -> VersionNode:
    node = _require_node(graph, node_id)
    if node.is_root:
        raise InvalidOperationError("NO_PREVIOUS_VERSION", "No previous version available")
    previous = graph.previous_of(node)
    if previous is None:
        raise NotFoundError("NODE_NOT_FOUND", "Previous node not found")
    return previous


def _node_at_timestamp(graph: VersionGraph, timestamp: datetime) -> VersionNode:
    node = graph.latest_at(ensure_utc(timestamp))
    if node is None:
        raise NotFoundError(
            "VERSION_NOT_FOUND",
            "No version exists at or before the specified timestamp",
        )
    return node


def _node_with_action(graph: VersionGraph, action_type: MemoActionType) -> VersionNode:
    node = graph.latest_with_action(action_type)
    if node is None:
        raise NotFoundError(
            "VERSION_NOT_FOUND", f"No version with action type {action_type.value} found"
        )
    return node


def get_memo_service(request: Request) -> MemoService:
    """Dependency to access the memo service from app state."""

    return request.app.state.memo_service
