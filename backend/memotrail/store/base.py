from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Optional

from memotrail.domain.models import Memo, VersionNode


class MemoStore(ABC):
    """Durable keyed storage for version nodes and memo pointers.

    Implementations raise ``StorageUnavailableError`` when the backend fails
    and ``WriteConflictError`` when an insert or pointer swap loses a race.
    """

    @abstractmethod
    async def get_memo(self, memo_id: str) -> Optional[Memo]:
        """Fetch a memo control record."""

    @abstractmethod
    async def get_memos(self, memo_ids: Sequence[str]) -> list[Memo]:
        """Fetch several memos, newest update first."""

    @abstractmethod
    async def put_memo(self, memo: Memo) -> None:
        """Insert a memo or overwrite its pointer and ``updated_at``."""

    @abstractmethod
    async def get_node(self, node_id: str) -> Optional[VersionNode]:
        """Fetch a version node by ID."""

    @abstractmethod
    async def put_node(self, node: VersionNode) -> None:
        """Insert a version node. Nodes are never updated."""

    @abstractmethod
    async def find_nodes_by_memo(self, memo_id: str) -> list[VersionNode]:
        """Return all nodes of a memo in ascending version order."""

    @abstractmethod
    async def find_memo_ids_by_user(self, user_id: str) -> list[str]:
        """Return memo IDs where the user appears as sender, recipient or assignee."""

    @abstractmethod
    async def append_node(self, node: VersionNode, expected_current_node_id: str) -> Memo:
        """Insert ``node`` and move the memo pointer to it in one transaction.

        The pointer only moves if it still equals ``expected_current_node_id``;
        otherwise nothing is written and ``WriteConflictError`` is raised.
        """
