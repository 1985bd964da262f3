from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from memotrail.db.models import MemoNodeRow, MemoRow
from memotrail.domain.errors import StorageUnavailableError, WriteConflictError
from memotrail.domain.models import Memo, MemoActionType, MemoStatus, VersionNode
from memotrail.repos.memo_repo import MemoRepo
from memotrail.repos.node_repo import NodeRepo
from memotrail.store.base import MemoStore
from memotrail.utils.time_utils import ensure_utc

logger = logging.getLogger(__name__)


class SQLAlchemyMemoStore(MemoStore):
    """Memo store backed by an async SQLAlchemy engine, one session per call."""

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]) -> None:
        self._sessionmaker = sessionmaker

    async def get_memo(self, memo_id: str) -> Optional[Memo]:
        with _storage_errors("get_memo"):
            async with self._sessionmaker() as db:
                row = await MemoRepo(db).get_memo(memo_id)
        return _memo_from_row(row) if row else None

    async def get_memos(self, memo_ids: Sequence[str]) -> list[Memo]:
        with _storage_errors("get_memos"):
            async with self._sessionmaker() as db:
                rows = await MemoRepo(db).list_memos(memo_ids)
        return [_memo_from_row(row) for row in rows]

    async def put_memo(self, memo: Memo) -> None:
        with _storage_errors("put_memo"):
            async with self._sessionmaker() as db:
                async with db.begin():
                    await MemoRepo(db).upsert_memo(
                        memo_id=memo.id,
                        root_node_id=memo.root_node_id,
                        current_node_id=memo.current_node_id,
                        created_at=memo.created_at,
                        updated_at=memo.updated_at,
                    )

    async def get_node(self, node_id: str) -> Optional[VersionNode]:
        with _storage_errors("get_node"):
            async with self._sessionmaker() as db:
                row = await NodeRepo(db).get_node(node_id)
        return _node_from_row(row) if row else None

    async def put_node(self, node: VersionNode) -> None:
        with _storage_errors("put_node"):
            async with self._sessionmaker() as db:
                async with db.begin():
                    await NodeRepo(db).add_node(_node_to_row(node))

    async def find_nodes_by_memo(self, memo_id: str) -> list[VersionNode]:
        with _storage_errors("find_nodes_by_memo"):
            async with self._sessionmaker() as db:
                rows = await NodeRepo(db).list_by_memo(memo_id)
        return [_node_from_row(row) for row in rows]

    async def find_memo_ids_by_user(self, user_id: str) -> list[str]:
        with _storage_errors("find_memo_ids_by_user"):
            async with self._sessionmaker() as db:
                return await NodeRepo(db).list_memo_ids_for_user(user_id)

    async def append_node(self, node: VersionNode, expected_current_node_id: str) -> Memo:
        with _storage_errors("append_node"):
            async with self._sessionmaker() as db:
                memo_repo = MemoRepo(db)
                async with db.begin():
                    await NodeRepo(db).add_node(_node_to_row(node))
                    swapped = await memo_repo.compare_and_set_current(
                        memo_id=node.memo_id,
                        expected_node_id=expected_current_node_id,
                        new_node_id=node.id,
                        updated_at=node.created_at,
                    )
                    if not swapped:
                        raise WriteConflictError(
                            "WRITE_CONFLICT",
                            f"Memo {node.memo_id} moved past {expected_current_node_id}",
                        )
                    row = await memo_repo.get_memo(node.memo_id)
        return _memo_from_row(row)


@contextmanager
def _storage_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except IntegrityError as exc:
        raise WriteConflictError(
            "WRITE_CONFLICT", f"Concurrent write rejected during {operation}"
        ) from exc
    except SQLAlchemyError as exc:
        logger.exception("Memo store failed during %s", operation)
        raise StorageUnavailableError(
            "STORAGE_UNAVAILABLE", f"Memo store failed during {operation}"
        ) from exc


def _memo_from_row(row: MemoRow) -> Memo:
    return Memo(
        id=row.id,
        root_node_id=row.root_node_id,
        current_node_id=row.current_node_id,
        created_at=ensure_utc(row.created_at),
        updated_at=ensure_utc(row.updated_at),
    )


def _node_from_row(row: MemoNodeRow) -> VersionNode:
    return VersionNode(
        id=row.id,
        memo_id=row.memo_id,
        version=row.version,
        title=row.title,
        content=row.content,
        status=MemoStatus(row.status),
        sender_id=row.sender_id,
        recipient_id=row.recipient_id,
        assigned_to_id=row.assigned_to_id,
        action_type=MemoActionType(row.action_type),
        action_by_id=row.action_by_id,
        action_comment=row.action_comment,
        parent_node_ids=tuple(row.parent_node_ids or ()),
        metadata=row.node_metadata or {},
        created_at=ensure_utc(row.created_at),
    )


def _node_to_row(node: VersionNode) -> MemoNodeRow:
    return MemoNodeRow(
        id=node.id,
        memo_id=node.memo_id,
        version=node.version,
        title=node.title,
        content=node.content,
        status=node.status.value,
        sender_id=node.sender_id,
        recipient_id=node.recipient_id,
        assigned_to_id=node.assigned_to_id,
        action_type=node.action_type.value,
        action_by_id=node.action_by_id,
        action_comment=node.action_comment,
        parent_node_ids=list(node.parent_node_ids),
        node_metadata=node.metadata_dict(),
        created_at=node.created_at,
    )
