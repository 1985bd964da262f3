from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from memotrail.db.models import MemoRow


class MemoRepo:
    """Repository for memo control records."""

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def get_memo(self, memo_id: str) -> Optional[MemoRow]:
        """Fetch a memo by ID."""

        result = await self._db.execute(select(MemoRow).where(MemoRow.id == memo_id))
        return result.scalar_one_or_none()

    async def list_memos(self, memo_ids: Sequence[str]) -> list[MemoRow]:
        """Fetch memos by ID ordered by last update, newest first."""

        if not memo_ids:
            return []
        result = await self._db.execute(
            select(MemoRow)
            .where(MemoRow.id.in_(list(memo_ids)))
            .order_by(MemoRow.updated_at.desc(), MemoRow.created_at.desc())
        )
        return list(result.scalars())

    async def upsert_memo(
        self,
        memo_id: str,
        root_node_id: str,
        current_node_id: str,
        created_at: datetime,
        updated_at: datetime,
    ) -> MemoRow:
        """Insert a memo or overwrite its mutable pointer fields."""

        memo = await self.get_memo(memo_id)
        if memo is None:
            memo = MemoRow(
                id=memo_id,
                root_node_id=root_node_id,
                current_node_id=current_node_id,
                created_at=created_at,
                updated_at=updated_at,
            )
            self._db.add(memo)
        else:
            memo.current_node_id = current_node_id
            memo.updated_at = updated_at
        await self._db.flush()
        return memo

    async def compare_and_set_current(
        self,
        memo_id: str,
        expected_node_id: str,
        new_node_id: str,
        updated_at: datetime,
    ) -> bool:
        """Advance the current pointer only if it still equals ``expected_node_id``."""

        result = await self._db.execute(
            update(MemoRow)
            .where(MemoRow.id == memo_id, MemoRow.current_node_id == expected_node_id)
            .values(current_node_id=new_node_id, updated_at=updated_at)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
