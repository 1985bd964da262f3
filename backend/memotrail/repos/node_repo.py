from __future__ import annotations

from typing import Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from memotrail.db.models import MemoNodeRow


class NodeRepo:
    """Repository for immutable memo version nodes."""

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def add_node(self, node: MemoNodeRow) -> MemoNodeRow:
        """Insert a node; duplicates surface as ``IntegrityError`` on flush."""

        self._db.add(node)
        await self._db.flush()
        return node

    async def get_node(self, node_id: str) -> Optional[MemoNodeRow]:
        """Fetch a node by ID."""

        result = await self._db.execute(select(MemoNodeRow).where(MemoNodeRow.id == node_id))
        return result.scalar_one_or_none()

    async def list_by_memo(self, memo_id: str) -> list[MemoNodeRow]:
        """Return every node of a memo in ascending version order."""

        result = await self._db.execute(
            select(MemoNodeRow)
            .where(MemoNodeRow.memo_id == memo_id)
            .order_by(MemoNodeRow.version.asc())
        )
        return list(result.scalars())

    async def list_memo_ids_for_user(self, user_id: str) -> list[str]:
        """Return distinct memo IDs where the user ever sent, received or was assigned."""

        result = await self._db.execute(
            select(MemoNodeRow.memo_id)
            .where(
                or_(
                    MemoNodeRow.sender_id == user_id,
                    MemoNodeRow.recipient_id == user_id,
                    MemoNodeRow.assigned_to_id == user_id,
                )
            )
            .distinct()
        )
        return list(result.scalars())
