"""Rate-limit counter repository."""

from datetime import datetime

from sqlalchemy import case, delete
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from eventra.db.base import to_utc
from eventra.db.models.rate_limit import RateLimitRow
from eventra.repositories.base import BaseRepository


class RateLimitRepository(BaseRepository):
    def __init__(self, session: AsyncSession):
        super().__init__(session, RateLimitRow)

    def _insert(self):
        dialect = self.session.get_bind().dialect.name
        if dialect == "postgresql":
            return pg_insert(RateLimitRow)
        if dialect == "sqlite":
            return sqlite_insert(RateLimitRow)
        raise NotImplementedError(f"Atomic upsert is not supported on {dialect}")

    async def consume(self, key: str, endpoint: str, now: datetime, window_reset_at: datetime) -> tuple[int, datetime]:
        """Atomically open a new window or count one more hit in the current one.

        A single ``INSERT ... ON CONFLICT DO UPDATE ... RETURNING`` statement:
        a missing row or an expired window becomes ``count=1`` with a fresh
        ``reset_at``; a live window is incremented and keeps its ``reset_at``.
        Returns the post-update ``(count, reset_at)``.
        """
        stmt = self._insert().values(
            key=key,
            endpoint=endpoint,
            count=1,
            reset_at=window_reset_at,
            created_at=now,
            updated_at=now,
        )
        expired = RateLimitRow.reset_at <= now
        stmt = stmt.on_conflict_do_update(
            index_elements=[RateLimitRow.key, RateLimitRow.endpoint],
            set_={
                "count": case((expired, 1), else_=RateLimitRow.count + 1),
                "reset_at": case((expired, stmt.excluded.reset_at), else_=RateLimitRow.reset_at),
                "updated_at": now,
            },
        ).returning(RateLimitRow.count, RateLimitRow.reset_at)

        result = await self.session.execute(stmt)
        count, reset_at = result.one()
        return count, to_utc(reset_at)

    async def delete_expired(self, now: datetime) -> int:
        stmt = delete(RateLimitRow).where(RateLimitRow.reset_at < now)
        result = await self.session.execute(stmt)
        return result.rowcount or 0
