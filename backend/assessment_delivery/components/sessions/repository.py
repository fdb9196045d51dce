"""Session and result persistence: the queries the services and the sweep run."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import String, and_, case, cast, delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ...models.result import Result
from ...models.session import AssessmentSession, SessionStatus

TERMINAL_STATUSES = (SessionStatus.EXPIRED, SessionStatus.COMPLETED, SessionStatus.CANCELLED)


class SessionRepository:
    """Create/find/update/delete for sessions and their results.

    The repository never commits; callers own the transaction.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def get(self, session_id: str) -> Optional[AssessmentSession]:
        return await self.db.get(AssessmentSession, session_id)

    async def get_by_external_id(self, external_session_id: str) -> Optional[AssessmentSession]:
        stmt = select(AssessmentSession).where(AssessmentSession.external_session_id == external_session_id)
        return (await self.db.execute(stmt)).scalars().first()

    async def latest_active_for_student(self, student_id: str, now: datetime) -> Optional[AssessmentSession]:
        """Newest stored-ACTIVE session that has not reached its expiry."""
        stmt = (
            select(AssessmentSession)
            .where(
                AssessmentSession.student_id == student_id,
                AssessmentSession.status == SessionStatus.ACTIVE,
                or_(AssessmentSession.expires_at.is_(None), AssessmentSession.expires_at > now),
            )
            .order_by(AssessmentSession.created_at.desc(), AssessmentSession.id.desc())
            .limit(1)
        )
        return (await self.db.execute(stmt)).scalars().first()

    async def stored_active_for_student(self, student_id: str) -> List[AssessmentSession]:
        stmt = select(AssessmentSession).where(
            AssessmentSession.student_id == student_id,
            AssessmentSession.status == SessionStatus.ACTIVE,
        )
        return list((await self.db.execute(stmt)).scalars().all())

    async def count_for_student(self, student_id: str) -> int:
        stmt = select(func.count()).select_from(AssessmentSession).where(AssessmentSession.student_id == student_id)
        return int((await self.db.execute(stmt)).scalar_one())

    async def page_for_student(self, student_id: str, offset: int, limit: int) -> List[AssessmentSession]:
        stmt = (
            select(AssessmentSession)
            .where(AssessmentSession.student_id == student_id)
            .order_by(AssessmentSession.created_at.desc(), AssessmentSession.id.desc())
            .offset(offset)
            .limit(limit)
        )
        return list((await self.db.execute(stmt)).scalars().all())

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def add(self, session: AssessmentSession) -> AssessmentSession:
        self.db.add(session)
        return session

    async def mark_expired(self, session_id: str, now: datetime) -> bool:
        """ACTIVE -> EXPIRED. Conditional, so a second call is a no-op."""
        stmt = (
            update(AssessmentSession)
            .where(AssessmentSession.id == session_id, AssessmentSession.status == SessionStatus.ACTIVE)
            .values(status=SessionStatus.EXPIRED, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        return (result.rowcount or 0) > 0

    async def delete_with_results(self, session_id: str) -> bool:
        """Delete a session and every result that references it."""
        await self.db.execute(
            delete(Result).where(Result.session_id == session_id).execution_options(synchronize_session=False)
        )
        result = await self.db.execute(
            delete(AssessmentSession)
            .where(AssessmentSession.id == session_id)
            .execution_options(synchronize_session=False)
        )
        return (result.rowcount or 0) > 0

    # ------------------------------------------------------------------
    # Sweep queries
    # ------------------------------------------------------------------

    async def overdue_active_ids(self, now: datetime) -> List[str]:
        """Stored ACTIVE but already past expires_at."""
        stmt = select(AssessmentSession.id).where(
            AssessmentSession.status == SessionStatus.ACTIVE,
            AssessmentSession.expires_at.is_not(None),
            AssessmentSession.expires_at <= now,
        )
        return list((await self.db.execute(stmt)).scalars().all())

    async def abandoned_ids(self, now: datetime, idle_cutoff: datetime) -> List[str]:
        """Stored ACTIVE, not yet expired, untouched since idle_cutoff."""
        stmt = select(AssessmentSession.id).where(
            AssessmentSession.status == SessionStatus.ACTIVE,
            AssessmentSession.updated_at < idle_cutoff,
            or_(AssessmentSession.expires_at.is_(None), AssessmentSession.expires_at > now),
        )
        return list((await self.db.execute(stmt)).scalars().all())

    async def retention_due_ids(self, retention_cutoff: datetime) -> List[str]:
        """Terminal sessions whose last update is older than the retention window."""
        stmt = select(AssessmentSession.id).where(
            AssessmentSession.status.in_(TERMINAL_STATUSES),
            AssessmentSession.updated_at < retention_cutoff,
        )
        return list((await self.db.execute(stmt)).scalars().all())

    async def status_counts(self, now: datetime, idle_cutoff: datetime, retention_cutoff: datetime) -> Dict[str, int]:
        """Counts by computed status: any row past expires_at counts as EXPIRED."""
        lapsed = and_(AssessmentSession.expires_at.is_not(None), AssessmentSession.expires_at <= now)
        computed = case(
            (lapsed, SessionStatus.EXPIRED.value),
            else_=cast(AssessmentSession.status, String(16)),
        ).label("computed_status")
        rows = (await self.db.execute(select(computed, func.count()).group_by(computed))).all()
        by_status = {status: count for status, count in rows}
        return {
            "total_sessions": sum(by_status.values()),
            "active_sessions": by_status.get(SessionStatus.ACTIVE.value, 0),
            "expired_sessions": by_status.get(SessionStatus.EXPIRED.value, 0),
            "completed_sessions": by_status.get(SessionStatus.COMPLETED.value, 0),
            "cancelled_sessions": by_status.get(SessionStatus.CANCELLED.value, 0),
            "abandoned_sessions": len(await self.abandoned_ids(now, idle_cutoff)),
            "retention_due_sessions": len(await self.retention_due_ids(retention_cutoff)),
        }

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    async def get_result(self, result_id: str) -> Optional[Result]:
        return await self.db.get(Result, result_id)

    async def results_for_session(self, session_id: str) -> List[Result]:
        stmt = select(Result).where(Result.session_id == session_id).order_by(Result.created_at.asc(), Result.id.asc())
        return list((await self.db.execute(stmt)).scalars().all())

    async def count_results(self, session_id: Optional[str] = None) -> int:
        stmt = select(func.count()).select_from(Result)
        if session_id is not None:
            stmt = stmt.where(Result.session_id == session_id)
        return int((await self.db.execute(stmt)).scalar_one())

    async def count_sessions(self) -> int:
        return int((await self.db.execute(select(func.count()).select_from(AssessmentSession))).scalar_one())
