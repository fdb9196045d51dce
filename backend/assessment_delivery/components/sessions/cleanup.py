"""Session cleanup: the periodic sweep that expires and reclaims stale sessions.

One ``SessionCleanupService`` is built by the application lifespan and kept on
``app.state``. The sweep runs in four steps, each in its own short
transaction(s):

a. stored-ACTIVE sessions past ``expires_at`` become EXPIRED
b. stored-ACTIVE sessions idle longer than the abandonment threshold become EXPIRED
c. terminal sessions older than the retention window are deleted with their results
d. the database is compacted where the backend supports it

The sweep never raises. Failures on a single record are logged and the record
is skipped; a step that fails outright counts what it managed.
"""

from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from ...platform.config import settings
from ...platform.database import async_engine, async_session_maker, compact_database, database_size
from ...platform.scheduler import ScheduledJob, Scheduler
from ...shared.utils import isoformat_or_none, utcnow
from .repository import SessionRepository

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


@dataclass
class CleanupStats:
    expired_sessions: int = 0
    abandoned_sessions: int = 0
    deleted_sessions: int = 0
    total_cleaned: int = 0
    database_size_before: int = 0
    database_size_after: int = 0
    duration_ms: float = 0.0
    skipped: bool = False
    started_at: Optional[datetime] = field(default=None)

    def as_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["started_at"] = isoformat_or_none(self.started_at)
        return data


class SessionCleanupService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        scheduler: Scheduler,
        *,
        engine: Optional[AsyncEngine] = None,
        clock: Clock = utcnow,
        interval: timedelta = timedelta(minutes=30),
        abandoned_after: timedelta = timedelta(hours=24),
        retention: timedelta = timedelta(days=7),
        count_threshold: int = 100,
    ):
        self._session_factory = session_factory
        self._scheduler = scheduler
        self._engine = engine
        self._clock = clock
        self.interval = interval
        self.abandoned_after = abandoned_after
        self.retention = retention
        self.count_threshold = count_threshold

        self._running = False
        self._job: Optional[ScheduledJob] = None
        self._timer_anchor: Optional[datetime] = None
        self._last_cleanup_at: Optional[datetime] = None
        self._last_stats: Optional[CleanupStats] = None

    @classmethod
    def from_settings(
        cls,
        scheduler: Scheduler,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        engine: Optional[AsyncEngine] = None,
        clock: Clock = utcnow,
    ) -> "SessionCleanupService":
        return cls(
            session_factory or async_session_maker,
            scheduler,
            engine=engine or async_engine,
            clock=clock,
            interval=settings.cleanup_interval,
            abandoned_after=settings.abandoned_after,
            retention=settings.retention,
            count_threshold=settings.CLEANUP_SESSION_COUNT_THRESHOLD,
        )

    @property
    def is_running(self) -> bool:
        """True while a sweep is in flight."""
        return self._running

    @property
    def timer_active(self) -> bool:
        return self._job is not None and self._job.active

    # ------------------------------------------------------------------
    # Sweep
    # ------------------------------------------------------------------

    async def perform_cleanup(self) -> CleanupStats:
        if self._running:
            logger.warning("Session cleanup already in progress; skipping this run")
            return CleanupStats(skipped=True)
        # Set before the first await so an overlapping call sees it.
        self._running = True
        started = time.perf_counter()
        now = self._clock()
        stats = CleanupStats(started_at=now)
        try:
            stats.database_size_before = await self._database_size()
            stats.expired_sessions = await self._expire_overdue(now)
            stats.abandoned_sessions = await self._expire_abandoned(now)
            stats.deleted_sessions = await self._delete_retention_due(now)
            await self._compact()
            stats.database_size_after = await self._database_size()
        finally:
            self._running = False

        stats.total_cleaned = stats.expired_sessions + stats.abandoned_sessions + stats.deleted_sessions
        stats.duration_ms = round((time.perf_counter() - started) * 1000, 1)
        self._last_cleanup_at = now
        self._last_stats = stats
        logger.info(
            "Session cleanup finished: expired=%d abandoned=%d deleted=%d duration=%.1fms",
            stats.expired_sessions,
            stats.abandoned_sessions,
            stats.deleted_sessions,
            stats.duration_ms,
        )
        return stats

    async def update_expired_statuses(self) -> int:
        """Run only the overdue-expiry step. Returns the number of sessions transitioned."""
        return await self._expire_overdue(self._clock())

    async def _expire_overdue(self, now: datetime) -> int:
        ids = await self._collect("expired", lambda repo: repo.overdue_active_ids(now))
        return await self._expire_each(ids, now, reason="expired")

    async def _expire_abandoned(self, now: datetime) -> int:
        idle_cutoff = now - self.abandoned_after
        ids = await self._collect("abandoned", lambda repo: repo.abandoned_ids(now, idle_cutoff))
        return await self._expire_each(ids, now, reason="abandoned")

    async def _delete_retention_due(self, now: datetime) -> int:
        retention_cutoff = now - self.retention
        ids = await self._collect("retention-due", lambda repo: repo.retention_due_ids(retention_cutoff))
        deleted = 0
        for session_id in ids:
            try:
                async with self._session_factory() as db:
                    removed = await SessionRepository(db).delete_with_results(session_id)
                    await db.commit()
            except SQLAlchemyError:
                logger.exception("Failed to delete session", extra={"session_id": session_id})
                continue
            if removed:
                deleted += 1
                logger.info("Deleted session past retention", extra={"session_id": session_id})
        return deleted

    async def _collect(self, label: str, query) -> List[str]:
        try:
            async with self._session_factory() as db:
                return await query(SessionRepository(db))
        except Exception:
            logger.exception("Could not list %s sessions", label)
            return []

    async def _expire_each(self, ids: List[str], now: datetime, reason: str) -> int:
        changed = 0
        for session_id in ids:
            try:
                async with self._session_factory() as db:
                    transitioned = await SessionRepository(db).mark_expired(session_id, now)
                    await db.commit()
            except SQLAlchemyError:
                logger.exception("Failed to expire session", extra={"session_id": session_id})
                continue
            if transitioned:
                changed += 1
                logger.info("Session marked EXPIRED (%s)", reason, extra={"session_id": session_id})
        return changed

    async def _compact(self) -> None:
        try:
            compacted = await compact_database(self._engine or async_engine)
        except Exception:
            logger.exception("Database compaction failed")
            return
        if not compacted:
            logger.info("Database compaction not supported by this backend; skipped")

    async def _database_size(self) -> int:
        try:
            return await database_size(self._engine or async_engine)
        except Exception:
            logger.warning("Could not read database size", exc_info=True)
            return 0

    # ------------------------------------------------------------------
    # Manual operations
    # ------------------------------------------------------------------

    async def force_cleanup_session(self, session_id: str) -> bool:
        """Delete one session and all of its results, whatever its status."""
        async with self._session_factory() as db:
            repo = SessionRepository(db)
            if await repo.get(session_id) is None:
                return False
            await repo.delete_with_results(session_id)
            await db.commit()
        logger.info("Force-cleaned session", extra={"session_id": session_id})
        return True

    async def get_cleanup_stats(self, include_details: bool = False) -> Dict[str, Any]:
        now = self._clock()
        idle_cutoff = now - self.abandoned_after
        retention_cutoff = now - self.retention
        async with self._session_factory() as db:
            repo = SessionRepository(db)
            stats: Dict[str, Any] = await repo.status_counts(now, idle_cutoff, retention_cutoff)
            if include_details:
                stats["details"] = {
                    "expired_session_ids": await repo.overdue_active_ids(now),
                    "abandoned_session_ids": await repo.abandoned_ids(now, idle_cutoff),
                    "retention_due_session_ids": await repo.retention_due_ids(retention_cutoff),
                }
        stats.update(
            is_running=self._running,
            automated_cleanup_active=self.timer_active,
            last_cleanup_at=isoformat_or_none(self._last_cleanup_at),
            next_cleanup_at=isoformat_or_none(self._next_cleanup_at()),
            last_cleanup=self._last_stats.as_dict() if self._last_stats else None,
        )
        return stats

    async def is_cleanup_needed(self) -> bool:
        try:
            stats = await self.get_cleanup_stats()
        except Exception:
            logger.exception("Could not read cleanup statistics")
            return False
        return (
            stats["expired_sessions"] > 0
            or stats["abandoned_sessions"] > 0
            or stats["total_sessions"] > self.count_threshold
        )

    # ------------------------------------------------------------------
    # Recurring timer
    # ------------------------------------------------------------------

    def start(self) -> bool:
        """Register the recurring sweep. Returns False if it was already running."""
        if self.timer_active:
            logger.info("Automated session cleanup already running")
            return False
        self._job = self._scheduler.call_every(self.interval.total_seconds(), self._scheduled_run)
        self._timer_anchor = self._clock()
        logger.info("Automated session cleanup started (every %s)", self.interval)
        return True

    def stop(self) -> bool:
        if self._job is None:
            return False
        self._job.cancel()
        self._job = None
        self._timer_anchor = None
        logger.info("Automated session cleanup stopped")
        return True

    def status(self) -> Dict[str, Any]:
        return {
            "automated_cleanup_active": self.timer_active,
            "is_running": self._running,
            "interval_minutes": self.interval.total_seconds() / 60,
            "last_cleanup_at": isoformat_or_none(self._last_cleanup_at),
            "next_cleanup_at": isoformat_or_none(self._next_cleanup_at()),
        }

    def _next_cleanup_at(self) -> Optional[datetime]:
        if not self.timer_active or self._timer_anchor is None:
            return None
        return self._timer_anchor + self.interval

    async def _scheduled_run(self) -> None:
        self._timer_anchor = self._clock()
        await self.perform_cleanup()
