"""Session CRUD: validation and lifecycle checks around the repository.

Every function takes an optional ``now``; when omitted the module-level
``utcnow`` is used, which is the hook tests patch to move time forward.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from ...models.session import AssessmentSession, SessionStatus
from ...platform.config import ConflictPolicy, settings
from ...shared.utils import generate_external_session_id, new_id, utcnow
from ..player_config.service import effective_session_timeout
from . import lifecycle
from .repository import SessionRepository

logger = logging.getLogger(__name__)

MAX_PAGE = 10000
MAX_PAGE_SIZE = 100


# ---------------------------------------------------------------------------
# Error helpers
# ---------------------------------------------------------------------------

def not_found(resource: str) -> HTTPException:
    return HTTPException(status_code=404, detail={"code": "NOT_FOUND", "message": f"{resource} not found"})


def session_expired(session_id: str) -> HTTPException:
    return HTTPException(
        status_code=410,
        detail={"code": "SESSION_EXPIRED", "message": "Session has expired", "session_id": session_id},
    )


def session_not_active(session_id: str, status: SessionStatus) -> HTTPException:
    return HTTPException(
        status_code=410,
        detail={
            "code": "SESSION_NOT_ACTIVE",
            "message": f"Session is {status.value.lower()}",
            "session_id": session_id,
        },
    )


def inactive_session_error(session: AssessmentSession, now: datetime) -> HTTPException:
    """410 for a session that no longer accepts writes: lapsed, or closed before expiry."""
    status = lifecycle.compute_status(session, now)
    if status == SessionStatus.EXPIRED:
        return session_expired(session.id)
    return session_not_active(session.id, status)


def bad_request(code: str, message: str) -> HTTPException:
    return HTTPException(status_code=400, detail={"code": code, "message": message})


def _now(now: Optional[datetime]) -> datetime:
    return now or utcnow()


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------

def session_payload(session: AssessmentSession, now: datetime, include_results: bool = False) -> Dict[str, Any]:
    """Response dict with the computed status in place of the stored one."""
    remaining = lifecycle.time_remaining(session, now)
    data: Dict[str, Any] = {
        "id": session.id,
        "student_id": session.student_id,
        "assessment_id": session.assessment_id,
        "external_session_id": session.external_session_id,
        "status": lifecycle.compute_status(session, now).value,
        "created_at": session.created_at,
        "updated_at": session.updated_at,
        "expires_at": session.expires_at,
        "time_remaining_seconds": int(remaining.total_seconds()) if remaining is not None else None,
        "is_resumable": lifecycle.is_resumable(session, now),
    }
    if include_results:
        data["results"] = list(session.results)
    return data


# ---------------------------------------------------------------------------
# Lazy expiry
# ---------------------------------------------------------------------------

def _expire_in_place(session: AssessmentSession, now: datetime) -> None:
    session.status = SessionStatus.EXPIRED
    session.updated_at = now


async def persist_lapsed(db: AsyncSession, session: AssessmentSession, now: datetime) -> bool:
    """Write EXPIRED for a stored-ACTIVE session whose expiry has passed."""
    if session.status != SessionStatus.ACTIVE or not lifecycle.has_lapsed(session, now):
        return False
    _expire_in_place(session, now)
    await db.commit()
    logger.info("Session expired on read", extra={"session_id": session.id})
    return True


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------

async def create_session(
    db: AsyncSession,
    student_id: str,
    assessment_id: str,
    now: Optional[datetime] = None,
    policy: Optional[ConflictPolicy] = None,
) -> AssessmentSession:
    now = _now(now)
    policy = policy or settings.SESSION_CONFLICT_POLICY
    repo = SessionRepository(db)

    previous = await repo.stored_active_for_student(student_id)
    live = [s for s in previous if lifecycle.is_active(s, now)]
    if live and policy == "reject":
        raise HTTPException(
            status_code=409,
            detail={
                "code": "ACTIVE_SESSION_EXISTS",
                "message": "Student already has an active session",
                "session_id": live[0].id,
            },
        )
    for old in previous:
        # Lapsed rows are always normalized; live ones only when replacing them.
        if lifecycle.has_lapsed(old, now) or policy == "auto_expire_previous":
            _expire_in_place(old, now)
            logger.info("Expired previous session for student", extra={"session_id": old.id, "student_id": student_id})

    timeout = await effective_session_timeout(db)
    session = repo.add(
        AssessmentSession(
            id=new_id(),
            student_id=student_id,
            assessment_id=assessment_id,
            external_session_id=generate_external_session_id(),
            status=SessionStatus.ACTIVE,
            created_at=now,
            updated_at=now,
            expires_at=now + timeout,
            results=[],
        )
    )
    await db.commit()
    logger.info("Session created", extra={"session_id": session.id, "student_id": student_id})
    return session


async def get_session(db: AsyncSession, session_id: str, now: Optional[datetime] = None) -> AssessmentSession:
    now = _now(now)
    session = await SessionRepository(db).get(session_id)
    if session is None:
        raise not_found("Session")
    await persist_lapsed(db, session, now)
    return session


async def get_session_by_external_id(
    db: AsyncSession, external_session_id: str, now: Optional[datetime] = None
) -> AssessmentSession:
    now = _now(now)
    session = await SessionRepository(db).get_by_external_id(external_session_id)
    if session is None:
        raise not_found("Session")
    await persist_lapsed(db, session, now)
    return session


async def get_latest_active_session(
    db: AsyncSession, student_id: str, now: Optional[datetime] = None
) -> AssessmentSession:
    now = _now(now)
    repo = SessionRepository(db)
    lapsed = [s for s in await repo.stored_active_for_student(student_id) if lifecycle.has_lapsed(s, now)]
    for old in lapsed:
        _expire_in_place(old, now)
        logger.info("Session expired on read", extra={"session_id": old.id, "student_id": student_id})
    if lapsed:
        await db.commit()

    session = await repo.latest_active_for_student(student_id, now)
    if session is None:
        raise not_found("Active session")
    return session


async def list_student_sessions(
    db: AsyncSession, student_id: str, page: int = 1, limit: int = 10, now: Optional[datetime] = None
) -> Dict[str, Any]:
    now = _now(now)
    if page < 1 or page > MAX_PAGE:
        raise bad_request("INVALID_PAGINATION", f"page must be between 1 and {MAX_PAGE}")
    if limit < 1 or limit > MAX_PAGE_SIZE:
        raise bad_request("INVALID_PAGINATION", f"limit must be between 1 and {MAX_PAGE_SIZE}")

    repo = SessionRepository(db)
    total = await repo.count_for_student(student_id)
    total_pages = math.ceil(total / limit) if total else 0
    if total and page > total_pages:
        raise bad_request("PAGE_NOT_FOUND", f"Page {page} does not exist; last page is {total_pages}")

    items = await repo.page_for_student(student_id, (page - 1) * limit, limit)
    return {
        "items": [session_payload(s, now) for s in items],
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_previous": page > 1,
    }


async def update_session(
    db: AsyncSession, session_id: str, status: str, now: Optional[datetime] = None
) -> AssessmentSession:
    now = _now(now)
    try:
        new_status = SessionStatus(status)
    except ValueError:
        allowed = ", ".join(s.value for s in SessionStatus)
        raise bad_request("INVALID_STATUS", f"Status must be one of: {allowed}")

    session = await SessionRepository(db).get(session_id)
    if session is None:
        raise not_found("Session")
    session.status = new_status
    session.updated_at = now
    await db.commit()
    logger.info("Session status set to %s", new_status.value, extra={"session_id": session.id})
    return session


async def resume_session(db: AsyncSession, session_id: str, now: Optional[datetime] = None) -> AssessmentSession:
    now = _now(now)
    session = await get_session(db, session_id, now)
    if not lifecycle.is_active(session, now):
        raise inactive_session_error(session, now)
    if not lifecycle.is_resumable(session, now):
        raise HTTPException(
            status_code=409,
            detail={"code": "SESSION_NOT_RESUMABLE", "message": "Session has no player session to resume"},
        )
    session.updated_at = now
    await db.commit()
    logger.info("Session resumed", extra={"session_id": session.id})
    return session


async def get_session_progress(db: AsyncSession, session_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = _now(now)
    session = await get_session(db, session_id, now)
    remaining = lifecycle.time_remaining(session, now)
    status = lifecycle.compute_status(session, now)
    return {
        "session_id": session.id,
        "status": status.value,
        "results_count": await SessionRepository(db).count_results(session.id),
        "time_remaining_seconds": int(remaining.total_seconds()) if remaining is not None else None,
        "time_remaining_display": lifecycle.format_remaining(remaining),
        "is_expired": status == SessionStatus.EXPIRED,
        "is_expiring_soon": lifecycle.is_expiring_soon(session, now),
    }
