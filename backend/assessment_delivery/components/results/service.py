"""Result CRUD. Writes are only accepted while the parent session is active."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from ...models.result import Result
from ...models.session import AssessmentSession
from ...shared.utils import new_id, utcnow
from ..sessions import lifecycle
from ..sessions.repository import SessionRepository
from ..sessions.service import inactive_session_error, not_found, persist_lapsed

logger = logging.getLogger(__name__)

_EDITABLE_FIELDS = ("response", "score", "time_spent")


async def _writable_session(db: AsyncSession, session_id: str, now: datetime) -> AssessmentSession:
    session = await SessionRepository(db).get(session_id)
    if session is None:
        raise not_found("Session")
    await persist_lapsed(db, session, now)
    if not lifecycle.is_active(session, now):
        raise inactive_session_error(session, now)
    return session


async def _get_result(db: AsyncSession, result_id: str) -> Result:
    result = await SessionRepository(db).get_result(result_id)
    if result is None:
        raise not_found("Result")
    return result


async def get_result(db: AsyncSession, result_id: str) -> Result:
    return await _get_result(db, result_id)


async def list_results(db: AsyncSession, session_id: str) -> List[Result]:
    repo = SessionRepository(db)
    if await repo.get(session_id) is None:
        raise not_found("Session")
    return await repo.results_for_session(session_id)


async def create_result(
    db: AsyncSession,
    session_id: str,
    response: Dict[str, Any],
    score: Optional[float] = None,
    time_spent: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Tuple[Result, int]:
    """Store a player response verbatim. Returns the result and the session's result count."""
    now = now or utcnow()
    session = await _writable_session(db, session_id, now)
    result = Result(
        id=new_id(),
        response=response,
        score=score,
        time_spent=time_spent,
        created_at=now,
        updated_at=now,
    )
    # delete-orphan cascade requires a parent on pending results.
    session.results.append(result)
    session.updated_at = now
    await db.commit()
    count = await SessionRepository(db).count_results(session.id)
    logger.info("Result stored", extra={"session_id": session.id, "result_id": result.id})
    return result, count


async def update_result(
    db: AsyncSession, result_id: str, changes: Dict[str, Any], now: Optional[datetime] = None
) -> Result:
    now = now or utcnow()
    result = await _get_result(db, result_id)
    session = await _writable_session(db, result.session_id, now)
    for key, value in changes.items():
        if key in _EDITABLE_FIELDS:
            setattr(result, key, value)
    result.updated_at = now
    session.updated_at = now
    await db.commit()
    logger.info("Result updated", extra={"session_id": session.id, "result_id": result.id})
    return result


async def delete_result(db: AsyncSession, result_id: str, now: Optional[datetime] = None) -> None:
    now = now or utcnow()
    result = await _get_result(db, result_id)
    session = await _writable_session(db, result.session_id, now)
    await db.delete(result)
    session.updated_at = now
    await db.commit()
    logger.info("Result deleted", extra={"session_id": session.id, "result_id": result_id})
