from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ...components.sessions import service as session_service
from ...platform.database import get_async_db
from ...schemas.session import (
    SessionCreate,
    SessionHistoryResponse,
    SessionProgressResponse,
    SessionResponse,
    SessionStatusUpdate,
)

router = APIRouter(prefix="/sessions", tags=["Sessions"])


@router.post("", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def create_session(data: SessionCreate, db: AsyncSession = Depends(get_async_db)):
    now = session_service.utcnow()
    session = await session_service.create_session(db, data.student_id, data.assessment_id, now=now)
    return session_service.session_payload(session, now, include_results=True)


@router.get("", response_model=SessionResponse)
async def get_active_session(
    student_id: str = Query(alias="studentId", min_length=3, max_length=255),
    db: AsyncSession = Depends(get_async_db),
):
    now = session_service.utcnow()
    session = await session_service.get_latest_active_session(db, student_id, now=now)
    return session_service.session_payload(session, now, include_results=True)


@router.put("", response_model=SessionResponse)
async def update_session(
    data: SessionStatusUpdate,
    session_id: str = Query(alias="sessionId", min_length=3, max_length=36),
    db: AsyncSession = Depends(get_async_db),
):
    now = session_service.utcnow()
    session = await session_service.update_session(db, session_id, data.status, now=now)
    return session_service.session_payload(session, now)


@router.get("/history", response_model=SessionHistoryResponse)
async def list_session_history(
    student_id: str = Query(alias="studentId", min_length=3, max_length=255),
    page: int = Query(default=1, ge=1, le=session_service.MAX_PAGE),
    limit: int = Query(default=10, ge=1, le=session_service.MAX_PAGE_SIZE),
    db: AsyncSession = Depends(get_async_db),
):
    return await session_service.list_student_sessions(db, student_id, page=page, limit=limit)


@router.get("/external/{external_session_id}", response_model=SessionResponse)
async def get_session_by_external_id(external_session_id: str, db: AsyncSession = Depends(get_async_db)):
    now = session_service.utcnow()
    session = await session_service.get_session_by_external_id(db, external_session_id, now=now)
    return session_service.session_payload(session, now)


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(session_id: str, db: AsyncSession = Depends(get_async_db)):
    now = session_service.utcnow()
    session = await session_service.get_session(db, session_id, now=now)
    return session_service.session_payload(session, now, include_results=True)


@router.post("/{session_id}/resume", response_model=SessionResponse)
async def resume_session(session_id: str, db: AsyncSession = Depends(get_async_db)):
    now = session_service.utcnow()
    session = await session_service.resume_session(db, session_id, now=now)
    return session_service.session_payload(session, now)


@router.get("/{session_id}/progress", response_model=SessionProgressResponse)
async def get_session_progress(session_id: str, db: AsyncSession = Depends(get_async_db)):
    return await session_service.get_session_progress(db, session_id)
