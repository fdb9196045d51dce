from typing import List, Union

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ...components.results import service as result_service
from ...components.sessions.service import bad_request
from ...platform.database import get_async_db
from ...schemas.result import ResultCreate, ResultCreateResponse, ResultResponse, ResultUpdate

router = APIRouter(prefix="/results", tags=["Results"])


@router.get("", response_model=Union[ResultResponse, List[ResultResponse]])
async def get_results(
    session_id: str | None = Query(default=None, alias="sessionId", min_length=3, max_length=36),
    result_id: str | None = Query(default=None, alias="resultId", min_length=3, max_length=36),
    db: AsyncSession = Depends(get_async_db),
):
    """One result by ``resultId``, or every result of ``sessionId`` oldest first."""
    if result_id:
        return await result_service.get_result(db, result_id)
    if session_id:
        return await result_service.list_results(db, session_id)
    raise bad_request("MISSING_QUERY_PARAM", "sessionId or resultId is required")


@router.post("", response_model=ResultCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_result(data: ResultCreate, db: AsyncSession = Depends(get_async_db)):
    result, count = await result_service.create_result(
        db,
        data.session_id,
        data.response,
        score=data.score,
        time_spent=data.time_spent,
        now=result_service.utcnow(),
    )
    return {"result": result, "results_count": count}


@router.put("", response_model=ResultResponse)
async def update_result(
    data: ResultUpdate,
    result_id: str = Query(alias="resultId", min_length=3, max_length=36),
    db: AsyncSession = Depends(get_async_db),
):
    changes = data.model_dump(exclude_unset=True)
    return await result_service.update_result(db, result_id, changes, now=result_service.utcnow())


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def delete_result(
    result_id: str = Query(alias="resultId", min_length=3, max_length=36),
    db: AsyncSession = Depends(get_async_db),
):
    await result_service.delete_result(db, result_id, now=result_service.utcnow())
