import logging

from fastapi import APIRouter, Depends, Query

from ...components.sessions import service as session_service
from ...components.sessions.cleanup import SessionCleanupService
from ...schemas.cleanup import CleanupRequest, CleanupTimerRequest
from .deps import get_cleanup_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions/cleanup", tags=["Session cleanup"])


@router.post("")
async def run_cleanup(
    data: CleanupRequest | None = None,
    cleanup: SessionCleanupService = Depends(get_cleanup_service),
):
    """Force-clean one session, or run a full sweep when no session is named."""
    data = data or CleanupRequest()
    if data.session_id:
        if not await cleanup.force_cleanup_session(data.session_id):
            raise session_service.not_found("Session")
        return {"success": True, "session_id": data.session_id, "message": "Session cleaned up"}

    stats = await cleanup.perform_cleanup()
    return {"success": not stats.skipped, "performed": not stats.skipped, "stats": stats.as_dict()}


@router.get("")
async def get_cleanup_stats(
    include_details: bool = Query(default=False, alias="includeDetails"),
    cleanup: SessionCleanupService = Depends(get_cleanup_service),
):
    stats = await cleanup.get_cleanup_stats(include_details=include_details)
    stats["cleanup_needed"] = (
        stats["expired_sessions"] > 0
        or stats["abandoned_sessions"] > 0
        or stats["total_sessions"] > cleanup.count_threshold
    )
    return stats


@router.put("")
async def update_expired_statuses(cleanup: SessionCleanupService = Depends(get_cleanup_service)):
    updated = await cleanup.update_expired_statuses()
    return {"success": True, "updated_sessions": updated}


@router.patch("")
async def control_cleanup_timer(
    data: CleanupTimerRequest,
    cleanup: SessionCleanupService = Depends(get_cleanup_service),
):
    if data.action == "start":
        changed = cleanup.start()
    elif data.action == "stop":
        changed = cleanup.stop()
    else:
        changed = False
    return {"action": data.action, "changed": changed, **cleanup.status()}
