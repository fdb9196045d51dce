"""Session status computation.

Everything here is pure: the result depends only on the session's stored
fields and the ``now`` passed in. The stored ``status`` column is only
trusted while ``expires_at`` is still in the future.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Optional

from ...models.session import SessionStatus
from ...shared.utils import ensure_utc

EXPIRING_SOON_DEFAULT = timedelta(minutes=30)


def _stored_status(session: Any) -> SessionStatus:
    status = getattr(session, "status", None)
    if status is None:
        return SessionStatus.ACTIVE
    return SessionStatus(status)


def has_lapsed(session: Any, now: datetime) -> bool:
    expires_at = ensure_utc(getattr(session, "expires_at", None))
    return expires_at is not None and expires_at <= ensure_utc(now)


def compute_status(session: Any, now: datetime) -> SessionStatus:
    if has_lapsed(session, now):
        return SessionStatus.EXPIRED
    return _stored_status(session)


def is_active(session: Any, now: datetime) -> bool:
    return compute_status(session, now) == SessionStatus.ACTIVE


def is_resumable(session: Any, now: datetime) -> bool:
    external_id = getattr(session, "external_session_id", None)
    return is_active(session, now) and bool((external_id or "").strip())


def time_remaining(session: Any, now: datetime) -> Optional[timedelta]:
    """Time until expiry, floored at zero. ``None`` means the session never expires."""
    expires_at = ensure_utc(getattr(session, "expires_at", None))
    if expires_at is None:
        return None
    return max(timedelta(0), expires_at - ensure_utc(now))


def is_expiring_soon(session: Any, now: datetime, threshold: timedelta = EXPIRING_SOON_DEFAULT) -> bool:
    remaining = time_remaining(session, now)
    if remaining is None or not is_active(session, now):
        return False
    return timedelta(0) < remaining <= threshold


def format_remaining(remaining: Optional[timedelta]) -> str:
    if remaining is None:
        return "No expiration"
    total = int(remaining.total_seconds())
    if total <= 0:
        return "Expired"
    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    if hours > 0:
        return f"{hours}h {minutes}m"
    if minutes > 0:
        return f"{minutes}m {seconds}s"
    return f"{seconds}s"
