"""Shared utility functions used across components."""

import uuid
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Return the current UTC datetime (timezone-aware)."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """Return datetime as timezone-aware UTC. Returns None if input is None.

    SQLite hands back naive datetimes even for ``DateTime(timezone=True)``
    columns, so every comparison against ``utcnow()`` goes through here.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def new_id() -> str:
    """Opaque primary key for sessions and results."""
    return str(uuid.uuid4())


def generate_external_session_id() -> str:
    """Session id handed to the assessment player (the player expects a UUID4)."""
    return str(uuid.uuid4())


def isoformat_or_none(dt: datetime | None) -> str | None:
    dt = ensure_utc(dt)
    return dt.isoformat() if dt else None
