"""Stored override for the assessment player endpoint and session timeout.

The newest ``player_configs`` row wins; with no rows the environment
settings apply.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from ...models.player_config import PlayerConfig
from ...platform.config import settings
from ...shared.utils import utcnow

logger = logging.getLogger(__name__)


async def get_config(db: AsyncSession) -> Optional[PlayerConfig]:
    stmt = select(PlayerConfig).order_by(PlayerConfig.created_at.desc(), PlayerConfig.id.desc()).limit(1)
    return (await db.execute(stmt)).scalars().first()


async def save_config(
    db: AsyncSession, endpoint: str, expires_minutes: int, now: Optional[datetime] = None
) -> PlayerConfig:
    now = now or utcnow()
    config = PlayerConfig(endpoint=endpoint, expires_minutes=expires_minutes, created_at=now, updated_at=now)
    db.add(config)
    await db.commit()
    logger.info("Player config saved: endpoint=%s expires_minutes=%d", endpoint, expires_minutes)
    return config


async def clear_config(db: AsyncSession) -> int:
    result = await db.execute(delete(PlayerConfig))
    await db.commit()
    removed = result.rowcount or 0
    logger.info("Player config cleared (%d rows)", removed)
    return removed


async def get_effective_config(db: AsyncSession) -> Dict[str, Any]:
    config = await get_config(db)
    if config is None:
        return {
            "endpoint": settings.PLAYER_ENDPOINT,
            "expires_minutes": settings.SESSION_TIMEOUT_MINUTES,
            "source": "default",
            "updated_at": None,
        }
    return {
        "endpoint": config.endpoint,
        "expires_minutes": config.expires_minutes,
        "source": "stored",
        "updated_at": config.updated_at,
    }


async def effective_session_timeout(db: AsyncSession) -> timedelta:
    config = await get_config(db)
    if config is None:
        return settings.session_timeout
    return timedelta(minutes=config.expires_minutes)
