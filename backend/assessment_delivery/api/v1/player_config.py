from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ...components.player_config import service as player_config_service
from ...platform.database import get_async_db
from ...schemas.player_config import PlayerConfigResponse, PlayerConfigUpdate

router = APIRouter(prefix="/player-config", tags=["Player config"])


@router.get("", response_model=PlayerConfigResponse)
async def get_player_config(db: AsyncSession = Depends(get_async_db)):
    return await player_config_service.get_effective_config(db)


@router.post("", response_model=PlayerConfigResponse)
async def save_player_config(data: PlayerConfigUpdate, db: AsyncSession = Depends(get_async_db)):
    await player_config_service.save_config(db, data.endpoint, data.expires_minutes)
    return await player_config_service.get_effective_config(db)


@router.delete("", response_model=PlayerConfigResponse)
async def clear_player_config(db: AsyncSession = Depends(get_async_db)):
    await player_config_service.clear_config(db)
    return await player_config_service.get_effective_config(db)
