from sqlalchemy import Column, Integer, String, DateTime
from ..platform.database import Base
from ..shared.utils import new_id, utcnow


class PlayerConfig(Base):
    """Runtime override for the assessment player; the newest row wins."""

    __tablename__ = "player_configs"

    id = Column(String(36), primary_key=True, default=new_id)
    endpoint = Column(String(255), nullable=False)
    expires_minutes = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
