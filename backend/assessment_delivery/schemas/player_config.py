from datetime import datetime
from typing import Literal, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator

from ..shared.utils import ensure_utc


class PlayerConfigUpdate(BaseModel):
    endpoint: str = Field(min_length=1, max_length=255)
    expires_minutes: int = Field(
        ge=1, le=1440, validation_alias=AliasChoices("expires_minutes", "expiresMinutes")
    )

    @field_validator("endpoint")
    @classmethod
    def _strip(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("endpoint must not be blank")
        return value


class PlayerConfigResponse(BaseModel):
    endpoint: str
    expires_minutes: int
    source: Literal["stored", "default"]
    updated_at: Optional[datetime] = None

    @field_validator("updated_at")
    @classmethod
    def _utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)
