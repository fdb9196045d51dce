from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator

from ..shared.utils import ensure_utc


class ResultCreate(BaseModel):
    session_id: str = Field(min_length=3, max_length=36, validation_alias=AliasChoices("session_id", "sessionId"))
    # Opaque player payload; must be a JSON object.
    response: Dict[str, Any]
    score: Optional[float] = None
    time_spent: Optional[int] = Field(
        default=None, ge=0, validation_alias=AliasChoices("time_spent", "timeSpent")
    )


class ResultUpdate(BaseModel):
    # Omit response to keep it; score and time_spent may be cleared with null.
    response: Optional[Dict[str, Any]] = None
    score: Optional[float] = None
    time_spent: Optional[int] = Field(
        default=None, ge=0, validation_alias=AliasChoices("time_spent", "timeSpent")
    )

    @field_validator("response")
    @classmethod
    def _response_not_null(cls, value: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        if value is None:
            raise ValueError("response cannot be null")
        return value


class ResultResponse(BaseModel):
    id: str
    session_id: str
    response: Dict[str, Any]
    score: Optional[float] = None
    time_spent: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

    @field_validator("created_at", "updated_at")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class ResultCreateResponse(BaseModel):
    result: ResultResponse
    results_count: int
