from datetime import datetime
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator

from ..shared.utils import ensure_utc
from .result import ResultResponse


class SessionCreate(BaseModel):
    student_id: str = Field(
        min_length=3, max_length=255, validation_alias=AliasChoices("student_id", "studentId")
    )
    assessment_id: str = Field(
        min_length=3, max_length=255, validation_alias=AliasChoices("assessment_id", "assessmentId")
    )

    @field_validator("student_id", "assessment_id")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if len(value) < 3:
            raise ValueError("must be at least 3 non-blank characters")
        return value


class SessionStatusUpdate(BaseModel):
    # Checked against SessionStatus by the service so an unknown value maps to INVALID_STATUS.
    status: str = Field(min_length=1, max_length=32)


class SessionResponse(BaseModel):
    id: str
    student_id: str
    assessment_id: str
    external_session_id: str
    status: str
    created_at: datetime
    updated_at: datetime
    expires_at: Optional[datetime] = None
    time_remaining_seconds: Optional[int] = None
    is_resumable: bool = False
    results: Optional[List[ResultResponse]] = None

    @field_validator("created_at", "updated_at", "expires_at")
    @classmethod
    def _utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)


class SessionHistoryResponse(BaseModel):
    items: List[SessionResponse]
    total: int
    page: int
    limit: int
    total_pages: int
    has_next: bool
    has_previous: bool


class SessionProgressResponse(BaseModel):
    session_id: str
    status: str
    results_count: int
    time_remaining_seconds: Optional[int] = None
    time_remaining_display: str
    is_expired: bool
    is_expiring_soon: bool
