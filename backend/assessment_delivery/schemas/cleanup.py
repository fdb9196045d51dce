from typing import Literal, Optional

from pydantic import AliasChoices, BaseModel, Field


class CleanupRequest(BaseModel):
    session_id: Optional[str] = Field(
        default=None, min_length=3, max_length=36, validation_alias=AliasChoices("session_id", "sessionId")
    )
    # Accepted for older clients; a POST without session_id always sweeps.
    force: bool = False


class CleanupTimerRequest(BaseModel):
    action: Literal["start", "stop", "status"]
