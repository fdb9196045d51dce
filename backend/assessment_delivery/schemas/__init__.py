from .session import (
    SessionCreate,
    SessionHistoryResponse,
    SessionProgressResponse,
    SessionResponse,
    SessionStatusUpdate,
)
from .result import ResultCreate, ResultCreateResponse, ResultResponse, ResultUpdate
from .cleanup import CleanupRequest, CleanupTimerRequest
from .player_config import PlayerConfigResponse, PlayerConfigUpdate

__all__ = [
    "SessionCreate",
    "SessionHistoryResponse",
    "SessionProgressResponse",
    "SessionResponse",
    "SessionStatusUpdate",
    "ResultCreate",
    "ResultCreateResponse",
    "ResultResponse",
    "ResultUpdate",
    "CleanupRequest",
    "CleanupTimerRequest",
    "PlayerConfigResponse",
    "PlayerConfigUpdate",
]
