from .session import AssessmentSession, SessionStatus
from .result import Result
from .player_config import PlayerConfig

__all__ = [
    "AssessmentSession",
    "SessionStatus",
    "Result",
    "PlayerConfig",
]
