"""Amazon niche analyzer package."""

from .config import Settings
from .repository import InMemorySessionRepository, SessionNotFoundError, SessionRepository
from .analysis_service import AnalysisService, UpdateResult

__all__ = [
    "Settings",
    "SessionRepository",
    "InMemorySessionRepository",
    "SessionNotFoundError",
    "AnalysisService",
    "UpdateResult",
]
