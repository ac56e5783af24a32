# Application Stats Package
from .metrics_calculator import (
    DailyStats,
    ScopeOverview,
    SessionStatsCalculator,
    SessionSummary,
    StudyStats,
)
from .service import DeckReport, DeckStatsService

__all__ = [
    "SessionStatsCalculator",
    "StudyStats",
    "SessionSummary",
    "DailyStats",
    "ScopeOverview",
    "DeckStatsService",
    "DeckReport",
]
