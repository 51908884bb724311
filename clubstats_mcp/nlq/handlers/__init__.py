"""
Question handlers, one consolidated handler per question family.
"""

from .awards import handle_awards
from .base import HandlerContext, QueryError, QueryResult
from .club import handle_club_stats
from .fixture import handle_fixture
from .league import handle_league
from .player import handle_player_comparison, handle_player_season, handle_player_stats
from .ranking import handle_player_ranking
from .relationship import handle_relationship
from .streak import handle_streak
from .team import handle_team_stats

__all__ = [
    "HandlerContext",
    "QueryError",
    "QueryResult",
    "handle_awards",
    "handle_club_stats",
    "handle_fixture",
    "handle_league",
    "handle_player_comparison",
    "handle_player_ranking",
    "handle_player_season",
    "handle_player_stats",
    "handle_relationship",
    "handle_streak",
    "handle_team_stats",
]
