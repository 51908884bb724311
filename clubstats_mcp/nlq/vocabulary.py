# clubstats_mcp/nlq/vocabulary.py
"""
Domain vocabulary for question analysis.

Holds the metric catalog (canonical code -> MetricDescriptor), the team
alias table and the keyword tables for filters. Adding a metric means
adding one catalog entry here; parser, handlers and formatter all read
from this module.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from ..api.errors import InvalidMetricError

logger = logging.getLogger(__name__)


# ============================================================================
# METRIC DESCRIPTORS
# ============================================================================


def _md_sum(prop: str) -> str:
    return f"coalesce(sum(coalesce(md.{prop}, 0)), 0)"


def _f_sum(prop: str) -> str:
    return f"coalesce(sum(coalesce(f.{prop}, 0)), 0)"


def _result_count(code: str) -> str:
    return f"sum(CASE WHEN f.result = '{code}' THEN 1 ELSE 0 END)"


def _per(numerator: str, denominator: str) -> str:
    return (
        f"CASE WHEN {denominator} = 0 THEN 0.0 "
        f"ELSE toFloat({numerator}) / {denominator} END"
    )


GOALS_EXPR = f"({_md_sum('goals')} + {_md_sum('penaltiesScored')})"
APPS_EXPR = "count(md)"


@dataclass(frozen=True)
class MetricDescriptor:
    """
    Everything the engine knows about one metric.

    `aggregate` is a Cypher aggregation over MatchDetail rows bound as `md`
    (and their Fixture as `f`). `team_aggregate` aggregates Fixture rows
    bound as `f` and is only set for metrics in the team vocabulary.
    """

    code: str
    singular: str
    plural: str
    verb: str
    aggregate: str
    aliases: Tuple[str, ...] = ()
    per_appearance: bool = False
    team_aggregate: Optional[str] = None
    team_singular: Optional[str] = None
    team_plural: Optional[str] = None
    team_verb: Optional[str] = None
    zero_phrase: Optional[str] = None
    decimals: int = 0

    @property
    def player_metric(self) -> bool:
        return bool(self.aggregate)

    @property
    def team_metric(self) -> bool:
        return self.team_aggregate is not None

    def display_name(self, value: float = 2, team: bool = False) -> str:
        """Singular for exactly one, plural otherwise."""
        singular = (self.team_singular if team else None) or self.singular
        plural = (self.team_plural if team else None) or self.plural
        return singular if value == 1 else plural

    def verb_for(self, team: bool = False) -> str:
        return (self.team_verb if team else None) or self.verb


METRIC_CATALOG: Dict[str, MetricDescriptor] = {
    m.code: m
    for m in [
        MetricDescriptor(
            code="APP",
            singular="appearance",
            plural="appearances",
            verb="made",
            aggregate=APPS_EXPR,
            aliases=("appearances", "appearance", "apps", "games played", "matches played", "games", "caps"),
            team_aggregate="count(DISTINCT f)",
            team_singular="game",
            team_plural="games",
            team_verb="played",
            zero_phrase="has not made an appearance yet",
        ),
        MetricDescriptor(
            code="MIN",
            singular="minute",
            plural="minutes",
            verb="played",
            aggregate=_md_sum("minutes"),
            aliases=("minutes played", "minutes"),
            zero_phrase="has not played any minutes",
        ),
        MetricDescriptor(
            code="MOM",
            singular="Man of the Match award",
            plural="Man of the Match awards",
            verb="won",
            aggregate=_md_sum("mom"),
            aliases=("man of the match awards", "man of the match", "player of the match", "motm", "mom"),
            zero_phrase="has not won a Man of the Match award",
        ),
        MetricDescriptor(
            code="G",
            singular="goal",
            plural="goals",
            verb="scored",
            aggregate=GOALS_EXPR,
            aliases=("goals scored", "goalscorers", "goalscorer", "scorers", "goals", "goal"),
            team_aggregate=_f_sum("dorkiniansGoals"),
            zero_phrase="has not scored a goal",
        ),
        MetricDescriptor(
            code="A",
            singular="assist",
            plural="assists",
            verb="provided",
            aggregate=_md_sum("assists"),
            aliases=("assists", "assist"),
            zero_phrase="has not recorded an assist",
        ),
        MetricDescriptor(
            code="GI",
            singular="goal involvement",
            plural="goal involvements",
            verb="had",
            aggregate=f"({GOALS_EXPR} + {_md_sum('assists')})",
            aliases=("goal involvements", "goal contributions", "goals and assists"),
            zero_phrase="has not been involved in a goal",
        ),
        MetricDescriptor(
            code="Y",
            singular="yellow card",
            plural="yellow cards",
            verb="received",
            aggregate=_md_sum("yellowCards"),
            aliases=("yellow cards", "yellow card", "yellows", "bookings"),
            zero_phrase="has not received a yellow card",
        ),
        MetricDescriptor(
            code="R",
            singular="red card",
            plural="red cards",
            verb="received",
            aggregate=_md_sum("redCards"),
            aliases=("red cards", "red card", "reds", "sending offs"),
            zero_phrase="has not received a red card",
        ),
        MetricDescriptor(
            code="SAVES",
            singular="save",
            plural="saves",
            verb="made",
            aggregate=_md_sum("saves"),
            aliases=("saves",),
            zero_phrase="has not made a save",
        ),
        MetricDescriptor(
            code="OG",
            singular="own goal",
            plural="own goals",
            verb="scored",
            aggregate=_md_sum("ownGoals"),
            aliases=("own goals", "own goal"),
            zero_phrase="has not scored an own goal",
        ),
        MetricDescriptor(
            code="C",
            singular="goal conceded",
            plural="goals conceded",
            verb="",
            aggregate=_md_sum("conceded"),
            aliases=("goals conceded", "conceded"),
            team_aggregate=_f_sum("conceded"),
            team_verb="",
            zero_phrase="has not conceded a goal",
        ),
        MetricDescriptor(
            code="CLS",
            singular="clean sheet",
            plural="clean sheets",
            verb="kept",
            aggregate=_md_sum("cleanSheets"),
            aliases=("clean sheets", "clean sheet", "shutouts"),
            team_aggregate="sum(CASE WHEN coalesce(f.conceded, 0) = 0 THEN 1 ELSE 0 END)",
            zero_phrase="has not kept a clean sheet",
        ),
        MetricDescriptor(
            code="PSC",
            singular="penalty",
            plural="penalties",
            verb="scored",
            aggregate=_md_sum("penaltiesScored"),
            aliases=("penalties scored", "penalty goals", "pens scored"),
            zero_phrase="has not scored a penalty",
        ),
        MetricDescriptor(
            code="PM",
            singular="penalty",
            plural="penalties",
            verb="missed",
            aggregate=_md_sum("penaltiesMissed"),
            aliases=("penalties missed", "missed penalties", "pens missed"),
            zero_phrase="has not missed a penalty",
        ),
        MetricDescriptor(
            code="PCO",
            singular="penalty",
            plural="penalties",
            verb="conceded",
            aggregate=_md_sum("penaltiesConceded"),
            aliases=("penalties conceded", "pens conceded"),
            zero_phrase="has not conceded a penalty",
        ),
        MetricDescriptor(
            code="PSV",
            singular="penalty",
            plural="penalties",
            verb="saved",
            aggregate=_md_sum("penaltiesSaved"),
            aliases=("penalties saved", "penalty saves", "pens saved"),
            zero_phrase="has not saved a penalty",
        ),
        MetricDescriptor(
            code="FTP",
            singular="fantasy point",
            plural="fantasy points",
            verb="earned",
            aggregate=_md_sum("fantasyPoints"),
            aliases=("fantasy points", "fantasy score"),
            zero_phrase="has not earned any fantasy points",
        ),
        MetricDescriptor(
            code="DIST",
            singular="mile",
            plural="miles",
            verb="travelled",
            aggregate=_md_sum("distance"),
            aliases=("distance travelled", "miles travelled", "distance", "miles"),
            zero_phrase="has not travelled to an away game",
            decimals=1,
        ),
        MetricDescriptor(
            code="W",
            singular="game",
            plural="games",
            verb="won",
            aggregate=_result_count("W"),
            aliases=("wins", "victories", "games won"),
            team_aggregate=_result_count("W"),
            zero_phrase="has not won a game",
        ),
        MetricDescriptor(
            code="D",
            singular="game",
            plural="games",
            verb="drawn",
            aggregate=_result_count("D"),
            aliases=("draws", "games drawn"),
            team_aggregate=_result_count("D"),
            zero_phrase="has not drawn a game",
        ),
        MetricDescriptor(
            code="L",
            singular="game",
            plural="games",
            verb="lost",
            aggregate=_result_count("L"),
            aliases=("losses", "defeats", "games lost"),
            team_aggregate=_result_count("L"),
            zero_phrase="has not lost a game",
        ),
        # Per-appearance metrics
        MetricDescriptor(
            code="GperAPP",
            singular="goal per appearance",
            plural="goals per appearance",
            verb="averaged",
            aggregate=_per(GOALS_EXPR, APPS_EXPR),
            aliases=("goals per game", "goals per appearance", "goals per match", "goals a game", "goal ratio"),
            per_appearance=True,
            decimals=2,
        ),
        MetricDescriptor(
            code="AperAPP",
            singular="assist per appearance",
            plural="assists per appearance",
            verb="averaged",
            aggregate=_per(_md_sum("assists"), APPS_EXPR),
            aliases=("assists per game", "assists per appearance", "assists per match"),
            per_appearance=True,
            decimals=2,
        ),
        MetricDescriptor(
            code="CperAPP",
            singular="goal conceded per appearance",
            plural="goals conceded per appearance",
            verb="averaged",
            aggregate=_per(_md_sum("conceded"), APPS_EXPR),
            aliases=("conceded per game", "goals conceded per game", "conceded per appearance"),
            per_appearance=True,
            decimals=2,
        ),
        MetricDescriptor(
            code="MOMperAPP",
            singular="Man of the Match award per appearance",
            plural="Man of the Match awards per appearance",
            verb="averaged",
            aggregate=_per(_md_sum("mom"), APPS_EXPR),
            aliases=("man of the match per game", "mom per game"),
            per_appearance=True,
            decimals=2,
        ),
        MetricDescriptor(
            code="FTPperAPP",
            singular="fantasy point per appearance",
            plural="fantasy points per appearance",
            verb="averaged",
            aggregate=_per(_md_sum("fantasyPoints"), APPS_EXPR),
            aliases=("fantasy points per game", "fantasy points per appearance"),
            per_appearance=True,
            decimals=2,
        ),
        MetricDescriptor(
            code="MINperAPP",
            singular="minute per appearance",
            plural="minutes per appearance",
            verb="averaged",
            aggregate=_per(_md_sum("minutes"), APPS_EXPR),
            aliases=("minutes per game", "minutes per appearance"),
            per_appearance=True,
            decimals=1,
        ),
        MetricDescriptor(
            code="MperG",
            singular="minute per goal",
            plural="minutes per goal",
            verb="taken",
            aggregate=_per(_md_sum("minutes"), GOALS_EXPR),
            aliases=("minutes per goal",),
            per_appearance=True,
            decimals=1,
        ),
    ]
}

PLAYER_VOCABULARY = [code for code, m in METRIC_CATALOG.items() if m.player_metric]
TEAM_VOCABULARY = [code for code, m in METRIC_CATALOG.items() if m.team_metric]


def get_metric(code: str) -> MetricDescriptor:
    """
    Look up a metric descriptor by canonical code.

    Raises:
        InvalidMetricError: If the code is not in the catalog
    """
    descriptor = METRIC_CATALOG.get(code)
    if descriptor is None:
        raise InvalidMetricError(code)
    return descriptor


def metric_aliases() -> List[Tuple[str, str]]:
    """(alias, code) pairs, longest alias first."""
    pairs = [(alias, m.code) for m in METRIC_CATALOG.values() for alias in m.aliases]
    pairs.sort(key=lambda p: (-len(p[0]), p[0]))
    return pairs


# ============================================================================
# TEAMS
# ============================================================================

TEAM_ORDINALS = ["1st", "2nd", "3rd", "4th", "5th", "6th", "7th", "8th"]
TEAM_WORDS = ["first", "second", "third", "fourth", "fifth", "sixth", "seventh", "eighth"]


def _team_aliases() -> Dict[str, str]:
    aliases: Dict[str, str] = {}
    for index, (ordinal, word) in enumerate(zip(TEAM_ORDINALS, TEAM_WORDS), start=1):
        canonical = f"{ordinal} XI"
        for alias in (
            f"{index}s",
            f"{ordinal} xi",
            f"{ordinal} team",
            f"{ordinal}s",
            f"{word} team",
            f"{word} xi",
            f"{word}s",
        ):
            aliases[alias] = canonical
    return aliases


# alias (lowercase) -> canonical team name
TEAM_ALIASES: Dict[str, str] = _team_aliases()


# ============================================================================
# FILTER KEYWORDS
# ============================================================================

LOCATION_KEYWORDS: Dict[str, str] = {
    "at home": "Home",
    "home games": "Home",
    "home matches": "Home",
    "away from home": "Away",
    "away games": "Away",
    "away matches": "Away",
    "on the road": "Away",
}

COMPETITION_KEYWORDS: Dict[str, str] = {
    "league games": "League",
    "league matches": "League",
    "in the league": "League",
    "cup games": "Cup",
    "cup matches": "Cup",
    "in the cup": "Cup",
    "in cups": "Cup",
    "friendlies": "Friendly",
    "friendly games": "Friendly",
    "friendly matches": "Friendly",
}

RESULT_KEYWORDS: Dict[str, str] = {
    "in wins": "Win",
    "in victories": "Win",
    "in draws": "Draw",
    "in losses": "Loss",
    "in defeats": "Loss",
}

POSITION_KEYWORDS: Dict[str, str] = {
    "as a goalkeeper": "GK",
    "in goal": "GK",
    "as a defender": "DEF",
    "in defence": "DEF",
    "in defense": "DEF",
    "as a midfielder": "MID",
    "in midfield": "MID",
    "as a forward": "FWD",
    "as a striker": "FWD",
    "up front": "FWD",
}
