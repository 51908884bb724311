# clubstats_mcp/nlq/parser.py
"""
Question analyzer for the club statistics NLQ pipeline.

Deterministic, rule-based extraction of:
- Entities (players, teams, oppositions, leagues) by longest-match scan
  against the entity catalog snapshot and the team alias table
- Metrics via the alias table in vocabulary.py
- Time ranges (seasons, before/after/since/between phrases)
- Filter modifiers (home/away, competition type, result, position)
- Comparison direction (most/least) and leaderboard size
- Question type: relationship > fixture > streak > awards > league > club >
  team > player

The same question and catalog snapshot always produce the same analysis.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ..utils.season_utils import SEASON_PATTERN, normalize_season, parse_user_date
from .filters import TimeRange
from .vocabulary import (
    COMPETITION_KEYWORDS,
    LOCATION_KEYWORDS,
    POSITION_KEYWORDS,
    RESULT_KEYWORDS,
    TEAM_ALIASES,
    metric_aliases,
)

logger = logging.getLogger(__name__)

MAX_ENTITIES = 3
MAX_METRICS = 3

QUESTION_TYPES = (
    "player",
    "team",
    "club",
    "league",
    "relationship",
    "fixture",
    "streak",
    "awards",
    "ambiguous",
)


# ============================================================================
# DATA CLASSES
# ============================================================================


@dataclass
class Entity:
    """A named thing mentioned in the question."""

    name: str
    type: str
    resolved: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "type": self.type, "resolved": self.resolved}


@dataclass
class QuestionAnalysis:
    """Structured representation of a natural-language question."""

    question: str
    entities: List[Entity] = field(default_factory=list)
    metrics: List[str] = field(default_factory=list)
    time_range: TimeRange = field(default_factory=TimeRange)
    comparison_direction: Optional[str] = None  # "most" | "least"
    type: str = "player"
    clarification_message: Optional[str] = None
    ambiguity_reason: Optional[str] = None
    modifiers: Dict[str, Any] = field(default_factory=dict)

    def entity_names(self, entity_type: Optional[str] = None) -> List[str]:
        return [
            e.name for e in self.entities if entity_type is None or e.type == entity_type
        ]

    @property
    def players(self) -> List[str]:
        return self.entity_names("player")

    @property
    def teams(self) -> List[str]:
        return self.entity_names("team")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "question": self.question,
            "entities": [e.to_dict() for e in self.entities],
            "metrics": self.metrics,
            "time_range": self.time_range.to_dict(),
            "comparison_direction": self.comparison_direction,
            "type": self.type,
            "clarification_message": self.clarification_message,
            "ambiguity_reason": self.ambiguity_reason,
            "modifiers": self.modifiers,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QuestionAnalysis":
        return cls(
            question=data.get("question", ""),
            entities=[Entity(**e) for e in data.get("entities", [])],
            metrics=list(data.get("metrics", [])),
            time_range=TimeRange.from_dict(data.get("time_range")),
            comparison_direction=data.get("comparison_direction"),
            type=data.get("type", "player"),
            clarification_message=data.get("clarification_message"),
            ambiguity_reason=data.get("ambiguity_reason"),
            modifiers=dict(data.get("modifiers", {})),
        )


# ============================================================================
# PATTERNS
# ============================================================================

RELATIONSHIP_PATTERNS = [
    r"\bplayed (?:with|alongside)\b",
    r"\bplay(?:ed)? together\b",
    r"\btogether\b",
    r"\balongside\b",
    r"\bmost played with\b",
    r"\bteam-?mates?\b",
    r"\bwith whom\b",
    r"\bpartnership\b",
]

COMPARE_PATTERN = re.compile(r"\b(?:compar\w*|vs\.?|versus)\b")

FIXTURE_PATTERNS = {
    "biggest_win": r"\b(?:biggest|largest|heaviest|best) (?:win|victory|winning margin)\b",
    "highest_scoring_game": (
        r"\bhighest[- ]scoring (?:game|match|fixture)\b"
        r"|\b(?:which|what) (?:game|match) had the most goals\b"
    ),
    "hat_tricks": r"\bhat[- ]?tricks?\b",
}

STREAK_PATTERN = re.compile(r"\b(?:in a row|consecutive|successive|streak)\b")
INVOLVEMENT_PATTERN = re.compile(r"\b(?:assist\w*|involvements?|involved)\b")

AWARD_PATTERNS = {
    "season_totw": r"\b(?:team of the season|tots)\b",
    "weekly_totw": r"\b(?:team of the week|totw)\b",
    "player_of_the_month": r"\b(?:player of the month|potm)\b",
}

BEST_SEASON_PATTERN = re.compile(
    r"\b(?:which|what) season\b|\b(?:best|most prolific|top[- ]scoring) season\b"
)

LEAGUE_PATTERNS = [
    r"\bleague (?:finish|position|table|standing|record)",
    r"\bfinish(?:ed|es|ing)?\b",
    r"\bdivision\b",
    r"\btable\b",
    r"\bgoal difference\b",
    r"\bdefensive record\b",
    r"\bpromot(?:ed|ion)\b",
    r"\brelegat(?:ed|ion)\b",
    r"\bposition in the league\b",
    r"\bcurrent position\b",
    r"\b(?:which|what) season\b",
    r"\bwhere (?:are|were|did)\b.*\b(?:in the league|finish)\b",
]

CLUB_PATTERNS = [
    r"\bthe club\b",
    r"\bwhole club\b",
    r"\bclub-?wide\b",
    r"\ball (?:the )?teams\b",
    r"\bacross all\b",
    r"\b(?:which|what) team\b",
    r"\bdorkinians\b",
    r"\bhow many players\b",
]

MOST_PATTERN = re.compile(
    r"\b(most|highest|best|greatest|leading|leads|biggest|more)\b"
)
LEAST_PATTERN = re.compile(r"\b(fewest|least|lowest|worst|fewer|less|bottom)\b")
TOP_PATTERN = re.compile(r"\btop\b")
TOP_N_PATTERN = re.compile(r"\btop\s+(\d{1,2})\b")
LEADERBOARD_PATTERN = re.compile(r"\b(leaderboard|rankings?|ranked|list the|top scorers)\b")
FIRST_PERSON_PATTERN = re.compile(r"\b(i|i've|i'm|my|me|myself)\b")
RANKING_SUBJECT_PATTERN = re.compile(r"\b(who|whose|which players?)\b")

BETWEEN_PATTERN = re.compile(
    r"\bbetween\s+([\d/\-]+)\s+and\s+([\d/\-]+)"
)
BEFORE_PATTERN = re.compile(r"\bbefore\s+(?:the\s+)?([\d/\-]+)")
AFTER_PATTERN = re.compile(r"\b(after|since)\s+(?:the\s+)?([\d/\-]+)")
IN_YEAR_PATTERN = re.compile(r"\b(?:in|during|for)\s+((?:19|20)\d{2})\b(?!\s*[/-])")

NAME_PATTERN = re.compile(r"\b([A-Z][a-zA-Z'\-]+(?:\s+[A-Z][a-zA-Z'\-]+){1,2})\b")
NAME_STOPWORDS = {
    "how", "what", "what's", "whats", "who", "who's", "which", "when", "where",
    "did", "does", "do", "has", "have", "had", "is", "was", "were", "are",
    "the", "tell", "show", "give", "list", "can", "could", "and", "or",
    "man", "match", "player", "league", "cup", "xi", "dorkinians", "in", "for",
    "home", "away", "compare", "between",
}


# ============================================================================
# EXTRACTION HELPERS
# ============================================================================

Span = Tuple[int, int]


def normalize_question(question: str) -> str:
    """Collapse whitespace and straighten quotes."""
    text = (question or "").replace("’", "'").replace("‘", "'")
    text = text.replace("“", '"').replace("”", '"')
    return re.sub(r"\s+", " ", text).strip()


def _overlaps(span: Span, taken: List[Span]) -> bool:
    return any(span[0] < end and start < span[1] for start, end in taken)


def _find_phrase(phrase: str, text: str, taken: List[Span]) -> List[Span]:
    pattern = re.compile(r"(?<!\w)" + re.escape(phrase) + r"(?!\w)")
    return [
        (m.start(), m.end())
        for m in pattern.finditer(text)
        if not _overlaps((m.start(), m.end()), taken)
    ]


def extract_entities(
    text: str, catalog: Dict[str, List[str]], taken: List[Span]
) -> List[Entity]:
    """
    Longest-match-first entity scan.

    Args:
        text: Normalized question text
        catalog: Entity type -> canonical names
        taken: Spans already consumed (extended in place)

    Returns:
        Entities in order of appearance, deduplicated
    """
    lowered = text.lower()
    phrases: List[Tuple[str, str, str]] = []
    for entity_type in ("player", "team", "opposition", "league"):
        for name in catalog.get(entity_type, []):
            if name and name.strip():
                phrases.append((name.lower(), name, entity_type))
    for alias, canonical in TEAM_ALIASES.items():
        phrases.append((alias, canonical, "team"))
    phrases.sort(key=lambda p: (-len(p[0]), p[0]))

    found: List[Tuple[int, Entity]] = []
    for phrase, canonical, entity_type in phrases:
        for span in _find_phrase(phrase, lowered, taken):
            taken.append(span)
            found.append((span[0], Entity(name=canonical, type=entity_type)))

    # Capitalised names missing from the catalog are kept as unresolved players
    for match in NAME_PATTERN.finditer(text):
        words = match.group(1).split()
        start = match.start()
        while words and words[0].lower() in NAME_STOPWORDS:
            start += len(words[0]) + 1
            words = words[1:]
        if len(words) < 2 or any(w.lower() in NAME_STOPWORDS for w in words):
            continue
        span = (start, start + len(" ".join(words)))
        name = " ".join(words)
        if name.endswith("'s"):
            name = name[:-2]
        name = name.rstrip("'")
        if _overlaps(span, taken):
            continue
        taken.append(span)
        found.append((span[0], Entity(name=name, type="player", resolved=False)))

    found.sort(key=lambda item: item[0])
    entities: List[Entity] = []
    seen = set()
    for _, entity in found:
        key = (entity.type, entity.name.lower())
        if key not in seen:
            seen.add(key)
            entities.append(entity)
    return entities


def extract_keyword_filters(text: str, taken: List[Span]) -> Dict[str, List[str]]:
    """Home/away, competition type, result and position modifiers."""
    lowered = text.lower()
    modifiers: Dict[str, List[str]] = {}
    tables = [
        ("location", LOCATION_KEYWORDS),
        ("comp_types", COMPETITION_KEYWORDS),
        ("results", RESULT_KEYWORDS),
        ("positions", POSITION_KEYWORDS),
    ]
    for key, table in tables:
        for phrase in sorted(table, key=len, reverse=True):
            spans = _find_phrase(phrase, lowered, taken)
            if spans:
                taken.extend(spans)
                values = modifiers.setdefault(key, [])
                if table[phrase] not in values:
                    values.append(table[phrase])

    for word, value in (("home", "Home"), ("away", "Away")):
        spans = _find_phrase(word, lowered, taken)
        if spans:
            taken.extend(spans)
            values = modifiers.setdefault("location", [])
            if value not in values:
                values.append(value)
    return modifiers


def _season_token(token: str) -> Optional[str]:
    try:
        return normalize_season(token)
    except ValueError:
        return None


def _expand_seasons(start: str, end: str) -> List[str]:
    first, last = int(start[:4]), int(end[:4])
    if last < first:
        first, last = last, first
    return [f"{y}/{str(y + 1)[-2:]}" for y in range(first, last + 1)]


def extract_time_range(text: str, taken: List[Span]) -> TimeRange:
    """
    Parse the question's time range.

    Supported: seasons (2019/20, 2019-20, 2019-2020), "between X and Y"
    (seasons or dates), "before X", "after X", "since X", "in 2019".

    Returns:
        TimeRange (all_time when nothing matched)
    """
    lowered = text.lower()

    match = BETWEEN_PATTERN.search(lowered)
    if match:
        first, second = match.group(1), match.group(2)
        start_season, end_season = _season_token(first), _season_token(second)
        if start_season and end_season:
            taken.append(match.span())
            return TimeRange.for_seasons(_expand_seasons(start_season, end_season))
        start = parse_user_date(first, bound="start")
        end = parse_user_date(second, bound="end")
        if start and end:
            taken.append(match.span())
            return TimeRange.between(start, end)

    match = BEFORE_PATTERN.search(lowered)
    if match:
        token = match.group(1)
        season = _season_token(token)
        day = f"{season[:4]}-08-01" if season else parse_user_date(token, bound="start")
        if day:
            taken.append(match.span())
            return TimeRange.before(day)

    match = AFTER_PATTERN.search(lowered)
    if match:
        keyword, token = match.group(1), match.group(2)
        season = _season_token(token)
        if season:
            day = f"{int(season[:4]) + 1}-07-31" if keyword == "after" else f"{season[:4]}-07-31"
        elif keyword == "since":
            start = parse_user_date(token, bound="start")
            day = None
            if start:
                # "since 2019" includes 1 January 2019
                year, rest = start[:4], start[4:]
                day = f"{int(year) - 1}-12-31" if rest == "-01-01" else start
        else:
            day = parse_user_date(token, bound="end")
        if day:
            taken.append(match.span())
            return TimeRange.after(day)

    seasons: List[str] = []
    for m in SEASON_PATTERN.finditer(lowered):
        season = _season_token(m.group(0))
        if season and season not in seasons:
            seasons.append(season)
            taken.append(m.span())
    if seasons:
        return TimeRange.for_seasons(seasons)

    match = IN_YEAR_PATTERN.search(lowered)
    if match:
        taken.append(match.span())
        year = match.group(1)
        return TimeRange.between(f"{year}-01-01", f"{year}-12-31")

    return TimeRange.all_time()


def extract_metrics(text: str, taken: List[Span]) -> List[str]:
    """
    Map metric aliases in the question to canonical codes.

    Returns:
        Codes in order of first appearance
    """
    lowered = text.lower()
    found: List[Tuple[int, str]] = []
    for alias, code in metric_aliases():
        spans = _find_phrase(alias, lowered, taken)
        if spans:
            taken.extend(spans)
            found.append((spans[0][0], code))

    found.sort(key=lambda item: item[0])
    metrics: List[str] = []
    for _, code in found:
        if code not in metrics:
            metrics.append(code)

    # "conceded the fewest goals" asks about goals conceded only
    if "C" in metrics and "G" in metrics and "scored" not in lowered:
        metrics.remove("G")
    return metrics


def extract_direction(text: str) -> Optional[str]:
    lowered = text.lower()
    most = MOST_PATTERN.search(lowered)
    least = LEAST_PATTERN.search(lowered)
    if most and least:
        return "most" if most.start() < least.start() else "least"
    if most:
        return "most"
    if least:
        return "least"
    # "top 5 scorers" with no other superlative
    if TOP_PATTERN.search(lowered):
        return "most"
    return None


# ============================================================================
# CLASSIFICATION
# ============================================================================

CLARIFICATION_MESSAGES = {
    "missing_both": (
        "I need to know which player, team, or other entity you're asking about, "
        "and what statistic you'd like. For example: "
        "'How many goals has [player name] scored?'"
    ),
    "missing_entity": (
        "I need to know which player, team, or other entity you're asking about. "
        "Please include a name in your question."
    ),
    "missing_metric": (
        "I need to know what statistic you're asking about "
        "(e.g. goals, assists, appearances, clean sheets)."
    ),
    "too_many_entities": (
        "I can handle questions about up to 3 entities at once. "
        "Please narrow your question to fewer players or teams."
    ),
    "too_many_metrics": (
        "I can handle questions about up to 3 statistics at once. "
        "Please narrow your question to fewer statistics."
    ),
}


def _matches_any(patterns: List[str], text: str) -> bool:
    return any(re.search(p, text) for p in patterns)


def _first_intent(patterns: Dict[str, str], text: str) -> Optional[str]:
    for intent, pattern in patterns.items():
        if re.search(pattern, text):
            return intent
    return None


def players_joined_by_with(players: List[str], text: str) -> bool:
    """
    True when two named players are joined by "with".

    Examples:
        >>> players_joined_by_with(["Luke Bangs", "Oli Goddard"], "luke bangs with oli goddard")
        True
    """
    if len(players) < 2 or COMPARE_PATTERN.search(text):
        return False
    names = [re.escape(p.lower()) for p in players]
    for first in names:
        for second in names:
            if first != second and re.search(
                rf"{first}(?:'s?)?\s+(?:\w+\s+)?with\s+{second}", text
            ):
                return True
    return False


def streak_kind(analysis: QuestionAnalysis) -> str:
    """Which run a streak question counts: clean_sheet, goal_involvement or goals."""
    text = analysis.question.lower()
    if "CLS" in analysis.metrics:
        return "clean_sheet"
    if (
        INVOLVEMENT_PATTERN.search(text)
        or "GI" in analysis.metrics
        or "A" in analysis.metrics
    ):
        return "goal_involvement"
    if "G" in analysis.metrics or re.search(r"\bscor(?:e|ed|ing)\b", text):
        return "goals"
    return "goal_involvement"


def _ambiguous(analysis: QuestionAnalysis, reason: str) -> QuestionAnalysis:
    analysis.type = "ambiguous"
    analysis.ambiguity_reason = reason
    analysis.clarification_message = CLARIFICATION_MESSAGES[reason]
    return analysis


def classify_question(analysis: QuestionAnalysis) -> QuestionAnalysis:
    """
    Assign the question type. Safe to call again after context merging.

    Priority: relationship > fixture > streak > awards > league > club >
    team > player. Over-full questions and questions with neither entity
    nor metric become "ambiguous" with a clarification message.
    """
    text = analysis.question.lower()
    analysis.clarification_message = None
    analysis.ambiguity_reason = None

    if len(analysis.entities) > MAX_ENTITIES:
        return _ambiguous(analysis, "too_many_entities")
    if len(analysis.metrics) > MAX_METRICS:
        return _ambiguous(analysis, "too_many_metrics")

    players = analysis.players
    if players and (
        _matches_any(RELATIONSHIP_PATTERNS, text) or players_joined_by_with(players, text)
    ):
        analysis.type = "relationship"
        return analysis

    fixture_intent = _first_intent(FIXTURE_PATTERNS, text)
    if fixture_intent:
        analysis.type = "fixture"
        analysis.modifiers["fixture_intent"] = fixture_intent
        return analysis

    if STREAK_PATTERN.search(text):
        if not players:
            return _ambiguous(analysis, "missing_entity")
        analysis.type = "streak"
        analysis.modifiers["streak"] = streak_kind(analysis)
        return analysis

    award = _first_intent(AWARD_PATTERNS, text)
    if award:
        ranked = (
            RANKING_SUBJECT_PATTERN.search(text)
            or analysis.comparison_direction
            or analysis.modifiers.get("leaderboard")
        )
        if not players and not ranked:
            return _ambiguous(analysis, "missing_entity")
        analysis.type = "awards"
        analysis.modifiers["award"] = award
        return analysis

    if _matches_any(LEAGUE_PATTERNS, text) and not players:
        analysis.type = "league"
        return analysis

    if _matches_any(CLUB_PATTERNS, text) and not players and not analysis.teams:
        analysis.type = "club"
        return analysis

    if not analysis.entities and not analysis.metrics:
        return _ambiguous(analysis, "missing_both")

    # "Who scored the most goals for the 2s?" ranks players within a team
    if (
        not players
        and analysis.metrics
        and analysis.comparison_direction
        and (RANKING_SUBJECT_PATTERN.search(text) or analysis.modifiers.get("leaderboard"))
    ):
        analysis.type = "player"
        return analysis

    if analysis.teams and not players:
        analysis.type = "team" if analysis.metrics else "ambiguous"
        if analysis.type == "ambiguous":
            return _ambiguous(analysis, "missing_metric")
        return analysis

    if players and not analysis.metrics:
        return _ambiguous(analysis, "missing_metric")

    if not players and not analysis.comparison_direction:
        return _ambiguous(analysis, "missing_entity")

    analysis.type = "player"
    return analysis


# ============================================================================
# MAIN ANALYZER
# ============================================================================


def analyze_question(
    question: str, catalog: Optional[Dict[str, List[str]]] = None
) -> QuestionAnalysis:
    """
    Analyze a natural-language question.

    Args:
        question: Raw question text
        catalog: Entity type -> canonical names (catalog snapshot)

    Returns:
        QuestionAnalysis with entities, metrics, time range, modifiers and type

    Examples:
        >>> a = analyze_question("How many goals has Luke Bangs scored?",
        ...                      {"player": ["Luke Bangs"]})
        >>> a.type, a.players, a.metrics
        ('player', ['Luke Bangs'], ['G'])
    """
    text = normalize_question(question)
    taken: List[Span] = []

    time_range = extract_time_range(text, taken)
    modifiers: Dict[str, Any] = extract_keyword_filters(text, taken)
    entities = extract_entities(text, catalog or {}, taken)
    metrics = extract_metrics(text, taken)

    lowered = text.lower()
    direction = extract_direction(lowered)
    top_n = TOP_N_PATTERN.search(lowered)
    if top_n:
        modifiers["top_n"] = int(top_n.group(1))
    modifiers["leaderboard"] = bool(top_n or LEADERBOARD_PATTERN.search(lowered))
    if FIRST_PERSON_PATTERN.search(lowered):
        modifiers["first_person"] = True
    if BEST_SEASON_PATTERN.search(lowered):
        modifiers["best_season"] = True
        # "most prolific season" with no statistic means goals
        if not metrics and any(e.type == "player" for e in entities):
            metrics = ["G"]

    analysis = QuestionAnalysis(
        question=text,
        entities=entities,
        metrics=metrics,
        time_range=time_range,
        comparison_direction=direction,
        modifiers=modifiers,
    )
    classify_question(analysis)

    logger.debug(
        f"Analyzed: type={analysis.type}, entities={analysis.entity_names()}, "
        f"metrics={analysis.metrics}, time={analysis.time_range.type}"
    )
    return analysis
