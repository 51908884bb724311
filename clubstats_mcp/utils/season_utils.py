"""
Season and date utilities.

Club seasons span two calendar years and are stored in the graph as
"YYYY/YY" (e.g. "2019/20"). Users write them in several shapes, so every
season string is normalized here before it reaches a query.
"""

import logging
import re
from datetime import date
from typing import Optional

logger = logging.getLogger(__name__)

SEASON_PATTERN = re.compile(r"\b((?:19|20)\d{2})\s*[/-]\s*((?:19|20)?\d{2})\b")
DATE_PATTERN = re.compile(r"\b(\d{1,2})/(\d{1,2})/(\d{4})\b")
YEAR_PATTERN = re.compile(r"\b((?:19|20)\d{2})\b")


def normalize_season(season: str) -> str:
    """
    Normalize a season string into "YYYY/YY" format.

    Args:
        season: Season in "2019/20", "2019-20", "2019-2020" or "2019/2020" form

    Returns:
        Season string in "YYYY/YY" format

    Raises:
        ValueError: If the string is not a season or the years are not consecutive

    Examples:
        >>> normalize_season("2019-2020")
        '2019/20'
        >>> normalize_season("2019/20")
        '2019/20'
    """
    match = SEASON_PATTERN.search(season.strip())
    if not match:
        raise ValueError(f"Invalid season format: '{season}'. Expected YYYY/YY")

    start_year = int(match.group(1))
    end_part = match.group(2)
    end_year = int(end_part) if len(end_part) == 4 else (start_year // 100) * 100 + int(end_part)
    if end_year < start_year:
        # "1999/00" crosses a century
        end_year += 100

    if end_year != start_year + 1:
        raise ValueError(
            f"Invalid season '{season}': end year must follow start year"
        )

    return f"{start_year}/{str(end_year)[-2:]}"


def season_for_date(day: date) -> str:
    """Season containing a calendar date (seasons start in August)."""
    start_year = day.year if day.month >= 8 else day.year - 1
    return f"{start_year}/{str(start_year + 1)[-2:]}"


def parse_user_date(text: str, bound: str = "start") -> Optional[str]:
    """
    Parse a user-supplied date or bare year into an ISO date string.

    A bare year resolves to the first day of the year for a "start" bound
    and to the last day for an "end" bound.

    Args:
        text: "dd/mm/yyyy" date or a four digit year
        bound: "start" or "end"

    Returns:
        ISO date string ("YYYY-MM-DD") or None if nothing parseable was found
    """
    match = DATE_PATTERN.search(text)
    if match:
        day, month, year = (int(g) for g in match.groups())
        try:
            return date(year, month, day).isoformat()
        except ValueError:
            logger.debug(f"Ignoring impossible date: {match.group(0)}")
            return None

    match = YEAR_PATTERN.search(text)
    if match:
        year = int(match.group(1))
        return f"{year}-01-01" if bound == "start" else f"{year}-12-31"

    return None


def ordinal_suffix(n: int) -> str:
    """
    English ordinal suffix for a positive integer.

    Examples:
        >>> ordinal_suffix(2)
        'nd'
        >>> ordinal_suffix(12)
        'th'
        >>> ordinal_suffix(23)
        'rd'
    """
    if 10 <= n % 100 <= 13:
        return "th"
    return {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")


def format_ordinal(n: int) -> str:
    return f"{n}{ordinal_suffix(n)}"
