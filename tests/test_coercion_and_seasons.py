"""
Tests for numeric coercion and season/ordinal helpers.
"""

from datetime import date

import pytest

from clubstats_mcp.nlq.coercion import coerce_number, coerce_record, round_value
from clubstats_mcp.utils.season_utils import (
    format_ordinal,
    normalize_season,
    parse_user_date,
    season_for_date,
)


# ============================================================================
# COERCION
# ============================================================================


class DriverInteger:
    def __init__(self, value):
        self.value = value

    def toNumber(self):
        return self.value


def test_coerce_number_rules():
    assert coerce_number(None) == 0
    assert coerce_number(float("nan")) == 0
    assert coerce_number({"low": 5, "high": 0}) == 5
    assert coerce_number({"low": 0, "high": 1}) == 4294967296
    assert coerce_number("42") == 42
    assert coerce_number("2.5") == 2.5
    assert coerce_number("n/a") == 0
    assert coerce_number(True) == 1
    assert coerce_number(DriverInteger(7)) == 7
    assert coerce_number(object()) == 0


def test_coerce_record_only_touches_numeric_keys():
    record = {"playerName": "Luke Bangs", "G": None, "appearances": "12"}
    coerced = coerce_record(record, ["G", "appearances"])

    assert coerced == {"playerName": "Luke Bangs", "G": 0, "appearances": 12}
    assert record["G"] is None


def test_round_value():
    assert round_value(41.6, 0) == 42
    assert isinstance(round_value(3.0, 0), int)
    assert round_value(0.666666, 2) == 0.67


# ============================================================================
# SEASONS
# ============================================================================


@pytest.mark.parametrize(
    "raw, expected",
    [("2019/20", "2019/20"), ("2019-20", "2019/20"), ("2019-2020", "2019/20"), ("1999/00", "1999/00")],
)
def test_normalize_season(raw, expected):
    assert normalize_season(raw) == expected


def test_normalize_season_rejects_gaps():
    with pytest.raises(ValueError):
        normalize_season("2019/21")
    with pytest.raises(ValueError):
        normalize_season("last year")


def test_season_for_date():
    assert season_for_date(date(2019, 8, 1)) == "2019/20"
    assert season_for_date(date(2020, 5, 1)) == "2019/20"


def test_parse_user_date():
    assert parse_user_date("15/03/2020") == "2020-03-15"
    assert parse_user_date("2019", bound="end") == "2019-12-31"
    assert parse_user_date("31/02/2020") is None
    assert parse_user_date("soon") is None


def test_format_ordinal():
    assert [format_ordinal(n) for n in (1, 2, 3, 4, 11, 12, 13, 21, 22, 101)] == [
        "1st", "2nd", "3rd", "4th", "11th", "12th", "13th", "21st", "22nd", "101st",
    ]
