from __future__ import annotations

import pytest

from facility_insights.core.coercion import (
    first_present,
    parse_affirmative,
    parse_lenient_number,
    percentage,
    ratio,
    round_one_decimal,
)


@pytest.mark.parametrize("value", ["yes", "Yes", " YES ", "y", "Y", "true", "TRUE", "1"])
def test_affirmative_tokens(value) -> None:
    assert parse_affirmative(value) is True


@pytest.mark.parametrize("value", ["", None, "no", "0", "2", "available", "yes please", "n/a"])
def test_everything_else_is_false(value) -> None:
    assert parse_affirmative(value) is False


@pytest.mark.parametrize(
    "value, expected",
    [
        ("1,200", 1200.0),
        (" 35 ", 35.0),
        ("12.5", 12.5),
        ("", 0.0),
        (None, 0.0),
        ("abc", 0.0),
        ("nan", 0.0),
        ("inf", 0.0),
        (7, 7.0),
        ("-50", -50.0),
        ("1_000", 0.0),
        ("1e3", 0.0),
        ("12.", 0.0),
    ],
)
def test_lenient_number(value, expected) -> None:
    assert parse_lenient_number(value) == expected


def test_percentage_rounds_half_up_to_one_decimal() -> None:
    assert percentage(2, 3) == 66.7
    assert percentage(1, 3) == 33.3
    assert percentage(1, 8) == 12.5
    assert round_one_decimal(12.25) == 12.3


def test_zero_denominators_give_none() -> None:
    assert percentage(0, 0) is None
    assert ratio(100, 0) is None
    assert ratio(2200, 40) == 55.0


def test_first_present_skips_missing_and_empty_alternates() -> None:
    record = {"level": "", "Level": "  Primary ", "facility_level": "HC II"}

    assert first_present(record, ("level", "Level", "facility_level")) == "Primary"
    assert first_present(record, ("nope",)) == ""
