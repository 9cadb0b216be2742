from __future__ import annotations

import math
import re
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Mapping, Optional

# Values that count as "yes" in boolean-like survey columns.
AFFIRMATIVE_TOKENS = frozenset({"yes", "y", "true", "1"})

# Plain decimal numbers only; no exponents, underscores or "inf"/"nan" words.
_NUMBER_PATTERN = re.compile(r"^[+-]?\d+(\.\d+)?$")


def parse_affirmative(value: Any) -> bool:
    """
    Lenient boolean policy: True only for a small set of affirmative tokens.

    Anything else (empty, "no", "n/a", None, typos) is False. Never raises.
    """
    if value is None:
        return False
    return str(value).strip().casefold() in AFFIRMATIVE_TOKENS


def parse_lenient_number(value: Any) -> float:
    """
    Lenient numeric policy used for counts read from survey columns.

    Thousands separators are stripped before parsing ("1,200" -> 1200.0).
    Only plain decimal text is accepted. Empty, non-numeric, NaN and infinite
    input all become 0.0 instead of raising, so one bad cell never breaks an
    aggregate.
    """
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).replace(",", "").strip()
        if not _NUMBER_PATTERN.match(text):
            return 0.0
        number = float(text)
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return number


def round_one_decimal(value: float) -> float:
    # Half-up, not banker's rounding: 2/3 -> 66.7, 12.25 -> 12.3
    return float(Decimal(repr(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def percentage(count: int, total: int) -> Optional[float]:
    if total <= 0:
        return None
    return round_one_decimal(count / total * 100)


def ratio(numerator: float, denominator: float) -> Optional[float]:
    if denominator <= 0:
        return None
    return round_one_decimal(numerator / denominator)


def first_present(record: Mapping[str, Any], alternates: Iterable[str]) -> str:
    """
    Return the first alternate column holding a non-empty value, else "".

    Column names drift between data collections (e.g. 'electricity',
    'Electricity', 'electricity_available'); alternates are tried in order.
    """
    for name in alternates:
        raw = record.get(name)
        if raw is None:
            continue
        text = str(raw).strip()
        if text:
            return text
    return ""


def as_plain_number(value: float) -> Any:
    """Render integral floats as int for output documents (1200.0 -> 1200)."""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value
