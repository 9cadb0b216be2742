from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from facility_insights.core.coercion import as_plain_number
from facility_insights.core.facilities import Category

# WHO and national reference values. Static; never derived from input data.
BENCHMARKS: Dict[Category, Dict[str, float]] = {
    Category.education: {
        "pupil_teacher_ratio_primary": 40,
        "pupil_teacher_ratio_secondary": 30,
        "pupil_classroom_ratio": 45,
        "pupil_toilet_stance_ratio": 40,
        "electricity_target": 100,  # % of schools
        "water_target": 100,
        "ict_lab_target": 50,
    },
    Category.health: {
        "population_per_hc2": 5000,
        "population_per_hc3": 20000,
        "population_per_hc4": 100000,
        "population_per_hospital": 500000,
        "electricity_target": 100,  # % of facilities
        "water_target": 100,
    },
}

# Severity thresholds on the attainment ratio, checked in order (strict <)
SEVERITY_THRESHOLDS = (
    (0.5, "critical"),
    (0.75, "high"),
    (0.9, "medium"),
)


class Direction(str, Enum):
    higher_is_better = "higher_is_better"   # coverage percentages
    lower_is_better = "lower_is_better"     # pupil-teacher, pupil-classroom


def benchmarks_for(category: Category) -> Dict[str, float]:
    """Return a copy so callers can't alter the shared table."""
    return dict(BENCHMARKS[Category.parse(category)])


def attainment_ratio(current: float, target: float, direction: Direction) -> float:
    """
    Fraction of the target reached, whichever way the metric improves.

    Higher-is-better: current / target (60% coverage vs 100% -> 0.6).
    Lower-is-better:  target / current (ratio 80 vs benchmark 40 -> 0.5).
    """
    if direction is Direction.higher_is_better:
        return current / target if target else 1.0
    return target / current if current else 1.0


def classify_severity(ratio: float) -> str:
    for limit, label in SEVERITY_THRESHOLDS:
        if ratio < limit:
            return label
    return "low"


def falls_short(current: float, target: float, direction: Direction) -> bool:
    if direction is Direction.higher_is_better:
        return current < target
    return current > target


@dataclass(frozen=True)
class Gap:
    type: str
    current: float
    target: float
    severity: str
    direction: Direction

    def as_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "current": as_plain_number(self.current),
            "target": as_plain_number(float(self.target)),
            "severity": self.severity,
            "direction": self.direction.value,
        }


def detect_gap(
    gap_type: str,
    current: Optional[float],
    target: float,
    direction: Direction,
) -> Optional[Gap]:
    """Build a Gap when `current` misses `target`; None when it meets it or is absent."""
    if current is None or not falls_short(current, target, direction):
        return None
    ratio = attainment_ratio(current, target, direction)
    return Gap(
        type=gap_type,
        current=current,
        target=target,
        severity=classify_severity(ratio),
        direction=direction,
    )
