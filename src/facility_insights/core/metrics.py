from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from facility_insights.core.benchmarks import Direction, Gap, benchmarks_for, detect_gap
from facility_insights.core.coercion import as_plain_number, percentage, ratio
from facility_insights.core.facilities import (
    Category,
    EducationFacility,
    HealthFacility,
    UnknownCategoryError,
    normalize_education,
    normalize_health,
)

logger = logging.getLogger(__name__)


def _drop_none(values: Mapping[str, Any]) -> Dict[str, Any]:
    # Percentages/ratios with a zero denominator are omitted, never null
    return {k: as_plain_number(v) for k, v in values.items() if v is not None}


# ---------------------------------------------------------------------------
# Education
# ---------------------------------------------------------------------------

@dataclass
class EducationMetrics:
    total_facilities: int = 0
    by_level: Dict[str, int] = field(default_factory=dict)
    by_ownership: Dict[str, int] = field(default_factory=dict)

    with_electricity: int = 0
    with_water: int = 0
    with_ict_lab: int = 0
    with_library: int = 0
    electricity_percentage: Optional[float] = None
    water_percentage: Optional[float] = None
    ict_lab_percentage: Optional[float] = None
    library_percentage: Optional[float] = None

    total_learners: float = 0.0
    total_teachers: float = 0.0
    total_classrooms: float = 0.0
    pupil_teacher_ratio: Optional[float] = None
    pupil_classroom_ratio: Optional[float] = None

    gaps: List[Gap] = field(default_factory=list)
    benchmarks: Dict[str, float] = field(default_factory=dict)

    category: Category = Category.education

    def as_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category.value,
            "totalFacilities": self.total_facilities,
            "byLevel": dict(self.by_level),
            "byOwnership": dict(self.by_ownership),
            "infrastructure": _drop_none({
                "withElectricity": self.with_electricity,
                "withWater": self.with_water,
                "withICTLab": self.with_ict_lab,
                "withLibrary": self.with_library,
                "electricityPercentage": self.electricity_percentage,
                "waterPercentage": self.water_percentage,
                "ictLabPercentage": self.ict_lab_percentage,
                "libraryPercentage": self.library_percentage,
            }),
            "enrollment": _drop_none({
                "totalLearners": self.total_learners,
                "totalTeachers": self.total_teachers,
                "totalClassrooms": self.total_classrooms,
            }),
            "ratios": _drop_none({
                "pupilTeacherRatio": self.pupil_teacher_ratio,
                "pupilClassroomRatio": self.pupil_classroom_ratio,
            }),
            "gaps": [g.as_dict() for g in self.gaps],
            "benchmarks": dict(self.benchmarks),
        }


def calculate_education_metrics(facilities: Sequence[EducationFacility]) -> EducationMetrics:
    m = EducationMetrics(total_facilities=len(facilities), benchmarks=benchmarks_for(Category.education))
    levels: Counter = Counter()
    owners: Counter = Counter()

    for f in facilities:
        levels[f.level] += 1
        owners[f.ownership] += 1

        m.with_electricity += f.has_electricity
        m.with_water += f.has_water
        m.with_ict_lab += f.has_ict_lab
        m.with_library += f.has_library

        # Missing or non-positive counts contribute nothing
        if f.learners > 0:
            m.total_learners += f.learners
        if f.teachers > 0:
            m.total_teachers += f.teachers
        if f.classrooms > 0:
            m.total_classrooms += f.classrooms

    m.by_level = dict(levels)
    m.by_ownership = dict(owners)

    total = m.total_facilities
    m.electricity_percentage = percentage(m.with_electricity, total)
    m.water_percentage = percentage(m.with_water, total)
    m.ict_lab_percentage = percentage(m.with_ict_lab, total)
    m.library_percentage = percentage(m.with_library, total)

    m.pupil_teacher_ratio = ratio(m.total_learners, m.total_teachers)
    m.pupil_classroom_ratio = ratio(m.total_learners, m.total_classrooms)

    bench = m.benchmarks
    candidates = [
        detect_gap("electricity", m.electricity_percentage, bench["electricity_target"], Direction.higher_is_better),
        detect_gap("water", m.water_percentage, bench["water_target"], Direction.higher_is_better),
        detect_gap("ict_lab", m.ict_lab_percentage, bench["ict_lab_target"], Direction.higher_is_better),
        detect_gap(
            "pupil_teacher_ratio",
            m.pupil_teacher_ratio,
            bench["pupil_teacher_ratio_primary"],
            Direction.lower_is_better,
        ),
        detect_gap(
            "pupil_classroom_ratio",
            m.pupil_classroom_ratio,
            bench["pupil_classroom_ratio"],
            Direction.lower_is_better,
        ),
    ]
    m.gaps = [g for g in candidates if g is not None]
    return m


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

@dataclass
class HealthMetrics:
    total_facilities: int = 0
    by_level: Dict[str, int] = field(default_factory=dict)
    by_ownership: Dict[str, int] = field(default_factory=dict)

    with_electricity: int = 0
    with_water: int = 0
    with_ambulance: int = 0
    with_maternity: int = 0
    electricity_percentage: Optional[float] = None
    water_percentage: Optional[float] = None
    ambulance_percentage: Optional[float] = None
    maternity_percentage: Optional[float] = None

    offering_hiv: int = 0
    offering_maternal: int = 0
    offering_child_health: int = 0
    offering_immunization: int = 0
    hiv_percentage: Optional[float] = None
    maternal_percentage: Optional[float] = None
    child_health_percentage: Optional[float] = None
    immunization_percentage: Optional[float] = None

    gaps: List[Gap] = field(default_factory=list)
    benchmarks: Dict[str, float] = field(default_factory=dict)

    category: Category = Category.health

    def as_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category.value,
            "totalFacilities": self.total_facilities,
            "byLevel": dict(self.by_level),
            "byOwnership": dict(self.by_ownership),
            "infrastructure": _drop_none({
                "withElectricity": self.with_electricity,
                "withWater": self.with_water,
                "withAmbulance": self.with_ambulance,
                "withMaternity": self.with_maternity,
                "electricityPercentage": self.electricity_percentage,
                "waterPercentage": self.water_percentage,
                "ambulancePercentage": self.ambulance_percentage,
                "maternityPercentage": self.maternity_percentage,
            }),
            "services": _drop_none({
                "offeringHIV": self.offering_hiv,
                "offeringMaternal": self.offering_maternal,
                "offeringChildHealth": self.offering_child_health,
                "offeringImmunization": self.offering_immunization,
                "hivPercentage": self.hiv_percentage,
                "maternalPercentage": self.maternal_percentage,
                "childHealthPercentage": self.child_health_percentage,
                "immunizationPercentage": self.immunization_percentage,
            }),
            "gaps": [g.as_dict() for g in self.gaps],
            "benchmarks": dict(self.benchmarks),
        }


def calculate_health_metrics(facilities: Sequence[HealthFacility]) -> HealthMetrics:
    m = HealthMetrics(total_facilities=len(facilities), benchmarks=benchmarks_for(Category.health))
    levels: Counter = Counter()
    owners: Counter = Counter()

    for f in facilities:
        levels[f.level] += 1
        owners[f.ownership] += 1

        m.with_electricity += f.has_electricity
        m.with_water += f.has_water
        m.with_ambulance += f.has_ambulance
        m.with_maternity += f.has_maternity

        m.offering_hiv += f.offers_hiv
        m.offering_maternal += f.offers_maternal
        m.offering_child_health += f.offers_child_health
        m.offering_immunization += f.offers_immunization

    m.by_level = dict(levels)
    m.by_ownership = dict(owners)

    total = m.total_facilities
    m.electricity_percentage = percentage(m.with_electricity, total)
    m.water_percentage = percentage(m.with_water, total)
    m.ambulance_percentage = percentage(m.with_ambulance, total)
    m.maternity_percentage = percentage(m.with_maternity, total)
    m.hiv_percentage = percentage(m.offering_hiv, total)
    m.maternal_percentage = percentage(m.offering_maternal, total)
    m.child_health_percentage = percentage(m.offering_child_health, total)
    m.immunization_percentage = percentage(m.offering_immunization, total)

    bench = m.benchmarks
    candidates = [
        detect_gap("electricity", m.electricity_percentage, bench["electricity_target"], Direction.higher_is_better),
        detect_gap("water", m.water_percentage, bench["water_target"], Direction.higher_is_better),
    ]
    m.gaps = [g for g in candidates if g is not None]
    return m


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

MetricsAggregate = Union[EducationMetrics, HealthMetrics]


def calculate_metrics(records: Sequence[Mapping[str, Any]], category: Union[Category, str]) -> MetricsAggregate:
    """
    Aggregate raw facility records for one category.

    Each record is normalized to its canonical facility type first, then
    counted. The result is always freshly built; nothing is carried between
    calls. Raises UnknownCategoryError for anything but health/education.
    """
    cat = Category.parse(category)
    logger.info("Calculating %s metrics over %s records", cat.value, len(records))

    if cat is Category.education:
        return calculate_education_metrics([normalize_education(r) for r in records])
    if cat is Category.health:
        return calculate_health_metrics([normalize_health(r) for r in records])
    raise UnknownCategoryError(f"No aggregator for category {cat!r}")
