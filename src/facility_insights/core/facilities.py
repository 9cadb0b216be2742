from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Sequence, Tuple, Union

from facility_insights.core.coercion import first_present, parse_affirmative, parse_lenient_number

UNKNOWN_LABEL = "Unknown"


class UnknownCategoryError(ValueError):
    """Raised for a facility category other than health or education."""


class Category(str, Enum):
    health = "health"
    education = "education"

    @classmethod
    def parse(cls, value: Union["Category", str]) -> "Category":
        if isinstance(value, Category):
            return value
        text = str(value or "").strip().lower()
        try:
            return cls(text)
        except ValueError:
            raise UnknownCategoryError(
                f"Category must be one of {[c.value for c in cls]}, got {value!r}"
            ) from None


# ---------------------------------------------------------------------------
# Alternate column names
#
# Different data collections named the same attribute differently. The first
# alternate holding a non-empty value wins.
# ---------------------------------------------------------------------------

COMMON_ALTERNATES: Dict[str, Tuple[str, ...]] = {
    "name": ("name", "facility_name", "Name"),
    "district": ("district", "District"),
    "subcounty": ("subcounty", "Subcounty", "sub_county"),
    "location_code": ("location_code",),
    "ownership": ("ownership", "Ownership"),
}

EDUCATION_ALTERNATES: Dict[str, Tuple[str, ...]] = {
    "level": ("level", "Level"),
    "electricity": ("electricity_available", "Electricity"),
    "water": ("water_available", "Water"),
    "ict_lab": ("ict_lab", "ICT_Lab"),
    "library": ("library", "Library"),
    "learners": ("total_learners", "Total_Learners", "enrollment"),
    "teachers": ("total_teachers", "Total_Teachers", "teachers"),
    "classrooms": ("total_classrooms", "Total_Classrooms", "classrooms"),
}

HEALTH_ALTERNATES: Dict[str, Tuple[str, ...]] = {
    "level": ("level", "Level", "facility_level"),
    "electricity": ("electricity", "Electricity"),
    "water": ("water", "Water"),
    "ambulance": ("ambulance", "Ambulance"),
    "maternity": ("maternity_ward", "Maternity"),
    "hiv": ("hiv_services", "HIV", "has_hiv_tb_care", "hivaids_and_tb_care1"),
    "maternal": ("maternal_services", "Maternal", "has_maternal_health"),
    "child_health": ("child_health", "Child_Health"),
    "immunization": ("immunization", "Immunization", "has_immunization", "immunization_services1"),
}


@dataclass(frozen=True)
class EducationFacility:
    name: str
    district: str
    subcounty: str
    location_code: str
    level: str
    ownership: str
    has_electricity: bool
    has_water: bool
    has_ict_lab: bool
    has_library: bool
    learners: float
    teachers: float
    classrooms: float


@dataclass(frozen=True)
class HealthFacility:
    name: str
    district: str
    subcounty: str
    location_code: str
    level: str
    ownership: str
    has_electricity: bool
    has_water: bool
    has_ambulance: bool
    has_maternity: bool
    offers_hiv: bool
    offers_maternal: bool
    offers_child_health: bool
    offers_immunization: bool


Facility = Union[EducationFacility, HealthFacility]


def _common_fields(record: Mapping[str, Any]) -> Dict[str, str]:
    return {
        "name": first_present(record, COMMON_ALTERNATES["name"]),
        "district": first_present(record, COMMON_ALTERNATES["district"]),
        "subcounty": first_present(record, COMMON_ALTERNATES["subcounty"]) or UNKNOWN_LABEL,
        "location_code": first_present(record, COMMON_ALTERNATES["location_code"]),
        "ownership": first_present(record, COMMON_ALTERNATES["ownership"]) or UNKNOWN_LABEL,
    }


def normalize_education(record: Mapping[str, Any]) -> EducationFacility:
    alt = EDUCATION_ALTERNATES
    return EducationFacility(
        **_common_fields(record),
        level=first_present(record, alt["level"]) or UNKNOWN_LABEL,
        has_electricity=parse_affirmative(first_present(record, alt["electricity"])),
        has_water=parse_affirmative(first_present(record, alt["water"])),
        has_ict_lab=parse_affirmative(first_present(record, alt["ict_lab"])),
        has_library=parse_affirmative(first_present(record, alt["library"])),
        learners=parse_lenient_number(first_present(record, alt["learners"])),
        teachers=parse_lenient_number(first_present(record, alt["teachers"])),
        classrooms=parse_lenient_number(first_present(record, alt["classrooms"])),
    )


def normalize_health(record: Mapping[str, Any]) -> HealthFacility:
    alt = HEALTH_ALTERNATES
    return HealthFacility(
        **_common_fields(record),
        level=first_present(record, alt["level"]) or UNKNOWN_LABEL,
        has_electricity=parse_affirmative(first_present(record, alt["electricity"])),
        has_water=parse_affirmative(first_present(record, alt["water"])),
        has_ambulance=parse_affirmative(first_present(record, alt["ambulance"])),
        has_maternity=parse_affirmative(first_present(record, alt["maternity"])),
        offers_hiv=parse_affirmative(first_present(record, alt["hiv"])),
        offers_maternal=parse_affirmative(first_present(record, alt["maternal"])),
        offers_child_health=parse_affirmative(first_present(record, alt["child_health"])),
        offers_immunization=parse_affirmative(first_present(record, alt["immunization"])),
    )


def normalize_records(records: Sequence[Mapping[str, Any]], category: Union[Category, str]) -> List[Facility]:
    """Map raw heterogeneous rows into canonical facilities, once per row."""
    cat = Category.parse(category)
    if cat is Category.education:
        return [normalize_education(r) for r in records]
    if cat is Category.health:
        return [normalize_health(r) for r in records]
    raise UnknownCategoryError(f"No normalizer for category {cat!r}")
