"""Aggregation, gap detection and severity."""

from __future__ import annotations

import pytest

from facility_insights.core.benchmarks import (
    BENCHMARKS,
    Direction,
    attainment_ratio,
    classify_severity,
    detect_gap,
)
from facility_insights.core.facilities import Category, UnknownCategoryError, normalize_records
from facility_insights.core.metrics import EducationMetrics, HealthMetrics, calculate_metrics


def _gap(metrics, gap_type):
    return next((g for g in metrics.gaps if g.type == gap_type), None)


# ---------------------------------------------------------------------------
# Severity
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "ratio_value, expected",
    [
        (0.0, "critical"),
        (0.49, "critical"),
        (0.5, "high"),
        (0.74, "high"),
        (0.75, "medium"),
        (0.89, "medium"),
        (0.9, "low"),
        (0.99, "low"),
    ],
)
def test_severity_thresholds_are_strict_less_than(ratio_value, expected) -> None:
    assert classify_severity(ratio_value) == expected


def test_attainment_ratio_is_fraction_of_target_in_both_directions() -> None:
    assert attainment_ratio(60, 100, Direction.higher_is_better) == pytest.approx(0.6)
    assert attainment_ratio(80, 40, Direction.lower_is_better) == pytest.approx(0.5)


def test_detect_gap_respects_direction() -> None:
    assert detect_gap("electricity", 100.0, 100, Direction.higher_is_better) is None
    assert detect_gap("pupil_teacher_ratio", 40.0, 40, Direction.lower_is_better) is None
    assert detect_gap("electricity", None, 100, Direction.higher_is_better) is None

    gap = detect_gap("pupil_teacher_ratio", 80.0, 40, Direction.lower_is_better)
    assert gap.severity == "high"  # 40 / 80 = 0.5


# ---------------------------------------------------------------------------
# Education
# ---------------------------------------------------------------------------

def test_education_end_to_end(education_records) -> None:
    m = calculate_metrics(education_records, "education")

    assert isinstance(m, EducationMetrics)
    assert m.total_facilities == 3
    assert m.by_level == {"Primary": 3}
    assert m.by_ownership == {"Government": 2, "Private": 1}

    # 1,000 + 500 + 700; teachers only from the two records that have them
    assert m.total_learners == 2200
    assert m.total_teachers == 40
    assert m.pupil_teacher_ratio == 55.0
    assert m.pupil_classroom_ratio is None

    assert m.with_electricity == 2
    assert m.electricity_percentage == 66.7

    electricity = _gap(m, "electricity")
    assert electricity is not None
    assert electricity.current == 66.7
    assert electricity.target == 100
    assert electricity.severity == "high"

    ptr = _gap(m, "pupil_teacher_ratio")
    assert ptr.direction == Direction.lower_is_better
    assert ptr.severity == "high"  # 40 / 55 ~ 0.727

    assert _gap(m, "pupil_classroom_ratio") is None
    assert m.benchmarks == BENCHMARKS[Category.education]


def test_education_output_document(education_records) -> None:
    doc = calculate_metrics(education_records, Category.education).as_dict()

    assert doc["totalFacilities"] == 3
    assert doc["infrastructure"]["electricityPercentage"] == 66.7
    assert doc["enrollment"] == {"totalLearners": 2200, "totalTeachers": 40, "totalClassrooms": 0}
    assert doc["ratios"] == {"pupilTeacherRatio": 55}
    assert {g["type"] for g in doc["gaps"]} >= {"electricity", "pupil_teacher_ratio"}
    assert doc["benchmarks"]["pupil_teacher_ratio_primary"] == 40


def test_empty_education_set_has_no_percentages_or_ratios() -> None:
    m = calculate_metrics([], Category.education)
    doc = m.as_dict()

    assert m.total_facilities == 0
    assert m.electricity_percentage is None
    assert "electricityPercentage" not in doc["infrastructure"]
    assert "waterPercentage" not in doc["infrastructure"]
    assert doc["ratios"] == {}
    assert doc["gaps"] == []
    assert doc["benchmarks"]  # still attached


def test_non_positive_and_junk_counts_are_ignored() -> None:
    records = [
        {"total_learners": "-50", "total_teachers": "n/a", "total_classrooms": "4"},
        {"enrollment": "200", "classrooms": "0"},
    ]

    m = calculate_metrics(records, Category.education)

    assert m.total_learners == 200
    assert m.total_teachers == 0
    assert m.pupil_teacher_ratio is None
    assert m.pupil_classroom_ratio == 50.0
    assert _gap(m, "pupil_classroom_ratio").severity == "low"  # 45 / 50 = 0.9


def test_missing_labels_count_as_unknown() -> None:
    m = calculate_metrics([{"name": "x"}, {"level": "Primary"}], Category.education)

    assert m.by_level == {"Unknown": 1, "Primary": 1}
    assert m.by_ownership == {"Unknown": 2}


def test_full_coverage_has_no_coverage_gaps() -> None:
    records = [{"electricity_available": "yes", "water_available": "Y", "ict_lab": "1"}] * 2

    m = calculate_metrics(records, Category.education)

    assert m.electricity_percentage == 100.0
    assert _gap(m, "electricity") is None
    assert _gap(m, "water") is None
    assert _gap(m, "ict_lab") is None


def test_each_call_builds_a_fresh_aggregate(education_records) -> None:
    first = calculate_metrics(education_records, Category.education)
    first.by_level["Primary"] = 999
    first.benchmarks["electricity_target"] = 0

    second = calculate_metrics(education_records, Category.education)

    assert second.by_level == {"Primary": 3}
    assert second.benchmarks["electricity_target"] == 100
    assert BENCHMARKS[Category.education]["electricity_target"] == 100


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

def test_health_metrics_use_alternate_column_names() -> None:
    records = [
        {"facility_level": "HC II", "Ownership": "Government", "Electricity": "Yes", "water": "yes",
         "Ambulance": "no", "Maternity": "Yes", "hivaids_and_tb_care1": "1", "has_maternal_health": "true",
         "Child_Health": "y", "immunization_services1": "Yes"},
        {"Level": "HC III", "ownership": "Private", "electricity": "No", "Water": "No",
         "ambulance": "Yes", "maternity_ward": "No", "HIV": "No", "Maternal": "Yes",
         "child_health": "", "Immunization": "No"},
    ]

    m = calculate_metrics(records, "health")

    assert isinstance(m, HealthMetrics)
    assert m.by_level == {"HC II": 1, "HC III": 1}
    assert m.with_electricity == 1
    assert m.with_ambulance == 1
    assert m.offering_hiv == 1
    assert m.offering_maternal == 2
    assert m.offering_child_health == 1
    assert m.offering_immunization == 1
    assert m.electricity_percentage == 50.0
    assert m.maternal_percentage == 100.0

    electricity = _gap(m, "electricity")
    assert electricity.severity == "high"  # 50 / 100 = 0.5
    assert _gap(m, "water").severity == "high"

    doc = m.as_dict()
    assert doc["services"]["offeringHIV"] == 1
    assert doc["benchmarks"]["population_per_hc3"] == 20000
    assert "ratios" not in doc


def test_health_no_electricity_is_critical() -> None:
    m = calculate_metrics([{"electricity": "no"}], Category.health)

    assert _gap(m, "electricity").severity == "critical"


# ---------------------------------------------------------------------------
# Category handling
# ---------------------------------------------------------------------------

def test_unknown_category_is_an_explicit_error(education_records) -> None:
    with pytest.raises(UnknownCategoryError):
        calculate_metrics(education_records, "agriculture")
    with pytest.raises(UnknownCategoryError):
        normalize_records(education_records, "")


def test_category_parse_accepts_case_and_whitespace() -> None:
    assert Category.parse(" Health ") is Category.health
    assert Category.parse(Category.education) is Category.education
