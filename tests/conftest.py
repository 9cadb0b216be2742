from __future__ import annotations

import json
from pathlib import Path

import pytest

from facility_insights.core.data_loader import FacilityDataLoader, RecordCache
from facility_insights.core.facilities import Category
from facility_insights.core.location_hierarchy import LocationTree


LOCATIONS_DOC = {
    "districts": [
        {
            "code": "D01",
            "name": "Kayunga",
            "subcounties": [
                {
                    "code": "D01S02",
                    "name": "Busaana",
                    "parishes": [
                        {
                            "code": "D01S02P03",
                            "name": "Namusaala",
                            "villages": [{"code": "D01S02P03V01", "name": "Bukasa"}],
                        }
                    ],
                },
                {"code": "D01S03", "name": "Kayunga Town Council", "parishes": []},
            ],
        },
        {"code": "D02", "name": "Mukono", "subcounties": []},
    ]
}

# Two Busaana schools (one without a teacher count) and one in Kayunga TC
EDUCATION_CSV = (
    "name,district,subcounty,location_code,level,ownership,electricity_available,total_learners,total_teachers\n"
    "Bukasa P/S,Kayunga,Busaana,D01S02P03V01,Primary,Government,Yes,\"1,000\",20\n"
    "Namusaala P/S,Kayunga,Busaana,D01S02P03,Primary,Private,No,500,\n"
    "Kayunga P/S,Kayunga,Kayunga Town Council,D01S03,Primary,Government,yes,700,20\n"
    "Seeta P/S,Mukono,Seeta,D02S01,Primary,Government,No,300,10\n"
)

HEALTH_CSV = (
    "facility_name,District,Subcounty,location_code,Level,Ownership,Electricity,Water,Ambulance,has_immunization\n"
    "Busaana HC IV,Kayunga,Busaana,D01S02P03,HC IV,Government,Yes,Yes,Yes,Yes\n"
    "Bukasa HC II,Kayunga,Busaana,D01S02P03V01,HC II,Government,No,Yes,No,Yes\n"
    "Kayunga Hospital,Kayunga,Kayunga Town Council,D01S03,Hospital,Government,Yes,Yes,Yes,Yes\n"
)


@pytest.fixture
def location_doc() -> dict:
    return json.loads(json.dumps(LOCATIONS_DOC))


@pytest.fixture
def location_tree(location_doc) -> LocationTree:
    return LocationTree.from_document(location_doc)


@pytest.fixture
def education_records() -> list:
    return [
        {
            "name": "Bukasa P/S",
            "subcounty": "Busaana",
            "location_code": "D01S02P03V01",
            "level": "Primary",
            "ownership": "Government",
            "electricity_available": "Yes",
            "total_learners": "1,000",
            "total_teachers": "20",
        },
        {
            "name": "Namusaala P/S",
            "subcounty": "Busaana",
            "location_code": "D01S02P03",
            "level": "Primary",
            "ownership": "Private",
            "electricity_available": "No",
            "total_learners": "500",
        },
        {
            "name": "Kayunga P/S",
            "Subcounty": "Kayunga Town Council",
            "location_code": "D01S03",
            "Level": "Primary",
            "ownership": "Government",
            "Electricity": "yes",
            "Total_Learners": "700",
            "teachers": "20",
        },
    ]


@pytest.fixture
def data_files(tmp_path: Path) -> dict:
    facilities = tmp_path / "facilities"
    facilities.mkdir()
    education = facilities / "education_facilities.csv"
    health = facilities / "health_facilities.csv"
    locations = tmp_path / "locations.json"

    education.write_text(EDUCATION_CSV, encoding="utf-8")
    health.write_text(HEALTH_CSV, encoding="utf-8")
    locations.write_text(json.dumps(LOCATIONS_DOC), encoding="utf-8")

    return {"education": education, "health": health, "locations": locations}


@pytest.fixture
def loader(data_files) -> FacilityDataLoader:
    return FacilityDataLoader(
        cache=RecordCache(capacity=8, ttl_seconds=60),
        sources={
            Category.education: str(data_files["education"]),
            Category.health: str(data_files["health"]),
        },
        locations_source=str(data_files["locations"]),
    )
