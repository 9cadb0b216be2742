"""Run the command-line entry point against temporary data files."""

from __future__ import annotations

import json

import pytest

import main
from facility_insights.core import data_loader


@pytest.fixture
def cli_sources(monkeypatch, data_files):
    monkeypatch.setattr(data_loader, "FACILITY_EDUCATION_SOURCE", str(data_files["education"]))
    monkeypatch.setattr(data_loader, "FACILITY_HEALTH_SOURCE", str(data_files["health"]))
    monkeypatch.setattr(data_loader, "LOCATIONS_SOURCE", str(data_files["locations"]))
    return data_files


def test_cli_prints_query_result(cli_sources, capsys) -> None:
    exit_code = main.main(["--category", "education", "--district", "D01", "--breakdown-limit", "5"])

    assert exit_code == 0
    doc = json.loads(capsys.readouterr().out)
    assert doc["metrics"]["totalFacilities"] == 3
    assert doc["subcountyBreakdown"][0]["location"] == "Busaana"


def test_cli_resolves_names(cli_sources, capsys) -> None:
    exit_code = main.main(
        ["--category", "health", "--district", "Kayunga", "--subcounty", "Busaana", "--by-name", "--no-breakdown"]
    )

    assert exit_code == 0
    doc = json.loads(capsys.readouterr().out)
    assert doc["locationLabel"] == "District: Kayunga, Subcounty: Busaana"
    assert doc["subcountyBreakdown"] == []


@pytest.mark.parametrize(
    "argv",
    [
        ["--category", "roads", "--district", "D01"],
        ["--category", "health", "--district", "Kayunga"],
        ["--category", "health", "--district", "Nowhere", "--by-name"],
    ],
)
def test_cli_reports_failures_with_exit_code(cli_sources, argv) -> None:
    assert main.main(argv) == 1
