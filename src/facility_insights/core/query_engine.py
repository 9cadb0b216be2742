from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

import logging

from facility_insights.core.breakdown import BreakdownEntry, subcounty_breakdown
from facility_insights.core.data_loader import FacilityDataLoader, describe_schema
from facility_insights.core.facilities import Category
from facility_insights.core.location_hierarchy import (
    LEVEL_ORDER,
    LocationFilter,
    LocationFilterError,
    LocationLevel,
    ResolvedLocation,
    filter_by_location,
)
from facility_insights.core.metrics import MetricsAggregate, calculate_metrics

logger = logging.getLogger(__name__)


class QueryEngineError(Exception):
    """Custom exception for query engine failures."""


@dataclass
class QueryParameters:
    """
    Structured parameters for one facility query.

    Location rules:
      - location.district is required and must be a district code ('D01').
      - The most specific filled level (village > parish > subcounty > district)
        decides which records are kept.
      - All location fields are codes; build them from names with
        LocationTree.filter_from_names().
    """
    category: Category
    location: LocationFilter
    include_breakdown: bool = True
    breakdown_limit: Optional[int] = None


@dataclass
class QueryResult:
    params: QueryParameters
    records: List[Mapping[str, Any]]
    metrics: MetricsAggregate
    breakdown: List[BreakdownEntry]
    location: ResolvedLocation
    location_label: str
    schema: Dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "category": self.params.category.value,
            "location": self.location.as_dict(),
            "locationLabel": self.location_label,
            "metrics": self.metrics.as_dict(),
            "subcountyBreakdown": [e.as_dict() for e in self.breakdown],
            "schema": self.schema,
        }


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _validate_params(params: QueryParameters) -> None:
    if not isinstance(params.category, Category):
        raise QueryEngineError(f"category must be a Category, got {params.category!r}")
    if not params.location.district:
        raise QueryEngineError("Location with at least a district is required.")
    try:
        params.location.validate()
    except LocationFilterError as exc:
        raise QueryEngineError(str(exc)) from exc

    # Lower levels must sit inside the levels above them
    previous: Optional[str] = None
    for level in LEVEL_ORDER:
        code = getattr(params.location, level.value)
        if not code:
            continue
        if previous and not code.startswith(previous):
            raise QueryEngineError(f"{level.value} {code} is not inside {previous}.")
        previous = code


def build_location_label(location: ResolvedLocation) -> str:
    """'District: Kayunga, Subcounty: Busaana' for the resolved scope and its ancestors."""
    parts: List[str] = []
    for level in LEVEL_ORDER:
        name = location.name_for(level)
        if name:
            parts.append(f"{level.value.capitalize()}: {name}")
        if level == location.level:
            break
    return ", ".join(parts)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def run_facility_query(params: QueryParameters, loader: Optional[FacilityDataLoader] = None) -> QueryResult:
    logger.info("Running facility query with params=%s", params)
    _validate_params(params)

    loader = loader or FacilityDataLoader()
    tree = loader.load_location_tree()

    scope_level, scope_code = params.location.most_specific()
    resolved = tree.resolve(scope_code)
    if resolved is None:
        raise QueryEngineError(f"Location code {scope_code} ({scope_level.value}) not found in the location hierarchy.")

    district_name = resolved.name_for(LocationLevel.district)
    all_records = loader.load_records(params.category, district_name)

    records = filter_by_location(all_records, params.location)
    logger.info(
        "Scope %s kept %s of %s %s records",
        scope_code, len(records), len(all_records), params.category.value,
    )

    metrics = calculate_metrics(records, params.category)

    breakdown: List[BreakdownEntry] = []
    if params.include_breakdown:
        breakdown = subcounty_breakdown(records, params.category, limit=params.breakdown_limit)

    return QueryResult(
        params=params,
        records=records,
        metrics=metrics,
        breakdown=breakdown,
        location=resolved,
        location_label=build_location_label(resolved),
        schema=describe_schema(params.category, records),
    )
