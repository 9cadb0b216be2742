from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from facility_insights.core.benchmarks import Gap
from facility_insights.core.query_engine import QueryResult


@dataclass
class AuditGapFact:
    """
    A single benchmark shortfall, flattened for display or narrative use.
    """
    metric: str
    current: float
    target: float
    severity: str
    shortfall: float  # distance to target in the metric's own units


@dataclass
class ContextSnapshot:
    """
    Canonical facts derived from a QueryResult.

    These are the facts a downstream narrative layer is allowed to talk about.
    They can be shown to the user for manual audit, and used to check
    generated statements against the numbers actually computed.
    """
    category: str
    location_label: str
    location_code: str
    total_facilities: int

    metrics: Dict[str, Any]
    subcounty_breakdown: List[Dict[str, Any]]
    schema: Dict[str, Any]
    sample_facilities: List[Dict[str, str]]

    gap_facts: List[AuditGapFact]
    worst_severity: Optional[str]


SEVERITY_RANK = {"critical": 0, "high": 1, "medium": 2, "low": 3}


def _gap_fact(gap: Gap) -> AuditGapFact:
    return AuditGapFact(
        metric=gap.type,
        current=gap.current,
        target=gap.target,
        severity=gap.severity,
        shortfall=round(abs(gap.target - gap.current), 1),
    )


def build_context_snapshot(
    result: QueryResult,
    breakdown_limit: int = 10,
    sample_size: int = 5,
) -> ContextSnapshot:
    """
    Build the fact sheet handed to prompt construction.

    This function:
      - Renders the aggregate metrics as a plain document
      - Keeps the top `breakdown_limit` subcounties (already ranked by count)
      - Keeps the first `sample_size` raw records as examples
      - Lists gaps ordered from most to least severe

    Downstream text should only make claims traceable to these facts.
    """
    gap_facts = sorted(
        (_gap_fact(g) for g in result.metrics.gaps),
        key=lambda f: SEVERITY_RANK.get(f.severity, len(SEVERITY_RANK)),
    )
    worst = gap_facts[0].severity if gap_facts else None

    return ContextSnapshot(
        category=result.params.category.value,
        location_label=result.location_label,
        location_code=result.location.code,
        total_facilities=result.metrics.total_facilities,
        metrics=result.metrics.as_dict(),
        subcounty_breakdown=[e.as_dict() for e in result.breakdown[:breakdown_limit]],
        schema=result.schema,
        sample_facilities=[dict(r) for r in result.records[:sample_size]],
        gap_facts=gap_facts,
        worst_severity=worst,
    )
