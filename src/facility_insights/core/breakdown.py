from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import pandas as pd

from facility_insights.core.facilities import Category, normalize_records
from facility_insights.core.metrics import (
    MetricsAggregate,
    calculate_education_metrics,
    calculate_health_metrics,
)

logger = logging.getLogger(__name__)

SUBCOUNTY_COL = "subcounty"


@dataclass
class BreakdownEntry:
    location: str
    facility_count: int
    metrics: MetricsAggregate

    def as_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"location": self.location, "facilityCount": self.facility_count}
        out.update(self.metrics.as_dict())
        return out


def subcounty_breakdown(
    records: Sequence[Mapping[str, Any]],
    category: Union[Category, str],
    limit: Optional[int] = None,
) -> List[BreakdownEntry]:
    """
    Re-aggregate records per subcounty and rank subcounties by facility count.

    The category must come from the caller; it is not guessed from the data.
    Records without a subcounty are grouped under "Unknown". Subcounties with
    equal counts keep the order in which they first appear.
    """
    cat = Category.parse(category)
    facilities = normalize_records(records, cat)
    if not facilities:
        return []

    frame = pd.DataFrame({SUBCOUNTY_COL: [f.subcounty for f in facilities]})

    entries: List[BreakdownEntry] = []
    for label, grp in frame.groupby(SUBCOUNTY_COL, sort=False):
        members = [facilities[i] for i in grp.index]
        if cat is Category.education:
            metrics: MetricsAggregate = calculate_education_metrics(members)
        else:
            metrics = calculate_health_metrics(members)
        entries.append(BreakdownEntry(location=str(label), facility_count=len(members), metrics=metrics))

    # sorted() is stable, so ties stay in first-seen order
    ranked = sorted(entries, key=lambda e: e.facility_count, reverse=True)
    logger.info("Subcounty breakdown: %s groups over %s %s facilities", len(ranked), len(facilities), cat.value)

    if limit is not None and limit >= 0:
        ranked = ranked[:limit]
    return ranked
