from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

# Ensure the src/ directory is on sys.path so we can import facility_insights
ROOT_DIR = Path(__file__).resolve().parent
SRC_DIR = ROOT_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from facility_insights.config import APP_NAME, APP_VERSION  # type: ignore
from facility_insights.core.data_loader import DataLoaderError, FacilityDataLoader  # type: ignore
from facility_insights.core.facilities import Category, UnknownCategoryError  # type: ignore
from facility_insights.core.location_hierarchy import LocationFilter, LocationFilterError  # type: ignore
from facility_insights.core.query_engine import (  # type: ignore
    QueryEngineError,
    QueryParameters,
    run_facility_query,
)

logger = logging.getLogger("facility_insights")


def _parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=f"{APP_NAME} {APP_VERSION}: facility metrics for a location scope.")
    parser.add_argument("--category", required=True, help="health or education")
    parser.add_argument("--district", help="District code, e.g. D01")
    parser.add_argument("--subcounty", help="Subcounty code, e.g. D01S02")
    parser.add_argument("--parish", help="Parish code")
    parser.add_argument("--village", help="Village code")
    parser.add_argument(
        "--by-name",
        action="store_true",
        help="Treat the location arguments as names and resolve them to codes first.",
    )
    parser.add_argument("--no-breakdown", action="store_true", help="Skip the subcounty breakdown.")
    parser.add_argument("--breakdown-limit", type=int, default=None)
    parser.add_argument("--verbose", action="store_true")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    loader = FacilityDataLoader()
    try:
        category = Category.parse(args.category)
        if args.by_name:
            location = loader.load_location_tree().filter_from_names(
                district=args.district,
                subcounty=args.subcounty,
                parish=args.parish,
                village=args.village,
            )
        else:
            location = LocationFilter(
                district=args.district,
                subcounty=args.subcounty,
                parish=args.parish,
                village=args.village,
            )

        result = run_facility_query(
            QueryParameters(
                category=category,
                location=location,
                include_breakdown=not args.no_breakdown,
                breakdown_limit=args.breakdown_limit,
            ),
            loader=loader,
        )
    except (UnknownCategoryError, LocationFilterError, QueryEngineError, DataLoaderError) as exc:
        logger.error("Query failed: %s", exc)
        return 1

    print(json.dumps(result.as_dict(), indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
