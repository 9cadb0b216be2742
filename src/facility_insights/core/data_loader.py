from __future__ import annotations

import json
import logging
import threading
import time
from collections import OrderedDict
from pathlib import Path
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import pandas as pd
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from facility_insights.config import (
    CACHE_CAPACITY,
    CACHE_TTL_SECONDS,
    FACILITY_EDUCATION_SOURCE,
    FACILITY_HEALTH_SOURCE,
    LOCATIONS_SOURCE,
    SOURCE_TIMEOUT_SECONDS,
)
from facility_insights.core.facilities import COMMON_ALTERNATES, Category
from facility_insights.core.location_hierarchy import LocationTree
from facility_insights.core.tabular_parser import parse_table

logger = logging.getLogger(__name__)

FacilityRecord = Mapping[str, str]


class DataLoaderError(Exception):
    """Raised when a facility or location source cannot be read or parsed."""


# ---------------------------------------------------------------------------
# Source reading (local file or http(s) URL)
# ---------------------------------------------------------------------------

def _build_retry_session() -> requests.Session:
    """
    Build a requests Session with conservative retries for remote sources.
    """
    session = requests.Session()

    retry = Retry(
        total=3,
        connect=3,
        read=3,
        status=3,
        backoff_factor=0.5,
        status_forcelist=(429, 500, 502, 503, 504),
        allowed_methods=frozenset({"GET"}),
        raise_on_status=False,
    )

    adapter = HTTPAdapter(max_retries=retry, pool_connections=4, pool_maxsize=4)
    session.mount("https://", adapter)
    session.mount("http://", adapter)

    return session


_SESSION: Optional[requests.Session] = None


def _get_session() -> requests.Session:
    global _SESSION
    if _SESSION is None:
        _SESSION = _build_retry_session()
    return _SESSION


def _is_url(source: str) -> bool:
    return source.lower().startswith(("http://", "https://"))


def read_source_text(source: Union[str, Path], timeout_seconds: int = SOURCE_TIMEOUT_SECONDS) -> str:
    """
    Read a whole source as text.

    `source` is a local path or an http(s) URL. A UTF-8 byte-order mark is
    dropped (spreadsheet exports often carry one).
    """
    src = str(source).strip()
    if not src:
        raise DataLoaderError("Empty source location.")

    if _is_url(src):
        try:
            resp = _get_session().get(src, timeout=timeout_seconds)
        except requests.RequestException as exc:
            raise DataLoaderError(f"HTTP error while fetching {src}: {exc}") from exc
        if resp.status_code != 200:
            raise DataLoaderError(f"Fetching {src} returned status {resp.status_code}.")
        resp.encoding = resp.encoding or "utf-8"
        return resp.text.lstrip("\ufeff")

    path = Path(src)
    try:
        return path.read_text(encoding="utf-8-sig")
    except FileNotFoundError as exc:
        raise DataLoaderError(f"Source file not found: {path}") from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise DataLoaderError(f"Could not read {path}: {exc}") from exc


# ---------------------------------------------------------------------------
# Read-through cache
# ---------------------------------------------------------------------------

class RecordCache:
    """
    Bounded read-through cache shared by loaders within one process.

    Entries expire after `ttl_seconds`; once `capacity` entries are held, the
    least recently used one is evicted. Safe to share between threads.
    """

    def __init__(
        self,
        capacity: int = CACHE_CAPACITY,
        ttl_seconds: float = CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: "OrderedDict[str, Tuple[float, Any]]" = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            self._entries.move_to_end(key)
            return value

    def put(self, key: str, value: Any) -> None:
        with self._lock:
            self._entries[key] = (self._clock() + self.ttl_seconds, value)
            self._entries.move_to_end(key)
            while len(self._entries) > self.capacity:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("Cache evicted %s", evicted)

    def get_or_load(self, key: str, loader: Callable[[], Any]) -> Any:
        value = self.get(key)
        if value is not None:
            logger.debug("Cache hit: %s", key)
            return value
        logger.debug("Cache miss: %s", key)
        value = loader()
        self.put(key, value)
        return value

    def invalidate(self, key: Optional[str] = None) -> None:
        """Drop one entry, or everything when no key is given."""
        with self._lock:
            if key is None:
                self._entries.clear()
            else:
                self._entries.pop(key, None)


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

LOCATIONS_CACHE_KEY = "locations"


def _matches_district(record: Mapping[str, str], district: str) -> bool:
    value = ""
    for col in COMMON_ALTERNATES["district"]:
        value = (record.get(col) or "").strip()
        if value:
            break
    # Rows without any district value are kept
    return not value or value.lower() == district.lower()


class FacilityDataLoader:
    """
    Loads facility records per category and the location tree, through a cache.

    Records are returned as a tuple of read-only mappings; the same tuple may
    be handed to several queries, so it must never be mutated.
    """

    def __init__(
        self,
        cache: Optional[RecordCache] = None,
        sources: Optional[Dict[Category, str]] = None,
        locations_source: Optional[str] = None,
        timeout_seconds: int = SOURCE_TIMEOUT_SECONDS,
    ):
        self.cache = cache if cache is not None else RecordCache()
        self.sources: Dict[Category, str] = {
            Category.health: FACILITY_HEALTH_SOURCE,
            Category.education: FACILITY_EDUCATION_SOURCE,
        }
        if sources:
            self.sources.update({Category.parse(k): v for k, v in sources.items()})
        self.locations_source = locations_source or LOCATIONS_SOURCE
        self.timeout_seconds = timeout_seconds

    @staticmethod
    def records_cache_key(category: Category, district: Optional[str]) -> str:
        return f"{category.value}:{(district or '').strip().lower()}"

    def load_records(
        self,
        category: Union[Category, str],
        district: Optional[str] = None,
    ) -> Tuple[FacilityRecord, ...]:
        """
        Load one category's records, keeping those in `district` (by name).

        Rows that carry no district value are kept, since older collections
        did not always record it.
        """
        cat = Category.parse(category)
        key = self.records_cache_key(cat, district)
        return self.cache.get_or_load(key, lambda: self._read_records(cat, district))

    def _read_records(self, category: Category, district: Optional[str]) -> Tuple[FacilityRecord, ...]:
        source = self.sources[category]
        logger.info("Loading %s facilities from %s", category.value, source)

        table = parse_table(read_source_text(source, timeout_seconds=self.timeout_seconds))
        if table.warnings:
            logger.warning(
                "%s source %s: %s rows had a column count different from the header.",
                category.value, source, len(table.warnings),
            )

        records = table.records
        if district and district.strip():
            records = [r for r in records if _matches_district(r, district.strip())]

        logger.info("Loaded %s %s records (district=%s)", len(records), category.value, district)
        return tuple(MappingProxyType(r) for r in records)

    def load_location_tree(self) -> LocationTree:
        return self.cache.get_or_load(LOCATIONS_CACHE_KEY, self._read_location_tree)

    def _read_location_tree(self) -> LocationTree:
        logger.info("Loading location hierarchy from %s", self.locations_source)
        text = read_source_text(self.locations_source, timeout_seconds=self.timeout_seconds)
        try:
            doc = json.loads(text)
        except json.JSONDecodeError as exc:
            raise DataLoaderError(f"Locations document is not valid JSON: {exc}") from exc
        try:
            return LocationTree.from_document(doc)
        except ValueError as exc:
            raise DataLoaderError(str(exc)) from exc

    def invalidate(self, category: Optional[Union[Category, str]] = None, district: Optional[str] = None) -> None:
        """Drop cached records for one category/district, or the whole cache."""
        if category is None:
            self.cache.invalidate()
            return
        self.cache.invalidate(self.records_cache_key(Category.parse(category), district))


# ---------------------------------------------------------------------------
# Schema description
# ---------------------------------------------------------------------------

SCHEMA_DESCRIPTIONS = {
    Category.health: "Health facilities with infrastructure and service data",
    Category.education: "Education facilities with enrollment and infrastructure data",
}


def describe_schema(category: Union[Category, str], sample_records: Sequence[Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Summarize which fields the records carry.

    Fields come from the first record. `completeness` is the share of
    records with a non-empty value per field, rounded to 3 places.
    """
    cat = Category.parse(category)
    if not sample_records:
        return {
            "category": cat.value,
            "fields": [],
            "sampleCount": 0,
            "description": "No data available",
        }

    fields: List[str] = list(sample_records[0].keys())
    df = pd.DataFrame.from_records([dict(r) for r in sample_records], columns=fields)
    filled = df.fillna("").astype(str).apply(lambda col: col.str.strip() != "")
    completeness = {col: round(float(filled[col].mean()), 3) for col in fields}

    return {
        "category": cat.value,
        "fields": fields,
        "sampleCount": len(sample_records),
        "description": SCHEMA_DESCRIPTIONS[cat],
        "completeness": completeness,
    }
