from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)


class LocationFilterError(ValueError):
    """Raised when a location filter carries names instead of codes, or names cannot be resolved."""


class LocationLevel(str, Enum):
    district = "district"
    subcounty = "subcounty"
    parish = "parish"
    village = "village"

    @property
    def depth(self) -> int:
        return LEVEL_ORDER.index(self)


LEVEL_ORDER: List[LocationLevel] = [
    LocationLevel.district,
    LocationLevel.subcounty,
    LocationLevel.parish,
    LocationLevel.village,
]

# Key under which each node lists its children in the locations document
CHILDREN_KEYS: Dict[LocationLevel, str] = {
    LocationLevel.district: "subcounties",
    LocationLevel.subcounty: "parishes",
    LocationLevel.parish: "villages",
}

CODE_PATTERNS: Dict[LocationLevel, "re.Pattern[str]"] = {
    LocationLevel.district: re.compile(r"^D\d+$"),
    LocationLevel.subcounty: re.compile(r"^D\d+S\d+$"),
    LocationLevel.parish: re.compile(r"^D\d+S\d+P\d+$"),
    LocationLevel.village: re.compile(r"^D\d+S\d+P\d+V\d+$"),
}


def infer_level(code: Any) -> Optional[LocationLevel]:
    """
    Infer the administrative level from the code's shape alone.

    'D01' -> district, 'D01S02' -> subcounty, 'D01S02P03' -> parish,
    'D01S02P03V04' -> village. Anything else -> None.
    """
    if not isinstance(code, str):
        return None
    for level in LEVEL_ORDER:
        if CODE_PATTERNS[level].match(code):
            return level
    return None


# ---------------------------------------------------------------------------
# Tree
# ---------------------------------------------------------------------------

@dataclass
class LocationNode:
    code: str
    name: str
    level: LocationLevel
    children: List["LocationNode"] = field(default_factory=list)


@dataclass
class ResolvedLocation:
    level: LocationLevel
    code: str
    name: str
    # Root-first (district first); empty for a district
    ancestors: List[Tuple[LocationLevel, str, str]] = field(default_factory=list)

    def name_for(self, level: LocationLevel) -> Optional[str]:
        if level == self.level:
            return self.name
        for anc_level, _, anc_name in self.ancestors:
            if anc_level == level:
                return anc_name
        return None

    def as_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"type": self.level.value, "code": self.code, "name": self.name}
        for anc_level, anc_code, anc_name in self.ancestors:
            out[anc_level.value] = {"code": anc_code, "name": anc_name}
        return out


def _build_node(raw: Mapping[str, Any], level: LocationLevel) -> LocationNode:
    code = str(raw.get("code") or "").strip()
    name = str(raw.get("name") or "").strip()
    node = LocationNode(code=code, name=name, level=level)

    child_key = CHILDREN_KEYS.get(level)
    if child_key:
        child_level = LEVEL_ORDER[level.depth + 1]
        for child in raw.get(child_key) or []:
            if isinstance(child, Mapping):
                node.children.append(_build_node(child, child_level))
    return node


class LocationTree:
    """
    Read-only district > subcounty > parish > village tree.

    Built once from the locations document and then only read, so one
    instance can be shared by concurrent queries.
    """

    def __init__(self, districts: Sequence[LocationNode]):
        self._districts: Tuple[LocationNode, ...] = tuple(districts)

    @classmethod
    def from_document(cls, doc: Any) -> "LocationTree":
        """
        Accepts either {"districts": [...]} or a bare list of districts.

        Each node looks like {"code": "D01", "name": "Kayunga", "subcounties": [...]},
        with children under "subcounties", "parishes" and "villages".
        """
        if isinstance(doc, Mapping):
            raw_districts = doc.get("districts") or []
        elif isinstance(doc, list):
            raw_districts = doc
        else:
            raise ValueError(f"Unexpected locations document type: {type(doc)}")

        districts = [
            _build_node(d, LocationLevel.district) for d in raw_districts if isinstance(d, Mapping)
        ]
        logger.info("Loaded location tree with %s districts", len(districts))
        return cls(districts)

    @property
    def districts(self) -> Tuple[LocationNode, ...]:
        return self._districts

    def iter_nodes(self) -> Iterator[Tuple[LocationNode, List[LocationNode]]]:
        """Yield (node, ancestors) in level order: all districts, then all subcounties, ..."""
        frontier: List[Tuple[LocationNode, List[LocationNode]]] = [(d, []) for d in self._districts]
        while frontier:
            next_frontier: List[Tuple[LocationNode, List[LocationNode]]] = []
            for node, ancestors in frontier:
                yield node, ancestors
                for child in node.children:
                    next_frontier.append((child, ancestors + [node]))
            frontier = next_frontier

    def resolve(self, code: str) -> Optional[ResolvedLocation]:
        """
        Resolve a location code to the node it names.

        Returns None when the code has no valid shape, when no node carries it,
        or when the node sits at a different depth than the shape implies.
        """
        level = infer_level(code)
        if level is None:
            return None

        for node, ancestors in self.iter_nodes():
            if node.code != code:
                continue
            if node.level != level:
                logger.warning(
                    "Location code %s found at %s level but its shape implies %s; ignoring.",
                    code, node.level.value, level.value,
                )
                continue
            return ResolvedLocation(
                level=node.level,
                code=node.code,
                name=node.name,
                ancestors=[(a.level, a.code, a.name) for a in ancestors],
            )
        return None

    def find_by_name(
        self,
        level: LocationLevel,
        name: str,
        parent_code: Optional[str] = None,
    ) -> Optional[LocationNode]:
        """Case-insensitive name lookup at one level, optionally below a given parent."""
        wanted = (name or "").strip().casefold()
        if not wanted:
            return None

        for node, ancestors in self.iter_nodes():
            if node.level != level or node.name.casefold() != wanted:
                continue
            if parent_code is not None and (not ancestors or ancestors[-1].code != parent_code):
                continue
            return node
        return None

    def filter_from_names(
        self,
        district: Optional[str] = None,
        subcounty: Optional[str] = None,
        parish: Optional[str] = None,
        village: Optional[str] = None,
    ) -> "LocationFilter":
        """
        Turn human-readable location names into a code-based LocationFilter.

        Each level is looked up beneath the previous one, so 'Busaana' is only
        matched inside the named district.
        """
        names = {
            LocationLevel.district: district,
            LocationLevel.subcounty: subcounty,
            LocationLevel.parish: parish,
            LocationLevel.village: village,
        }
        codes: Dict[str, Optional[str]] = {}
        parent: Optional[str] = None

        for level in LEVEL_ORDER:
            name = (names[level] or "").strip()
            if not name:
                codes[level.value] = None
                continue
            node = self.find_by_name(level, name, parent_code=parent)
            if node is None:
                logger.warning("No %s named %r (parent=%s)", level.value, name, parent)
                raise LocationFilterError(f"Unknown {level.value} name: {name!r}")
            codes[level.value] = node.code
            parent = node.code

        return LocationFilter(**codes)


# ---------------------------------------------------------------------------
# Filtering
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LocationFilter:
    """
    Location scope of a query. Every field holds a location CODE, never a name.

    Use LocationTree.filter_from_names() to build one from names.
    """
    district: Optional[str] = None
    subcounty: Optional[str] = None
    parish: Optional[str] = None
    village: Optional[str] = None

    @classmethod
    def from_mapping(cls, mapping: Optional[Mapping[str, Any]]) -> "LocationFilter":
        mapping = mapping or {}
        values: Dict[str, Optional[str]] = {}
        for level in LEVEL_ORDER:
            raw = mapping.get(level.value)
            text = str(raw).strip() if raw is not None else ""
            values[level.value] = text or None
        return cls(**values)

    def most_specific(self) -> Optional[Tuple[LocationLevel, str]]:
        # village > parish > subcounty > district
        for level in reversed(LEVEL_ORDER):
            code = getattr(self, level.value)
            if code:
                return level, code
        return None

    def validate(self) -> "LocationFilter":
        for level in LEVEL_ORDER:
            code = getattr(self, level.value)
            if code and infer_level(code) != level:
                raise LocationFilterError(
                    f"{level.value} filter must be a {level.value} code "
                    f"(pattern {CODE_PATTERNS[level].pattern}), got {code!r}"
                )
        return self

    def as_dict(self) -> Dict[str, str]:
        return {lvl.value: getattr(self, lvl.value) for lvl in LEVEL_ORDER if getattr(self, lvl.value)}


LOCATION_CODE_FIELD = "location_code"


def filter_by_location(
    records: Sequence[Mapping[str, Any]],
    location_filter: Optional[LocationFilter],
) -> List[Mapping[str, Any]]:
    """
    Keep records inside the most specific location in the filter.

    Membership is a literal, case-sensitive prefix test on each record's
    'location_code' (a code embeds its full ancestry). An empty filter keeps
    every record.
    """
    target = location_filter.most_specific() if location_filter else None
    if target is None:
        return list(records)

    _, code = target
    kept = [
        r for r in records
        if isinstance(r.get(LOCATION_CODE_FIELD), str) and r[LOCATION_CODE_FIELD].startswith(code)
    ]
    logger.debug("Location filter %s kept %s of %s records", code, len(kept), len(records))
    return kept
