"""Region records built on top of geometry primitives.

Raw per-neighborhood boundary payloads are normalised into Region records
with a computed bounding box and area, and neighborhoods can be merged into
city regions by a grouping key.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Final, Iterable, List, Optional, Sequence, Set, Union

from boundary import parse_boundary
from clipping import ClippingError, union_all
from geom import (
    MAX_RING_POINTS,
    BoundingBox,
    MultiPolygon,
    Polygon,
    bounding_box_of,
    multi_polygon_area,
    simplify_polygons,
)

logger = logging.getLogger(__name__)

CITY_KEY_SEPARATOR: Final[str] = "|"


@dataclass(frozen=True)
class RawRegion:
    """Unprocessed boundary payload for one fine-grained region."""

    identity: str
    boundary: Any
    name: str = ""
    city: str = ""
    state: str = ""


@dataclass(frozen=True)
class Region:
    """Named area with normalised geometry.

    bounding_box and area are derived from geometry on construction; use
    with_geometry to obtain a copy with different geometry.
    """

    identity: str
    geometry: MultiPolygon
    name: str = ""
    city: str = ""
    state: str = ""
    bounding_box: Optional[BoundingBox] = field(init=False, compare=False)
    area: float = field(init=False, compare=False)

    def __post_init__(self) -> None:
        geometry = tuple(self.geometry)
        object.__setattr__(self, "geometry", geometry)
        object.__setattr__(self, "bounding_box", bounding_box_of(geometry))
        object.__setattr__(self, "area", multi_polygon_area(geometry))

    def with_geometry(self, geometry: Sequence[Polygon]) -> "Region":
        return replace(self, geometry=tuple(geometry))

    @property
    def is_empty(self) -> bool:
        return not self.geometry


@dataclass
class DiagnosticsReport:
    """Counters collected while building a partition. Informational only."""

    total: int = 0
    parsed: int = 0
    skipped: int = 0
    grouped: int = 0
    overlap_removed: int = 0
    clipping_failures: int = 0
    raw_area: float = 0.0
    union_area: float = 0.0
    warnings: List[str] = field(default_factory=list)

    def record_failure(self, message: str) -> None:
        self.clipping_failures += 1
        self.warnings.append(message)
        logger.warning(message)

    def as_dict(self) -> Dict[str, Union[int, float]]:
        return {
            "total": self.total,
            "parsed": self.parsed,
            "skipped": self.skipped,
            "grouped": self.grouped,
            "overlap_removed": self.overlap_removed,
            "clipping_failures": self.clipping_failures,
            "raw_area": self.raw_area,
            "union_area": self.union_area,
        }


def _coerce_raw(entry: Union[RawRegion, Sequence[Any]]) -> RawRegion:
    if isinstance(entry, RawRegion):
        return entry
    return RawRegion(*entry)


def normalize_regions(
    raw_entries: Iterable[Union[RawRegion, Sequence[Any]]],
    max_ring_points: Optional[int] = MAX_RING_POINTS,
    diagnostics: Optional[DiagnosticsReport] = None,
) -> List[Region]:
    """Parse raw boundaries into Regions, skipping entries with no usable polygon.

    Entries may be RawRegion records or (identity, boundary[, name, city, state])
    tuples. Rings longer than max_ring_points are simplified; pass None to keep
    every vertex. Identities are unique in the result: the first usable entry
    for an identity wins and later ones are counted as skipped.
    """

    report = diagnostics if diagnostics is not None else DiagnosticsReport()
    regions: List[Region] = []
    seen: Set[str] = set()

    for entry in raw_entries:
        raw = _coerce_raw(entry)
        report.total += 1

        identity = str(raw.identity)
        if identity in seen:
            report.skipped += 1
            logger.debug("Skipped region %s: duplicate identity", identity)
            continue

        polygons = parse_boundary(raw.boundary)
        if polygons and max_ring_points is not None:
            polygons = simplify_polygons(polygons, max_ring_points)
        if not polygons:
            report.skipped += 1
            logger.debug("Skipped region %s: no usable polygons", raw.identity)
            continue

        seen.add(identity)
        region = Region(
            identity=identity,
            geometry=polygons,
            name=raw.name,
            city=raw.city,
            state=raw.state,
        )
        report.parsed += 1
        report.raw_area += region.area
        regions.append(region)

    return regions


def city_grouping_key(region: Region) -> str:
    """Case-insensitive, whitespace-trimmed "city|state" key."""

    return f"{region.city.strip().lower()}{CITY_KEY_SEPARATOR}{region.state.strip().lower()}"


def group_into_coarser_regions(
    fine_regions: Iterable[Region],
    grouping_key: Callable[[Region], str] = city_grouping_key,
    diagnostics: Optional[DiagnosticsReport] = None,
) -> List[Region]:
    """Union the geometry of every fine region sharing a grouping key.

    The coarse region's identity is the key and its labels come from the
    first member. A failed union keeps the member polygons side by side in
    one multipolygon instead of merging them.
    """

    report = diagnostics if diagnostics is not None else DiagnosticsReport()
    groups: Dict[str, List[Region]] = {}
    for region in fine_regions:
        groups.setdefault(grouping_key(region), []).append(region)

    coarse: List[Region] = []
    for key, members in groups.items():
        try:
            geometry = union_all([member.geometry for member in members], strict=True)
        except ClippingError as exc:
            report.record_failure(f"Union failed for group {key!r}; keeping polygons unmerged: {exc}")
            geometry = tuple(polygon for member in members for polygon in member.geometry)

        if not geometry:
            logger.debug("Dropped group %s: union is empty", key)
            continue

        first = members[0]
        coarse.append(
            Region(
                identity=key,
                geometry=geometry,
                name=first.city.strip() or key,
                city=first.city.strip(),
                state=first.state.strip(),
            )
        )

    report.grouped += len(coarse)
    return coarse
