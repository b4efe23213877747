"""Resolve overlapping regions into a disjoint partition.

Smaller regions win: regions are processed smallest area first and each one
keeps only what earlier regions have not already claimed. A region left with
nothing is dropped, since it could never be clicked or drawn over.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Final, Iterable, List, Optional, Sequence, Tuple, Union

from clipping import ClippingError, difference, union, union_all
from geom import MAX_RING_POINTS, MultiPolygon, multi_polygon_area
from region import (
    DiagnosticsReport,
    RawRegion,
    Region,
    group_into_coarser_regions,
    normalize_regions,
)

logger = logging.getLogger(__name__)

LEVELS: Final[Tuple[str, str]] = ("neighborhood", "city")


@dataclass
class Partition:
    """Disjoint regions plus the diagnostics gathered while building them."""

    regions: List[Region]
    diagnostics: DiagnosticsReport = field(default_factory=DiagnosticsReport)

    @property
    def identities(self) -> List[str]:
        return [region.identity for region in self.regions]


def resolution_order(regions: Iterable[Region]) -> List[Region]:
    """Ascending area, ties broken by identity, independent of input order."""

    return sorted(regions, key=lambda region: (region.area, region.identity))


def resolve_overlaps(
    regions: Iterable[Region],
    diagnostics: Optional[DiagnosticsReport] = None,
) -> List[Region]:
    """Return the regions trimmed so that no two of them overlap.

    Output is in resolution order. Identities must be unique. Every emitted
    geometry has passed through the clipping backend, so self-intersecting
    input comes out repaired. When a clipping step fails for a region, that
    region keeps its geometry as it was before the failing step and the
    failure is recorded in diagnostics.
    """

    ordered = resolution_order(regions)
    identities = [region.identity for region in ordered]
    if len(set(identities)) != len(identities):
        duplicates = sorted({identity for identity in identities if identities.count(identity) > 1})
        raise ValueError(f"Duplicate region identities: {', '.join(duplicates)}")

    report = diagnostics if diagnostics is not None else DiagnosticsReport()
    occupied: MultiPolygon = ()
    resolved: List[Region] = []

    for region in ordered:
        try:
            if occupied:
                exclusive = difference(region.geometry, occupied, strict=True)
            else:
                exclusive = union_all([region.geometry], strict=True)
        except ClippingError as exc:
            report.record_failure(f"Overlap removal failed for region {region.identity!r}: {exc}")
            exclusive = region.geometry
        else:
            if not exclusive:
                report.overlap_removed += 1
                logger.debug("Region %s has no area left after clipping", region.identity)
                continue

        try:
            occupied = union(occupied, exclusive, strict=True)
        except ClippingError as exc:
            report.record_failure(f"Could not add region {region.identity!r} to occupied area: {exc}")

        resolved.append(region if exclusive is region.geometry else region.with_geometry(exclusive))

    report.union_area = multi_polygon_area(occupied)
    return resolved


def build_partition(
    raw_entries: Iterable[Union[RawRegion, Sequence[Any]]],
    level: str = "neighborhood",
    max_ring_points: Optional[int] = MAX_RING_POINTS,
) -> Partition:
    """Normalise raw boundaries, optionally merge them into cities, and resolve overlaps."""

    if level not in LEVELS:
        raise ValueError(f"Unknown level '{level}'. Expected one of: {', '.join(LEVELS)}.")

    report = DiagnosticsReport()
    regions = normalize_regions(raw_entries, max_ring_points=max_ring_points, diagnostics=report)
    if level == "city":
        regions = group_into_coarser_regions(regions, diagnostics=report)

    resolved = resolve_overlaps(regions, diagnostics=report)
    logger.info(
        "Built %s partition: total=%d parsed=%d skipped=%d overlap_removed=%d failures=%d",
        level,
        report.total,
        report.parsed,
        report.skipped,
        report.overlap_removed,
        report.clipping_failures,
    )
    return Partition(regions=resolved, diagnostics=report)
