"""Turn drawn shapes and clicks into selected regions."""
from __future__ import annotations

import logging
from typing import AbstractSet, Iterable, List, Optional, Sequence

from clipping import intersects
from geom import Point, Polygon, Ring, bounding_box_of, bounding_boxes_overlap, close_ring, point_in_polygon
from region import Region

logger = logging.getLogger(__name__)


def rectangle_ring(corner: Point, opposite: Point) -> Ring:
    """Closed NW, NE, SE, SW ring for a rectangle dragged between two corners."""

    north, south = max(corner.lat, opposite.lat), min(corner.lat, opposite.lat)
    east, west = max(corner.lng, opposite.lng), min(corner.lng, opposite.lng)
    return close_ring(
        (
            Point(lat=north, lng=west),
            Point(lat=north, lng=east),
            Point(lat=south, lng=east),
            Point(lat=south, lng=west),
        )
    )


def match_regions_by_ring(resolved_regions: Iterable[Region], query_ring: Sequence[Point]) -> List[Region]:
    """Return every region whose geometry shares area with the drawn ring."""

    if len(set(query_ring)) < 3 or not all(point.is_finite() for point in query_ring):
        return []

    query = (Polygon([query_ring]),)
    query_box = bounding_box_of(query)
    if query_box is None:
        return []

    matches: List[Region] = []
    for region in resolved_regions:
        if region.bounding_box is None or not bounding_boxes_overlap(query_box, region.bounding_box):
            continue
        if intersects(query, region.geometry):
            matches.append(region)

    logger.debug("Ring selection matched %d regions", len(matches))
    return matches


def match_region_by_point(resolved_regions: Iterable[Region], point: Point) -> Optional[Region]:
    """Return the first region containing the point, or None."""

    for region in resolved_regions:
        if region.bounding_box is None or not region.bounding_box.contains(point):
            continue
        if any(point_in_polygon(point, polygon) for polygon in region.geometry):
            return region
    return None


def add_to_selection(selected: AbstractSet[str], matches: Iterable[Region]) -> frozenset:
    """Bulk-add the identities of drag-matched regions."""

    return frozenset(selected) | {region.identity for region in matches}


def toggle_selection(selected: AbstractSet[str], match: Optional[Region]) -> frozenset:
    """Flip a clicked region in or out of the selection; a miss changes nothing."""

    if match is None:
        return frozenset(selected)
    return frozenset(selected) ^ {match.identity}


def selection_for_level(selected: AbstractSet[str], previous_level: str, level: str) -> frozenset:
    """Identities belong to one partition level; switching level clears them."""

    if previous_level != level:
        return frozenset()
    return frozenset(selected)
