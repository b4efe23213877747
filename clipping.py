"""Polygon clipping (union, difference, intersection) on top of shapely.

Every overlay can fail on numerically degenerate input. Non-strict calls log
the failure and fall back to leaving the first operand unchanged; strict calls
raise ClippingError so callers can record the failure themselves.
"""
from __future__ import annotations

import logging
from typing import Iterable, List, Sequence

import shapely
from shapely.errors import ShapelyError
from shapely.geometry import MultiPolygon as ShapelyMultiPolygon
from shapely.geometry import Polygon as ShapelyPolygon
from shapely.geometry.base import BaseGeometry

from geom import MultiPolygon, Point, Polygon, build_polygons

logger = logging.getLogger(__name__)

_OVERLAY_ERRORS = (ShapelyError, ValueError, TypeError)


class ClippingError(RuntimeError):
    """Raised by strict overlays when the clipping backend fails."""


def to_shapely(polygons: Iterable[Polygon]) -> BaseGeometry:
    """Build a valid shapely geometry covering the union of the given polygons."""

    parts: List[BaseGeometry] = []
    for polygon in polygons:
        shell = [(point.lng, point.lat) for point in polygon.outer]
        holes = [[(point.lng, point.lat) for point in hole] for hole in polygon.holes]
        part = ShapelyPolygon(shell, holes)
        if part.is_valid:
            parts.append(part)
        else:
            # Repair can leave collapsed lines or points behind; only area matters.
            parts.extend(_polygonal_parts(shapely.make_valid(part)))
    if not parts:
        return ShapelyMultiPolygon()
    return shapely.union_all(parts)


def _polygonal_parts(geometry: BaseGeometry) -> List[ShapelyPolygon]:
    if geometry.is_empty:
        return []
    if isinstance(geometry, ShapelyPolygon):
        return [geometry]
    if hasattr(geometry, "geoms"):
        parts: List[ShapelyPolygon] = []
        for child in geometry.geoms:
            parts.extend(_polygonal_parts(child))
        return parts
    # Points and lines carry no area.
    return []


def from_shapely(geometry: BaseGeometry) -> MultiPolygon:
    """Convert a shapely result back into polygons, dropping degenerate pieces."""

    groups: List[List[List[Point]]] = []
    for part in _polygonal_parts(geometry):
        rings = [part.exterior] + list(part.interiors)
        groups.append([[Point(lat=lat, lng=lng) for lng, lat in ring.coords] for ring in rings])
    return build_polygons(groups)


def _overlay(operation: str, first: Sequence[Polygon], second: Sequence[Polygon]) -> MultiPolygon:
    try:
        a = to_shapely(first)
        b = to_shapely(second)
        if operation == "union":
            result = a.union(b)
        elif operation == "difference":
            result = a.difference(b)
        else:
            result = a.intersection(b)
        return from_shapely(result)
    except _OVERLAY_ERRORS as exc:
        raise ClippingError(f"{operation} failed: {exc}") from exc


def union(first: Sequence[Polygon], second: Sequence[Polygon], strict: bool = False) -> MultiPolygon:
    """Merge two polygon sets; touching or overlapping pieces become one polygon."""

    if not first:
        return tuple(second)
    if not second:
        return tuple(first)
    try:
        return _overlay("union", first, second)
    except ClippingError as exc:
        if strict:
            raise
        logger.warning("Union failed, keeping first operand: %s", exc)
        return tuple(first)


def union_all(groups: Iterable[Sequence[Polygon]], strict: bool = False) -> MultiPolygon:
    """Union any number of polygon sets in one pass."""

    polygons = [polygon for group in groups for polygon in group]
    if not polygons:
        return ()
    try:
        return from_shapely(to_shapely(polygons))
    except _OVERLAY_ERRORS as exc:
        if strict:
            raise ClippingError(f"union failed: {exc}") from exc
        logger.warning("Union of %d polygons failed, keeping them unmerged: %s", len(polygons), exc)
        return tuple(polygons)


def difference(first: Sequence[Polygon], second: Sequence[Polygon], strict: bool = False) -> MultiPolygon:
    """Return the parts of first not covered by second."""

    if not first:
        return ()
    if not second:
        return tuple(first)
    try:
        return _overlay("difference", first, second)
    except ClippingError as exc:
        if strict:
            raise
        logger.warning("Difference failed, keeping first operand: %s", exc)
        return tuple(first)


def intersects(first: Sequence[Polygon], second: Sequence[Polygon]) -> bool:
    """True when the overlap contains at least one real polygon.

    Shared edges and single shared vertices do not count.
    """

    if not first or not second:
        return False
    try:
        return len(_overlay("intersection", first, second)) > 0
    except ClippingError as exc:
        logger.warning("Intersection test failed, treating as no match: %s", exc)
        return False
