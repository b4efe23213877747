"""Geometry helpers for neighborhood boundary processing."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Final, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

from shapely.geometry import LineString

MIN_RING_POINTS: Final[int] = 4
"""A closed triangle: three vertices plus the repeated first vertex."""

MAX_RING_POINTS: Final[int] = 900
BASE_TOLERANCE: Final[float] = 0.0001
MAX_TOLERANCE: Final[float] = 0.01
TOLERANCE_GROWTH: Final[float] = 1.5


@dataclass(frozen=True)
class Point:
    """Represents a WGS84 latitude/longitude pair in degrees."""

    lat: float
    lng: float

    def is_finite(self) -> bool:
        return math.isfinite(self.lat) and math.isfinite(self.lng)


Ring = Tuple[Point, ...]


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned latitude/longitude envelope."""

    north: float
    south: float
    east: float
    west: float

    def contains(self, point: Point) -> bool:
        return self.south <= point.lat <= self.north and self.west <= point.lng <= self.east


@dataclass
class Polygon:
    """Represents a polygon as an outer ring followed by zero or more holes."""

    rings: Sequence[Sequence[Point]]

    def __post_init__(self) -> None:
        if not self.rings:
            raise ValueError("A polygon requires an outer ring.")
        rings = tuple(close_ring(ring) for ring in self.rings)
        if any(len(ring) < MIN_RING_POINTS for ring in rings):
            raise ValueError("Every ring requires at least three distinct vertices.")
        # Convert to tuples to avoid accidental mutation of the original sequences.
        self.rings = rings

    @property
    def outer(self) -> Ring:
        return self.rings[0]

    @property
    def holes(self) -> Tuple[Ring, ...]:
        return tuple(self.rings[1:])

    def __iter__(self) -> Iterator[Ring]:
        """Iterate over the rings that belong to the polygon."""

        return iter(self.rings)


MultiPolygon = Tuple[Polygon, ...]
Geometry = Union[Sequence[Point], Polygon, Sequence[Polygon]]


def close_ring(ring: Sequence[Point]) -> Ring:
    """Return the ring with its first point repeated at the end, if not already."""

    points = tuple(ring)
    if points and points[0] != points[-1]:
        points = points + (points[0],)
    return points


def is_usable_ring(ring: Sequence[Point]) -> bool:
    """True when the ring has finite coordinates and encloses at least a triangle."""

    points = close_ring(ring)
    if len(points) < MIN_RING_POINTS:
        return False
    return all(point.is_finite() for point in points)


def build_polygons(polygons: Iterable[Sequence[Sequence[Point]]]) -> MultiPolygon:
    """Filter degenerate rings out of raw ring groups and build polygons.

    A group whose outer ring is unusable is dropped as a whole, since its
    holes no longer describe anything.
    """

    built: List[Polygon] = []
    for rings in polygons:
        rings = list(rings)
        if not rings or not is_usable_ring(rings[0]):
            continue
        built.append(Polygon([rings[0]] + [ring for ring in rings[1:] if is_usable_ring(ring)]))
    return tuple(built)


def ring_area(ring: Sequence[Point]) -> float:
    """Signed shoelace area in square degrees, longitude as x and latitude as y.

    Counter-clockwise rings are positive. The ring is treated as implicitly
    closed, so a repeated last vertex contributes nothing.
    """

    n = len(ring)
    if n < 3:
        return 0.0
    total = 0.0
    for i in range(n):
        current = ring[i]
        following = ring[(i + 1) % n]
        total += current.lng * following.lat - following.lng * current.lat
    return total / 2.0


def polygon_area(polygon: Polygon) -> float:
    """Outer area minus hole areas, never negative."""

    outer = abs(ring_area(polygon.outer))
    holes = sum(abs(ring_area(hole)) for hole in polygon.holes)
    return max(0.0, outer - holes)


def multi_polygon_area(polygons: Iterable[Polygon]) -> float:
    return sum(polygon_area(polygon) for polygon in polygons)


def _iter_points(geometry: Geometry) -> Iterator[Point]:
    if isinstance(geometry, Polygon):
        for ring in geometry:
            yield from ring
        return
    for item in geometry:
        if isinstance(item, Point):
            yield item
        else:
            yield from _iter_points(item)


def bounding_box_of(geometry: Geometry) -> Optional[BoundingBox]:
    """Return the envelope of a ring, polygon or multipolygon, or None when empty."""

    north, south = -math.inf, math.inf
    east, west = -math.inf, math.inf
    for point in _iter_points(geometry):
        north = max(north, point.lat)
        south = min(south, point.lat)
        east = max(east, point.lng)
        west = min(west, point.lng)
    if north == -math.inf:
        return None
    return BoundingBox(north=north, south=south, east=east, west=west)


def bounding_boxes_overlap(a: BoundingBox, b: BoundingBox) -> bool:
    """Standard AABB test; boxes that only touch count as overlapping."""

    return not (
        a.east < b.west
        or a.west > b.east
        or a.north < b.south
        or a.south > b.north
    )


def _on_segment(point: Point, start: Point, end: Point) -> bool:
    cross = (end.lng - start.lng) * (point.lat - start.lat) - (end.lat - start.lat) * (
        point.lng - start.lng
    )
    if cross != 0:
        return False
    return (
        min(start.lng, end.lng) <= point.lng <= max(start.lng, end.lng)
        and min(start.lat, end.lat) <= point.lat <= max(start.lat, end.lat)
    )


def point_in_ring(point: Point, ring: Sequence[Point], include_boundary: bool = True) -> bool:
    """Ray casting test against a single ring."""

    x, y = point.lng, point.lat
    inside = False
    n = len(ring)

    for i in range(n):
        j = (i - 1) % n
        start, end = ring[j], ring[i]
        if _on_segment(point, start, end):
            return include_boundary
        xi, yi = end.lng, end.lat
        xj, yj = start.lng, start.lat

        if (yi > y) != (yj > y):
            intersect_x = (xj - xi) * (y - yi) / (yj - yi) + xi
            if x < intersect_x:
                inside = not inside

    return inside


def point_in_polygon(point: Point, polygon: Polygon) -> bool:
    """Return True when the point lies inside or on the boundary of the polygon.

    A point strictly inside a hole is outside the polygon; a point on a hole's
    edge is on the polygon boundary and therefore inside.
    """

    if not point_in_ring(point, polygon.outer):
        return False
    return not any(point_in_ring(point, hole, include_boundary=False) for hole in polygon.holes)


def simplify_ring(ring: Sequence[Point], tolerance: float) -> Ring:
    """Douglas-Peucker simplification that keeps the ring closed.

    Returns the input unchanged when simplification would collapse it below a
    triangle.
    """

    points = close_ring(ring)
    if len(points) < MIN_RING_POINTS:
        return points
    line = LineString([(point.lng, point.lat) for point in points])
    simplified = line.simplify(tolerance, preserve_topology=False)
    coords = list(simplified.coords)
    if len(coords) < MIN_RING_POINTS:
        return points
    return close_ring(Point(lat=lat, lng=lng) for lng, lat in coords)


def simplify_ring_adaptive(ring: Sequence[Point], max_points: int = MAX_RING_POINTS) -> Ring:
    """Grow the tolerance until the ring fits within max_points or the cap is hit."""

    points = close_ring(ring)
    if len(points) <= max_points:
        return points

    tolerance = BASE_TOLERANCE
    simplified = simplify_ring(points, tolerance)
    while len(simplified) > max_points and tolerance < MAX_TOLERANCE:
        tolerance *= TOLERANCE_GROWTH
        simplified = simplify_ring(points, tolerance)

    return simplified if len(simplified) >= MIN_RING_POINTS else points


def simplify_polygons(polygons: Iterable[Polygon], max_points: int = MAX_RING_POINTS) -> MultiPolygon:
    return build_polygons(
        [simplify_ring_adaptive(ring, max_points) for ring in polygon] for polygon in polygons
    )


def to_geojson_multipolygon(polygons: Iterable[Polygon]) -> Dict[str, Any]:
    """Serialise polygons as a GeoJSON MultiPolygon in [lng, lat] order."""

    return {
        "type": "MultiPolygon",
        "coordinates": [
            [[[point.lng, point.lat] for point in ring] for ring in polygon]
            for polygon in polygons
        ],
    }
