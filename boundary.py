"""Parse raw boundary payloads into polygons.

Boundaries arrive in whatever shape the spatial database or an import file
produced: GeoJSON objects, bare coordinate arrays, WKT/EWKT text or hex
encoded (E)WKB. Everything is reduced to polygons of lat/lng points with
closed, validated rings. Malformed payloads yield an empty list.
"""
from __future__ import annotations

import json
import logging
import math
import re
import string
from typing import Any, List, Optional, Sequence

import shapely.wkb
import shapely.wkt
from shapely.errors import ShapelyError
from shapely.geometry import mapping

from geom import MultiPolygon, Point, Polygon, build_polygons

logger = logging.getLogger(__name__)

_SRID_PREFIX = re.compile(r"^\s*SRID=\d+;", re.IGNORECASE)
_NUMBER = re.compile(r"-?\d+(?:\.\d+)?(?:[eE][-+]?\d+)?")
_HEX_DIGITS = frozenset(string.hexdigits)


def is_valid_latitude(value: Any) -> bool:
    return _is_number(value) and -90.0 <= value <= 90.0


def is_valid_longitude(value: Any) -> bool:
    return _is_number(value) and -180.0 <= value <= 180.0


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _to_point(value: Any) -> Optional[Point]:
    """Accept a Point, a {lat, lng} mapping or an [lng, lat] pair."""

    if isinstance(value, Point):
        lat, lng = value.lat, value.lng
    elif isinstance(value, dict):
        lat, lng = value.get("lat"), value.get("lng")
    elif isinstance(value, (list, tuple)) and len(value) >= 2:
        lng, lat = value[0], value[1]
    else:
        return None
    if not is_valid_latitude(lat) or not is_valid_longitude(lng):
        return None
    return Point(lat=float(lat), lng=float(lng))


def _is_coordinate(value: Any) -> bool:
    if isinstance(value, (Point, dict)):
        return True
    return (
        isinstance(value, (list, tuple))
        and len(value) >= 2
        and all(isinstance(item, (int, float)) for item in value[:2])
    )


def _depth(value: Any) -> int:
    """Nesting depth down to the first coordinate: 1 ring, 2 polygon, 3 multipolygon."""

    depth = 0
    while isinstance(value, (list, tuple)) and value and not _is_coordinate(value):
        value = value[0]
        depth += 1
    return depth if _is_coordinate(value) else 0


def _parse_ring(coordinates: Any) -> Optional[List[Point]]:
    if not isinstance(coordinates, (list, tuple)) or len(coordinates) < 3:
        return None
    ring: List[Point] = []
    for value in coordinates:
        point = _to_point(value)
        if point is None:
            # One bad vertex invalidates the whole contour.
            return None
        ring.append(point)
    return ring


def _parse_rings(coordinates: Sequence[Any]) -> List[List[Point]]:
    return [ring for ring in (_parse_ring(item) for item in coordinates) if ring is not None]


def _from_coordinates(coordinates: Any) -> MultiPolygon:
    depth = _depth(coordinates)
    if depth == 1:
        groups = [_parse_rings([coordinates])]
    elif depth == 2:
        groups = [_parse_rings(coordinates)]
    elif depth == 3:
        groups = [_parse_rings(polygon) for polygon in coordinates]
    else:
        return ()
    return build_polygons(group for group in groups if group)


def _from_geojson(payload: dict) -> MultiPolygon:
    kind = payload.get("type")
    if kind == "Feature":
        geometry = payload.get("geometry")
        return _from_geojson(geometry) if isinstance(geometry, dict) else ()
    if kind == "FeatureCollection":
        features = payload.get("features") or []
        return tuple(polygon for feature in features if isinstance(feature, dict) for polygon in _from_geojson(feature))
    if kind == "GeometryCollection":
        members = payload.get("geometries") or []
        return tuple(polygon for member in members if isinstance(member, dict) for polygon in _from_geojson(member))
    if kind in ("Polygon", "MultiPolygon"):
        return _from_coordinates(payload.get("coordinates"))
    return ()


def _from_text(payload: str) -> MultiPolygon:
    text = payload.strip()
    if not text:
        return ()
    if text[0] in "{[":
        try:
            return parse_boundary(json.loads(text))
        except ValueError:
            logger.debug("Boundary text looked like JSON but did not decode")

    if len(text) % 2 == 0 and set(text) <= _HEX_DIGITS:
        try:
            return _from_geojson(mapping(shapely.wkb.loads(text, hex=True)))
        except (ShapelyError, ValueError) as exc:
            logger.debug("Boundary hex payload is not WKB: %s", exc)

    try:
        return _from_geojson(mapping(shapely.wkt.loads(_SRID_PREFIX.sub("", text))))
    except (ShapelyError, ValueError) as exc:
        logger.debug("Boundary text is not WKT, reading loose coordinates: %s", exc)

    numbers = [float(match) for match in _NUMBER.findall(text)]
    if len(numbers) < 6:
        return ()
    ring = [
        Point(lat=lat, lng=lng)
        for lng, lat in zip(numbers[0::2], numbers[1::2])
        if is_valid_longitude(lng) and is_valid_latitude(lat)
    ]
    return build_polygons([[ring]])


def parse_boundary(payload: Any) -> MultiPolygon:
    """Return the polygons described by a raw boundary payload.

    Coordinate arrays use GeoJSON [lng, lat] order; mappings and Points are
    read by name. Rings with an invalid vertex are dropped, and so are polygons
    whose outer ring did not survive.
    """

    if payload is None:
        return ()
    if isinstance(payload, Polygon):
        return (payload,)
    if isinstance(payload, str):
        return _from_text(payload)
    if isinstance(payload, bytes):
        try:
            return _from_geojson(mapping(shapely.wkb.loads(payload)))
        except (ShapelyError, ValueError) as exc:
            logger.debug("Boundary bytes are not WKB: %s", exc)
            return ()
    if isinstance(payload, dict):
        return _from_geojson(payload)
    if isinstance(payload, (list, tuple)):
        if payload and all(isinstance(item, Polygon) for item in payload):
            return tuple(payload)
        return _from_coordinates(payload)
    logger.debug("Unsupported boundary payload type: %s", type(payload).__name__)
    return ()
