import pytest

from geom import (
    BoundingBox,
    Point,
    Polygon,
    bounding_box_of,
    bounding_boxes_overlap,
    build_polygons,
    close_ring,
    multi_polygon_area,
    point_in_polygon,
    polygon_area,
    ring_area,
    simplify_ring_adaptive,
    to_geojson_multipolygon,
)


def square(west, south, east, north):
    return [
        Point(lat=south, lng=west),
        Point(lat=south, lng=east),
        Point(lat=north, lng=east),
        Point(lat=north, lng=west),
    ]


def dense_square(points_per_edge):
    ring = [Point(lat=0, lng=i / points_per_edge) for i in range(points_per_edge + 1)]
    ring += [Point(lat=i / points_per_edge, lng=1) for i in range(1, points_per_edge + 1)]
    ring += [Point(lat=1, lng=i / points_per_edge) for i in range(points_per_edge - 1, -1, -1)]
    ring += [Point(lat=i / points_per_edge, lng=0) for i in range(points_per_edge - 1, 0, -1)]
    return close_ring(ring)


def test_close_ring_is_idempotent():
    ring = square(0, 0, 1, 1)
    closed = close_ring(ring)
    assert len(closed) == 5
    assert closed[0] == closed[-1]
    assert close_ring(closed) == closed


def test_ring_area_sign_follows_winding():
    ring = square(0, 0, 2, 2)
    assert ring_area(ring) == pytest.approx(4.0)
    assert ring_area(list(reversed(ring))) == pytest.approx(-4.0)
    assert ring_area(close_ring(ring)) == pytest.approx(4.0)


def test_polygon_area_subtracts_holes():
    polygon = Polygon([square(0, 0, 3, 3), square(1, 1, 2, 2)])
    assert polygon_area(polygon) == pytest.approx(8.0)


def test_polygon_area_never_negative():
    polygon = Polygon([square(0, 0, 1, 1), square(-1, -1, 2, 2)])
    assert polygon_area(polygon) == 0.0


def test_multi_polygon_area_sums_parts():
    polygons = (Polygon([square(0, 0, 1, 1)]), Polygon([square(5, 5, 7, 7)]))
    assert multi_polygon_area(polygons) == pytest.approx(5.0)
    assert multi_polygon_area(()) == 0.0


def test_polygon_rejects_degenerate_rings():
    with pytest.raises(ValueError):
        Polygon([])
    with pytest.raises(ValueError):
        Polygon([[Point(0, 0), Point(1, 1)]])


def test_build_polygons_filters_degenerate_rings():
    bad_hole = [Point(0.5, 0.5), Point(0.6, 0.6)]
    non_finite = [Point(0, 0), Point(float("nan"), 1), Point(1, 1)]
    polygons = build_polygons(
        [
            [square(0, 0, 1, 1), bad_hole],
            [non_finite, square(0.2, 0.2, 0.3, 0.3)],
            [],
        ]
    )
    assert len(polygons) == 1
    assert polygons[0].holes == ()


def test_bounding_box_of_geometries():
    polygons = (Polygon([square(0, 0, 1, 1)]), Polygon([square(-2, 3, -1, 4)]))
    box = bounding_box_of(polygons)
    assert box == BoundingBox(north=4, south=0, east=1, west=-2)
    assert bounding_box_of(square(0, 0, 1, 1)) == BoundingBox(north=1, south=0, east=1, west=0)
    assert bounding_box_of(()) is None
    assert bounding_box_of([]) is None


def test_bounding_boxes_overlap_counts_touching_edges():
    a = BoundingBox(north=1, south=0, east=1, west=0)
    touching = BoundingBox(north=1, south=0, east=2, west=1)
    apart = BoundingBox(north=1, south=0, east=3, west=2)
    above = BoundingBox(north=5, south=2, east=1, west=0)
    assert bounding_boxes_overlap(a, touching)
    assert not bounding_boxes_overlap(a, apart)
    assert not bounding_boxes_overlap(a, above)
    assert not bounding_boxes_overlap(apart, a)


def test_point_in_polygon_respects_holes():
    polygon = Polygon([square(0, 0, 3, 3), square(1, 1, 2, 2)])
    assert point_in_polygon(Point(lat=0.5, lng=0.5), polygon)
    assert not point_in_polygon(Point(lat=1.5, lng=1.5), polygon)
    assert not point_in_polygon(Point(lat=4, lng=4), polygon)


def test_point_on_boundary_is_inside():
    polygon = Polygon([square(0, 0, 3, 3), square(1, 1, 2, 2)])
    assert point_in_polygon(Point(lat=0, lng=1.5), polygon)
    assert point_in_polygon(Point(lat=1, lng=1.5), polygon)
    assert point_in_polygon(Point(lat=3, lng=3), polygon)


def test_simplify_ring_adaptive_reduces_dense_rings_and_stays_closed():
    ring = dense_square(300)
    simplified = simplify_ring_adaptive(ring)
    assert len(simplified) < len(ring)
    assert simplified[0] == simplified[-1]
    assert abs(ring_area(simplified)) == pytest.approx(1.0)


def test_simplify_ring_adaptive_leaves_small_rings_alone():
    ring = dense_square(10)
    assert simplify_ring_adaptive(ring) == ring


def test_to_geojson_multipolygon_uses_lng_lat_order():
    polygons = (Polygon([[Point(lat=10, lng=20), Point(lat=11, lng=20), Point(lat=11, lng=21)]]),)
    geojson = to_geojson_multipolygon(polygons)
    assert geojson["type"] == "MultiPolygon"
    assert geojson["coordinates"][0][0][0] == [20, 10]
    assert geojson["coordinates"][0][0][-1] == [20, 10]
