import pytest

import region as region_module
from clipping import ClippingError
from geom import BoundingBox, Point, Polygon
from region import (
    DiagnosticsReport,
    RawRegion,
    Region,
    city_grouping_key,
    group_into_coarser_regions,
    normalize_regions,
)


def square_coords(west, south, east, north):
    return [[[west, south], [east, south], [east, north], [west, north], [west, south]]]


def square_region(identity, west, south, east, north, city="", state=""):
    ring = [
        Point(lat=south, lng=west),
        Point(lat=south, lng=east),
        Point(lat=north, lng=east),
        Point(lat=north, lng=west),
    ]
    return Region(identity=identity, geometry=(Polygon([ring]),), name=identity, city=city, state=state)


def test_region_derives_bounding_box_and_area():
    region = square_region("a", 0, 0, 2, 1)
    assert region.area == pytest.approx(2.0)
    assert region.bounding_box == BoundingBox(north=1, south=0, east=2, west=0)


def test_empty_region_has_no_bounding_box():
    region = Region(identity="empty", geometry=())
    assert region.bounding_box is None
    assert region.area == 0.0
    assert region.is_empty


def test_with_geometry_recomputes_derived_fields():
    region = square_region("a", 0, 0, 2, 2)
    smaller = region.with_geometry(square_region("b", 0, 0, 1, 1).geometry)
    assert smaller.identity == "a"
    assert smaller.area == pytest.approx(1.0)
    assert smaller.bounding_box.east == 1


def test_normalize_regions_skips_unusable_entries():
    report = DiagnosticsReport()
    regions = normalize_regions(
        [
            RawRegion("n1", {"type": "Polygon", "coordinates": square_coords(0, 0, 1, 1)}, "One", "Town", "TS"),
            RawRegion("n2", None),
            RawRegion("n3", [[[0, 0], [1, 1]]]),
            ("n4", square_coords(2, 2, 4, 4)),
        ],
        diagnostics=report,
    )

    assert [region.identity for region in regions] == ["n1", "n4"]
    assert regions[0].name == "One"
    assert regions[0].city == "Town"
    assert regions[1].area == pytest.approx(4.0)
    assert report.total == 4
    assert report.parsed == 2
    assert report.skipped == 2
    assert report.raw_area == pytest.approx(5.0)


def test_normalize_regions_simplifies_long_rings():
    edge = [[i / 500, 0] for i in range(501)] + [[1, 1], [0, 1]]
    regions = normalize_regions([("dense", [edge])], max_ring_points=50)
    assert len(regions[0].geometry[0].outer) <= 50
    assert regions[0].area == pytest.approx(1.0)

    untouched = normalize_regions([("dense", [edge])], max_ring_points=None)
    assert len(untouched[0].geometry[0].outer) == len(edge) + 1


def test_city_grouping_key_is_trimmed_and_case_insensitive():
    a = square_region("a", 0, 0, 1, 1, city=" San Francisco ", state="CA")
    b = square_region("b", 0, 0, 1, 1, city="san francisco", state="ca ")
    assert city_grouping_key(a) == city_grouping_key(b) == "san francisco|ca"


def test_group_into_coarser_regions_unions_members():
    report = DiagnosticsReport()
    cities = group_into_coarser_regions(
        [
            square_region("a", 0, 0, 1, 1, city="Alpha", state="TS"),
            square_region("b", 1, 0, 2, 1, city="alpha ", state="ts"),
            square_region("c", 10, 10, 11, 11, city="Beta", state="TS"),
        ],
        diagnostics=report,
    )

    by_key = {city.identity: city for city in cities}
    assert set(by_key) == {"alpha|ts", "beta|ts"}
    assert len(by_key["alpha|ts"].geometry) == 1
    assert by_key["alpha|ts"].area == pytest.approx(2.0)
    assert by_key["alpha|ts"].city == "Alpha"
    assert report.grouped == 2


def test_group_union_failure_keeps_polygons_unmerged(monkeypatch):
    def failing_union_all(groups, strict=False):
        raise ClippingError("union failed: boom")

    monkeypatch.setattr(region_module, "union_all", failing_union_all)
    report = DiagnosticsReport()
    cities = group_into_coarser_regions(
        [
            square_region("a", 0, 0, 1, 1, city="Alpha", state="TS"),
            square_region("b", 1, 0, 2, 1, city="Alpha", state="TS"),
        ],
        diagnostics=report,
    )

    assert len(cities) == 1
    assert len(cities[0].geometry) == 2
    assert report.clipping_failures == 1
    assert "alpha|ts" in report.warnings[0]


def test_normalize_regions_keeps_first_usable_entry_per_identity():
    report = DiagnosticsReport()
    regions = normalize_regions(
        [
            ("dup", None),
            ("dup", square_coords(0, 0, 1, 1)),
            ("dup", square_coords(0, 0, 3, 3)),
            (7, square_coords(5, 5, 6, 6)),
            ("7", square_coords(5, 5, 9, 9)),
        ],
        diagnostics=report,
    )
    assert [region.identity for region in regions] == ["dup", "7"]
    assert regions[0].area == pytest.approx(1.0)
    assert regions[1].area == pytest.approx(1.0)
    assert report.skipped == 3
    assert report.parsed == 2
