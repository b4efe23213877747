import io
import json

import pandas as pd
import pytest

from resolver import build_partition
from storage import (
    normalize_columns,
    raw_regions_from_dataframe,
    read_csv,
    regions_to_dataframe,
    write_csv,
)


def _square(west, south, east, north):
    return json.dumps(
        {
            "type": "Polygon",
            "coordinates": [[[west, south], [east, south], [east, north], [west, north], [west, south]]],
        }
    )


def boundary_frame():
    return pd.DataFrame(
        {
            "hood_id": ["n1", "n2"],
            "geometry": [_square(0, 0, 2, 2), _square(1, 1, 3, 3)],
            "hood_name": ["Alpha", "Beta"],
        }
    )


def test_read_csv_keeps_geometry_text():
    buffer = io.StringIO(boundary_frame().to_csv(index=False))
    df = read_csv(buffer)
    assert list(df.columns) == ["hood_id", "geometry", "hood_name"]
    assert json.loads(df.loc[0, "geometry"])["type"] == "Polygon"


def test_read_csv_rejects_header_only_file():
    with pytest.raises(ValueError):
        read_csv(io.StringIO("id,bounds\n"))


def test_read_csv_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        read_csv(tmp_path / "missing.csv")


def test_normalize_columns_renames_and_fills_optional_columns():
    normalized = normalize_columns(boundary_frame(), {"id": "hood_id", "bounds": "geometry", "name": "hood_name"})
    assert {"id", "bounds", "name", "city", "state"} <= set(normalized.columns)
    assert normalized["city"].tolist() == ["", ""]


def test_normalize_columns_requires_id_and_bounds():
    with pytest.raises(ValueError, match="bounds"):
        normalize_columns(boundary_frame(), {"id": "hood_id"})


def test_normalize_columns_rejects_unknown_source():
    with pytest.raises(ValueError, match="not found"):
        normalize_columns(boundary_frame(), {"id": "hood_id", "bounds": "wkt"})


def test_normalize_columns_rejects_duplicate_ids():
    df = boundary_frame()
    df["hood_id"] = ["n1", "n1"]
    with pytest.raises(ValueError, match="Duplicate"):
        normalize_columns(df, {"id": "hood_id", "bounds": "geometry"})


def test_partition_round_trip_through_csv():
    normalized = normalize_columns(boundary_frame(), {"id": "hood_id", "bounds": "geometry", "name": "hood_name"})
    partition = build_partition(raw_regions_from_dataframe(normalized))

    exported = regions_to_dataframe(partition.regions)
    assert exported["id"].tolist() == ["n1", "n2"]
    assert exported["name"].tolist() == ["Alpha", "Beta"]
    assert exported["area"].tolist() == pytest.approx([4.0, 3.0])
    assert exported.loc[1, "north"] == pytest.approx(3.0)

    reloaded = read_csv(io.BytesIO(write_csv(exported)))
    again = build_partition(raw_regions_from_dataframe(normalize_columns(reloaded, {"id": "id", "bounds": "bounds"})))
    areas = {region.identity: region.area for region in again.regions}
    assert areas["n1"] == pytest.approx(4.0)
    assert areas["n2"] == pytest.approx(3.0)
