"""IO helpers for reading boundary tables and exporting resolved regions."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, IO, Iterable, List, Mapping, Union

import pandas as pd

from geom import to_geojson_multipolygon
from region import RawRegion, Region


PathLike = Union[str, Path]
FileLike = Union[IO[str], IO[bytes]]

REQUIRED_COLUMNS = ("id", "bounds")
OPTIONAL_COLUMNS = ("name", "city", "state")
EXPORT_COLUMNS = (
    "id",
    "name",
    "city",
    "state",
    "area",
    "north",
    "south",
    "east",
    "west",
    "bounds",
)


def read_csv(path_or_file: Union[PathLike, FileLike]) -> pd.DataFrame:
    """Load a CSV into a DataFrame and raise a ValueError on failure."""

    try:
        df = pd.read_csv(path_or_file, dtype=str, keep_default_na=False)
    except FileNotFoundError as exc:
        raise FileNotFoundError("CSV file not found.") from exc
    except Exception as exc:  # pragma: no cover - pandas composes different errors
        raise ValueError(f"Failed to read CSV: {exc}") from exc

    if df.empty:
        raise ValueError("CSV is empty. Add boundary records before importing.")
    return df


def normalize_columns(df: pd.DataFrame, mapping: Mapping[str, str]) -> pd.DataFrame:
    """Rename and validate required columns based on the provided mapping."""

    missing_targets = set(REQUIRED_COLUMNS).difference(mapping.keys())
    if missing_targets:
        raise ValueError(f"Missing mappings for: {', '.join(sorted(missing_targets))}.")

    rename_map: Dict[str, str] = {}
    for target, source in mapping.items():
        if source not in df.columns:
            raise ValueError(f"Source column '{source}' not found in the imported data.")
        rename_map[source] = target

    normalized = df.rename(columns=rename_map).copy()

    normalized["id"] = normalized["id"].astype(str).str.strip()
    if (normalized["id"] == "").any():
        raise ValueError("Column 'id' contains empty values.")
    if normalized["id"].duplicated().any():
        duplicates = sorted(normalized.loc[normalized["id"].duplicated(), "id"].unique())
        raise ValueError(f"Duplicate ids: {', '.join(duplicates)}.")

    for column in OPTIONAL_COLUMNS:
        if column not in normalized.columns:
            normalized[column] = ""
        normalized[column] = normalized[column].fillna("").astype(str).str.strip()

    return normalized


def raw_regions_from_dataframe(df: pd.DataFrame) -> List[RawRegion]:
    """Build raw region records from a normalised boundary table."""

    return [
        RawRegion(
            identity=row["id"],
            boundary=row["bounds"],
            name=row["name"],
            city=row["city"],
            state=row["state"],
        )
        for _, row in df.iterrows()
    ]


def regions_to_dataframe(regions: Iterable[Region]) -> pd.DataFrame:
    """Flatten regions into one row each, with GeoJSON bounds."""

    rows = []
    for region in regions:
        box = region.bounding_box
        rows.append(
            {
                "id": region.identity,
                "name": region.name,
                "city": region.city,
                "state": region.state,
                "area": region.area,
                "north": box.north if box else None,
                "south": box.south if box else None,
                "east": box.east if box else None,
                "west": box.west if box else None,
                "bounds": json.dumps(to_geojson_multipolygon(region.geometry)),
            }
        )
    return pd.DataFrame(rows, columns=list(EXPORT_COLUMNS))


def write_csv(df: pd.DataFrame) -> bytes:
    """Serialise the DataFrame into UTF-8 encoded CSV bytes."""

    return df.to_csv(index=False).encode("utf-8")
