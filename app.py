"""Streamlit explorer for partitioning neighborhood boundaries and selecting regions."""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, List

import matplotlib.pyplot as plt
import pandas as pd
import streamlit as st

from components import region_figure, render_diagnostics, sidebar_filters
from geom import Point
from resolver import LEVELS, Partition, build_partition
from selection import (
    add_to_selection,
    match_region_by_point,
    match_regions_by_ring,
    rectangle_ring,
    selection_for_level,
    toggle_selection,
)
from storage import normalize_columns, raw_regions_from_dataframe, read_csv, regions_to_dataframe, write_csv

st.set_page_config(page_title="エリア選択マップ", layout="wide")
st.title("🗺️ 近隣エリア選択マップ")


def setup_logging(level: int = logging.INFO) -> None:
    """Configure the root logger once per process."""

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def init_session_state() -> None:
    """Ensure session_state holds persistent data structures."""

    if "boundaries" not in st.session_state:
        st.session_state["boundaries"] = pd.DataFrame(columns=["id", "bounds", "name", "city", "state"])
    if "uploaded_df" not in st.session_state:
        st.session_state["uploaded_df"] = None
    if "column_mapping" not in st.session_state:
        st.session_state["column_mapping"] = {}
    if "partition" not in st.session_state:
        st.session_state["partition"] = None
    if "selected" not in st.session_state:
        st.session_state["selected"] = frozenset()
    if "level" not in st.session_state:
        st.session_state["level"] = LEVELS[0]


def _square(west: float, south: float, east: float, north: float) -> str:
    return json.dumps(
        {
            "type": "Polygon",
            "coordinates": [
                [[west, south], [east, south], [east, north], [west, north], [west, south]]
            ],
        }
    )


def create_demo_dataframe() -> pd.DataFrame:
    """Return a small set of overlapping boundaries to drive the workflow."""

    return pd.DataFrame(
        {
            "hood_id": ["n1", "n2", "n3", "n4", "n5"],
            "geometry": [
                _square(-122.45, 37.75, -122.43, 37.77),
                _square(-122.44, 37.76, -122.42, 37.78),
                _square(-122.445, 37.755, -122.44, 37.76),
                _square(-122.30, 37.80, -122.26, 37.83),
                "POLYGON((-122.28 37.81, -122.25 37.81, -122.25 37.84, -122.28 37.84, -122.28 37.81))",
            ],
            "hood_name": ["Mission", "Castro", "Dolores", "Downtown", "Lakeshore"],
            "city_name": ["San Francisco", "San Francisco", " san francisco ", "Oakland", "Oakland"],
            "state_code": ["CA", "CA", "ca", "CA", "CA"],
        }
    )


def apply_filters(df: pd.DataFrame, filters: Dict[str, List[Any]]) -> pd.DataFrame:
    """Filter the dataframe based on sidebar selections."""

    filtered = df.copy()
    for column, selected in filters.items():
        if column not in filtered.columns or not selected:
            continue
        # Rows without a value are not filterable and stay visible.
        filtered = filtered[filtered[column].isin(selected) | (filtered[column] == "")]
    return filtered


def render_page_a() -> None:
    """Render CSV import, column mapping, and partition download workflow."""

    st.subheader("Page A: 境界データの取り込み")
    st.write("CSVをアップロードし、列をマッピングして境界データを読み込みます。")

    uploaded_file = st.file_uploader("CSVファイル", type=["csv"])

    if uploaded_file is not None:
        try:
            dataframe = read_csv(uploaded_file)
        except Exception as exc:  # pragma: no cover - Streamlit runtime feedback
            st.error(f"読み込みエラー: {exc}")
        else:
            st.session_state["uploaded_df"] = dataframe
            st.session_state["column_mapping"] = {}
            st.success("CSVを読み込みました。下で列マッピングを行ってください。")

    if st.button("デモ用データで試す"):
        st.session_state["uploaded_df"] = create_demo_dataframe()
        st.session_state["column_mapping"] = {
            "id": "hood_id",
            "bounds": "geometry",
            "name": "hood_name",
            "city": "city_name",
            "state": "state_code",
        }
        st.info("デモデータをロードしました。列マッピングを確認してください。")

    source_df = st.session_state.get("uploaded_df")
    if source_df is None:
        st.warning("CSVをアップロードするか、デモデータを使用してください。")
        return

    st.markdown("#### 取り込みデータのプレビュー")
    st.dataframe(source_df.head())

    required_targets = ("id", "bounds")
    optional_targets = ("name", "city", "state")

    with st.form("column_mapping_form"):
        st.markdown("#### 列名マッピング")
        mapping: Dict[str, str] = {}
        columns = source_df.columns.tolist()

        for target in required_targets:
            default = st.session_state["column_mapping"].get(target)
            if default not in columns:
                default = columns[0]
            index = columns.index(default)
            mapping[target] = st.selectbox(
                f"{target} 列", columns, index=index, key=f"map_req_{target}"
            )

        for target in optional_targets:
            options = ["--なし--"] + columns
            default = st.session_state["column_mapping"].get(target, "--なし--")
            if default not in options:
                default = "--なし--"
            index = options.index(default)
            selected = st.selectbox(
                f"{target} 列 (任意)", options, index=index, key=f"map_opt_{target}"
            )
            if selected != "--なし--":
                mapping[target] = selected

        submitted = st.form_submit_button("境界を読み込む")

    if submitted:
        st.session_state["column_mapping"] = mapping
        try:
            normalized = normalize_columns(source_df, mapping)
        except ValueError as exc:
            st.error(f"マッピングエラー: {exc}")
            return

        st.session_state["boundaries"] = normalized
        st.session_state["partition"] = None
        st.session_state["selected"] = frozenset()
        st.success("境界データを読み込みました。Page Bで地図を確認できます。")

    partition: Partition = st.session_state["partition"]
    if partition is None or not partition.regions:
        st.info("分割結果がありません。Page Bで地図を表示すると作成されます。")
        return

    st.markdown("#### 分割結果のプレビュー")
    resolved_df = regions_to_dataframe(partition.regions)
    st.dataframe(resolved_df.drop(columns=["bounds"]).head())

    st.download_button(
        label="分割済みCSVをダウンロード",
        data=write_csv(resolved_df),
        file_name="resolved_regions.csv",
        mime="text/csv",
    )


def render_selection_controls(partition: Partition) -> None:
    """Rectangle and point selection forms that update the selection set."""

    col_rect, col_point = st.columns(2)

    with col_rect.form("rectangle_selection_form"):
        st.markdown("#### 範囲選択")
        box = partition.regions[0].bounding_box
        north = st.number_input("北 (lat)", value=box.north, format="%.6f")
        south = st.number_input("南 (lat)", value=box.south, format="%.6f")
        east = st.number_input("東 (lng)", value=box.east, format="%.6f")
        west = st.number_input("西 (lng)", value=box.west, format="%.6f")
        rect_submitted = st.form_submit_button("範囲内を選択")

    if rect_submitted:
        ring = rectangle_ring(Point(lat=north, lng=west), Point(lat=south, lng=east))
        matches = match_regions_by_ring(partition.regions, ring)
        if matches:
            st.session_state["selected"] = add_to_selection(st.session_state["selected"], matches)
            st.success(f"{len(matches)} 件のエリアを選択しました。")
        else:
            st.info("範囲内にエリアがありません。")

    with col_point.form("point_selection_form"):
        st.markdown("#### 地点で切り替え")
        lat = st.number_input("緯度", value=(box.north + box.south) / 2, format="%.6f")
        lng = st.number_input("経度", value=(box.east + box.west) / 2, format="%.6f")
        point_submitted = st.form_submit_button("選択を切り替え")

    if point_submitted:
        match = match_region_by_point(partition.regions, Point(lat=lat, lng=lng))
        if match is None:
            st.info("この地点にエリアはありません。")
        else:
            st.session_state["selected"] = toggle_selection(st.session_state["selected"], match)

    if st.button("選択をクリア"):
        st.session_state["selected"] = frozenset()


def render_page_b(filters: Dict[str, List[Any]]) -> None:
    """Render the partitioned map, selection controls, and diagnostics."""

    st.subheader("Page B: 地図と選択")
    boundaries: pd.DataFrame = st.session_state["boundaries"]

    if boundaries.empty:
        st.warning("Page Aで境界データを読み込むと地図を表示できます。")
        return

    filtered_df = apply_filters(boundaries, filters)
    if filtered_df.empty:
        st.warning("選択されたフィルタに一致するデータがありません。")
        return

    level = st.radio("表示単位", LEVELS, horizontal=True)
    st.session_state["selected"] = selection_for_level(
        st.session_state["selected"], st.session_state["level"], level
    )
    st.session_state["level"] = level
    partition = build_partition(raw_regions_from_dataframe(filtered_df), level=level)
    st.session_state["partition"] = partition
    if not partition.regions:
        st.error("表示できる境界がありません。")
        render_diagnostics(partition.diagnostics)
        return

    render_selection_controls(partition)

    fig = region_figure(partition.regions, st.session_state["selected"])
    st.pyplot(fig)
    plt.close(fig)

    st.markdown("#### 選択中のエリア")
    selected_df = regions_to_dataframe(
        region for region in partition.regions if region.identity in st.session_state["selected"]
    )
    st.dataframe(selected_df.drop(columns=["bounds"]))

    render_diagnostics(partition.diagnostics)


def main() -> None:
    """Application entry point."""

    setup_logging()
    init_session_state()

    filters = sidebar_filters(st.session_state["boundaries"])
    page = st.selectbox("表示ページ", ("Page A", "Page B"))

    if page == "Page A":
        render_page_a()
    else:
        render_page_b(filters)


if __name__ == "__main__":
    main()
