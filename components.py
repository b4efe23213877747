"""Reusable Streamlit UI components."""
from __future__ import annotations

from typing import AbstractSet, Any, Dict, Iterable, List, Sequence

import matplotlib.pyplot as plt
import pandas as pd
import streamlit as st
from matplotlib.figure import Figure
from matplotlib.patches import PathPatch
from matplotlib.path import Path

from geom import Point, Polygon, ring_area
from region import DiagnosticsReport, Region


FILTER_ORDER = ("state", "city")


def sidebar_filters(df: pd.DataFrame) -> Dict[str, List[Any]]:
    """Render sidebar filters and return selected values for each column."""

    filters: Dict[str, List[Any]] = {}
    if df is None or df.empty:
        st.sidebar.info("境界データを読み込むとフィルタが利用できます。")
        return filters

    st.sidebar.header("フィルタ")
    for column in FILTER_ORDER:
        if column not in df.columns:
            continue
        options = sorted(value for value in df[column].dropna().unique().tolist() if value)
        if not options:
            continue
        label = column.capitalize()
        filters[column] = st.sidebar.multiselect(label, options, default=options)

    return filters


def render_diagnostics(report: DiagnosticsReport) -> None:
    """Display partition counters as a row of metric cards."""

    with st.container():
        st.markdown("#### 診断情報")
        col_total, col_parsed, col_skipped, col_removed = st.columns(4)
        col_total.metric("入力", report.total)
        col_parsed.metric("解析済み", report.parsed)
        col_skipped.metric("スキップ", report.skipped)
        col_removed.metric("重複で除外", report.overlap_removed)

        col_raw, col_union, col_failures = st.columns(3)
        col_raw.metric("元の面積合計", f"{report.raw_area:.6f}")
        col_union.metric("分割後の面積", f"{report.union_area:.6f}")
        col_failures.metric("クリッピング失敗", report.clipping_failures)

        for message in report.warnings:
            st.warning(message)


def _oriented(ring: Sequence[Point], counter_clockwise: bool) -> List[tuple]:
    coords = [(point.lng, point.lat) for point in ring]
    if (ring_area(ring) > 0) != counter_clockwise:
        coords.reverse()
    return coords


def _polygon_path(polygon: Polygon) -> Path:
    # Holes wind opposite to the outer ring so the nonzero fill leaves them empty.
    paths = [Path(_oriented(polygon.outer, True), closed=True)]
    paths.extend(Path(_oriented(hole, False), closed=True) for hole in polygon.holes)
    return Path.make_compound_path(*paths)


def region_figure(regions: Iterable[Region], selected: AbstractSet[str] = frozenset()) -> Figure:
    """Draw resolved regions, highlighting selected identities."""

    fig, ax = plt.subplots(figsize=(8, 8))
    for region in regions:
        is_selected = region.identity in selected
        for polygon in region.geometry:
            ax.add_patch(
                PathPatch(
                    _polygon_path(polygon),
                    facecolor="tab:orange" if is_selected else "tab:blue",
                    edgecolor="black",
                    alpha=0.6 if is_selected else 0.3,
                    linewidth=0.8,
                )
            )
        if region.bounding_box is not None:
            box = region.bounding_box
            ax.annotate(
                region.name or region.identity,
                ((box.east + box.west) / 2, (box.north + box.south) / 2),
                ha="center",
                fontsize=7,
            )

    ax.autoscale_view()
    ax.set_aspect("equal", adjustable="datalim")
    ax.set_xlabel("Longitude")
    ax.set_ylabel("Latitude")
    ax.set_title("Resolved regions")
    return fig
