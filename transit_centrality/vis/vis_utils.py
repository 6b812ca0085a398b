"""Shared visualisation utilities for network map plotting."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

import geopandas as gpd
import matplotlib.pyplot as plt
import networkx as nx
import numpy as np
import pandas as pd
from matplotlib.collections import LineCollection
from matplotlib.colors import Normalize

from transit_centrality.core.config import CRS_WEB_MERCATOR, CRS_WGS84
from transit_centrality.vis.basemap import Basemap

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class MapStyle:
    """Consistent styling configuration for network map plots"""

    # Figure configuration
    figsize: tuple[float, float] = (12.0, 12.0)
    facecolor: str = "white"
    basemap_alpha: float = 0.6

    # Uniform network styling
    node_color: str = "#2563eb"
    node_size: float = 6.0
    node_alpha: float = 0.85
    edge_color: tuple[float, float, float, float] = (0.0, 0.0, 0.0, 0.35)
    edge_linewidth: float = 0.8

    # Metric styling
    cmap: str = "plasma"
    node_size_range: tuple[float, float] = (2.0, 120.0)
    edge_width_range: tuple[float, float] = (0.3, 4.0)

    # Layout padding (no basemap)
    extent_padding: float = 0.05


def prepare_stop_geometries(stops: pd.DataFrame) -> gpd.GeoDataFrame:
    """Convert the stop table to a Web-Mercator GeoDataFrame with x/y columns.

    Stops without coordinates are dropped.
    """
    required_cols = {"stop_id", "lon", "lat"}
    if not required_cols.issubset(stops.columns):
        missing = required_cols - set(stops.columns)
        raise ValueError(f"Missing required columns: {missing}")

    st = stops.copy()
    st["lon"] = st["lon"].astype(float)
    st["lat"] = st["lat"].astype(float)
    st = st.dropna(subset=["lon", "lat"])
    st["stop_id"] = st["stop_id"].astype(str)

    stops_gdf = gpd.GeoDataFrame(
        st, geometry=gpd.points_from_xy(st["lon"], st["lat"]), crs=CRS_WGS84
    ).to_crs(CRS_WEB_MERCATOR)

    stops_gdf["x"] = stops_gdf.geometry.x
    stops_gdf["y"] = stops_gdf.geometry.y

    return stops_gdf


def scale_values(
    values: Iterable[float], out_range: tuple[float, float]
) -> np.ndarray:
    """Min-max scale to `out_range`; non-finite values clamp to the finite minimum."""
    arr = np.asarray(list(values), dtype=float)
    lo_out, hi_out = out_range
    if arr.size == 0:
        return arr
    finite = np.isfinite(arr)
    if not finite.any():
        return np.full(arr.shape, lo_out, dtype=float)
    lo = float(arr[finite].min())
    hi = float(arr[finite].max())
    arr = np.where(finite, arr, lo)
    if hi == lo:
        return np.full(arr.shape, (lo_out + hi_out) / 2.0, dtype=float)
    return lo_out + (arr - lo) / (hi - lo) * (hi_out - lo_out)


def _finite_norm(values: np.ndarray) -> Normalize:
    finite = values[np.isfinite(values)]
    if finite.size == 0:
        return Normalize(vmin=0.0, vmax=1.0)
    lo, hi = float(finite.min()), float(finite.max())
    if lo == hi:
        lo, hi = lo - 0.5, hi + 0.5
    return Normalize(vmin=lo, vmax=hi)


def create_edge_segments(
    coord_lookup: dict[str, tuple[float, float]],
    edges: Iterable[tuple[str, str]],
) -> tuple[list[tuple[tuple[float, float], tuple[float, float]]], list[int]]:
    """LineCollection segments for edges whose endpoints both have coordinates.

    Returns (segments, kept) where `kept` indexes into the input edge sequence.
    """
    segments = []
    kept: list[int] = []
    skipped = 0
    for i, (u, v) in enumerate(edges):
        a = coord_lookup.get(str(u))
        b = coord_lookup.get(str(v))
        if a is None or b is None:
            skipped += 1
            continue
        segments.append((a, b))
        kept.append(i)
    if skipped:
        LOGGER.warning("Skipped %d edge(s) with endpoints lacking coordinates", skipped)
    return segments, kept


class NetworkMapPlotter:
    """Overlay stops and stop-pair edges on an optional raster basemap."""

    def __init__(
        self,
        stops: pd.DataFrame,
        *,
        basemap: Basemap | None = None,
        style: MapStyle | None = None,
    ):
        self.style = style or MapStyle()
        self.basemap = basemap
        self.stops_gdf = prepare_stop_geometries(stops)
        self.coord_lookup: dict[str, tuple[float, float]] = {
            sid: (float(x), float(y))
            for sid, x, y in self.stops_gdf[["stop_id", "x", "y"]].itertuples(index=False, name=None)
        }
        if basemap is not None:
            self._warn_outside_basemap(basemap)

    def _warn_outside_basemap(self, basemap: Basemap) -> int:
        xmin, xmax, ymin, ymax = basemap.extent
        inside = self.stops_gdf["x"].between(xmin, xmax) & self.stops_gdf["y"].between(ymin, ymax)
        n_outside = int((~inside).sum())
        if n_outside:
            LOGGER.warning(
                "%d of %d stops fall outside the basemap extent and will be clipped; "
                "raise basemap_radius or lower zoom",
                n_outside,
                len(self.stops_gdf),
            )
        return n_outside

    def setup_axes(
        self, title: str = "", figsize: tuple[float, float] | None = None
    ) -> tuple[plt.Figure, plt.Axes]:
        """Figure/axes with the basemap drawn (or data extent) and no visible axes."""
        figsize = figsize or self.style.figsize
        fig, ax = plt.subplots(figsize=figsize)
        ax.set_facecolor(self.style.facecolor)

        if self.basemap is not None:
            xmin, xmax, ymin, ymax = self.basemap.extent
            ax.imshow(
                self.basemap.image,
                extent=(xmin, xmax, ymin, ymax),
                alpha=self.style.basemap_alpha,
                interpolation="bilinear",
                zorder=0,
            )
            ax.set_xlim(xmin, xmax)
            ax.set_ylim(ymin, ymax)
        elif not self.stops_gdf.empty:
            minx, maxx = float(self.stops_gdf["x"].min()), float(self.stops_gdf["x"].max())
            miny, maxy = float(self.stops_gdf["y"].min()), float(self.stops_gdf["y"].max())
            pad_x = max((maxx - minx) * self.style.extent_padding, 1.0)
            pad_y = max((maxy - miny) * self.style.extent_padding, 1.0)
            ax.set_xlim(minx - pad_x, maxx + pad_x)
            ax.set_ylim(miny - pad_y, maxy + pad_y)

        ax.set_aspect("equal", adjustable="box")
        ax.set_xticks([])
        ax.set_yticks([])
        for spine in ax.spines.values():
            spine.set_visible(False)
        if title:
            ax.set_title(title)
        return fig, ax

    def _edge_list(self, G: nx.DiGraph) -> list[tuple[str, str, dict]]:
        return [(str(u), str(v), d) for u, v, d in G.edges(data=True)]

    def plot_edges(self, ax: plt.Axes, G: nx.DiGraph, *, metric: str | None = None) -> LineCollection | None:
        """Draw edges; with `metric`, width and colour follow the edge attribute."""
        edges = self._edge_list(G)
        segments, kept = create_edge_segments(self.coord_lookup, ((u, v) for u, v, _ in edges))
        if not segments:
            LOGGER.warning("No drawable edges")
            return None

        if metric is None:
            lc = LineCollection(
                segments,
                colors=self.style.edge_color,
                linewidths=self.style.edge_linewidth,
                zorder=2,
            )
        else:
            vals = np.array([float(edges[i][2].get(metric, np.nan)) for i in kept], dtype=float)
            widths = scale_values(vals, self.style.edge_width_range)
            lc = LineCollection(segments, linewidths=widths, cmap=self.style.cmap, zorder=2)
            lc.set_array(np.where(np.isfinite(vals), vals, np.nan))
            lc.set_norm(_finite_norm(vals))
        ax.add_collection(lc)
        return lc

    def plot_nodes(self, ax: plt.Axes, G: nx.DiGraph, *, metric: str | None = None):
        """Draw nodes present in `G`; with `metric`, size and colour follow the node attribute."""
        nodes = [(str(n), d) for n, d in G.nodes(data=True) if str(n) in self.coord_lookup]
        if not nodes:
            LOGGER.warning("No drawable nodes")
            return None
        xs = np.array([self.coord_lookup[n][0] for n, _ in nodes])
        ys = np.array([self.coord_lookup[n][1] for n, _ in nodes])

        if metric is None:
            return ax.scatter(
                xs,
                ys,
                s=self.style.node_size,
                color=self.style.node_color,
                alpha=self.style.node_alpha,
                linewidths=0,
                zorder=3,
            )

        vals = np.array([float(d.get(metric, np.nan)) for _, d in nodes], dtype=float)
        sizes = scale_values(vals, self.style.node_size_range)
        norm = _finite_norm(vals)
        colors = np.where(np.isfinite(vals), vals, norm.vmin)
        # Draw small values first so hubs stay on top
        order = np.argsort(sizes, kind="mergesort")
        return ax.scatter(
            xs[order],
            ys[order],
            s=sizes[order],
            c=colors[order],
            cmap=self.style.cmap,
            norm=norm,
            alpha=self.style.node_alpha,
            linewidths=0,
            zorder=3,
        )

    def render(
        self,
        G: nx.DiGraph,
        *,
        title: str = "",
        node_metric: str | None = None,
        edge_metric: str | None = None,
        colorbar_label: str | None = None,
    ) -> tuple[plt.Figure, plt.Axes]:
        """Full map: basemap, edges, then nodes; optional colourbar for the metric layer."""
        fig, ax = self.setup_axes(title)
        lc = self.plot_edges(ax, G, metric=edge_metric)
        sc = self.plot_nodes(ax, G, metric=node_metric)
        mappable = sc if node_metric is not None else (lc if edge_metric is not None else None)
        if mappable is not None and colorbar_label:
            fig.colorbar(mappable, ax=ax, shrink=0.6, label=colorbar_label)
        return fig, ax


def save_figure(fig: plt.Figure, out_path: Path, *, dpi: int = 300) -> Path:
    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    fig.tight_layout()
    fig.savefig(out_path, dpi=dpi)
    plt.close(fig)
    LOGGER.info("Wrote %s", out_path)
    return out_path
