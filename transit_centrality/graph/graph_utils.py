"""Small, shared graph utilities (pure functions only)."""

from __future__ import annotations

import networkx as nx
import numpy as np
import pandas as pd


def filter_edges_below(G: nx.DiGraph, attr: str, threshold: float) -> nx.DiGraph:
    """Return a copy of `G` without edges whose `attr` is below `threshold`.

    Nodes are kept. Edges missing `attr` are treated as below any threshold.
    """
    H = G.copy()
    drop = [
        (u, v)
        for u, v, d in H.edges(data=True)
        if not (float(d.get(attr, -np.inf)) >= threshold)
    ]
    H.remove_edges_from(drop)
    return H


def top_k_stops(G: nx.DiGraph, *, attr: str = "betweenness", k: int = 20) -> pd.DataFrame:
    """Rank nodes by `attr` descending (ties by stop id) and keep the first `k`."""
    if k < 1:
        raise ValueError(f"k must be >= 1, got {k}")
    rows = [
        (str(n), str(d.get("name", n)), float(d.get(attr, 0.0)))
        for n, d in G.nodes(data=True)
    ]
    rows.sort(key=lambda r: (-r[2], r[0]))
    top = rows[:k]
    return pd.DataFrame(
        {
            "rank": list(range(1, len(top) + 1)),
            "stop_id": [r[0] for r in top],
            "name": [r[1] for r in top],
            attr: [r[2] for r in top],
        }
    )


def mean_coordinate(stops: pd.DataFrame) -> tuple[float, float]:
    """Mean (lat, lon) over stops with both coordinates present."""
    if not {"lat", "lon"}.issubset(stops.columns):
        raise ValueError("stops must have 'lat' and 'lon' columns")
    xy = stops[["lat", "lon"]].astype(float).dropna()
    if xy.empty:
        raise ValueError("No stops with coordinates; cannot centre the map")
    return float(xy["lat"].mean()), float(xy["lon"].mean())
