from __future__ import annotations

import logging

import networkx as nx
import numpy as np
import pandas as pd

from transit_centrality.core.exceptions import EmptyGraphError, SchemaError

LOGGER = logging.getLogger(__name__)


def _node_attributes(stops: pd.DataFrame) -> list[tuple[str, dict[str, object]]]:
    if "stop_id" not in stops.columns:
        raise SchemaError("stops must have 'stop_id' column")
    if stops.empty:
        raise SchemaError("stops has 0 stop_id values")

    out: list[tuple[str, dict[str, object]]] = []
    for row in stops.itertuples(index=False):
        sid = str(row.stop_id)
        name = getattr(row, "name", None)
        lat = getattr(row, "lat", None)
        lon = getattr(row, "lon", None)
        out.append(
            (
                sid,
                {
                    "name": sid if pd.isna(name) else str(name),
                    "lat": np.nan if pd.isna(lat) else float(lat),
                    "lon": np.nan if pd.isna(lon) else float(lon),
                },
            )
        )
    return out


def _require_known_endpoints(G: nx.DiGraph, edges: pd.DataFrame) -> None:
    ends = set(edges["u"].astype(str)) | set(edges["v"].astype(str))
    unknown = sorted(ends - set(G.nodes))
    if unknown:
        raise SchemaError(
            f"edges reference unknown stop id(s): {len(unknown)} (e.g. {unknown[:10]})"
        )


def build_line_multigraph(*, stops: pd.DataFrame, edges: pd.DataFrame) -> nx.MultiDiGraph:
    """Directed multigraph with one edge per line traversal of a stop pair.

    Every stop becomes a node (isolates included) carrying name/lat/lon.
    """
    if not {"u", "v", "line_id"}.issubset(edges.columns):
        raise SchemaError("edges must have 'u', 'v' and 'line_id' columns")
    if edges.empty:
        raise EmptyGraphError("No edges produced; cannot build the line graph")

    G = nx.MultiDiGraph()
    G.add_nodes_from(_node_attributes(stops))
    _require_known_endpoints(G, edges)
    G.add_edges_from(
        (str(u), str(v), {"line_id": str(line_id)})
        for u, v, line_id in edges[["u", "v", "line_id"]].itertuples(index=False, name=None)
    )
    LOGGER.debug(
        "Line multigraph: %d nodes, %d edges", G.number_of_nodes(), G.number_of_edges()
    )
    return G


def build_weighted_graph(*, stops: pd.DataFrame, weighted_edges: pd.DataFrame) -> nx.DiGraph:
    """Directed graph with one edge per stop pair carrying frequency/line_ids/weight."""
    required = {"u", "v", "frequency", "weight"}
    if not required.issubset(weighted_edges.columns):
        missing = sorted(required - set(weighted_edges.columns))
        raise SchemaError(f"weighted_edges missing required columns: {missing}")
    if weighted_edges.empty:
        raise EmptyGraphError("No edges produced; cannot build the weighted graph")

    w = weighted_edges["weight"].astype(float)
    if w.isna().any() or (~np.isfinite(w.to_numpy())).any():
        bad = weighted_edges.loc[w.isna() | (~np.isfinite(w.to_numpy())), ["u", "v", "weight"]]
        raise ValueError(
            f"weighted_edges has invalid weights (e.g. {bad.head(5).to_dict(orient='records')})"
        )

    G = nx.DiGraph()
    G.add_nodes_from(_node_attributes(stops))
    _require_known_endpoints(G, weighted_edges)

    has_lines = "line_ids" in weighted_edges.columns
    for row in weighted_edges.itertuples(index=False):
        attrs: dict[str, object] = {
            "frequency": int(row.frequency),
            "weight": float(row.weight),
        }
        if has_lines:
            attrs["line_ids"] = "" if pd.isna(row.line_ids) else str(row.line_ids)
        G.add_edge(str(row.u), str(row.v), **attrs)

    LOGGER.debug(
        "Weighted graph: %d nodes, %d edges", G.number_of_nodes(), G.number_of_edges()
    )
    return G


def compute_network_metrics(G: nx.DiGraph) -> pd.DataFrame:
    """Compute basic connectivity metrics of a directed (multi)graph."""
    n = G.number_of_nodes()
    m = G.number_of_edges()
    comps = list(nx.weakly_connected_components(G)) if n else []
    n_components = len(comps)
    largest = max(comps, key=len) if comps else set()
    largest_n = len(largest)
    n_isolates = nx.number_of_isolates(G)
    in_degs = [d for _, d in G.in_degree()]
    out_degs = [d for _, d in G.out_degree()]
    return pd.DataFrame(
        [
            {"metric": "N_nodes", "value": n},
            {"metric": "E_edges", "value": m},
            {"metric": "n_weak_components", "value": n_components},
            {"metric": "largest_component_nodes", "value": largest_n},
            {"metric": "largest_component_share", "value": (largest_n / n) if n else 0.0},
            {"metric": "n_isolates", "value": n_isolates},
            {"metric": "mean_in_degree", "value": float(np.mean(in_degs)) if in_degs else 0.0},
            {"metric": "mean_out_degree", "value": float(np.mean(out_degs)) if out_degs else 0.0},
            {"metric": "max_in_degree", "value": int(max(in_degs)) if in_degs else 0},
            {"metric": "max_out_degree", "value": int(max(out_degs)) if out_degs else 0},
        ]
    )
