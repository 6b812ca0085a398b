from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import networkx as nx
import pandas as pd

from transit_centrality.core.config import AnalysisParams
from transit_centrality.data_processing.network_build import (
    check_edge_endpoints,
    edges_from_lines,
    weighted_edges_from_records,
)
from transit_centrality.graph.metrics import build_line_multigraph, build_weighted_graph
from transit_centrality.io import read_csv_validated
from transit_centrality.models.schemas import LINES, STOPS

LOGGER = logging.getLogger(__name__)


def load_stops(path: Path) -> pd.DataFrame:
    """Read the stop table and return `stop_id, name, lat, lon`, one row per stop id."""
    raw = read_csv_validated(path, dtype={"cdk_id": "string", "name": "string"}, schema=STOPS)
    stops = raw.rename(columns={"cdk_id": "stop_id"})[["stop_id", "name", "lat", "lon"]]
    n_raw = len(stops)
    stops = stops.drop_duplicates(subset=["stop_id"], keep="first").reset_index(drop=True)
    if len(stops) < n_raw:
        LOGGER.warning("Dropped %d duplicate stop row(s)", n_raw - len(stops))
    return stops


def load_lines(path: Path) -> pd.DataFrame:
    """Read the line table and return `line_id, stop_list`."""
    raw = read_csv_validated(
        path, dtype={"cdk_id": "string", "stop_list": "string"}, schema=LINES
    )
    return raw.rename(columns={"cdk_id": "line_id"})[["line_id", "stop_list"]].reset_index(
        drop=True
    )


@dataclass(frozen=True)
class TransitDataset:
    """Stop/line tables and the graphs assembled from them."""

    stops: pd.DataFrame
    lines: pd.DataFrame

    # One row per consecutive stop pair of each line (u, v, line_id)
    edges: pd.DataFrame
    # One row per directed stop pair (u, v, frequency, line_ids, weight)
    weighted_edges: pd.DataFrame

    line_graph: nx.MultiDiGraph
    weighted_graph: nx.DiGraph

    summary: dict[str, object]


def load_transit_dataset(
    stops_path: Path,
    lines_path: Path,
    *,
    params: AnalysisParams | None = None,
) -> TransitDataset:
    """Load both input tables and assemble edge tables and graphs."""
    params = params or AnalysisParams()

    LOGGER.info("Loading stops: %s", stops_path)
    stops = load_stops(stops_path)
    LOGGER.info("Loading lines: %s", lines_path)
    lines = load_lines(lines_path)
    LOGGER.info("Loaded %d stops, %d lines", len(stops), len(lines))

    edge_records = edges_from_lines(lines)
    n_records = len(edge_records)
    edges = check_edge_endpoints(edge_records, stops, on_unknown=params.on_unknown_stops)
    LOGGER.info("Edge records: %d (dropped %d)", len(edges), n_records - len(edges))

    weighted_edges = weighted_edges_from_records(
        edges,
        on_degenerate=params.on_degenerate_weights,
        uniform_weight=params.uniform_weight,
    )

    LOGGER.info("Building line multigraph and weighted graph...")
    line_graph = build_line_multigraph(stops=stops, edges=edges)
    weighted_graph = build_weighted_graph(stops=stops, weighted_edges=weighted_edges)

    lines_used = set(edges["line_id"].astype(str))
    freq = weighted_edges["frequency"].astype(int)
    summary: dict[str, object] = {
        "n_stops": int(len(stops)),
        "n_lines": int(len(lines)),
        "n_lines_without_edges": int((~lines["line_id"].astype(str).isin(lines_used)).sum()),
        "n_edge_records": int(len(edges)),
        "n_edge_records_dropped": int(n_records - len(edges)),
        "n_stop_pairs": int(len(weighted_edges)),
        "max_frequency": int(freq.max()),
        "min_frequency": int(freq.min()),
        "uniform_weight_fallback": bool(freq.nunique() < 2),
        "n_nodes_graph": int(weighted_graph.number_of_nodes()),
        "n_edges_graph": int(weighted_graph.number_of_edges()),
        "n_weak_components": int(nx.number_weakly_connected_components(weighted_graph)),
    }

    LOGGER.info(
        "Dataset loaded: %d stops, %d stop pairs from %d edge records, %d weak component(s)",
        summary["n_stops"],
        summary["n_stop_pairs"],
        summary["n_edge_records"],
        summary["n_weak_components"],
    )

    return TransitDataset(
        stops=stops,
        lines=lines,
        edges=edges,
        weighted_edges=weighted_edges,
        line_graph=line_graph,
        weighted_graph=weighted_graph,
        summary=summary,
    )
