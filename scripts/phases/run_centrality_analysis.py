"""Transit centrality analysis: stops + lines -> weighted graph -> betweenness -> maps.

Run from repo root:
  python scripts/phases/run_centrality_analysis.py --stops data/raw/stops.csv --lines data/raw/lines.csv

Outputs:
- data/processed/metrics/network_sanity.csv
- data/processed/metrics/edge_betweenness.csv
- data/processed/metrics/stop_betweenness.csv
- data/processed/metrics/top_stops.csv
- data/processed/metrics/summary.json
- figures/fig01_network_lines.png
- figures/fig02_edge_weights.png
- figures/fig03_edge_betweenness.png
- figures/fig04_node_betweenness.png
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path

# Ensure repo root is on sys.path so `import transit_centrality...` works when executing this file directly.
REPO_ROOT = Path(__file__).resolve().parents[2]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

import networkx as nx
import pandas as pd
import requests

from transit_centrality.core.cli_utils import (
    RunStats,
    add_analysis_flags,
    add_input_flags,
    create_base_parser,
    log_level,
)
from transit_centrality.core.config import (
    DEFAULT_CONFIG_FILE,
    AnalysisParams,
    Paths,
    configure_logging,
    get_paths,
    load_analysis_params,
)
from transit_centrality.core.data_loaders import TransitDataset, load_transit_dataset
from transit_centrality.core.exceptions import TransitAnalysisError
from transit_centrality.graph.betweenness import CentralityResult, annotate_betweenness
from transit_centrality.graph.graph_utils import filter_edges_below, mean_coordinate, top_k_stops
from transit_centrality.graph.metrics import compute_network_metrics
from transit_centrality.io import write_csv, write_json
from transit_centrality.vis.basemap import Basemap, fetch_basemap
from transit_centrality.vis.vis_utils import NetworkMapPlotter, save_figure

LOGGER = logging.getLogger("centrality_analysis")

NETWORK_SANITY_FILE = "network_sanity.csv"
EDGE_BETWEENNESS_FILE = "edge_betweenness.csv"
STOP_BETWEENNESS_FILE = "stop_betweenness.csv"
TOP_STOPS_FILE = "top_stops.csv"
SUMMARY_FILE = "summary.json"

FIG_LINES = "fig01_network_lines.png"
FIG_WEIGHTS = "fig02_edge_weights.png"
FIG_EDGE_BC = "fig03_edge_betweenness.png"
FIG_NODE_BC = "fig04_node_betweenness.png"


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = create_base_parser("Betweenness centrality of a city's public-transport network.")
    add_input_flags(parser)
    add_analysis_flags(parser)
    return parser.parse_args(argv)


def _resolve_params(args: argparse.Namespace, paths: Paths) -> AnalysisParams:
    config_path = args.config
    if config_path is None:
        default = paths.config / DEFAULT_CONFIG_FILE
        config_path = default if default.exists() else None
    LOGGER.info("Config: %s", config_path or "<defaults>")
    params = load_analysis_params(
        config_path,
        log_betweenness_threshold=args.threshold,
        top_k=args.top_k,
        zoom=args.zoom,
    )
    if args.cutoff is not None:
        # A negative cutoff on the CLI means "unbounded".
        cutoff = None if args.cutoff < 0 else args.cutoff
        params = replace(params, edge_betweenness_cutoff=cutoff)
    return params


def _load_basemap(stops: pd.DataFrame, params: AnalysisParams) -> Basemap:
    lat, lon = mean_coordinate(stops)
    return fetch_basemap(
        lat,
        lon,
        params.zoom,
        radius=params.basemap_radius,
        url_template=params.tile_url,
        timeout=params.tile_timeout_s,
    )


def _render_line_map(
    plotter: NetworkMapPlotter, dataset: TransitDataset, *, params: AnalysisParams, paths: Paths
) -> Path:
    fig, _ = plotter.render(dataset.line_graph, title="Transit network (stops + line segments)")
    return save_figure(fig, paths.figures / FIG_LINES, dpi=params.dpi)


def _render_centrality_maps(
    plotter: NetworkMapPlotter,
    dataset: TransitDataset,
    centrality: CentralityResult,
    corridors: nx.DiGraph,
    *,
    params: AnalysisParams,
    paths: Paths,
) -> list[Path]:
    written: list[Path] = []

    fig, _ = plotter.render(
        dataset.weighted_graph,
        title="Stop-pair edges by normalised log frequency",
        edge_metric="weight",
        colorbar_label="weight",
    )
    written.append(save_figure(fig, paths.figures / FIG_WEIGHTS, dpi=params.dpi))

    fig, _ = plotter.render(
        corridors,
        title=(
            f"Edge betweenness (log >= {params.log_betweenness_threshold:g}, "
            f"cutoff={params.edge_betweenness_cutoff})"
        ),
        edge_metric="log_betweenness",
        colorbar_label="log edge betweenness",
    )
    written.append(save_figure(fig, paths.figures / FIG_EDGE_BC, dpi=params.dpi))

    fig, _ = plotter.render(
        centrality.G,
        title="Stop betweenness",
        node_metric="log_betweenness",
        colorbar_label="log stop betweenness",
    )
    written.append(save_figure(fig, paths.figures / FIG_NODE_BC, dpi=params.dpi))
    return written


def _print_ranking(top: pd.DataFrame) -> None:
    print(f"Top {len(top)} stops by betweenness:")
    for r in top.itertuples(index=False):
        print(f"{r.rank:>3}. {r.name} ({r.stop_id}): {r.betweenness:.1f}")


def run(args: argparse.Namespace) -> dict[str, object]:
    paths = get_paths(args.root)
    params = _resolve_params(args, paths)
    stats = RunStats()

    stops_path = args.stops or paths.data_raw / params.stops_file
    lines_path = args.lines or paths.data_raw / params.lines_file

    dataset = load_transit_dataset(stops_path, lines_path, params=params)
    stats.update(dataset.summary)
    stats.add_step("load")

    sanity = compute_network_metrics(dataset.weighted_graph)
    write_csv(sanity, paths.processed_metrics / NETWORK_SANITY_FILE)

    plotter: NetworkMapPlotter | None = None
    if not args.no_figures:
        basemap: Basemap | None = None
        if not args.no_basemap:
            basemap = _load_basemap(dataset.stops, params)
        plotter = NetworkMapPlotter(dataset.stops, basemap=basemap)
        # Written before the analysis so it survives a later failure.
        _render_line_map(plotter, dataset, params=params, paths=paths)

    centrality = annotate_betweenness(
        dataset.weighted_graph,
        edge_cutoff=params.edge_betweenness_cutoff,
        node_cutoff=params.node_betweenness_cutoff,
    )
    stats.add_step("betweenness")

    corridors = filter_edges_below(
        centrality.G, "log_betweenness", params.log_betweenness_threshold
    )
    top = top_k_stops(centrality.G, attr="betweenness", k=params.top_k)
    stats.update(
        {
            "edge_cutoff": params.edge_betweenness_cutoff,
            "log_betweenness_threshold": params.log_betweenness_threshold,
            "n_corridor_edges": int(corridors.number_of_edges()),
            "top_stop": top["name"].iloc[0] if not top.empty else None,
        }
    )

    write_csv(centrality.edges, paths.processed_metrics / EDGE_BETWEENNESS_FILE)
    write_csv(centrality.nodes, paths.processed_metrics / STOP_BETWEENNESS_FILE)
    write_csv(top, paths.processed_metrics / TOP_STOPS_FILE)

    if plotter is not None:
        _render_centrality_maps(
            plotter, dataset, centrality, corridors, params=params, paths=paths
        )
        stats.add_step("figures")

    summary = stats.get_summary()
    write_json(summary, paths.processed_metrics / SUMMARY_FILE)
    _print_ranking(top)
    return summary


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    configure_logging(log_level(args))
    try:
        summary = run(args)
    except (FileNotFoundError, TransitAnalysisError, requests.RequestException) as exc:
        LOGGER.error("Analysis aborted: %s", exc)
        return 1
    LOGGER.info("Analysis complete. Steps: %s", summary["completed_steps"])
    return 0


if __name__ == "__main__":
    sys.exit(main())
