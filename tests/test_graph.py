import math
import random

import networkx as nx
import numpy as np
import pandas as pd
import pytest

from transit_centrality.core.exceptions import EmptyGraphError, SchemaError
from transit_centrality.graph.betweenness import (
    annotate_betweenness,
    edge_betweenness,
    log_transform,
    node_betweenness,
)
from transit_centrality.graph.graph_utils import filter_edges_below, mean_coordinate, top_k_stops
from transit_centrality.graph.metrics import (
    build_line_multigraph,
    build_weighted_graph,
    compute_network_metrics,
)


def _weighted(rows):
    return pd.DataFrame(rows, columns=["u", "v", "frequency", "weight"])


@pytest.fixture
def abc_graph(stops_df) -> nx.DiGraph:
    # two lines A->B, one line B->C
    return build_weighted_graph(
        stops=stops_df,
        weighted_edges=_weighted([("A", "B", 2, 1.0), ("B", "C", 1, 0.0)]),
    )


def _random_digraph(n: int = 14, p: float = 0.25, seed: int = 7) -> nx.DiGraph:
    rng = random.Random(seed)
    G = nx.gnp_random_graph(n, p, seed=seed, directed=True)
    G = nx.relabel_nodes(G, {i: f"s{i:02d}" for i in G.nodes})
    for u, v in G.edges():
        G.edges[u, v]["weight"] = rng.uniform(0.1, 1.0)
    return G


def _chain(n: int) -> nx.DiGraph:
    G = nx.DiGraph()
    for i in range(n - 1):
        G.add_edge(f"S{i:02d}", f"S{i + 1:02d}", weight=0.0)
    return G


def _hub_graph() -> nx.DiGraph:
    """Five spokes linked both ways through one hub, plus a slow spoke-to-spoke shortcut."""
    G = nx.DiGraph()
    for i in range(5):
        G.add_edge("hub", f"spoke{i}", weight=0.5)
        G.add_edge(f"spoke{i}", "hub", weight=0.5)
    G.add_edge("spoke0", "spoke1", weight=5.0)
    return G


class TestBuildGraphs:
    def test_multigraph_keeps_parallel_traversals(self, stops_df):
        edges = pd.DataFrame(
            {"u": ["A", "A", "B"], "v": ["B", "B", "C"], "line_id": ["L1", "L2", "L3"]}
        )
        G = build_line_multigraph(stops=stops_df, edges=edges)
        assert G.number_of_nodes() == 3
        assert G.number_of_edges() == 3
        assert G.number_of_edges("A", "B") == 2
        assert {d["line_id"] for _, _, d in G.edges(data=True)} == {"L1", "L2", "L3"}

    def test_node_attributes(self, abc_graph):
        assert abc_graph.nodes["A"] == {"name": "Alpha", "lat": 52.37, "lon": 4.89}

    def test_isolated_stops_are_nodes(self, stops_df):
        G = build_weighted_graph(stops=stops_df, weighted_edges=_weighted([("A", "B", 1, 1.0)]))
        assert "C" in G
        assert G.degree("C") == 0

    def test_unknown_endpoint(self, stops_df):
        with pytest.raises(SchemaError):
            build_weighted_graph(stops=stops_df, weighted_edges=_weighted([("A", "Z", 1, 1.0)]))

    def test_empty_edges(self, stops_df):
        with pytest.raises(EmptyGraphError):
            build_weighted_graph(stops=stops_df, weighted_edges=_weighted([]))

    def test_nan_weight(self, stops_df):
        with pytest.raises(ValueError, match="invalid weights"):
            build_weighted_graph(
                stops=stops_df, weighted_edges=_weighted([("A", "B", 1, float("nan"))])
            )

    def test_network_metrics(self, abc_graph):
        m = dict(compute_network_metrics(abc_graph).itertuples(index=False, name=None))
        assert m["N_nodes"] == 3
        assert m["E_edges"] == 2
        assert m["n_weak_components"] == 1
        assert m["largest_component_share"] == pytest.approx(1.0)
        assert m["max_out_degree"] == 1


class TestBetweenness:
    def test_path_unbounded(self, abc_graph):
        ebc = edge_betweenness(abc_graph, cutoff=None)
        assert ebc == {("A", "B"): 2.0, ("B", "C"): 2.0}
        nbc = node_betweenness(abc_graph)
        assert nbc == {"A": 0.0, "B": 1.0, "C": 0.0}

    def test_cutoff_drops_long_paths(self, abc_graph):
        ebc = edge_betweenness(abc_graph, cutoff=1)
        assert ebc == {("A", "B"): 1.0, ("B", "C"): 1.0}
        ebc = edge_betweenness(abc_graph, cutoff=0)
        assert ebc == {("A", "B"): 0.0, ("B", "C"): 0.0}

    def test_cutoff_counts_hops_on_zero_weight_chain(self):
        # 13-stop chain; only the first segment is frequent enough to carry weight
        G = _chain(13)
        G.edges["S00", "S01"]["weight"] = 1.0
        assert edge_betweenness(G)[("S11", "S12")] == 10.0
        assert edge_betweenness(G, cutoff=None)[("S11", "S12")] == 12.0

    def test_cutoff_keeps_weighted_shortest_path(self):
        G = nx.DiGraph()
        G.add_edge("a", "d", weight=1.0)
        G.add_edge("a", "b", weight=0.0)
        G.add_edge("b", "c", weight=0.0)
        G.add_edge("c", "d", weight=0.0)
        ebc = edge_betweenness(G, cutoff=3)
        assert ebc[("a", "d")] == 0.0
        assert ebc[("c", "d")] == 3.0
        # the zero-weight detour is 3 hops, so at 2 hops a reaches d directly
        assert edge_betweenness(G, cutoff=2)[("a", "d")] == 1.0

    def test_fractional_cutoff_rejected(self, abc_graph):
        with pytest.raises(ValueError, match="hop count"):
            edge_betweenness(abc_graph, cutoff=0.5)

    def test_cutoff_counts_hops_when_unweighted(self, abc_graph):
        ebc = edge_betweenness(abc_graph, weight=None, cutoff=1)
        assert ebc == {("A", "B"): 1.0, ("B", "C"): 1.0}

    def test_large_cutoff_matches_networkx(self):
        G = _random_digraph()
        ours = edge_betweenness(G, cutoff=100)
        ref = nx.edge_betweenness_centrality(G, normalized=False, weight="weight")
        assert ours.keys() == ref.keys()
        for k in ref:
            assert ours[k] == pytest.approx(ref[k])

        ours_n = node_betweenness(G, cutoff=100)
        ref_n = nx.betweenness_centrality(G, normalized=False, weight="weight")
        for k in ref_n:
            assert ours_n[k] == pytest.approx(ref_n[k])

    def test_cutoff_never_increases_betweenness(self):
        G = _random_digraph(seed=3)
        full = edge_betweenness(G, weight=None, cutoff=None)
        bounded = edge_betweenness(G, weight=None, cutoff=2)
        for k in full:
            assert bounded[k] <= full[k] + 1e-9

    def test_parallel_edges_rejected(self, stops_df):
        G = nx.MultiDiGraph([("A", "B"), ("A", "B")])
        with pytest.raises(TypeError):
            edge_betweenness(G)

    def test_no_edges(self):
        G = nx.DiGraph()
        G.add_nodes_from(["A", "B"])
        with pytest.raises(EmptyGraphError):
            node_betweenness(G)

    def test_negative_cutoff(self, abc_graph):
        with pytest.raises(ValueError):
            edge_betweenness(abc_graph, cutoff=-1)

    def test_log_transform(self):
        out = log_transform([0.0, 1.0, math.e])
        assert out[0] == -np.inf
        assert out[1] == pytest.approx(0.0)
        assert out[2] == pytest.approx(1.0)
        with pytest.raises(ValueError):
            log_transform([-1.0])


class TestAnnotate:
    def test_attributes_and_frames(self, abc_graph):
        res = annotate_betweenness(abc_graph, edge_cutoff=None)

        assert "betweenness" not in abc_graph.nodes["B"]  # input untouched
        assert res.G.nodes["B"]["betweenness"] == 1.0
        assert res.G.nodes["B"]["log_betweenness"] == pytest.approx(0.0)
        assert res.G.nodes["A"]["log_betweenness"] == -np.inf
        assert res.G.edges["A", "B"]["log_betweenness"] == pytest.approx(math.log(2))

        assert res.nodes["stop_id"].iloc[0] == "B"
        assert res.nodes["name"].iloc[0] == "Bravo"
        assert set(res.edges.columns) >= {"u", "v", "frequency", "weight", "betweenness"}
        assert len(res.edges) == 2

    def test_records_cutoffs(self, abc_graph):
        res = annotate_betweenness(abc_graph, edge_cutoff=0, node_cutoff=None)
        assert res.edge_cutoff == 0
        assert res.node_cutoff is None
        assert res.G.edges["A", "B"]["betweenness"] == 0.0


class TestFilterAndRank:
    def test_filter_threshold(self):
        # two-hop paths: the middle segment carries 3, the outer ones 2
        G = annotate_betweenness(_chain(4), edge_cutoff=2).G
        H = filter_edges_below(G, "log_betweenness", math.log(2.5))
        assert sorted(H.edges()) == [("S01", "S02")]
        assert set(H.nodes) == set(G.nodes)
        assert G.number_of_edges() == 3

    def test_filter_idempotent(self):
        G = annotate_betweenness(_random_digraph(seed=11), edge_cutoff=2).G
        once = filter_edges_below(G, "log_betweenness", 1.5)
        twice = filter_edges_below(once, "log_betweenness", 1.5)
        assert sorted(once.edges()) == sorted(twice.edges())
        assert all(d["log_betweenness"] >= 1.5 for _, _, d in once.edges(data=True))

    def test_top_k_order(self, abc_graph):
        G = annotate_betweenness(abc_graph, edge_cutoff=None).G
        top = top_k_stops(G, k=2)
        assert top["rank"].tolist() == [1, 2]
        assert top["stop_id"].tolist() == ["B", "A"]  # tie at 0 broken by id
        assert top["name"].tolist() == ["Bravo", "Alpha"]

    def test_top_k_larger_than_graph(self, abc_graph):
        G = annotate_betweenness(abc_graph, edge_cutoff=None).G
        assert len(top_k_stops(G, k=20)) == 3

    def test_top_one_stable_under_relabelling(self):
        G = annotate_betweenness(_hub_graph(), edge_cutoff=None).G
        top = top_k_stops(G, k=1)["stop_id"].iloc[0]
        assert top == "hub"

        mapping = {n: f"renamed-{i}" for i, n in enumerate(sorted(G.nodes, reverse=True))}
        G2 = annotate_betweenness(nx.relabel_nodes(_hub_graph(), mapping), edge_cutoff=None).G
        assert top_k_stops(G2, k=1)["stop_id"].iloc[0] == mapping[top]

    def test_mean_coordinate(self, stops_df):
        lat, lon = mean_coordinate(stops_df)
        assert lat == pytest.approx(52.36)
        assert lon == pytest.approx(4.90)

    def test_mean_coordinate_ignores_missing(self, stops_df):
        df = stops_df.copy()
        df.loc[0, "lat"] = np.nan
        lat, _ = mean_coordinate(df)
        assert lat == pytest.approx(52.355)
