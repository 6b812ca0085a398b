import networkx as nx
import pytest

from transit_centrality.core.config import AnalysisParams
from transit_centrality.core.data_loaders import load_lines, load_stops, load_transit_dataset
from transit_centrality.core.exceptions import EmptyGraphError, NumericDegeneracyError, SchemaError


class TestLoadStops:
    def test_renames_and_deduplicates(self, stops_csv):
        stops = load_stops(stops_csv)
        assert list(stops.columns) == ["stop_id", "name", "lat", "lon"]
        assert stops["stop_id"].is_unique
        assert len(stops) == 5
        first = stops.set_index("stop_id").loc["stop.a"]
        assert first["name"] == "Centraal"
        assert float(first["lat"]) == pytest.approx(52.3789)

    def test_duplicates_logged_as_warning(self, stops_csv, caplog):
        load_stops(stops_csv)
        dups = [r for r in caplog.records if "duplicate" in r.getMessage()]
        assert [r.levelname for r in dups] == ["WARNING"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_stops(tmp_path / "nope.csv")

    def test_missing_column(self, tmp_path):
        path = tmp_path / "stops.csv"
        path.write_text("cdk_id,name,lat\ns1,One,52.0\n", encoding="utf-8")
        with pytest.raises(SchemaError, match="lon"):
            load_stops(path)

    def test_non_numeric_coordinate(self, tmp_path):
        path = tmp_path / "stops.csv"
        path.write_text("cdk_id,name,lat,lon\ns1,One,north,4.9\n", encoding="utf-8")
        with pytest.raises(SchemaError, match="lat"):
            load_stops(path)

    def test_null_id(self, tmp_path):
        path = tmp_path / "stops.csv"
        path.write_text("cdk_id,name,lat,lon\n,One,52.0,4.9\n", encoding="utf-8")
        with pytest.raises(SchemaError, match="non-null"):
            load_stops(path)


class TestLoadLines:
    def test_columns(self, lines_csv):
        lines = load_lines(lines_csv)
        assert list(lines.columns) == ["line_id", "stop_list"]
        assert lines["line_id"].tolist() == ["line.1", "line.2", "line.3", "line.4"]

    def test_missing_stop_list(self, tmp_path):
        path = tmp_path / "lines.csv"
        path.write_text("cdk_id,stops\nl1,a;b\n", encoding="utf-8")
        with pytest.raises(SchemaError, match="stop_list"):
            load_lines(path)


class TestLoadTransitDataset:
    def test_fixture_network(self, stops_csv, lines_csv):
        ds = load_transit_dataset(stops_csv, lines_csv)

        assert len(ds.edges) == 6
        assert isinstance(ds.line_graph, nx.MultiDiGraph)
        assert ds.line_graph.number_of_edges() == 6
        assert isinstance(ds.weighted_graph, nx.DiGraph)
        assert ds.weighted_graph.number_of_nodes() == 5
        assert ds.weighted_graph.number_of_edges() == 4

        ab = ds.weighted_graph.edges["stop.a", "stop.b"]
        assert ab["frequency"] == 2
        assert ab["weight"] == pytest.approx(1.0)
        assert ab["line_ids"] == "line.1;line.2"
        assert ds.weighted_graph.edges["stop.c", "stop.d"]["weight"] == pytest.approx(0.0)
        assert ds.weighted_graph.nodes["stop.b"]["name"] == "Dam"

        assert ds.summary["n_lines_without_edges"] == 1
        assert ds.summary["n_stop_pairs"] == 4
        assert ds.summary["uniform_weight_fallback"] is False

    def test_three_stop_example(self, tmp_path):
        stops = tmp_path / "s.csv"
        lines = tmp_path / "l.csv"
        stops.write_text("cdk_id,name,lat,lon\nA,a,1,1\nB,b,1,2\nC,c,1,3\n", encoding="utf-8")
        lines.write_text("cdk_id,stop_list\nL1,A;B;C\n", encoding="utf-8")

        ds = load_transit_dataset(stops, lines)

        G = ds.weighted_graph
        assert G.number_of_nodes() == 3
        assert sorted(G.edges()) == [("A", "B"), ("B", "C")]
        assert all(d["frequency"] == 1 for _, _, d in G.edges(data=True))
        # every pair equally frequent -> uniform fallback weight
        assert all(d["weight"] == 1.0 for _, _, d in G.edges(data=True))
        assert ds.summary["uniform_weight_fallback"] is True

    def test_degenerate_weights_can_abort(self, tmp_path):
        stops = tmp_path / "s.csv"
        lines = tmp_path / "l.csv"
        stops.write_text("cdk_id,name,lat,lon\nA,a,1,1\nB,b,1,2\n", encoding="utf-8")
        lines.write_text("cdk_id,stop_list\nL1,A;B\n", encoding="utf-8")
        with pytest.raises(NumericDegeneracyError):
            load_transit_dataset(
                stops, lines, params=AnalysisParams(on_degenerate_weights="raise")
            )

    def test_unknown_stop(self, stops_csv, tmp_path):
        lines = tmp_path / "l.csv"
        lines.write_text("cdk_id,stop_list\nL1,stop.a;stop.zz;stop.b\n", encoding="utf-8")
        with pytest.raises(SchemaError, match="stop.zz"):
            load_transit_dataset(stops_csv, lines)

    def test_unknown_stop_dropped(self, stops_csv, tmp_path):
        lines = tmp_path / "l.csv"
        lines.write_text(
            "cdk_id,stop_list\nL1,stop.a;stop.zz;stop.b;stop.c\nL2,stop.b;stop.c\n",
            encoding="utf-8",
        )
        ds = load_transit_dataset(
            stops_csv, lines, params=AnalysisParams(on_unknown_stops="drop")
        )
        assert ds.summary["n_edge_records_dropped"] == 2
        assert sorted(ds.weighted_graph.edges()) == [("stop.b", "stop.c")]

    def test_no_edges(self, stops_csv, tmp_path):
        lines = tmp_path / "l.csv"
        lines.write_text("cdk_id,stop_list\nL1,stop.a\n", encoding="utf-8")
        with pytest.raises(EmptyGraphError):
            load_transit_dataset(stops_csv, lines)
