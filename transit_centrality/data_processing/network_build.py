"""Build stop-pair edge tables from line stop sequences.

Design goals:
- Deterministic outputs (input order for edge records, stable sorting for aggregates).
- Pure functions on dataframes; the caller owns I/O.
- Line stop order comes from the `;`-delimited `stop_list` field.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

import numpy as np
import pandas as pd

from transit_centrality.core.exceptions import EmptyGraphError, NumericDegeneracyError, SchemaError
from transit_centrality.models.schemas import EDGES, WEIGHTED_EDGES
from transit_centrality.models.validate import validate_df

LOGGER = logging.getLogger(__name__)

STOP_LIST_SEP = ";"


@dataclass(frozen=True)
class EdgeRecord:
    u: str
    v: str
    line_id: str


def split_stop_list(raw: Any) -> list[str]:
    """Parse a `;`-delimited stop sequence into an ordered list of stop ids."""
    if raw is None or (not isinstance(raw, str) and pd.isna(raw)):
        return []
    return [p.strip() for p in str(raw).split(STOP_LIST_SEP) if p.strip()]


def line_edges(line_id: str, stop_ids: Iterable[str]) -> list[EdgeRecord]:
    """Consecutive stop pairs of one line: N stops give N-1 records, fewer than 2 give none."""
    ids = list(stop_ids)
    return [EdgeRecord(u=u, v=v, line_id=line_id) for u, v in zip(ids[:-1], ids[1:])]


def edges_from_lines(lines: pd.DataFrame) -> pd.DataFrame:
    """Expand a line table (`line_id`, `stop_list`) into a flat edge-record table.

    Records keep input order: line by line, then position along the line.
    """
    if not {"line_id", "stop_list"}.issubset(lines.columns):
        raise SchemaError("lines must have 'line_id' and 'stop_list' columns")

    records: list[EdgeRecord] = []
    short_lines = 0
    for line_id, raw in lines[["line_id", "stop_list"]].itertuples(index=False, name=None):
        recs = line_edges(str(line_id), split_stop_list(raw))
        if not recs:
            short_lines += 1
        records.extend(recs)

    if short_lines:
        LOGGER.info("%d line(s) have fewer than 2 stops and contribute no edges", short_lines)

    df = pd.DataFrame(
        [(r.u, r.v, r.line_id) for r in records], columns=["u", "v", "line_id"]
    )
    return validate_df(df, EDGES)


def check_edge_endpoints(
    edges: pd.DataFrame,
    stops: pd.DataFrame,
    *,
    on_unknown: str = "raise",
) -> pd.DataFrame:
    """Ensure every edge endpoint is a known stop id.

    `on_unknown="raise"` fails with `SchemaError`; `"drop"` removes the offending
    records and logs how many were dropped.
    """
    if "stop_id" not in stops.columns:
        raise SchemaError("stops must have 'stop_id' column")
    if on_unknown not in {"raise", "drop"}:
        raise ValueError(f"on_unknown must be 'raise' or 'drop', got {on_unknown!r}")

    st_ids = set(stops["stop_id"].astype(str))
    e = edges.copy()
    ok = e["u"].astype(str).isin(st_ids) & e["v"].astype(str).isin(st_ids)
    if ok.all():
        return e

    bad_u = set(e.loc[~e["u"].astype(str).isin(st_ids), "u"].astype(str))
    bad_v = set(e.loc[~e["v"].astype(str).isin(st_ids), "v"].astype(str))
    unknown = sorted(bad_u | bad_v)
    if on_unknown == "raise":
        raise SchemaError(
            f"edges reference unknown stop id(s): {len(unknown)} (e.g. {unknown[:10]})"
        )

    LOGGER.warning(
        "Dropping %d edge record(s) referencing %d unknown stop id(s) (e.g. %s)",
        int((~ok).sum()),
        len(unknown),
        unknown[:5],
    )
    return e.loc[ok].reset_index(drop=True)


def _agg_line_ids(series: pd.Series) -> str:
    return STOP_LIST_SEP.join(sorted(set(series.dropna().astype(str))))


def aggregate_edge_frequencies(edges: pd.DataFrame) -> pd.DataFrame:
    """Collapse edge records to one row per directed (u, v) pair with a traversal count."""
    if edges.empty:
        raise EmptyGraphError("No edge records to aggregate (all lines have fewer than 2 stops?)")

    agg = (
        edges.groupby(["u", "v"], as_index=False, sort=False)
        .agg(
            frequency=("line_id", "size"),
            line_ids=("line_id", _agg_line_ids),
        )
        .sort_values(["u", "v"], kind="mergesort")
        .reset_index(drop=True)
    )
    agg["frequency"] = agg["frequency"].astype("Int64")
    return agg


def normalized_log_weights(
    frequency: pd.Series,
    *,
    on_degenerate: str = "uniform",
    uniform_weight: float = 1.0,
) -> pd.Series:
    """Min-max normalised natural log of traversal frequency, in [0, 1].

    When every frequency is equal the range is zero; `on_degenerate="uniform"`
    assigns `uniform_weight` to all edges, `"raise"` fails instead.
    """
    if frequency.empty:
        raise EmptyGraphError("Cannot normalise weights of an empty edge table")
    f = frequency.astype(float)
    if f.isna().any() or (f <= 0).any():
        bad = f[f.isna() | (f <= 0)].head(5).tolist()
        raise NumericDegeneracyError(f"frequencies must be positive for log weighting (e.g. {bad})")

    logf = np.log(f)
    lo = float(logf.min())
    hi = float(logf.max())
    if hi == lo:
        if on_degenerate == "raise":
            raise NumericDegeneracyError(
                "All edge frequencies are equal; log-weight normalisation is undefined"
            )
        LOGGER.warning(
            "All %d edge frequencies are equal (%s); using uniform weight %.3f",
            len(f),
            f.iloc[0],
            uniform_weight,
        )
        return pd.Series(float(uniform_weight), index=frequency.index, name="weight")

    return ((logf - lo) / (hi - lo)).rename("weight")


def weighted_edges_from_records(
    edges: pd.DataFrame,
    *,
    on_degenerate: str = "uniform",
    uniform_weight: float = 1.0,
) -> pd.DataFrame:
    """Aggregate edge records by stop pair and attach normalised log weights."""
    agg = aggregate_edge_frequencies(edges)
    agg["weight"] = normalized_log_weights(
        agg["frequency"], on_degenerate=on_degenerate, uniform_weight=uniform_weight
    ).to_numpy()
    return validate_df(agg, WEIGHTED_EDGES)
