"""Schema definitions for pipeline dataframe contracts.

This module contains only:
- `TableSchema` (schema metadata container)
- concrete table schemas (`STOPS`, `LINES`, `EDGES`, `WEIGHTED_EDGES`)

The raw input tables (`STOPS`, `LINES`) use the source column names (`cdk_id`);
loaders rename them to `stop_id` / `line_id` after validation.
"""

from __future__ import annotations

from collections.abc import Mapping

from pydantic import BaseModel, Field


class TableSchema(BaseModel):
    """A simple schema for a pandas DataFrame (column-level contract)."""

    name: str
    required_columns: tuple[str, ...] = Field(default_factory=tuple)
    optional_columns: tuple[str, ...] = Field(default_factory=tuple)
    # pandas dtype strings, e.g. "string", "Float64", "Int64"
    dtypes: Mapping[str, str] = Field(default_factory=dict)
    non_null: tuple[str, ...] = Field(default_factory=tuple)

    def allowed_columns(self) -> set[str]:
        return set(self.required_columns) | set(self.optional_columns)


STOPS = TableSchema(
    name="stops",
    required_columns=("cdk_id", "name", "lat", "lon"),
    dtypes={
        "cdk_id": "string",
        "name": "string",
        "lat": "Float64",
        "lon": "Float64",
    },
    non_null=("cdk_id",),
)

LINES = TableSchema(
    name="lines",
    required_columns=("cdk_id", "stop_list"),
    optional_columns=("name",),
    dtypes={
        "cdk_id": "string",
        "stop_list": "string",
        "name": "string",
    },
    non_null=("cdk_id",),
)

EDGES = TableSchema(
    name="edges",
    required_columns=("u", "v", "line_id"),
    dtypes={
        "u": "string",
        "v": "string",
        "line_id": "string",
    },
    non_null=("u", "v", "line_id"),
)

WEIGHTED_EDGES = TableSchema(
    name="weighted_edges",
    required_columns=("u", "v", "frequency", "weight"),
    optional_columns=("line_ids", "betweenness", "log_betweenness"),
    dtypes={
        "u": "string",
        "v": "string",
        "frequency": "Int64",
        "weight": "Float64",
        "line_ids": "string",
        "betweenness": "Float64",
        "log_betweenness": "Float64",
    },
    non_null=("u", "v", "frequency", "weight"),
)
