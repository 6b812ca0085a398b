"""Pydantic table schemas and dataframe validators.

These are contracts at stage boundaries:
- Loaders validate raw CSV input against `STOPS` / `LINES`.
- Builders validate their output tables (`EDGES`, `WEIGHTED_EDGES`).
"""

from __future__ import annotations

from transit_centrality.models.schemas import (
    EDGES,
    LINES,
    STOPS,
    WEIGHTED_EDGES,
    TableSchema,
)
from transit_centrality.models.validate import validate_df

__all__ = [
    "TableSchema",
    "validate_df",
    "STOPS",
    "LINES",
    "EDGES",
    "WEIGHTED_EDGES",
]
