"""Lightweight I/O helpers.

This module centralises:
- validated CSV reads (`read_csv_validated`) at pipeline boundaries
- JSON/CSV artefact writes used by scripts
- the retried HTTP GET used for basemap tiles
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pandas as pd
import requests
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from transit_centrality.models.schemas import TableSchema
from transit_centrality.models.validate import validate_df

USER_AGENT = "TransitCentralityAnalysis/0.1 (basemap)"

_SESSION: requests.Session | None = None


def ensure_parent_dir(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def write_json(obj: Any, path: Path) -> None:
    ensure_parent_dir(path)
    path.write_text(json.dumps(obj, ensure_ascii=False, indent=2, default=str), encoding="utf-8")


def write_csv(df: pd.DataFrame, path: Path) -> None:
    ensure_parent_dir(path)
    df.to_csv(path, index=False)


def read_csv_validated(
    path: Path,
    *,
    dtype: dict[str, str],
    schema: TableSchema,
) -> pd.DataFrame:
    """Read a CSV and validate it against a table schema.

    Raises `FileNotFoundError` for a missing file and `SchemaError` for a
    missing column or an uncoercible value.
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Missing required input file: {path}")

    df = pd.read_csv(path, dtype=dtype)
    return validate_df(df, schema)


def _session() -> requests.Session:
    global _SESSION  # noqa: PLW0603
    if _SESSION is None:
        _SESSION = requests.Session()
        _SESSION.headers.update({"User-Agent": USER_AGENT})
    return _SESSION


def _retryable(exc: BaseException) -> bool:
    if isinstance(exc, requests.exceptions.HTTPError):
        resp = getattr(exc, "response", None)
        code = getattr(resp, "status_code", None)
        return code in {429, 500, 502, 503, 504}
    return isinstance(exc, requests.exceptions.RequestException)


def get_bytes(url: str, *, timeout: float = 30.0) -> bytes:
    """HTTP GET returning the raw body, retried on transient failures."""
    session = _session()

    @retry(
        retry=retry_if_exception(_retryable),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=10.0),
        stop=stop_after_attempt(4),
        reraise=True,
    )
    def _do_get() -> bytes:
        r = session.get(url, timeout=timeout)
        r.raise_for_status()
        return r.content

    return _do_get()
