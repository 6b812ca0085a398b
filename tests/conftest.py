"""Shared fixtures: a tiny city network written as the two input CSVs."""

from __future__ import annotations

from io import BytesIO
from pathlib import Path

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import pytest

STOPS_CSV = """cdk_id,name,lat,lon
stop.a,Centraal,52.3789,4.9004
stop.b,Dam,52.3731,4.8926
stop.c,Leidseplein,52.3641,4.8828
stop.d,Museumplein,52.3580,4.8812
stop.e,Waterlooplein,52.3676,4.9021
stop.a,Centraal (duplicate),52.0,4.0
"""

# l4 has a single stop and contributes no edges.
LINES_CSV = """cdk_id,stop_list
line.1,stop.a;stop.b;stop.c
line.2,stop.a;stop.b;stop.c;stop.d
line.3,stop.e;stop.c
line.4,stop.d
"""


@pytest.fixture
def stops_csv(tmp_path: Path) -> Path:
    path = tmp_path / "stops.csv"
    path.write_text(STOPS_CSV, encoding="utf-8")
    return path


@pytest.fixture
def lines_csv(tmp_path: Path) -> Path:
    path = tmp_path / "lines.csv"
    path.write_text(LINES_CSV, encoding="utf-8")
    return path


@pytest.fixture
def stops_df() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "stop_id": ["A", "B", "C"],
            "name": ["Alpha", "Bravo", "Charlie"],
            "lat": [52.37, 52.36, 52.35],
            "lon": [4.89, 4.90, 4.91],
        }
    )


@pytest.fixture
def png_tile() -> bytes:
    """A 256x256 RGB tile encoded as PNG."""
    buf = BytesIO()
    plt.imsave(buf, np.full((256, 256, 3), 0.5), format="png")
    return buf.getvalue()


@pytest.fixture(autouse=True)
def _close_figures():
    yield
    plt.close("all")
