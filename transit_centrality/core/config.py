"""Project configuration (paths, constants, analysis parameters)."""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml

from transit_centrality.core.exceptions import ConfigError

# CRS defaults
CRS_WGS84: str = "EPSG:4326"
CRS_WEB_MERCATOR: str = "EPSG:3857"  # basemap tiles are served in this projection

DEFAULT_CONFIG_FILE = "analysis_config.yaml"

# Highest zoom level served by standard XYZ tile servers
MAX_ZOOM = 19


def project_root() -> Path:
    """Return repository root assuming this file lives in `<root>/transit_centrality/core/config.py`."""
    return Path(__file__).resolve().parents[2]


@dataclass(frozen=True)
class Paths:
    root: Path
    data_raw: Path
    data_processed: Path

    processed_metrics: Path

    figures: Path
    config: Path


def get_paths(root: Path | None = None) -> Paths:
    r = project_root() if root is None else Path(root).resolve()
    data_processed = r / "data" / "processed"
    return Paths(
        root=r,
        data_raw=r / "data" / "raw",
        data_processed=data_processed,
        processed_metrics=data_processed / "metrics",
        figures=r / "figures",
        config=r / "config",
    )


@dataclass(frozen=True)
class AnalysisParams:
    """Tunable constants of the centrality analysis.

    `edge_betweenness_cutoff` and `log_betweenness_threshold` were picked
    empirically for city-sized networks; both are overridable from YAML or CLI.
    """

    stops_file: str = "stops.csv"
    lines_file: str = "lines.csv"

    # Betweenness hop cutoffs (None = unbounded shortest paths)
    edge_betweenness_cutoff: int | None = 10
    node_betweenness_cutoff: int | None = None

    # Edges whose log-betweenness is below this are hidden in the corridor map
    log_betweenness_threshold: float = 3.0
    top_k: int = 20

    # Edge weights
    uniform_weight: float = 1.0
    on_degenerate_weights: str = "uniform"  # "uniform" | "raise"
    on_unknown_stops: str = "raise"  # "raise" | "drop"

    # Basemap / rendering
    zoom: int = 12
    basemap_radius: int = 1
    tile_url: str = "https://tile.openstreetmap.org/{z}/{x}/{y}.png"
    tile_timeout_s: float = 30.0
    dpi: int = 300

    def __post_init__(self) -> None:
        if self.on_degenerate_weights not in {"uniform", "raise"}:
            raise ConfigError(
                f"on_degenerate_weights must be 'uniform' or 'raise', got {self.on_degenerate_weights!r}"
            )
        if self.on_unknown_stops not in {"raise", "drop"}:
            raise ConfigError(
                f"on_unknown_stops must be 'raise' or 'drop', got {self.on_unknown_stops!r}"
            )
        if self.top_k < 1:
            raise ConfigError(f"top_k must be >= 1, got {self.top_k}")
        if self.basemap_radius < 0:
            raise ConfigError(f"basemap_radius must be >= 0, got {self.basemap_radius}")
        if not 0 <= self.zoom <= MAX_ZOOM:
            raise ConfigError(f"zoom must be within 0..{MAX_ZOOM}, got {self.zoom}")
        for name in ("edge_betweenness_cutoff", "node_betweenness_cutoff"):
            value = getattr(self, name)
            if value is not None and (value < 0 or value != int(value)):
                raise ConfigError(f"{name} must be a non-negative hop count or null, got {value}")


def load_analysis_params(path: Path | None = None, **overrides: Any) -> AnalysisParams:
    """Load `AnalysisParams` from the `analysis:` block of a YAML config file.

    Keyword overrides win over file values; `None` overrides are ignored so CLI
    flags that were not given fall through to the file.
    """
    cfg: dict[str, Any] = {}
    if path is not None:
        raw = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
        if not isinstance(raw, dict):
            raise ConfigError(f"{path}: expected a mapping at top level")
        cfg = dict(raw.get("analysis") or {})

    cfg.update({k: v for k, v in overrides.items() if v is not None})

    known = {f.name for f in fields(AnalysisParams)}
    unknown = sorted(set(cfg) - known)
    if unknown:
        raise ConfigError(f"Unknown analysis config keys: {unknown}")
    return AnalysisParams(**cfg)


def configure_logging(level: int = logging.INFO) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
