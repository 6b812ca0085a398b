"""Common CLI utilities for analysis scripts."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Any


def create_base_parser(description: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=description)
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="YAML config file (default: <root>/config/analysis_config.yaml if present).",
    )
    parser.add_argument(
        "--root",
        type=Path,
        default=None,
        help="Project root holding data/, figures/ and config/ (default: repository root).",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable DEBUG logging.",
    )
    return parser


def add_input_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--stops", type=Path, default=None, help="Stop table CSV (cdk_id,name,lat,lon).")
    parser.add_argument("--lines", type=Path, default=None, help="Line table CSV (cdk_id,stop_list).")


def add_analysis_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--cutoff",
        type=int,
        default=None,
        help="Hop cutoff for edge betweenness; negative = unbounded (overrides config).",
    )
    parser.add_argument(
        "--threshold",
        type=float,
        default=None,
        help="Hide edges with log-betweenness below this value (overrides config).",
    )
    parser.add_argument("--top-k", type=int, default=None, help="Number of top stops to list.")
    parser.add_argument("--zoom", type=int, default=None, help="Basemap tile zoom level.")
    parser.add_argument(
        "--no-basemap",
        action="store_true",
        help="Render overlays on a blank background (no tile download).",
    )
    parser.add_argument("--no-figures", action="store_true", help="Skip rendering figures.")


def log_level(args: argparse.Namespace) -> int:
    return logging.DEBUG if getattr(args, "verbose", False) else logging.INFO


class RunStats:
    """Simple container for collecting statistics across pipeline steps."""

    def __init__(self) -> None:
        self.stats: dict[str, Any] = {}
        self.completed_steps: list[str] = []

    def update(self, step_stats: dict[str, Any]) -> None:
        self.stats.update(step_stats)

    def add_step(self, step_name: str) -> None:
        self.completed_steps.append(step_name)

    def get_summary(self) -> dict[str, Any]:
        return {
            "completed_steps": self.completed_steps,
            "step_count": len(self.completed_steps),
            **self.stats,
        }
