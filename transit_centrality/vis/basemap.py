"""Raster basemap from an XYZ ("slippy map") tile server.

Tiles around the tile containing the map centre are fetched and stitched into
one RGBA image; its extent is returned in Web Mercator metres so overlays
projected to EPSG:3857 line up with it.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from io import BytesIO

import matplotlib.image as mpimg
import numpy as np
from pyproj import Transformer

from transit_centrality.core.config import CRS_WEB_MERCATOR, CRS_WGS84, MAX_ZOOM
from transit_centrality.io import get_bytes

LOGGER = logging.getLogger(__name__)

TILE_SIZE = 256
MAX_MERCATOR_LAT = 85.05112878


@dataclass(frozen=True)
class Basemap:
    image: np.ndarray  # (H, W, 4) float RGBA in [0, 1]
    extent: tuple[float, float, float, float]  # xmin, xmax, ymin, ymax (EPSG:3857)
    zoom: int
    center: tuple[float, float]  # lat, lon


def lonlat_to_tile(lon: float, lat: float, zoom: int) -> tuple[int, int]:
    """Tile column/row containing a WGS84 point at `zoom`."""
    lat = max(min(lat, MAX_MERCATOR_LAT), -MAX_MERCATOR_LAT)
    n = 2**zoom
    x = int((lon + 180.0) / 360.0 * n)
    lat_rad = math.radians(lat)
    y = int((1.0 - math.asinh(math.tan(lat_rad)) / math.pi) / 2.0 * n)
    return min(max(x, 0), n - 1), min(max(y, 0), n - 1)


def tile_to_lonlat(x: int, y: int, zoom: int) -> tuple[float, float]:
    """WGS84 coordinate of the north-west corner of tile (x, y)."""
    n = 2**zoom
    lon = x / n * 360.0 - 180.0
    lat = math.degrees(math.atan(math.sinh(math.pi * (1 - 2 * y / n))))
    return lon, lat


def _as_rgba(tile: np.ndarray) -> np.ndarray:
    img = np.asarray(tile, dtype=float)
    if img.max() > 1.0:
        img = img / 255.0
    if img.ndim == 2:
        img = np.stack([img, img, img], axis=-1)
    if img.shape[-1] == 3:
        alpha = np.ones(img.shape[:2] + (1,), dtype=float)
        img = np.concatenate([img, alpha], axis=-1)
    return img


def _decode_tile(content: bytes) -> np.ndarray:
    return _as_rgba(mpimg.imread(BytesIO(content)))


def fetch_basemap(
    center_lat: float,
    center_lon: float,
    zoom: int,
    *,
    radius: int = 1,
    url_template: str = "https://tile.openstreetmap.org/{z}/{x}/{y}.png",
    timeout: float = 30.0,
) -> Basemap:
    """Fetch and stitch the (2*radius+1)^2 tiles centred on (center_lat, center_lon)."""
    if not 0 <= zoom <= MAX_ZOOM:
        raise ValueError(f"zoom must be within 0..{MAX_ZOOM}, got {zoom}")
    if radius < 0:
        raise ValueError(f"radius must be >= 0, got {radius}")

    n = 2**zoom
    cx, cy = lonlat_to_tile(center_lon, center_lat, zoom)
    xs = [cx + dx for dx in range(-radius, radius + 1)]
    ys = [y for y in range(cy - radius, cy + radius + 1) if 0 <= y < n]

    LOGGER.info(
        "Fetching basemap: zoom=%d centre=(%.5f, %.5f) tiles=%dx%d",
        zoom,
        center_lat,
        center_lon,
        len(xs),
        len(ys),
    )
    rows: list[np.ndarray] = []
    for y in ys:
        row = []
        for x in xs:
            url = url_template.format(z=zoom, x=x % n, y=y)
            LOGGER.debug("GET %s", url)
            row.append(_decode_tile(get_bytes(url, timeout=timeout)))
        rows.append(np.concatenate(row, axis=1))
    image = np.concatenate(rows, axis=0)

    # Columns may run past the antimeridian; keep them continuous in lon.
    west, north = tile_to_lonlat(xs[0], ys[0], zoom)
    east, south = tile_to_lonlat(xs[-1] + 1, ys[-1] + 1, zoom)
    transformer = Transformer.from_crs(CRS_WGS84, CRS_WEB_MERCATOR, always_xy=True)
    xmin, ymin = transformer.transform(west, south)
    xmax, ymax = transformer.transform(east, north)

    return Basemap(
        image=image,
        extent=(float(xmin), float(xmax), float(ymin), float(ymax)),
        zoom=zoom,
        center=(center_lat, center_lon),
    )
