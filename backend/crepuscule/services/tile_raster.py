"""Day/night raster tile generation.

This module renders the twilight overlay one Web-Mercator tile at a time.
Every pixel is projected back to longitude/latitude, its great-circle
distance to the sub-solar point is measured, and that angle (the solar
zenith angle) is turned into an alpha value:

- up to 90° the sun is above the horizon and the pixel is transparent,
- from 90° to 108° (civil, nautical and astronomical twilight) alpha rises
  along a smoothstep curve,
- beyond 108° it is full night and alpha saturates at 255.

RGB channels are the configured overlay color for every pixel; only alpha
varies. Generation is a pure function of its inputs and shares no mutable
state, so tiles can be rendered concurrently on worker threads.

Example:
    Render a tile and encode it for HTTP:
        >>> from crepuscule.map.models import TileCoordinate
        >>> from crepuscule.services import tile_raster
        >>> data = tile_raster.generate(
        ...     TileCoordinate(z=2, x=1, y=1),
        ...     timestamp=1_700_000_000_000,
        ...     color=(0, 0, 17),
        ...     tile_size=256,
        ... )
        >>> len(data) == 256 * 256 * 4
        True
        >>> png = tile_raster.encode_png(data, tile_size=256)
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

import morecantile
import numpy as np
from rio_tiler import utils as rio_tiler_utils

from crepuscule.services import solar

if TYPE_CHECKING:
    from crepuscule.map import models

WEB_MERCATOR = morecantile.tms.get("WebMercatorQuad")
EARTH_RADIUS = 6378137.0

TERMINATOR_ANGLE = 90.0
NIGHT_ANGLE = 108.0
NIGHT_ALPHA = 255
DEBUG_BORDER_ALPHA = 255


def pixel_lonlat(
    coord: models.TileCoordinate,
    tile_size: int,
) -> tuple[np.ndarray, np.ndarray]:
    """Longitude and latitude grids of the pixel centers of a tile.

    Pixel offsets map linearly onto the tile's extent in Web-Mercator
    meters, which is then inverted to geographic degrees.

    Args:
        coord: Tile to sample.
        tile_size: Edge length of the tile in pixels.

    Returns:
        Two ``(tile_size, tile_size)`` arrays, longitudes and latitudes in
        degrees, row 0 being the northern edge.
    """
    bounds = WEB_MERCATOR.xy_bounds(morecantile.Tile(coord.x, coord.y, coord.z))
    offsets = (np.arange(tile_size, dtype=np.float64) + 0.5) / tile_size
    xs = bounds.left + offsets * (bounds.right - bounds.left)
    ys = bounds.top - offsets * (bounds.top - bounds.bottom)

    lons = np.degrees(xs / EARTH_RADIUS)
    lats = np.degrees(2 * np.arctan(np.exp(ys / EARTH_RADIUS)) - math.pi / 2)
    return np.meshgrid(lons, lats)


def zenith_angle(
    lons: np.ndarray,
    lats: np.ndarray,
    sun: solar.SolarPosition,
) -> np.ndarray:
    """Great-circle angle in degrees between each point and the sub-solar point."""
    lat_rad = np.radians(lats)
    sun_lat = math.radians(sun.latitude)
    cos_angle = np.sin(lat_rad) * math.sin(sun_lat) + np.cos(lat_rad) * math.cos(
        sun_lat
    ) * np.cos(np.radians(lons - sun.longitude))
    return np.degrees(np.arccos(np.clip(cos_angle, -1.0, 1.0)))


def night_alpha(angle: np.ndarray | float) -> np.ndarray:
    """Map zenith angles to alpha bytes along a continuous smoothstep ramp.

    The ramp is non-decreasing in ``angle``: 0 up to the terminator, then
    rising through the twilight band to NIGHT_ALPHA.
    """
    t = np.clip(
        (np.asarray(angle, dtype=np.float64) - TERMINATOR_ANGLE)
        / (NIGHT_ANGLE - TERMINATOR_ANGLE),
        0.0,
        1.0,
    )
    ramp = t * t * (3.0 - 2.0 * t)
    return np.rint(ramp * NIGHT_ALPHA).astype(np.uint8)


def generate(
    coord: models.TileCoordinate,
    timestamp: models.Timestamp,
    color: models.Color,
    tile_size: int,
    debug: bool = False,
) -> bytes:
    """Render the twilight raster of one tile.

    Args:
        coord: Tile to render.
        timestamp: Instant to render, in epoch milliseconds.
        color: Overlay color written to every pixel's RGB channels.
        tile_size: Edge length of the tile in pixels (usually 256 or 512).
        debug: Draw an opaque border so tile bounds are visible.

    Returns:
        ``tile_size * tile_size * 4`` RGBA bytes, row-major from the
        top-left pixel. Identical inputs give byte-identical output.
    """
    lons, lats = pixel_lonlat(coord, tile_size)
    alpha = night_alpha(zenith_angle(lons, lats, solar.subsolar_point(timestamp)))

    if debug:
        width = max(1, tile_size // 128)
        alpha[:width, :] = DEBUG_BORDER_ALPHA
        alpha[-width:, :] = DEBUG_BORDER_ALPHA
        alpha[:, :width] = DEBUG_BORDER_ALPHA
        alpha[:, -width:] = DEBUG_BORDER_ALPHA

    rgba = np.empty((tile_size, tile_size, 4), dtype=np.uint8)
    rgba[..., :3] = np.asarray(color, dtype=np.uint8)
    rgba[..., 3] = alpha
    return rgba.tobytes()


def encode_png(data: bytes, tile_size: int) -> bytes:
    """Encode an RGBA raster buffer as a PNG image with rio-tiler."""
    rgba = np.frombuffer(data, dtype=np.uint8).reshape(tile_size, tile_size, 4)
    bands = np.ascontiguousarray(np.transpose(rgba, (2, 0, 1)))
    return rio_tiler_utils.render(bands, img_format="PNG")
