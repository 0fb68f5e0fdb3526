"""Twilight overlay service: day/night raster tiles with seamless refresh.

This package renders a day/night "twilight" overlay for Web-Mercator maps
and keeps it current as time advances.

- Computes the sub-solar point with a low-precision solar model
- Renders RGBA raster tiles whose alpha follows the solar zenith angle,
  with a smooth ramp through civil, nautical and astronomical twilight
- Dispatches tile requests onto a bounded thread pool
- Mounts overlays on a host map through a small MapLibre-like protocol
- Double-buffers two overlays and crossfades between them on a fixed
  cadence so refreshed tiles never pop in
- Serves tiles and overlay state over FastAPI

See module sub-docstrings for details on architecture and usage.
"""
