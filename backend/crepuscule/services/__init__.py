"""Solar model, raster generation, dispatch, overlays and crossfade."""
