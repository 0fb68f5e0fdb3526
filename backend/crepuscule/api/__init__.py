"""API router subpackage for the twilight overlay service.

Submodules:
    - tiles: Serves the raster tiles of every registered overlay protocol.
    - overlays: Describes mounted overlays for browser maps to mirror.
    - sun: Reports the sub-solar point.
    - deps: FastAPI dependencies resolving application state.
"""
