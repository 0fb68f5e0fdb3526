"""Overlay state query endpoints.

The overlays live server-side on the application's host map. These
endpoints describe them so a browser map can mirror them: every paint layer
with its source, current opacity and opacity transition, and an HTTP tile
template that serves the source through crepuscule.api.tiles.

Example:
    List mounted overlays:
        >>> response = client.get("/api/overlays")
        >>> # Returns: [{"id": "crepuscule_layer_ab12",
        >>> #            "source": "crepuscule_source_ab12",
        >>> #            "opacity": 0.7, ...}]

    Fetch a MapLibre style fragment:
        >>> style = client.get("/api/overlays/style").json()
        >>> # {"sources": {...}, "layers": [...]}
"""

from typing import Any

import fastapi

from crepuscule.api import deps
from crepuscule.api import tiles
from crepuscule.map import host as host_module

router = fastapi.APIRouter(prefix="/api/overlays", tags=["overlays"])


def _http_tiles(base: str, tiles_templates: list[str]) -> list[str]:
    """Rewrite ``namespace://{z}-{x}-{y}-{ts}`` templates as HTTP URLs."""
    rewritten = []
    for template in tiles_templates:
        namespace, _, request_id = template.partition("://")
        timestamp = request_id.rsplit("-", 1)[-1]
        rewritten.append(tiles.build_tile_url(base, namespace, int(timestamp)))
    return rewritten


def _base_url(request: fastapi.Request) -> str:
    return str(request.base_url).rstrip("/")


@router.get("")
async def list_overlays(
    request: fastapi.Request,
    host: host_module.InMemoryHostMap = fastapi.Depends(deps.get_host),  # noqa: B008
) -> list[dict[str, Any]]:
    """List the overlay paint layers mounted on the host map.

    Args:
        request: Incoming request, used to build absolute tile URLs.
        host: Host map (injected via FastAPI Depends).

    Returns:
        One dictionary per layer with ``id``, ``source``, ``opacity`` (the
        effective opacity right now), ``target_opacity``, ``transition``,
        ``tile_size`` and ``tiles``.
    """
    base = _base_url(request)
    overlays = []
    for layer in host.layers():
        source = host.get_source(layer.source_id)
        if source is None:
            continue
        overlays.append(
            {
                "id": layer.id,
                "source": source.id,
                "opacity": host.opacity_at(layer.id),
                "target_opacity": layer.paint.get(host_module.OPACITY),
                "transition": layer.paint.get(host_module.OPACITY_TRANSITION),
                "tile_size": source.tile_size,
                "tiles": _http_tiles(base, source.tiles),
            }
        )
    return overlays


@router.get("/style")
async def overlay_style(
    request: fastapi.Request,
    host: host_module.InMemoryHostMap = fastapi.Depends(deps.get_host),  # noqa: B008
) -> dict[str, Any]:
    """Describe the overlays as a MapLibre style fragment.

    Returns:
        Dictionary with ``sources`` keyed by source id (raster sources with
        HTTP tile templates) and ``layers`` (raster layers with their paint
        properties), ready to merge into a MapLibre style.

    Example:
        Apply the fragment in MapLibre GL JS:
            >>> for (const [id, src] of Object.entries(style.sources))
            ...     map.addSource(id, src);
            >>> style.layers.forEach((layer) => map.addLayer(layer));
    """
    base = _base_url(request)
    return {
        "sources": {
            source.id: {
                "type": "raster",
                "tiles": _http_tiles(base, source.tiles),
                "tileSize": source.tile_size,
            }
            for source in host.sources()
        },
        "layers": [
            {
                "id": layer.id,
                "type": "raster",
                "source": layer.source_id,
                "paint": dict(layer.paint),
            }
            for layer in host.layers()
        ],
    }
