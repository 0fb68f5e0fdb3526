"""XYZ tile serving endpoint for twilight overlays.

Each overlay registers a tile protocol on the host map and points its
source at ``{namespace}://{z}-{x}-{y}-{timestamp}``. Browsers cannot fetch
such URLs, so this router exposes every registered namespace over HTTP:

    /tiles/{namespace}/{z}-{x}-{y}-{timestamp}.png

The request is resolved through the host map exactly like a protocol fetch,
the raster is rendered on the tile pool, and the RGBA buffer is encoded as a
PNG with rio-tiler. All tiles are in EPSG:3857 (Web Mercator).

Example:
    Request a tile of an overlay:
        >>> response = client.get(
        ...     "/tiles/crepuscule_protocol_ab12/2-1-1-1700000000000.png"
        ... )
        >>> # Returns PNG image bytes with Content-Type: image/png

    Use in MapLibre GL JS:
        >>> map.addSource('night', {
        ...     type: 'raster',
        ...     tiles: ['http://api/tiles/crepuscule_protocol_ab12/'
        ...             + '{z}-{x}-{y}-1700000000000.png'],
        ...     tileSize: 512
        ... });
"""

import asyncio

import fastapi
from fastapi import responses

from crepuscule.api import deps
from crepuscule.core import errors
from crepuscule.core import log
from crepuscule.map import host as host_module
from crepuscule.map import models
from crepuscule.services import tile_raster

router = fastapi.APIRouter(prefix="/tiles", tags=["tiles"])

logger = log.get_logger(__name__)


def build_tile_url(base: str, namespace: str, timestamp: int) -> str:
    """HTTP tile template serving ``namespace`` at ``timestamp``.

    Args:
        base: URL prefix of the service, without trailing slash.
        namespace: Protocol namespace of the overlay.
        timestamp: Instant embedded in the template.

    Returns:
        Template with ``{z}``, ``{x}`` and ``{y}`` placeholders.
    """
    return f"{base}/tiles/{namespace}/{{z}}-{{x}}-{{y}}-{timestamp}.png"


@router.get("/{namespace}/{request_id}.png")
async def twilight_tile(
    namespace: str,
    request_id: str,
    host: host_module.InMemoryHostMap = fastapi.Depends(deps.get_host),  # noqa: B008
) -> responses.Response:
    """Render one twilight tile as a PNG image.

    Args:
        namespace: Protocol namespace of the overlay serving the tile.
        request_id: Tile request identifier ``{z}-{x}-{y}-{timestamp}``.
        host: Host map (injected via FastAPI Depends).

    Returns:
        PNG image response, or an empty 204 response when the dispatch was
        cancelled.

    Raises:
        HTTPException: 400 for a malformed identifier, 404 when no overlay
            registered ``namespace``.
    """
    try:
        future = host.fetch(f"{namespace}://{request_id}")
    except errors.MalformedRequest as exc:
        logger.warning("Malformed tile request %r: %s", request_id, exc)
        raise fastapi.HTTPException(status_code=400, detail=str(exc)) from exc
    except errors.UnknownProtocol as exc:
        raise fastapi.HTTPException(
            status_code=404,
            detail="Tile protocol not found",
        ) from exc

    result = await asyncio.wrap_future(future)
    if isinstance(result, models.Cancelled):
        result.cancel()
        return responses.Response(status_code=204)

    return responses.Response(
        content=tile_raster.encode_png(result.data, result.tile_size),
        media_type="image/png",
    )
