"""Tile request decoding and dispatch to the raster generator.

A host map asks an overlay's protocol handler for tiles with URLs such as
``crepuscule_protocol_ab12://3-4-2-1700000000000``. The final ``/`` segment
is the request identifier ``{z}-{x}-{y}-{timestamp}``. TileDispatcher decodes
it, renders the raster with crepuscule.services.tile_raster, and answers with
TileData, or with Cancelled when no raster was produced.

Rendering is delegated to a bounded executor shared by every dispatcher of
the application, so a burst of tile requests queues on a fixed number of
worker threads. In-flight generation cannot be cancelled.

Example:
    Dispatch a request synchronously and through the pool:
        >>> from concurrent import futures
        >>> from crepuscule.services.dispatcher import TileDispatcher
        >>> pool = futures.ThreadPoolExecutor(max_workers=4)
        >>> dispatcher = TileDispatcher(color=(0, 0, 17), tile_size=256,
        ...                             executor=pool)
        >>> result = dispatcher.dispatch("2-1-1-1700000000000")
        >>> future = dispatcher.submit("ns://2-1-1-1700000000000")
        >>> future.result().data == result.data
        True
"""

from __future__ import annotations

import asyncio
import dataclasses
import math
from concurrent import futures
from typing import TYPE_CHECKING

from crepuscule.core import errors
from crepuscule.core import log
from crepuscule.map import models
from crepuscule.services import tile_raster

if TYPE_CHECKING:
    from collections.abc import Callable

    RasterGenerator = Callable[
        [models.TileCoordinate, models.Timestamp, models.Color, int, bool],
        bytes | None,
    ]

logger = log.get_logger(__name__)


@dataclasses.dataclass(frozen=True)
class TileRequest:
    """Decoded generator inputs of one tile request."""

    coord: models.TileCoordinate
    timestamp: models.Timestamp


def parse_request(url: str | None) -> TileRequest:
    """Decode ``{z}-{x}-{y}-{timestamp}`` from the last segment of ``url``.

    Args:
        url: Tile URL or bare request identifier.

    Returns:
        TileRequest with the tile coordinate and timestamp.

    Raises:
        MalformedRequest: If the URL is missing, does not hold exactly four
            finite numeric fields, names a tile outside the pyramid, or
            carries a timestamp no datetime can represent.
    """
    if not url:
        raise errors.MalformedRequest("Tile request URL is missing")

    identifier = url.rsplit("/", 1)[-1]
    fields = identifier.split("-")
    if len(fields) != 4:
        raise errors.MalformedRequest(
            f"Expected '{{z}}-{{x}}-{{y}}-{{timestamp}}', got {identifier!r}"
        )
    try:
        numbers = [float(field) for field in fields]
    except ValueError as exc:
        raise errors.MalformedRequest(
            f"Non-numeric field in tile request {identifier!r}"
        ) from exc
    if not all(math.isfinite(number) for number in numbers):
        raise errors.MalformedRequest(
            f"Non-finite field in tile request {identifier!r}"
        )
    if not all(number.is_integer() for number in numbers[:3]):
        raise errors.MalformedRequest(
            f"Tile indices must be integers in {identifier!r}"
        )

    z, x, y = (int(number) for number in numbers[:3])
    try:
        coord = models.TileCoordinate(z=z, x=x, y=y)
    except ValueError as exc:
        raise errors.MalformedRequest(str(exc)) from exc

    timestamp = int(numbers[3])
    try:
        models.from_timestamp(timestamp)
    except (ValueError, OverflowError, OSError) as exc:
        raise errors.MalformedRequest(
            f"Timestamp out of range in tile request {identifier!r}"
        ) from exc
    return TileRequest(coord=coord, timestamp=timestamp)


class TileDispatcher:
    """Turns tile request identifiers into rendered rasters.

    One dispatcher is bound to the color, tile size and debug flag of the
    overlay that registered it. ``submit`` is the handler registered on the
    host map.
    """

    def __init__(
        self,
        color: models.Color,
        tile_size: int,
        debug: bool = False,
        executor: futures.Executor | None = None,
        generator: RasterGenerator = tile_raster.generate,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            color: Overlay color of the rendered tiles.
            tile_size: Edge length of the rendered tiles in pixels.
            debug: Draw tile borders.
            executor: Pool rendering tiles; None renders on the caller's
                thread.
            generator: Raster generator, tile_raster.generate by default.
        """
        self.color = models.validate_color(color)
        self.tile_size = tile_size
        self.debug = debug
        self._executor = executor
        self._generator = generator

    def dispatch(self, url: str | None) -> models.TileResult:
        """Decode ``url`` and render its tile on the calling thread.

        Raises:
            MalformedRequest: If ``url`` cannot be decoded.
        """
        return self._render(parse_request(url))

    def submit(self, url: str | None) -> futures.Future[models.TileResult]:
        """Decode ``url`` now and render its tile on the executor.

        Returns:
            Future resolving to TileData, or to Cancelled if the executor no
            longer accepts work.

        Raises:
            MalformedRequest: If ``url`` cannot be decoded.
        """
        request = parse_request(url)
        if self._executor is None:
            future: futures.Future[models.TileResult] = futures.Future()
            try:
                future.set_result(self._render(request))
            except Exception as exc:  # noqa: BLE001
                future.set_exception(exc)
            return future

        try:
            return self._executor.submit(self._render, request)
        except RuntimeError:
            logger.info("Tile pool is shut down, cancelling %s", url)
            future = futures.Future()
            future.set_result(models.Cancelled("tile pool is shut down"))
            return future

    async def dispatch_async(self, url: str | None) -> models.TileResult:
        """Awaitable form of ``submit``."""
        return await asyncio.wrap_future(self.submit(url))

    def _render(self, request: TileRequest) -> models.TileResult:
        coord = request.coord
        logger.debug(
            "Rendering tile %d/%d/%d at %d",
            coord.z,
            coord.x,
            coord.y,
            request.timestamp,
        )
        data = self._generator(
            coord,
            request.timestamp,
            self.color,
            self.tile_size,
            self.debug,
        )
        if not data:
            logger.info(
                "No raster for tile %d/%d/%d, cancelling",
                coord.z,
                coord.x,
                coord.y,
            )
            return models.Cancelled("no raster produced")
        return models.TileData(data=data, tile_size=self.tile_size)
